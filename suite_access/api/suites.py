"""Suite endpoints.

Every suite-scoped route resolves the suite from the path, then runs the
action guard for the caller before touching it.  Denials map to HTTP as:

  NO_SUITE_SELECTED (unknown id)      -> 404
  SUITE_LIMIT_REACHED                 -> 402
  EXECUTION_ERROR                     -> 500
  INVALID_ACCOUNT_SCOPE,
  INVALID_PERMISSION_LEVEL            -> 422
  any other denial                    -> 403

Error bodies are {"detail": {"code": ..., "message": ...}}.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from suite_access.api.capabilities import profile_repo
from suite_access.api.dependencies import error_detail, get_now, require_user
from suite_access.core.config import SETTINGS
from suite_access.core.metrics import AUTHORIZATION_DECISIONS, SUITE_CREATION_CHECKS
from suite_access.models.decisions import AuthorizationResult, ReasonCode
from suite_access.models.permission import PermissionLevel
from suite_access.models.profile import UserIdentity
from suite_access.models.suite import AccountType, Suite
from suite_access.repos.suite_repo import InMemorySuiteRepo
from suite_access.services.action_authorizer import SuiteAction, authorize
from suite_access.services.action_guard import execute_if_allowed, guard_action
from suite_access.services.entitlements import evaluate
from suite_access.services.permission_resolver import resolve_permission
from suite_access.services.suite_creation import suite_creation_decision

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/suites", tags=["suites"])

# --- Module-level repo singleton (in-memory for now) ---
suite_repo = InMemorySuiteRepo()
# create_suite runs in the threadpool; count-then-add must not interleave.
_create_lock = threading.Lock()

_ORG_CREATOR_ROLES = frozenset({"owner", "admin"})
UNKNOWN_ACTION_LABEL = "unknown"
_REQUEST_SHAPE_CODES = frozenset(
    {ReasonCode.INVALID_ACCOUNT_SCOPE, ReasonCode.INVALID_PERMISSION_LEVEL}
)


def _status_for(code: ReasonCode) -> int:
    if code == ReasonCode.NO_SUITE_SELECTED:
        return status.HTTP_404_NOT_FOUND
    if code == ReasonCode.SUITE_LIMIT_REACHED:
        return status.HTTP_402_PAYMENT_REQUIRED
    if code == ReasonCode.USER_NOT_AUTHENTICATED:
        return status.HTTP_401_UNAUTHORIZED
    if code == ReasonCode.EXECUTION_ERROR:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if code in _REQUEST_SHAPE_CODES:
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_403_FORBIDDEN


def _deny(code: ReasonCode, message: str | None = None) -> HTTPException:
    return HTTPException(
        status_code=_status_for(code), detail=error_detail(code, message)
    )


def _action_label(action: str) -> str:
    """Registered action name, or "unknown" so free-form input stays one series."""
    try:
        return SuiteAction(action).value
    except ValueError:
        return UNKNOWN_ACTION_LABEL


def _record(result: AuthorizationResult) -> None:
    AUTHORIZATION_DECISIONS.labels(
        action=_action_label(result.action), code=result.code.value
    ).inc()


def _guarded_suite(
    suite_id: str, user: UserIdentity, action: SuiteAction
) -> Suite:
    """Load suite_id and guard action for user, raising the mapped HTTP error."""
    suite = suite_repo.get(suite_id)
    if suite is None:
        raise _deny(ReasonCode.NO_SUITE_SELECTED, "suite not found")

    guard = guard_action(
        action,
        suite,
        user,
        profile_repo.get(user.id),
        require_verified_email=SETTINGS.require_verified_email,
    )
    if guard.authorization is not None:
        _record(guard.authorization)
    if not guard.allowed:
        raise _deny(guard.code, guard.message)
    return suite


# --- Pydantic schemas ---


class SuiteCreateIn(BaseModel):
    name: str
    account_type: AccountType = AccountType.INDIVIDUAL
    organization_id: str | None = None


class SuiteOut(BaseModel):
    id: str
    name: str
    owner_id: str
    account_type: str
    organization_id: str | None

    @staticmethod
    def from_suite(suite: Suite) -> SuiteOut:
        return SuiteOut(
            id=suite.id,
            name=suite.name,
            owner_id=suite.owner_id,
            account_type=suite.account_type.value,
            organization_id=suite.organization_id,
        )


class PermissionOut(BaseModel):
    suite_id: str
    level: str | None
    source: str
    has_access: bool


class AuthorizeIn(BaseModel):
    action: str


class AuthorizationOut(BaseModel):
    allowed: bool
    action: str
    required_level: str
    granted_level: str | None
    source: str | None
    code: str


class GrantIn(BaseModel):
    level: str


# --- Endpoints ---


@router.get("", response_model=list[SuiteOut])
def list_suites(
    user: Annotated[UserIdentity, Depends(require_user)],
) -> list[SuiteOut]:
    """Suites the caller can view."""
    profile = profile_repo.get(user.id)
    return [
        SuiteOut.from_suite(s)
        for s in suite_repo.list_all()
        if authorize(s, user, profile, SuiteAction.VIEW).allowed
    ]


@router.post("", response_model=SuiteOut, status_code=status.HTTP_201_CREATED)
def create_suite(
    body: SuiteCreateIn,
    user: Annotated[UserIdentity, Depends(require_user)],
    now: Annotated[datetime, Depends(get_now)],
) -> SuiteOut:
    """Create a suite. The creator becomes its owner and first admin."""
    profile = profile_repo.get(user.id)

    if body.account_type == AccountType.ORGANIZATION:
        if not body.organization_id:
            raise _deny(
                ReasonCode.INVALID_ACCOUNT_SCOPE,
                "organization suites require organization_id",
            )
        membership = (
            profile.active_membership(body.organization_id) if profile else None
        )
        if membership is None or membership.role.lower() not in _ORG_CREATOR_ROLES:
            raise _deny(ReasonCode.INSUFFICIENT_ORG_PERMISSION)
        account_owner = body.organization_id
    else:
        if body.organization_id:
            raise _deny(
                ReasonCode.INVALID_ACCOUNT_SCOPE,
                "individual suites cannot carry an organization_id",
            )
        account_owner = user.id

    capabilities = evaluate(profile, now) if profile is not None else None

    # Authoritative check and write under one lock.  This only serializes
    # creates within this process; a shared store must enforce the limit
    # in the same transaction as the insert.
    with _create_lock:
        decision = suite_creation_decision(
            profile, capabilities, suite_repo.count_by_owner(account_owner)
        )
        SUITE_CREATION_CHECKS.labels(
            result="allowed" if decision.allowed else decision.code.value
        ).inc()
        if not decision.allowed:
            raise _deny(decision.code)

        suite = Suite.new(
            name=body.name,
            creator_id=user.id,
            account_type=body.account_type,
            organization_id=body.organization_id,
        )
        suite_repo.add(suite)

    logger.info(
        "Suite created: suite=%s owner=%s creator=%s count=%d",
        suite.id,
        suite.owner_id,
        user.id,
        decision.current_count + 1,
    )
    return SuiteOut.from_suite(suite)


@router.get("/{suite_id}", response_model=SuiteOut)
def get_suite(
    suite_id: str,
    user: Annotated[UserIdentity, Depends(require_user)],
) -> SuiteOut:
    return SuiteOut.from_suite(_guarded_suite(suite_id, user, SuiteAction.VIEW))


@router.get("/{suite_id}/permission", response_model=PermissionOut)
def get_permission(
    suite_id: str,
    user: Annotated[UserIdentity, Depends(require_user)],
) -> PermissionOut:
    """The caller's resolved level on the suite. Never 403s."""
    suite = suite_repo.get(suite_id)
    if suite is None:
        raise _deny(ReasonCode.NO_SUITE_SELECTED, "suite not found")
    resolution = resolve_permission(suite, user.id, profile_repo.get(user.id))
    return PermissionOut(
        suite_id=suite.id,
        level=resolution.level.value if resolution.level else None,
        source=resolution.source.value,
        has_access=resolution.has_access,
    )


@router.post("/{suite_id}/authorize", response_model=AuthorizationOut)
def authorize_action(
    suite_id: str,
    body: AuthorizeIn,
    user: Annotated[UserIdentity, Depends(require_user)],
) -> AuthorizationOut:
    """Dry-run authorization of body.action. Denials are returned, not raised."""
    suite = suite_repo.get(suite_id)
    if suite is None:
        raise _deny(ReasonCode.NO_SUITE_SELECTED, "suite not found")
    result = authorize(
        suite,
        user,
        profile_repo.get(user.id),
        body.action,
        require_verified_email=SETTINGS.require_verified_email,
    )
    _record(result)
    return AuthorizationOut(
        allowed=result.allowed,
        action=result.action,
        required_level=result.required_level.value,
        granted_level=result.granted_level.value if result.granted_level else None,
        source=result.source.value if result.source else None,
        code=result.code.value,
    )


@router.put("/{suite_id}/access/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def grant_access(
    suite_id: str,
    user_id: str,
    body: GrantIn,
    user: Annotated[UserIdentity, Depends(require_user)],
) -> None:
    """Set user_id's level in the suite's permissions matrix."""
    suite = _guarded_suite(suite_id, user, SuiteAction.MANAGE)
    level = PermissionLevel.parse(body.level)
    if level is None:
        raise _deny(
            ReasonCode.INVALID_PERMISSION_LEVEL, f"unknown level: {body.level}"
        )
    suite_repo.replace(suite.with_grant(user_id, level))
    logger.info(
        "Access granted: suite=%s user=%s level=%s by=%s",
        suite.id,
        user_id,
        level.value,
        user.id,
    )


@router.delete("/{suite_id}/access/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_access(
    suite_id: str,
    user_id: str,
    user: Annotated[UserIdentity, Depends(require_user)],
) -> None:
    """Remove user_id from the permissions matrix. Idempotent."""
    suite = _guarded_suite(suite_id, user, SuiteAction.MANAGE)
    suite_repo.replace(suite.without_grant(user_id))
    logger.info(
        "Access revoked: suite=%s user=%s by=%s", suite.id, user_id, user.id
    )


@router.delete("/{suite_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_suite(
    suite_id: str,
    user: Annotated[UserIdentity, Depends(require_user)],
) -> None:
    suite = suite_repo.get(suite_id)
    if suite is None:
        raise _deny(ReasonCode.NO_SUITE_SELECTED, "suite not found")

    outcome = execute_if_allowed(
        SuiteAction.DELETE,
        suite,
        user,
        profile_repo.get(user.id),
        lambda s: suite_repo.remove(s.id),
        require_verified_email=SETTINGS.require_verified_email,
    )
    if outcome.authorization is not None:
        _record(outcome.authorization)
    if not outcome.succeeded:
        raise _deny(outcome.code, outcome.message)
    logger.info("Suite deleted: suite=%s by=%s", suite.id, user.id)
