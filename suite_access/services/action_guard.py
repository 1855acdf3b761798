"""Guarded execution of suite actions.

execute_if_allowed() runs a callback only when the action is authorized.
Denials and callback failures are reported through different codes:
a refusal is never EXECUTION_ERROR, and a callback that raised is never
reported as a refusal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from suite_access.models.decisions import GuardOutcome, GuardResult, ReasonCode
from suite_access.models.profile import UserIdentity, UserProfile
from suite_access.models.suite import Suite
from suite_access.services.action_authorizer import (
    SuiteAction,
    authorize,
    normalize_action,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_MESSAGES: dict[ReasonCode, str] = {
    ReasonCode.NO_SUITE_SELECTED: "Please select a test suite to continue",
    ReasonCode.USER_NOT_AUTHENTICATED: "Please log in to access this feature",
    ReasonCode.INVALID_SUITE_ID: "Selected suite is missing its identifier",
    ReasonCode.MISSING_PARAMETERS: "Suite and user are required for this check",
    ReasonCode.INVALID_ACCOUNT_SCOPE: (
        "Organization suites need an organization; individual suites cannot have one"
    ),
    ReasonCode.INVALID_PERMISSION_LEVEL: (
        "Permission level must be read, write or admin"
    ),
    ReasonCode.ACCESS_DENIED: "You don't have permission to access this suite",
    ReasonCode.INSUFFICIENT_PERMISSION: (
        "You don't have sufficient permissions for this action"
    ),
    ReasonCode.INSUFFICIENT_PERMISSION_FOR_ACTION: (
        "Your role in this suite does not allow this action"
    ),
    ReasonCode.INSUFFICIENT_ORG_PERMISSION: (
        "Your organization role does not allow this action"
    ),
    ReasonCode.MEMBER_READ_ONLY: "Suite members have read-only access",
    ReasonCode.EMAIL_VERIFICATION_REQUIRED: (
        "Please verify your email to perform this action"
    ),
    ReasonCode.SUITE_LIMIT_REACHED: (
        "You have reached the suite limit for your plan"
    ),
    ReasonCode.ENTITLEMENT_UNRESOLVED: "Your subscription could not be determined",
    ReasonCode.LOADING: "Loading suite data...",
    ReasonCode.EXECUTION_ERROR: "An error occurred while performing this action",
}

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


def get_error_message(code: ReasonCode | str) -> str:
    try:
        return ERROR_MESSAGES.get(ReasonCode(code), UNKNOWN_ERROR_MESSAGE)
    except ValueError:
        return UNKNOWN_ERROR_MESSAGE


def require_suite(suite: Suite | None) -> GuardResult:
    if suite is None:
        return GuardResult(
            allowed=False,
            code=ReasonCode.NO_SUITE_SELECTED,
            message=get_error_message(ReasonCode.NO_SUITE_SELECTED),
        )
    return GuardResult(allowed=True, code=ReasonCode.ALLOWED, message="")


def guard_action(
    action: str | SuiteAction,
    suite: Suite | None,
    user: UserIdentity | None,
    profile: UserProfile | None,
    *,
    loading: bool = False,
    require_verified_email: bool = False,
) -> GuardResult:
    """Authorize action, or report LOADING while upstream data is missing."""
    if loading:
        return GuardResult(
            allowed=False,
            code=ReasonCode.LOADING,
            message=get_error_message(ReasonCode.LOADING),
        )

    result = authorize(
        suite, user, profile, action, require_verified_email=require_verified_email
    )
    if not result.allowed:
        logger.warning(
            "Action denied: action=%s user=%s suite=%s code=%s granted=%s required=%s",
            result.action,
            user.id if user else None,
            suite.id if suite else None,
            result.code.value,
            result.granted_level.value if result.granted_level else None,
            result.required_level.value,
            extra={
                "user_id": user.id if user else None,
                "suite_id": suite.id if suite else None,
                "action": result.action,
                "code": result.code.value,
            },
        )
        return GuardResult(
            allowed=False,
            code=result.code,
            message=get_error_message(result.code),
            authorization=result,
        )
    return GuardResult(
        allowed=True, code=result.code, message="", authorization=result
    )


def execute_if_allowed(
    action: str | SuiteAction,
    suite: Suite | None,
    user: UserIdentity | None,
    profile: UserProfile | None,
    callback: Callable[[Suite], T],
    *,
    loading: bool = False,
    require_verified_email: bool = False,
) -> GuardOutcome[T]:
    """Run callback(suite) if action is authorized.

    The callback's return value is carried in GuardOutcome.value.  Any
    exception it raises becomes EXECUTION_ERROR with the exception text
    as the message.
    """
    guard = guard_action(
        action,
        suite,
        user,
        profile,
        loading=loading,
        require_verified_email=require_verified_email,
    )
    if not guard.allowed:
        return GuardOutcome(
            allowed=False,
            code=guard.code,
            message=guard.message,
            authorization=guard.authorization,
        )

    if suite is None:
        # authorize() already refuses a missing suite.
        return GuardOutcome(
            allowed=False,
            code=ReasonCode.NO_SUITE_SELECTED,
            message=get_error_message(ReasonCode.NO_SUITE_SELECTED),
            authorization=guard.authorization,
        )

    try:
        value = callback(suite)
    except Exception as exc:
        name = normalize_action(action)
        logger.exception(
            "Error executing action=%s suite=%s",
            name,
            suite.id,
            extra={
                "user_id": user.id if user else None,
                "suite_id": suite.id,
                "action": name,
                "code": ReasonCode.EXECUTION_ERROR.value,
            },
        )
        return GuardOutcome(
            allowed=True,
            code=ReasonCode.EXECUTION_ERROR,
            message=str(exc),
            authorization=guard.authorization,
        )

    return GuardOutcome(
        allowed=True,
        code=guard.code,
        message="",
        value=value,
        authorization=guard.authorization,
    )
