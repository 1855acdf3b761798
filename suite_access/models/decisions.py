"""Result objects returned by the access and entitlement checks.

Every refusal is reported as a value carrying a ReasonCode rather than
raised, so callers can branch on the specific reason (and map it to a
message or HTTP status) without try/except.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from suite_access.models.permission import PermissionLevel, PermissionSource

T = TypeVar("T")


class ReasonCode(str, Enum):
    # --- success ---
    ACTION_AUTHORIZED = "ACTION_AUTHORIZED"
    PERMISSION_GRANTED = "PERMISSION_GRANTED"
    VALID = "VALID"
    ALLOWED = "ALLOWED"

    # --- input problems ---
    NO_SUITE_SELECTED = "NO_SUITE_SELECTED"
    USER_NOT_AUTHENTICATED = "USER_NOT_AUTHENTICATED"
    INVALID_SUITE_ID = "INVALID_SUITE_ID"
    MISSING_PARAMETERS = "MISSING_PARAMETERS"
    INVALID_ACCOUNT_SCOPE = "INVALID_ACCOUNT_SCOPE"
    INVALID_PERMISSION_LEVEL = "INVALID_PERMISSION_LEVEL"

    # --- denials ---
    ACCESS_DENIED = "ACCESS_DENIED"
    INSUFFICIENT_PERMISSION = "INSUFFICIENT_PERMISSION"
    INSUFFICIENT_PERMISSION_FOR_ACTION = "INSUFFICIENT_PERMISSION_FOR_ACTION"
    INSUFFICIENT_ORG_PERMISSION = "INSUFFICIENT_ORG_PERMISSION"
    MEMBER_READ_ONLY = "MEMBER_READ_ONLY"
    EMAIL_VERIFICATION_REQUIRED = "EMAIL_VERIFICATION_REQUIRED"
    SUITE_LIMIT_REACHED = "SUITE_LIMIT_REACHED"
    ENTITLEMENT_UNRESOLVED = "ENTITLEMENT_UNRESOLVED"

    # --- transient / execution ---
    LOADING = "LOADING"
    EXECUTION_ERROR = "EXECUTION_ERROR"


@dataclass(frozen=True, slots=True)
class PermissionResolution:
    level: PermissionLevel | None
    source: PermissionSource

    @property
    def has_access(self) -> bool:
        return self.level is not None


@dataclass(frozen=True, slots=True)
class PermissionCheck:
    valid: bool
    code: ReasonCode
    required_level: PermissionLevel
    level: PermissionLevel | None = None
    source: PermissionSource | None = None


@dataclass(frozen=True, slots=True)
class AuthorizationResult:
    allowed: bool
    action: str
    required_level: PermissionLevel
    granted_level: PermissionLevel | None
    source: PermissionSource | None
    code: ReasonCode


@dataclass(frozen=True, slots=True)
class GuardResult:
    allowed: bool
    code: ReasonCode
    message: str
    authorization: AuthorizationResult | None = None


@dataclass(frozen=True, slots=True)
class GuardOutcome(Generic[T]):
    """Outcome of running a callback behind an authorization check.

    allowed reflects the authorization decision only. A callback that
    raised still has allowed=True, with code EXECUTION_ERROR.
    """

    allowed: bool
    code: ReasonCode
    message: str
    value: T | None = None
    authorization: AuthorizationResult | None = None

    @property
    def succeeded(self) -> bool:
        return self.allowed and self.code != ReasonCode.EXECUTION_ERROR


@dataclass(frozen=True, slots=True)
class SuiteCreationDecision:
    allowed: bool
    code: ReasonCode
    current_count: int
    max_allowed: int
    unlimited: bool
