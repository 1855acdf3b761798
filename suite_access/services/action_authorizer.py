"""Action-level authorization for suites.

Every action name maps to a required PermissionLevel through a single
table (ACTION_REQUIREMENTS).  New actions are registered there and
nowhere else.

Unknown action names require READ.  That is a deliberate product choice
(unregistered actions are assumed harmless) and not a security boundary:
anything destructive must be registered with its real level.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from suite_access.models.decisions import AuthorizationResult, ReasonCode
from suite_access.models.permission import PermissionLevel, PermissionSource
from suite_access.models.profile import UserIdentity, UserProfile
from suite_access.models.suite import Suite
from suite_access.services.permission_resolver import resolve_permission


class SuiteAction(str, Enum):
    VIEW = "view"
    READ = "read"
    CREATE = "create"
    EDIT = "edit"
    UPDATE = "update"
    EXPORT = "export"
    DELETE = "delete"
    MANAGE = "manage"
    INVITE = "invite"
    SETTINGS = "settings"


ACTION_REQUIREMENTS = MappingProxyType(
    {
        SuiteAction.VIEW: PermissionLevel.READ,
        SuiteAction.READ: PermissionLevel.READ,
        SuiteAction.CREATE: PermissionLevel.WRITE,
        SuiteAction.EDIT: PermissionLevel.WRITE,
        SuiteAction.UPDATE: PermissionLevel.WRITE,
        SuiteAction.EXPORT: PermissionLevel.WRITE,
        SuiteAction.DELETE: PermissionLevel.ADMIN,
        SuiteAction.MANAGE: PermissionLevel.ADMIN,
        SuiteAction.INVITE: PermissionLevel.ADMIN,
        SuiteAction.SETTINGS: PermissionLevel.ADMIN,
    }
)

DEFAULT_REQUIREMENT = PermissionLevel.READ

# Denials are reported with the code of the rule that granted the level.
_SHORTFALL_CODES = {
    PermissionSource.ORG_MEMBERSHIP: ReasonCode.INSUFFICIENT_ORG_PERMISSION,
    PermissionSource.MEMBER_LIST: ReasonCode.MEMBER_READ_ONLY,
}


def normalize_action(action: str | SuiteAction | None) -> str:
    if isinstance(action, SuiteAction):
        return action.value
    if not action:
        return ""
    return action.strip().lower()


def required_level_for(action: str | SuiteAction | None) -> PermissionLevel:
    try:
        key = SuiteAction(normalize_action(action))
    except ValueError:
        return DEFAULT_REQUIREMENT
    return ACTION_REQUIREMENTS[key]


def authorize(
    suite: Suite | None,
    user: UserIdentity | None,
    profile: UserProfile | None,
    action: str | SuiteAction | None,
    *,
    require_verified_email: bool = False,
) -> AuthorizationResult:
    """Decide whether user may perform action on suite.

    Missing suite or user short-circuits before the action is looked at,
    so the reason is the same for every action name.
    """
    name = normalize_action(action)
    required = required_level_for(name)

    def _result(
        allowed: bool,
        code: ReasonCode,
        granted: PermissionLevel | None = None,
        source: PermissionSource | None = None,
    ) -> AuthorizationResult:
        return AuthorizationResult(
            allowed=allowed,
            action=name,
            required_level=required,
            granted_level=granted,
            source=source,
            code=code,
        )

    if suite is None:
        return _result(False, ReasonCode.NO_SUITE_SELECTED)
    if user is None:
        return _result(False, ReasonCode.USER_NOT_AUTHENTICATED)

    if (
        require_verified_email
        and required.satisfies(PermissionLevel.WRITE)
        and not user.email_verified
    ):
        return _result(False, ReasonCode.EMAIL_VERIFICATION_REQUIRED)

    resolution = resolve_permission(suite, user.id, profile)
    if resolution.level is None:
        return _result(False, ReasonCode.ACCESS_DENIED, source=resolution.source)

    if not resolution.level.satisfies(required):
        code = _SHORTFALL_CODES.get(
            resolution.source, ReasonCode.INSUFFICIENT_PERMISSION_FOR_ACTION
        )
        return _result(False, code, resolution.level, resolution.source)

    return _result(
        True, ReasonCode.ACTION_AUTHORIZED, resolution.level, resolution.source
    )


def _can(action: SuiteAction):
    def check(
        suite: Suite | None,
        user: UserIdentity | None,
        profile: UserProfile | None,
    ) -> bool:
        return authorize(suite, user, profile, action).allowed

    check.__name__ = f"can_{action.value}"
    check.__doc__ = f"True when the user may {action.value} on the suite."
    return check


can_view = _can(SuiteAction.VIEW)
can_edit = _can(SuiteAction.EDIT)
can_delete = _can(SuiteAction.DELETE)
can_manage = _can(SuiteAction.MANAGE)
can_create = _can(SuiteAction.CREATE)
can_invite = _can(SuiteAction.INVITE)
can_export = _can(SuiteAction.EXPORT)
