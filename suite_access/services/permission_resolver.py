"""Suite permission resolution.

Answers "what level does this user hold on this suite?" with a single
PermissionLevel plus the rule that produced it.  Rules run strongest
first and the first match wins:

  1. owner (suite.owner_id or access_control.owner_id)  -> admin
  2. access_control.admins                              -> admin
  3. access_control.permissions_matrix[user_id]         -> stored level
  4. active membership in the suite's organization      -> role-derived
  5. access_control.members                             -> read

Ownership is the first rule, not a fallback: a stale or missing matrix
entry can never take admin away from the owner.

Everything here is a pure function of its arguments.
"""

from __future__ import annotations

from suite_access.models.decisions import (
    PermissionCheck,
    PermissionResolution,
    ReasonCode,
)
from suite_access.models.permission import PermissionLevel, PermissionSource
from suite_access.models.profile import UserIdentity, UserProfile
from suite_access.models.suite import Suite

_ORG_ROLE_LEVELS: dict[str, PermissionLevel] = {
    "owner": PermissionLevel.ADMIN,
    "admin": PermissionLevel.ADMIN,
    "member": PermissionLevel.WRITE,
    "editor": PermissionLevel.WRITE,
    "viewer": PermissionLevel.READ,
}


def org_role_to_level(role: str | None) -> PermissionLevel:
    """Map an organization role to a suite level. Unknown roles get read."""
    if not role:
        return PermissionLevel.READ
    return _ORG_ROLE_LEVELS.get(role.strip().lower(), PermissionLevel.READ)


def resolve_permission(
    suite: Suite | None,
    user_id: str | None,
    profile: UserProfile | None,
) -> PermissionResolution:
    if suite is None:
        return PermissionResolution(None, PermissionSource.NO_SUITE)
    if not user_id:
        return PermissionResolution(None, PermissionSource.NO_USER)

    if suite.owner_id == user_id:
        return PermissionResolution(PermissionLevel.ADMIN, PermissionSource.OWNER)

    acl = suite.access_control
    if acl is None:
        return PermissionResolution(None, PermissionSource.NO_ACCESS_CONTROL)

    if acl.owner_id == user_id:
        return PermissionResolution(PermissionLevel.ADMIN, PermissionSource.OWNER)

    if user_id in acl.admins:
        return PermissionResolution(PermissionLevel.ADMIN, PermissionSource.ADMIN_LIST)

    matrix_level = PermissionLevel.parse(acl.permissions_matrix.get(user_id))
    if matrix_level is not None:
        return PermissionResolution(matrix_level, PermissionSource.MATRIX)

    if suite.is_organization_suite and suite.organization_id and profile is not None:
        membership = profile.active_membership(suite.organization_id)
        if membership is not None:
            return PermissionResolution(
                org_role_to_level(membership.role),
                PermissionSource.ORG_MEMBERSHIP,
            )

    if user_id in acl.members:
        return PermissionResolution(PermissionLevel.READ, PermissionSource.MEMBER_LIST)

    return PermissionResolution(None, PermissionSource.DENIED)


def check_suite_permission(
    suite: Suite | None,
    user_id: str | None,
    profile: UserProfile | None,
    required: PermissionLevel = PermissionLevel.READ,
) -> PermissionCheck:
    """Resolve and compare against a required level in one step."""
    if suite is None or not user_id:
        return PermissionCheck(
            valid=False,
            code=ReasonCode.MISSING_PARAMETERS,
            required_level=required,
        )

    resolution = resolve_permission(suite, user_id, profile)
    valid = resolution.level is not None and resolution.level.satisfies(required)
    if valid:
        code = ReasonCode.PERMISSION_GRANTED
    else:
        code = ReasonCode.INSUFFICIENT_PERMISSION
    return PermissionCheck(
        valid=valid,
        code=code,
        required_level=required,
        level=resolution.level,
        source=resolution.source,
    )


def validate_suite_access(
    suite: Suite | None,
    user: UserIdentity | None,
    profile: UserProfile | None,
    required: PermissionLevel = PermissionLevel.READ,
) -> PermissionCheck:
    """Full access validation: input shape first, then the permission check."""
    if suite is None:
        return PermissionCheck(False, ReasonCode.NO_SUITE_SELECTED, required)
    if user is None:
        return PermissionCheck(False, ReasonCode.USER_NOT_AUTHENTICATED, required)
    if not suite.id:
        return PermissionCheck(False, ReasonCode.INVALID_SUITE_ID, required)

    check = check_suite_permission(suite, user.id, profile, required)
    if not check.valid:
        return check
    return PermissionCheck(
        valid=True,
        code=ReasonCode.VALID,
        required_level=required,
        level=check.level,
        source=check.source,
    )
