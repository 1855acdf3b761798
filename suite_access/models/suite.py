from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from uuid import uuid4

from suite_access.models.permission import PermissionLevel


class AccountType(str, Enum):
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


@dataclass(frozen=True, slots=True)
class AccessControl:
    """Per-suite access lists.

    permissions_matrix values are kept as loaded from storage (level or raw
    string); the resolver parses them.
    """

    owner_id: str | None = None
    admins: frozenset[str] = frozenset()
    members: frozenset[str] = frozenset()
    permissions_matrix: Mapping[str, PermissionLevel | str] = field(
        default_factory=dict
    )


@dataclass(frozen=True, slots=True)
class Suite:
    """A tenant-scoped container of bugs, test cases and recordings.

    For organization suites owner_id is the organization id and the
    creating user is recorded as access_control.owner_id.
    """

    id: str
    owner_id: str
    account_type: AccountType = AccountType.INDIVIDUAL
    organization_id: str | None = None
    access_control: AccessControl | None = None
    name: str = ""

    @property
    def is_organization_suite(self) -> bool:
        return self.account_type == AccountType.ORGANIZATION

    @staticmethod
    def new(
        *,
        name: str,
        creator_id: str,
        account_type: AccountType = AccountType.INDIVIDUAL,
        organization_id: str | None = None,
    ) -> Suite:
        if account_type == AccountType.ORGANIZATION:
            if not organization_id:
                raise ValueError("organization suites require an organization_id")
            owner_id = organization_id
        else:
            if organization_id:
                raise ValueError("individual suites cannot carry an organization_id")
            owner_id = creator_id

        return Suite(
            id=str(uuid4()),
            owner_id=owner_id,
            account_type=account_type,
            organization_id=organization_id,
            access_control=AccessControl(
                owner_id=creator_id,
                admins=frozenset({creator_id}),
            ),
            name=name,
        )

    def with_grant(self, user_id: str, level: PermissionLevel) -> Suite:
        """Return a copy with user_id set to level in the permissions matrix."""
        acl = self.access_control or AccessControl(owner_id=self.owner_id)
        matrix = dict(acl.permissions_matrix)
        matrix[user_id] = level
        return replace(self, access_control=replace(acl, permissions_matrix=matrix))

    def without_grant(self, user_id: str) -> Suite:
        acl = self.access_control
        if acl is None or user_id not in acl.permissions_matrix:
            return self
        matrix = {k: v for k, v in acl.permissions_matrix.items() if k != user_id}
        return replace(self, access_control=replace(acl, permissions_matrix=matrix))
