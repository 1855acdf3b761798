from __future__ import annotations

from enum import Enum


class PermissionLevel(str, Enum):
    """Suite permission tiers, totally ordered READ < WRITE < ADMIN."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def satisfies(self, required: PermissionLevel) -> bool:
        return self.rank >= required.rank

    @classmethod
    def parse(cls, value: object) -> PermissionLevel | None:
        """Parse a stored permission value, or None if it is not one.

        Older suite documents stored viewer/editor instead of read/write.
        """
        if isinstance(value, PermissionLevel):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        normalized = _LEGACY_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


_RANKS: dict[PermissionLevel, int] = {
    PermissionLevel.READ: 0,
    PermissionLevel.WRITE: 1,
    PermissionLevel.ADMIN: 2,
}

_LEGACY_ALIASES = {"viewer": "read", "editor": "write"}


class PermissionSource(str, Enum):
    """Which resolution rule produced a permission level."""

    OWNER = "OWNER"
    ADMIN_LIST = "ADMIN_LIST"
    MATRIX = "MATRIX"
    ORG_MEMBERSHIP = "ORG_MEMBERSHIP"
    MEMBER_LIST = "MEMBER_LIST"
    DENIED = "DENIED"
    # Malformed or absent input, kept apart from DENIED so callers can tell
    # "nothing to check" from "checked and refused".
    NO_SUITE = "NO_SUITE"
    NO_USER = "NO_USER"
    NO_ACCESS_CONTROL = "NO_ACCESS_CONTROL"
