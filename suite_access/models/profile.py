from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from suite_access.models.suite import AccountType


class SubscriptionType(str, Enum):
    FREE = "free"
    TRIAL = "trial"
    INDIVIDUAL = "individual"
    TEAM = "team"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: object) -> SubscriptionType:
        """Lenient parse; anything unrecognised is treated as free."""
        if isinstance(value, SubscriptionType):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.FREE


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """Authenticated user as supplied by the auth provider."""

    id: str
    email_verified: bool = False


@dataclass(frozen=True, slots=True)
class AccountMembership:
    org_id: str
    role: str  # owner|admin|member|editor|viewer
    status: str = "active"  # active|pending|suspended

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Stored account profile.

    is_trial_active and trial_days_remaining are a persisted cache of the
    last evaluation. Read trial state from trial_end_date instead.
    """

    user_id: str
    account_type: AccountType = AccountType.INDIVIDUAL
    organization_id: str | None = None
    account_memberships: tuple[AccountMembership, ...] = ()
    subscription_type: str = "free"
    subscription_status: str = "active"
    trial_start_date: datetime | None = None
    trial_end_date: datetime | None = None
    is_trial_active: bool | None = None
    trial_days_remaining: int | None = None

    def active_membership(self, org_id: str) -> AccountMembership | None:
        for membership in self.account_memberships:
            if membership.org_id == org_id and membership.is_active:
                return membership
        return None
