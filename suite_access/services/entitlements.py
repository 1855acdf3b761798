"""Subscription entitlement evaluation.

evaluate(profile, now) turns a stored profile into Capabilities: the
effective tier, its limits, and the feature flags the UI gates on.

TRIAL STATE IS ALWAYS RECOMPUTED
----------------------------------
Profiles carry is_trial_active / trial_days_remaining from the last time
someone evaluated them.  Those values go stale the moment the clock moves
past trial_end_date, so they are never read here.  Trial state comes from
trial_end_date and the injected `now` only.  Writing fresh values back to
storage is a separate step (see trial_writeback.py) driven by
trial_status_delta().

TIER TABLE
-----------
All limits and flags come from TIER_TABLE.  While a trial is active the
"trial" row applies regardless of the stored subscription type.  -1 means
unlimited.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from types import MappingProxyType

from suite_access.models.capabilities import (
    UNLIMITED,
    Capabilities,
    FeatureLimits,
    TierDefinition,
    is_unlimited,
)
from suite_access.models.profile import SubscriptionType, UserProfile
from suite_access.models.suite import AccountType

TRIAL_BANNER_DAYS = 7

_ALL_FEATURES = {"advanced_reports": True, "api_access": True, "automation": True}

TIER_TABLE = MappingProxyType(
    {
        SubscriptionType.FREE: TierDefinition(
            limits=FeatureLimits(
                suites=1,
                test_cases=10,
                recordings=5,
                automated_scripts=0,
                team_members=1,
            ),
        ),
        SubscriptionType.TRIAL: TierDefinition(
            limits=FeatureLimits(
                suites=5,
                test_cases=UNLIMITED,
                recordings=UNLIMITED,
                automated_scripts=UNLIMITED,
                team_members=5,
            ),
            **_ALL_FEATURES,
        ),
        SubscriptionType.INDIVIDUAL: TierDefinition(
            limits=FeatureLimits(
                suites=10,
                test_cases=500,
                recordings=100,
                automated_scripts=200,
                team_members=1,
            ),
            **_ALL_FEATURES,
        ),
        SubscriptionType.TEAM: TierDefinition(
            limits=FeatureLimits(
                suites=50,
                test_cases=2500,
                recordings=500,
                automated_scripts=1000,
                team_members=50,
            ),
            **_ALL_FEATURES,
        ),
        SubscriptionType.PREMIUM: TierDefinition(
            limits=FeatureLimits(
                suites=UNLIMITED,
                test_cases=UNLIMITED,
                recordings=UNLIMITED,
                automated_scripts=UNLIMITED,
                team_members=UNLIMITED,
            ),
            **_ALL_FEATURES,
        ),
        SubscriptionType.ENTERPRISE: TierDefinition(
            limits=FeatureLimits(
                suites=UNLIMITED,
                test_cases=UNLIMITED,
                recordings=UNLIMITED,
                automated_scripts=UNLIMITED,
                team_members=UNLIMITED,
            ),
            **_ALL_FEATURES,
        ),
    }
)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from storage are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True, slots=True)
class TrialStatus:
    is_active: bool
    days_remaining: int


def trial_status(profile: UserProfile, now: datetime) -> TrialStatus:
    if profile.trial_end_date is None:
        return TrialStatus(is_active=False, days_remaining=0)

    remaining = _as_utc(profile.trial_end_date) - _as_utc(now)
    if remaining <= timedelta(0):
        return TrialStatus(is_active=False, days_remaining=0)
    days = max(0, math.ceil(remaining / timedelta(days=1)))
    return TrialStatus(is_active=True, days_remaining=days)


def _capabilities_for(
    subscription_type: SubscriptionType,
    subscription_status: str,
    effective_tier: SubscriptionType,
    trial: TrialStatus,
) -> Capabilities:
    tier = TIER_TABLE[effective_tier]
    limits = tier.limits
    return Capabilities(
        subscription_type=subscription_type,
        subscription_status=subscription_status,
        effective_tier=effective_tier,
        is_trial_active=trial.is_active,
        trial_days_remaining=trial.days_remaining,
        limits=limits,
        can_create_multiple_suites=is_unlimited(limits.suites) or limits.suites > 1,
        can_access_advanced_reports=tier.advanced_reports,
        can_invite_team_members=(
            is_unlimited(limits.team_members) or limits.team_members > 1
        ),
        can_use_api=tier.api_access,
        can_use_automation=tier.automation,
        show_trial_banner=trial.is_active
        and trial.days_remaining <= TRIAL_BANNER_DAYS,
        show_upgrade_prompt=(
            not trial.is_active and subscription_type == SubscriptionType.FREE
        ),
    )


FREE_CAPABILITIES = _capabilities_for(
    SubscriptionType.FREE,
    "active",
    SubscriptionType.FREE,
    TrialStatus(is_active=False, days_remaining=0),
)


def _subscription_status(profile: UserProfile, trial: TrialStatus) -> str:
    if trial.is_active:
        return "trial"
    if profile.subscription_status == "trial":
        return "expired"
    return profile.subscription_status


def evaluate(profile: UserProfile | None, now: datetime) -> Capabilities:
    """Derive capabilities for profile as of now. Pure; no I/O."""
    if profile is None:
        return FREE_CAPABILITIES

    trial = trial_status(profile, now)
    subscription_type = SubscriptionType.parse(profile.subscription_type)
    if subscription_type == SubscriptionType.TRIAL and not trial.is_active:
        # An ended trial with no paid plan behind it is the free tier.
        subscription_type = SubscriptionType.FREE

    effective_tier = SubscriptionType.TRIAL if trial.is_active else subscription_type
    return _capabilities_for(
        subscription_type,
        _subscription_status(profile, trial),
        effective_tier,
        trial,
    )


_FEATURE_FLAGS = {
    "multiple_suites": "can_create_multiple_suites",
    "advanced_reports": "can_access_advanced_reports",
    "team_collaboration": "can_invite_team_members",
    "api_access": "can_use_api",
    "automation": "can_use_automation",
}


def has_feature_access(capabilities: Capabilities | None, feature: str) -> bool:
    if capabilities is None:
        return False
    attr = _FEATURE_FLAGS.get(feature)
    if attr is None:
        return False
    return bool(getattr(capabilities, attr))


def determine_account_type(profile: UserProfile | None) -> AccountType:
    if profile is None:
        return AccountType.INDIVIDUAL
    if profile.account_type == AccountType.ORGANIZATION:
        return AccountType.ORGANIZATION
    if profile.organization_id:
        return AccountType.ORGANIZATION
    if any(m.org_id for m in profile.account_memberships):
        return AccountType.ORGANIZATION
    return AccountType.INDIVIDUAL


# ---------------------------------------------------------------------------
# Write-back delta
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TrialStatusDelta:
    """Trial fields to persist after a re-evaluation."""

    is_trial_active: bool
    trial_days_remaining: int
    subscription_status: str

    def as_update(self) -> dict[str, object]:
        return asdict(self)


def trial_status_delta(
    profile: UserProfile | None, now: datetime
) -> TrialStatusDelta | None:
    """Return the recomputed trial fields, or None if storage already matches."""
    if profile is None:
        return None

    trial = trial_status(profile, now)
    delta = TrialStatusDelta(
        is_trial_active=trial.is_active,
        trial_days_remaining=trial.days_remaining,
        subscription_status=_subscription_status(profile, trial),
    )
    if (
        profile.is_trial_active == delta.is_trial_active
        and profile.trial_days_remaining == delta.trial_days_remaining
        and profile.subscription_status == delta.subscription_status
    ):
        return None
    return delta
