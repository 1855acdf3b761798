from __future__ import annotations

from dataclasses import dataclass

from suite_access.models.profile import SubscriptionType

UNLIMITED = -1


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def within_limit(limit: int, current: int) -> bool:
    """True when one more item fits under limit given current usage."""
    return is_unlimited(limit) or max(current, 0) < limit


@dataclass(frozen=True, slots=True)
class FeatureLimits:
    suites: int
    test_cases: int
    recordings: int
    automated_scripts: int
    team_members: int = 1


@dataclass(frozen=True, slots=True)
class TierDefinition:
    limits: FeatureLimits
    advanced_reports: bool = False
    api_access: bool = False
    automation: bool = False


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Entitlements derived from a profile at a point in time. Never stored."""

    subscription_type: SubscriptionType
    subscription_status: str
    effective_tier: SubscriptionType
    is_trial_active: bool
    trial_days_remaining: int
    limits: FeatureLimits
    can_create_multiple_suites: bool
    can_access_advanced_reports: bool
    can_invite_team_members: bool
    can_use_api: bool
    can_use_automation: bool
    show_trial_banner: bool
    show_upgrade_prompt: bool
