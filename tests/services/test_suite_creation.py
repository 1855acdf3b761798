from __future__ import annotations

from datetime import timedelta

import pytest

from suite_access.models.decisions import ReasonCode
from suite_access.models.profile import AccountMembership, UserProfile
from suite_access.models.suite import AccountType
from suite_access.services.entitlements import evaluate
from suite_access.services.suite_creation import (
    can_create_suite,
    can_invite_team_member,
    suite_creation_decision,
)
from tests.conftest import NOW


def _caps(subscription_type: str = "free", **fields):
    profile = UserProfile(user_id="u1", subscription_type=subscription_type, **fields)
    return profile, evaluate(profile, NOW)


@pytest.mark.parametrize(
    "subscription,count,allowed",
    [
        ("free", 0, True),
        ("free", 1, False),
        ("individual", 9, True),
        ("individual", 10, False),
        ("team", 49, True),
        ("team", 50, False),
        ("premium", 10_000, True),
        ("enterprise", 10_000, True),
    ],
)
def test_suite_limit_per_tier(subscription, count, allowed) -> None:
    profile, caps = _caps(subscription)
    assert can_create_suite(profile, caps, count) is allowed


def test_decision_reports_limit() -> None:
    profile, caps = _caps("free")
    decision = suite_creation_decision(profile, caps, 1)
    assert decision.allowed is False
    assert decision.code == ReasonCode.SUITE_LIMIT_REACHED
    assert decision.current_count == 1
    assert decision.max_allowed == 1
    assert decision.unlimited is False


def test_decision_unlimited() -> None:
    profile, caps = _caps("premium")
    decision = suite_creation_decision(profile, caps, 3)
    assert decision.allowed is True
    assert decision.code == ReasonCode.ALLOWED
    assert decision.unlimited is True


def test_active_trial_allows_five() -> None:
    profile, caps = _caps(
        "trial", subscription_status="trial", trial_end_date=NOW + timedelta(days=3)
    )
    assert can_create_suite(profile, caps, 4) is True
    assert can_create_suite(profile, caps, 5) is False


def test_unresolved_entitlements_mean_zero_capacity() -> None:
    profile, caps = _caps("premium")
    assert can_create_suite(None, caps, 0) is False
    decision = suite_creation_decision(profile, None, 0)
    assert decision.code == ReasonCode.ENTITLEMENT_UNRESOLVED
    assert decision.max_allowed == 0


def test_negative_count_is_treated_as_zero() -> None:
    profile, caps = _caps("free")
    decision = suite_creation_decision(profile, caps, -3)
    assert decision.allowed is True
    assert decision.current_count == 0


# ---- team invites ----


def _org_caps(subscription_type: str):
    return _caps(
        subscription_type,
        account_type=AccountType.ORGANIZATION,
        organization_id="org-1",
        account_memberships=(AccountMembership(org_id="org-1", role="owner"),),
    )


def test_individual_accounts_cannot_invite() -> None:
    profile, caps = _caps("team")
    assert can_invite_team_member(profile, caps, 0) is False


def test_team_invites_bounded_by_tier() -> None:
    profile, caps = _org_caps("team")
    assert can_invite_team_member(profile, caps, 49) is True
    assert can_invite_team_member(profile, caps, 50) is False


def test_enterprise_invites_unlimited() -> None:
    profile, caps = _org_caps("enterprise")
    assert can_invite_team_member(profile, caps, 5000) is True


def test_invite_without_entitlements() -> None:
    profile, _ = _org_caps("team")
    assert can_invite_team_member(profile, None, 0) is False
