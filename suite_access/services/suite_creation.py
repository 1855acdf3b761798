"""Suite creation and team-invite capacity checks.

Callers run can_create_suite twice: once to decide whether to offer the
"new suite" affordance, and again right before the write.  Only the
second check is authoritative; the suite count may have changed in
between.
"""

from __future__ import annotations

import logging

from suite_access.models.capabilities import Capabilities, is_unlimited, within_limit
from suite_access.models.decisions import ReasonCode, SuiteCreationDecision
from suite_access.models.profile import UserProfile
from suite_access.models.suite import AccountType
from suite_access.services.entitlements import determine_account_type

logger = logging.getLogger(__name__)


def suite_creation_decision(
    profile: UserProfile | None,
    capabilities: Capabilities | None,
    current_suite_count: int,
) -> SuiteCreationDecision:
    count = max(current_suite_count, 0)

    # Unresolved entitlements mean zero capacity.
    if profile is None or capabilities is None:
        return SuiteCreationDecision(
            allowed=False,
            code=ReasonCode.ENTITLEMENT_UNRESOLVED,
            current_count=count,
            max_allowed=0,
            unlimited=False,
        )

    limit = capabilities.limits.suites
    allowed = within_limit(limit, count)
    if not allowed:
        logger.info(
            "Suite limit reached: user=%s count=%d limit=%d tier=%s",
            profile.user_id,
            count,
            limit,
            capabilities.effective_tier.value,
        )
    return SuiteCreationDecision(
        allowed=allowed,
        code=ReasonCode.ALLOWED if allowed else ReasonCode.SUITE_LIMIT_REACHED,
        current_count=count,
        max_allowed=limit,
        unlimited=is_unlimited(limit),
    )


def can_create_suite(
    profile: UserProfile | None,
    capabilities: Capabilities | None,
    current_suite_count: int,
) -> bool:
    return suite_creation_decision(profile, capabilities, current_suite_count).allowed


def can_invite_team_member(
    profile: UserProfile | None,
    capabilities: Capabilities | None,
    current_member_count: int,
) -> bool:
    """Individual accounts never invite; organizations are bounded by tier."""
    if profile is None or capabilities is None:
        return False
    if determine_account_type(profile) != AccountType.ORGANIZATION:
        return False
    return within_limit(capabilities.limits.team_members, current_member_count)
