"""Caller entitlement endpoint.

GET /v1/me/capabilities evaluates the caller's stored profile against the
request clock and, as a side step, writes recomputed trial fields back to
the profile store (at most once per session).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from suite_access.api.dependencies import get_now, get_session_id, require_user
from suite_access.models.capabilities import Capabilities
from suite_access.models.profile import UserIdentity
from suite_access.repos.profile_repo import InMemoryProfileRepo
from suite_access.services.entitlements import evaluate
from suite_access.services.trial_writeback import TrialStatusWriter, writeback_guard

router = APIRouter(prefix="/v1/me", tags=["capabilities"])

# --- Module-level repo singleton (in-memory for now) ---
profile_repo = InMemoryProfileRepo()
trial_writer = TrialStatusWriter(profile_repo, writeback_guard)


# --- Pydantic schemas ---


class LimitsOut(BaseModel):
    suites: int
    test_cases: int
    recordings: int
    automated_scripts: int
    team_members: int


class CapabilitiesOut(BaseModel):
    subscription_type: str
    subscription_status: str
    effective_tier: str
    is_trial_active: bool
    trial_days_remaining: int
    limits: LimitsOut
    can_create_multiple_suites: bool
    can_access_advanced_reports: bool
    can_invite_team_members: bool
    can_use_api: bool
    can_use_automation: bool
    show_trial_banner: bool
    show_upgrade_prompt: bool

    @staticmethod
    def from_capabilities(caps: Capabilities) -> CapabilitiesOut:
        return CapabilitiesOut(
            subscription_type=caps.subscription_type.value,
            subscription_status=caps.subscription_status,
            effective_tier=caps.effective_tier.value,
            is_trial_active=caps.is_trial_active,
            trial_days_remaining=caps.trial_days_remaining,
            limits=LimitsOut(
                suites=caps.limits.suites,
                test_cases=caps.limits.test_cases,
                recordings=caps.limits.recordings,
                automated_scripts=caps.limits.automated_scripts,
                team_members=caps.limits.team_members,
            ),
            can_create_multiple_suites=caps.can_create_multiple_suites,
            can_access_advanced_reports=caps.can_access_advanced_reports,
            can_invite_team_members=caps.can_invite_team_members,
            can_use_api=caps.can_use_api,
            can_use_automation=caps.can_use_automation,
            show_trial_banner=caps.show_trial_banner,
            show_upgrade_prompt=caps.show_upgrade_prompt,
        )


# --- Endpoints ---


@router.get("/capabilities", response_model=CapabilitiesOut)
async def get_capabilities(
    user: Annotated[UserIdentity, Depends(require_user)],
    now: Annotated[datetime, Depends(get_now)],
    session_id: Annotated[str, Depends(get_session_id)],
) -> CapabilitiesOut:
    """Capabilities for the caller. Users without a profile get the free tier."""
    profile = profile_repo.get(user.id)
    capabilities = evaluate(profile, now)
    if profile is not None:
        await trial_writer.sync(profile, now, session_id=session_id)
    return CapabilitiesOut.from_capabilities(capabilities)
