from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from suite_access.api.capabilities import profile_repo
from suite_access.api.suites import suite_repo
from suite_access.main import app
from suite_access.models.profile import AccountMembership, UserProfile
from suite_access.models.suite import AccessControl, AccountType, Suite
from suite_access.services import token_service
from suite_access.services.trial_writeback import writeback_guard

# Ensure repo root is on sys.path so `import suite_access` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Fixed evaluation clock shared by the entitlement tests.
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_suite_state() -> None:
    suite_repo._store.clear()


@pytest.fixture(autouse=True)
def reset_profile_state() -> None:
    profile_repo._store.clear()


@pytest.fixture(autouse=True)
def reset_writeback_guard() -> None:
    """Forget which sessions already wrote trial fields."""
    if hasattr(writeback_guard, "_claimed"):
        writeback_guard._claimed.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(user_id: str = "test-user", *, email_verified: bool = True) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=user_id, email_verified=email_verified)


def auth(user_id: str = "test-user", *, email_verified: bool = True) -> dict[str, str]:
    token = mint_token(user_id, email_verified=email_verified)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Suite and profile helpers
# ---------------------------------------------------------------------------


def make_suite(
    suite_id: str = "suite-1",
    *,
    owner_id: str = "owner",
    admins: tuple[str, ...] = (),
    members: tuple[str, ...] = (),
    matrix: dict | None = None,
    organization_id: str | None = None,
) -> Suite:
    account_type = (
        AccountType.ORGANIZATION if organization_id else AccountType.INDIVIDUAL
    )
    return Suite(
        id=suite_id,
        owner_id=organization_id or owner_id,
        account_type=account_type,
        organization_id=organization_id,
        access_control=AccessControl(
            owner_id=owner_id,
            admins=frozenset(admins),
            members=frozenset(members),
            permissions_matrix=matrix or {},
        ),
        name=suite_id,
    )


def seed_suite(suite: Suite) -> Suite:
    suite_repo.add(suite)
    return suite


def seed_profile(
    user_id: str,
    *,
    subscription_type: str = "free",
    org_roles: dict[str, str] | None = None,
    **fields,
) -> UserProfile:
    """Persist a profile; org_roles maps organization id to membership role."""
    memberships = tuple(
        AccountMembership(org_id=org_id, role=role)
        for org_id, role in (org_roles or {}).items()
    )
    if org_roles and "account_type" not in fields:
        fields["account_type"] = AccountType.ORGANIZATION
        fields.setdefault("organization_id", next(iter(org_roles)))
    profile = UserProfile(
        user_id=user_id,
        subscription_type=subscription_type,
        account_memberships=memberships,
        **fields,
    )
    profile_repo.put(profile)
    return profile
