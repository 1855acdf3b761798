"""Suite endpoints: table-driven RBAC plus creation limits."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from suite_access.api import suites as suites_api
from suite_access.api.suites import SuiteCreateIn, suite_repo
from suite_access.models.profile import UserIdentity
from tests.conftest import NOW, auth, make_suite, seed_profile, seed_suite


@pytest.fixture
def suite():
    """alice owns; carol is an admin; bob can write; dave is a plain member."""
    return seed_suite(
        make_suite(
            "s1",
            owner_id="alice",
            admins=("carol",),
            members=("dave",),
            matrix={"bob": "write", "vic": "viewer"},
        )
    )


def _code(resp) -> str:
    return resp.json()["detail"]["code"]


# ---- Table-driven access-control tests ----

_RBAC_CASES = [
    # (method, path, user, expected_status)
    ("GET", "/v1/suites/s1", "alice", 200),
    ("GET", "/v1/suites/s1", "dave", 200),
    ("GET", "/v1/suites/s1", "vic", 200),
    ("GET", "/v1/suites/s1", "eve", 403),
    ("GET", "/v1/suites/s1", None, 401),
    ("GET", "/v1/suites/missing", "alice", 404),
    ("PUT", "/v1/suites/s1/access/zed", "alice", 204),
    ("PUT", "/v1/suites/s1/access/zed", "carol", 204),
    ("PUT", "/v1/suites/s1/access/zed", "bob", 403),
    ("PUT", "/v1/suites/s1/access/zed", "dave", 403),
    ("PUT", "/v1/suites/s1/access/zed", None, 401),
    ("DELETE", "/v1/suites/s1/access/bob", "carol", 204),
    ("DELETE", "/v1/suites/s1/access/bob", "bob", 403),
    ("DELETE", "/v1/suites/s1", "alice", 204),
    ("DELETE", "/v1/suites/s1", "bob", 403),
    ("DELETE", "/v1/suites/s1", "eve", 403),
    ("DELETE", "/v1/suites/missing", "alice", 404),
]


def _case_id(case: tuple) -> str:
    method, path, user, expected = case
    return f"{method} {path} [{user or 'anon'}] -> {expected}"


@pytest.mark.parametrize(
    "method,path,user,expected",
    _RBAC_CASES,
    ids=[_case_id(c) for c in _RBAC_CASES],
)
def test_suite_rbac(
    client: TestClient,
    suite,
    method: str,
    path: str,
    user: str | None,
    expected: int,
) -> None:
    headers = auth(user) if user else {}
    kwargs = {"json": {"level": "write"}} if method == "PUT" else {}
    resp = client.request(method, path, headers=headers, **kwargs)
    assert resp.status_code == expected, resp.text


def test_denial_body_carries_reason(client: TestClient, suite) -> None:
    resp = client.delete("/v1/suites/s1", headers=auth("dave"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == {
        "code": "MEMBER_READ_ONLY",
        "message": "Suite members have read-only access",
    }

    resp = client.delete("/v1/suites/s1", headers=auth("bob"))
    assert _code(resp) == "INSUFFICIENT_PERMISSION_FOR_ACTION"

    resp = client.get("/v1/suites/s1", headers=auth("eve"))
    assert _code(resp) == "ACCESS_DENIED"

    resp = client.get("/v1/suites/missing", headers=auth("alice"))
    assert _code(resp) == "NO_SUITE_SELECTED"


def test_delete_removes_suite(client: TestClient, suite) -> None:
    assert client.delete("/v1/suites/s1", headers=auth("alice")).status_code == 204
    assert suite_repo.get("s1") is None


def test_delete_failure_is_execution_error(
    client: TestClient, suite, monkeypatch: pytest.MonkeyPatch
) -> None:
    def boom(_suite_id: str) -> bool:
        raise RuntimeError("document store unavailable")

    monkeypatch.setattr(suite_repo, "remove", boom)
    resp = client.delete("/v1/suites/s1", headers=auth("alice"))
    assert resp.status_code == 500
    assert resp.json()["detail"] == {
        "code": "EXECUTION_ERROR",
        "message": "document store unavailable",
    }


def test_grant_then_revoke(client: TestClient, suite) -> None:
    resp = client.put(
        "/v1/suites/s1/access/eve", headers=auth("alice"), json={"level": "editor"}
    )
    assert resp.status_code == 204
    assert client.get("/v1/suites/s1", headers=auth("eve")).status_code == 200
    perm = client.get("/v1/suites/s1/permission", headers=auth("eve")).json()
    assert perm["level"] == "write"
    assert perm["source"] == "MATRIX"

    resp = client.delete("/v1/suites/s1/access/eve", headers=auth("alice"))
    assert resp.status_code == 204
    assert client.get("/v1/suites/s1", headers=auth("eve")).status_code == 403


def test_grant_rejects_unknown_level(client: TestClient, suite) -> None:
    resp = client.put(
        "/v1/suites/s1/access/eve", headers=auth("alice"), json={"level": "god"}
    )
    assert resp.status_code == 422
    assert _code(resp) == "INVALID_PERMISSION_LEVEL"
    assert "god" in resp.json()["detail"]["message"]


def test_permission_endpoint(client: TestClient, suite) -> None:
    resp = client.get("/v1/suites/s1/permission", headers=auth("dave"))
    assert resp.status_code == 200
    assert resp.json() == {
        "suite_id": "s1",
        "level": "read",
        "source": "MEMBER_LIST",
        "has_access": True,
    }

    denied = client.get("/v1/suites/s1/permission", headers=auth("eve")).json()
    assert denied["has_access"] is False
    assert denied["level"] is None
    assert denied["source"] == "DENIED"


def test_authorize_endpoint_reports_denials(client: TestClient, suite) -> None:
    resp = client.post(
        "/v1/suites/s1/authorize", headers=auth("bob"), json={"action": "settings"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["allowed"] is False
    assert body["required_level"] == "admin"
    assert body["granted_level"] == "write"
    assert body["code"] == "INSUFFICIENT_PERMISSION_FOR_ACTION"

    body = client.post(
        "/v1/suites/s1/authorize", headers=auth("bob"), json={"action": "Export"}
    ).json()
    assert body["allowed"] is True
    assert body["action"] == "export"


def test_authorize_records_metric(client: TestClient, suite) -> None:
    labels = {"action": "edit", "code": "ACTION_AUTHORIZED"}
    before = REGISTRY.get_sample_value("suite_authorization_decisions_total", labels)
    before = before or 0.0
    client.post("/v1/suites/s1/authorize", headers=auth("bob"), json={"action": "edit"})
    after = REGISTRY.get_sample_value("suite_authorization_decisions_total", labels)
    assert after == before + 1


def test_unregistered_actions_share_one_metric_series(
    client: TestClient, suite
) -> None:
    labels = {"action": "unknown", "code": "ACTION_AUTHORIZED"}
    before = REGISTRY.get_sample_value("suite_authorization_decisions_total", labels)
    before = before or 0.0
    actions = [f"x{i}" for i in range(5)]
    for action in actions:
        resp = client.post(
            "/v1/suites/s1/authorize", headers=auth("bob"), json={"action": action}
        )
        assert resp.json()["action"] == action
    after = REGISTRY.get_sample_value("suite_authorization_decisions_total", labels)
    assert after == before + len(actions)
    for action in actions:
        stray = {"action": action, "code": "ACTION_AUTHORIZED"}
        assert (
            REGISTRY.get_sample_value("suite_authorization_decisions_total", stray)
            is None
        )


def test_list_only_viewable_suites(client: TestClient, suite) -> None:
    seed_suite(make_suite("s2", owner_id="eve"))
    resp = client.get("/v1/suites", headers=auth("dave"))
    assert [s["id"] for s in resp.json()] == ["s1"]
    resp = client.get("/v1/suites", headers=auth("eve"))
    assert [s["id"] for s in resp.json()] == ["s2"]


# ---- email verification ----


def test_unverified_email_blocks_writes_when_enabled(
    client: TestClient, suite, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        suites_api,
        "SETTINGS",
        replace(suites_api.SETTINGS, require_verified_email=True),
    )
    headers = auth("alice", email_verified=False)

    assert client.get("/v1/suites/s1", headers=headers).status_code == 200
    resp = client.delete("/v1/suites/s1", headers=headers)
    assert resp.status_code == 403
    assert _code(resp) == "EMAIL_VERIFICATION_REQUIRED"


# ---- creation ----


def test_create_individual_suite(client: TestClient) -> None:
    seed_profile("alice")
    resp = client.post("/v1/suites", headers=auth("alice"), json={"name": "Checkout"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["owner_id"] == "alice"
    assert body["account_type"] == "individual"

    # Creator holds admin on the new suite.
    perm = client.get(
        f"/v1/suites/{body['id']}/permission", headers=auth("alice")
    ).json()
    assert perm["level"] == "admin"


def test_free_tier_second_suite_is_refused(client: TestClient) -> None:
    seed_profile("alice")
    first = client.post("/v1/suites", headers=auth("alice"), json={"name": "One"})
    assert first.status_code == 201

    second = client.post("/v1/suites", headers=auth("alice"), json={"name": "Two"})
    assert second.status_code == 402
    assert _code(second) == "SUITE_LIMIT_REACHED"
    assert len(suite_repo.list_all()) == 1


def test_paid_tier_allows_more(client: TestClient) -> None:
    seed_profile("alice", subscription_type="individual")
    for i in range(3):
        resp = client.post(
            "/v1/suites", headers=auth("alice"), json={"name": f"S{i}"}
        )
        assert resp.status_code == 201


def test_create_without_profile_is_refused(client: TestClient) -> None:
    resp = client.post("/v1/suites", headers=auth("ghost"), json={"name": "x"})
    assert resp.status_code == 403
    assert _code(resp) == "ENTITLEMENT_UNRESOLVED"


def test_create_org_suite_as_org_admin(client: TestClient) -> None:
    seed_profile("alice", subscription_type="team", org_roles={"org-1": "admin"})
    resp = client.post(
        "/v1/suites",
        headers=auth("alice"),
        json={
            "name": "Shared",
            "account_type": "organization",
            "organization_id": "org-1",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["owner_id"] == "org-1"
    assert body["organization_id"] == "org-1"

    # Another org member reaches it through membership.
    seed_profile("bob", org_roles={"org-1": "viewer"})
    perm = client.get(f"/v1/suites/{body['id']}/permission", headers=auth("bob"))
    assert perm.json()["source"] == "ORG_MEMBERSHIP"
    assert perm.json()["level"] == "read"


def test_create_org_suite_requires_admin_role(client: TestClient) -> None:
    seed_profile("bob", subscription_type="team", org_roles={"org-1": "member"})
    resp = client.post(
        "/v1/suites",
        headers=auth("bob"),
        json={"name": "x", "account_type": "organization", "organization_id": "org-1"},
    )
    assert resp.status_code == 403
    assert _code(resp) == "INSUFFICIENT_ORG_PERMISSION"


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "x", "account_type": "organization"},
        {"name": "x", "organization_id": "org-1"},
    ],
)
def test_create_rejects_inconsistent_account(client: TestClient, payload) -> None:
    seed_profile("alice", org_roles={"org-1": "owner"})
    resp = client.post("/v1/suites", headers=auth("alice"), json=payload)
    assert resp.status_code == 422
    assert _code(resp) == "INVALID_ACCOUNT_SCOPE"
    assert resp.json()["detail"]["message"]
    assert suite_repo.list_all() == []


def test_concurrent_creates_respect_the_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    seed_profile("alice")
    real_count = suite_repo.count_by_owner

    def slow_count(owner_id: str) -> int:
        count = real_count(owner_id)
        time.sleep(0.05)
        return count

    monkeypatch.setattr(suite_repo, "count_by_owner", slow_count)
    alice = UserIdentity(id="alice", email_verified=True)
    start = threading.Barrier(4)

    def attempt(i: int) -> int:
        start.wait()
        try:
            suites_api.create_suite(SuiteCreateIn(name=f"s{i}"), alice, NOW)
        except HTTPException as exc:
            return exc.status_code
        return 201

    with ThreadPoolExecutor(max_workers=4) as pool:
        codes = sorted(pool.map(attempt, range(4)))

    assert codes == [201, 402, 402, 402]
    assert len(suite_repo.list_all()) == 1
