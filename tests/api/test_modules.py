"""Tests for the module list and progression endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from progress_service.api import modules as modules_api
from progress_service.services import token_service
from progress_service.services.errors import TransientStoreError
from tests.conftest import auth, mint_token

FIRST, SECOND, THIRD, LAST = 1, 2, 3, 5


def _statuses(body: list[dict]) -> list[str]:
    return [m["status"] for m in body]


# ---- 401: unauthenticated ----


def test_list_rejects_missing_token(client: TestClient) -> None:
    resp = client.get("/v1/modules")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


def test_list_rejects_garbage_token(client: TestClient) -> None:
    resp = client.get("/v1/modules", headers=auth("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_complete_rejects_missing_token(client: TestClient) -> None:
    resp = client.post(f"/v1/modules/{FIRST}/complete")
    assert resp.status_code == 401


# ---- GET /v1/modules ----


def test_new_user_sees_first_module_active(client: TestClient, token: str) -> None:
    resp = client.get("/v1/modules", headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()
    assert [m["module_id"] for m in body] == [1, 2, 3, 4, 5]
    assert _statuses(body) == ["active", "locked", "locked", "locked", "locked"]
    assert body[0]["title"] == "Welcome Journey"
    assert body[0]["started_at"] is None


def test_get_single_module(client: TestClient, token: str) -> None:
    resp = client.get(f"/v1/modules/{SECOND}", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "locked"


def test_get_unknown_module_returns_404(client: TestClient, token: str) -> None:
    resp = client.get("/v1/modules/999", headers=auth(token))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "module 999 not found"


# ---- POST /v1/modules/{id}/complete ----


def test_complete_active_module_unlocks_next(client: TestClient, token: str) -> None:
    resp = client.post(f"/v1/modules/{FIRST}/complete", headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["advanced"] is True
    assert _statuses(body["modules"]) == [
        "done",
        "active",
        "locked",
        "locked",
        "locked",
    ]
    assert body["modules"][0]["completed_at"] is not None
    assert body["modules"][1]["started_at"] is not None


def test_complete_locked_module_is_noop(client: TestClient, token: str) -> None:
    resp = client.post(f"/v1/modules/{THIRD}/complete", headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["advanced"] is False
    assert _statuses(body["modules"])[:3] == ["active", "locked", "locked"]


def test_complete_done_module_is_noop(client: TestClient, token: str) -> None:
    client.post(f"/v1/modules/{FIRST}/complete", headers=auth(token))
    resp = client.post(f"/v1/modules/{FIRST}/complete", headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["advanced"] is False
    assert _statuses(body["modules"])[:2] == ["done", "active"]


def test_complete_unknown_module_returns_404(client: TestClient, token: str) -> None:
    resp = client.post("/v1/modules/999/complete", headers=auth(token))
    assert resp.status_code == 404


def test_complete_whole_catalog(client: TestClient, token: str) -> None:
    for module_id in range(FIRST, LAST + 1):
        resp = client.post(f"/v1/modules/{module_id}/complete", headers=auth(token))
        assert resp.json()["advanced"] is True

    body = client.get("/v1/modules", headers=auth(token)).json()
    assert _statuses(body) == ["done"] * 5


def test_listing_reflects_completion_immediately(
    client: TestClient, token: str
) -> None:
    """The cached projection is invalidated by a successful completion."""
    client.get("/v1/modules", headers=auth(token))
    client.post(f"/v1/modules/{FIRST}/complete", headers=auth(token))
    body = client.get("/v1/modules", headers=auth(token)).json()
    assert _statuses(body)[:2] == ["done", "active"]


def test_transient_store_failure_returns_503(
    client: TestClient, token: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _busy(user_id: str, module_id: int) -> bool:
        raise TransientStoreError("serialization failure")

    monkeypatch.setattr(modules_api.progression, "complete_module", _busy)
    resp = client.post(f"/v1/modules/{FIRST}/complete", headers=auth(token))
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "1"


# ---- POST /v1/modules/{id}/start ----


def test_start_active_module_records_started_at(
    client: TestClient, token: str
) -> None:
    resp = client.post(f"/v1/modules/{FIRST}/start", headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "active"
    assert body["started_at"] is not None


def test_start_locked_module_returns_409(client: TestClient, token: str) -> None:
    resp = client.post(f"/v1/modules/{SECOND}/start", headers=auth(token))
    assert resp.status_code == 409
    assert resp.json()["detail"] == "module not yet available"

    body = client.get("/v1/modules", headers=auth(token)).json()
    assert body[1]["status"] == "locked"


def test_start_unknown_module_returns_404(client: TestClient, token: str) -> None:
    resp = client.post("/v1/modules/999/start", headers=auth(token))
    assert resp.status_code == 404


# ---- GET /v1/modules/summary ----


def test_summary_for_new_user(client: TestClient, token: str) -> None:
    resp = client.get("/v1/modules/summary", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json() == {
        "total": 5,
        "completed": 0,
        "percent_complete": 0,
        "current_module_id": FIRST,
    }


def test_summary_after_two_completions(client: TestClient, token: str) -> None:
    client.post(f"/v1/modules/{FIRST}/complete", headers=auth(token))
    client.post(f"/v1/modules/{SECOND}/complete", headers=auth(token))
    body = client.get("/v1/modules/summary", headers=auth(token)).json()
    assert body["completed"] == 2
    assert body["percent_complete"] == 40
    assert body["current_module_id"] == THIRD


# ---- per-user isolation ----


def test_progress_is_isolated_per_user(client: TestClient) -> None:
    alice = mint_token("alice")
    bob = mint_token("bob")

    client.post(f"/v1/modules/{FIRST}/complete", headers=auth(alice))

    alice_body = client.get("/v1/modules", headers=auth(alice)).json()
    bob_body = client.get("/v1/modules", headers=auth(bob)).json()
    assert _statuses(alice_body)[:2] == ["done", "active"]
    assert _statuses(bob_body)[:2] == ["active", "locked"]


def test_token_identifies_user_by_subject_only(client: TestClient) -> None:
    """Any token whose ``sub`` verifies is accepted; no role claims needed."""
    claims = token_service.decode_access_token(mint_token("carol"))
    assert claims["sub"] == "carol"
    assert "roles" not in claims

    resp = client.get("/v1/modules", headers=auth(mint_token("carol")))
    assert resp.status_code == 200
