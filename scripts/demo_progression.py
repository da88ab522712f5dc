"""Demo: walk the done → active → locked progression through the HTTP API.

Run with:
    python scripts/demo_progression.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from progress_service.main import app
from progress_service.services import token_service

USER = "demo-learner"


def _show(label: str, modules: list[dict]) -> None:
    statuses = "  ".join(f"{m['module_id']}:{m['status']}" for m in modules)
    print(f"{label:<34} {statuses}")


def main() -> None:
    client = TestClient(app)
    token = token_service.create_access_token(sub=USER)
    headers = {"Authorization": f"Bearer {token}"}

    # ── Step 1: fresh user ──────────────────────────────────────────
    r = client.get("/v1/modules", headers=headers)
    _show("1. GET  /v1/modules", r.json())

    # ── Step 2: try to open a locked module ─────────────────────────
    r = client.post("/v1/modules/3/start", headers=headers)
    print(f"2. POST /v1/modules/3/start        → {r.status_code} {r.json()['detail']}")

    # ── Step 3: complete the first module ───────────────────────────
    r = client.post("/v1/modules/1/complete", headers=headers)
    _show(f"3. complete 1 (advanced={r.json()['advanced']})", r.json()["modules"])

    # ── Step 4: replay the same request ─────────────────────────────
    r = client.post("/v1/modules/1/complete", headers=headers)
    _show(f"4. complete 1 (advanced={r.json()['advanced']})", r.json()["modules"])

    # ── Step 5: complete a locked module ────────────────────────────
    r = client.post("/v1/modules/3/complete", headers=headers)
    _show(f"5. complete 3 (advanced={r.json()['advanced']})", r.json()["modules"])

    # ── Step 6: complete the second module ──────────────────────────
    r = client.post("/v1/modules/2/complete", headers=headers)
    _show(f"6. complete 2 (advanced={r.json()['advanced']})", r.json()["modules"])

    r = client.get("/v1/modules/summary", headers=headers)
    print(f"7. GET  /v1/modules/summary        → {r.json()}")


if __name__ == "__main__":
    main()
