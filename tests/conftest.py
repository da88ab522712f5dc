from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from progress_service.api.modules import progress_repo
from progress_service.main import app
from progress_service.models.module import Module
from progress_service.repos.module_repo import InMemoryModuleRepo
from progress_service.repos.progress_repo import InMemoryProgressRepo
from progress_service.services import token_service
from progress_service.services.cache import InMemoryCacheService, cache_service
from progress_service.services.progression import ProgressionService

# Ensure repo root is on sys.path so `import progress_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# A, B, C from the canonical walkthrough.
ABC_MODULES = (
    Module(id=10, sequence_position=1, title="A"),
    Module(id=20, sequence_position=2, title="B"),
    Module(id=30, sequence_position=3, title="C"),
)
A, B, C = (m.id for m in ABC_MODULES)


@pytest.fixture(autouse=True)
def reset_progress_state() -> None:
    """Clear stored progress and per-user locks between tests."""
    if isinstance(progress_repo, InMemoryProgressRepo):
        progress_repo._records.clear()
        progress_repo._locks.clear()
        progress_repo._lock_holders.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(username: str = "test-user") -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username)


@pytest.fixture
def token() -> str:
    return mint_token()


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Deterministic clock: starts at 1000 and ticks by 10 on every read."""

    def __init__(self, start: int = 1000, step: int = 10) -> None:
        self.now = start
        self._step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self._step
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryProgressRepo:
    return InMemoryProgressRepo()


@pytest.fixture
def cache() -> InMemoryCacheService:
    return InMemoryCacheService()


@pytest.fixture
def service(
    store: InMemoryProgressRepo, cache: InMemoryCacheService, clock: FakeClock
) -> ProgressionService:
    """ProgressionService over the A/B/C catalog with isolated state."""
    return ProgressionService(
        InMemoryModuleRepo(ABC_MODULES),
        store,
        cache,
        retry_backoff=0,
        clock=clock,
    )
