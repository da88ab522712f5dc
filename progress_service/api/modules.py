"""Module list and progression endpoints.

Read path:
  Client -> GET /v1/modules
  -> read-through cache (hit → return; miss → project from store → populate)

Write path (completion sequence):
  Client -> POST /v1/modules/{module_id}/complete
  -> one transaction: mark done + activate successor (no-op if not active)
  -> invalidate the user's cached projection
  -> 200 {advanced, modules}
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from progress_service.api.dependencies import require_user
from progress_service.core.config import SETTINGS
from progress_service.db.engine import async_session_factory
from progress_service.models.principal import Principal
from progress_service.models.progress import ModuleState, ModuleStatus
from progress_service.repos.module_repo import InMemoryModuleRepo, ModuleRepo
from progress_service.repos.pg_module_repo import PgModuleRepo
from progress_service.repos.pg_progress_repo import PgProgressRepo
from progress_service.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from progress_service.services.cache import cache_service
from progress_service.services.catalog import DEFAULT_MODULES
from progress_service.services.errors import (
    ModuleLockedError,
    NotFoundError,
    TransientStoreError,
)
from progress_service.services.progression import ProgressionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/modules", tags=["modules"])

# --- Module-level singletons: Postgres when configured, in-memory otherwise ---

module_repo: ModuleRepo
progress_repo: ProgressRepo
if async_session_factory is not None:
    module_repo = PgModuleRepo(async_session_factory)
    progress_repo = PgProgressRepo(async_session_factory)
else:
    module_repo = InMemoryModuleRepo(DEFAULT_MODULES)
    progress_repo = InMemoryProgressRepo()

progression = ProgressionService(
    module_repo,
    progress_repo,
    cache_service,
    cache_ttl=SETTINGS.progress_cache_ttl,
    max_attempts=SETTINGS.complete_max_attempts,
)

_RETRY_AFTER_SECONDS = 1


# --- Pydantic schemas ---


class ModuleStateOut(BaseModel):
    module_id: int
    sequence_position: int
    title: str
    description: str
    status: ModuleStatus
    started_at: int | None = None
    completed_at: int | None = None


class SummaryOut(BaseModel):
    total: int
    completed: int
    percent_complete: int
    current_module_id: int | None = None


class CompletionOut(BaseModel):
    advanced: bool
    modules: list[ModuleStateOut]


def _to_out(state: ModuleState) -> ModuleStateOut:
    return ModuleStateOut(
        module_id=state.module_id,
        sequence_position=state.sequence_position,
        title=state.title,
        description=state.description,
        status=state.status,
        started_at=state.started_at,
        completed_at=state.completed_at,
    )


def _not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# --- Endpoints ---


@router.get("", response_model=list[ModuleStateOut])
async def list_modules(
    principal: Annotated[Principal, Depends(require_user)],
) -> list[ModuleStateOut]:
    """Every catalog module in order, with this user's effective status."""
    states = await progression.get_status(principal.user_id)
    return [_to_out(s) for s in states]


@router.get("/summary", response_model=SummaryOut)
async def get_summary(
    principal: Annotated[Principal, Depends(require_user)],
) -> SummaryOut:
    summary = await progression.get_summary(principal.user_id)
    return SummaryOut(
        total=summary.total,
        completed=summary.completed,
        percent_complete=summary.percent_complete,
        current_module_id=summary.current_module_id,
    )


@router.get("/{module_id}", response_model=ModuleStateOut)
async def get_module(
    module_id: int,
    principal: Annotated[Principal, Depends(require_user)],
) -> ModuleStateOut:
    try:
        state = await progression.get_module(principal.user_id, module_id)
    except NotFoundError as e:
        raise _not_found(e) from None
    return _to_out(state)


@router.post("/{module_id}/start", response_model=ModuleStateOut)
async def start_module(
    module_id: int,
    principal: Annotated[Principal, Depends(require_user)],
) -> ModuleStateOut:
    """Open an unlocked module.  Locked modules answer 409, nothing changes."""
    try:
        state = await progression.start_module(principal.user_id, module_id)
    except NotFoundError as e:
        raise _not_found(e) from None
    except ModuleLockedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="module not yet available",
        ) from None
    except TransientStoreError:
        raise _unavailable() from None
    return _to_out(state)


@router.post("/{module_id}/complete", response_model=CompletionOut)
async def complete_module(
    module_id: int,
    principal: Annotated[Principal, Depends(require_user)],
) -> CompletionOut:
    """Complete a module and unlock the next one.

    Completing a locked or already-done module is a silent no-op
    (``advanced: false``) so replayed or duplicate requests are harmless.
    """
    try:
        advanced = await progression.complete_module(principal.user_id, module_id)
    except NotFoundError as e:
        raise _not_found(e) from None
    except TransientStoreError:
        raise _unavailable() from None

    states = await progression.get_status(principal.user_id)
    return CompletionOut(advanced=advanced, modules=[_to_out(s) for s in states])


def _unavailable() -> HTTPException:
    logger.warning("Progress store unavailable, asking client to retry")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="progress store busy, retry the request",
        headers={"Retry-After": str(_RETRY_AFTER_SECONDS)},
    )
