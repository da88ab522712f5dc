"""Module progression: reads through the projection cache, writes through
one store transaction per transition.

COMPLETION TRANSITION
----------------------
complete_module(user, m) runs, inside a single transaction holding the
user's write lock:

  1. read the record for (user, m)
     - absent and m is the first catalog module → treat as active
     - absent, locked, or already done → no-op (PreconditionNotMetError
       aborts the transaction, the caller just gets False)
  2. mark m done (completed_at = now, started_at untouched)
  3. activate m's successor, if any (never regressing a done one)

Either all of that commits or none of it does.  A duplicate or replayed
request finds m already done at step 1 and changes nothing, which is
what makes retrying after a timeout or a TransientStoreError safe.

After commit, the user's cached projection is deleted so the next read
recomputes it.
"""

from __future__ import annotations

import asyncio
import datetime
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, replace
from typing import TypeVar

from progress_service.core.metrics import (
    CACHE_OPERATIONS,
    MODULE_COMPLETIONS,
    STORE_RETRIES,
)
from progress_service.models.module import Module
from progress_service.models.progress import (
    ACTIVE,
    DONE,
    LOCKED,
    ModuleState,
    ProgressRecord,
    ProgressSummary,
)
from progress_service.repos.module_repo import ModuleRepo
from progress_service.repos.progress_repo import ProgressRepo
from progress_service.services.cache import CacheService
from progress_service.services.catalog import Catalog
from progress_service.services.errors import (
    ModuleLockedError,
    PreconditionNotMetError,
    TransientStoreError,
)
from progress_service.services.projection import project_status, summarize

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _cache_key(user_id: str) -> str:
    return f"progress:{user_id}"


class ProgressionService:
    def __init__(
        self,
        module_repo: ModuleRepo,
        progress_repo: ProgressRepo,
        cache: CacheService,
        *,
        cache_ttl: int = 300,
        max_attempts: int = 3,
        retry_backoff: float = 0.05,
        clock: Callable[[], int] = _now,
    ) -> None:
        self._module_repo = module_repo
        self._progress_repo = progress_repo
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff
        self._clock = clock
        self._catalog: Catalog | None = None

    async def catalog(self) -> Catalog:
        """Load the catalog once; it is immutable for the process lifetime."""
        if self._catalog is None:
            self._catalog = Catalog(await self._module_repo.list_ordered())
            logger.info("Catalog loaded with %d modules", len(self._catalog))
        return self._catalog

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_status(self, user_id: str) -> list[ModuleState]:
        key = _cache_key(user_id)

        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return [ModuleState(**s) for s in json.loads(cached)]

        CACHE_OPERATIONS.labels(operation="miss").inc()
        states = await self._project(user_id)
        await self._cache.set(
            key, json.dumps([asdict(s) for s in states]), self._cache_ttl
        )
        return states

    async def get_module(self, user_id: str, module_id: int) -> ModuleState:
        catalog = await self.catalog()
        catalog.get(module_id)  # NotFoundError for unknown ids
        return _state_of(await self.get_status(user_id), module_id)

    async def get_summary(self, user_id: str) -> ProgressSummary:
        return summarize(await self.get_status(user_id))

    async def _project(self, user_id: str) -> list[ModuleState]:
        catalog = await self.catalog()
        records = await self._progress_repo.list_for_user(user_id)
        return project_status(catalog, records)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def complete_module(self, user_id: str, module_id: int) -> bool:
        """Advance the user past ``module_id``.

        Returns True when the module moved active → done, False when the
        call was a no-op (module locked, already done, or a replay).
        Raises NotFoundError for unknown modules and TransientStoreError
        once local retries are exhausted.
        """
        catalog = await self.catalog()
        module = catalog.get(module_id)
        successor = catalog.successor(module)
        is_head = catalog.is_first(module)
        log_ctx = {"user_id": user_id, "module_id": module_id}

        try:
            await self._with_retry(
                lambda: self._apply_completion(user_id, module, successor, is_head),
                log_ctx,
            )
        except PreconditionNotMetError as e:
            MODULE_COMPLETIONS.labels(result="noop").inc()
            logger.info("Completion ignored: %s", e, extra=log_ctx)
            return False

        MODULE_COMPLETIONS.labels(result="advanced").inc()
        await self._cache.delete(_cache_key(user_id))
        logger.info(
            "Module %d completed for user=%s, next=%s",
            module_id,
            user_id,
            successor.id if successor is not None else "none",
            extra=log_ctx,
        )
        return True

    async def _apply_completion(
        self,
        user_id: str,
        module: Module,
        successor: Module | None,
        is_head: bool,
    ) -> None:
        now = self._clock()
        async with self._progress_repo.transaction(user_id) as tx:
            record = await tx.get(module.id)
            if record is None and is_head:
                record = ProgressRecord(
                    user_id=user_id, module_id=module.id, status=ACTIVE, started_at=now
                )

            if record is None or record.status != ACTIVE:
                current = record.status if record is not None else "unprovisioned"
                raise PreconditionNotMetError(f"module {module.id} is {current}")

            if not await tx.mark_done(replace(record, status=DONE, completed_at=now)):
                raise PreconditionNotMetError(f"module {module.id} is already done")

            if successor is not None:
                await tx.activate(successor.id, now)

    async def start_module(self, user_id: str, module_id: int) -> ModuleState:
        """Open an unlocked module, recording started_at the first time.

        Raises ModuleLockedError when earlier modules are not all done.
        Starting an already started or done module changes nothing.
        """
        catalog = await self.catalog()
        catalog.get(module_id)
        log_ctx = {"user_id": user_id, "module_id": module_id}

        # Done records are never removed, so once a module's predecessors
        # are all done it stays unlocked; no lock needed for this check.
        state = _state_of(await self._project(user_id), module_id)
        if state.status == LOCKED:
            logger.info("Start rejected: module %d locked", module_id, extra=log_ctx)
            raise ModuleLockedError(module_id)
        if state.status == DONE:
            return state

        wrote = await self._with_retry(
            lambda: self._apply_start(user_id, module_id), log_ctx
        )
        if wrote:
            await self._cache.delete(_cache_key(user_id))
            logger.info("Module %d started for user=%s", module_id, user_id, extra=log_ctx)
        return _state_of(await self._project(user_id), module_id)

    async def _apply_start(self, user_id: str, module_id: int) -> bool:
        async with self._progress_repo.transaction(user_id) as tx:
            existing = await tx.get(module_id)
            if existing is not None and (
                existing.status == DONE
                or (existing.status == ACTIVE and existing.started_at is not None)
            ):
                return False
            await tx.activate(module_id, self._clock())
            return True

    async def _with_retry(
        self, operation: Callable[[], Awaitable[T]], log_ctx: dict[str, object]
    ) -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except TransientStoreError:
                if attempt >= self._max_attempts:
                    logger.error(
                        "Giving up after %d attempts", attempt, extra=log_ctx
                    )
                    raise
                STORE_RETRIES.inc()
                logger.warning(
                    "Transient store failure, retrying (attempt %d/%d)",
                    attempt,
                    self._max_attempts,
                    extra=log_ctx,
                )
                await asyncio.sleep(self._retry_backoff * attempt)
                attempt += 1


def _state_of(states: list[ModuleState], module_id: int) -> ModuleState:
    return next(s for s in states if s.module_id == module_id)
