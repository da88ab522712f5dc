"""Progress store: per-user module records plus a transactional write path.

A ProgressRepo hands out one ProgressTransaction per write.  Everything
done through the transaction either commits together when the
``async with`` block exits cleanly, or not at all when it raises.

The in-memory implementation serializes transactions with one
asyncio.Lock per user.  Writes are staged in a dict and applied to the
committed store in a single synchronous step, so a concurrent reader
never observes a half-applied transition.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Protocol

from progress_service.models.progress import ACTIVE, DONE, ProgressRecord

_Key = tuple[str, int]


class ProgressTransaction(Protocol):
    async def get(self, module_id: int) -> ProgressRecord | None: ...

    async def mark_done(self, record: ProgressRecord) -> bool:
        """Upsert ``record`` as done unless the stored row is already done.

        Returns False when nothing was written.
        """
        ...

    async def activate(self, module_id: int, started_at: int) -> ProgressRecord | None:
        """Upsert the module as active unless it is already done.

        An existing started_at is kept.  Returns the resulting record, or
        None when a done record was left untouched.
        """
        ...


class ProgressRepo(Protocol):
    async def list_for_user(self, user_id: str) -> list[ProgressRecord]: ...

    def transaction(
        self, user_id: str
    ) -> AbstractAsyncContextManager[ProgressTransaction]: ...


class _InMemoryTransaction:
    def __init__(self, user_id: str, committed: dict[_Key, ProgressRecord]) -> None:
        self._user_id = user_id
        self._committed = committed
        self.staged: dict[_Key, ProgressRecord] = {}

    def _current(self, module_id: int) -> ProgressRecord | None:
        key = (self._user_id, module_id)
        if key in self.staged:
            return self.staged[key]
        return self._committed.get(key)

    async def get(self, module_id: int) -> ProgressRecord | None:
        return self._current(module_id)

    async def mark_done(self, record: ProgressRecord) -> bool:
        existing = self._current(record.module_id)
        if existing is not None and existing.status == DONE:
            return False
        if existing is None:
            updated = replace(record, user_id=self._user_id, status=DONE)
        else:
            updated = replace(
                existing, status=DONE, completed_at=record.completed_at
            )
        self.staged[(self._user_id, record.module_id)] = updated
        return True

    async def activate(self, module_id: int, started_at: int) -> ProgressRecord | None:
        existing = self._current(module_id)
        if existing is not None and existing.status == DONE:
            return None
        if existing is None:
            updated = ProgressRecord(
                user_id=self._user_id,
                module_id=module_id,
                status=ACTIVE,
                started_at=started_at,
            )
        else:
            updated = replace(
                existing,
                status=ACTIVE,
                started_at=(
                    existing.started_at
                    if existing.started_at is not None
                    else started_at
                ),
            )
        self.staged[(self._user_id, module_id)] = updated
        return updated


class InMemoryProgressRepo:
    """Dict-backed progress store.

    A user's lock lives only while some transaction holds or awaits it,
    so the lock table stays as small as the set of users writing right now.
    """

    def __init__(self) -> None:
        self._records: dict[_Key, ProgressRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    async def list_for_user(self, user_id: str) -> list[ProgressRecord]:
        return [r for (uid, _), r in self._records.items() if uid == user_id]

    def add(self, record: ProgressRecord) -> None:
        """Store a record directly, bypassing the transition rules.

        Used for seeding and for reproducing inconsistent stored data.
        """
        self._records[(record.user_id, record.module_id)] = record

    def get(self, user_id: str, module_id: int) -> ProgressRecord | None:
        return self._records.get((user_id, module_id))

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[_InMemoryTransaction]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with lock:
                tx = _InMemoryTransaction(user_id, self._records)
                yield tx
                # Only reached when the block exited without raising.
                self._records.update(tx.staged)
        finally:
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._locks[user_id]
