"""PostgreSQL implementation of ProgressRepo.

Each transaction runs in its own session inside ``session.begin()``, so
it commits on clean exit and rolls back on any exception.  The completed
row is read with SELECT ... FOR UPDATE, which serializes concurrent
completions of the same (user_id, module_id).  Writes are conditional
upserts that never touch a row that is already done.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from progress_service.db.tables import ModuleProgressRow
from progress_service.models.progress import ACTIVE, DONE, ProgressRecord
from progress_service.services.errors import TransientStoreError

logger = logging.getLogger(__name__)

_KEY_COLUMNS = [ModuleProgressRow.user_id, ModuleProgressRow.module_id]

# serialization_failure, deadlock_detected
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})


class _PgProgressTransaction:
    def __init__(self, session: AsyncSession, user_id: str) -> None:
        self._session = session
        self._user_id = user_id

    async def get(self, module_id: int) -> ProgressRecord | None:
        stmt = (
            select(ModuleProgressRow)
            .where(ModuleProgressRow.user_id == self._user_id)
            .where(ModuleProgressRow.module_id == module_id)
            .with_for_update()
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def mark_done(self, record: ProgressRecord) -> bool:
        stmt = pg_insert(ModuleProgressRow).values(
            user_id=self._user_id,
            module_id=record.module_id,
            status=DONE,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=_KEY_COLUMNS,
            set_={"status": DONE, "completed_at": stmt.excluded.completed_at},
            where=ModuleProgressRow.status != DONE,
        ).returning(ModuleProgressRow.module_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def activate(self, module_id: int, started_at: int) -> ProgressRecord | None:
        stmt = pg_insert(ModuleProgressRow).values(
            user_id=self._user_id,
            module_id=module_id,
            status=ACTIVE,
            started_at=started_at,
            completed_at=None,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=_KEY_COLUMNS,
            set_={
                "status": ACTIVE,
                "started_at": func.coalesce(
                    ModuleProgressRow.started_at, stmt.excluded.started_at
                ),
            },
            where=ModuleProgressRow.status != DONE,
        ).returning(
            ModuleProgressRow.status,
            ModuleProgressRow.started_at,
            ModuleProgressRow.completed_at,
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return ProgressRecord(
            user_id=self._user_id,
            module_id=module_id,
            status=row.status,
            started_at=row.started_at,
            completed_at=row.completed_at,
        )


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_for_user(self, user_id: str) -> list[ProgressRecord]:
        stmt = select(ModuleProgressRow).where(ModuleProgressRow.user_id == user_id)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_record(row) for row in rows]

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[_PgProgressTransaction]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield _PgProgressTransaction(session, user_id)
        except DBAPIError as e:
            if not _is_transient(e):
                raise
            # The whole transaction was rolled back; safe to run again.
            logger.warning("Progress transaction failed for user=%s: %s", user_id, e)
            raise TransientStoreError(str(e)) from e


def _is_transient(e: DBAPIError) -> bool:
    """Serialization failures, deadlocks and dropped connections.

    asyncpg surfaces the first two as a plain DBAPIError carrying the
    SQLSTATE, and a closed connection as an InterfaceError with
    connection_invalidated set, so OperationalError alone misses them.
    """
    if isinstance(e, OperationalError) or e.connection_invalidated:
        return True
    sqlstate = getattr(e.orig, "sqlstate", None) or getattr(e.orig, "pgcode", None)
    return sqlstate in _TRANSIENT_SQLSTATES


def _row_to_record(row: ModuleProgressRow) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        module_id=row.module_id,
        status=row.status,  # type: ignore[arg-type]
        started_at=row.started_at,
        completed_at=row.completed_at,
    )
