"""PostgreSQL implementation of ModuleRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from progress_service.db.tables import ModuleRow
from progress_service.models.module import Module


class PgModuleRepo:
    """Satisfies the ModuleRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_ordered(self) -> list[Module]:
        stmt = select(ModuleRow).order_by(ModuleRow.sequence_position)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_module(row) for row in rows]


def _row_to_module(row: ModuleRow) -> Module:
    return Module(
        id=row.id,
        sequence_position=row.sequence_position,
        title=row.title,
        description=row.description or "",
    )
