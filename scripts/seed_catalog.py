"""Seed the default module catalog into PostgreSQL.

Run after `alembic upgrade head`, with DATABASE_URL set:
    python scripts/seed_catalog.py

Existing rows are left alone, so the script is safe to re-run.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert

from progress_service.core.config import SETTINGS
from progress_service.core.logging import setup_logging
from progress_service.db.engine import async_session_factory, engine
from progress_service.db.tables import ModuleRow
from progress_service.services.catalog import DEFAULT_MODULES, Catalog

logger = logging.getLogger("seed_catalog")


async def seed() -> int:
    if async_session_factory is None or engine is None:
        raise SystemExit("DATABASE_URL is not configured")

    # Validates unique ids and positions before touching the database.
    catalog = Catalog(DEFAULT_MODULES)

    stmt = pg_insert(ModuleRow).values(
        [
            {
                "id": m.id,
                "sequence_position": m.sequence_position,
                "title": m.title,
                "description": m.description,
            }
            for m in catalog.list()
        ]
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=[ModuleRow.id])

    async with async_session_factory() as session:
        async with session.begin():
            result = await session.execute(stmt)
    await engine.dispose()
    return result.rowcount


def main() -> None:
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    inserted = asyncio.run(seed())
    logger.info("Seeded %d of %d modules", inserted, len(DEFAULT_MODULES))


if __name__ == "__main__":
    main()
