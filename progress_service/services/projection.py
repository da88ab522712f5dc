"""Status projection: derive every module's effective status for one user.

THE PREFIX RULE
----------------
Walking the catalog in order, a module is:

  done    if the user has a stored record saying so
  active  if every module before it is (effectively) done
  locked  otherwise

The first module has nothing before it, so with no records at all the
projection is ``active, locked, locked, ...``.

Stored ``done`` always wins, even out of order (once done, always done).
A stray ``done`` on module 3 does not unlock module 3's successors by
itself: the walk stops treating the prefix as complete at the first
module that is not done.  Stored ``active``/``locked`` values are never
trusted; they are recomputed.

The projection is a pure function of (catalog, records).  It never
raises on inconsistent stored data.
"""

from __future__ import annotations

from collections.abc import Iterable

from progress_service.models.progress import (
    ACTIVE,
    DONE,
    LOCKED,
    ModuleState,
    ModuleStatus,
    ProgressRecord,
    ProgressSummary,
)
from progress_service.services.catalog import Catalog


def project_status(
    catalog: Catalog, records: Iterable[ProgressRecord]
) -> list[ModuleState]:
    by_module = {r.module_id: r for r in records}

    states: list[ModuleState] = []
    prefix_done = True
    for module in catalog.list():
        record = by_module.get(module.id)

        status: ModuleStatus
        if record is not None and record.status == DONE:
            status = DONE
        elif prefix_done:
            status = ACTIVE
        else:
            status = LOCKED
        prefix_done = prefix_done and status == DONE

        states.append(
            ModuleState(
                module_id=module.id,
                sequence_position=module.sequence_position,
                title=module.title,
                description=module.description,
                status=status,
                started_at=record.started_at if record is not None else None,
                completed_at=record.completed_at if record is not None else None,
            )
        )
    return states


def summarize(states: list[ModuleState]) -> ProgressSummary:
    total = len(states)
    completed = sum(1 for s in states if s.status == DONE)
    current = next((s.module_id for s in states if s.status == ACTIVE), None)
    percent = (completed * 100) // total if total else 0
    return ProgressSummary(
        total=total,
        completed=completed,
        percent_complete=percent,
        current_module_id=current,
    )
