from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ModuleStatus = Literal["done", "active", "locked"]

DONE: ModuleStatus = "done"
ACTIVE: ModuleStatus = "active"
LOCKED: ModuleStatus = "locked"


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """One user's stored relationship to one module.

    Keyed by (user_id, module_id).  An absent record reads as ``locked``,
    except for the first catalog module, which reads as ``active``.

    started_at is set when the record becomes active and never moves.
    completed_at is set exactly when the record becomes done.
    """

    user_id: str
    module_id: int
    status: ModuleStatus
    started_at: int | None = None
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class ModuleState:
    """Projection / read model: the effective status of one module.

    Derived from the catalog order plus whatever records are stored.
    This is what the rendering client receives.
    """

    module_id: int
    sequence_position: int
    title: str
    description: str
    status: ModuleStatus
    started_at: int | None = None
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class ProgressSummary:
    total: int
    completed: int
    percent_complete: int
    current_module_id: int | None = None
