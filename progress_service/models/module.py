from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Module:
    """A catalog entry.  Read-only to the progression state machine."""

    id: int
    sequence_position: int  # 1-based, unique across the catalog
    title: str
    description: str = ""
