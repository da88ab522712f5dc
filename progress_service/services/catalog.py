"""The ordered, immutable module catalog.

The catalog is small (tens of modules) and never changes while the
process runs, so it is held as a sorted tuple plus two index dicts.
Every lookup is a pure read.
"""

from __future__ import annotations

from collections.abc import Iterable

from progress_service.models.module import Module
from progress_service.services.errors import CatalogError, NotFoundError


class Catalog:
    def __init__(self, modules: Iterable[Module]) -> None:
        ordered = tuple(sorted(modules, key=lambda m: m.sequence_position))

        by_id: dict[int, int] = {}
        seen_positions: set[int] = set()
        for index, module in enumerate(ordered):
            if module.id in by_id:
                raise CatalogError(f"duplicate module id {module.id}")
            if module.sequence_position in seen_positions:
                raise CatalogError(
                    f"duplicate sequence_position {module.sequence_position}"
                )
            by_id[module.id] = index
            seen_positions.add(module.sequence_position)

        self._modules = ordered
        self._index_by_id = by_id

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._index_by_id

    def list(self) -> tuple[Module, ...]:
        """All modules, ordered by sequence_position ascending."""
        return self._modules

    def get(self, module_id: int) -> Module:
        return self._modules[self._index_of(module_id)]

    def first(self) -> Module | None:
        return self._modules[0] if self._modules else None

    def is_first(self, module: Module) -> bool:
        return self._index_of(module.id) == 0

    def predecessor(self, module: Module) -> Module | None:
        index = self._index_of(module.id)
        return self._modules[index - 1] if index > 0 else None

    def successor(self, module: Module) -> Module | None:
        index = self._index_of(module.id)
        if index + 1 < len(self._modules):
            return self._modules[index + 1]
        return None

    def _index_of(self, module_id: int) -> int:
        try:
            return self._index_by_id[module_id]
        except KeyError:
            raise NotFoundError(module_id) from None


# The five modules the mobile client originally shipped with.
DEFAULT_MODULES: tuple[Module, ...] = (
    Module(id=1, sequence_position=1, title="Welcome Journey"),
    Module(id=2, sequence_position=2, title="Switching to Yourself"),
    Module(id=3, sequence_position=3, title="Source of Inspiration"),
    Module(id=4, sequence_position=4, title="Space of Ideas"),
    Module(id=5, sequence_position=5, title="Final Test"),
)
