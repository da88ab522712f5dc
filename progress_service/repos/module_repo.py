from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from progress_service.models.module import Module


class ModuleRepo(Protocol):
    async def list_ordered(self) -> list[Module]: ...


class InMemoryModuleRepo:
    def __init__(self, modules: Iterable[Module] = ()) -> None:
        self._by_id: dict[int, Module] = {m.id: m for m in modules}

    async def list_ordered(self) -> list[Module]:
        return sorted(self._by_id.values(), key=lambda m: m.sequence_position)

    def add(self, module: Module) -> None:
        if module.id in self._by_id:
            raise ValueError("module already exists")
        self._by_id[module.id] = module
