"""Domain errors raised by the progression services.

Routers translate these into HTTP responses; nothing below the API
layer knows about status codes.
"""

from __future__ import annotations


class ProgressionError(Exception):
    pass


class CatalogError(ValueError):
    """The module catalog violates its ordering invariants."""


class NotFoundError(ProgressionError):
    """A referenced module does not exist in the catalog."""

    def __init__(self, module_id: int) -> None:
        super().__init__(f"module {module_id} not found")
        self.module_id = module_id


class PreconditionNotMetError(ProgressionError):
    """Completion attempted on a module that is not currently active.

    Raised inside the completion transaction to abort it; the service
    swallows it and reports a no-op so duplicate submissions are harmless.
    """


class ModuleLockedError(ProgressionError):
    """Interaction with a module whose predecessors are not all done."""

    def __init__(self, module_id: int) -> None:
        super().__init__(f"module {module_id} is not yet available")
        self.module_id = module_id


class TransientStoreError(ProgressionError):
    """The atomic write could not commit (contention, lost connection).

    Safe to retry with the same arguments.
    """
