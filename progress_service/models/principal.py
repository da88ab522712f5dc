from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.
    The progression core only ever sees ``user_id``: an opaque, stable
    subject supplied by the identity provider.
    """

    user_id: str
