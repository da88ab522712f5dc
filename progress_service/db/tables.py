"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in progress_service/models/.
Repos convert between SQLAlchemy rows and domain dataclasses.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from progress_service.db.engine import Base


class ModuleRow(Base):
    __tablename__ = "modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    sequence_position: Mapped[int] = mapped_column(
        Integer, unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")


class ModuleProgressRow(Base):
    __tablename__ = "module_progress"

    # Opaque subject from the identity provider; no local users table.
    user_id: Mapped[str] = mapped_column(String(320), primary_key=True)
    module_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("modules.id", ondelete="CASCADE"), primary_key=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # done|active|locked
    started_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('done', 'active', 'locked')", name="ck_module_progress_status"
        ),
        CheckConstraint(
            "status <> 'done' OR completed_at IS NOT NULL",
            name="ck_module_progress_done_has_completed_at",
        ),
    )
