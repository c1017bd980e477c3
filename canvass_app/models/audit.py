"""Append-only action log."""

from __future__ import annotations

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db
from .enums import ActionType


class ActionLog(BaseModel):
    """Durable trail of every mutating operation."""

    __tablename__ = "action_log"

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    entity_kind: Mapped[str] = mapped_column(db.String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(db.String(64), nullable=False)
    action: Mapped[ActionType] = mapped_column(
        Enum(ActionType, name="action_type_enum"),
        nullable=False,
        index=True,
    )
    actor: Mapped[str | None] = mapped_column(db.String(64), nullable=True, index=True)
    detail_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)

    __table_args__ = (Index("idx_action_log_entity", "entity_kind", "entity_id"),)

    def __repr__(self):
        return f"<ActionLog {self.action.value} {self.entity_kind}:{self.entity_id}>"
