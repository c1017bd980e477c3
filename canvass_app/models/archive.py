"""
Archive tables for soft-deleted sponsors, leaders and voters.

Each row mirrors the live columns and adds the full snapshot plus the
deletion actor, reason and timestamp.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db, utcnow
from .people import IDENTIFIER_LENGTH


class ArchiveMixin:
    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    phone: Mapped[str | None] = mapped_column(db.String(40), nullable=True)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    snapshot_json: Mapped[dict] = mapped_column(db.JSON, nullable=False)
    deleted_by: Mapped[str] = mapped_column(db.String(64), nullable=False)
    deletion_reason: Mapped[str] = mapped_column(db.Text, nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )


class ArchivedSponsor(ArchiveMixin, BaseModel):
    __tablename__ = "archived_sponsors"


class ArchivedLeader(ArchiveMixin, BaseModel):
    __tablename__ = "archived_leaders"

    sponsor_identifier: Mapped[str | None] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=True)
    objective: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    duplicate_log: Mapped[str | None] = mapped_column(db.Text, nullable=True)


class ArchivedVoter(ArchiveMixin, BaseModel):
    __tablename__ = "archived_voters"

    address: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    first_leader_identifier: Mapped[str | None] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=True)
