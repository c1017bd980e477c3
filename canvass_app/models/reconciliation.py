"""
Tables written by the reconciliation engine: the capture log, per-leader
variants, voter/leader assignments and incidents.

Superseded variants, capture rows and incidents are never deleted. When a
leader or voter is soft-deleted its assignments and variants stay in place
with ``archived_at`` set and no longer count as live state.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db
from .enums import CaptureStatus, IncidentKind
from .people import IDENTIFIER_LENGTH


class Capture(BaseModel):
    """Immutable raw report submitted by a leader about a voter."""

    __tablename__ = "captures"

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    leader_identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    reported_identifier: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)
    payload_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    normalized_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    content_hash: Mapped[str] = mapped_column(db.String(64), nullable=False)
    status: Mapped[CaptureStatus] = mapped_column(
        Enum(CaptureStatus, name="capture_status_enum"),
        nullable=False,
        default=CaptureStatus.PROCESSED,
        index=True,
    )
    canonical_identifier: Mapped[str | None] = mapped_column(
        db.String(IDENTIFIER_LENGTH), nullable=True, index=True
    )
    actor: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    source: Mapped[str] = mapped_column(db.String(20), nullable=False, default="api")
    error_detail: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_captures_processed_hash",
            "leader_identifier",
            "reported_identifier",
            "content_hash",
            unique=True,
            sqlite_where=text("status = 'PROCESSED'"),
            postgresql_where=text("status = 'PROCESSED'"),
        ),
        Index("idx_captures_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<Capture {self.id} {self.leader_identifier}/{self.reported_identifier} {self.status.value}>"


class Variant(BaseModel):
    """Latest snapshot a given leader reported about a voter, historized."""

    __tablename__ = "variants"

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    voter_identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    leader_identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    address: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(db.String(40), nullable=True)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    content_hash: Mapped[str] = mapped_column(db.String(64), nullable=False)
    is_current: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True, index=True)
    capture_id: Mapped[int | None] = mapped_column(
        ForeignKey("captures.id", ondelete="SET NULL"),
        nullable=True,
    )
    superseded_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    capture = relationship("Capture", foreign_keys=[capture_id])

    __table_args__ = (
        Index(
            "uq_variants_current_pair",
            "voter_identifier",
            "leader_identifier",
            unique=True,
            sqlite_where=text("is_current = 1 AND archived_at IS NULL"),
            postgresql_where=text("is_current AND archived_at IS NULL"),
        ),
        Index("idx_variants_pair", "voter_identifier", "leader_identifier"),
    )

    def __repr__(self):
        marker = "current" if self.is_current else "superseded"
        return f"<Variant {self.voter_identifier}@{self.leader_identifier} {marker}>"


class Assignment(BaseModel):
    """Many-to-many link between a voter and a leader."""

    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    voter_identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    leader_identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    assigned_by: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_assignments_live_pair",
            "voter_identifier",
            "leader_identifier",
            unique=True,
            sqlite_where=text("archived_at IS NULL"),
            postgresql_where=text("archived_at IS NULL"),
        ),
    )

    def __repr__(self):
        return f"<Assignment {self.voter_identifier}->{self.leader_identifier}>"


class Incident(BaseModel):
    """
    Append-only record of a duplicate, conflict or manual review event.

    Identifier columns keep the values in force when the incident was written;
    renames are followed at read time through the action log.
    """

    __tablename__ = "incidents"

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    kind: Mapped[IncidentKind] = mapped_column(
        Enum(IncidentKind, name="incident_kind_enum"),
        nullable=False,
        index=True,
    )
    voter_identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=False, index=True)
    leader_before: Mapped[str | None] = mapped_column(
        db.Text,
        nullable=True,
        comment="Comma-separated leaders assigned before the event.",
    )
    leader_after: Mapped[str | None] = mapped_column(db.String(IDENTIFIER_LENGTH), nullable=True, index=True)
    capture_id: Mapped[int | None] = mapped_column(
        ForeignKey("captures.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    detail: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    actor: Mapped[str | None] = mapped_column(db.String(64), nullable=True)

    capture = relationship("Capture", foreign_keys=[capture_id])

    __table_args__ = (Index("idx_incidents_kind_created", "kind", "created_at"),)

    def __repr__(self):
        return f"<Incident {self.kind.value} {self.voter_identifier}>"
