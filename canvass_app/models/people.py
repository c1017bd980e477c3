# canvass_app/models/people.py
"""
Sponsors, field leaders and canonical voters.

All three are keyed by their national identifier string. References between
them are plain indexed columns so that renames and soft deletes are explicit
multi-table operations performed by the reconciliation layer.
"""

from __future__ import annotations

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db

IDENTIFIER_LENGTH = 32


class PersonFieldsMixin:
    first_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    phone: Mapped[str | None] = mapped_column(db.String(40), nullable=True)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Sponsor(PersonFieldsMixin, BaseModel):
    """Sponsor grouping one or more leaders."""

    __tablename__ = "sponsors"

    identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), primary_key=True)

    def __repr__(self):
        return f"<Sponsor {self.identifier}>"


class Leader(PersonFieldsMixin, BaseModel):
    """Field leader reporting captures about voters."""

    __tablename__ = "leaders"

    identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), primary_key=True)
    sponsor_identifier: Mapped[str | None] = mapped_column(
        db.String(IDENTIFIER_LENGTH), nullable=True, index=True
    )
    objective: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    duplicate_log: Mapped[str | None] = mapped_column(
        db.Text,
        nullable=True,
        comment="One line per duplicate or conflict incident involving this leader.",
    )

    def __repr__(self):
        return f"<Leader {self.identifier}>"

    def append_duplicate_note(self, line: str) -> None:
        self.duplicate_log = f"{self.duplicate_log}\n{line}" if self.duplicate_log else line


class CanonicalVoter(PersonFieldsMixin, BaseModel):
    """Single authoritative record per voter identifier."""

    __tablename__ = "canonical_voters"

    identifier: Mapped[str] = mapped_column(db.String(IDENTIFIER_LENGTH), primary_key=True)
    address: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    first_leader_identifier: Mapped[str | None] = mapped_column(
        db.String(IDENTIFIER_LENGTH),
        nullable=True,
        index=True,
        comment="Leader credited with first bringing the voter in; set once.",
    )

    __table_args__ = (Index("idx_canonical_voters_name", "last_name", "first_name"),)

    def __repr__(self):
        return f"<CanonicalVoter {self.identifier}>"
