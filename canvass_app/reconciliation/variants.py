"""Per-leader variant history of reported voter data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from canvass_app.models import Variant, db
from canvass_app.models.base import utcnow

from .contracts import fields_equal, get_field_names


@dataclass(slots=True)
class VariantOutcome:
    """Result of recording a reported snapshot."""

    variant: Variant
    created: bool
    conflict: bool
    previous: Variant | None = None

    @property
    def changed_fields(self) -> list[str]:
        if self.previous is None:
            return []
        return [
            name
            for name in get_field_names()
            if (getattr(self.previous, name) or None) != (getattr(self.variant, name) or None)
        ]


def variant_fields(variant: Variant) -> dict[str, str | None]:
    return {name: getattr(variant, name) for name in get_field_names()}


class VariantRecorder:
    """Keeps exactly one current variant per (voter, leader) pair."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session

    def current_for(self, voter_identifier: str, leader_identifier: str) -> Variant | None:
        stmt = select(Variant).where(
            Variant.voter_identifier == voter_identifier,
            Variant.leader_identifier == leader_identifier,
            Variant.is_current.is_(True),
            Variant.archived_at.is_(None),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def history(self, voter_identifier: str, leader_identifier: str) -> list[Variant]:
        stmt = (
            select(Variant)
            .where(
                Variant.voter_identifier == voter_identifier,
                Variant.leader_identifier == leader_identifier,
            )
            .order_by(Variant.id.asc())
        )
        return list(self.session.execute(stmt).scalars())

    def record(
        self,
        voter_identifier: str,
        leader_identifier: str,
        fields: Mapping[str, str],
        *,
        content_hash: str,
        capture_id: int | None = None,
    ) -> VariantOutcome:
        current = self.current_for(voter_identifier, leader_identifier)
        if current is not None and fields_equal(variant_fields(current), fields):
            return VariantOutcome(variant=current, created=False, conflict=False)

        if current is not None:
            current.is_current = False
            current.superseded_at = utcnow()
            # The partial unique index only admits one current row per pair.
            self.session.flush()

        variant = Variant(
            voter_identifier=voter_identifier,
            leader_identifier=leader_identifier,
            content_hash=content_hash,
            is_current=True,
            capture_id=capture_id,
        )
        for name in get_field_names():
            setattr(variant, name, fields.get(name))
        self.session.add(variant)
        self.session.flush()
        return VariantOutcome(variant=variant, created=True, conflict=current is not None, previous=current)
