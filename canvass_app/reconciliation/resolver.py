"""Find-or-create resolution of reported identifiers to canonical voters."""

from __future__ import annotations

from typing import Mapping

from sqlalchemy.orm import Session

from canvass_app.models import ActionType, CanonicalVoter, EntityKind, db

from .audit import AuditTrail
from .contracts import get_field_names


class CanonicalResolver:
    """
    Maps a reported identifier onto the single canonical voter row.

    Existing voters are returned untouched: canonical fields only change
    through an explicit voter update, never from a capture.
    """

    def __init__(self, session: Session | None = None, audit: AuditTrail | None = None) -> None:
        self.session: Session = session or db.session
        self.audit = audit or AuditTrail(self.session)

    def get(self, identifier: str) -> CanonicalVoter | None:
        return self.session.get(CanonicalVoter, identifier)

    def resolve(
        self,
        identifier: str,
        fields: Mapping[str, str],
        *,
        actor: str | None = None,
        capture_id: int | None = None,
    ) -> tuple[CanonicalVoter, bool]:
        voter = self.get(identifier)
        if voter is not None:
            return voter, False

        voter = CanonicalVoter(identifier=identifier)
        for name in get_field_names():
            setattr(voter, name, fields.get(name))
        self.session.add(voter)
        self.session.flush()
        self.audit.log_action(
            EntityKind.VOTER,
            identifier,
            ActionType.CREATE,
            actor,
            {"source": "capture", "capture_id": capture_id, "fields": dict(fields)},
        )
        return voter, True
