"""
Identifier renames with explicit cascades to the live referencing columns.

Captures and incidents are history and keep the identifier they were written
with; ``history.RenameHistory`` follows the RENAME action entries at read time.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from canvass_app.models import (
    ActionType,
    ArchivedLeader,
    ArchivedSponsor,
    ArchivedVoter,
    Assignment,
    CanonicalVoter,
    EntityKind,
    Leader,
    Sponsor,
    Variant,
    db,
)

from .audit import AuditTrail
from .errors import Conflict, NotFound, ValidationError

# (model, column attribute) pairs that hold the renamed identifier.
CASCADES = {
    EntityKind.LEADER: (
        (Assignment, "leader_identifier"),
        (Variant, "leader_identifier"),
        (CanonicalVoter, "first_leader_identifier"),
    ),
    EntityKind.VOTER: (
        (Assignment, "voter_identifier"),
        (Variant, "voter_identifier"),
    ),
    EntityKind.SPONSOR: ((Leader, "sponsor_identifier"),),
}

PRIMARY_MODELS = {
    EntityKind.LEADER: (Leader, ArchivedLeader, "Leader"),
    EntityKind.VOTER: (CanonicalVoter, ArchivedVoter, "Voter"),
    EntityKind.SPONSOR: (Sponsor, ArchivedSponsor, "Sponsor"),
}


def identifier_is_archived(session: Session, archive_model, identifier: str) -> bool:
    stmt = select(archive_model.id).where(archive_model.identifier == identifier).limit(1)
    return session.execute(stmt).first() is not None


@dataclass(slots=True)
class RenameResult:
    kind: str
    old_identifier: str
    new_identifier: str
    changed: bool
    updated: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "from": self.old_identifier,
            "to": self.new_identifier,
            "changed": self.changed,
            "updated": dict(self.updated),
        }


class IdentifierRenamer:
    """Renames a sponsor, leader or voter; the caller owns the transaction."""

    def __init__(self, session: Session | None = None, audit: AuditTrail | None = None) -> None:
        self.session: Session = session or db.session
        self.audit = audit or AuditTrail(self.session)

    def rename(self, kind: EntityKind, old_identifier: str, new_identifier: str, actor: str | None) -> RenameResult:
        if kind not in PRIMARY_MODELS:
            raise ValidationError(f"Entity kind '{kind}' cannot be renamed.")
        model, archive_model, label = PRIMARY_MODELS[kind]

        if old_identifier == new_identifier:
            return RenameResult(kind.value, old_identifier, new_identifier, changed=False)

        entity = self.session.get(model, old_identifier)
        if entity is None:
            raise NotFound(f"{label} '{old_identifier}' not found.", identifier=old_identifier)
        if self.session.get(model, new_identifier) is not None:
            raise Conflict(
                f"{label} identifier '{new_identifier}' already exists.",
                identifier=new_identifier,
            )
        if identifier_is_archived(self.session, archive_model, new_identifier):
            raise Conflict(
                f"{label} identifier '{new_identifier}' belongs to an archived {label.lower()}.",
                identifier=new_identifier,
            )

        entity.identifier = new_identifier
        self.session.flush()

        updated: dict[str, int] = {}
        for dependent, attribute in CASCADES[kind]:
            column = getattr(dependent, attribute)
            stmt = update(dependent).where(column == old_identifier)
            if hasattr(dependent, "archived_at"):
                stmt = stmt.where(dependent.archived_at.is_(None))
            result = self.session.execute(stmt.values({attribute: new_identifier}))
            updated[f"{dependent.__tablename__}.{attribute}"] = result.rowcount or 0

        self.audit.log_action(
            kind,
            new_identifier,
            ActionType.RENAME,
            actor,
            {"from": old_identifier, "to": new_identifier, "updated": updated},
        )
        self.session.flush()
        return RenameResult(kind.value, old_identifier, new_identifier, changed=True, updated=updated)
