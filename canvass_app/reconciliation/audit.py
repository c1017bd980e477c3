"""
Action log and soft-delete archive.

``AuditTrail`` is called by every component on every mutation. The
``ArchiveService`` performs the snapshot, archive insert and live delete for a
sponsor, leader or voter as one unit; callers own the transaction boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from canvass_app.models import (
    ActionLog,
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
    model_snapshot,
)
from canvass_app.models.base import utcnow

from .errors import NotFound, Undeletable, ValidationError


@dataclass(frozen=True)
class ArchiveTarget:
    kind: EntityKind
    live_model: type
    archive_model: type
    label: str
    # Column on assignments and variants holding this entity's identifier.
    history_column: str | None = None


ARCHIVE_TARGETS: Mapping[EntityKind, ArchiveTarget] = {
    EntityKind.SPONSOR: ArchiveTarget(EntityKind.SPONSOR, Sponsor, ArchivedSponsor, "Sponsor"),
    EntityKind.LEADER: ArchiveTarget(EntityKind.LEADER, Leader, ArchivedLeader, "Leader", "leader_identifier"),
    EntityKind.VOTER: ArchiveTarget(EntityKind.VOTER, CanonicalVoter, ArchivedVoter, "Voter", "voter_identifier"),
}

_NON_MIRRORED_COLUMNS = {"id", "created_at", "updated_at"}


def resolve_archive_target(kind: str | EntityKind) -> ArchiveTarget:
    try:
        entity_kind = kind if isinstance(kind, EntityKind) else EntityKind(str(kind).strip().lower())
        return ARCHIVE_TARGETS[entity_kind]
    except (ValueError, KeyError):
        raise ValidationError(f"Entity kind '{kind}' cannot be soft-deleted.") from None


class AuditTrail:
    """Writes append-only action log entries."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session

    def log_action(
        self,
        entity_kind: str | EntityKind,
        entity_id: object,
        action: ActionType,
        actor: str | None,
        detail: Mapping[str, object] | None = None,
    ) -> ActionLog:
        entry = ActionLog(
            entity_kind=entity_kind.value if isinstance(entity_kind, EntityKind) else str(entity_kind),
            entity_id=str(entity_id),
            action=action,
            actor=actor,
            detail_json=dict(detail) if detail else None,
        )
        self.session.add(entry)
        return entry


class ArchiveService:
    """Archive-then-delete for sponsors, leaders and voters."""

    def __init__(self, session: Session | None = None, audit: AuditTrail | None = None) -> None:
        self.session: Session = session or db.session
        self.audit = audit or AuditTrail(self.session)

    def soft_delete(self, kind: str | EntityKind, identifier: str, actor: str | None, reason: str | None):
        target = resolve_archive_target(kind)
        resolved_reason = _require_reason(reason)
        entity = self.session.get(target.live_model, identifier)
        if entity is None:
            raise NotFound(f"{target.label} '{identifier}' not found.", identifier=identifier)
        self._check_deletable(target, entity)
        return self._archive(target, entity, actor, resolved_reason)

    def soft_delete_many(
        self, kind: str | EntityKind, identifiers: Iterable[str], actor: str | None, reason: str | None
    ) -> list:
        target = resolve_archive_target(kind)
        resolved_reason = _require_reason(reason)
        unique_ids = list(dict.fromkeys(identifiers))
        if not unique_ids:
            raise ValidationError("ids must contain at least one identifier.")

        entities = {}
        missing = []
        for identifier in unique_ids:
            entity = self.session.get(target.live_model, identifier)
            if entity is None:
                missing.append(identifier)
            else:
                entities[identifier] = entity
        if missing:
            raise NotFound(
                f"{target.label} identifiers not found: {', '.join(missing)}. Nothing was deleted.",
                missing=missing,
            )

        for entity in entities.values():
            self._check_deletable(target, entity)
        return [self._archive(target, entities[identifier], actor, resolved_reason) for identifier in unique_ids]

    def _check_deletable(self, target: ArchiveTarget, entity) -> None:
        if target.kind is not EntityKind.SPONSOR:
            return
        linked = self.session.execute(
            select(func.count()).select_from(Leader).where(Leader.sponsor_identifier == entity.identifier)
        ).scalar_one()
        if linked:
            raise Undeletable(
                f"Sponsor '{entity.identifier}' still has {linked} linked leader(s).",
                identifier=entity.identifier,
                linked_leaders=linked,
            )

    def _archive(self, target: ArchiveTarget, entity, actor: str | None, reason: str):
        snapshot = model_snapshot(entity)
        mirrored = {
            column.key: snapshot[column.key]
            for column in target.archive_model.__table__.columns
            if column.key in snapshot and column.key not in _NON_MIRRORED_COLUMNS
        }
        archived = target.archive_model(
            **mirrored,
            snapshot_json=snapshot,
            deleted_by=actor or "unknown",
            deletion_reason=reason,
        )
        self.session.add(archived)
        detached = self._detach_history(target, entity.identifier)
        self.session.delete(entity)
        self.audit.log_action(
            target.kind,
            entity.identifier,
            ActionType.DELETE,
            actor,
            {"reason": reason, "snapshot": snapshot, "archived_history": detached},
        )
        self.session.flush()
        return archived

    def _detach_history(self, target: ArchiveTarget, identifier: str) -> dict[str, int]:
        """Mark the entity's assignments and variants as archived; rows stay in place."""

        if target.history_column is None:
            return {}
        stamp = utcnow()
        detached = {}
        for model in (Assignment, Variant):
            column = getattr(model, target.history_column)
            result = self.session.execute(
                update(model)
                .where(column == identifier, model.archived_at.is_(None))
                .values(archived_at=stamp)
            )
            detached[model.__tablename__] = result.rowcount or 0
        return detached


def _require_reason(reason: str | None) -> str:
    if reason is None or not str(reason).strip():
        raise ValidationError("A deletion reason is required.")
    return str(reason).strip()
