"""
Sponsor and leader catalog operations.

Creation and plain field edits live here; identifier changes re-enter the
reconciliation renamer inside the same transaction so dependent rows follow.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from canvass_app.models import ActionType, ArchivedLeader, ArchivedSponsor, EntityKind, Leader, Sponsor, db
from canvass_app.reconciliation.audit import AuditTrail
from canvass_app.reconciliation.contracts import normalize_identifier, normalize_text
from canvass_app.reconciliation.errors import Conflict, NotFound, ValidationError
from canvass_app.reconciliation.orchestrator import transaction
from canvass_app.reconciliation.renames import IdentifierRenamer, identifier_is_archived

PERSON_FIELDS = {
    "first_name": ("first_name", "firstName", "nombres", "nombre"),
    "last_name": ("last_name", "lastName", "apellidos", "apellido"),
    "phone": ("phone", "celular", "telefono"),
    "email": ("email", "correo"),
}
LEADER_FIELDS = {
    **PERSON_FIELDS,
    "sponsor_identifier": ("sponsorId", "sponsor_identifier", "patrocinador_id"),
    "objective": ("objective", "objetivo"),
}


def _extract(payload: Mapping[str, Any], spec: Mapping[str, tuple[str, ...]]) -> dict[str, Any]:
    """Pick the first matching key per attribute; absent attributes are left out."""

    values: dict[str, Any] = {}
    for attribute, keys in spec.items():
        for key in keys:
            if key in payload:
                values[attribute] = payload[key]
                break
    return values


def _clean_objective(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


class CatalogService:
    """Create and edit sponsors and leaders."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session
        self.audit = AuditTrail(self.session)
        self.renamer = IdentifierRenamer(self.session, self.audit)
        config = current_app.config if has_app_context() else {}
        self.identifier_max_length = config.get("CAPTURE_IDENTIFIER_MAX_LENGTH", 32)

    def create_sponsor(self, payload: Mapping[str, Any], actor: str | None) -> Sponsor:
        identifier = self._identifier(payload.get("identifier"))
        values = self._clean_values(_extract(payload, PERSON_FIELDS))
        with transaction(self.session):
            if self.session.get(Sponsor, identifier) is not None:
                raise Conflict(f"Sponsor '{identifier}' already exists.", identifier=identifier)
            self._check_not_archived(ArchivedSponsor, "Sponsor", identifier)
            sponsor = Sponsor(identifier=identifier, **values)
            self.session.add(sponsor)
            self.session.flush()
            self.audit.log_action(EntityKind.SPONSOR, identifier, ActionType.CREATE, actor, {"fields": values})
        return sponsor

    def update_sponsor(self, identifier: str, payload: Mapping[str, Any], actor: str | None) -> Sponsor:
        current_key = self._identifier(identifier)
        target_key = self._target_identifier(payload, current_key)
        values = self._clean_values(_extract(payload, PERSON_FIELDS))
        with transaction(self.session):
            sponsor = self.session.get(Sponsor, current_key)
            if sponsor is None:
                raise NotFound(f"Sponsor '{current_key}' not found.", identifier=current_key)
            self._apply_changes(EntityKind.SPONSOR, sponsor, values, actor)
            if target_key != current_key:
                self.renamer.rename(EntityKind.SPONSOR, current_key, target_key, actor)
        return self.session.get(Sponsor, target_key)

    def create_leader(self, payload: Mapping[str, Any], actor: str | None) -> Leader:
        identifier = self._identifier(payload.get("identifier"))
        values = self._clean_values(_extract(payload, LEADER_FIELDS))
        with transaction(self.session):
            if self.session.get(Leader, identifier) is not None:
                raise Conflict(f"Leader '{identifier}' already exists.", identifier=identifier)
            self._check_not_archived(ArchivedLeader, "Leader", identifier)
            self._check_sponsor(values.get("sponsor_identifier"))
            leader = Leader(identifier=identifier, **values)
            self.session.add(leader)
            self.session.flush()
            self.audit.log_action(EntityKind.LEADER, identifier, ActionType.CREATE, actor, {"fields": values})
        current_app.logger.info("Leader %s created", identifier, extra={"actor": actor})
        return leader

    def update_leader(self, identifier: str, payload: Mapping[str, Any], actor: str | None) -> Leader:
        current_key = self._identifier(identifier)
        target_key = self._target_identifier(payload, current_key)
        values = self._clean_values(_extract(payload, LEADER_FIELDS))
        with transaction(self.session):
            leader = self.session.get(Leader, current_key)
            if leader is None:
                raise NotFound(f"Leader '{current_key}' not found.", identifier=current_key)
            if "sponsor_identifier" in values:
                self._check_sponsor(values["sponsor_identifier"])
            self._apply_changes(EntityKind.LEADER, leader, values, actor)
            if target_key != current_key:
                self.renamer.rename(EntityKind.LEADER, current_key, target_key, actor)
        return self.session.get(Leader, target_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _identifier(self, value: object) -> str:
        return normalize_identifier(value, label="identifier", max_length=self.identifier_max_length)

    def _target_identifier(self, payload: Mapping[str, Any], current_key: str) -> str:
        requested = payload.get("identifier")
        if requested in (None, ""):
            return current_key
        return self._identifier(requested)

    def _clean_values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for attribute, value in values.items():
            if value is not None and not isinstance(value, (str, int, float)):
                raise ValidationError(f"'{attribute}' must be a scalar value.")
            if attribute == "sponsor_identifier":
                cleaned[attribute] = self._identifier(value) if value not in (None, "") else None
            elif attribute == "objective":
                cleaned[attribute] = _clean_objective(value)
            else:
                cleaned[attribute] = normalize_text(value)
        return cleaned

    def _check_sponsor(self, sponsor_identifier: str | None) -> None:
        if sponsor_identifier and self.session.get(Sponsor, sponsor_identifier) is None:
            raise NotFound(f"Sponsor '{sponsor_identifier}' not found.", identifier=sponsor_identifier)

    def _check_not_archived(self, archive_model, label: str, identifier: str) -> None:
        if identifier_is_archived(self.session, archive_model, identifier):
            raise Conflict(
                f"{label} identifier '{identifier}' belongs to an archived {label.lower()}.",
                identifier=identifier,
            )

    def _apply_changes(self, kind: EntityKind, entity, values: Mapping[str, Any], actor: str | None) -> None:
        changes = {}
        for attribute, value in values.items():
            previous = getattr(entity, attribute)
            if previous != value:
                changes[attribute] = {"old": previous, "new": value}
                setattr(entity, attribute, value)
        if changes:
            self.session.flush()
            self.audit.log_action(kind, entity.identifier, ActionType.UPDATE, actor, {"changes": changes})
