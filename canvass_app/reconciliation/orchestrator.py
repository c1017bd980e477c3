"""
Reconciliation orchestrator.

Drives each capture through validation, resolution, variant recording,
assignment and incident classification inside a single transaction, and
wraps every other mutating operation (assign, rename, reassign, delete) in
its own transaction so dependent state never diverges.

Components only flush; this module is the only place that commits or rolls
back.
"""

from __future__ import annotations

import enum
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from canvass_app.models import (
    ActionType,
    Assignment,
    CanonicalVoter,
    CaptureStatus,
    EntityKind,
    Incident,
    Leader,
    db,
)
from config.monitoring import ReconciliationMonitoring

from .assignments import AssignmentManager
from .audit import ArchiveService, AuditTrail, resolve_archive_target
from .capture_store import CaptureStore
from .contracts import (
    CAPTURE_FIELDS,
    compute_content_hash,
    get_alias_map,
    get_record_key_map,
    normalize_fields,
    normalize_header,
    normalize_identifier,
)
from .errors import (
    Conflict,
    ExactDuplicate,
    NotAssigned,
    NotFound,
    ReconciliationError,
    StorageError,
    ValidationError,
)
from .incidents import ClassificationContext, IncidentDetector
from .renames import IdentifierRenamer, RenameResult
from .resolver import CanonicalResolver
from .variants import VariantRecorder


class CaptureState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    RESOLVED = "RESOLVED"
    RECORDED = "RECORDED"
    ASSIGNED = "ASSIGNED"
    CLASSIFIED = "CLASSIFIED"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"


@dataclass(slots=True)
class CaptureOutcome:
    """Result of a committed capture."""

    capture_id: int
    canonical_id: str
    status: CaptureStatus
    incidents: list[dict[str, Any]] = field(default_factory=list)
    states: list[CaptureState] = field(default_factory=list)
    voter_created: bool = False
    assignment_created: bool = False
    variant_conflict: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "captureId": self.capture_id,
            "canonicalId": self.canonical_id,
            "status": self.status.value,
            "incidents": list(self.incidents),
            "states": [state.value for state in self.states],
            "voterCreated": self.voter_created,
            "assignmentCreated": self.assignment_created,
        }


@dataclass(slots=True)
class BatchRowOutcome:
    row: int
    status: str
    capture_id: int | None = None
    canonical_id: str | None = None
    incidents: list[str] = field(default_factory=list)
    error: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"row": self.row, "status": self.status}
        if self.capture_id is not None:
            payload["captureId"] = self.capture_id
        if self.canonical_id is not None:
            payload["canonicalId"] = self.canonical_id
        if self.incidents:
            payload["incidents"] = list(self.incidents)
        if self.error is not None:
            payload["error"] = self.error
            payload["code"] = self.code
        return payload


@dataclass(slots=True)
class BatchSummary:
    """Aggregate outcome of an ordered batch of flat capture records."""

    source: str
    total: int = 0
    processed: int = 0
    rejected_duplicates: int = 0
    errors: int = 0
    incidents_by_kind: Counter = field(default_factory=Counter)
    rows: list[BatchRowOutcome] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "total": self.total,
            "processed": self.processed,
            "rejectedDuplicates": self.rejected_duplicates,
            "errors": self.errors,
            "incidentsByKind": dict(self.incidents_by_kind),
            "rows": [row.to_dict() for row in self.rows],
        }


def serialize_incident(incident: Incident) -> dict[str, Any]:
    return {
        "id": incident.id,
        "kind": incident.kind.value,
        "voterId": incident.voter_identifier,
        "leaderBefore": incident.leader_before,
        "leaderAfter": incident.leader_after,
        "captureId": incident.capture_id,
        "detail": incident.detail,
        "actor": incident.actor,
        "createdAt": incident.created_at.isoformat() if incident.created_at else None,
    }


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Commit on success, roll back on any failure.

    Domain errors propagate unchanged; integrity violations surface as
    ``Conflict`` and other database failures as ``StorageError``.
    """

    try:
        yield session
        session.commit()
    except ReconciliationError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        raise Conflict("The change conflicts with existing data.", detail=str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageError("Database operation failed.") from exc
    except Exception:
        session.rollback()
        raise


def split_flat_record(record: Mapping[str, Any]) -> tuple[Any, Any, dict[str, Any]]:
    """Split a flat batch record into (leader id, reported id, field payload)."""

    key_map = get_record_key_map()
    alias_map = get_alias_map()
    leader_id = None
    reported_id = None
    fields: dict[str, Any] = {}
    nested = record.get("fields")
    if isinstance(nested, Mapping):
        fields.update(nested)
    for raw_key, value in record.items():
        token = normalize_header(raw_key)
        canonical_key = key_map.get(token)
        if canonical_key == "leader_id":
            leader_id = value
        elif canonical_key == "reported_id":
            reported_id = value
        elif token in alias_map:
            fields[raw_key] = value
    return leader_id, reported_id, fields


class ReconciliationOrchestrator:
    """Transactional entry point for every mutating reconciliation operation."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        log_rejections: bool | None = None,
        identifier_max_length: int | None = None,
    ) -> None:
        self.session: Session = session or db.session
        config = current_app.config if has_app_context() else {}
        self.log_rejections = (
            config.get("CAPTURE_LOG_REJECTIONS", True) if log_rejections is None else log_rejections
        )
        self.identifier_max_length = identifier_max_length or config.get("CAPTURE_IDENTIFIER_MAX_LENGTH", 32)

        self.audit = AuditTrail(self.session)
        self.captures = CaptureStore(self.session)
        self.resolver = CanonicalResolver(self.session, self.audit)
        self.variants = VariantRecorder(self.session)
        self.assignments = AssignmentManager(self.session, self.audit)
        self.detector = IncidentDetector(self.session)
        self.archive = ArchiveService(self.session, self.audit)
        self.renamer = IdentifierRenamer(self.session, self.audit)

    # ------------------------------------------------------------------
    # Captures
    # ------------------------------------------------------------------

    def submit_capture(
        self,
        leader_id: object,
        reported_id: object,
        fields: Mapping[str, object] | None,
        actor: str | None,
        *,
        source: str = "api",
    ) -> CaptureOutcome:
        started = time.perf_counter()
        states = [CaptureState.RECEIVED]

        try:
            leader_key = self._identifier(leader_id, "leaderId")
            reported_key = self._identifier(reported_id, "reportedId")
            normalized = normalize_fields(fields)
            if not normalized:
                supported = ", ".join(spec.name for spec in CAPTURE_FIELDS)
                raise ValidationError(f"At least one reported field is required ({supported}).")
        except ValidationError:
            states.append(CaptureState.REJECTED)
            ReconciliationMonitoring.record_capture(
                status="INVALID", source=source, duration_seconds=time.perf_counter() - started
            )
            raise

        content_hash = compute_content_hash(normalized)
        payload = {"leaderId": leader_id, "reportedId": reported_id, "fields": dict(fields or {})}
        rejection_status: CaptureStatus | None = None

        try:
            if self.session.get(Leader, leader_key) is None:
                rejection_status = CaptureStatus.ERROR
                raise NotFound(f"Leader '{leader_key}' not found.", identifier=leader_key)
            states.append(CaptureState.VALIDATED)

            existing = self.captures.find_processed(leader_key, reported_key, content_hash)
            if existing is not None:
                rejection_status = CaptureStatus.REJECTED_DUPLICATE
                raise ExactDuplicate(
                    f"Leader '{leader_key}' already submitted identical data for '{reported_key}'.",
                    captureId=existing.id,
                    canonicalId=existing.canonical_identifier,
                )

            capture = self.captures.append(
                leader_identifier=leader_key,
                reported_identifier=reported_key,
                payload=payload,
                normalized=normalized,
                content_hash=content_hash,
                status=CaptureStatus.PROCESSED,
                actor=actor,
                source=source,
            )

            voter, voter_created = self.resolver.resolve(
                reported_key, normalized, actor=actor, capture_id=capture.id
            )
            capture.canonical_identifier = voter.identifier
            states.append(CaptureState.RESOLVED)

            prior_leaders = self.assignments.leaders_for(voter.identifier)
            variant_outcome = self.variants.record(
                voter.identifier,
                leader_key,
                normalized,
                content_hash=content_hash,
                capture_id=capture.id,
            )
            states.append(CaptureState.RECORDED)

            assignment_created = False
            if leader_key not in prior_leaders:
                self.assignments.assign(voter.identifier, leader_key, actor)
                assignment_created = True
            states.append(CaptureState.ASSIGNED)

            incidents = self.detector.detect(
                ClassificationContext(
                    voter_identifier=voter.identifier,
                    leader_identifier=leader_key,
                    prior_leaders=prior_leaders,
                    variant_outcome=variant_outcome,
                    assignment_created=assignment_created,
                    capture_id=capture.id,
                    actor=actor,
                )
            )
            states.append(CaptureState.CLASSIFIED)

            self.audit.log_action(
                EntityKind.CAPTURE,
                capture.id,
                ActionType.CAPTURE,
                actor,
                {
                    "leader": leader_key,
                    "voter": voter.identifier,
                    "source": source,
                    "voter_created": voter_created,
                    "assignment_created": assignment_created,
                    "variant_created": variant_outcome.created,
                    "incidents": [incident.kind.value for incident in incidents],
                },
            )
            self.session.commit()
            states.append(CaptureState.COMMITTED)
        except (NotFound, ExactDuplicate) as exc:
            self.session.rollback()
            states.append(CaptureState.REJECTED)
            self._finish_rejection(exc, rejection_status, leader_key, reported_key, payload, normalized,
                                   content_hash, actor, source, started)
            raise
        except IntegrityError as exc:
            self.session.rollback()
            states.append(CaptureState.REJECTED)
            if "captures" not in str(exc.orig):
                raise Conflict("Capture conflicts with concurrent changes.", detail=str(exc.orig)) from exc
            duplicate = ExactDuplicate(
                f"Leader '{leader_key}' already submitted identical data for '{reported_key}'."
            )
            self._finish_rejection(duplicate, CaptureStatus.REJECTED_DUPLICATE, leader_key, reported_key,
                                   payload, normalized, content_hash, actor, source, started)
            raise duplicate from exc
        except ReconciliationError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            current_app.logger.exception("Capture reconciliation failed for leader %s", leader_key)
            raise StorageError("Database operation failed while reconciling the capture.") from exc

        outcome = CaptureOutcome(
            capture_id=capture.id,
            canonical_id=voter.identifier,
            status=CaptureStatus.PROCESSED,
            incidents=[serialize_incident(incident) for incident in incidents],
            states=states,
            voter_created=voter_created,
            assignment_created=assignment_created,
            variant_conflict=variant_outcome.conflict,
        )
        ReconciliationMonitoring.record_capture(
            status=CaptureStatus.PROCESSED.value, source=source, duration_seconds=time.perf_counter() - started
        )
        for incident in incidents:
            ReconciliationMonitoring.record_incident(kind=incident.kind.value)
        current_app.logger.info(
            "Capture %s processed for voter %s by leader %s",
            outcome.capture_id,
            outcome.canonical_id,
            leader_key,
            extra={"capture_id": outcome.capture_id, "incidents": [i["kind"] for i in outcome.incidents]},
        )
        return outcome

    def ingest_batch(
        self,
        records: Iterable[Mapping[str, Any]],
        actor: str | None,
        *,
        source: str = "csv",
        summary: BatchSummary | None = None,
    ) -> BatchSummary:
        """
        Reconcile flat records in order, one transaction per record.

        A caller-supplied ``summary`` keeps the rows already committed when the
        record source fails part way through.
        """

        summary = summary if summary is not None else BatchSummary(source=source)
        for row_number, record in enumerate(records, start=1):
            summary.total += 1
            if not isinstance(record, Mapping):
                summary.errors += 1
                summary.rows.append(
                    BatchRowOutcome(row=row_number, status=CaptureStatus.ERROR.value,
                                    error="Record must be an object.", code=ValidationError.code)
                )
                continue
            leader_id, reported_id, fields = split_flat_record(record)
            try:
                outcome = self.submit_capture(leader_id, reported_id, fields, actor, source=source)
            except StorageError:
                raise
            except ExactDuplicate as exc:
                summary.rejected_duplicates += 1
                summary.rows.append(
                    BatchRowOutcome(row=row_number, status=CaptureStatus.REJECTED_DUPLICATE.value,
                                    error=exc.message, code=exc.code)
                )
            except ReconciliationError as exc:
                summary.errors += 1
                summary.rows.append(
                    BatchRowOutcome(row=row_number, status=CaptureStatus.ERROR.value, error=exc.message, code=exc.code)
                )
            else:
                summary.processed += 1
                kinds = [incident["kind"] for incident in outcome.incidents]
                summary.incidents_by_kind.update(kinds)
                summary.rows.append(
                    BatchRowOutcome(
                        row=row_number,
                        status=outcome.status.value,
                        capture_id=outcome.capture_id,
                        canonical_id=outcome.canonical_id,
                        incidents=kinds,
                    )
                )

        current_app.logger.info(
            "Batch ingest finished: %s processed, %s duplicates, %s errors",
            summary.processed,
            summary.rejected_duplicates,
            summary.errors,
            extra={"source": source, "total": summary.total},
        )
        return summary

    # ------------------------------------------------------------------
    # Assignments and incidents
    # ------------------------------------------------------------------

    def assign(self, voter_id: object, leader_id: object, actor: str | None) -> Assignment:
        voter_key = self._identifier(voter_id, "voterId")
        leader_key = self._identifier(leader_id, "leaderId")
        with transaction(self.session):
            assignment = self.assignments.assign(voter_key, leader_key, actor)
        return assignment

    def unassign(self, voter_id: object, leader_id: object, actor: str | None) -> None:
        voter_key = self._identifier(voter_id, "voterId")
        leader_key = self._identifier(leader_id, "leaderId")
        with transaction(self.session):
            self.assignments.unassign(voter_key, leader_key, actor)

    def reassign_voter(
        self,
        voter_id: object,
        from_leader: object,
        to_leader: object,
        actor: str | None,
        *,
        note: str | None = None,
    ) -> Incident:
        """Move a voter between leaders; ``first_leader`` is left untouched."""

        voter_key = self._identifier(voter_id, "voterId")
        from_key = self._identifier(from_leader, "fromLeaderId")
        to_key = self._identifier(to_leader, "toLeaderId")

        with transaction(self.session):
            if self.session.get(CanonicalVoter, voter_key) is None:
                raise NotFound(f"Voter '{voter_key}' not found.", identifier=voter_key)
            kept = from_key == to_key
            if kept:
                if self.session.get(Leader, to_key) is None:
                    raise NotFound(f"Leader '{to_key}' not found.", identifier=to_key)
                if not self.assignments.is_assigned(voter_key, to_key):
                    raise NotAssigned(
                        f"Voter '{voter_key}' is not assigned to leader '{to_key}'.",
                        voterId=voter_key,
                        leaderId=to_key,
                    )
                detail = note or f"Voter {voter_key} kept with leader {to_key} after review."
            else:
                self.assignments.unassign(voter_key, from_key, actor)
                self.assignments.assign(voter_key, to_key, actor)
                detail = note or f"Voter {voter_key} reassigned from leader {from_key} to {to_key}."

            incident = self.detector.record_manual(
                voter_key, detail, actor, leader_before=from_key, leader_after=to_key
            )
            self.audit.log_action(
                EntityKind.VOTER,
                voter_key,
                ActionType.REASSIGN,
                actor,
                {"from": from_key, "to": to_key, "kept": kept, "incident_id": incident.id},
            )
        ReconciliationMonitoring.record_incident(kind=incident.kind.value)
        return incident

    def record_manual_incident(
        self,
        voter_id: object,
        detail: str | None,
        actor: str | None,
        *,
        leader_before: str | None = None,
        leader_after: str | None = None,
    ) -> Incident:
        voter_key = self._identifier(voter_id, "voterId")
        with transaction(self.session):
            incident = self.detector.record_manual(
                voter_key, detail, actor, leader_before=leader_before, leader_after=leader_after
            )
            self.audit.log_action(
                EntityKind.INCIDENT,
                incident.id,
                ActionType.CREATE,
                actor,
                {"kind": incident.kind.value, "voter": voter_key},
            )
        ReconciliationMonitoring.record_incident(kind=incident.kind.value)
        return incident

    # ------------------------------------------------------------------
    # Renames and canonical edits
    # ------------------------------------------------------------------

    def rename_leader(self, old_id: object, new_id: object, actor: str | None) -> RenameResult:
        return self._rename(EntityKind.LEADER, old_id, new_id, actor)

    def rename_voter(self, old_id: object, new_id: object, actor: str | None) -> RenameResult:
        return self._rename(EntityKind.VOTER, old_id, new_id, actor)

    def rename_sponsor(self, old_id: object, new_id: object, actor: str | None) -> RenameResult:
        return self._rename(EntityKind.SPONSOR, old_id, new_id, actor)

    def update_voter(
        self,
        voter_id: object,
        fields: Mapping[str, object] | None,
        actor: str | None,
        *,
        new_identifier: object | None = None,
    ) -> CanonicalVoter:
        """Explicit canonical edit; present keys overwrite, empty values clear."""

        voter_key = self._identifier(voter_id, "identifier")
        target_key = self._identifier(new_identifier, "identifier") if new_identifier not in (None, "") else voter_key
        if fields is not None and not isinstance(fields, Mapping):
            raise ValidationError("fields must be an object of voter values.")

        alias_map = get_alias_map()
        specs = {spec.name: spec for spec in CAPTURE_FIELDS}
        requested: dict[str, str | None] = {}
        for raw_key, value in (fields or {}).items():
            canonical = alias_map.get(normalize_header(raw_key))
            if canonical is not None:
                requested[canonical] = specs[canonical].normalizer(value)

        with transaction(self.session):
            voter = self.session.get(CanonicalVoter, voter_key)
            if voter is None:
                raise NotFound(f"Voter '{voter_key}' not found.", identifier=voter_key)

            changes = {}
            for name, value in requested.items():
                previous = getattr(voter, name)
                if previous != value:
                    changes[name] = {"old": previous, "new": value}
                    setattr(voter, name, value)
            if changes:
                self.session.flush()
                self.audit.log_action(EntityKind.VOTER, voter_key, ActionType.UPDATE, actor, {"changes": changes})

            if target_key != voter_key:
                self.renamer.rename(EntityKind.VOTER, voter_key, target_key, actor)
        return self.session.get(CanonicalVoter, target_key)

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    def soft_delete(self, kind: str | EntityKind, identifier: object, actor: str | None, reason: str | None):
        target = resolve_archive_target(kind)
        key = self._identifier(identifier, "identifier")
        with transaction(self.session):
            archived = self.archive.soft_delete(target.kind, key, actor, reason)
        ReconciliationMonitoring.record_soft_delete(kind=target.kind.value)
        current_app.logger.info("Soft-deleted %s %s", target.kind.value, key, extra={"actor": actor})
        return archived

    def soft_delete_many(
        self, kind: str | EntityKind, identifiers: Iterable[object] | None, actor: str | None, reason: str | None
    ) -> list:
        target = resolve_archive_target(kind)
        if identifiers is None or isinstance(identifiers, (str, bytes)) or not isinstance(identifiers, Iterable):
            raise ValidationError("ids must be a list of identifiers.")
        keys = [self._identifier(identifier, "ids[]") for identifier in identifiers]
        with transaction(self.session):
            archived = self.archive.soft_delete_many(target.kind, keys, actor, reason)
        ReconciliationMonitoring.record_soft_delete(kind=target.kind.value, count=len(archived))
        current_app.logger.info(
            "Soft-deleted %s %s record(s)", len(archived), target.kind.value, extra={"actor": actor}
        )
        return archived

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _identifier(self, value: object, label: str) -> str:
        return normalize_identifier(value, label=label, max_length=self.identifier_max_length)

    def _rename(self, kind: EntityKind, old_id: object, new_id: object, actor: str | None) -> RenameResult:
        old_key = self._identifier(old_id, "identifier")
        new_key = self._identifier(new_id, "newIdentifier")
        try:
            with transaction(self.session):
                result = self.renamer.rename(kind, old_key, new_key, actor)
        except ReconciliationError:
            ReconciliationMonitoring.record_rename(kind=kind.value, status="rejected")
            raise
        ReconciliationMonitoring.record_rename(kind=kind.value, status="renamed" if result.changed else "noop")
        if result.changed:
            current_app.logger.info("Renamed %s %s to %s", kind.value, old_key, new_key, extra=result.updated)
        return result

    def _finish_rejection(
        self,
        error: ReconciliationError,
        status: CaptureStatus | None,
        leader_key: str,
        reported_key: str,
        payload: Mapping[str, Any],
        normalized: Mapping[str, Any],
        content_hash: str,
        actor: str | None,
        source: str,
        started: float,
    ) -> None:
        status = status or CaptureStatus.ERROR
        if self.log_rejections:
            try:
                self.captures.append(
                    leader_identifier=leader_key,
                    reported_identifier=reported_key,
                    payload=payload,
                    normalized=normalized,
                    content_hash=content_hash,
                    status=status,
                    actor=actor,
                    source=source,
                    canonical_identifier=error.details.get("canonicalId"),
                    error_detail=f"{error.code}: {error.message}",
                )
                self.session.commit()
            except SQLAlchemyError:
                self.session.rollback()
                current_app.logger.exception(
                    "Unable to append rejected capture for leader %s / %s", leader_key, reported_key
                )
        ReconciliationMonitoring.record_capture(
            status=status.value, source=source, duration_seconds=time.perf_counter() - started
        )
        current_app.logger.warning(
            "Capture rejected (%s) for leader %s / %s: %s",
            error.code,
            leader_key,
            reported_key,
            error.message,
            extra={"status": status.value, "source": source},
        )
