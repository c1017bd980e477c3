"""
Read-side helpers: filtered, paged listings and variant metrics.

The blueprints stay thin by delegating query construction and serialization
here; every listing returns a ``PageResult`` with ``limit``/``offset`` paging.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any, Callable, Mapping

from flask import current_app, has_app_context
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from canvass_app.models import (
    ActionLog,
    Assignment,
    CanonicalVoter,
    Capture,
    CaptureStatus,
    EntityKind,
    Incident,
    IncidentKind,
    Leader,
    Sponsor,
    Variant,
    db,
)

from .audit import resolve_archive_target
from .errors import NotFound, ValidationError
from .history import RenameHistory
from .orchestrator import serialize_incident

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


@dataclass(frozen=True)
class Page:
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @classmethod
    def coerce(cls, limit: object = None, offset: object = None) -> "Page":
        config = current_app.config if has_app_context() else {}
        default_limit = config.get("LIST_PAGE_SIZE_DEFAULT", DEFAULT_LIMIT)
        max_limit = config.get("LIST_PAGE_SIZE_MAX", MAX_LIMIT)
        resolved_limit = min(_coerce_non_negative_int(limit, "limit", fallback=default_limit), max_limit)
        if resolved_limit == 0:
            resolved_limit = default_limit
        return cls(limit=resolved_limit, offset=_coerce_non_negative_int(offset, "offset", fallback=0))


@dataclass(frozen=True)
class CaptureFilters:
    page: Page = Page()
    status: CaptureStatus | None = None
    leader: str | None = None
    reported: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    @classmethod
    def coerce(cls, args: Mapping[str, Any]) -> "CaptureFilters":
        date_from = _coerce_datetime(args.get("desde"))
        date_to = _coerce_datetime(args.get("hasta"), end_of_day=True)
        _check_range(date_from, date_to)
        return cls(
            page=Page.coerce(args.get("limit"), args.get("offset")),
            status=_coerce_enum(CaptureStatus, args.get("estado"), "estado"),
            leader=_clean(args.get("lider")),
            reported=_clean(args.get("cc")),
            date_from=date_from,
            date_to=date_to,
        )


@dataclass(frozen=True)
class VariantFilters:
    page: Page = Page()
    voter: str | None = None
    leader: str | None = None
    current_only: bool = False

    @classmethod
    def coerce(cls, args: Mapping[str, Any]) -> "VariantFilters":
        return cls(
            page=Page.coerce(args.get("limit"), args.get("offset")),
            voter=_clean(args.get("cc")),
            leader=_clean(args.get("lider")),
            current_only=_coerce_bool(args.get("current"), default=False),
        )


@dataclass(frozen=True)
class IncidentFilters:
    page: Page = Page()
    kind: IncidentKind | None = None
    voter: str | None = None
    leader: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    @classmethod
    def coerce(cls, args: Mapping[str, Any]) -> "IncidentFilters":
        date_from = _coerce_datetime(args.get("desde"))
        date_to = _coerce_datetime(args.get("hasta"), end_of_day=True)
        _check_range(date_from, date_to)
        return cls(
            page=Page.coerce(args.get("limit"), args.get("offset")),
            kind=_coerce_enum(IncidentKind, args.get("tipo"), "tipo"),
            voter=_clean(args.get("votante_id")),
            leader=_clean(args.get("lider_id")),
            date_from=date_from,
            date_to=date_to,
        )


@dataclass(slots=True)
class PageResult:
    items: list[dict[str, Any]]
    total: int
    limit: int
    offset: int

    def to_dict(self) -> dict[str, Any]:
        return {"items": self.items, "total": self.total, "limit": self.limit, "offset": self.offset}


class ReconciliationQueryService:
    """Facade for read queries with consistent filtering semantics."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session
        self.history = RenameHistory(self.session)

    # ------------------------------------------------------------------
    # Captures, variants, incidents
    # ------------------------------------------------------------------

    def list_captures(self, filters: CaptureFilters) -> PageResult:
        predicates = []
        if filters.status is not None:
            predicates.append(Capture.status == filters.status)
        if filters.leader:
            predicates.append(
                self.history.matches(EntityKind.LEADER, filters.leader, Capture.leader_identifier, Capture.created_at)
            )
        if filters.reported:
            predicates.append(Capture.reported_identifier == filters.reported)
        if filters.date_from:
            predicates.append(Capture.created_at >= filters.date_from)
        if filters.date_to:
            predicates.append(Capture.created_at <= filters.date_to)
        return self._paginate(Capture, predicates, Capture.id.desc(), filters.page, serialize_capture)

    def list_variants(self, filters: VariantFilters) -> PageResult:
        predicates = []
        if filters.voter:
            predicates.append(Variant.voter_identifier == filters.voter)
        if filters.leader:
            predicates.append(Variant.leader_identifier == filters.leader)
        if filters.current_only:
            predicates.append(and_(Variant.is_current.is_(True), Variant.archived_at.is_(None)))
        return self._paginate(Variant, predicates, Variant.id.desc(), filters.page, serialize_variant)

    def list_incidents(self, filters: IncidentFilters) -> PageResult:
        predicates = []
        if filters.kind is not None:
            predicates.append(Incident.kind == filters.kind)
        if filters.voter:
            predicates.append(
                self.history.matches(EntityKind.VOTER, filters.voter, Incident.voter_identifier, Incident.created_at)
            )
        if filters.leader:
            predicates.append(
                or_(
                    self.history.matches(
                        EntityKind.LEADER, filters.leader, Incident.leader_after, Incident.created_at
                    ),
                    self.history.list_matches(
                        EntityKind.LEADER, filters.leader, Incident.leader_before, Incident.created_at
                    ),
                )
            )
        if filters.date_from:
            predicates.append(Incident.created_at >= filters.date_from)
        if filters.date_to:
            predicates.append(Incident.created_at <= filters.date_to)
        return self._paginate(Incident, predicates, Incident.id.desc(), filters.page, serialize_incident)

    def variant_metrics(self, leader: str | None = None) -> dict[str, Any]:
        """
        Per-leader unique voters against total variants, plus cross-leader clusters.

        ``resubmission_rate`` is ``1 - unique_voters / total_variants``: the
        share of a leader's variants that re-report a voter already reported.
        """

        stmt = select(
            Variant.leader_identifier,
            func.count(func.distinct(Variant.voter_identifier)),
            func.count(Variant.id),
        ).where(Variant.archived_at.is_(None)).group_by(Variant.leader_identifier)
        if leader:
            stmt = stmt.where(Variant.leader_identifier == leader)

        leaders = []
        for leader_identifier, unique_voters, total_variants in self.session.execute(
            stmt.order_by(Variant.leader_identifier)
        ):
            rate = 1 - (unique_voters / total_variants) if total_variants else 0.0
            leaders.append(
                {
                    "leaderId": leader_identifier,
                    "uniqueVoters": unique_voters,
                    "totalVariants": total_variants,
                    "resubmissionRate": round(rate, 4),
                }
            )

        cluster_stmt = (
            select(Variant.voter_identifier)
            .where(Variant.is_current.is_(True), Variant.archived_at.is_(None))
            .group_by(Variant.voter_identifier)
            .having(func.count(func.distinct(Variant.leader_identifier)) >= 2)
        )
        if leader:
            cluster_stmt = cluster_stmt.where(
                Variant.voter_identifier.in_(
                    select(Variant.voter_identifier).where(
                        Variant.leader_identifier == leader, Variant.archived_at.is_(None)
                    )
                )
            )
        voter_ids = list(self.session.execute(cluster_stmt.order_by(Variant.voter_identifier)).scalars())

        clusters = []
        if voter_ids:
            member_rows = self.session.execute(
                select(Variant.voter_identifier, Variant.leader_identifier)
                .where(
                    and_(
                        Variant.is_current.is_(True),
                        Variant.archived_at.is_(None),
                        Variant.voter_identifier.in_(voter_ids),
                    )
                )
                .order_by(Variant.voter_identifier, Variant.leader_identifier)
            )
            grouped: dict[str, list[str]] = {voter_id: [] for voter_id in voter_ids}
            for voter_identifier, leader_identifier in member_rows:
                grouped[voter_identifier].append(leader_identifier)
            clusters = [{"voterId": voter_id, "leaders": members} for voter_id, members in grouped.items()]

        return {"leaders": leaders, "clusters": clusters}

    # ------------------------------------------------------------------
    # Catalog reads
    # ------------------------------------------------------------------

    def list_leaders(self, page: Page, *, sponsor: str | None = None) -> PageResult:
        predicates = [Leader.sponsor_identifier == sponsor] if sponsor else []
        return self._paginate(Leader, predicates, Leader.identifier.asc(), page, self._serialize_leader_row)

    def get_leader(self, identifier: str) -> dict[str, Any]:
        leader = self.session.get(Leader, identifier)
        if leader is None:
            raise NotFound(f"Leader '{identifier}' not found.", identifier=identifier)
        payload = self._serialize_leader_row(leader)
        payload["duplicateLog"] = leader.duplicate_log
        return payload

    def leader_distribution(self) -> list[dict[str, Any]]:
        stmt = (
            select(Leader.identifier, Leader.first_name, Leader.last_name, func.count(Assignment.id))
            .select_from(Leader)
            .outerjoin(
                Assignment,
                and_(Assignment.leader_identifier == Leader.identifier, Assignment.archived_at.is_(None)),
            )
            .group_by(Leader.identifier, Leader.first_name, Leader.last_name)
            .order_by(func.count(Assignment.id).desc(), Leader.identifier.asc())
        )
        return [
            {
                "leaderId": identifier,
                "name": " ".join(part for part in (first_name, last_name) if part),
                "voters": count,
            }
            for identifier, first_name, last_name, count in self.session.execute(stmt)
        ]

    def list_voters(self, page: Page, *, leader: str | None = None) -> PageResult:
        predicates = []
        if leader:
            predicates.append(
                CanonicalVoter.identifier.in_(
                    select(Assignment.voter_identifier).where(
                        Assignment.leader_identifier == leader, Assignment.archived_at.is_(None)
                    )
                )
            )
        return self._paginate(
            CanonicalVoter, predicates, CanonicalVoter.identifier.asc(), page, self._serialize_voter_row
        )

    def get_voter(self, identifier: str) -> dict[str, Any]:
        voter = self.session.get(CanonicalVoter, identifier)
        if voter is None:
            raise NotFound(f"Voter '{identifier}' not found.", identifier=identifier)
        payload = self._serialize_voter_row(voter)
        variants = self.session.execute(
            select(Variant)
            .where(
                Variant.voter_identifier == identifier,
                Variant.is_current.is_(True),
                Variant.archived_at.is_(None),
            )
            .order_by(Variant.leader_identifier)
        ).scalars()
        payload["currentVariants"] = [serialize_variant(variant) for variant in variants]
        return payload

    def list_sponsors(self, page: Page) -> PageResult:
        return self._paginate(Sponsor, [], Sponsor.identifier.asc(), page, serialize_sponsor)

    def list_archived(self, kind: str, page: Page) -> PageResult:
        target = resolve_archive_target(kind)
        model = target.archive_model
        return self._paginate(model, [], model.deleted_at.desc(), page, serialize_archived)

    def list_actions(self, page: Page, *, entity_kind: str | None = None, entity_id: str | None = None) -> PageResult:
        predicates = []
        if entity_kind:
            predicates.append(ActionLog.entity_kind == entity_kind.strip().lower())
        if entity_id:
            predicates.append(ActionLog.entity_id == entity_id.strip())
        return self._paginate(ActionLog, predicates, ActionLog.id.desc(), page, serialize_action)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _paginate(
        self,
        model,
        predicates: list,
        order_by,
        page: Page,
        serializer: Callable[[Any], dict[str, Any]],
    ) -> PageResult:
        count_stmt = select(func.count()).select_from(model)
        stmt = select(model)
        if predicates:
            count_stmt = count_stmt.where(and_(*predicates))
            stmt = stmt.where(and_(*predicates))
        total = self.session.execute(count_stmt).scalar_one()
        rows = self.session.execute(stmt.order_by(order_by).offset(page.offset).limit(page.limit)).scalars()
        return PageResult(items=[serializer(row) for row in rows], total=total, limit=page.limit, offset=page.offset)

    def _serialize_leader_row(self, leader: Leader) -> dict[str, Any]:
        voters = self.session.execute(
            select(func.count())
            .select_from(Assignment)
            .where(Assignment.leader_identifier == leader.identifier, Assignment.archived_at.is_(None))
        ).scalar_one()
        return {
            "identifier": leader.identifier,
            "firstName": leader.first_name,
            "lastName": leader.last_name,
            "phone": leader.phone,
            "email": leader.email,
            "sponsorId": leader.sponsor_identifier,
            "objective": leader.objective,
            "assignedVoters": voters,
            "createdAt": _isoformat(leader.created_at),
        }

    def _serialize_voter_row(self, voter: CanonicalVoter) -> dict[str, Any]:
        leaders = self.session.execute(
            select(Assignment.leader_identifier)
            .where(Assignment.voter_identifier == voter.identifier, Assignment.archived_at.is_(None))
            .order_by(Assignment.created_at.asc(), Assignment.id.asc())
        ).scalars()
        return {
            "identifier": voter.identifier,
            "firstName": voter.first_name,
            "lastName": voter.last_name,
            "address": voter.address,
            "phone": voter.phone,
            "email": voter.email,
            "firstLeaderId": voter.first_leader_identifier,
            "leaders": list(leaders),
            "createdAt": _isoformat(voter.created_at),
        }


# -------------------------------------------------------------------------
# Serializers
# -------------------------------------------------------------------------


def serialize_capture(capture: Capture) -> dict[str, Any]:
    return {
        "id": capture.id,
        "leaderId": capture.leader_identifier,
        "reportedId": capture.reported_identifier,
        "canonicalId": capture.canonical_identifier,
        "status": capture.status.value,
        "fields": capture.normalized_json or {},
        "contentHash": capture.content_hash,
        "source": capture.source,
        "actor": capture.actor,
        "error": capture.error_detail,
        "createdAt": _isoformat(capture.created_at),
    }


def serialize_variant(variant: Variant) -> dict[str, Any]:
    return {
        "id": variant.id,
        "voterId": variant.voter_identifier,
        "leaderId": variant.leader_identifier,
        "firstName": variant.first_name,
        "lastName": variant.last_name,
        "address": variant.address,
        "phone": variant.phone,
        "email": variant.email,
        "isCurrent": variant.is_current,
        "captureId": variant.capture_id,
        "supersededAt": _isoformat(variant.superseded_at),
        "archivedAt": _isoformat(variant.archived_at),
        "createdAt": _isoformat(variant.created_at),
    }


def serialize_sponsor(sponsor: Sponsor) -> dict[str, Any]:
    return {
        "identifier": sponsor.identifier,
        "firstName": sponsor.first_name,
        "lastName": sponsor.last_name,
        "phone": sponsor.phone,
        "email": sponsor.email,
        "createdAt": _isoformat(sponsor.created_at),
    }


def serialize_archived(archived) -> dict[str, Any]:
    return {
        "id": archived.id,
        "identifier": archived.identifier,
        "firstName": archived.first_name,
        "lastName": archived.last_name,
        "deletedBy": archived.deleted_by,
        "reason": archived.deletion_reason,
        "deletedAt": _isoformat(archived.deleted_at),
        "snapshot": archived.snapshot_json,
    }


def serialize_action(entry: ActionLog) -> dict[str, Any]:
    return {
        "id": entry.id,
        "entityKind": entry.entity_kind,
        "entityId": entry.entity_id,
        "action": entry.action.value,
        "actor": entry.actor,
        "detail": entry.detail_json,
        "createdAt": _isoformat(entry.created_at),
    }


# -------------------------------------------------------------------------
# Helper functions
# -------------------------------------------------------------------------


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _clean(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _coerce_non_negative_int(candidate: object, label: str, *, fallback: int) -> int:
    if candidate in (None, ""):
        return fallback
    if isinstance(candidate, int) and not isinstance(candidate, bool):
        value = candidate
    elif isinstance(candidate, str) and candidate.strip().isdigit():
        value = int(candidate.strip())
    else:
        raise ValidationError(f"Expected a non-negative integer for '{label}', received '{candidate}'.")
    if value < 0:
        raise ValidationError(f"Expected a non-negative integer for '{label}', received '{candidate}'.")
    return value


def _coerce_enum(enum_cls, value: object, label: str):
    token = _clean(value)
    if token is None:
        return None
    try:
        return enum_cls(token.upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Unsupported {label} '{value}'. Use one of: {allowed}.") from None


def _coerce_datetime(candidate: object, *, end_of_day: bool = False) -> datetime | None:
    if candidate in (None, ""):
        return None
    if isinstance(candidate, datetime):
        return candidate if candidate.tzinfo else candidate.replace(tzinfo=timezone.utc)
    text = str(candidate).strip()
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"):
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if fmt == "%Y-%m-%d":
            parsed = datetime.combine(parsed.date(), time.max if end_of_day else time.min)
        return parsed.replace(tzinfo=timezone.utc)
    raise ValidationError(f"Unable to parse datetime value '{candidate}'. Expected ISO-like formats.")


def _check_range(date_from: datetime | None, date_to: datetime | None) -> None:
    if date_from and date_to and date_from > date_to:
        raise ValidationError("desde must be before hasta.")


def _coerce_bool(candidate: object, *, default: bool) -> bool:
    if candidate is None:
        return default
    if isinstance(candidate, bool):
        return candidate
    normalized = str(candidate).strip().lower()
    if normalized in ("1", "true", "yes", "y", "on", "si"):
        return True
    if normalized in ("0", "false", "no", "n", "off"):
        return False
    return default
