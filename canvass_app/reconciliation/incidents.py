"""
Incident classification for reconciled captures.

Exact duplicates never reach the detector: the capture store rejects them
before any state is written. The remaining rules are evaluated in order and
at most one incident is emitted per capture.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy.orm import Session

from canvass_app.models import CanonicalVoter, Incident, IncidentKind, Leader, db
from canvass_app.models.base import utcnow

from .errors import NotFound, ValidationError
from .variants import VariantOutcome


@dataclass(slots=True)
class ClassificationContext:
    """Everything the detector needs to know about one reconciled capture."""

    voter_identifier: str
    leader_identifier: str
    prior_leaders: Sequence[str]
    variant_outcome: VariantOutcome
    assignment_created: bool
    capture_id: int | None = None
    actor: str | None = None

    @property
    def other_leaders(self) -> list[str]:
        return [leader for leader in self.prior_leaders if leader != self.leader_identifier]

    @property
    def already_assigned(self) -> bool:
        return self.leader_identifier in self.prior_leaders


@dataclass(slots=True)
class Classification:
    kind: IncidentKind | None
    leader_before: list[str] = field(default_factory=list)
    detail: str | None = None


def classify(context: ClassificationContext) -> Classification:
    """Pure rule evaluation; no database access."""

    if context.already_assigned and context.variant_outcome.conflict:
        changed = ", ".join(context.variant_outcome.changed_fields) or "fields"
        return Classification(
            kind=IncidentKind.DATA_CONFLICT,
            leader_before=[context.leader_identifier],
            detail=(
                f"Leader {context.leader_identifier} re-reported voter {context.voter_identifier} "
                f"with different data ({changed})."
            ),
        )

    others = context.other_leaders
    if context.assignment_created and others:
        return Classification(
            kind=IncidentKind.DUPLICATE_ACROSS_LEADERS,
            leader_before=others,
            detail=(
                f"Voter {context.voter_identifier} reported by leader {context.leader_identifier} "
                f"is already assigned to {', '.join(others)}."
            ),
        )

    return Classification(kind=None)


class IncidentDetector:
    """Persists incidents and keeps the per-leader duplicate log in step."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session

    def detect(self, context: ClassificationContext) -> list[Incident]:
        result = classify(context)
        if result.kind is None:
            return []

        incident = Incident(
            kind=result.kind,
            voter_identifier=context.voter_identifier,
            leader_before=",".join(result.leader_before) or None,
            leader_after=context.leader_identifier,
            capture_id=context.capture_id,
            detail=result.detail,
            actor=context.actor,
        )
        self.session.add(incident)
        self._append_duplicate_log(result.leader_before, incident)
        self.session.flush()
        return [incident]

    def record_manual(
        self,
        voter_identifier: str,
        detail: str | None,
        actor: str | None,
        *,
        leader_before: str | None = None,
        leader_after: str | None = None,
    ) -> Incident:
        if detail is None or not str(detail).strip():
            raise ValidationError("detail is required for a manual incident.")
        if self.session.get(CanonicalVoter, voter_identifier) is None:
            raise NotFound(f"Voter '{voter_identifier}' not found.", identifier=voter_identifier)

        incident = Incident(
            kind=IncidentKind.MANUAL,
            voter_identifier=voter_identifier,
            leader_before=leader_before,
            leader_after=leader_after,
            detail=str(detail).strip(),
            actor=actor,
        )
        self.session.add(incident)
        self.session.flush()
        return incident

    def _append_duplicate_log(self, leader_identifiers: Sequence[str], incident: Incident) -> None:
        stamp = utcnow().strftime("%Y-%m-%d %H:%M")
        line = (
            f"{stamp} {incident.kind.value} voter={incident.voter_identifier} "
            f"before={incident.leader_before or '-'} after={incident.leader_after or '-'}"
        )
        for identifier in leader_identifiers:
            leader = self.session.get(Leader, identifier)
            if leader is not None:
                leader.append_duplicate_note(line)
