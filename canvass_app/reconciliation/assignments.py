"""Voter/leader assignments and the first-leader provenance fact."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from canvass_app.models import ActionType, Assignment, CanonicalVoter, EntityKind, Leader, db

from .audit import AuditTrail
from .errors import AlreadyAssigned, NotAssigned, NotFound


class AssignmentManager:
    """
    Sole writer of voter/leader linkage.

    Assignments archived with a deleted voter or leader are ignored by every
    lookup here.
    """

    def __init__(self, session: Session | None = None, audit: AuditTrail | None = None) -> None:
        self.session: Session = session or db.session
        self.audit = audit or AuditTrail(self.session)

    def get(self, voter_identifier: str, leader_identifier: str) -> Assignment | None:
        stmt = select(Assignment).where(
            Assignment.voter_identifier == voter_identifier,
            Assignment.leader_identifier == leader_identifier,
            Assignment.archived_at.is_(None),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def is_assigned(self, voter_identifier: str, leader_identifier: str) -> bool:
        return self.get(voter_identifier, leader_identifier) is not None

    def leaders_for(self, voter_identifier: str) -> list[str]:
        stmt = (
            select(Assignment.leader_identifier)
            .where(Assignment.voter_identifier == voter_identifier, Assignment.archived_at.is_(None))
            .order_by(Assignment.created_at.asc(), Assignment.id.asc())
        )
        return list(self.session.execute(stmt).scalars())

    def assign(self, voter_identifier: str, leader_identifier: str, actor: str | None) -> Assignment:
        voter = self.session.get(CanonicalVoter, voter_identifier)
        if voter is None:
            raise NotFound(f"Voter '{voter_identifier}' not found.", identifier=voter_identifier)
        if self.session.get(Leader, leader_identifier) is None:
            raise NotFound(f"Leader '{leader_identifier}' not found.", identifier=leader_identifier)
        if self.is_assigned(voter_identifier, leader_identifier):
            raise AlreadyAssigned(
                f"Voter '{voter_identifier}' is already assigned to leader '{leader_identifier}'.",
                voterId=voter_identifier,
                leaderId=leader_identifier,
            )

        assignment = Assignment(
            voter_identifier=voter_identifier,
            leader_identifier=leader_identifier,
            assigned_by=actor,
        )
        self.session.add(assignment)

        first_leader_set = False
        if voter.first_leader_identifier is None:
            voter.first_leader_identifier = leader_identifier
            first_leader_set = True

        self.session.flush()
        self.audit.log_action(
            EntityKind.ASSIGNMENT,
            f"{voter_identifier}:{leader_identifier}",
            ActionType.ASSIGN,
            actor,
            {"voter": voter_identifier, "leader": leader_identifier, "first_leader_set": first_leader_set},
        )
        return assignment

    def unassign(self, voter_identifier: str, leader_identifier: str, actor: str | None) -> None:
        assignment = self.get(voter_identifier, leader_identifier)
        if assignment is None:
            raise NotAssigned(
                f"Voter '{voter_identifier}' is not assigned to leader '{leader_identifier}'.",
                voterId=voter_identifier,
                leaderId=leader_identifier,
            )
        self.session.delete(assignment)
        self.session.flush()
        self.audit.log_action(
            EntityKind.ASSIGNMENT,
            f"{voter_identifier}:{leader_identifier}",
            ActionType.UNASSIGN,
            actor,
            {"voter": voter_identifier, "leader": leader_identifier},
        )
