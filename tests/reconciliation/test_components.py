"""Component-level behaviour, exercised without the orchestrator."""

import pytest

from canvass_app.models import ActionLog, ActionType, Assignment, CanonicalVoter, IncidentKind, Variant, db
from canvass_app.reconciliation import (
    AlreadyAssigned,
    AssignmentManager,
    CanonicalResolver,
    NotAssigned,
    NotFound,
    VariantRecorder,
)
from canvass_app.reconciliation.contracts import compute_content_hash
from canvass_app.reconciliation.incidents import ClassificationContext, classify
from canvass_app.reconciliation.variants import VariantOutcome


def _voter(identifier="V1", **fields):
    voter = CanonicalVoter(identifier=identifier, **fields)
    db.session.add(voter)
    db.session.commit()
    return voter


def test_resolver_creates_voter_once_and_never_overwrites(app):
    resolver = CanonicalResolver()

    voter, created = resolver.resolve("123", {"first_name": "ANA"}, actor="op-1")
    db.session.commit()
    again, created_again = resolver.resolve("123", {"first_name": "ANA MARIA"}, actor="op-1")

    assert created is True
    assert created_again is False
    assert again is voter
    assert again.first_name == "ANA"
    assert voter.first_leader_identifier is None
    creates = db.session.query(ActionLog).filter_by(entity_kind="voter", action=ActionType.CREATE).count()
    assert creates == 1


def test_variant_recorder_keeps_single_current_row(app, leader_factory):
    leader_factory("L1")
    _voter()
    recorder = VariantRecorder()

    first = recorder.record("V1", "L1", {"first_name": "ANA"}, content_hash=compute_content_hash({"first_name": "ANA"}))
    same = recorder.record("V1", "L1", {"first_name": "ANA"}, content_hash=compute_content_hash({"first_name": "ANA"}))
    changed = recorder.record(
        "V1", "L1", {"first_name": "ANA MARIA"}, content_hash=compute_content_hash({"first_name": "ANA MARIA"})
    )
    db.session.commit()

    assert first.created and not first.conflict
    assert not same.created and not same.conflict
    assert changed.created and changed.conflict
    assert changed.changed_fields == ["first_name"]

    history = recorder.history("V1", "L1")
    assert [variant.is_current for variant in history] == [False, True]
    assert history[0].superseded_at is not None
    assert recorder.current_for("V1", "L1").first_name == "ANA MARIA"


def test_assignment_sets_first_leader_once(app, leader_factory):
    leader_factory("L1")
    leader_factory("L2")
    voter = _voter()
    manager = AssignmentManager()

    manager.assign("V1", "L1", "op-1")
    manager.unassign("V1", "L1", "op-1")
    manager.assign("V1", "L2", "op-1")
    db.session.commit()

    assert voter.first_leader_identifier == "L1"
    assert manager.leaders_for("V1") == ["L2"]


def test_assignment_errors(app, leader_factory):
    leader_factory("L1")
    _voter()
    manager = AssignmentManager()
    manager.assign("V1", "L1", "op-1")

    with pytest.raises(AlreadyAssigned):
        manager.assign("V1", "L1", "op-1")
    with pytest.raises(NotFound):
        manager.assign("V1", "L404", "op-1")
    with pytest.raises(NotFound):
        manager.assign("V404", "L1", "op-1")
    with pytest.raises(NotAssigned):
        manager.unassign("V1", "L2", "op-1")
    assert db.session.query(Assignment).count() == 1


def _context(prior, *, assignment_created, conflict=False):
    variant = Variant(voter_identifier="V1", leader_identifier="L2", first_name="ANA")
    previous = Variant(voter_identifier="V1", leader_identifier="L2", first_name="ANNA") if conflict else None
    return ClassificationContext(
        voter_identifier="V1",
        leader_identifier="L2",
        prior_leaders=prior,
        variant_outcome=VariantOutcome(variant=variant, created=True, conflict=conflict, previous=previous),
        assignment_created=assignment_created,
    )


def test_classify_first_report_has_no_incident():
    assert classify(_context([], assignment_created=True)).kind is None


def test_classify_cross_leader_duplicate_references_prior_leaders():
    result = classify(_context(["L1", "L3"], assignment_created=True))

    assert result.kind is IncidentKind.DUPLICATE_ACROSS_LEADERS
    assert result.leader_before == ["L1", "L3"]


def test_classify_conflict_requires_existing_assignment():
    result = classify(_context(["L2"], assignment_created=False, conflict=True))

    assert result.kind is IncidentKind.DATA_CONFLICT
    assert "first_name" in result.detail


def test_classify_resubmission_without_change_is_quiet():
    assert classify(_context(["L2"], assignment_created=False)).kind is None
