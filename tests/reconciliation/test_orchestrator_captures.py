"""End-to-end capture reconciliation through the orchestrator."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from canvass_app.models import (
    ActionLog,
    ActionType,
    Assignment,
    CanonicalVoter,
    Capture,
    CaptureStatus,
    Incident,
    IncidentKind,
    Leader,
    Variant,
    db,
)
from canvass_app.reconciliation import (
    BatchSummary,
    CaptureState,
    ExactDuplicate,
    NotFound,
    ReconciliationOrchestrator,
    StorageError,
    ValidationError,
)
from canvass_app.reconciliation.adapters import CSVDecodeError
from canvass_app.reconciliation.contracts import compute_content_hash, normalize_fields


def _counts():
    return {
        "variants": db.session.query(Variant).count(),
        "assignments": db.session.query(Assignment).count(),
        "incidents": db.session.query(Incident).count(),
    }


def test_first_capture_creates_voter_variant_and_assignment(two_leaders, capture):
    outcome = capture("L1", "123", name="ana")

    voter = db.session.get(CanonicalVoter, "123")
    assert outcome.status is CaptureStatus.PROCESSED
    assert outcome.canonical_id == "123"
    assert outcome.incidents == []
    assert outcome.voter_created and outcome.assignment_created
    assert outcome.states[-1] is CaptureState.COMMITTED
    assert voter.first_name == "ANA"
    assert voter.first_leader_identifier == "L1"
    assert db.session.get(Capture, outcome.capture_id).canonical_identifier == "123"


def test_identical_resubmission_is_rejected_without_side_effects(two_leaders, capture):
    first = capture("L1", "123", name="ANA")
    before = _counts()

    with pytest.raises(ExactDuplicate) as excinfo:
        capture("L1", "123", nombre="  ana ")

    assert excinfo.value.details["captureId"] == first.capture_id
    assert excinfo.value.to_dict()["tipo_incidencia"] == "EXACT_DUPLICATE"
    assert _counts() == before
    statuses = [row.status for row in db.session.query(Capture).order_by(Capture.id)]
    assert statuses == [CaptureStatus.PROCESSED, CaptureStatus.REJECTED_DUPLICATE]


def test_rejection_rows_can_be_disabled(two_leaders, capture):
    capture("L1", "123", name="ANA")
    quiet = ReconciliationOrchestrator(log_rejections=False)

    with pytest.raises(ExactDuplicate):
        quiet.submit_capture("L1", "123", {"name": "ANA"}, "op-1")

    assert db.session.query(Capture).count() == 1


def test_unknown_leader_is_rejected_with_error_row(app, capture):
    with pytest.raises(NotFound):
        capture("L404", "123", name="ANA")

    rows = db.session.query(Capture).all()
    assert len(rows) == 1
    assert rows[0].status is CaptureStatus.ERROR
    assert db.session.get(CanonicalVoter, "123") is None


@pytest.mark.parametrize(
    "leader_id, reported_id, fields",
    [
        ("L1", "", {"name": "ANA"}),
        ("L1", "12 3", {"name": "ANA"}),
        (None, "123", {"name": "ANA"}),
        ("L1", "123", {}),
        ("L1", "123", {"unknown": "value"}),
        ("L1", "123", "ANA"),
    ],
)
def test_malformed_capture_writes_nothing(two_leaders, orchestrator, leader_id, reported_id, fields):
    with pytest.raises(ValidationError):
        orchestrator.submit_capture(leader_id, reported_id, fields, "op-1")

    assert db.session.query(Capture).count() == 0
    assert db.session.query(CanonicalVoter).count() == 0


def test_changed_report_from_same_leader_raises_data_conflict(two_leaders, capture):
    capture("L1", "123", name="ANA")

    outcome = capture("L1", "123", name="ANA MARIA")

    assert [incident["kind"] for incident in outcome.incidents] == ["DATA_CONFLICT"]
    variants = db.session.query(Variant).filter_by(voter_identifier="123", leader_identifier="L1").order_by(Variant.id)
    assert [variant.is_current for variant in variants] == [False, True]
    assert db.session.query(Incident).filter_by(kind=IncidentKind.DATA_CONFLICT).count() == 1
    # Canonical data is only changed by explicit edits.
    assert db.session.get(CanonicalVoter, "123").first_name == "ANA"


def test_second_leader_creates_cross_leader_incident(two_leaders, capture):
    capture("L1", "123", name="ANA")

    outcome = capture("L2", "123", name="ANA")

    assert outcome.assignment_created
    incident = db.session.query(Incident).one()
    assert incident.kind is IncidentKind.DUPLICATE_ACROSS_LEADERS
    assert incident.leader_before == "L1"
    assert incident.leader_after == "L2"
    assert "DUPLICATE_ACROSS_LEADERS" in db.session.get(Leader, "L1").duplicate_log


def test_ana_scenario(two_leaders, capture):
    first = capture("L1", "123", name="ANA")
    assert first.incidents == []

    with pytest.raises(ExactDuplicate):
        capture("L1", "123", name="ANA")

    conflict = capture("L1", "123", name="ANA MARIA")
    assert [incident["kind"] for incident in conflict.incidents] == ["DATA_CONFLICT"]
    current = (
        db.session.query(Variant)
        .filter_by(voter_identifier="123", leader_identifier="L1", is_current=True)
        .one()
    )
    assert current.first_name == "ANA MARIA"

    cross = capture("L2", "123", name="ANA")
    assert cross.assignment_created
    assert [incident["kind"] for incident in cross.incidents] == ["DUPLICATE_ACROSS_LEADERS"]
    assert cross.incidents[0]["leaderBefore"] == "L1"
    assert cross.incidents[0]["leaderAfter"] == "L2"

    voter = db.session.get(CanonicalVoter, "123")
    assert voter.first_leader_identifier == "L1"
    leaders = sorted(a.leader_identifier for a in db.session.query(Assignment).filter_by(voter_identifier="123"))
    assert leaders == ["L1", "L2"]
    kinds = sorted(incident.kind.value for incident in db.session.query(Incident))
    assert kinds == ["DATA_CONFLICT", "DUPLICATE_ACROSS_LEADERS"]


def test_each_pair_keeps_exactly_one_current_variant(two_leaders, capture):
    for name in ("ANA", "ANA MARIA", "ANNA", "ANA"):
        try:
            capture("L1", "123", name=name)
        except ExactDuplicate:
            pass
    capture("L2", "123", name="ANA")
    capture("L2", "123", name="ANA M")

    for leader in ("L1", "L2"):
        current = db.session.query(Variant).filter_by(voter_identifier="123", leader_identifier=leader, is_current=True)
        assert current.count() == 1


def test_batch_ingest_counts_outcomes_in_order(two_leaders, orchestrator):
    records = [
        {"lider": "L1", "cc": "123", "nombres": "ANA"},
        {"lider": "L1", "cc": "123", "nombres": "ana"},
        {"lider": "L404", "cc": "124", "nombres": "LUIS"},
        {"leaderId": "L2", "reportedId": "123", "fields": {"first_name": "ANA"}},
        "not a record",
    ]

    summary = orchestrator.ingest_batch(records, "op-1", source="api-batch")

    assert summary.total == 5
    assert summary.processed == 2
    assert summary.rejected_duplicates == 1
    assert summary.errors == 2
    assert summary.incidents_by_kind == {"DUPLICATE_ACROSS_LEADERS": 1}
    payload = summary.to_dict()
    assert [row["status"] for row in payload["rows"]] == [
        "PROCESSED",
        "REJECTED_DUPLICATE",
        "ERROR",
        "PROCESSED",
        "ERROR",
    ]
    assert payload["rows"][2]["code"] == "NotFound"


def test_constraint_race_surfaces_as_exact_duplicate(two_leaders, orchestrator, monkeypatch):
    normalized = normalize_fields({"name": "ANA"})
    db.session.add(
        Capture(
            leader_identifier="L1",
            reported_identifier="123",
            payload_json={},
            normalized_json=normalized,
            content_hash=compute_content_hash(normalized),
            status=CaptureStatus.PROCESSED,
            source="api",
        )
    )
    db.session.commit()
    # Another request committed the same capture after our duplicate lookup.
    monkeypatch.setattr(orchestrator.captures, "find_processed", lambda *args: None)

    with pytest.raises(ExactDuplicate):
        orchestrator.submit_capture("L1", "123", {"name": "ANA"}, "op-1")

    statuses = sorted(capture.status.value for capture in db.session.query(Capture))
    assert statuses == ["PROCESSED", "REJECTED_DUPLICATE"]
    assert db.session.query(CanonicalVoter).count() == 0
    assert _counts() == {"variants": 0, "assignments": 0, "incidents": 0}


def test_failure_after_append_leaves_no_capture_row(two_leaders, orchestrator, monkeypatch):
    def broken_resolve(*args, **kwargs):
        raise SQLAlchemyError("connection dropped")

    monkeypatch.setattr(orchestrator.resolver, "resolve", broken_resolve)

    with pytest.raises(StorageError):
        orchestrator.submit_capture("L1", "123", {"name": "ANA"}, "op-1")

    assert db.session.query(Capture).count() == 0
    assert db.session.query(ActionLog).filter_by(action=ActionType.CAPTURE).count() == 0


def test_batch_summary_keeps_rows_committed_before_source_failure(two_leaders, orchestrator):
    def records():
        yield {"leader_id": "L1", "reported_id": "123", "first_name": "Ana"}
        raise CSVDecodeError("invalid start byte", line=3)

    summary = BatchSummary(source="csv")
    with pytest.raises(CSVDecodeError):
        orchestrator.ingest_batch(records(), "op-1", summary=summary)

    assert summary.processed == 1
    assert summary.total == 1
    assert db.session.query(Capture).count() == 1
