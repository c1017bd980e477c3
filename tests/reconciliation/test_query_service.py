from datetime import date, timedelta

import pytest

from canvass_app.models import CaptureStatus, IncidentKind
from canvass_app.reconciliation import (
    CaptureFilters,
    ExactDuplicate,
    IncidentFilters,
    Page,
    ReconciliationQueryService,
    ValidationError,
    VariantFilters,
)


@pytest.fixture
def reported(two_leaders, capture):
    capture("L1", "123", name="ANA")
    with pytest.raises(ExactDuplicate):
        capture("L1", "123", name="ANA")
    capture("L1", "123", name="ANA MARIA")
    capture("L2", "123", name="ANA")
    capture("L1", "200", name="LUIS")


def test_page_coercion_uses_config_bounds(app):
    app.config.update({"LIST_PAGE_SIZE_DEFAULT": 10, "LIST_PAGE_SIZE_MAX": 25})

    assert Page.coerce() == Page(limit=10, offset=0)
    assert Page.coerce("500", "5") == Page(limit=25, offset=5)
    assert Page.coerce("0") == Page(limit=10, offset=0)
    with pytest.raises(ValidationError):
        Page.coerce("-1")
    with pytest.raises(ValidationError):
        Page.coerce("abc")


def test_capture_filters_validate_inputs(app):
    filters = CaptureFilters.coerce({"estado": "rejected_duplicate", "lider": " L1 ", "desde": "2024-01-01"})

    assert filters.status is CaptureStatus.REJECTED_DUPLICATE
    assert filters.leader == "L1"
    with pytest.raises(ValidationError):
        CaptureFilters.coerce({"estado": "LOST"})
    with pytest.raises(ValidationError):
        CaptureFilters.coerce({"desde": "2024-02-01", "hasta": "2024-01-01"})


def test_list_captures_filters_by_status_and_leader(reported):
    service = ReconciliationQueryService()

    duplicates = service.list_captures(CaptureFilters.coerce({"estado": "REJECTED_DUPLICATE"}))
    by_leader = service.list_captures(CaptureFilters.coerce({"lider": "L1", "cc": "123"}))

    assert duplicates.total == 1
    assert duplicates.items[0]["status"] == "REJECTED_DUPLICATE"
    assert by_leader.total == 3


def test_list_captures_date_window(reported):
    service = ReconciliationQueryService()
    tomorrow = (date.today() + timedelta(days=2)).isoformat()

    assert service.list_captures(CaptureFilters.coerce({"desde": tomorrow})).total == 0


def test_list_variants_current_only(reported):
    service = ReconciliationQueryService()

    everything = service.list_variants(VariantFilters.coerce({"cc": "123"}))
    current = service.list_variants(VariantFilters.coerce({"cc": "123", "current": "true"}))

    assert everything.total == 3
    assert current.total == 2
    assert all(item["isCurrent"] for item in current.items)


def test_list_incidents_by_kind_and_leader(reported):
    service = ReconciliationQueryService()

    conflicts = service.list_incidents(IncidentFilters.coerce({"tipo": "DATA_CONFLICT"}))
    for_l2 = service.list_incidents(IncidentFilters.coerce({"lider_id": "L2"}))

    assert conflicts.total == 1
    assert conflicts.items[0]["kind"] == IncidentKind.DATA_CONFLICT.value
    assert [item["kind"] for item in for_l2.items] == ["DUPLICATE_ACROSS_LEADERS"]


def test_variant_metrics(reported):
    metrics = ReconciliationQueryService().variant_metrics()

    per_leader = {row["leaderId"]: row for row in metrics["leaders"]}
    assert per_leader["L1"]["uniqueVoters"] == 2
    assert per_leader["L1"]["totalVariants"] == 3
    assert per_leader["L1"]["resubmissionRate"] == pytest.approx(0.3333, abs=1e-4)
    assert per_leader["L2"]["resubmissionRate"] == 0
    assert metrics["clusters"] == [{"voterId": "123", "leaders": ["L1", "L2"]}]

    scoped = ReconciliationQueryService().variant_metrics("L2")
    assert [row["leaderId"] for row in scoped["leaders"]] == ["L2"]


def test_leader_and_voter_reads(reported):
    service = ReconciliationQueryService()

    distribution = {row["leaderId"]: row["voters"] for row in service.leader_distribution()}
    voter = service.get_voter("123")
    voters_for_l2 = service.list_voters(Page(), leader="L2")

    assert distribution == {"L1": 2, "L2": 1}
    assert voter["firstLeaderId"] == "L1"
    assert voter["leaders"] == ["L1", "L2"]
    assert len(voter["currentVariants"]) == 2
    assert [item["identifier"] for item in voters_for_l2.items] == ["123"]
    assert "DATA_CONFLICT" in service.get_leader("L1")["duplicateLog"]


def test_list_actions_filters_by_entity(reported):
    actions = ReconciliationQueryService().list_actions(Page(), entity_kind="voter", entity_id="123")

    assert [item["action"] for item in actions.items] == ["CREATE"]


def test_incident_leader_filter_matches_whole_identifiers(leader_factory, capture):
    for identifier in ("L1", "L12", "L3"):
        leader_factory(identifier)
    capture("L12", "900", name="EVA")
    capture("L3", "900", name="EVA")
    capture("L1", "901", name="LUZ")
    capture("L12", "901", name="LUZ")
    capture("L3", "901", name="LUZ")
    service = ReconciliationQueryService()

    for_l1 = service.list_incidents(IncidentFilters.coerce({"lider_id": "L1"}))
    for_l12 = service.list_incidents(IncidentFilters.coerce({"lider_id": "L12"}))

    assert sorted(item["leaderBefore"] for item in for_l1.items) == ["L1", "L1,L12"]
    assert for_l1.total == 2
    assert for_l12.total == 3


def test_incident_leader_filter_escapes_like_wildcards(leader_factory, capture):
    for identifier in ("L0", "L_1", "LX1", "L3"):
        leader_factory(identifier)
    capture("L0", "902", name="EVA")
    capture("LX1", "902", name="EVA")
    capture("L3", "902", name="EVA")

    result = ReconciliationQueryService().list_incidents(IncidentFilters.coerce({"lider_id": "L_1"}))

    assert result.total == 0


def test_long_prior_leader_list_is_stored_whole(leader_factory, capture):
    identifiers = [f"LEADER-{number:024d}" for number in range(18)]
    for identifier in identifiers:
        leader_factory(identifier)
    for identifier in identifiers:
        capture(identifier, "903", name="EVA")

    result = ReconciliationQueryService().list_incidents(
        IncidentFilters.coerce({"lider_id": identifiers[0], "tipo": IncidentKind.DUPLICATE_ACROSS_LEADERS.value})
    )

    last = max(result.items, key=lambda item: item["id"])
    assert len(last["leaderBefore"]) > 512
    assert last["leaderBefore"].split(",") == identifiers[:-1]
