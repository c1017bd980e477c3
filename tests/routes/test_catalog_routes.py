"""Leader, voter and sponsor endpoints."""

from canvass_app.models import ArchivedVoter, CanonicalVoter, db


def test_leader_lifecycle(client, actor_headers, sponsor_factory):
    sponsor_factory("S1")

    created = client.post(
        "/lideres",
        json={"identifier": "L1", "firstName": "Pedro", "sponsorId": "S1", "objective": "200"},
        headers=actor_headers,
    )
    assert created.status_code == 201
    assert created.get_json()["firstName"] == "PEDRO"

    listing = client.get("/lideres?patrocinador=S1").get_json()
    assert [item["identifier"] for item in listing["items"]] == ["L1"]

    renamed = client.put("/lideres/L1", json={"identifier": "L10"}, headers=actor_headers)
    assert renamed.status_code == 200
    assert renamed.get_json()["identifier"] == "L10"
    assert client.get("/lideres/L1").status_code == 404

    deleted = client.delete("/lideres/L10", json={"reason": "Retired"}, headers=actor_headers)
    assert deleted.status_code == 200
    assert deleted.get_json()["reason"] == "Retired"

    archived = client.get("/lideres/eliminados").get_json()
    assert archived["items"][0]["identifier"] == "L10"
    assert archived["items"][0]["deletedBy"] == "op-test"
    assert client.get("/lideres/L10").status_code == 404


def test_duplicate_leader_and_missing_reason(client, actor_headers, leader_factory):
    leader_factory("L1")

    duplicate = client.post("/lideres", json={"identifier": "L1"}, headers=actor_headers)
    no_reason = client.delete("/lideres/L1", headers=actor_headers)
    missing = client.delete("/lideres/L404", json={"reason": "x"}, headers=actor_headers)

    assert duplicate.status_code == 400
    assert duplicate.get_json()["code"] == "Conflict"
    assert no_reason.status_code == 400
    assert missing.status_code == 404


def test_bulk_leader_delete(client, actor_headers, leader_factory):
    leader_factory("L1")
    leader_factory("L2")

    response = client.delete("/lideres", json={"ids": ["L1", "L2"], "reason": "Merge"}, headers=actor_headers)

    assert response.status_code == 200
    assert response.get_json()["deleted"] == 2


def test_leader_distribution(client, leaders, submit):
    submit("L1", "1", name="A")
    submit("L1", "2", name="B")
    submit("L2", "3", name="C")

    items = client.get("/lideres/distribucion").get_json()["items"]

    assert items[0] == {"leaderId": "L1", "name": "LEADER L1", "voters": 2}


def test_voter_reads_and_edit(client, actor_headers, leaders, submit):
    submit("L1", "123", name="ANA")
    submit("L2", "123", name="ANA")

    voter = client.get("/votantes/123").get_json()
    assert voter["firstLeaderId"] == "L1"
    assert voter["leaders"] == ["L1", "L2"]

    by_leader = client.get("/votantes?lider=L2").get_json()
    assert by_leader["total"] == 1

    edited = client.put(
        "/votantes/123", json={"fields": {"apellidos": "Perez"}, "identifier": "123A"}, headers=actor_headers
    )
    assert edited.status_code == 200
    assert edited.get_json()["identifier"] == "123A"
    assert edited.get_json()["lastName"] == "PEREZ"
    assert client.get("/votantes/123").status_code == 404


def test_voter_reassignment(client, actor_headers, leaders, submit):
    submit("L1", "123", name="ANA")

    response = client.put(
        "/votantes/reasignar",
        json={"voterId": "123", "fromLeaderId": "L1", "toLeaderId": "L2", "note": "Moved"},
        headers=actor_headers,
    )

    assert response.status_code == 200
    assert response.get_json()["incident"]["kind"] == "MANUAL"
    voter = db.session.get(CanonicalVoter, "123")
    assert voter.first_leader_identifier == "L1"


def test_bulk_voter_delete_reports_missing_ids(client, actor_headers, leaders, submit):
    submit("L1", "A", name="ALBA")
    submit("L1", "C", name="CARLOS")

    response = client.delete(
        "/votantes", json={"ids": ["A", "B", "C"], "reason": "cleanup"}, headers=actor_headers
    )

    assert response.status_code == 404
    assert response.get_json()["missing"] == ["B"]
    assert db.session.query(ArchivedVoter).count() == 0
    assert client.get("/votantes/A").status_code == 200

    single = client.delete("/votantes/A", json={"reason": "duplicate"}, headers=actor_headers)
    assert single.status_code == 200
    assert client.get("/votantes/eliminados").get_json()["total"] == 1


def test_sponsor_endpoints(client, actor_headers, leader_factory):
    created = client.post("/patrocinadores", json={"identifier": "S1", "nombres": "Maria"}, headers=actor_headers)
    assert created.status_code == 201
    leader_factory("L1", sponsor_identifier="S1")

    blocked = client.delete("/patrocinadores/S1", json={"reason": "merge"}, headers=actor_headers)
    assert blocked.status_code == 400
    assert blocked.get_json()["code"] == "Undeletable"

    renamed = client.put("/patrocinadores/S1", json={"identifier": "S2"}, headers=actor_headers)
    assert renamed.get_json()["identifier"] == "S2"
    assert client.get("/lideres/L1").get_json()["sponsorId"] == "S2"

    assert client.get("/patrocinadores").get_json()["total"] == 1
    assert client.get("/patrocinadores/eliminados").get_json()["total"] == 0
