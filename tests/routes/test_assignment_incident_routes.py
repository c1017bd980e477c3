def test_assign_and_unassign(client, actor_headers, leaders, submit):
    submit("L1", "123", name="ANA")

    assigned = client.post("/asignaciones", json={"voterId": "123", "leaderId": "L2"}, headers=actor_headers)
    again = client.post("/asignaciones", json={"voterId": "123", "leaderId": "L2"}, headers=actor_headers)
    unknown = client.post("/asignaciones", json={"voterId": "999", "leaderId": "L2"}, headers=actor_headers)

    assert assigned.status_code == 201
    assert assigned.get_json()["assignedBy"] == "op-test"
    assert again.status_code == 400
    assert again.get_json()["code"] == "AlreadyAssigned"
    assert unknown.status_code == 404

    removed = client.delete("/asignaciones", json={"voterId": "123", "leaderId": "L2"}, headers=actor_headers)
    missing = client.delete("/asignaciones", json={"voterId": "123", "leaderId": "L2"}, headers=actor_headers)

    assert removed.status_code == 200
    assert missing.status_code == 404
    assert missing.get_json()["code"] == "NotAssigned"


def test_incident_listing_and_manual_incident(client, actor_headers, leaders, submit):
    submit("L1", "123", name="ANA")
    submit("L1", "123", name="ANA MARIA")
    submit("L2", "123", name="ANA")

    conflicts = client.get("/incidencias?tipo=DATA_CONFLICT").get_json()
    assert conflicts["total"] == 1

    created = client.post(
        "/incidencias", json={"voterId": "123", "detail": "Verified in person"}, headers=actor_headers
    )
    assert created.status_code == 201
    assert created.get_json()["kind"] == "MANUAL"

    for_voter = client.get("/incidencias?votante_id=123").get_json()
    assert for_voter["total"] == 3

    invalid = client.post("/incidencias", json={"voterId": "123"}, headers=actor_headers)
    assert invalid.status_code == 400
