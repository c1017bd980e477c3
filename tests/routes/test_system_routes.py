def test_health_reports_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["database"] == "ok"


def test_metrics_disabled_by_default(client):
    assert client.get("/metrics").status_code == 404


def test_metrics_exposition(app, client, leaders, submit):
    app.config["MONITORING_ENABLED"] = True
    submit("L1", "1", name="A")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert b"reconciliation_captures_total" in response.data


def test_action_log_listing(client, leaders, submit):
    submit("L1", "123", name="ANA")

    response = client.get("/acciones?entidad=assignment")

    assert response.status_code == 200
    items = response.get_json()["items"]
    assert [item["action"] for item in items] == ["ASSIGN"]
    assert items[0]["actor"] == "op-test"


def test_unknown_route_returns_json(client):
    response = client.get("/nope")

    assert response.status_code == 404
    assert response.get_json()["code"] == "NotFound"
