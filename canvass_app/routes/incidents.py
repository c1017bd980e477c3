"""
Incident listing and manual incident endpoints.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from canvass_app.reconciliation import IncidentFilters, ReconciliationOrchestrator, ReconciliationQueryService
from canvass_app.reconciliation.orchestrator import serialize_incident

from ._helpers import json_body, resolve_actor

incidents_blueprint = Blueprint("incidents", __name__)


@incidents_blueprint.get("/incidencias")
def list_incidents():
    filters = IncidentFilters.coerce(request.args)
    result = ReconciliationQueryService().list_incidents(filters)
    return jsonify(result.to_dict()), HTTPStatus.OK


@incidents_blueprint.post("/incidencias")
def create_manual_incident():
    body = json_body()
    actor = resolve_actor(body)
    incident = ReconciliationOrchestrator().record_manual_incident(
        body.get("voterId", body.get("votante_id")),
        body.get("detail", body.get("detalle")),
        actor,
        leader_before=body.get("leaderBefore"),
        leader_after=body.get("leaderAfter"),
    )
    return jsonify(serialize_incident(incident)), HTTPStatus.CREATED
