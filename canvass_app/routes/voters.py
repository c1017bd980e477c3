"""
Canonical voter endpoints: listing, detail, explicit edits, reassignment and soft delete.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from canvass_app.models import EntityKind
from canvass_app.reconciliation import ReconciliationOrchestrator, ReconciliationQueryService
from canvass_app.reconciliation.orchestrator import serialize_incident
from canvass_app.reconciliation.query_service import serialize_archived

from ._helpers import json_body, page_from_args, resolve_actor

voters_blueprint = Blueprint("voters", __name__)


@voters_blueprint.get("/votantes")
def list_voters():
    leader = (request.args.get("lider") or "").strip() or None
    result = ReconciliationQueryService().list_voters(page_from_args(), leader=leader)
    return jsonify(result.to_dict()), HTTPStatus.OK


@voters_blueprint.get("/votantes/eliminados")
def list_archived_voters():
    result = ReconciliationQueryService().list_archived(EntityKind.VOTER.value, page_from_args())
    return jsonify(result.to_dict()), HTTPStatus.OK


@voters_blueprint.put("/votantes/reasignar")
def reassign_voter():
    body = json_body()
    actor = resolve_actor(body)
    incident = ReconciliationOrchestrator().reassign_voter(
        body.get("voterId", body.get("votante_id")),
        body.get("fromLeaderId", body.get("lider_origen")),
        body.get("toLeaderId", body.get("lider_destino")),
        actor,
        note=body.get("note", body.get("nota")),
    )
    return jsonify({"incident": serialize_incident(incident)}), HTTPStatus.OK


@voters_blueprint.get("/votantes/<identifier>")
def get_voter(identifier):
    return jsonify(ReconciliationQueryService().get_voter(identifier)), HTTPStatus.OK


@voters_blueprint.put("/votantes/<identifier>")
def update_voter(identifier):
    body = json_body()
    actor = resolve_actor(body)
    voter = ReconciliationOrchestrator().update_voter(
        identifier, body.get("fields"), actor, new_identifier=body.get("identifier")
    )
    return jsonify(ReconciliationQueryService().get_voter(voter.identifier)), HTTPStatus.OK


@voters_blueprint.delete("/votantes/<identifier>")
def delete_voter(identifier):
    body = json_body(required=False)
    actor = resolve_actor(body)
    archived = ReconciliationOrchestrator().soft_delete(EntityKind.VOTER, identifier, actor, body.get("reason"))
    return jsonify(serialize_archived(archived)), HTTPStatus.OK


@voters_blueprint.delete("/votantes")
def delete_voters():
    body = json_body()
    actor = resolve_actor(body)
    archived = ReconciliationOrchestrator().soft_delete_many(
        EntityKind.VOTER, body.get("ids"), actor, body.get("reason")
    )
    return jsonify({"deleted": len(archived), "items": [serialize_archived(row) for row in archived]}), HTTPStatus.OK
