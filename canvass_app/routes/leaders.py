"""
Leader catalog endpoints: listing, detail, create/edit, distribution and soft delete.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from canvass_app.models import EntityKind
from canvass_app.reconciliation import ReconciliationOrchestrator, ReconciliationQueryService
from canvass_app.reconciliation.query_service import serialize_archived
from canvass_app.services import CatalogService

from ._helpers import json_body, page_from_args, resolve_actor

leaders_blueprint = Blueprint("leaders", __name__)


@leaders_blueprint.get("/lideres")
def list_leaders():
    sponsor = (request.args.get("patrocinador") or "").strip() or None
    result = ReconciliationQueryService().list_leaders(page_from_args(), sponsor=sponsor)
    return jsonify(result.to_dict()), HTTPStatus.OK


@leaders_blueprint.post("/lideres")
def create_leader():
    body = json_body()
    actor = resolve_actor(body)
    leader = CatalogService().create_leader(body, actor)
    return jsonify(ReconciliationQueryService().get_leader(leader.identifier)), HTTPStatus.CREATED


@leaders_blueprint.get("/lideres/distribucion")
def leader_distribution():
    return jsonify({"items": ReconciliationQueryService().leader_distribution()}), HTTPStatus.OK


@leaders_blueprint.get("/lideres/eliminados")
def list_archived_leaders():
    result = ReconciliationQueryService().list_archived(EntityKind.LEADER.value, page_from_args())
    return jsonify(result.to_dict()), HTTPStatus.OK


@leaders_blueprint.get("/lideres/<identifier>")
def get_leader(identifier):
    return jsonify(ReconciliationQueryService().get_leader(identifier)), HTTPStatus.OK


@leaders_blueprint.put("/lideres/<identifier>")
def update_leader(identifier):
    body = json_body()
    actor = resolve_actor(body)
    leader = CatalogService().update_leader(identifier, body, actor)
    return jsonify(ReconciliationQueryService().get_leader(leader.identifier)), HTTPStatus.OK


@leaders_blueprint.delete("/lideres/<identifier>")
def delete_leader(identifier):
    body = json_body(required=False)
    actor = resolve_actor(body)
    archived = ReconciliationOrchestrator().soft_delete(EntityKind.LEADER, identifier, actor, body.get("reason"))
    return jsonify(serialize_archived(archived)), HTTPStatus.OK


@leaders_blueprint.delete("/lideres")
def delete_leaders():
    body = json_body()
    actor = resolve_actor(body)
    archived = ReconciliationOrchestrator().soft_delete_many(
        EntityKind.LEADER, body.get("ids"), actor, body.get("reason")
    )
    return jsonify({"deleted": len(archived), "items": [serialize_archived(row) for row in archived]}), HTTPStatus.OK
