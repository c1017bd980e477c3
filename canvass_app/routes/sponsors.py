"""
Sponsor catalog endpoints.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify

from canvass_app.models import EntityKind
from canvass_app.reconciliation import ReconciliationOrchestrator, ReconciliationQueryService
from canvass_app.reconciliation.query_service import serialize_archived, serialize_sponsor
from canvass_app.services import CatalogService

from ._helpers import json_body, page_from_args, resolve_actor

sponsors_blueprint = Blueprint("sponsors", __name__)


@sponsors_blueprint.get("/patrocinadores")
def list_sponsors():
    return jsonify(ReconciliationQueryService().list_sponsors(page_from_args()).to_dict()), HTTPStatus.OK


@sponsors_blueprint.post("/patrocinadores")
def create_sponsor():
    body = json_body()
    actor = resolve_actor(body)
    sponsor = CatalogService().create_sponsor(body, actor)
    return jsonify(serialize_sponsor(sponsor)), HTTPStatus.CREATED


@sponsors_blueprint.get("/patrocinadores/eliminados")
def list_archived_sponsors():
    result = ReconciliationQueryService().list_archived(EntityKind.SPONSOR.value, page_from_args())
    return jsonify(result.to_dict()), HTTPStatus.OK


@sponsors_blueprint.put("/patrocinadores/<identifier>")
def update_sponsor(identifier):
    body = json_body()
    actor = resolve_actor(body)
    sponsor = CatalogService().update_sponsor(identifier, body, actor)
    return jsonify(serialize_sponsor(sponsor)), HTTPStatus.OK


@sponsors_blueprint.delete("/patrocinadores/<identifier>")
def delete_sponsor(identifier):
    body = json_body(required=False)
    actor = resolve_actor(body)
    archived = ReconciliationOrchestrator().soft_delete(EntityKind.SPONSOR, identifier, actor, body.get("reason"))
    return jsonify(serialize_archived(archived)), HTTPStatus.OK
