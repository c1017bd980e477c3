"""
Manual assignment endpoints.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify

from canvass_app.reconciliation import ReconciliationOrchestrator

from ._helpers import json_body, resolve_actor

assignments_blueprint = Blueprint("assignments", __name__)


def _pair(body):
    return body.get("voterId", body.get("votante_id")), body.get("leaderId", body.get("lider_id"))


@assignments_blueprint.post("/asignaciones")
def create_assignment():
    body = json_body()
    actor = resolve_actor(body)
    voter_id, leader_id = _pair(body)
    assignment = ReconciliationOrchestrator().assign(voter_id, leader_id, actor)
    return (
        jsonify(
            {
                "id": assignment.id,
                "voterId": assignment.voter_identifier,
                "leaderId": assignment.leader_identifier,
                "assignedBy": assignment.assigned_by,
                "createdAt": assignment.created_at.isoformat() if assignment.created_at else None,
            }
        ),
        HTTPStatus.CREATED,
    )


@assignments_blueprint.delete("/asignaciones")
def delete_assignment():
    body = json_body()
    actor = resolve_actor(body)
    voter_id, leader_id = _pair(body)
    ReconciliationOrchestrator().unassign(voter_id, leader_id, actor)
    return jsonify({"status": "unassigned", "voterId": voter_id, "leaderId": leader_id}), HTTPStatus.OK
