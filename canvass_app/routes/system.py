"""
Health, metrics and action-log endpoints.
"""

from http import HTTPStatus

from flask import Blueprint, Response, current_app, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from canvass_app.models import db
from canvass_app.reconciliation import ReconciliationQueryService

from ._helpers import _json_error, page_from_args

system_blueprint = Blueprint("system", __name__)


@system_blueprint.get("/health")
def health():
    """Liveness plus a database round trip."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Health check database ping failed")
        return jsonify({"status": "error", "database": "unreachable"}), HTTPStatus.SERVICE_UNAVAILABLE
    return (
        jsonify(
            {
                "status": "ok",
                "database": "ok",
                "app": current_app.config.get("APP_NAME"),
                "version": current_app.config.get("APP_VERSION"),
            }
        ),
        HTTPStatus.OK,
    )


@system_blueprint.get("/metrics")
def metrics():
    if not current_app.config.get("MONITORING_ENABLED", False):
        return _json_error("Metrics are disabled.", HTTPStatus.NOT_FOUND)
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


@system_blueprint.get("/acciones")
def list_actions():
    result = ReconciliationQueryService().list_actions(
        page_from_args(),
        entity_kind=request.args.get("entidad"),
        entity_id=request.args.get("entidad_id"),
    )
    return jsonify(result.to_dict()), HTTPStatus.OK
