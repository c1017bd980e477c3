"""Shared request helpers and the JSON error handler for all blueprints."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Mapping

from flask import current_app, jsonify, request

from canvass_app.models import db
from canvass_app.reconciliation.errors import ReconciliationError, StorageError, ValidationError
from canvass_app.reconciliation.query_service import Page


def _json_error(message: str, status: HTTPStatus, **extra: Any):
    payload = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def json_body(*, required: bool = True) -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        if required:
            raise ValidationError("Request body must be a JSON object.")
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def resolve_actor(body: Mapping[str, Any] | None = None) -> str | None:
    """Caller identity from the actor header, falling back to an ``actor`` body field."""

    header_name = current_app.config.get("ACTOR_HEADER", "X-Actor-Id")
    actor = request.headers.get(header_name)
    if not actor and body is not None:
        actor = body.get("actor")
    actor = str(actor).strip() if actor is not None else ""
    if not actor:
        if current_app.config.get("REQUIRE_ACTOR", True):
            raise ValidationError(f"An actor id is required ({header_name} header or 'actor' field).")
        return None
    if len(actor) > 64:
        raise ValidationError("Actor id must be at most 64 characters.")
    return actor


def page_from_args() -> Page:
    return Page.coerce(request.args.get("limit"), request.args.get("offset"))


def handle_reconciliation_error(exc: ReconciliationError):
    if isinstance(exc, StorageError):
        db.session.rollback()
        current_app.logger.exception("Storage failure on %s %s", request.method, request.path)
    else:
        current_app.logger.info(
            "Request rejected: %s",
            exc.message,
            extra={"error_code": exc.code, "path": request.path, "method": request.method},
        )
    return jsonify(exc.to_dict()), exc.http_status


def register_error_handlers(app) -> None:
    app.register_error_handler(ReconciliationError, handle_reconciliation_error)
