# canvass_app/routes/captures.py

"""
Capture submission, batch upload, capture log and variant endpoints.
"""

import io
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from canvass_app.reconciliation import (
    BatchSummary,
    CaptureFilters,
    ReconciliationOrchestrator,
    ReconciliationQueryService,
    VariantFilters,
)
from canvass_app.reconciliation.adapters import CaptureCSVAdapter, CSVAdapterError, CSVHeaderError

from ._helpers import _json_error, json_body, resolve_actor

captures_blueprint = Blueprint("captures", __name__)


@captures_blueprint.post("/capturas")
def submit_capture():
    body = json_body()
    actor = resolve_actor(body)
    outcome = ReconciliationOrchestrator().submit_capture(
        body.get("leaderId", body.get("leader_id")),
        body.get("reportedId", body.get("reported_id")),
        body.get("fields"),
        actor,
        source="api",
    )
    return jsonify(outcome.to_dict()), HTTPStatus.CREATED


@captures_blueprint.post("/capturas/lote")
def submit_capture_batch():
    orchestrator = ReconciliationOrchestrator()
    upload = request.files.get("file")

    if upload is not None:
        actor = resolve_actor(request.form)
        stream = io.TextIOWrapper(upload.stream, encoding="utf-8-sig", newline="")
        adapter = CaptureCSVAdapter(stream)
        summary = BatchSummary(source="csv")
        try:
            orchestrator.ingest_batch(adapter.iter_records(), actor, source="csv", summary=summary)
        except CSVHeaderError as exc:
            return _json_error(str(exc), HTTPStatus.BAD_REQUEST, code="ValidationError")
        except CSVAdapterError as exc:
            # Rows before the unreadable one are already committed.
            current_app.logger.warning(
                "Capture batch aborted: %s", exc, extra={"batch_committed": summary.processed, "actor": actor}
            )
            return _json_error(
                str(exc),
                HTTPStatus.BAD_REQUEST,
                code="ValidationError",
                committed=summary.processed,
                summary=summary.to_dict(),
            )
        finally:
            stream.detach()
    else:
        body = json_body()
        actor = resolve_actor(body)
        records = body.get("records")
        if not isinstance(records, list) or not records:
            return _json_error(
                "Provide a CSV 'file' upload or a non-empty 'records' list.",
                HTTPStatus.BAD_REQUEST,
                code="ValidationError",
            )
        summary = orchestrator.ingest_batch(records, actor, source="api-batch")

    current_app.logger.info(
        "Capture batch received",
        extra={"batch_total": summary.total, "batch_processed": summary.processed, "actor": actor},
    )
    return jsonify(summary.to_dict()), HTTPStatus.CREATED


@captures_blueprint.get("/capturas")
def list_captures():
    filters = CaptureFilters.coerce(request.args)
    result = ReconciliationQueryService().list_captures(filters)
    return jsonify(result.to_dict()), HTTPStatus.OK


@captures_blueprint.get("/variantes")
def list_variants():
    filters = VariantFilters.coerce(request.args)
    result = ReconciliationQueryService().list_variants(filters)
    return jsonify(result.to_dict()), HTTPStatus.OK


@captures_blueprint.get("/variantes/metricas")
def variant_metrics():
    leader = (request.args.get("lider") or "").strip() or None
    return jsonify(ReconciliationQueryService().variant_metrics(leader)), HTTPStatus.OK
