"""
Operator commands for capture ingest and identifier renames.

Registered on the Flask CLI as ``flask captures ...``.
"""

from __future__ import annotations

import json
from pathlib import Path

import click
from flask.cli import with_appcontext

from .adapters import CaptureCSVAdapter, CSVAdapterError, CSVHeaderError
from .errors import ReconciliationError
from .orchestrator import BatchSummary, ReconciliationOrchestrator


@click.group(name="captures")
def captures_cli():
    """Capture ingest and reconciliation maintenance commands."""


def _format_summary(summary: BatchSummary) -> str:
    incidents = summary.incidents_by_kind
    incidents_display = ", ".join(f"{kind}={count}" for kind, count in sorted(incidents.items())) if incidents else "none"
    lines = [
        f"Ingest from {summary.source} finished.",
        f"  rows_total          : {summary.total}",
        f"  rows_processed      : {summary.processed}",
        f"  rows_duplicate      : {summary.rejected_duplicates}",
        f"  rows_error          : {summary.errors}",
        f"  incidents           : {incidents_display}",
    ]
    for row in summary.rows:
        if row.error:
            lines.append(f"  row {row.row}: {row.code} - {row.error}")
    return "\n".join(lines)


@captures_cli.command("ingest")
@click.option(
    "--file",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="CSV file with leader, voter identifier and field columns.",
)
@click.option("--actor", required=True, help="Identifier recorded as the actor for every capture.")
@click.option("--summary-json", is_flag=True, help="Emit the batch summary as JSON.")
@with_appcontext
def ingest_command(file_path: Path, actor: str, summary_json: bool):
    """Reconcile every row of a CSV export, one transaction per row."""

    orchestrator = ReconciliationOrchestrator()
    with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
        adapter = CaptureCSVAdapter(handle)
        summary = BatchSummary(source="csv")
        try:
            orchestrator.ingest_batch(adapter.iter_records(), actor, source="csv", summary=summary)
        except CSVHeaderError as exc:
            raise click.ClickException(str(exc)) from exc
        except CSVAdapterError as exc:
            raise click.ClickException(f"{exc} ({summary.processed} row(s) already committed)") from exc
        except ReconciliationError as exc:
            raise click.ClickException(f"Ingest aborted: {exc.message}") from exc

    if summary_json:
        click.echo(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
    else:
        click.echo(_format_summary(summary))
        if adapter.statistics.ignored_columns:
            click.echo(f"  ignored_columns     : {', '.join(adapter.statistics.ignored_columns)}")


def _rename(kind: str, old_identifier: str, new_identifier: str, actor: str) -> None:
    orchestrator = ReconciliationOrchestrator()
    operation = orchestrator.rename_leader if kind == "leader" else orchestrator.rename_voter
    try:
        result = operation(old_identifier, new_identifier, actor)
    except ReconciliationError as exc:
        raise click.ClickException(f"{exc.code}: {exc.message}") from exc

    if not result.changed:
        click.echo(f"{kind.capitalize()} identifier unchanged ({old_identifier}).")
        return
    click.echo(f"Renamed {kind} {old_identifier} -> {new_identifier}.")
    for target, count in sorted(result.updated.items()):
        click.echo(f"  {target:<38}: {count}")


@captures_cli.command("rename-leader")
@click.argument("old_identifier")
@click.argument("new_identifier")
@click.option("--actor", required=True)
@with_appcontext
def rename_leader_command(old_identifier: str, new_identifier: str, actor: str):
    """Rename a leader identifier and cascade it to dependent rows."""

    _rename("leader", old_identifier, new_identifier, actor)


@captures_cli.command("rename-voter")
@click.argument("old_identifier")
@click.argument("new_identifier")
@click.option("--actor", required=True)
@with_appcontext
def rename_voter_command(old_identifier: str, new_identifier: str, actor: str):
    """Rename a voter identifier and cascade it to dependent rows."""

    _rename("voter", old_identifier, new_identifier, actor)
