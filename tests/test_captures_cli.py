import json
from pathlib import Path

from canvass_app.models import Assignment, Capture, Leader, db


def _write_csv(tmp_path: Path, body: str) -> Path:
    csv_file = tmp_path / "capturas.csv"
    csv_file.write_text(body, encoding="utf-8")
    return csv_file


def test_ingest_prints_summary(runner, tmp_path, leader_factory):
    leader_factory("L1")
    csv_path = _write_csv(tmp_path, "lider,cc,nombres\nL1,1,Ana\nL1,1,ANA\nL9,2,Luis\n")

    result = runner.invoke(args=["captures", "ingest", "--file", str(csv_path), "--actor", "op-cli"])

    assert result.exit_code == 0, result.output
    assert "rows_processed      : 1" in result.output
    assert "rows_duplicate      : 1" in result.output
    assert "rows_error          : 1" in result.output
    assert db.session.query(Capture).filter_by(actor="op-cli").count() == 3


def test_ingest_summary_json(runner, tmp_path, leader_factory):
    leader_factory("L1")
    csv_path = _write_csv(tmp_path, "lider,cc,nombres\nL1,1,Ana\n")

    result = runner.invoke(
        args=["captures", "ingest", "--file", str(csv_path), "--actor", "op-cli", "--summary-json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["processed"] == 1
    assert payload["source"] == "csv"


def test_ingest_rejects_bad_header(runner, tmp_path):
    csv_path = _write_csv(tmp_path, "nombres\nAna\n")

    result = runner.invoke(args=["captures", "ingest", "--file", str(csv_path), "--actor", "op-cli"])

    assert result.exit_code != 0
    assert "CSV header validation failed" in result.output


def test_rename_leader_command(runner, leader_factory):
    leader_factory("L1")
    leader_factory("L2")
    db.session.add(Assignment(voter_identifier="V1", leader_identifier="L1"))
    db.session.commit()

    result = runner.invoke(args=["captures", "rename-leader", "L1", "L5", "--actor", "op-cli"])
    collision = runner.invoke(args=["captures", "rename-leader", "L5", "L2", "--actor", "op-cli"])

    assert result.exit_code == 0, result.output
    assert "Renamed leader L1 -> L5." in result.output
    assert db.session.get(Leader, "L5") is not None
    assert collision.exit_code != 0
    assert "Conflict" in collision.output


def test_rename_voter_unchanged(runner):
    result = runner.invoke(args=["captures", "rename-voter", "V1", "V1", "--actor", "op-cli"])

    assert result.exit_code == 0
    assert "Voter identifier unchanged (V1)." in result.output


def test_ingest_rejects_undecodable_file(runner, tmp_path, leader_factory):
    leader_factory("L1")
    csv_path = tmp_path / "capturas.csv"
    csv_path.write_bytes(b"lider,cc,nombres\nL1,1,\xff\xfe\n")

    result = runner.invoke(args=["captures", "ingest", "--file", str(csv_path), "--actor", "op-cli"])

    assert result.exit_code != 0
    assert "could not be read" in result.output
    assert db.session.query(Capture).count() == 0
