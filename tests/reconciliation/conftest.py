from __future__ import annotations

import pytest

from canvass_app.reconciliation import ReconciliationOrchestrator


@pytest.fixture
def orchestrator(app):
    return ReconciliationOrchestrator()


@pytest.fixture
def two_leaders(leader_factory):
    leader_factory("L1")
    leader_factory("L2")
    return "L1", "L2"


@pytest.fixture
def capture(orchestrator):
    """Submit a capture as the default operator."""

    def _submit(leader_id, reported_id, actor="op-1", **fields):
        return orchestrator.submit_capture(leader_id, reported_id, fields, actor)

    return _submit
