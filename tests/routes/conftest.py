"""Shared fixtures for route tests"""

import pytest


@pytest.fixture
def leaders(leader_factory):
    """Two leaders ready to submit captures"""
    return [leader_factory("L1"), leader_factory("L2")]


@pytest.fixture
def submit(client, actor_headers):
    """POST a capture and return the response"""

    def _submit(leader_id, reported_id, **fields):
        return client.post(
            "/capturas",
            json={"leaderId": leader_id, "reportedId": reported_id, "fields": fields},
            headers=actor_headers,
        )

    return _submit
