# conftest.py

import os
import tempfile

import pytest

# Set testing environment BEFORE importing app so app.py picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from canvass_app.models import Leader, Sponsor, db  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    import uuid

    db_fd, temp_db = tempfile.mkstemp(suffix=f"_{uuid.uuid4().hex[:8]}.db")

    try:
        flask_app.config.update(
            {
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": f"sqlite:///{temp_db}",
                "SECRET_KEY": "test-secret-key-for-testing-only",
                "MONITORING_ENABLED": False,
                "ENABLE_FILE_LOGGING": False,
                "ENABLE_CONSOLE_LOGGING": False,
                "LOG_LEVEL": "DEBUG",
                "REQUIRE_ACTOR": True,
                "CAPTURE_LOG_REJECTIONS": True,
            }
        )

        from canvass_app.utils.logging_config import setup_logging

        setup_logging(flask_app)

        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            yield flask_app
            db.session.remove()
            db.drop_all()
    finally:
        try:
            os.close(db_fd)
        except OSError:
            pass
        try:
            if os.path.exists(temp_db):
                os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def actor_headers(app):
    """Headers carrying the caller identity expected by mutating endpoints"""
    return {app.config["ACTOR_HEADER"]: "op-test"}


@pytest.fixture
def sponsor_factory(app):
    """Create sponsors directly in the database"""

    def _create(identifier="S1", **fields):
        fields.setdefault("first_name", "SPONSOR")
        fields.setdefault("last_name", identifier)
        sponsor = Sponsor(identifier=identifier, **fields)
        db.session.add(sponsor)
        db.session.commit()
        return sponsor

    return _create


@pytest.fixture
def leader_factory(app):
    """Create leaders directly in the database"""

    def _create(identifier="L1", sponsor_identifier=None, **fields):
        fields.setdefault("first_name", "LEADER")
        fields.setdefault("last_name", identifier)
        leader = Leader(identifier=identifier, sponsor_identifier=sponsor_identifier, **fields)
        db.session.add(leader)
        db.session.commit()
        return leader

    return _create


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
