"""
Shared pytest fixtures for the HR Desk test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate, work units seeded (autouse)
    - client: Flask test client (function-scoped)
    - submitter / other_submitter / unit_reviewer / other_unit_reviewer /
      central_reviewer: Actor triples
    - auth_headers: X-Actor-* header builder for API tests
    - make_request: ServiceRequest factory (service layer)
"""

import pytest

from hrdesk import create_app
from hrdesk.core.actor import Actor, Role
from hrdesk.models import db as _db
from hrdesk.services import change_feed
from hrdesk.services.document_catalog import seed_work_units


UNIT_ID = 8
OTHER_UNIT_ID = 9


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, seed reference data, recreate tables afterwards."""
    with app.app_context():
        change_feed.reset_backend()
        seed_work_units()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
        change_feed.reset_backend()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Actors ───────────────────────────────────────────────────────────────


@pytest.fixture()
def submitter():
    return Actor(id="emp-1", role=Role.SUBMITTER, unit_id=UNIT_ID)


@pytest.fixture()
def other_submitter():
    return Actor(id="emp-2", role=Role.SUBMITTER, unit_id=UNIT_ID)


@pytest.fixture()
def unit_reviewer():
    return Actor(id="rev-8", role=Role.UNIT_REVIEWER, unit_id=UNIT_ID)


@pytest.fixture()
def other_unit_reviewer():
    return Actor(id="rev-9", role=Role.UNIT_REVIEWER, unit_id=OTHER_UNIT_ID)


@pytest.fixture()
def central_reviewer():
    return Actor(id="hq-1", role=Role.CENTRAL_REVIEWER)


@pytest.fixture()
def auth_headers():
    """Build X-Actor-* headers for an Actor (ACTOR_HEADERS_ENABLED in testing)."""

    def _headers(actor):
        headers = {"X-Actor-Id": actor.id, "X-Actor-Role": actor.role.value}
        if actor.unit_id is not None:
            headers["X-Actor-Unit"] = str(actor.unit_id)
        return headers

    return _headers


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_request(submitter):
    """Submit a promotion request with ``n_docs`` provided documents."""
    from hrdesk.services.request_lifecycle import submit_request

    def _make(n_docs=3, actor=None, documents=None, **kwargs):
        if documents is None:
            documents = [
                {"name": f"Doc {i + 1}", "url": f"https://files.example/doc-{i + 1}.pdf"}
                for i in range(n_docs)
            ]
        kwargs.setdefault("request_type", "promotion")
        kwargs.setdefault("title", "Kenaikan pangkat reguler")
        return submit_request(actor or submitter, documents=documents, **kwargs)

    return _make
