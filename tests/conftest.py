"""
Shared pytest fixtures for the Tramitation Engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_process / make_member / add_artifact: ORM helper factories
"""

import pytest

from tramitation import create_app
from tramitation.models import db as _db
from tramitation.models.process import ProcessArtifact, ProcessRecord, TeamMember
from tramitation.models.workflow import INITIAL_ROLE, INITIAL_STATUS, Role


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
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── ORM helper factories ─────────────────────────────────────────────────


_counter = {"protocol": 0}


def _next_protocol() -> str:
    _counter["protocol"] += 1
    return f"PROT-{_counter['protocol']:05d}/2026"


def create_process_row(
    *,
    role=INITIAL_ROLE,
    status=INITIAL_STATUS,
    requester_id="u1",
    beneficiary_id=None,
    assigned_to=None,
    protocol_number=None,
    value=1500,
    sla_deadline=None,
    **kwargs,
) -> ProcessRecord:
    """Insert a ProcessRecord directly at the given state (replay origin included)."""
    role_value = Role.parse(role).value
    p = ProcessRecord(
        protocol_number=protocol_number or _next_protocol(),
        value=value,
        current_role=role_value,
        status=status,
        initial_role=role_value,
        initial_status=status,
        requester_id=requester_id,
        beneficiary_id=beneficiary_id,
        assigned_to=assigned_to,
        sla_deadline=sla_deadline,
        **kwargs,
    )
    _db.session.add(p)
    _db.session.commit()
    return p


def create_member_row(member_id, role, *, capacity=10, is_active=True, name=None) -> TeamMember:
    m = TeamMember(
        id=member_id,
        role=Role.parse(role).value,
        name=name or member_id,
        capacity=capacity,
        is_active=is_active,
    )
    _db.session.add(m)
    _db.session.commit()
    return m


def create_artifact_row(process_id, kind="ATTESTATION", created_by=None) -> ProcessArtifact:
    a = ProcessArtifact(process_id=process_id, kind=kind, created_by=created_by)
    _db.session.add(a)
    _db.session.commit()
    return a


@pytest.fixture()
def make_process():
    return create_process_row


@pytest.fixture()
def make_member():
    return create_member_row


@pytest.fixture()
def add_artifact():
    return create_artifact_row
