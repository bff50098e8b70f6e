"""Tests: Process Service — submission, artifacts and roster collaborators."""

from decimal import Decimal

import pytest

from tramitation.core.exceptions import NotFoundError, ValidationError
from tramitation.models.audit import AuditEntry
from tramitation.models.workflow import Role
from tramitation.services import audit_trail, process_service


def test_create_process_starts_at_initial_state():
    process, err = process_service.create_process(
        protocol_number=" SOF-2026/0100 ", value="1200.50", requester_id="u1",
    )

    assert err is None
    assert process.protocol_number == "SOF-2026/0100"
    assert process.value == Decimal("1200.50")
    assert process.state == ("REQUESTER", "DRAFT")
    assert (process.initial_role, process.initial_status) == ("REQUESTER", "DRAFT")
    assert process.assigned_to is None


def test_create_process_imported_mid_flight_records_origin():
    process, err = process_service.create_process(
        protocol_number="SOF-2026/0101", value=10, requester_id="u1",
        role=Role.LEGAL_OFFICE, status="AWAITING_LEGAL_OPINION",
    )

    assert err is None
    assert process.initial_role == "LEGAL_OFFICE"
    assert process.initial_status == "AWAITING_LEGAL_OPINION"


def test_create_process_collects_field_errors():
    process, err = process_service.create_process(
        protocol_number="", value=-5, requester_id="", priority="URGENT",
    )

    assert process is None
    assert isinstance(err, ValidationError)
    assert set(err.details) == {"protocol_number", "requester_id", "value", "priority"}


def test_get_process(make_process):
    p = make_process()
    assert process_service.get_process(p.id).id == p.id
    with pytest.raises(NotFoundError):
        process_service.get_process(p.id + 1000)


def test_register_artifact_normalises_kind(make_process):
    p = make_process()

    artifact, err = process_service.register_artifact(p.id, " attestation_certificate ", created_by="u2")

    assert err is None
    assert artifact.kind == "ATTESTATION_CERTIFICATE"


def test_register_artifact_unknown_process():
    _, err = process_service.register_artifact(5555, "ATTESTATION")
    assert isinstance(err, NotFoundError)


def test_register_member_uses_configured_capacity(app):
    app.config["DEFAULT_TEAM_CAPACITY"] = 7
    try:
        member, err = process_service.register_member("hr1", "hr_office")
    finally:
        app.config["DEFAULT_TEAM_CAPACITY"] = 10

    assert err is None
    assert member.role == "HR_OFFICE"
    assert member.capacity == 7
    assert member.is_active is True


def test_register_member_rejects_unknown_role():
    _, err = process_service.register_member("x1", "TREASURY")
    assert isinstance(err, ValidationError)


# ── Priority ─────────────────────────────────────────────────────────────────


def test_set_priority_changes_triage_only(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status="UNDER_TECHNICAL_ANALYSIS", assigned_to="tech1")

    process, err = process_service.set_priority(p.id, " critical ")

    assert err is None
    assert process.priority == "CRITICAL"
    assert process.state == ("TECHNICAL_ANALYSIS", "UNDER_TECHNICAL_ANALYSIS")
    assert process.assigned_to == "tech1"
    assert AuditEntry.query.filter_by(process_id=p.id).count() == 0
    assert audit_trail.verify_replay(p.id)["consistent"] is True


def test_set_priority_rejects_unknown_value(make_process):
    p = make_process()

    process, err = process_service.set_priority(p.id, "URGENT")

    assert process is None
    assert isinstance(err, ValidationError)
    assert "priority" in err.details
    assert process_service.get_process(p.id).priority == "NORMAL"


def test_set_priority_unknown_process():
    _, err = process_service.set_priority(4242, "HIGH")
    assert isinstance(err, NotFoundError)
