"""
Tests: Audit Trail — append-only history, replay and KPI queries.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tramitation.core.exceptions import NotFoundError, ReplayMismatchError
from tramitation.models import db as _db
from tramitation.models.audit import AuditEntry, AuditEntryImmutableError
from tramitation.models.process import ProcessRecord
from tramitation.models.workflow import Role, STATUS_PENDING_ATTESTATION
from tramitation.services import audit_trail
from tramitation.services.tramitation_engine import propose_transition


def _walk_to_finance(process_id):
    propose_transition(process_id, Role.UNIT_MANAGER, "u1")
    propose_transition(process_id, Role.TECHNICAL_ANALYSIS, "u1")  # requester waiver
    propose_transition(process_id, Role.FINANCE_OFFICE, "tech")


# ── History ──────────────────────────────────────────────────────────────────


def test_history_is_ordered_by_sequence(make_process):
    p = make_process(requester_id="u1")
    _walk_to_finance(p.id)

    history = audit_trail.get_history(p.id)

    assert [(h.from_role, h.to_role) for h in history] == [
        ("REQUESTER", "UNIT_MANAGER"),
        ("UNIT_MANAGER", "TECHNICAL_ANALYSIS"),
        ("TECHNICAL_ANALYSIS", "FINANCE_OFFICE"),
    ]
    assert [h.sequence for h in history] == [1, 2, 3]


def test_history_of_untouched_process_is_empty(make_process):
    p = make_process()
    assert audit_trail.get_history(p.id) == []


def test_each_process_has_its_own_sequence(make_process):
    a = make_process()
    b = make_process()
    propose_transition(a.id, Role.UNIT_MANAGER, "u1")
    propose_transition(b.id, Role.UNIT_MANAGER, "u1")

    assert audit_trail.get_history(a.id)[0].sequence == 1
    assert audit_trail.get_history(b.id)[0].sequence == 1


# ── Immutability ─────────────────────────────────────────────────────────────


def test_entry_cannot_be_updated(make_process):
    p = make_process()
    propose_transition(p.id, Role.UNIT_MANAGER, "u1")
    entry = audit_trail.get_history(p.id)[0]

    entry.note = "rewritten"
    with pytest.raises(AuditEntryImmutableError):
        _db.session.commit()
    _db.session.rollback()

    assert audit_trail.get_history(p.id)[0].note is None


def test_entry_cannot_be_deleted(make_process):
    p = make_process()
    propose_transition(p.id, Role.UNIT_MANAGER, "u1")
    entry = audit_trail.get_history(p.id)[0]

    _db.session.delete(entry)
    with pytest.raises(AuditEntryImmutableError):
        _db.session.commit()
    _db.session.rollback()

    assert AuditEntry.query.count() == 1


# ── Replay ───────────────────────────────────────────────────────────────────


def test_replay_reproduces_stored_state(make_process):
    p = make_process(requester_id="u1")
    _walk_to_finance(p.id)
    propose_transition(p.id, Role.TECHNICAL_ANALYSIS, "fin", action="return")

    stored = _db.session.get(ProcessRecord, p.id, populate_existing=True)
    assert audit_trail.replay_state(stored) == stored.state

    report = audit_trail.verify_replay(p.id)
    assert report["consistent"] is True
    assert report["stored"] == ["TECHNICAL_ANALYSIS", "RETURNED"]
    assert report["replayed"] == report["stored"]
    assert report["error"] is None


def test_replay_of_untouched_process_is_initial_state(make_process):
    p = make_process(role=Role.UNIT_MANAGER, status=STATUS_PENDING_ATTESTATION)
    assert audit_trail.replay_state(p) == ("UNIT_MANAGER", STATUS_PENDING_ATTESTATION)


def test_replay_detects_broken_chain(make_process):
    p = make_process()
    propose_transition(p.id, Role.UNIT_MANAGER, "u1")
    forged = AuditEntry(
        process_id=p.id,
        sequence=2,
        from_role="FINANCE_OFFICE",
        to_role="TECHNICAL_ANALYSIS",
        previous_status="AWAITING_SIGNATURE",
        new_status="APPROVED",
        actor_id="intruder",
    )

    with pytest.raises(ReplayMismatchError) as exc_info:
        audit_trail.replay_state(p, audit_trail.get_history(p.id) + [forged])
    assert exc_info.value.sequence == 2


def test_verify_replay_flags_out_of_band_state_change(make_process):
    p = make_process()
    propose_transition(p.id, Role.UNIT_MANAGER, "u1")
    # Bypass the engine entirely
    _db.session.query(ProcessRecord).filter_by(id=p.id).update({"status": "APPROVED"})
    _db.session.commit()

    report = audit_trail.verify_replay(p.id)

    assert report["consistent"] is False
    assert report["stored"] == ["UNIT_MANAGER", "APPROVED"]
    assert report["replayed"] == ["UNIT_MANAGER", STATUS_PENDING_ATTESTATION]


def test_verify_replay_unknown_process():
    with pytest.raises(NotFoundError):
        audit_trail.verify_replay(424242)


# ── KPI queries ──────────────────────────────────────────────────────────────


def test_count_transitions_by_role_pair(make_process):
    for _ in range(3):
        p = make_process(requester_id="u1")
        propose_transition(p.id, Role.UNIT_MANAGER, "u1")
        propose_transition(p.id, Role.TECHNICAL_ANALYSIS, "u1")
    make_process()

    assert audit_trail.count_transitions(Role.UNIT_MANAGER, Role.TECHNICAL_ANALYSIS) == 3
    assert audit_trail.count_transitions("REQUESTER", "UNIT_MANAGER") == 3
    assert audit_trail.count_transitions(Role.TECHNICAL_ANALYSIS, Role.FINANCE_OFFICE) == 0
    assert audit_trail.count_transitions() == 6


def test_count_transitions_range_is_half_open(make_process):
    p = make_process()
    propose_transition(p.id, Role.UNIT_MANAGER, "u1")
    entry = audit_trail.get_history(p.id)[0]
    ts = entry.timestamp
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)

    assert audit_trail.count_transitions(start=ts, end=ts + timedelta(seconds=1)) == 1
    assert audit_trail.count_transitions(start=ts - timedelta(days=1), end=ts) == 0


def test_query_transitions_filters_by_window(make_process):
    p = make_process()
    propose_transition(p.id, Role.UNIT_MANAGER, "u1")
    now = datetime.now(timezone.utc)

    assert len(audit_trail.query_transitions(start=now - timedelta(hours=1), end=now + timedelta(hours=1))) == 1
    assert audit_trail.query_transitions(start=now + timedelta(hours=1)) == []
