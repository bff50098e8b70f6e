"""
Tests: Assignment Manager — desk assignment, redistribution and workload.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tramitation.core.exceptions import AssignmentRoleMismatchError, NotFoundError
from tramitation.models import db as _db
from tramitation.models.audit import AuditEntry
from tramitation.models.process import ProcessRecord
from tramitation.models.workflow import (
    Role,
    STATUS_AWAITING_SIGNATURE,
    STATUS_CANCELLED,
    STATUS_UNDER_TECHNICAL_ANALYSIS,
)
from tramitation.services import assignment_service
from tramitation.services.tramitation_engine import propose_transition


def _reload(process_id):
    return _db.session.get(ProcessRecord, process_id, populate_existing=True)


# ── assign / unassign ────────────────────────────────────────────────────────


def test_assign_member_of_current_role(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)

    process, err = assignment_service.assign(p.id, "tech1")

    assert err is None
    assert process.assigned_to == "tech1"
    assert AuditEntry.query.count() == 0


def test_reassign_within_role(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    make_member("tech2", Role.TECHNICAL_ANALYSIS)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS,
                     assigned_to="tech1")

    process, err = assignment_service.assign(p.id, "tech2")

    assert err is None
    assert process.assigned_to == "tech2"


def test_assign_member_of_other_role_is_rejected(make_process, make_member):
    make_member("fin1", Role.FINANCE_OFFICE)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)

    process, err = assignment_service.assign(p.id, "fin1")

    assert process is None
    assert isinstance(err, AssignmentRoleMismatchError)
    assert err.target_role == "TECHNICAL_ANALYSIS"
    assert _reload(p.id).assigned_to is None


def test_assign_inactive_member_is_rejected(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS, is_active=False)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)

    _, err = assignment_service.assign(p.id, "tech1")

    assert isinstance(err, AssignmentRoleMismatchError)


def test_assign_unknown_member_or_process(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)

    _, err = assignment_service.assign(p.id, "ghost")
    assert isinstance(err, NotFoundError)

    _, err = assignment_service.assign(987654, "tech1")
    assert isinstance(err, NotFoundError)


def test_assignment_after_tramitation_is_rejected(make_process, make_member):
    """A member picked for the old role cannot pin the process once it moved on."""
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)

    _, err = propose_transition(p.id, Role.FINANCE_OFFICE, "tech2")
    assert err is None

    process, err = assignment_service.assign(p.id, "tech1")

    assert process is None
    assert isinstance(err, AssignmentRoleMismatchError)
    assert err.target_role == "FINANCE_OFFICE"
    assert _reload(p.id).assigned_to is None


def test_unassign_returns_process_to_inbox(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS,
                     assigned_to="tech1")

    process, err = assignment_service.unassign(p.id)

    assert err is None
    assert process.assigned_to is None


def test_unassign_unknown_process():
    _, err = assignment_service.unassign(31337)
    assert isinstance(err, NotFoundError)


# ── bulk_redistribute ────────────────────────────────────────────────────────


def test_bulk_redistribute_moves_only_source_role_processes(make_process, make_member):
    make_member("x", Role.TECHNICAL_ANALYSIS)
    make_member("y", Role.TECHNICAL_ANALYSIS)
    make_member("z", Role.TECHNICAL_ANALYSIS)
    mine = [
        make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS, assigned_to="x")
        for _ in range(3)
    ]
    untouched = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS,
                             assigned_to="z")
    # Stale pointer: the process left the role without going through the engine
    stale = make_process(role=Role.FINANCE_OFFICE, status=STATUS_AWAITING_SIGNATURE, assigned_to="x")

    moved, err = assignment_service.bulk_redistribute("x", "y")

    assert err is None
    assert moved == 3
    assert all(_reload(p.id).assigned_to == "y" for p in mine)
    assert _reload(untouched.id).assigned_to == "z"
    assert _reload(stale.id).assigned_to == "x"


def test_bulk_redistribute_with_nothing_to_move(make_member):
    make_member("x", Role.LEGAL_OFFICE)
    make_member("y", Role.LEGAL_OFFICE)

    moved, err = assignment_service.bulk_redistribute("x", "y")

    assert err is None
    assert moved == 0


def test_bulk_redistribute_target_must_share_role(make_process, make_member):
    make_member("x", Role.TECHNICAL_ANALYSIS)
    make_member("fin", Role.FINANCE_OFFICE)
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS, assigned_to="x")

    moved, err = assignment_service.bulk_redistribute("x", "fin")

    assert moved is None
    assert isinstance(err, AssignmentRoleMismatchError)
    assert err.member_id == "fin"
    assert _reload(p.id).assigned_to == "x"


def test_bulk_redistribute_unknown_member(make_member):
    make_member("x", Role.TECHNICAL_ANALYSIS)
    _, err = assignment_service.bulk_redistribute("x", "nobody")
    assert isinstance(err, NotFoundError)
    _, err = assignment_service.bulk_redistribute("nobody", "x")
    assert isinstance(err, NotFoundError)


# ── Workload ─────────────────────────────────────────────────────────────────


def test_compute_workload_counts_active_processes(make_process, make_member):
    make_member("fin1", Role.FINANCE_OFFICE, capacity=4)
    desk = []
    for _ in range(3):
        p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)
        propose_transition(p.id, Role.FINANCE_OFFICE, "tech1")
        assignment_service.assign(p.id, "fin1")
        desk.append(p)
    # Cancelled by the hosting application: no longer weighs on the desk
    _db.session.query(ProcessRecord).filter_by(id=desk[2].id).update({"status": STATUS_CANCELLED})
    _db.session.commit()

    load = assignment_service.compute_workload("fin1")

    assert load.active_count == 2
    assert load.capacity == 4
    assert load.utilization == pytest.approx(50.0)
    assert load.late_count == 0


def test_over_capacity_is_reported_not_refused(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS, capacity=1)
    make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS, assigned_to="tech1")
    p = make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS)

    _, err = assignment_service.assign(p.id, "tech1")

    assert err is None
    assert assignment_service.compute_workload("tech1").utilization == pytest.approx(200.0)


def test_zero_capacity_has_zero_utilization(make_process, make_member):
    make_member("tech1", Role.TECHNICAL_ANALYSIS, capacity=0)
    make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS, assigned_to="tech1")

    load = assignment_service.compute_workload("tech1")

    assert load.active_count == 1
    assert load.utilization == 0.0


def test_workload_counts_late_processes(make_process, make_member):
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    make_member("tech1", Role.TECHNICAL_ANALYSIS)
    make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS,
                 assigned_to="tech1", sla_deadline=now - timedelta(hours=1))
    make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS,
                 assigned_to="tech1", sla_deadline=now + timedelta(days=2))

    load = assignment_service.compute_workload("tech1", now=now)

    assert load.active_count == 2
    assert load.late_count == 1


def test_compute_workload_unknown_member():
    with pytest.raises(NotFoundError):
        assignment_service.compute_workload("ghost")


def test_team_workload_sorted_busiest_first(make_process, make_member):
    make_member("a", Role.TECHNICAL_ANALYSIS, capacity=10)
    make_member("b", Role.TECHNICAL_ANALYSIS, capacity=2)
    make_member("c", Role.TECHNICAL_ANALYSIS, is_active=False)
    make_member("fin", Role.FINANCE_OFFICE)
    make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS, assigned_to="a")
    make_process(role=Role.TECHNICAL_ANALYSIS, status=STATUS_UNDER_TECHNICAL_ANALYSIS, assigned_to="b")

    loads = assignment_service.team_workload(Role.TECHNICAL_ANALYSIS)

    assert [w.member_id for w in loads] == ["b", "a"]
    assert loads[0].to_dict()["utilization"] == 50.0
