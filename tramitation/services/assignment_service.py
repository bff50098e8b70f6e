"""
Assignment Service — workload distribution inside a role's queue.

    assign(process_id, member_id)                 -> (ProcessRecord, None) | (None, error)
    unassign(process_id)                          -> (ProcessRecord, None) | (None, error)
    bulk_redistribute(source_id, target_id)       -> (int, None) | (None, error)
    compute_workload(member_id)                   -> Workload
    team_workload(role)                           -> list[Workload]

Design decisions:
    - Only ``ProcessRecord.assigned_to`` is written. Assignment is a working
      queue concern, not a routing event: no AuditEntry is produced.
    - Writes are conditional on the process still sitting at the member's
      role. A tramitation that lands first clears the assignment and moves
      the role, so a stale assign() fails with AssignmentRoleMismatchError
      rather than pinning a member of the wrong team.
    - bulk_redistribute is one UPDATE statement in one transaction: all the
      qualifying processes move, or none do.
    - Capacity is a monitoring signal only. Nothing here refuses work because
      a member is over capacity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from tramitation.core.exceptions import (
    AssignmentRoleMismatchError,
    NotFoundError,
    TramitationError,
)
from tramitation.models import db
from tramitation.models.process import ProcessRecord, TeamMember
from tramitation.models.workflow import QUEUE_CLOSED_STATUSES, Role
from tramitation.services.sla import is_late

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workload:
    member_id: str
    name: str
    role: str
    active_count: int
    capacity: int
    utilization: float
    late_count: int

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "name": self.name,
            "role": self.role,
            "active_count": self.active_count,
            "capacity": self.capacity,
            "utilization": round(self.utilization, 1),
            "late_count": self.late_count,
        }


# ── Private helpers ──────────────────────────────────────────────────────────


def _get_member(member_id: str) -> TeamMember | None:
    return db.session.get(TeamMember, member_id, populate_existing=True)


def _current_role(process_id: int) -> str | None:
    return db.session.execute(
        select(ProcessRecord.current_role).where(ProcessRecord.id == process_id)
    ).scalar()


def _execute_and_commit(stmt):
    try:
        result = db.session.execute(stmt)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return result.rowcount


# ── Public API ───────────────────────────────────────────────────────────────


def assign(process_id: int, member_id: str) -> tuple[ProcessRecord, None] | tuple[None, TramitationError]:
    """
    Put a process on a team member's desk.

    Valid for an unassigned process and for reassignment within the same
    role. The member must be an active member of the process's current role.
    """
    member = _get_member(member_id)
    if member is None:
        return None, NotFoundError("TeamMember", member_id)

    process = db.session.get(ProcessRecord, process_id, populate_existing=True)
    if process is None:
        return None, NotFoundError("ProcessRecord", process_id)

    if not member.is_active or member.role != process.current_role:
        logger.warning(
            "Assignment rejected: member not on role roster",
            extra={"process_id": process_id, "actor_id": member_id, "error_kind": "AssignmentRoleMismatch"},
        )
        return None, AssignmentRoleMismatchError(member_id, process.current_role)

    stmt = (
        update(ProcessRecord)
        .where(ProcessRecord.id == process_id, ProcessRecord.current_role == member.role)
        .values(assigned_to=member.id, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if _execute_and_commit(stmt) != 1:
        # Tramitated between our read and the update
        actual_role = _current_role(process_id)
        if actual_role is None:
            return None, NotFoundError("ProcessRecord", process_id)
        return None, AssignmentRoleMismatchError(member_id, actual_role)

    logger.info(
        "Process assigned",
        extra={"process_id": process_id, "actor_id": member_id, "to_role": member.role},
    )
    return db.session.get(ProcessRecord, process_id, populate_existing=True), None


def unassign(process_id: int) -> tuple[ProcessRecord, None] | tuple[None, TramitationError]:
    """Return a process to its role's inbox."""
    stmt = (
        update(ProcessRecord)
        .where(ProcessRecord.id == process_id)
        .values(assigned_to=None, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if _execute_and_commit(stmt) != 1:
        return None, NotFoundError("ProcessRecord", process_id)

    logger.info("Process returned to inbox", extra={"process_id": process_id})
    return db.session.get(ProcessRecord, process_id, populate_existing=True), None


def bulk_redistribute(source_member_id: str, target_member_id: str) -> tuple[int, None] | tuple[None, TramitationError]:
    """
    Move every process assigned to the source member, within the source's
    role, to the target member.

    Processes that already left the source's role are not touched. The
    target must be an active member of the source's role.

    Returns:
        (number of processes moved, None) or (None, error).
    """
    source = _get_member(source_member_id)
    if source is None:
        return None, NotFoundError("TeamMember", source_member_id)
    target = _get_member(target_member_id)
    if target is None:
        return None, NotFoundError("TeamMember", target_member_id)

    if not target.is_active or target.role != source.role:
        logger.warning(
            "Redistribution rejected: target not on source role roster",
            extra={"actor_id": target_member_id, "error_kind": "AssignmentRoleMismatch"},
        )
        return None, AssignmentRoleMismatchError(target_member_id, source.role)

    stmt = (
        update(ProcessRecord)
        .where(
            ProcessRecord.assigned_to == source.id,
            ProcessRecord.current_role == source.role,
        )
        .values(assigned_to=target.id, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    moved = _execute_and_commit(stmt)

    logger.info(
        "Workload redistributed: %d process(es) %s -> %s",
        moved, source.id, target.id,
        extra={"from_role": source.role, "to_role": target.role},
    )
    return moved, None


def _active_processes(member: TeamMember) -> list[ProcessRecord]:
    return (
        ProcessRecord.query
        .filter(
            ProcessRecord.assigned_to == member.id,
            ProcessRecord.current_role == member.role,
            ProcessRecord.status.notin_(sorted(QUEUE_CLOSED_STATUSES)),
        )
        .all()
    )


def _workload_for(member: TeamMember, now: datetime | None = None) -> Workload:
    active = _active_processes(member)
    count = len(active)
    capacity = member.capacity or 0
    utilization = (count / capacity) * 100 if capacity > 0 else 0.0
    late = sum(1 for p in active if is_late(p, now))
    return Workload(
        member_id=member.id,
        name=member.name,
        role=member.role,
        active_count=count,
        capacity=capacity,
        utilization=utilization,
        late_count=late,
    )


def compute_workload(member_id: str, now: datetime | None = None) -> Workload:
    """
    Active process count and utilization (count / capacity × 100).

    Raises:
        NotFoundError: unknown member.
    """
    member = _get_member(member_id)
    if member is None:
        raise NotFoundError("TeamMember", member_id)
    return _workload_for(member, now)


def team_workload(role, now: datetime | None = None) -> list[Workload]:
    """Workload for every active member of ``role``, busiest first."""
    role_value = Role.parse(role).value
    members = (
        TeamMember.query
        .filter_by(role=role_value, is_active=True)
        .order_by(TeamMember.name, TeamMember.id)
        .all()
    )
    loads = [_workload_for(m, now) for m in members]
    return sorted(loads, key=lambda w: w.utilization, reverse=True)
