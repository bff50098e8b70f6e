"""
Audit Trail Service — the append-only ledger of committed tramitations.

    append_entry        write-once; called only by the tramitation engine
    get_history         chronological history of one process
    query_transitions   cross-process query by (from_role, to_role, range)
    count_transitions   KPI aggregation over the same filters
    replay_state        fold a history over the process's initial state
    verify_replay       replay and compare with the stored state

Design decisions:
    - AuditEntry rows are APPEND-ONLY. ORM hooks on the model reject update
      and delete; this module never offers either.
    - ``sequence`` is assigned as max(sequence) + 1 inside the engine's
      transaction, after the conditional update has succeeded, so entry
      order always equals transition order for a process. The unique
      (process_id, sequence) constraint turns any slip into an
      IntegrityError instead of a silent fork.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select

from tramitation.core.exceptions import NotFoundError, ReplayMismatchError
from tramitation.models import db
from tramitation.models.audit import AuditEntry
from tramitation.models.process import ProcessRecord
from tramitation.models.workflow import Role

logger = logging.getLogger(__name__)


def _role_value(role) -> str | None:
    if role is None:
        return None
    return Role.parse(role).value


# ── Write ────────────────────────────────────────────────────────────────────


def append_entry(
    *,
    process_id: int,
    from_role,
    to_role,
    previous_status: str,
    new_status: str,
    actor_id: str,
    note: str | None = None,
) -> AuditEntry:
    """
    Append a single history row. Uses ``flush`` so the engine keeps
    transaction control: the row commits or rolls back with the transition.

    Returns the (flushed) AuditEntry instance.
    """
    last = db.session.execute(
        select(func.max(AuditEntry.sequence)).where(AuditEntry.process_id == process_id)
    ).scalar()

    entry = AuditEntry(
        process_id=process_id,
        sequence=(last or 0) + 1,
        from_role=_role_value(from_role),
        to_role=_role_value(to_role),
        previous_status=previous_status,
        new_status=new_status,
        actor_id=actor_id,
        note=(str(note).strip() or None) if note is not None else None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


# ── Read ─────────────────────────────────────────────────────────────────────


def get_history(process_id: int) -> list[AuditEntry]:
    """Full chronological history for one process (oldest first)."""
    return (
        AuditEntry.query
        .filter_by(process_id=process_id)
        .order_by(AuditEntry.sequence)
        .all()
    )


def _transition_query(from_role=None, to_role=None, start: datetime | None = None, end: datetime | None = None):
    q = AuditEntry.query
    if from_role is not None:
        q = q.filter(AuditEntry.from_role == _role_value(from_role))
    if to_role is not None:
        q = q.filter(AuditEntry.to_role == _role_value(to_role))
    if start is not None:
        q = q.filter(AuditEntry.timestamp >= start)
    if end is not None:
        q = q.filter(AuditEntry.timestamp < end)
    return q


def query_transitions(from_role=None, to_role=None, start=None, end=None) -> list[AuditEntry]:
    """
    Entries across all processes matching the role pair and the half-open
    range [start, end). Any filter left as None is not applied.
    """
    q = _transition_query(from_role, to_role, start, end)
    return q.order_by(AuditEntry.timestamp, AuditEntry.id).all()


def count_transitions(from_role=None, to_role=None, start=None, end=None) -> int:
    """KPI helper, e.g. UNIT_MANAGER → TECHNICAL_ANALYSIS moves in a month."""
    return _transition_query(from_role, to_role, start, end).count()


# ── Replay ───────────────────────────────────────────────────────────────────


def replay_state(process: ProcessRecord, history: list[AuditEntry] | None = None) -> tuple[str, str]:
    """
    Fold the history over (initial_role, initial_status).

    Each entry must leave exactly the state the previous one reached;
    otherwise ReplayMismatchError is raised.
    """
    if history is None:
        history = get_history(process.id)

    state = (process.initial_role, process.initial_status)
    for entry in history:
        found = (entry.from_role, entry.previous_status)
        if found != state:
            raise ReplayMismatchError(process.id, entry.sequence, state, found)
        state = (entry.to_role, entry.new_status)
    return state


def verify_replay(process_id: int) -> dict:
    """
    Replay one process and compare with its stored state.

    Returns:
        {"process_id", "consistent": bool, "stored": [role, status],
         "replayed": [role, status] | None, "error": str | None}
    """
    process = db.session.get(ProcessRecord, process_id)
    if process is None:
        raise NotFoundError("ProcessRecord", process_id)

    stored = process.state
    try:
        replayed = replay_state(process)
    except ReplayMismatchError as exc:
        logger.error(
            "Audit trail replay broken",
            extra={"process_id": process_id, "error_kind": exc.kind},
        )
        return {
            "process_id": process_id,
            "consistent": False,
            "stored": list(stored),
            "replayed": None,
            "error": str(exc),
        }

    consistent = replayed == stored
    if not consistent:
        logger.error(
            "Audit trail replay diverges from stored state",
            extra={"process_id": process_id},
        )
    return {
        "process_id": process_id,
        "consistent": consistent,
        "stored": list(stored),
        "replayed": list(replayed),
        "error": None,
    }
