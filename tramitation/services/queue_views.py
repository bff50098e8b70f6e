"""
Queue Views — read-only projections over processes and their history.

    inbox(role)                          at the role, nobody assigned
    my_tasks(role, actor_id)             at the role, on the actor's desk, still active
    awaiting_external_signature(role)    forwarded by the role, waiting for a signature elsewhere
    processed(role)                      tramitated by the role at least once, now elsewhere
    returned(role)                       sent back to the role for correction

Nothing here is stored: every call recomputes from ProcessRecord and
AuditEntry, so a view can never disagree with the source of truth.
``get_queue`` dispatches by filter name and applies an optional
protocol-number search.
"""

from __future__ import annotations

from sqlalchemy import and_, func, select

from tramitation.core.exceptions import ValidationError
from tramitation.models.audit import AuditEntry
from tramitation.models.process import ProcessRecord
from tramitation.models.workflow import (
    AWAITING_SIGNATURE_STATUSES,
    QUEUE_CLOSED_STATUSES,
    RETURNED_STATUSES,
    Role,
)

QUEUE_INBOX = "inbox"
QUEUE_MY_TASKS = "my_tasks"
QUEUE_AWAITING_SIGNATURE = "awaiting_signature"
QUEUE_PROCESSED = "processed"
QUEUE_RETURNED = "returned"

QUEUE_FILTERS = (
    QUEUE_INBOX,
    QUEUE_MY_TASKS,
    QUEUE_AWAITING_SIGNATURE,
    QUEUE_PROCESSED,
    QUEUE_RETURNED,
)


def _ordered(q):
    return q.order_by(ProcessRecord.created_at.desc(), ProcessRecord.id.desc())


def _latest_entry_subquery():
    """max(sequence) per process, i.e. its last move."""
    return (
        select(
            AuditEntry.process_id.label("process_id"),
            func.max(AuditEntry.sequence).label("max_seq"),
        )
        .group_by(AuditEntry.process_id)
        .subquery()
    )


# ── Projections ──────────────────────────────────────────────────────────────


def inbox(role):
    role_value = Role.parse(role).value
    q = ProcessRecord.query.filter(
        ProcessRecord.current_role == role_value,
        ProcessRecord.assigned_to.is_(None),
    )
    return q


def my_tasks(role, actor_id: str):
    role = Role.parse(role)
    q = ProcessRecord.query.filter(
        ProcessRecord.current_role == role.value,
        ProcessRecord.assigned_to == actor_id,
        ProcessRecord.status.notin_(sorted(QUEUE_CLOSED_STATUSES)),
    )
    return q


def awaiting_external_signature(role):
    """Processes whose last move came from ``role`` and now await a signature."""
    role_value = Role.parse(role).value
    latest = _latest_entry_subquery()
    q = (
        ProcessRecord.query
        .join(latest, latest.c.process_id == ProcessRecord.id)
        .join(
            AuditEntry,
            and_(
                AuditEntry.process_id == latest.c.process_id,
                AuditEntry.sequence == latest.c.max_seq,
            ),
        )
        .filter(
            AuditEntry.from_role == role_value,
            ProcessRecord.current_role != role_value,
            ProcessRecord.status.in_(sorted(AWAITING_SIGNATURE_STATUSES)),
        )
    )
    return q


def processed(role):
    role_value = Role.parse(role).value
    handled = (
        select(AuditEntry.process_id)
        .where(AuditEntry.from_role == role_value)
        .distinct()
    )
    q = ProcessRecord.query.filter(
        ProcessRecord.id.in_(handled),
        ProcessRecord.current_role != role_value,
    )
    return q


def returned(role):
    role_value = Role.parse(role).value
    q = ProcessRecord.query.filter(
        ProcessRecord.current_role == role_value,
        ProcessRecord.status.in_(sorted(RETURNED_STATUSES)),
    )
    return q


# ── Dispatcher ───────────────────────────────────────────────────────────────


def get_queue(role, queue_filter: str, actor_id: str | None = None, search: str | None = None) -> list[ProcessRecord]:
    """
    Compute one queue view.

    Args:
        role: Role whose queue is requested.
        queue_filter: One of QUEUE_FILTERS.
        actor_id: Required for ``my_tasks``.
        search: Case-insensitive protocol-number substring.

    Raises:
        ValidationError: unknown role or filter, or ``my_tasks`` without actor.
    """
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise ValidationError(str(exc), {"role": "unknown role"}) from None

    if queue_filter == QUEUE_INBOX:
        q = inbox(role)
    elif queue_filter == QUEUE_MY_TASKS:
        if not actor_id:
            raise ValidationError("actor_id is required for my_tasks", {"actor_id": "required"})
        q = my_tasks(role, actor_id)
    elif queue_filter == QUEUE_AWAITING_SIGNATURE:
        q = awaiting_external_signature(role)
    elif queue_filter == QUEUE_PROCESSED:
        q = processed(role)
    elif queue_filter == QUEUE_RETURNED:
        q = returned(role)
    else:
        raise ValidationError(
            f"Unknown queue filter '{queue_filter}'",
            {"queue_filter": f"must be one of: {', '.join(QUEUE_FILTERS)}"},
        )

    term = (search or "").strip().lower()
    if term:
        q = q.filter(func.lower(ProcessRecord.protocol_number).contains(term, autoescape=True))

    return _ordered(q).all()


def queue_counts(role, actor_id: str | None = None) -> dict[str, int]:
    """Badge counts for every queue of a role."""
    role = Role.parse(role)
    counts = {
        QUEUE_INBOX: inbox(role).count(),
        QUEUE_AWAITING_SIGNATURE: awaiting_external_signature(role).count(),
        QUEUE_PROCESSED: processed(role).count(),
        QUEUE_RETURNED: returned(role).count(),
    }
    if actor_id:
        counts[QUEUE_MY_TASKS] = my_tasks(role, actor_id).count()
    return counts
