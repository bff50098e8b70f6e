"""
Process Service — submission, artifact and roster collaborators.

The tramitation core does not author documents or manage users; these
helpers are the thin write paths the hosting application (and the HTTP
layer) use to feed it:

    create_process      register a new funding request at its initial state
    get_process         fetch by id (NotFoundError when missing)
    set_priority        re-triage a process (NORMAL | HIGH | CRITICAL)
    register_artifact   record that a document of some kind now exists
    register_member     add a member to a role's roster
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from tramitation.core.exceptions import NotFoundError, TramitationError, ValidationError
from tramitation.models import db
from tramitation.models.process import ProcessArtifact, ProcessRecord, TeamMember
from tramitation.models.workflow import INITIAL_ROLE, INITIAL_STATUS, PRIORITIES, Role

logger = logging.getLogger(__name__)


def _default_capacity() -> int:
    if has_app_context():
        return int(current_app.config.get("DEFAULT_TEAM_CAPACITY", 10))
    return 10


def get_process(process_id: int) -> ProcessRecord:
    process = db.session.get(ProcessRecord, process_id)
    if process is None:
        raise NotFoundError("ProcessRecord", process_id)
    return process


def create_process(
    *,
    protocol_number: str,
    value,
    requester_id: str,
    beneficiary_id: str | None = None,
    priority: str = "NORMAL",
    sla_deadline=None,
    role=INITIAL_ROLE,
    status: str = INITIAL_STATUS,
) -> tuple[ProcessRecord, None] | tuple[None, TramitationError]:
    """
    Register a funding request.

    ``role`` / ``status`` default to REQUESTER / DRAFT; importers of
    in-flight requests may start elsewhere. Whatever is chosen becomes the
    replay origin (initial_role / initial_status).
    """
    errors = {}
    protocol_number = (protocol_number or "").strip()
    if not protocol_number:
        errors["protocol_number"] = "required"
    if not (requester_id or "").strip():
        errors["requester_id"] = "required"
    try:
        amount = Decimal(str(value))
        if amount < 0:
            errors["value"] = "must not be negative"
    except (InvalidOperation, ValueError):
        amount = None
        errors["value"] = "must be a number"
    if priority not in PRIORITIES:
        errors["priority"] = f"must be one of: {', '.join(sorted(PRIORITIES))}"
    try:
        role = Role.parse(role)
    except ValueError:
        errors["role"] = "unknown role"
    if not (status or "").strip():
        errors["status"] = "required"
    if errors:
        return None, ValidationError("Invalid process data", errors)

    process = ProcessRecord(
        protocol_number=protocol_number,
        value=amount,
        requester_id=requester_id.strip(),
        beneficiary_id=(beneficiary_id or "").strip() or None,
        priority=priority,
        sla_deadline=sla_deadline,
        current_role=role.value,
        status=status,
        initial_role=role.value,
        initial_status=status,
    )
    db.session.add(process)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return None, ValidationError(
            f"Protocol number {protocol_number} already exists",
            {"protocol_number": "duplicate"},
        )

    logger.info(
        "Process created",
        extra={"process_id": process.id, "actor_id": process.requester_id, "to_role": role.value},
    )
    return process, None


def set_priority(
    process_id: int,
    priority: str,
) -> tuple[ProcessRecord, None] | tuple[None, TramitationError]:
    """
    Re-triage a process. Role, status and assignment are untouched and no
    AuditEntry is written, so the replay of the history is unaffected.
    """
    process = db.session.get(ProcessRecord, process_id)
    if process is None:
        return None, NotFoundError("ProcessRecord", process_id)
    priority = str(priority or "").strip().upper()
    if priority not in PRIORITIES:
        return None, ValidationError(
            "Invalid priority",
            {"priority": f"must be one of: {', '.join(sorted(PRIORITIES))}"},
        )
    if process.priority == priority:
        return process, None

    previous = process.priority
    process.priority = priority
    db.session.commit()
    logger.info(
        "Priority changed: %s -> %s", previous, priority,
        extra={"process_id": process.id},
    )
    return process, None


def register_artifact(
    process_id: int,
    kind: str,
    created_by: str | None = None,
) -> tuple[ProcessArtifact, None] | tuple[None, TramitationError]:
    """Record that a document of ``kind`` exists for the process."""
    if db.session.get(ProcessRecord, process_id) is None:
        return None, NotFoundError("ProcessRecord", process_id)
    kind = (kind or "").strip().upper()
    if not kind:
        return None, ValidationError("Artifact kind is required", {"kind": "required"})

    artifact = ProcessArtifact(process_id=process_id, kind=kind, created_by=created_by)
    db.session.add(artifact)
    db.session.commit()
    logger.info("Artifact registered: %s", kind, extra={"process_id": process_id, "actor_id": created_by})
    return artifact, None


def register_member(
    member_id: str,
    role,
    *,
    name: str = "",
    capacity: int | None = None,
) -> tuple[TeamMember, None] | tuple[None, TramitationError]:
    """Add a member to a role's roster."""
    member_id = (member_id or "").strip()
    if not member_id:
        return None, ValidationError("Member id is required", {"id": "required"})
    try:
        role = Role.parse(role)
    except ValueError:
        return None, ValidationError("Unknown role", {"role": "unknown role"})
    if capacity is None:
        capacity = _default_capacity()
    if capacity < 0:
        return None, ValidationError("Capacity must not be negative", {"capacity": "must not be negative"})
    if db.session.get(TeamMember, member_id) is not None:
        return None, ValidationError(f"Team member {member_id} already exists", {"id": "duplicate"})

    member = TeamMember(id=member_id, role=role.value, name=name or member_id, capacity=capacity)
    db.session.add(member)
    db.session.commit()
    return member, None
