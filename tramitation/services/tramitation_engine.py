"""
Tramitation Engine — validates and atomically commits role-to-role moves.

    propose_transition(process_id, target_role, actor_id, note=None)
        -> (ProcessRecord, None) | (None, TramitationError)

Steps:
  1. Resolve the process (NotFoundError).
  2. Match a rule keyed by (current_role, target_role) in the transition
     table (InvalidTransitionError).
  3. Evaluate the rule's gate, read-only, against the current process and
     artifact state (GateFailureError). Nothing is cached between calls.
  4. Commit with a single conditional UPDATE on the (current_role, status)
     pair observed in step 2. Zero rows matched means someone else moved the
     process first (ConflictError). One row: status, role and assignment are
     replaced and exactly one AuditEntry is appended in the same transaction.

The engine never retries. A rejected call leaves the process and its
history untouched; the caller re-reads and decides.

Two-phase usage, for callers that show the user a choice before committing:

    proposal, err = prepare_transition(pid, Role.FINANCE_OFFICE, "u7")
    ...
    process, err = commit_transition(proposal, note="ok")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import current_app, has_app_context
from sqlalchemy import select, update

from tramitation.core.exceptions import (
    ConflictError,
    GateFailureError,
    InvalidTransitionError,
    NotFoundError,
    TramitationError,
)
from tramitation.models import db
from tramitation.models.process import ProcessRecord
from tramitation.models.workflow import Role
from tramitation.services import audit_trail
from tramitation.services.artifact_registry import ArtifactRegistry, default_registry
from tramitation.services.gate_policy import GateResult
from tramitation.services.notification import NotificationService
from tramitation.services.transition_rules import TransitionRule, find_rule, rules_from

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionProposal:
    """A matched, gate-approved transition waiting to be committed.

    ``observed_role`` / ``observed_status`` are the compare-and-swap key.
    """
    process_id: int
    rule: TransitionRule
    actor_id: str
    observed_role: str
    observed_status: str
    gate_result: GateResult

    @property
    def expected_state(self) -> tuple[str, str]:
        return self.observed_role, self.observed_status

    def to_dict(self) -> dict:
        return {
            "process_id": self.process_id,
            "rule": self.rule.to_dict(),
            "actor_id": self.actor_id,
            "observed_role": self.observed_role,
            "observed_status": self.observed_status,
            "gate": self.gate_result.to_dict(),
        }


# ── Private helpers ──────────────────────────────────────────────────────────


def _load_fresh(process_id: int) -> ProcessRecord | None:
    """Load the process bypassing whatever the identity map holds."""
    return db.session.get(ProcessRecord, process_id, populate_existing=True)


def _read_state(process_id: int) -> tuple[str, str] | None:
    row = db.session.execute(
        select(ProcessRecord.current_role, ProcessRecord.status)
        .where(ProcessRecord.id == process_id)
    ).first()
    return (row[0], row[1]) if row else None


def _notifications_enabled() -> bool:
    if not has_app_context():
        return False
    return bool(current_app.config.get("NOTIFY_ON_REJECTION", True))


def _reject(error: TramitationError, *, process_id, actor_id, target_role=None):
    """Log a rejected proposal and tell the actor; returns the error tuple."""
    logger.warning(
        "Tramitation rejected: %s",
        error,
        extra={
            "process_id": process_id,
            "actor_id": actor_id,
            "to_role": getattr(target_role, "value", target_role),
            "error_kind": error.kind,
        },
    )
    if isinstance(error, (GateFailureError, ConflictError)) and _notifications_enabled():
        NotificationService.notify_failure(
            recipient=actor_id,
            process_id=process_id,
            error=error,
        )
    return None, error


# ── Public API ───────────────────────────────────────────────────────────────


def prepare_transition(
    process_id: int,
    target_role,
    actor_id: str,
    *,
    action: str | None = None,
    artifacts: ArtifactRegistry | None = None,
) -> tuple[TransitionProposal, None] | tuple[None, TramitationError]:
    """
    Match the rule and evaluate its gate without writing anything.

    Args:
        process_id: ProcessRecord PK.
        target_role: Role (or its string value) to send the process to.
        actor_id: User performing the tramitation.
        action: Disambiguates rules sharing (source, target), e.g. the
                finance office's "approve" vs "return".
        artifacts: Artifact collaborator; defaults to the SQL registry.

    Returns:
        (TransitionProposal, None) on success, (None, error) otherwise.
    """
    process = _load_fresh(process_id)
    if process is None:
        return _reject(NotFoundError("ProcessRecord", process_id),
                       process_id=process_id, actor_id=actor_id)

    try:
        target = Role.parse(target_role)
    except ValueError:
        return _reject(InvalidTransitionError(process.current_role, str(target_role), action),
                       process_id=process_id, actor_id=actor_id, target_role=target_role)

    rule = find_rule(process.current_role, target, action)
    if rule is None:
        return _reject(InvalidTransitionError(process.current_role, target.value, action),
                       process_id=process_id, actor_id=actor_id, target_role=target)

    gate_result = rule.gate.evaluate(process, actor_id, artifacts or default_registry)
    if not gate_result.allowed:
        return _reject(GateFailureError(rule.gate.name, gate_result.reason),
                       process_id=process_id, actor_id=actor_id, target_role=target)

    proposal = TransitionProposal(
        process_id=process.id,
        rule=rule,
        actor_id=actor_id,
        observed_role=process.current_role,
        observed_status=process.status,
        gate_result=gate_result,
    )
    return proposal, None


def commit_transition(
    proposal: TransitionProposal,
    note: str | None = None,
) -> tuple[ProcessRecord, None] | tuple[None, TramitationError]:
    """
    Apply a prepared proposal with compare-and-swap semantics.

    The UPDATE only matches while the stored (current_role, status) still
    equals the pair observed at proposal time. The audit entry is appended
    after the swap, in the same transaction, and both commit together.
    """
    rule = proposal.rule
    now = datetime.now(timezone.utc)
    stmt = (
        update(ProcessRecord)
        .where(
            ProcessRecord.id == proposal.process_id,
            ProcessRecord.current_role == proposal.observed_role,
            ProcessRecord.status == proposal.observed_status,
        )
        .values(
            current_role=rule.target_role.value,
            status=rule.resulting_status,
            assigned_to=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    try:
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            db.session.rollback()
            actual = _read_state(proposal.process_id)
            if actual is None:
                return _reject(NotFoundError("ProcessRecord", proposal.process_id),
                               process_id=proposal.process_id, actor_id=proposal.actor_id)
            return _reject(ConflictError(proposal.expected_state, actual),
                           process_id=proposal.process_id, actor_id=proposal.actor_id,
                           target_role=rule.target_role)

        entry = audit_trail.append_entry(
            process_id=proposal.process_id,
            from_role=proposal.observed_role,
            to_role=rule.target_role,
            previous_status=proposal.observed_status,
            new_status=rule.resulting_status,
            actor_id=proposal.actor_id,
            note=note,
        )
        db.session.commit()
    except Exception:
        # The swap must never outlive a failed audit append.
        db.session.rollback()
        logger.exception(
            "Tramitation commit failed",
            extra={"process_id": proposal.process_id, "actor_id": proposal.actor_id},
        )
        raise

    logger.info(
        "Process tramitated",
        extra={
            "process_id": proposal.process_id,
            "actor_id": proposal.actor_id,
            "from_role": proposal.observed_role,
            "to_role": rule.target_role.value,
            "action": rule.action,
            "sequence": entry.sequence,
        },
    )
    return _load_fresh(proposal.process_id), None


def propose_transition(
    process_id: int,
    target_role,
    actor_id: str,
    note: str | None = None,
    *,
    action: str | None = None,
    artifacts: ArtifactRegistry | None = None,
) -> tuple[ProcessRecord, None] | tuple[None, TramitationError]:
    """
    Validate and commit a single transition (prepare + commit back to back).

    Returns:
        (updated ProcessRecord, None) on success.
        (None, NotFoundError | InvalidTransitionError | GateFailureError
               | ConflictError) on rejection.
    """
    proposal, err = prepare_transition(
        process_id, target_role, actor_id, action=action, artifacts=artifacts,
    )
    if err:
        return None, err
    return commit_transition(proposal, note=note)


def get_available_transitions(process: ProcessRecord) -> list[TransitionRule]:
    """Rules legal from the process's current role, in table order."""
    return list(rules_from(process.current_role))
