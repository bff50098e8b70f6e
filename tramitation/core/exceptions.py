"""
Tramitation-wide exception hierarchy.

All service functions report failures with these types. The engine and the
assignment manager return them as the second element of a result tuple
instead of raising, so callers always receive a typed outcome:

    process, err = propose_transition(pid, Role.TECHNICAL_ANALYSIS, "u2")
    if err:
        ...  # isinstance(err, GateFailureError)

Blueprints map each kind to an HTTP status through ``tramitation.utils.errors``.
Every kind is recoverable at the caller level: a rejected operation leaves
the ProcessRecord and the audit trail exactly as they were.
"""


class TramitationError(Exception):
    """Base class for every routing / assignment failure.

    Subclasses set ``kind`` (stable machine name) and fill ``details`` with
    the structured payload surfaced to API clients.
    """

    kind = "TramitationError"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self), "details": self.details}


class NotFoundError(TramitationError):
    """Raised when a process or team member does not exist.

    Args:
        resource: Human-readable entity name (e.g. "ProcessRecord", "TeamMember").
        resource_id: The key that was looked up.
    """

    kind = "NotFound"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg, {"resource": resource, "resource_id": resource_id})


class InvalidTransitionError(TramitationError):
    """No transition rule exists from the process's role to the target role."""

    kind = "InvalidTransition"

    def __init__(self, current_role: str, target_role: str, action: str | None = None) -> None:
        self.current_role = current_role
        self.target_role = target_role
        self.action = action
        msg = f"No transition from {current_role} to {target_role}"
        if action:
            msg += f" (action={action})"
        super().__init__(msg, {
            "current_role": current_role,
            "target_role": target_role,
            "action": action,
        })


class GateFailureError(TramitationError):
    """The gate attached to the matched rule rejected the transition."""

    kind = "GateFailure"

    def __init__(self, gate_name: str, reason: str) -> None:
        self.gate_name = gate_name
        self.reason = reason
        super().__init__(
            f"Gate {gate_name} blocked the transition: {reason}",
            {"gate": gate_name, "reason": reason},
        )


class ConflictError(TramitationError):
    """Optimistic-concurrency violation.

    The stored (role, status) pair no longer matches the pair observed when
    the rule was matched: someone else tramitated the process first. The
    caller must re-read before deciding whether to try again.

    Args:
        expected: (role, status) observed at proposal time.
        actual: (role, status) found at commit time.
    """

    kind = "Conflict"

    def __init__(self, expected: tuple[str, str], actual: tuple[str, str]) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Process state changed: expected {expected[0]}/{expected[1]}, "
            f"found {actual[0]}/{actual[1]}",
            {
                "expected": {"role": expected[0], "status": expected[1]},
                "actual": {"role": actual[0], "status": actual[1]},
            },
        )


class AssignmentRoleMismatchError(TramitationError):
    """The team member does not belong to the role the process sits at."""

    kind = "AssignmentRoleMismatch"

    def __init__(self, member_id: str, target_role: str) -> None:
        self.member_id = member_id
        self.target_role = target_role
        super().__init__(
            f"Team member {member_id} is not on the {target_role} roster",
            {"member_id": member_id, "target_role": target_role},
        )


class ValidationError(TramitationError):
    """Input was well-formed but violated a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    kind = "Validation"


class ReplayMismatchError(TramitationError):
    """An audit entry does not continue from the state its predecessor left."""

    kind = "ReplayMismatch"

    def __init__(self, process_id: int, sequence: int, expected: tuple[str, str], found: tuple[str, str]) -> None:
        self.process_id = process_id
        self.sequence = sequence
        super().__init__(
            f"History of process {process_id} breaks at entry #{sequence}: "
            f"expected to leave {expected[0]}/{expected[1]}, entry leaves {found[0]}/{found[1]}",
            {
                "process_id": process_id,
                "sequence": sequence,
                "expected": list(expected),
                "found": list(found),
            },
        )
