"""Standardised API error responses.

Usage
-----
    from tramitation.utils.errors import api_error, error_response, E

    return api_error(E.VALIDATION_REQUIRED, "target_role is required")
    return error_response(err)      # err: TramitationError returned by a service
"""

from __future__ import annotations

from flask import jsonify

from tramitation.core.exceptions import TramitationError


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • TRAMITATION_ prefix for routing-engine outcomes
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"

    # Routing engine
    INVALID_TRANSITION = "TRAMITATION_INVALID_TRANSITION"
    GATE_FAILURE = "TRAMITATION_GATE_FAILURE"
    ROLE_MISMATCH = "TRAMITATION_ASSIGNMENT_ROLE_MISMATCH"
    REPLAY_MISMATCH = "TRAMITATION_REPLAY_MISMATCH"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.INTERNAL: 500,
    E.INVALID_TRANSITION: 422,
    E.GATE_FAILURE: 422,
    E.ROLE_MISMATCH: 409,
    E.REPLAY_MISMATCH: 500,
}

# Service error kind → code
_KIND_CODES: dict[str, str] = {
    "NotFound": E.NOT_FOUND,
    "InvalidTransition": E.INVALID_TRANSITION,
    "GateFailure": E.GATE_FAILURE,
    "Conflict": E.CONFLICT_STATE,
    "AssignmentRoleMismatch": E.ROLE_MISMATCH,
    "Validation": E.VALIDATION_INVALID,
    "ReplayMismatch": E.REPLAY_MISMATCH,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (gate reason, expected/actual state, …).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def error_response(err: TramitationError):
    """Translate a service-layer error into the standard JSON response."""
    code = _KIND_CODES.get(err.kind, E.INTERNAL)
    details = dict(err.details)
    details["kind"] = err.kind
    return api_error(code, str(err), details=details)
