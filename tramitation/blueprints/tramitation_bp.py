"""
Tramitation Blueprint — HTTP adapter over the tramitation services.

Endpoints (all under /api/v1):

    POST   /processes                              create a funding request
    GET    /processes/<id>                         process + SLA position
    PATCH  /processes/<id>/priority                change priority  Body: { "priority": "..." }
    GET    /processes/<id>/transitions             transitions legal from the current role
    POST   /processes/<id>/transitions             propose a transition
           Body: { "target_role": "...", "actor_id": "...",
                   "action": "... optional", "note": "... optional" }
    GET    /processes/<id>/history                 ordered history + replay check
    GET    /processes/<id>/artifacts               artifacts on file
    POST   /processes/<id>/artifacts               register an artifact
    PUT    /processes/<id>/assignment              assign   Body: { "member_id": "..." }
    DELETE /processes/<id>/assignment              return to inbox

    GET    /queues/<role>                          badge counts (?actor_id=)
    GET    /queues/<role>/<filter>                 queue view (?actor_id=&q=)

    POST   /team-members                           register a roster member
    GET    /team-members/<id>/workload             member workload
    POST   /team-members/<id>/redistribute         Body: { "target_member_id": "..." }
    GET    /roles/<role>/workload                  team workload overview

    GET    /audit/transitions                      KPI count (?from_role=&to_role=&start=&end=)

    GET    /notifications                          ?recipient=&unread_only=
    PATCH  /notifications/<id>/read                mark as read

Layer contract:
    - Blueprint: parse + validate input, call service, map errors to JSON.
    - NO db.session writes here; all writes are owned by the services.
"""

import logging

from flask import Blueprint, jsonify, request

from tramitation.core.exceptions import NotFoundError, ValidationError
from tramitation.models.process import ProcessRecord
from tramitation.services import (
    assignment_service,
    audit_trail,
    process_service,
    queue_views,
    tramitation_engine,
)
from tramitation.services.artifact_registry import default_registry
from tramitation.services.notification import NotificationService
from tramitation.services.sla import sla_status
from tramitation.utils.errors import E, api_error, error_response
from tramitation.utils.helpers import get_or_404, parse_datetime, parse_role, parse_text

logger = logging.getLogger(__name__)

tramitation_bp = Blueprint("tramitation", __name__, url_prefix="/api/v1")


def _process_payload(process: ProcessRecord) -> dict:
    data = process.to_dict()
    sla = sla_status(process.created_at, process.sla_deadline)
    data["sla"] = sla.to_dict() if sla else None
    return data


# ── Processes ──────────────────────────────────────────────────────────────────


@tramitation_bp.route("/processes", methods=["POST"])
def create_process():
    """Register a funding request at REQUESTER / DRAFT.

    Returns 201 on success, 400 on invalid or duplicate data.
    """
    data = request.get_json(silent=True) or {}
    for field in ("protocol_number", "value", "requester_id"):
        if data.get(field) in (None, ""):
            return api_error(E.VALIDATION_REQUIRED, f"Field '{field}' is required.")

    try:
        sla_deadline = parse_datetime(data.get("sla_deadline"))
        beneficiary_id = parse_text(data, "beneficiary_id")
        priority = parse_text(data, "priority") or "NORMAL"
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    process, err = process_service.create_process(
        protocol_number=str(data["protocol_number"]),
        value=data["value"],
        requester_id=str(data["requester_id"]),
        beneficiary_id=beneficiary_id,
        priority=priority.upper(),
        sla_deadline=sla_deadline,
    )
    if err:
        return error_response(err)
    return jsonify(_process_payload(process)), 201


@tramitation_bp.route("/processes/<int:process_id>", methods=["GET"])
def get_process(process_id: int):
    process, err = get_or_404(ProcessRecord, process_id, "Process")
    if err:
        return err
    return jsonify(_process_payload(process)), 200


@tramitation_bp.route("/processes/<int:process_id>/priority", methods=["PATCH"])
def update_priority(process_id: int):
    """Change the triage priority. Not a tramitation: no history entry."""
    data = request.get_json(silent=True) or {}
    try:
        priority = parse_text(data, "priority")
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    if not priority:
        return api_error(E.VALIDATION_REQUIRED, "Field 'priority' is required.")
    process, err = process_service.set_priority(process_id, priority)
    if err:
        return error_response(err)
    return jsonify(_process_payload(process)), 200


@tramitation_bp.route("/processes/<int:process_id>/transitions", methods=["GET"])
def list_transitions(process_id: int):
    """Transitions available from the process's current role, in table order."""
    process, err = get_or_404(ProcessRecord, process_id, "Process")
    if err:
        return err
    rules = tramitation_engine.get_available_transitions(process)
    return jsonify({
        "process_id": process.id,
        "current_role": process.current_role,
        "status": process.status,
        "items": [r.to_dict() for r in rules],
        "total": len(rules),
    }), 200


@tramitation_bp.route("/processes/<int:process_id>/transitions", methods=["POST"])
def propose_transition(process_id: int):
    """Move the process to another role.

    Returns 200 with the updated process, 404 / 422 / 409 on rejection.
    """
    data = request.get_json(silent=True) or {}
    try:
        actor_id = parse_text(data, "actor_id")
        if not actor_id:
            return api_error(E.VALIDATION_REQUIRED, "Field 'actor_id' is required.")
        target_role = parse_role(data.get("target_role"), "target_role")
        note = parse_text(data, "note")
        action = parse_text(data, "action")
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    process, err = tramitation_engine.propose_transition(
        process_id,
        target_role,
        actor_id,
        note=note,
        action=action,
    )
    if err:
        return error_response(err)
    return jsonify(_process_payload(process)), 200


@tramitation_bp.route("/processes/<int:process_id>/history", methods=["GET"])
def get_history(process_id: int):
    """Full history, oldest first, with the replay consistency check."""
    try:
        replay = audit_trail.verify_replay(process_id)
    except NotFoundError as exc:
        return error_response(exc)
    history = audit_trail.get_history(process_id)
    return jsonify({
        "history": [h.to_dict() for h in history],
        "total": len(history),
        "replay": replay,
    }), 200


@tramitation_bp.route("/processes/<int:process_id>/artifacts", methods=["GET"])
def list_artifacts(process_id: int):
    process, err = get_or_404(ProcessRecord, process_id, "Process")
    if err:
        return err
    artifacts = default_registry.list_for_process(process.id)
    return jsonify({"items": [a.to_dict() for a in artifacts], "total": len(artifacts)}), 200


@tramitation_bp.route("/processes/<int:process_id>/artifacts", methods=["POST"])
def register_artifact(process_id: int):
    data = request.get_json(silent=True) or {}
    try:
        kind = parse_text(data, "kind")
        created_by = parse_text(data, "created_by")
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    if not kind:
        return api_error(E.VALIDATION_REQUIRED, "Field 'kind' is required.")
    artifact, err = process_service.register_artifact(process_id, kind, created_by=created_by)
    if err:
        return error_response(err)
    return jsonify(artifact.to_dict()), 201


@tramitation_bp.route("/processes/<int:process_id>/assignment", methods=["PUT"])
def assign_process(process_id: int):
    data = request.get_json(silent=True) or {}
    try:
        member_id = parse_text(data, "member_id")
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    if not member_id:
        return api_error(E.VALIDATION_REQUIRED, "Field 'member_id' is required.")
    process, err = assignment_service.assign(process_id, member_id)
    if err:
        return error_response(err)
    return jsonify(_process_payload(process)), 200


@tramitation_bp.route("/processes/<int:process_id>/assignment", methods=["DELETE"])
def unassign_process(process_id: int):
    process, err = assignment_service.unassign(process_id)
    if err:
        return error_response(err)
    return jsonify(_process_payload(process)), 200


# ── Queues ─────────────────────────────────────────────────────────────────────


@tramitation_bp.route("/queues/<role>", methods=["GET"])
def queue_counts(role: str):
    try:
        role = parse_role(role)
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    counts = queue_views.queue_counts(role, actor_id=request.args.get("actor_id") or None)
    return jsonify({"role": role.value, "counts": counts}), 200


@tramitation_bp.route("/queues/<role>/<queue_filter>", methods=["GET"])
def get_queue(role: str, queue_filter: str):
    """Compute a queue view.

    Query params:
        actor_id (str): required for my_tasks.
        q (str, optional): protocol-number search.
    """
    try:
        items = queue_views.get_queue(
            role,
            queue_filter,
            actor_id=request.args.get("actor_id") or None,
            search=request.args.get("q"),
        )
    except ValidationError as exc:
        return error_response(exc)
    return jsonify({
        "role": role.upper(),
        "filter": queue_filter,
        "items": [_process_payload(p) for p in items],
        "total": len(items),
    }), 200


# ── Team members ───────────────────────────────────────────────────────────────


@tramitation_bp.route("/team-members", methods=["POST"])
def register_member():
    data = request.get_json(silent=True) or {}
    for field in ("id", "role"):
        if not data.get(field):
            return api_error(E.VALIDATION_REQUIRED, f"Field '{field}' is required.")
    capacity = data.get("capacity")
    if capacity is not None:
        try:
            capacity = int(capacity)
        except (TypeError, ValueError):
            return api_error(E.VALIDATION_INVALID, "Field 'capacity' must be an integer.")
    try:
        name = parse_text(data, "name") or ""
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    member, err = process_service.register_member(
        str(data["id"]), data["role"], name=name, capacity=capacity,
    )
    if err:
        return error_response(err)
    return jsonify(member.to_dict()), 201


@tramitation_bp.route("/team-members/<member_id>/workload", methods=["GET"])
def member_workload(member_id: str):
    try:
        workload = assignment_service.compute_workload(member_id)
    except NotFoundError as exc:
        return error_response(exc)
    return jsonify(workload.to_dict()), 200


@tramitation_bp.route("/team-members/<member_id>/redistribute", methods=["POST"])
def redistribute(member_id: str):
    """Move every process on the member's desk to another member of the same role."""
    data = request.get_json(silent=True) or {}
    try:
        target_id = parse_text(data, "target_member_id")
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    if not target_id:
        return api_error(E.VALIDATION_REQUIRED, "Field 'target_member_id' is required.")
    moved, err = assignment_service.bulk_redistribute(member_id, target_id)
    if err:
        return error_response(err)
    return jsonify({"source_member_id": member_id, "target_member_id": target_id, "moved": moved}), 200


@tramitation_bp.route("/roles/<role>/workload", methods=["GET"])
def role_workload(role: str):
    try:
        role = parse_role(role)
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    loads = assignment_service.team_workload(role)
    return jsonify({"role": role.value, "items": [w.to_dict() for w in loads], "total": len(loads)}), 200


# ── Audit KPIs ─────────────────────────────────────────────────────────────────


@tramitation_bp.route("/audit/transitions", methods=["GET"])
def transition_kpi():
    """Count transitions by role pair over [start, end)."""
    try:
        from_role = parse_role(request.args["from_role"], "from_role") if request.args.get("from_role") else None
        to_role = parse_role(request.args["to_role"], "to_role") if request.args.get("to_role") else None
        start = parse_datetime(request.args.get("start"))
        end = parse_datetime(request.args.get("end"))
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    count = audit_trail.count_transitions(from_role, to_role, start, end)
    return jsonify({
        "from_role": from_role.value if from_role else None,
        "to_role": to_role.value if to_role else None,
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "count": count,
    }), 200


# ── Notifications ──────────────────────────────────────────────────────────────


@tramitation_bp.route("/notifications", methods=["GET"])
def list_notifications():
    recipient = (request.args.get("recipient") or "").strip()
    if not recipient:
        return api_error(E.VALIDATION_REQUIRED, "Query parameter 'recipient' is required.")
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = min(request.args.get("limit", 50, type=int), 200)
    offset = request.args.get("offset", 0, type=int)

    items, total = NotificationService.list_for_recipient(
        recipient, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(recipient),
    }), 200


@tramitation_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH"])
def mark_notification_read(notification_id: int):
    notif = NotificationService.mark_read(notification_id)
    if notif is None:
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(notif.to_dict()), 200
