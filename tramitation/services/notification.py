"""
Tramitation Engine
Notification Service.

Surfaces rejected tramitations (gate failures, concurrent changes) to the
actor who attempted them. Delivery is fire-and-forget from the engine's
point of view: a failure to store a notification is logged and never
changes the outcome returned to the caller.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from tramitation.models import db
from tramitation.models.notification import NOTIFICATION_SEVERITIES, Notification

logger = logging.getLogger(__name__)

_FAILURE_TITLES = {
    "GateFailure": "Transition blocked",
    "Conflict": "Process changed by someone else",
}


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, recipient, title, message="", severity="info", kind="", process_id=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            recipient=recipient,
            title=title,
            message=message,
            severity=severity if severity in NOTIFICATION_SEVERITIES else "info",
            kind=kind,
            process_id=process_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def notify_failure(*, recipient, process_id, error):
        """
        Tell ``recipient`` their request on ``process_id`` was rejected.

        Returns the Notification, or None when it could not be stored.
        """
        if not recipient:
            return None
        title = _FAILURE_TITLES.get(error.kind, "Request rejected")
        if error.kind == "Conflict":
            message = f"{error} Refresh the process before trying again."
        else:
            message = str(error)
        try:
            return NotificationService.create(
                recipient=recipient,
                title=title,
                message=message,
                severity="warning" if error.kind == "Conflict" else "error",
                kind=error.kind,
                process_id=process_id,
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning(
                "Could not store rejection notification: %s", exc,
                extra={"process_id": process_id, "actor_id": recipient},
            )
            return None

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a recipient, newest first.
        """
        q = Notification.query.filter_by(recipient=recipient)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(recipient):
        """Return count of unread notifications."""
        return Notification.query.filter_by(recipient=recipient, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id):
        """Mark a single notification as read."""
        notif = db.session.get(Notification, notification_id)
        if notif:
            notif.mark_read()
            db.session.commit()
        return notif
