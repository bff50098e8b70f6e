"""
Tramitation Engine
Notification domain model.

Models:
    - Notification: in-app message surfaced to the actor whose request was
      rejected (gate failure, concurrent change, …)
"""

from datetime import datetime, timezone

from tramitation.models import db


NOTIFICATION_SEVERITIES = {"info", "warning", "error", "success"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(64), nullable=False, index=True, comment="Actor id")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    severity = db.Column(db.String(20), default="info")
    kind = db.Column(db.String(40), default="", comment="GateFailure | Conflict | …")

    # Loose link to the process; no FK so notifications never block process writes
    process_id = db.Column(db.Integer, nullable=True, index=True)

    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient": self.recipient,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "kind": self.kind,
            "process_id": self.process_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
