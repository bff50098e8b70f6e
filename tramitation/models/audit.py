"""
Tramitation Engine
Audit domain model.

Models:
    - AuditEntry: immutable, append-only record of one committed tramitation.

Entries for a process form a gapless sequence (1, 2, 3, …). Folding them in
sequence order over the process's initial (role, status) reproduces its
current (role, status); see ``tramitation.services.audit_trail.replay_state``.
"""

from datetime import datetime, timezone

from sqlalchemy import event

from tramitation.models import db


class AuditEntry(db.Model):
    """
    One row per committed transition.

    Written only by the tramitation engine, inside the same DB transaction
    as the conditional update it records. Never updated or deleted.
    """

    __tablename__ = "tramitation_history"
    __table_args__ = (
        db.UniqueConstraint("process_id", "sequence", name="uq_history_process_sequence"),
        db.Index("idx_history_roles", "from_role", "to_role"),
        db.Index("idx_history_actor", "actor_id"),
        db.Index("idx_history_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    process_id = db.Column(
        db.Integer,
        db.ForeignKey("process_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = db.Column(
        db.Integer, nullable=False,
        comment="1-based position in the process history",
    )

    from_role = db.Column(db.String(30), nullable=False)
    to_role = db.Column(db.String(30), nullable=False)
    previous_status = db.Column(db.String(60), nullable=False)
    new_status = db.Column(db.String(60), nullable=False)

    note = db.Column(db.Text, nullable=True)
    actor_id = db.Column(db.String(64), nullable=False)

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "process_id": self.process_id,
            "sequence": self.sequence,
            "from_role": self.from_role,
            "to_role": self.to_role,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "note": self.note,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return (
            f"<AuditEntry {self.process_id}#{self.sequence}: "
            f"{self.from_role}->{self.to_role} {self.new_status}>"
        )


class AuditEntryImmutableError(Exception):
    """Raised when code tries to modify or delete a written AuditEntry."""


@event.listens_for(AuditEntry, "before_update")
def _reject_update(mapper, connection, target):
    raise AuditEntryImmutableError(f"AuditEntry {target.id} is immutable")


@event.listens_for(AuditEntry, "before_delete")
def _reject_delete(mapper, connection, target):
    raise AuditEntryImmutableError(f"AuditEntry {target.id} cannot be deleted")
