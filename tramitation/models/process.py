"""
Tramitation Engine
Process domain models.

Models:
    - ProcessRecord:   one funding-request instance routed between roles
    - TeamMember:      roster entry; a member works for exactly one role
    - ProcessArtifact: existence record for a document attached to a process
                       (content lives with the document collaborator)

Invariants:
    - assigned_to, when set, names a TeamMember whose role == current_role.
    - current_role / status change only through the tramitation engine;
      assigned_to changes through the engine (cleared) or the assignment
      service. Rows are never deleted here.
"""

from datetime import datetime, timezone

from tramitation.models import db
from tramitation.models.workflow import INITIAL_ROLE, INITIAL_STATUS


def _utcnow():
    return datetime.now(timezone.utc)


class ProcessRecord(db.Model):
    """
    A funding request in flight.

    ``initial_role`` / ``initial_status`` are written once at creation and
    are the origin the audit trail is replayed from.
    """

    __tablename__ = "process_records"
    __table_args__ = (
        db.Index("ix_process_role_status", "current_role", "status"),
        db.Index("ix_process_role_assignee", "current_role", "assigned_to"),
    )

    id = db.Column(db.Integer, primary_key=True)
    protocol_number = db.Column(db.String(50), nullable=False, unique=True)
    value = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    current_role = db.Column(
        db.String(30), nullable=False, default=INITIAL_ROLE.value,
        comment="REQUESTER | UNIT_MANAGER | TECHNICAL_ANALYSIS | FINANCE_OFFICE | LEGAL_OFFICE | HR_OFFICE",
    )
    status = db.Column(db.String(60), nullable=False, default=INITIAL_STATUS)
    assigned_to = db.Column(
        db.String(64),
        db.ForeignKey("team_members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Team member of current_role working the process",
    )

    requester_id = db.Column(db.String(64), nullable=False, index=True)
    beneficiary_id = db.Column(
        db.String(64), nullable=True,
        comment="Person receiving the funds when different from the requester",
    )

    initial_role = db.Column(db.String(30), nullable=False, default=INITIAL_ROLE.value)
    initial_status = db.Column(db.String(60), nullable=False, default=INITIAL_STATUS)

    priority = db.Column(db.String(20), nullable=False, default="NORMAL", comment="NORMAL | HIGH | CRITICAL")
    sla_deadline = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def state(self) -> tuple[str, str]:
        """The (role, status) pair the engine compares-and-swaps on."""
        return self.current_role, self.status

    def to_dict(self):
        return {
            "id": self.id,
            "protocol_number": self.protocol_number,
            "value": float(self.value) if self.value is not None else None,
            "current_role": self.current_role,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "requester_id": self.requester_id,
            "beneficiary_id": self.beneficiary_id,
            "initial_role": self.initial_role,
            "initial_status": self.initial_status,
            "priority": self.priority,
            "sla_deadline": self.sla_deadline.isoformat() if self.sla_deadline else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ProcessRecord {self.id}: {self.protocol_number} @ {self.current_role}/{self.status}>"


class TeamMember(db.Model):
    """Roster entry. ``capacity`` is informational, never enforced."""

    __tablename__ = "team_members"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(200), nullable=False, default="")
    role = db.Column(db.String(30), nullable=False, index=True)
    capacity = db.Column(db.Integer, nullable=False, default=10)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "capacity": self.capacity,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<TeamMember {self.id} ({self.role})>"


class ProcessArtifact(db.Model):
    """Marks that a document of ``kind`` exists for a process."""

    __tablename__ = "process_artifacts"
    __table_args__ = (
        db.Index("ix_artifact_process_kind", "process_id", "kind"),
    )

    id = db.Column(db.Integer, primary_key=True)
    process_id = db.Column(
        db.Integer,
        db.ForeignKey("process_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind = db.Column(db.String(60), nullable=False, comment="ATTESTATION | ATTESTATION_CERTIFICATE | …")
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "process_id": self.process_id,
            "kind": self.kind,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
