"""
Tramitation Engine
Workflow vocabulary — roles and status codes.

Roles are the fixed organizational queues a funding-request process can
occupy. Statuses are free-form strings, but every status the engine writes
comes from the constants below; the queue projections group them per role.

Lifecycle (abridged):
    REQUESTER ─submit─▶ UNIT_MANAGER ─attest─▶ TECHNICAL_ANALYSIS (hub)
    TECHNICAL_ANALYSIS ─▶ FINANCE_OFFICE | LEGAL_OFFICE | UNIT_MANAGER
    FINANCE_OFFICE | LEGAL_OFFICE | HR_OFFICE ─▶ TECHNICAL_ANALYSIS
"""

from enum import Enum


class Role(str, Enum):
    """Organizational role / queue a process can sit at."""

    REQUESTER = "REQUESTER"
    UNIT_MANAGER = "UNIT_MANAGER"
    TECHNICAL_ANALYSIS = "TECHNICAL_ANALYSIS"
    FINANCE_OFFICE = "FINANCE_OFFICE"
    LEGAL_OFFICE = "LEGAL_OFFICE"
    HR_OFFICE = "HR_OFFICE"

    @classmethod
    def parse(cls, value) -> "Role":
        """Accept a Role, its value, or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


# ── Status codes ─────────────────────────────────────────────────────────────

STATUS_DRAFT = "DRAFT"
STATUS_PENDING_ATTESTATION = "PENDING_ATTESTATION"
STATUS_UNDER_TECHNICAL_ANALYSIS = "UNDER_TECHNICAL_ANALYSIS"
STATUS_AWAITING_SIGNATURE = "AWAITING_SIGNATURE"
STATUS_AWAITING_LEGAL_OPINION = "AWAITING_LEGAL_OPINION"
STATUS_APPROVED = "APPROVED"
STATUS_RETURNED = "RETURNED"
STATUS_LEGAL_OPINION_ISSUED = "LEGAL_OPINION_ISSUED"
STATUS_PAYROLL_APPLIED = "PAYROLL_APPLIED"

# Disposition values set by the hosting application; the engine never
# treats them specially.
STATUS_CONCLUDED = "CONCLUDED"
STATUS_ARCHIVED = "ARCHIVED"
STATUS_CANCELLED = "CANCELLED"

INITIAL_ROLE = Role.REQUESTER
INITIAL_STATUS = STATUS_DRAFT

PRIORITIES = {"NORMAL", "HIGH", "CRITICAL"}


# ── Artifact kinds ───────────────────────────────────────────────────────────

ARTIFACT_ATTESTATION = "ATTESTATION"

# A gate requiring a kind is satisfied by any of its accepted variants.
ARTIFACT_KIND_ALIASES: dict[str, frozenset[str]] = {
    ARTIFACT_ATTESTATION: frozenset({
        "ATTESTATION",
        "ATTESTATION_CERTIFICATE",
        "ACCOUNTABILITY_ATTESTATION",
        "CERTIFICATE",
    }),
}


def accepted_artifact_kinds(kind: str) -> frozenset[str]:
    return ARTIFACT_KIND_ALIASES.get(kind, frozenset({kind}))


# ── Queue grouping ───────────────────────────────────────────────────────────

# Statuses that take a process out of a member's active desk even though it
# still sits at the role. Only the hosting application's dispositions close a
# desk; every status the rule table writes stays active at its role.
QUEUE_CLOSED_STATUSES = frozenset({STATUS_CONCLUDED, STATUS_ARCHIVED, STATUS_CANCELLED})

AWAITING_SIGNATURE_STATUSES = frozenset({STATUS_AWAITING_SIGNATURE})

RETURNED_STATUSES = frozenset({STATUS_RETURNED})
