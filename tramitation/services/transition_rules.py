"""
Transition Rule Table — the static routing graph.

Maps each source role to the transitions legal from it. One generic engine
consults this table instead of every role dashboard carrying its own
conditional block. The table is data: it is not mutated at runtime.

    REQUESTER          submit           → UNIT_MANAGER        PENDING_ATTESTATION
    UNIT_MANAGER       attest_forward   → TECHNICAL_ANALYSIS  UNDER_TECHNICAL_ANALYSIS  [RequireArtifact(ATTESTATION)]
    UNIT_MANAGER       return           → REQUESTER           RETURNED
    TECHNICAL_ANALYSIS forward          → FINANCE_OFFICE      AWAITING_SIGNATURE
    TECHNICAL_ANALYSIS legal_review     → LEGAL_OFFICE        AWAITING_LEGAL_OPINION
    TECHNICAL_ANALYSIS return           → UNIT_MANAGER        RETURNED
    FINANCE_OFFICE     approve          → TECHNICAL_ANALYSIS  APPROVED
    FINANCE_OFFICE     return           → TECHNICAL_ANALYSIS  RETURNED
    LEGAL_OFFICE       opinion_issued   → TECHNICAL_ANALYSIS  LEGAL_OPINION_ISSUED
    HR_OFFICE          payroll_applied  → TECHNICAL_ANALYSIS  PAYROLL_APPLIED
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tramitation.models.workflow import (
    ARTIFACT_ATTESTATION,
    Role,
    STATUS_APPROVED,
    STATUS_AWAITING_LEGAL_OPINION,
    STATUS_AWAITING_SIGNATURE,
    STATUS_LEGAL_OPINION_ISSUED,
    STATUS_PAYROLL_APPLIED,
    STATUS_PENDING_ATTESTATION,
    STATUS_RETURNED,
    STATUS_UNDER_TECHNICAL_ANALYSIS,
)
from tramitation.services.gate_policy import AlwaysAllow, Gate, RequireArtifact


@dataclass(frozen=True)
class TransitionRule:
    """One legal edge of the routing graph."""
    source_role: Role
    target_role: Role
    gate: Gate = field(compare=False)
    resulting_status: str
    label: str
    action: str

    def to_dict(self) -> dict:
        return {
            "source_role": self.source_role.value,
            "target_role": self.target_role.value,
            "gate": self.gate.describe(),
            "resulting_status": self.resulting_status,
            "label": self.label,
            "action": self.action,
        }


_ALLOW = AlwaysAllow()


def _rule(source, target, status, label, action, gate=_ALLOW) -> TransitionRule:
    return TransitionRule(
        source_role=source,
        target_role=target,
        gate=gate,
        resulting_status=status,
        label=label,
        action=action,
    )


TRANSITION_RULES: dict[Role, tuple[TransitionRule, ...]] = {
    Role.REQUESTER: (
        _rule(Role.REQUESTER, Role.UNIT_MANAGER, STATUS_PENDING_ATTESTATION,
              "Unit manager (attestation)", "submit"),
    ),
    Role.UNIT_MANAGER: (
        _rule(Role.UNIT_MANAGER, Role.TECHNICAL_ANALYSIS, STATUS_UNDER_TECHNICAL_ANALYSIS,
              "Technical analysis", "attest_forward",
              gate=RequireArtifact(ARTIFACT_ATTESTATION)),
        _rule(Role.UNIT_MANAGER, Role.REQUESTER, STATUS_RETURNED,
              "Return to requester (correction)", "return"),
    ),
    Role.TECHNICAL_ANALYSIS: (
        _rule(Role.TECHNICAL_ANALYSIS, Role.FINANCE_OFFICE, STATUS_AWAITING_SIGNATURE,
              "Finance office (expense authorization)", "forward"),
        _rule(Role.TECHNICAL_ANALYSIS, Role.LEGAL_OFFICE, STATUS_AWAITING_LEGAL_OPINION,
              "Legal office (legal opinion)", "legal_review"),
        _rule(Role.TECHNICAL_ANALYSIS, Role.UNIT_MANAGER, STATUS_RETURNED,
              "Return to unit manager", "return"),
    ),
    Role.FINANCE_OFFICE: (
        _rule(Role.FINANCE_OFFICE, Role.TECHNICAL_ANALYSIS, STATUS_APPROVED,
              "Technical analysis (commitment / payment)", "approve"),
        _rule(Role.FINANCE_OFFICE, Role.TECHNICAL_ANALYSIS, STATUS_RETURNED,
              "Return to technical analysis (correction)", "return"),
    ),
    Role.LEGAL_OFFICE: (
        _rule(Role.LEGAL_OFFICE, Role.TECHNICAL_ANALYSIS, STATUS_LEGAL_OPINION_ISSUED,
              "Return to technical analysis", "opinion_issued"),
    ),
    Role.HR_OFFICE: (
        _rule(Role.HR_OFFICE, Role.TECHNICAL_ANALYSIS, STATUS_PAYROLL_APPLIED,
              "Return to technical analysis", "payroll_applied"),
    ),
}


def rules_from(role) -> tuple[TransitionRule, ...]:
    """All rules legal from ``role`` in table order."""
    return TRANSITION_RULES.get(Role.parse(role), ())


def find_rule(current_role, target_role, action: str | None = None) -> TransitionRule | None:
    """
    Look up the rule keyed by (current_role, target_role).

    When several rules share the pair, ``action`` picks one; without it the
    first rule in table order wins. Returns None when nothing matches.
    """
    target = Role.parse(target_role)
    for rule in rules_from(current_role):
        if rule.target_role != target:
            continue
        if action is None or rule.action == action:
            return rule
    return None
