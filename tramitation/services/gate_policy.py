"""
Gate Policy — named, pure predicates attached to transition rules.

A gate inspects the process, the acting user and the artifact collaborator
and answers allow / deny with a machine-readable reason. Gates never write.

    AlwaysAllow                 forwarding and every "return to sender" rule
    RequireArtifact(kind)       an artifact of ``kind`` must exist, unless the
                                actor is the requester or beneficiary
                                (self-attestation waiver)

One gate per rule. Conditions that need several predicates at once should
become a boolean expression over named gates, not more inline waivers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from tramitation.services.artifact_registry import ArtifactRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    """Outcome of a single gate evaluation."""
    allowed: bool
    reason: str | None = None
    waived: bool = False

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason, "waived": self.waived}


class Gate(ABC):
    """Base gate. Subclasses implement ``evaluate``."""

    name = "Gate"

    @abstractmethod
    def evaluate(self, process, actor_id: str, artifacts: ArtifactRegistry) -> GateResult:
        ...
    def describe(self) -> str:
        return self.name

    def __repr__(self):
        return f"<{self.describe()}>"


class AlwaysAllow(Gate):
    name = "AlwaysAllow"

    def evaluate(self, process, actor_id, artifacts):
        return GateResult(allowed=True)


class RequireArtifact(Gate):
    """Passes iff an artifact of ``kind`` exists or the actor is exempt.

    The waiver covers an actor who is the process's requester (a unit
    manager forwarding their own request) or its beneficiary.
    """

    name = "RequireArtifact"

    def __init__(self, kind: str):
        self.kind = kind

    def describe(self) -> str:
        return f"{self.name}({self.kind})"

    @staticmethod
    def is_self_attestation(process, actor_id: str) -> bool:
        if not actor_id:
            return False
        return actor_id in {process.requester_id, process.beneficiary_id}

    def evaluate(self, process, actor_id, artifacts):
        if self.is_self_attestation(process, actor_id):
            logger.info(
                "Artifact requirement waived: actor is requester or beneficiary",
                extra={"process_id": process.id, "actor_id": actor_id},
            )
            return GateResult(allowed=True, waived=True)

        if artifacts.has_artifact(process.id, self.kind):
            return GateResult(allowed=True)

        return GateResult(allowed=False, reason=f"{self.kind}_MISSING")
