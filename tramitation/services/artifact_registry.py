"""
Artifact existence collaborator.

The tramitation core never reads document content; it only needs to know
whether a document of a given kind exists for a process. ``ArtifactRegistry``
is that seam. ``SqlArtifactRegistry`` answers from the ``process_artifacts``
table and is the default used by the engine; tests or a hosting application
may pass any other implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy import select

from tramitation.models import db
from tramitation.models.process import ProcessArtifact
from tramitation.models.workflow import accepted_artifact_kinds


class ArtifactRegistry(ABC):
    """Answers "does an artifact of kind K exist for process P"."""

    @abstractmethod
    def has_artifact(self, process_id: int, kind: str) -> bool:
        ...


class SqlArtifactRegistry(ArtifactRegistry):
    """Registry backed by ``ProcessArtifact`` rows.

    Every call queries the database: artifacts can be created concurrently
    with a proposal, so nothing is cached.
    """

    def has_artifact(self, process_id: int, kind: str) -> bool:
        kinds = accepted_artifact_kinds(kind)
        stmt = (
            select(ProcessArtifact.id)
            .where(
                ProcessArtifact.process_id == process_id,
                ProcessArtifact.kind.in_(sorted(kinds)),
            )
            .limit(1)
        )
        return db.session.execute(stmt).first() is not None

    def list_for_process(self, process_id: int) -> list[ProcessArtifact]:
        return (
            ProcessArtifact.query
            .filter_by(process_id=process_id)
            .order_by(ProcessArtifact.created_at, ProcessArtifact.id)
            .all()
        )


default_registry = SqlArtifactRegistry()
