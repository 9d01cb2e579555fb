"""Data models for note tracking.

Defines the contracts shared by the index, the persistence layer and the
publisher:

- ``PublicationStatus``: Outcome of one publish attempt.
- ``PublicationEvent``: Immutable record of one attempt for one note.
- ``TrackedNote``: Mutable in-memory record owned by the tracking index.
- ``SnapshotEntry``: Durable per-note record written to ``tracking.json``.
- ``DocumentUpserted`` / ``DocumentDeleted`` / ``DocumentRenamed``: change
  notifications emitted by a document store.

Events and snapshot entries are frozen Pydantic models.  ``TrackedNote`` is
a plain dataclass because the index mutates it in place between reads.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Union

from pydantic import BaseModel

MetadataValue = Union[bool, str, list[str]]
Metadata = dict[str, MetadataValue]


class PublicationStatus(str, Enum):
    """Outcome of a publish attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


class PublicationEvent(BaseModel):
    """One publish attempt as seen by one note.

    Every note in a batch receives an event with the same ``timestamp`` and
    ``branch_name``.

    Attributes:
        timestamp: When the publish attempt started (UTC).
        branch_name: Remote branch created for the attempt.
        status: ``success`` or ``failure``.
        commit_id: Commit SHA of the note's file, when known.
        error_message: Human-readable failure reason.
    """

    timestamp: datetime
    branch_name: str
    status: PublicationStatus
    commit_id: str | None = None
    error_message: str | None = None

    model_config = {"frozen": True}


@dataclass
class TrackedNote:
    """Tracking record for one publishable note.

    ``published_fingerprint`` is the content fingerprint that was committed
    by the last successful publish.  It is ``None`` for notes that were never
    published and for notes whose identity changed since (renames).
    """

    identity: str
    metadata: Metadata
    content_fingerprint: str
    published_fingerprint: str | None = None
    last_published_at: datetime | None = None
    modified: bool = True
    publication_history: list[PublicationEvent] = field(
        default_factory=list
    )

    @property
    def title(self) -> str:
        """Header ``title`` if present, otherwise the file stem."""
        title = self.metadata.get("title")
        if isinstance(title, str) and title:
            return title
        return PurePosixPath(self.identity).stem

    def copy(self) -> TrackedNote:
        """Return a detached copy safe to hand out to callers."""
        return replace(
            self,
            metadata=copy.deepcopy(self.metadata),
            publication_history=list(self.publication_history),
        )


class SnapshotEntry(BaseModel):
    """Persisted mirror of one ``TrackedNote``.

    Attributes:
        content_fingerprint: Fingerprint of the content when last observed.
        published_fingerprint: Fingerprint committed by the last successful
            publish, or ``None``.
        last_published_at: Time of the last successful publish.
        metadata_fingerprint: Fingerprint of the header mapping.
        publication_history: Most recent publish events, oldest first.
    """

    content_fingerprint: str
    published_fingerprint: str | None = None
    last_published_at: datetime | None = None
    metadata_fingerprint: str
    publication_history: list[PublicationEvent] = []

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Store change events
# ---------------------------------------------------------------------------


class DocumentUpserted(BaseModel):
    """A document was created or its content changed."""

    identity: str

    model_config = {"frozen": True}


class DocumentDeleted(BaseModel):
    """A document was removed from the store."""

    identity: str

    model_config = {"frozen": True}


class DocumentRenamed(BaseModel):
    """A document moved from ``old_identity`` to ``identity``."""

    old_identity: str
    identity: str

    model_config = {"frozen": True}


StoreEvent = Union[DocumentUpserted, DocumentDeleted, DocumentRenamed]
