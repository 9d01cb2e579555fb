"""In-memory index of publishable notes.

``TrackingIndex`` owns every ``TrackedNote`` and is the only place where
``modified`` and the publication history change.  It does no I/O: the
reconciliation engine feeds it fingerprints and the publisher feeds it
publication events.

Invariants maintained here:

* ``modified`` is ``True`` unless the current content fingerprint equals
  the fingerprint committed by the last successful publish.
* ``publication_history`` never grows beyond ``MAX_HISTORY`` entries; the
  oldest entries are evicted first.
* History is only ever appended to, never reset by content changes.

Every mutation bumps ``revision`` and stamps the identity it touched, so a
caller that suspends between reading and writing (a full rescan) can tell
whether a record changed underneath it: see ``changed_since``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from .models import (
    Metadata,
    PublicationEvent,
    PublicationStatus,
    TrackedNote,
)

logger = logging.getLogger(__name__)

MAX_HISTORY = 10


class TrackingIndex:
    """Identity -> ``TrackedNote`` mapping, kept in insertion order."""

    def __init__(self) -> None:
        self._notes: dict[str, TrackedNote] = {}
        self._revision = 0
        self._changed: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, identity: object) -> bool:
        return identity in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._notes))

    def get(self, identity: str) -> TrackedNote | None:
        """Return a copy of the record for *identity*, or ``None``."""
        note = self._notes.get(identity)
        return note.copy() if note is not None else None

    def list(self, modified_only: bool = False) -> list[TrackedNote]:
        """Return copies of tracked notes in insertion order.

        Args:
            modified_only: Only include notes with ``modified=True``.
        """
        return [
            note.copy()
            for note in self._notes.values()
            if note.modified or not modified_only
        ]

    def history(self, identity: str) -> list[PublicationEvent]:
        """Return the publication history of *identity* (oldest first)."""
        note = self._notes.get(identity)
        return list(note.publication_history) if note else []

    def all_history(self) -> dict[str, list[PublicationEvent]]:
        """Return every note's history keyed by identity."""
        return {
            identity: list(note.publication_history)
            for identity, note in self._notes.items()
        }

    @property
    def revision(self) -> int:
        """Counter bumped by every mutation."""
        return self._revision

    def changed_since(self, identity: str, revision: int) -> bool:
        """Return ``True`` if *identity* was mutated after *revision*.

        Removals count, including removals of identities that were not
        tracked.
        """
        return self._changed.get(identity, 0) > revision

    def _touch(self, identity: str) -> None:
        self._revision += 1
        self._changed[identity] = self._revision

    # ------------------------------------------------------------------
    # Mutations driven by reconciliation
    # ------------------------------------------------------------------

    def upsert(
        self, identity: str, metadata: Metadata, fingerprint: str
    ) -> TrackedNote:
        """Create or update the record for *identity*.

        New records start out modified.  Existing records keep their history
        and recompute ``modified`` against the last published fingerprint.

        Returns:
            A copy of the resulting record.
        """
        note = self._notes.get(identity)
        if note is None:
            note = TrackedNote(
                identity=identity,
                metadata=dict(metadata),
                content_fingerprint=fingerprint,
            )
            self._notes[identity] = note
            logger.debug("Tracking new note %s", identity)
        else:
            note.metadata = dict(metadata)
            note.content_fingerprint = fingerprint
            note.modified = fingerprint != note.published_fingerprint
        self._touch(identity)
        return note.copy()

    def restore(self, note: TrackedNote) -> None:
        """Insert a fully formed record, replacing any existing one."""
        restored = note.copy()
        if len(restored.publication_history) > MAX_HISTORY:
            restored.publication_history = restored.publication_history[
                -MAX_HISTORY:
            ]
        self._notes[restored.identity] = restored
        self._touch(restored.identity)

    def replace(self, notes: Iterable[TrackedNote]) -> None:
        """Swap the whole index for *notes* (used when restoring a snapshot)."""
        for identity in self._notes:
            self._touch(identity)
        self._notes = {}
        for note in notes:
            self.restore(note)

    def remove(self, identity: str) -> TrackedNote | None:
        """Stop tracking *identity*.

        Returns:
            The removed record, or ``None`` if it was not tracked.
        """
        note = self._notes.pop(identity, None)
        self._touch(identity)
        if note is not None:
            logger.debug("Stopped tracking %s", identity)
        return note

    # ------------------------------------------------------------------
    # Mutations driven by publishing
    # ------------------------------------------------------------------

    def mark_published(
        self,
        identity: str,
        event: PublicationEvent,
        fingerprint: str | None = None,
    ) -> bool:
        """Record a successful publish of *identity*.

        Args:
            identity: Note that was published.
            event: The shared success event for the batch.
            fingerprint: Fingerprint of the content that was actually
                committed.  Defaults to the note's current fingerprint.  If
                the note changed while the publish was in flight, the note
                stays modified.

        Returns:
            ``False`` (with a warning) if the note is no longer tracked.
        """
        note = self._notes.get(identity)
        if note is None:
            logger.warning(
                "Cannot mark %s as published: note is no longer tracked",
                identity,
            )
            return False

        published = fingerprint or note.content_fingerprint
        note.published_fingerprint = published
        note.last_published_at = event.timestamp
        note.modified = note.content_fingerprint != published
        self._append(note, event)
        self._touch(identity)
        return True

    def record_failure(
        self, identity: str, event: PublicationEvent
    ) -> bool:
        """Append a failure event without touching ``modified``.

        Returns:
            ``False`` (with a warning) if the note is no longer tracked.
        """
        note = self._notes.get(identity)
        if note is None:
            logger.warning(
                "Cannot record failure for %s: note is no longer tracked",
                identity,
            )
            return False
        self._append(note, event)
        self._touch(identity)
        return True

    @staticmethod
    def _append(note: TrackedNote, event: PublicationEvent) -> None:
        note.publication_history.append(event)
        overflow = len(note.publication_history) - MAX_HISTORY
        if overflow > 0:
            del note.publication_history[:overflow]
        if event.status is PublicationStatus.FAILURE:
            logger.debug(
                "Recorded failed publish of %s on %s",
                note.identity,
                event.branch_name,
            )
