"""Reconciliation engine keeping the tracking index in step with the vault.

The ``ReconciliationEngine`` merges three sources of truth:

1. The persisted snapshot (``SnapshotStore``), which survives restarts.
2. A full scan of the document store (``refresh``).
3. Individual change events emitted by the store (upserted, deleted,
   renamed).

Per identity the engine moves between three states: untracked,
tracked-unmodified and tracked-modified.  A note is tracked iff its header
currently carries ``publish: true``.

Concurrency model: everything runs on one event loop.  Document reads and
snapshot writes are pushed to a worker thread with ``run_sync`` and are the
only suspension points.  Index mutations happen between suspension points,
so they never interleave.  The ``_refreshing`` flag is the only mutual
exclusion: a refresh requested while one is running returns immediately.

Store events may be delivered from any thread.  ``enqueue`` only appends to
a queue; ``process_pending`` applies queued events in delivery order.

Error handling is per-document: a note that cannot be read or parsed is
logged and skipped without aborting the scan.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import Protocol

from ..core.async_utils import run_sync
from .frontmatter import extract_metadata, is_publishable
from .hashing import content_fingerprint
from .index import TrackingIndex
from .models import (
    DocumentDeleted,
    DocumentRenamed,
    DocumentUpserted,
    Metadata,
    StoreEvent,
    TrackedNote,
)
from .state import SnapshotStore, snapshot_from_notes

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Interface the engine needs from a document store."""

    def list_documents(self) -> list[str]: ...

    def read(self, identity: str) -> str: ...

    def subscribe(
        self, listener: Callable[[StoreEvent], None]
    ) -> Callable[[], None]: ...


class ReconciliationEngine:
    """Drive the tracking index from the vault and the snapshot.

    Args:
        store: Document store to scan and subscribe to.
        index: Tracking index to mutate.
        snapshots: Persistence layer for the index.
    """

    def __init__(
        self,
        store: DocumentStore,
        index: TrackingIndex,
        snapshots: SnapshotStore,
    ) -> None:
        self.store = store
        self.index = index
        self.snapshots = snapshots

        self._refreshing = False
        self._pending: deque[StoreEvent] = deque()
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Merge the persisted snapshot, subscribe to events, then rescan."""
        await self._restore_from_snapshot()
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.enqueue)
        await self.refresh()

    def close(self) -> None:
        """Stop listening to store events."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _restore_from_snapshot(self) -> None:
        snapshot = await run_sync(self.snapshots.load)
        if not snapshot:
            logger.info("No tracking snapshot found, starting empty")
            return

        present = set(await run_sync(self.store.list_documents))
        restored: list[TrackedNote] = []
        dropped = 0

        for identity, entry in snapshot.items():
            if identity not in present:
                logger.info("Dropping %s: no longer in the vault", identity)
                dropped += 1
                continue
            try:
                evaluated = await self._evaluate(identity)
            except Exception as exc:
                logger.error(
                    "Error reading %s, keeping snapshot record: %s",
                    identity,
                    exc,
                )
                evaluated = ({"publish": True}, entry.content_fingerprint)
            if evaluated is None:
                logger.info(
                    "Dropping %s: no longer marked publish: true", identity
                )
                dropped += 1
                continue
            metadata, fingerprint = evaluated
            modified = (
                fingerprint != entry.content_fingerprint
                or entry.content_fingerprint != entry.published_fingerprint
            )
            restored.append(
                TrackedNote(
                    identity=identity,
                    metadata=metadata,
                    content_fingerprint=fingerprint,
                    published_fingerprint=entry.published_fingerprint,
                    last_published_at=entry.last_published_at,
                    modified=modified,
                    publication_history=list(entry.publication_history),
                )
            )

        self.index.replace(restored)
        logger.info(
            "Restored %d tracked notes from snapshot (%d dropped)",
            len(restored),
            dropped,
        )
        if dropped:
            await self.persist()

    # ------------------------------------------------------------------
    # Full scan
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Rescan the whole vault and merge the result into the index.

        The scan suspends on every read, so events and publishes may
        mutate the index while it runs.  Results are merged at the end
        without suspending, and an identity mutated after the scan read it
        keeps its live record.

        Returns:
            ``False`` if another refresh was already running (nothing was
            scanned), ``True`` once this scan has been applied.
        """
        if self._refreshing:
            logger.debug("Refresh already in progress, skipping")
            return False

        self._refreshing = True
        try:
            started = self.index.revision
            identities = await run_sync(self.store.list_documents)
            scanned: dict[str, tuple[int, tuple[Metadata, str] | None]] = {}

            for identity in identities:
                seen = self.index.revision
                try:
                    evaluated = await self._evaluate(identity)
                except Exception as exc:
                    logger.error("Error scanning %s: %s", identity, exc)
                    continue
                scanned[identity] = (seen, evaluated)

            self._merge_scan(started, set(identities), scanned)
            logger.info("Refresh complete: %d tracked notes", len(self.index))
            await self.persist()
            return True
        finally:
            self._refreshing = False

    def _merge_scan(
        self,
        started: int,
        listed: set[str],
        scanned: dict[str, tuple[int, tuple[Metadata, str] | None]],
    ) -> None:
        # Must not suspend: revisions are compared against the live index.
        for identity, (seen, evaluated) in scanned.items():
            if self.index.changed_since(identity, seen):
                logger.debug("Keeping %s: changed during the scan", identity)
                continue
            if evaluated is None:
                self.index.remove(identity)
            else:
                self.index.upsert(identity, *evaluated)

        # Unreadable notes are listed but not scanned; they keep their record.
        for identity in self.index:
            if identity in listed or self.index.changed_since(identity, started):
                continue
            self.index.remove(identity)

    # ------------------------------------------------------------------
    # Store events
    # ------------------------------------------------------------------

    def enqueue(self, event: StoreEvent) -> None:
        """Store listener: queue *event* for ``process_pending``."""
        self._pending.append(event)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def process_pending(self) -> int:
        """Apply queued store events in delivery order, then persist once.

        Returns:
            Number of events applied.
        """
        applied = 0
        while self._pending:
            event = self._pending.popleft()
            await self._apply(event)
            applied += 1
        if applied:
            await self.persist()
        return applied

    async def handle_event(self, event: StoreEvent) -> None:
        """Apply a single store event immediately and persist."""
        await self._apply(event)
        await self.persist()

    async def _apply(self, event: StoreEvent) -> None:
        match event:
            case DocumentRenamed(old_identity=old, identity=new):
                await self._on_renamed(old, new)
            case DocumentDeleted(identity=identity):
                self.index.remove(identity)
            case DocumentUpserted(identity=identity):
                await self._on_upserted(identity)
            case _:
                raise ValueError(f"Unknown store event: {event!r}")

    async def _on_upserted(self, identity: str) -> None:
        try:
            evaluated = await self._evaluate(identity)
        except Exception as exc:
            logger.error("Error reading %s: %s", identity, exc)
            return
        if evaluated is None:
            self.index.remove(identity)
            return
        metadata, fingerprint = evaluated
        self.index.upsert(identity, metadata, fingerprint)

    async def _on_renamed(self, old: str, new: str) -> None:
        previous = self.index.remove(old)
        if previous is None:
            await self._on_upserted(new)
            return

        try:
            evaluated = await self._evaluate(new)
        except Exception as exc:
            logger.error("Error reading renamed note %s: %s", new, exc)
            evaluated = (previous.metadata, previous.content_fingerprint)
        if evaluated is None:
            logger.info(
                "Renamed note %s -> %s is no longer publishable", old, new
            )
            return

        metadata, fingerprint = evaluated
        # The destination path may differ, so the note must be republished.
        self.index.restore(
            TrackedNote(
                identity=new,
                metadata=metadata,
                content_fingerprint=fingerprint,
                published_fingerprint=None,
                last_published_at=previous.last_published_at,
                modified=True,
                publication_history=list(previous.publication_history),
            )
        )
        logger.info("Tracking rename %s -> %s", old, new)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist(self) -> None:
        """Write the whole index to the snapshot store."""
        entries = snapshot_from_notes(self.index.list())
        await run_sync(self.snapshots.save, entries)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _evaluate(
        self, identity: str
    ) -> tuple[Metadata, str] | None:
        """Read *identity* and return ``(metadata, fingerprint)``.

        Returns ``None`` when the note is not publishable.  Read and parse
        errors propagate so each caller can decide what to keep.
        """
        content = await run_sync(self.store.read, identity)
        metadata = extract_metadata(content)
        if metadata is None or not is_publishable(metadata):
            return None
        return metadata, content_fingerprint(content)
