"""Tracking snapshot persistence layer.

Stores the durable mirror of the tracking index in
``.hugo_publisher/tracking.json``::

    {
      "version": 1,
      "last_saved": "2026-01-01T00:00:00+00:00",
      "notes": {
        "posts/hello.md": {
          "content_fingerprint": "...",
          "published_fingerprint": "...",
          "last_published_at": "...",
          "metadata_fingerprint": "...",
          "publication_history": [...]
        }
      }
    }

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Wholesale writes** -- the snapshot is rewritten in full after each
  batch of index mutations.  There is exactly one writer process, so the
  last writer wins.
* **Lenient reads** -- an entry that fails validation is logged and dropped
  rather than discarding the whole snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .hashing import metadata_fingerprint
from .models import SnapshotEntry, TrackedNote

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
SNAPSHOT_FILENAME = "tracking.json"


class SnapshotStore:
    """Load and save the tracking snapshot.

    Args:
        state_dir: Directory holding ``tracking.json`` (typically
            ``.hugo_publisher/`` inside the vault).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    @property
    def path(self) -> Path:
        return self._state_dir / SNAPSHOT_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict[str, SnapshotEntry]:
        """Load the snapshot from disk.

        Returns:
            Mapping of identity to entry.  Empty when no snapshot exists.

        Raises:
            ValueError: If the file is not valid JSON or has an unsupported
                version.
        """
        path = self.path
        if not path.exists():
            return {}

        with open(path, encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError as exc:
                raise ValueError(
                    f"Corrupt tracking snapshot {path}: {exc}"
                ) from exc

        version = data.get("version") if isinstance(data, dict) else None
        if version != SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported tracking snapshot version {version!r} in {path}"
            )

        entries: dict[str, SnapshotEntry] = {}
        for identity, raw in data.get("notes", {}).items():
            try:
                entries[identity] = SnapshotEntry.model_validate(raw)
            except ValidationError as exc:
                logger.error(
                    "Dropping invalid snapshot entry %s: %s", identity, exc
                )
        return entries

    def save(self, entries: Mapping[str, SnapshotEntry]) -> None:
        """Persist the snapshot to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.

        Args:
            entries: Complete identity -> entry mapping to write.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        document = {
            "version": SNAPSHOT_VERSION,
            "last_saved": datetime.now(timezone.utc).isoformat(),
            "notes": {
                identity: entry.model_dump(mode="json")
                for identity, entry in entries.items()
            },
        }

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved %d snapshot entries to %s", len(entries), self.path)


def snapshot_from_notes(
    notes: Iterable[TrackedNote],
) -> dict[str, SnapshotEntry]:
    """Build snapshot entries for *notes*, preserving their order."""
    return {
        note.identity: SnapshotEntry(
            content_fingerprint=note.content_fingerprint,
            published_fingerprint=note.published_fingerprint,
            last_published_at=note.last_published_at,
            metadata_fingerprint=metadata_fingerprint(note.metadata),
            publication_history=list(note.publication_history),
        )
        for note in notes
    }
