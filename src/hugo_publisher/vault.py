"""File-system document store for a vault of Markdown notes.

Identities are POSIX paths relative to the vault root (``posts/hello.md``).
Change notification works by polling: ``poll()`` compares ``(mtime, size,
inode)`` of every note against the previous poll and emits
``DocumentUpserted``, ``DocumentDeleted`` and ``DocumentRenamed`` events to
subscribers.  A rename keeps the inode, which is how history follows a note
moved on disk.

Listeners are called synchronously from whichever thread runs ``poll()``.
They must not block.
"""

from __future__ import annotations

import fnmatch
import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path, PurePosixPath

from .config import DEFAULT_EXCLUDE
from .file_handler import read_file_with_encoding
from .tracking.models import (
    DocumentDeleted,
    DocumentRenamed,
    DocumentUpserted,
    StoreEvent,
)

logger = logging.getLogger(__name__)

Listener = Callable[[StoreEvent], None]
_Stat = tuple[float, int, int]


def validate_identity(identity: str) -> PurePosixPath:
    """Validate a vault-relative identity.

    Raises:
        ValueError: If *identity* is empty, absolute, or escapes the vault.
    """
    if not identity or not identity.strip():
        raise ValueError("Note identity cannot be empty")
    path = PurePosixPath(identity)
    if path.is_absolute():
        raise ValueError(f"Note identity must be relative: {identity}")
    if ".." in path.parts:
        raise ValueError(
            f"Note identity must not contain '..': {identity}"
        )
    return path


class FileSystemVault:
    """Vault rooted at a directory on disk.

    Args:
        root: Vault directory.
        extensions: File suffixes treated as notes.
        exclude: Glob patterns (matched against identities) to ignore.
    """

    def __init__(
        self,
        root: Path | str,
        extensions: Iterable[str] = (".md",),
        exclude: Iterable[str] = DEFAULT_EXCLUDE,
    ) -> None:
        self.root = Path(root).resolve()
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.exclude = tuple(exclude)

        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        self._stat_cache: dict[str, _Stat] | None = None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list_documents(self) -> list[str]:
        """Return every note identity in the vault, sorted."""
        if not self.root.is_dir():
            raise ValueError(f"Vault directory not found: {self.root}")

        identities = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.suffix.lower() not in self.extensions:
                continue
            identity = path.relative_to(self.root).as_posix()
            if self._is_excluded(identity):
                continue
            identities.append(identity)
        return sorted(identities)

    def read(self, identity: str) -> str:
        """Read the content of *identity*.

        Raises:
            ValueError: If the identity is invalid.
            FileNotFoundError: If the note does not exist.
        """
        path = self._resolve(identity)
        content, _encoding = read_file_with_encoding(path)
        return content

    def _resolve(self, identity: str) -> Path:
        return self.root / validate_identity(identity)

    def _is_excluded(self, identity: str) -> bool:
        return any(
            fnmatch.fnmatch(identity, pattern) for pattern in self.exclude
        )

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for store events.

        Returns:
            A function that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StoreEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)

    def _stat_all(self) -> dict[str, _Stat]:
        stats = {}
        for identity in self.list_documents():
            try:
                st = self._resolve(identity).stat()
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", identity, exc)
                continue
            stats[identity] = (st.st_mtime, st.st_size, st.st_ino)
        return stats

    def poll(self) -> list[StoreEvent]:
        """Detect changes since the previous poll and notify listeners.

        The first call only records a baseline and emits nothing.  A note
        that vanished while a note with the same inode, size and mtime appeared
        is reported as one ``DocumentRenamed`` (a rename keeps all three).  A
        rename combined with an edit is reported as an upsert plus a delete.

        Returns:
            The events that were emitted, in emission order: renames, then
            upserts, then deletes.
        """
        current = self._stat_all()
        previous = self._stat_cache
        self._stat_cache = current
        if previous is None:
            return []

        vanished = {
            stat: identity
            for identity, stat in previous.items()
            if identity not in current and stat[2]
        }

        events: list[StoreEvent] = []
        renamed_from: set[str] = set()
        upserted: list[StoreEvent] = []
        for identity, stat in current.items():
            if identity in previous:
                if previous[identity] != stat:
                    upserted.append(DocumentUpserted(identity=identity))
                continue
            old = vanished.pop(stat, None) if stat[2] else None
            if old is not None:
                events.append(
                    DocumentRenamed(old_identity=old, identity=identity)
                )
                renamed_from.add(old)
            else:
                upserted.append(DocumentUpserted(identity=identity))
        events.extend(upserted)
        for identity in previous:
            if identity not in current and identity not in renamed_from:
                events.append(DocumentDeleted(identity=identity))

        for event in events:
            self._emit(event)
        if events:
            logger.debug("Vault poll produced %d events", len(events))
        return events
