"""Shared pytest fixtures for hugo-publisher tests."""

import threading
from datetime import date

import pytest

from hugo_publisher.config import Config
from hugo_publisher.converters import HugoConverter
from hugo_publisher.core.client import GitHubAPIError
from hugo_publisher.publish.orchestrator import Publisher
from hugo_publisher.publish.transaction import PublishTransactionManager
from hugo_publisher.tracking.engine import ReconciliationEngine
from hugo_publisher.tracking.index import TrackingIndex
from hugo_publisher.tracking.models import (
    DocumentDeleted,
    DocumentRenamed,
    DocumentUpserted,
)
from hugo_publisher.tracking.state import SnapshotStore

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def note_text(title="Hello", publish="true", body="Body text.", **extra):
    """Build a note with a header block."""
    lines = [f"title: {title}"]
    if publish is not None:
        lines.append(f"publish: {publish}")
    lines.extend(f"{k}: {v}" for k, v in extra.items())
    return "---\n" + "\n".join(lines) + "\n---\n" + body + "\n"


class InMemoryStore:
    """Document store backed by a dict.

    Mutations are silent unless ``notify=True``; tests emit events
    explicitly to control ordering.  ``block_reads()`` makes ``read`` wait
    until ``release_reads()`` so a scan can be held mid-flight; pass an
    identity to hold only the read of that note.
    """

    def __init__(self, documents=None):
        self.documents = dict(documents or {})
        self.failing: set[str] = set()
        self.reads: list[str] = []
        self._listeners = []
        self._gate = threading.Event()
        self._gate.set()
        self._block_on = None

    def list_documents(self):
        return sorted(self.documents)

    def read(self, identity):
        if self._block_on in (None, identity):
            self._gate.wait(timeout=5)
        self.reads.append(identity)
        if identity in self.failing:
            raise OSError(f"Cannot read {identity}")
        if identity not in self.documents:
            raise FileNotFoundError(identity)
        return self.documents[identity]

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self):
        return len(self._listeners)

    def emit(self, event):
        for listener in list(self._listeners):
            listener(event)

    def put(self, identity, content, notify=False):
        self.documents[identity] = content
        if notify:
            self.emit(DocumentUpserted(identity=identity))

    def delete(self, identity, notify=False):
        del self.documents[identity]
        if notify:
            self.emit(DocumentDeleted(identity=identity))

    def rename(self, old, new, notify=False):
        self.documents[new] = self.documents.pop(old)
        if notify:
            self.emit(DocumentRenamed(old_identity=old, identity=new))

    def block_reads(self, identity=None):
        self._block_on = identity
        self._gate.clear()

    def release_reads(self):
        self._block_on = None
        self._gate.set()


class FakeGitHubClient:
    """Records every call; can fail a named step or the Nth upload."""

    def __init__(self, existing=None, fail_on=None, fail_on_put=None):
        self.calls: list[tuple] = []
        self.existing = dict(existing or {})
        self.fail_on = fail_on
        self.fail_on_put = fail_on_put
        self.uploaded: dict[str, str] = {}
        self.messages: list[str] = []
        self._puts = 0

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise GitHubAPIError(500, f"{name} failed")

    @property
    def call_names(self):
        return [c[0] for c in self.calls]

    def get_default_branch(self):
        self._record("get_default_branch")
        return "main"

    def get_branch_sha(self, branch):
        self._record("get_branch_sha", branch)
        return "base-sha"

    def create_branch(self, name, sha):
        self._record("create_branch", name, sha)
        return {"ref": f"refs/heads/{name}"}

    def get_file_sha(self, path, ref):
        self._record("get_file_sha", path, ref)
        return self.existing.get(path)

    def put_file(self, path, content, message, branch, sha=None):
        self._record("put_file", path, branch, sha)
        self._puts += 1
        if self.fail_on_put == self._puts:
            raise GitHubAPIError(422, "upload rejected")
        self.uploaded[path] = content
        self.messages.append(message)
        return f"commit-{self._puts}"

    def validate_connection(self):
        self._record("validate_connection")
        return "octo/blog"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config(tmp_path):
    """Create a valid Config instance for testing."""
    return Config(
        repository="octo/blog",
        token="ghp_test",
        vault_path=str(tmp_path / "vault"),
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def fake_client():
    return FakeGitHubClient()


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(tmp_path / "state")


@pytest.fixture
def engine(store, snapshot_store):
    engine = ReconciliationEngine(store, TrackingIndex(), snapshot_store)
    yield engine
    engine.close()


@pytest.fixture
def converter():
    return HugoConverter(today=lambda: date(2024, 1, 2))


@pytest.fixture
def publisher(engine, fake_client, mock_config, converter):
    """Publisher wired to the in-memory store and the fake GitHub client."""
    manager = PublishTransactionManager(fake_client, mock_config)
    return Publisher(engine, manager, converter)


@pytest.fixture
def make_note():
    """Factory for note content with a header block."""
    return note_text


@pytest.fixture
def client_factory():
    """Factory for fake GitHub clients with configured failures."""
    return FakeGitHubClient
