"""Pydantic models for publish attempts.

- ``CommitFile``: One converted note ready to upload.
- ``TransactionStep``: Named steps of the publish protocol.
- ``PublishOutcome``: What the transaction manager did and where it stopped.
- ``SkippedNote``: A note left out of a batch, with the reason.
- ``PublishReport``: Aggregate result of one publish action.
- ``PlannedFile`` / ``PublishPreview``: Dry-run view of a publish action.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class TransactionStep(str, Enum):
    """Steps of the publish protocol, in execution order."""

    VALIDATE = "validate"
    RESOLVE_BASE = "resolve_base"
    CREATE_BRANCH = "create_branch"
    CHECK_FILE = "check_file"
    UPLOAD_FILE = "upload_file"


class CommitFile(BaseModel):
    """A converted note headed for the repository.

    Attributes:
        source: Vault identity of the note.
        path: Repository path (``content/posts/hello.md``).
        content: File content to commit.
    """

    source: str
    path: str
    content: str

    model_config = {"frozen": True}


class PublishOutcome(BaseModel):
    """Result of one run of the publish protocol.

    A failed outcome names the step (and, for file steps, the path) that
    failed.  Branches and files committed before the failure are left on
    the remote and listed in ``committed_paths``.

    Attributes:
        branch_name: Branch created (or intended) for this attempt.
        started_at: When the attempt started (UTC).
        success: ``True`` only if every step succeeded.
        base_branch: Default branch the new branch was created from.
        base_sha: Head commit of the base branch.
        commits: Repository path -> commit SHA for every uploaded file.
        failed_step: Step that failed, if any.
        failed_path: Repository path being processed when a file step failed.
        error: Human-readable failure message.
        warnings: Pre-flight warnings (destination collisions).
    """

    branch_name: str
    started_at: datetime
    success: bool
    base_branch: str | None = None
    base_sha: str | None = None
    commits: dict[str, str] = {}
    failed_step: TransactionStep | None = None
    failed_path: str | None = None
    error: str | None = None
    warnings: list[str] = []

    model_config = {"frozen": True}

    @property
    def committed_paths(self) -> list[str]:
        return list(self.commits)


class SkippedNote(BaseModel):
    """A note that was selected but not part of the upload."""

    identity: str
    reason: str

    model_config = {"frozen": True}


class PublishReport(BaseModel):
    """Aggregate report for one publish action.

    Attributes:
        started_at: Shared timestamp of the publication events.
        branch_name: Branch shared by every note in the batch.
        success: ``True`` if the transaction succeeded.
        published: Identities that received a success event.
        failed: Identities that received a failure event.
        skipped: Notes left out of the batch (conversion errors).
        warnings: Conversion and collision warnings.
        error: Failure message of the transaction, if any.
        outcome: Raw transaction outcome, if the manager returned one.
    """

    started_at: datetime
    branch_name: str | None = None
    success: bool
    published: list[str] = []
    failed: list[str] = []
    skipped: list[SkippedNote] = []
    warnings: list[str] = []
    error: str | None = None
    outcome: PublishOutcome | None = None

    model_config = {"frozen": True}

    @property
    def attempted(self) -> int:
        return len(self.published) + len(self.failed)

    def summary(self) -> str:
        """One-line summary of the publish action."""
        if self.attempted == 0 and not self.skipped:
            return "Nothing to publish."
        if self.success:
            return (
                f"Published {len(self.published)} notes to "
                f"branch '{self.branch_name}'"
                + (f" ({len(self.skipped)} skipped)" if self.skipped else "")
            )
        return (
            f"Publish failed for {len(self.failed)} notes"
            + (f" on branch '{self.branch_name}'" if self.branch_name else "")
            + (f": {self.error}" if self.error else "")
        )


class PlannedFile(BaseModel):
    """One file a publish action would upload."""

    source: str
    path: str
    title: str
    modified: bool

    model_config = {"frozen": True}


class PublishPreview(BaseModel):
    """What a publish action would do, computed without network calls."""

    files: list[PlannedFile] = []
    skipped: list[SkippedNote] = []
    warnings: list[str] = []
    modified_only: bool = True

    model_config = {"frozen": True}
