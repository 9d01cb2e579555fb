"""Publish transaction manager: one branch, one commit per file.

GitHub has no single call that commits a batch of files, so a publish is a
chain of dependent requests:

1. ``validate``       -- configuration is checked before any network call.
2. ``resolve_base``   -- read the default branch and its head commit.
3. ``create_branch``  -- create ``{branch_root}-{timestamp}`` at that commit.
4. per file, in input order:
   ``check_file``     -- probe the file's blob SHA on the new branch (404 means
   it does not exist yet), then
   ``upload_file``    -- create or update it.

The chain stops at the first failing step.  Nothing is rolled back: the
branch and any files committed before the failure stay on the remote and
are listed in the outcome, so the partial state is visible to the caller.

Files are uploaded strictly sequentially to respect rate limits and avoid
concurrent writes to the same branch.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone

from ..config import Config, ConfigurationError, parse_repository
from ..core.async_utils import run_sync
from ..core.client import GitHubClient
from .models import CommitFile, PublishOutcome, TransactionStep

logger = logging.getLogger(__name__)

_SLASH_RUNS = re.compile(r"/{2,}")


def build_destination_path(content_root: str, filename: str) -> str:
    """Join *content_root* and *filename* into a repository path.

    Duplicate slashes are collapsed and leading/trailing slashes removed:
    ``build_destination_path("/content/posts/", "a.md")`` ->
    ``"content/posts/a.md"``.
    """
    path = _SLASH_RUNS.sub("/", f"{content_root}/{filename}")
    return path.strip("/")


def format_branch_name(root: str, when: datetime) -> str:
    """Return ``{root}-{ISO 8601 UTC timestamp}`` safe for a git ref.

    Colons and periods in the timestamp become hyphens:
    ``updates-2024-01-02T03-04-05-678Z``.
    """
    utc = when.astimezone(timezone.utc) if when.tzinfo else when
    stamp = utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"
    return f"{root}-{stamp.replace(':', '-').replace('.', '-')}"


def check_collisions(files: Sequence[CommitFile]) -> list[str]:
    """Find destinations produced by more than one distinct note.

    Returns:
        One warning per colliding destination path, in first-seen order.
    """
    sources: dict[str, list[str]] = defaultdict(list)
    for f in files:
        if f.source not in sources[f.path]:
            sources[f.path].append(f.source)

    return [
        f"Destination '{path}' is produced by {len(notes)} notes "
        f"({', '.join(notes)}); the last upload will overwrite the others"
        for path, notes in sources.items()
        if len(notes) > 1
    ]


class PublishTransactionManager:
    """Run the publish protocol against one repository.

    Args:
        client: GitHub client for the target repository.
        config: Publisher configuration (branch root, content path).
    """

    def __init__(self, client: GitHubClient, config: Config) -> None:
        self.client = client
        self.config = config

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check configuration needed for a publish.

        Raises:
            ConfigurationError: If the repository, token, branch root or
                content path is missing or malformed.
        """
        parse_repository(self.config.repository)
        if not self.config.token or not self.config.token.strip():
            raise ConfigurationError(
                "GitHub token is not configured. Set GITHUB_TOKEN."
            )
        if not self.config.branch_root or not self.config.branch_root.strip():
            raise ConfigurationError("Branch root is not configured.")
        if not self.config.content_path.strip("/ "):
            raise ConfigurationError(
                "Content path is not configured (e.g. content/posts)."
            )

    def destination_for(self, filename: str) -> str:
        return build_destination_path(self.config.content_path, filename)

    def branch_name(self, when: datetime) -> str:
        return format_branch_name(self.config.branch_root, when)

    @staticmethod
    def commit_message(file: CommitFile) -> str:
        return f"Update {file.path} from {file.source} via hugo-publisher"

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def publish(
        self,
        files: Sequence[CommitFile],
        *,
        started_at: datetime | None = None,
    ) -> PublishOutcome:
        """Publish *files* on a fresh branch.

        Remote and transport errors do not raise; they end the chain and
        are reported in the returned outcome.

        Args:
            files: Files to upload, in upload order.
            started_at: Timestamp naming the branch.  Defaults to now (UTC).

        Returns:
            ``PublishOutcome`` describing how far the chain got.

        Raises:
            ConfigurationError: If the configuration is invalid.  Raised
                before any network call.
        """
        when = started_at or datetime.now(timezone.utc)
        branch = self.branch_name(when)
        self.validate()

        warnings = check_collisions(files)
        for warning in warnings:
            logger.warning(warning)

        step = TransactionStep.RESOLVE_BASE
        current_path: str | None = None
        base_branch: str | None = None
        base_sha: str | None = None
        commits: dict[str, str] = {}

        try:
            base_branch = await run_sync(self.client.get_default_branch)
            base_sha = await run_sync(self.client.get_branch_sha, base_branch)

            step = TransactionStep.CREATE_BRANCH
            await run_sync(self.client.create_branch, branch, base_sha)
            logger.info(
                "Created branch %s from %s@%s", branch, base_branch, base_sha
            )

            for file in files:
                current_path = file.path

                step = TransactionStep.CHECK_FILE
                sha = await run_sync(self.client.get_file_sha, file.path, branch)

                step = TransactionStep.UPLOAD_FILE
                commits[file.path] = await run_sync(
                    self.client.put_file,
                    file.path,
                    file.content,
                    self.commit_message(file),
                    branch,
                    sha,
                )
                logger.info(
                    "%s %s on %s",
                    "Updated" if sha else "Created",
                    file.path,
                    branch,
                )
        except Exception as exc:
            logger.error(
                "Publish to %s failed at %s%s: %s",
                branch,
                step.value,
                f" ({current_path})" if current_path else "",
                exc,
            )
            return PublishOutcome(
                branch_name=branch,
                started_at=when,
                success=False,
                base_branch=base_branch,
                base_sha=base_sha,
                commits=commits,
                failed_step=step,
                failed_path=current_path,
                error=str(exc) or type(exc).__name__,
                warnings=warnings,
            )

        return PublishOutcome(
            branch_name=branch,
            started_at=when,
            success=True,
            base_branch=base_branch,
            base_sha=base_sha,
            commits=commits,
            warnings=warnings,
        )
