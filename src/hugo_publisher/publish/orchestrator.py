"""Publication orchestrator: tracked notes in, publication history out.

``Publisher.publish()`` runs one publish action end to end:

1. Validate configuration (fails fast, before any network call).
2. Apply pending vault events and rescan, so selection sees current state.
3. Select tracked notes (all, or modified only).
4. Convert each note.  A note that fails to read or convert is skipped
   with a warning; the rest of the batch continues.
5. Hand the converted files to the transaction manager, once.
6. Record one shared ``PublicationEvent`` (same timestamp, same branch) for
   every note in the batch: ``mark_published`` on success, a failure event
   otherwise -- including when the manager itself raises.
7. Persist the tracking index.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from ..config import ConfigurationError
from ..converters import ConversionResult, HugoConverter
from ..core.async_utils import run_sync
from ..tracking.engine import ReconciliationEngine
from ..tracking.hashing import content_fingerprint
from ..tracking.models import (
    PublicationEvent,
    PublicationStatus,
    TrackedNote,
)
from .models import (
    CommitFile,
    PlannedFile,
    PublishOutcome,
    PublishPreview,
    PublishReport,
    SkippedNote,
)
from .transaction import PublishTransactionManager, check_collisions

logger = logging.getLogger(__name__)


class Publisher:
    """Publish tracked notes through a transaction manager.

    Args:
        engine: Reconciliation engine owning the tracking index.
        manager: Transaction manager for the target repository.
        converter: Note-to-Hugo converter.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        manager: PublishTransactionManager,
        converter: HugoConverter,
    ) -> None:
        self.engine = engine
        self.manager = manager
        self.converter = converter

    @property
    def index(self):
        return self.engine.index

    # ------------------------------------------------------------------
    # Selection and conversion
    # ------------------------------------------------------------------

    async def _sync_index(self) -> None:
        await self.engine.process_pending()
        await self.engine.refresh()

    def _select(
        self, modified_only: bool, identities: Iterable[str] | None
    ) -> list[TrackedNote]:
        notes = self.index.list(modified_only=modified_only)
        if identities is None:
            return notes
        wanted = set(identities)
        selected = [n for n in notes if n.identity in wanted]
        missing = wanted - {n.identity for n in selected}
        for identity in sorted(missing):
            logger.warning(
                "Requested note %s is not tracked%s",
                identity,
                " or not modified" if modified_only else "",
            )
        return selected

    async def _convert(
        self, note: TrackedNote
    ) -> tuple[ConversionResult, str]:
        content = await run_sync(self.engine.store.read, note.identity)
        return (
            self.converter.convert(content, note.identity),
            content_fingerprint(content),
        )

    async def _prepare(
        self, notes: list[TrackedNote]
    ) -> tuple[list[CommitFile], dict[str, str], list[SkippedNote], list[str]]:
        files: list[CommitFile] = []
        fingerprints: dict[str, str] = {}
        skipped: list[SkippedNote] = []
        warnings: list[str] = []

        for note in notes:
            try:
                result, fingerprint = await self._convert(note)
            except Exception as exc:
                logger.error("Error converting %s: %s", note.identity, exc)
                skipped.append(
                    SkippedNote(identity=note.identity, reason=str(exc))
                )
                warnings.append(f"Skipped {note.identity}: {exc}")
                continue

            warnings.extend(f"{note.identity}: {w}" for w in result.warnings)
            files.append(
                CommitFile(
                    source=note.identity,
                    path=self.manager.destination_for(result.filename),
                    content=result.content,
                )
            )
            fingerprints[note.identity] = fingerprint

        return files, fingerprints, skipped, warnings

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    async def preview(
        self,
        modified_only: bool = True,
        identities: Iterable[str] | None = None,
    ) -> PublishPreview:
        """Show what ``publish`` would upload, without touching GitHub."""
        await self._sync_index()
        notes = self._select(modified_only, identities)
        files, _, skipped, warnings = await self._prepare(notes)

        by_source = {n.identity: n for n in notes}
        planned = [
            PlannedFile(
                source=f.source,
                path=f.path,
                title=by_source[f.source].title,
                modified=by_source[f.source].modified,
            )
            for f in files
        ]
        return PublishPreview(
            files=planned,
            skipped=skipped,
            warnings=check_collisions(files) + warnings,
            modified_only=modified_only,
        )

    async def publish(
        self,
        modified_only: bool = True,
        refresh: bool = True,
        identities: Iterable[str] | None = None,
    ) -> PublishReport:
        """Publish tracked notes as one transaction.

        Args:
            modified_only: Only publish notes changed since their last publish.
            refresh: Apply pending vault events and rescan first.
            identities: Restrict the batch to these notes.

        Returns:
            ``PublishReport`` for the action.

        Raises:
            ConfigurationError: If the configuration is invalid.  No note
                receives an event in that case.
        """
        self.manager.validate()
        if refresh:
            await self._sync_index()

        notes = self._select(modified_only, identities)
        files, fingerprints, skipped, warnings = await self._prepare(notes)
        started_at = datetime.now(timezone.utc)

        if not files:
            logger.info("Nothing to publish")
            return PublishReport(
                started_at=started_at,
                success=not skipped,
                skipped=skipped,
                warnings=warnings,
                error="No notes could be converted" if skipped else None,
            )

        outcome: PublishOutcome | None = None
        try:
            outcome = await self.manager.publish(files, started_at=started_at)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Publish transaction raised")
            error = str(exc) or type(exc).__name__
        else:
            error = outcome.error

        branch = (
            outcome.branch_name
            if outcome is not None
            else self.manager.branch_name(started_at)
        )
        success = outcome is not None and outcome.success
        if outcome is not None:
            warnings = outcome.warnings + warnings

        commit_id = None
        if outcome is not None and outcome.commits:
            commit_id = list(outcome.commits.values())[-1]
        event = PublicationEvent(
            timestamp=started_at,
            branch_name=branch,
            status=(
                PublicationStatus.SUCCESS
                if success
                else PublicationStatus.FAILURE
            ),
            commit_id=commit_id,
            error_message=None if success else error,
        )

        published: list[str] = []
        failed: list[str] = []
        for identity in dict.fromkeys(f.source for f in files):
            if success:
                if self.index.mark_published(
                    identity, event, fingerprints[identity]
                ):
                    published.append(identity)
                else:
                    warnings.append(
                        f"{identity} was published but is no longer tracked"
                    )
            else:
                self.index.record_failure(identity, event)
                failed.append(identity)

        await self.engine.persist()

        report = PublishReport(
            started_at=started_at,
            branch_name=branch,
            success=success,
            published=published,
            failed=failed,
            skipped=skipped,
            warnings=warnings,
            error=None if success else error,
            outcome=outcome,
        )
        logger.info(report.summary())
        return report
