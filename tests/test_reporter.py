"""Tests for publish reporter formatting functions.

Covers:
- format_publish_report for success, failure and empty reports
- format_preview with files, skips and warnings
- format_tracked_notes and format_history
- JSON helpers used for structuredContent
"""

from __future__ import annotations

from datetime import datetime, timezone

from hugo_publisher.publish.models import (
    PlannedFile,
    PublishOutcome,
    PublishPreview,
    PublishReport,
    SkippedNote,
    TransactionStep,
)
from hugo_publisher.publish.reporter import (
    format_history,
    format_preview,
    format_publish_report,
    format_tracked_notes,
    history_to_json,
    notes_to_json,
    preview_to_json,
    report_to_json,
)
from hugo_publisher.tracking.models import (
    PublicationEvent,
    PublicationStatus,
    TrackedNote,
)

T0 = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
T1 = datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
BRANCH = "updates-2024-01-02T03-04-05-000Z"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _failed_report() -> PublishReport:
    outcome = PublishOutcome(
        branch_name=BRANCH,
        started_at=T0,
        success=False,
        commits={"content/posts/a.md": "commit-1"},
        failed_step=TransactionStep.UPLOAD_FILE,
        failed_path="content/posts/b.md",
        error="GitHub API error 422: upload rejected",
    )
    return PublishReport(
        started_at=T0,
        branch_name=BRANCH,
        success=False,
        failed=["a.md", "b.md"],
        skipped=[SkippedNote(identity="!!!.md", reason="Cannot derive a filename")],
        error=outcome.error,
        outcome=outcome,
    )


def _note(identity, modified=True, history=(), published=None) -> TrackedNote:
    return TrackedNote(
        identity=identity,
        metadata={"title": identity.upper()},
        content_fingerprint="f",
        modified=modified,
        last_published_at=published,
        publication_history=list(history),
    )


def _event(status=PublicationStatus.SUCCESS, when=T0, **kwargs):
    return PublicationEvent(
        timestamp=when, branch_name=BRANCH, status=status, **kwargs
    )


# ---------------------------------------------------------------------------
# format_publish_report
# ---------------------------------------------------------------------------


class TestFormatPublishReport:
    """Tests for format_publish_report()."""

    def test_success(self):
        report = PublishReport(
            started_at=T0,
            branch_name=BRANCH,
            success=True,
            published=["a.md", "b.md"],
        )
        text = format_publish_report(report)
        assert text.splitlines() == [
            f"Published 2 notes to branch '{BRANCH}'",
            f"Branch: {BRANCH}",
            "Started: 2024-01-02T03:04:05+00:00",
            "",
            "Published:",
            "  a.md",
            "  b.md",
        ]

    def test_failure_names_step_and_committed_files(self):
        text = format_publish_report(_failed_report())
        assert text.startswith("Publish failed for 2 notes on branch")
        assert "upload rejected" in text.splitlines()[0]
        assert "  Stopped at: upload_file (content/posts/b.md)" in text
        assert (
            "  Already committed (left on branch): content/posts/a.md" in text
        )
        assert "  !!!.md: Cannot derive a filename" in text

    def test_nothing_to_publish(self):
        text = format_publish_report(PublishReport(started_at=T0, success=True))
        assert text.splitlines()[0] == "Nothing to publish."
        assert "Published:" not in text

    def test_skipped_count_in_summary(self):
        report = PublishReport(
            started_at=T0,
            branch_name=BRANCH,
            success=True,
            published=["a.md"],
            skipped=[SkippedNote(identity="x.md", reason="r")],
            warnings=["collision"],
        )
        text = format_publish_report(report)
        assert "(1 skipped)" in text
        assert "Warnings:\n  collision" in text


# ---------------------------------------------------------------------------
# format_preview
# ---------------------------------------------------------------------------


class TestFormatPreview:
    """Tests for format_preview()."""

    def test_files_listed(self):
        preview = PublishPreview(
            files=[
                PlannedFile(
                    source="a.md",
                    path="content/posts/a.md",
                    title="A",
                    modified=True,
                ),
                PlannedFile(
                    source="b.md",
                    path="content/posts/b.md",
                    title="B",
                    modified=False,
                ),
            ],
            modified_only=False,
        )
        text = format_preview(preview)
        assert text.splitlines()[0] == (
            "PREVIEW -- 2 all tracked notes would be published"
        )
        assert "  a.md -> content/posts/a.md [Modified]" in text
        assert "  b.md -> content/posts/b.md [Up to date]" in text

    def test_empty(self):
        text = format_preview(PublishPreview())
        assert text.endswith("No notes to publish.")

    def test_warnings_and_skips(self):
        preview = PublishPreview(
            skipped=[SkippedNote(identity="!!!.md", reason="bad name")],
            warnings=["2 notes map to content/posts/post.md"],
        )
        text = format_preview(preview)
        assert "Skipped:\n  !!!.md: bad name" in text
        assert "Warnings:\n  2 notes map to content/posts/post.md" in text
        assert "No notes to publish." not in text


# ---------------------------------------------------------------------------
# Tracked notes and history
# ---------------------------------------------------------------------------


class TestFormatTrackedNotes:
    """Tests for format_tracked_notes()."""

    def test_empty(self):
        assert "publish: true" in format_tracked_notes([])

    def test_status_lines(self):
        text = format_tracked_notes(
            [_note("a.md", modified=False, published=T0), _note("b.md")]
        )
        lines = text.splitlines()
        assert lines[0] == "2 tracked notes (1 modified)"
        assert "  a.md [Up to date] last published: 2024-01-02 03:04" in lines
        assert "  b.md [Modified] last published: never" in lines


class TestFormatHistory:
    """Tests for format_history()."""

    def test_empty(self):
        assert format_history({}) == "No publication history."
        assert format_history({"a.md": []}) == "No publication history."

    def test_newest_first(self):
        history = {
            "a.md": [
                _event(commit_id="abcdef123456"),
                _event(
                    PublicationStatus.FAILURE,
                    when=T1,
                    error_message="boom",
                ),
            ]
        }
        assert format_history(history).splitlines() == [
            "a.md:",
            f"  2024-02-03 04:05 FAILURE {BRANCH} -- boom",
            f"  2024-01-02 03:04 SUCCESS {BRANCH} abcdef1",
        ]


# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------


class TestJsonOutput:
    """Tests for the structuredContent helpers."""

    def test_report_to_json(self):
        data = report_to_json(_failed_report())
        assert data["success"] is False
        assert data["branch_name"] == BRANCH
        assert data["counts"] == {"published": 0, "failed": 2, "skipped": 1}
        assert data["failed_step"] == "upload_file"
        assert data["failed_path"] == "content/posts/b.md"
        assert data["commits"] == {"content/posts/a.md": "commit-1"}
        assert data["skipped"] == [
            {"identity": "!!!.md", "reason": "Cannot derive a filename"}
        ]
        assert "outcome" not in data
        assert isinstance(data["started_at"], str)

    def test_report_without_outcome(self):
        data = report_to_json(PublishReport(started_at=T0, success=True))
        assert "failed_step" not in data
        assert data["counts"]["published"] == 0

    def test_preview_to_json(self):
        preview = PublishPreview(
            files=[PlannedFile(source="a.md", path="p/a.md", title="A", modified=True)]
        )
        assert preview_to_json(preview)["files"][0]["path"] == "p/a.md"

    def test_notes_to_json(self):
        data = notes_to_json([_note("a.md", history=[_event()], published=T0)])
        assert data["count"] == 1
        note = data["notes"][0]
        assert note["title"] == "A.MD"
        assert note["history_length"] == 1
        assert note["last_published_at"] == T0.isoformat()

    def test_history_to_json(self):
        data = history_to_json({"a.md": [_event(commit_id="c1")]})
        event = data["notes"]["a.md"][0]
        assert event["status"] == "success"
        assert event["commit_id"] == "c1"
