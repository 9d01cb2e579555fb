"""Publish report formatting functions.

Provides human-readable and machine-readable output:

- ``format_publish_report`` -- post-publish summary.
- ``format_preview`` -- what a publish would upload.
- ``format_tracked_notes`` -- tracked notes and their status.
- ``format_history`` -- publication history of one or all notes.
- ``report_to_json`` / ``preview_to_json`` / ``notes_to_json`` /
  ``history_to_json`` -- structured dicts for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..tracking.models import PublicationEvent, TrackedNote
    from .models import PublishPreview, PublishReport


def _ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "never"


# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_publish_report(report: PublishReport) -> str:
    """Format a publish report as human-readable text.

    Sections are only included when they contain at least one entry.
    """
    lines = [report.summary()]
    if report.branch_name:
        lines.append(f"Branch: {report.branch_name}")
    lines.append(f"Started: {report.started_at.isoformat()}")
    lines.append("")

    outcome = report.outcome
    if report.published:
        lines.append("Published:")
        lines.extend(f"  {identity}" for identity in report.published)
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        lines.extend(f"  {identity}" for identity in report.failed)
        if outcome is not None and outcome.failed_step is not None:
            where = outcome.failed_step.value
            if outcome.failed_path:
                where += f" ({outcome.failed_path})"
            lines.append(f"  Stopped at: {where}")
        if outcome is not None and outcome.commits:
            lines.append(
                "  Already committed (left on branch): "
                + ", ".join(outcome.committed_paths)
            )
        lines.append("")

    if report.skipped:
        lines.append("Skipped:")
        for s in report.skipped:
            lines.append(f"  {s.identity}: {s.reason}")
        lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        lines.extend(f"  {w}" for w in report.warnings)
        lines.append("")

    return "\n".join(lines).rstrip()


def format_preview(preview: PublishPreview) -> str:
    """Format a preview as ``source -> destination`` lines."""
    scope = "modified notes" if preview.modified_only else "all tracked notes"
    lines = [f"PREVIEW -- {len(preview.files)} {scope} would be published", ""]

    for f in preview.files:
        status = "Modified" if f.modified else "Up to date"
        lines.append(f"  {f.source} -> {f.path} [{status}]")
    if preview.files:
        lines.append("")

    if preview.skipped:
        lines.append("Skipped:")
        for s in preview.skipped:
            lines.append(f"  {s.identity}: {s.reason}")
        lines.append("")

    if preview.warnings:
        lines.append("Warnings:")
        lines.extend(f"  {w}" for w in preview.warnings)
        lines.append("")

    if not preview.files and not preview.skipped:
        lines.append("No notes to publish.")

    return "\n".join(lines).rstrip()


def format_tracked_notes(notes: list[TrackedNote]) -> str:
    if not notes:
        return "No tracked notes. Add 'publish: true' to a note's header."
    modified = sum(1 for n in notes if n.modified)
    lines = [f"{len(notes)} tracked notes ({modified} modified)", ""]
    for n in notes:
        status = "Modified" if n.modified else "Up to date"
        lines.append(
            f"  {n.identity} [{status}] last published: {_ts(n.last_published_at)}"
        )
    return "\n".join(lines)


def format_history(history: dict[str, list[PublicationEvent]]) -> str:
    """Format publication histories, newest event first per note."""
    if not any(history.values()):
        return "No publication history."
    lines: list[str] = []
    for identity, events in history.items():
        if not events:
            continue
        lines.append(f"{identity}:")
        for e in reversed(events):
            line = f"  {_ts(e.timestamp)} {e.status.value.upper()} {e.branch_name}"
            if e.commit_id:
                line += f" {e.commit_id[:7]}"
            if e.error_message:
                line += f" -- {e.error_message}"
            lines.append(line)
        lines.append("")
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: PublishReport) -> dict:
    """Convert a publish report to a dict suitable for ``structuredContent``."""
    data = report.model_dump(mode="json", exclude={"outcome"})
    outcome = report.outcome
    data["counts"] = {
        "published": len(report.published),
        "failed": len(report.failed),
        "skipped": len(report.skipped),
    }
    if outcome is not None:
        data["failed_step"] = (
            outcome.failed_step.value if outcome.failed_step else None
        )
        data["failed_path"] = outcome.failed_path
        data["commits"] = dict(outcome.commits)
    return data


def preview_to_json(preview: PublishPreview) -> dict:
    return preview.model_dump(mode="json")


def notes_to_json(notes: list[TrackedNote]) -> dict:
    return {
        "count": len(notes),
        "notes": [
            {
                "identity": n.identity,
                "title": n.title,
                "modified": n.modified,
                "last_published_at": (
                    n.last_published_at.isoformat()
                    if n.last_published_at
                    else None
                ),
                "history_length": len(n.publication_history),
            }
            for n in notes
        ],
    }


def history_to_json(history: dict[str, list[PublicationEvent]]) -> dict:
    return {
        "notes": {
            identity: [e.model_dump(mode="json") for e in events]
            for identity, events in history.items()
        }
    }
