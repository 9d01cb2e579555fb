"""MCP tool handlers for tracked notes and publishing.

Defines five tools:

- ``notes_list`` -- tracked notes and whether they changed since publishing.
- ``notes_refresh`` -- rescan the vault.
- ``notes_history`` -- publication history of one or all notes.
- ``notes_preview`` -- destinations and collision warnings, no network calls.
- ``notes_publish`` -- publish notes to a new GitHub branch.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...publish.reporter import (
    format_history,
    format_preview,
    format_publish_report,
    format_tracked_notes,
    history_to_json,
    notes_to_json,
    preview_to_json,
    report_to_json,
)
from .errors import build_error_response
from .registry import NOTES_PUBLISH, NOTES_VIEW, ToolSpec

if TYPE_CHECKING:
    from ...publish.orchestrator import Publisher

logger = logging.getLogger(__name__)

_NOTES_PARAM = {
    "type": "array",
    "items": {"type": "string"},
    "description": (
        "Restrict to these vault paths (e.g. ['posts/hello.md']). "
        "Defaults to every selected note."
    ),
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


NOTES_TOOLS: list[types.Tool] = [
    types.Tool(
        name="notes_list",
        description=(
            "List vault notes marked 'publish: true' with their modified "
            "status and last publish time."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "modified_only": {
                    "type": "boolean",
                    "default": False,
                    "description": "Only list notes changed since their last publish",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="notes_refresh",
        description=(
            "Rescan the vault for notes marked 'publish: true'. Returns "
            "immediately if a scan is already running."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="notes_history",
        description=(
            "Show publication history (last 10 attempts per note): time, "
            "branch, status, commit and error."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "note": {
                    "type": "string",
                    "description": "Vault path of one note. Omit for all notes.",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="notes_preview",
        description=(
            "Preview a publish: which notes would be uploaded to which "
            "repository paths, plus filename collision warnings. Makes no "
            "GitHub calls."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "modified_only": {
                    "type": "boolean",
                    "default": True,
                    "description": "Only include notes changed since their last publish",
                },
                "notes": _NOTES_PARAM,
            },
            "required": [],
        },
    ),
    types.Tool(
        name="notes_publish",
        description=(
            "Publish notes to GitHub: creates a new branch "
            "'{branch_root}-{timestamp}' and commits one converted file per "
            "note. A failure stops the remaining uploads; the branch and "
            "earlier commits are kept."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "modified_only": {
                    "type": "boolean",
                    "default": True,
                    "description": "Only publish notes changed since their last publish",
                },
                "notes": _NOTES_PARAM,
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                    "description": "Preview instead of publishing",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _bool_arg(args: dict[str, Any], key: str, default: bool) -> bool:
    value = args.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean")
    return value


def _notes_arg(args: dict[str, Any]) -> list[str] | None:
    value = args.get("notes")
    if value is None:
        return None
    if not isinstance(value, list) or not all(
        isinstance(v, str) and v for v in value
    ):
        raise ValueError("'notes' must be a list of vault paths")
    return value


def _result(text: str, structured: dict) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_notes_list(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    modified_only = _bool_arg(args, "modified_only", False)
    await publisher.engine.process_pending()
    notes = publisher.index.list(modified_only=modified_only)
    return _result(format_tracked_notes(notes), notes_to_json(notes))


async def _handle_notes_refresh(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    await publisher.engine.process_pending()
    performed = await publisher.engine.refresh()
    count = len(publisher.index)
    if performed:
        text = f"Vault rescanned: {count} tracked notes."
    else:
        text = "A rescan is already in progress; try again shortly."
    return _result(text, {"refreshed": performed, "tracked": count})


async def _handle_notes_history(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    await publisher.engine.process_pending()
    note = args.get("note")
    if note is not None:
        if note not in publisher.index:
            return build_error_response(
                "not_found",
                f"Note '{note}' is not tracked.",
                "Use notes_list to see tracked notes.",
            )
        history = {note: publisher.index.history(note)}
    else:
        history = publisher.index.all_history()
    return _result(format_history(history), history_to_json(history))


async def _handle_notes_preview(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    preview = await publisher.preview(
        modified_only=_bool_arg(args, "modified_only", True),
        identities=_notes_arg(args),
    )
    return _result(format_preview(preview), preview_to_json(preview))


async def _handle_notes_publish(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    if _bool_arg(args, "dry_run", False):
        return await _handle_notes_preview(publisher, args)

    report = await publisher.publish(
        modified_only=_bool_arg(args, "modified_only", True),
        identities=_notes_arg(args),
    )
    result = _result(format_publish_report(report), report_to_json(report))
    if not report.success:
        result.isError = True
    return result


NOTES_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=NOTES_TOOLS[0],
        permissions=frozenset({NOTES_VIEW}),
        handler=_handle_notes_list,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[1],
        permissions=frozenset({NOTES_VIEW}),
        handler=_handle_notes_refresh,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[2],
        permissions=frozenset({NOTES_VIEW}),
        handler=_handle_notes_history,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[3],
        permissions=frozenset({NOTES_VIEW}),
        handler=_handle_notes_preview,
    ),
    ToolSpec(
        tool=NOTES_TOOLS[4],
        permissions=frozenset({NOTES_VIEW, NOTES_PUBLISH}),
        handler=_handle_notes_publish,
    ),
]
