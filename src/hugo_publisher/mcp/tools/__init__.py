"""MCP tool handlers for the Hugo publisher.

This package contains MCP tool implementations that wrap the publisher
with async handlers, reporter output, and structured error responses.
"""

from .errors import build_error_response, translate_github_error
from .notes import NOTES_SPECS, NOTES_TOOLS
from .registry import (
    NOTES_PUBLISH,
    NOTES_VIEW,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)

ALL_SPECS: list[ToolSpec] = list(NOTES_SPECS)

__all__ = [
    "build_error_response",
    "translate_github_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "NOTES_VIEW",
    "NOTES_PUBLISH",
    # Spec lists
    "ALL_SPECS",
    "NOTES_SPECS",
    "NOTES_TOOLS",
]
