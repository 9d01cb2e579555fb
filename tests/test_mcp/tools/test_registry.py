"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolSpec creation and immutability
- ToolRegistry filtering (no filter, permission filter, empty permissions)
- ToolRegistry list_tools, tool_count, call_tool
- call_tool error translation (GitHub, network, configuration, validation,
  unexpected)
- load_permissions_file parsing, validation, and error cases
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import mcp.types as types
import requests

from hugo_publisher.config import ConfigurationError
from hugo_publisher.core.client import GitHubAPIError
from hugo_publisher.mcp.tools.registry import (
    NOTES_PUBLISH,
    NOTES_VIEW,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)


def _make_spec(
    name: str,
    permissions: frozenset[str] | None = None,
    handler=None,
) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if permissions is None:
        permissions = frozenset()
    if handler is None:

        async def handler(publisher, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=permissions,
        handler=handler,
    )


def _raising(exc):
    async def handler(publisher, args):
        raise exc

    return handler


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec(unittest.TestCase):
    """Test ToolSpec dataclass."""

    def test_creation(self):
        spec = _make_spec("notes_list", frozenset({NOTES_VIEW}))
        self.assertEqual(spec.tool.name, "notes_list")
        self.assertEqual(spec.permissions, frozenset({NOTES_VIEW}))

    def test_frozen(self):
        """ToolSpec is immutable (frozen dataclass)."""
        spec = _make_spec("notes_list")
        with self.assertRaises(AttributeError):
            spec.permissions = frozenset({"NEW"})


class TestToolRegistry(unittest.TestCase):
    """Test ToolRegistry filtering and dispatch."""

    def setUp(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("notes_list", frozenset({NOTES_VIEW})),
            _make_spec("notes_preview", frozenset({NOTES_VIEW})),
            _make_spec(
                "notes_publish", frozenset({NOTES_VIEW, NOTES_PUBLISH})
            ),
        ]

    def test_no_filter_all_tools_registered(self):
        self.assertEqual(ToolRegistry(self.specs).tool_count(), 4)

    def test_read_only_filter(self):
        """A NOTES_VIEW-only deployment cannot publish."""
        registry = ToolRegistry(self.specs, frozenset({NOTES_VIEW}))
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "notes_list", "notes_preview"])

    def test_publish_requires_both_permissions(self):
        registry = ToolRegistry(self.specs, frozenset({NOTES_PUBLISH}))
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping"])

    def test_empty_permissions_always_included(self):
        registry = ToolRegistry(self.specs, frozenset())
        self.assertEqual([t.name for t in registry.list_tools()], ["ping"])

    def test_call_tool_dispatches_to_handler(self):
        calls = []

        async def handler(publisher, args):
            calls.append((publisher, args))
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="dispatched")]
            )

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        publisher = MagicMock()

        result = asyncio.run(registry.call_tool("t", {"k": "v"}, publisher))

        self.assertEqual(calls, [(publisher, {"k": "v"})])
        self.assertEqual(_text(result), "dispatched")

    def test_call_tool_none_arguments(self):
        calls = []

        async def handler(publisher, args):
            calls.append(args)
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        asyncio.run(registry.call_tool("t", None, MagicMock()))
        self.assertEqual(calls, [{}])

    def test_unknown_tool_raises(self):
        registry = ToolRegistry(self.specs, frozenset({NOTES_VIEW}))
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("notes_publish", {}, MagicMock()))


class TestCallToolErrors(unittest.TestCase):
    """Handler exceptions become structured error results."""

    def _call(self, exc):
        registry = ToolRegistry([_make_spec("t", handler=_raising(exc))])
        result = asyncio.run(registry.call_tool("t", {}, MagicMock()))
        self.assertTrue(result.isError)
        return _text(result)

    def test_github_error(self):
        text = self._call(GitHubAPIError(401, "Bad credentials"))
        self.assertIn("authentication_failed", text)

    def test_network_error(self):
        text = self._call(requests.ConnectionError("connection refused"))
        self.assertIn("network_error", text)

    def test_configuration_error(self):
        """ConfigurationError is checked before its ValueError base."""
        text = self._call(ConfigurationError("GitHub token cannot be empty"))
        self.assertIn("configuration_error", text)
        self.assertIn("GITHUB_TOKEN", text)

    def test_validation_error(self):
        text = self._call(ValueError("modified_only must be a boolean"))
        self.assertIn("validation_error", text)
        self.assertIn("modified_only must be a boolean", text)

    def test_unexpected_error(self):
        text = self._call(RuntimeError("boom"))
        self.assertIn("server_error", text)


class TestLoadPermissionsFile(unittest.TestCase):
    """Test load_permissions_file()."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, text):
        path = self.dir / "permissions.txt"
        path.write_text(text)
        return path

    def test_parses_permissions(self):
        path = self._write("# read-only\nNOTES_VIEW\n\n")
        self.assertEqual(load_permissions_file(path), frozenset({NOTES_VIEW}))

    def test_accepts_string_path(self):
        path = self._write("NOTES_VIEW\nNOTES_PUBLISH\n")
        self.assertEqual(
            load_permissions_file(str(path)),
            frozenset({NOTES_VIEW, NOTES_PUBLISH}),
        )

    def test_invalid_permission(self):
        path = self._write("NOTES_VIEW\nnotes-publish\n")
        with self.assertRaisesRegex(ValueError, "line 2"):
            load_permissions_file(path)

    def test_empty_file(self):
        path = self._write("# nothing\n")
        with self.assertRaisesRegex(ValueError, "No permissions found"):
            load_permissions_file(path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_permissions_file(self.dir / "missing.txt")


if __name__ == "__main__":
    unittest.main()
