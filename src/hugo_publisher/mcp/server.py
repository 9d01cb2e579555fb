"""MCP Server for publishing vault notes to a Hugo site using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents list tracked notes, preview a publish, and publish notes to a
GitHub-hosted Hugo repository.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..publish.orchestrator import Publisher
from .lifespan import load_logging_section, server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("hugo-publisher")

# Initialized in main() from the lifespan context
_publisher: Publisher | None = None

_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(
    publisher: Publisher, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test GitHub connectivity."""
    try:
        full_name = await run_sync(publisher.manager.client.validate_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=(
                        f"Hugo publisher connected to {full_name}. "
                        f"Tracking {len(publisher.index)} notes."
                    ),
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"GitHub connection failed: {e}. Check HUGO_PUBLISHER_REPO and GITHUB_TOKEN.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test GitHub connectivity and return the target repository",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_publisher() -> Publisher:
    """Get the global Publisher instance.

    Raises:
        RuntimeError: If the publisher is not initialized
    """
    if _publisher is None:
        raise RuntimeError(
            "Publisher not initialized. Server lifespan not started."
        )
    return _publisher


def set_publisher(publisher: Publisher | None) -> None:
    global _publisher
    _publisher = publisher


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Return all registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    publisher = get_publisher()
    try:
        return await get_registry().call_tool(name, arguments, publisher)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the tool registry, filtered by a permissions file if given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict with config values to override
            (repository, token, vault_path, debug, log_file, permissions_file)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    permissions_file = overrides.pop("permissions_file", None)

    # Must run before stdio_server so nothing reaches stdout during
    # protocol negotiation.
    log_section = load_logging_section()
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=log_file or log_section.file,
        level=log_section.level,
    )

    set_registry(build_registry(permissions_file))

    # set_publisher() is called here rather than in the lifespan so that
    # `python -m hugo_publisher.mcp.server` updates this module and not a
    # second import of it.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_publisher(ctx["publisher"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="hugo-publisher",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_publisher(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hugo Publisher - MCP server publishing vault notes to a Hugo site on GitHub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .hugo_publisher/config.yml)
  hugo-publisher

  # Publish from a specific vault to a specific repository
  hugo-publisher --vault ~/notes --repo me/my-blog

  # Read-only deployment (list and preview, never publish)
  hugo-publisher --permissions-file /etc/hugo-publisher/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    parser.add_argument(
        "--repo",
        help="Target repository as owner/repo or URL (overrides HUGO_PUBLISHER_REPO)",
    )
    parser.add_argument(
        "--token",
        help="GitHub token (overrides GITHUB_TOKEN; visible in process list, "
        "prefer the environment variable)",
    )
    parser.add_argument(
        "--vault",
        help="Vault directory (overrides HUGO_PUBLISHER_VAULT)",
    )
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: logging.file from config.yml, LOG_FILE, or {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (NOTES_VIEW, NOTES_PUBLISH), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"hugo-publisher version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()

    config_overrides = {}
    if args.repo:
        config_overrides["repository"] = args.repo
    if args.token:
        config_overrides["token"] = args.token
    if args.vault:
        config_overrides["vault_path"] = args.vault
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    cli_keys = [
        k for k in config_overrides if k not in ("token", "log_file")
    ]
    if cli_keys:
        print(
            f"Config overrides from CLI: {', '.join(cli_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
