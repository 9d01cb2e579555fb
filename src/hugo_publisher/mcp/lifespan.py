"""Lifespan management for MCP server startup and shutdown."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import yaml
from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import LoggingConfig, build_config, yaml_fallbacks
from ..converters import HugoConverter
from ..core.async_utils import run_sync
from ..core.client import GitHubClient
from ..publish.orchestrator import Publisher
from ..publish.transaction import PublishTransactionManager
from ..tracking.engine import ReconciliationEngine
from ..tracking.index import TrackingIndex
from ..tracking.state import SnapshotStore
from ..vault import FileSystemVault

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def load_logging_section() -> LoggingConfig:
    """Return the ``logging`` section of the YAML config, if any.

    Logging is configured before the lifespan runs, so this reads the
    config files on its own.  A broken config file yields defaults here;
    the lifespan reports the error properly.
    """
    load_dotenv()
    if not discover_config_files():
        return LoggingConfig()
    try:
        return build_config(load_hierarchical_config()).logging
    except (ValueError, OSError, yaml.YAMLError):
        return LoggingConfig()


def _load_server_config(overrides: dict[str, Any]) -> Config:
    # CLI args > env vars (.env loaded first) > YAML config > defaults
    load_dotenv()

    fallbacks: dict[str, Any] | None = None
    sources = []
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        fallbacks = yaml_fallbacks(unified)
        sources.append(f"config file: {config_files[0]}")

    config = load_config(
        repository=overrides.get("repository"),
        token=overrides.get("token"),
        vault_path=overrides.get("vault_path"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    source_desc = ", ".join(sources)
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    return config


async def _watch_vault(
    vault: FileSystemVault,
    engine: ReconciliationEngine,
    interval: float,
) -> None:
    """Poll the vault and apply change events until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await run_sync(vault.poll)
            await engine.process_pending()
        except Exception:
            logger.exception("Vault watch iteration failed")


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env and the YAML config, merge via load_config()
    - Create GitHubClient and validate repository access
    - Restore the tracking index from its snapshot and rescan the vault
    - Start the background vault watcher

    On shutdown:
    - Stop the watcher, unsubscribe from the vault, save the index

    Args:
        config_overrides: Optional dict with config values from CLI
            (repository, token, vault_path, debug)

    Yields:
        Dict with 'publisher' and 'client' keys

    Raises:
        RuntimeError: If configuration is invalid, GitHub is unreachable,
            or the vault cannot be scanned.
    """
    logger.info("MCP server starting...")
    _stderr_print("Hugo Publisher starting...")

    overrides = config_overrides or {}
    try:
        config = _load_server_config(overrides)
        logger.info("Repository: %s", config.repository)
        _stderr_print(f"  Repository: {config.repository}")
    except (ValueError, OSError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure HUGO_PUBLISHER_REPO and GITHUB_TOKEN are set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure HUGO_PUBLISHER_REPO and GITHUB_TOKEN are set."
        ) from e

    logger.info("Validating GitHub connection...")
    _stderr_print("  Validating GitHub connection...")
    try:
        client = GitHubClient(config)
        full_name = await run_sync(client.validate_connection)
        logger.info("Connected to GitHub repository %s", full_name)
        _stderr_print(f"  Connected to {full_name}")
    except Exception as e:
        logger.error("Failed to connect to GitHub: %s", e)
        _stderr_print("ERROR: GitHub connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check HUGO_PUBLISHER_REPO and GITHUB_TOKEN.")
        raise RuntimeError(
            f"GitHub connection failed: {e}. Check HUGO_PUBLISHER_REPO and GITHUB_TOKEN."
        ) from e

    vault = FileSystemVault(
        config.vault_path, extensions=(".md",), exclude=config.exclude
    )
    engine = ReconciliationEngine(
        vault, TrackingIndex(), SnapshotStore(config.resolved_state_dir)
    )
    try:
        await engine.initialize()
        await run_sync(vault.poll)
    except (OSError, ValueError) as e:
        engine.close()
        logger.error("Failed to scan vault %s: %s", config.vault_path, e)
        _stderr_print(f"ERROR: Cannot scan vault {config.vault_path}: {e}")
        raise RuntimeError(f"Vault scan failed: {e}") from e

    _stderr_print(f"  Vault: {vault.root} ({len(engine.index)} tracked notes)")

    publisher = Publisher(
        engine,
        PublishTransactionManager(client, config),
        HugoConverter(
            config.frontmatter_template,
            config.file_extension,
            config.image_handling,
        ),
    )
    watcher = asyncio.create_task(
        _watch_vault(vault, engine, config.poll_interval)
    )
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"publisher": publisher, "client": client}
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        engine.close()
        await engine.persist()
        logger.info("MCP server shutting down")
        _stderr_print("Hugo Publisher shutting down.")
