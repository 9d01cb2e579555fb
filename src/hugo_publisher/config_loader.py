"""
Hierarchical YAML configuration loader for hugo_publisher.

Finds config files by convention, resolves ``!include`` directives,
interpolates ``${VAR}`` / ``${VAR:-default}`` from the environment, and
merges files with "project wins" semantics.

Usage:
    from hugo_publisher.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = ".hugo_publisher"
CONFIG_FILENAME = "config.yml"

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Substitute ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable yields its default, or ``""`` without one.
    An unterminated ``${`` is left as is.
    """

    def _substitute(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_substitute, value)


def _interpolate_tree(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _interpolate_tree(val) for key, val in node.items()}
    if isinstance(node, list):
        return [_interpolate_tree(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# YAML loading with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` subclass that understands ``!include``.

    The constructor is registered on this subclass only, so the global
    ``yaml.SafeLoader`` is left untouched.
    """


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include path`` relative to the includer."""
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    chain: list[Path] = getattr(loader, "_include_chain", [])
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return load_yaml_file(target, _chain=[*chain, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml_file(path: Path, *, _chain: list[Path] | None = None) -> Any:
    """Parse one YAML file with ``ConfigLoader``."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_chain = _chain or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``HUGO_PUBLISHER_CONFIG`` env var (explicit single path).
        2. ``.hugo_publisher/config.yml`` in the current directory.
        3. ``.hugo_publisher/config.yml`` in ``HUGO_PUBLISHER_VAULT``, when
           that differs from the current directory.
        4. ``~/.config/hugo_publisher/config.yml`` (XDG global).
    """
    candidates: list[Path] = []

    explicit = os.environ.get("HUGO_PUBLISHER_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    cwd = Path.cwd().resolve()
    candidates.append(cwd / CONFIG_DIRNAME / CONFIG_FILENAME)

    vault = os.environ.get("HUGO_PUBLISHER_VAULT")
    if vault:
        vault_path = Path(vault).expanduser().resolve()
        if vault_path != cwd:
            candidates.append(vault_path / CONFIG_DIRNAME / CONFIG_FILENAME)

    candidates.append(
        Path.home() / ".config" / "hugo_publisher" / CONFIG_FILENAME
    )

    seen: set[Path] = set()
    found: list[Path] = []
    for path in candidates:
        if path in seen or not path.exists():
            continue
        seen.add(path)
        found.append(path)
    return found


# ---------------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# hugo-publisher configuration
#
# Values may reference environment variables: ${GITHUB_TOKEN}
# Environment variables always take precedence over this file:
#   HUGO_PUBLISHER_REPO, GITHUB_TOKEN, HUGO_PUBLISHER_VAULT,
#   HUGO_PUBLISHER_BRANCH_ROOT, HUGO_PUBLISHER_CONTENT_PATH
#
# github:
#   repository: your-name/your-site
#   token: ${GITHUB_TOKEN}
#   branch_root: updates
#   content_path: content/posts
#
# vault:
#   path: ~/Notes
#   poll_interval: 5
#   exclude:
#     - ".obsidian/*"
#     - "templates/*"
#
# hugo:
#   frontmatter_template: |-
#     title: "{{title}}"
#     date: {{date}}
#     draft: false
#   file_extension: .md
#   image_handling: copy
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if none exists.

    Args:
        target: Where to create the starter file.  Defaults to
            ``CWD / .hugo_publisher / config.yml``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    path = target or Path.cwd() / CONFIG_DIRNAME / CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge every discovered config file.

    Files are applied from lowest to highest precedence; each file's
    top-level sections replace (not deep-merge) earlier ones.  Environment
    interpolation runs after the merge.  Returns ``{}`` when no file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_tree(merged)
