"""Unified configuration schema for hugo_publisher.

Defines Pydantic models for the YAML config file with dedicated sections
for the GitHub target, the vault, Hugo output and logging, plus an adapter
that flattens them into fallbacks for ``config.load_config()``.

Usage:
    from hugo_publisher.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub repository settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    repository: str | None = Field(
        default=None,
        description="Target repository: 'owner/repo' or https://github.com/owner/repo",
    )
    token: str | None = Field(
        default=None, description="GitHub personal access token"
    )
    api_url: str | None = Field(
        default=None, description="GitHub API base URL"
    )
    branch_root: str | None = Field(
        default=None,
        description="Prefix for publish branches (default: updates)",
    )
    content_path: str | None = Field(
        default=None,
        description="Directory in the repository that receives posts",
    )

    model_config = {"frozen": True}


class VaultConfig(BaseModel):
    """Local vault settings."""

    path: str | None = Field(default=None, description="Vault directory")
    state_dir: str | None = Field(
        default=None,
        description="Tracking state directory (default: <vault>/.hugo_publisher)",
    )
    poll_interval: float | None = Field(
        default=None,
        gt=0,
        description="Seconds between vault change polls",
    )
    exclude: list[str] | None = Field(
        default=None,
        description="Glob patterns of vault paths to ignore",
    )

    model_config = {"frozen": True}


class HugoConfig(BaseModel):
    """Hugo output settings."""

    frontmatter_template: str | None = Field(
        default=None,
        description="Front matter template with {{title}}, {{date}} and {{key}} placeholders",
    )
    file_extension: str | None = Field(
        default=None, description="Extension of generated files"
    )
    image_handling: Literal["copy", "reference"] | None = Field(
        default=None,
        description="'copy' links embeds under /assets/, 'reference' uses Hugo ref shortcodes",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            ``LOG_LEVEL`` and ``--debug`` take precedence.
        file: Log file path for MCP mode.  ``--log-file`` takes precedence.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | None = Field(
        default=None, description="Log level"
    )
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    hugo: HugoConfig = Field(default_factory=HugoConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If a section has invalid values.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into ``load_config()`` fallbacks.

    Only values that are actually set are included, so built-in defaults
    and environment variables still apply for everything else.
    """
    flat: dict[str, Any] = {
        **unified.github.model_dump(),
        "vault_path": unified.vault.path,
        "state_dir": unified.vault.state_dir,
        "poll_interval": unified.vault.poll_interval,
        "exclude": unified.vault.exclude,
        **unified.hugo.model_dump(),
    }
    return {k: v for k, v in flat.items() if v is not None}
