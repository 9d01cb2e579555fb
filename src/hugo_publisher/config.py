"""Configuration for the Hugo publisher.

Reads GitHub and vault settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    HUGO_PUBLISHER_REPO: Target repository, ``owner/repo`` or a github.com URL (required)
    GITHUB_TOKEN: Personal access token with ``contents:write`` (required)
    HUGO_PUBLISHER_VAULT: Vault directory (optional, default: current directory)
    HUGO_PUBLISHER_BRANCH_ROOT: Prefix for publish branches (optional, default: updates)
    HUGO_PUBLISHER_CONTENT_PATH: Content directory in the repo (optional, default: content/posts)
    HUGO_PUBLISHER_STATE_DIR: Tracking state directory (optional, default: <vault>/.hugo_publisher)
    HUGO_PUBLISHER_API_URL: GitHub API base URL (optional, default: https://api.github.com)
    HUGO_PUBLISHER_POLL_INTERVAL: Seconds between vault polls (optional, default: 5)
    HUGO_PUBLISHER_DEBUG: Enable debug logging (optional, default: false)
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_FRONTMATTER_TEMPLATE = 'title: "{{title}}"\ndate: {{date}}\ndraft: false'

DEFAULT_EXCLUDE = (".hugo_publisher/*", ".obsidian/*", ".git/*", ".trash/*")

_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class ConfigurationError(ValueError):
    """Missing or invalid publisher configuration.

    Raised before any network call is made.
    """


@dataclass
class Config:
    repository: str
    token: str
    vault_path: str = "."
    branch_root: str = "updates"
    content_path: str = "content/posts"
    state_dir: str | None = None
    api_url: str = "https://api.github.com"
    frontmatter_template: str = DEFAULT_FRONTMATTER_TEMPLATE
    file_extension: str = ".md"
    image_handling: str = "copy"
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    poll_interval: float = 5.0
    debug: bool = False

    @property
    def owner(self) -> str:
        return parse_repository(self.repository)[0]

    @property
    def repo(self) -> str:
        return parse_repository(self.repository)[1]

    @property
    def resolved_state_dir(self) -> Path:
        """State directory, defaulting to ``.hugo_publisher`` inside the vault."""
        if self.state_dir:
            return Path(self.state_dir).expanduser()
        return Path(self.vault_path).expanduser() / ".hugo_publisher"


def parse_repository(reference: str) -> tuple[str, str]:
    """Split a repository reference into ``(owner, repo)``.

    Accepts ``owner/repo`` as well as ``https://github.com/owner/repo``
    (optionally with a trailing ``.git`` or slash).

    Raises:
        ConfigurationError: If the reference is empty or malformed.
    """
    ref = (reference or "").strip()
    if not ref:
        raise ConfigurationError(
            "GitHub repository is not configured. Set HUGO_PUBLISHER_REPO "
            "to 'owner/repo' or a github.com URL."
        )

    if ref.startswith(("http://", "https://")):
        parsed = urlparse(ref)
        if not parsed.hostname:
            raise ConfigurationError(
                f"Invalid repository URL '{ref}': URL must include a hostname"
            )
        path = parsed.path
    else:
        path = ref

    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) != 2:
        raise ConfigurationError(
            f"Invalid repository '{ref}': expected 'owner/repo'"
        )

    owner, repo = parts
    repo = repo.removesuffix(".git")
    if not _NAME_RE.match(owner) or not _NAME_RE.match(repo):
        raise ConfigurationError(
            f"Invalid repository '{ref}': owner and repo may only contain "
            "letters, digits, '-', '_' and '.'"
        )
    return owner, repo


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ConfigurationError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ConfigurationError: If the repository reference, token, or any
            publishing option is invalid.
    """
    config.repository = config.repository.strip()
    parse_repository(config.repository)

    if not config.token.strip():
        raise ConfigurationError(
            "GitHub token cannot be empty. Set GITHUB_TOKEN environment variable."
        )
    config.token = config.token.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )
    config.api_url = config.api_url.removesuffix("/")

    config.branch_root = config.branch_root.strip().strip("/")
    if not config.branch_root:
        raise ConfigurationError("Branch root cannot be empty.")
    if any(c in config.branch_root for c in " ~^:?*[\\") or ".." in config.branch_root:
        raise ConfigurationError(
            f"Invalid branch root '{config.branch_root}': not a valid git ref name"
        )

    if not config.file_extension.startswith("."):
        config.file_extension = f".{config.file_extension}"

    if config.image_handling not in ("copy", "reference"):
        raise ConfigurationError(
            f"Invalid image handling '{config.image_handling}': must be 'copy' or 'reference'"
        )

    if config.poll_interval <= 0:
        raise ConfigurationError(
            f"Invalid poll interval {config.poll_interval}: must be positive"
        )


def load_config(
    repository: str | None = None,
    token: str | None = None,
    vault_path: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        repository: Override repository reference.
        token: Override GitHub token.
        vault_path: Override vault directory.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file
            (see ``config_schema.yaml_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ConfigurationError: If required config (repository, token) is
            missing after checking all sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- Required fields: CLI > env > YAML > error ---

    final_repo = (
        repository or os.getenv("HUGO_PUBLISHER_REPO") or fb.get("repository")
    )
    if not final_repo:
        raise ConfigurationError(
            "GitHub repository not found. Set HUGO_PUBLISHER_REPO environment "
            "variable, pass --repo CLI argument, or add 'repository' to config.yml."
        )

    final_token = token or os.getenv("GITHUB_TOKEN") or fb.get("token")
    if not final_token:
        raise ConfigurationError(
            "GitHub token not found. Set GITHUB_TOKEN environment variable, "
            "pass --token CLI argument, or add 'token' to config.yml."
        )

    # --- Optional string fields: CLI > env > YAML > default ---

    def pick(env_key: str, fb_key: str, default: str | None) -> str | None:
        return os.getenv(env_key) or fb.get(fb_key) or default

    final_vault = vault_path or pick("HUGO_PUBLISHER_VAULT", "vault_path", ".")

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("HUGO_PUBLISHER_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    poll_raw = os.getenv("HUGO_PUBLISHER_POLL_INTERVAL")
    if poll_raw is not None:
        try:
            final_poll = float(poll_raw)
        except ValueError:
            raise ConfigurationError(
                f"Invalid HUGO_PUBLISHER_POLL_INTERVAL '{poll_raw}': must be a number of seconds"
            ) from None
    else:
        final_poll = float(fb.get("poll_interval", 5.0))

    config = Config(
        repository=final_repo,
        token=final_token,
        vault_path=final_vault,
        branch_root=pick("HUGO_PUBLISHER_BRANCH_ROOT", "branch_root", "updates"),
        content_path=pick(
            "HUGO_PUBLISHER_CONTENT_PATH", "content_path", "content/posts"
        ),
        state_dir=pick("HUGO_PUBLISHER_STATE_DIR", "state_dir", None),
        api_url=pick(
            "HUGO_PUBLISHER_API_URL", "api_url", "https://api.github.com"
        ),
        frontmatter_template=fb.get(
            "frontmatter_template", DEFAULT_FRONTMATTER_TEMPLATE
        ),
        file_extension=fb.get("file_extension", ".md"),
        image_handling=fb.get("image_handling", "copy"),
        exclude=list(fb.get("exclude", DEFAULT_EXCLUDE)),
        poll_interval=final_poll,
        debug=final_debug,
    )

    validate_config(config)

    return config
