"""GitHub client and async helpers shared by the tracker and the MCP server."""

from .async_utils import run_sync
from .client import GitHubAPIError, GitHubClient

__all__ = ["GitHubAPIError", "GitHubClient", "run_sync"]
