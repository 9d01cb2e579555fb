import base64
import threading
from typing import Any
from urllib.parse import quote

import requests

from .. import __version__
from ..config import Config, parse_repository


class GitHubAPIError(Exception):
    """Non-2xx response from the GitHub REST API."""

    def __init__(self, status_code: int, message: str, url: str = ""):
        self.status_code = status_code
        self.message = message
        self.url = url
        super().__init__(f"GitHub API error {status_code}: {message}")


class GitHubClient:
    """Minimal GitHub REST client for branch and contents operations."""

    def __init__(self, config: Config):
        self.config = config
        self.owner, self.repo = parse_repository(config.repository)
        self._thread_local = threading.local()
        self.repo_url = self._get_repo_url()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_repo_url(self) -> str:
        base = self.config.api_url.rstrip("/")
        return f"{base}/repos/{self.owner}/{self.repo}"

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": f"hugo-publisher/{__version__}",
            }
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a request relative to the repository URL and decode the JSON body.

        Raises:
            GitHubAPIError: On any non-2xx status.
            requests.RequestException: On transport failures and timeouts.
        """
        url = f"{self.repo_url}/{path}" if path else self.repo_url
        response = self._get_session().request(
            method,
            url,
            params=params,
            json=json,
            timeout=(10, 60),
        )
        if not response.ok:
            raise GitHubAPIError(
                response.status_code, self._error_message(response), url
            )
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or "Unknown error"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason or "Unknown error"

    @staticmethod
    def _quote_path(path: str) -> str:
        return quote(path.strip("/"), safe="/")

    def get_repository(self) -> dict[str, Any]:
        """
        Get repository metadata (includes ``default_branch``).
        """
        return self._request("GET", "")

    def get_default_branch(self) -> str:
        return self.get_repository()["default_branch"]

    def get_branch_sha(self, branch: str) -> str:
        """
        Get the head commit SHA of *branch*.
        """
        ref = self._request(
            "GET", f"git/refs/heads/{self._quote_path(branch)}"
        )
        return ref["object"]["sha"]

    def create_branch(self, name: str, sha: str) -> dict[str, Any]:
        """
        Create ``refs/heads/{name}`` pointing at *sha*.

        Raises:
            GitHubAPIError: 422 if the branch already exists.
        """
        return self._request(
            "POST",
            "git/refs",
            json={"ref": f"refs/heads/{name}", "sha": sha},
        )

    def get_file_sha(self, path: str, ref: str) -> str | None:
        """
        Return the blob SHA of *path* on *ref*, or None if it does not exist.
        """
        try:
            data = self._request(
                "GET",
                f"contents/{self._quote_path(path)}",
                params={"ref": ref},
            )
        except GitHubAPIError as e:
            if e.status_code == 404:
                return None
            raise
        if isinstance(data, list):
            # A directory lives at this path.
            raise GitHubAPIError(
                409, f"Path is a directory: {path}", self.repo_url
            )
        return data.get("sha")

    def put_file(
        self,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> str:
        """
        Create or update *path* on *branch*.

        Args:
            path: Repository-relative file path
            content: File text, sent base64-encoded as UTF-8
            message: Commit message
            branch: Target branch
            sha: Blob SHA of the existing file (required by GitHub for updates)

        Returns:
            SHA of the resulting commit
        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode(
                "ascii"
            ),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        result = self._request(
            "PUT", f"contents/{self._quote_path(path)}", json=body
        )
        return result["commit"]["sha"]

    def validate_connection(self) -> str:
        """
        Validate token and repository access.
        Returns the repository's full name if successful.
        """
        repository = self.get_repository()
        return str(repository.get("full_name", f"{self.owner}/{self.repo}"))
