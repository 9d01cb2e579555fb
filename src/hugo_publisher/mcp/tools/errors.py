"""Error response builders for MCP tool handlers.

Errors carry a corrective action so AI agents can recover without human
intervention.
"""

import mcp.types as types

from ...core.client import GitHubAPIError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            authentication_failed, rate_limited, validation_error,
            configuration_error, network_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Note missing.md is not tracked", "Use notes_list to see tracked notes.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_github_error(error: GitHubAPIError) -> types.CallToolResult:
    """Translate a GitHub API error into a structured error response."""
    message = str(error)
    match error.status_code:
        case 401:
            return build_error_response(
                "authentication_failed",
                message,
                "Check that GITHUB_TOKEN is valid and not expired.",
            )
        case 403 if "rate limit" in error.message.lower():
            return build_error_response(
                "rate_limited",
                message,
                "Wait for the GitHub rate limit to reset, then retry.",
            )
        case 403:
            return build_error_response(
                "permission_denied",
                message,
                "Grant the token 'contents: write' access to the repository.",
            )
        case 404:
            return build_error_response(
                "not_found",
                message,
                "Check HUGO_PUBLISHER_REPO and that the token can see the repository.",
            )
        case 409 | 422:
            return build_error_response(
                "validation_error",
                message,
                "Retry the publish; a new branch name is generated on every attempt.",
            )
        case _:
            return build_error_response(
                "server_error",
                message,
                "GitHub returned an unexpected error. Retry later.",
            )
