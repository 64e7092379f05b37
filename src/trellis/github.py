"""GitHub pull requests."""

import logging
import os
from typing import Optional

import httpx

from trellis.errors import ReviewRequestError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

PULL_REQUEST_DESCRIPTION = """

# Describe your pull request
# Use GitHub flavored Markdown https://docs.github.com/en/get-started/writing-on-github
# Why not include a screenshot? Format is ![title](url)
"""


def strip_comments(description: str) -> str:
    """Drop template comment lines from an edited description."""
    lines = [line for line in description.splitlines() if not line.startswith("#")]
    return "\n".join(lines).strip()


def _make_client(timeout: float) -> httpx.Client:
    proxy = os.environ.get("HTTPS_PROXY")
    if proxy:
        logger.debug("Using proxy %s", proxy)
    return httpx.Client(timeout=timeout, proxy=proxy or None)


def create_pull_request(
    token: str,
    branch: str,
    repo: str,
    description: str,
    base: str = "master",
    client: Optional[httpx.Client] = None,
    timeout: float = 30.0,
) -> str:
    """Open a pull request for `branch` against `base`.

    Args:
        token: GitHub API token
        branch: Head branch of the pull request
        repo: Repository as `owner/name`
        description: Pull request body
        base: Branch the pull request targets
        client: HTTP client to use instead of a new one

    Returns:
        The pull request's web URL

    Raises:
        ReviewRequestError: If GitHub responds with a non-2xx status or a body
            without the pull request URL
    """
    payload = {"title": branch, "head": branch, "base": base, "body": description}
    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"token {token}",
    }
    owns_client = client is None
    http = client or _make_client(timeout)
    try:
        logger.debug("Creating pull request for %s on %s", branch, repo)
        response = http.post(f"{GITHUB_API_URL}/repos/{repo}/pulls", json=payload, headers=headers)
    except httpx.HTTPError as err:
        raise ReviewRequestError(f"Failed to create pull request: {err}") from err
    finally:
        if owns_client:
            http.close()

    if not response.is_success:
        raise ReviewRequestError(
            f"Failed to create pull request: HTTP {response.status_code} - {response.text}",
            status_code=response.status_code,
        )
    try:
        data = response.json()
    except ValueError as err:
        raise ReviewRequestError(
            f"Unexpected response from GitHub: body is not JSON ({err})", status_code=response.status_code
        ) from err
    if not isinstance(data, dict) or "html_url" not in data:
        raise ReviewRequestError("Unexpected response from GitHub: missing 'html_url'", status_code=response.status_code)
    return str(data["html_url"])
