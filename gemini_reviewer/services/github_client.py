"""
GitHub API Client Module

This module provides the client for the two GitHub calls the pipeline
makes: comparing two commits and creating a pull request comment.

Design Decisions:
- Use a shared httpx.AsyncClient created once per process
- Every call carries its own total timeout (cancel-after-duration)
- Exactly one attempt per call; failures surface as GitHubAPIError
  tagged with the failing call's identity
- Never include tokens or raw response bodies in error messages
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from gemini_reviewer.config import Settings
from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import PublishedComment

logger = get_logger(__name__)


COMPARE_CALL = "github.compare"
CREATE_COMMENT_CALL = "github.create_comment"

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"


class GitHubAPIError(Exception):
    """Custom exception for GitHub API errors."""
    def __init__(
        self,
        message: str,
        call: str,
        status_code: Optional[int] = None,
        timed_out: bool = False
    ):
        super().__init__(message)
        self.call = call
        self.status_code = status_code
        self.timed_out = timed_out


class GitHubClient:
    """
    Async GitHub REST client.

    Usage:
        client = GitHubClient(settings, http_client)
        diff = await client.compare_diff("owner", "repo", base_sha, head_sha)
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        """
        Initialize the GitHub client.

        Args:
            settings: Application settings (token, base URL, timeouts)
            http_client: Process-wide async HTTP client
        """
        self.settings = settings
        self._http = http_client
        self.api_base = settings.github_api_base.rstrip("/")

    def _headers(self, accept: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.github_token}",
            "Accept": accept,
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": self.settings.user_agent,
        }

    def _log_rate_limit(self, response: httpx.Response) -> None:
        """Warn when the GitHub rate limit is running low."""
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining and remaining.isdigit() and int(remaining) < 100:
            logger.warning(
                "GitHub API rate limit running low",
                remaining=int(remaining),
                reset_at=response.headers.get("x-ratelimit-reset")
            )

    async def _request(
        self,
        call: str,
        method: str,
        endpoint: str,
        timeout: float,
        accept: str = JSON_MEDIA_TYPE,
        **kwargs: Any
    ) -> httpx.Response:
        """
        Make one authenticated request to the GitHub API.

        Args:
            call: Call identity used in errors and logs
            method: HTTP method
            endpoint: API endpoint (without base URL)
            timeout: Total seconds allowed for this call
            accept: Accept header media type
            **kwargs: Additional arguments to pass to httpx

        Returns:
            httpx.Response with a 2xx status

        Raises:
            GitHubAPIError: On timeout, transport failure or error status
        """
        url = f"{self.api_base}{endpoint}"

        try:
            response = await asyncio.wait_for(
                self._http.request(
                    method,
                    url,
                    headers=self._headers(accept),
                    timeout=timeout,
                    **kwargs
                ),
                timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise GitHubAPIError(
                f"{call} timed out after {timeout:g}s", call=call, timed_out=True
            ) from e
        except httpx.HTTPError as e:
            raise GitHubAPIError(
                f"{call} transport error: {type(e).__name__}", call=call
            ) from e

        self._log_rate_limit(response)

        if response.status_code >= 400:
            logger.error(
                "GitHub API error",
                call=call,
                status_code=response.status_code,
                endpoint=endpoint
            )
            raise GitHubAPIError(
                f"{call} failed with status {response.status_code}",
                call=call,
                status_code=response.status_code
            )

        return response

    def _compare_endpoint(self, owner: str, repo: str, base_sha: str, head_sha: str) -> str:
        return f"/repos/{owner}/{repo}/compare/{base_sha}...{head_sha}"

    async def compare_diff(
        self,
        owner: str,
        repo: str,
        base_sha: str,
        head_sha: str
    ) -> str:
        """
        Fetch the unified diff between two commits.

        Returns:
            Unified diff text (possibly empty)
        """
        response = await self._request(
            COMPARE_CALL,
            "GET",
            self._compare_endpoint(owner, repo, base_sha, head_sha),
            timeout=self.settings.diff_fetch_timeout,
            accept=DIFF_MEDIA_TYPE
        )
        return response.text

    async def compare_files(
        self,
        owner: str,
        repo: str,
        base_sha: str,
        head_sha: str
    ) -> List[Dict[str, Any]]:
        """
        Fetch the changed files between two commits.

        Returns:
            File entries in the order GitHub returned them

        Raises:
            GitHubAPIError: Also when the body is not the expected JSON shape
        """
        response = await self._request(
            COMPARE_CALL,
            "GET",
            self._compare_endpoint(owner, repo, base_sha, head_sha),
            timeout=self.settings.diff_fetch_timeout
        )

        try:
            data = response.json()
        except ValueError as e:
            raise GitHubAPIError(f"{COMPARE_CALL} returned invalid JSON", call=COMPARE_CALL) from e

        files = data.get("files", []) if isinstance(data, dict) else None
        if not isinstance(files, list):
            raise GitHubAPIError(f"{COMPARE_CALL} returned no file list", call=COMPARE_CALL)

        return [f for f in files if isinstance(f, dict)]

    async def create_issue_comment(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        body: str
    ) -> PublishedComment:
        """
        Post a comment on a pull request conversation.

        No idempotency key is sent; a redelivered webhook posts again.

        Returns:
            The created comment's id and URL
        """
        response = await self._request(
            CREATE_COMMENT_CALL,
            "POST",
            f"/repos/{owner}/{repo}/issues/{pr_number}/comments",
            timeout=self.settings.publish_timeout,
            json={"body": body}
        )

        try:
            data = response.json()
            return PublishedComment(id=data["id"], html_url=data.get("html_url"))
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError(
                f"{CREATE_COMMENT_CALL} returned an unexpected body",
                call=CREATE_COMMENT_CALL
            ) from e
