"""
Diff Retriever Module

Fetches the change between a pull request's base and head commits and
bounds it to the size the review model is given.

Design Decisions:
- One compare call per invocation, no retry
- Per-file patches are joined with newlines in host order; files without a
  textual patch (binary, pure renames) are skipped
- A diff that is blank after trimming short-circuits the pipeline
- The size limit is in UTF-8 bytes; truncated text ends with a fixed marker
"""

from typing import Any, Dict, List, Union

from gemini_reviewer.config import DiffFormat, Settings
from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import DiffPayload, Halt, OutcomeKind, PullRequestContext
from gemini_reviewer.services.github_client import GitHubAPIError, GitHubClient

logger = get_logger(__name__)


TRUNCATION_MARKER = "\n\n[Diff truncated due to size limit]"
EMPTY_DIFF_REASON = "No changes to review."


def join_patches(files: List[Dict[str, Any]]) -> str:
    """
    Concatenate per-file patches in the order given.

    Args:
        files: File entries from the compare response

    Returns:
        Patches joined with newlines, skipping entries without a text patch
    """
    patches = [
        f["patch"] for f in files
        if isinstance(f.get("patch"), str) and f["patch"]
    ]
    return "\n".join(patches)


def bound_diff(diff: str, max_size: int) -> DiffPayload:
    """
    Cap a diff at ``max_size`` UTF-8 bytes.

    A multi-byte character split by the cut is dropped, so the kept
    content never exceeds the limit.

    Args:
        diff: Full diff text
        max_size: Maximum content size in bytes

    Returns:
        DiffPayload whose text is exactly what the model will receive
    """
    encoded = diff.encode("utf-8")
    original_length = len(encoded)

    if original_length <= max_size:
        return DiffPayload(
            text=diff,
            length=original_length,
            original_length=original_length,
            truncated=False
        )

    kept = encoded[:max_size].decode("utf-8", errors="ignore")
    return DiffPayload(
        text=kept + TRUNCATION_MARKER,
        length=len(kept.encode("utf-8")),
        original_length=original_length,
        truncated=True
    )


class DiffRetriever:
    """
    Retrieves and bounds the diff for a pull request.

    Usage:
        retriever = DiffRetriever(settings, github_client)
        result = await retriever.retrieve(context)
    """

    def __init__(self, settings: Settings, github_client: GitHubClient):
        self.settings = settings
        self.github_client = github_client

    async def _fetch(self, context: PullRequestContext) -> str:
        if self.settings.diff_format == DiffFormat.FILES:
            files = await self.github_client.compare_files(
                context.owner, context.repo, context.base_sha, context.head_sha
            )
            logger.info("Fetched changed files from GitHub", num_files=len(files))
            return join_patches(files)

        return await self.github_client.compare_diff(
            context.owner, context.repo, context.base_sha, context.head_sha
        )

    async def retrieve(self, context: PullRequestContext) -> Union[DiffPayload, Halt]:
        """
        Fetch the diff between the PR's base and head commits.

        Returns:
            DiffPayload, Halt(EMPTY_DIFF) for a blank diff, or
            Halt(UPSTREAM_ERROR) when the compare call fails
        """
        logger.info(
            "Fetching diff from GitHub API",
            repository=context.full_repo_name,
            base_sha=context.base_sha[:8],
            head_sha=context.head_sha[:8],
            diff_format=self.settings.diff_format.value
        )

        try:
            diff = await self._fetch(context)
        except GitHubAPIError as e:
            logger.error(
                "Failed to fetch diff from GitHub",
                call=e.call,
                status_code=e.status_code,
                timed_out=e.timed_out,
                error=str(e)
            )
            return Halt(kind=OutcomeKind.UPSTREAM_ERROR, reason=str(e), call=e.call)

        if not diff or not diff.strip():
            logger.info("No changes found in diff, skipping review")
            return Halt(kind=OutcomeKind.EMPTY_DIFF, reason=EMPTY_DIFF_REASON)

        payload = bound_diff(diff, self.settings.max_diff_size)

        if payload.truncated:
            logger.warning(
                "Diff too large, truncating",
                original_length=payload.original_length,
                max_size=self.settings.max_diff_size
            )

        logger.info("Diff validation passed", diff_length=payload.length)
        return payload
