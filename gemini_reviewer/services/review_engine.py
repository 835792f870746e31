"""
Review Engine Module

This module builds the review prompt, makes the single Gemini call and
validates the response shape before any text is published.

Design Decisions:
- The instruction template is opaque configuration; the diff always goes
  inside a fenced ```diff block after it
- Validate the whole response with a schema; any missing level is an
  upstream error, never an unhandled exception
- Blank model text is replaced by a fixed fallback message
- No retries: one failure ends the invocation
"""

from typing import Any, Optional, Union

from pydantic import ValidationError

from gemini_reviewer.config import Settings
from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import (
    DiffPayload,
    GeminiResponse,
    Halt,
    OutcomeKind,
    PullRequestContext,
    ReviewProvenance,
    ReviewResult,
)
from gemini_reviewer.services.gemini_client import (
    GENERATE_CONTENT_CALL,
    GeminiAPIError,
    GeminiClient,
)

logger = get_logger(__name__)


INVALID_RESPONSE_REASON = "invalid model response"
MAX_DESCRIPTION_CHARS = 1000


class ModelResponseError(ValueError):
    """The model answered, but not in the expected shape."""


def build_prompt(
    template: str,
    diff: DiffPayload,
    pr_title: Optional[str] = None,
    pr_body: Optional[str] = None
) -> str:
    """
    Render the review prompt.

    Args:
        template: Instruction text placed first
        diff: Bounded diff; its text is embedded verbatim
        pr_title: Optional PR title for context
        pr_body: Optional PR description, capped at 1000 characters

    Returns:
        Prompt text
    """
    prompt_parts = [template.rstrip("\n"), ""]

    if pr_title:
        prompt_parts.append(f"Pull request title: {pr_title}")

    if pr_body:
        body = pr_body[:MAX_DESCRIPTION_CHARS] + "..." if len(pr_body) > MAX_DESCRIPTION_CHARS else pr_body
        prompt_parts.append(f"Pull request description:\n{body}")

    if pr_title or pr_body:
        prompt_parts.append("")

    prompt_parts.append("```diff")
    prompt_parts.append(diff.text)
    prompt_parts.append("```")

    return "\n".join(prompt_parts)


def extract_review_text(data: Any) -> str:
    """
    Pull the first candidate's first text part out of a model response.

    Args:
        data: Decoded generateContent response

    Returns:
        The text, possibly blank

    Raises:
        ModelResponseError: If any level of nesting is missing or mistyped
    """
    try:
        response = GeminiResponse.model_validate(data)
    except ValidationError as e:
        raise ModelResponseError(INVALID_RESPONSE_REASON) from e

    text = response.candidates[0].content.parts[0].text
    if text is None:
        raise ModelResponseError(INVALID_RESPONSE_REASON)

    return text


class ReviewSynthesizer:
    """
    Gemini-backed review generator.

    Usage:
        synthesizer = ReviewSynthesizer(settings, gemini_client)
        result = await synthesizer.synthesize(diff, context)
    """

    def __init__(self, settings: Settings, gemini_client: GeminiClient):
        self.settings = settings
        self.gemini_client = gemini_client

    def build_prompt(self, diff: DiffPayload, context: PullRequestContext) -> str:
        return build_prompt(
            self.settings.review_template,
            diff,
            pr_title=context.title,
            pr_body=context.description
        )

    async def synthesize(
        self,
        diff: DiffPayload,
        context: PullRequestContext
    ) -> Union[ReviewResult, Halt]:
        """
        Generate the review comment for a diff.

        Returns:
            ReviewResult, or Halt(UPSTREAM_ERROR) when the call fails or the
            response is malformed
        """
        prompt = self.build_prompt(diff, context)

        logger.info(
            "Calling Gemini API for code review",
            prompt_length=len(prompt),
            diff_truncated=diff.truncated
        )

        try:
            data = await self.gemini_client.generate_content(prompt)
            text = extract_review_text(data)
        except GeminiAPIError as e:
            logger.error(
                "Failed to get review from Gemini API",
                call=e.call,
                status_code=e.status_code,
                timed_out=e.timed_out,
                error=str(e)
            )
            return Halt(kind=OutcomeKind.UPSTREAM_ERROR, reason=str(e), call=e.call)
        except ModelResponseError as e:
            has_candidates = isinstance(data, dict) and bool(data.get("candidates"))
            logger.error(
                "Invalid Gemini API response structure",
                has_data=bool(data),
                has_candidates=has_candidates
            )
            return Halt(
                kind=OutcomeKind.UPSTREAM_ERROR,
                reason=str(e),
                call=GENERATE_CONTENT_CALL
            )

        if not text.strip():
            logger.warning("Empty review comment received from Gemini")
            return ReviewResult(
                body=self.settings.review_fallback_message,
                provenance=ReviewProvenance.FALLBACK_DEFAULT
            )

        logger.info("Review generated successfully", review_length=len(text))
        return ReviewResult(body=text, provenance=ReviewProvenance.MODEL_GENERATED)
