"""
PR Review Pipeline Module

This module orchestrates one webhook invocation end to end:
configuration check, signature verification, classification, payload
normalization, diff retrieval, review synthesis and comment publishing.

Design Decisions:
- Dependencies are explicit objects built once per process and passed in,
  so tests can substitute fakes
- Every stage returns an artifact or a Halt; the pipeline stops at the
  first Halt and reports it
- Stages translate their own call failures; anything that still escapes
  becomes an internal error outcome
- Once publishing starts it runs to completion even if the inbound request
  is cancelled
"""

import asyncio
from typing import Optional, Set, Union

import httpx

from gemini_reviewer.config import Settings
from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import (
    DiffPayload,
    Halt,
    Outcome,
    OutcomeKind,
    PipelineStage,
    PublishedComment,
    PullRequestContext,
    ReviewResult,
    WebhookEnvelope,
)
from gemini_reviewer.services.diff_retriever import DiffRetriever
from gemini_reviewer.services.gemini_client import GeminiClient
from gemini_reviewer.services.github_client import GitHubAPIError, GitHubClient
from gemini_reviewer.services.review_engine import ReviewSynthesizer
from gemini_reviewer.webhook.payload import normalize_payload
from gemini_reviewer.webhook.reporter import OutcomeReporter
from gemini_reviewer.webhook.security import classify_event, verify_signature

logger = get_logger(__name__)

# Strong references to shielded publish tasks until they finish.
_publish_tasks: Set[asyncio.Task] = set()


class ReviewPipeline:
    """
    Orchestrates the PR review pipeline for one webhook at a time.

    The pipeline holds only read-only configuration and stateless clients,
    so concurrent invocations share nothing mutable.

    Usage:
        pipeline = ReviewPipeline.from_settings(settings, http_client)
        outcome = await pipeline.run(envelope, started_at)
    """

    def __init__(
        self,
        settings: Settings,
        github_client: GitHubClient,
        diff_retriever: DiffRetriever,
        synthesizer: ReviewSynthesizer,
        reporter: Optional[OutcomeReporter] = None
    ):
        self.settings = settings
        self.github_client = github_client
        self.diff_retriever = diff_retriever
        self.synthesizer = synthesizer
        self.reporter = reporter or OutcomeReporter()

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "ReviewPipeline":
        """Wire the production dependencies around one shared HTTP client."""
        github_client = GitHubClient(settings, http_client)
        return cls(
            settings=settings,
            github_client=github_client,
            diff_retriever=DiffRetriever(settings, github_client),
            synthesizer=ReviewSynthesizer(settings, GeminiClient(settings, http_client)),
        )

    # =========================================================================
    # Entry points
    # =========================================================================

    async def run(self, envelope: WebhookEnvelope, started_at: float) -> Outcome:
        """
        Execute the complete pipeline.

        Args:
            envelope: Captured inbound request
            started_at: time.monotonic() at invocation start

        Returns:
            The terminal Outcome (already logged)
        """
        admitted = self.admit(envelope, started_at)
        if isinstance(admitted, Outcome):
            return admitted
        return await self.review(admitted, started_at, envelope.delivery_id)

    def admit(
        self,
        envelope: WebhookEnvelope,
        started_at: float
    ) -> Union[PullRequestContext, Outcome]:
        """
        Run the gate stages, which do no network I/O.

        Returns:
            PullRequestContext to review, or the terminal Outcome
        """
        stage = PipelineStage.CONFIGURATION
        try:
            halt = self._check_configuration()
            if halt:
                return self._halt(halt, stage, started_at, delivery_id=envelope.delivery_id)

            stage = PipelineStage.AUTHENTICATION
            halt = self._authenticate(envelope)
            if halt:
                return self._halt(halt, stage, started_at, delivery_id=envelope.delivery_id)

            stage = PipelineStage.CLASSIFICATION
            verdict = classify_event(envelope.event_type, envelope.action)
            if isinstance(verdict, Halt):
                return self._halt(verdict, stage, started_at, delivery_id=envelope.delivery_id)

            stage = PipelineStage.NORMALIZATION
            context = normalize_payload(envelope.body, verdict.action)
            if isinstance(context, Halt):
                return self._halt(context, stage, started_at, delivery_id=envelope.delivery_id)

            return context

        except Exception as e:
            return self._internal_error(e, stage, started_at, delivery_id=envelope.delivery_id)

    async def review(
        self,
        context: PullRequestContext,
        started_at: float,
        delivery_id: Optional[str] = None
    ) -> Outcome:
        """
        Run the network stages for an admitted pull request.

        Diff retrieval and synthesis run strictly in sequence; each has its
        own timeout and a single attempt.

        Returns:
            The terminal Outcome (already logged)
        """
        log = logger.bind(
            repository=context.full_repo_name,
            pr_number=context.pr_number,
            action=context.action,
            delivery_id=delivery_id
        )
        log.info(
            "Processing pull request",
            base_sha=context.base_sha[:8],
            head_sha=context.head_sha[:8]
        )

        stage = PipelineStage.DIFF_RETRIEVAL
        try:
            diff = await self.diff_retriever.retrieve(context)
            if isinstance(diff, Halt):
                return self._halt(diff, stage, started_at, context, delivery_id)

            stage = PipelineStage.REVIEW_SYNTHESIS
            review = await self.synthesizer.synthesize(diff, context)
            if isinstance(review, Halt):
                return self._halt(review, stage, started_at, context, delivery_id)

            stage = PipelineStage.PUBLISH
            comment = await self._publish_shielded(context, review)
            if isinstance(comment, Halt):
                return self._halt(comment, stage, started_at, context, delivery_id)

            log.info(
                "Successfully posted review comment",
                comment_id=comment.id,
                comment_url=comment.html_url,
                provenance=review.provenance.value
            )
            return self.reporter.success(started_at, context, comment, delivery_id)

        except asyncio.CancelledError:
            log.warning("Review pipeline cancelled", stage=stage.value)
            raise
        except Exception as e:
            return self._internal_error(e, stage, started_at, context, delivery_id)

    # =========================================================================
    # Stages
    # =========================================================================

    def _check_configuration(self) -> Optional[Halt]:
        missing = self.settings.missing_credentials()
        if missing:
            logger.error("Missing required configuration", missing_vars=missing)
            return Halt(
                kind=OutcomeKind.CONFIGURATION_ERROR,
                reason=f"missing configuration: {', '.join(missing)}"
            )
        return None

    def _authenticate(self, envelope: WebhookEnvelope) -> Optional[Halt]:
        secret = self.settings.github_webhook_secret
        if not secret:
            # Only reachable when the environment allows unsigned webhooks.
            logger.warning(
                "Signature verification skipped - no webhook secret outside production",
                environment=self.settings.environment
            )
            return None

        result = verify_signature(envelope.raw_body, envelope.signature, secret)
        if not result.authenticated:
            return Halt(kind=OutcomeKind.AUTHENTICATION_ERROR, reason=result.reason)
        return None

    async def _publish(
        self,
        context: PullRequestContext,
        review: ReviewResult
    ) -> Union[PublishedComment, Halt]:
        """Post the review; logs its own result so it is visible even if detached."""
        logger.info(
            "Posting review comment to GitHub",
            repository=context.full_repo_name,
            pr_number=context.pr_number
        )
        try:
            comment = await self.github_client.create_issue_comment(
                context.owner, context.repo, context.pr_number, review.body
            )
        except GitHubAPIError as e:
            logger.error(
                "Failed to post comment to GitHub",
                call=e.call,
                status_code=e.status_code,
                timed_out=e.timed_out,
                repository=context.full_repo_name,
                pr_number=context.pr_number
            )
            return Halt(kind=OutcomeKind.UPSTREAM_ERROR, reason=str(e), call=e.call)

        logger.info(
            "Review comment created",
            repository=context.full_repo_name,
            pr_number=context.pr_number,
            comment_id=comment.id
        )
        return comment

    async def _publish_shielded(
        self,
        context: PullRequestContext,
        review: ReviewResult
    ) -> Union[PublishedComment, Halt]:
        task = asyncio.ensure_future(self._publish(context, review))
        _publish_tasks.add(task)
        task.add_done_callback(_publish_tasks.discard)
        return await asyncio.shield(task)

    # =========================================================================
    # Reporting helpers
    # =========================================================================

    def _halt(
        self,
        halt: Halt,
        stage: PipelineStage,
        started_at: float,
        context: Optional[PullRequestContext] = None,
        delivery_id: Optional[str] = None
    ) -> Outcome:
        return self.reporter.report(halt, stage, started_at, context, delivery_id)

    def _internal_error(
        self,
        error: Exception,
        stage: PipelineStage,
        started_at: float,
        context: Optional[PullRequestContext] = None,
        delivery_id: Optional[str] = None
    ) -> Outcome:
        logger.exception(
            "Unexpected error in webhook pipeline",
            stage=stage.value,
            error_type=type(error).__name__
        )
        halt = Halt(kind=OutcomeKind.INTERNAL_ERROR, reason=type(error).__name__)
        return self._halt(halt, stage, started_at, context, delivery_id)
