"""
Outcome Reporter Module

Maps every stage verdict to the caller-visible status and message and emits
one structured log record per invocation.

Design Decisions:
- The kind -> status table covers every OutcomeKind; a missing entry is a
  programming error, not a silent default
- Caller-visible text is generic; upstream detail stays in the logs
"""

import time
from typing import Dict, NamedTuple, Optional

from fastapi import status

from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import (
    Halt,
    Outcome,
    OutcomeKind,
    PipelineStage,
    PublishedComment,
    PullRequestContext,
)

logger = get_logger(__name__)


class StatusRule(NamedTuple):
    status_code: int
    message: str
    log_level: str


STATUS_RULES: Dict[OutcomeKind, StatusRule] = {
    OutcomeKind.IGNORED: StatusRule(status.HTTP_200_OK, "Event ignored", "info"),
    OutcomeKind.EMPTY_DIFF: StatusRule(status.HTTP_200_OK, "No changes to review.", "info"),
    OutcomeKind.SUCCESS: StatusRule(status.HTTP_200_OK, "Review completed successfully", "info"),
    OutcomeKind.AUTHENTICATION_ERROR: StatusRule(status.HTTP_401_UNAUTHORIZED, "Unauthorized", "warning"),
    OutcomeKind.VALIDATION_ERROR: StatusRule(status.HTTP_400_BAD_REQUEST, "Invalid payload", "warning"),
    OutcomeKind.CONFIGURATION_ERROR: StatusRule(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Server configuration error", "error"
    ),
    OutcomeKind.UPSTREAM_ERROR: StatusRule(status.HTTP_502_BAD_GATEWAY, "Upstream service error", "error"),
    OutcomeKind.INTERNAL_ERROR: StatusRule(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "error"
    ),
}

UPSTREAM_MESSAGES: Dict[PipelineStage, str] = {
    PipelineStage.DIFF_RETRIEVAL: "Failed to fetch changes from GitHub",
    PipelineStage.REVIEW_SYNTHESIS: "Failed to generate code review",
    PipelineStage.PUBLISH: "Failed to post review comment",
}


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since ``started_at`` (a time.monotonic() reading)."""
    return max(0, int((time.monotonic() - started_at) * 1000))


def public_message(kind: OutcomeKind, stage: PipelineStage, halt: Optional[Halt]) -> str:
    """
    Caller-visible message for an outcome.

    Only the classifier's reason and the validated field name are echoed;
    both are derived from the caller's own request.
    """
    rule = STATUS_RULES[kind]
    if kind == OutcomeKind.IGNORED and halt is not None:
        return halt.reason
    if kind == OutcomeKind.VALIDATION_ERROR and halt is not None and halt.field:
        return f"{rule.message}: missing or malformed field '{halt.field}'"
    if kind == OutcomeKind.UPSTREAM_ERROR:
        return UPSTREAM_MESSAGES.get(stage, rule.message)
    return rule.message


class OutcomeReporter:
    """
    Builds and logs the terminal Outcome of an invocation.

    Usage:
        reporter = OutcomeReporter()
        outcome = reporter.report(halt, PipelineStage.NORMALIZATION, started_at)
    """

    def build(
        self,
        kind: OutcomeKind,
        stage: PipelineStage,
        started_at: float,
        halt: Optional[Halt] = None,
        context: Optional[PullRequestContext] = None,
        delivery_id: Optional[str] = None,
        comment: Optional[PublishedComment] = None
    ) -> Outcome:
        rule = STATUS_RULES[kind]
        return Outcome(
            kind=kind,
            stage=stage,
            status_code=rule.status_code,
            message=public_message(kind, stage, halt),
            elapsed_ms=elapsed_ms(started_at),
            reason=halt.reason if halt else None,
            field=halt.field if halt else None,
            call=halt.call if halt else None,
            repository=context.full_repo_name if context else None,
            pr_number=context.pr_number if context else None,
            delivery_id=delivery_id,
            comment_id=comment.id if comment else None,
            comment_url=comment.html_url if comment else None
        )

    def log(self, outcome: Outcome) -> None:
        """Emit the structured completion record for an outcome."""
        record = outcome.model_dump(mode="json", exclude_none=True)
        record["success"] = not outcome.is_error
        log_method = getattr(logger, STATUS_RULES[outcome.kind].log_level)
        log_method("Webhook processing completed", **record)

    def report(
        self,
        halt: Halt,
        stage: PipelineStage,
        started_at: float,
        context: Optional[PullRequestContext] = None,
        delivery_id: Optional[str] = None
    ) -> Outcome:
        """Turn a stage's Halt into a logged Outcome."""
        outcome = self.build(
            halt.kind, stage, started_at,
            halt=halt, context=context, delivery_id=delivery_id
        )
        self.log(outcome)
        return outcome

    def success(
        self,
        started_at: float,
        context: PullRequestContext,
        comment: PublishedComment,
        delivery_id: Optional[str] = None
    ) -> Outcome:
        """Logged Outcome for a published review."""
        outcome = self.build(
            OutcomeKind.SUCCESS, PipelineStage.COMPLETE, started_at,
            context=context, delivery_id=delivery_id, comment=comment
        )
        self.log(outcome)
        return outcome
