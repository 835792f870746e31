"""
Webhook Handler Module

This module defines the FastAPI endpoint that receives GitHub webhooks and
hands them to the review pipeline.

Design Decisions:
- Capture the raw body before anything else; the signature covers those bytes
- RESPONSE_MODE=sync (default): the sender waits for the final outcome
- RESPONSE_MODE=acknowledge: gate stages run inline, then 202 Accepted is
  returned and the review runs as a background task whose only observable
  results are the posted comment and the logs
"""

import json
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Request, status
from fastapi.responses import JSONResponse

from gemini_reviewer.config import ResponseMode, Settings
from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import Outcome, PullRequestContext, WebhookEnvelope
from gemini_reviewer.webhook.processor import ReviewPipeline
from gemini_reviewer.webhook.reporter import elapsed_ms

logger = get_logger(__name__)

# Create router for webhook endpoints
router = APIRouter(prefix="/webhook", tags=["webhook"])

ACCEPTED_MESSAGE = "Accepted"


def parse_body(raw_body: bytes) -> Any:
    """Decode a JSON body; anything undecodable becomes None."""
    if not raw_body:
        return None
    try:
        return json.loads(raw_body)
    except ValueError:
        return None


async def capture_envelope(request: Request) -> WebhookEnvelope:
    """Read the request into an immutable envelope."""
    raw_body = await request.body()
    return WebhookEnvelope(
        event_type=request.headers.get("X-GitHub-Event"),
        signature=request.headers.get("X-Hub-Signature-256"),
        delivery_id=request.headers.get("X-GitHub-Delivery"),
        raw_body=raw_body,
        body=parse_body(raw_body)
    )


def outcome_response(outcome: Outcome) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_response_body())


@router.post("/github")
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks
) -> JSONResponse:
    """
    GitHub webhook endpoint.

    Verifies, classifies and normalizes the event, then either runs the
    review to completion (sync mode) or acknowledges it and continues in
    the background (acknowledge mode).

    Args:
        request: FastAPI request object
        background_tasks: FastAPI background tasks

    Returns:
        JSON body with ``message`` or ``error`` and ``elapsedTimeMs``
    """
    started_at = time.monotonic()
    settings: Settings = request.app.state.settings
    pipeline: ReviewPipeline = request.app.state.pipeline

    envelope = await capture_envelope(request)

    logger.info(
        "Received GitHub webhook",
        delivery_id=envelope.delivery_id,
        event_type=envelope.event_type,
        remote_addr=request.client.host if request.client else "unknown",
        response_mode=settings.response_mode.value
    )

    if settings.response_mode == ResponseMode.SYNC:
        outcome = await pipeline.run(envelope, started_at)
        return outcome_response(outcome)

    admitted = pipeline.admit(envelope, started_at)
    if isinstance(admitted, Outcome):
        return outcome_response(admitted)

    background_tasks.add_task(
        _review_in_background,
        pipeline,
        admitted,
        started_at,
        envelope.delivery_id
    )

    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={"message": ACCEPTED_MESSAGE, "elapsedTimeMs": elapsed_ms(started_at)}
    )


async def _review_in_background(
    pipeline: ReviewPipeline,
    context: PullRequestContext,
    started_at: float,
    delivery_id: Optional[str]
) -> None:
    """
    Run the review stages after the sender has been answered.

    The pipeline reports its own outcome; this wrapper only guarantees that
    nothing escapes into the server and that completion is always logged.
    """
    task_id = f"{context.full_repo_name}#{context.pr_number}"
    logger.info("Starting background review processing", task_id=task_id, delivery_id=delivery_id)

    try:
        outcome = await pipeline.review(context, started_at, delivery_id)
    except Exception as e:
        logger.error(
            "Background review processing failed",
            task_id=task_id,
            delivery_id=delivery_id,
            error_type=type(e).__name__
        )
        return

    logger.info(
        "Background review completed",
        task_id=task_id,
        delivery_id=delivery_id,
        kind=outcome.kind.value,
        status_code=outcome.status_code
    )


@router.get("/health")
async def webhook_health() -> Dict[str, str]:
    """
    Health check endpoint for the webhook service.

    Returns:
        Simple health status
    """
    return {"status": "healthy", "service": "webhook"}
