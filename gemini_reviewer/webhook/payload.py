"""
Payload Normalizer Module

Turns a parsed webhook body into an immutable PullRequestContext, or into a
validation verdict naming the first missing or malformed field.
"""

from typing import Any, Union

from pydantic import ValidationError

from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import (
    Halt,
    OutcomeKind,
    PullRequestContext,
    PullRequestWebhookPayload,
)

logger = get_logger(__name__)


BODY_FIELD = "body"

# A missing or non-object commit ref is reported by the sha it should carry.
COMMIT_REF_LOCATIONS = {("pull_request", "base"), ("pull_request", "head")}
COMMIT_SHA_FIELD = "sha"


def _first_error_field(error: ValidationError) -> str:
    """Dotted location of the first validation error, e.g. pull_request.base.sha."""
    errors = error.errors()
    if not errors:
        return BODY_FIELD
    location = tuple(str(part) for part in errors[0].get("loc", ()))
    if location in COMMIT_REF_LOCATIONS:
        location += (COMMIT_SHA_FIELD,)
    return ".".join(location) or BODY_FIELD


def _invalid(field: str) -> Halt:
    return Halt(
        kind=OutcomeKind.VALIDATION_ERROR,
        reason=f"missing or malformed field: {field}",
        field=field
    )


def normalize_payload(body: Any, action: str) -> Union[PullRequestContext, Halt]:
    """
    Validate the webhook body and extract the pull request context.

    Never raises: unexpected shapes (lists, strings, nulls, wrong types)
    come back as a validation verdict.

    Args:
        body: Parsed JSON body (any JSON value, or None if unparseable)
        action: Action already accepted by the classifier

    Returns:
        PullRequestContext on success, Halt(VALIDATION_ERROR) otherwise
    """
    if not isinstance(body, dict):
        logger.warning("Webhook body is not a JSON object", body_type=type(body).__name__)
        return _invalid(BODY_FIELD)

    try:
        payload = PullRequestWebhookPayload.model_validate(body)
    except ValidationError as e:
        field = _first_error_field(e)
        logger.warning("Invalid webhook payload", field=field, error_count=e.error_count())
        return _invalid(field)

    pull_request = payload.pull_request
    context = PullRequestContext(
        owner=payload.repository.owner.login,
        repo=payload.repository.name,
        pr_number=pull_request.number,
        base_sha=pull_request.base.sha,
        head_sha=pull_request.head.sha,
        title=pull_request.title,
        description=pull_request.body,
        action=action
    )

    logger.info(
        "Payload validation passed",
        repository=context.full_repo_name,
        pr_number=context.pr_number,
        action=action
    )
    return context
