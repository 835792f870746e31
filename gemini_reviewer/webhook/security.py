"""
Webhook Security Module

This module decides whether an inbound webhook may enter the pipeline:
HMAC-SHA256 signature verification and pull request event classification.

Design Decisions:
- Sign the exact raw request bytes, never a re-serialized body
- Constant-time comparison over equal-length byte buffers
- One rejection reason for every failure so the response is not an oracle
- Classification is a pure, total function; ignoring is not an error
"""

import hashlib
import hmac
from typing import Any, Optional, Union

from gemini_reviewer.logging_config import get_logger
from gemini_reviewer.models import AuthResult, Halt, OutcomeKind, PRAction, Proceed

logger = get_logger(__name__)


SIGNATURE_PREFIX = "sha256="
PULL_REQUEST_EVENT = "pull_request"
REVIEWABLE_ACTIONS = frozenset(action.value for action in PRAction)

REJECTION_REASON = "signature verification failed"
IGNORED_EVENT_REASON = "Event ignored - not a pull request"
IGNORED_ACTION_REASON = "Event ignored - action not relevant"


def compute_signature(raw_body: bytes, secret: str) -> str:
    """
    Compute the X-Hub-Signature-256 header value for a body.

    Args:
        raw_body: Exact request body bytes
        secret: Shared webhook secret

    Returns:
        ``sha256=<hex digest>``
    """
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: str
) -> AuthResult:
    """
    Verify the GitHub webhook signature.

    GitHub sends ``sha256=<hex>`` in the X-Hub-Signature-256 header. It must
    equal the HMAC-SHA256 of the raw body keyed with the webhook secret.

    Args:
        raw_body: Raw request body bytes
        signature_header: Claimed signature, possibly missing
        secret: Shared webhook secret

    Returns:
        AuthResult; a rejection always carries the same reason
    """
    expected = compute_signature(raw_body, secret).encode("ascii")

    provided = b""
    if signature_header:
        try:
            provided = signature_header.encode("ascii")
        except UnicodeEncodeError:
            provided = b""

    # The header length is public; only equal-length buffers are compared.
    matches = len(provided) == len(expected) and hmac.compare_digest(provided, expected)

    if not matches:
        logger.warning("Webhook signature rejected", reason=REJECTION_REASON)
        return AuthResult(authenticated=False, reason=REJECTION_REASON)

    logger.debug("Webhook signature verified")
    return AuthResult(authenticated=True)


def classify_event(
    event_type: Any,
    action: Any
) -> Union[Proceed, Halt]:
    """
    Decide whether this webhook event should be reviewed.

    We only process:
    - Event type: pull_request
    - Actions: opened, synchronize

    Everything else (closed, labeled, reopened, push, ...) is ignored.

    Args:
        event_type: GitHub event type from X-GitHub-Event header
        action: Action from payload, of any JSON type

    Returns:
        Proceed for reviewable events, Halt(IGNORED) otherwise
    """
    if event_type != PULL_REQUEST_EVENT:
        logger.debug("Ignoring non-PR event", event_type=event_type)
        return Halt(kind=OutcomeKind.IGNORED, reason=IGNORED_EVENT_REASON)

    if not isinstance(action, str) or action not in REVIEWABLE_ACTIONS:
        logger.debug("Ignoring PR action", action=action)
        return Halt(kind=OutcomeKind.IGNORED, reason=IGNORED_ACTION_REASON)

    return Proceed(action=action)
