"""
Data Models Module

This module defines all Pydantic models used throughout the application.
Strong typing ensures data integrity and provides clear contracts between components.

Design Decisions:
- Use Pydantic models for all data transfer objects
- Working artifacts are frozen once built; nothing outlives one invocation
- Webhook and model-response schemas are lenient about extra fields and
  strict about the fields the pipeline actually reads
- Stage verdicts are explicit values (Proceed / Halt), never early returns
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


# =============================================================================
# Enums
# =============================================================================

class PRAction(str, Enum):
    """Valid pull request actions we handle."""
    OPENED = "opened"
    SYNCHRONIZE = "synchronize"


class OutcomeKind(str, Enum):
    """Every way an invocation can end."""
    IGNORED = "ignored"
    EMPTY_DIFF = "empty_diff"
    SUCCESS = "success"
    AUTHENTICATION_ERROR = "authentication_error"
    VALIDATION_ERROR = "validation_error"
    CONFIGURATION_ERROR = "configuration_error"
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"


class PipelineStage(str, Enum):
    """Pipeline stages in execution order."""
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    CLASSIFICATION = "classification"
    NORMALIZATION = "normalization"
    DIFF_RETRIEVAL = "diff_retrieval"
    REVIEW_SYNTHESIS = "review_synthesis"
    PUBLISH = "publish"
    COMPLETE = "complete"


class ReviewProvenance(str, Enum):
    """Where the published review text came from."""
    MODEL_GENERATED = "model-generated"
    FALLBACK_DEFAULT = "fallback-default"


# =============================================================================
# GitHub Webhook Models
# =============================================================================

class _WebhookModel(BaseModel):
    """Base for webhook sub-objects; GitHub sends far more than we read."""
    model_config = ConfigDict(extra="ignore")


class GitHubUser(_WebhookModel):
    """GitHub user information."""
    login: StrictStr = Field(min_length=1)


class GitHubRepository(_WebhookModel):
    """GitHub repository information."""
    owner: GitHubUser
    name: StrictStr = Field(min_length=1)


class GitHubCommitRef(_WebhookModel):
    """PR base or head commit reference."""
    sha: StrictStr = Field(min_length=1)


class GitHubPullRequest(_WebhookModel):
    """Pull request information from webhook."""
    number: StrictInt = Field(ge=1)
    base: GitHubCommitRef
    head: GitHubCommitRef
    title: StrictStr
    body: Optional[StrictStr] = None


class PullRequestWebhookPayload(_WebhookModel):
    """
    The subset of a pull_request webhook payload the pipeline depends on.

    Field order is the order in which missing fields are reported.
    """
    action: Optional[StrictStr] = None
    repository: GitHubRepository
    pull_request: GitHubPullRequest


# =============================================================================
# Gemini Response Models
# =============================================================================

class GeminiPart(BaseModel):
    """One ordered text part of a candidate."""
    text: Optional[StrictStr] = None


class GeminiContent(BaseModel):
    parts: List[GeminiPart] = Field(min_length=1)


class GeminiCandidate(BaseModel):
    """One completion option returned by the model."""
    content: GeminiContent
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")


class GeminiResponse(BaseModel):
    """generateContent response body."""
    candidates: List[GeminiCandidate] = Field(min_length=1)


# =============================================================================
# Pipeline Artifacts
# =============================================================================

class WebhookEnvelope(BaseModel):
    """
    Immutable capture of one inbound webhook request.

    Attributes:
        event_type: X-GitHub-Event header
        signature: X-Hub-Signature-256 header
        delivery_id: X-GitHub-Delivery header, used only for log correlation
        raw_body: Exact request bytes, the input to signature verification
        body: Parsed JSON body, or None when the body is not valid JSON
    """
    model_config = ConfigDict(frozen=True)

    event_type: Optional[str] = None
    signature: Optional[str] = None
    delivery_id: Optional[str] = None
    raw_body: bytes = b""
    body: Any = None

    @property
    def action(self) -> Any:
        """The payload action, if the body is an object."""
        if isinstance(self.body, dict):
            return self.body.get("action")
        return None


class PullRequestContext(BaseModel):
    """
    Normalized pull request fields.

    This is the working context passed through the review stages.
    """
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    pr_number: int
    base_sha: str
    head_sha: str
    title: str
    description: Optional[str] = None
    action: str

    @property
    def full_repo_name(self) -> str:
        """Get the full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"


class DiffPayload(BaseModel):
    """
    Bounded diff content handed to the review synthesizer.

    Attributes:
        text: Exact text placed in the prompt, truncation marker included
        length: UTF-8 byte length of the diff content (marker excluded)
        original_length: UTF-8 byte length before truncation
        truncated: Whether the content was cut at the size limit
    """
    model_config = ConfigDict(frozen=True)

    text: str
    length: int = Field(ge=0)
    original_length: int = Field(ge=0)
    truncated: bool = False


class ReviewResult(BaseModel):
    """Review markdown plus where it came from."""
    model_config = ConfigDict(frozen=True)

    body: str = Field(min_length=1)
    provenance: ReviewProvenance


class PublishedComment(BaseModel):
    """A comment created on the pull request."""
    model_config = ConfigDict(frozen=True)

    id: int
    html_url: Optional[str] = None


# =============================================================================
# Stage Verdicts and Outcomes
# =============================================================================

class Proceed(BaseModel):
    """A gate stage let the event through."""
    model_config = ConfigDict(frozen=True)

    action: str


class AuthResult(BaseModel):
    """Verifier verdict. The reason is for logs and is never returned to callers."""
    model_config = ConfigDict(frozen=True)

    authenticated: bool
    reason: Optional[str] = None


class Halt(BaseModel):
    """
    A stage's terminal verdict.

    Attributes:
        kind: Outcome classification
        reason: Internal description, logged but never returned to the caller
        field: First missing or malformed field (validation errors)
        call: Identity of the failing external call (upstream errors)
    """
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    reason: str
    field: Optional[str] = None
    call: Optional[str] = None


class Outcome(BaseModel):
    """
    Terminal result of one invocation.

    Only ``status_code``, ``message`` and ``elapsed_ms`` reach the caller;
    everything else is for the structured log record.
    """
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    stage: PipelineStage
    status_code: int
    message: str
    elapsed_ms: int = Field(ge=0)
    reason: Optional[str] = None
    field: Optional[str] = None
    call: Optional[str] = None
    repository: Optional[str] = None
    pr_number: Optional[int] = None
    delivery_id: Optional[str] = None
    comment_id: Optional[int] = None
    comment_url: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def to_response_body(self) -> Dict[str, Any]:
        """Caller-visible body: ``message`` or ``error`` plus elapsed time."""
        key = "error" if self.is_error else "message"
        return {key: self.message, "elapsedTimeMs": self.elapsed_ms}
