"""
Tests for Data Models

Tests for the Pydantic models used in the application.
"""

import pytest
from pydantic import ValidationError

from gemini_reviewer.models import (
    DiffPayload,
    GeminiResponse,
    GitHubPullRequest,
    Outcome,
    OutcomeKind,
    PipelineStage,
    PRAction,
    PullRequestContext,
    PullRequestWebhookPayload,
    ReviewProvenance,
    ReviewResult,
    WebhookEnvelope,
)


class TestGitHubModels:
    """Tests for webhook payload models."""

    def test_extra_fields_ignored(self, sample_pr_payload):
        payload = PullRequestWebhookPayload.model_validate(sample_pr_payload)

        assert payload.action == "opened"
        assert payload.repository.owner.login == "owner"
        assert payload.pull_request.base.sha == "0123456789abcdef"

    def test_null_body_allowed(self):
        pr = GitHubPullRequest.model_validate({
            "number": 1,
            "title": "Fix",
            "body": None,
            "base": {"sha": "a"},
            "head": {"sha": "b"},
        })

        assert pr.body is None

    def test_number_not_coerced_from_string(self):
        with pytest.raises(ValidationError):
            GitHubPullRequest.model_validate({
                "number": "1",
                "title": "Fix",
                "base": {"sha": "a"},
                "head": {"sha": "b"},
            })

    def test_empty_sha_rejected(self):
        with pytest.raises(ValidationError):
            GitHubPullRequest.model_validate({
                "number": 1,
                "title": "Fix",
                "base": {"sha": ""},
                "head": {"sha": "b"},
            })


class TestGeminiModels:
    """Tests for model response schema."""

    def test_finish_reason_alias(self):
        response = GeminiResponse.model_validate({
            "candidates": [{"content": {"parts": [{"text": "ok"}]}, "finishReason": "STOP"}]
        })

        assert response.candidates[0].finish_reason == "STOP"

    def test_empty_candidates_rejected(self):
        with pytest.raises(ValidationError):
            GeminiResponse.model_validate({"candidates": []})


class TestPipelineArtifacts:
    """Tests for envelope, context and result models."""

    def test_envelope_action(self):
        envelope = WebhookEnvelope(body={"action": "opened"})

        assert envelope.action == "opened"

    @pytest.mark.parametrize("body", [None, [], "opened", 1])
    def test_envelope_action_for_non_objects(self, body):
        assert WebhookEnvelope(body=body).action is None

    def test_context_is_frozen(self):
        context = PullRequestContext(
            owner="owner",
            repo="repo",
            pr_number=1,
            base_sha="a",
            head_sha="b",
            title="Fix",
            action=PRAction.OPENED.value
        )

        assert context.full_repo_name == "owner/repo"
        with pytest.raises(ValidationError):
            context.pr_number = 2

    def test_diff_payload_defaults(self):
        payload = DiffPayload(text="x", length=1, original_length=1)

        assert payload.truncated is False

    def test_review_result_requires_body(self):
        with pytest.raises(ValidationError):
            ReviewResult(body="", provenance=ReviewProvenance.MODEL_GENERATED)


class TestOutcome:
    """Tests for the caller-visible outcome body."""

    def test_success_body(self):
        outcome = Outcome(
            kind=OutcomeKind.SUCCESS,
            stage=PipelineStage.COMPLETE,
            status_code=200,
            message="Review completed successfully",
            elapsed_ms=12,
            reason="internal detail"
        )

        assert outcome.is_error is False
        assert outcome.to_response_body() == {
            "message": "Review completed successfully",
            "elapsedTimeMs": 12,
        }

    def test_error_body(self):
        outcome = Outcome(
            kind=OutcomeKind.UPSTREAM_ERROR,
            stage=PipelineStage.PUBLISH,
            status_code=502,
            message="Failed to post review comment",
            elapsed_ms=30,
            reason="github.create_comment failed with status 403",
            call="github.create_comment"
        )

        assert outcome.is_error is True
        assert outcome.to_response_body() == {
            "error": "Failed to post review comment",
            "elapsedTimeMs": 30,
        }
