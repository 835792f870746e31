"""
Tests for Outcome Reporter

Tests the outcome -> status mapping and caller-visible bodies.
"""

import time

import pytest

from gemini_reviewer.models import (
    Halt,
    OutcomeKind,
    PipelineStage,
    PublishedComment,
    PullRequestContext,
)
from gemini_reviewer.webhook.reporter import STATUS_RULES, OutcomeReporter


EXPECTED_STATUS = {
    OutcomeKind.IGNORED: 200,
    OutcomeKind.EMPTY_DIFF: 200,
    OutcomeKind.SUCCESS: 200,
    OutcomeKind.AUTHENTICATION_ERROR: 401,
    OutcomeKind.VALIDATION_ERROR: 400,
    OutcomeKind.CONFIGURATION_ERROR: 500,
    OutcomeKind.UPSTREAM_ERROR: 502,
    OutcomeKind.INTERNAL_ERROR: 500,
}


@pytest.fixture
def reporter() -> OutcomeReporter:
    return OutcomeReporter()


@pytest.fixture
def context() -> PullRequestContext:
    return PullRequestContext(
        owner="owner",
        repo="repo",
        pr_number=7,
        base_sha="base",
        head_sha="head",
        title="Title",
        action="opened"
    )


class TestStatusRules:
    """The mapping must be total."""

    def test_every_kind_has_a_rule(self):
        assert set(STATUS_RULES) == set(OutcomeKind)

    @pytest.mark.parametrize("kind", list(OutcomeKind))
    def test_status_codes(self, reporter, kind):
        outcome = reporter.build(kind, PipelineStage.COMPLETE, time.monotonic())

        assert outcome.status_code == EXPECTED_STATUS[kind]


class TestOutcomeMessages:
    """Tests for caller-visible messages."""

    def test_ignored_echoes_classifier_reason(self, reporter):
        halt = Halt(kind=OutcomeKind.IGNORED, reason="Event ignored - action not relevant")

        outcome = reporter.report(halt, PipelineStage.CLASSIFICATION, time.monotonic())

        assert outcome.to_response_body()["message"] == "Event ignored - action not relevant"

    def test_empty_diff_message(self, reporter, context):
        halt = Halt(kind=OutcomeKind.EMPTY_DIFF, reason="No changes to review.")

        outcome = reporter.report(halt, PipelineStage.DIFF_RETRIEVAL, time.monotonic(), context)

        assert outcome.to_response_body()["message"] == "No changes to review."
        assert outcome.repository == "owner/repo"
        assert outcome.pr_number == 7

    def test_validation_error_names_field(self, reporter):
        halt = Halt(
            kind=OutcomeKind.VALIDATION_ERROR,
            reason="missing or malformed field: pull_request.base.sha",
            field="pull_request.base.sha"
        )

        outcome = reporter.report(halt, PipelineStage.NORMALIZATION, time.monotonic())
        body = outcome.to_response_body()

        assert "message" not in body
        assert "pull_request.base.sha" in body["error"]

    @pytest.mark.parametrize(
        "stage, message",
        [
            (PipelineStage.DIFF_RETRIEVAL, "Failed to fetch changes from GitHub"),
            (PipelineStage.REVIEW_SYNTHESIS, "Failed to generate code review"),
            (PipelineStage.PUBLISH, "Failed to post review comment"),
        ]
    )
    def test_upstream_error_is_generic(self, reporter, context, stage, message):
        halt = Halt(
            kind=OutcomeKind.UPSTREAM_ERROR,
            reason="github.compare failed with status 401",
            call="github.compare"
        )

        outcome = reporter.report(halt, stage, time.monotonic(), context)

        assert outcome.to_response_body()["error"] == message
        assert "401" not in outcome.message
        assert outcome.reason == "github.compare failed with status 401"

    def test_authentication_error_is_generic(self, reporter):
        halt = Halt(kind=OutcomeKind.AUTHENTICATION_ERROR, reason="signature verification failed")

        outcome = reporter.report(halt, PipelineStage.AUTHENTICATION, time.monotonic())

        assert outcome.to_response_body()["error"] == "Unauthorized"

    def test_success_carries_comment(self, reporter, context):
        comment = PublishedComment(id=99, html_url="https://github.com/owner/repo/pull/7#issuecomment-99")

        outcome = reporter.success(time.monotonic(), context, comment, delivery_id="d-1")

        assert outcome.kind == OutcomeKind.SUCCESS
        assert outcome.stage == PipelineStage.COMPLETE
        assert outcome.comment_id == 99
        assert outcome.delivery_id == "d-1"
        assert outcome.to_response_body()["message"] == "Review completed successfully"

    def test_elapsed_time_reported(self, reporter):
        started_at = time.monotonic() - 1.5

        outcome = reporter.build(OutcomeKind.SUCCESS, PipelineStage.COMPLETE, started_at)

        assert outcome.elapsed_ms >= 1500
        assert outcome.to_response_body()["elapsedTimeMs"] == outcome.elapsed_ms
