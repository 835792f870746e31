"""
Test Configuration

Pytest configuration and fixtures for the test suite.
Outbound GitHub and Gemini calls are served by an in-process fake through
httpx.MockTransport.
"""

import json
from typing import Any, Callable, Dict, Generator, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from gemini_reviewer.config import Settings
from gemini_reviewer.main import create_app
from gemini_reviewer.webhook.security import compute_signature


WEBHOOK_SECRET = "test_secret"

SAMPLE_DIFF = '''diff --git a/app.py b/app.py
index 83db48f..bf269f4 100644
--- a/app.py
+++ b/app.py
@@ -1,5 +1,7 @@
 import os
+import sys

 def main():
-    print("Hello")
+    name = input("Enter name: ")
+    print(f"Hello, {name}!")
     return 0
'''


def gemini_payload(text: Optional[str]) -> Dict[str, Any]:
    """A well-formed generateContent response carrying ``text``."""
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": text}], "role": "model"},
                "finishReason": "STOP",
            }
        ]
    }


class FakeUpstream:
    """
    Serves the three outbound calls and records every request.

    Set ``errors[call]`` to an exception to raise, or to an int status to
    return, for "compare", "generate" or "comment".
    """

    def __init__(self):
        self.diff = SAMPLE_DIFF
        self.files: Optional[List[Dict[str, Any]]] = None
        self.gemini_response: Any = gemini_payload("Found one issue: input is not validated.")
        self.comment_response: Dict[str, Any] = {
            "id": 1001,
            "html_url": "https://github.com/owner/repo/pull/42#issuecomment-1001",
        }
        self.errors: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def _error(self, call: str, request: httpx.Request) -> Optional[httpx.Response]:
        error = self.errors.get(call)
        if error is None:
            return None
        if isinstance(error, int):
            return httpx.Response(error, json={"message": "upstream failure"})
        if isinstance(error, type):
            raise error("simulated failure", request=request)
        raise error

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if "/compare/" in path:
            failure = self._error("compare", request)
            if failure is not None:
                return failure
            if self.files is not None:
                return httpx.Response(200, json={"files": self.files})
            return httpx.Response(200, text=self.diff)

        if path.endswith(":generateContent"):
            failure = self._error("generate", request)
            if failure is not None:
                return failure
            return httpx.Response(200, json=self.gemini_response)

        if path.endswith("/comments"):
            failure = self._error("comment", request)
            if failure is not None:
                return failure
            return httpx.Response(201, json=self.comment_response)

        return httpx.Response(404, json={"message": "Not Found"})

    def requests_for(self, marker: str) -> List[httpx.Request]:
        return [r for r in self.requests if marker in r.url.path]

    @property
    def compare_requests(self) -> List[httpx.Request]:
        return self.requests_for("/compare/")

    @property
    def gemini_requests(self) -> List[httpx.Request]:
        return self.requests_for(":generateContent")

    @property
    def comment_requests(self) -> List[httpx.Request]:
        return self.requests_for("/comments")

    def prompt(self, index: int = 0) -> str:
        body = json.loads(self.gemini_requests[index].content)
        return body["contents"][0]["parts"][0]["text"]

    def comment_body(self, index: int = 0) -> str:
        return json.loads(self.comment_requests[index].content)["body"]


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from any local .env file."""
    values: Dict[str, Any] = {
        "github_token": "test-github-token",
        "github_webhook_secret": WEBHOOK_SECRET,
        "gemini_api_key": "test-gemini-key",
        "environment": "production",
        "log_json_format": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def signed_headers(
    body: bytes,
    event: str = "pull_request",
    secret: str = WEBHOOK_SECRET
) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "72d3162e-cc78-11e3-81ab-4c9367dc0958",
        "X-Hub-Signature-256": compute_signature(body, secret),
    }


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def client_factory(upstream: FakeUpstream) -> Generator[Callable[..., TestClient], None, None]:
    """Build TestClients whose outbound calls hit ``upstream``."""
    clients: List[TestClient] = []

    def factory(**overrides: Any) -> TestClient:
        app = create_app(make_settings(**overrides), transport=httpx.MockTransport(upstream.handle))
        test_client = TestClient(app)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield factory

    for test_client in clients:
        test_client.__exit__(None, None, None)


@pytest.fixture
def client(client_factory: Callable[..., TestClient]) -> TestClient:
    """A test client with default (sync mode, production) settings."""
    return client_factory()


@pytest.fixture
def post_webhook(client: TestClient) -> Callable[..., httpx.Response]:
    """POST a payload to /webhook/github with a valid signature."""
    def post(payload: Any, event: str = "pull_request", test_client: TestClient = None) -> httpx.Response:
        body = json.dumps(payload).encode()
        return (test_client or client).post(
            "/webhook/github", content=body, headers=signed_headers(body, event)
        )

    return post


@pytest.fixture
def sample_pr_payload() -> dict:
    """Sample pull request webhook payload."""
    return {
        "action": "opened",
        "number": 42,
        "pull_request": {
            "id": 123456789,
            "number": 42,
            "state": "open",
            "title": "Add greeting prompt",
            "body": "Asks the user for a name before greeting.",
            "user": {"login": "testuser", "id": 12345, "type": "User"},
            "html_url": "https://github.com/owner/repo/pull/42",
            "head": {"ref": "feature-branch", "sha": "abc123def4567890"},
            "base": {"ref": "main", "sha": "0123456789abcdef"},
            "draft": False,
        },
        "repository": {
            "id": 111,
            "name": "repo",
            "full_name": "owner/repo",
            "private": False,
            "owner": {"login": "owner", "id": 1, "type": "User"},
        },
        "sender": {"login": "testuser", "id": 12345, "type": "User"},
    }


@pytest.fixture
def sample_diff_patch() -> str:
    """Sample unified diff patch."""
    return '''@@ -1,5 +1,7 @@
 import os
+import sys

 def main():
-    print("Hello")
+    name = input("Enter name: ")
+    print(f"Hello, {name}!")
     return 0
'''
