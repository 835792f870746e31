"""
Services Package

This package contains the external-call services used by the pipeline:
- github_client: GitHub compare and comment API client
- gemini_client: Gemini generateContent client
- diff_retriever: Diff fetching and size bounding
- review_engine: Prompt building and model response validation
"""

from gemini_reviewer.services.diff_retriever import DiffRetriever, TRUNCATION_MARKER
from gemini_reviewer.services.gemini_client import GeminiAPIError, GeminiClient
from gemini_reviewer.services.github_client import GitHubAPIError, GitHubClient
from gemini_reviewer.services.review_engine import ModelResponseError, ReviewSynthesizer


__all__ = [
    "DiffRetriever",
    "TRUNCATION_MARKER",
    "GeminiAPIError",
    "GeminiClient",
    "GitHubAPIError",
    "GitHubClient",
    "ModelResponseError",
    "ReviewSynthesizer",
]
