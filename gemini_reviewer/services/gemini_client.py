"""
Gemini API Client Module

Thin async client for the Gemini generateContent REST endpoint.
Returns the decoded JSON body; shape validation belongs to the review engine.
"""

import asyncio
from typing import Any, Optional

import httpx

from gemini_reviewer.config import Settings
from gemini_reviewer.logging_config import get_logger

logger = get_logger(__name__)


GENERATE_CONTENT_CALL = "gemini.generate_content"


class GeminiAPIError(Exception):
    """Custom exception for Gemini API errors."""
    def __init__(
        self,
        message: str,
        call: str = GENERATE_CONTENT_CALL,
        status_code: Optional[int] = None,
        timed_out: bool = False
    ):
        super().__init__(message)
        self.call = call
        self.status_code = status_code
        self.timed_out = timed_out


class GeminiClient:
    """
    Async Gemini client.

    Usage:
        client = GeminiClient(settings, http_client)
        data = await client.generate_content("Review this diff ...")
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self._http = http_client
        self.url = (
            f"{settings.gemini_api_base.rstrip('/')}"
            f"/models/{settings.gemini_model}:generateContent"
        )

    async def generate_content(self, prompt: str) -> Any:
        """
        Run a single completion call.

        The API key travels in a header rather than the query string so it
        never appears in URLs that transports may log.

        Args:
            prompt: Full prompt text

        Returns:
            Decoded JSON response body (shape not yet validated)

        Raises:
            GeminiAPIError: On timeout, transport failure, error status or non-JSON body
        """
        timeout = self.settings.model_timeout

        try:
            response = await asyncio.wait_for(
                self._http.post(
                    self.url,
                    json={"contents": [{"parts": [{"text": prompt}]}]},
                    headers={
                        "x-goog-api-key": self.settings.gemini_api_key or "",
                        "Content-Type": "application/json",
                    },
                    timeout=timeout
                ),
                timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise GeminiAPIError(
                f"{GENERATE_CONTENT_CALL} timed out after {timeout:g}s", timed_out=True
            ) from e
        except httpx.HTTPError as e:
            raise GeminiAPIError(
                f"{GENERATE_CONTENT_CALL} transport error: {type(e).__name__}"
            ) from e

        if response.status_code >= 400:
            logger.error(
                "Gemini API error",
                call=GENERATE_CONTENT_CALL,
                status_code=response.status_code,
                model=self.settings.gemini_model
            )
            raise GeminiAPIError(
                f"{GENERATE_CONTENT_CALL} failed with status {response.status_code}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GeminiAPIError(f"{GENERATE_CONTENT_CALL} returned invalid JSON") from e

        logger.info(
            "Gemini API call successful",
            status_code=response.status_code,
            model=self.settings.gemini_model
        )
        return data
