"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and validation.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Credentials are optional at load time; a missing credential is reported
  per request as a configuration error instead of crashing the import
- Fail closed on a missing webhook secret unless the environment is
  explicitly a non-production one
- Per-call timeouts must fit inside the invocation budget
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


NON_PRODUCTION_ENVIRONMENTS = {"development", "dev", "local", "test"}

DEFAULT_REVIEW_TEMPLATE = """You are an expert code reviewer focused on security and quality. Analyze this diff looking ONLY for:

**Critical errors:**
- Syntax or logic errors
- Security vulnerabilities (SQL injection, XSS, etc.)
- Memory leaks or performance problems
- Code that can raise unhandled exceptions
- Incorrect business logic

**Risks:**
- Exposure of sensitive data
- Missing input validation
- Race conditions or concurrency problems

**Response format:**
- If you find problems, list each one in 1-2 lines at most
- If everything is fine, say that no critical issues were found
- Be extremely concise and direct"""

DEFAULT_FALLBACK_MESSAGE = (
    "**Automated review:** Clean code! No critical issues detected."
)


class ResponseMode(str, Enum):
    """When the webhook sender gets its answer."""
    SYNC = "sync"
    ACKNOWLEDGE = "acknowledge"


class DiffFormat(str, Enum):
    """Shape of the compare response requested from GitHub."""
    UNIFIED = "unified"
    FILES = "files"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are loaded from environment variables only,
    never hardcoded or logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # Credentials
    # =========================================================================
    github_token: Optional[str] = Field(
        default=None,
        description="GitHub token used for compare and comment calls"
    )

    github_webhook_secret: Optional[str] = Field(
        default=None,
        description="Webhook secret for signature verification"
    )

    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google Gemini API key"
    )

    environment: str = Field(
        default="production",
        description="Deployment environment name"
    )

    # =========================================================================
    # Upstream Services
    # =========================================================================
    github_api_base: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )

    gemini_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL"
    )

    gemini_model: str = Field(
        default="gemini-1.5-flash-latest",
        description="Gemini model used for code review"
    )

    user_agent: str = Field(
        default="gemini-code-reviewer/1.0.0",
        description="User-Agent sent to GitHub"
    )

    # =========================================================================
    # Pipeline Behaviour
    # =========================================================================
    response_mode: ResponseMode = Field(
        default=ResponseMode.SYNC,
        description="sync: answer after the pipeline; acknowledge: answer 202 first"
    )

    diff_format: DiffFormat = Field(
        default=DiffFormat.UNIFIED,
        description="Fetch a unified diff blob or per-file patches"
    )

    max_diff_size: int = Field(
        default=100000,
        ge=1,
        description="Maximum diff size in bytes sent to the model"
    )

    review_template: str = Field(
        default=DEFAULT_REVIEW_TEMPLATE,
        description="Instructions placed before the diff in the prompt"
    )

    review_fallback_message: str = Field(
        default=DEFAULT_FALLBACK_MESSAGE,
        min_length=1,
        description="Comment posted when the model returns blank text"
    )

    # =========================================================================
    # Timeouts (seconds)
    # =========================================================================
    diff_fetch_timeout: float = Field(
        default=6.0,
        gt=0,
        description="Timeout for the GitHub compare call"
    )

    model_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for the Gemini generateContent call"
    )

    publish_timeout: float = Field(
        default=8.0,
        gt=0,
        description="Timeout for the comment creation call"
    )

    invocation_budget: float = Field(
        default=30.0,
        gt=0,
        description="Hosting ceiling for one webhook invocation"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def validate_timeout_budget(self) -> "Settings":
        """The sequential calls must leave headroom under the invocation budget."""
        total = self.diff_fetch_timeout + self.model_timeout + self.publish_timeout
        if total >= self.invocation_budget:
            raise ValueError(
                f"Call timeouts ({total:g}s) must stay below the "
                f"invocation budget ({self.invocation_budget:g}s)"
            )
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def allows_unsigned_webhooks(self) -> bool:
        """Only an explicitly non-production environment may skip verification."""
        return self.environment in NON_PRODUCTION_ENVIRONMENTS

    def missing_credentials(self) -> List[str]:
        """
        Names of required credentials that are not configured.

        The webhook secret counts as required unless the environment
        explicitly allows unsigned webhooks.

        Returns:
            Environment variable names, never their values
        """
        missing = []
        if not self.github_token:
            missing.append("GITHUB_TOKEN")
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.github_webhook_secret and not self.allows_unsigned_webhooks:
            missing.append("GITHUB_WEBHOOK_SECRET")
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once,
    which is important for performance and consistency.

    Returns:
        Settings instance
    """
    return Settings()
