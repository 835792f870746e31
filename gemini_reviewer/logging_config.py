"""
Structured Logging Configuration

This module sets up production-ready structured logging using structlog.
Logs are formatted as JSON in production for easy parsing by log aggregators.

Design Decisions:
- Use structlog for structured, contextual logging
- JSON format in production, colored console in development
- Bind repository and PR identifiers to per-request loggers
- Never log sensitive data (keys, tokens, secrets, signatures)
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from gemini_reviewer import __version__
from gemini_reviewer.config import Settings, get_settings


SENSITIVE_KEYS = {
    "token", "access_token", "api_key", "apikey", "secret",
    "password", "authorization", "auth", "credential", "bearer",
    "signature", "digest", "x-goog-api-key",
}

SENSITIVE_VALUE_PREFIXES = ("ghp_", "ghs_", "gho_", "github_pat_", "AIza", "sha256=")


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value)
    if isinstance(value, str) and value.startswith(SENSITIVE_VALUE_PREFIXES):
        return "[REDACTED]"
    return value


def _redact_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    result = {}
    for key, value in d.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        else:
            result[key] = _redact_value(value)
    return result


def filter_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Processor to filter out sensitive data from logs.

    Redacts values under credential-like keys and values that look like
    GitHub tokens, Google API keys or webhook signatures.
    """
    return _redact_dict(event_dict)


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application context to every log entry."""
    event_dict["app"] = "gemini-reviewer"
    event_dict["version"] = __version__
    return event_dict


# Third-party loggers that are chatty at INFO.
QUIET_LOGGERS = ("httpx", "httpcore")


def _shared_processors() -> List[Processor]:
    """Processors applied to structlog and foreign (stdlib) records alike."""
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_app_context,
        filter_sensitive_data,
    ]


def _renderer(settings: Settings) -> Processor:
    if settings.log_json_format:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _stdout_handler(settings: Settings, pre_chain: List[Processor]) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings),
            ],
        )
    )
    return handler


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging for the application.

    Call once at startup. structlog events and stdlib records (uvicorn,
    httpx) go through the same redaction chain and a single stdout handler.
    Calling it again replaces the handler rather than adding another.
    """
    settings = settings or get_settings()
    pre_chain = _shared_processors()

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [_stdout_handler(settings, pre_chain)]
    root_logger.setLevel(settings.log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Request lines from uvicorn only when asked for.
    access_level = logging.INFO if settings.log_requests else logging.WARNING
    logging.getLogger("uvicorn.access").setLevel(access_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        logger = get_logger(__name__)
        logger.info("Processing PR", pr_number=123, repository="owner/repo")
    """
    return structlog.get_logger(name)
