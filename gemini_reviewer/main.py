"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.
It sets up routes, the shared HTTP client, the review pipeline and
exception handlers.

Design Decisions:
- Use lifespan events to build process-wide dependencies once
- Missing credentials are logged at startup but do not stop the server;
  each webhook then answers with a configuration error
- Expose health and readiness endpoints
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from gemini_reviewer import __version__
from gemini_reviewer.config import Settings, get_settings
from gemini_reviewer.logging_config import get_logger, setup_logging
from gemini_reviewer.webhook import router as webhook_router
from gemini_reviewer.webhook.processor import ReviewPipeline

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment
        transport: Optional httpx transport for outbound calls (tests)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the shared HTTP client and pipeline; close them on shutdown."""
        logger.info(
            "Starting Gemini PR Reviewer",
            host=settings.host,
            port=settings.port,
            environment=settings.environment,
            response_mode=settings.response_mode.value
        )

        missing = settings.missing_credentials()
        if missing:
            logger.error("Configuration validation failed", missing_vars=missing)
        else:
            logger.info("Configuration validated successfully")

        async with httpx.AsyncClient(transport=transport) as http_client:
            app.state.pipeline = ReviewPipeline.from_settings(settings, http_client)
            yield

        logger.info("Shutting down Gemini PR Reviewer")

    app = FastAPI(
        title="Gemini PR Reviewer",
        description="Gemini-powered GitHub pull request reviewer",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.settings = settings

    # Register routes
    app.include_router(webhook_router)

    # Add global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )

    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        return {
            "name": "Gemini PR Reviewer",
            "version": __version__,
            "status": "running",
            "docs": "/docs"
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns basic health status for load balancers and monitors.
        """
        return {
            "status": "healthy",
            "service": "gemini-reviewer",
            "version": __version__
        }

    @app.get("/ready")
    async def readiness_check():
        """
        Readiness check endpoint.

        Ready only when every required credential is configured.
        """
        missing = settings.missing_credentials()
        if missing:
            logger.error("Readiness check failed", missing_vars=missing)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Not ready: missing configuration"
            )

        return {
            "status": "ready",
            "service": "gemini-reviewer"
        }

    return app


# Initialize logging first, then create the application instance
setup_logging()
app = create_app()
