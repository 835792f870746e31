"""
Webhook Package

This package contains webhook handling components:
- handler: FastAPI route handlers
- security: Signature verification and event classification
- payload: Payload normalization
- processor: Review pipeline orchestration
- reporter: Outcome status mapping and completion logging
"""

from gemini_reviewer.webhook.handler import router

__all__ = ["router"]
