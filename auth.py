#!/usr/bin/env python3
"""
Shared-secret authentication for webhook callers.

Airtable automations send the secret in the X-Webhook-Secret header. Only
the health check and the API docs are open.
"""

import hmac
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from src.config import get_webhook_secret
from src.errors import AuthError

WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"

# Paths that don't require authentication
EXCLUDED_PATHS = [
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
]


def is_excluded(path: str) -> bool:
    for excluded in EXCLUDED_PATHS:
        if path == excluded or path.startswith(excluded + "/"):
            return True
    return False


def secret_matches(provided: Optional[str]) -> bool:
    """Constant-time compare; with no secret configured nothing matches."""
    expected = get_webhook_secret()
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


class WebhookSecretMiddleware(BaseHTTPMiddleware):
    """Reject every non-excluded request without the right X-Webhook-Secret."""

    async def dispatch(self, request: Request, call_next):
        if is_excluded(request.url.path):
            return await call_next(request)

        if not secret_matches(request.headers.get(WEBHOOK_SECRET_HEADER)):
            print(f"[AUTH] Rejected {request.method} {request.url.path}")
            error = AuthError("Unauthorized")
            return JSONResponse(status_code=error.status_code, content={"error": error.message})

        return await call_next(request)
