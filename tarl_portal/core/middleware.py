"""CORS, request-id, and request logging middleware."""

import uuid
import time
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from tarl_portal.core.config import Settings

logger = logging.getLogger("tarl_portal.http")

DENIED_STATUSES = {401, 403}


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log who asked, the outcome and latency.

    The acting role and user id come from ``request.state.principal``, which
    ``get_current_principal`` fills in once the bearer token is resolved.
    Anonymous requests log as ``role=-``.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response: Response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration)

        principal = getattr(request.state, "principal", None)
        role = principal.role if principal else "-"
        user_id = principal.user_id if principal else "-"
        level = logging.WARNING if response.status_code in DENIED_STATUSES else logging.INFO
        logger.log(
            level,
            "%s %s %s %sms role=%s user=%s [%s]",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            role,
            user_id,
            request_id,
        )
        return response


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestIdMiddleware)
