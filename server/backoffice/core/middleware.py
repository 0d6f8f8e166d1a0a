"""Request correlation and access logging middleware."""

import logging
import time
import uuid
from typing import Callable, Iterable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health", "/ready", "/metrics", "/favicon.ico"})


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Correlate every request and log its outcome.

    The request ID (taken from X-Request-ID or generated) and the acting
    back-office user are bound into structlog's context so every log line
    of the request carries them, and the ID is echoed on the response.
    Probes and scrapes are not access-logged.
    """

    def __init__(self, app: ASGIApp, quiet_paths: Iterable[str] = QUIET_PATHS, log_bodies: bool = False):
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths)
        self.log_bodies = log_bodies

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            actor=request.headers.get("X-Actor", "system"),
        )

        if request.url.path in self.quiet_paths:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip(request),
            "idempotency_key": request.headers.get("Idempotency-Key"),
        }
        if self.log_bodies and request.method == "POST":
            body = await request.body()
            if body:
                log_data["request_body"] = body.decode("utf-8", errors="replace")[:1000]

        started = time.perf_counter()
        response = await call_next(request)

        log_data.update({
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "replayed": response.headers.get("Idempotent-Replayed") == "true",
        })

        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=log_data)
        else:
            logger.info("Request completed", extra=log_data)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_middleware(app) -> None:
    """Install request correlation and access logging on the app."""
    app.add_middleware(RequestContextMiddleware, log_bodies=settings.debug)
