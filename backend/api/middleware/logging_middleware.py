"""
Per-request structured logging.

Every request gets a short correlation id (reused from an incoming
X-Request-ID when the caller sends one) and, for run and session routes,
the resource id bound into the log context so worker-side log lines can
be joined with the HTTP line. Identity fields never reach the log.
"""
import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config.constants import SENSITIVE_PARAMS

logger = structlog.get_logger("mizan.api")

_QUIET_PATHS = frozenset({"/", "/health", "/metrics", "/docs", "/openapi.json"})
_RESOURCE_PATH = re.compile(r"^/api/v1/(?P<kind>runs|sessions)/(?P<ident>[0-9a-f]{8,})")

# Upload parsing and pairwise scoring are synchronous; runs are not
_SLOW_MS = {
    "/api/v1/sessions": 5000,
    "/api/v1/pairwise": 3000,
}
_DEFAULT_SLOW_MS = 1000


def _redacted(params) -> dict:
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_PARAMS else value
        for key, value in params.items()
    }


def _resource_context(path: str) -> dict:
    match = _RESOURCE_PATH.match(path)
    if not match:
        return {}
    key = "run_id" if match.group("kind") == "runs" else "session_id"
    return {key: match.group("ident")}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id and log one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            **_resource_context(path),
        )

        def elapsed() -> float:
            return round((time.perf_counter() - started) * 1000, 1)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", duration_ms=elapsed())
            raise

        response.headers["X-Request-ID"] = request_id
        if path in _QUIET_PATHS and response.status_code < 400:
            return response

        fields = {"status": response.status_code, "duration_ms": elapsed()}
        if request.query_params:
            fields["query_params"] = _redacted(request.query_params)
        body_size = request.headers.get("content-length")
        if body_size:
            fields["body_bytes"] = int(body_size)

        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        elif fields["duration_ms"] > _SLOW_MS.get(path, _DEFAULT_SLOW_MS):
            log = logger.warning
            fields["slow"] = True
        else:
            log = logger.info
        log("request_completed", **fields)
        return response
