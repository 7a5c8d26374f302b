"""
MIZAN Beneficiary Resolution & Audit API

Uploads mapped beneficiary registers into sessions, runs duplicate
clustering, audit and rule learning in the background, and serves the
append-only rule store.

Run with: uvicorn api.main:app --port 8001 --reload
"""
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

# Logging must be configured before the first get_logger() call binds
from .middleware.structlog_config import configure as configure_logging
configure_logging()

import structlog

import mizan

from .dependencies import RULES_PATH, get_rule_store, get_run_manager, get_session_cache
from .middleware import RequestLoggingMiddleware, register_error_handlers
from .routers import pairwise_router, rules_router, runs_router, sessions_router

logger = structlog.get_logger("mizan.api")

API_PREFIX = "/api/v1"
API_TITLE = "MIZAN Beneficiary Resolution API"
API_VERSION = mizan.__version__
API_DESCRIPTION = """
Entity resolution and audit for aid beneficiary registers.

- **Sessions**: upload rows with a column mapping
- **Runs**: background clustering, audit findings and rule learning
- **Pairwise**: score breakdown between selected records
- **Rules**: builtin and learned matching rules
"""

ROUTERS = (sessions_router, runs_router, pairwise_router, rules_router)
DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

_started_at = time.time()


def _uptime() -> int:
    return round(time.time() - _started_at)


def _cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if "*" in origins:
        # credentials are allowed, so a wildcard would expose every session
        logger.warning("cors_wildcard_rejected", fallback=DEFAULT_ORIGINS)
        return DEFAULT_ORIGINS
    return origins or DEFAULT_ORIGINS


@asynccontextmanager
async def lifespan(app: FastAPI):
    rule_set = get_rule_store().rule_set()
    logger.info(
        "rules_loaded",
        rules_path=str(RULES_PATH),
        rules_total=len(rule_set.rules),
        rules_learned=sum(1 for rule in rule_set.rules if rule.source == "learned"),
        match_threshold=rule_set.match_threshold,
    )
    yield
    get_run_manager().shutdown()
    logger.info("shutdown", uptime_seconds=_uptime())


def create_app() -> FastAPI:
    docs = os.environ.get("ENABLE_DOCS", "true").lower() == "true"
    application = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        lifespan=lifespan,
    )
    register_error_handlers(application)

    # Outermost first: logging wraps CORS and compression
    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Accept-Language"],
    )

    @application.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if request.headers.get("x-forwarded-proto") == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Cluster and findings payloads run to megabytes on full registers
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    for router in ROUTERS:
        application.include_router(router, prefix=API_PREFIX)
    _add_root_routes(application)
    return application


def _add_root_routes(application: FastAPI) -> None:

    @application.get("/", tags=["root"])
    async def root():
        """Service name, version and the main endpoint paths."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "docs": "/docs",
            "endpoints": {
                "sessions": f"{API_PREFIX}/sessions",
                "runs": f"{API_PREFIX}/runs",
                "runs_learn": f"{API_PREFIX}/runs/learn",
                "run_status": f"{API_PREFIX}/runs/{{run_id}}",
                "pairwise": f"{API_PREFIX}/pairwise",
                "rules": f"{API_PREFIX}/rules",
            },
        }

    @application.get("/health", tags=["root"])
    async def health_check():
        return {
            "status": "healthy",
            "version": API_VERSION,
            "rules_store": {"path": str(RULES_PATH), "exists": RULES_PATH.exists()},
            "uptime_seconds": _uptime(),
        }

    @application.get("/metrics", tags=["root"])
    async def metrics():
        return {
            "uptime_seconds": _uptime(),
            "sessions": get_session_cache().stats(),
            "runs": get_run_manager().stats(),
        }


app = create_app()
