"""
api/main.py -- FastAPI application for VetDir.

Serves unified profiles to directory tools that cannot run the CLI.

Run with:      uvicorn asgi:app --reload

Request path: TrustedHost -> CORS -> SlowAPI -> request log -> route.
The capability check is a route dependency (auth/dependencies.py), not a
middleware, so /api/v1/health stays open to load balancers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.profile import router as profile_router
from auth.capabilities import HeaderCapabilityOracle
from cache.token import get_token_cache
from core.config import get_settings
from core.pipeline import build_aggregator
from records.store import RecordsStore

API_VERSION = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("vetdir.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the RecordsStore engines and the aggregator for the server lifetime.

    Engines connect lazily, so startup succeeds with every backend down;
    /api/v1/health reports that state instead.
    """
    settings = get_settings()
    app.state.records = RecordsStore.from_settings(settings)
    app.state.aggregator = build_aggregator(settings, app.state.records, get_token_cache())
    app.state.capability_oracle = HeaderCapabilityOracle(settings.capability_header)
    logger.info(
        "VetDir API ready (sources=%s, source timeout=%.1fs, db timeout=%.1fs)",
        ", ".join(app.state.aggregator.source_names),
        settings.source_timeout_seconds,
        settings.db_timeout_seconds,
    )
    if not settings.contact_directory_url:
        logger.warning("CONTACT_DIRECTORY_URL not set; contact source will report unavailable")
    if not settings.credentials_configured:
        logger.warning("Credentialing platform not fully configured; credential source will report unavailable")

    yield

    app.state.records.close()
    logger.info("VetDir API stopped")


app = FastAPI(
    title="VetDir API",
    description="Unified person profiles from the directory, HR, badge, key, loan, and credentialing systems.",
    version=API_VERSION,
    lifespan=lifespan,
)

_settings = get_settings()
app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET"],
    allow_headers=["Content-Type", _settings.capability_header],
    max_age=3600,
)
app.add_middleware(SlowAPIMiddleware)
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
        request.client.host if request.client else "unknown",
    )
    return response


app.include_router(profile_router, prefix="/api/v1", tags=["Profile"])


# ---------------------------------------------------------------------------
# Error envelope: {"error": {code, message, detail?}} for every failure
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = _error(429, "rate_limited", "Too many profile lookups.", str(exc))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "validation_error", "Identifier parameters failed validation.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routes and auth dependencies raise with an ErrorDetail dict; pass it through."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Liveness, system-of-record reachability, and the configured sources. No capability needed."""
    records = getattr(request.app.state, "records", None)
    database = "ok" if records is not None and await asyncio.to_thread(records.ping) else "error"
    components = {"app": "ok", "database": database}

    aggregator = getattr(request.app.state, "aggregator", None)
    sources = aggregator.source_names if aggregator is not None else []
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components, sources=sources)
