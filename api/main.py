"""
api/main.py -- FastAPI application entry point for the Konfetka shop API.

Install deps:  pip install -e .
Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware  -- adds CORS headers for allowed browser origins
  2. GZipMiddleware  -- compresses responses above 1 KB

Lifespan builds the auth objects from Settings (store -> codec -> service)
and tears them down symmetrically. Nothing in auth/ reads configuration on
its own; this module is the single place where settings become objects.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.models import ErrorResponse, HealthResponse, MessageResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.exceptions import AuthError
from auth.service import AuthService
from auth.sessions import SessionCodec
from auth.store import UserStore
from core.config import get_settings

__version__ = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("konfetka.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------

_PURGE_INTERVAL_SECONDS = 6 * 60 * 60


async def _purge_loop(app: FastAPI) -> None:
    """Drop expired entries from the session revocation list every 6 hours.

    The purge itself is a blocking DB call, so it runs in a worker thread.
    A failed purge is logged and retried on the next tick; the task only
    ends when task.cancel() raises CancelledError during shutdown.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        try:
            await asyncio.to_thread(app.state.user_store.purge_revoked_sessions)
        except SQLAlchemyError:
            logger.exception("Purging revoked sessions failed; retrying in %ds", _PURGE_INTERVAL_SECONDS)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth stack on startup, release it on shutdown.

    Startup order matters: the store first (codec and service depend on
    nothing else, but the service needs the store), the purge task last.
    """
    settings = get_settings()
    logger.info("Konfetka API starting up (debug=%s)", settings.debug)

    store = UserStore(settings.database_url, bcrypt_rounds=settings.bcrypt_rounds)
    codec = SessionCodec(settings.secret_key, max_age=timedelta(days=settings.session_max_age_days))
    app.state.user_store = store
    app.state.auth_service = AuthService(store, codec)
    app.state.secure_cookies = settings.secure_cookies
    logger.info("Auth initialized (session max age: %d days)", settings.session_max_age_days)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    store.close()
    logger.info("Konfetka API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Konfetka Shop API",
    description="Accounts and session authentication for the Konfetka shop.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(GZipMiddleware, minimum_size=1024)

# Browsers refuse credentialed requests against a wildcard origin, so
# cookies are only allowed cross-origin when explicit origins are configured.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials="*" not in _settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope ({code, message}) so
# clients can read "message" without inspecting status codes.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """InvalidCredentials -> 401, NotLoggedIn -> 403, DuplicateKey -> 409."""
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(code=exc.code, message=exc.message).model_dump(exclude_none=True),
    )
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            code="validation_error",
            message="Error: Request validation failed",
            detail=str(exc.errors()),
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(code=f"http_{exc.status_code}", message=str(exc.detail)).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(code="internal_error", message="Error: An unexpected error occurred").model_dump(
            exclude_none=True
        ),
    )


# ---------------------------------------------------------------------------
# Liveness endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/ping", tags=["Health"])
async def ping() -> MessageResponse:
    return MessageResponse(message="pong")


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a database round-trip check."""
    components = {"app": "ok"}
    try:
        request.app.state.user_store.has_users()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unavailable")
        components["database"] = "error"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=__version__, components=components)
