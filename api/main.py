"""
api/main.py -- FastAPI application entry point for shopgate.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. log_requests          -- one access-log line per request, gate rejections included
  5. enforce_gates         -- ApiGate then WebGate; first Reject wins

Starlette wraps each newly registered middleware around everything registered
before it, so the stack is registered innermost-first below.

Lifespan opens the stores, wires the services and gates into app.state, starts
the token purge task, and tears all of it down symmetrically on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ApiResponse, HealthResponse, fail
from api.routes.auth import router as auth_router
from api.routes.products import router as products_router
from api.routes.users import router as users_router
from auth.errors import AuthError
from auth.gates import ApiGate, WebGate, run_gates
from auth.service import AuthService
from auth.store import CredentialStore, TokenStore
from auth.tokens import TokenCodec
from catalog.store import ProductStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("shopgate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def wire_state(
    app: FastAPI,
    accounts: CredentialStore,
    tokens: TokenStore,
    products: ProductStore,
    codec: TokenCodec | None = None,
) -> None:
    """Attach stores, AuthService and the ordered gate list to app.state.

    Shared by the real lifespan and the test lifespan in tests/conftest.py so
    both run the exact same gate configuration.
    """
    codec = codec or TokenCodec.from_settings(_settings)
    auth_service = AuthService(codec, accounts, tokens)
    app.state.codec = codec
    app.state.accounts = accounts
    app.state.tokens = tokens
    app.state.products = products
    app.state.auth_service = auth_service
    app.state.gates = [
        ApiGate(codec, tokens, accounts),
        WebGate(auth_service),
    ]


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired session-token rows every token_purge_interval_seconds.

    The purge itself is a blocking DB call, so it runs in the thread pool.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(_settings.token_purge_interval_seconds)
        try:
            await run_in_threadpool(app.state.auth_service.purge_expired_tokens)
        except Exception:
            logger.exception("Session token purge failed")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores and services on startup, close them on shutdown."""
    logger.info("shopgate starting up")
    accounts = CredentialStore(_settings.database_url)
    tokens = TokenStore(_settings.database_url)
    products = ProductStore(_settings.database_url)
    wire_state(app, accounts, tokens, products)
    logger.info("Auth initialized (token lifetime %ds)", app.state.codec.lifetime_seconds)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    products.close()
    tokens.close()
    accounts.close()
    logger.info("shopgate shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="shopgate",
    description="Product catalog with token-gated API and cookie-gated web pages.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Gate middleware
#
# Pattern: Chain of Responsibility. Gates are plain callables; this is the
# only place they are composed. They do blocking work (DB round trips, HMAC),
# so the chain runs in the thread pool rather than on the event loop.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def enforce_gates(request: Request, call_next):
    gates = getattr(request.app.state, "gates", ())
    rejection = await run_in_threadpool(run_gates, gates, request)
    if rejection is not None:
        return rejection.response
    return await call_next(request)


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


app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(products_router, prefix="/api", tags=["Products"])
# Web UI router is mounted by asgi.py, not here.

# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ApiResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate a named auth failure from a route handler into the envelope."""
    response = JSONResponse(status_code=exc.status_code, content=fail(exc.message))
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(status_code=429, content=fail("Too many requests."))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(status_code=422, content=fail("Request validation failed.", errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status = "error" if exc.status_code >= 500 else "fail"
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse(status=status, message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors (storage outage included).

    The traceback goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ApiResponse(status="error", message="An unexpected error occurred.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint -- public in ApiGate, never rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and whether the credential database answers."""
    components = {"app": "ok", "database": "ok"}
    try:
        with request.app.state.accounts.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    return HealthResponse(
        status="healthy" if components["database"] == "ok" else "degraded",
        version=__version__,
        components=components,
    )
