"""
api/main.py -- FastAPI application entry point for credgate.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost, after the request logger):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the process-wide objects once -- account store, unique email
index, token codec -- and tears the store down on shutdown. Nothing on
app.state is mutated after startup.
"""

from __future__ import annotations

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
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.dependencies import TOKEN_HEADER
from auth.errors import AuthError
from auth.store import AccountStore
from auth.tokens import TokenCodec
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
logger = logging.getLogger("credgate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the store and token codec on startup; dispose the store on shutdown.

    ensure_unique_index("email") runs here, before the first request, so the
    store rejects a second account for an email even when two registrations
    race past the lookup in accounts.register().
    """
    logger.info("credgate API starting up (debug=%s)", _settings.debug)
    app.state.account_store = AccountStore(_settings.database_url)
    app.state.account_store.ensure_unique_index("email")
    app.state.token_codec = TokenCodec.from_settings(_settings)
    logger.info("Auth initialized (token_ttl=%ds)", _settings.token_expire_seconds)

    yield

    app.state.account_store.close()
    logger.info("credgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="credgate API",
    description="Account registration, password login, bearer tokens and role-based access control.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the last one added runs first.
# Added innermost-first: SlowAPI, then CORS, then TrustedHost. log_requests,
# registered below, wraps all three.
# ---------------------------------------------------------------------------

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", TOKEN_HEADER],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# ---------------------------------------------------------------------------
# Request logging middleware
#
# One line per response: method, path, status, latency, client and, when a
# RequireRoles dependency accepted the token, the account id. Headers are
# never logged, so X-Auth-Token cannot reach the logs.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    identity = getattr(request.state, "identity", None)
    logger.info(
        "%s %s status=%d elapsed=%.1fms client=%s account=%s",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request.client.host if request.client else "-",
        identity.id if identity is not None else "-",
    )
    return response


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves through _error_response, so all of them share the
# {"ok": false, "error": {code, message, detail}} envelope.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an expected auth outcome (validation, conflict, 401, 403, 404).

    The subclass decides the status code; InvalidSignature and TokenExpired
    share Unauthenticated's 401 and differ only in code/message.
    """
    headers = {"Cache-Control": "no-store"}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = TOKEN_HEADER
    return _error_response(exc.status_code, exc.code, exc.message, headers=headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 for a client over the register/login limit.

    Retry-After is the length of the tripped window (3600 for "5/hour"). It is
    an upper bound: the window may already be partly over.
    """
    logger.warning("Rate limit hit path=%s client=%s", request.url.path, request.client.host if request.client else "-")
    return _error_response(
        429,
        "rate_limited",
        "Too many requests.",
        detail=str(exc.detail),
        headers={"Retry-After": str(exc.limit.limit.get_expiry())},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Locations and messages only. The submitted values may include a password.
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return _error_response(422, "validation_error", "Request validation failed.", detail=problems)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # Starlette's base class, so router 404/405s share the envelope too.
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Store outages, bcrypt faults and bugs: logged with traceback, answered generically."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Liveness probe. Unauthenticated and not rate-limited."""
    return HealthResponse(version=__version__)
