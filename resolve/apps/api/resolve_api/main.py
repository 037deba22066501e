"""Resolve API - FastAPI Application Entry Point."""

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from resolve_api import __version__
from resolve_api.config import env
from resolve_api.context import case_id_var, request_id_var, user_id_var
from resolve_api.routers import (
    admin,
    applications,
    calendar,
    cases,
    contracts,
    documents,
    health,
    insights,
    notifications,
    payments,
    tags,
    timeline,
    users,
    webhooks,
)
from resolve_api.schemas import ProblemDetail
from resolve_api.utils import configure_json_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed the system tag vocabulary. Failure never blocks startup."""
    from resolve_api.db.session import session_scope
    from resolve_api.services.tagging_service import seed_predefined_tags

    try:
        with session_scope() as db:
            added = seed_predefined_tags(db)
        logger.info("startup.tags.seeded", extra={"event": "startup.tags.seeded", "added": added})
    except Exception as e:
        logger.warning(
            "startup.tags.seed_failed",
            extra={"event": "startup.tags.seed_failed", "error_type": type(e).__name__},
        )
    yield


app = FastAPI(
    title="Resolve API",
    description="Payment dispute support for Australian tradies: intake, case management, AI strategy packs and billing.",
    version=__version__,
    docs_url="/api-docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Structured JSON logging
# Set RESOLVE_JSON_LOGS=false to disable (defaults to true for production)
if os.getenv("RESOLVE_JSON_LOGS", "true").lower() != "false":
    configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
    logger.info("Structured JSON logging enabled")

# MDN: credentials mode CANNOT use wildcard origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=env.get_cors_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Idempotency-Key", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Retry-After"],
)


# ============================================================================
# HTTP Request Completion Logging Middleware
# ============================================================================


@app.middleware("http")
async def http_completion_logging_middleware(request: Request, call_next):
    """Log every HTTP request completion.

    - Every HTTP request emits an "http.request.completed" log
    - Fields: method, path, status_code, duration_ms (+ request_id/user_id/case_id from context)
    - Logs even on exceptions (status_code=500)
    - Clears per-request contextvars at start and end so they never leak across requests
    """
    user_id_var.set("")
    case_id_var.set("")

    start_time = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        user_id_var.set("")
        case_id_var.set("")


# ============================================================================
# Request ID Middleware (MUST BE OUTERMOST)
# ============================================================================


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Generate and propagate request_id for observability.

    - Accepts X-Request-ID header from client (optional)
    - Generates new UUID if not provided
    - Returns X-Request-ID in response headers

    IMPORTANT: This MUST be registered LAST (outermost middleware) so request_id
    is set in the parent async context before other middlewares execute.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


def _trace_instance() -> str:
    request_id = request_id_var.get()
    return f"urn:resolve:trace:{request_id or uuid.uuid4()}"


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC 9457 Problem Details format.

    Returns application/problem+json with top-level RFC 9457 fields.
    A dict detail that is already a problem document (from session auth) is
    passed through; any other detail is wrapped.
    """
    if isinstance(exc.detail, dict) and {"type", "title", "status"} <= exc.detail.keys():
        content = dict(exc.detail)
        content.setdefault("instance", _trace_instance())
    else:
        detail_value = exc.detail if exc.detail is not None else _get_title_for_status(exc.status_code)
        problem = ProblemDetail(
            type=f"https://api.resolve.au/problems/http-{exc.status_code}",
            title=_get_title_for_status(exc.status_code),
            status=exc.status_code,
            detail=detail_value,
            instance=_trace_instance(),
        )
        content = problem.model_dump(exclude_none=True)

    headers = dict(exc.headers) if getattr(exc, "headers", None) else {}

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        media_type="application/problem+json",
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with RFC 9457 Problem Details format.

    Returns 422 Unprocessable Entity with application/problem+json.
    """
    first_error = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    problem = ProblemDetail(
        type="https://api.resolve.au/problems/validation-error",
        title="Request Validation Failed",
        status=422,
        detail=f"Invalid field '{field}': {msg}",
        instance=_trace_instance(),
    )

    return JSONResponse(
        status_code=422,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with RFC 9457 Problem Details format.

    Returns 500 Internal Server Error; internals are logged, never returned.
    """
    problem = ProblemDetail(
        type="https://api.resolve.au/problems/internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_trace_instance(),
    )

    logger.error(
        "http.unhandled_exception",
        extra={"event": "http.unhandled_exception", "error_type": type(exc).__name__},
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        402: "Payment Required",
        403: "Forbidden",
        404: "Not Found",
        409: "Conflict",
        413: "Payload Too Large",
        415: "Unsupported Media Type",
        422: "Unprocessable Entity",
        500: "Internal Server Error",
        502: "Bad Gateway",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# Include routers
app.include_router(health.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(applications.router)
app.include_router(cases.router)
app.include_router(contracts.router)
app.include_router(documents.router)
app.include_router(tags.router)
app.include_router(timeline.router)
app.include_router(calendar.router)
app.include_router(notifications.router)
app.include_router(insights.router)
app.include_router(payments.router)
app.include_router(webhooks.router)
