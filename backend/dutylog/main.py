"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dutylog.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from dutylog.api.routes import (
    auth,
    events,
    invitations,
    metrics,
    organizations,
    profile,
    tags,
    users,
)
from dutylog.core.config import get_settings
from dutylog.core.errors import AppError, ErrorCode
from dutylog.core.metrics import observe_denial
from dutylog.core.structured_logging import log_json

logger = logging.getLogger(__name__)

settings = get_settings()
docs_enabled = settings.api_docs_enabled
if docs_enabled is None:
    docs_enabled = settings.environment != "production"

app = FastAPI(
    title="DutyLog API",
    description="Multi-tenant duty event logging API",
    version="1.0.0",
    docs_url="/api/docs" if docs_enabled else None,
    redoc_url="/api/redoc" if docs_enabled else None,
    openapi_url="/api/openapi.json" if docs_enabled else None,
)

# Middleware configuration (order matters - applied in reverse order)
# 1. Request logging (outermost - logs all requests)
app.add_middleware(RequestLoggingMiddleware)

# 2. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Rate limiting (applied before routing)
app.add_middleware(RateLimitMiddleware)

# 4. CORS (applied after rate limiting)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.code is not ErrorCode.STORE_ERROR:
        observe_denial(exc.code.value)
    level = logging.ERROR if exc.code is ErrorCode.STORE_ERROR else logging.INFO
    log_json(
        logger,
        level,
        "request_denied",
        path=request.url.path,
        code=exc.code.value,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as a single 400 message."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        detail = first.get("msg", "invalid value")
        message = f"{'.'.join(loc)}: {detail}" if loc else detail
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log_json(
        logger,
        logging.ERROR,
        "store_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    body = {"error": "Internal server error"}
    if settings.show_error_details:
        body["details"] = str(getattr(exc, "orig", None) or exc)
        code = getattr(exc, "code", None)
        if code:
            body["code"] = code
    return JSONResponse(status_code=500, content=body)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(profile.router, prefix="/api/profile", tags=["profile"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(events.router, prefix="/api/events", tags=["events"])
app.include_router(tags.router, prefix="/api/tags", tags=["tags"])
app.include_router(invitations.router, prefix="/api/invitations", tags=["invitations"])
app.include_router(metrics.router, prefix="/api", tags=["metrics"])
