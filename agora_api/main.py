"""Agora API - FastAPI Application Entry Point."""

import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agora_api import __version__
from agora_api.config.env import (
    get_cors_origins,
    get_log_level,
    json_logs_enabled,
    require_supabase_secrets,
)
from agora_api.context import request_id_var, user_id_var
from agora_api.errors import AppError
from agora_api.routers import admin, auth, comments, health, posts, subreddits
from agora_api.schemas import ErrorEnvelope
from agora_api.utils import configure_json_logging

API_PREFIX = "/api"

logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details=None,
    headers=None,
) -> JSONResponse:
    envelope = ErrorEnvelope(code=code, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(exclude_none=True),
        headers=headers,
    )


def _status_code_name(status_code: int) -> str:
    names = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        500: "INTERNAL_ERROR",
    }
    return names.get(status_code, f"HTTP_{status_code}")


def _register_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # ========================================================================
    # HTTP Request Completion Logging (inside request_id)
    # ========================================================================

    @app.middleware("http")
    async def http_completion_logging_middleware(request: Request, call_next):
        """Log every HTTP request completion.

        - Every request emits "http.request.completed"
        - Fields: method, path, status_code, duration_ms (request_id and
          user_id come from the context variables)
        - Logs even on unhandled exceptions (status_code=500)
        """
        user_id_var.set("")
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

    # ========================================================================
    # Request ID (MUST BE OUTERMOST, so registered last)
    # ========================================================================

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Accept or generate X-Request-ID and echo it on the response."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Render handler-raised errors as the shared envelope."""
        return _error_response(
            exc.status_code,
            exc.code,
            exc.message,
            details=exc.details,
            headers=exc.headers or None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed body, path or query input: 400 with field-level details."""
        details = [
            {
                "loc": [str(part) for part in error.get("loc", [])],
                "msg": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            }
            for error in exc.errors()
        ]
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Invalid payload",
            details=details,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = "Route not found"
        else:
            message = str(exc.detail) if exc.detail else "Request failed"
        return _error_response(
            exc.status_code,
            _status_code_name(exc.status_code),
            message,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Uncaught exceptions: generic 500, full detail only in the log."""
        logger.error(
            "http.request.unhandled_exception",
            extra={"error_type": type(exc).__name__, "path": request.url.path},
            exc_info=True,
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An unexpected error occurred. Please try again later.",
        )


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Set AGORA_JSON_LOGS=false to keep the default (plain) logging setup.
    """
    if json_logs_enabled():
        configure_json_logging(log_level=get_log_level())
        logger.info("Structured JSON logging enabled")

    missing = require_supabase_secrets()
    if missing:
        logger.warning("config.secrets.missing", extra={"missing": missing})

    app = FastAPI(
        title="Agora API",
        description="Community discussion API: subreddits, posts, comments and votes.",
        version=__version__,
    )

    _register_middleware(app)
    _register_exception_handlers(app)

    app.include_router(health.router, prefix=API_PREFIX, tags=["health"])
    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(subreddits.router, prefix=API_PREFIX)
    app.include_router(posts.router, prefix=API_PREFIX)
    app.include_router(comments.router, prefix=API_PREFIX)
    app.include_router(admin.router, prefix=API_PREFIX)

    return app


app = create_app()
