"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Token Verification:
- All environments (local, test, staging, prod) use SupabaseJwksVerifier
- Runtime always verifies JWTs via the Supabase JWKS endpoint
- Only env values change between environments

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (verifies auth, sets viewer)
3. Route handler
4. AuthMiddleware (returns response)
5. RequestIDMiddleware (logs, sets response header)
"""

import json
import os
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from scaaf.api.routes import create_api_router
from scaaf.auth.middleware import AuthMiddleware
from scaaf.auth.verifier import SupabaseJwksVerifier
from scaaf.config import get_settings
from scaaf.db.session import get_session_factory
from scaaf.errors import ApiError, ApiErrorCode
from scaaf.logging import configure_logging, get_logger
from scaaf.middleware.request_id import RequestIDMiddleware
from scaaf.responses import (
    api_error_handler,
    database_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from scaaf.services.bootstrap import ensure_user

# Configure structured logging at import time; read the env directly so
# importing the app module never requires the full settings.
configure_logging(json_format=os.environ.get("LOG_JSON", "true").lower() != "false")

logger = get_logger(__name__)


def create_bootstrap_callback():
    """Create a bootstrap callback that creates its own database session.

    The callback is called by the auth middleware for each authenticated request.
    It creates a fresh database session, ensures the users row, and closes it.
    """
    session_factory = get_session_factory()

    def bootstrap(user_id: UUID) -> None:
        db = session_factory()
        try:
            ensure_user(db, user_id)
        finally:
            db.close()

    return bootstrap


def create_token_verifier():
    """Create the token verifier using Supabase JWKS.

    Returns:
        SupabaseJwksVerifier configured with settings from environment.
    """
    settings = get_settings()

    return SupabaseJwksVerifier(
        jwks_url=settings.supabase_jwks_url,  # type: ignore
        issuer=settings.normalized_issuer,  # type: ignore
        audiences=settings.audience_list,
    )


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier=None,
    bootstrap_callback=None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        bootstrap_callback: Optional custom user bootstrap (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Scaaf API",
        description="Backend API for Scaaf - newsletter inbox and reading circles",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Handle JSON parsing errors specifically
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request"),
        )

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    # Add auth middleware (runs on all requests except public paths)
    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            verifier=token_verifier or create_token_verifier(),
            bootstrap_callback=bootstrap_callback or create_bootstrap_callback(),
            session_cookie_name=settings.auth_cookie_name,
        )

        logger.info(
            "auth_middleware_enabled",
            env=settings.scaaf_env.value,
            session_cookie=settings.auth_cookie_name,
        )

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
