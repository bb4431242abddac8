"""API response envelope helpers and exception handlers.

All API responses use a consistent envelope:
- Success: { "ok": true, "data": ... } (lists add "page": { "next_cursor": ... })
- Error: { "ok": false, "error": "<message>", "code": "E_...", "request_id": "..." }

The request_id is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from scaaf.errors import ApiError, ApiErrorCode
from scaaf.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(data: Any) -> dict[str, Any]:
    """Create a success response envelope.

    Args:
        data: The response data to wrap.

    Returns:
        Dict with "ok" set and "data" containing the response.
    """
    return {"ok": True, "data": data}


def page_response(items: list[Any], next_cursor: str | None) -> dict[str, Any]:
    """Create a paged success envelope: {"ok", "data": [...], "page": {"next_cursor"}}."""
    return {"ok": True, "data": items, "page": {"next_cursor": next_cursor}}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).

    Returns:
        Dict with "ok" false, the message under "error", and the code.
    """
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {"ok": False, "error": message, "code": code.value}
    if request_id:
        body["request_id"] = request_id

    return body


def mark_no_store(response: Response) -> None:
    """Disable caching for per-viewer reads."""
    response.headers["Cache-Control"] = "no-store"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle database failures as 500 without leaking driver messages."""
    logger.error("database_error", error_type=type(exc).__name__, error=str(exc))

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Database error"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("Unhandled exception: %s", exc)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
