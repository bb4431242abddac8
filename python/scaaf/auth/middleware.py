"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer token / session cookie verification
- get_viewer: Dependency for accessing authenticated viewer identity
- get_optional_viewer: Dependency for routes that also serve anonymous callers
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from scaaf.auth.verifier import TokenVerifier
from scaaf.errors import ApiError, ApiErrorCode
from scaaf.responses import error_response

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"
DEFAULT_SESSION_COOKIE = "sb-access-token"

# Paths that never require authentication
PUBLIC_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}
# Webhooks authenticate with their own signature, not a user session
PUBLIC_PATH_PREFIXES = ("/api/inbound-email",)
# Paths that attach a viewer when a valid token is present and run anonymously otherwise
OPTIONAL_AUTH_PATHS = {"/api/addresses/create", "/api/addresses/me"}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from JWT sub claim).
    """

    user_id: UUID


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PATH_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract token from the bearer header, falling back to the session cookie
    3. Verify token via TokenVerifier
    4. Call bootstrap callback to ensure the users row exists
    5. Attach Viewer to request state

    On optional-auth paths a missing or rejected token leaves the request
    anonymous instead of failing it.
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        bootstrap_callback: Callable[[UUID], None] | None = None,
        session_cookie_name: str = DEFAULT_SESSION_COOKIE,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: TokenVerifier implementation for JWT verification.
            bootstrap_callback: Function(user_id) called after successful auth.
            session_cookie_name: Cookie holding the access token for browser sessions.
        """
        super().__init__(app)
        self.verifier = verifier
        self.bootstrap_callback = bootstrap_callback
        self.session_cookie_name = session_cookie_name

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        optional = path in OPTIONAL_AUTH_PATHS

        token, error = self._extract_token(request, log_missing=not optional)
        if error is not None:
            if optional:
                return await call_next(request)
            return error

        try:
            payload = self.verifier.verify(token)
        except ApiError as e:
            if optional:
                logger.info("optional_auth_rejected", extra={"request_path": path})
                return await call_next(request)
            return self._error_json_response(e.code, e.message, e.status_code)

        user_id = UUID(payload["sub"])

        if self.bootstrap_callback:
            try:
                self.bootstrap_callback(user_id)
            except Exception as e:
                logger.exception("Bootstrap failed for user %s: %s", user_id, e)
                return self._error_json_response(
                    ApiErrorCode.E_INTERNAL,
                    "Internal server error",
                    500,
                )

        request.state.viewer = Viewer(user_id=user_id)

        return await call_next(request)

    def _extract_token(
        self, request: Request, log_missing: bool = True
    ) -> tuple[str, JSONResponse | None]:
        """Extract the access token from the Authorization header or session cookie.

        Anonymous requests on optional-auth paths pass log_missing=False.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if auth_header:
            scheme, _, token = auth_header.partition(" ")
            token = token.strip()
            if scheme.lower() != "bearer" or not token:
                logger.warning(
                    "auth_failure",
                    extra={"reason": "invalid_header_format", "request_path": request.url.path},
                )
                return "", self._error_json_response(
                    ApiErrorCode.E_UNAUTHENTICATED,
                    "Invalid authorization header format",
                    401,
                )
            return token, None

        cookie_token = request.cookies.get(self.session_cookie_name)
        if cookie_token:
            return cookie_token, None

        if log_missing:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_credentials", "request_path": request.url.path},
            )
        return "", self._error_json_response(
            ApiErrorCode.E_UNAUTHENTICATED,
            "Authentication required",
            401,
        )

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


def get_optional_viewer(request: Request) -> Viewer | None:
    """FastAPI dependency returning the viewer when authenticated, else None."""
    return getattr(request.state, "viewer", None)


# Type alias for dependency injection
ViewerDep = Depends(get_viewer)
