"""Token verification implementations.

Provides:
- TokenVerifier: Protocol for token verification
- SupabaseJwksVerifier: Verifier using Supabase JWKS (used in all environments)

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

import logging
import threading
from typing import Any, Protocol
from uuid import UUID

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from scaaf.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60

# Most specific first: ExpiredSignatureError etc. subclass InvalidTokenError
DECODE_FAILURES: tuple[tuple[type[InvalidTokenError], str, str], ...] = (
    (ExpiredSignatureError, "expired_token", "Token expired"),
    (InvalidSignatureError, "invalid_signature", "Invalid token signature"),
    (InvalidIssuerError, "invalid_issuer", "Invalid token issuer"),
    (InvalidAudienceError, "invalid_audience", "Invalid token audience"),
    (DecodeError, "decode_error", "Invalid token format"),
    (InvalidTokenError, "invalid_token", "Invalid token"),
)


class TokenVerifier(Protocol):
    """Protocol for token verification.

    Implementations must verify JWT tokens and return decoded claims.
    """

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Infrastructure failure (JWKS unreachable).
        """
        ...


def unauthenticated_from_decode_error(exc: InvalidTokenError) -> ApiError:
    """Translate a PyJWT decode failure into an E_UNAUTHENTICATED ApiError."""
    for exc_type, reason, message in DECODE_FAILURES:
        if isinstance(exc, exc_type):
            logger.warning("auth_failure", extra={"reason": reason, "error": str(exc)})
            return ApiError(ApiErrorCode.E_UNAUTHENTICATED, message)
    return ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token")


def require_uuid_sub(payload: dict[str, Any]) -> None:
    """Ensure the sub claim is present and a UUID."""
    sub = payload.get("sub")
    if not sub:
        logger.warning("auth_failure", extra={"reason": "missing_sub"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: missing sub")
    try:
        UUID(sub)
    except (ValueError, TypeError) as e:
        logger.warning("auth_failure", extra={"reason": "invalid_sub"})
        raise ApiError(
            ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: sub is not a valid UUID"
        ) from e


class SupabaseJwksVerifier:
    """Production token verifier using Supabase JWKS.

    Validates:
    - Signature via JWKS (RS256 on Supabase cloud, ES256 on Supabase local)
    - exp with 60s clock skew
    - iss matches configured issuer (after normalization)
    - aud must be in configured audience list
    - sub must be valid UUID
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: str,
        audiences: list[str],
        cache_ttl: int = 3600,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/")
        self.audiences = audiences
        self.cache_ttl = cache_ttl

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _get_jwks_client(self, refresh: bool = False) -> PyJWKClient:
        """Get the JWKS client, creating a fresh one when refresh is requested."""
        with self._jwks_lock:
            if self._jwks_client is None or refresh:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def verify(self, token: str) -> dict[str, Any]:
        """Verify a Supabase JWT token and return its claims."""
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                audience=self.audiences,
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub"], "verify_aud": True},
            )
        except InvalidTokenError as e:
            raise unauthenticated_from_decode_error(e) from e

        require_uuid_sub(payload)
        return payload

    def _get_signing_key(self, token: str) -> Any:
        """Get the signing key for the token, refreshing JWKS once on a kid miss."""
        try:
            return self._get_jwks_client().get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" not in str(e) and "kid" not in str(e).lower():
                raise

        logger.info("Refreshing JWKS due to kid miss")
        try:
            return self._get_jwks_client(refresh=True).get_signing_key_from_jwt(token)
        except PyJWKClientError as retry_e:
            logger.warning("auth_failure", extra={"reason": "kid_not_found"})
            raise ApiError(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid token: signing key not found",
            ) from retry_e
