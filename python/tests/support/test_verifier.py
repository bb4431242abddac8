"""Test-only token verifier using a locally generated RSA keypair.

MockJwtVerifier checks the same claims as SupabaseJwksVerifier (exp with
clock skew, iss, aud, UUID sub) and maps failures through the same
translation, so config mistakes show up in tests.
"""

import threading
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import InvalidTokenError

from scaaf.auth.verifier import (
    CLOCK_SKEW_SECONDS,
    require_uuid_sub,
    unauthenticated_from_decode_error,
)


class MockJwtVerifier:
    """Verifies RS256 tokens signed with the class-level test key.

    Usage:
        verifier = MockJwtVerifier()
        claims = verifier.verify(token)

        # To mint tokens, sign with:
        MockJwtVerifier.get_private_key()
    """

    _private_key: bytes | None = None
    _public_key: bytes | None = None
    _lock = threading.Lock()

    def __init__(self, issuer: str = "test-issuer", audiences: list[str] | None = None):
        self.issuer = issuer
        self.audiences = audiences or ["test-audience"]
        self._ensure_keypair()

    @classmethod
    def _ensure_keypair(cls) -> None:
        with cls._lock:
            if cls._private_key is None:
                private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
                cls._private_key = private_key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption(),
                )
                cls._public_key = private_key.public_key().public_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PublicFormat.SubjectPublicKeyInfo,
                )

    @classmethod
    def get_private_key(cls) -> bytes:
        cls._ensure_keypair()
        assert cls._private_key is not None
        return cls._private_key

    @classmethod
    def get_public_key(cls) -> bytes:
        cls._ensure_keypair()
        assert cls._public_key is not None
        return cls._public_key

    def verify(self, token: str) -> dict[str, Any]:
        """Verify a test JWT.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid.
        """
        try:
            payload = jwt.decode(
                token,
                self.get_public_key(),
                algorithms=["RS256"],
                audience=self.audiences,
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub"], "verify_aud": True},
            )
        except InvalidTokenError as e:
            raise unauthenticated_from_decode_error(e) from e

        require_uuid_sub(payload)
        return payload
