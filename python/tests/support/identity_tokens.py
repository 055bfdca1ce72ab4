"""Test-only Firebase ID token verifier using a locally generated RSA keypair.

This module provides MockFirebaseVerifier for use in tests only.
It is NOT part of the runtime code and should not be imported in production.

The verifier checks the same claims as FirebaseJwksVerifier (issuer,
audience, exp with skew, sub shape) so configuration mistakes surface in
tests.
"""

import logging
import threading
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
)

from contently.auth.verifier import CLOCK_SKEW_SECONDS, firebase_issuer, validate_uid_claim
from contently.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

TEST_PROJECT_ID = "contently-test"


def generate_private_key_pem() -> bytes:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


class MockFirebaseVerifier:
    """Verifies RS256 tokens signed with the class-level test key.

    Usage:
        verifier = MockFirebaseVerifier()
        claims = verifier.verify(token)

        # To mint tokens, use the private key:
        private_key = MockFirebaseVerifier.get_private_key()
    """

    # Class-level RSA keypair (generated once)
    _private_key: bytes | None = None
    _public_key: bytes | None = None
    _lock = threading.Lock()

    def __init__(self, project_id: str = TEST_PROJECT_ID):
        self.project_id = project_id
        self.issuer = firebase_issuer(project_id)
        self.calls = 0
        self._ensure_keypair()

    @classmethod
    def _ensure_keypair(cls) -> None:
        with cls._lock:
            if cls._private_key is None:
                cls._private_key = generate_private_key_pem()
                private_key = serialization.load_pem_private_key(cls._private_key, password=None)
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
        """Verify a test ID token.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid.
        """
        self.calls += 1
        try:
            payload = jwt.decode(
                token,
                self.get_public_key(),
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iat", "iss", "aud", "sub"]},
            )
        except ExpiredSignatureError as e:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Token expired") from e
        except InvalidSignatureError as e:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token signature") from e
        except InvalidIssuerError as e:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token issuer") from e
        except InvalidAudienceError as e:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience") from e
        except DecodeError as e:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
        except InvalidTokenError as e:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token") from e

        return validate_uid_claim(payload)
