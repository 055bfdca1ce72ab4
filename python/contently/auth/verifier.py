"""Identity-provider token verification.

Provides:
- TokenVerifier: Protocol for bearer token verification
- FirebaseJwksVerifier: Verifies Firebase ID tokens against Google's JWKS

Note: The test-only verifier is in tests/support/identity_tokens.py
"""

import logging
import threading
from typing import Any, Protocol

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

from contently.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)
FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60

# Firebase uids are 1-128 characters
MAX_UID_LENGTH = 128


class TokenVerifier(Protocol):
    """Protocol for identity-provider token verification."""

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Infrastructure failure (JWKS unreachable).
        """
        ...


def firebase_issuer(project_id: str) -> str:
    """Issuer Firebase puts in ID tokens for a project."""
    return f"{FIREBASE_ISSUER_PREFIX}{project_id}"


class FirebaseJwksVerifier:
    """Verifies Firebase ID tokens.

    Validates:
    - Signature via Google's securetoken JWKS (RS256)
    - exp with ±60s clock skew
    - iss == https://securetoken.google.com/<project_id>
    - aud == <project_id>
    - sub is a non-empty uid of at most 128 characters
    """

    def __init__(
        self,
        project_id: str,
        jwks_url: str = FIREBASE_JWKS_URL,
        cache_ttl: int = 3600,
    ):
        self.project_id = project_id
        self.issuer = firebase_issuer(project_id)
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _get_jwks_client(self, refresh: bool = False) -> PyJWKClient:
        """Get or create the JWKS client; refresh=True drops the cached keys."""
        with self._jwks_lock:
            if self._jwks_client is None or refresh:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def verify(self, token: str) -> dict[str, Any]:
        """Verify a Firebase ID token and return its claims."""
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e
        except DecodeError as e:
            logger.warning("auth_failure", extra={"reason": "decode_error", "error": str(e)})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iat", "iss", "aud", "sub"]},
            )
        except ExpiredSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "expired_token"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Token expired") from e
        except InvalidSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_signature"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token signature") from e
        except InvalidIssuerError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_issuer"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token issuer") from e
        except InvalidAudienceError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_audience"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience") from e
        except DecodeError as e:
            logger.warning("auth_failure", extra={"reason": "decode_error", "error": str(e)})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
        except InvalidTokenError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_token", "error": str(e)})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token") from e

        return validate_uid_claim(payload)

    def _get_signing_key(self, token: str) -> Any:
        """Get the signing key for the token, refreshing JWKS once on kid miss."""
        client = self._get_jwks_client()

        try:
            return client.get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" in str(e) or "kid" in str(e).lower():
                logger.info("Refreshing JWKS due to kid miss")
                client = self._get_jwks_client(refresh=True)
                try:
                    return client.get_signing_key_from_jwt(token)
                except PyJWKClientError as retry_e:
                    logger.warning("auth_failure", extra={"reason": "kid_not_found"})
                    raise ApiError(
                        ApiErrorCode.E_UNAUTHENTICATED,
                        "Invalid token: signing key not found",
                    ) from retry_e
            raise


def validate_uid_claim(payload: dict[str, Any]) -> dict[str, Any]:
    """Reject payloads whose sub is not a usable Firebase uid."""
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub or len(sub) > MAX_UID_LENGTH:
        logger.warning("auth_failure", extra={"reason": "invalid_sub"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: bad sub")
    return payload
