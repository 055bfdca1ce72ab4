"""Per-request credential resolution.

A request may carry a Firebase ID token (Authorization: Bearer ...), a
self-issued access_token cookie, or both. The resolver checks them in that
order and returns which one authenticated the request as a tagged union:

    AuthenticatedVia = IdentityProviderAuth | SessionAuth

The bearer credential wins whenever it verifies, even if a valid cookie for a
different user is also present. A bearer token that fails verification is
logged and the cookie is tried next.

The union is normalized into a single Viewer by AuthMiddleware before any
route runs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

from starlette.requests import HTTPConnection

from contently.auth.tokens import ACCESS_TOKEN_COOKIE, SessionClaims, TokenService
from contently.auth.verifier import TokenVerifier
from contently.errors import ApiError

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"


@dataclass(frozen=True)
class IdentityProviderClaims:
    """The subset of Firebase ID token claims the app uses."""

    uid: str
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    picture: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IdentityProviderClaims":
        return cls(
            uid=payload["sub"],
            email=payload.get("email") or None,
            email_verified=payload.get("email_verified") is True,
            name=payload.get("name") or None,
            picture=payload.get("picture") or None,
        )


@dataclass(frozen=True)
class IdentityProviderAuth:
    """Request authenticated by a verified Firebase ID token."""

    claims: IdentityProviderClaims
    kind: Literal["identity_provider"] = "identity_provider"


@dataclass(frozen=True)
class SessionAuth:
    """Request authenticated by the access_token cookie."""

    claims: SessionClaims
    kind: Literal["session"] = "session"


AuthenticatedVia = IdentityProviderAuth | SessionAuth


@dataclass(frozen=True)
class Viewer:
    """Normalized identity of the caller.

    Attributes:
        user_id: Internal user id.
        email: The user's email.
        via: The credential that authenticated this request.
    """

    user_id: UUID
    email: str
    via: AuthenticatedVia


def extract_bearer_token(connection: HTTPConnection) -> str | None:
    """Return the bearer token from the Authorization header, if well-formed."""
    auth_header = connection.headers.get(AUTHORIZATION_HEADER)
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


class SessionResolver:
    """Resolves the credential a request authenticated with."""

    def __init__(self, verifier: TokenVerifier, token_service: TokenService):
        self.verifier = verifier
        self.token_service = token_service

    def verify_identity_provider(self, connection: HTTPConnection) -> IdentityProviderAuth | None:
        """Verify the bearer token only; None if absent or invalid."""
        token = extract_bearer_token(connection)
        if token is None:
            return None

        try:
            payload = self.verifier.verify(token)
        except ApiError as e:
            logger.warning(
                "auth_failure",
                extra={"reason": "identity_provider_rejected", "code": e.code.value},
            )
            return None

        return IdentityProviderAuth(claims=IdentityProviderClaims.from_payload(payload))

    def verify_session_cookie(self, connection: HTTPConnection) -> SessionAuth | None:
        """Verify the access_token cookie only; None if absent or invalid."""
        token = connection.cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            return None

        claims = self.token_service.verify_access(token)
        if claims is None:
            return None
        return SessionAuth(claims=claims)

    def resolve(self, connection: HTTPConnection) -> AuthenticatedVia | None:
        """Bearer identity-provider token first, then the session cookie."""
        return self.verify_identity_provider(connection) or self.verify_session_cookie(connection)
