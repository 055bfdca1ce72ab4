"""Session tokens: mint, verify, and carry them in cookies.

- Access and refresh tokens are HS256 JWTs signed with two different secrets
- Claims: sub=user_id, email, iat, exp, jti=uuid, typ=access|refresh
- Access tokens live 15 minutes, refresh tokens 7 days
- Verification never raises: any failure is logged and returns None
- Both tokens travel as HttpOnly, SameSite=Lax cookies on path "/"

Expiry is checked against an injectable clock rather than PyJWT's wall-clock
check, so tests can mint tokens in the past and verify them "now".
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID, uuid4

import jwt
from starlette.responses import Response

from contently.config import Settings
from contently.logging import get_logger
from contently.services.redact import safe_kv

logger = get_logger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

TOKEN_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "email", "iat", "exp", "jti", "typ"]

CORS_ALLOW_HEADERS = "Content-Type, Authorization"
DEFAULT_CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"


@dataclass(frozen=True)
class TokenPair:
    """Freshly minted access + refresh tokens and their lifetimes."""

    access_token: str
    refresh_token: str
    access_max_age: int
    refresh_max_age: int


@dataclass(frozen=True)
class SessionClaims:
    """Verified payload of a session token."""

    user_id: UUID
    email: str
    issued_at: int
    expires_at: int
    jti: str
    token_type: str


class TokenService:
    """Issues and verifies the self-signed session token pair.

    Constructed once per application (see create_app) and shared through
    app.state; holds no per-request state.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        *,
        access_ttl_s: int = 15 * 60,
        refresh_ttl_s: int = 7 * 24 * 60 * 60,
        secure_cookies: bool = False,
        cookie_domain: str | None = None,
        app_origin: str = "http://localhost:3000",
        clock: Callable[[], float] = time.time,
    ):
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must use different secrets")
        self._secrets = {
            ACCESS_TOKEN_TYPE: access_secret,
            REFRESH_TOKEN_TYPE: refresh_secret,
        }
        self.access_ttl_s = access_ttl_s
        self.refresh_ttl_s = refresh_ttl_s
        self.secure_cookies = secure_cookies
        self.cookie_domain = cookie_domain
        self.app_origin = app_origin.rstrip("/")
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        """Build the service from application settings."""
        return cls(
            settings.jwt_secret,  # type: ignore[arg-type]
            settings.jwt_refresh_secret,  # type: ignore[arg-type]
            access_ttl_s=settings.access_token_ttl_s,
            refresh_ttl_s=settings.refresh_token_ttl_s,
            secure_cookies=settings.secure_cookies,
            cookie_domain=settings.cookie_domain,
            app_origin=settings.normalized_app_url,
        )

    # -------------------------------------------------------------------------
    # Minting and verification
    # -------------------------------------------------------------------------

    def issue(self, user_id: UUID, email: str) -> TokenPair:
        """Mint a new access/refresh pair for a user."""
        now = int(self._clock())
        return TokenPair(
            access_token=self._encode(ACCESS_TOKEN_TYPE, user_id, email, now, self.access_ttl_s),
            refresh_token=self._encode(
                REFRESH_TOKEN_TYPE, user_id, email, now, self.refresh_ttl_s
            ),
            access_max_age=self.access_ttl_s,
            refresh_max_age=self.refresh_ttl_s,
        )

    def verify_access(self, token: str) -> SessionClaims | None:
        """Verify an access token; None on any failure."""
        return self._verify(token, ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: str) -> SessionClaims | None:
        """Verify a refresh token; None on any failure."""
        return self._verify(token, REFRESH_TOKEN_TYPE)

    def _encode(self, token_type: str, user_id: UUID, email: str, now: int, ttl_s: int) -> str:
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": now,
            "exp": now + ttl_s,
            "jti": str(uuid4()),
            "typ": token_type,
        }
        return jwt.encode(payload, self._secrets[token_type], algorithm=TOKEN_ALGORITHM)

    def _verify(self, token: str, token_type: str) -> SessionClaims | None:
        if not token:
            return None

        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[TOKEN_ALGORITHM],
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError:
            self._log_failure(token_type, "invalid_signature")
            return None
        except jwt.MissingRequiredClaimError:
            self._log_failure(token_type, "missing_claims")
            return None
        except jwt.DecodeError:
            self._log_failure(token_type, "decode_error")
            return None
        except jwt.InvalidTokenError:
            self._log_failure(token_type, "invalid_token")
            return None

        if payload.get("typ") != token_type:
            self._log_failure(token_type, "wrong_token_type")
            return None

        try:
            expires_at = int(payload["exp"])
            claims = SessionClaims(
                user_id=UUID(str(payload["sub"])),
                email=str(payload["email"]),
                issued_at=int(payload["iat"]),
                expires_at=expires_at,
                jti=str(payload["jti"]),
                token_type=token_type,
            )
        except (ValueError, TypeError):
            self._log_failure(token_type, "invalid_claims")
            return None

        if expires_at <= int(self._clock()):
            self._log_failure(token_type, "expired_token")
            return None

        return claims

    def _log_failure(self, token_type: str, reason: str) -> None:
        logger.warning("session_token_rejected", **safe_kv(token_type=token_type, reason=reason))

    # -------------------------------------------------------------------------
    # Cookies
    # -------------------------------------------------------------------------

    def attach_cookies(
        self, response: Response, pair: TokenPair, methods: str = DEFAULT_CORS_METHODS
    ) -> None:
        """Set both session cookies and the app-origin CORS headers on a response."""
        self._set_cookie(response, ACCESS_TOKEN_COOKIE, pair.access_token, pair.access_max_age)
        self._set_cookie(response, REFRESH_TOKEN_COOKIE, pair.refresh_token, pair.refresh_max_age)
        self.apply_cors_headers(response, methods)

    def clear_cookies(self) -> list[str]:
        """Set-Cookie header values that expire both session cookies."""
        scratch = Response()
        self._set_cookie(scratch, ACCESS_TOKEN_COOKIE, "", 0)
        self._set_cookie(scratch, REFRESH_TOKEN_COOKIE, "", 0)
        return [
            value.decode("latin-1")
            for name, value in scratch.raw_headers
            if name == b"set-cookie"
        ]

    def clear_auth_cookies(self, response: Response, methods: str = DEFAULT_CORS_METHODS) -> None:
        """Append the expiring Set-Cookie headers to a response."""
        for header_value in self.clear_cookies():
            response.headers.append("set-cookie", header_value)
        self.apply_cors_headers(response, methods)

    def apply_cors_headers(self, response: Response, methods: str = DEFAULT_CORS_METHODS) -> None:
        """Echo the configured app origin with credentials allowed."""
        response.headers["Access-Control-Allow-Origin"] = self.app_origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = methods
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS

    def _set_cookie(self, response: Response, key: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key,
            value,
            max_age=max_age,
            path="/",
            domain=self.cookie_domain,
            secure=self.secure_cookies,
            httponly=True,
            samesite="lax",
        )
