"""Authentication module.

This module provides:
- Session tokens (self-issued access/refresh JWTs and their cookies)
- Firebase ID token verification
- Per-request credential resolution and auth middleware
- Spent refresh-token record for single-use rotation

Note: The test-only verifier is in tests/support/identity_tokens.py
"""

from contently.auth.middleware import AuthMiddleware, get_viewer
from contently.auth.session import (
    AuthenticatedVia,
    IdentityProviderAuth,
    IdentityProviderClaims,
    SessionAuth,
    SessionResolver,
    Viewer,
)
from contently.auth.spent_tokens import SpentTokenStore
from contently.auth.tokens import SessionClaims, TokenPair, TokenService
from contently.auth.verifier import FirebaseJwksVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "get_viewer",
    "AuthenticatedVia",
    "IdentityProviderAuth",
    "IdentityProviderClaims",
    "SessionAuth",
    "SessionResolver",
    "Viewer",
    "SpentTokenStore",
    "SessionClaims",
    "TokenPair",
    "TokenService",
    "FirebaseJwksVerifier",
    "TokenVerifier",
]
