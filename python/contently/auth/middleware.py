"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware that resolves the caller once per request
- get_viewer: Dependency for accessing the authenticated viewer
"""

import logging
from collections.abc import Callable

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from contently.auth.session import (
    IdentityProviderAuth,
    IdentityProviderClaims,
    SessionResolver,
    Viewer,
)
from contently.errors import ApiError, ApiErrorCode
from contently.logging import set_auth_via
from contently.responses import error_json_response

logger = logging.getLogger(__name__)

# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/auth/login",
    "/auth/register",
    "/auth/refresh",
    "/auth/logout",
}

IdentityCallback = Callable[[IdentityProviderClaims], Viewer]


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path or CORS preflight
    2. Resolve credentials (bearer identity-provider token, then session cookie)
    3. For identity-provider auth, map the uid to a local user via callback
       (looked up, linked by email, or created)
    4. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        resolver: SessionResolver,
        identity_callback: IdentityCallback,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            resolver: Resolves which credential authenticated a request.
            identity_callback: Function(claims) -> Viewer for identity-provider auth.
        """
        super().__init__(app)
        self.resolver = resolver
        self.identity_callback = identity_callback

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        authenticated = self.resolver.resolve(request)
        if authenticated is None:
            logger.warning(
                "auth_failure",
                extra={"reason": "no_valid_credentials", "request_path": request.url.path},
            )
            return error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED, "Authentication required", 401
            )

        if isinstance(authenticated, IdentityProviderAuth):
            try:
                viewer = self.identity_callback(authenticated.claims)
            except ApiError as e:
                return error_json_response(e.code, e.message, e.status_code)
            except Exception as e:
                logger.exception("Identity sync failed: %s", e)
                return error_json_response(ApiErrorCode.E_INTERNAL, "Internal server error", 500)
        else:
            claims = authenticated.claims
            viewer = Viewer(user_id=claims.user_id, email=claims.email, via=authenticated)

        request.state.viewer = viewer
        set_auth_via(authenticated.kind)

        return await call_next(request)


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


# Type alias for dependency injection
ViewerDep = Depends(get_viewer)
