"""Authentication routes.

Login and register accept either credential:
- Authorization: Bearer <Firebase ID token>, verified against Google's JWKS
- a JSON body with email + password

Both set the self-issued access_token/refresh_token cookies, so later
requests authenticate with either the bearer token or the cookie.

/auth/refresh rotates the cookie pair. A failed refresh clears both cookies
so the browser does not keep presenting a dead refresh token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from contently.api.deps import get_db, get_session_resolver, get_spent_tokens, get_token_service
from contently.auth.middleware import Viewer, get_viewer
from contently.auth.session import (
    IdentityProviderClaims,
    SessionResolver,
    extract_bearer_token,
)
from contently.auth.spent_tokens import SpentTokenStore
from contently.auth.tokens import REFRESH_TOKEN_COOKIE, TokenService
from contently.db.models import User
from contently.errors import ApiError, ApiErrorCode, AuthenticationError
from contently.logging import get_logger
from contently.responses import error_json_response, success_response
from contently.schemas.auth import LoginRequest, RegisterRequest
from contently.services import users as users_service

logger = get_logger(__name__)

router = APIRouter()

AUTH_CORS_METHODS = "POST, OPTIONS"


def _identity_claims(
    request: Request, resolver: SessionResolver, password_sent: bool
) -> IdentityProviderClaims | None:
    """Claims of a bearer Firebase token.

    Returns None when no bearer token was sent, or when it did not verify and
    the body carries a password to fall back on.

    Raises:
        AuthenticationError(E_UNAUTHENTICATED): A bearer token was sent, did
            not verify, and there is no password to try instead.
    """
    if extract_bearer_token(request) is None:
        return None
    authenticated = resolver.verify_identity_provider(request)
    if authenticated is not None:
        return authenticated.claims
    if password_sent:
        logger.info("identity_token_rejected", fallback="password")
        return None
    raise AuthenticationError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid identity token")


def _session_response(token_service: TokenService, user: User, status_code: int) -> JSONResponse:
    """Issue a fresh token pair for the user and set it as cookies."""
    pair = token_service.issue(user.id, user.email)
    response = JSONResponse(
        status_code=status_code,
        content=success_response(users_service.user_to_out(user).model_dump(mode="json")),
    )
    token_service.attach_cookies(response, pair, AUTH_CORS_METHODS)
    return response


@router.post("/auth/login")
def login(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    resolver: Annotated[SessionResolver, Depends(get_session_resolver)],
    body: LoginRequest | None = None,
) -> JSONResponse:
    """Log in with a Firebase ID token or with email + password.

    A Firebase identity seen for the first time is linked to the account
    with the same verified email, or created. An invalid bearer token falls
    back to the password in the body when one is sent.

    Errors:
        E_UNAUTHENTICATED (401): Bearer token invalid and no password sent.
        E_EMAIL_TAKEN (409): Email belongs to an account the token cannot claim.
        E_INVALID_CREDENTIALS (401): Unknown email or wrong password.
        E_IDENTITY_PROVIDER_ACCOUNT (401): Account has no password.
        E_INVALID_REQUEST (400): Email or password missing.
    """
    body = body or LoginRequest()
    claims = _identity_claims(request, resolver, password_sent=body.password is not None)
    if claims is not None:
        user = users_service.ensure_identity_provider_user(db, claims, fallback_email=body.email)
    else:
        user = users_service.login_with_password(db, body.email, body.password)
    return _session_response(token_service, user, 200)


@router.post("/auth/register", status_code=201)
def register(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    resolver: Annotated[SessionResolver, Depends(get_session_resolver)],
    body: RegisterRequest | None = None,
) -> JSONResponse:
    """Register a password account or a Firebase identity.

    Returns 201 when an account was created. A bearer registration for a uid
    that is already registered logs in and returns 200.

    Errors:
        E_UNAUTHENTICATED (401): Bearer token invalid and no password sent.
        E_EMAIL_TAKEN (409): Another account uses the email.
        E_PASSWORD_TOO_SHORT (400): Password shorter than 6 characters.
        E_INVALID_REQUEST (400): Email or password missing.
    """
    body = body or RegisterRequest()
    claims = _identity_claims(request, resolver, password_sent=body.password is not None)
    if claims is not None:
        user, created = users_service.register_with_identity_provider(
            db, claims, email=body.email, full_name=body.full_name
        )
    else:
        user = users_service.register_with_password(db, body.email, body.password, body.full_name)
        created = True
    return _session_response(token_service, user, 201 if created else 200)


@router.post("/auth/refresh")
def refresh(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    spent_tokens: Annotated[SpentTokenStore, Depends(get_spent_tokens)],
) -> JSONResponse:
    """Rotate the refresh_token cookie into a new cookie pair.

    Errors (both cookies are cleared):
        E_SESSION_EXPIRED (401): Missing, invalid, expired or reused refresh token.
        E_USER_NOT_FOUND (404): The token's user no longer exists.
    """
    try:
        user, pair = users_service.refresh_session(
            db, token_service, spent_tokens, request.cookies.get(REFRESH_TOKEN_COOKIE)
        )
    except ApiError as e:
        response = error_json_response(e.code, e.message, e.status_code)
        token_service.clear_auth_cookies(response, AUTH_CORS_METHODS)
        return response

    response = JSONResponse(
        content=success_response(users_service.user_to_out(user).model_dump(mode="json"))
    )
    token_service.attach_cookies(response, pair, AUTH_CORS_METHODS)
    return response


@router.post("/auth/logout")
def logout(
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> JSONResponse:
    """Clear both session cookies. Always succeeds."""
    response = JSONResponse(content=success_response({"message": "Logged out successfully"}))
    token_service.clear_auth_cookies(response, AUTH_CORS_METHODS)
    return response


@router.get("/auth/me")
def me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Return the authenticated identity and how the request authenticated.

    Errors:
        E_USER_NOT_FOUND (404): The session outlived its user.
    """
    result = users_service.describe_viewer(db, viewer)
    return success_response(result.model_dump(mode="json"))
