"""Identity service: registration, login, refresh and identity-provider sync.

Two ways to hold an account:
- email + bcrypt password hash
- a Firebase uid (from a verified ID token)

One user may have both: a Firebase sign-in with the email of an existing
password account links the uid to that account instead of creating a
duplicate.

Credential failures are deliberately uniform: an unknown email and a wrong
password both produce E_INVALID_CREDENTIALS.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contently.auth.passwords import MAX_PASSWORD_BYTES, hash_password, verify_password
from contently.auth.session import IdentityProviderAuth, IdentityProviderClaims, Viewer
from contently.auth.spent_tokens import SpentTokenStore
from contently.auth.tokens import TokenPair, TokenService
from contently.db.models import User, utcnow
from contently.errors import (
    ApiErrorCode,
    AuthenticationError,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
)
from contently.schemas.auth import AuthSessionOut, UserOut

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INVALID_REFRESH_MESSAGE = "Invalid or expired refresh token"


# =============================================================================
# Helpers
# =============================================================================


def normalize_email(email: str | None) -> str:
    """Trim and lowercase an email.

    Raises:
        InvalidRequestError: If the email is missing or has no "@".
    """
    email = (email or "").strip().lower()
    if not email:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Email is required")
    if "@" not in email:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Email is invalid")
    return email


def default_full_name(email: str) -> str:
    """Fallback display name: the email's local part."""
    return email.split("@")[0]


def validate_password(password: str | None) -> str:
    if not password:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Password is required for custom registration"
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_PASSWORD_TOO_SHORT,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST,
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
        )
    return password


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def get_user_by_firebase_uid(db: Session, uid: str) -> User | None:
    return db.execute(select(User).where(User.firebase_uid == uid)).scalar_one_or_none()


def get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def describe_viewer(db: Session, viewer: Viewer) -> AuthSessionOut:
    """Identity summary for /auth/me, including which credential was used.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): The session outlived its user.
    """
    user = get_user_or_404(db, viewer.user_id)
    return AuthSessionOut(user=user_to_out(user), authenticated_via=viewer.via.kind)


def user_to_out(user: User) -> UserOut:
    """Convert User ORM model to UserOut schema."""
    return UserOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        avatar_url=user.avatar_url,
        has_password=user.password_hash is not None,
        has_identity_provider=user.firebase_uid is not None,
        created_at=user.created_at,
    )


def _commit_new_user(db: Session, user: User) -> User:
    """Insert a user, mapping a unique-constraint race to E_EMAIL_TAKEN."""
    db.add(user)
    try:
        db.flush()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            ApiErrorCode.E_EMAIL_TAKEN, "User with this email already exists"
        ) from None
    return user


# =============================================================================
# Password accounts
# =============================================================================


def register_with_password(
    db: Session, email: str | None, password: str | None, full_name: str | None = None
) -> User:
    """Create a password account.

    Raises:
        InvalidRequestError: Missing email/password, or password too short/long.
        ConflictError(E_EMAIL_TAKEN): If the email is already registered.
    """
    email = normalize_email(email)
    password = validate_password(password)

    if get_user_by_email(db, email) is not None:
        raise ConflictError(ApiErrorCode.E_EMAIL_TAKEN, "User with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=(full_name or "").strip() or default_full_name(email),
    )
    _commit_new_user(db, user)

    logger.info("user_registered", extra={"user_id": str(user.id), "method": "password"})
    return user


def login_with_password(db: Session, email: str | None, password: str | None) -> User:
    """Check email + password.

    Raises:
        InvalidRequestError: If email or password is missing.
        AuthenticationError(E_INVALID_CREDENTIALS): Unknown email or wrong password.
        AuthenticationError(E_IDENTITY_PROVIDER_ACCOUNT): Account has no password.
    """
    if not email or not password:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Email and password are required"
        )

    user = get_user_by_email(db, email.strip().lower())
    if user is None:
        logger.warning("auth_failure", extra={"reason": "unknown_email"})
        raise AuthenticationError(ApiErrorCode.E_INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    if user.password_hash is None:
        raise AuthenticationError(
            ApiErrorCode.E_IDENTITY_PROVIDER_ACCOUNT,
            "Please use Firebase login for this account",
        )

    if not verify_password(password, user.password_hash):
        logger.warning("auth_failure", extra={"reason": "wrong_password"})
        raise AuthenticationError(ApiErrorCode.E_INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    return user


# =============================================================================
# Identity-provider accounts
# =============================================================================


def _sync_profile(user: User, claims: IdentityProviderClaims) -> bool:
    """Copy name/picture from the ID token onto the user. Returns True if changed."""
    changed = False
    if claims.name and claims.name != user.full_name:
        user.full_name = claims.name
        changed = True
    if claims.picture and claims.picture != user.avatar_url:
        user.avatar_url = claims.picture
        changed = True
    if changed:
        user.updated_at = utcnow()
    return changed


def register_with_identity_provider(
    db: Session,
    claims: IdentityProviderClaims,
    email: str | None = None,
    full_name: str | None = None,
) -> tuple[User, bool]:
    """Register the Firebase identity behind a verified ID token.

    Returns:
        (user, created). created is False when the uid was already registered,
        in which case the call is a login.

    Raises:
        InvalidRequestError: If neither the token nor the body supplies an email.
        ConflictError(E_EMAIL_TAKEN): If another account already uses the email.
    """
    existing = get_user_by_firebase_uid(db, claims.uid)
    if existing is not None:
        return existing, False

    email = normalize_email(claims.email or email)
    if get_user_by_email(db, email) is not None:
        raise ConflictError(ApiErrorCode.E_EMAIL_TAKEN, "User with this email already exists")

    user = User(
        email=email,
        firebase_uid=claims.uid,
        full_name=(full_name or "").strip() or claims.name or default_full_name(email),
        avatar_url=claims.picture,
    )
    _commit_new_user(db, user)

    logger.info("user_registered", extra={"user_id": str(user.id), "method": "identity_provider"})
    return user, True


def ensure_identity_provider_user(
    db: Session, claims: IdentityProviderClaims, fallback_email: str | None = None
) -> User:
    """Map a verified Firebase identity to a local user, creating it lazily.

    1. Look up by uid; sync name/picture.
    2. Else link an existing account with the same email, only when the
       email is the token's own verified email claim.
    3. Else create a new account.

    fallback_email names the account to create when the token carries no
    email. It never selects an existing account.

    Raises:
        InvalidRequestError: If a new account is needed and no email is known.
        ConflictError(E_EMAIL_TAKEN): If the email belongs to another account
            and the token does not prove ownership of it.
    """
    user = get_user_by_firebase_uid(db, claims.uid)
    if user is not None:
        if _sync_profile(user, claims):
            db.commit()
        return user

    email = normalize_email(claims.email or fallback_email)
    user = get_user_by_email(db, email)
    if user is not None:
        if not (claims.email and claims.email_verified):
            logger.warning(
                "identity_provider_link_refused",
                extra={"reason": "unverified_email", "user_id": str(user.id)},
            )
            raise ConflictError(ApiErrorCode.E_EMAIL_TAKEN, "User with this email already exists")
        user.firebase_uid = claims.uid
        _sync_profile(user, claims)
        user.updated_at = utcnow()
        db.commit()
        logger.info("identity_provider_linked", extra={"user_id": str(user.id)})
        return user

    user = User(
        email=email,
        firebase_uid=claims.uid,
        full_name=claims.name or default_full_name(email),
        avatar_url=claims.picture,
    )
    try:
        _commit_new_user(db, user)
    except ConflictError:
        # Lost a race with a concurrent first request for the same uid
        raced = get_user_by_firebase_uid(db, claims.uid)
        if raced is None:
            raise
        return raced

    logger.info("user_registered", extra={"user_id": str(user.id), "method": "identity_provider"})
    return user


def create_identity_callback(session_factory):
    """Create the identity callback used by AuthMiddleware.

    The callback opens its own database session, maps the verified claims to
    a local user, and closes the session.
    """

    def resolve_viewer(claims: IdentityProviderClaims) -> Viewer:
        db = session_factory()
        try:
            user = ensure_identity_provider_user(db, claims)
            return Viewer(user_id=user.id, email=user.email, via=IdentityProviderAuth(claims))
        finally:
            db.close()

    return resolve_viewer


# =============================================================================
# Session refresh
# =============================================================================


def refresh_session(
    db: Session,
    token_service: TokenService,
    spent_tokens: SpentTokenStore,
    refresh_token: str | None,
) -> tuple[User, TokenPair]:
    """Rotate a refresh token into a new access/refresh pair.

    Refresh tokens are single-use: the presented token's jti is recorded as
    spent before the new pair is issued, and a replay is rejected.

    Raises:
        AuthenticationError(E_SESSION_EXPIRED): Missing, invalid, expired or
            already-used refresh token.
        NotFoundError(E_USER_NOT_FOUND): The token's user no longer exists.
    """
    if not refresh_token:
        raise AuthenticationError(ApiErrorCode.E_SESSION_EXPIRED, "Refresh token not found")

    claims = token_service.verify_refresh(refresh_token)
    if claims is None:
        raise AuthenticationError(ApiErrorCode.E_SESSION_EXPIRED, INVALID_REFRESH_MESSAGE)

    if not spent_tokens.mark_spent(claims.jti, claims.expires_at):
        raise AuthenticationError(ApiErrorCode.E_SESSION_EXPIRED, INVALID_REFRESH_MESSAGE)

    user = get_user_or_404(db, claims.user_id)
    pair = token_service.issue(user.id, user.email)

    logger.info("session_refreshed", extra={"user_id": str(user.id)})
    return user, pair
