"""Test helpers for authentication and common test operations.

Provides:
- Firebase ID token minting for bearer authentication
- Session cookie minting for cookie authentication
- User and conversation creation helpers
"""

import time
from uuid import UUID, uuid4

import jwt
from sqlalchemy.orm import Session

from contently.auth.passwords import hash_password
from contently.auth.tokens import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, TokenService
from contently.auth.verifier import firebase_issuer
from contently.db.models import Conversation, User
from tests.support.identity_tokens import (
    TEST_PROJECT_ID,
    MockFirebaseVerifier,
    generate_private_key_pem,
)

TEST_JWT_SECRET = "test-access-secret-0123456789abcdef"
TEST_JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
TEST_APP_URL = "http://localhost:3000"
TEST_PASSWORD = "secret123"

DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_identity_token(
    uid: str,
    email: str | None = None,
    expires_in: int = DEFAULT_EXPIRES_IN,
    project_id: str = TEST_PROJECT_ID,
    private_key: bytes | None = None,
    **extra_claims,
) -> str:
    """Mint a Firebase-shaped ID token signed with the test key.

    Args:
        uid: The Firebase uid (`sub` claim).
        email: Optional `email` claim.
        expires_in: Token validity in seconds from now (negative = expired).
        project_id: Sets both `iss` and `aud`.
        private_key: Signing key; defaults to the key MockFirebaseVerifier trusts.
        **extra_claims: Additional claims such as name or picture.
    """
    now = int(time.time())
    payload = {
        "sub": uid,
        "iss": firebase_issuer(project_id),
        "aud": project_id,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    if email is not None:
        payload["email"] = email

    key = private_key or MockFirebaseVerifier.get_private_key()
    return jwt.encode(payload, key, algorithm="RS256")


def mint_identity_token_with_bad_signature(uid: str, email: str | None = None) -> str:
    """Mint a token signed with a freshly generated key the verifier does not trust."""
    return mint_identity_token(uid, email=email, private_key=generate_private_key_pem())


def bearer_headers(uid: str, email: str | None = None, **token_kwargs) -> dict[str, str]:
    """Authorization header carrying a valid test ID token."""
    token = mint_identity_token(uid, email=email, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def make_token_service(**kwargs) -> TokenService:
    return TokenService(
        TEST_JWT_SECRET,
        TEST_JWT_REFRESH_SECRET,
        app_origin=TEST_APP_URL,
        **kwargs,
    )


def session_cookies(token_service: TokenService, user: User) -> dict[str, str]:
    """Cookie values a logged-in browser would hold for this user."""
    pair = token_service.issue(user.id, user.email)
    return {
        ACCESS_TOKEN_COOKIE: pair.access_token,
        REFRESH_TOKEN_COOKIE: pair.refresh_token,
    }


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid4().hex[:8]}@example.com"


def create_password_user(
    db: Session,
    email: str | None = None,
    password: str = TEST_PASSWORD,
    full_name: str = "Test User",
) -> User:
    """Insert and commit a password account."""
    user = User(
        email=email or unique_email(),
        password_hash=hash_password(password),
        full_name=full_name,
    )
    db.add(user)
    db.commit()
    return user


def create_identity_user(db: Session, uid: str | None = None, email: str | None = None) -> User:
    """Insert and commit a Firebase-only account."""
    user = User(
        email=email or unique_email("firebase"),
        firebase_uid=uid or f"uid-{uuid4().hex[:12]}",
        full_name="Firebase User",
    )
    db.add(user)
    db.commit()
    return user


def create_conversation(
    db: Session,
    owner_id: UUID,
    title: str = "Test conversation",
    target_platform: str = "general",
    llm_model: str = "llama-3.1-8b-instant",
) -> Conversation:
    """Insert and commit an empty conversation."""
    conversation = Conversation(
        owner_user_id=owner_id,
        title=title,
        target_platform=target_platform,
        llm_model=llm_model,
        next_seq=1,
    )
    db.add(conversation)
    db.commit()
    return conversation


def cookie_header(cookies: dict[str, str]) -> dict[str, str]:
    """Explicit Cookie header; takes precedence over the client's cookie jar."""
    return {"Cookie": "; ".join(f"{name}={value}" for name, value in cookies.items())}
