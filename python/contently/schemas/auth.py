"""Authentication and user settings schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from contently.db.models import LLMModel, Platform, Theme


class LoginRequest(BaseModel):
    """Password login body. Bearer logins send no body."""

    email: str | None = None
    password: str | None = None


class RegisterRequest(BaseModel):
    """Registration body.

    password is required unless the request carries a Firebase bearer token.
    email is required for password registration; bearer registration takes it
    from the verified token when omitted.
    """

    email: str | None = None
    password: str | None = None
    full_name: str | None = None


class UserOut(BaseModel):
    """Identity summary returned by login, register and /auth/me."""

    id: UUID
    email: str
    full_name: str
    avatar_url: str | None = None
    has_password: bool
    has_identity_provider: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthSessionOut(BaseModel):
    """Body for /auth/me: the identity plus how this request authenticated."""

    user: UserOut
    authenticated_via: str  # "identity_provider" | "session"


class UserSettingsOut(BaseModel):
    default_llm_model: str
    default_platform: str
    theme: str

    model_config = ConfigDict(from_attributes=True)


class UpdateUserSettingsRequest(BaseModel):
    """Partial update for PUT /user/settings."""

    default_llm_model: LLMModel | None = None
    default_platform: Platform | None = None
    theme: Theme | None = None

    model_config = ConfigDict(extra="forbid")
