"""Application settings loaded from environment variables.

Environment Configuration:
    CONTENTLY_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    APP_URL: Browser origin allowed by CORS (default http://localhost:3000)
    COOKIE_DOMAIN: Domain attribute for session cookies (optional)

Session Configuration (required in all environments):
    JWT_SECRET: HS256 secret for access tokens
    JWT_REFRESH_SECRET: HS256 secret for refresh tokens (must differ from JWT_SECRET)

Identity Provider Configuration (required in all environments):
    FIREBASE_PROJECT_ID: Firebase project; sets the expected issuer and audience

Content Generation:
    GROQ_API_KEY: API key for the Groq chat completions endpoint (required)
    GROQ_BASE_URL: Override for the OpenAI-compatible endpoint base

Redis:
    REDIS_URL: Redis connection string for the spent refresh-token store.
               When unset, spent tokens are tracked in-process.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


# Secrets shorter than this are rejected outside local/test
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - JWT_SECRET, JWT_REFRESH_SECRET, GROQ_API_KEY, FIREBASE_PROJECT_ID are required
      in all environments
    - The two JWT secrets must differ
    - In staging/prod both JWT secrets must be at least 32 characters
    """

    contently_env: Environment = Field(default=Environment.LOCAL, alias="CONTENTLY_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    app_url: str = Field(default="http://localhost:3000", alias="APP_URL")
    cookie_domain: str | None = Field(default=None, alias="COOKIE_DOMAIN")

    # Session token settings
    jwt_secret: str | None = Field(default=None, alias="JWT_SECRET")
    jwt_refresh_secret: str | None = Field(default=None, alias="JWT_REFRESH_SECRET")
    access_token_ttl_s: int = Field(default=15 * 60, alias="ACCESS_TOKEN_TTL_S")  # 15 minutes
    refresh_token_ttl_s: int = Field(
        default=7 * 24 * 60 * 60, alias="REFRESH_TOKEN_TTL_S"
    )  # 7 days

    # Firebase identity provider
    firebase_project_id: str | None = Field(default=None, alias="FIREBASE_PROJECT_ID")

    # Groq content generation
    groq_api_key: str | None = Field(default=None, alias="GROQ_API_KEY")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1", alias="GROQ_BASE_URL")
    groq_timeout_s: int = Field(default=60, alias="GROQ_TIMEOUT_S")

    # Outbound generation queue and response cache
    generation_max_concurrent: int = Field(default=2, alias="GENERATION_MAX_CONCURRENT")
    generation_request_delay_s: float = Field(default=1.0, alias="GENERATION_REQUEST_DELAY_S")
    generation_cache_ttl_s: int = Field(default=600, alias="GENERATION_CACHE_TTL_S")  # 10 minutes

    # Redis (spent refresh-token store)
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Fail fast when a required secret is missing or unsafe."""
        missing = []
        if not self.jwt_secret:
            missing.append("JWT_SECRET")
        if not self.jwt_refresh_secret:
            missing.append("JWT_REFRESH_SECRET")
        if not self.groq_api_key:
            missing.append("GROQ_API_KEY")
        if not self.firebase_project_id:
            missing.append("FIREBASE_PROJECT_ID")

        if missing:
            raise ValueError(f"Missing required settings: {', '.join(missing)}")

        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different values")

        if self.contently_env in (Environment.STAGING, Environment.PROD):
            for name, value in (
                ("JWT_SECRET", self.jwt_secret),
                ("JWT_REFRESH_SECRET", self.jwt_refresh_secret),
            ):
                if len(value) < MIN_SECRET_LENGTH:  # type: ignore[arg-type]
                    raise ValueError(
                        f"{name} must be at least {MIN_SECRET_LENGTH} characters "
                        f"for CONTENTLY_ENV={self.contently_env.value}"
                    )

        if self.generation_max_concurrent < 1:
            raise ValueError("GENERATION_MAX_CONCURRENT must be at least 1")

        return self

    @property
    def secure_cookies(self) -> bool:
        """Whether session cookies carry the Secure attribute."""
        return self.contently_env in (Environment.STAGING, Environment.PROD)

    @property
    def normalized_app_url(self) -> str:
        """Return the app origin with trailing slash stripped."""
        return self.app_url.rstrip("/")

    @property
    def groq_chat_url(self) -> str:
        """Full URL of the chat completions endpoint."""
        return f"{self.groq_base_url.rstrip('/')}/chat/completions"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
