"""User settings service layer.

Settings rows are created lazily with the global defaults on first read.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from contently.db.models import (
    DEFAULT_LLM_MODEL,
    DEFAULT_PLATFORM,
    DEFAULT_THEME,
    UserSettings,
    utcnow,
)
from contently.logging import get_logger
from contently.schemas.auth import UpdateUserSettingsRequest, UserSettingsOut

logger = get_logger(__name__)


def get_or_create_settings(db: Session, user_id: UUID) -> UserSettings:
    """Load the user's settings row, inserting defaults if missing.

    Flushes but does not commit.
    """
    settings = db.get(UserSettings, user_id)
    if settings is None:
        settings = UserSettings(
            user_id=user_id,
            default_llm_model=DEFAULT_LLM_MODEL.value,
            default_platform=DEFAULT_PLATFORM.value,
            theme=DEFAULT_THEME.value,
        )
        db.add(settings)
        db.flush()
        logger.info("user_settings_created", user_id=str(user_id))
    return settings


def settings_to_out(settings: UserSettings) -> UserSettingsOut:
    return UserSettingsOut(
        default_llm_model=settings.default_llm_model,
        default_platform=settings.default_platform,
        theme=settings.theme,
    )


def get_settings_for_user(db: Session, user_id: UUID) -> UserSettingsOut:
    settings = get_or_create_settings(db, user_id)
    db.commit()
    return settings_to_out(settings)


def update_settings(db: Session, user_id: UUID, body: UpdateUserSettingsRequest) -> UserSettingsOut:
    """Apply a partial settings update. Omitted fields keep their value."""
    settings = get_or_create_settings(db, user_id)

    if body.default_llm_model is not None:
        settings.default_llm_model = body.default_llm_model.value
    if body.default_platform is not None:
        settings.default_platform = body.default_platform.value
    if body.theme is not None:
        settings.theme = body.theme.value
    settings.updated_at = utcnow()

    db.commit()
    return settings_to_out(settings)
