"""User settings routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from contently.api.deps import get_db
from contently.auth.middleware import Viewer, get_viewer
from contently.responses import success_response
from contently.schemas.auth import UpdateUserSettingsRequest
from contently.services import user_settings as user_settings_service

router = APIRouter()


@router.get("/user/settings")
def get_user_settings(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Return the viewer's settings, creating defaults on first read."""
    result = user_settings_service.get_settings_for_user(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.put("/user/settings")
def update_user_settings(
    body: UpdateUserSettingsRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Apply a partial settings update.

    Errors:
        E_INVALID_REQUEST (400): Unknown model, platform or theme.
    """
    result = user_settings_service.update_settings(db, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))
