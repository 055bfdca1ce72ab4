"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from contently.api.routes.auth import router as auth_router
from contently.api.routes.conversations import router as conversations_router
from contently.api.routes.health import router as health_router
from contently.api.routes.settings import router as settings_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(auth_router, tags=["auth"])
    api_router.include_router(conversations_router, tags=["conversations"])
    api_router.include_router(settings_router, tags=["user"])
    return api_router


__all__ = ["create_api_router"]
