"""FastAPI dependencies for route handlers.

Shared collaborators are built once in create_app / the lifespan and stored
on app.state; these dependencies hand them to routes.
"""

from fastapi import Request

from contently.auth.session import SessionResolver
from contently.auth.spent_tokens import SpentTokenStore
from contently.auth.tokens import TokenService
from contently.db.session import get_db
from contently.services.llm import GenerationService

__all__ = [
    "get_db",
    "get_generation_service",
    "get_session_resolver",
    "get_spent_tokens",
    "get_token_service",
]


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_spent_tokens(request: Request) -> SpentTokenStore:
    return request.app.state.spent_tokens


def get_session_resolver(request: Request) -> SessionResolver:
    """Resolver for public routes that inspect credentials themselves (login, register)."""
    return request.app.state.session_resolver


def get_generation_service(request: Request) -> GenerationService:
    """Get the shared generation service from app state.

    The service (and the queue and cache it owns) is created in the lifespan
    with the shared httpx.AsyncClient.
    """
    return request.app.state.generation_service
