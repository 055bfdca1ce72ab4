"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, CORS middleware,
request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- AppCORSMiddleware is added after AuthMiddleware so preflights are answered
  before the auth gate, and 401s still carry CORS headers

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AppCORSMiddleware (answers OPTIONS, decorates responses)
3. AuthMiddleware (resolves bearer token or session cookie, sets viewer)
4. Route handler

Shared collaborators (app.state):
- session_factory, token_service, session_resolver: built in create_app
- httpx_client, generation_service (queue + cache), spent_tokens: built in
  the lifespan unless injected, closed at shutdown
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from contently.api.routes import create_api_router
from contently.auth.middleware import AuthMiddleware
from contently.auth.session import SessionResolver
from contently.auth.spent_tokens import SpentTokenStore
from contently.auth.tokens import TokenService
from contently.auth.verifier import FirebaseJwksVerifier
from contently.config import get_settings
from contently.db.session import create_session_factory
from contently.errors import ApiError, ApiErrorCode
from contently.logging import configure_logging, get_logger
from contently.middleware.cors import AppCORSMiddleware
from contently.middleware.request_id import RequestIDMiddleware
from contently.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from contently.services.llm import GenerationQueue, GenerationService, GroqAdapter, ResponseCache
from contently.services.users import create_identity_callback

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_token_verifier() -> FirebaseJwksVerifier:
    """Create the Firebase ID token verifier for the configured project."""
    settings = get_settings()
    return FirebaseJwksVerifier(project_id=settings.firebase_project_id)  # type: ignore[arg-type]


def create_generation_service(client: httpx.AsyncClient) -> GenerationService:
    """Compose the Groq adapter with one queue and one cache for this process."""
    settings = get_settings()
    return GenerationService(
        GroqAdapter(client, chat_url=settings.groq_chat_url),
        GenerationQueue(
            max_concurrent=settings.generation_max_concurrent,
            request_delay_s=settings.generation_request_delay_s,
        ),
        ResponseCache(),
        api_key=settings.groq_api_key,  # type: ignore[arg-type]
        cache_ttl_s=settings.generation_cache_ttl_s,
        timeout_s=settings.groq_timeout_s,
    )


def create_redis_client(redis_url: str | None):
    """Connect to Redis, or return None when unset or unreachable."""
    if not redis_url:
        return None
    try:
        import redis

        redis_client = redis.Redis.from_url(redis_url, decode_responses=True, socket_timeout=5)
        redis_client.ping()
        logger.info("redis_client_initialized", redis_url=redis_url[:30] + "...")
        return redis_client
    except Exception as e:
        logger.warning("redis_client_init_failed", error=str(e))
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources.

    - Creates the shared httpx.AsyncClient used for Groq calls
    - Creates the generation service (queue + cache) unless one was injected
    - Creates the spent refresh-token store, Redis-backed when REDIS_URL is set
    - Cleans up on shutdown
    """
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(60.0, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )

    if app.state.generation_service is None:
        app.state.generation_service = create_generation_service(app.state.httpx_client)
        logger.info(
            "generation_service_initialized",
            max_concurrent=settings.generation_max_concurrent,
            request_delay_s=settings.generation_request_delay_s,
            cache_ttl_s=settings.generation_cache_ttl_s,
        )

    redis_client = None
    if app.state.spent_tokens is None:
        redis_client = create_redis_client(settings.redis_url)
        app.state.spent_tokens = SpentTokenStore(redis_client=redis_client)
    app.state.redis_client = redis_client

    yield

    # Shutdown: close HTTP client and Redis
    await app.state.httpx_client.aclose()
    if redis_client is not None:
        try:
            redis_client.close()
        except Exception as e:
            logger.warning("redis_client_close_failed", error=str(e))
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier=None,
    session_factory=None,
    token_service: TokenService | None = None,
    spent_tokens: SpentTokenStore | None = None,
    generation_service: GenerationService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional identity-provider verifier (for testing).
        session_factory: Optional sessionmaker (for testing against another engine).
        token_service: Optional session token service.
        spent_tokens: Optional spent refresh-token store.
        generation_service: Optional generation service (for testing without Groq).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="ContentlyAI API",
        description="Backend API for ContentlyAI - platform-tailored social media content",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    verifier = token_verifier or create_token_verifier()
    token_service = token_service or TokenService.from_settings(settings)
    session_factory = session_factory or create_session_factory()

    app.state.session_factory = session_factory
    app.state.token_service = token_service
    app.state.session_resolver = SessionResolver(verifier, token_service)
    app.state.spent_tokens = spent_tokens
    app.state.generation_service = generation_service

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Handle JSON parsing errors specifically
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed ids and enums)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    # Add auth middleware (runs on all requests except public paths)
    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            resolver=app.state.session_resolver,
            identity_callback=create_identity_callback(session_factory),
        )
        logger.info("auth_middleware_enabled", env=settings.contently_env.value)

    # Added after auth so it runs before it
    app.add_middleware(
        AppCORSMiddleware,
        app_origin=settings.normalized_app_url,
        routes=app.router.routes,
    )

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
