"""Pytest configuration and fixtures for ContentlyAI tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database (StaticPool, one shared
  connection) with the schema created from the ORM metadata
- The app is built with injected collaborators: test Firebase verifier,
  token service, spent-token store and a generation service backed by a
  scripted adapter, so no test reaches Google, Redis or Groq
"""

import os
from collections.abc import Generator

# Required settings must exist before contently.config is first used
os.environ.setdefault("CONTENTLY_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")
os.environ.setdefault("GROQ_API_KEY", "gsk-test")
os.environ.setdefault("FIREBASE_PROJECT_ID", "contently-test")
os.environ.setdefault("APP_URL", "http://localhost:3000")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from contently.app import create_app
from contently.auth.spent_tokens import SpentTokenStore
from contently.auth.tokens import TokenService
from contently.config import clear_settings_cache
from contently.db.models import Base
from contently.db.session import create_session_factory
from contently.services.llm import GenerationQueue, GenerationService, ResponseCache
from tests.helpers import make_token_service
from tests.support.fake_llm import FakeLLMAdapter
from tests.support.identity_tokens import MockFirebaseVerifier


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for arranging data and checking results.

    Commit after writes: the app's sessions share the same connection.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def test_verifier() -> MockFirebaseVerifier:
    return MockFirebaseVerifier()


@pytest.fixture
def token_service() -> TokenService:
    return make_token_service()


@pytest.fixture
def spent_tokens() -> SpentTokenStore:
    return SpentTokenStore()


@pytest.fixture
def fake_llm() -> FakeLLMAdapter:
    return FakeLLMAdapter()


@pytest.fixture
def generation_service(fake_llm: FakeLLMAdapter) -> GenerationService:
    return GenerationService(
        fake_llm,
        GenerationQueue(max_concurrent=2, request_delay_s=0),
        ResponseCache(),
        api_key="gsk-test",
    )


@pytest.fixture
def app(
    session_factory,
    test_verifier,
    token_service,
    spent_tokens,
    generation_service,
) -> FastAPI:
    """App with auth middleware, wired to the test database and fakes."""
    return create_app(
        token_verifier=test_verifier,
        session_factory=session_factory,
        token_service=token_service,
        spent_tokens=spent_tokens,
        generation_service=generation_service,
    )


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client; its cookie jar keeps session cookies between requests."""
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
