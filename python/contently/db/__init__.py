"""Database module for ContentlyAI.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from contently.db.engine import create_db_engine, get_engine
from contently.db.models import (
    Base,
    Conversation,
    LLMModel,
    Message,
    MessageRole,
    Platform,
    Theme,
    User,
    UserSettings,
)
from contently.db.session import create_session_factory, get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "Platform",
    "LLMModel",
    "MessageRole",
    "Theme",
    # Models
    "User",
    "Conversation",
    "Message",
    "UserSettings",
]
