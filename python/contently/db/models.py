"""SQLAlchemy ORM models for ContentlyAI.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Enums are defined as Python enums and enforced with CHECK constraints.

Column types are dialect-neutral (Uuid, DateTime with timezone, JSON) and
defaults are generated in Python, so the same metadata runs on PostgreSQL
in deployment and on SQLite in unit tests.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Timezone-aware current time used for all timestamp defaults."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class Platform(str, PyEnum):
    """Social platforms content can be tailored for."""

    twitter = "twitter"
    linkedin = "linkedin"
    instagram = "instagram"
    facebook = "facebook"
    tiktok = "tiktok"
    youtube = "youtube"
    general = "general"


class LLMModel(str, PyEnum):
    """Groq-hosted models a conversation may target."""

    llama_3_1_8b_instant = "llama-3.1-8b-instant"
    mixtral_8x7b_32768 = "mixtral-8x7b-32768"
    gemma_7b_it = "gemma-7b-it"
    deepseek_r1_distill_llama_70b = "deepseek-r1-distill-llama-70b"


class MessageRole(str, PyEnum):
    """Roles for messages in a conversation."""

    user = "user"
    assistant = "assistant"
    system = "system"


class Theme(str, PyEnum):
    """UI theme preference stored with user settings."""

    light = "light"
    dark = "dark"
    system = "system"


DEFAULT_PLATFORM = Platform.general
DEFAULT_LLM_MODEL = LLMModel.llama_3_1_8b_instant
DEFAULT_THEME = Theme.light


def _in_list(column: str, enum_cls: type[PyEnum]) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    A user signs in with a password, with a Firebase ID token, or both.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    firebase_uid: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "password_hash IS NOT NULL OR firebase_uid IS NOT NULL",
            name="ck_users_authenticatable",
        ),
    )

    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="owner"
    )
    settings: Mapped["UserSettings | None"] = relationship(
        "UserSettings", back_populates="user", uselist=False
    )


class Conversation(Base):
    """Conversation model - a thread of messages owned by one user."""

    __tablename__ = "conversations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    target_platform: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_PLATFORM.value
    )
    llm_model: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_LLM_MODEL.value)
    next_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "length(title) >= 1 AND length(title) <= 200",
            name="ck_conversations_title_length",
        ),
        CheckConstraint(
            _in_list("target_platform", Platform), name="ck_conversations_target_platform"
        ),
        CheckConstraint(_in_list("llm_model", LLMModel), name="ck_conversations_llm_model"),
        CheckConstraint("next_seq >= 1", name="ck_conversations_next_seq_positive"),
        Index("ix_conversations_owner_updated", "owner_user_id", "updated_at"),
    )

    owner: Mapped["User"] = relationship("User", back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.seq",
    )


class Message(Base):
    """Message model - a single immutable message in a conversation."""

    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    conversation_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    thinking_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Column is "metadata"; the attribute name avoids DeclarativeBase.metadata
    message_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("seq >= 1", name="ck_messages_seq_positive"),
        CheckConstraint(_in_list("role", MessageRole), name="ck_messages_role"),
        Index("uix_messages_conversation_seq", "conversation_id", "seq", unique=True),
    )

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")


class UserSettings(Base):
    """Per-user defaults for new conversations and UI theme."""

    __tablename__ = "user_settings"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    default_llm_model: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_LLM_MODEL.value
    )
    default_platform: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_PLATFORM.value
    )
    theme: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_THEME.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            _in_list("default_llm_model", LLMModel), name="ck_user_settings_default_llm_model"
        ),
        CheckConstraint(
            _in_list("default_platform", Platform), name="ck_user_settings_default_platform"
        ),
        CheckConstraint(_in_list("theme", Theme), name="ck_user_settings_theme"),
    )

    user: Mapped["User"] = relationship("User", back_populates="settings")
