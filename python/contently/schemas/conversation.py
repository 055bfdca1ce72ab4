"""Conversation and Message Pydantic schemas.

Contains request and response models for conversation and message endpoints.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from contently.db.models import LLMModel, Platform

# Valid message roles - must match DB constraint
MESSAGE_ROLES = Literal["user", "assistant", "system"]

# Max content length
MAX_MESSAGE_CONTENT_LENGTH = 20000


# =============================================================================
# Response Schemas
# =============================================================================


class ConversationOut(BaseModel):
    """Response schema for a conversation.

    Conversations are owned by exactly one user and only the owner can see them.
    """

    id: UUID
    title: str
    target_platform: str
    llm_model: str
    message_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageOut(BaseModel):
    """Response schema for a message.

    Messages are immutable after creation and ordered by seq within a
    conversation.
    """

    id: UUID
    conversation_id: UUID
    seq: int
    role: str  # "user" | "assistant" | "system"
    content: str
    thinking_content: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime


class ConversationDetailOut(BaseModel):
    """A conversation together with its ordered messages."""

    conversation: ConversationOut
    messages: list[MessageOut]


class PageInfo(BaseModel):
    """Pagination information for list responses."""

    next_cursor: str | None = None


class PlatformSuitabilityOut(BaseModel):
    suitable: bool
    issues: list[str]


class MessageAnalyticsOut(BaseModel):
    """Lightweight analysis of a generated assistant message."""

    character_count: int
    hashtags: int
    emojis: int
    optimization_score: int
    platform_suitability: PlatformSuitabilityOut


class GenerationErrorOut(BaseModel):
    """Why the assistant reply is missing. The user message was still saved."""

    code: str
    message: str


class SendMessageOut(BaseModel):
    """Result of posting a message.

    assistant_message and analytics are null when the message was not a user
    message or when generation failed; generation_error is set only in the
    latter case.
    """

    user_message: MessageOut
    assistant_message: MessageOut | None = None
    analytics: MessageAnalyticsOut | None = None
    generation_error: GenerationErrorOut | None = None


# =============================================================================
# Request Schemas
# =============================================================================


class CreateConversationRequest(BaseModel):
    """Request body for POST /conversations.

    Omitted platform/model fall back to the user's settings, then to the
    global defaults.
    """

    title: str
    target_platform: Platform | None = None
    llm_model: LLMModel | None = None

    model_config = ConfigDict(extra="forbid")


class UpdateConversationRequest(BaseModel):
    """Request body for PUT /conversations/{id}. Every field is optional."""

    title: str | None = None
    target_platform: Platform | None = None
    llm_model: LLMModel | None = None

    model_config = ConfigDict(extra="forbid")


class CreateMessageRequest(BaseModel):
    """Request body for POST /conversations/{id}/messages.

    model and platform default to the conversation's own settings.
    """

    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CONTENT_LENGTH)
    role: MESSAGE_ROLES = "user"
    model: LLMModel | None = None
    platform: Platform | None = None

    model_config = ConfigDict(extra="forbid")
