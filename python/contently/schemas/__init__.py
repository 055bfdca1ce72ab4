"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from contently.schemas.auth import (
    AuthSessionOut,
    LoginRequest,
    RegisterRequest,
    UpdateUserSettingsRequest,
    UserOut,
    UserSettingsOut,
)
from contently.schemas.conversation import (
    ConversationDetailOut,
    ConversationOut,
    CreateConversationRequest,
    CreateMessageRequest,
    GenerationErrorOut,
    MessageAnalyticsOut,
    MessageOut,
    PageInfo,
    PlatformSuitabilityOut,
    SendMessageOut,
    UpdateConversationRequest,
)

__all__ = [
    # Auth
    "AuthSessionOut",
    "LoginRequest",
    "RegisterRequest",
    "UserOut",
    # Settings
    "UpdateUserSettingsRequest",
    "UserSettingsOut",
    # Conversations
    "ConversationDetailOut",
    "ConversationOut",
    "CreateConversationRequest",
    "UpdateConversationRequest",
    "PageInfo",
    # Messages
    "CreateMessageRequest",
    "GenerationErrorOut",
    "MessageAnalyticsOut",
    "MessageOut",
    "PlatformSuitabilityOut",
    "SendMessageOut",
]
