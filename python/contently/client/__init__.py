"""Python client for the ContentlyAI API."""

from contently.client.http import (
    MAX_RETRIES,
    SESSION_EXPIRED_MESSAGE,
    ContentlyClient,
    SessionExpiredError,
)
from contently.client.optimistic import (
    InvalidTransitionError,
    MessageState,
    OptimisticMessage,
    SendOutcome,
)

__all__ = [
    "ContentlyClient",
    "SessionExpiredError",
    "MAX_RETRIES",
    "SESSION_EXPIRED_MESSAGE",
    "OptimisticMessage",
    "MessageState",
    "InvalidTransitionError",
    "SendOutcome",
]
