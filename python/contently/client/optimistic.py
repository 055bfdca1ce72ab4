"""Optimistic local copy of a message that is being sent.

A message shown before the server has answered is PENDING. It becomes
CONFIRMED once the server has persisted it, even when the assistant reply
then fails, and ROLLED_BACK only when the server did not persist it at all.
Both outcomes are final.

    PENDING ──confirm()──▶ CONFIRMED
       │
       └───roll_back()──▶ ROLLED_BACK
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4


class MessageState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class InvalidTransitionError(Exception):
    """Raised when a settled message is confirmed or rolled back again."""


def _local_id() -> str:
    return f"temp-{uuid4()}"


@dataclass
class OptimisticMessage:
    """A locally displayed message awaiting the server's answer.

    Attributes:
        content: The text the user sent.
        role: Message role sent to the server.
        local_id: Placeholder id used until the server id is known.
        state: Current state.
        server_message: The persisted message, once confirmed.
        error: Why the message was rolled back.
    """

    content: str
    role: str = "user"
    local_id: str = field(default_factory=_local_id)
    state: MessageState = MessageState.PENDING
    server_message: dict[str, Any] | None = None
    error: str | None = None

    @property
    def id(self) -> str:
        """Server id when confirmed, otherwise the local placeholder."""
        if self.server_message is not None:
            return str(self.server_message["id"])
        return self.local_id

    @property
    def is_visible(self) -> bool:
        return self.state != MessageState.ROLLED_BACK

    def confirm(self, server_message: dict[str, Any]) -> None:
        self._leave_pending(MessageState.CONFIRMED)
        self.server_message = server_message

    def roll_back(self, error: str) -> None:
        self._leave_pending(MessageState.ROLLED_BACK)
        self.error = error

    def _leave_pending(self, target: MessageState) -> None:
        if self.state != MessageState.PENDING:
            raise InvalidTransitionError(
                f"cannot move message {self.local_id} from {self.state.value} to {target.value}"
            )
        self.state = target


@dataclass
class SendOutcome:
    """What the caller renders after a send.

    message is CONFIRMED whenever the server saved the user message.
    assistant_message is None when generation failed (generation_error set)
    or when the message was rolled back (error set).
    """

    message: OptimisticMessage
    assistant_message: dict[str, Any] | None = None
    analytics: dict[str, Any] | None = None
    generation_error: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
