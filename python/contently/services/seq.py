"""Sequence assignment helper for message ordering.

Each conversation carries a `next_seq` counter (starts at 1). Assigning a
seq locks the conversation row (SELECT ... FOR UPDATE on PostgreSQL),
reads the counter, increments it and bumps the conversation's updated_at.
Concurrent appends to one conversation therefore serialize, and seq order is
creation order.

Must be called within an existing transaction context.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from contently.db.models import Conversation, utcnow
from contently.logging import get_logger

logger = get_logger(__name__)


def assign_next_message_seq(db: Session, conversation_id: UUID) -> int:
    """Atomically assign the next message sequence number for a conversation.

    This function does NOT open or commit its own transaction.

    Args:
        db: Database session (must be in a transaction)
        conversation_id: UUID of the conversation to assign seq for

    Returns:
        The sequence number to use for the new message

    Raises:
        ValueError: If the conversation does not exist
    """
    conversation = db.execute(
        select(Conversation).where(Conversation.id == conversation_id).with_for_update()
    ).scalar_one_or_none()

    if conversation is None:
        raise ValueError(f"Conversation {conversation_id} not found")

    current_seq = conversation.next_seq
    conversation.next_seq = current_seq + 1
    conversation.updated_at = utcnow()
    db.flush()

    logger.debug(
        "assigned_message_seq",
        conversation_id=str(conversation_id),
        seq=current_seq,
    )

    return current_seq
