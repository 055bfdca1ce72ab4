"""Conversation and Message service layer.

All operations:
- Enforce owner-only access, with the owner id in every lookup's WHERE clause
- Use E_CONVERSATION_NOT_FOUND for both missing and foreign conversations (prevent probing)
- Support cursor-based pagination for the conversation list

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

import base64
import json
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.orm import Session

from contently.db.models import Conversation, Message, utcnow
from contently.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from contently.logging import get_logger
from contently.schemas.conversation import (
    ConversationDetailOut,
    ConversationOut,
    CreateConversationRequest,
    MessageOut,
    PageInfo,
    UpdateConversationRequest,
)
from contently.services.seq import assign_next_message_seq
from contently.services.user_settings import get_or_create_settings

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Pagination limits
DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 100

MAX_TITLE_LENGTH = 200


# =============================================================================
# Cursor Encoding/Decoding
# =============================================================================


def encode_conversation_cursor(updated_at: datetime, id: UUID) -> str:
    """Encode a cursor for conversation pagination.

    Cursor payload: {"updated_at": "<iso>", "id": "<uuid>"}
    Encoding: base64url without padding
    """
    payload = {"updated_at": updated_at.isoformat(), "id": str(id)}
    json_bytes = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(json_bytes).decode("ascii").rstrip("=")


def decode_conversation_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Decode a cursor for conversation pagination.

    Returns:
        Tuple of (updated_at, id)

    Raises:
        InvalidRequestError: If cursor is malformed or unparseable.
    """
    try:
        # Add padding if needed
        padding = 4 - len(cursor) % 4
        if padding != 4:
            cursor += "=" * padding

        json_bytes = base64.urlsafe_b64decode(cursor)
        payload = json.loads(json_bytes.decode("utf-8"))

        updated_at = datetime.fromisoformat(payload["updated_at"])
        id = UUID(payload["id"])
        return updated_at, id
    except (ValueError, KeyError, TypeError):
        raise InvalidRequestError(ApiErrorCode.E_INVALID_CURSOR, "Invalid cursor") from None


# =============================================================================
# Helper Functions
# =============================================================================


def clamp_limit(limit: int) -> int:
    """Clamp limit to valid range [MIN_LIMIT, MAX_LIMIT]."""
    return min(max(limit, MIN_LIMIT), MAX_LIMIT)


def normalize_title(title: str | None) -> str:
    """Strip a title and enforce 1..200 characters.

    Raises:
        InvalidRequestError(E_TITLE_INVALID)
    """
    title = (title or "").strip()
    if not title:
        raise InvalidRequestError(
            ApiErrorCode.E_TITLE_INVALID, "Title is required to create a new conversation"
        )
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_TITLE_INVALID,
            f"Title must be at most {MAX_TITLE_LENGTH} characters",
        )
    return title


def get_conversation_for_viewer_or_404(
    db: Session, viewer_id: UUID, conversation_id: UUID
) -> Conversation:
    """Load a conversation by id and owner in a single query.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            OR viewer is not the owner.
    """
    conversation = db.execute(
        select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.owner_user_id == viewer_id,
        )
    ).scalar_one_or_none()
    if conversation is None:
        raise NotFoundError(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")
    return conversation


def get_message_count(db: Session, conversation_id: UUID) -> int:
    """Get the count of messages in a conversation."""
    result = db.scalar(
        select(func.count()).select_from(Message).where(Message.conversation_id == conversation_id)
    )
    return result or 0


def conversation_to_out(conversation: Conversation, message_count: int) -> ConversationOut:
    """Convert Conversation ORM model to ConversationOut schema."""
    return ConversationOut(
        id=conversation.id,
        title=conversation.title,
        target_platform=conversation.target_platform,
        llm_model=conversation.llm_model,
        message_count=message_count,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def message_to_out(message: Message) -> MessageOut:
    """Convert Message ORM model to MessageOut schema."""
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        seq=message.seq,
        role=message.role,
        content=message.content,
        thinking_content=message.thinking_content,
        metadata=message.message_metadata,
        created_at=message.created_at,
    )


def load_ordered_messages(db: Session, conversation_id: UUID) -> list[Message]:
    """Messages of a conversation in creation order (seq, then created_at, id)."""
    return list(
        db.scalars(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.seq.asc(), Message.created_at.asc(), Message.id.asc())
        )
    )


def append_message(
    db: Session,
    conversation_id: UUID,
    role: str,
    content: str,
    *,
    thinking_content: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Message:
    """Insert a message at the next seq and bump the conversation's updated_at.

    Flushes but does not commit; the caller owns the transaction.
    """
    seq = assign_next_message_seq(db, conversation_id)
    message = Message(
        conversation_id=conversation_id,
        seq=seq,
        role=role,
        content=content,
        thinking_content=thinking_content,
        message_metadata=metadata,
    )
    db.add(message)
    db.flush()
    return message


# =============================================================================
# Service Functions
# =============================================================================


def create_conversation(
    db: Session, viewer_id: UUID, body: CreateConversationRequest
) -> ConversationOut:
    """Create a new empty conversation.

    Args:
        db: Database session.
        viewer_id: The ID of the user creating the conversation.
        body: Title plus optional platform/model.

    Returns:
        The created conversation with message_count=0.

    Raises:
        InvalidRequestError(E_TITLE_INVALID): If the title is blank or too long.
    """
    title = normalize_title(body.title)

    settings = get_or_create_settings(db, viewer_id)
    target_platform = (
        body.target_platform.value if body.target_platform else settings.default_platform
    )
    llm_model = body.llm_model.value if body.llm_model else settings.default_llm_model

    conversation = Conversation(
        owner_user_id=viewer_id,
        title=title,
        target_platform=target_platform,
        llm_model=llm_model,
        next_seq=1,
    )

    db.add(conversation)
    db.flush()
    db.commit()

    logger.info(
        "conversation_created",
        conversation_id=str(conversation.id),
        target_platform=target_platform,
        llm_model=llm_model,
    )

    return conversation_to_out(conversation, message_count=0)


def get_conversation_with_messages(
    db: Session, viewer_id: UUID, conversation_id: UUID
) -> ConversationDetailOut:
    """Get a conversation by ID together with its ordered messages.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            or viewer is not the owner.
    """
    conversation = get_conversation_for_viewer_or_404(db, viewer_id, conversation_id)
    messages = load_ordered_messages(db, conversation_id)
    return ConversationDetailOut(
        conversation=conversation_to_out(conversation, len(messages)),
        messages=[message_to_out(m) for m in messages],
    )


def list_conversations(
    db: Session,
    viewer_id: UUID,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
) -> tuple[list[ConversationOut], PageInfo]:
    """List conversations owned by the viewer, most recently updated first.

    Args:
        db: Database session.
        viewer_id: The ID of the viewer.
        limit: Maximum number of results (clamped to 1-100).
        cursor: Opaque pagination cursor.

    Returns:
        Tuple of (conversations, page_info).

    Raises:
        InvalidRequestError(E_INVALID_CURSOR): If cursor is malformed.
    """
    limit = clamp_limit(limit)

    message_count = (
        select(func.count())
        .select_from(Message)
        .where(Message.conversation_id == Conversation.id)
        .correlate(Conversation)
        .scalar_subquery()
    )

    query = select(Conversation, message_count).where(Conversation.owner_user_id == viewer_id)

    if cursor:
        cursor_updated_at, cursor_id = decode_conversation_cursor(cursor)

        # DESC ordering: (updated_at, id) < (cursor.updated_at, cursor.id)
        query = query.where(
            or_(
                Conversation.updated_at < cursor_updated_at,
                and_(
                    Conversation.updated_at == cursor_updated_at,
                    Conversation.id < cursor_id,
                ),
            )
        )

    # Fetch one extra to check for more
    rows = db.execute(
        query.order_by(Conversation.updated_at.desc(), Conversation.id.desc()).limit(limit + 1)
    ).all()

    has_more = len(rows) > limit
    if has_more:
        rows = rows[:limit]

    conversations = [conversation_to_out(row[0], row[1]) for row in rows]

    # Build next_cursor from last item
    next_cursor = None
    if has_more and conversations:
        last = conversations[-1]
        next_cursor = encode_conversation_cursor(last.updated_at, last.id)

    return conversations, PageInfo(next_cursor=next_cursor)


def update_conversation(
    db: Session,
    viewer_id: UUID,
    conversation_id: UUID,
    body: UpdateConversationRequest,
) -> ConversationOut:
    """Update title, model and/or platform. Always bumps updated_at.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            or viewer is not the owner.
        InvalidRequestError(E_TITLE_INVALID): If a provided title is blank or too long.
    """
    conversation = get_conversation_for_viewer_or_404(db, viewer_id, conversation_id)

    if body.title is not None:
        conversation.title = normalize_title(body.title)
    if body.llm_model is not None:
        conversation.llm_model = body.llm_model.value
    if body.target_platform is not None:
        conversation.target_platform = body.target_platform.value
    conversation.updated_at = utcnow()

    db.flush()
    message_count = get_message_count(db, conversation_id)
    db.commit()

    return conversation_to_out(conversation, message_count)


def delete_conversation(db: Session, viewer_id: UUID, conversation_id: UUID) -> None:
    """Delete a conversation and all of its messages in one transaction.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            or viewer is not the owner.
    """
    # Verify ownership
    get_conversation_for_viewer_or_404(db, viewer_id, conversation_id)

    db.execute(delete(Message).where(Message.conversation_id == conversation_id))
    db.execute(
        delete(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.owner_user_id == viewer_id,
        )
    )
    db.flush()
    db.commit()

    logger.info("conversation_deleted", conversation_id=str(conversation_id))


def list_messages(db: Session, viewer_id: UUID, conversation_id: UUID) -> list[MessageOut]:
    """List messages in a conversation, oldest first.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            or viewer is not the owner.
    """
    get_conversation_for_viewer_or_404(db, viewer_id, conversation_id)
    return [message_to_out(m) for m in load_ordered_messages(db, conversation_id)]
