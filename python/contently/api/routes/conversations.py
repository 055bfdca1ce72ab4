"""Conversations and Messages API routes.

Route handlers for conversation and message operations.
Routes are transport-only: each calls exactly one service function.

All routes require authentication.
Response envelope: {"data": ...} or {"data": [...], "page": {...}}
Error envelope: {"error": {"code": "...", "message": "...", "request_id": "..."}}
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from contently.api.deps import get_db, get_generation_service
from contently.auth.middleware import Viewer, get_viewer
from contently.responses import success_response
from contently.schemas.conversation import (
    CreateConversationRequest,
    CreateMessageRequest,
    UpdateConversationRequest,
)
from contently.services import conversations as conversations_service
from contently.services import send_message as send_message_service
from contently.services.llm import GenerationService

router = APIRouter(tags=["conversations"])


# =============================================================================
# Conversation Endpoints
# =============================================================================


@router.get("/conversations")
def list_conversations(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=50, ge=1, le=100, description="Maximum results (1-100)"),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
) -> dict:
    """List conversations owned by the viewer.

    Returns conversations ordered by updated_at DESC, id DESC.
    Supports cursor-based pagination.

    Errors:
        E_INVALID_CURSOR (400): Cursor is malformed or unparseable.
    """
    conversations, page = conversations_service.list_conversations(
        db=db,
        viewer_id=viewer.user_id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "data": [c.model_dump(mode="json") for c in conversations],
        "page": page.model_dump(mode="json"),
    }


@router.post("/conversations", status_code=201)
def create_conversation(
    body: CreateConversationRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create an empty conversation.

    Platform and model default to the viewer's settings when omitted.

    Errors:
        E_TITLE_INVALID (400): Title is blank or longer than 200 characters.
    """
    result = conversations_service.create_conversation(
        db=db,
        viewer_id=viewer.user_id,
        body=body,
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/conversations/{conversation_id}")
def get_conversation(
    conversation_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a conversation by ID with its messages in order.

    Errors:
        E_CONVERSATION_NOT_FOUND (404): Conversation doesn't exist or viewer is not owner.
    """
    result = conversations_service.get_conversation_with_messages(
        db=db,
        viewer_id=viewer.user_id,
        conversation_id=conversation_id,
    )
    return success_response(result.model_dump(mode="json"))


@router.put("/conversations/{conversation_id}")
def update_conversation(
    conversation_id: UUID,
    body: UpdateConversationRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Update title, model and/or platform.

    Errors:
        E_CONVERSATION_NOT_FOUND (404): Conversation doesn't exist or viewer is not owner.
        E_TITLE_INVALID (400): Title is blank or longer than 200 characters.
    """
    result = conversations_service.update_conversation(
        db=db,
        viewer_id=viewer.user_id,
        conversation_id=conversation_id,
        body=body,
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/conversations/{conversation_id}", status_code=204)
def delete_conversation(
    conversation_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a conversation and all of its messages.

    Errors:
        E_CONVERSATION_NOT_FOUND (404): Conversation doesn't exist or viewer is not owner.
    """
    conversations_service.delete_conversation(
        db=db,
        viewer_id=viewer.user_id,
        conversation_id=conversation_id,
    )
    return Response(status_code=204)


# =============================================================================
# Message Endpoints
# =============================================================================


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List messages in a conversation, oldest first.

    Errors:
        E_CONVERSATION_NOT_FOUND (404): Conversation doesn't exist or viewer is not owner.
    """
    messages = conversations_service.list_messages(
        db=db,
        viewer_id=viewer.user_id,
        conversation_id=conversation_id,
    )
    return success_response([m.model_dump(mode="json") for m in messages])


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def create_message(
    conversation_id: UUID,
    body: CreateMessageRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    generation: Annotated[GenerationService, Depends(get_generation_service)],
) -> dict:
    """Save a message and, for user messages, generate the assistant reply.

    The user message is committed before generation starts. A failed
    generation still returns 201, with assistant_message=null and
    generation_error set.

    Errors:
        E_CONVERSATION_NOT_FOUND (404): Conversation doesn't exist or viewer is not owner.
        E_INVALID_REQUEST (400): Empty or oversized content, unknown role/model/platform.
    """
    result = await send_message_service.send_message(
        db=db,
        generation=generation,
        viewer_id=viewer.user_id,
        conversation_id=conversation_id,
        body=body,
    )
    return success_response(result.model_dump(mode="json"))
