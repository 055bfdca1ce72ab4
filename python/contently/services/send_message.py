"""Send message service - persist a message and generate the assistant reply.

Three phases:

Phase 1 - Prepare (single DB transaction):
- Load the conversation by id and owner
- Assign seq via next_seq
- Insert the posted message with {platform, model, character_count}
- Snapshot the ordered history for the prompt

Phase 2 - Execute (no DB transaction held, user messages only):
- Render the platform brief plus history
- GenerationService: cache → queue → Groq
- Capture result or error

Phase 3 - Finalize (single DB transaction, on success only):
- Split the <think> side channel
- Analyze the post against platform guidelines
- Insert the assistant message

Invariants:
- The posted message is committed before any provider call, so a failed
  generation never loses user input
- No DB transaction held during the provider call
- Sync DB access runs through run_in_threadpool
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from contently.db.models import MessageRole
from contently.logging import get_logger
from contently.schemas.conversation import (
    CreateMessageRequest,
    GenerationErrorOut,
    MessageAnalyticsOut,
    MessageOut,
    PlatformSuitabilityOut,
    SendMessageOut,
)
from contently.services.content_analysis import (
    ContentAnalytics,
    analyze_content,
    extract_thinking_content,
)
from contently.services.conversations import (
    append_message,
    get_conversation_for_viewer_or_404,
    load_ordered_messages,
    message_to_out,
)
from contently.services.llm import GenerationService, LLMError, Turn, render_generation_turns

logger = get_logger(__name__)

GENERATION_FAILED_MESSAGE = "Failed to generate AI response"


@dataclass
class PrepareResult:
    """Result of Phase 1 (prepare)."""

    conversation_id: UUID
    user_message: MessageOut
    history: list[Turn]
    model: str
    platform: str


@dataclass
class ExecuteResult:
    """Result of Phase 2 (execute)."""

    success: bool
    text: str | None = None
    error: LLMError | None = None


def phase1_prepare(
    db: Session,
    viewer_id: UUID,
    conversation_id: UUID,
    body: CreateMessageRequest,
) -> PrepareResult:
    """Phase 1: Prepare (single DB transaction).

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            or viewer is not the owner.
    """
    conversation = get_conversation_for_viewer_or_404(db, viewer_id, conversation_id)

    model = body.model.value if body.model else conversation.llm_model
    platform = body.platform.value if body.platform else conversation.target_platform

    message = append_message(
        db,
        conversation.id,
        body.role,
        body.content,
        metadata={
            "platform": platform,
            "model": model,
            "character_count": len(body.content),
        },
    )

    history = [
        Turn(role=m.role, content=m.content) for m in load_ordered_messages(db, conversation.id)
    ]
    user_message = message_to_out(message)

    db.commit()

    return PrepareResult(
        conversation_id=conversation.id,
        user_message=user_message,
        history=history,
        model=model,
        platform=platform,
    )


async def phase2_execute(generation: GenerationService, prepared: PrepareResult) -> ExecuteResult:
    """Phase 2: Execute (no DB transaction held)."""
    turns = render_generation_turns(prepared.platform, prepared.history)
    try:
        text = await generation.generate(turns, prepared.model, prepared.platform)
    except LLMError as e:
        logger.warning(
            "generation_failed",
            conversation_id=str(prepared.conversation_id),
            error_class=e.error_class.value,
        )
        return ExecuteResult(success=False, error=e)
    return ExecuteResult(success=True, text=text)


def phase3_finalize(
    db: Session,
    prepared: PrepareResult,
    text: str,
) -> tuple[MessageOut, ContentAnalytics]:
    """Phase 3: Finalize (single DB transaction)."""
    main_content, thinking_content = extract_thinking_content(text)
    analytics = analyze_content(main_content, prepared.platform)

    assistant = append_message(
        db,
        prepared.conversation_id,
        MessageRole.assistant.value,
        main_content,
        thinking_content=thinking_content,
        metadata={
            "platform": prepared.platform,
            "model": prepared.model,
            "character_count": analytics.character_count,
            "hashtags": analytics.hashtags,
            "emojis": analytics.emojis,
            "optimization_score": analytics.optimization_score,
        },
    )
    out = message_to_out(assistant)
    db.commit()

    return out, analytics


def analytics_to_out(analytics: ContentAnalytics) -> MessageAnalyticsOut:
    return MessageAnalyticsOut(
        character_count=analytics.character_count,
        hashtags=analytics.hashtags,
        emojis=analytics.emojis,
        optimization_score=analytics.optimization_score,
        platform_suitability=PlatformSuitabilityOut(
            suitable=analytics.platform_suitability.suitable,
            issues=list(analytics.platform_suitability.issues),
        ),
    )


async def send_message(
    db: Session,
    generation: GenerationService,
    viewer_id: UUID,
    conversation_id: UUID,
    body: CreateMessageRequest,
) -> SendMessageOut:
    """Persist a message and, for user messages, generate the assistant reply.

    Generation failures do not raise: the saved user message is returned with
    assistant_message=None and generation_error set.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): If conversation doesn't exist
            or viewer is not the owner.
    """
    prepared = await run_in_threadpool(phase1_prepare, db, viewer_id, conversation_id, body)

    if body.role != MessageRole.user.value:
        return SendMessageOut(user_message=prepared.user_message)

    result = await phase2_execute(generation, prepared)
    if not result.success:
        return SendMessageOut(
            user_message=prepared.user_message,
            generation_error=GenerationErrorOut(
                code=result.error.error_class.value,
                message=GENERATION_FAILED_MESSAGE,
            ),
        )

    assistant, analytics = await run_in_threadpool(phase3_finalize, db, prepared, result.text)

    logger.info(
        "message_generated",
        conversation_id=str(prepared.conversation_id),
        optimization_score=analytics.optimization_score,
        suitable=analytics.platform_suitability.suitable,
    )

    return SendMessageOut(
        user_message=prepared.user_message,
        assistant_message=assistant,
        analytics=analytics_to_out(analytics),
    )
