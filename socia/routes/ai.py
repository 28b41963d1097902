"""AI reply suggestion routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import CurrentUser
from ..config import Settings, get_settings
from ..errors import AuthorizationError, PersistenceError
from ..logging_config import advisory, get_logger
from ..memory import MemoryContext, stage_name
from ..models import DEFAULT_FLIRT_STYLE, SuggestionsResponse
from ..store import Store
from .deps import Assembler, parse_id

logger = get_logger("socia.suggestions")
router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.get("/suggestions/{conversation_id}", response_model=SuggestionsResponse)
async def get_suggestions(
    conversation_id: str,
    user_id: CurrentUser,
    store: Store,
    assembler: Assembler,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Three reply suggestions for the caller in a conversation.

    Uses the caller's own memory context. Falls back to fixed suggestions
    when the LLM is unavailable, so this never fails because of it.
    """
    conversation_id = parse_id(conversation_id, "conversation ID")
    try:
        other_id = await store.get_counterpart(conversation_id, user_id)
    except AuthorizationError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load conversation",
        )

    try:
        user = await store.get_user(user_id)
        other = await store.get_user(other_id)
        memory = await store.get_memory(conversation_id, user_id)
        history = await store.list_messages(conversation_id, limit=settings.history_limit)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load conversation history",
        )

    if memory is None:
        memory = MemoryContext(conversation_id=conversation_id, user_id=user_id)
    flirt_style = user.flirt_style.value if user else DEFAULT_FLIRT_STYLE

    suggestions = await assembler.generate(
        memory,
        history,
        flirt_style,
        other.nickname if other else "",
        other.gender if other else None,
    )
    await advisory(
        "log_suggestions",
        store.log_suggestions,
        conversation_id,
        [s.text for s in suggestions],
        logger=logger,
    )

    return SuggestionsResponse(
        conversation_id=conversation_id,
        stage=int(memory.stage),
        stage_name=stage_name(memory.stage),
        suggestions=suggestions,
    )
