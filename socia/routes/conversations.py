"""Conversation and message routes.

Messages sent over HTTP go through the relay engine, so participants with
a live WebSocket receive them exactly as if they had been sent there.
"""

from fastapi import APIRouter, HTTPException, Query, status

from ..auth import CurrentUser
from ..errors import AuthorizationError, PersistenceError, ValidationError
from ..logging_config import get_logger
from ..models import (
    Conversation,
    ConversationList,
    ConversationSummary,
    CreateConversationRequest,
    Message,
    MessageList,
    PublicProfile,
    SendMessageRequest,
)
from ..store import ConversationStore, Store
from .deps import Engine, parse_id

logger = get_logger("socia.conversations")
router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


def _store_failed(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


async def _summarize(store: ConversationStore, conversation: Conversation, user_id: str) -> ConversationSummary:
    other_id = conversation.counterpart(user_id)
    other = await store.get_user(other_id)
    latest = await store.list_messages(conversation.id, limit=1)
    memory = await store.get_memory(conversation.id, user_id)
    return ConversationSummary(
        id=conversation.id,
        other_user=PublicProfile(**other.model_dump(include=set(PublicProfile.model_fields))) if other else None,
        last_message_at=conversation.last_message_at,
        last_message=latest[-1] if latest else None,
        unread_count=await store.count_unread(conversation.id, user_id),
        stage=int(memory.stage) if memory else 0,
    )


@router.get("/", response_model=ConversationList)
async def list_conversations(user_id: CurrentUser, store: Store):
    """The caller's conversations, most recently active first."""
    try:
        conversations = await store.list_conversations(user_id)
        summaries = [await _summarize(store, c, user_id) for c in conversations]
    except PersistenceError:
        raise _store_failed("Failed to fetch conversations")
    return ConversationList(conversations=summaries)


@router.post("/", response_model=Conversation)
async def create_conversation(
    create: CreateConversationRequest,
    user_id: CurrentUser,
    store: Store,
):
    """Get or create the conversation between the caller and another user."""
    other_id = parse_id(create.user_id, "user ID")
    if other_id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot start a conversation with yourself",
        )
    try:
        if await store.get_user(other_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        conversation = await store.get_or_create_conversation(user_id, other_id)
    except PersistenceError:
        raise _store_failed("Failed to create conversation")
    logger.info(f"Conversation {conversation.id} opened by {user_id}")
    return conversation


@router.get("/{conversation_id}/messages", response_model=MessageList)
async def get_messages(
    conversation_id: str,
    user_id: CurrentUser,
    store: Store,
    limit: int = Query(default=50, ge=1, le=200),
):
    """Most recent messages of a conversation, oldest first."""
    conversation_id = parse_id(conversation_id, "conversation ID")
    try:
        await store.get_counterpart(conversation_id, user_id)
        messages = await store.list_messages(conversation_id, limit=limit)
    except AuthorizationError:
        raise _forbidden()
    except PersistenceError:
        raise _store_failed("Failed to fetch messages")
    return MessageList(messages=messages)


@router.post(
    "/{conversation_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    send: SendMessageRequest,
    user_id: CurrentUser,
    engine: Engine,
):
    conversation_id = parse_id(conversation_id, "conversation ID")
    try:
        return await engine.send_ordered(user_id, conversation_id, send.content, send.message_type)
    except AuthorizationError:
        raise _forbidden()
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PersistenceError:
        raise _store_failed("Failed to send message")
