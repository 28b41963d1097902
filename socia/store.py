"""Conversation store: the narrow async interface over Supabase.

supabase-py is synchronous, so every query runs in a worker thread via
``asyncio.to_thread``. Any failure of the underlying client is raised as
``PersistenceError``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Callable

from fastapi import Depends, Request
from supabase import Client

from .database import (
    AI_SUGGESTIONS_TABLE,
    CONVERSATIONS_TABLE,
    MEMORY_CONTEXT_TABLE,
    MESSAGES_TABLE,
    USERS_TABLE,
)
from .errors import NotFoundError, PersistenceError
from .memory.models import MemoryContext, Stage
from .models import (
    Conversation,
    Message,
    MessageStatus,
    MessageType,
    UserProfile,
    ordered_pair,
    statuses_before,
)

logger = logging.getLogger("socia.store")

USER_COLUMNS = "id, phone, nickname, gender, age, avatar_url, bio, flirt_style, created_at, updated_at"
MESSAGE_COLUMNS = "id, conversation_id, sender_id, content, message_type, status, created_at"
MEMORY_COLUMNS = "id, conversation_id, user_id, stage, target_traits, successful_patterns, updated_at"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _memory_from_row(row: dict) -> MemoryContext:
    return MemoryContext(
        id=row.get("id"),
        conversation_id=row["conversation_id"],
        user_id=row["user_id"],
        stage=row.get("stage") or Stage.cold_start,
        target_traits=row.get("target_traits") or {},
        successful_patterns=row.get("successful_patterns") or {},
        updated_at=row.get("updated_at"),
    )


class ConversationStore:
    """Store adapter used by the relay engine, memory service and routes."""

    def __init__(self, db: Client):
        self._db = db

    async def _execute(self, operation: str, build: Callable[[Client], Any]):
        """Run ``build(db).execute()`` off the event loop."""

        def _run():
            return build(self._db).execute()

        try:
            return await asyncio.to_thread(_run)
        except Exception as e:
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise PersistenceError(f"{operation} failed") from e

    async def ping(self) -> None:
        """Cheap query used by the health check."""
        await self._execute("ping", lambda db: db.table(USERS_TABLE).select("id").limit(1))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserProfile | None:
        result = await self._execute(
            "get_user",
            lambda db: db.table(USERS_TABLE).select(USER_COLUMNS).eq("id", user_id).limit(1),
        )
        return UserProfile(**result.data[0]) if result.data else None

    async def get_user_by_phone(self, phone: str) -> UserProfile | None:
        result = await self._execute(
            "get_user_by_phone",
            lambda db: db.table(USERS_TABLE).select(USER_COLUMNS).eq("phone", phone).limit(1),
        )
        return UserProfile(**result.data[0]) if result.data else None

    async def create_user(
        self,
        phone: str,
        nickname: str,
        flirt_style: str,
        gender: str | None = None,
        age: int | None = None,
    ) -> UserProfile:
        data = {
            "phone": phone,
            "nickname": nickname,
            "gender": gender,
            "age": age,
            "flirt_style": flirt_style,
        }
        result = await self._execute(
            "create_user", lambda db: db.table(USERS_TABLE).insert(data)
        )
        if not result.data:
            raise PersistenceError("create_user returned no row")
        return UserProfile(**result.data[0])

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> bool:
        """Apply a partial update. Returns False if the user does not exist."""
        if not fields:
            return await self.get_user(user_id) is not None
        result = await self._execute(
            "update_user",
            lambda db: db.table(USERS_TABLE).update(fields).eq("id", user_id),
        )
        return len(result.data) > 0

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        result = await self._execute(
            "get_conversation",
            lambda db: db.table(CONVERSATIONS_TABLE)
            .select("id, user1_id, user2_id, last_message_at")
            .eq("id", conversation_id)
            .limit(1),
        )
        return Conversation(**result.data[0]) if result.data else None

    async def get_counterpart(self, conversation_id: str, user_id: str) -> str:
        """The other participant of a conversation.

        Raises NotFoundError for unknown conversations and AuthorizationError
        when user_id is not a participant.
        """
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation.counterpart(user_id)

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> Conversation:
        """Return the unique conversation between two users, creating it if needed."""
        user1_id, user2_id = ordered_pair(user_a, user_b)

        def _select(db: Client):
            return (
                db.table(CONVERSATIONS_TABLE)
                .select("id, user1_id, user2_id, last_message_at")
                .eq("user1_id", user1_id)
                .eq("user2_id", user2_id)
                .limit(1)
            )

        result = await self._execute("get_conversation_by_pair", _select)
        if result.data:
            return Conversation(**result.data[0])

        # Unique (user1_id, user2_id): a concurrent create is ignored, then re-read
        await self._execute(
            "create_conversation",
            lambda db: db.table(CONVERSATIONS_TABLE).upsert(
                {"user1_id": user1_id, "user2_id": user2_id},
                on_conflict="user1_id,user2_id",
                ignore_duplicates=True,
            ),
        )
        result = await self._execute("get_conversation_by_pair", _select)
        if not result.data:
            raise PersistenceError("create_conversation returned no row")
        return Conversation(**result.data[0])

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        result = await self._execute(
            "list_conversations",
            lambda db: db.table(CONVERSATIONS_TABLE)
            .select("id, user1_id, user2_id, last_message_at")
            .or_(f"user1_id.eq.{user_id},user2_id.eq.{user_id}")
            .order("last_message_at", desc=True),
        )
        return [Conversation(**row) for row in result.data]

    async def touch_conversation(self, conversation_id: str) -> None:
        """Set last_message_at to now."""
        await self._execute(
            "touch_conversation",
            lambda db: db.table(CONVERSATIONS_TABLE)
            .update({"last_message_at": _now_iso()})
            .eq("id", conversation_id),
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def insert_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.text,
    ) -> Message:
        """Persist a new message with status ``sent`` and return the stored row."""
        data = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "message_type": MessageType(message_type).value,
            "status": MessageStatus.sent.value,
        }
        result = await self._execute(
            "insert_message", lambda db: db.table(MESSAGES_TABLE).insert(data)
        )
        if not result.data:
            raise PersistenceError("insert_message returned no row")
        return Message(**result.data[0])

    async def update_message_status(
        self,
        message_ids: list[str],
        conversation_id: str,
        status: MessageStatus,
        exclude_sender: str | None = None,
    ) -> list[str]:
        """Advance messages to ``status``; returns the ids actually updated.

        Only rows whose current status is earlier than ``status`` are touched,
        so a status never regresses. With ``exclude_sender`` set, messages
        sent by that user are left alone.
        """
        if not message_ids:
            return []
        earlier = statuses_before(MessageStatus(status))
        if not earlier:
            return []

        def _build(db: Client):
            query = (
                db.table(MESSAGES_TABLE)
                .update({"status": MessageStatus(status).value})
                .in_("id", message_ids)
                .eq("conversation_id", conversation_id)
                .in_("status", earlier)
            )
            if exclude_sender:
                query = query.neq("sender_id", exclude_sender)
            return query

        result = await self._execute("update_message_status", _build)
        return [row["id"] for row in result.data]

    async def list_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        """Most recent ``limit`` messages, returned oldest first."""
        result = await self._execute(
            "list_messages",
            lambda db: db.table(MESSAGES_TABLE)
            .select(MESSAGE_COLUMNS)
            .eq("conversation_id", conversation_id)
            .order("created_at", desc=True)
            .limit(limit),
        )
        messages = [Message(**row) for row in result.data]
        messages.reverse()
        return messages

    async def count_unread(self, conversation_id: str, user_id: str) -> int:
        """Messages from the other participant that user_id has not read."""
        result = await self._execute(
            "count_unread",
            lambda db: db.table(MESSAGES_TABLE)
            .select("id", count="exact")
            .eq("conversation_id", conversation_id)
            .neq("sender_id", user_id)
            .neq("status", MessageStatus.read.value),
        )
        return result.count or 0

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    async def get_memory(self, conversation_id: str, user_id: str) -> MemoryContext | None:
        result = await self._execute(
            "get_memory",
            lambda db: db.table(MEMORY_CONTEXT_TABLE)
            .select(MEMORY_COLUMNS)
            .eq("conversation_id", conversation_id)
            .eq("user_id", user_id)
            .limit(1),
        )
        return _memory_from_row(result.data[0]) if result.data else None

    async def get_or_create_memory(self, conversation_id: str, user_id: str) -> MemoryContext:
        """Load the memory context for (conversation, user), creating an empty one."""
        existing = await self.get_memory(conversation_id, user_id)
        if existing is not None:
            return existing

        await self._execute(
            "create_memory",
            lambda db: db.table(MEMORY_CONTEXT_TABLE).upsert(
                {
                    "conversation_id": conversation_id,
                    "user_id": user_id,
                    "stage": int(Stage.cold_start),
                    "target_traits": {},
                    "successful_patterns": {},
                },
                on_conflict="conversation_id,user_id",
                ignore_duplicates=True,
            ),
        )
        created = await self.get_memory(conversation_id, user_id)
        if created is None:
            raise PersistenceError("create_memory returned no row")
        return created

    async def save_memory(self, context: MemoryContext) -> None:
        data = {
            "conversation_id": context.conversation_id,
            "user_id": context.user_id,
            "stage": int(context.stage),
            "target_traits": context.target_traits,
            "successful_patterns": context.successful_patterns,
            "updated_at": (context.updated_at or datetime.now(timezone.utc)).isoformat(),
        }
        await self._execute(
            "save_memory",
            lambda db: db.table(MEMORY_CONTEXT_TABLE).upsert(
                data, on_conflict="conversation_id,user_id"
            ),
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def log_suggestions(self, conversation_id: str, texts: list[str]) -> None:
        if not texts:
            return
        rows = [
            {
                "conversation_id": conversation_id,
                "suggestion": text,
                "was_used": False,
                "response_received": False,
            }
            for text in texts
        ]
        await self._execute(
            "log_suggestions", lambda db: db.table(AI_SUGGESTIONS_TABLE).insert(rows)
        )


def get_store(request: Request) -> ConversationStore:
    """FastAPI dependency for the application's conversation store."""
    return request.app.state.store


# Type alias for dependency injection
Store = Annotated[ConversationStore, Depends(get_store)]
