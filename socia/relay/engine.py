"""Relay engine: the message, typing and read sub-protocols.

One task per connection runs ``serve``'s read loop. Each decoded frame is
handled in its own task so a slow store write never stalls the read loop.
Message frames from one sender to one conversation are chained, each
waiting for the previous one to finish, which keeps delivery in send order.
Typing and read frames are advisory and are not ordered. Memory updates
are chained per (conversation, user) in the background so no increment is
lost, and delivery never waits on them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Protocol

from ..errors import AuthorizationError, NotFoundError, SociaError, TransportError, ValidationError
from ..logging_config import advisory, log_relay_event
from ..models import Conversation, Message, MessageStatus, MessageType
from .connection import CLOSE_REPLACED
from .frames import (
    ConnectFrame,
    DisconnectFrame,
    MessageFrame,
    ReadFrame,
    TypingFrame,
    connect_ack,
    decode_frame,
    message_frame,
    read_frame,
    typing_frame,
)
from .registry import ConnectionRegistry

if TYPE_CHECKING:
    from ..memory import MemoryService
    from ..store import ConversationStore

logger = logging.getLogger("socia.relay")


class Connection(Protocol):
    """What the engine needs from a connection handle."""

    user_id: str
    active_conversations: set[str]

    async def send(self, frame: dict[str, Any]) -> None: ...

    async def receive(self) -> str | bytes: ...

    async def close(self, code: int = ...) -> None: ...


class RelayEngine:
    """Routes frames between the two participants of a conversation."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: ConversationStore,
        memory: MemoryService,
    ):
        self.registry = registry
        self._store = store
        self._memory = memory
        self._tasks: set[asyncio.Task] = set()
        # (sender_id, conversation_id) -> last message task for that pair
        self._message_tails: dict[tuple[str, str], asyncio.Task] = {}
        # (conversation_id, user_id) -> last memory update for that context
        self._memory_tails: dict[tuple[str, str], asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def serve(self, connection: Connection) -> None:
        """Register a connection and run its read loop until it closes."""
        user_id = connection.user_id
        replaced = self.registry.register(user_id, connection)
        if replaced is not None:
            await advisory("close_replaced", replaced.close, CLOSE_REPLACED, logger=logger)
        log_relay_event("connect", user_id)
        logger.info(f"WebSocket connected: user {user_id}")

        try:
            await connection.send(connect_ack(user_id))
            while True:
                raw = await connection.receive()
                try:
                    frame = decode_frame(raw)
                except ValidationError as e:
                    log_relay_event("drop", user_id, detail=str(e))
                    continue
                if isinstance(frame, DisconnectFrame):
                    break
                self.dispatch(connection, frame)
        except TransportError as e:
            logger.info(f"WebSocket closed: user {user_id} ({e})")
        finally:
            self.registry.remove(user_id, connection)
            await advisory("close", connection.close, logger=logger)
            log_relay_event("disconnect", user_id)
            logger.info(f"WebSocket disconnected: user {user_id}")

    def dispatch(self, connection: Connection, frame: Any) -> asyncio.Task:
        """Schedule handling of one decoded frame."""
        user_id = connection.user_id
        if isinstance(frame, ConnectFrame):
            return self._spawn(self._guarded(user_id, None, connection.send(connect_ack(user_id))))
        if isinstance(frame, MessageFrame):
            return self._spawn_ordered(connection, frame)
        if isinstance(frame, TypingFrame):
            handler = self.handle_typing(connection, frame)
        elif isinstance(frame, ReadFrame):
            handler = self.handle_read(connection, frame)
        else:
            raise ValidationError(f"Unroutable frame: {frame!r}")
        return self._spawn(self._guarded(user_id, frame.conversation_id, handler))

    async def drain(self) -> None:
        """Wait for every in-flight frame handler and memory update."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Task plumbing
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _spawn_chained(
        self,
        tails: dict[tuple[str, str], asyncio.Task],
        key: tuple[str, str],
        coro: Awaitable[Any],
    ) -> asyncio.Task:
        """Run ``coro`` once the previous task under ``key`` has finished."""
        previous = tails.get(key)

        async def _run():
            if previous is not None:
                await asyncio.wait([previous])
            return await coro

        task = self._spawn(_run())
        tails[key] = task

        def _forget(done: asyncio.Task):
            if tails.get(key) is done:
                del tails[key]

        task.add_done_callback(_forget)
        return task

    def _spawn_ordered(self, connection: Connection, frame: MessageFrame) -> asyncio.Task:
        return self._spawn_chained(
            self._message_tails,
            (connection.user_id, frame.conversation_id),
            self._guarded(connection.user_id, frame.conversation_id, self.handle_message(connection, frame)),
        )

    async def _guarded(self, user_id: str, conversation_id: str | None, coro: Awaitable[Any]) -> Any:
        """Run one frame handler; per-frame failures drop the frame only."""
        try:
            return await coro
        except (AuthorizationError, ValidationError) as e:
            log_relay_event("drop", user_id, conversation_id, str(e))
        except TransportError as e:
            logger.info(f"Frame reply to {user_id} not written: {e}")
        except SociaError as e:
            logger.warning(f"Frame from {user_id} failed: {type(e).__name__}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error handling frame from {user_id}: {type(e).__name__}: {e}")
        return None

    async def _push(self, user_id: str, frame: dict[str, Any], connection: Connection | None = None) -> bool:
        """Write a frame to a user's connection if they are online."""
        target = connection or self.registry.lookup(user_id)
        if target is None:
            return False
        try:
            await target.send(frame)
        except TransportError as e:
            logger.info(f"Push to {user_id} failed: {e}")
            return False
        return True

    async def _resolve(self, conversation_id: str, user_id: str) -> tuple[Conversation, str]:
        conversation = await self._store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation, conversation.counterpart(user_id)

    # ------------------------------------------------------------------
    # Sub-protocols
    # ------------------------------------------------------------------

    async def handle_message(self, connection: Connection, frame: MessageFrame) -> Message:
        connection.active_conversations.add(frame.conversation_id)
        return await self.send_message(
            connection.user_id,
            frame.conversation_id,
            frame.content,
            frame.message_type,
        )

    async def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        message_type: MessageType = MessageType.text,
    ) -> Message:
        """Persist a message and relay it to both participants.

        Raises AuthorizationError/NotFoundError for non-participants and
        PersistenceError if the message cannot be stored; in both cases
        nothing is delivered.
        """
        if not content:
            raise ValidationError("Message content cannot be empty")
        _, counterpart_id = await self._resolve(conversation_id, sender_id)

        message = await self._store.insert_message(conversation_id, sender_id, content, message_type)
        await advisory("touch_conversation", self._store.touch_conversation, conversation_id, logger=logger)
        self._spawn_memory_update(conversation_id, sender_id, counterpart_id, content)

        frame = message_frame(message)
        await self._push(sender_id, frame)
        delivered = await self._push(counterpart_id, frame)
        if delivered:
            updated = await advisory(
                "mark_delivered",
                self._store.update_message_status,
                [message.id],
                conversation_id,
                MessageStatus.delivered,
                logger=logger,
            )
            if updated:
                message = message.model_copy(update={"status": MessageStatus.delivered})

        log_relay_event("message", sender_id, conversation_id, f"id={message.id} delivered={delivered}")
        return message

    async def send_ordered(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        message_type: MessageType = MessageType.text,
    ) -> Message:
        """``send_message`` queued behind the sender's socket messages to the same conversation.

        Errors propagate to the caller as with ``send_message``.
        """
        return await self._spawn_chained(
            self._message_tails,
            (sender_id, conversation_id),
            self.send_message(sender_id, conversation_id, content, message_type),
        )

    async def handle_typing(self, connection: Connection, frame: TypingFrame) -> None:
        _, counterpart_id = await self._resolve(frame.conversation_id, connection.user_id)
        connection.active_conversations.add(frame.conversation_id)
        await self._push(counterpart_id, typing_frame(frame.conversation_id, frame.is_typing))

    async def handle_read(self, connection: Connection, frame: ReadFrame) -> list[str]:
        """Mark the counterpart's messages read and notify the counterpart."""
        _, counterpart_id = await self._resolve(frame.conversation_id, connection.user_id)
        updated = await self._store.update_message_status(
            frame.message_ids,
            frame.conversation_id,
            MessageStatus.read,
            exclude_sender=connection.user_id,
        )
        await self._push(counterpart_id, read_frame(frame.conversation_id, frame.message_ids))
        return updated

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    def _spawn_memory_update(self, conversation_id: str, user_id: str, counterpart_id: str, content: str) -> None:
        """Queue a memory update behind earlier ones for the same context; the caller never sees its outcome."""
        self._spawn_chained(
            self._memory_tails,
            (conversation_id, user_id),
            advisory(
                "memory_update",
                self._memory.update_context,
                conversation_id,
                user_id,
                counterpart_id,
                content,
                logger=logger,
            ),
        )
