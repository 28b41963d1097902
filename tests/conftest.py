"""Pytest configuration and fixtures."""

import asyncio
import os
import secrets
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# For unit tests, set mock values ONLY if not running integration tests
if not os.environ.get("RUN_INTEGRATION"):
    os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
    os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
    os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
    # Unit tests never talk to a real LLM
    os.environ.pop("LLM_API_KEY", None)
else:
    # For integration tests, load from .env
    from pathlib import Path

    from dotenv import load_dotenv

    if not os.environ.get("CONFIRM_INTEGRATION_CREDENTIALS"):
        print(
            "Integration tests will use REAL credentials from .env; "
            "set CONFIRM_INTEGRATION_CREDENTIALS=yes to proceed.",
            file=sys.stderr,
        )
        pytest.exit(
            "Integration tests require CONFIRM_INTEGRATION_CREDENTIALS=yes",
            returncode=1,
        )
    load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from fastapi.testclient import TestClient  # noqa: E402

from socia.auth import create_access_token  # noqa: E402
from socia.config import get_settings  # noqa: E402
from socia.errors import NotFoundError, PersistenceError, TransportError  # noqa: E402
from socia.memory import MemoryContext, MemoryService  # noqa: E402
from socia.models import (  # noqa: E402
    Conversation,
    Message,
    MessageStatus,
    MessageType,
    UserProfile,
    ordered_pair,
    statuses_before,
)
from socia.rate_limit import limiter  # noqa: E402
from socia.relay import ConnectionRegistry, RelayEngine  # noqa: E402


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# In-memory store
# =============================================================================


class FakeStore:
    """In-memory stand-in for ConversationStore with the same semantics.

    Put an operation name in ``fail_on`` to make it raise PersistenceError.
    ``insert_delays`` maps message content to a sleep before the insert
    completes, for exercising ordering.
    ``memory_delay`` makes every memory read and write suspend for that long.
    """

    def __init__(self):
        self.users: dict[str, UserProfile] = {}
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, Message] = {}
        self.memory: dict[tuple[str, str], MemoryContext] = {}
        self.suggestion_log: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.insert_delays: dict[str, float] = {}
        self.memory_delay = 0.0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PersistenceError(f"{operation} failed")

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    # Seeding helpers

    def add_user(self, nickname: str = "tester", gender: str | None = None, flirt_style: str = "humorous", phone: str | None = None) -> UserProfile:
        user = UserProfile(
            id=new_id(),
            phone=phone or f"138{len(self.users):08d}",
            nickname=nickname,
            gender=gender,
            flirt_style=flirt_style,
        )
        self.users[user.id] = user
        return user

    def add_conversation(self, user_a: str, user_b: str) -> Conversation:
        user1_id, user2_id = ordered_pair(user_a, user_b)
        conversation = Conversation(id=new_id(), user1_id=user1_id, user2_id=user2_id)
        self.conversations[conversation.id] = conversation
        return conversation

    def add_message(self, conversation_id: str, sender_id: str, content: str) -> Message:
        message = Message(
            id=new_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            created_at=self._tick(),
        )
        self.messages[message.id] = message
        return message

    # Store interface

    async def ping(self) -> None:
        self._check("ping")

    async def get_user(self, user_id: str) -> UserProfile | None:
        self._check("get_user")
        return self.users.get(user_id)

    async def get_user_by_phone(self, phone: str) -> UserProfile | None:
        self._check("get_user_by_phone")
        return next((u for u in self.users.values() if u.phone == phone), None)

    async def create_user(self, phone, nickname, flirt_style, gender=None, age=None) -> UserProfile:
        self._check("create_user")
        user = UserProfile(id=new_id(), phone=phone, nickname=nickname, flirt_style=flirt_style, gender=gender, age=age)
        self.users[user.id] = user
        return user

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> bool:
        self._check("update_user")
        user = self.users.get(user_id)
        if user is None:
            return False
        self.users[user_id] = UserProfile.model_validate({**user.model_dump(), **fields})
        return True

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        self._check("get_conversation")
        return self.conversations.get(conversation_id)

    async def get_counterpart(self, conversation_id: str, user_id: str) -> str:
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation.counterpart(user_id)

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> Conversation:
        self._check("get_or_create_conversation")
        pair = ordered_pair(user_a, user_b)
        for conversation in self.conversations.values():
            if conversation.participants == pair:
                return conversation
        return self.add_conversation(user_a, user_b)

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        self._check("list_conversations")
        mine = [c for c in self.conversations.values() if c.has_participant(user_id)]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(mine, key=lambda c: c.last_message_at or epoch, reverse=True)

    async def touch_conversation(self, conversation_id: str) -> None:
        self._check("touch_conversation")
        conversation = self.conversations[conversation_id]
        self.conversations[conversation_id] = conversation.model_copy(update={"last_message_at": self._tick()})

    async def insert_message(self, conversation_id, sender_id, content, message_type=MessageType.text) -> Message:
        delay = self.insert_delays.get(content)
        if delay:
            await asyncio.sleep(delay)
        self._check("insert_message")
        message = self.add_message(conversation_id, sender_id, content)
        message = message.model_copy(update={"message_type": MessageType(message_type)})
        self.messages[message.id] = message
        return message

    async def update_message_status(self, message_ids, conversation_id, status, exclude_sender=None) -> list[str]:
        self._check("update_message_status")
        earlier = statuses_before(MessageStatus(status))
        updated = []
        for message_id in message_ids:
            message = self.messages.get(message_id)
            if message is None or message.conversation_id != conversation_id:
                continue
            if message.status.value not in earlier:
                continue
            if exclude_sender and message.sender_id == exclude_sender:
                continue
            self.messages[message_id] = message.model_copy(update={"status": MessageStatus(status)})
            updated.append(message_id)
        return updated

    async def list_messages(self, conversation_id: str, limit: int = 50) -> list[Message]:
        self._check("list_messages")
        mine = sorted(
            (m for m in self.messages.values() if m.conversation_id == conversation_id),
            key=lambda m: m.created_at,
        )
        return mine[-limit:]

    async def count_unread(self, conversation_id: str, user_id: str) -> int:
        self._check("count_unread")
        return sum(
            1
            for m in self.messages.values()
            if m.conversation_id == conversation_id and m.sender_id != user_id and m.status != MessageStatus.read
        )

    async def get_memory(self, conversation_id: str, user_id: str) -> MemoryContext | None:
        if self.memory_delay:
            await asyncio.sleep(self.memory_delay)
        self._check("get_memory")
        context = self.memory.get((conversation_id, user_id))
        return context.model_copy(deep=True) if context else None

    async def get_or_create_memory(self, conversation_id: str, user_id: str) -> MemoryContext:
        existing = await self.get_memory(conversation_id, user_id)
        if existing is not None:
            return existing
        context = MemoryContext(id=new_id(), conversation_id=conversation_id, user_id=user_id)
        self.memory[(conversation_id, user_id)] = context
        return context.model_copy(deep=True)

    async def save_memory(self, context: MemoryContext) -> None:
        if self.memory_delay:
            await asyncio.sleep(self.memory_delay)
        self._check("save_memory")
        self.memory[(context.conversation_id, context.user_id)] = context.model_copy(deep=True)

    async def log_suggestions(self, conversation_id: str, texts: list[str]) -> None:
        self._check("log_suggestions")
        self.suggestion_log.extend((conversation_id, text) for text in texts)


# =============================================================================
# Fake connection
# =============================================================================


class FakeConnection:
    """Connection handle fed from a queue; records every frame sent to it."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.active_conversations: set[str] = set()
        self.sent: list[dict[str, Any]] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed_with: int | None = None
        self.fail_send = False

    async def send(self, frame: dict[str, Any]) -> None:
        if self.fail_send:
            raise TransportError("send failed")
        self.sent.append(frame)

    async def receive(self):
        item = await self.inbox.get()
        if item is None:
            raise TransportError("peer closed")
        return item

    async def close(self, code: int = 1000) -> None:
        if self.closed_with is None:
            self.closed_with = code

    def frames(self, frame_type: str) -> list[dict[str, Any]]:
        return [f for f in self.sent if f["type"] == frame_type]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def engine(fake_store):
    """Relay engine over the in-memory store with a fresh registry."""
    return RelayEngine(ConnectionRegistry(), fake_store, MemoryService(fake_store))


@pytest.fixture
def make_token():
    """Issue a real JWT for a user id."""

    def _make(user_id: str) -> str:
        return create_access_token(user_id, get_settings())

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def client(fake_store):
    """Test client whose lifespan wires the app to the in-memory store."""
    from socia.main import app

    with patch("socia.main.get_supabase_client", return_value=MagicMock()), patch(
        "socia.main.ConversationStore", return_value=fake_store
    ):
        with TestClient(app) as test_client:
            yield test_client
