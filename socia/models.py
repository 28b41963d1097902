"""Pydantic models for API requests, responses and stored records."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .errors import AuthorizationError

# =============================================================================
# Enums
# =============================================================================


class MessageType(str, Enum):
    """Kinds of chat message content."""

    text = "text"
    image = "image"
    voice = "voice"


class MessageStatus(str, Enum):
    """Delivery status. Only ever moves forward: sent -> delivered -> read."""

    sent = "sent"
    delivered = "delivered"
    read = "read"


MESSAGE_STATUS_ORDER: list[MessageStatus] = [
    MessageStatus.sent,
    MessageStatus.delivered,
    MessageStatus.read,
]


def statuses_before(status: MessageStatus) -> list[str]:
    """Statuses a message may be in and still advance to ``status``."""
    index = MESSAGE_STATUS_ORDER.index(status)
    return [s.value for s in MESSAGE_STATUS_ORDER[:index]]


class FlirtStyle(str, Enum):
    """A user's preferred conversation style."""

    direct = "direct"
    humorous = "humorous"
    romantic = "romantic"
    subtle = "subtle"


FLIRT_STYLE_NAMES: dict[str, str] = {
    FlirtStyle.direct.value: "直球型",
    FlirtStyle.humorous.value: "幽默风趣",
    FlirtStyle.romantic.value: "温柔浪漫",
    FlirtStyle.subtle.value: "含蓄内敛",
}

DEFAULT_FLIRT_STYLE = FlirtStyle.humorous.value


# =============================================================================
# Stored Records
# =============================================================================


class Message(BaseModel):
    """A persisted chat message."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    message_type: MessageType = MessageType.text
    status: MessageStatus = MessageStatus.sent
    created_at: datetime | None = None


class Conversation(BaseModel):
    """A one-to-one conversation. user1_id < user2_id."""

    id: str
    user1_id: str
    user2_id: str
    last_message_at: datetime | None = None

    @property
    def participants(self) -> tuple[str, str]:
        return (self.user1_id, self.user2_id)

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def counterpart(self, user_id: str) -> str:
        """The other participant; raises if user_id is not in the conversation."""
        if user_id == self.user1_id:
            return self.user2_id
        if user_id == self.user2_id:
            return self.user1_id
        raise AuthorizationError(f"User {user_id} is not a participant of {self.id}")


def ordered_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Fixed storage ordering for a participant pair."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class PublicProfile(BaseModel):
    """Profile fields visible to other users."""

    id: str
    nickname: str
    gender: str | None = None
    age: int | None = None
    avatar_url: str | None = None
    bio: str | None = None


class UserProfile(PublicProfile):
    """Full profile, visible only to its owner."""

    phone: str
    flirt_style: FlirtStyle = FlirtStyle.humorous
    created_at: datetime | None = None
    updated_at: datetime | None = None


# =============================================================================
# Auth Models
# =============================================================================

PHONE_PATTERN = r"^\d{11}$"


class SendCodeRequest(BaseModel):
    """Request an SMS verification code."""
    phone: str = Field(..., pattern=PHONE_PATTERN)


class SendCodeResponse(BaseModel):
    message: str
    phone: str


class RegisterRequest(BaseModel):
    """Register a new user with a verification code."""
    phone: str = Field(..., pattern=PHONE_PATTERN)
    code: str = Field(..., min_length=4, max_length=8)
    nickname: str = Field(..., min_length=1, max_length=50)
    gender: str | None = None
    age: int | None = Field(default=None, ge=18, le=120)
    flirt_style: FlirtStyle = FlirtStyle.humorous


class LoginRequest(BaseModel):
    """Log in with a verification code."""
    phone: str = Field(..., pattern=PHONE_PATTERN)
    code: str = Field(..., min_length=4, max_length=8)


class AuthResponse(BaseModel):
    """Token plus the user it was issued for."""
    user: UserProfile
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# =============================================================================
# Profile Models
# =============================================================================


class UpdateProfileRequest(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""
    nickname: str | None = Field(default=None, min_length=1, max_length=50)
    gender: str | None = None
    age: int | None = Field(default=None, ge=18, le=120)
    bio: str | None = Field(default=None, max_length=500)
    avatar_url: str | None = None


class UpdateFlirtStyleRequest(BaseModel):
    flirt_style: FlirtStyle


# =============================================================================
# Conversation Models
# =============================================================================


class CreateConversationRequest(BaseModel):
    """Open (or fetch) the conversation with another user."""
    user_id: str


class SendMessageRequest(BaseModel):
    """Send a message over HTTP."""
    content: str = Field(..., min_length=1)
    message_type: MessageType = MessageType.text


class ConversationSummary(BaseModel):
    """A conversation as listed for one of its participants."""
    id: str
    other_user: PublicProfile | None = None
    last_message_at: datetime | None = None
    last_message: Message | None = None
    unread_count: int = 0
    stage: int = 0


class ConversationList(BaseModel):
    conversations: list[ConversationSummary]


class MessageList(BaseModel):
    messages: list[Message]


# =============================================================================
# Suggestion Models
# =============================================================================


class Suggestion(BaseModel):
    """A single reply suggestion."""
    text: str
    style: str
    reason: str


class SuggestionsResponse(BaseModel):
    conversation_id: str
    stage: int
    stage_name: str
    suggestions: list[Suggestion]
