"""Pydantic models for per-conversation memory."""

from datetime import datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, Field


class Stage(IntEnum):
    """Relationship stages, in the only order they may be traversed."""

    cold_start = 0
    breaking_ice = 1
    warm_up = 2
    flirty = 3
    deep = 4


STAGE_NAMES: dict[Stage, str] = {
    Stage.cold_start: "冷启动",
    Stage.breaking_ice: "破冰",
    Stage.warm_up: "热身",
    Stage.flirty: "暧昧",
    Stage.deep: "深入",
}

UNKNOWN_STAGE_NAME = "未知"


def stage_name(stage: int) -> str:
    """Display name for a stage value; unknown values get a placeholder."""
    try:
        return STAGE_NAMES[Stage(stage)]
    except ValueError:
        return UNKNOWN_STAGE_NAME


class MemoryContext(BaseModel):
    """One user's private view of a conversation.

    Each participant has their own record; nothing here is shared with the
    counterpart.
    """

    id: str | None = None
    conversation_id: str
    user_id: str
    stage: Stage = Stage.cold_start
    target_traits: dict[str, Any] = Field(default_factory=dict)
    successful_patterns: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None

    @property
    def interests(self) -> list[str]:
        return list(self.target_traits.get("interests") or [])

    @property
    def topics(self) -> list[str]:
        return list(self.target_traits.get("topics") or [])

    @property
    def message_count(self) -> int:
        return int(self.successful_patterns.get("message_count") or 0)
