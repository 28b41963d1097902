"""Deterministic memory evolution: trait merge, pattern counters, stage transitions.

Everything here is pure. ``update`` is the single entry point the memory
service uses; the helpers are exposed for testing.
"""

from datetime import datetime, timezone
from typing import Any

from .models import MemoryContext, Stage
from .traits import (
    AFFECTION_KEYWORDS,
    INTIMACY_KEYWORDS,
    contains_any,
    extract_traits,
    is_question,
    normalize,
)

LIST_TRAITS = ("interests", "topics")

# Minimum pre-update message count to leave each stage
STAGE_THRESHOLDS: dict[Stage, int] = {
    Stage.cold_start: 1,
    Stage.breaking_ice: 5,
    Stage.warm_up: 10,
    Stage.flirty: 20,
}


def _merge_lists(existing: Any, new: Any) -> list[str]:
    """Union preserving first-seen order; non-string items are dropped."""
    merged: list[str] = []
    for item in list(existing or []) + list(new or []):
        if isinstance(item, str) and item not in merged:
            merged.append(item)
    return merged


def merge_traits(existing: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    """Merge newly extracted traits into the stored ones.

    List traits are unioned; scalar traits overwrite. Returns a new dict.
    """
    result = dict(existing)
    for key, value in new.items():
        if key in LIST_TRAITS:
            result[key] = _merge_lists(result.get(key), value)
        else:
            result[key] = value
    return result


def _as_count(value: Any) -> int:
    # Counters come back from JSONB as floats
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def update_patterns(existing: dict[str, Any], content: Any) -> dict[str, Any]:
    """Increment message_count and the question/statement counter."""
    result = dict(existing)
    result["message_count"] = _as_count(result.get("message_count")) + 1
    kind = "question" if is_question(normalize(content)) else "statement"
    result[kind] = _as_count(result.get(kind)) + 1
    return result


def pre_update_message_count(patterns: dict[str, Any]) -> int:
    """Message count used to gate a transition.

    This is the count *before* the current message is added. A context that
    has never counted anything reads as 1, so the first message of a
    conversation leaves cold_start.
    """
    if "message_count" not in patterns:
        return 1
    return _as_count(patterns["message_count"])


def next_stage(current: Stage, message_count: int, sentiment: str, content: Any) -> Stage:
    """Evaluate the transition out of ``current``; at most one step forward."""
    text = normalize(content)
    stage = Stage(current)
    if stage == Stage.deep:
        return stage
    if message_count < STAGE_THRESHOLDS[stage]:
        return stage

    if stage == Stage.warm_up:
        if sentiment == "positive" or contains_any(text, AFFECTION_KEYWORDS):
            return Stage.flirty
        return stage
    if stage == Stage.flirty:
        if contains_any(text, INTIMACY_KEYWORDS):
            return Stage.deep
        return stage
    return Stage(stage + 1)


def update(context: MemoryContext, content: Any) -> MemoryContext:
    """Fold one message into a memory context and return the new context."""
    new_traits = extract_traits(content)
    count = pre_update_message_count(context.successful_patterns)
    # the gate reads the sentiment stored before this message is merged
    stored_sentiment = context.target_traits.get("sentiment", "neutral")
    stage = next_stage(context.stage, count, stored_sentiment, content)

    return context.model_copy(
        update={
            "stage": stage,
            "target_traits": merge_traits(context.target_traits, new_traits),
            "successful_patterns": update_patterns(context.successful_patterns, content),
            "updated_at": datetime.now(timezone.utc),
        }
    )
