"""Conversational memory: relationship stage, traits and pattern counters."""

from .models import STAGE_NAMES, MemoryContext, Stage, stage_name
from .service import MemoryService
from .state import (
    merge_traits,
    next_stage,
    pre_update_message_count,
    update,
    update_patterns,
)
from .traits import detect_sentiment, detect_tone, extract_traits

__all__ = [
    "STAGE_NAMES",
    "MemoryContext",
    "MemoryService",
    "Stage",
    "detect_sentiment",
    "detect_tone",
    "extract_traits",
    "merge_traits",
    "next_stage",
    "pre_update_message_count",
    "stage_name",
    "update",
    "update_patterns",
]
