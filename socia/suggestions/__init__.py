"""Reply suggestions for a conversation."""

from .assembler import SuggestionAssembler, fallback_suggestions
from .prompts import SUGGESTION_COUNT, build_prompt, parse_suggestions

__all__ = [
    "SUGGESTION_COUNT",
    "SuggestionAssembler",
    "build_prompt",
    "fallback_suggestions",
    "parse_suggestions",
]
