"""Suggestion assembler: LLM suggestions with a deterministic fallback.

``generate`` always returns exactly three suggestions. ProviderError and
timeouts are absorbed here and never reach the caller.
"""

from __future__ import annotations

import asyncio
import logging

from ..errors import ProviderError
from ..llm import LLMClient
from ..memory.models import MemoryContext
from ..models import Message, Suggestion
from .prompts import (
    HUMOROUS_STYLE,
    ROMANTIC_STYLE,
    build_prompt,
    parse_suggestions,
    style_display_name,
)

logger = logging.getLogger("socia.suggestions")

# style -> (text, reason) for the first fallback entry
STYLE_FALLBACKS: dict[str, tuple[str, str]] = {
    "direct": ("我想直接告诉你，和你聊天真的很开心", "直接表达情感，展现真诚态度"),
    "humorous": ("哈哈，你这人说话真有意思，和你聊天特别放松", "用轻松愉快的语气，增加互动趣味"),
    "romantic": ("感觉和你聊天就像认识很久的朋友一样，很舒服", "用温柔浪漫的语气，拉近心理距离"),
    "subtle": ("每次和你聊天都觉得时间过得很快，可能是因为太投机了吧", "含蓄地表达对聊天的珍视"),
}
DEFAULT_FALLBACK = ("和你聊天感觉很棒", "表达聊天的愉悦感受")

HUMOROUS_FALLBACK = Suggestion(
    text="看来我们很有共同语言嘛，以后要多聊聊~",
    style=HUMOROUS_STYLE,
    reason="用轻松的语气发现共同点，鼓励继续交流",
)
ROMANTIC_FALLBACK = Suggestion(
    text="感觉和你聊天的时候，心情都会变好",
    style=ROMANTIC_STYLE,
    reason="表达对方带来的正面影响，增进情感连接",
)


def fallback_suggestions(user_style: str | None) -> list[Suggestion]:
    """User-style entry, then fixed humorous and romantic entries."""
    text, reason = STYLE_FALLBACKS.get(user_style or "", DEFAULT_FALLBACK)
    return [
        Suggestion(text=text, style=style_display_name(user_style), reason=reason),
        HUMOROUS_FALLBACK.model_copy(),
        ROMANTIC_FALLBACK.model_copy(),
    ]


class SuggestionAssembler:
    """Produces reply suggestions for one side of a conversation."""

    def __init__(self, llm: LLMClient | None = None, timeout: float = 15.0):
        self._llm = llm
        self._timeout = timeout

    @property
    def llm_configured(self) -> bool:
        return self._llm is not None

    async def generate(
        self,
        memory: MemoryContext,
        history: list[Message],
        user_style: str | None,
        counterpart_name: str,
        counterpart_gender: str | None = None,
    ) -> list[Suggestion]:
        if self._llm is None:
            return fallback_suggestions(user_style)

        prompt = build_prompt(memory, history, user_style, counterpart_name, counterpart_gender)
        try:
            reply = await asyncio.wait_for(self._llm.complete(prompt), timeout=self._timeout)
            return parse_suggestions(reply)
        except asyncio.TimeoutError:
            logger.warning(f"LLM timed out after {self._timeout}s; using fallback suggestions")
        except ProviderError as e:
            logger.warning(f"LLM suggestions unavailable ({e}); using fallback suggestions")
        return fallback_suggestions(user_style)
