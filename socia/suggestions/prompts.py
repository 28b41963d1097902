"""Prompt construction and response parsing for reply suggestions."""

import json
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..errors import ProviderError
from ..memory.models import MemoryContext, stage_name
from ..models import FLIRT_STYLE_NAMES, Message, Suggestion

SUGGESTION_COUNT = 3
HISTORY_TURNS = 5

HUMOROUS_STYLE = FLIRT_STYLE_NAMES["humorous"]
ROMANTIC_STYLE = FLIRT_STYLE_NAMES["romantic"]

SUGGESTION_PROMPT = """你是一个专业的中文聊天和约会助手。根据以下信息生成3条回复建议：

【当前语境】
- 对话阶段: {stage}
- 你的风格: {style}
- 对方: {nickname} ({pronoun})
- 对话历史:
{history}
- 对方特点:
{traits}

【要求】
1. 必须生成恰好3条建议，每条风格不同
2. 第1条：符合你偏好的风格 ({style})
3. 第2条：幽默风趣 - 适合轻松氛围
4. 第3条：温柔浪漫 - 适合推进关系
5. 回复自然、不油腻
6. 符合当前对话阶段
7. 引导继续对话
8. 保持尊重和礼貌

请生成JSON格式回复:
{{
  "suggestions": [
    {{"text": "...", "style": "{style}", "reason": "..."}},
    {{"text": "...", "style": "幽默风趣", "reason": "..."}},
    {{"text": "...", "style": "温柔浪漫", "reason": "..."}}
  ]
}}

只输出JSON，不要有任何其他文字。"""


def style_display_name(style: str | None) -> str:
    if not style:
        return HUMOROUS_STYLE
    return FLIRT_STYLE_NAMES.get(style, style)


def gender_pronoun(gender: str | None) -> str:
    if gender is None:
        return "对方"
    if gender == "male":
        return "他"
    if gender == "female":
        return "她"
    return "TA"


def format_history(history: list[Message], self_id: str) -> str:
    """The last few turns, oldest first, one per line."""
    lines = []
    for message in history[-HISTORY_TURNS:]:
        prefix = "你: " if message.sender_id == self_id else "对方: "
        lines.append(f"{prefix}{message.content}")
    return "\n".join(lines)


def format_traits(memory: MemoryContext) -> str:
    lines = []
    if memory.interests:
        lines.append("兴趣爱好: " + ", ".join(memory.interests))
    if memory.topics:
        lines.append("话题: " + ", ".join(memory.topics))
    return "\n".join(lines)


def build_prompt(
    memory: MemoryContext,
    history: list[Message],
    user_style: str | None,
    counterpart_name: str,
    counterpart_gender: str | None,
) -> str:
    return SUGGESTION_PROMPT.format(
        stage=stage_name(memory.stage),
        style=style_display_name(user_style),
        nickname=counterpart_name,
        pronoun=gender_pronoun(counterpart_gender),
        history=format_history(history, memory.user_id),
        traits=format_traits(memory),
    )


def extract_json(text: str) -> str:
    """Outermost {...} span of a reply that may carry extra prose."""
    text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text
    return text[start : end + 1]


def parse_suggestions(text: str) -> list[Suggestion]:
    """Parse exactly three suggestions out of an LLM reply."""
    try:
        body: Any = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        raise ProviderError(f"Unparsable suggestions: {e}") from e

    items = body.get("suggestions") if isinstance(body, dict) else None
    if not isinstance(items, list) or len(items) != SUGGESTION_COUNT:
        raise ProviderError(f"Expected {SUGGESTION_COUNT} suggestions")

    try:
        suggestions = [Suggestion.model_validate(item) for item in items]
    except PydanticValidationError as e:
        raise ProviderError(f"Malformed suggestion entry: {e.error_count()} error(s)") from e

    if any(not s.text.strip() for s in suggestions):
        raise ProviderError("Suggestion with empty text")
    return suggestions
