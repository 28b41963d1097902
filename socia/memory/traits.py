"""Keyword-based trait extraction from message text.

All matching is substring membership on the lower-cased message. Each
keyword counts once no matter how often it appears. Tables are ordered, so
extracted categories always come out in table order.
"""

from typing import Any, Iterable

# Interest keyword -> category
INTEREST_KEYWORDS: dict[str, str] = {
    "音乐": "music",
    "运动": "sports",
    "电影": "movies",
    "旅行": "travel",
    "美食": "food",
    "游戏": "gaming",
    "读书": "reading",
    "摄影": "photography",
    "健身": "fitness",
    "舞蹈": "dancing",
    "画画": "drawing",
    "唱歌": "singing",
    "music": "music",
    "sports": "sports",
    "movie": "movies",
    "travel": "travel",
    "food": "food",
    "gaming": "gaming",
    "reading": "reading",
    "photography": "photography",
    "fitness": "fitness",
    "dancing": "dancing",
    "drawing": "drawing",
    "singing": "singing",
}

# Topic keyword -> category
TOPIC_KEYWORDS: dict[str, str] = {
    "工作": "work",
    "学校": "school",
    "家庭": "family",
    "朋友": "friends",
    "学习": "study",
    "梦想": "dreams",
    "work": "work",
    "school": "school",
    "family": "family",
    "friends": "friends",
    "study": "study",
    "dream": "dreams",
}

QUESTION_KEYWORDS = ("?", "？", "吗", "呢", "什么", "如何", "怎么")

TONE_POSITIVE_KEYWORDS = ("哈哈", "开心", "喜欢", "爱", "棒", "厉害")
TONE_NEGATIVE_KEYWORDS = ("难过", "伤心", "讨厌", "烦", "生气")

SENTIMENT_POSITIVE_KEYWORDS = TONE_POSITIVE_KEYWORDS + ("好", "漂亮", "帅")
SENTIMENT_NEGATIVE_KEYWORDS = TONE_NEGATIVE_KEYWORDS + ("不好", "糟糕")

AFFECTION_KEYWORDS = ("喜欢",)
INTIMACY_KEYWORDS = ("想", "想念", "在乎", "在意", "喜欢", "爱")


def normalize(content: Any) -> str:
    """Lower-case message content; anything that is not text becomes ''."""
    if not isinstance(content, str):
        return ""
    return content.lower()


def count_keywords(text: str, keywords: Iterable[str]) -> int:
    """Number of distinct keywords present in text."""
    return sum(1 for kw in keywords if kw in text)


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(kw in text for kw in keywords)


def _categories(text: str, table: dict[str, str]) -> list[str]:
    found: list[str] = []
    for keyword, category in table.items():
        if keyword in text and category not in found:
            found.append(category)
    return found


def is_question(text: str) -> bool:
    return contains_any(text, QUESTION_KEYWORDS)


def detect_tone(text: str) -> str:
    """questioning > positive/negative by hit count > neutral."""
    if is_question(text):
        return "questioning"
    positive = count_keywords(text, TONE_POSITIVE_KEYWORDS)
    negative = count_keywords(text, TONE_NEGATIVE_KEYWORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def detect_sentiment(text: str) -> str:
    """Presence check; a positive hit wins over a negative one."""
    if contains_any(text, SENTIMENT_POSITIVE_KEYWORDS):
        return "positive"
    if contains_any(text, SENTIMENT_NEGATIVE_KEYWORDS):
        return "negative"
    return "neutral"


def extract_traits(content: Any) -> dict[str, Any]:
    """Extract interests, topics, tone and sentiment from a message.

    interests/topics are only present when something matched; tone and
    sentiment are always present.
    """
    text = normalize(content)
    traits: dict[str, Any] = {}

    interests = _categories(text, INTEREST_KEYWORDS)
    if interests:
        traits["interests"] = interests

    topics = _categories(text, TOPIC_KEYWORDS)
    if topics:
        traits["topics"] = topics

    traits["tone"] = detect_tone(text)
    traits["sentiment"] = detect_sentiment(text)
    return traits
