"""Tests for trait extraction, trait merge, pattern counters and stage transitions."""

import random

import pytest

from socia.memory import (
    MemoryContext,
    Stage,
    extract_traits,
    merge_traits,
    next_stage,
    pre_update_message_count,
    stage_name,
    update,
    update_patterns,
)
from socia.memory.traits import detect_sentiment, detect_tone


def make_context(**kwargs) -> MemoryContext:
    return MemoryContext(conversation_id="conv-1", user_id="user-1", **kwargs)


class TestTraitExtraction:
    """Keyword-based trait extraction."""

    def test_interests_from_chinese(self):
        traits = extract_traits("我喜欢摄影和旅行")
        assert "photography" in traits["interests"]
        assert "travel" in traits["interests"]

    def test_interests_follow_table_order(self):
        traits = extract_traits("旅行的时候会听音乐")
        assert traits["interests"] == ["music", "travel"]

    def test_english_keywords_are_case_insensitive(self):
        traits = extract_traits("I love Music and Travel")
        assert traits["interests"] == ["music", "travel"]

    def test_topics(self):
        traits = extract_traits("最近工作很忙，周末和朋友聚会")
        assert traits["topics"] == ["work", "friends"]

    def test_no_matches_omits_list_traits(self):
        traits = extract_traits("嗯")
        assert "interests" not in traits
        assert "topics" not in traits
        assert traits["tone"] == "neutral"
        assert traits["sentiment"] == "neutral"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("你喜欢什么电影", "questioning"),
            ("真的吗", "questioning"),
            ("really?", "questioning"),
            ("哈哈太开心了", "positive"),
            ("好难过，好伤心", "negative"),
            ("开心但是有点烦", "neutral"),
            ("今天下雨", "neutral"),
        ],
    )
    def test_tone(self, text, expected):
        assert detect_tone(text) == expected

    def test_repeated_keyword_counts_once(self):
        # two distinct negative keywords beat one positive keyword repeated
        assert detect_tone("哈哈哈哈哈哈 难过 伤心") == "negative"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("你好漂亮", "positive"),
            ("太糟糕了", "negative"),
            ("今天下雨", "neutral"),
        ],
    )
    def test_sentiment(self, text, expected):
        assert detect_sentiment(text) == expected

    @pytest.mark.parametrize("content", [None, 42, "", "   ", {"a": 1}])
    def test_malformed_content_never_fails(self, content):
        traits = extract_traits(content)
        assert traits["tone"] in {"questioning", "positive", "negative", "neutral"}


class TestTraitMerge:
    """Merging newly extracted traits into stored ones."""

    def test_lists_are_unioned_in_first_seen_order(self):
        existing = {"interests": ["music", "travel"]}
        merged = merge_traits(existing, {"interests": ["travel", "food"]})
        assert merged["interests"] == ["music", "travel", "food"]

    def test_scalars_overwrite(self):
        merged = merge_traits({"tone": "positive", "sentiment": "positive"}, {"tone": "negative"})
        assert merged["tone"] == "negative"
        assert merged["sentiment"] == "positive"

    def test_empty_merge_is_identity(self):
        existing = {"interests": ["music"], "topics": ["work"], "tone": "neutral"}
        assert merge_traits(existing, {}) == existing
        assert merge_traits(merge_traits(existing, {}), {}) == existing

    def test_does_not_mutate_input(self):
        existing = {"interests": ["music"]}
        merge_traits(existing, {"interests": ["food"]})
        assert existing == {"interests": ["music"]}


class TestPatterns:
    """Pattern counters."""

    def test_question_increments_question(self):
        patterns = update_patterns({}, "你在干嘛?")
        assert patterns == {"message_count": 1, "question": 1}

    def test_full_width_question_mark(self):
        assert update_patterns({}, "在吗？")["question"] == 1

    def test_statement(self):
        patterns = update_patterns({"message_count": 3, "question": 1}, "今天天气不错")
        assert patterns == {"message_count": 4, "question": 1, "statement": 1}

    def test_float_counters_from_json(self):
        assert update_patterns({"message_count": 4.0}, "ok")["message_count"] == 5

    def test_pre_update_count_defaults_to_one(self):
        assert pre_update_message_count({}) == 1
        assert pre_update_message_count({"message_count": 0}) == 0
        assert pre_update_message_count({"message_count": 7}) == 7


class TestStageTransitions:
    """Stage gating on the pre-update message count."""

    def test_first_message_breaks_ice(self):
        context = update(make_context(), "你好")
        assert context.stage == Stage.breaking_ice
        assert context.message_count == 1

    def test_breaking_ice_needs_five_prior_messages(self):
        context = make_context(stage=Stage.breaking_ice, successful_patterns={"message_count": 4})
        assert update(context, "hi").stage == Stage.breaking_ice
        context = make_context(stage=Stage.breaking_ice, successful_patterns={"message_count": 5})
        assert update(context, "hi").stage == Stage.warm_up

    def test_warm_up_needs_positive_or_affection(self):
        assert next_stage(Stage.warm_up, 10, "neutral", "今天下雨") == Stage.warm_up
        assert next_stage(Stage.warm_up, 10, "positive", "今天真好") == Stage.flirty
        assert next_stage(Stage.warm_up, 9, "positive", "今天真好") == Stage.warm_up

    def test_warm_up_gate_reads_stored_sentiment(self):
        context = make_context(
            stage=Stage.warm_up,
            target_traits={"sentiment": "positive"},
            successful_patterns={"message_count": 12},
        )
        assert update(context, "嗯").stage == Stage.flirty

    def test_positive_message_opens_gate_on_the_next_one(self):
        context = make_context(stage=Stage.warm_up, successful_patterns={"message_count": 12})
        context = update(context, "今天真好")
        assert context.stage == Stage.warm_up
        assert context.target_traits["sentiment"] == "positive"
        assert update(context, "嗯").stage == Stage.flirty

    def test_flirty_needs_intimacy_keyword(self):
        assert next_stage(Stage.flirty, 20, "positive", "哈哈") == Stage.flirty
        assert next_stage(Stage.flirty, 20, "neutral", "有点想你") == Stage.deep
        assert next_stage(Stage.flirty, 19, "neutral", "有点想你") == Stage.flirty

    def test_deep_is_terminal(self):
        assert next_stage(Stage.deep, 1000, "positive", "想你") == Stage.deep

    def test_at_most_one_step_per_message(self):
        # counts high enough for every gate still move a single stage
        context = make_context(stage=Stage.cold_start, successful_patterns={"message_count": 100})
        assert update(context, "喜欢你，想你").stage == Stage.breaking_ice

    def test_stage_sequence_is_monotonic(self):
        rng = random.Random(1234)
        samples = ["你好", "喜欢你", "想你", "在吗?", "今天好累", "哈哈", "讨厌", "我爱旅行", "", "糟糕"]
        for _ in range(20):
            context = make_context()
            previous = context.stage
            for _ in range(60):
                context = update(context, rng.choice(samples))
                assert context.stage >= previous
                assert context.stage - previous <= 1
                previous = context.stage

    def test_update_is_pure(self):
        context = make_context(target_traits={"interests": ["music"]})
        update(context, "我爱旅行")
        assert context.target_traits == {"interests": ["music"]}
        assert context.stage == Stage.cold_start

    def test_stage_names(self):
        assert stage_name(0) == "冷启动"
        assert stage_name(Stage.deep) == "深入"
        assert stage_name(9) == "未知"
