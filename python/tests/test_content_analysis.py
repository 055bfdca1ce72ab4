"""Tests for post analysis against platform guidelines."""

import pytest

from contently.services.content_analysis import (
    analyze_content,
    check_platform_suitability,
    count_emojis,
    count_hashtags,
    extract_thinking_content,
    guidelines_for,
    optimization_score,
)


class TestGuidelines:
    @pytest.mark.parametrize(
        ("platform", "max_length"),
        [
            ("twitter", 280),
            ("linkedin", 1300),
            ("instagram", 2200),
            ("facebook", 63206),
            ("tiktok", 150),
            ("youtube", 4500),
            ("general", 1000),
        ],
    )
    def test_max_lengths(self, platform, max_length):
        assert guidelines_for(platform).max_length == max_length

    def test_unknown_platform_falls_back_to_general(self):
        assert guidelines_for("myspace") == guidelines_for("general")


class TestCounting:
    def test_hashtags(self):
        assert count_hashtags("Ship it #launch #v2 and #AI_news!") == 3
        assert count_hashtags("No tags, just # spaces") == 0

    def test_hashtag_words_are_ascii(self):
        assert count_hashtags("#café") == 1
        assert count_hashtags("#日本") == 0

    def test_emojis(self):
        assert count_emojis("Launch \U0001f680 day \U0001f389\u2728") == 3
        assert count_emojis("plain text") == 0


class TestThinkingExtraction:
    def test_splits_think_block(self):
        main, thinking = extract_thinking_content(
            "<think>\nAnalyze: short\n</think>\n\nFinal post #a"
        )
        assert main == "Final post #a"
        assert thinking == "Analyze: short"

    def test_no_block(self):
        assert extract_thinking_content("  Just the post  ") == ("Just the post", None)

    def test_empty_block_is_ignored(self):
        main, thinking = extract_thinking_content("<think></think>Post")
        assert thinking is None
        assert main == "<think></think>Post"

    def test_only_first_block_is_extracted(self):
        main, thinking = extract_thinking_content("<think>one</think>Post<think>two</think>")
        assert thinking == "one"
        assert main == "Post<think>two</think>"


class TestOptimizationScore:
    def test_short_post_without_bonuses(self):
        assert optimization_score("Hello world", "general") == 100

    def test_hashtag_bonus_is_capped_at_100(self):
        assert optimization_score("Post #a #b #c", "general") == 100

    def test_length_penalty(self):
        # 10% over twitter's 280 characters
        content = "x" * 308
        assert optimization_score(content, "twitter") == 90

    def test_length_penalty_is_capped_at_50(self):
        assert optimization_score("x" * 1000, "tiktok") == 50

    def test_bonuses_offset_penalty(self):
        # 20% over (-20), three hashtags (+10), one emoji on twitter (+5)
        body = "x" * (336 - len(" #a #b #c \U0001f680"))
        content = body + " #a #b #c \U0001f680"
        assert len(content) == 336
        assert optimization_score(content, "twitter") == 95

    def test_emoji_bonus_only_on_emoji_platforms(self):
        content = "y" * 1100 + " \U0001f680"
        # linkedin: no overrun, no emoji bonus
        assert optimization_score(content, "linkedin") == 100
        # general: 1102 chars is 10.2% over 1000 → 89.8 → 90
        assert optimization_score(content, "general") == 90

    def test_rounds_half_up(self):
        # 283/280 is 1.0714% over → 98.93 → 99; 287/280 is 2.5% over → 97.5 → 98
        assert optimization_score("x" * 283, "twitter") == 99
        assert optimization_score("x" * 287, "twitter") == 98


class TestPlatformSuitability:
    def test_suitable_post(self):
        result = check_platform_suitability("Short post #a #b", "twitter")
        assert result.suitable is True
        assert result.issues == []

    def test_too_long_and_few_hashtags(self):
        result = check_platform_suitability("x" * 300, "twitter")
        assert result.suitable is False
        assert result.issues == [
            "Content exceeds twitter's optimal length (300/280 characters)",
            "Consider adding more hashtags for discoverability",
        ]

    def test_linkedin_exclamation_marks(self):
        result = check_platform_suitability("Big news!!! #hiring #growth", "linkedin")
        assert result.issues == ["Avoid excessive exclamation marks for professional platforms"]

    def test_exclamation_marks_fine_elsewhere(self):
        result = check_platform_suitability("Big news!!! #launch #v2", "twitter")
        assert result.suitable is True


class TestAnalyzeContent:
    def test_all_fields(self):
        analytics = analyze_content("Launch day \U0001f680 #launch #v2 #product", "twitter")
        assert analytics.character_count == len("Launch day \U0001f680 #launch #v2 #product")
        assert analytics.hashtags == 3
        assert analytics.emojis == 1
        assert analytics.optimization_score == 100
        assert analytics.platform_suitability.suitable is True
