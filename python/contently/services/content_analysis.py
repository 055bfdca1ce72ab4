"""Content analysis for generated social media posts.

Pure functions, no I/O:
- extract_thinking_content: split a <think>...</think> side channel from the post
- count_hashtags / count_emojis
- optimization_score: 0..100 heuristic against platform guidelines
- check_platform_suitability: human-readable issues list
- analyze_content: all of the above for one post
"""

import re
from dataclasses import dataclass, field

from contently.db.models import DEFAULT_PLATFORM, Platform


@dataclass(frozen=True)
class PlatformGuidelines:
    """Posting guidelines for one platform.

    Only max_length and emoji_recommendation feed the score; the remaining
    flags describe the platform's style.
    """

    max_length: int
    emoji_recommendation: bool = False
    hashtag_recommendation: bool = False
    character_count: bool = False
    professional_tone: bool = False
    paragraph_structure: bool = False
    line_breaks: bool = False
    call_to_action: bool = False
    engagement_prompt: bool = False
    trending_topics: bool = False
    viral_hooks: bool = False
    video_description: bool = False
    seo_keywords: bool = False
    basic_formatting: bool = False


PLATFORM_GUIDELINES: dict[str, PlatformGuidelines] = {
    Platform.twitter.value: PlatformGuidelines(
        max_length=280,
        emoji_recommendation=True,
        hashtag_recommendation=True,
        character_count=True,
    ),
    Platform.linkedin.value: PlatformGuidelines(
        max_length=1300,
        professional_tone=True,
        hashtag_recommendation=True,
        paragraph_structure=True,
    ),
    Platform.instagram.value: PlatformGuidelines(
        max_length=2200,
        emoji_recommendation=True,
        line_breaks=True,
        call_to_action=True,
    ),
    Platform.facebook.value: PlatformGuidelines(
        max_length=63206,
        emoji_recommendation=True,
        paragraph_structure=True,
        engagement_prompt=True,
    ),
    Platform.tiktok.value: PlatformGuidelines(
        max_length=150,
        trending_topics=True,
        viral_hooks=True,
        emoji_recommendation=True,
    ),
    Platform.youtube.value: PlatformGuidelines(
        max_length=4500,
        video_description=True,
        hashtag_recommendation=True,
        seo_keywords=True,
    ),
    Platform.general.value: PlatformGuidelines(
        max_length=1000,
        basic_formatting=True,
    ),
}

# Hashtag words are ASCII word characters only
HASHTAG_RE = re.compile(r"#\w+", re.ASCII)

EMOJI_RE = re.compile(
    "["
    "\U0001f600-\U0001f64f"
    "\U0001f300-\U0001f5ff"
    "\U0001f680-\U0001f6ff"
    "\U0001f700-\U0001f77f"
    "\U0001f780-\U0001f7ff"
    "\U0001f800-\U0001f8ff"
    "\U0001f900-\U0001f9ff"
    "\U0001fa00-\U0001fa6f"
    "\U0001fa70-\U0001faff"
    "\u2600-\u26ff"
    "\u2700-\u27bf"
    "]"
)

THINK_RE = re.compile(r"<think>(.*?)</think>", re.DOTALL)

HASHTAG_BONUS_RANGE = (3, 5)
EMOJI_BONUS_RANGE = (1, 3)
MIN_HASHTAGS = 2


@dataclass(frozen=True)
class PlatformSuitability:
    suitable: bool
    issues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContentAnalytics:
    """Analysis of a single generated post."""

    character_count: int
    hashtags: int
    emojis: int
    optimization_score: int
    platform_suitability: PlatformSuitability


def guidelines_for(platform: str) -> PlatformGuidelines:
    """Guidelines for a platform, falling back to general."""
    return PLATFORM_GUIDELINES.get(platform, PLATFORM_GUIDELINES[DEFAULT_PLATFORM.value])


def extract_thinking_content(text: str) -> tuple[str, str | None]:
    """Split the first <think>...</think> block out of a response.

    Returns:
        (main_content, thinking_content). Both are stripped; thinking_content
        is None when no non-empty block is present.
    """
    match = THINK_RE.search(text)
    if match and match.group(1):
        thinking = match.group(1).strip()
        main = THINK_RE.sub("", text, count=1).strip()
        return main, thinking
    return text.strip(), None


def count_hashtags(content: str) -> int:
    return len(HASHTAG_RE.findall(content))


def count_emojis(content: str) -> int:
    return len(EMOJI_RE.findall(content))


def optimization_score(content: str, platform: str) -> int:
    """Heuristic 0..100 score of how well a post fits its platform.

    Starts at 100, loses up to 50 points proportionally to how far the post
    runs over the platform's maximum length, gains 10 for 3-5 hashtags and,
    on emoji-friendly platforms, 5 for 1-3 emojis.
    """
    guidelines = guidelines_for(platform)
    score = 100.0

    length = len(content)
    if length > guidelines.max_length:
        overrun = (length - guidelines.max_length) / guidelines.max_length * 100
        score -= min(50.0, overrun)

    low, high = HASHTAG_BONUS_RANGE
    if low <= count_hashtags(content) <= high:
        score += 10

    if guidelines.emoji_recommendation:
        low, high = EMOJI_BONUS_RANGE
        if low <= count_emojis(content) <= high:
            score += 5

    return max(0, min(100, _round_half_up(score)))


def check_platform_suitability(content: str, platform: str) -> PlatformSuitability:
    """List the ways a post misses its platform's guidelines."""
    guidelines = guidelines_for(platform)
    issues: list[str] = []

    length = len(content)
    if length > guidelines.max_length:
        issues.append(
            f"Content exceeds {platform}'s optimal length "
            f"({length}/{guidelines.max_length} characters)"
        )

    if count_hashtags(content) < MIN_HASHTAGS:
        issues.append("Consider adding more hashtags for discoverability")

    if platform == Platform.linkedin.value and "!!!" in content:
        issues.append("Avoid excessive exclamation marks for professional platforms")

    return PlatformSuitability(suitable=not issues, issues=issues)


def analyze_content(content: str, platform: str) -> ContentAnalytics:
    return ContentAnalytics(
        character_count=len(content),
        hashtags=count_hashtags(content),
        emojis=count_emojis(content),
        optimization_score=optimization_score(content, platform),
        platform_suitability=check_platform_suitability(content, platform),
    )


def _round_half_up(value: float) -> int:
    # round() uses banker's rounding; scores round .5 upward
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
