"""Provider-agnostic prompt rendering and response cleaning.

Two system turns lead every generation request:
- The platform brief (render_platform_brief), written by the message
  service from the platform guidelines, including the <think> block format
  the model is asked to use.
- The platform persona (build_system_prompt), prepended by
  GenerationService immediately before the call.

After the call, clean_response strips markdown headings, bold/italic
markers and double quotes from the model output.
"""

import re

from contently.db.models import DEFAULT_PLATFORM, Platform
from contently.services.content_analysis import guidelines_for
from contently.services.llm.types import Turn

PLATFORM_PROMPTS: dict[str, str] = {
    Platform.twitter.value: (
        "Create content optimized for Twitter/X. Keep it under 280 characters, use engaging "
        "hooks, include relevant hashtags (2-3 max), and make it shareable. Focus on brevity "
        "and impact."
    ),
    Platform.linkedin.value: (
        "Create professional LinkedIn content. Use a professional tone, include industry "
        "insights, add relevant hashtags, and structure with clear paragraphs. Aim for thought "
        "leadership and professional networking."
    ),
    Platform.instagram.value: (
        "Create Instagram-optimized content. Use engaging captions, include 5-10 relevant "
        "hashtags, add emojis for visual appeal, and encourage engagement through questions "
        "or calls-to-action."
    ),
    Platform.facebook.value: (
        "Create Facebook content that encourages engagement. Use a conversational tone, "
        "include relevant hashtags (3-5), and structure for easy reading with line breaks "
        "and emojis where appropriate."
    ),
    Platform.tiktok.value: (
        "Create TikTok content description. Focus on trending topics, use casual and "
        "energetic tone, include trending hashtags, and structure content that would work "
        "well for short-form video."
    ),
    Platform.youtube.value: (
        "Create YouTube Shorts content description. Include engaging hooks, use trending "
        "topics, add relevant hashtags, and focus on content that works well in vertical "
        "video format."
    ),
    Platform.general.value: (
        "Create engaging social media content that can be adapted for multiple platforms. "
        "Focus on clear messaging, engaging tone, and broad appeal."
    ),
}

SYSTEM_PROMPT_TEMPLATE = """You are a social media content creation expert. {platform_prompt}

Always provide actionable, engaging content that follows platform best practices. \
Be creative, authentic, and valuable to the audience."""

PLATFORM_BRIEF_TEMPLATE = """You are an expert social media content creator specializing in \
{platform}. Create engaging, platform-optimized content.

## CRITICAL GUIDELINES:
- STRICTLY adhere to {platform}'s best practices
- Maximum {max_length} characters for main content
- Use appropriate tone for {platform}
- Include relevant emojis if suitable
- Add 3-5 relevant hashtags at the end
- Ensure high engagement potential

## CONTENT STRUCTURE:
[Main Hook/Headline] - Attention-grabbing opening

[Body Content] - Clear, concise message

[Call to Action] - Engagement prompt (like, comment, share)

[Hashtags] - 3-5 relevant hashtags

## THINKING PROCESS:
<think>
Analyze: [Platform analysis]
Tone: [Appropriate tone]
Strategy: [Content strategy]
Engagement: [Engagement tactics]
Optimization: [Platform-specific optimizations]
</think>

## FINAL OUTPUT:
[Your optimized social media content here]"""

_HEADING_RE = re.compile(r"^#+\s*", re.MULTILINE)
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*]+)\*")


def build_system_prompt(platform: str) -> str:
    """Persona system prompt for a platform (unknown platforms use general)."""
    platform_prompt = PLATFORM_PROMPTS.get(platform, PLATFORM_PROMPTS[DEFAULT_PLATFORM.value])
    return SYSTEM_PROMPT_TEMPLATE.format(platform_prompt=platform_prompt)


def render_platform_brief(platform: str) -> str:
    """Content brief naming the platform's length limit and output structure."""
    guidelines = guidelines_for(platform)
    return PLATFORM_BRIEF_TEMPLATE.format(platform=platform, max_length=guidelines.max_length)


def render_generation_turns(platform: str, history: list[Turn]) -> list[Turn]:
    """Build the turn list for a message generation.

    The platform brief goes first, followed by the full conversation history
    in order (the newest user message is already its last element).
    """
    turns = [Turn(role="system", content=render_platform_brief(platform))]
    turns.extend(history)
    return turns


def clean_response(text: str) -> str:
    """Strip markdown headings, bold/italic markers and double quotes."""
    cleaned = _HEADING_RE.sub("", text)
    cleaned = _BOLD_RE.sub(r"\1", cleaned)
    cleaned = _ITALIC_RE.sub(r"\1", cleaned)
    return cleaned.replace('"', "")
