"""Shared type definitions for the LLM layer.

- Turn: Provider-agnostic conversation turn
- LLMRequest: Request to the LLM adapter
- LLMUsage: Token usage from provider response
- LLMResponse: Complete response from a non-streaming call
"""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class LLMUsage:
    """Token usage from provider response.

    All fields are optional as not every response includes every metric.
    """

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """Request to LLM adapter.

    Attributes:
        model_name: The model identifier (e.g., "llama-3.1-8b-instant")
        messages: List of Turn objects (system turn first if present)
        max_tokens: Maximum tokens in the completion
        temperature: Sampling temperature, None uses provider default
        top_p: Nucleus sampling, None uses provider default
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None
    top_p: float | None = None


@dataclass(frozen=True)
class LLMResponse:
    """Complete response from non-streaming call.

    Attributes:
        text: The generated text content
        usage: Token usage information (may be None if provider doesn't return it)
        provider_request_id: Provider's request ID for debugging (may be None)
    """

    text: str
    usage: LLMUsage | None
    provider_request_id: str | None
