"""LLM layer for Groq-backed content generation.

This package provides:

- A Groq chat completions adapter (async, non-streaming)
- Error classification and normalization
- Prompt rendering and response cleaning
- A priority queue that caps concurrent provider calls
- A TTL response cache
- GenerationService, which composes cache → queue → adapter

Usage:
    from contently.services.llm import GenerationService, GenerationQueue, ResponseCache

    service = GenerationService(
        GroqAdapter(httpx_client),
        GenerationQueue(max_concurrent=2, request_delay_s=1.0),
        ResponseCache(),
        api_key="gsk-...",
    )
    text = await service.generate(turns, "llama-3.1-8b-instant", "twitter")

Adapters:
- No retries inside adapters
- No DB access inside adapters
- No logging of request/response bodies
- Raw provider errors bubble up to GenerationService for classification
"""

from contently.services.llm.adapter import LLMAdapter
from contently.services.llm.cache import ResponseCache, generation_cache_key
from contently.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from contently.services.llm.generation import GenerationService
from contently.services.llm.groq_adapter import GroqAdapter
from contently.services.llm.prompt import (
    build_system_prompt,
    clean_response,
    render_generation_turns,
    render_platform_brief,
)
from contently.services.llm.queue import GenerationQueue
from contently.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

__all__ = [
    # Core types
    "Turn",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    # Adapters
    "LLMAdapter",
    "GroqAdapter",
    # Throttling and caching
    "GenerationQueue",
    "ResponseCache",
    "generation_cache_key",
    "GenerationService",
    # Errors
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    # Prompt rendering
    "build_system_prompt",
    "clean_response",
    "render_generation_turns",
    "render_platform_brief",
]
