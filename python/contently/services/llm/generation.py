"""Generation service: cache, then queue, then Groq.

Observability:
- Emits generation.cache_hit when a cached response is returned
- Emits llm.request.started / llm.request.finished / llm.request.failed
  around every provider call
- All events use safe_kv() to prevent sensitive data leakage

Error handling:
- Provider 401/403 → E_LLM_INVALID_KEY
- Provider 429 → E_LLM_RATE_LIMIT
- Timeout → E_LLM_TIMEOUT
- Context too large → E_LLM_CONTEXT_TOO_LARGE
- Other → E_LLM_PROVIDER_DOWN
"""

import time
from collections.abc import Sequence

import httpx

from contently.logging import get_logger
from contently.services.llm.adapter import LLMAdapter
from contently.services.llm.cache import (
    DEFAULT_GENERATION_TTL_S,
    ResponseCache,
    generation_cache_key,
)
from contently.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from contently.services.llm.prompt import build_system_prompt, clean_response
from contently.services.llm.queue import DEFAULT_PRIORITY, GenerationQueue
from contently.services.llm.types import LLMRequest, Turn
from contently.services.redact import safe_kv

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 60
MAX_TOKENS = 1024
TEMPERATURE = 0.7
TOP_P = 1.0
NO_RESPONSE_TEXT = "No response generated"


class GenerationService:
    """Composes the response cache, the throttling queue and a provider adapter."""

    def __init__(
        self,
        adapter: LLMAdapter,
        queue: GenerationQueue,
        cache: ResponseCache,
        *,
        api_key: str,
        cache_ttl_s: float = DEFAULT_GENERATION_TTL_S,
        timeout_s: int = DEFAULT_TIMEOUT_S,
    ):
        self.adapter = adapter
        self.queue = queue
        self.cache = cache
        self._api_key = api_key
        self._cache_ttl_s = cache_ttl_s
        self._timeout_s = timeout_s

    async def generate(
        self,
        turns: Sequence[Turn],
        model: str,
        platform: str,
        *,
        priority: int = DEFAULT_PRIORITY,
    ) -> str:
        """Generate cleaned response text for the given turns.

        Args:
            turns: Conversation turns in order, without the persona prompt.
            model: Groq model identifier.
            platform: Target platform, selects the persona prompt.
            priority: Queue priority (higher runs first).

        Returns:
            Cleaned response text.

        Raises:
            LLMError: With normalized error class on failure.
        """
        cache_key = generation_cache_key(model, platform, turns)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("generation.cache_hit", model_name=model, platform=platform)
            return cached

        req = LLMRequest(
            model_name=model,
            messages=[Turn(role="system", content=build_system_prompt(platform)), *turns],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            top_p=TOP_P,
        )

        text = await self.queue.enqueue(lambda: self._call_provider(req), priority=priority)

        if text:
            self.cache.set(cache_key, text, self._cache_ttl_s)
        return text

    async def _call_provider(self, req: LLMRequest) -> str:
        provider = self.adapter.provider
        base = {
            "provider": provider,
            "model_name": req.model_name,
            "queue_length": self.queue.queue_length,
            "in_flight": self.queue.in_flight,
        }

        logger.info(
            "llm.request.started",
            **safe_kv(
                **base,
                message_chars=sum(len(m.content) for m in req.messages),
                num_turns=len(req.messages),
            ),
        )

        start = time.monotonic()

        try:
            response = await self.adapter.generate(
                req, api_key=self._api_key, timeout_s=self._timeout_s
            )

        except httpx.TimeoutException as e:
            self._log_failure(base, LLMErrorClass.TIMEOUT, start)
            raise LLMError(LLMErrorClass.TIMEOUT, "Request timed out", provider=provider) from e

        except httpx.HTTPStatusError as e:
            json_body = self._safe_parse_json(e.response)
            error_class = classify_provider_error(e.response.status_code, json_body, None)
            self._log_failure(
                base,
                error_class,
                start,
                status_code=e.response.status_code,
                provider_request_id=e.response.headers.get("x-request-id"),
            )
            raise LLMError(
                error_class,
                f"Provider returned HTTP {e.response.status_code}",
                provider=provider,
            ) from e

        except httpx.NetworkError as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(LLMErrorClass.PROVIDER_DOWN, "Network error", provider=provider) from e

        except LLMError as e:
            self._log_failure(base, e.error_class, start)
            raise

        except Exception as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"Unexpected error: {type(e).__name__}",
                provider=provider,
            ) from e

        usage = response.usage
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                tokens_total=usage.total_tokens if usage else None,
                provider_request_id=response.provider_request_id,
            ),
        )

        return clean_response(response.text or NO_RESPONSE_TEXT)

    def _log_failure(
        self,
        base: dict,
        error_class: LLMErrorClass,
        start: float,
        **extra,
    ) -> None:
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error_class.value,
                latency_ms=int((time.monotonic() - start) * 1000),
                **extra,
            ),
        )

    def _safe_parse_json(self, response: httpx.Response) -> dict | None:
        """Parse a provider error body, tolerating non-JSON payloads."""
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
