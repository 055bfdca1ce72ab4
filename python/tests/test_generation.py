"""Tests for GenerationService: cache, then queue, then provider."""

import httpx
import pytest

from contently.services.llm import (
    GenerationQueue,
    GenerationService,
    LLMError,
    LLMErrorClass,
    ResponseCache,
    Turn,
    build_system_prompt,
)
from tests.support.fake_llm import FakeLLMAdapter

MODEL = "llama-3.1-8b-instant"


@pytest.fixture
def adapter():
    return FakeLLMAdapter()


@pytest.fixture
def service(adapter):
    return GenerationService(
        adapter,
        GenerationQueue(max_concurrent=2, request_delay_s=0),
        ResponseCache(),
        api_key="gsk-test",
    )


def history(*contents: str) -> list[Turn]:
    return [Turn(role="user", content=c) for c in contents]


def status_error(status_code: int, body: dict | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    response = httpx.Response(status_code, json=body or {}, request=request)
    return httpx.HTTPStatusError("provider error", request=request, response=response)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_persona_prompt_leads_request(self, service, adapter):
        await service.generate(history("Announce our v2 launch"), MODEL, "twitter")

        request = adapter.requests[0]
        assert request.messages[0] == Turn(role="system", content=build_system_prompt("twitter"))
        assert request.messages[1:] == history("Announce our v2 launch")
        assert request.max_tokens == 1024
        assert request.temperature == 0.7
        assert request.top_p == 1.0

    @pytest.mark.asyncio
    async def test_unknown_platform_uses_general_persona(self, service, adapter):
        await service.generate(history("hi"), MODEL, "myspace")
        assert adapter.requests[0].messages[0].content == build_system_prompt("general")

    @pytest.mark.asyncio
    async def test_response_is_cleaned(self, service, adapter):
        adapter.queue_reply('# Title\n**Bold** and *italic* "quoted"')

        text = await service.generate(history("hi"), MODEL, "general")

        assert text == "Title\nBold and italic quoted"

    @pytest.mark.asyncio
    async def test_empty_response_gets_placeholder(self, service, adapter):
        adapter.queue_reply("")

        assert await service.generate(history("hi"), MODEL, "general") == "No response generated"


class TestCaching:
    @pytest.mark.asyncio
    async def test_identical_requests_call_provider_once(self, service, adapter):
        first = await service.generate(history("Announce our v2 launch"), MODEL, "twitter")
        second = await service.generate(history("Announce our v2 launch"), MODEL, "twitter")

        assert first == second
        assert len(adapter.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("model", "platform", "turns"),
        [
            ("gemma-7b-it", "twitter", history("Announce our v2 launch")),
            (MODEL, "linkedin", history("Announce our v2 launch")),
            (MODEL, "twitter", history("Announce our v3 launch")),
        ],
    )
    async def test_any_key_change_calls_provider_again(
        self, service, adapter, model, platform, turns
    ):
        await service.generate(history("Announce our v2 launch"), MODEL, "twitter")
        await service.generate(turns, model, platform)

        assert len(adapter.requests) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, service, adapter):
        adapter.queue_error(status_error(503))

        with pytest.raises(LLMError):
            await service.generate(history("hi"), MODEL, "general")
        text = await service.generate(history("hi"), MODEL, "general")

        assert text == adapter.default_reply
        assert len(adapter.requests) == 2

    @pytest.mark.asyncio
    async def test_expired_entry_calls_provider_again(self, adapter):
        now = [0.0]
        service = GenerationService(
            adapter,
            GenerationQueue(max_concurrent=1, request_delay_s=0),
            ResponseCache(clock=lambda: now[0]),
            api_key="gsk-test",
            cache_ttl_s=600,
        )

        await service.generate(history("hi"), MODEL, "general")
        now[0] = 600
        await service.generate(history("hi"), MODEL, "general")

        assert len(adapter.requests) == 2


class TestErrorNormalization:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (status_error(401), LLMErrorClass.INVALID_KEY),
            (status_error(429), LLMErrorClass.RATE_LIMIT),
            (status_error(404), LLMErrorClass.MODEL_NOT_AVAILABLE),
            (status_error(502), LLMErrorClass.PROVIDER_DOWN),
            (
                status_error(400, {"error": {"code": "context_length_exceeded"}}),
                LLMErrorClass.CONTEXT_TOO_LARGE,
            ),
            (httpx.ReadTimeout("timed out"), LLMErrorClass.TIMEOUT),
            (httpx.ConnectError("refused"), LLMErrorClass.PROVIDER_DOWN),
            (RuntimeError("surprise"), LLMErrorClass.PROVIDER_DOWN),
            (
                LLMError(LLMErrorClass.MODEL_NOT_AVAILABLE, "gone"),
                LLMErrorClass.MODEL_NOT_AVAILABLE,
            ),
        ],
    )
    async def test_provider_errors_map_to_classes(self, service, adapter, error, expected):
        adapter.queue_error(error)

        with pytest.raises(LLMError) as exc_info:
            await service.generate(history("hi"), MODEL, "general")

        assert exc_info.value.error_class == expected

    @pytest.mark.asyncio
    async def test_wrapped_errors_name_the_provider(self, service, adapter):
        adapter.queue_error(status_error(429))

        with pytest.raises(LLMError) as exc_info:
            await service.generate(history("hi"), MODEL, "general")

        assert exc_info.value.provider == "fake"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, service, adapter):
        request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
        response = httpx.Response(500, text="<html>bad gateway</html>", request=request)
        adapter.queue_error(httpx.HTTPStatusError("boom", request=request, response=response))

        with pytest.raises(LLMError) as exc_info:
            await service.generate(history("hi"), MODEL, "general")

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN
