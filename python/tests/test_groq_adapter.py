"""Tests for the Groq adapter and provider error classification.

Tests use respx to mock the Groq chat completions endpoint. No live
provider calls and no real API keys.
"""

import json

import httpx
import pytest
import respx

from contently.services.llm import LLMError, LLMErrorClass, LLMRequest, Turn
from contently.services.llm.errors import classify_provider_error
from contently.services.llm.groq_adapter import GROQ_CHAT_URL, GroqAdapter

SUCCESS_BODY = {
    "id": "chatcmpl-abc123",
    "object": "chat.completion",
    "model": "llama-3.1-8b-instant",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Launch day! #v2 #launch #product"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 42, "completion_tokens": 12, "total_tokens": 54},
}


@pytest.fixture
def httpx_client():
    return httpx.AsyncClient()


@pytest.fixture
def llm_request():
    return LLMRequest(
        model_name="llama-3.1-8b-instant",
        messages=[
            Turn(role="system", content="You are a social media expert."),
            Turn(role="user", content="Announce our v2 launch"),
        ],
        max_tokens=1024,
        temperature=0.7,
        top_p=1.0,
    )


class TestGroqAdapter:
    @pytest.mark.asyncio
    @respx.mock
    async def test_nonstream_success(self, httpx_client, llm_request):
        respx.post(GROQ_CHAT_URL).respond(
            200, json=SUCCESS_BODY, headers={"x-request-id": "req_groq_1"}
        )

        adapter = GroqAdapter(httpx_client)
        response = await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        assert response.text == "Launch day! #v2 #launch #product"
        assert response.usage is not None
        assert response.usage.prompt_tokens == 42
        assert response.usage.completion_tokens == 12
        assert response.usage.total_tokens == 54
        assert response.provider_request_id == "req_groq_1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_request_shape(self, httpx_client, llm_request):
        route = respx.post(GROQ_CHAT_URL).respond(200, json=SUCCESS_BODY)

        adapter = GroqAdapter(httpx_client)
        await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        sent = route.calls.last.request
        assert sent.headers["authorization"] == "Bearer gsk-test"
        body = json.loads(sent.content)
        assert body == {
            "model": "llama-3.1-8b-instant",
            "messages": [
                {"role": "system", "content": "You are a social media expert."},
                {"role": "user", "content": "Announce our v2 launch"},
            ],
            "max_tokens": 1024,
            "stream": False,
            "temperature": 0.7,
            "top_p": 1.0,
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_body_id_used_without_request_id_header(self, httpx_client, llm_request):
        respx.post(GROQ_CHAT_URL).respond(200, json=SUCCESS_BODY)

        adapter = GroqAdapter(httpx_client)
        response = await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        assert response.provider_request_id == "chatcmpl-abc123"

    @pytest.mark.asyncio
    @respx.mock
    async def test_custom_chat_url(self, httpx_client, llm_request):
        route = respx.post("http://groq.internal/v1/chat").respond(200, json=SUCCESS_BODY)

        adapter = GroqAdapter(httpx_client, chat_url="http://groq.internal/v1/chat")
        await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        assert route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_choices(self, httpx_client, llm_request):
        respx.post(GROQ_CHAT_URL).respond(200, json={"id": "x", "choices": []})

        adapter = GroqAdapter(httpx_client)
        with pytest.raises(LLMError) as exc_info:
            await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @pytest.mark.asyncio
    @respx.mock
    async def test_null_content_becomes_empty_text(self, httpx_client, llm_request):
        body = {"choices": [{"message": {"role": "assistant", "content": None}}]}
        respx.post(GROQ_CHAT_URL).respond(200, json=body)

        adapter = GroqAdapter(httpx_client)
        response = await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        assert response.text == ""
        assert response.usage is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_errors_bubble_up(self, httpx_client, llm_request):
        respx.post(GROQ_CHAT_URL).respond(429, json={"error": {"message": "Rate limit"}})

        adapter = GroqAdapter(httpx_client)
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await adapter.generate(llm_request, api_key="gsk-test", timeout_s=30)

        assert exc_info.value.response.status_code == 429

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_bubbles_up(self, httpx_client, llm_request):
        respx.post(GROQ_CHAT_URL).mock(side_effect=httpx.ReadTimeout("Read timed out"))

        adapter = GroqAdapter(httpx_client)
        with pytest.raises(httpx.TimeoutException):
            await adapter.generate(llm_request, api_key="gsk-test", timeout_s=1)


class TestClassifyProviderError:
    @pytest.mark.parametrize(
        ("status_code", "body", "expected"),
        [
            (401, None, LLMErrorClass.INVALID_KEY),
            (403, None, LLMErrorClass.INVALID_KEY),
            (429, None, LLMErrorClass.RATE_LIMIT),
            (404, None, LLMErrorClass.MODEL_NOT_AVAILABLE),
            (500, None, LLMErrorClass.PROVIDER_DOWN),
            (503, None, LLMErrorClass.PROVIDER_DOWN),
            (413, None, LLMErrorClass.CONTEXT_TOO_LARGE),
            (
                400,
                {"error": {"code": "context_length_exceeded", "message": "too long"}},
                LLMErrorClass.CONTEXT_TOO_LARGE,
            ),
            (
                400,
                {"error": {"code": "model_decommissioned", "message": "gone"}},
                LLMErrorClass.MODEL_NOT_AVAILABLE,
            ),
            (
                400,
                {"error": {"message": "The model `gemma-7b-it` was not found"}},
                LLMErrorClass.MODEL_NOT_AVAILABLE,
            ),
            (400, {"error": {"message": "bad request"}}, LLMErrorClass.PROVIDER_DOWN),
            (None, None, LLMErrorClass.PROVIDER_DOWN),
        ],
    )
    def test_status_codes(self, status_code, body, expected):
        assert classify_provider_error(status_code, body, None) == expected

    def test_timeout_exception(self):
        error = httpx.ReadTimeout("timed out")
        assert classify_provider_error(None, None, error) == LLMErrorClass.TIMEOUT

    def test_connection_exception(self):
        error = httpx.ConnectError("refused")
        assert classify_provider_error(None, None, error) == LLMErrorClass.PROVIDER_DOWN
