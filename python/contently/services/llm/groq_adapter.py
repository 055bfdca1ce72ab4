"""Groq LLM adapter implementation.

Groq exposes an OpenAI-compatible chat completions API:
- Endpoint: POST https://api.groq.com/openai/v1/chat/completions
- Headers: Authorization: Bearer <key>, Content-Type: application/json

Request body:
{
  "model": "llama-3.1-8b-instant",
  "messages": [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}],
  "max_tokens": 1024,
  "temperature": 0.7,
  "top_p": 1,
  "stream": false
}

Response - extract:
- text = choices[0].message.content
- usage = direct mapping
- provider_request_id = response header x-request-id or body id
"""

import httpx

from contently.services.llm.adapter import LLMAdapter
from contently.services.llm.errors import LLMError, LLMErrorClass
from contently.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

GROQ_CHAT_URL = "https://api.groq.com/openai/v1/chat/completions"


class GroqAdapter(LLMAdapter):
    """Groq chat completions adapter (non-streaming)."""

    provider = "groq"

    def __init__(self, client: httpx.AsyncClient, chat_url: str = GROQ_CHAT_URL):
        super().__init__(client)
        self.chat_url = chat_url

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        """Non-streaming chat completion."""
        response = await self._client.post(
            self.chat_url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        return self._parse_response(response.json(), response.headers)

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "max_tokens": req.max_tokens,
            "stream": False,
        }
        if req.temperature is not None:
            body["temperature"] = req.temperature
        if req.top_p is not None:
            body["top_p"] = req.top_p
        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        return {"role": turn.role, "content": turn.content}

    def _parse_response(self, data: dict, headers: httpx.Headers) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Groq response missing choices",
                provider=self.provider,
            )

        text = (choices[0].get("message") or {}).get("content") or ""

        usage = None
        usage_data = data.get("usage")
        if usage_data:
            usage = LLMUsage(
                prompt_tokens=usage_data.get("prompt_tokens"),
                completion_tokens=usage_data.get("completion_tokens"),
                total_tokens=usage_data.get("total_tokens"),
            )

        return LLMResponse(
            text=text,
            usage=usage,
            provider_request_id=headers.get("x-request-id") or data.get("id"),
        )
