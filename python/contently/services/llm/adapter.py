"""Abstract base class for LLM adapters.

- Async adapters with httpx.AsyncClient
- No retries inside adapters
- No DB access
- No logging of request/response bodies
- Raw provider errors bubble up to GenerationService for classification
"""

from abc import ABC, abstractmethod

import httpx

from contently.services.llm.types import LLMRequest, LLMResponse


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters."""

    provider: str = "unknown"

    def __init__(self, client: httpx.AsyncClient):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
        """
        self._client = client

    @abstractmethod
    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        """Non-streaming generation. Returns complete response.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
        """
        pass
