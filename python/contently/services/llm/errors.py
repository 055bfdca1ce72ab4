"""LLM error classification and normalization.

Classifies Groq (OpenAI-compatible) errors into normalized error classes.
Called by GenerationService after catching adapter exceptions.

Error classes:
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Context length exceeded
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error)
- E_MODEL_NOT_AVAILABLE: Model not found or decommissioned
"""

from enum import Enum


class LLMErrorClass(str, Enum):
    """Normalized LLM error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"


class LLMError(Exception):
    """Exception for LLM-related errors.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
        provider: The provider that returned the error (if known)
    """

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        super().__init__(message)


def classify_provider_error(
    status_code: int | None,
    json_body: dict | None,
    exception: Exception | None,
) -> LLMErrorClass:
    """Classify a Groq error into a normalized error class.

    - Timeout exception → TIMEOUT
    - Network/connection exception or no status → PROVIDER_DOWN
    - 401 or 403 → INVALID_KEY
    - 429 → RATE_LIMIT
    - 404, or 400 with a model_not_found / model_decommissioned code → MODEL_NOT_AVAILABLE
    - 400/413 with context_length_exceeded or "context length" → CONTEXT_TOO_LARGE
    - 5xx → PROVIDER_DOWN
    """
    if exception is not None:
        exception_type = type(exception).__name__
        if "Timeout" in exception_type or "timeout" in str(exception).lower():
            return LLMErrorClass.TIMEOUT
        if "Network" in exception_type or "Connection" in exception_type:
            return LLMErrorClass.PROVIDER_DOWN

    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code in (400, 413) and json_body:
        error = json_body.get("error") or {}
        error_code = str(error.get("code") or "")
        error_message = str(error.get("message") or "").lower()

        if error_code in ("model_not_found", "model_decommissioned"):
            return LLMErrorClass.MODEL_NOT_AVAILABLE
        if error_code == "context_length_exceeded" or "context length" in error_message:
            return LLMErrorClass.CONTEXT_TOO_LARGE
        if "model" in error_message and "not found" in error_message:
            return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code == 413:
        return LLMErrorClass.CONTEXT_TOO_LARGE

    return LLMErrorClass.PROVIDER_DOWN
