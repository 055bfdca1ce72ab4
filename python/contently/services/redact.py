"""Hashing and log guard utilities.

- hash_text: stable SHA-256 hex digest for log correlation and cache keys
- safe_kv: log guard that blocks forbidden keys at call site

Never-log policy:
- Passwords and password hashes
- Session tokens, refresh tokens, Firebase ID tokens
- The Groq API key
- Rendered prompts and message content

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Token counts, latency, provider request ID
"""

import hashlib
import os

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "api_key",
        "bearer",
        "token",
        "access_token",
        "refresh_token",
        "id_token",
        "secret",
        "password",
        "password_hash",
        "message_text",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string.

    Stable: same input always produces same output.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    """Check if key ends with a recognized redacted suffix."""
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In staging/prod, logs a warning instead.

    Usage:
        logger.info("llm.request.started", **safe_kv(
            model_name="llama-3.1-8b-instant",
            message_chars=1234,       # OK: _chars suffix
            prompt_sha256="abc123",   # OK: _sha256 suffix
            # prompt="hello world",   # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for CONTENTLY_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.

    Raises:
        ValueError: In local/test, if a forbidden key is used without redacted suffix.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("CONTENTLY_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)

        import structlog

        structlog.get_logger("contently.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )

    return kwargs
