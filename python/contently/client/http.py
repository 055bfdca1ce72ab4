"""HTTP client for the ContentlyAI API with one-shot session refresh.

The client's httpx cookie jar plays the part of the browser: the
access_token/refresh_token cookies set by login and refresh ride along on
every later request. An optional Firebase ID token is sent as a bearer
header.

Retry contract:
- A 401 from any URL other than /auth/refresh triggers one POST /auth/refresh
- Refresh succeeded: the original request is re-sent exactly once, with
  further refreshes disabled; its response is returned whatever it is
- Refresh failed: the identity token is dropped, on_session_expired runs,
  and SessionExpiredError is raised; the original request is not re-sent
"""

from collections.abc import Callable
from typing import Any
from uuid import UUID

import httpx

from contently.client.optimistic import OptimisticMessage, SendOutcome
from contently.logging import get_logger

logger = get_logger(__name__)

REFRESH_PATH = "/auth/refresh"
MAX_RETRIES = 1
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."
DEFAULT_TIMEOUT_S = 60.0


class SessionExpiredError(Exception):
    """The session could not be refreshed; the user has to log in again."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE):
        super().__init__(message)


class ContentlyClient:
    """Async API client.

    Args:
        base_url: API origin, e.g. "https://api.contently.example".
        identity_token: Firebase ID token to send as Authorization: Bearer.
        on_session_expired: Called once when a refresh fails.
        http_client: Pre-built httpx.AsyncClient (tests pass one with a mock
            transport). When omitted the client owns its own.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        identity_token: str | None = None,
        on_session_expired: Callable[[], None] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(DEFAULT_TIMEOUT_S, connect=10.0),
        )
        self.identity_token = identity_token
        self.on_session_expired = on_session_expired

    async def __aenter__(self) -> "ContentlyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._http.cookies

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        skip_auth_refresh: bool = False,
        retry_count: int = 0,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, refreshing the session once on 401.

        Raises:
            SessionExpiredError: The request got a 401 and the refresh failed.
            httpx.HTTPError: Transport failures propagate unchanged.
        """
        response = await self._http.request(
            method, url, headers=self._with_identity(headers), **kwargs
        )

        if (
            response.status_code == 401
            and not skip_auth_refresh
            and not is_refresh_url(url)
            and retry_count < MAX_RETRIES
        ):
            logger.info("client.refresh_attempt", path=httpx.URL(url).path)
            if await self.refresh():
                return await self.request(
                    method,
                    url,
                    skip_auth_refresh=True,
                    retry_count=retry_count + 1,
                    headers=headers,
                    **kwargs,
                )
            self._expire_session()
            raise SessionExpiredError()

        return response

    async def refresh(self) -> bool:
        """POST /auth/refresh; True when new cookies were issued."""
        response = await self._http.post(REFRESH_PATH)
        if response.is_success:
            logger.info("client.refresh_succeeded")
            return True
        logger.warning("client.refresh_failed", status_code=response.status_code)
        return False

    def _with_identity(self, headers: dict[str, str] | None) -> dict[str, str]:
        merged = dict(headers or {})
        if self.identity_token and "Authorization" not in merged:
            merged["Authorization"] = f"Bearer {self.identity_token}"
        return merged

    def _expire_session(self) -> None:
        self.identity_token = None
        self._http.cookies.clear()
        if self.on_session_expired is not None:
            self.on_session_expired()

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        conversation_id: UUID | str,
        pending: OptimisticMessage,
        *,
        model: str | None = None,
        platform: str | None = None,
    ) -> SendOutcome:
        """Send a locally displayed message and settle its optimistic state.

        The message is confirmed as soon as the server reports it saved, even
        if the assistant reply failed. It is rolled back when the server
        rejected it or never answered.

        Raises:
            SessionExpiredError: After rolling the message back.
            httpx.HTTPError: After rolling the message back.
        """
        body: dict[str, Any] = {"content": pending.content, "role": pending.role}
        if model is not None:
            body["model"] = model
        if platform is not None:
            body["platform"] = platform

        try:
            response = await self.post(f"/conversations/{conversation_id}/messages", json=body)
        except (SessionExpiredError, httpx.HTTPError) as e:
            pending.roll_back(str(e))
            raise

        if not response.is_success:
            error = _error_body(response)
            pending.roll_back(error["message"])
            return SendOutcome(message=pending, error=error)

        data = response.json()["data"]
        pending.confirm(data["user_message"])
        return SendOutcome(
            message=pending,
            assistant_message=data.get("assistant_message"),
            analytics=data.get("analytics"),
            generation_error=data.get("generation_error"),
        )


def is_refresh_url(url: str) -> bool:
    return httpx.URL(url).path == REFRESH_PATH


def _error_body(response: httpx.Response) -> dict[str, Any]:
    """The {code, message} of an error envelope, or a generic stand-in."""
    try:
        error = response.json().get("error")
    except ValueError:
        error = None
    if isinstance(error, dict) and "message" in error:
        return error
    return {"code": "E_HTTP_ERROR", "message": f"HTTP {response.status_code}"}
