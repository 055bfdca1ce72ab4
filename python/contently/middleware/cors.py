"""Pure ASGI CORS middleware for the single browser app origin.

- Every response echoes the configured app origin with credentials allowed
- OPTIONS preflight is answered here with 204, before auth runs
- Allowed methods are derived per path from the routing table, so a
  preflight for /conversations/{id} advertises GET, PUT, DELETE and nothing else

Starlette's CORSMiddleware is not used: it advertises one method list for
every path.
"""

from collections.abc import Sequence

from starlette.datastructures import MutableHeaders
from starlette.responses import Response
from starlette.routing import BaseRoute
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from contently.middleware.request_id import REQUEST_ID_HEADER

ALLOW_HEADERS = "Content-Type, Authorization"
PREFLIGHT_MAX_AGE = "600"

METHOD_ORDER = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE")


def allowed_methods_for_path(routes: Sequence[BaseRoute], path: str) -> str:
    """Comma-separated methods the routing table serves for a path, plus OPTIONS."""
    methods: set[str] = set()
    for route in routes:
        path_regex = getattr(route, "path_regex", None)
        route_methods = getattr(route, "methods", None)
        if path_regex is None or not route_methods:
            continue
        if path_regex.match(path):
            methods.update(route_methods)

    ordered = [m for m in METHOD_ORDER if m in methods]
    ordered.append("OPTIONS")
    return ", ".join(ordered)


class AppCORSMiddleware:
    """Adds credentialed CORS headers for one origin and answers preflights.

    Args:
        app: The ASGI application.
        app_origin: The browser app's origin (APP_URL).
        routes: The application's route list. Read on every request, so routes
            included after the middleware was added are still seen.
    """

    def __init__(self, app: ASGIApp, app_origin: str, routes: Sequence[BaseRoute]):
        self.app = app
        self.app_origin = app_origin.rstrip("/")
        self.routes = routes

    def _cors_headers(self, path: str) -> dict[str, str]:
        return {
            "access-control-allow-origin": self.app_origin,
            "access-control-allow-credentials": "true",
            "access-control-allow-methods": allowed_methods_for_path(self.routes, path),
            "access-control-allow-headers": ALLOW_HEADERS,
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope["path"]

        if scope["method"] == "OPTIONS":
            headers = self._cors_headers(path)
            headers["access-control-max-age"] = PREFLIGHT_MAX_AGE
            response = Response(status_code=204, headers=headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                resp_headers = MutableHeaders(scope=message)
                for name, value in self._cors_headers(path).items():
                    if name not in resp_headers:
                        resp_headers[name] = value
                resp_headers["access-control-expose-headers"] = REQUEST_ID_HEADER
            await send(message)

        await self.app(scope, receive, send_with_cors)
