"""ASGI middleware for the bundler API.

RequestIdMiddleware injects or forwards X-Request-ID and stores it in a
ContextVar. The logging layer reads the ContextVar so every log line
emitted while serving a request, including those from the build
pipeline, carries the same ID.

CORS and SlowAPI middleware are registered directly in create_app().
"""

import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Return the current request's ID, or an empty string outside a request."""
    return _request_id_var.get()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Read or generate X-Request-ID and make it available for the request lifetime.

    - A client-supplied X-Request-ID is reused.
    - If absent, a fresh UUID4 is generated.
    - The ID is always echoed back in the response header.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        token = _request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response
