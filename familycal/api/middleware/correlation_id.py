"""Request correlation IDs.

The ID comes from the client's X-Request-ID (or X-Correlation-ID) header, or
is generated. It lives in a context variable for the duration of the request
so log records and outgoing store calls can carry it, and is echoed back in
the response's X-Request-ID header.
"""

import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar

from aiohttp import web

NO_REQUEST_ID = "no-request-id"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _incoming_request_id(request: web.Request) -> str:
    for header in ("X-Request-ID", "X-Correlation-ID"):
        value = request.headers.get(header)
        if value:
            return value
    return uuid.uuid4().hex


@web.middleware
async def correlation_id_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    request_id = _incoming_request_id(request)
    request["request_id"] = request_id

    token = request_id_var.set(request_id)
    try:
        response = await handler(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


def get_request_id() -> str:
    """Correlation ID of the request being handled, or NO_REQUEST_ID."""
    return request_id_var.get() or NO_REQUEST_ID
