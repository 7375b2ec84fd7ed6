"""ASGI middleware: combined access logging and fault recovery.

``install_middleware`` composes the chain so that access logging wraps
recovery, which wraps the router. A fault turned into a 500 by the
recovery layer is therefore still recorded in the access log.
"""

import logging
from datetime import datetime

from fastapi import FastAPI
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .log import ACCESS_LOGGER_NAME

logger = logging.getLogger("redirector.middleware")
access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

ERROR_BODY = "There was an error processing your request\n"
TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _header(scope: Scope, name: bytes) -> str:
    for key, value in scope.get("headers") or []:
        if key.lower() == name:
            return value.decode("latin-1")
    return ""


def _request_uri(scope: Scope) -> str:
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
    query = scope.get("query_string") or b""
    if query:
        path = f"{path}?{query.decode('latin-1')}"
    return path


def format_combined_log(
    scope: Scope, started: datetime, status: int, size: int
) -> str:
    """Render one request in the Apache combined log format."""
    client = scope.get("client")
    host = client[0] if client else "-"
    method = scope.get("method", "-")
    uri = _request_uri(scope)
    if method == "CONNECT":
        uri = _header(scope, b"host") or uri
    protocol = f"HTTP/{scope.get('http_version', '1.1')}"
    return '%s - - [%s] "%s %s %s" %d %d "%s" "%s"' % (
        host,
        started.strftime(TIMESTAMP_FORMAT),
        method,
        _quote(uri),
        protocol,
        status,
        size,
        _quote(_header(scope, b"referer")),
        _quote(_header(scope, b"user-agent")),
    )


class AccessLogMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = datetime.now().astimezone()
        status = 200
        size = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status, size
            if message["type"] == "http.response.start":
                status = message["status"]
            elif message["type"] == "http.response.body":
                size += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            access_logger.info(format_combined_log(scope, started, status, size))


class RecoveryMiddleware:
    """Turn an exception raised while handling a request into a 500.

    The connection is marked ``Connection: close`` since the handler may
    have left state inconsistent.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.exception("Request handling failed: %s", e)
            if response_started:
                # Too late for a clean 500, let the server drop the connection.
                raise
            await error_response()(scope, receive, send)


def error_response() -> PlainTextResponse:
    return PlainTextResponse(
        ERROR_BODY,
        status_code=500,
        headers={"Connection": "close", "X-Content-Type-Options": "nosniff"},
    )


def install_middleware(app: FastAPI) -> FastAPI:
    # The last middleware added is the outermost one.
    app.add_middleware(RecoveryMiddleware)
    app.add_middleware(AccessLogMiddleware)
    return app
