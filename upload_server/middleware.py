"""ASGI stages wrapped around the file routes.

Each stage is a plain ASGI app that wraps the next one. ``build_middleware``
returns them in order, outermost first.
"""
import asyncio
from typing import FrozenSet, List

from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware import Middleware

from upload_server.auth import AuthError, check_token
from upload_server.config import ServerConfig
from upload_server.logger_config import setup_logger, structured_log
from upload_server.responses import error_response

logger = setup_logger()


class RequestBodyTooLargeError(Exception):
    def __init__(self, max_size: int):
        super().__init__(f"request body exceeds the maximum upload size of {max_size} bytes")
        self.max_size = max_size


def _has_body(headers: Headers) -> bool:
    if "transfer-encoding" in headers:
        return True
    return headers.get("content-length", "0") not in ("", "0")


class CloseBodyMiddleware:
    """Close the request body once the handler returns.

    Reads that happen after the handler is done (for instance from a
    response stream still running) see a disconnect instead of waiting on
    the client.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        closed = False
        body_done = False

        async def closing_receive():
            nonlocal body_done
            if closed:
                return {"type": "http.disconnect"}
            message = await receive()
            if message["type"] == "http.disconnect" or not message.get("more_body", False):
                body_done = True
            return message

        try:
            await self.app(scope, closing_receive, send)
        finally:
            closed = True
            if not body_done and _has_body(Headers(scope=scope)):
                logger.debug(structured_log("Discarding unread request body", path=scope["path"]))


class AuthMiddleware:
    def __init__(self, app, token: str, protected_methods: FrozenSet[str]):
        self.app = app
        self.token = token
        self.protected_methods = protected_methods

    async def __call__(self, scope, receive, send):
        method = scope.get("method", "")
        # Preflight requests never carry credentials
        if scope["type"] != "http" or method == "OPTIONS" or method not in self.protected_methods:
            await self.app(scope, receive, send)
            return

        try:
            check_token(Headers(scope=scope).get("authorization"), self.token)
        except AuthError as e:
            logger.warning(structured_log("Unauthorized request", method=method, path=scope["path"], error=e))
            response = error_response(401, str(e), headers={"WWW-Authenticate": "Bearer"})
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


class CORSHeadersMiddleware:
    def __init__(self, app, allow_origin: str = "*"):
        self.app = app
        self.allow_origin = allow_origin

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_cors(message):
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.setdefault("Access-Control-Allow-Origin", self.allow_origin)
            await send(message)

        await self.app(scope, receive, send_with_cors)


class BodySizeLimitMiddleware:
    """Cap the request body at ``max_size`` bytes.

    A declared Content-Length over the cap is answered with 413 straight
    away. Otherwise the receive channel counts bytes and raises
    RequestBodyTooLargeError before handing over the chunk that crosses it.
    """

    def __init__(self, app, max_size: int):
        self.app = app
        self.max_size = max_size

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None and content_length.isdigit() and int(content_length) > self.max_size:
            err = RequestBodyTooLargeError(self.max_size)
            logger.warning(structured_log(
                "Declared body too large",
                path=scope["path"],
                content_length=content_length,
                max_size=self.max_size,
            ))
            await error_response(413, str(err))(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_size:
                    raise RequestBodyTooLargeError(self.max_size)
            return message

        await self.app(scope, limited_receive, send)


class TimeoutMiddleware:
    def __init__(self, app, timeout: float):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, tracking_send), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(structured_log(
                "Request timed out",
                method=scope.get("method"),
                path=scope["path"],
                timeout=self.timeout,
            ))
            if response_started:
                # Too late for a clean error; let the server drop the connection
                raise
            await error_response(503, "request timed out")(scope, receive, send)


def build_middleware(server_config: ServerConfig) -> List[Middleware]:
    """Return the request stages for a configuration, outermost first."""
    stages = [Middleware(CloseBodyMiddleware)]
    if server_config.protected_methods:
        stages.append(Middleware(
            AuthMiddleware,
            token=server_config.token,
            protected_methods=server_config.protected_methods,
        ))
    if server_config.enable_cors:
        stages.append(Middleware(CORSHeadersMiddleware))
    stages.append(Middleware(BodySizeLimitMiddleware, max_size=server_config.max_upload_size))
    stages.append(Middleware(TimeoutMiddleware, timeout=server_config.request_timeout))
    return stages
