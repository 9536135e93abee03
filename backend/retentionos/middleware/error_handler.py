"""
Last-resort error handling middleware.

Pure ASGI so that yield-dependencies such as get_db_session() keep working.
"""
import json

import sentry_sdk
from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from retentionos.core.logging import get_logger

logger = get_logger(__name__)


class ErrorHandlerMiddleware:
    """
    Turns exceptions that escape the routers into a JSON 500 carrying the
    request id, and reports them to Sentry when it is configured.

    HTTPException passes through to FastAPI's own handler.
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
        except HTTPException:
            raise
        except Exception as e:
            sentry_sdk.capture_exception(e)

            if response_started:
                logger.exception("Unhandled exception after response started", error=str(e))
                raise

            logger.exception("Unhandled exception", error=str(e), error_type=type(e).__name__)

            request_id = scope.get("state", {}).get("request_id")
            body = json.dumps({
                "error": "Internal server error",
                "type": type(e).__name__,
                "request_id": request_id,
            }).encode("utf-8")

            await send({
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
