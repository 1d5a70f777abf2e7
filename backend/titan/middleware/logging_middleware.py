"""
ASGI middleware logging every API request with its status and duration.

Pure ASGI (not BaseHTTPMiddleware) so upload bodies stream through untouched.
JSON bodies are logged with secrets masked; multipart uploads are summarized by size.
"""

import json
import logging
import time
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)


def _describe_body(body: bytes, content_type: str) -> Optional[str]:
    """Loggable form of a request/response body."""
    if not body:
        return None
    if "json" not in content_type:
        return f"<{content_type or 'binary'}: {len(body)} bytes>"
    text = body.decode("utf-8", errors="ignore")
    try:
        payload = filter_sensitive_data(json.loads(text))
        text = json.dumps(payload, ensure_ascii=False)
    except json.JSONDecodeError:
        pass
    return truncate_large_data(text, max_length=2000)


class RequestLoggingMiddleware:
    """Logs method, path, status, duration and (at DEBUG) bodies."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths that are passed through without logging
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        headers = {
            k.decode("latin-1").lower(): v.decode("latin-1")
            for k, v in scope.get("headers", [])
        }
        request_chunks = []
        response_chunks = []
        response_type = ""
        status_code = 0

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                request_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code, response_type
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                for k, v in message.get("headers", []):
                    if k.decode("latin-1").lower() == "content-type":
                        response_type = v.decode("latin-1")
            elif message["type"] == "http.response.body":
                response_chunks.append(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path} - {e}",
                exc_info=True,
                extra={"extra_fields": {"method": method, "path": path, "error": str(e)}}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        if status_code < 400:
            level = logging.INFO
        elif status_code < 500:
            level = logging.WARNING
        else:
            level = logging.ERROR

        fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if level > logging.INFO or logger.isEnabledFor(logging.DEBUG):
            fields["request_body"] = _describe_body(
                b"".join(request_chunks), headers.get("content-type", "")
            )
            fields["response_body"] = _describe_body(b"".join(response_chunks), response_type)

        logger.log(
            level,
            f"{method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={"extra_fields": fields}
        )
