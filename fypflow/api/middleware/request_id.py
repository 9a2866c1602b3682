"""Correlates each HTTP request with its log lines through X-Request-ID."""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fypflow.logging_config import bind_correlation_id, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128
SLOW_REQUEST_MS = 1000


def pick_request_id(incoming: Optional[str]) -> str:
    """Reuse the caller's id when it is usable, otherwise mint one."""
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Binds the request id as the logging correlation id and echoes it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = pick_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        with bind_correlation_id(request_id):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id

            if elapsed_ms > SLOW_REQUEST_MS:
                logger.warning(
                    "Slow workflow request",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "actor_id": request.headers.get("X-User-Id"),
                        "elapsed_ms": round(elapsed_ms, 1),
                    },
                )
            return response
