"""
Request deadline middleware.

Pull endpoints only read the cache, so anything slow is a stuck request;
it is cut off with 504 after ``timeout_seconds``. Health probes, the
WebSocket upgrade and ``?wait=true`` refreshes (which legitimately last
one full fetch cycle) are left alone.
"""

import asyncio

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

DEFAULT_EXEMPT_PREFIXES = ("/health", "/ws/")


def _is_exempt(request: Request, prefixes: tuple[str, ...]) -> bool:
    if request.headers.get("upgrade", "").lower() == "websocket":
        return True
    if request.query_params.get("wait") == "true":
        return True
    return request.url.path.startswith(prefixes)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request outlives its deadline."""

    def __init__(
        self,
        app,
        timeout_seconds: float = 30.0,
        exempt_prefixes: tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES,
    ):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds
        self.exempt_prefixes = exempt_prefixes

    async def dispatch(self, request: Request, call_next):
        if _is_exempt(request, self.exempt_prefixes):
            return await call_next(request)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            logger.warning(
                "Request deadline exceeded",
                path=request.url.path,
                timeout_seconds=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={
                    "detail": f"Request exceeded {self.timeout_seconds}s deadline",
                    "error_type": "timeout",
                    "timeout_seconds": self.timeout_seconds,
                },
            )
