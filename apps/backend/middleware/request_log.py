"""Middleware: trace_id на каждый запрос + короткая строка лога."""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("uvicorn.error")

SCOPE_KEY = "trace_id"


def ensure_trace_id(scope: dict) -> str:
    """Get or set trace_id on ASGI scope. Returns the same trace_id for the request lifecycle."""
    tid = scope.get(SCOPE_KEY)
    if tid and isinstance(tid, str):
        return tid
    tid = str(uuid.uuid4())[:16]
    scope[SCOPE_KEY] = tid
    return tid


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = ensure_trace_id(request.scope)
        request.state.trace_id = trace_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        response.headers.setdefault("X-Trace-Id", trace_id)
        if request.method != "OPTIONS":
            logger.info(
                "http %s %s status=%s latency_ms=%s trace_id=%s",
                request.method,
                request.url.path,
                response.status_code,
                latency_ms,
                trace_id,
            )
        return response
