# agenda/core/middleware.py
"""Request correlation and access logging"""
import contextvars
import logging
import time
import uuid

from starlette.requests import Request

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# Read by the log filter so scheduling logs can be traced back to a request
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="-")


async def correlation_id_middleware(request: Request, call_next):
    """Reuse the caller's correlation id or mint one; echo it on the response"""
    correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
    request.state.correlation_id = correlation_id
    token = correlation_id_var.set(correlation_id)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)

    response.headers[CORRELATION_HEADER] = correlation_id
    return response


async def request_logging_middleware(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    # 4xx here are mostly rejected bookings; keep them visible at INFO
    log = logger.warning if response.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms} ms)")
    return response
