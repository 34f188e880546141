import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import settings
from envelope import error_response
from errors import RateLimitError

logger = logging.getLogger(__name__)


def create_limiter(max_requests: int, window_seconds: int) -> Limiter:
    """Per-client limiter applied to every route. ``max_requests=0`` turns it off."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[f"{max(max_requests, 1)} per {window_seconds} seconds"],
        enabled=max_requests > 0,
        headers_enabled=True,
    )


limiter = create_limiter(settings.RATE_LIMIT_MAX, settings.RATE_LIMIT_WINDOW_SECONDS)


def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # Called synchronously by SlowAPIMiddleware.
    window = int(exc.limit.limit.get_expiry())
    err = RateLimitError(window)
    logger.warning("Rate limit exceeded for %s on %s", get_remote_address(request), request.url.path)
    response = JSONResponse(status_code=err.status_code, content=error_response(err.message, err.code, err.details))
    current = getattr(request.state, "view_rate_limit", None)
    if current is not None:
        response = request.app.state.limiter._inject_headers(response, current)
    response.headers.setdefault("Retry-After", str(window))
    return response


async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response
