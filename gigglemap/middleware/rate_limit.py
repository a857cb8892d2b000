from __future__ import annotations

import os
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from limits import parse as parse_limit
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter

# Credential endpoints get a tighter budget than the per-method defaults
AUTH_PATHS = frozenset({"/users/login", "/users/register"})
AUTH_LIMIT = "10/minute"


def _client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For, else the ASGI peer
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "local"


# slowapi supplies the RateLimitExceeded type handled in create_app(); the
# method/path specific budgets below go through "limits" directly.
limiter = Limiter(key_func=_client_ip)

_storage = MemoryStorage()
_rate = MovingWindowRateLimiter(_storage)


def reset_rate_limits() -> None:
    _storage.reset()


def _enabled() -> bool:
    # On unless TESTING; RATE_LIMIT_ENABLED=1 wins over TESTING
    if os.getenv("RATE_LIMIT_ENABLED") in {"1", "true", "TRUE"}:
        return True
    if os.getenv("TESTING"):
        return False
    return True


def limit_for(method: str, path: str) -> str | None:
    m = method.upper()
    if m == "POST" and path.rstrip("/") in AUTH_PATHS:
        return AUTH_LIMIT
    if m in {"GET", "HEAD"}:
        return "60/minute"
    if m in {"POST", "PUT", "PATCH", "DELETE"}:
        return "30/minute"
    # CORS preflight and anything else pass through
    return None


async def rate_limit_middleware(request: Request, call_next: Callable) -> Response:
    if not _enabled():
        return await call_next(request)

    limit_str = limit_for(request.method, request.url.path)
    if not limit_str:
        return await call_next(request)

    bucket = "auth" if limit_str == AUTH_LIMIT else request.method.upper()
    key = f"ip:{_client_ip(request)}|b:{bucket}"
    if not _rate.hit(parse_limit(limit_str), key):
        request.state.rate_limit_info = {
            "method": request.method.upper(),
            "ip": _client_ip(request),
            "limit": limit_str,
        }
        return JSONResponse(
            status_code=429,
            content={"error": "Too Many Requests"},
            headers={"X-RateLimit-Limit": limit_str},
        )

    response = await call_next(request)
    response.headers.setdefault("X-RateLimit-Limit", limit_str)
    return response
