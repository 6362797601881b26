"""Rate limiting dependencies for FastAPI.

Two layers run per request: a coarse limit keyed by client IP on every
``/api/v1`` route, and a per-endpoint limit keyed by the authenticated user.
"""
import time
from typing import Callable, Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import AsyncSessionLocal, get_db
from app.core.errors import RateLimitExceeded
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.services.rate_limiter import RateLimitDecision, RateLimiter


ENDPOINT_GLOBAL = "global"
ENDPOINT_TOKENS_GET = "tokens-get"
ENDPOINT_TOKENS_POST = "tokens-post"
ENDPOINT_TOKENS_DELETE = "tokens-delete"
ENDPOINT_SBOM_SYNC = "sbom-sync"
ENDPOINT_AUTH_TOKEN = "auth-token"

_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter using its own sessions for counter updates."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(AsyncSessionLocal)
    return _rate_limiter


def client_ip(request: Request) -> str:
    """
    Address the IP layer is keyed on.

    Behind a trusted proxy: first X-Forwarded-For entry, then X-Real-IP.
    Otherwise the socket peer only, since clients can set those headers freely.
    """
    if settings.TRUSTED_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(int(decision.reset_at)),
    }
    if decision.degraded:
        headers["X-RateLimit-Status"] = "degraded"
    return headers


def _enforce(decision: RateLimitDecision, response: Response) -> RateLimitDecision:
    headers = rate_limit_headers(decision)
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after)
        raise RateLimitExceeded("Rate limit exceeded", reset_at=decision.reset_at, headers=headers)
    response.headers.update(headers)
    return decision


def _unlimited(limit: int) -> RateLimitDecision:
    return RateLimitDecision(
        allowed=True,
        limit=limit,
        remaining=limit,
        reset_at=time.time() + settings.RATE_LIMIT_WINDOW_SECONDS,
    )


async def enforce_ip_rate_limit(
    request: Request,
    response: Response,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Global layer keyed by network origin; applied to the whole v1 router."""
    if not settings.RATE_LIMIT_ENABLED:
        return
    decision = await limiter.admit(
        f"ip:{client_ip(request)}",
        ENDPOINT_GLOBAL,
        settings.RATE_LIMIT_IP_MAX,
        settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    _enforce(decision, response)


def user_rate_limit(endpoint: str, limit_setting: str) -> Callable:
    """
    Build a dependency enforcing a per-user limit for one endpoint.

    Args:
        endpoint: Logical endpoint name used as the ledger key
        limit_setting: Name of the Settings field holding the limit, read per request

    Returns:
        Dependency yielding the RateLimitDecision so handlers can report ``remaining``
    """

    async def dependency(
        response: Response,
        user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_db),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitDecision:
        limit = getattr(settings, limit_setting)
        if not settings.RATE_LIMIT_ENABLED:
            return _unlimited(limit)
        user_id = user.id
        # The ledger uses its own connection; end the request transaction so it
        # does not hold the SQLite write lock while the ledger waits for it.
        await session.commit()
        decision = await limiter.admit(
            f"user:{user_id}",
            endpoint,
            limit,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        return _enforce(decision, response)

    return dependency
