"""In-process request rate limiting."""

import logging
import time
from dataclasses import dataclass

from fastapi import HTTPException, Request, Response, status

from school_erp.core.config import settings
from school_erp.core.deps import client_ip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """A fixed-window limit: at most max_requests per window seconds."""

    name: str
    max_requests: int
    window: int


AUTH_LIMIT = RateLimit("auth", max_requests=5, window=15 * 60)
PAYMENT_LIMIT = RateLimit("payment", max_requests=10, window=60 * 60)
BACKUP_LIMIT = RateLimit("backup", max_requests=3, window=60 * 60)
GENERAL_LIMIT = RateLimit("general", max_requests=100, window=15 * 60)
CLEANUP_INTERVAL = 5 * 60


class RateLimiter:
    """Counts requests per client and endpoint in fixed time windows.

    State lives in this process only. Swap the store for a shared one
    when running more than one instance. Expired windows are dropped at
    most every CLEANUP_INTERVAL seconds.
    """

    def __init__(self):
        # key -> (reset_at, count)
        self.windows: dict[str, tuple[float, int]] = {}
        self.last_cleanup: float | None = None

    def cleanup(self, now: float) -> int:
        """Forget windows that have ended. Returns how many were removed."""
        expired = [key for key, (reset_at, _) in self.windows.items() if now >= reset_at]
        for key in expired:
            del self.windows[key]
        self.last_cleanup = now
        if expired:
            logger.debug("Dropped %d expired rate limit windows", len(expired))
        return len(expired)

    def hit(self, key: str, limit: RateLimit, now: float | None = None) -> tuple[int, float]:
        """Record one request. Returns (remaining, reset_at); raises 429 when exhausted."""
        now = time.time() if now is None else now
        if self.last_cleanup is None:
            self.last_cleanup = now
        elif now - self.last_cleanup >= CLEANUP_INTERVAL:
            self.cleanup(now)

        reset_at, count = self.windows.get(key, (now + limit.window, 0))
        if now >= reset_at:
            reset_at, count = now + limit.window, 0

        if count >= limit.max_requests:
            retry_after = max(1, int(reset_at - now))
            logger.warning("Rate limit '%s' exceeded for %s", limit.name, key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please try again later",
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limit.max_requests),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(reset_at)),
                },
            )

        self.windows[key] = (reset_at, count + 1)
        return limit.max_requests - count - 1, reset_at

    def reset(self) -> None:
        self.windows.clear()
        self.last_cleanup = None


rate_limiter = RateLimiter()


def rate_limit(limit: RateLimit):
    """Dependency factory applying a rate limit keyed by client IP and path."""

    async def limiter(request: Request, response: Response) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        key = f"{limit.name}:{client_ip(request)}:{request.url.path}"
        remaining, reset_at = rate_limiter.hit(key, limit)
        response.headers["X-RateLimit-Limit"] = str(limit.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(reset_at))

    return limiter
