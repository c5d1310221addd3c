"""
Client Files Portal - Rate Limiting

Fixed-window request budgets for the credential endpoints:
- login: 5 per 15 minutes per IP
- password reset request: 3 per hour per IP
- verification email: 5 per hour per user

The limiter is a pluggable service on `app.state.rate_limiter`.
InMemoryRateLimiter keeps its counters in this process only; several
server instances each enforce their own budget. Use a shared-store
implementation of RateLimiter when running more than one instance.
"""

import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol, Tuple

from fastapi import Depends, Request, Response

from portal.auth.dependencies import AuthenticatedUser, get_client_ip, get_optional_user
from portal.config import settings
from portal.errors import RateLimitedError
from portal.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int

    def headers(self) -> Dict[str, str]:
        reset = datetime.fromtimestamp(self.reset_at, tz=timezone.utc)
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset.isoformat(),
        }


class RateLimiter(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult: ...


class InMemoryRateLimiter:
    """
    Per-key fixed-window counter.

    Each key gets a window starting at its first hit; the count resets
    once the window has elapsed. Elapsed windows are evicted from `hit`
    at most once per `sweep_interval` seconds, so idle keys do not
    accumulate.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = 60.0,
    ) -> None:
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._evict_expired(now)
            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)

        allowed = count <= limit
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(limit - count, 0),
            reset_at=reset_at,
            retry_after=0 if allowed else max(math.ceil(reset_at - now), 1),
        )

    def sweep(self) -> int:
        """Drop elapsed windows. Returns the number of keys removed."""
        with self._lock:
            return self._evict_expired(self._clock())

    def _evict_expired(self, now: float) -> int:
        # Caller holds self._lock
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    limit: int
    window_seconds: int
    message: str
    per_user: bool = False


LOGIN_POLICY = RateLimitPolicy(
    name="login",
    limit=settings.LOGIN_RATE_LIMIT,
    window_seconds=settings.LOGIN_RATE_WINDOW_SECONDS,
    message="Too many login attempts. Please try again in 15 minutes.",
)

PASSWORD_RESET_POLICY = RateLimitPolicy(
    name="password_reset",
    limit=settings.RESET_RATE_LIMIT,
    window_seconds=settings.RESET_RATE_WINDOW_SECONDS,
    message="Too many password reset requests. Please try again in 1 hour.",
)

VERIFICATION_POLICY = RateLimitPolicy(
    name="verification",
    limit=settings.VERIFICATION_RATE_LIMIT,
    window_seconds=settings.VERIFICATION_RATE_WINDOW_SECONDS,
    message="Too many verification email requests. Please try again in 1 hour.",
    per_user=True,
)


def rate_limit(policy: RateLimitPolicy):
    """
    Dependency factory applying `policy` to the request.

    Keys on the client IP, or on the authenticated user id for per-user
    policies (falling back to the IP when no valid token is present).
    The standard X-RateLimit-* headers are set on every response.

    Raises:
        RateLimitedError (429): Budget for the current window exhausted
    """
    async def limiter_dependency(
        request: Request,
        response: Response,
        user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    ) -> RateLimitResult:
        if policy.per_user and user is not None:
            subject = f"user:{user.user_id}"
        else:
            subject = f"ip:{get_client_ip(request)}"

        limiter: RateLimiter = request.app.state.rate_limiter
        result = limiter.hit(f"{policy.name}:{subject}", policy.limit, policy.window_seconds)
        headers = result.headers()

        if not result.allowed:
            logger.warning(
                "rate_limited",
                policy=policy.name,
                subject=subject,
                retry_after=result.retry_after,
            )
            headers["Retry-After"] = str(result.retry_after)
            raise RateLimitedError(
                policy.message, retry_after=result.retry_after, headers=headers
            )

        response.headers.update(headers)
        return result

    return limiter_dependency
