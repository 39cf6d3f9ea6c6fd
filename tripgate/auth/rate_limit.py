"""Keyed rate limiting for code issuance and verification.

The limiter is a keyed counter with atomic hit-and-check. The default
implementation keeps a rolling window per key in process memory; for
multi-instance deployments, implement RateLimiter over a shared store
(e.g. Redis INCR + EXPIRE) so request handlers stay stateless.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque

from tripgate.clock import Clock, get_clock

log = logging.getLogger(__name__)


# =============================================================================
# RATE LIMITER INTERFACE
# =============================================================================


class RateLimiter(ABC):
    """Abstract keyed counter.

    Implementations must make hit() atomic per key: two concurrent calls
    must never both observe the last free slot.
    """

    @abstractmethod
    async def hit(self, key: str) -> bool:
        """Record one event for key if the limit allows it.

        Args:
            key: Counter key (e.g., "code-request:<token>", "verify-ip:<ip>")

        Returns:
            True if the event was allowed and recorded, False if rate limited
            (nothing is recorded in that case)
        """
        ...

    @abstractmethod
    async def retry_after(self, key: str) -> int:
        """Seconds until the next event for key would be allowed (0 if now)."""
        ...

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget all recorded events for key."""
        ...

    @abstractmethod
    async def cleanup(self) -> int:
        """Drop keys whose events have all left the window.

        Returns:
            Number of keys removed
        """
        ...


# =============================================================================
# IN-MEMORY SLIDING WINDOW
# =============================================================================


class SlidingWindowRateLimiter(RateLimiter):
    """In-memory rolling-window limiter.

    Allows at most max_events per key within any window_seconds span.
    Suitable for single-instance deployments.
    """

    def __init__(
        self,
        max_events: int,
        window_seconds: int,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            max_events: Maximum events per key within the window
            window_seconds: Rolling window length
            clock: Time source (defaults to the global clock)
        """
        self._events: dict[str, deque[float]] = {}
        self._max_events = max_events
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = asyncio.Lock()

    def _now(self) -> float:
        return (self._clock or get_clock()).timestamp()

    def _prune(self, key: str, now: float) -> deque[float] | None:
        events = self._events.get(key)
        if events is None:
            return None
        cutoff = now - self._window_seconds
        while events and events[0] <= cutoff:
            events.popleft()
        if not events:
            del self._events[key]
            return None
        return events

    async def hit(self, key: str) -> bool:
        async with self._lock:
            now = self._now()
            events = self._prune(key, now)

            if events is not None and len(events) >= self._max_events:
                log.warning(
                    f"Rate limit exceeded for {key.split(':', 1)[0]}: "
                    f"{len(events)} events in {self._window_seconds}s"
                )
                return False

            if events is None:
                events = deque()
                self._events[key] = events
            events.append(now)
            return True

    async def retry_after(self, key: str) -> int:
        async with self._lock:
            now = self._now()
            events = self._prune(key, now)
            if events is None or len(events) < self._max_events:
                return 0
            remaining = events[0] + self._window_seconds - now
            return max(1, int(remaining + 0.999))

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._events.pop(key, None)

    async def cleanup(self) -> int:
        async with self._lock:
            now = self._now()
            before = len(self._events)
            for key in list(self._events):
                self._prune(key, now)
            return before - len(self._events)

    @property
    def key_count(self) -> int:
        """Number of tracked keys (for monitoring)."""
        return len(self._events)


# =============================================================================
# GLOBAL SINGLETONS
# =============================================================================

_code_request_limiter: RateLimiter | None = None
_verify_limiter: RateLimiter | None = None


def get_code_request_limiter() -> RateLimiter:
    """Get the limiter for code requests (keyed by invite token)."""
    global _code_request_limiter

    if _code_request_limiter is None:
        from tripgate.config import CODE_REQUEST_LIMIT, CODE_REQUEST_WINDOW_SECONDS

        _code_request_limiter = SlidingWindowRateLimiter(
            max_events=CODE_REQUEST_LIMIT,
            window_seconds=CODE_REQUEST_WINDOW_SECONDS,
        )
        log.info(
            f"Initialized code request limiter: "
            f"max {CODE_REQUEST_LIMIT} per {CODE_REQUEST_WINDOW_SECONDS}s per token"
        )

    return _code_request_limiter


def get_verify_limiter() -> RateLimiter:
    """Get the limiter for code verification attempts (keyed by client IP)."""
    global _verify_limiter

    if _verify_limiter is None:
        from tripgate.config import VERIFY_IP_LIMIT, VERIFY_IP_WINDOW_SECONDS

        _verify_limiter = SlidingWindowRateLimiter(
            max_events=VERIFY_IP_LIMIT,
            window_seconds=VERIFY_IP_WINDOW_SECONDS,
        )
        log.info(
            f"Initialized verify limiter: "
            f"max {VERIFY_IP_LIMIT} per {VERIFY_IP_WINDOW_SECONDS}s per IP"
        )

    return _verify_limiter


def reset_rate_limiters() -> None:
    """Reset the global rate limiters (for testing)."""
    global _code_request_limiter, _verify_limiter
    _code_request_limiter = None
    _verify_limiter = None
