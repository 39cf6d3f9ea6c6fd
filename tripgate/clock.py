"""Clock abstraction for expiry checks.

All expiry comparisons go through a Clock so tests can move time
deterministically. Timestamps are naive UTC, matching the database columns.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

log = logging.getLogger(__name__)


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as a naive UTC datetime."""
        ...

    def timestamp(self) -> float:
        """Current time as POSIX seconds."""
        return self.now().replace(tzinfo=timezone.utc).timestamp()


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_clock: Clock | None = None


def get_clock() -> Clock:
    """Get the global clock instance."""
    global _clock

    if _clock is None:
        _clock = SystemClock()

    return _clock


def set_clock(clock: Clock) -> None:
    """Replace the global clock (for testing)."""
    global _clock
    _clock = clock


def reset_clock() -> None:
    """Reset the global clock (for testing)."""
    global _clock
    _clock = None
