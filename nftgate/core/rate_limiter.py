"""
Rate Limiting System

Two primitives guard external request budgets:

ProviderRateLimiter is an advisory per-provider sliding-window tracker. The
ownership resolver consults it and skips a limited provider instead of
waiting on it.

RequestThrottle is a shared leaky bucket enforcing a minimum spacing between
calls to one external service. It is shared by every concurrent verification
so the delay reflects the remaining budget rather than a fixed sleep per call.
"""

import asyncio
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


@dataclass
class RateLimitConfig:
    """Per-provider request ceilings within the sliding window."""

    window_seconds: float = 1.0
    requests_per_window: Dict[str, int] = field(
        default_factory=lambda: {
            "ALCHEMY": 5,
            "MORALIS": 25,
            "ETHERSCAN": 5,
        }
    )
    default_limit: int = 5


class ProviderRateLimiter:
    """Sliding-window request tracker keyed by provider name."""

    def __init__(self, config: Optional[RateLimitConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self.request_history: Dict[str, deque] = defaultdict(lambda: deque())

    def limit_for(self, provider: str) -> int:
        return self.config.requests_per_window.get(provider, self.config.default_limit)

    def is_limited(self, provider: str, current_time: Optional[float] = None) -> bool:
        """Check whether the provider's window is full. Never blocks."""
        now = self._clock() if current_time is None else current_time
        history = self.request_history[provider]
        self._clean_deque(history, now, self.config.window_seconds)
        return len(history) >= self.limit_for(provider)

    def record_request(self, provider: str, current_time: Optional[float] = None):
        """Record an outbound request against the provider's window."""
        now = self._clock() if current_time is None else current_time
        self.request_history[provider].append(now)

    def get_rate_limit_status(self, current_time: Optional[float] = None) -> Dict[str, Any]:
        """Get current rate limiting status for monitoring."""
        now = self._clock() if current_time is None else current_time
        status = {}
        for provider in set(self.config.requests_per_window) | set(self.request_history):
            history = self.request_history[provider]
            self._clean_deque(history, now, self.config.window_seconds)
            limit = self.limit_for(provider)
            status[provider] = {
                "used": len(history),
                "limit": limit,
                "remaining": max(0, limit - len(history)),
                "limited": len(history) >= limit,
            }
        return status

    def _clean_deque(self, deque_obj: deque, current_time: float, window_seconds: float):
        """Remove entries older than the specified window."""
        cutoff_time = current_time - window_seconds
        while deque_obj and deque_obj[0] <= cutoff_time:
            deque_obj.popleft()


class RequestThrottle:
    """
    Leaky bucket that spaces calls at least min_interval seconds apart.

    Callers reserve the next free slot under a lock and then sleep outside it,
    so concurrent callers queue up in slot order without holding the lock
    while waiting.
    """

    def __init__(
        self,
        min_interval: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._next_slot = 0.0
        self._lock = asyncio.Lock()
        self.total_acquired = 0

    async def acquire(self) -> float:
        """Wait for the next slot. Returns the time spent waiting."""
        async with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
            self.total_acquired += 1
        delay = slot - now
        if delay > 0:
            await self._sleep(delay)
        return delay

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False
