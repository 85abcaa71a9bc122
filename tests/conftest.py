"""
Global test configuration and fixtures.
"""

from typing import Callable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from nftgate.core.collections import CollectionRegistry
from nftgate.core.rate_limiter import ProviderRateLimiter, RequestThrottle
from nftgate.exceptions import ProviderError


class FakeClock:
    """Manually advanced clock for TTL and window tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def collections() -> CollectionRegistry:
    return CollectionRegistry()


@pytest.fixture
def rate_limiter(clock) -> ProviderRateLimiter:
    return ProviderRateLimiter(clock=clock)


@pytest.fixture
def instant_throttle() -> RequestThrottle:
    """Throttle that never actually sleeps."""
    return RequestThrottle(0.2, sleep=AsyncMock())


@pytest.fixture
def make_adapter() -> Callable[..., MagicMock]:
    """Build a mocked provider adapter returning records or raising."""

    def _make(name: str, priority: int, records: Optional[List] = None, error: Optional[Exception] = None):
        adapter = MagicMock()
        adapter.name = name
        adapter.priority = priority
        adapter.close = AsyncMock()
        adapter.get_service_status.return_value = {"provider": name, "priority": priority}
        if error is not None:
            adapter.fetch_owned_nfts = AsyncMock(side_effect=error)
        else:
            adapter.fetch_owned_nfts = AsyncMock(return_value=list(records or []))
        return adapter

    return _make


@pytest.fixture
def provider_down() -> Callable[[str], ProviderError]:
    return lambda name: ProviderError(name, "Service Unavailable", status_code=503)
