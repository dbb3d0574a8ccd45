from __future__ import annotations

import pytest

from kvlock.core.store import InMemoryKeyValueStore


class ManualClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)
