"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment to "testing" before settings are imported and
provides a deterministic clock so window arithmetic can be asserted exactly.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["RATEMAN_ENV"] = "testing"
os.environ.setdefault("RATEMAN_STORE_URL", "memory://")

import pytest

from rateman.adapters.store.in_memory import InMemoryOrderedSetStore


class FakeClock:
    """Deterministic clock in epoch seconds, with an async sleep that advances it.

    Sleeping advances the clock by exactly the requested time, so a sleeper
    wakes on its deadline tick and never later.
    """

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.current_ms = start_ms
        self.slept: list[float] = []

    def time(self) -> float:
        return self.current_ms / 1000

    def advance_ms(self, ms: int) -> None:
        self.current_ms += ms

    def now_ms(self) -> int:
        return self.current_ms

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.current_ms += round(seconds * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryOrderedSetStore:
    return InMemoryOrderedSetStore()
