"""Shared fixtures: a controllable clock and gateway wiring."""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from config import AppConfig, GatewayConfig, SpotifyConfig
from gateway import Gateway


class FakeClock:
    """Monotonic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1000.0, advance_on_sleep: bool = True):
        self.now = start
        self.advance_on_sleep = advance_on_sleep
        self.sleeps: List[float] = []
        # When set, every sleep suspends until release() is called
        self.gate: Optional[asyncio.Event] = None

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def hold_sleeps(self) -> None:
        self.gate = asyncio.Event()

    def release(self) -> None:
        if self.gate is not None:
            self.gate.set()

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.advance_on_sleep:
            self.now += seconds
        if self.gate is not None:
            await self.gate.wait()


async def wait_for_sleep(clock: FakeClock, count: int = 1) -> None:
    """Yield to the event loop until ``count`` sleeps have started."""
    while len(clock.sleeps) < count:
        await asyncio.sleep(0)


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway_config():
    return GatewayConfig()


@pytest.fixture
def gateway(gateway_config, clock):
    return Gateway(gateway_config, clock=clock, sleep=clock.sleep)


@pytest.fixture
def app_config():
    return AppConfig(spotify=SpotifyConfig(access_token='test-token'))
