"""
Window Limiter

Single Responsibility: keep the request rate inside a fixed window
- Count requests issued in the current window
- Roll the window over once it has elapsed
- Slow down pre-emptively once the window is filling up (soft throttle)
"""
import asyncio
import time
from dataclasses import dataclass

from config import GatewayConfig
from gateway.backoff import Clock, Sleep
from utils import setup_logger


logger = setup_logger(__name__)


@dataclass
class WindowState:
    window_start: float
    window_duration: float
    requests_this_window: int
    soft_cap_fraction: float
    max_requests_per_window: int

    @property
    def soft_cap(self) -> float:
        return self.max_requests_per_window * self.soft_cap_fraction


class WindowLimiter:
    """
    Fixed-window request counter with a soft throttle.

    The throttle is independent of the backoff controller: once more than
    ``max_requests_per_window * soft_cap_fraction`` requests have been issued
    in the current window, every further request sleeps ``window_penalty``
    first. Nothing is ever rejected.
    """

    def __init__(
        self,
        config: GatewayConfig,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep
    ):
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.state = WindowState(
            window_start=clock(),
            window_duration=config.window_duration,
            requests_this_window=0,
            soft_cap_fraction=config.soft_cap_fraction,
            max_requests_per_window=config.max_requests_per_window
        )

    def _roll_window(self) -> None:
        """Start a new window if the current one has elapsed."""
        now = self.clock()
        if now > self.state.window_start + self.state.window_duration:
            self.state.window_start = now
            self.state.requests_this_window = 0

    async def throttle(self) -> bool:
        """
        Apply the soft throttle if the window is past its soft cap.

        Returns:
            True if the penalty sleep was applied
        """
        self._roll_window()
        if self.state.requests_this_window > self.state.soft_cap:
            logger.debug(
                f"⏳ Window at {self.state.requests_this_window}/"
                f"{self.state.max_requests_per_window}, throttling {self.config.window_penalty:.1f}s"
            )
            await self.sleep(self.config.window_penalty)
            return True
        return False

    def record_request(self) -> None:
        """Count a request. Called immediately before the network call."""
        self._roll_window()
        self.state.requests_this_window += 1

    def usage(self) -> dict:
        """
        Get current window usage.

        Returns:
            Dict with calls_made, calls_remaining, window_reset_in, throttling
        """
        self._roll_window()
        calls_made = self.state.requests_this_window
        window_reset_in = self.state.window_start + self.state.window_duration - self.clock()
        return {
            'calls_made': calls_made,
            'calls_remaining': max(0, self.state.max_requests_per_window - calls_made),
            'window_reset_in': max(0.0, window_reset_in),
            'max_calls': self.state.max_requests_per_window,
            'period': self.state.window_duration,
            'throttling': calls_made > self.state.soft_cap
        }
