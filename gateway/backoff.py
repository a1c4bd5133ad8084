"""
Backoff Controller

Single Responsibility: space out upstream calls
- Track consecutive and global error counts
- Enforce a minimum interval between calls, stretched exponentially after errors
- Raise the base interval when the upstream rate limits us, relax it on success
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from config import GatewayConfig
from gateway.errors import ErrorSignal
from utils import setup_logger


logger = setup_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class BackoffState:
    """Mutable pacing state. Only the owning gateway mutates it."""
    consecutive_errors: int
    global_errors: int
    base_interval: float
    last_call_at: Optional[float] = None


class BackoffController:
    """
    Adaptive inter-call delay.

    The effective interval is ``base_interval * min(2 ** consecutive_errors, cap)``.
    ``base_interval`` itself moves between ``min_interval`` and ``max_interval``:
    it triples on rate limits, grows a little more once too many errors have
    accumulated globally, and decays back towards the floor on success.
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
        self.state = BackoffState(
            consecutive_errors=0,
            global_errors=0,
            base_interval=config.base_interval
        )

    @property
    def interval(self) -> float:
        """Current minimum spacing between two calls."""
        multiplier = min(2 ** self.state.consecutive_errors, self.config.backoff_cap_multiplier)
        return self.state.base_interval * multiplier

    def delay(self) -> float:
        """Seconds the next call still has to wait. Never negative."""
        if self.state.last_call_at is None:
            return 0.0
        elapsed = self.clock() - self.state.last_call_at
        return max(0.0, self.interval - elapsed)

    async def wait_before_call(self) -> None:
        """
        Suspend until the next call is allowed.

        Does not touch the state; the caller stamps the call with mark_call()
        once it is committed to issuing it, so a cancelled wait changes nothing.
        """
        wait_time = self.delay()
        if wait_time > 0:
            logger.debug(f"Backoff: waiting {wait_time:.2f}s before next call")
            await self.sleep(wait_time)

    def mark_call(self) -> None:
        self.state.last_call_at = self.clock()

    def retry_delay(self) -> float:
        """Explicit extra delay before the single bounded retry."""
        return min(
            self.config.retry_base_delay * (2 ** self.state.consecutive_errors),
            self.config.retry_max_delay
        )

    def record_success(self) -> None:
        """Reset the error streak and relax the base interval."""
        state = self.state
        state.consecutive_errors = 0
        if state.global_errors > 0:
            state.global_errors -= 1
            state.base_interval = max(
                state.base_interval * self.config.success_decay,
                self.config.min_interval
            )

    def record_error(self, signal: ErrorSignal) -> None:
        """Count an error and stretch the base interval where warranted."""
        state = self.state
        config = self.config
        state.consecutive_errors = min(state.consecutive_errors + 1, config.max_consecutive_errors)
        state.global_errors = min(state.global_errors + 1, config.max_global_errors)

        if signal is ErrorSignal.RATE_LIMITED:
            state.base_interval = min(
                state.base_interval * config.rate_limit_multiplier,
                config.max_interval
            )

        if state.global_errors > config.global_error_threshold:
            state.base_interval = min(
                state.base_interval * config.global_error_multiplier,
                config.max_interval
            )

        logger.debug(
            f"Backoff: {signal.value} recorded "
            f"(consecutive={state.consecutive_errors}, global={state.global_errors}, "
            f"base_interval={state.base_interval:.2f}s)"
        )
