"""
Circuit Breaker

Opens for a fixed cooldown once the upstream has rate limited us hard, so
calls fail fast instead of feeding the limit. Closes on its own; there is no
manual reset.
"""
import time
from dataclasses import dataclass

from config import GatewayConfig
from gateway.backoff import Clock
from utils import setup_logger


logger = setup_logger(__name__)


@dataclass
class CircuitState:
    open: bool = False
    reopen_at: float = 0.0


class CircuitBreaker:
    """Closed -> Open on a rate-limit signal, Open -> Closed once now > reopen_at."""

    def __init__(self, config: GatewayConfig, clock: Clock = time.monotonic):
        self.cooldown = config.circuit_cooldown
        self.clock = clock
        self.state = CircuitState()

    def record_rate_limit_signal(self) -> None:
        """Open the circuit, keeping any later reopen time already set."""
        reopen_at = self.clock() + self.cooldown
        if self.state.open and self.state.reopen_at >= reopen_at:
            return
        self.state.open = True
        self.state.reopen_at = reopen_at
        logger.warning(f"🚨 Rate limiting detected, circuit open for {self.cooldown:.0f}s")

    def is_open(self) -> bool:
        if self.state.open and self.clock() > self.state.reopen_at:
            self.state.open = False
            self.state.reopen_at = 0.0
            logger.info("Circuit closed, upstream calls resume")
        return self.state.open

    def remaining(self) -> float:
        """Seconds until the circuit closes (0 when closed)."""
        if not self.is_open():
            return 0.0
        return max(0.0, self.state.reopen_at - self.clock())
