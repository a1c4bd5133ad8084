"""
Gateway: the single path from the application to the upstream API.

Composes the response cache, circuit breaker, window limiter and backoff
controller around one upstream call.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, TypeVar

from config import GatewayConfig
from gateway.backoff import BackoffController, Clock, Sleep
from gateway.cache import ResponseCache
from gateway.circuit import CircuitBreaker
from gateway.errors import (
    CircuitOpenError,
    DeadlineExceededError,
    ErrorSignal,
    GatewayError,
)
from gateway.window import WindowLimiter
from utils import setup_logger


logger = setup_logger(__name__)

T = TypeVar('T')

# An idempotent unit of work: awaiting it performs exactly one upstream request.
UpstreamCall = Callable[[], Awaitable[T]]


class Gateway:
    """
    Rate-limited, cached, circuit-protected executor for upstream calls.

    One instance per authenticated session; never share it across users.

    Order of operations in execute():
    1. Cache hit -> return it, no rate limiting at all
    2. Circuit open -> CircuitOpenError, no network I/O
    3. Window soft throttle
    4. Backoff wait
    5. Call; on success record it and write through to the cache
    6. On failure record it; RATE_LIMITED / TRANSIENT get exactly one retry
       after an explicit delay. RATE_LIMITED opens the circuit at once; only
       the retry itself may pass the open circuit.
       FORBIDDEN, UNAUTHORIZED and FATAL propagate immediately.
    """

    def __init__(
        self,
        config: GatewayConfig,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        cache: Optional[ResponseCache] = None
    ):
        """
        Initialize gateway.

        Args:
            config: Gateway tunables
            clock: Monotonic time source in seconds
            sleep: Coroutine used for every suspension
            cache: Response cache (a new one sized from config by default)
        """
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.backoff = BackoffController(config, clock, sleep)
        self.window = WindowLimiter(config, clock, sleep)
        self.circuit = CircuitBreaker(config, clock)
        self.cache = cache if cache is not None else ResponseCache(
            config.cache_ttl, config.cache_max_entries, clock
        )
        # Single critical section for window/backoff pacing
        self._lock = asyncio.Lock()

    async def execute(
        self,
        call: UpstreamCall,
        cache_key: Optional[Hashable] = None,
        ttl: Optional[float] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Run an upstream call through the gateway.

        Args:
            call: Zero-argument coroutine function performing one request
            cache_key: Key for read-through/write-through caching (None = uncached)
            ttl: Cache TTL override in seconds
            timeout: Deadline for the whole call chain including the retry

        Returns:
            The call's result (or the cached value)

        Raises:
            GatewayError: Subclass matching the failure's ErrorSignal
        """
        if cache_key is not None:
            value, hit = self.cache.get(cache_key)
            if hit:
                logger.debug(f"📦 Using cached data for: {cache_key}")
                return value

        if timeout is None:
            timeout = self.config.call_timeout
        if timeout is None:
            return await self._execute(call, cache_key, ttl)

        try:
            return await asyncio.wait_for(self._execute(call, cache_key, ttl), timeout)
        except asyncio.TimeoutError:
            raise DeadlineExceededError(f"Upstream call exceeded {timeout:.1f}s deadline")

    async def _execute(self, call: UpstreamCall, cache_key: Optional[Hashable], ttl: Optional[float]) -> Any:
        try:
            return await self._attempt(call, cache_key, ttl)
        except CircuitOpenError:
            raise
        except GatewayError as error:
            if not error.signal.retryable:
                raise
            first_error = error

        # Other callers fail fast from here on, including during the retry delay
        if first_error.signal is ErrorSignal.RATE_LIMITED:
            self.circuit.record_rate_limit_signal()

        delay = self.backoff.retry_delay()
        if first_error.retry_after:
            delay = min(max(delay, first_error.retry_after), self.config.retry_max_delay)
        logger.warning(
            f"{first_error.signal.value} ({first_error.message}), "
            f"waiting {delay:.1f}s before retry..."
        )
        await self.sleep(delay)

        # The single bounded retry is the one call allowed through an open circuit
        try:
            return await self._attempt(call, cache_key, ttl, check_circuit=False)
        except GatewayError as error:
            if error.signal is ErrorSignal.RATE_LIMITED:
                self.circuit.record_rate_limit_signal()
            raise

    async def _attempt(
        self,
        call: UpstreamCall,
        cache_key: Optional[Hashable],
        ttl: Optional[float],
        check_circuit: bool = True
    ) -> Any:
        """One network attempt, paced by the window limiter and backoff controller."""
        if check_circuit and self.circuit.is_open():
            raise CircuitOpenError(self.circuit.remaining())

        async with self._lock:
            await self.window.throttle()
            await self.backoff.wait_before_call()
            # Another call may have opened the circuit while we were waiting
            if check_circuit and self.circuit.is_open():
                raise CircuitOpenError(self.circuit.remaining())
            self.window.record_request()
            self.backoff.mark_call()

        try:
            result = await call()
        except GatewayError as error:
            self.backoff.record_error(error.signal)
            raise

        self.backoff.record_success()
        if cache_key is not None:
            self.cache.set(cache_key, result, ttl)
        return result

    def status(self) -> Dict[str, Any]:
        """Snapshot of the pacing, circuit and cache state."""
        state = self.backoff.state
        return {
            'circuit_open': self.circuit.is_open(),
            'circuit_reopens_in': self.circuit.remaining(),
            'consecutive_errors': state.consecutive_errors,
            'global_errors': state.global_errors,
            'base_interval': state.base_interval,
            'current_interval': self.backoff.interval,
            'window': self.window.usage(),
            'cached_entries': len(self.cache)
        }
