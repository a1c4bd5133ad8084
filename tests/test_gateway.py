"""Tests for the gateway call chain: cache, circuit, pacing and the single retry."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from config import GatewayConfig
from gateway import (
    CircuitOpenError,
    DeadlineExceededError,
    FatalError,
    ForbiddenError,
    Gateway,
    RateLimitedError,
    TransientError,
    UnauthorizedError,
)

from tests.conftest import wait_for_sleep


class TestCaching:
    """Cache hits short-circuit everything else."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network_and_rate_limiting(self, gateway):
        call = AsyncMock(return_value={'id': 'me'})

        first = await gateway.execute(call, cache_key='me')
        second = await gateway.execute(call, cache_key='me')

        assert first == second == {'id': 'me'}
        assert call.await_count == 1
        assert gateway.window.state.requests_this_window == 1

    @pytest.mark.asyncio
    async def test_cache_hit_served_while_circuit_open(self, gateway):
        await gateway.execute(AsyncMock(return_value='cached'), cache_key='k')
        gateway.circuit.record_rate_limit_signal()

        assert await gateway.execute(AsyncMock(), cache_key='k') == 'cached'

    @pytest.mark.asyncio
    async def test_uncached_call_always_hits_network(self, gateway):
        call = AsyncMock(return_value='v')
        await gateway.execute(call)
        await gateway.execute(call)
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, gateway):
        call = AsyncMock(side_effect=[ForbiddenError('no'), 'ok'])

        with pytest.raises(ForbiddenError):
            await gateway.execute(call, cache_key='k')

        assert gateway.cache.get('k') == (None, False)
        assert await gateway.execute(call, cache_key='k') == 'ok'

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, gateway, clock):
        call = AsyncMock(side_effect=['old', 'new'])
        await gateway.execute(call, cache_key='k', ttl=10)
        clock.advance(11)
        assert await gateway.execute(call, cache_key='k', ttl=10) == 'new'


class TestCircuit:
    """Once open, no network call is made until the cooldown passes."""

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self, gateway):
        gateway.circuit.record_rate_limit_signal()
        call = AsyncMock()

        with pytest.raises(CircuitOpenError) as exc_info:
            await gateway.execute(call)

        assert call.await_count == 0
        assert gateway.window.state.requests_this_window == 0
        assert exc_info.value.remaining == pytest.approx(3600)

    @pytest.mark.asyncio
    async def test_rate_limit_surviving_retry_opens_circuit(self, gateway):
        call = AsyncMock(side_effect=RateLimitedError('429'))

        with pytest.raises(RateLimitedError):
            await gateway.execute(call)

        assert call.await_count == 2
        assert gateway.circuit.is_open() is True

        with pytest.raises(CircuitOpenError):
            await gateway.execute(call)
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_opens_circuit_even_when_retry_succeeds(self, gateway):
        call = AsyncMock(side_effect=[RateLimitedError('429'), 'ok'])

        assert await gateway.execute(call) == 'ok'
        assert gateway.circuit.is_open() is True

        later = AsyncMock()
        with pytest.raises(CircuitOpenError):
            await gateway.execute(later)
        assert later.await_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_call_fails_fast_during_retry_delay(self, gateway, clock):
        clock.hold_sleeps()
        limited = AsyncMock(side_effect=[RateLimitedError('429'), 'first'])
        other = AsyncMock(return_value='second')

        task = asyncio.create_task(gateway.execute(limited))
        # the first sleep is the retry delay
        await wait_for_sleep(clock)

        with pytest.raises(CircuitOpenError):
            await gateway.execute(other)
        assert other.await_count == 0

        clock.release()
        assert await task == 'first'
        assert limited.await_count == 2

    @pytest.mark.asyncio
    async def test_circuit_closes_after_cooldown(self, gateway, clock):
        gateway.circuit.record_rate_limit_signal()
        clock.advance(3601)

        assert await gateway.execute(AsyncMock(return_value='ok')) == 'ok'

    @pytest.mark.asyncio
    async def test_transient_failures_never_open_circuit(self, gateway):
        call = AsyncMock(side_effect=TransientError('503'))

        with pytest.raises(TransientError):
            await gateway.execute(call)

        assert call.await_count == 2
        assert gateway.circuit.is_open() is False


class TestRetry:
    """Exactly one retry, only for RATE_LIMITED and TRANSIENT."""

    @pytest.mark.asyncio
    async def test_transient_failure_retried_once(self, gateway, clock):
        call = AsyncMock(side_effect=[TransientError('502'), 'ok'])

        assert await gateway.execute(call) == 'ok'

        assert call.await_count == 2
        # retry delay after one error: 2s * 2**1
        assert pytest.approx(4.0) in clock.sleeps
        assert gateway.backoff.state.consecutive_errors == 0

    @pytest.mark.asyncio
    async def test_retry_after_raises_the_delay(self, gateway, clock):
        call = AsyncMock(side_effect=[RateLimitedError('429', retry_after=7), 'ok'])

        assert await gateway.execute(call) == 'ok'
        assert pytest.approx(7.0) in clock.sleeps

    @pytest.mark.asyncio
    async def test_retry_after_is_capped(self, gateway, clock):
        call = AsyncMock(side_effect=[RateLimitedError('429', retry_after=3600), 'ok'])

        await gateway.execute(call)

        assert max(clock.sleeps) == pytest.approx(10.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize('error_cls', [ForbiddenError, UnauthorizedError, FatalError])
    async def test_non_retryable_errors_propagate_immediately(self, gateway, error_cls):
        call = AsyncMock(side_effect=error_cls('nope'))

        with pytest.raises(error_cls):
            await gateway.execute(call)

        assert call.await_count == 1
        assert gateway.circuit.is_open() is False

    @pytest.mark.asyncio
    async def test_rate_limit_raises_base_interval(self, gateway):
        call = AsyncMock(side_effect=[RateLimitedError('429'), 'ok'])
        await gateway.execute(call)
        # tripled on the 429, then one decay step on success
        assert gateway.backoff.state.base_interval == pytest.approx(0.81)


class TestPacing:
    """Backoff spacing and the single critical section."""

    @pytest.mark.asyncio
    async def test_second_call_waits_base_interval(self, gateway, clock):
        call = AsyncMock(return_value='ok')
        await gateway.execute(call)
        await gateway.execute(call)

        assert clock.sleeps == [pytest.approx(0.3)]

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_spaced(self, gateway, clock):
        call = AsyncMock(return_value='ok')

        results = await asyncio.gather(*(gateway.execute(call) for _ in range(5)))

        assert results == ['ok'] * 5
        assert gateway.window.state.requests_this_window == 5
        assert len(clock.sleeps) == 4
        assert all(s == pytest.approx(0.3) for s in clock.sleeps)

    @pytest.mark.asyncio
    async def test_timeout_raises_deadline_exceeded(self, gateway):
        async def slow():
            await asyncio.sleep(5)

        with pytest.raises(DeadlineExceededError):
            await gateway.execute(slow, timeout=0.01)

    @pytest.mark.asyncio
    async def test_timeout_from_config(self, clock):
        gateway = Gateway(GatewayConfig(call_timeout=0.01), clock=clock, sleep=clock.sleep)

        async def slow():
            await asyncio.sleep(5)

        with pytest.raises(DeadlineExceededError):
            await gateway.execute(slow)

    def test_status_snapshot(self, gateway):
        status = gateway.status()

        assert status['circuit_open'] is False
        assert status['current_interval'] == pytest.approx(0.3)
        assert status['window']['calls_made'] == 0
        assert status['cached_entries'] == 0


class TestCancellation:
    """A call cancelled before it reaches the network leaves no trace."""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_wait(self, gateway, clock):
        await gateway.execute(AsyncMock(return_value='warm'))
        last_call_at = gateway.backoff.state.last_call_at
        clock.hold_sleeps()
        call = AsyncMock(return_value='never')

        task = asyncio.create_task(gateway.execute(call, cache_key='k'))
        await wait_for_sleep(clock)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert call.await_count == 0
        assert gateway.window.state.requests_this_window == 1
        assert gateway.backoff.state.last_call_at == last_call_at
        assert gateway.cache.get('k') == (None, False)

        clock.release()
        assert await gateway.execute(AsyncMock(return_value='ok')) == 'ok'

    @pytest.mark.asyncio
    async def test_cancel_during_window_throttle(self, gateway, clock):
        gateway.window.state.requests_this_window = 40
        clock.hold_sleeps()
        call = AsyncMock(return_value='never')

        task = asyncio.create_task(gateway.execute(call, cache_key='k'))
        await wait_for_sleep(clock)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert clock.sleeps == [pytest.approx(1.0)]
        assert call.await_count == 0
        assert gateway.window.state.requests_this_window == 40
        assert gateway.backoff.state.last_call_at is None
        assert len(gateway.cache) == 0
