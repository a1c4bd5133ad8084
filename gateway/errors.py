"""
Error taxonomy for upstream failures.

Every failure that crosses the gateway is an instance of GatewayError tagged
with an ErrorSignal. The signal decides retry, backoff and circuit behaviour:

    RATE_LIMITED  retried once, then propagated; opens the circuit
    FORBIDDEN     never retried; callers skip the affected resource
    UNAUTHORIZED  never retried; the user has to sign in again
    TRANSIENT     retried once like RATE_LIMITED, never opens the circuit
    FATAL         malformed response; propagated immediately
"""
from enum import Enum
from typing import Optional


class ErrorSignal(Enum):
    """Classification of an upstream failure."""
    RATE_LIMITED = 'rate_limited'
    FORBIDDEN = 'forbidden'
    UNAUTHORIZED = 'unauthorized'
    TRANSIENT = 'transient'
    FATAL = 'fatal'

    @property
    def retryable(self) -> bool:
        return self in (ErrorSignal.RATE_LIMITED, ErrorSignal.TRANSIENT)


def classify_status(status: int) -> ErrorSignal:
    """
    Map an HTTP status code to an ErrorSignal.

    Unknown codes map to TRANSIENT.
    """
    if status == 429:
        return ErrorSignal.RATE_LIMITED
    if status == 403:
        return ErrorSignal.FORBIDDEN
    if status == 401:
        return ErrorSignal.UNAUTHORIZED
    return ErrorSignal.TRANSIENT


class GatewayError(Exception):
    """Base class for failures surfaced by the gateway."""

    signal = ErrorSignal.TRANSIENT

    def __init__(
        self,
        message: str = '',
        status: Optional[int] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message or self.signal.value)
        self.message = message or self.signal.value
        self.status = status
        self.retry_after = retry_after


class RateLimitedError(GatewayError):
    """Upstream answered 429."""
    signal = ErrorSignal.RATE_LIMITED


class CircuitOpenError(RateLimitedError):
    """Raised without touching the network while the circuit is open."""

    def __init__(self, remaining: float):
        super().__init__(f"Circuit open, retry in {remaining:.0f}s", retry_after=remaining)
        self.remaining = remaining


class ForbiddenError(GatewayError):
    """Upstream answered 403; the resource is not accessible to this user."""
    signal = ErrorSignal.FORBIDDEN


class UnauthorizedError(GatewayError):
    """Upstream answered 401; the token is invalid or expired. Please sign in again."""
    signal = ErrorSignal.UNAUTHORIZED


class TransientError(GatewayError):
    """Network failure, 5xx, or any status without a more specific meaning."""
    signal = ErrorSignal.TRANSIENT


class DeadlineExceededError(TransientError):
    """The caller's deadline elapsed before the call chain finished."""


class FatalError(GatewayError):
    """Malformed upstream response."""
    signal = ErrorSignal.FATAL


_ERRORS_BY_SIGNAL = {
    ErrorSignal.RATE_LIMITED: RateLimitedError,
    ErrorSignal.FORBIDDEN: ForbiddenError,
    ErrorSignal.UNAUTHORIZED: UnauthorizedError,
    ErrorSignal.TRANSIENT: TransientError,
    ErrorSignal.FATAL: FatalError,
}


def error_for_status(
    status: int,
    message: str = '',
    retry_after: Optional[float] = None
) -> GatewayError:
    """Build the GatewayError subclass matching an HTTP status."""
    error_cls = _ERRORS_BY_SIGNAL[classify_status(status)]
    return error_cls(message or f"HTTP {status}", status=status, retry_after=retry_after)
