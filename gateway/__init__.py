"""
Resilient gateway package.
Backoff, windowed throttling, circuit breaking, caching and pagination
for every call made to the upstream API.
"""
from .errors import (
    ErrorSignal,
    classify_status,
    error_for_status,
    GatewayError,
    RateLimitedError,
    CircuitOpenError,
    ForbiddenError,
    UnauthorizedError,
    TransientError,
    DeadlineExceededError,
    FatalError
)
from .backoff import BackoffController, BackoffState
from .window import WindowLimiter, WindowState
from .circuit import CircuitBreaker, CircuitState
from .cache import ResponseCache, CacheEntry
from .gateway import Gateway, UpstreamCall
from .paginator import Paginator, PageFetcher, PagedResult

__all__ = [
    'ErrorSignal',
    'classify_status',
    'error_for_status',
    'GatewayError',
    'RateLimitedError',
    'CircuitOpenError',
    'ForbiddenError',
    'UnauthorizedError',
    'TransientError',
    'DeadlineExceededError',
    'FatalError',
    'BackoffController',
    'BackoffState',
    'WindowLimiter',
    'WindowState',
    'CircuitBreaker',
    'CircuitState',
    'ResponseCache',
    'CacheEntry',
    'Gateway',
    'UpstreamCall',
    'Paginator',
    'PageFetcher',
    'PagedResult'
]
