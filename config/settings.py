"""
Centralized configuration from environment variables.
Loads credentials and every gateway/analytics tunable without hardcoding.
"""
import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, '') else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, '') else default


@dataclass
class SpotifyConfig:
    """Spotify API configuration."""
    client_id: str = ''
    client_secret: str = ''
    access_token: str = ''
    api_base_url: str = "https://api.spotify.com/v1"
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> 'SpotifyConfig':
        """Load from environment variables."""
        return cls(
            client_id=os.getenv('CLIENT_ID', ''),
            client_secret=os.getenv('CLIENT_SECRET', ''),
            access_token=os.getenv('SPOTIFY_ACCESS_TOKEN', ''),
            api_base_url=os.getenv('SPOTIFY_API_URL', 'https://api.spotify.com/v1').rstrip('/'),
            request_timeout=_env_float('SPOTIFY_REQUEST_TIMEOUT', 30.0)
        )

    def validate(self) -> None:
        """Validate required fields are present."""
        if not self.access_token:
            raise ValueError("SPOTIFY_ACCESS_TOKEN environment variable is required")


@dataclass
class GatewayConfig:
    """
    Tunables for the rate-limiting gateway.

    All durations are in seconds.
    """
    # Backoff controller
    base_interval: float = 0.3
    min_interval: float = 0.3
    max_interval: float = 1.0
    backoff_cap_multiplier: int = 16
    max_consecutive_errors: int = 3
    max_global_errors: int = 10
    global_error_threshold: int = 5
    rate_limit_multiplier: float = 3.0
    global_error_multiplier: float = 1.5
    success_decay: float = 0.9

    # Window limiter
    window_duration: float = 60.0
    max_requests_per_window: int = 50
    soft_cap_fraction: float = 0.7
    window_penalty: float = 1.0

    # Circuit breaker (one hour, like the upstream's own lockout)
    circuit_cooldown: float = 3600.0

    # Bounded retry
    retry_base_delay: float = 2.0
    retry_max_delay: float = 10.0

    # Response cache
    cache_ttl: float = 1800.0
    cache_max_entries: int = 512

    # Paginator
    max_consecutive_page_failures: int = 3

    call_timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> 'GatewayConfig':
        """Load from environment with defaults (GATEWAY_<FIELD>)."""
        defaults = cls()
        timeout = os.getenv('GATEWAY_CALL_TIMEOUT')
        return cls(
            base_interval=_env_float('GATEWAY_BASE_INTERVAL', defaults.base_interval),
            min_interval=_env_float('GATEWAY_MIN_INTERVAL', defaults.min_interval),
            max_interval=_env_float('GATEWAY_MAX_INTERVAL', defaults.max_interval),
            backoff_cap_multiplier=_env_int('GATEWAY_BACKOFF_CAP_MULTIPLIER', defaults.backoff_cap_multiplier),
            max_consecutive_errors=_env_int('GATEWAY_MAX_CONSECUTIVE_ERRORS', defaults.max_consecutive_errors),
            max_global_errors=_env_int('GATEWAY_MAX_GLOBAL_ERRORS', defaults.max_global_errors),
            global_error_threshold=_env_int('GATEWAY_GLOBAL_ERROR_THRESHOLD', defaults.global_error_threshold),
            rate_limit_multiplier=_env_float('GATEWAY_RATE_LIMIT_MULTIPLIER', defaults.rate_limit_multiplier),
            global_error_multiplier=_env_float('GATEWAY_GLOBAL_ERROR_MULTIPLIER', defaults.global_error_multiplier),
            success_decay=_env_float('GATEWAY_SUCCESS_DECAY', defaults.success_decay),
            window_duration=_env_float('GATEWAY_WINDOW_DURATION', defaults.window_duration),
            max_requests_per_window=_env_int('GATEWAY_MAX_REQUESTS_PER_WINDOW', defaults.max_requests_per_window),
            soft_cap_fraction=_env_float('GATEWAY_SOFT_CAP_FRACTION', defaults.soft_cap_fraction),
            window_penalty=_env_float('GATEWAY_WINDOW_PENALTY', defaults.window_penalty),
            circuit_cooldown=_env_float('GATEWAY_CIRCUIT_COOLDOWN', defaults.circuit_cooldown),
            retry_base_delay=_env_float('GATEWAY_RETRY_BASE_DELAY', defaults.retry_base_delay),
            retry_max_delay=_env_float('GATEWAY_RETRY_MAX_DELAY', defaults.retry_max_delay),
            cache_ttl=_env_float('GATEWAY_CACHE_TTL', defaults.cache_ttl),
            cache_max_entries=_env_int('GATEWAY_CACHE_MAX_ENTRIES', defaults.cache_max_entries),
            max_consecutive_page_failures=_env_int(
                'GATEWAY_MAX_CONSECUTIVE_PAGE_FAILURES', defaults.max_consecutive_page_failures
            ),
            call_timeout=float(timeout) if timeout else None
        )

    def validate(self) -> None:
        """Validate value ranges that the gateway relies on."""
        if self.base_interval <= 0:
            raise ValueError("base_interval must be positive")
        if not self.min_interval <= self.base_interval <= self.max_interval:
            raise ValueError("base_interval must lie between min_interval and max_interval")
        if not 0 < self.soft_cap_fraction <= 1:
            raise ValueError("soft_cap_fraction must be in (0, 1]")
        if self.window_penalty < self.base_interval:
            raise ValueError("window_penalty must be at least base_interval")
        if self.max_requests_per_window <= 0:
            raise ValueError("max_requests_per_window must be positive")
        if self.cache_max_entries <= 0:
            raise ValueError("cache_max_entries must be positive")
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry_max_delay must be at least retry_base_delay")


@dataclass
class AnalyticsConfig:
    """Collection bounds for the analytics operations."""
    max_playlists: int = 200
    max_tracks_per_playlist: int = 1000
    playlist_page_size: int = 50  # Spotify API max per request
    track_page_size: int = 100  # Spotify API max per request
    fallback_ttl: float = 86400.0
    default_limit: int = 10

    @classmethod
    def from_env(cls) -> 'AnalyticsConfig':
        """Load from environment with defaults."""
        return cls(
            max_playlists=_env_int('ANALYTICS_MAX_PLAYLISTS', 200),
            max_tracks_per_playlist=_env_int('ANALYTICS_MAX_TRACKS_PER_PLAYLIST', 1000),
            playlist_page_size=_env_int('ANALYTICS_PLAYLIST_PAGE_SIZE', 50),
            track_page_size=_env_int('ANALYTICS_TRACK_PAGE_SIZE', 100),
            fallback_ttl=_env_float('ANALYTICS_FALLBACK_TTL', 86400.0),
            default_limit=_env_int('ANALYTICS_DEFAULT_LIMIT', 10)
        )

    def validate(self) -> None:
        """Page sizes must stay within what the Spotify API accepts per request."""
        if not 0 < self.playlist_page_size <= 50:
            raise ValueError("playlist_page_size must be between 1 and 50")
        if not 0 < self.track_page_size <= 100:
            raise ValueError("track_page_size must be between 1 and 100")
        if self.default_limit <= 0:
            raise ValueError("default_limit must be positive")


@dataclass
class AppConfig:
    """Application-wide configuration."""
    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    log_level: str = "INFO"

    @classmethod
    def load(cls, env_file: Optional[str] = None) -> 'AppConfig':
        """
        Load all configuration.

        Args:
            env_file: Path to .env file (optional, will search parent dirs)
        """
        # Load environment from .env file if it exists
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()  # Searches parent directories

        config = cls(
            spotify=SpotifyConfig.from_env(),
            gateway=GatewayConfig.from_env(),
            analytics=AnalyticsConfig.from_env(),
            log_level=os.getenv('LOG_LEVEL', 'INFO')
        )

        # Validate critical settings
        config.spotify.validate()
        config.gateway.validate()
        config.analytics.validate()

        return config


# Singleton instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create configuration singleton."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None
