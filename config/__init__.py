"""
Configuration package for the Spotify analytics gateway.
Centralized configuration management using environment variables.
"""
from .settings import (
    SpotifyConfig,
    GatewayConfig,
    AnalyticsConfig,
    AppConfig,
    get_config,
    reset_config
)

__all__ = [
    'SpotifyConfig',
    'GatewayConfig',
    'AnalyticsConfig',
    'AppConfig',
    'get_config',
    'reset_config'
]
