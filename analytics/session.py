"""
Per-session wiring: one gateway, one client and one analytics service
for each authenticated user session.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from clients import SpotifyAPIClient, StaticTokenProvider, TokenProvider
from config import AppConfig
from gateway import Gateway
from utils import setup_logger

from analytics.service import AnalyticsService


logger = setup_logger(__name__)


@dataclass
class AnalyticsSession:
    gateway: Gateway
    client: SpotifyAPIClient
    service: AnalyticsService

    def rate_limit_status(self) -> Dict[str, Any]:
        """Current pacing, window and circuit state of this session's gateway."""
        return self.gateway.status()


def build_session(
    config: AppConfig,
    token_provider: Optional[TokenProvider] = None,
    http_session: Optional[requests.Session] = None
) -> AnalyticsSession:
    """
    Build the gateway, client and service for one session.

    Args:
        config: Application configuration
        token_provider: Bearer token source (the configured access token by default)
        http_session: requests session to reuse

    Returns:
        AnalyticsSession
    """
    if token_provider is None:
        token_provider = StaticTokenProvider.from_config(config.spotify)

    gateway = Gateway(config.gateway)
    client = SpotifyAPIClient(config, token_provider, gateway, session=http_session)
    service = AnalyticsService(client, config)

    logger.debug(f"Session ready (window {config.gateway.max_requests_per_window} "
                 f"requests / {config.gateway.window_duration:.0f}s)")
    return AnalyticsSession(gateway=gateway, client=client, service=service)
