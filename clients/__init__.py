"""
API clients package.
Handles token supply and communication with the Spotify API.
"""
from .auth import TokenProvider, StaticTokenProvider, EnvTokenProvider
from .spotify_api import SpotifyAPIClient, TIME_RANGES, validate_response

__all__ = [
    'TokenProvider',
    'StaticTokenProvider',
    'EnvTokenProvider',
    'SpotifyAPIClient',
    'TIME_RANGES',
    'validate_response'
]
