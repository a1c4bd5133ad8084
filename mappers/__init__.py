"""
Data mappers package.
Transforms raw Spotify API JSON into entity projections.
"""
from .spotify_mapper import SpotifyMapper, parse_timestamp

__all__ = [
    'SpotifyMapper',
    'parse_timestamp'
]
