"""
Schema definitions: entity projections and analytics payloads.
"""
from .entities import (
    Artist,
    Track,
    Playlist,
    PlaylistEntry,
    AudioFeatures,
    PlayHistoryItem
)
from .payloads import (
    Payload,
    HistogramBucket,
    ActivityScore,
    ArtistCount,
    OverviewPayload,
    GenresPayload,
    PlaylistActivity,
    PlaylistActivityPayload,
    RankedTrack,
    TopTracksPayload,
    MostPlayedTracksPayload,
    ListeningHistoryEntry,
    ListeningHistoryPayload,
    PlaylistProfilePayload
)

__all__ = [
    'Artist',
    'Track',
    'Playlist',
    'PlaylistEntry',
    'AudioFeatures',
    'PlayHistoryItem',
    'Payload',
    'HistogramBucket',
    'ActivityScore',
    'ArtistCount',
    'OverviewPayload',
    'GenresPayload',
    'PlaylistActivity',
    'PlaylistActivityPayload',
    'RankedTrack',
    'TopTracksPayload',
    'MostPlayedTracksPayload',
    'ListeningHistoryEntry',
    'ListeningHistoryPayload',
    'PlaylistProfilePayload'
]
