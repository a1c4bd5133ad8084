"""
Analytics package.
Activity scoring, listening history helpers and the analytics service.
"""
from .scoring import (
    PlaylistWeights,
    TrackWeights,
    score_playlist,
    rank_playlists,
    score_track_frequency,
    rank_tracks,
    histogram,
    genre_histogram,
    mood_histogram,
    energy_histogram,
    classify_mood,
    classify_energy,
    diversity_index,
    recently_played_overlap
)
from .service import AnalyticsService, Library
from .session import AnalyticsSession, build_session

__all__ = [
    'PlaylistWeights',
    'TrackWeights',
    'score_playlist',
    'rank_playlists',
    'score_track_frequency',
    'rank_tracks',
    'histogram',
    'genre_histogram',
    'mood_histogram',
    'energy_histogram',
    'classify_mood',
    'classify_energy',
    'diversity_index',
    'recently_played_overlap',
    'AnalyticsService',
    'Library',
    'AnalyticsSession',
    'build_session'
]
