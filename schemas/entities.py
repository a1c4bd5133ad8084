"""
Read-only projections of upstream Spotify entities.

Playlists reference their tracks by id only; the track objects themselves
live in one place and are never duplicated per playlist.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    genres: Tuple[str, ...] = ()
    popularity: int = 0


@dataclass(frozen=True)
class Track:
    id: str
    name: str
    artist_ids: Tuple[str, ...] = ()
    artist_names: Tuple[str, ...] = ()
    album_name: Optional[str] = None
    duration_ms: int = 0
    popularity: int = 0
    uri: Optional[str] = None


@dataclass(frozen=True)
class Playlist:
    id: str
    name: str
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    description: str = ''
    track_total: int = 0
    followers: int = 0
    collaborative: bool = False
    public: bool = False
    created_at: Optional[datetime] = None
    snapshot_id: Optional[str] = None
    track_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AudioFeatures:
    """Audio features of one track. Missing values stay None."""
    id: str
    danceability: Optional[float] = None
    energy: Optional[float] = None
    valence: Optional[float] = None
    tempo: Optional[float] = None
    acousticness: Optional[float] = None
    instrumentalness: Optional[float] = None
    speechiness: Optional[float] = None
    liveness: Optional[float] = None
    loudness: Optional[float] = None


@dataclass(frozen=True)
class PlayHistoryItem:
    track: Track
    played_at: datetime


@dataclass(frozen=True)
class PlaylistEntry:
    """A track as it appears in one playlist."""
    track: Track
    added_at: Optional[datetime] = None
