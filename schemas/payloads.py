"""
Typed payloads returned by the analytics operations.

Every payload carries ``fallback``: True when the data was approximated or
served from a previous result because the upstream could not be fully read.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


class Payload:
    """JSON-ready conversion shared by all payloads."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HistogramBucket:
    label: str
    count: int
    percentage: float


@dataclass(frozen=True)
class ActivityScore:
    entity_id: str
    raw_score: float
    rank: int


@dataclass(frozen=True)
class ArtistCount:
    name: str
    track_count: int


@dataclass
class OverviewPayload(Payload):
    total_playlists: int = 0
    total_tracks: int = 0
    average_playlist_length: int = 0
    listening_time_minutes: int = 0
    favorite_artists: List[ArtistCount] = field(default_factory=list)
    mood_distribution: List[HistogramBucket] = field(default_factory=list)
    top_genres: List[HistogramBucket] = field(default_factory=list)
    fallback: bool = False


@dataclass
class GenresPayload(Payload):
    genres: List[HistogramBucket] = field(default_factory=list)
    total_genres: int = 0
    total_tracks: int = 0
    fallback: bool = False


@dataclass(frozen=True)
class PlaylistActivity:
    id: str
    name: str
    owner_name: Optional[str]
    public: bool
    collaborative: bool
    track_count: int
    followers: int
    days_since_creation: Optional[int]
    recently_played_tracks: int
    activity_score: float
    rank: int
    estimated_usage: int
    estimated_total_plays: int


@dataclass
class PlaylistActivityPayload(Payload):
    playlists: List[PlaylistActivity] = field(default_factory=list)
    total_playlists: int = 0
    recently_played_tracks: int = 0
    fallback: bool = False


@dataclass(frozen=True)
class RankedTrack:
    id: str
    name: str
    artists: List[str]
    album_name: Optional[str]
    popularity: int
    rank: int
    estimated_plays: int
    playlist_count: int = 0


@dataclass
class TopTracksPayload(Payload):
    tracks: List[RankedTrack] = field(default_factory=list)
    time_range: str = 'medium_term'
    total: int = 0
    fallback: bool = False


@dataclass
class MostPlayedTracksPayload(Payload):
    tracks: List[RankedTrack] = field(default_factory=list)
    playlists_processed: int = 0
    unique_tracks: int = 0
    note: str = (
        "Play counts represent how many playlists each track appears in, "
        "not actual listening data"
    )
    fallback: bool = False


@dataclass(frozen=True)
class ListeningHistoryEntry:
    id: str
    name: str
    artists: List[str]
    album_name: Optional[str]
    played_at: str
    minutes_ago: int
    time_ago: str
    rank: int


@dataclass
class ListeningHistoryPayload(Payload):
    tracks: List[ListeningHistoryEntry] = field(default_factory=list)
    total: int = 0
    time_groups: Dict[str, int] = field(default_factory=dict)
    unique_artists: int = 0
    unique_albums: int = 0
    most_active_period: str = 'Spread out over time'
    fallback: bool = False


@dataclass
class PlaylistProfilePayload(Payload):
    playlist_id: str
    playlist_name: str = ''
    total_tracks: int = 0
    top_genres: List[HistogramBucket] = field(default_factory=list)
    genre_diversity: float = 0.0
    dominant_genre: str = 'unknown'
    audio_averages: Dict[str, float] = field(default_factory=dict)
    mood: str = 'mixed'
    energy_level: str = 'medium'
    unique_artists: int = 0
    top_artists: List[ArtistCount] = field(default_factory=list)
    artist_diversity: float = 0.0
    analyzed_at: str = ''
    fallback: bool = False
