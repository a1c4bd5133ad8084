"""
Activity scoring and categorical histograms.

Everything here is a pure function of its arguments: no clock, no I/O,
no module state. Callers pass ``now`` explicitly.

Playlist activity score:

    score = track_count * w.track_count
          + max(0, w.recency_window_days - days_since_creation) * w.recency
          + w.collaborative * collaborative
          + w.public * public
          + recently_played_overlap * w.recently_played
          + min(followers, w.follower_cap) * w.followers

The weights are heuristics. Only the relative ranking they produce matters.
"""
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from schemas import ActivityScore, AudioFeatures, HistogramBucket, Playlist, Track


MOODS = ('energetic', 'chill', 'happy', 'melancholic')
ENERGY_LEVELS = ('low', 'medium', 'high')

AUDIO_FEATURE_FIELDS = (
    'energy',
    'danceability',
    'valence',
    'tempo',
    'acousticness',
    'instrumentalness'
)


@dataclass(frozen=True)
class PlaylistWeights:
    track_count: float = 0.3
    recency_window_days: float = 30.0
    recency: float = 0.5
    collaborative: float = 25.0
    public: float = 15.0
    recently_played: float = 10.0
    followers: float = 0.2
    follower_cap: int = 100


@dataclass(frozen=True)
class TrackWeights:
    playlist_appearance: float = 2.0
    popularity: float = 0.1
    popularity_cap: float = 10.0


DEFAULT_PLAYLIST_WEIGHTS = PlaylistWeights()
DEFAULT_TRACK_WEIGHTS = TrackWeights()


def days_since(moment: Optional[datetime], now: datetime) -> Optional[float]:
    """Whole-and-fractional days between two datetimes, never negative."""
    if moment is None:
        return None
    if (moment.tzinfo is None) != (now.tzinfo is None):
        moment = moment.replace(tzinfo=now.tzinfo)
    return max(0.0, (now - moment).total_seconds() / 86400)


def recently_played_overlap(track_ids: Iterable[str], recent_track_ids: Sequence[str]) -> int:
    """Number of recent plays whose track belongs to the playlist."""
    members = set(track_ids)
    return sum(1 for track_id in recent_track_ids if track_id in members)


def score_playlist(
    playlist: Playlist,
    now: datetime,
    recently_played: int = 0,
    weights: PlaylistWeights = DEFAULT_PLAYLIST_WEIGHTS
) -> float:
    """
    Activity score of one playlist.

    Args:
        playlist: Playlist projection
        now: Reference time for the recency term
        recently_played: Recent plays of tracks in this playlist
        weights: Scoring weights

    Returns:
        Raw score (unbounded, >= 0). A playlist without a creation date gets no recency term.
    """
    track_count = max(playlist.track_total, len(playlist.track_ids))
    age = days_since(playlist.created_at, now)
    recency = 0.0 if age is None else max(0.0, weights.recency_window_days - age)

    return (
        weights.track_count * track_count
        + weights.recency * recency
        + (weights.collaborative if playlist.collaborative else 0.0)
        + (weights.public if playlist.public else 0.0)
        + weights.recently_played * recently_played
        + weights.followers * min(playlist.followers, weights.follower_cap)
    )


def rank(scores: Mapping[str, float], limit: Optional[int] = None) -> List[ActivityScore]:
    """
    Rank entities by score, highest first.

    Ties are broken by ascending entity id so the order is deterministic.
    """
    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        ordered = ordered[:limit]
    return [
        ActivityScore(entity_id=entity_id, raw_score=score, rank=position)
        for position, (entity_id, score) in enumerate(ordered, start=1)
    ]


def rank_playlists(
    playlists: Iterable[Playlist],
    now: datetime,
    overlaps: Optional[Mapping[str, int]] = None,
    weights: PlaylistWeights = DEFAULT_PLAYLIST_WEIGHTS,
    limit: Optional[int] = None
) -> List[ActivityScore]:
    overlaps = overlaps or {}
    scores = {
        playlist.id: score_playlist(playlist, now, overlaps.get(playlist.id, 0), weights)
        for playlist in playlists
    }
    return rank(scores, limit)


def estimated_usage(score: float) -> int:
    return round(score * 0.8)


def estimated_total_plays(score: float, playlist: Playlist, recently_played: int) -> int:
    track_count = max(playlist.track_total, len(playlist.track_ids))
    return round(
        score * 2
        + track_count * 0.8
        + recently_played * 15
        + min(playlist.followers, 50) * 0.5
    )


def score_track_frequency(
    playlist_count: int,
    popularity: int,
    weights: TrackWeights = DEFAULT_TRACK_WEIGHTS
) -> float:
    """Score of a track by how many playlists contain it, nudged by popularity."""
    return (
        weights.playlist_appearance * playlist_count
        + min(weights.popularity_cap, weights.popularity * popularity)
    )


def rank_tracks(
    appearances: Mapping[str, int],
    popularity: Mapping[str, int],
    weights: TrackWeights = DEFAULT_TRACK_WEIGHTS,
    limit: Optional[int] = None
) -> List[ActivityScore]:
    scores = {
        track_id: score_track_frequency(count, popularity.get(track_id, 0), weights)
        for track_id, count in appearances.items()
    }
    return rank(scores, limit)


def estimated_plays_from_frequency(score: float, position: int, list_size: int = 25) -> int:
    """Estimated plays for the position-th (1-based) most frequent track."""
    return max(1, round(score + max(0, list_size + 1 - position) * 0.5))


def estimated_plays_from_top_rank(position: int, popularity: int) -> int:
    """Estimated plays for the position-th (1-based) entry of the user's top tracks."""
    return max(1, round((51 - position) * (popularity / 100) * 2))


def histogram(
    labels: Iterable[Optional[str]],
    categories: Sequence[str] = ()
) -> List[HistogramBucket]:
    """
    Count categorical labels.

    Unclassifiable items (None or empty) are excluded from the total.
    ``percentage = count / total * 100`` rounded to one decimal; when nothing
    is classifiable every percentage is 0. Fixed ``categories`` are always
    reported, even with a zero count.

    Returns:
        Buckets sorted by descending count, then label
    """
    counts = Counter(label for label in labels if label)
    for category in categories:
        counts.setdefault(category, 0)
    total = sum(counts.values())

    buckets = [
        HistogramBucket(
            label=label,
            count=count,
            percentage=round(count / total * 100, 1) if total else 0.0
        )
        for label, count in counts.items()
    ]
    buckets.sort(key=lambda bucket: (-bucket.count, bucket.label))
    return buckets


def track_genres(track: Track, artist_genres: Mapping[str, Sequence[str]]) -> List[str]:
    """Distinct genres of a track, taken from all of its artists."""
    genres = []
    for artist_id in track.artist_ids:
        for genre in artist_genres.get(artist_id, ()):
            genre = genre.strip()
            if genre and genre not in genres:
                genres.append(genre)
    return genres


def genre_histogram(
    tracks: Iterable[Track],
    artist_genres: Mapping[str, Sequence[str]]
) -> List[HistogramBucket]:
    """Genre histogram over tracks; a track counts once per distinct genre."""
    labels = [genre for track in tracks for genre in track_genres(track, artist_genres)]
    return histogram(labels)


def classify_mood(features: AudioFeatures) -> Optional[str]:
    """Mood of a single track, or None when energy/valence are missing."""
    energy, valence = features.energy, features.valence
    if energy is None or valence is None:
        return None
    if energy > 0.7 and valence > 0.6:
        return 'energetic'
    if energy < 0.4 and valence < 0.4:
        return 'melancholic'
    if valence > 0.6:
        return 'happy'
    return 'chill'


def mood_histogram(features: Iterable[AudioFeatures]) -> List[HistogramBucket]:
    return histogram((classify_mood(f) for f in features), categories=MOODS)


def classify_energy(energy: Optional[float]) -> Optional[str]:
    if energy is None:
        return None
    if energy < 0.4:
        return 'low'
    if energy > 0.7:
        return 'high'
    return 'medium'


def energy_histogram(features: Iterable[AudioFeatures]) -> List[HistogramBucket]:
    return histogram((classify_energy(f.energy) for f in features), categories=ENERGY_LEVELS)


def profile_mood(energy: float, valence: float, tempo: float) -> str:
    """Overall mood of a playlist from its average audio features."""
    if energy > 0.7 and tempo > 120:
        return 'energetic'
    if valence > 0.7:
        return 'happy'
    if energy < 0.4 and tempo < 100:
        return 'chill'
    if valence < 0.3:
        return 'melancholic'
    return 'mixed'


def audio_averages(features: Iterable[AudioFeatures]) -> Dict[str, float]:
    """Mean of each audio feature, ignoring missing values (0.0 when none)."""
    features = list(features)
    averages = {}
    for name in AUDIO_FEATURE_FIELDS:
        values = [getattr(f, name) for f in features if getattr(f, name) is not None]
        averages[name] = sum(values) / len(values) if values else 0.0
    return averages


def diversity_index(counts: Iterable[int]) -> float:
    """
    Normalized Shannon diversity in [0, 1].

    0 for a single category (or none), 1 when all categories are equally common.
    """
    counts = [c for c in counts if c > 0]
    total = sum(counts)
    if len(counts) < 2 or total == 0:
        return 0.0
    shannon = -sum((c / total) * math.log(c / total) for c in counts)
    return shannon / math.log(len(counts))
