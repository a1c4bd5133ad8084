"""
Spotify API data mapper.
Transforms raw API responses into read-only entity projections.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from schemas import (
    Artist,
    AudioFeatures,
    Playlist,
    PlaylistEntry,
    PlayHistoryItem,
    Track
)
from utils import setup_logger


logger = setup_logger(__name__)

_MAPPING_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by Spotify ('...Z' suffix)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        logger.warning(f"Invalid timestamp: {value}")
        return None


class SpotifyMapper:
    """
    Maps Spotify API responses to entity projections.

    Responsibilities:
    - Extract relevant fields from API JSON
    - Drop items that are missing or malformed (local files, removed tracks)
    - Type conversions
    """

    @staticmethod
    def map_track(track: Optional[Dict[str, Any]]) -> Optional[Track]:
        """
        Map a track object.

        Args:
            track: Raw track object (may be None for removed tracks)

        Returns:
            Track or None if invalid
        """
        if not track or not track.get('id'):
            return None

        try:
            artists = [a for a in track.get('artists') or [] if a]
            album = track.get('album') or {}
            return Track(
                id=track['id'],
                name=track.get('name') or '',
                artist_ids=tuple(a.get('id') for a in artists if a.get('id')),
                artist_names=tuple(a.get('name') for a in artists if a.get('name')),
                album_name=album.get('name'),
                duration_ms=int(track.get('duration_ms') or 0),
                popularity=int(track.get('popularity') or 0),
                uri=track.get('uri')
            )
        except _MAPPING_ERRORS as e:
            logger.warning(f"Failed to map track: {e}")
            return None

    @staticmethod
    def map_playlist(item: Optional[Dict[str, Any]]) -> Optional[Playlist]:
        """
        Map a simplified or full playlist object.

        Args:
            item: Raw playlist object

        Returns:
            Playlist or None if invalid
        """
        if not item or not item.get('id'):
            return None

        try:
            owner = item.get('owner') or {}
            tracks = item.get('tracks') or {}
            followers = item.get('followers') or {}
            return Playlist(
                id=item['id'],
                name=item.get('name') or '',
                owner_id=owner.get('id'),
                owner_name=owner.get('display_name') or 'Unknown',
                description=item.get('description') or '',
                track_total=int(tracks.get('total') or 0),
                followers=int(followers.get('total') or 0),
                collaborative=bool(item.get('collaborative')),
                public=bool(item.get('public')),
                created_at=parse_timestamp(item.get('created_at')),
                snapshot_id=item.get('snapshot_id')
            )
        except _MAPPING_ERRORS as e:
            logger.warning(f"Failed to map playlist: {e}")
            return None

    @staticmethod
    def map_playlist_entry(item: Optional[Dict[str, Any]]) -> Optional[PlaylistEntry]:
        """Map one item of a playlist's track page."""
        if not item:
            return None
        track = SpotifyMapper.map_track(item.get('track'))
        if track is None:
            return None
        return PlaylistEntry(track=track, added_at=parse_timestamp(item.get('added_at')))

    @staticmethod
    def map_artist(item: Optional[Dict[str, Any]]) -> Optional[Artist]:
        if not item or not item.get('id'):
            return None
        try:
            return Artist(
                id=item['id'],
                name=item.get('name') or '',
                genres=tuple(g for g in item.get('genres') or [] if g and g.strip()),
                popularity=int(item.get('popularity') or 0)
            )
        except _MAPPING_ERRORS as e:
            logger.warning(f"Failed to map artist: {e}")
            return None

    @staticmethod
    def map_audio_features(item: Optional[Dict[str, Any]]) -> Optional[AudioFeatures]:
        """
        Map an audio-features object.

        Spotify returns null entries for tracks without analysis; those map to None.
        """
        if not item or not item.get('id'):
            return None

        def number(key: str) -> Optional[float]:
            value = item.get(key)
            return float(value) if value is not None else None

        try:
            return AudioFeatures(
                id=item['id'],
                danceability=number('danceability'),
                energy=number('energy'),
                valence=number('valence'),
                tempo=number('tempo'),
                acousticness=number('acousticness'),
                instrumentalness=number('instrumentalness'),
                speechiness=number('speechiness'),
                liveness=number('liveness'),
                loudness=number('loudness')
            )
        except _MAPPING_ERRORS as e:
            logger.warning(f"Failed to map audio features: {e}")
            return None

    @staticmethod
    def map_play_history_item(item: Optional[Dict[str, Any]]) -> Optional[PlayHistoryItem]:
        """
        Map a single recently-played item.

        Returns:
            PlayHistoryItem or None if track or played_at is missing
        """
        if not item:
            return None
        track = SpotifyMapper.map_track(item.get('track'))
        played_at = parse_timestamp(item.get('played_at'))
        if track is None or played_at is None:
            logger.warning(f"Missing required fields in play history item: played_at={item.get('played_at')}")
            return None
        return PlayHistoryItem(track=track, played_at=played_at)

    @staticmethod
    def map_many(mapper, items: List[Optional[Dict[str, Any]]]) -> list:
        """Apply a mapper to a list, dropping items that did not map."""
        mapped = [mapper(item) for item in items or []]
        return [m for m in mapped if m is not None]
