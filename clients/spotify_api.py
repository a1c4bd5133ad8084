"""
Spotify Web API client.
Fetches playlists, tracks, artists, audio features and listening data
through the session's gateway.
"""
import asyncio
from typing import Any, Dict, Hashable, List, Optional

import requests

from config import AppConfig
from clients.auth import TokenProvider
from gateway import (
    FatalError,
    ForbiddenError,
    Gateway,
    GatewayError,
    PagedResult,
    Paginator,
    TransientError,
    UnauthorizedError,
    error_for_status,
)
from mappers import SpotifyMapper
from schemas import Playlist, PlaylistEntry, PlayHistoryItem, Track
from utils import setup_logger


logger = setup_logger(__name__)

TIME_RANGES = ('short_term', 'medium_term', 'long_term')


def validate_response(response: requests.Response) -> Dict[str, Any]:
    """
    Validate and parse an API response.

    Args:
        response: requests.Response object

    Returns:
        Parsed JSON object ({} for empty bodies)

    Raises:
        GatewayError: Subclass matching the status for non-2xx responses
        FatalError: If the body is not a JSON object
    """
    status = response.status_code
    if status >= 400:
        # Try to get error message from response (Spotify JSON format)
        try:
            error = response.json().get('error', {})
            message = error.get('message', '') if isinstance(error, dict) else str(error)
        except (ValueError, AttributeError):
            message = response.text
        raise error_for_status(
            status,
            f"API error {status}: {message or response.reason}",
            retry_after=_retry_after(response)
        )

    if status == 204 or not response.content:
        return {}

    try:
        data = response.json()
    except ValueError as e:
        raise FatalError(f"Invalid JSON response: {e}", status=status)

    if not isinstance(data, dict):
        raise FatalError(f"Unexpected response body type: {type(data).__name__}", status=status)
    return data


def _retry_after(response: requests.Response) -> Optional[float]:
    value = response.headers.get('Retry-After')
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _items(data: Dict[str, Any], key: str = 'items') -> List[Any]:
    items = data.get(key)
    if not isinstance(items, list):
        raise FatalError(f"Response is missing '{key}' list")
    return items


def _unique(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i))


class SpotifyAPIClient:
    """
    Spotify Web API client for fetching data.

    Responsibilities:
    - Fetch playlists and playlist tracks with pagination
    - Fetch artists and audio features in chunks
    - Fetch recently played and top tracks
    - Route every request through the gateway (cache, circuit, pacing, retry)

    The requests session is blocking, so each request runs in a worker thread.
    """

    ARTISTS_PER_REQUEST = 50
    AUDIO_FEATURES_PER_REQUEST = 100
    RECENTLY_PLAYED_TTL = 60.0

    def __init__(
        self,
        config: AppConfig,
        token_provider: TokenProvider,
        gateway: Gateway,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize API client.

        Args:
            config: Application configuration
            token_provider: Supplies the current bearer token
            gateway: The session's gateway
            session: HTTP session (a new one by default)
        """
        self.config = config
        self.base_url = config.spotify.api_base_url
        self.timeout = config.spotify.request_timeout
        self.token_provider = token_provider
        self.gateway = gateway
        self.session = session or requests.Session()

    def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        require: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Perform one blocking HTTP request. Runs in a worker thread.

        A 401 revokes the token, so later requests fail without reaching the network.

        Args:
            require: Key that must hold a list in the response body
        """
        token = self.token_provider.get_valid_token()
        headers = {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json'
        }

        try:
            response = self.session.request(
                method=method,
                url=f"{self.base_url}{endpoint}",
                headers=headers,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise TransientError(f"Request failed: {e}")

        try:
            data = validate_response(response)
        except UnauthorizedError:
            self.token_provider.revoke()
            raise
        if require is not None:
            _items(data, require)
        return data

    @staticmethod
    def cache_key(endpoint: str, params: Optional[Dict] = None) -> Hashable:
        return endpoint, tuple(sorted((params or {}).items()))

    async def _get(
        self,
        endpoint: str,
        params: Optional[Dict] = None,
        ttl: Optional[float] = None,
        cached: bool = True,
        require: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.gateway.execute(
            lambda: asyncio.to_thread(self._send, 'GET', endpoint, params, require),
            cache_key=self.cache_key(endpoint, params) if cached else None,
            ttl=ttl
        )

    async def get_current_user(self) -> Dict[str, Any]:
        data = await self._get('/me')
        return {
            'id': data.get('id'),
            'display_name': data.get('display_name') or 'Unknown User',
            'email': data.get('email') or '',
            'images': data.get('images') or []
        }

    async def _playlists_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        data = await self._get('/me/playlists', params={'limit': limit, 'offset': offset}, require='items')
        return _items(data)

    async def get_playlists_page(self, offset: int = 0, limit: int = 50) -> List[Playlist]:
        """Fetch one page of the current user's playlists."""
        items = await self._playlists_page(offset, limit)
        return SpotifyMapper.map_many(SpotifyMapper.map_playlist, items)

    async def get_playlist(self, playlist_id: str) -> Playlist:
        data = await self._get(f'/playlists/{playlist_id}')
        playlist = SpotifyMapper.map_playlist(data)
        if playlist is None:
            raise FatalError(f"Malformed playlist object for {playlist_id}")
        return playlist

    async def _playlist_tracks_page(self, playlist_id: str, offset: int, limit: int) -> List[Dict[str, Any]]:
        data = await self._get(
            f'/playlists/{playlist_id}/tracks',
            params={'limit': limit, 'offset': offset},
            require='items'
        )
        return _items(data)

    async def get_playlist_tracks_page(
        self,
        playlist_id: str,
        offset: int = 0,
        limit: int = 100
    ) -> List[PlaylistEntry]:
        """Fetch one page of a playlist's tracks. Removed/local tracks are dropped."""
        items = await self._playlist_tracks_page(playlist_id, offset, limit)
        entries = SpotifyMapper.map_many(SpotifyMapper.map_playlist_entry, items)
        if len(entries) < len(items):
            logger.debug(f"Dropped {len(items) - len(entries)} invalid tracks in playlist {playlist_id}")
        return entries

    def playlists_paginator(self, max_items: Optional[int] = None) -> Paginator:
        """Paginator over the raw playlist objects of the current user."""
        return Paginator(
            self._playlists_page,
            page_size=self.config.analytics.playlist_page_size,
            max_items=max_items,
            max_consecutive_failures=self.config.gateway.max_consecutive_page_failures,
            label='playlists'
        )

    def playlist_tracks_paginator(self, playlist_id: str, max_items: Optional[int] = None) -> Paginator:
        """Paginator over the raw track items of one playlist."""
        async def fetch(offset: int, limit: int) -> List[Dict[str, Any]]:
            return await self._playlist_tracks_page(playlist_id, offset, limit)

        return Paginator(
            fetch,
            page_size=self.config.analytics.track_page_size,
            max_items=max_items,
            max_consecutive_failures=self.config.gateway.max_consecutive_page_failures,
            label=f'playlist {playlist_id} tracks'
        )

    async def fetch_all_playlists(self, max_items: Optional[int] = None) -> PagedResult:
        """
        Fetch the user's playlists with pagination.

        Returns:
            PagedResult[Playlist]; ``partial`` when pages were lost
        """
        if max_items is None:
            max_items = self.config.analytics.max_playlists
        result = await self.playlists_paginator(max_items).collect(SpotifyMapper.map_playlist)
        logger.info(f"✅ Fetched {len(result.items)} playlists")
        return result

    async def fetch_all_playlist_tracks(self, playlist_id: str, max_items: Optional[int] = None) -> PagedResult:
        """
        Fetch all tracks of a playlist with pagination.

        Returns:
            PagedResult[PlaylistEntry]
        """
        if max_items is None:
            max_items = self.config.analytics.max_tracks_per_playlist
        result = await self.playlist_tracks_paginator(playlist_id, max_items).collect(
            SpotifyMapper.map_playlist_entry
        )
        logger.debug(f"Fetched {len(result.items)} tracks for playlist {playlist_id}")
        return result

    async def _fetch_chunked(self, endpoint: str, key: str, ids: List[str], chunk_size: int) -> PagedResult:
        """
        Fetch an id-list endpoint in chunks.

        A chunk that fails with anything but UNAUTHORIZED or FATAL is skipped
        so the remaining chunks still come through.
        """
        result = PagedResult()
        ids = _unique(ids)
        for i in range(0, len(ids), chunk_size):
            chunk = ids[i:i + chunk_size]
            try:
                data = await self._get(endpoint, params={'ids': ','.join(chunk)}, require=key)
            except (UnauthorizedError, FatalError):
                raise
            except ForbiddenError as e:
                logger.warning(f"⚠️  {endpoint} returned 403, skipping {len(chunk)} ids: {e}")
                result.partial = True
                result.skipped.extend(chunk)
                continue
            except GatewayError as e:
                logger.warning(f"⚠️  {endpoint} chunk failed, skipping {len(chunk)} ids: {e}")
                result.partial = True
                result.skipped.extend(chunk)
                continue
            result.items.extend(_items(data, key))
        return result

    async def get_artists(self, artist_ids: List[str]) -> PagedResult:
        """
        Fetch artist details (genres) in batches of 50.

        Returns:
            PagedResult[Artist]
        """
        raw = await self._fetch_chunked('/artists', 'artists', artist_ids, self.ARTISTS_PER_REQUEST)
        raw.items = SpotifyMapper.map_many(SpotifyMapper.map_artist, raw.items)
        logger.debug(f"Fetched {len(raw.items)} artists")
        return raw

    async def get_audio_features(self, track_ids: List[str]) -> PagedResult:
        """
        Fetch audio features in batches of 100.

        Tracks without analysis come back as null and are dropped.

        Returns:
            PagedResult[AudioFeatures]
        """
        raw = await self._fetch_chunked(
            '/audio-features', 'audio_features', track_ids, self.AUDIO_FEATURES_PER_REQUEST
        )
        raw.items = SpotifyMapper.map_many(SpotifyMapper.map_audio_features, raw.items)
        logger.debug(f"Fetched audio features for {len(raw.items)} tracks")
        return raw

    async def get_recently_played(self, limit: int = 50) -> List[PlayHistoryItem]:
        """
        Fetch recently played tracks.

        Args:
            limit: Number of tracks to fetch (max 50)
        """
        params = {'limit': max(1, min(limit, 50))}
        data = await self._get(
            '/me/player/recently-played',
            params=params,
            ttl=self.RECENTLY_PLAYED_TTL,
            require='items'
        )
        return SpotifyMapper.map_many(SpotifyMapper.map_play_history_item, _items(data))

    async def get_top_tracks(self, time_range: str = 'medium_term', limit: int = 10) -> List[Track]:
        """
        Fetch the user's top tracks.

        Args:
            time_range: short_term, medium_term or long_term
            limit: Number of tracks (max 50)
        """
        if time_range not in TIME_RANGES:
            raise ValueError(f"time_range must be one of {', '.join(TIME_RANGES)}")
        params = {'time_range': time_range, 'limit': max(1, min(limit, 50))}
        data = await self._get('/me/top/tracks', params=params, require='items')
        return SpotifyMapper.map_many(SpotifyMapper.map_track, _items(data))
