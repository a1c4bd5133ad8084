"""
Analytics operations over the user's Spotify library.

Each operation reads through the session's client (and therefore its gateway)
and returns a typed payload. Failures degrade to the last good payload or to a
zero payload, both flagged with ``fallback=True``. Re-authentication
(UnauthorizedError) is never masked.
"""
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Hashable, List, Optional

from clients import SpotifyAPIClient, TIME_RANGES
from config import AppConfig
from gateway import GatewayError, ResponseCache, UnauthorizedError
from schemas import (
    ArtistCount,
    GenresPayload,
    ListeningHistoryEntry,
    ListeningHistoryPayload,
    MostPlayedTracksPayload,
    OverviewPayload,
    Payload,
    Playlist,
    PlaylistActivity,
    PlaylistActivityPayload,
    PlaylistEntry,
    PlaylistProfilePayload,
    RankedTrack,
    TopTracksPayload,
    Track,
)
from utils import OperationLogger

from analytics import history, scoring


MINUTES_PER_TRACK = 4.2
FAVORITE_ARTISTS = 5
PROFILE_TOP_ENTRIES = 10


@dataclass
class Library:
    """The user's playlists with their tracks, referenced by id."""
    playlists: List[Playlist] = field(default_factory=list)
    entries: Dict[str, List[PlaylistEntry]] = field(default_factory=dict)
    tracks: Dict[str, Track] = field(default_factory=dict)
    partial: bool = False

    @property
    def total_entries(self) -> int:
        return sum(len(entries) for entries in self.entries.values())

    @property
    def artist_ids(self) -> List[str]:
        return list(dict.fromkeys(a for t in self.tracks.values() for a in t.artist_ids))


def _artist_counts(tracks: List[Track]) -> List[ArtistCount]:
    counts = Counter(name for track in tracks for name in track.artist_names)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [ArtistCount(name=name, track_count=count) for name, count in ordered]


class AnalyticsService:
    """
    Analytics API surface for one authenticated session.

    Operations:
    - get_overview: library totals, favorite artists, mood and genre distribution
    - get_top_genres: genre histogram across all playlists
    - get_most_active_playlists: playlists ranked by activity score
    - get_top_tracks: the user's top tracks for a time range
    - get_most_played_tracks: tracks ranked by how many playlists contain them
    - get_listening_history: recently played tracks with time buckets
    - analyze_playlist: musical profile of one playlist
    """

    def __init__(
        self,
        client: SpotifyAPIClient,
        config: AppConfig,
        now: Optional[Callable[[], datetime]] = None,
        fallback_cache: Optional[ResponseCache] = None
    ):
        """
        Initialize service.

        Args:
            client: The session's Spotify client
            config: Application configuration
            now: Wall-clock source (UTC now by default)
            fallback_cache: Store for last-known-good payloads
        """
        self.client = client
        self.config = config
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.fallback_cache = fallback_cache if fallback_cache is not None else ResponseCache(
            config.analytics.fallback_ttl, max_entries=64
        )

    async def _run(
        self,
        operation: str,
        key: Hashable,
        build: Callable[[OperationLogger], Awaitable[Payload]],
        synthesize: Callable[[], Payload]
    ) -> Payload:
        """
        Run one operation with fallback handling.

        A complete payload is remembered as last-known-good. A partial one is
        returned as is (already flagged). On failure the last good payload is
        served, else the synthesized one.
        """
        oplog = OperationLogger(f"analytics.{operation}", self.config.log_level)
        oplog.start(operation)

        try:
            payload = await build(oplog)
        except UnauthorizedError:
            oplog.error(f"🚨 {operation}: re-authentication required")
            raise
        except GatewayError as e:
            oplog.warning(f"⚠️  {operation} failed ({e.signal.value}): {e}")
            cached, hit = self.fallback_cache.get(key)
            if hit:
                oplog.increment('cache_hits')
                oplog.info(f"📦 Serving last known result for {operation}")
                payload = replace(cached, fallback=True)
            else:
                payload = synthesize()
                payload.fallback = True
            oplog.complete(operation, fallback=True)
            return payload

        if not payload.fallback:
            self.fallback_cache.set(key, payload)
        oplog.complete(operation, fallback=payload.fallback)
        return payload

    async def load_library(self, oplog: OperationLogger) -> Library:
        """
        Fetch the user's playlists and every playlist's tracks.

        A playlist without a creation date takes its earliest track addition.
        """
        library = Library()
        result = await self.client.fetch_all_playlists()
        library.partial = result.partial
        oplog.increment('items', len(result.items))
        oplog.increment('skipped', len(result.skipped))

        for playlist in result.items:
            tracks = await self.client.fetch_all_playlist_tracks(playlist.id)
            if tracks.partial:
                library.partial = True
                oplog.increment('skipped', len(tracks.skipped))
            oplog.increment('items', len(tracks.items))

            entries = tracks.items
            library.entries[playlist.id] = entries
            for entry in entries:
                library.tracks.setdefault(entry.track.id, entry.track)

            created_at = playlist.created_at
            if created_at is None:
                added = [e.added_at for e in entries if e.added_at is not None]
                created_at = min(added) if added else None
            library.playlists.append(replace(
                playlist,
                created_at=created_at,
                track_ids=tuple(e.track.id for e in entries)
            ))

        return library

    async def _artist_genres(self, library: Library):
        artists = await self.client.get_artists(library.artist_ids)
        return {a.id: a.genres for a in artists.items}, artists.partial

    async def get_overview(self) -> OverviewPayload:
        async def build(oplog: OperationLogger) -> OverviewPayload:
            library = await self.load_library(oplog)
            total_playlists = len(library.playlists)
            total_tracks = library.total_entries
            entry_tracks = [e.track for entries in library.entries.values() for e in entries]

            features = await self.client.get_audio_features(list(library.tracks))
            artist_genres, genres_partial = await self._artist_genres(library)
            genres = scoring.genre_histogram(library.tracks.values(), artist_genres)

            return OverviewPayload(
                total_playlists=total_playlists,
                total_tracks=total_tracks,
                average_playlist_length=round(total_tracks / total_playlists) if total_playlists else 0,
                listening_time_minutes=int(total_tracks * MINUTES_PER_TRACK),
                favorite_artists=_artist_counts(entry_tracks)[:FAVORITE_ARTISTS],
                mood_distribution=scoring.mood_histogram(features.items),
                top_genres=genres[:self.config.analytics.default_limit],
                fallback=library.partial or features.partial or genres_partial
            )

        return await self._run('overview', ('overview',), build, OverviewPayload)

    async def get_top_genres(self, limit: Optional[int] = None) -> GenresPayload:
        limit = limit or self.config.analytics.default_limit

        async def build(oplog: OperationLogger) -> GenresPayload:
            library = await self.load_library(oplog)
            artist_genres, genres_partial = await self._artist_genres(library)
            genres = scoring.genre_histogram(library.tracks.values(), artist_genres)
            oplog.info(f"Found {len(genres)} genres across {len(library.tracks)} tracks")

            return GenresPayload(
                genres=genres[:limit],
                total_genres=len(genres),
                total_tracks=len(library.tracks),
                fallback=library.partial or genres_partial
            )

        return await self._run('top_genres', ('top_genres', limit), build, GenresPayload)

    async def get_most_active_playlists(self, limit: Optional[int] = None) -> PlaylistActivityPayload:
        limit = limit or self.config.analytics.default_limit

        async def build(oplog: OperationLogger) -> PlaylistActivityPayload:
            library = await self.load_library(oplog)
            partial = library.partial

            try:
                recent = await self.client.get_recently_played(50)
            except UnauthorizedError:
                raise
            except GatewayError as e:
                oplog.warning(f"Recently played unavailable, scoring without it: {e}")
                recent, partial = [], True
            recent_ids = [item.track.id for item in recent]

            now = self.now()
            overlaps = {
                p.id: scoring.recently_played_overlap(p.track_ids, recent_ids)
                for p in library.playlists
            }
            ranking = scoring.rank_playlists(library.playlists, now, overlaps, limit=limit)
            by_id = {p.id: p for p in library.playlists}

            activities = []
            for score in ranking:
                playlist = by_id[score.entity_id]
                age = scoring.days_since(playlist.created_at, now)
                overlap = overlaps[playlist.id]
                activities.append(PlaylistActivity(
                    id=playlist.id,
                    name=playlist.name,
                    owner_name=playlist.owner_name,
                    public=playlist.public,
                    collaborative=playlist.collaborative,
                    track_count=max(playlist.track_total, len(playlist.track_ids)),
                    followers=playlist.followers,
                    days_since_creation=None if age is None else int(age),
                    recently_played_tracks=overlap,
                    activity_score=round(score.raw_score, 2),
                    rank=score.rank,
                    estimated_usage=scoring.estimated_usage(score.raw_score),
                    estimated_total_plays=scoring.estimated_total_plays(score.raw_score, playlist, overlap)
                ))

            return PlaylistActivityPayload(
                playlists=activities,
                total_playlists=len(library.playlists),
                recently_played_tracks=len(recent_ids),
                fallback=partial
            )

        return await self._run('most_active_playlists', ('most_active_playlists', limit), build,
                               PlaylistActivityPayload)

    async def get_top_tracks(self, time_range: str = 'medium_term', limit: Optional[int] = None) -> TopTracksPayload:
        """
        The user's top tracks for a time range.

        Raises:
            ValueError: If time_range is not short_term, medium_term or long_term
        """
        if time_range not in TIME_RANGES:
            raise ValueError(f"time_range must be one of {', '.join(TIME_RANGES)}")
        limit = limit or self.config.analytics.default_limit

        async def build(oplog: OperationLogger) -> TopTracksPayload:
            tracks = await self.client.get_top_tracks(time_range, limit)
            oplog.increment('items', len(tracks))
            ranked = [
                RankedTrack(
                    id=track.id,
                    name=track.name,
                    artists=list(track.artist_names),
                    album_name=track.album_name,
                    popularity=track.popularity,
                    rank=position,
                    estimated_plays=scoring.estimated_plays_from_top_rank(position, track.popularity)
                )
                for position, track in enumerate(tracks, start=1)
            ]
            return TopTracksPayload(tracks=ranked, time_range=time_range, total=len(ranked))

        return await self._run('top_tracks', ('top_tracks', time_range, limit), build,
                               lambda: TopTracksPayload(time_range=time_range))

    async def get_most_played_tracks(self, limit: Optional[int] = None) -> MostPlayedTracksPayload:
        """
        Tracks ranked by the number of playlists they appear in.

        Spotify exposes no play counts; playlist membership stands in for them.
        """
        limit = limit or self.config.analytics.default_limit

        async def build(oplog: OperationLogger) -> MostPlayedTracksPayload:
            library = await self.load_library(oplog)
            appearances = Counter(
                track_id for playlist in library.playlists for track_id in set(playlist.track_ids)
            )
            popularity = {track_id: t.popularity for track_id, t in library.tracks.items()}
            ranking = scoring.rank_tracks(appearances, popularity, limit=limit)

            ranked = []
            for score in ranking:
                track = library.tracks[score.entity_id]
                ranked.append(RankedTrack(
                    id=track.id,
                    name=track.name,
                    artists=list(track.artist_names),
                    album_name=track.album_name,
                    popularity=track.popularity,
                    rank=score.rank,
                    estimated_plays=scoring.estimated_plays_from_frequency(score.raw_score, score.rank),
                    playlist_count=appearances[track.id]
                ))

            return MostPlayedTracksPayload(
                tracks=ranked,
                playlists_processed=len(library.playlists),
                unique_tracks=len(library.tracks),
                fallback=library.partial
            )

        return await self._run('most_played_tracks', ('most_played_tracks', limit), build,
                               MostPlayedTracksPayload)

    async def get_listening_history(self, limit: int = 50) -> ListeningHistoryPayload:
        limit = max(1, min(limit, 50))

        async def build(oplog: OperationLogger) -> ListeningHistoryPayload:
            items = await self.client.get_recently_played(limit)
            now = self.now()

            entries = []
            for position, item in enumerate(items, start=1):
                ago = history.minutes_ago(item.played_at, now)
                entries.append(ListeningHistoryEntry(
                    id=item.track.id,
                    name=item.track.name,
                    artists=list(item.track.artist_names),
                    album_name=item.track.album_name,
                    played_at=item.played_at.isoformat(),
                    minutes_ago=ago,
                    time_ago=history.format_time_ago(ago),
                    rank=position
                ))

            groups = history.time_groups(e.minutes_ago for e in entries)
            return ListeningHistoryPayload(
                tracks=entries,
                total=len(entries),
                time_groups=groups,
                unique_artists=len({name for e in entries for name in e.artists}),
                unique_albums=len({e.album_name for e in entries if e.album_name}),
                most_active_period=history.most_active_period(groups)
            )

        return await self._run('listening_history', ('listening_history', limit), build,
                               ListeningHistoryPayload)

    async def analyze_playlist(self, playlist_id: str) -> PlaylistProfilePayload:
        """
        Musical profile of one playlist: genres, audio features, mood and artists.

        Args:
            playlist_id: Spotify playlist id
        """
        async def build(oplog: OperationLogger) -> PlaylistProfilePayload:
            playlist = await self.client.get_playlist(playlist_id)
            result = await self.client.fetch_all_playlist_tracks(playlist_id)
            oplog.increment('items', len(result.items))
            tracks = [entry.track for entry in result.items]
            unique_tracks = list({t.id: t for t in tracks}.values())

            artist_ids = list(dict.fromkeys(a for t in unique_tracks for a in t.artist_ids))
            artists = await self.client.get_artists(artist_ids)
            genres = scoring.genre_histogram(unique_tracks, {a.id: a.genres for a in artists.items})

            features = await self.client.get_audio_features([t.id for t in unique_tracks])
            averages = scoring.audio_averages(features.items)
            if features.items:
                mood = scoring.profile_mood(averages['energy'], averages['valence'], averages['tempo'])
                energy_level = scoring.classify_energy(averages['energy'])
            else:
                mood, energy_level = 'mixed', 'medium'

            artist_counts = _artist_counts(tracks)

            return PlaylistProfilePayload(
                playlist_id=playlist_id,
                playlist_name=playlist.name,
                total_tracks=len(tracks),
                top_genres=genres[:PROFILE_TOP_ENTRIES],
                genre_diversity=round(scoring.diversity_index(g.count for g in genres), 3),
                dominant_genre=genres[0].label if genres else 'unknown',
                audio_averages={name: round(value, 3) for name, value in averages.items()},
                mood=mood,
                energy_level=energy_level,
                unique_artists=len(artist_counts),
                top_artists=artist_counts[:PROFILE_TOP_ENTRIES],
                artist_diversity=round(scoring.diversity_index(a.track_count for a in artist_counts), 3),
                analyzed_at=self.now().isoformat(),
                fallback=result.partial or artists.partial or features.partial
            )

        return await self._run('playlist_profile', ('playlist_profile', playlist_id), build,
                               lambda: PlaylistProfilePayload(playlist_id=playlist_id))
