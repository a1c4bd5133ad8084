"""Tests for mapping raw Spotify JSON to entity projections."""

from datetime import timezone

from mappers import SpotifyMapper, parse_timestamp


class TestTracks:
    """Track and playlist entry mapping."""

    def test_map_track(self):
        track = SpotifyMapper.map_track({
            'id': 't1',
            'name': 'Song',
            'artists': [{'id': 'a1', 'name': 'One'}, {'id': 'a2', 'name': 'Two'}],
            'album': {'name': 'Album'},
            'duration_ms': 200000,
            'popularity': 71,
            'uri': 'spotify:track:t1'
        })

        assert track.id == 't1'
        assert track.artist_ids == ('a1', 'a2')
        assert track.artist_names == ('One', 'Two')
        assert track.album_name == 'Album'
        assert track.popularity == 71

    def test_removed_or_local_tracks_are_dropped(self):
        assert SpotifyMapper.map_track(None) is None
        assert SpotifyMapper.map_track({'id': None, 'name': 'Local file'}) is None
        assert SpotifyMapper.map_playlist_entry({'track': None}) is None

    def test_malformed_track_is_dropped(self):
        assert SpotifyMapper.map_track({'id': 't1', 'popularity': 'high'}) is None

    def test_map_many_keeps_valid_items(self):
        items = [{'id': 't1'}, None, {'id': 't2'}]
        assert [t.id for t in SpotifyMapper.map_many(SpotifyMapper.map_track, items)] == ['t1', 't2']


class TestOtherEntities:
    """Playlists, artists, audio features and play history."""

    def test_map_playlist(self):
        playlist = SpotifyMapper.map_playlist({
            'id': 'p1',
            'name': 'Mix',
            'owner': {'id': 'u1', 'display_name': 'Me'},
            'tracks': {'total': 42},
            'followers': {'total': 7},
            'collaborative': True,
            'public': None
        })

        assert playlist.track_total == 42
        assert playlist.followers == 7
        assert playlist.collaborative is True
        assert playlist.public is False
        assert playlist.created_at is None
        assert playlist.track_ids == ()

    def test_map_artist_filters_blank_genres(self):
        artist = SpotifyMapper.map_artist({'id': 'a1', 'name': 'One', 'genres': ['rock', '', '  ']})
        assert artist.genres == ('rock',)

    def test_map_audio_features_keeps_missing_values(self):
        features = SpotifyMapper.map_audio_features({'id': 't1', 'energy': 0.5, 'tempo': 120})
        assert features.energy == 0.5
        assert features.valence is None
        assert SpotifyMapper.map_audio_features(None) is None

    def test_map_play_history_requires_timestamp(self):
        assert SpotifyMapper.map_play_history_item({'track': {'id': 't1'}, 'played_at': None}) is None

        item = SpotifyMapper.map_play_history_item({'track': {'id': 't1'}, 'played_at': '2025-06-01T10:00:00.123Z'})
        assert item.played_at.tzinfo == timezone.utc

    def test_parse_timestamp(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp('not a date') is None
        assert parse_timestamp('2025-06-01T10:00:00Z').hour == 10
