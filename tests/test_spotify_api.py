"""Tests for response validation and the gateway-backed Spotify client."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from clients import SpotifyAPIClient, StaticTokenProvider, validate_response
from gateway import (
    FatalError,
    ForbiddenError,
    RateLimitedError,
    TransientError,
    UnauthorizedError,
)


def make_response(status=200, body=None, headers=None, raw=None):
    response = requests.Response()
    response.status_code = status
    response.reason = 'Reason'
    if raw is not None:
        response._content = raw
    elif body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = b''
    response.headers.update(headers or {})
    return response


def playlist_json(playlist_id, total=10):
    return {
        'id': playlist_id,
        'name': f'Playlist {playlist_id}',
        'owner': {'id': 'u1', 'display_name': 'User'},
        'tracks': {'total': total},
        'public': True,
        'collaborative': False
    }


def track_item(track_id, artist_id='a1', added_at='2025-05-01T10:00:00Z'):
    return {
        'added_at': added_at,
        'track': {
            'id': track_id,
            'name': f'Track {track_id}',
            'artists': [{'id': artist_id, 'name': f'Artist {artist_id}'}],
            'album': {'name': 'Album'},
            'popularity': 50
        }
    }


def params_of(call):
    return call.kwargs.get('params') or {}


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def client(app_config, gateway, http):
    return SpotifyAPIClient(app_config, StaticTokenProvider('test-token'), gateway, session=http)


class TestValidateResponse:
    """HTTP status -> error taxonomy."""

    def test_rate_limited_with_retry_after(self):
        with pytest.raises(RateLimitedError) as exc_info:
            validate_response(make_response(429, {'error': {'message': 'slow down'}}, {'Retry-After': '3'}))

        assert exc_info.value.retry_after == 3.0
        assert exc_info.value.status == 429
        assert 'slow down' in exc_info.value.message

    @pytest.mark.parametrize('status, error_cls', [
        (401, UnauthorizedError),
        (403, ForbiddenError),
        (404, TransientError),
        (418, TransientError),
        (500, TransientError),
        (503, TransientError),
    ])
    def test_status_mapping(self, status, error_cls):
        with pytest.raises(error_cls):
            validate_response(make_response(status, {'error': {'message': 'x'}}))

    def test_non_json_error_body(self):
        with pytest.raises(TransientError) as exc_info:
            validate_response(make_response(502, raw=b'Bad Gateway'))
        assert 'Bad Gateway' in exc_info.value.message

    def test_no_content(self):
        assert validate_response(make_response(204)) == {}

    def test_invalid_json_is_fatal(self):
        with pytest.raises(FatalError):
            validate_response(make_response(200, raw=b'{not json'))

    def test_non_object_body_is_fatal(self):
        with pytest.raises(FatalError):
            validate_response(make_response(200, body=[1, 2]))


class TestRequests:
    """Authorization, caching and error conversion."""

    @pytest.mark.asyncio
    async def test_bearer_token_and_url(self, client, http):
        http.request.return_value = make_response(200, {'id': 'me', 'display_name': 'Me'})

        user = await client.get_current_user()

        assert user['id'] == 'me'
        kwargs = http.request.call_args.kwargs
        assert kwargs['headers']['Authorization'] == 'Bearer test-token'
        assert kwargs['url'] == 'https://api.spotify.com/v1/me'

    @pytest.mark.asyncio
    async def test_repeated_reads_served_from_cache(self, client, http):
        http.request.return_value = make_response(200, {'id': 'me'})

        await client.get_current_user()
        await client.get_current_user()

        assert http.request.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_token_requires_reauth_without_request(self, app_config, gateway, http):
        client = SpotifyAPIClient(app_config, StaticTokenProvider(None), gateway, session=http)

        with pytest.raises(UnauthorizedError):
            await client.get_current_user()

        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_token_is_revoked(self, client, http):
        http.request.return_value = make_response(401, {'error': {'message': 'The access token expired'}})

        with pytest.raises(UnauthorizedError):
            await client.get_current_user()
        with pytest.raises(UnauthorizedError):
            await client.get_playlists_page()

        assert http.request.call_count == 1
        assert client.token_provider.access_token is None

    @pytest.mark.asyncio
    async def test_connection_error_retried_once(self, client, http):
        http.request.side_effect = [
            requests.exceptions.ConnectionError('reset'),
            make_response(200, {'id': 'me'})
        ]

        user = await client.get_current_user()

        assert user['id'] == 'me'
        assert http.request.call_count == 2

    @pytest.mark.asyncio
    async def test_malformed_page_is_fatal_and_not_cached(self, client, http):
        http.request.return_value = make_response(200, {'unexpected': True})

        with pytest.raises(FatalError):
            await client.get_playlists_page()

        assert len(client.gateway.cache) == 0

    def test_cache_key_ignores_param_order(self):
        assert SpotifyAPIClient.cache_key('/x', {'a': 1, 'b': 2}) == SpotifyAPIClient.cache_key('/x', {'b': 2, 'a': 1})


class TestPagination:
    """Playlists and playlist tracks through the paginator."""

    @pytest.mark.asyncio
    async def test_fetch_all_playlists(self, client, http):
        playlists = [playlist_json(f'p{i}') for i in range(60)]

        def respond(**kwargs):
            offset = kwargs['params']['offset']
            return make_response(200, {'items': playlists[offset:offset + 50]})

        http.request.side_effect = respond

        result = await client.fetch_all_playlists()

        assert [p.id for p in result.items] == [f'p{i}' for i in range(60)]
        assert result.partial is False
        assert http.request.call_count == 2

    @pytest.mark.asyncio
    async def test_fetch_all_playlists_respects_max_items(self, client, http):
        playlists = [playlist_json(f'p{i}') for i in range(120)]

        def respond(**kwargs):
            offset = kwargs['params']['offset']
            return make_response(200, {'items': playlists[offset:offset + 50]})

        http.request.side_effect = respond

        result = await client.fetch_all_playlists(max_items=70)

        assert len(result.items) == 70
        assert len({p.id for p in result.items}) == 70

    @pytest.mark.asyncio
    async def test_playlist_tracks_drop_removed_tracks(self, client, http):
        items = [track_item('t1'), {'track': None}, track_item('t2')]
        http.request.return_value = make_response(200, {'items': items})

        result = await client.fetch_all_playlist_tracks('p1')

        assert [e.track.id for e in result.items] == ['t1', 't2']
        assert result.items[0].added_at is not None

    @pytest.mark.asyncio
    async def test_single_tracks_page(self, client, http):
        http.request.return_value = make_response(200, {'items': [track_item('t1'), {'track': None}]})

        entries = await client.get_playlist_tracks_page('p1', offset=100, limit=100)

        assert [e.track.id for e in entries] == ['t1']
        assert params_of(http.request.call_args) == {'limit': 100, 'offset': 100}
        assert http.request.call_args.kwargs['url'].endswith('/playlists/p1/tracks')

    @pytest.mark.asyncio
    async def test_forbidden_playlist_tracks_are_partial(self, client, http):
        http.request.return_value = make_response(403, {'error': {'message': 'Forbidden'}})

        result = await client.fetch_all_playlist_tracks('private')

        assert result.items == []
        assert result.partial is True
        assert result.skipped == [0]
        assert http.request.call_count == 1
        assert client.gateway.backoff.state.consecutive_errors == 1


class TestChunkedFetches:
    """Artists and audio features in id chunks."""

    @pytest.mark.asyncio
    async def test_artists_fetched_in_chunks_of_50(self, client, http):
        def respond(**kwargs):
            ids = kwargs['params']['ids'].split(',')
            return make_response(200, {'artists': [{'id': i, 'name': i, 'genres': ['rock']} for i in ids]})

        http.request.side_effect = respond
        ids = [f'a{i}' for i in range(120)] + ['a0']

        result = await client.get_artists(ids)

        assert http.request.call_count == 3
        assert len(result.items) == 120
        assert result.items[0].genres == ('rock',)

    @pytest.mark.asyncio
    async def test_failed_chunk_is_skipped(self, client, http):
        def respond(**kwargs):
            ids = kwargs['params']['ids'].split(',')
            if 'a0' in ids:
                return make_response(403, {'error': {'message': 'Forbidden'}})
            return make_response(200, {'artists': [{'id': i, 'name': i} for i in ids]})

        http.request.side_effect = respond

        result = await client.get_artists([f'a{i}' for i in range(60)])

        assert result.partial is True
        assert len(result.items) == 10
        assert len(result.skipped) == 50

    @pytest.mark.asyncio
    async def test_audio_features_drop_nulls(self, client, http):
        http.request.return_value = make_response(200, {'audio_features': [
            {'id': 't1', 'energy': 0.8, 'valence': 0.3, 'tempo': 120},
            None
        ]})

        result = await client.get_audio_features(['t1', 't2'])

        assert [f.id for f in result.items] == ['t1']
        assert result.items[0].energy == 0.8

    @pytest.mark.asyncio
    async def test_unauthorized_chunk_propagates(self, client, http):
        http.request.return_value = make_response(401, {'error': {'message': 'expired'}})

        with pytest.raises(UnauthorizedError):
            await client.get_artists(['a1'])


class TestListeningEndpoints:
    """Recently played and top tracks."""

    @pytest.mark.asyncio
    async def test_recently_played_limit_is_clamped(self, client, http):
        http.request.return_value = make_response(200, {'items': [
            {'played_at': '2025-06-01T11:00:00Z', 'track': track_item('t1')['track']}
        ]})

        items = await client.get_recently_played(limit=500)

        assert params_of(http.request.call_args)['limit'] == 50
        assert items[0].track.id == 't1'
        assert items[0].played_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_top_tracks(self, client, http):
        http.request.return_value = make_response(200, {'items': [track_item('t1')['track']]})

        tracks = await client.get_top_tracks('short_term', limit=5)

        assert [t.id for t in tracks] == ['t1']
        assert params_of(http.request.call_args) == {'time_range': 'short_term', 'limit': 5}

    @pytest.mark.asyncio
    async def test_invalid_time_range(self, client, http):
        with pytest.raises(ValueError):
            await client.get_top_tracks('forever')
        http.request.assert_not_called()