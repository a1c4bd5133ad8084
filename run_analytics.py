"""
Command-line entry point: run one analytics operation and print the payload as JSON.

Examples:
    python run_analytics.py overview
    python run_analytics.py top-tracks --time-range short_term
    python run_analytics.py playlist 37i9dQZF1DXcBWIGoYBM5M
"""
import argparse
import asyncio
import json
import sys

from analytics import build_session
from clients import TIME_RANGES
from config import AppConfig
from gateway import UnauthorizedError
from utils import setup_logger


logger = setup_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_REAUTH_REQUIRED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Spotify listening analytics through a rate-limited gateway'
    )
    parser.add_argument(
        '--env-file',
        type=str,
        default=None,
        help='Path to .env file (searches parent directories by default)'
    )
    parser.add_argument(
        '--status',
        action='store_true',
        help='Also print the gateway rate-limit status to stderr'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('overview', help='Library totals, favorite artists, moods and genres')

    genres = commands.add_parser('genres', help='Top genres across all playlists')
    genres.add_argument('--limit', type=int, default=None)

    playlists = commands.add_parser('playlists', help='Most active playlists')
    playlists.add_argument('--limit', type=int, default=None)

    top = commands.add_parser('top-tracks', help="The user's top tracks")
    top.add_argument('--time-range', choices=TIME_RANGES, default='medium_term')
    top.add_argument('--limit', type=int, default=None)

    most_played = commands.add_parser('most-played', help='Tracks found in the most playlists')
    most_played.add_argument('--limit', type=int, default=None)

    history = commands.add_parser('history', help='Recently played tracks')
    history.add_argument('--limit', type=int, default=50)

    playlist = commands.add_parser('playlist', help='Musical profile of one playlist')
    playlist.add_argument('playlist_id')

    return parser


async def run(args: argparse.Namespace, config: AppConfig):
    session = build_session(config)
    service = session.service

    if args.command == 'overview':
        payload = await service.get_overview()
    elif args.command == 'genres':
        payload = await service.get_top_genres(args.limit)
    elif args.command == 'playlists':
        payload = await service.get_most_active_playlists(args.limit)
    elif args.command == 'top-tracks':
        payload = await service.get_top_tracks(args.time_range, args.limit)
    elif args.command == 'most-played':
        payload = await service.get_most_played_tracks(args.limit)
    elif args.command == 'history':
        payload = await service.get_listening_history(args.limit)
    else:
        payload = await service.analyze_playlist(args.playlist_id)

    if args.status:
        print(json.dumps(session.rate_limit_status(), indent=2), file=sys.stderr)
    return payload


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = AppConfig.load(args.env_file)
    except ValueError as e:
        logger.error(f"❌ Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        payload = asyncio.run(run(args, config))
    except UnauthorizedError as e:
        logger.error(f"❌ Re-authentication required: {e}")
        return EXIT_REAUTH_REQUIRED

    if payload.fallback:
        logger.warning("⚠️  Result is incomplete or approximated (fallback)")
    print(json.dumps(payload.to_dict(), indent=2, default=str))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
