#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import sys
from datetime import UTC, date, datetime
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from spinstats import app
from spinstats.config import ConfigurationError, configure_logging
from spinstats.domain.errors import InvalidArgumentError, SpinstatsError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from spinstats.domain.aggregation.engine import AggregationEngine
    from spinstats.domain.model import ImportResult, RecentPlay, TrackBreakdown


def _parse_bound(value: str) -> date | datetime:
    """Accept ``YYYY-MM-DD`` (whole UTC day) or an ISO-8601 timestamp."""

    normalized = value.strip()
    try:
        if len(normalized) == len("YYYY-MM-DD"):
            return date.fromisoformat(normalized)
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date or timestamp: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _add_window_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", type=_parse_bound, help="Inclusive start (date or timestamp)")
    parser.add_argument("--end", type=_parse_bound, help="Inclusive end (date or timestamp)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spinstats",
        description="Listening history statistics",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Import new Last.fm scrobbles")
    sync.add_argument("--limit", type=int, help="Number of recent plays to show afterwards")
    sync.add_argument("--max-rows", type=int, help="Stop after this many scrobbles")

    import_parser = commands.add_parser("import", help="Import a JSON Lines history file")
    import_parser.add_argument("file", type=Path)
    import_parser.add_argument("--chunk-size", type=int, help="Rows per storage transaction")

    top = commands.add_parser("top", help="Show a top-N ranking")
    top.add_argument("kind", choices=("albums", "artists", "tracks"))
    top.add_argument("--nb", type=int, help="Number of entries (1-100, default 10)")
    _add_window_arguments(top)

    album = commands.add_parser("album", help="Show per-track plays of an album")
    album.add_argument("title")
    album.add_argument("artist")
    _add_window_arguments(album)

    artist = commands.add_parser("artist", help="Show per-track plays of an artist")
    artist.add_argument("name")
    _add_window_arguments(artist)

    recent = commands.add_parser("recent", help="Show recent plays with total counts")
    recent.add_argument("--limit", type=int, help="Number of plays (1-1000, default 100)")

    search = commands.add_parser("search", help="Search stored albums or artists")
    search.add_argument("kind", choices=("albums", "artists"))
    search.add_argument("query")
    return parser


def _format_duration(seconds: int) -> str:
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def _print_tracks(tracks: Sequence[TrackBreakdown], *, indent: str = "    ") -> None:
    for track in tracks:
        print(f"{indent}{track.stream_count:>5}  {track.title}")


def _print_recent(plays: Sequence[RecentPlay]) -> None:
    for play in plays:
        record = play.record
        print(
            f"{record.played_at:%Y-%m-%d %H:%M}  {record.artist} - {record.track}"
            f" [{record.album}]  ({play.total_plays} plays)"
        )


def _print_import(result: ImportResult) -> None:
    print(
        f"Imported {result.imported}/{result.total_rows} rows "
        f"({result.inserted} new, {result.updated} updated, {result.skipped} skipped) "
        f"in {result.processing_time.total_seconds():.2f}s"
    )
    for error in result.errors:
        print(f"  {error}")


def _run_top(engine: AggregationEngine, args: argparse.Namespace) -> None:
    window = {"start": args.start, "end": args.end}
    if args.kind == "albums":
        for rank, album in enumerate(engine.top_albums(args.nb, **window), start=1):
            print(
                f"{rank:>3}. {album.title} - {album.artist}  {album.stream_count} plays"
                f"  {_format_duration(album.listening_time_seconds)}"
            )
    elif args.kind == "artists":
        for rank, artist in enumerate(engine.top_artists(args.nb, **window), start=1):
            print(
                f"{rank:>3}. {artist.name}  {artist.stream_count} plays"
                f"  {_format_duration(artist.listening_time_seconds)}"
            )
    else:
        for rank, track in enumerate(engine.top_tracks(args.nb, **window), start=1):
            last = f"{track.last_listening:%Y-%m-%d %H:%M}" if track.last_listening else "-"
            print(
                f"{rank:>3}. {track.artist} - {track.title}  {track.stream_count} plays"
                f"  last {last}"
            )


def _run(args: argparse.Namespace) -> None:
    if args.command == "sync":
        result = app.sync_lastfm_history(limit=args.limit, max_rows=args.max_rows)
        if result.import_result is not None:
            _print_import(result.import_result)
        if result.error is not None:
            print(f"Warning: sync failed, showing stored plays ({result.error})", file=sys.stderr)
        _print_recent(result.recent)
        return

    if args.command == "import":
        rows = app.read_json_lines(args.file)
        _print_import(app.import_listenings(rows, chunk_size=args.chunk_size))
        return

    engine = app.build_engine()
    if args.command == "top":
        _run_top(engine, args)
    elif args.command == "album":
        detail = engine.album_detail(args.title, args.artist, start=args.start, end=args.end)
        print(
            f"{detail.title} - {detail.artist}  {detail.stream_count} plays"
            f"  {_format_duration(detail.total_duration_seconds)}"
        )
        _print_tracks(detail.tracks)
    elif args.command == "artist":
        artist_detail = engine.artist_detail(args.name, start=args.start, end=args.end)
        print(
            f"{artist_detail.name}  {artist_detail.stream_count} plays"
            f"  {_format_duration(artist_detail.total_duration_seconds)}"
        )
        _print_tracks(artist_detail.tracks)
    elif args.command == "recent":
        _print_recent(engine.recent_with_counts(args.limit))
    elif args.kind == "albums":
        for title, artists in engine.search_albums(args.query).items():
            print(f"{title}: {', '.join(artists)}")
    else:
        for name in engine.search_artists(args.query):
            print(name)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args = _build_parser().parse_args(list(argv) if argv is not None else sys.argv[1:])
    configure_logging(verbose=args.verbose)

    try:
        _run(args)
    except InvalidArgumentError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except (SpinstatsError, ConfigurationError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
