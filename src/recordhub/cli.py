"""Command line entry point for batch catalog maintenance.

Usage:
    recordhub dedupe-albums --dry-run
    recordhub reindex-album discogs 1234567
    recordhub reindex-all --limit 50 --only-missing-tracks
    recordhub reindex-artists
    recordhub normalize-positions --album-id <uuid>
    recordhub normalize-artist-names --dry-run

Each command opens its own database session, runs one pass and prints a JSON report.
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.catalog_merge_service import CatalogMergeService
from recordhub.application.services.reindex_service import ReindexService
from recordhub.application.sources import build_default_registry
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config import Settings, get_settings
from recordhub.domain.entities import Source
from recordhub.domain.exceptions import DomainException
from recordhub.infrastructure.observability import configure_logging, set_correlation_id
from recordhub.infrastructure.persistence import Database

logger = logging.getLogger(__name__)

Command = Callable[
    [AsyncSession, MetadataSourceRegistry, Settings, argparse.Namespace], Awaitable[Any]
]


async def _dedupe_albums(
    session: AsyncSession,
    sources: MetadataSourceRegistry,
    settings: Settings,
    args: argparse.Namespace,
) -> dict[str, Any]:
    report = await CatalogMergeService(session, settings.reindexer).dedupe_albums(
        dry_run=args.dry_run
    )
    return report.to_dict()


async def _reindex_album(
    session: AsyncSession,
    sources: MetadataSourceRegistry,
    settings: Settings,
    args: argparse.Namespace,
) -> dict[str, Any]:
    service = ReindexService(session, sources, settings.reindexer)
    album = await service.reindex_external_album(Source(args.source), args.external_id)
    return {
        "album_id": album.id,
        "title": album.title,
        "artist": album.artist,
        "total_tracks": album.total_tracks,
    }


async def _reindex_all(
    session: AsyncSession,
    sources: MetadataSourceRegistry,
    settings: Settings,
    args: argparse.Namespace,
) -> dict[str, Any]:
    service = ReindexService(session, sources, settings.reindexer)
    report = await service.trigger(
        "albums",
        limit=args.limit,
        offset=args.offset,
        only_missing_tracks=args.only_missing_tracks,
        dry_run=args.dry_run,
        search_fallback=args.search_fallback,
    )
    return report.to_dict()


async def _reindex_artists(
    session: AsyncSession,
    sources: MetadataSourceRegistry,
    settings: Settings,
    args: argparse.Namespace,
) -> dict[str, Any]:
    service = ReindexService(session, sources, settings.reindexer)
    report = await service.trigger("artists", limit=args.limit, dry_run=args.dry_run)
    return report.to_dict()


async def _normalize_positions(
    session: AsyncSession,
    sources: MetadataSourceRegistry,
    settings: Settings,
    args: argparse.Namespace,
) -> dict[str, Any]:
    service = ReindexService(session, sources, settings.reindexer)
    report = await service.trigger("tracks", album_id=args.album_id)
    return report.to_dict()


async def _normalize_artist_names(
    session: AsyncSession,
    sources: MetadataSourceRegistry,
    settings: Settings,
    args: argparse.Namespace,
) -> dict[str, Any]:
    service = ReindexService(session, sources, settings.reindexer)
    report = await service.trigger("artist_names", dry_run=args.dry_run)
    return report.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recordhub", description="Canonical catalog maintenance commands"
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    dedupe = subparsers.add_parser("dedupe-albums", help="Merge duplicate canonical albums")
    dedupe.add_argument("--dry-run", action="store_true", help="Only report clusters")
    dedupe.set_defaults(handler=_dedupe_albums)

    album = subparsers.add_parser("reindex-album", help="Reindex one album by external id")
    album.add_argument("source", choices=[source.value for source in Source])
    album.add_argument("external_id")
    album.set_defaults(handler=_reindex_album)

    reindex_all = subparsers.add_parser("reindex-all", help="Reindex albums without tracks")
    reindex_all.add_argument("--limit", type=int, default=None)
    reindex_all.add_argument("--offset", type=int, default=0)
    reindex_all.add_argument(
        "--only-missing-tracks",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Only albums without any track rows (default: on)",
    )
    reindex_all.add_argument("--dry-run", action="store_true")
    reindex_all.add_argument(
        "--search-fallback",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Search other sources by artist + title as a last resort (default: on)",
    )
    reindex_all.set_defaults(handler=_reindex_all)

    artists = subparsers.add_parser(
        "reindex-artists", help="Fill artist images and expand artists without albums"
    )
    artists.add_argument("--limit", type=int, default=None)
    artists.add_argument("--dry-run", action="store_true")
    artists.set_defaults(handler=_reindex_artists)

    positions = subparsers.add_parser(
        "normalize-positions", help="Normalize stored track positions and renumber"
    )
    positions.add_argument("--album-id", default=None, help="Single album (default: all)")
    positions.set_defaults(handler=_normalize_positions)

    names = subparsers.add_parser(
        "normalize-artist-names", help="Strip Discogs '(n)' suffixes from stored artist names"
    )
    names.add_argument("--dry-run", action="store_true", help="Only list the artists")
    names.set_defaults(handler=_normalize_artist_names)

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    db = Database(settings)
    sources = build_default_registry(settings)
    try:
        await db.create_tables()
        async with db.session_factory() as session:
            handler: Command = args.handler
            return await handler(session, sources, settings, args)
    finally:
        await sources.close()
        await db.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(
        log_level=args.log_level or settings.observability.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    set_correlation_id(f"cli-{args.command}")

    try:
        result = asyncio.run(run(args, settings))
    except DomainException as e:
        logger.error(f"{args.command} failed: {e.message}")
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
