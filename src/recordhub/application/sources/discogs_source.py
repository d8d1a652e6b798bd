"""Discogs metadata source (secondary)."""

import logging
import re
from typing import Any

from recordhub.domain.dtos import (
    ArtistDTO,
    ArtistSummaryDTO,
    MediumDTO,
    ReleaseDTO,
    ReleaseSummaryDTO,
    TrackDTO,
)
from recordhub.domain.entities import Source
from recordhub.domain.ports import IMetadataSource
from recordhub.infrastructure.integrations.discogs_client import DiscogsClient

logger = logging.getLogger(__name__)

_DISAMBIGUATION_SUFFIX_RE = re.compile(r"\s*\(\d+\)\s*$")
_SKIPPED_TRACK_TYPES = {"heading"}


def clean_artist_name(raw: str | None) -> str:
    """Strip the numeric disambiguation Discogs appends ("Nirvana (2)" -> "Nirvana")."""
    if not raw:
        return ""
    return _DISAMBIGUATION_SUFFIX_RE.sub("", raw).strip()


def format_artists(artists: list[dict[str, Any]] | None) -> str:
    """Join Discogs release artists using their join phrases."""
    if not artists:
        return ""
    parts = []
    for index, artist in enumerate(artists):
        parts.append(clean_artist_name(artist.get("anv") or artist.get("name")))
        if index < len(artists) - 1:
            join = (artist.get("join") or ",").strip()
            parts.append(", " if join == "," else f" {join} ")
    return "".join(parts).strip()


def parse_duration(value: str | None) -> int | None:
    """"MM:SS" or "H:MM:SS" to milliseconds, None for anything else."""
    if not value:
        return None
    pieces = value.strip().split(":")
    if not all(piece.isdigit() for piece in pieces) or not 2 <= len(pieces) <= 3:
        return None
    seconds = 0
    for piece in pieces:
        seconds = seconds * 60 + int(piece)
    return seconds * 1000


def extract_tracks(tracklist: list[dict[str, Any]] | None) -> list[TrackDTO]:
    """Flatten a Discogs tracklist, index tracks expand into their sub tracks."""
    tracks: list[TrackDTO] = []
    for entry in tracklist or []:
        kind = entry.get("type_") or "track"
        if kind in _SKIPPED_TRACK_TYPES:
            continue
        if kind == "index":
            tracks.extend(extract_tracks(entry.get("sub_tracks")))
            continue
        title = (entry.get("title") or "").strip()
        if not title:
            continue
        tracks.append(
            TrackDTO(
                title=title,
                position=(entry.get("position") or "").strip() or None,
                duration_ms=parse_duration(entry.get("duration")),
            )
        )
    return tracks


def extract_genres(release: dict[str, Any]) -> list[str]:
    """Genres followed by styles, de-duplicated in order."""
    combined = list(release.get("genres") or []) + list(release.get("styles") or [])
    return list(dict.fromkeys(combined))


def _primary_image(images: list[dict[str, Any]] | None) -> str | None:
    if not images:
        return None
    primary = next((image for image in images if image.get("type") == "primary"), images[0])
    return primary.get("uri") or primary.get("resource_url")


def _split_search_title(value: str) -> tuple[str, str]:
    # Search hits are titled "Artist - Album"
    artist, separator, title = value.partition(" - ")
    if not separator:
        return "", value
    return clean_artist_name(artist), title.strip()


class DiscogsSource(IMetadataSource):
    """IMetadataSource backed by the Discogs database API."""

    source = Source.DISCOGS

    def __init__(self, client: DiscogsClient) -> None:
        self._client = client

    async def search_releases(self, query: str, limit: int = 10) -> list[ReleaseSummaryDTO]:
        results = await self._client.search_releases(query, limit)
        summaries = []
        for result in results:
            if not result.get("id"):
                continue
            artist, title = _split_search_title(result.get("title") or "")
            summaries.append(
                ReleaseSummaryDTO(
                    id=str(result["id"]),
                    title=title,
                    artist=artist,
                    source=self.source,
                    release_date=str(result["year"]) if result.get("year") else None,
                    cover_art_url=result.get("cover_image") or None,
                )
            )
        return summaries

    async def get_release(self, release_id: str) -> ReleaseDTO | None:
        # Discogs release ids are numeric, anything else cannot exist there
        if not str(release_id).isdigit():
            return None

        data = await self._client.get_release(str(release_id))
        if data is None:
            return None

        tracks = extract_tracks(data.get("tracklist"))
        released = data.get("released") or (str(data["year"]) if data.get("year") else None)
        return ReleaseDTO(
            id=str(data["id"]),
            title=data.get("title") or "",
            artist=format_artists(data.get("artists")),
            source=self.source,
            release_date=released,
            genres=extract_genres(data),
            media=[MediumDTO(tracks=tracks)],
            cover_art_url=_primary_image(data.get("images")),
            url=data.get("uri"),
            total_tracks=len(tracks),
        )

    # Hey future me - artist releases come back as a mix of "master" and "release" rows. The
    # indexer wants release ids, so masters resolve to their main_release.
    async def get_artist(self, artist_id: str) -> ArtistDTO | None:
        if not str(artist_id).isdigit():
            return None

        data = await self._client.get_artist(str(artist_id))
        if data is None:
            return None

        releases = await self._client.get_artist_releases(str(artist_id))
        release_ids = []
        for release in releases:
            if release.get("type") == "master" and release.get("main_release"):
                release_ids.append(str(release["main_release"]))
            elif release.get("type") == "release" and release.get("id"):
                release_ids.append(str(release["id"]))

        return ArtistDTO(
            id=str(data["id"]),
            name=clean_artist_name(data.get("name")),
            source=self.source,
            image_url=_primary_image(data.get("images")),
            url=data.get("uri"),
            release_ids=list(dict.fromkeys(release_ids)),
        )

    async def search_artists(self, query: str, limit: int = 10) -> list[ArtistSummaryDTO]:
        results = await self._client.search_artists(query, limit)
        return [
            ArtistSummaryDTO(
                id=str(result["id"]),
                name=clean_artist_name(result.get("title")),
                source=self.source,
            )
            for result in results
            if result.get("id")
        ]

    async def close(self) -> None:
        await self._client.close()
