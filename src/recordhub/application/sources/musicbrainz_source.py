"""MusicBrainz metadata source (native)."""

import logging
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
from recordhub.infrastructure.integrations.musicbrainz_client import MusicBrainzClient

logger = logging.getLogger(__name__)

RELEASE_URL = "https://musicbrainz.org/release/{id}"
ARTIST_URL = "https://musicbrainz.org/artist/{id}"
IMAGE_RELATION_TYPES = ("image", "thumbnail")


def format_artist_credit(credit: list[dict[str, Any]] | None) -> str:
    """Join an artist-credit list into its display string ("A feat. B")."""
    if not credit:
        return ""
    parts = []
    for entry in credit:
        name = entry.get("name") or (entry.get("artist") or {}).get("name") or ""
        parts.append(f"{name}{entry.get('joinphrase') or ''}")
    return "".join(parts).strip()


def side_letter(medium_index: int) -> str:
    """A for the first medium, B for the second, ... numbers past Z."""
    if medium_index < 26:
        return chr(ord("A") + medium_index)
    return str(medium_index + 1)


# Hey future me - MB "number" is what's printed on the sleeve ("A1", "3"). Some releases leave it
# empty, then we synthesize side letter + index on that medium so vinyl ordering survives.
# Plain numbers restart on every CD, so multi-medium releases get "medium.number" ("2.5").
def extract_media(release: dict[str, Any]) -> list[MediumDTO]:
    raw_media = release.get("media") or []
    multi_medium = len(raw_media) > 1

    media = []
    for medium_index, medium in enumerate(raw_media):
        tracks = []
        for track_index, track in enumerate(medium.get("tracks") or []):
            recording = track.get("recording") or {}
            title = track.get("title") or recording.get("title")
            if not title:
                continue
            number = str(track.get("number") or "").strip()
            if not number:
                position = f"{side_letter(medium_index)}{track_index + 1}"
            elif multi_medium and number.isdigit():
                position = f"{medium.get('position') or medium_index + 1}.{number}"
            else:
                position = number
            tracks.append(
                TrackDTO(
                    id=track.get("id"),
                    title=title,
                    position=position,
                    duration_ms=track.get("length") or recording.get("length"),
                )
            )
        media.append(MediumDTO(tracks=tracks, title=medium.get("title") or None))
    return media


def extract_genres(release: dict[str, Any]) -> list[str]:
    primary_type = (release.get("release-group") or {}).get("primary-type")
    return [primary_type] if primary_type else []


def _preferred_release_key(release: dict[str, Any]) -> tuple[int, str, str]:
    official = 0 if str(release.get("status") or "").lower() == "official" else 1
    # ISO dates sort lexically, missing dates go last
    date = release.get("date") or "9999"
    return (official, date, str(release.get("id") or ""))


class MusicBrainzSource(IMetadataSource):
    """IMetadataSource backed by the MusicBrainz web service."""

    source = Source.MUSICBRAINZ

    def __init__(self, client: MusicBrainzClient) -> None:
        self._client = client

    async def search_releases(self, query: str, limit: int = 10) -> list[ReleaseSummaryDTO]:
        releases = await self._client.search_releases(query, limit)
        return [
            ReleaseSummaryDTO(
                id=release["id"],
                title=release.get("title") or "",
                artist=format_artist_credit(release.get("artist-credit")),
                source=self.source,
                release_date=release.get("date"),
            )
            for release in releases
            if release.get("id")
        ]

    # Yo, callers sometimes hand us a release-GROUP id (album pages link to groups). A release
    # lookup 404s for those, so we fall back to the group's preferred release: official first,
    # then earliest date, then id for determinism.
    async def get_release(self, release_id: str) -> ReleaseDTO | None:
        data = await self._client.get_release(release_id)
        if data is None:
            candidates = await self._client.get_releases_by_release_group(release_id)
            if not candidates:
                return None
            preferred = min(candidates, key=_preferred_release_key)
            logger.debug(f"MusicBrainz: {release_id} is a release group, using {preferred['id']}")
            data = await self._client.get_release(preferred["id"])
            if data is None:
                return None

        media = extract_media(data)
        track_count = sum(int(medium.get("track-count") or 0) for medium in data.get("media") or [])
        return ReleaseDTO(
            id=data["id"],
            title=data.get("title") or "",
            artist=format_artist_credit(data.get("artist-credit")),
            source=self.source,
            release_date=data.get("date"),
            genres=extract_genres(data),
            media=media,
            url=RELEASE_URL.format(id=data["id"]),
            total_tracks=track_count or sum(len(medium.tracks) for medium in media),
        )

    async def get_artist(self, artist_id: str) -> ArtistDTO | None:
        data = await self._client.get_artist(artist_id)
        if data is None:
            return None

        image_url = None
        for relation in data.get("relations") or []:
            if relation.get("type") in IMAGE_RELATION_TYPES:
                image_url = (relation.get("url") or {}).get("resource")
                if image_url:
                    break

        return ArtistDTO(
            id=data["id"],
            name=data.get("name") or "",
            source=self.source,
            genres=[genre["name"] for genre in data.get("genres") or [] if genre.get("name")],
            image_url=image_url,
            url=ARTIST_URL.format(id=data["id"]),
            release_ids=[
                group["id"] for group in data.get("release-groups") or [] if group.get("id")
            ],
        )

    async def search_artists(self, query: str, limit: int = 10) -> list[ArtistSummaryDTO]:
        artists = await self._client.search_artists(query, limit)
        return [
            ArtistSummaryDTO(id=artist["id"], name=artist.get("name") or "", source=self.source)
            for artist in artists
            if artist.get("id")
        ]

    async def get_cover_art(self, release_id: str) -> str | None:
        return await self._client.get_cover_art_url(release_id)

    async def close(self) -> None:
        await self._client.close()
