"""Spotify metadata source (tertiary)."""

import logging
from itertools import groupby
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
from recordhub.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


def _artist_names(artists: list[dict[str, Any]] | None) -> str:
    return ", ".join(artist["name"] for artist in artists or [] if artist.get("name"))


def _first_image(images: list[dict[str, Any]] | None) -> str | None:
    # Spotify lists images largest first
    return images[0].get("url") if images else None


# Listen up, Spotify only gives disc_number + track_number. Single-disc albums keep the plain
# track number ("7"), multi-disc albums become "disc.track" ("2.7") which the position
# normalizer reads as number=2 sub=7, so discs sort before their tracks.
def extract_media(album: dict[str, Any]) -> list[MediumDTO]:
    items = [item for item in (album.get("tracks") or {}).get("items") or [] if item]
    multi_disc = any((item.get("disc_number") or 1) > 1 for item in items)

    media = []
    ordered = sorted(
        items, key=lambda item: (item.get("disc_number") or 1, item.get("track_number") or 0)
    )
    for disc_number, disc_items in groupby(ordered, key=lambda item: item.get("disc_number") or 1):
        tracks = []
        for item in disc_items:
            track_number = item.get("track_number")
            if track_number is None:
                position = None
            elif multi_disc:
                position = f"{disc_number}.{track_number}"
            else:
                position = str(track_number)
            tracks.append(
                TrackDTO(
                    id=item.get("id"),
                    title=item.get("name") or "",
                    position=position,
                    duration_ms=item.get("duration_ms"),
                    uri=item.get("uri"),
                )
            )
        media.append(MediumDTO(tracks=tracks))
    return media


class SpotifySource(IMetadataSource):
    """IMetadataSource backed by the Spotify Web API."""

    source = Source.SPOTIFY

    def __init__(self, client: SpotifyClient) -> None:
        self._client = client

    async def search_releases(self, query: str, limit: int = 10) -> list[ReleaseSummaryDTO]:
        albums = await self._client.search_albums(query, limit)
        return [
            ReleaseSummaryDTO(
                id=album["id"],
                title=album.get("name") or "",
                artist=_artist_names(album.get("artists")),
                source=self.source,
                release_date=album.get("release_date"),
                cover_art_url=_first_image(album.get("images")),
            )
            for album in albums
            if album and album.get("id")
        ]

    async def get_release(self, release_id: str) -> ReleaseDTO | None:
        album = await self._client.get_album(release_id)
        if album is None:
            return None

        media = extract_media(album)
        return ReleaseDTO(
            id=album["id"],
            title=album.get("name") or "",
            artist=_artist_names(album.get("artists")),
            source=self.source,
            release_date=album.get("release_date"),
            genres=list(album.get("genres") or []),
            media=media,
            cover_art_url=_first_image(album.get("images")),
            url=album.get("uri"),
            total_tracks=album.get("total_tracks"),
        )

    async def get_artist(self, artist_id: str) -> ArtistDTO | None:
        data = await self._client.get_artist(artist_id)
        if data is None:
            return None

        albums = await self._client.get_artist_albums(artist_id)
        return ArtistDTO(
            id=data["id"],
            name=data.get("name") or "",
            source=self.source,
            genres=list(data.get("genres") or []),
            image_url=_first_image(data.get("images")),
            url=data.get("uri"),
            release_ids=[album["id"] for album in albums if album and album.get("id")],
        )

    async def search_artists(self, query: str, limit: int = 10) -> list[ArtistSummaryDTO]:
        artists = await self._client.search_artists(query, limit)
        return [
            ArtistSummaryDTO(id=artist["id"], name=artist.get("name") or "", source=self.source)
            for artist in artists
            if artist and artist.get("id")
        ]

    async def close(self) -> None:
        await self._client.close()
