"""Domain entities for the canonical catalog."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite drops tzinfo on the way back! Always pass datetimes from the DB through
# this before comparing them with utc_now(), otherwise you get "can't compare offset-naive and
# offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# Yo, Source is the closed set of external catalogs we reconcile. The value doubles as the
# column prefix in the DB (musicbrainz_id, discogs_id, spotify_id) and as the URL segment in
# the API. Priority is explicit: MusicBrainz is native, Discogs secondary, Spotify tertiary.
class Source(str, Enum):
    """External metadata source."""

    MUSICBRAINZ = "musicbrainz"
    DISCOGS = "discogs"
    SPOTIFY = "spotify"

    @property
    def priority_score(self) -> int:
        """Weight used when picking a survivor among duplicates."""
        return _PRIORITY_SCORES[self]

    @property
    def id_field(self) -> str:
        """Name of the external-id attribute on albums and artists."""
        return f"{self.value}_id"

    @classmethod
    def in_priority_order(cls) -> list["Source"]:
        return sorted(cls, key=lambda source: source.priority_score, reverse=True)


_PRIORITY_SCORES = {
    Source.MUSICBRAINZ: 4,
    Source.DISCOGS: 2,
    Source.SPOTIFY: 1,
}


@dataclass
class RetryState:
    """Per-entity reindex retry bookkeeping.

    An entity is eligible for reindexing only while retry_count < max_retries and
    next_attempt is unset or already passed. Once retry_count reaches max_retries the
    entity is exhausted and stays out of every scan until someone resets it.
    """

    retry_count: int = 0
    next_attempt: datetime | None = None

    def is_eligible(self, max_retries: int, now: datetime | None = None) -> bool:
        if self.retry_count >= max_retries:
            return False
        if self.next_attempt is None:
            return True
        now = now or utc_now()
        return ensure_utc_aware(self.next_attempt) <= now

    def is_exhausted(self, max_retries: int) -> bool:
        return self.retry_count >= max_retries

    def record_success(self) -> None:
        self.retry_count = 0
        self.next_attempt = None

    def record_failure(
        self, max_retries: int, interval: timedelta, now: datetime | None = None
    ) -> None:
        # Fixed interval, no exponential growth. The counter itself is the bound.
        self.retry_count = min(self.retry_count + 1, max_retries)
        self.next_attempt = (now or utc_now()) + interval


@dataclass
class ExternalIds:
    """Up to one external id per source."""

    musicbrainz_id: str | None = None
    discogs_id: str | None = None
    spotify_id: str | None = None

    def get(self, source: Source) -> str | None:
        return getattr(self, source.id_field)

    def set(self, source: Source, external_id: str | None) -> None:
        setattr(self, source.id_field, external_id)

    def present(self) -> dict[Source, str]:
        return {source: value for source in Source if (value := self.get(source))}

    def priority_score(self) -> int:
        """Sum of source weights for every id present."""
        return sum(source.priority_score for source in self.present())


@dataclass
class CanonicalAlbum:
    """The single deduplicated album row external ids resolve to."""

    id: str
    title: str
    artist: str
    release_date: str | None = None
    cover_art_url: str | None = None
    genres: list[str] = field(default_factory=list)
    total_tracks: int = 0
    external_ids: ExternalIds = field(default_factory=ExternalIds)
    retry: RetryState = field(default_factory=RetryState)
    musicbrainz_url: str | None = None
    discogs_url: str | None = None
    spotify_uri: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def musicbrainz_id(self) -> str | None:
        return self.external_ids.musicbrainz_id

    @property
    def discogs_id(self) -> str | None:
        return self.external_ids.discogs_id

    @property
    def spotify_id(self) -> str | None:
        return self.external_ids.spotify_id


@dataclass
class CanonicalArtist:
    """The single deduplicated artist row external ids resolve to."""

    id: str
    name: str
    image_url: str | None = None
    genres: list[str] = field(default_factory=list)
    external_ids: ExternalIds = field(default_factory=ExternalIds)
    retry: RetryState = field(default_factory=RetryState)
    musicbrainz_url: str | None = None
    discogs_url: str | None = None
    spotify_uri: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Track:
    """A track owned by exactly one canonical album.

    track_number is the dense 1-based ordinal, position the human-facing label
    ("A1", "2.5", "12"). Only musicbrainz and spotify carry track ids.
    """

    id: str
    album_id: str
    title: str
    track_number: int
    position: str | None = None
    duration_ms: int | None = None
    musicbrainz_id: str | None = None
    spotify_id: str | None = None
    spotify_uri: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def external_id_score(self) -> int:
        """Presence score used to pick which of two duplicate tracks survives."""
        score = 0
        if self.musicbrainz_id:
            score += Source.MUSICBRAINZ.priority_score
        if self.spotify_id:
            score += Source.SPOTIFY.priority_score
        return score


__all__ = [
    "CanonicalAlbum",
    "CanonicalArtist",
    "ExternalIds",
    "RetryState",
    "Source",
    "Track",
    "ensure_utc_aware",
    "utc_now",
]
