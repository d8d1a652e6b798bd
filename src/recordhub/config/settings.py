"""Application settings.

Hey future me - every tunable of the catalog engine lives here! Values come from
environment variables with the RECORDHUB_ prefix, nested groups use "__" as the
delimiter (e.g. RECORDHUB_REINDEXER__MAX_RETRIES=3). get_settings() caches the
instance so the whole process sees the same config.
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Canonical store connection settings."""

    url: str = "sqlite+aiosqlite:///./recordhub.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class MusicBrainzSettings(BaseModel):
    """MusicBrainz client settings.

    MusicBrainz rejects anonymous clients, the User-Agent must name the app and a contact.
    """

    app_name: str = "RecordHub"
    app_version: str = "0.1.0"
    contact: str = "admin@recordhub.local"
    base_url: str = "https://musicbrainz.org/ws/2"
    cover_art_url: str = "https://coverartarchive.org"
    requests_per_second: float = 1.0
    timeout: float = 30.0


class DiscogsSettings(BaseModel):
    """Discogs client settings."""

    token: str | None = None
    user_agent: str = "RecordHub/0.1.0"
    base_url: str = "https://api.discogs.com"
    requests_per_second: float = 1.0
    timeout: float = 30.0


class SpotifySettings(BaseModel):
    """Spotify client-credentials settings."""

    client_id: str = ""
    client_secret: str = ""
    base_url: str = "https://api.spotify.com/v1"
    token_url: str = "https://accounts.spotify.com/api/token"
    requests_per_second: float = 10.0
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class ReindexerSettings(BaseModel):
    """Background reindexer and matching thresholds."""

    enabled: bool = True
    tick_seconds: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=6, ge=1)
    retry_interval_seconds: float = Field(default=180.0, ge=0)
    album_batch_size: int = Field(default=100, ge=1)
    artist_batch_size: int = Field(default=50, ge=1)
    match_threshold: float = Field(default=0.85, ge=0, le=1)
    artist_match_threshold: float = Field(default=0.9, ge=0, le=1)
    merge_threshold: float = Field(default=0.88, ge=0, le=1)
    match_sample_size: int = Field(default=100, ge=1)


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_level: str = "INFO"
    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="RECORDHUB_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "recordhub"
    debug: bool = False

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    discogs: DiscogsSettings = Field(default_factory=DiscogsSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    reindexer: ReindexerSettings = Field(default_factory=ReindexerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
