"""Configuration module for RecordHub."""

from .settings import (
    DatabaseSettings,
    DiscogsSettings,
    MusicBrainzSettings,
    ObservabilitySettings,
    ReindexerSettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "DiscogsSettings",
    "MusicBrainzSettings",
    "ObservabilitySettings",
    "ReindexerSettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
