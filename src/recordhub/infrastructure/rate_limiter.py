"""
Pacing for calls to the external catalog APIs.

Hey future me - MusicBrainz, Discogs and Spotify ALL throttle us, each in its own way, and
every client for a source shares one limiter (see get_limiter). Each limiter is a token bucket:
a request spends a token, tokens trickle back at refill_rate per second, and a 429 drains the
bucket and sleeps for Retry-After (or an exponential backoff when the API doesn't say).

USAGE:
    async with get_musicbrainz_limiter():
        response = await client.get(url)

    # on 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Bucket size, refill speed and 429 backoff bounds."""

    max_tokens: int = 10
    refill_rate: float = 2.0  # tokens/second
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


# Per-source defaults. MusicBrainz bans clients that burst, so its bucket holds a single token.
# Discogs allows 60/min authenticated. Spotify tolerates bursts but its Retry-After can be minutes.
_PROFILES: dict[str, tuple[int, float, float]] = {
    # source: (max_tokens, initial_backoff_seconds, max_backoff_seconds)
    "musicbrainz": (1, 2.0, 120.0),
    "discogs": (5, 1.0, 60.0),
    "spotify": (10, 1.0, 600.0),
}


@dataclass
class RateLimiter:
    """Token bucket with adaptive 429 backoff."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_source(cls, source: str, requests_per_second: float) -> "RateLimiter":
        max_tokens, initial_backoff, max_backoff = _PROFILES[source]
        config = RateLimiterConfig(
            max_tokens=max_tokens,
            refill_rate=requests_per_second,
            initial_backoff_seconds=initial_backoff,
            max_backoff_seconds=max_backoff,
        )
        return cls(config=config, name=source)

    @classmethod
    def for_musicbrainz(cls, requests_per_second: float = 1.0) -> "RateLimiter":
        return cls.for_source("musicbrainz", requests_per_second)

    @classmethod
    def for_discogs(cls, requests_per_second: float = 1.0) -> "RateLimiter":
        return cls.for_source("discogs", requests_per_second)

    @classmethod
    def for_spotify(cls, requests_per_second: float = 2.0) -> "RateLimiter":
        return cls.for_source("spotify", requests_per_second)

    def _top_up(self) -> None:
        now = time.monotonic()
        earned = (now - self._last_refill) * self.config.refill_rate
        self._tokens = min(float(self.config.max_tokens), self._tokens + earned)
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping until the bucket has one."""
        while True:
            async with self._lock:
                self._top_up()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                shortfall = 1.0 - self._tokens
                delay = shortfall / self.config.refill_rate

            # Sleep outside the lock so other callers can still top up and queue
            logger.debug(f"RateLimiter[{self.name}]: bucket empty, sleeping {delay:.2f}s")
            await asyncio.sleep(delay)

    async def handle_rate_limit_response(self, retry_after: float | None = None) -> float:
        """Back off after a 429.

        Args:
            retry_after: Seconds from the Retry-After header, if the API sent one

        Returns:
            Seconds actually slept (capped at max_backoff_seconds)
        """
        async with self._lock:
            requested = self._current_backoff if retry_after is None else float(retry_after)
            delay = min(requested, self.config.max_backoff_seconds)
            logger.warning(
                f"RateLimiter[{self.name}]: got 429, sleeping {delay:.1f}s "
                f"(next backoff {self._current_backoff:.1f}s -> "
                f"{self._current_backoff * self.config.backoff_multiplier:.1f}s)"
            )
            self._tokens = 0.0
            self._current_backoff = min(
                self.config.max_backoff_seconds,
                self._current_backoff * self.config.backoff_multiplier,
            )

        await asyncio.sleep(delay)
        return delay

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        # Only a clean exit counts as success
        if exc_type is None:
            self.reset_backoff()


# One limiter per source for the whole process
_limiters: dict[str, RateLimiter] = {}


def get_limiter(source: str, requests_per_second: float) -> RateLimiter:
    """Shared limiter for a source. The rate only applies the first time it's created."""
    limiter = _limiters.get(source)
    if limiter is None:
        limiter = _limiters[source] = RateLimiter.for_source(source, requests_per_second)
    return limiter


def get_musicbrainz_limiter(requests_per_second: float = 1.0) -> RateLimiter:
    return get_limiter("musicbrainz", requests_per_second)


def get_discogs_limiter(requests_per_second: float = 1.0) -> RateLimiter:
    return get_limiter("discogs", requests_per_second)


def get_spotify_limiter(requests_per_second: float = 2.0) -> RateLimiter:
    return get_limiter("spotify", requests_per_second)


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "get_discogs_limiter",
    "get_limiter",
    "get_musicbrainz_limiter",
    "get_spotify_limiter",
]
