"""Track position parsing and ordering.

Hey future me - sources write track positions in wildly different ways:

    MusicBrainz   "1", "A1", "B3"
    Discogs       "A1", "2-05", "Side B - Track 3", "CD1-5", "B2.1"
    Spotify       track_number plus disc_number

normalize_position() squeezes all of them into one (prefix, number, subnumber, normalized)
tuple. The normalized string is what we store in track.position, and it parses back to the
exact same tuple (normalize_position(p.normalized) == p), so running the normalizer over
already-normalized data is a no-op.

Pinned examples (see tests/unit/domain/test_track_position.py for the full table):

    "A1"               -> A1     prefix=A    number=1   sub=None
    "12"               -> 12     prefix=None number=12  sub=None
    "2-05"             -> 2.5    prefix=None number=2   sub=5
    "B2.1"             -> B2.1   prefix=B    number=2   sub=1
    "Side B - Track 3" -> B3     prefix=B    number=3   sub=None

Ordering: unlettered (digital / CD) positions come first, then lettered vinyl sides in
alphabetical order. Within a group sort by number, then subnumber (no subnumber first),
then title. Tracks without any position go last.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

# "Disc 1 Track 2" -> ".1.2": the words separate numbers wherever they appear, so both survive.
_MARKER_WORD_RE = re.compile(r"(?<![A-Z])(?:side|disc|disk|track)(?![A-Z])\s*", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"\s*[-‐‑‒–—―:]\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_DOTS_RE = re.compile(r"\.{2,}")
_LETTERED_RE = re.compile(r"^([A-Z]+)\.?([0-9]+)(?:\.([0-9]+))?$")
_NUMERIC_RE = re.compile(r"^([0-9]+)(?:\.([0-9]+))?$")
_LETTERS_RE = re.compile(r"[A-Z]+")
_DIGITS_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class TrackPosition:
    """Parsed track position."""

    normalized: str | None = None
    prefix: str | None = None
    number: int | None = None
    subnumber: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.normalized is None

    @property
    def is_plain_number(self) -> bool:
        """True for "12" style positions (no side letter, no subnumber)."""
        return self.prefix is None and self.subnumber is None and self.number is not None


EMPTY_POSITION = TrackPosition()


def _compose(prefix: str | None, number: int, subnumber: int | None) -> str:
    base = f"{prefix or ''}{number}"
    return f"{base}.{subnumber}" if subnumber is not None else base


def normalize_position(raw: Any) -> TrackPosition:
    """Parse an arbitrary position token.

    Args:
        raw: Position as delivered by a source (str, int or None)

    Returns:
        TrackPosition, all fields None when nothing usable is left after trimming
    """
    if raw is None:
        return EMPTY_POSITION

    text = str(raw).strip()
    if not text:
        return EMPTY_POSITION

    text = _MARKER_WORD_RE.sub(".", text)
    text = _SEPARATOR_RE.sub(".", text)
    text = _WHITESPACE_RE.sub("", text).upper()
    text = _DOTS_RE.sub(".", text).strip(".")
    if not text:
        return EMPTY_POSITION

    match = _LETTERED_RE.match(text)
    if match:
        prefix, number, sub = match.groups()
        subnumber = int(sub) if sub is not None else None
        return TrackPosition(
            normalized=_compose(prefix, int(number), subnumber),
            prefix=prefix,
            number=int(number),
            subnumber=subnumber,
        )

    match = _NUMERIC_RE.match(text)
    if match:
        number, sub = match.groups()
        subnumber = int(sub) if sub is not None else None
        return TrackPosition(
            normalized=_compose(None, int(number), subnumber),
            prefix=None,
            number=int(number),
            subnumber=subnumber,
        )

    # Fallback: first letter run + first digit run, whatever order they appear in.
    letters = _LETTERS_RE.search(text)
    digits = _DIGITS_RE.search(text)
    prefix = letters.group(0) if letters else None
    number_value = int(digits.group(0)) if digits else None

    if number_value is not None:
        normalized = _compose(prefix, number_value, None)
    else:
        normalized = text

    return TrackPosition(normalized=normalized, prefix=prefix, number=number_value)


def position_sort_key(position: str | None, title: str | None = None) -> tuple[Any, ...]:
    """Total-order key for (position, title).

    Unlettered before lettered, then prefix, number (missing number last), subnumber
    (missing subnumber first), normalized string and finally the case-folded title.
    """
    parsed = normalize_position(position)
    title_key = (title or "").casefold()
    if parsed.is_empty:
        return (1, 0, "", 0, 0, 0, 0, "", title_key)
    return (
        0,
        0 if parsed.prefix is None else 1,
        parsed.prefix or "",
        1 if parsed.number is None else 0,
        parsed.number or 0,
        0 if parsed.subnumber is None else 1,
        parsed.subnumber or 0,
        parsed.normalized or "",
        title_key,
    )


def assign_track_numbers(raw_positions: Sequence[Any]) -> list[int]:
    """Dense 1-based track numbers for tracks in ingestion order.

    Parsed numbers from plain numeric positions are used when they form exactly 1..N,
    otherwise every track gets its ingestion index + 1. Mixing both would produce gaps
    or repeats.
    """
    count = len(raw_positions)
    ingestion_order = list(range(1, count + 1))

    parsed_numbers: list[int] = []
    for raw in raw_positions:
        parsed = normalize_position(raw)
        if not parsed.is_plain_number:
            return ingestion_order
        parsed_numbers.append(parsed.number)  # type: ignore[arg-type]

    if sorted(parsed_numbers) == ingestion_order:
        return parsed_numbers
    return ingestion_order
