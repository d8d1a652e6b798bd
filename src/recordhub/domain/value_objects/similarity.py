"""String similarity for album and artist matching.

Hey future me - this is the ONLY place that decides how "close" two catalog strings are!
Sources disagree on punctuation, casing, feature credits and romanization, so everything is
compared on the normalized form:

    >>> normalize("  The Dark Side of the Moon (Remastered)! ")
    'the dark side of the moon remastered'

Similarity is 1 - levenshtein / max_len over the normalized strings, so it always lands in
[0, 1]. Album matching weighs the title (0.7) over the artist (0.3) because artist strings
drift more between sources than titles do.

Levenshtein itself comes from rapidfuzz (C implementation, unit costs).
"""

import re
from typing import Protocol

from rapidfuzz.distance import Levenshtein

ARTIST_WEIGHT = 0.3
TITLE_WEIGHT = 0.7

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


class AlbumLike(Protocol):
    """Anything carrying an artist display string and a title."""

    artist: str
    title: str


def normalize(value: str | None) -> str:
    """Lower-case, trim, strip punctuation and collapse whitespace."""
    if not value:
        return ""
    text = value.lower().strip()
    text = _PUNCTUATION_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def edit_distance(a: str, b: str) -> int:
    """Classic Levenshtein distance (insert/delete/substitute cost 1)."""
    return Levenshtein.distance(a, b)


def similarity(a: str | None, b: str | None) -> float:
    """Similarity of two strings in [0, 1].

    Returns:
        1.0 if both normalized strings are empty or identical, 0.0 if exactly one is empty,
        otherwise 1 - distance / max(len).
    """
    left = normalize(a)
    right = normalize(b)

    if left == right:
        return 1.0
    if not left or not right:
        return 0.0

    distance = edit_distance(left, right)
    return 1.0 - distance / max(len(left), len(right))


def album_similarity(first: AlbumLike, second: AlbumLike) -> float:
    """Weighted album match score: 0.3 artist + 0.7 title."""
    return ARTIST_WEIGHT * similarity(first.artist, second.artist) + TITLE_WEIGHT * similarity(
        first.title, second.title
    )


def artist_similarity(first: str | None, second: str | None) -> float:
    """Artist match score, plain name similarity."""
    return similarity(first, second)
