"""Domain value objects."""

from recordhub.domain.value_objects.similarity import (
    album_similarity,
    artist_similarity,
    edit_distance,
    normalize,
    similarity,
)
from recordhub.domain.value_objects.track_position import (
    EMPTY_POSITION,
    TrackPosition,
    assign_track_numbers,
    normalize_position,
    position_sort_key,
)

__all__ = [
    "EMPTY_POSITION",
    "TrackPosition",
    "album_similarity",
    "artist_similarity",
    "assign_track_numbers",
    "edit_distance",
    "normalize",
    "normalize_position",
    "position_sort_key",
    "similarity",
]
