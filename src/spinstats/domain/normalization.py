"""Identity normalization for free-text track, artist and album values.

All helpers are pure and total: ``None`` and blank strings normalize to ``""``.
Artist fields may carry several credits joined by ``,`` or ``&``; the first
credit is the primary artist, the others are featured artists.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from datetime import datetime

CREDIT_SEPARATORS: Final = re.compile(r"[,&]")
COUNT_KEY_SEPARATOR: Final[str] = "|"

type ListeningKey = tuple[str, str, str, datetime]


def normalize(value: str | None) -> str:
    """Trim surrounding whitespace and case-fold."""

    if not value:
        return ""
    return value.strip().casefold()


def split_credits(artist_field: str | None) -> list[str]:
    """Split a credit string into trimmed, non-empty segments in original order."""

    if not artist_field:
        return []
    segments = (segment.strip() for segment in CREDIT_SEPARATORS.split(artist_field))
    return [segment for segment in segments if segment]


def primary_artist(artist_field: str | None) -> str:
    credits = split_credits(artist_field)
    return credits[0] if credits else ""


def featured_artists(artist_field: str | None) -> list[str]:
    return split_credits(artist_field)[1:]


def matching_credit(artist_field: str | None, target: str | None) -> str | None:
    """Return the credit segment equal to ``target`` (case-insensitive), if any.

    Comparison happens per segment, so ``"Art"`` never matches inside ``"Martian"``.
    """

    wanted = normalize(target)
    if not wanted:
        return None
    for credit in split_credits(artist_field):
        if normalize(credit) == wanted:
            return credit
    return None


def credits_contain(artist_field: str | None, target: str | None) -> bool:
    """Whether ``target`` is credited on ``artist_field``, as primary or featured."""

    return matching_credit(artist_field, target) is not None


def listening_key(
    track: str | None,
    artist: str | None,
    album: str | None,
    played_at: datetime,
) -> ListeningKey:
    """Upsert key of a play: normalized track and artist, album and timestamp as given."""

    return (normalize(track), normalize(artist), album or "", played_at)


def count_key(artist: str | None, track: str | None) -> str:
    """Lookup key ``"<normalized artist>|<normalized track>"`` for historical counts."""

    return f"{normalize(artist)}{COUNT_KEY_SEPARATOR}{normalize(track)}"


__all__ = [
    "COUNT_KEY_SEPARATOR",
    "CREDIT_SEPARATORS",
    "ListeningKey",
    "count_key",
    "credits_contain",
    "featured_artists",
    "listening_key",
    "matching_credit",
    "normalize",
    "primary_artist",
    "split_credits",
]
