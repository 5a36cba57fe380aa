from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from idregistry.core.constants import ISBN_RANGE_LENGTH, ISMN_RANGE_LENGTH, IdentifierType

# ISSN bounds are compared on their three digit base, ignoring the check character.
_ISSN_BASE_WIDTH = 3


@dataclass(frozen=True)
class RangeBounds:
    scope: tuple
    begin: int
    end: int

    def overlaps(self, other: "RangeBounds") -> bool:
        if self.scope != other.scope:
            return False
        return (
            self.begin <= other.begin <= self.end
            or other.begin <= self.begin <= other.end
        )


def normalized_width(identifier_type: IdentifierType) -> int:
    if identifier_type == IdentifierType.ISBN:
        return ISBN_RANGE_LENGTH - 1
    if identifier_type == IdentifierType.ISMN:
        return ISMN_RANGE_LENGTH - 1
    return _ISSN_BASE_WIDTH


def normalize(
    identifier_type: IdentifierType,
    scope: tuple,
    range_begin: str,
    range_end: str,
) -> RangeBounds:
    """Right-pad bounds to a fixed width so ranges of any category compare."""
    width = normalized_width(identifier_type)
    if identifier_type == IdentifierType.ISSN:
        begin = range_begin[:width]
        end = range_end[:width]
    else:
        begin = range_begin.ljust(width, "0")
        end = range_end.ljust(width, "9")
    return RangeBounds(scope=tuple(scope), begin=int(begin), end=int(end))


def overlaps_existing(candidate: RangeBounds, existing: Iterable[RangeBounds]) -> bool:
    return any(candidate.overlaps(item) for item in existing)
