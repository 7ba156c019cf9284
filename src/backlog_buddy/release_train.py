"""Detection and grouping of Release Train marker titles.

A Release Train marker is a backlog row titled like ``----- GCCH -----rt``
(optionally ``rt:<id>``). Every marker row with the same normalized name
belongs to one release train, which is represented in the store by a single
aggregate parent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import WorkItem

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

# "--- <name> ---rt", optionally "---rt:<id>". The id is accepted but not used:
# parents are found by the normalized name, so renumbered markers still group.
MARKER: Final[re.Pattern[str]] = re.compile(r"^\s*-{3,}\s*(.*?)\s*-{3,}\s*rt(?::\s*\d+)?\s*$", re.IGNORECASE)

_EDGE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[\s-]+|[\s-]+$")
_SEPARATOR_CHARS: Final[str] = "-%"
_SEPARATOR_RATIO: Final[float] = 0.6


def clean_title(raw: str) -> str:
    """Strip leading/trailing dashes and whitespace ("----- GCCH -----" -> "GCCH")."""
    return _EDGE_PATTERN.sub("", raw or "")


def normalize_key(title: str) -> str:
    """Key under which marker titles and parent titles are compared."""
    return " ".join(clean_title(title).split()).casefold()


def match_release_train(title: str | None) -> str | None:
    """Return the cleaned train name if the title is a marker, otherwise None."""
    if not title:
        return None
    match = MARKER.match(title)
    if not match:
        return None
    return clean_title(match.group(1)) or None


def is_separator_title(title: str | None) -> bool:
    """Whether the title is a visual separator row (mostly dashes or percent signs)."""
    trimmed = (title or "").strip()
    if not trimmed or match_release_train(trimmed) is not None:
        return False
    filler = sum(1 for char in trimmed if char in _SEPARATOR_CHARS)
    return filler / len(trimmed) > _SEPARATOR_RATIO


@dataclass
class ReleaseTrainGroup:
    """Marker items sharing one normalized release train key."""

    key: str
    title: str
    members: list[WorkItem] = field(default_factory=list)

    @property
    def member_ids(self) -> list[int]:
        return [item.id for item in self.members]

    def __len__(self) -> int:
        return len(self.members)


def group_items(items: Iterable[WorkItem]) -> dict[str, list[WorkItem]]:
    """Group marker items by normalized key, in first-discovery order."""
    groups: dict[str, list[WorkItem]] = {}
    for item in items:
        name = match_release_train(item.title)
        if name is None:
            continue
        groups.setdefault(normalize_key(name), []).append(item)
    return groups


def build_groups(items: Iterable[WorkItem]) -> list[ReleaseTrainGroup]:
    """Build release train groups titled after their first member."""
    groups = [
        ReleaseTrainGroup(key=key, title=match_release_train(members[0].title) or key, members=members)
        for key, members in group_items(items).items()
    ]
    logger.debug(f"Found {len(groups)} release train group(s)")
    return groups
