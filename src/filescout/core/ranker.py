"""
Static relevance scoring for indexed items.

Every function here is pure: the score of an item depends only on its path
depth relative to the search root, its extension, its write and creation
times, its name, the number of files beside it and how often it has been
opened before. The live query never enters the relevance score.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from filescout.models.items import entry_extension


DEPTH_WEIGHT = 10.0
DEPTH_FREE_LEVELS = 2
DEPTH_DIVISOR = 1600.0

PENALIZED_EXTENSIONS = {'.bin'}
PREFERRED_EXTENSIONS = {'.txt', '.docx', '.pdf'}

WRITE_GAP_EXEMPT_EXTENSIONS = {'.pdf'}
WRITE_GAP_MAX = timedelta(days=1)
WRITE_GAP_MIN_AGE = timedelta(days=3)

SIBLING_SPARSE_LIMIT = 5
SIBLING_CROWDED_LIMIT = 25
SIBLING_FALLOFF = 100.0

LOOKUP_CAP = 5

_ISO_DATE = re.compile(r'\d{4}-\d{2}-\d{2}')


@dataclass(frozen=True)
class ItemFacts:
    """
    Filesystem metadata the ranker needs for one entry.

    Attributes:
        path: Absolute path of the entry
        name: Final path component
        is_directory: Whether the entry is a directory
        modified_time: Last write time
        created_time: Creation time (birth time where the platform has it)
        sibling_count: Number of files in the same parent directory
    """
    path: str
    name: str
    is_directory: bool
    modified_time: datetime
    created_time: datetime
    sibling_count: int

    @property
    def extension(self) -> Optional[str]:
        return entry_extension(self.name, self.is_directory)


def path_depth(path: str) -> int:
    """Number of components in a path, anchor included."""
    return len(Path(path).parts)


def depth_score(depth: int, root_depth: int) -> float:
    """
    Penalize entries more than two levels below the root.

    The excess depth is raised to Euler's number, so the penalty grows
    slightly faster than quadratically.
    """
    excess = max(depth - (root_depth + DEPTH_FREE_LEVELS), 0)
    return (1 - excess ** math.e) / DEPTH_DIVISOR


def type_score(extension: Optional[str]) -> float:
    if extension in PENALIZED_EXTENSIONS:
        return -1.0
    if extension in PREFERRED_EXTENSIONS:
        return 1.0
    return 0.0


def recency_score(modified_time: datetime, now: datetime) -> float:
    """Inverse of whole days since the last write, capped at 1."""
    days = (now - modified_time).days
    if days <= 0:
        days = 1
    return min(1.0 / days, 1.0)


def write_gap_score(modified_time: datetime, created_time: datetime,
                    now: datetime, extension: Optional[str]) -> float:
    """Flag old entries whose only write came within a day of creation."""
    if extension in WRITE_GAP_EXEMPT_EXTENSIONS:
        return 0.0
    if (modified_time - created_time) < WRITE_GAP_MAX and (now - created_time) > WRITE_GAP_MIN_AGE:
        return -1.0
    return 0.0


def name_score(name: str) -> float:
    score = -1.0 if ' ' in name else 1.0
    if _ISO_DATE.match(name[:10]):
        score += 1.0
    return score


def sibling_score(sibling_count: int) -> float:
    """
    Score the crowding of the parent directory.

    Linear from -1 at one file to 0 at five, flat up to 25, then a bounded
    quadratic falloff.
    """
    n = sibling_count
    if n < SIBLING_SPARSE_LIMIT:
        return max((n - SIBLING_SPARSE_LIMIT) / (SIBLING_SPARSE_LIMIT - 1), -1.0)
    if n <= SIBLING_CROWDED_LIMIT:
        return 0.0
    return max(-((n - SIBLING_CROWDED_LIMIT) / SIBLING_FALLOFF) ** 2, -1.0)


def lookup_score(lookup_count: int) -> float:
    return float(min(max(lookup_count, 0), LOOKUP_CAP))


def score_item(facts: ItemFacts, root_depth: int, now: datetime, lookup_count: int = 0) -> float:
    """
    Compute the static relevance score of one entry.

    Args:
        facts: Filesystem metadata of the entry
        root_depth: path_depth() of the search root
        now: Reference time for recency and write-gap checks
        lookup_count: How many times the entry was opened before

    Returns:
        Sum of the weighted heuristic scores
    """
    extension = facts.extension
    return (
        DEPTH_WEIGHT * depth_score(path_depth(facts.path), root_depth)
        + type_score(extension)
        + recency_score(facts.modified_time, now)
        + write_gap_score(facts.modified_time, facts.created_time, now, extension)
        + name_score(facts.name)
        + sibling_score(facts.sibling_count)
        + lookup_score(lookup_count)
    )
