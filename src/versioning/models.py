"""Data models for revision classification."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class RevisionKind(Enum):
    """How a requested revision string is to be resolved."""
    EXACT = "exact"
    LATEST = "latest"
    SUB_REVISION = "sub-revision"
    RANGE = "range"


@dataclass(frozen=True)
class RevisionBound:
    """One side of a revision range; ``value`` None means unbounded."""
    value: Optional[str]
    inclusive: bool


@dataclass(frozen=True)
class RevisionSpec:
    """Normalized representation of a requested revision."""
    raw: str
    kind: RevisionKind
    # LATEST: status keyword after "latest."; SUB_REVISION: prefix before "+"
    qualifier: Optional[str] = None
    # RANGE: union of (lower, upper) intervals
    intervals: Tuple[Tuple[RevisionBound, RevisionBound], ...] = ()
