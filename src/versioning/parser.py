"""Revision string parsing: exact, latest.<status>, sub-revision and ranges."""

from typing import List, Tuple

from .models import RevisionBound, RevisionKind, RevisionSpec

LATEST_PREFIX = "latest."
SUB_REVISION_SUFFIX = "+"


def _split_intervals(raw: str) -> List[str]:
    """Split "[1.0,2.0),[3.0,)" into its bracketed intervals."""
    ranges = []
    current = ""
    depth = 0
    for char in raw:
        if char in "[(":
            if depth == 0:
                current = ""
            depth += 1
            current += char
        elif char in "])":
            depth -= 1
            current += char
            if depth == 0:
                ranges.append(current)
                current = ""
        elif depth > 0:
            current += char
    return ranges


def _parse_interval(interval: str) -> Tuple[RevisionBound, RevisionBound]:
    inner = interval[1:-1]
    if "," not in inner:
        # [1.2] pins a single revision
        value = inner.strip()
        return RevisionBound(value, True), RevisionBound(value, True)
    lower, upper = (part.strip() for part in inner.split(",", 1))
    return (
        RevisionBound(lower or None, interval.startswith("[")),
        RevisionBound(upper or None, interval.endswith("]")),
    )


def _is_range(raw: str) -> bool:
    return raw[:1] in "[(" and raw[-1:] in "])"


def parse_revision(raw: str) -> RevisionSpec:
    """Classify and parse a requested revision string."""
    raw = (raw or "").strip()
    if raw.startswith(LATEST_PREFIX) and len(raw) > len(LATEST_PREFIX):
        return RevisionSpec(raw, RevisionKind.LATEST, qualifier=raw[len(LATEST_PREFIX):])
    if raw.endswith(SUB_REVISION_SUFFIX):
        return RevisionSpec(raw, RevisionKind.SUB_REVISION, qualifier=raw[:-1])
    if _is_range(raw):
        intervals = tuple(_parse_interval(i) for i in _split_intervals(raw))
        if intervals:
            return RevisionSpec(raw, RevisionKind.RANGE, intervals=intervals)
    return RevisionSpec(raw, RevisionKind.EXACT)


def classify_revision(raw: str) -> RevisionKind:
    return parse_revision(raw).kind
