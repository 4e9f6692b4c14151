"""Revision ordering shared by range matching and latest strategies.

PEP 440 revisions compare with ``packaging``; anything else falls back to
a token comparison where numeric parts beat words and the qualifiers
``dev < rc < final`` carry their usual meaning.
"""

import functools
import re
from typing import Dict, List, Optional

from packaging import version

SPECIAL_MEANINGS: Dict[str, int] = {"dev": -1, "rc": 1, "final": 2}

_LETTER_DIGIT = re.compile(r"([a-zA-Z])(\d)")
_DIGIT_LETTER = re.compile(r"(\d)([a-zA-Z])")
_SEPARATORS = re.compile(r"[._\-+]")


def _parse(rev: str) -> Optional[version.Version]:
    try:
        return version.Version(rev)
    except version.InvalidVersion:
        return None


def _tokens(rev: str) -> List[str]:
    rev = _LETTER_DIGIT.sub(r"\1.\2", rev)
    rev = _DIGIT_LETTER.sub(r"\1.\2", rev)
    return [t for t in _SEPARATORS.split(rev) if t]


def _compare_tokens(rev1: str, rev2: str) -> int:
    parts1 = _tokens(rev1)
    parts2 = _tokens(rev2)
    for p1, p2 in zip(parts1, parts2):
        if p1 == p2:
            continue
        num1, num2 = p1.isdigit(), p2.isdigit()
        if num1 and num2:
            return (int(p1) > int(p2)) - (int(p1) < int(p2))
        if num1 != num2:
            return 1 if num1 else -1
        sm1 = SPECIAL_MEANINGS.get(p1.lower())
        sm2 = SPECIAL_MEANINGS.get(p2.lower())
        if sm1 is not None and sm2 is not None:
            return (sm1 > sm2) - (sm1 < sm2)
        if sm1 is not None or sm2 is not None:
            # unknown words rank between "dev" and "rc"
            return 1 if (sm1 or 0) > (sm2 or 0) else -1
        return (p1 > p2) - (p1 < p2)
    if len(parts1) == len(parts2):
        return 0
    longer, sign = (parts1, 1) if len(parts1) > len(parts2) else (parts2, -1)
    extra = longer[min(len(parts1), len(parts2))]
    if extra.isdigit():
        return sign
    meaning = SPECIAL_MEANINGS.get(extra.lower())
    if meaning is not None and meaning > 0:
        return sign
    return -sign


def compare_revisions(rev1: str, rev2: str) -> int:
    """Three-way compare two revision strings."""
    v1, v2 = _parse(rev1), _parse(rev2)
    if v1 is not None and v2 is not None:
        return (v1 > v2) - (v1 < v2)
    return _compare_tokens(rev1, rev2)


revision_key = functools.cmp_to_key(compare_revisions)
