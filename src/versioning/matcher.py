"""Version matcher: dynamic revision detection and candidate acceptance."""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING

from .compare import compare_revisions
from .models import RevisionBound, RevisionKind, RevisionSpec
from .parser import parse_revision

if TYPE_CHECKING:
    from descriptor.models import ModuleRevisionId

# Most mature first; "latest.<status>" accepts that status or a more mature one.
DEFAULT_STATUSES = ("release", "milestone", "integration")


class VersionMatcher:
    """Decides whether a requested revision is dynamic and which revisions satisfy it."""

    def __init__(self, statuses: Optional[Sequence[str]] = None):
        self.statuses = tuple(statuses or DEFAULT_STATUSES)

    def is_dynamic(self, mrid: "ModuleRevisionId") -> bool:
        return parse_revision(mrid.revision).kind is not RevisionKind.EXACT

    def accept(self, asked: "ModuleRevisionId", found_revision: str, status: Optional[str] = None) -> bool:
        """Return True when ``found_revision`` satisfies the revision asked for.

        Args:
            asked: The requested module revision id.
            found_revision: A concrete candidate revision.
            status: Candidate status, when known; only consulted for ``latest.<status>``.
        """
        spec = parse_revision(asked.revision)
        if spec.kind is RevisionKind.EXACT:
            return spec.raw == found_revision
        if spec.kind is RevisionKind.SUB_REVISION:
            return found_revision.startswith(spec.qualifier or "")
        if spec.kind is RevisionKind.LATEST:
            return self._accept_status(spec, status)
        return any(self._in_interval(found_revision, lo, hi) for lo, hi in spec.intervals)

    def _accept_status(self, spec: RevisionSpec, status: Optional[str]) -> bool:
        if status is None or spec.qualifier not in self.statuses or status not in self.statuses:
            return True
        return self.statuses.index(status) <= self.statuses.index(spec.qualifier)

    @staticmethod
    def _in_interval(rev: str, lower: RevisionBound, upper: RevisionBound) -> bool:
        if lower.value is not None:
            cmp = compare_revisions(rev, lower.value)
            if cmp < 0 or (cmp == 0 and not lower.inclusive):
                return False
        if upper.value is not None:
            cmp = compare_revisions(rev, upper.value)
            if cmp > 0 or (cmp == 0 and not upper.inclusive):
                return False
        return True
