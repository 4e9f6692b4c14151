"""Latest strategies: policies choosing the "latest" among candidate revisions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union, TYPE_CHECKING

import semantic_version

from common.errors import ConfigurationError
from constants import Constants, LatestStrategies
from versioning.compare import revision_key

if TYPE_CHECKING:
    from settings import ResolverSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevisionInfo:
    """A candidate revision with its last-modified time (epoch seconds)."""

    revision: str
    last_modified: float = 0.0
    location: Optional[str] = None


class LatestStrategy:
    """Orders candidates; the latest is the last one after sorting."""

    name = ""

    def _key(self, info: RevisionInfo) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def sort(self, infos: Iterable[RevisionInfo]) -> List[RevisionInfo]:
        """Return ``infos`` sorted from oldest to latest."""
        return sorted(infos, key=self._key)

    def find_latest(
        self,
        infos: Sequence[RevisionInfo],
        date: Optional[Union[datetime, float]] = None,
    ) -> Optional[RevisionInfo]:
        """Return the latest candidate, ignoring those modified after ``date``."""
        if isinstance(date, datetime):
            date = date.timestamp()
        candidates = [i for i in infos if date is None or i.last_modified <= date]
        if not candidates:
            return None
        return self.sort(candidates)[-1]

    def __repr__(self) -> str:
        return self.name


class LatestRevisionStrategy(LatestStrategy):
    name = LatestStrategies.REVISION.value

    def _key(self, info: RevisionInfo) -> Any:
        return revision_key(info.revision)


class LatestLexicoStrategy(LatestStrategy):
    name = LatestStrategies.LEXICO.value

    def _key(self, info: RevisionInfo) -> Any:
        return info.revision


class LatestTimeStrategy(LatestStrategy):
    name = LatestStrategies.TIME.value

    def _key(self, info: RevisionInfo) -> Any:
        return info.last_modified


class LatestSemverStrategy(LatestStrategy):
    """Semantic versioning order; revisions that cannot be coerced sort first."""

    name = LatestStrategies.SEMVER.value

    def _key(self, info: RevisionInfo) -> Any:
        try:
            return (True, semantic_version.Version.coerce(info.revision), "")
        except ValueError:
            return (False, semantic_version.Version("0.0.0"), info.revision)


def default_latest_strategies() -> Dict[str, LatestStrategy]:
    strategies = [
        LatestRevisionStrategy(),
        LatestLexicoStrategy(),
        LatestTimeStrategy(),
        LatestSemverStrategy(),
    ]
    return {s.name: s for s in strategies}


def select_latest_strategy(
    explicit: Optional[LatestStrategy],
    name: Optional[str],
    settings: Optional["ResolverSettings"],
    owner: Optional[str] = None,
) -> LatestStrategy:
    """Resolve the latest strategy of ``owner``.

    An explicit instance wins; otherwise ``name`` is looked up in the
    settings registry, falling back to the registry default when it is
    unset, ``"default"`` or unknown.

    Raises:
        ConfigurationError: When no settings are available to look up from.
    """
    if explicit is not None:
        return explicit
    if settings is None:
        raise ConfigurationError(
            f"no settings found: impossible to get a latest strategy for {owner}"
        )
    if name and name != Constants.DEFAULT_LATEST_NAME:
        strategy = settings.get_latest_strategy(name)
        if strategy is None:
            logger.warning("unknown latest strategy '%s' for %s: using default", name, owner)
            return settings.default_latest_strategy
        return strategy
    logger.debug("%s: no latest strategy defined: using default", owner)
    return settings.default_latest_strategy
