"""Resolver base: per-resolver policy state shared by every concrete resolver.

A resolver owns a name (the provenance discriminator written to the cache),
an optional validation override, a changing-module pattern, a namespace and
a latest strategy. Namespace and latest strategy are looked up by name in
the settings registry on first use and memoized until reconfigured.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from cache.report import DownloadOptions, DownloadReport, DownloadStatus
from common.errors import ConfigurationError
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from common.matcher import Matcher, NoMatcher, default_matchers
from constants import Constants
from descriptor.dependency import DependencyEdge
from descriptor.models import Artifact, ModuleId, ModuleRevisionId
from .latest import LatestStrategy, select_latest_strategy
from .models import ResolveData, ResolvedModuleRevision
from .namespace import Namespace, select_namespace

if TYPE_CHECKING:
    from cache.manager import CacheManager
    from settings import ResolverSettings

logger = logging.getLogger(__name__)


class ResolverContext:
    """Base class of resolvers.

    Subclasses implement ``get_dependency`` and ``download``.
    """

    type_name = "abstract"

    def __init__(
        self,
        name: Optional[str] = None,
        settings: Optional["ResolverSettings"] = None,
        validate: Optional[bool] = None,
        changing_pattern: Optional[str] = None,
        changing_matcher_name: str = Constants.DEFAULT_CHANGING_MATCHER,
        namespace: Optional[str] = None,
        latest: Optional[str] = None,
        cache: Optional["CacheManager"] = None,
    ):
        self.name = name
        self._settings = settings
        self._validate = validate
        self.changing_pattern = changing_pattern
        self.changing_matcher_name = changing_matcher_name
        self._namespace_name = namespace
        self._namespace: Optional[Namespace] = None
        self._explicit_namespace: Optional[Namespace] = None
        self._latest_name = latest
        self._latest: Optional[LatestStrategy] = None
        self._explicit_latest: Optional[LatestStrategy] = None
        self._cache = cache

    @property
    def settings(self) -> Optional["ResolverSettings"]:
        return self._settings

    @settings.setter
    def settings(self, settings: Optional["ResolverSettings"]) -> None:
        self._settings = settings
        self._latest = None
        self._namespace = None

    # Validation

    @property
    def validate(self) -> bool:
        return True if self._validate is None else self._validate

    @validate.setter
    def validate(self, value: Optional[bool]) -> None:
        self._validate = value

    def do_validate(self, data: ResolveData) -> bool:
        """The resolver's own flag when set, the caller's otherwise."""
        return self._validate if self._validate is not None else data.validate

    # Latest strategy

    @property
    def latest(self) -> Optional[str]:
        return self._latest_name

    @latest.setter
    def latest(self, name: Optional[str]) -> None:
        self._latest_name = name
        self._explicit_latest = None
        self._latest = None

    @property
    def latest_strategy(self) -> LatestStrategy:
        if self._latest is None:
            self._latest = select_latest_strategy(
                self._explicit_latest, self._latest_name, self._settings, self.name
            )
        return self._latest

    @latest_strategy.setter
    def latest_strategy(self, strategy: Optional[LatestStrategy]) -> None:
        self._explicit_latest = strategy
        self._latest = strategy

    # Namespace

    @property
    def namespace_name(self) -> Optional[str]:
        return self._namespace_name

    @namespace_name.setter
    def namespace_name(self, name: Optional[str]) -> None:
        self._namespace_name = name
        self._explicit_namespace = None
        self._namespace = None

    @property
    def namespace(self) -> Namespace:
        if self._namespace is None:
            self._namespace = select_namespace(
                self._explicit_namespace, self._namespace_name, self._settings, self.name
            )
        return self._namespace

    @namespace.setter
    def namespace(self, namespace: Optional[Namespace]) -> None:
        self._explicit_namespace = namespace
        self._namespace = namespace

    def to_system(self, obj: Any) -> Any:
        """Translate ``obj`` from this resolver's namespace to the system one."""
        return self.namespace.to_system(obj)

    def from_system(self, obj: Any) -> Any:
        """Translate ``obj`` from the system namespace to this resolver's one."""
        return self.namespace.from_system(obj)

    # Changing modules

    @property
    def changing_matcher(self) -> Matcher:
        if not self.changing_pattern:
            return NoMatcher()
        if self._settings is not None:
            pattern_matcher = self._settings.get_matcher(self.changing_matcher_name)
        else:
            pattern_matcher = default_matchers().get(self.changing_matcher_name)
        if pattern_matcher is None:
            raise ConfigurationError(
                f"unknown matcher '{self.changing_matcher_name}'. "
                f"It is set as changing matcher in {self}"
            )
        return pattern_matcher.get_matcher(self.changing_pattern)

    def is_changing(self, mrid: ModuleRevisionId) -> bool:
        return self.changing_matcher.matches(mrid.revision)

    # Cache

    @property
    def cache(self) -> "CacheManager":
        if self._cache is None:
            if self._settings is None:
                raise ConfigurationError(f"no cache manager available for resolver {self}")
            self._cache = self._settings.default_cache_manager
        return self._cache

    @cache.setter
    def cache(self, cache: Optional["CacheManager"]) -> None:
        self._cache = cache

    def find_module_in_cache(
        self, data: ResolveData, mrid: ModuleRevisionId
    ) -> Optional[ResolvedModuleRevision]:
        """Cached revision of ``mrid``, accepted only if this resolver produced it."""
        cached = data.cache.find_descriptor_in_cache(mrid, self.do_validate(data))
        if cached is None:
            return None
        cached_by = getattr(cached.resolver, "name", None)
        if cached_by != self.name:
            if is_debug_enabled(logger):
                logger.debug(
                    "Module found in cache but with a different resolver: discarding",
                    extra=extra_context(
                        event="cache_lookup", component="resolver", outcome="discarded",
                        target=str(mrid), resolver=self.name, cached_by=cached_by,
                    ),
                )
            return None
        return cached

    # Resolution contract

    def get_dependency(
        self, edge: DependencyEdge, data: ResolveData
    ) -> Optional[ResolvedModuleRevision]:  # pragma: no cover - interface
        raise NotImplementedError

    def download(
        self, artifacts: Sequence[Artifact], options: DownloadOptions
    ) -> DownloadReport:  # pragma: no cover - interface
        raise NotImplementedError

    def exists(self, artifact: Artifact) -> bool:
        report = self.download([artifact], DownloadOptions()).report_for(artifact)
        return report is not None and report.status is not DownloadStatus.FAILED

    def report_failure(self, artifact: Optional[Artifact] = None) -> None:
        """Hook for resolvers keeping track of failed lookups; logs only."""
        logger.debug("%s: failure reported for %s", self.name, artifact or "module descriptor")

    def list_organisations(self) -> List[str]:
        return []

    def list_modules(self, organisation: str) -> List[ModuleId]:
        return []

    def list_revisions(self, module_id: ModuleId) -> List[ModuleRevisionId]:
        return []

    @staticmethod
    def hide_password(location: Optional[str]) -> str:
        return safe_url(location)

    def dump_config(self) -> None:
        logger.info("\t%s [%s]", self.name, self.type_name)
        logger.info("\t\tchanging pattern: %s", self.changing_pattern)
        logger.info("\t\tchanging matcher: %s", self.changing_matcher_name)
        logger.info("\t\tnamespace: %s", self._namespace_name or Constants.SYSTEM_NAMESPACE)
        logger.info("\t\tlatest: %s", self._latest_name or Constants.DEFAULT_LATEST_NAME)

    def __str__(self) -> str:
        return str(self.name)
