"""Resolver settings: the registry context threaded through resolvers and caches.

Holds the configured resolvers, module rules, latest strategies, namespaces,
pattern matchers and lock strategies, plus cache locations. Built in code or
loaded from a YAML (or JSON) file with ``load_settings``::

    cache:
      dir: ~/.depcache/cache
      lock_strategy: artifact-lock
    default_resolver: local
    resolvers:
      - name: local
        type: filesystem
        descriptors: ["/repo/[organisation]/[module]/[revision]/descriptor.yaml"]
        artifacts: ["/repo/[organisation]/[module]/[revision]/[artifact].[ext]"]
    modules:
      - {organisation: acme, module: "*", resolver: local}
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from cache.lock import LockStrategy, default_lock_strategies
from cache.manager import CacheManager
from common.errors import ConfigurationError
from common.matcher import PatternMatcher, default_matchers
from constants import Constants, Matchers
from descriptor.models import ModuleId
from resolver.base import ResolverContext
from resolver.filesystem import FileSystemResolver
from resolver.latest import LatestStrategy, default_latest_strategies
from resolver.namespace import SYSTEM_NAMESPACE, MridPattern, MridTransformation, Namespace, NamespaceRule
from versioning.matcher import VersionMatcher

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[Mapping[str, Any], "ResolverSettings"], ResolverContext]


@dataclass(frozen=True)
class ModuleRule:
    """Routes modules whose organisation and name match to a resolver."""

    organisation: str
    module: str
    resolver: str
    matcher: str = Matchers.EXACT.value


class ResolverSettings:  # pylint: disable=too-many-instance-attributes
    """Explicit registry of everything resolvers and caches look up by name."""

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        resolution_cache_dir: Optional[str] = None,
        validate: bool = True,
    ):
        self.cache_dir = os.path.expanduser(
            cache_dir or os.environ.get(Constants.ENV_CACHE_DIR) or Constants.DEFAULT_CACHE_DIR
        )
        self.resolution_cache_dir = os.path.expanduser(resolution_cache_dir) if resolution_cache_dir else None
        self.validate = validate
        self.descriptor_pattern = Constants.CACHE_DESCRIPTOR_PATTERN
        self.artifact_pattern = Constants.CACHE_ARTIFACT_PATTERN
        self.data_file_pattern = Constants.CACHE_DATA_FILE_PATTERN
        self.version_matcher = VersionMatcher()
        self.default_resolver_name: Optional[str] = None
        self._resolvers: Dict[str, ResolverContext] = {}
        self._module_rules: List[ModuleRule] = []
        self._latest_strategies: Dict[str, LatestStrategy] = default_latest_strategies()
        self._default_latest_name = Constants.DEFAULT_LATEST_STRATEGY
        self._namespaces: Dict[str, Namespace] = {SYSTEM_NAMESPACE.name: SYSTEM_NAMESPACE}
        self._matchers: Dict[str, PatternMatcher] = default_matchers()
        self._lock_strategies: Dict[str, LockStrategy] = default_lock_strategies()
        self._default_lock_name = Constants.DEFAULT_LOCK_STRATEGY
        self._cache_manager: Optional[CacheManager] = None

    # Resolvers

    def add_resolver(self, resolver: ResolverContext) -> None:
        if not resolver.name:
            raise ConfigurationError("resolvers must have a name")
        if resolver.name in self._resolvers:
            raise ConfigurationError(f"duplicate resolver name '{resolver.name}'")
        if resolver.settings is None:
            resolver.settings = self
        self._resolvers[resolver.name] = resolver

    def get_resolver(self, name: Optional[str]) -> Optional[ResolverContext]:
        if name is None:
            return None
        return self._resolvers.get(name)

    def resolver_names(self) -> List[str]:
        return list(self._resolvers)

    @property
    def default_resolver(self) -> Optional[ResolverContext]:
        return self.get_resolver(self.default_resolver_name)

    def add_module_rule(self, rule: ModuleRule) -> None:
        if rule.matcher not in self._matchers:
            raise ConfigurationError(f"unknown matcher '{rule.matcher}' in module rule {rule}")
        self._module_rules.append(rule)

    def resolver_for_module(self, module_id: ModuleId) -> Optional[ResolverContext]:
        """Resolver of the first module rule matching ``module_id``, else the default resolver."""
        for rule in self._module_rules:
            pattern_matcher = self._matchers[rule.matcher]
            if (pattern_matcher.get_matcher(rule.organisation).matches(module_id.organisation)
                    and pattern_matcher.get_matcher(rule.module).matches(module_id.name)):
                resolver = self.get_resolver(rule.resolver)
                if resolver is None:
                    logger.warning("module rule %s names an unknown resolver", rule)
                return resolver
        return self.default_resolver

    # Latest strategies

    def add_latest_strategy(self, strategy: LatestStrategy) -> None:
        self._latest_strategies[strategy.name] = strategy

    def get_latest_strategy(self, name: str) -> Optional[LatestStrategy]:
        return self._latest_strategies.get(name)

    @property
    def default_latest_strategy(self) -> LatestStrategy:
        return self._latest_strategies[self._default_latest_name]

    def set_default_latest_strategy(self, name: str) -> None:
        if name not in self._latest_strategies:
            raise ConfigurationError(f"unknown latest strategy '{name}'")
        self._default_latest_name = name

    # Namespaces

    def add_namespace(self, namespace: Namespace) -> None:
        self._namespaces[namespace.name] = namespace

    def get_namespace(self, name: str) -> Optional[Namespace]:
        return self._namespaces.get(name)

    @property
    def system_namespace(self) -> Namespace:
        return self._namespaces[Constants.SYSTEM_NAMESPACE]

    # Matchers

    def add_matcher(self, matcher: PatternMatcher) -> None:
        self._matchers[matcher.name] = matcher

    def get_matcher(self, name: str) -> Optional[PatternMatcher]:
        return self._matchers.get(name)

    # Locking and cache

    def add_lock_strategy(self, strategy: LockStrategy) -> None:
        self._lock_strategies[strategy.name] = strategy

    def get_lock_strategy(self, name: str) -> Optional[LockStrategy]:
        return self._lock_strategies.get(name)

    @property
    def default_lock_strategy(self) -> LockStrategy:
        return self._lock_strategies[self._default_lock_name]

    def set_default_lock_strategy(self, name: str) -> None:
        if name not in self._lock_strategies:
            raise ConfigurationError(f"unknown lock strategy '{name}'")
        self._default_lock_name = name

    @property
    def default_cache_manager(self) -> CacheManager:
        if self._cache_manager is None:
            self._cache_manager = CacheManager(self)
        return self._cache_manager

    @default_cache_manager.setter
    def default_cache_manager(self, cache: CacheManager) -> None:
        self._cache_manager = cache

    def dump_config(self) -> None:
        logger.info("cache: %s", self.cache_dir)
        logger.info("default resolver: %s", self.default_resolver_name)
        logger.info("default latest strategy: %s", self._default_latest_name)
        logger.info("resolvers:")
        for resolver in self._resolvers.values():
            resolver.dump_config()

    # Construction from data

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> "ResolverSettings":
        """Build settings from loaded YAML/JSON data.

        Raises:
            ConfigurationError: On unknown resolver types, matchers or strategies.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("settings must be a mapping")
        cache_cfg = data.get("cache") or {}
        settings = cls(
            cache_dir=os.environ.get(Constants.ENV_CACHE_DIR) or cache_cfg.get("dir"),
            resolution_cache_dir=cache_cfg.get("resolution_dir"),
            validate=bool(data.get("validate", True)),
        )
        for key in ("descriptor_pattern", "artifact_pattern", "data_file_pattern"):
            if cache_cfg.get(key):
                setattr(settings, key, str(cache_cfg[key]))
        if cache_cfg.get("lock_strategy"):
            settings.set_default_lock_strategy(str(cache_cfg["lock_strategy"]))
        if data.get("statuses"):
            settings.version_matcher = VersionMatcher([str(s) for s in data["statuses"]])
        if data.get("default_latest_strategy"):
            settings.set_default_latest_strategy(str(data["default_latest_strategy"]))

        for ns_cfg in data.get("namespaces") or []:
            settings.add_namespace(_namespace_from_config(ns_cfg))
        for res_cfg in data.get("resolvers") or []:
            settings.add_resolver(_resolver_from_config(res_cfg, settings))
        settings.default_resolver_name = data.get("default_resolver")
        if settings.default_resolver_name and settings.default_resolver is None:
            raise ConfigurationError(f"unknown default resolver '{settings.default_resolver_name}'")
        for rule_cfg in data.get("modules") or []:
            settings.add_module_rule(ModuleRule(
                organisation=str(rule_cfg.get("organisation", "*")),
                module=str(rule_cfg.get("module", "*")),
                resolver=str(rule_cfg["resolver"]),
                matcher=str(rule_cfg.get("matcher", Matchers.EXACT.value)),
            ))
        return settings


def _mrid_pattern(data: Optional[Mapping[str, Any]]) -> MridPattern:
    data = data or {}
    return MridPattern(data.get("organisation"), data.get("module"), data.get("revision"))


def _transformation(data: Mapping[str, Any]) -> MridTransformation:
    sources = data.get("src") or [{}]
    if isinstance(sources, Mapping):
        sources = [sources]
    return MridTransformation([_mrid_pattern(s) for s in sources], _mrid_pattern(data.get("dest")))


def _namespace_from_config(data: Mapping[str, Any]) -> Namespace:
    if not data.get("name"):
        raise ConfigurationError("namespaces must have a name")
    namespace = Namespace(str(data["name"]), chain_rules=bool(data.get("chain_rules", False)))
    for index, rule in enumerate(data.get("rules") or []):
        namespace.add_rule(NamespaceRule(
            name=str(rule.get("name", f"rule-{index}")),
            from_system=_transformation(rule.get("from_system") or {}),
            to_system=_transformation(rule.get("to_system") or {}),
            description=str(rule.get("description", "")),
        ))
    return namespace


def _common_resolver_args(data: Mapping[str, Any], settings: "ResolverSettings") -> Dict[str, Any]:
    return {
        "name": data.get("name"),
        "settings": settings,
        "validate": data.get("validate"),
        "changing_pattern": data.get("changing_pattern"),
        "changing_matcher_name": data.get("changing_matcher", Constants.DEFAULT_CHANGING_MATCHER),
        "namespace": data.get("namespace"),
        "latest": data.get("latest"),
    }


def _filesystem_resolver(data: Mapping[str, Any], settings: "ResolverSettings") -> ResolverContext:
    return FileSystemResolver(
        descriptor_patterns=list(data.get("descriptors") or []),
        artifact_patterns=list(data.get("artifacts") or []),
        **_common_resolver_args(data, settings),
    )


RESOLVER_TYPES: Dict[str, ResolverFactory] = {
    FileSystemResolver.type_name: _filesystem_resolver,
}


def register_resolver_type(type_name: str, factory: ResolverFactory) -> None:
    """Make ``type_name`` usable as a resolver ``type`` in settings files."""
    RESOLVER_TYPES[type_name] = factory


def _resolver_from_config(data: Mapping[str, Any], settings: "ResolverSettings") -> ResolverContext:
    type_name = data.get("type")
    factory = RESOLVER_TYPES.get(str(type_name))
    if factory is None:
        raise ConfigurationError(
            f"unknown resolver type '{type_name}' for resolver '{data.get('name')}'"
        )
    return factory(data, settings)


def load_settings(path: str) -> ResolverSettings:
    """Load settings from a YAML or JSON file.

    Raises:
        ConfigurationError: When the file cannot be read or is invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot load settings from {path}: {exc}") from exc
    settings = ResolverSettings.from_config(data or {})
    logger.debug("Loaded settings from %s with resolvers %s", path, settings.resolver_names())
    return settings
