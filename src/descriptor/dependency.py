"""Dependency edge model: per-configuration mapping and artifact filters.

A ``DependencyEdge`` says "module A, in configuration C, depends on module
B". Mapping rules are keyed by master configuration (or the ``*``
wildcard) and may use the self-fallback tokens ``@`` and ``@(suffix)``,
which stand for the master configuration name itself.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Union

from .models import Artifact, ArtifactFilter, ModuleId, ModuleRevisionId

WILDCARD = "*"
SELF_FALLBACK_PATTERN = re.compile(r"@(?:\((.*)\))?")

ConfArg = Union[str, Sequence[str]]


def _check_conf(conf: Optional[str]) -> str:
    if not conf:
        raise ValueError("configuration name must be a non-empty string")
    return conf


class DependencyEdge:
    """One dependency relationship of a module descriptor."""

    def __init__(
        self,
        target: ModuleRevisionId,
        parent: Optional[ModuleRevisionId] = None,
        force: bool = False,
        changing: bool = False,
        transitive: bool = True,
    ):
        self._target = target
        self._parent = parent
        self._force = force
        self._changing = changing
        self._transitive = transitive
        self._confs: Dict[str, List[str]] = {}
        self._includes: Dict[str, List[ArtifactFilter]] = {}
        self._excludes: Dict[str, List[ArtifactFilter]] = {}
        self._extends: Set[str] = set()

    @classmethod
    def with_revision(cls, edge: "DependencyEdge", revision: str) -> "DependencyEdge":
        """Clone ``edge`` targeting ``revision`` of the same module."""
        clone = cls(
            ModuleRevisionId.from_module_id(edge.dependency_id, revision),
            parent=edge.parent,
            force=edge.force,
            changing=edge.changing,
            transitive=edge.transitive,
        )
        clone._copy_rules_from(edge)
        return clone

    @classmethod
    def with_target(
        cls,
        edge: "DependencyEdge",
        target: ModuleRevisionId,
        parent: Optional[ModuleRevisionId] = None,
    ) -> "DependencyEdge":
        """Clone ``edge`` with a new target and parent (used by namespace translation)."""
        clone = cls(
            target,
            parent=parent,
            force=edge.force,
            changing=edge.changing,
            transitive=edge.transitive,
        )
        clone._copy_rules_from(edge)
        return clone

    def _copy_rules_from(self, edge: "DependencyEdge") -> None:
        for conf in edge.module_configurations():
            self._confs[conf] = list(edge._confs.get(conf, []))
        for conf, filters in edge._includes.items():
            self._includes[conf] = list(filters)
        for conf, filters in edge._excludes.items():
            self._excludes[conf] = list(filters)
        self._extends = set(edge._extends)

    @property
    def target(self) -> ModuleRevisionId:
        return self._target

    @property
    def dependency_id(self) -> ModuleId:
        return self._target.module_id

    @property
    def parent(self) -> Optional[ModuleRevisionId]:
        return self._parent

    @property
    def force(self) -> bool:
        return self._force

    @property
    def changing(self) -> bool:
        return self._changing

    @property
    def transitive(self) -> bool:
        return self._transitive

    @property
    def extended_configurations(self) -> Set[str]:
        return set(self._extends)

    def module_configurations(self) -> List[str]:
        """Master configurations with a mapping rule, in insertion order."""
        return list(self._confs)

    def dependency_configurations(self, master: ConfArg) -> List[str]:
        """Resolve the dependency configurations required by ``master``.

        Args:
            master: A master configuration name, or a sequence of them.

        Returns:
            Ordered, duplicate-free configuration names; exactly ``["*"]``
            whenever the wildcard is among them.
        """
        if not isinstance(master, str):
            confs: Dict[str, None] = {}
            for conf in master:
                confs.update(dict.fromkeys(self.dependency_configurations(conf)))
            if WILDCARD in confs:
                return [WILDCARD]
            return list(confs)

        ret: Dict[str, None] = dict.fromkeys(self._confs.get(master, []))
        ret.update(dict.fromkeys(self._confs.get(WILDCARD, [])))
        for conf in list(ret):
            match = SELF_FALLBACK_PATTERN.fullmatch(conf)
            if match:
                del ret[conf]
                suffix = match.group(1)
                ret[master + suffix if suffix is not None else master] = None
                break
        if WILDCARD in ret:
            return [WILDCARD]
        return list(ret)

    def artifact_includes(self, master: ConfArg) -> Set[ArtifactFilter]:
        return self._filters(master, self._includes)

    def artifact_excludes(self, master: ConfArg) -> Set[ArtifactFilter]:
        return self._filters(master, self._excludes)

    def all_artifact_includes(self) -> Set[ArtifactFilter]:
        return {f for filters in self._includes.values() for f in filters}

    def all_artifact_excludes(self) -> Set[ArtifactFilter]:
        return {f for filters in self._excludes.values() for f in filters}

    @staticmethod
    def _filters(master: ConfArg, filters_map: Dict[str, List[ArtifactFilter]]) -> Set[ArtifactFilter]:
        # An empty map means "no filtering", not "nothing matches".
        if not filters_map:
            return set()
        masters: Iterable[str] = [master] if isinstance(master, str) else master
        ret: Set[ArtifactFilter] = set()
        for conf in masters:
            ret.update(filters_map.get(conf, []))
        ret.update(filters_map.get(WILDCARD, []))
        return ret

    def is_artifact_selected(self, master: ConfArg, artifact: Artifact) -> bool:
        """Apply exclude then include filters of ``master`` to ``artifact``."""
        if any(f.matches(artifact) for f in self.artifact_excludes(master)):
            return False
        includes = self.artifact_includes(master)
        return not includes or any(f.matches(artifact) for f in includes)

    def add_dependency_configuration(self, master: str, dependency_conf: str) -> None:
        confs = self._confs.setdefault(_check_conf(master), [])
        if dependency_conf not in confs:
            confs.append(_check_conf(dependency_conf))

    def add_artifact_include(self, master: str, artifact_filter: ArtifactFilter) -> None:
        self._includes.setdefault(_check_conf(master), []).append(artifact_filter)

    def add_artifact_exclude(self, master: str, artifact_filter: ArtifactFilter) -> None:
        self._excludes.setdefault(_check_conf(master), []).append(artifact_filter)

    def add_extends(self, conf: str) -> None:
        self._extends.add(_check_conf(conf))

    def mapping(self) -> Dict[str, List[str]]:
        """Copy of the raw master -> dependency configuration mapping."""
        return {k: list(v) for k, v in self._confs.items()}

    def include_rules(self) -> Dict[str, List[ArtifactFilter]]:
        return {k: list(v) for k, v in self._includes.items()}

    def exclude_rules(self) -> Dict[str, List[ArtifactFilter]]:
        return {k: list(v) for k, v in self._excludes.items()}

    def __repr__(self) -> str:
        return f"dependency: {self._target} {self._confs}"
