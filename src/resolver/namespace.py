"""Namespaces: translation between a resolver's identifiers and the system's.

A namespace holds ordered rules. Each rule carries a ``to_system`` and a
``from_system`` transformation; a transformation matches module revision
ids with regexes and rewrites them from a destination template that can
reference the match groups as ``$o<n>`` (organisation), ``$m<n>``
(module) and ``$r<n>`` (revision).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from constants import Constants
from descriptor.dependency import DependencyEdge
from descriptor.models import Artifact, ModuleDescriptor, ModuleRevisionId
from .models import ResolvedModuleRevision

if TYPE_CHECKING:
    from settings import ResolverSettings

logger = logging.getLogger(__name__)

_GROUP_REF = re.compile(r"\$([omr])(\d+)")


@dataclass(frozen=True)
class MridPattern:
    """Regexes (or templates, when used as a destination) for each id part."""

    organisation: Optional[str] = None
    module: Optional[str] = None
    revision: Optional[str] = None


@dataclass
class MridTransformation:
    """Rewrites ids matching any ``sources`` pattern according to ``dest``."""

    sources: List[MridPattern]
    dest: MridPattern

    def __post_init__(self) -> None:
        self._compiled = [
            tuple(re.compile(p if p is not None else ".*") for p in (s.organisation, s.module, s.revision))
            for s in self.sources
        ]

    def transform(self, mrid: ModuleRevisionId) -> Optional[ModuleRevisionId]:
        """Return the rewritten id, or None when no source pattern matches."""
        for org_re, mod_re, rev_re in self._compiled:
            matches = {
                "o": org_re.fullmatch(mrid.organisation),
                "m": mod_re.fullmatch(mrid.name),
                "r": rev_re.fullmatch(mrid.revision),
            }
            if all(matches.values()):
                return ModuleRevisionId(
                    self._fill(self.dest.organisation, mrid.organisation, matches),
                    self._fill(self.dest.module, mrid.name, matches),
                    self._fill(self.dest.revision, mrid.revision, matches),
                    mrid.extra_attributes,
                )
        return None

    @staticmethod
    def _fill(template: Optional[str], original: str, matches: Dict[str, re.Match]) -> str:
        if template is None:
            return original
        return _GROUP_REF.sub(lambda g: matches[g.group(1)].group(int(g.group(2))) or "", template)


@dataclass
class NamespaceRule:
    name: str
    from_system: MridTransformation
    to_system: MridTransformation
    description: str = ""


@dataclass
class Namespace:
    """Named ordered rule set; the system namespace has no rules."""

    name: str
    rules: List[NamespaceRule] = field(default_factory=list)
    chain_rules: bool = False

    def add_rule(self, rule: NamespaceRule) -> None:
        self.rules.append(rule)

    def to_system_id(self, mrid: ModuleRevisionId) -> ModuleRevisionId:
        return self._apply(mrid, [r.to_system for r in self.rules])

    def from_system_id(self, mrid: ModuleRevisionId) -> ModuleRevisionId:
        return self._apply(mrid, [r.from_system for r in self.rules])

    def _apply(self, mrid: ModuleRevisionId, transformations: Sequence[MridTransformation]) -> ModuleRevisionId:
        for transformation in transformations:
            transformed = transformation.transform(mrid)
            if transformed is not None:
                mrid = transformed
                if not self.chain_rules:
                    break
        return mrid

    def to_system(self, obj: Any) -> Any:
        """Translate an id, artifact, edge, descriptor or resolved revision into system space."""
        return translate(obj, self.to_system_id)

    def from_system(self, obj: Any) -> Any:
        """Translate a system-space object into this namespace."""
        return translate(obj, self.from_system_id)

    @property
    def is_identity(self) -> bool:
        return not self.rules


SYSTEM_NAMESPACE = Namespace(Constants.SYSTEM_NAMESPACE)


def translate(obj: Any, transform) -> Any:
    """Apply an id transformation to every id held by ``obj``."""
    if obj is None:
        return None
    if isinstance(obj, ModuleRevisionId):
        return transform(obj)
    if isinstance(obj, Artifact):
        return obj.with_module_revision_id(transform(obj.module_revision_id))
    if isinstance(obj, DependencyEdge):
        parent = transform(obj.parent) if obj.parent is not None else None
        return DependencyEdge.with_target(obj, transform(obj.target), parent)
    if isinstance(obj, ModuleDescriptor):
        md = ModuleDescriptor(
            revision_id=transform(obj.revision_id),
            resolved_revision_id=transform(obj.resolved_revision_id),
            status=obj.status,
            publication=obj.publication,
            configurations=dict(obj.configurations),
        )
        for conf, artifacts in obj.artifacts.items():
            for artifact in artifacts:
                md.add_artifact(conf, translate(artifact, transform))
        for edge in obj.dependencies:
            md.add_dependency(translate(edge, transform))
        return md
    if isinstance(obj, ResolvedModuleRevision):
        return obj.with_descriptor(translate(obj.descriptor, transform))
    raise TypeError(f"cannot translate {type(obj).__name__} between namespaces")


def select_namespace(
    explicit: Optional[Namespace],
    name: Optional[str],
    settings: Optional["ResolverSettings"],
    owner: Optional[str] = None,
) -> Namespace:
    """Resolve the namespace of ``owner``; unknown names fall back to the system namespace."""
    if explicit is not None:
        return explicit
    if settings is None:
        logger.debug("%s: no namespace defined nor settings: using system namespace", owner)
        return SYSTEM_NAMESPACE
    if name is not None:
        namespace = settings.get_namespace(name)
        if namespace is None:
            logger.warning("unknown namespace '%s' for %s: using system namespace", name, owner)
            return settings.system_namespace
        return namespace
    logger.debug("%s: no namespace defined: using system", owner)
    return settings.system_namespace
