"""Identity and descriptor data models for modules and artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

from common.matcher import AnyMatcher, default_matchers
from constants import Constants, Matchers

if TYPE_CHECKING:
    from .dependency import DependencyEdge

ExtraAttributes = Tuple[Tuple[str, str], ...]
_FILTER_MATCHERS = default_matchers()


def _freeze(extra: Optional[Mapping[str, str]]) -> ExtraAttributes:
    if not extra:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in extra.items()))


@dataclass(frozen=True)
class ModuleId:
    """Organisation + module name."""

    organisation: str
    name: str

    def __str__(self) -> str:
        return f"{self.organisation}#{self.name}"


@dataclass(frozen=True)
class ModuleRevisionId:
    """One revision of one module, optionally qualified by extra attributes."""

    organisation: str
    name: str
    revision: str
    extra_attributes: ExtraAttributes = ()

    @classmethod
    def new(
        cls,
        organisation: str,
        name: str,
        revision: str,
        extra: Optional[Mapping[str, str]] = None,
    ) -> "ModuleRevisionId":
        return cls(organisation, name, revision, _freeze(extra))

    @classmethod
    def from_module_id(cls, module_id: ModuleId, revision: str) -> "ModuleRevisionId":
        return cls(module_id.organisation, module_id.name, revision)

    @property
    def module_id(self) -> ModuleId:
        return ModuleId(self.organisation, self.name)

    @property
    def extra(self) -> Dict[str, str]:
        return dict(self.extra_attributes)

    def with_revision(self, revision: str) -> "ModuleRevisionId":
        return replace(self, revision=revision)

    def __str__(self) -> str:
        return f"{self.organisation}#{self.name};{self.revision}"


@dataclass(frozen=True)
class ArtifactRevisionId:
    """Full identity of an artifact; the basis of its metadata key."""

    module_revision_id: ModuleRevisionId
    name: str
    type: str
    ext: str
    extra_attributes: ExtraAttributes = ()

    def __str__(self) -> str:
        return f"{self.module_revision_id}!{self.name}.{self.ext}({self.type})"


@dataclass(frozen=True)
class Artifact:
    """A published file of a module revision."""

    module_revision_id: ModuleRevisionId
    name: str
    type: str
    ext: str
    url: Optional[str] = None
    publication: Optional[datetime] = None
    configurations: Tuple[str, ...] = ()
    extra_attributes: ExtraAttributes = ()

    @classmethod
    def descriptor_artifact(
        cls, mrid: ModuleRevisionId, publication: Optional[datetime] = None
    ) -> "Artifact":
        """Pseudo-artifact addressing the module descriptor file itself."""
        return cls(
            mrid,
            Constants.DESCRIPTOR_ARTIFACT_NAME,
            Constants.DESCRIPTOR_ARTIFACT_TYPE,
            Constants.DESCRIPTOR_ARTIFACT_EXT,
            publication=publication,
        )

    @property
    def id(self) -> ArtifactRevisionId:  # pylint: disable=invalid-name
        return ArtifactRevisionId(
            self.module_revision_id, self.name, self.type, self.ext, self.extra_attributes
        )

    @property
    def extra(self) -> Dict[str, str]:
        return dict(self.extra_attributes)

    def with_module_revision_id(self, mrid: ModuleRevisionId) -> "Artifact":
        return replace(self, module_revision_id=mrid)

    def __str__(self) -> str:
        return str(self.id)


@dataclass(frozen=True)
class ArtifactFilter:
    """Include/exclude rule on a dependency, tested against artifact name/type/ext.

    Each field is an expression for ``matcher``; ``*`` matches anything.
    """

    name: str = "*"
    type: str = "*"
    ext: str = "*"
    matcher: str = Matchers.EXACT.value

    def matches(self, artifact: Artifact) -> bool:
        pattern_matcher = _FILTER_MATCHERS.get(self.matcher)
        if pattern_matcher is None:
            raise ValueError(f"unknown matcher '{self.matcher}' in artifact filter {self}")
        for expression, value in (
            (self.name, artifact.name),
            (self.type, artifact.type),
            (self.ext, artifact.ext),
        ):
            m = pattern_matcher.get_matcher(expression)
            if not isinstance(m, AnyMatcher) and not m.matches(value):
                return False
        return True


@dataclass
class Configuration:
    """A named usage scope of a module."""

    name: str
    extends: Tuple[str, ...] = ()
    description: str = ""
    transitive: bool = True


@dataclass
class ModuleDescriptor:
    """Descriptor of one module revision: configurations, artifacts and dependencies."""

    revision_id: ModuleRevisionId
    resolved_revision_id: Optional[ModuleRevisionId] = None
    status: str = Constants.DEFAULT_STATUS
    publication: Optional[datetime] = None
    configurations: Dict[str, Configuration] = field(default_factory=dict)
    artifacts: Dict[str, List[Artifact]] = field(default_factory=dict)
    dependencies: List["DependencyEdge"] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.resolved_revision_id is None:
            self.resolved_revision_id = self.revision_id

    @property
    def module_id(self) -> ModuleId:
        return self.revision_id.module_id

    def add_configuration(self, configuration: Configuration) -> None:
        self.configurations[configuration.name] = configuration

    def configuration_names(self) -> List[str]:
        return list(self.configurations)

    def add_artifact(self, conf: str, artifact: Artifact) -> None:
        self.artifacts.setdefault(conf, [])
        if artifact not in self.artifacts[conf]:
            self.artifacts[conf].append(artifact)

    def artifacts_for(self, conf: str) -> List[Artifact]:
        return list(self.artifacts.get(conf, []))

    def all_artifacts(self) -> List[Artifact]:
        seen: Dict[Artifact, None] = {}
        for arts in self.artifacts.values():
            for art in arts:
                seen.setdefault(art, None)
        return list(seen)

    def add_dependency(self, edge: "DependencyEdge") -> None:
        self.dependencies.append(edge)

    def descriptor_artifact(self) -> Artifact:
        return Artifact.descriptor_artifact(self.resolved_revision_id, self.publication)

