"""Resolution results and per-run resolve data."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional, TYPE_CHECKING

from descriptor.models import ModuleDescriptor, ModuleRevisionId

if TYPE_CHECKING:
    from cache.manager import CacheManager
    from settings import ResolverSettings


@dataclass(frozen=True)
class ResolvedModuleRevision:
    """A module descriptor together with the resolvers that produced it."""

    resolver: Any
    artifact_resolver: Any
    descriptor: ModuleDescriptor
    is_downloaded: bool = False
    is_searched: bool = False

    @property
    def id(self) -> ModuleRevisionId:  # pylint: disable=invalid-name
        return self.descriptor.resolved_revision_id

    def with_descriptor(self, descriptor: ModuleDescriptor) -> "ResolvedModuleRevision":
        return replace(self, descriptor=descriptor)

    def __str__(self) -> str:
        name = getattr(self.resolver, "name", None)
        return f"{self.id} (resolved by {name})"


@dataclass
class ResolveData:
    """Context handed to resolvers for one resolution run."""

    settings: "ResolverSettings"
    cache: "CacheManager"
    validate: bool = True
    date: Optional[float] = None
