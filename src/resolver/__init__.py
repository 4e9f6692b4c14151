"""Resolvers: namespaces, latest strategies and the resolver base contract."""

from .models import ResolveData, ResolvedModuleRevision
from .namespace import MridPattern, MridTransformation, Namespace, NamespaceRule, SYSTEM_NAMESPACE
from .latest import (
    LatestLexicoStrategy,
    LatestRevisionStrategy,
    LatestSemverStrategy,
    LatestStrategy,
    LatestTimeStrategy,
    RevisionInfo,
)
from .base import ResolverContext
from .filesystem import FileSystemResolver

__all__ = [
    "FileSystemResolver",
    "LatestLexicoStrategy",
    "LatestRevisionStrategy",
    "LatestSemverStrategy",
    "LatestStrategy",
    "LatestTimeStrategy",
    "MridPattern",
    "MridTransformation",
    "Namespace",
    "NamespaceRule",
    "ResolveData",
    "ResolvedModuleRevision",
    "ResolverContext",
    "RevisionInfo",
    "SYSTEM_NAMESPACE",
]
