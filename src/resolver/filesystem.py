"""Resolver over a repository laid out on the local filesystem."""

from __future__ import annotations

import glob
import logging
import os
from typing import Dict, Iterable, List, Optional, Sequence

from cache.patterns import (
    MODULE_KEY,
    ORGANISATION_KEY,
    REVISION_KEY,
    substitute_artifact,
    substitute_revision,
    token_listing,
    tokens_for_revision,
)
from cache.report import DownloadOptions, DownloadReport
from cache.repository import FileResource, FileResourceDownloader, ResolvedResource, ResourceResolver
from common.logging_utils import extra_context, is_debug_enabled
from descriptor.dependency import DependencyEdge
from descriptor.models import Artifact, ModuleId, ModuleRevisionId
from descriptor.parser import DescriptorParseError, parse_descriptor
from versioning.matcher import VersionMatcher
from versioning.models import RevisionKind
from versioning.parser import classify_revision
from .base import ResolverContext
from .latest import RevisionInfo
from .models import ResolveData, ResolvedModuleRevision

logger = logging.getLogger(__name__)


class _PatternResourceResolver(ResourceResolver):
    """Finds artifact files through the resolver's artifact patterns."""

    def __init__(self, resolver: "FileSystemResolver"):
        self._resolver = resolver

    def resolve(self, artifact: Artifact) -> Optional[ResolvedResource]:
        return self._resolver.find_artifact_resource(artifact)

    def __str__(self) -> str:
        return str(self._resolver)


class FileSystemResolver(ResolverContext):
    """Resolves descriptors and artifacts from files matching path patterns.

    Patterns use the cache pattern tokens, e.g.
    ``/repo/[organisation]/[module]/[revision]/descriptor.yaml``.
    """

    type_name = "filesystem"

    def __init__(
        self,
        name: Optional[str] = None,
        descriptor_patterns: Optional[Sequence[str]] = None,
        artifact_patterns: Optional[Sequence[str]] = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.descriptor_patterns: List[str] = [os.path.expanduser(p) for p in descriptor_patterns or []]
        self.artifact_patterns: List[str] = [os.path.expanduser(p) for p in artifact_patterns or []]
        self._downloader = FileResourceDownloader()

    def _version_matcher(self) -> VersionMatcher:
        if self.settings is not None:
            return self.settings.version_matcher
        return VersionMatcher()

    def get_dependency(self, edge: DependencyEdge, data: ResolveData) -> Optional[ResolvedModuleRevision]:
        system_mrid = edge.target
        edge = self.from_system(edge)
        mrid = edge.target
        matcher = self._version_matcher()
        dynamic = matcher.is_dynamic(mrid)
        changing = edge.changing or self.is_changing(mrid)

        if not dynamic and not changing:
            cached = self.find_module_in_cache(data, system_mrid)
            if cached is not None:
                if is_debug_enabled(logger):
                    logger.debug(
                        "Resolved from cache",
                        extra=extra_context(event="resolve", component="resolver", outcome="cache_hit",
                                            target=str(system_mrid), resolver=self.name),
                    )
                return cached

        found = self._find_descriptor(mrid, matcher, data)
        if found is None:
            logger.debug("%s: no descriptor found for %s", self.name, mrid)
            return None
        try:
            md = parse_descriptor(found.location, validate=self.do_validate(data))
        except DescriptorParseError as exc:
            logger.warning("%s: invalid descriptor for %s: %s", self.name, mrid, exc)
            self.report_failure()
            return None
        md.resolved_revision_id = md.revision_id.with_revision(found.revision)

        md = self.to_system(md)
        data.cache.save_descriptor(md)
        data.cache.save_resolver(md, self.name)
        data.cache.save_art_resolver(md, self.name)
        logger.info(
            "Module resolved",
            extra=extra_context(event="resolve", component="resolver", outcome="found",
                                target=str(md.resolved_revision_id), resolver=self.name),
        )
        return ResolvedModuleRevision(self, self, md, is_downloaded=True, is_searched=dynamic)

    def _find_descriptor(
        self, mrid: ModuleRevisionId, matcher: VersionMatcher, data: ResolveData
    ) -> Optional[RevisionInfo]:
        for pattern in self.descriptor_patterns:
            if not matcher.is_dynamic(mrid):
                path = substitute_revision(pattern, mrid)
                if os.path.isfile(path):
                    return RevisionInfo(mrid.revision, os.path.getmtime(path), path)
                continue
            candidates = [
                info for info in self._list(pattern, REVISION_KEY, tokens_for_revision(mrid))
                if matcher.accept(mrid, info.revision)
                and (data.date is None or info.last_modified <= data.date)
            ]
            for info in reversed(self.latest_strategy.sort(candidates)):
                if classify_revision(mrid.revision) is RevisionKind.LATEST:
                    status = self._peek_status(info.location)
                    if status is None or not matcher.accept(mrid, info.revision, status):
                        continue
                return info
        return None

    @staticmethod
    def _peek_status(path: str) -> Optional[str]:
        try:
            return parse_descriptor(path, validate=False).status
        except DescriptorParseError as exc:
            logger.debug("skipping unreadable candidate %s: %s", path, exc)
            return None

    @staticmethod
    def _list(pattern: str, token: str, tokens: Dict[str, str]) -> Iterable[RevisionInfo]:
        glob_pattern, regex = token_listing(pattern, token, tokens)
        for path in glob.glob(glob_pattern):
            match = regex.fullmatch(path)
            if match:
                yield RevisionInfo(match.group("value"), os.path.getmtime(path), path)

    def find_artifact_resource(self, artifact: Artifact) -> Optional[ResolvedResource]:
        """Resource of a system-space ``artifact`` in this repository, if any."""
        local = self.from_system(artifact)
        for pattern in self.artifact_patterns:
            resource = FileResource(substitute_artifact(pattern, local))
            if resource.exists():
                return ResolvedResource(resource, local.module_revision_id.revision)
        return None

    def download(self, artifacts: Sequence[Artifact], options: DownloadOptions) -> DownloadReport:
        report = DownloadReport()
        resource_resolver = _PatternResourceResolver(self)
        for artifact in artifacts:
            artifact_options = options
            if not options.force and self.is_changing(artifact.module_revision_id):
                artifact_options = DownloadOptions(force=True, use_origin=options.use_origin,
                                                   listener=options.listener)
            report.add(self.cache.download(artifact, resource_resolver, self._downloader, artifact_options))
        return report

    def exists(self, artifact: Artifact) -> bool:
        return self.find_artifact_resource(artifact) is not None

    def list_organisations(self) -> List[str]:
        found = set()
        for pattern in self.descriptor_patterns:
            found.update(info.revision for info in self._list(pattern, ORGANISATION_KEY, {}))
        return sorted(found)

    def list_modules(self, organisation: str) -> List[ModuleId]:
        found = set()
        for pattern in self.descriptor_patterns:
            for info in self._list(pattern, MODULE_KEY, {ORGANISATION_KEY: organisation}):
                found.add(ModuleId(organisation, info.revision))
        return sorted(found, key=lambda m: m.name)

    def list_revisions(self, module_id: ModuleId) -> List[ModuleRevisionId]:
        infos: Dict[str, RevisionInfo] = {}
        tokens = {ORGANISATION_KEY: module_id.organisation, MODULE_KEY: module_id.name}
        for pattern in self.descriptor_patterns:
            for info in self._list(pattern, REVISION_KEY, tokens):
                infos.setdefault(info.revision, info)
        return [
            ModuleRevisionId.from_module_id(module_id, info.revision)
            for info in self.latest_strategy.sort(infos.values())
        ]

    def dump_config(self) -> None:
        super().dump_config()
        for pattern in self.descriptor_patterns:
            logger.info("\t\tdescriptor pattern: %s", pattern)
        for pattern in self.artifact_patterns:
            logger.info("\t\tartifact pattern: %s", pattern)
