"""On-disk repository cache: paths, provenance metadata and locked downloads."""

from __future__ import annotations

import glob
import logging
import os
import threading
import zlib
from typing import List, Optional, TYPE_CHECKING

from common.errors import ConfigurationError
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants
from descriptor.models import Artifact, ModuleDescriptor, ModuleRevisionId
from descriptor.parser import DescriptorParseError, parse_descriptor, write_descriptor
from resolver.models import ResolvedModuleRevision
from versioning.matcher import VersionMatcher
from .lock import FileLockStrategy, LockStrategy
from .patterns import substitute_artifact, substitute_revision
from .properties import PropertiesFile
from .report import ArtifactDownloadReport, ArtifactOrigin, DownloadOptions, DownloadStatus
from .repository import ResourceDownloader, ResourceResolver

if TYPE_CHECKING:
    from settings import ResolverSettings

logger = logging.getLogger(__name__)

_LOCATION_SUFFIX = ".location"
_IS_LOCAL_SUFFIX = ".is-local"


def artifact_key(artifact: Artifact) -> str:
    """Metadata key of ``artifact``: name, type, ext and a crc32 of its full id.

    Two distinct ids sharing name, type, ext and checksum would share a key.
    """
    checksum = zlib.crc32(str(artifact.id).encode("utf-8"))
    return f"artifact:{artifact.name}#{artifact.type}#{artifact.ext}#{checksum}"


class CacheManager:
    """Maps module and artifact identities to cache files and downloads into them.

    Args:
        settings: Registry used to recover resolvers and defaults; optional.
        name: Name of this cache, for logs.
        base_dir: Repository cache root; defaults to the settings cache dir.
        resolution_dir: Resolution cache root; defaults to the settings one.
        lock_strategy: Injected lock strategy; defaults to the settings default.
    """

    def __init__(
        self,
        settings: Optional["ResolverSettings"] = None,
        name: str = "default",
        base_dir: Optional[str] = None,
        resolution_dir: Optional[str] = None,
        lock_strategy: Optional[LockStrategy] = None,
        descriptor_pattern: Optional[str] = None,
        artifact_pattern: Optional[str] = None,
        data_file_pattern: Optional[str] = None,
    ):
        self.settings = settings
        self.name = name
        default_dir = settings.cache_dir if settings is not None else Constants.DEFAULT_CACHE_DIR
        self._base_dir = os.path.abspath(os.path.expanduser(base_dir or default_dir))
        if resolution_dir is None and settings is not None:
            resolution_dir = settings.resolution_cache_dir
        self._resolution_dir = os.path.abspath(os.path.expanduser(resolution_dir or self._base_dir))
        self._lock_strategy = lock_strategy
        self.descriptor_pattern = descriptor_pattern or self._setting("descriptor_pattern", Constants.CACHE_DESCRIPTOR_PATTERN)
        self.artifact_pattern = artifact_pattern or self._setting("artifact_pattern", Constants.CACHE_ARTIFACT_PATTERN)
        self.data_file_pattern = data_file_pattern or self._setting("data_file_pattern", Constants.CACHE_DATA_FILE_PATTERN)
        self._metadata_lock = threading.RLock()

    def _setting(self, attr: str, default: str) -> str:
        if self.settings is None:
            return default
        return getattr(self.settings, attr, None) or default

    @property
    def repository_cache_root(self) -> str:
        return self._base_dir

    @property
    def resolution_cache_root(self) -> str:
        return self._resolution_dir

    @property
    def lock_strategy(self) -> LockStrategy:
        if self._lock_strategy is None:
            if self.settings is not None:
                self._lock_strategy = self.settings.default_lock_strategy
            else:
                self._lock_strategy = FileLockStrategy()
        return self._lock_strategy

    @lock_strategy.setter
    def lock_strategy(self, strategy: LockStrategy) -> None:
        self._lock_strategy = strategy

    @property
    def version_matcher(self) -> VersionMatcher:
        if self.settings is not None:
            return self.settings.version_matcher
        return VersionMatcher()

    # Paths

    def descriptor_in_cache(self, mrid: ModuleRevisionId) -> str:
        return os.path.join(self._base_dir, substitute_revision(self.descriptor_pattern, mrid))

    def resolved_descriptor_in_cache(self, mrid: ModuleRevisionId) -> str:
        return os.path.join(
            self._resolution_dir, substitute_revision(Constants.CACHE_RESOLVED_DESCRIPTOR_PATTERN, mrid)
        )

    def resolved_descriptor_properties_in_cache(self, mrid: ModuleRevisionId) -> str:
        return os.path.join(
            self._resolution_dir, substitute_revision(Constants.CACHE_RESOLVED_PROPERTIES_PATTERN, mrid)
        )

    def configuration_resolve_report_in_cache(self, resolve_id: str, conf: str) -> str:
        return os.path.join(self._resolution_dir, f"{resolve_id}-{conf}.xml")

    def configuration_resolve_reports_in_cache(self, resolve_id: str) -> List[str]:
        prefix = os.path.join(glob.escape(self._resolution_dir), glob.escape(resolve_id))
        return sorted(glob.glob(f"{prefix}-*.xml"))

    def _data_file(self, mrid: ModuleRevisionId) -> str:
        return os.path.join(self._base_dir, substitute_revision(self.data_file_pattern, mrid))

    def archive_path_in_cache(self, artifact: Artifact, origin: Optional[ArtifactOrigin] = None) -> str:
        """Path of ``artifact`` relative to the repository cache root."""
        original_name = os.path.basename(origin.location) if origin is not None else None
        return substitute_artifact(self.artifact_pattern, artifact, original_name)

    def archive_file_in_cache(
        self,
        artifact: Artifact,
        origin: Optional[ArtifactOrigin] = None,
        use_origin: Optional[bool] = None,
    ) -> str:
        """Where ``artifact`` is to be read from, given ``origin``.

        With ``use_origin`` None a local origin is used while its file still
        exists; True uses any local origin; False always gives the cache path.
        """
        if origin is not None and origin.is_local:
            if use_origin or (use_origin is None and os.path.exists(origin.location)):
                return origin.location
        return os.path.join(self._base_dir, self.archive_path_in_cache(artifact, origin))

    def locate_artifact(self, artifact: Artifact, use_origin: Optional[bool] = None) -> str:
        return self.archive_file_in_cache(artifact, self.saved_artifact_origin(artifact), use_origin)

    # Provenance metadata

    def _data(self, mrid: ModuleRevisionId) -> PropertiesFile:
        return PropertiesFile(self._data_file(mrid), header=f"cached data for {mrid}")

    def _update(self, mrid: ModuleRevisionId, **changes: Optional[str]) -> None:
        with self._metadata_lock:
            data = self._data(mrid)
            for key, value in changes.items():
                if value is None:
                    data.remove(key)
                else:
                    data.set(key, value)
            data.save()

    def save_resolver(self, md: ModuleDescriptor, resolver_name: str) -> None:
        self._update(md.resolved_revision_id, **{Constants.RESOLVER_KEY: resolver_name})

    def save_art_resolver(self, md: ModuleDescriptor, resolver_name: str) -> None:
        self._update(md.resolved_revision_id, **{Constants.ARTIFACT_RESOLVER_KEY: resolver_name})

    def saved_resolver_name(self, mrid: ModuleRevisionId) -> Optional[str]:
        return self._data(mrid).get(Constants.RESOLVER_KEY)

    def saved_art_resolver_name(self, mrid: ModuleRevisionId) -> Optional[str]:
        data = self._data(mrid)
        return data.get(Constants.ARTIFACT_RESOLVER_KEY, data.get(Constants.RESOLVER_KEY))

    def save_artifact_origin(self, artifact: Artifact, origin: ArtifactOrigin) -> None:
        key = artifact_key(artifact)
        self._update(
            artifact.module_revision_id,
            **{
                key + _LOCATION_SUFFIX: origin.location,
                key + _IS_LOCAL_SUFFIX: str(origin.is_local).lower(),
            },
        )

    def saved_artifact_origin(self, artifact: Artifact) -> Optional[ArtifactOrigin]:
        key = artifact_key(artifact)
        data = self._data(artifact.module_revision_id)
        location = data.get(key + _LOCATION_SUFFIX)
        if location is None:
            return None
        return ArtifactOrigin(data.get(key + _IS_LOCAL_SUFFIX) == "true", location)

    def remove_saved_artifact_origin(self, artifact: Artifact) -> None:
        key = artifact_key(artifact)
        self._update(artifact.module_revision_id, **{key + _LOCATION_SUFFIX: None, key + _IS_LOCAL_SUFFIX: None})

    # Descriptors

    def save_descriptor(self, md: ModuleDescriptor) -> str:
        path = self.descriptor_in_cache(md.resolved_revision_id)
        write_descriptor(md, path)
        return path

    def find_descriptor_in_cache(
        self, mrid: ModuleRevisionId, validate: bool = True
    ) -> Optional[ResolvedModuleRevision]:
        """Return the cached descriptor of ``mrid`` with the resolvers that produced it.

        Dynamic revisions, unreadable files and entries without a usable
        resolver are all misses.
        """
        if self.version_matcher.is_dynamic(mrid):
            return None
        path = self.descriptor_in_cache(mrid)
        if not os.path.exists(path):
            if is_debug_enabled(logger):
                logger.debug(
                    "No cached descriptor",
                    extra=extra_context(event="cache_lookup", component="cache", outcome="miss", target=str(mrid)),
                )
            return None
        try:
            md = parse_descriptor(path, validate=validate)
        except DescriptorParseError as exc:
            logger.debug("cached descriptor of %s unusable: %s", mrid, exc)
            return None
        if self.settings is None:
            logger.debug("no settings to recover the resolver of %s", mrid)
            return None

        resolver_name = self.saved_resolver_name(mrid)
        resolver = self.settings.get_resolver(resolver_name) if resolver_name else None
        if resolver is None:
            logger.debug("resolver '%s' of cached %s not found: looking for one configured for the module", resolver_name, mrid)
            resolver = self.settings.resolver_for_module(mrid.module_id)
            if resolver is not None:
                self.save_resolver(md, resolver.name)
        if resolver is None:
            logger.debug("no resolver usable for cached %s", mrid)
            return None

        art_name = self.saved_art_resolver_name(mrid)
        art_resolver = self.settings.get_resolver(art_name) if art_name else None
        if art_resolver is None:
            art_resolver = resolver
        if is_debug_enabled(logger):
            logger.debug(
                "Found descriptor in cache",
                extra=extra_context(
                    event="cache_lookup", component="cache", outcome="hit", target=str(mrid), resolver=resolver.name,
                ),
            )
        return ResolvedModuleRevision(resolver, art_resolver, md)

    # Downloads

    def download(
        self,
        artifact: Artifact,
        resource_resolver: ResourceResolver,
        resource_downloader: ResourceDownloader,
        options: Optional[DownloadOptions] = None,
    ) -> ArtifactDownloadReport:
        """Bring ``artifact`` into the cache under the artifact lock.

        Failures are reported with status FAILED. Only ``InterruptedError``
        while waiting for the lock and ``ConfigurationError`` propagate.
        """
        options = options or DownloadOptions()
        listener = options.listener
        report = ArtifactDownloadReport(artifact)
        lock_path = os.path.join(self._base_dir, self.archive_path_in_cache(artifact))
        path = lock_path

        with Timer() as timer:
            try:
                locked = self.lock_strategy.lock_artifact(artifact, lock_path)
            except InterruptedError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("failed to lock %s: %s", lock_path, exc)
                locked = False
            if not locked:
                report.details = f"failed to acquire lock on {lock_path}"
                report.download_time_ms = timer.duration_ms()
                self._end(listener, report, path)
                return report

            try:
                saved_origin = self.saved_artifact_origin(artifact)
                path = self.archive_file_in_cache(artifact, saved_origin, options.use_origin)
                if os.path.exists(path) and not options.force:
                    report.status = DownloadStatus.NO
                    report.size = os.path.getsize(path)
                    report.origin = saved_origin
                    report.local_file = path
                else:
                    self._fetch(artifact, resource_resolver, resource_downloader, options, report)
                report.download_time_ms = timer.duration_ms()
            finally:
                self.lock_strategy.unlock_artifact(artifact, lock_path)
                self._end(listener, report, report.local_file or path)

        self._log_report(report)
        return report

    def _fetch(
        self,
        artifact: Artifact,
        resource_resolver: ResourceResolver,
        resource_downloader: ResourceDownloader,
        options: DownloadOptions,
        report: ArtifactDownloadReport,
    ) -> None:
        listener = options.listener
        dest = None
        existed = True
        try:
            if listener is not None:
                listener.need_artifact(artifact)
            resolved = resource_resolver.resolve(artifact)
            if resolved is None:
                report.status = DownloadStatus.FAILED
                report.details = "artifact missing"
                return
            origin = ArtifactOrigin(resolved.is_local, resolved.name)
            if options.use_origin and resolved.is_local:
                self.save_artifact_origin(artifact, origin)
                report.status = DownloadStatus.NO
                report.size = resolved.resource.length
                report.origin = origin
                report.local_file = origin.location
                return
            dest = self.archive_file_in_cache(artifact, origin, use_origin=False)
            if resolved.is_local and os.path.abspath(resolved.name) == os.path.abspath(dest):
                raise ConfigurationError(
                    f"invalid configuration for resolver '{resource_resolver}': "
                    "pointing the repository to the cache is forbidden"
                )
            existed = os.path.exists(dest)
            if listener is not None:
                listener.start_artifact_download(artifact, resolved, dest)
            resource_downloader.download(artifact, resolved, dest)
            self.save_artifact_origin(artifact, origin)
            report.status = DownloadStatus.SUCCESSFUL
            report.size = os.path.getsize(dest)
            report.origin = origin
            report.local_file = dest
        except ConfigurationError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            report.status = DownloadStatus.FAILED
            report.details = str(exc) or exc.__class__.__name__
            if dest is not None and not existed and os.path.exists(dest):
                os.unlink(dest)

    @staticmethod
    def _end(listener, report: ArtifactDownloadReport, dest: str) -> None:
        if listener is not None:
            listener.end_artifact_download(report, dest)

    def _log_report(self, report: ArtifactDownloadReport) -> None:
        location = safe_url(report.origin.location) if report.origin else None
        if report.status is DownloadStatus.FAILED:
            logger.warning(
                "Artifact download failed",
                extra=extra_context(
                    event="download", component="cache", outcome="failed", target=str(report.artifact),
                    details=report.details, duration_ms=report.download_time_ms,
                ),
            )
        elif report.status is DownloadStatus.SUCCESSFUL:
            logger.info(
                "Artifact downloaded",
                extra=extra_context(
                    event="download", component="cache", outcome="success", target=str(report.artifact),
                    source=location, size=report.size, duration_ms=report.download_time_ms,
                ),
            )
        elif is_debug_enabled(logger):
            logger.debug(
                "Artifact already available",
                extra=extra_context(event="download", component="cache", outcome="no_download", target=str(report.artifact)),
            )

    def __repr__(self) -> str:
        return f"CacheManager({self.name}: {self._base_dir})"
