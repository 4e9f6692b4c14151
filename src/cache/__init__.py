"""Repository cache: path patterns, metadata, locking and downloads."""

from .lock import FileLockStrategy, InProcessLockStrategy, LockStrategy, NoLockStrategy
from .report import (
    ArtifactDownloadReport,
    ArtifactOrigin,
    DownloadListener,
    DownloadOptions,
    DownloadReport,
    DownloadStatus,
)
from .repository import (
    FileResource,
    FileResourceDownloader,
    ResolvedResource,
    Resource,
    ResourceDownloader,
    ResourceResolver,
)
from .manager import CacheManager

__all__ = [
    "ArtifactDownloadReport",
    "ArtifactOrigin",
    "CacheManager",
    "DownloadListener",
    "DownloadOptions",
    "DownloadReport",
    "DownloadStatus",
    "FileLockStrategy",
    "FileResource",
    "FileResourceDownloader",
    "InProcessLockStrategy",
    "LockStrategy",
    "NoLockStrategy",
    "ResolvedResource",
    "Resource",
    "ResourceDownloader",
    "ResourceResolver",
]
