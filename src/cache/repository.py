"""Resources and the resolver/downloader contracts used by ``CacheManager.download``."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Optional

from common.logging_utils import extra_context, is_debug_enabled
from descriptor.models import Artifact

logger = logging.getLogger(__name__)


class Resource:
    """A readable location holding an artifact's bytes."""

    @property
    def name(self) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    @property
    def is_local(self) -> bool:
        return False

    def exists(self) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    @property
    def length(self) -> int:
        return 0

    @property
    def last_modified(self) -> float:
        return 0.0

    def open(self):  # pragma: no cover - interface
        raise NotImplementedError


class FileResource(Resource):
    """A file on the local filesystem."""

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    @property
    def name(self) -> str:
        return self.path

    @property
    def is_local(self) -> bool:
        return True

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    @property
    def length(self) -> int:
        return os.path.getsize(self.path) if self.exists() else 0

    @property
    def last_modified(self) -> float:
        return os.path.getmtime(self.path) if self.exists() else 0.0

    def open(self):
        return open(self.path, "rb")

    def __repr__(self) -> str:
        return f"FileResource({self.path})"


@dataclass(frozen=True)
class ResolvedResource:
    """A resource found for a requested revision."""

    resource: Resource
    revision: str

    @property
    def name(self) -> str:
        return self.resource.name

    @property
    def is_local(self) -> bool:
        return self.resource.is_local


class ResourceResolver:
    """Finds the resource holding ``artifact``; None when there is none."""

    def resolve(self, artifact: Artifact) -> Optional[ResolvedResource]:  # pragma: no cover - interface
        raise NotImplementedError


class ResourceDownloader:
    """Transfers a resource into a destination file."""

    def download(self, artifact: Artifact, resource: ResolvedResource, dest: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class FileResourceDownloader(ResourceDownloader):
    """Copies through a temporary file renamed into place once complete."""

    def download(self, artifact: Artifact, resource: ResolvedResource, dest: str) -> None:
        directory = os.path.dirname(os.path.abspath(dest))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".part-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as out, resource.resource.open() as src:
                shutil.copyfileobj(src, out)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, dest)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        if is_debug_enabled(logger):
            logger.debug(
                "Copied resource",
                extra=extra_context(
                    event="download", component="downloader", target=dest, source=resource.name,
                    artifact=str(artifact),
                ),
            )
