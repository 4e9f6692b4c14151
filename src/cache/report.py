"""Download reports, artifact origins, options and listener hooks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from descriptor.models import Artifact

if TYPE_CHECKING:
    from .repository import ResolvedResource


class DownloadStatus(Enum):
    """Outcome of one artifact download.

    NO means nothing was transferred because the artifact was already
    available.
    """

    NO = "no"
    SUCCESSFUL = "successful"
    FAILED = "failed"


@dataclass(frozen=True)
class ArtifactOrigin:
    """Where the bytes of a cached artifact came from."""

    is_local: bool
    location: str

    def __str__(self) -> str:
        kind = "local" if self.is_local else "remote"
        return f"ArtifactOrigin {{ {kind} {self.location} }}"


@dataclass
class ArtifactDownloadReport:
    artifact: Artifact
    status: DownloadStatus = DownloadStatus.FAILED
    size: int = 0
    download_time_ms: int = 0
    origin: Optional[ArtifactOrigin] = None
    details: str = ""
    local_file: Optional[str] = None

    @property
    def is_downloaded(self) -> bool:
        return self.status is DownloadStatus.SUCCESSFUL

    @property
    def failed(self) -> bool:
        return self.status is DownloadStatus.FAILED

    def __str__(self) -> str:
        text = f"[{self.status.name}] {self.artifact} ({self.download_time_ms}ms)"
        if self.details:
            text += f": {self.details}"
        return text


@dataclass
class DownloadReport:
    """Per-artifact reports of one resolver ``download`` call."""

    artifacts: List[ArtifactDownloadReport] = field(default_factory=list)

    def add(self, report: ArtifactDownloadReport) -> None:
        self.artifacts.append(report)

    def report_for(self, artifact: Artifact) -> Optional[ArtifactDownloadReport]:
        for report in self.artifacts:
            if report.artifact == artifact:
                return report
        return None

    def with_status(self, status: DownloadStatus) -> List[ArtifactDownloadReport]:
        return [r for r in self.artifacts if r.status is status]


class DownloadListener:
    """Receives notifications around each artifact download; all hooks are no-ops."""

    def need_artifact(self, artifact: Artifact) -> None:
        """Called before the resource for ``artifact`` is looked up."""

    def start_artifact_download(
        self, artifact: Artifact, resource: "ResolvedResource", dest: str
    ) -> None:
        """Called right before bytes are transferred into ``dest``."""

    def end_artifact_download(self, report: ArtifactDownloadReport, dest: str) -> None:
        """Called once the report is final, whatever its status."""


@dataclass
class DownloadOptions:
    force: bool = False
    use_origin: bool = False
    listener: Optional[DownloadListener] = None
