"""Module, artifact and dependency descriptor models."""

from .models import (
    Artifact,
    ArtifactFilter,
    ArtifactRevisionId,
    Configuration,
    ModuleDescriptor,
    ModuleId,
    ModuleRevisionId,
)
from .dependency import DependencyEdge
from .parser import DescriptorParseError, parse_descriptor, write_descriptor

__all__ = [
    "Artifact",
    "ArtifactFilter",
    "ArtifactRevisionId",
    "Configuration",
    "DependencyEdge",
    "DescriptorParseError",
    "ModuleDescriptor",
    "ModuleId",
    "ModuleRevisionId",
    "parse_descriptor",
    "write_descriptor",
]
