"""YAML codec for module descriptor files.

Layout::

    module: {organisation, name, revision, resolved_revision?, status?, publication?, extra?}
    configurations: [{name, extends?, description?, transitive?}]
    artifacts: [{name, type, ext?, url?, conf?}]
    dependencies: [{organisation, name, revision, force?, changing?, transitive?,
                    conf?: {master: [dep, ...]}, includes?, excludes?, extends?}]

With ``validate`` the parser is strict: unknown top-level keys, missing
identity fields and references to undeclared configurations are errors.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from .dependency import WILDCARD, DependencyEdge
from .models import Artifact, ArtifactFilter, Configuration, ModuleDescriptor, ModuleRevisionId

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = {"module", "configurations", "artifacts", "dependencies"}
_DEFAULT_CONF = "default"


class DescriptorParseError(ValueError):
    """Raised when a descriptor file cannot be read or fails validation."""


def _require(data: Dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if value is None or str(value).strip() == "":
        raise DescriptorParseError(f"missing '{key}' in {where}")
    return str(value)


def _parse_date(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise DescriptorParseError(f"bad publication date '{value}'") from exc


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [c.strip() for c in value.split(",") if c.strip()]
    if not isinstance(value, (list, tuple)):
        raise DescriptorParseError(f"expected a list or comma separated string, got {value!r}")
    return [str(v) for v in value]


def _mappings(entries: Any, where: str) -> List[Dict[str, Any]]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise DescriptorParseError(f"{where} must be a list")
    for entry in entries:
        if not isinstance(entry, dict):
            raise DescriptorParseError(f"{where} entries must be mappings, got {entry!r}")
    return entries


def _parse_filters(entries: Any, edge: DependencyEdge, include: bool, where: str) -> None:
    for entry in _mappings(entries, where):
        art_filter = ArtifactFilter(
            name=str(entry.get("name", "*")),
            type=str(entry.get("type", "*")),
            ext=str(entry.get("ext", entry.get("type", "*"))),
            matcher=str(entry.get("matcher", "exact")),
        )
        for conf in _as_list(entry.get("conf")) or [WILDCARD]:
            if include:
                edge.add_artifact_include(conf, art_filter)
            else:
                edge.add_artifact_exclude(conf, art_filter)


def descriptor_from_dict(data: Any, validate: bool = True, source: str = "<memory>") -> ModuleDescriptor:
    """Build a ModuleDescriptor from already-loaded YAML data."""
    if not isinstance(data, dict):
        raise DescriptorParseError(f"{source}: descriptor must be a mapping")
    if validate:
        unknown = set(data) - _TOP_LEVEL_KEYS
        if unknown:
            raise DescriptorParseError(f"{source}: unknown sections {sorted(unknown)}")

    module = data.get("module")
    if not isinstance(module, dict):
        raise DescriptorParseError(f"{source}: missing 'module' section")
    where = f"{source} module"
    mrid = ModuleRevisionId.new(
        _require(module, "organisation", where),
        _require(module, "name", where),
        _require(module, "revision", where),
        module.get("extra"),
    )
    resolved = module.get("resolved_revision")
    md = ModuleDescriptor(
        revision_id=mrid,
        resolved_revision_id=mrid.with_revision(str(resolved)) if resolved else None,
        status=str(module.get("status") or Constants.DEFAULT_STATUS),
        publication=_parse_date(module.get("publication")),
    )

    configurations = data.get("configurations") or [_DEFAULT_CONF]
    if isinstance(configurations, list):
        configurations = [{"name": c} if isinstance(c, str) else c for c in configurations]
    for entry in _mappings(configurations, f"{source} configurations"):
        md.add_configuration(Configuration(
            name=_require(entry, "name", f"{source} configuration"),
            extends=tuple(_as_list(entry.get("extends"))),
            description=str(entry.get("description", "")),
            transitive=bool(entry.get("transitive", True)),
        ))
    declared = set(md.configuration_names())

    def check_conf(conf: str, where: str) -> None:
        if validate and conf != WILDCARD and conf not in declared:
            raise DescriptorParseError(f"{source}: {where} references undeclared configuration '{conf}'")

    for entry in _mappings(data.get("artifacts"), f"{source} artifacts"):
        art_name = _require(entry, "name", f"{source} artifact")
        art_type = str(entry.get("type", "jar"))
        confs = _as_list(entry.get("conf")) or list(declared)
        artifact = Artifact(
            md.resolved_revision_id,
            art_name,
            art_type,
            str(entry.get("ext", art_type)),
            url=entry.get("url"),
            publication=md.publication,
        )
        for conf in confs:
            check_conf(conf, f"artifact '{art_name}'")
            md.add_artifact(conf, artifact)

    for entry in _mappings(data.get("dependencies"), f"{source} dependencies"):
        where = f"{source} dependency"
        target = ModuleRevisionId.new(
            _require(entry, "organisation", where),
            _require(entry, "name", where),
            _require(entry, "revision", where),
            entry.get("extra"),
        )
        edge = DependencyEdge(
            target,
            parent=md.revision_id,
            force=bool(entry.get("force", False)),
            changing=bool(entry.get("changing", False)),
            transitive=bool(entry.get("transitive", True)),
        )
        mapping = entry.get("conf") or {WILDCARD: [_DEFAULT_CONF]}
        if not isinstance(mapping, dict):
            raise DescriptorParseError(f"{where} '{target}': conf must be a mapping")
        for master, dep_confs in mapping.items():
            check_conf(str(master), f"dependency '{target}'")
            for dep_conf in _as_list(dep_confs):
                edge.add_dependency_configuration(str(master), dep_conf)
        _parse_filters(entry.get("includes"), edge, True, f"{where} '{target}' includes")
        _parse_filters(entry.get("excludes"), edge, False, f"{where} '{target}' excludes")
        for conf in _as_list(entry.get("extends")):
            edge.add_extends(conf)
        md.add_dependency(edge)
    return md


def parse_descriptor(path: str, validate: bool = True) -> ModuleDescriptor:
    """Read and parse a descriptor file.

    Args:
        path: Descriptor file path.
        validate: Apply strict validation.

    Returns:
        ModuleDescriptor: The parsed descriptor.

    Raises:
        DescriptorParseError: On IO, YAML or validation problems.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise DescriptorParseError(f"failed to read descriptor {path}: {exc}") from exc
    if is_debug_enabled(logger):
        logger.debug(
            "Parsing descriptor",
            extra=extra_context(event="parse", component="descriptor", target=path, validate=validate),
        )
    try:
        return descriptor_from_dict(data, validate=validate, source=path)
    except (AttributeError, TypeError) as exc:
        raise DescriptorParseError(f"{path}: malformed descriptor: {exc}") from exc


def _configuration_entry(conf: Configuration) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"name": conf.name, "extends": list(conf.extends), "transitive": conf.transitive}
    if conf.description:
        entry["description"] = conf.description
    return entry


def _artifact_entry(artifact: Artifact, confs: List[str]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"name": artifact.name, "type": artifact.type, "ext": artifact.ext, "conf": confs}
    if artifact.url:
        entry["url"] = artifact.url
    return entry


def descriptor_to_dict(md: ModuleDescriptor) -> Dict[str, Any]:
    """Serialise a descriptor to plain YAML-compatible data."""
    module: Dict[str, Any] = {
        "organisation": md.revision_id.organisation,
        "name": md.revision_id.name,
        "revision": md.revision_id.revision,
        "status": md.status,
    }
    if md.resolved_revision_id != md.revision_id:
        module["resolved_revision"] = md.resolved_revision_id.revision
    if md.publication is not None:
        module["publication"] = md.publication.isoformat()
    if md.revision_id.extra_attributes:
        module["extra"] = md.revision_id.extra

    artifacts: Dict[Artifact, List[str]] = {}
    for conf, arts in md.artifacts.items():
        for art in arts:
            artifacts.setdefault(art, []).append(conf)

    dependencies = []
    for edge in md.dependencies:
        entry: Dict[str, Any] = {
            "organisation": edge.target.organisation,
            "name": edge.target.name,
            "revision": edge.target.revision,
            "force": edge.force,
            "changing": edge.changing,
            "transitive": edge.transitive,
            "conf": edge.mapping(),
        }
        if edge.target.extra_attributes:
            entry["extra"] = edge.target.extra
        for key, rules in (("includes", edge.include_rules()), ("excludes", edge.exclude_rules())):
            if rules:
                entry[key] = [
                    {"name": f.name, "type": f.type, "ext": f.ext, "matcher": f.matcher, "conf": [conf]}
                    for conf, filters in rules.items()
                    for f in filters
                ]
        if edge.extended_configurations:
            entry["extends"] = sorted(edge.extended_configurations)
        dependencies.append(entry)

    return {
        "module": module,
        "configurations": [_configuration_entry(c) for c in md.configurations.values()],
        "artifacts": [_artifact_entry(a, confs) for a, confs in artifacts.items()],
        "dependencies": dependencies,
    }


def write_descriptor(md: ModuleDescriptor, path: str) -> None:
    """Atomically write ``md`` to ``path`` as YAML, creating parent directories."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".descriptor-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            yaml.safe_dump(descriptor_to_dict(md), fh, sort_keys=False)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
