"""Tests for namespace rules and translation."""

import pytest

from descriptor.dependency import DependencyEdge
from descriptor.models import Artifact, ModuleRevisionId
from resolver.models import ResolvedModuleRevision
from resolver.namespace import (
    SYSTEM_NAMESPACE,
    MridPattern,
    MridTransformation,
    Namespace,
    NamespaceRule,
    select_namespace,
)
from settings import ResolverSettings


def _legacy_namespace(chain_rules=False):
    namespace = Namespace("legacy", chain_rules=chain_rules)
    namespace.add_rule(NamespaceRule(
        name="apache",
        to_system=MridTransformation([MridPattern(organisation="apache", module="(.+)")],
                                     MridPattern(organisation="org.apache", module="$m1")),
        from_system=MridTransformation([MridPattern(organisation="org\\.apache", module="(.+)")],
                                       MridPattern(organisation="apache", module="$m1")),
    ))
    namespace.add_rule(NamespaceRule(
        name="renamed",
        to_system=MridTransformation([MridPattern(module="commons-(.+)")],
                                     MridPattern(module="$m1")),
        from_system=MridTransformation([MridPattern(module="(lang|io)")],
                                       MridPattern(module="commons-$m1")),
    ))
    return namespace


class TestNamespaceRules:
    """Rule matching and rewriting."""

    def test_first_matching_rule_wins(self):
        namespace = _legacy_namespace()
        mrid = ModuleRevisionId.new("apache", "commons-lang", "2.6")
        assert namespace.to_system(mrid) == ModuleRevisionId.new("org.apache", "commons-lang", "2.6")

    def test_chained_rules_all_apply(self):
        namespace = _legacy_namespace(chain_rules=True)
        mrid = ModuleRevisionId.new("apache", "commons-lang", "2.6")
        assert namespace.to_system(mrid) == ModuleRevisionId.new("org.apache", "lang", "2.6")

    def test_revision_groups(self):
        transformation = MridTransformation([MridPattern(revision=r"(\d+)\.(\d+)-final")], MridPattern(revision="$r1.$r2"))
        assert transformation.transform(ModuleRevisionId.new("a", "b", "3.1-final")).revision == "3.1"
        assert transformation.transform(ModuleRevisionId.new("a", "b", "3.1")) is None

    @pytest.mark.parametrize(
        "mrid",
        [
            ModuleRevisionId.new("acme", "core", "1.0"),
            ModuleRevisionId.new("acme.apache", "lib", "2.6"),
            ModuleRevisionId.new("other", "thing", "latest.integration", {"platform": "x"}),
        ],
    )
    def test_round_trip_for_ids_not_remapped(self, mrid):
        namespace = _legacy_namespace()
        system = namespace.to_system(mrid)
        assert namespace.from_system(system) == mrid

    def test_system_namespace_is_identity(self):
        mrid = ModuleRevisionId.new("apache", "commons-lang", "2.6")
        assert SYSTEM_NAMESPACE.to_system(mrid) == mrid
        assert SYSTEM_NAMESPACE.from_system(mrid) == mrid


class TestTranslation:
    """Translation of composite objects."""

    def test_artifact_edge_descriptor_and_resolved_revision(self, make_descriptor):
        namespace = _legacy_namespace()
        legacy = ModuleRevisionId.new("apache", "ant", "1.8")
        artifact = Artifact(legacy, "ant", "jar", "jar")
        assert namespace.to_system(artifact).module_revision_id.organisation == "org.apache"

        edge = DependencyEdge(legacy, parent=ModuleRevisionId.new("apache", "tool", "1.0"))
        edge.add_dependency_configuration("compile", "default")
        translated = namespace.to_system(edge)
        assert translated.target.organisation == "org.apache"
        assert translated.parent.organisation == "org.apache"
        assert translated.mapping() == {"compile": ["default"]}

        md = make_descriptor(legacy)
        md.add_dependency(edge)
        system_md = namespace.to_system(md)
        assert system_md.revision_id.organisation == "org.apache"
        assert system_md.all_artifacts()[0].module_revision_id == system_md.revision_id
        assert system_md.dependencies[0].target.organisation == "org.apache"

        rmr = ResolvedModuleRevision(None, None, md)
        assert namespace.to_system(rmr).id.organisation == "org.apache"

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            SYSTEM_NAMESPACE.to_system("acme#core;1.0")


class TestSelectNamespace:
    """Namespace selection with fallbacks."""

    def test_explicit_wins(self):
        explicit = Namespace("mine")
        assert select_namespace(explicit, "legacy", None) is explicit

    def test_no_settings_gives_system(self):
        assert select_namespace(None, "legacy", None) is SYSTEM_NAMESPACE

    def test_named_lookup_and_unknown_fallback(self, tmp_path, caplog):
        settings = ResolverSettings(cache_dir=str(tmp_path))
        legacy = _legacy_namespace()
        settings.add_namespace(legacy)
        assert select_namespace(None, "legacy", settings, "r") is legacy
        assert select_namespace(None, "nope", settings, "r") is settings.system_namespace
        assert "unknown namespace 'nope'" in caplog.text
        assert select_namespace(None, None, settings) is settings.system_namespace
