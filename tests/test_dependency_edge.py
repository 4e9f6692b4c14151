"""Tests for DependencyEdge configuration mapping and artifact filters."""

import pytest

from descriptor.dependency import DependencyEdge
from descriptor.models import Artifact, ArtifactFilter, ModuleRevisionId


def _edge(mapping=None):
    edge = DependencyEdge(ModuleRevisionId.new("acme", "lib", "2.0"), parent=ModuleRevisionId.new("acme", "app", "1.0"))
    for master, confs in (mapping or {}).items():
        for conf in confs:
            edge.add_dependency_configuration(master, conf)
    return edge


class TestDependencyConfigurations:
    """Resolution of master configurations into dependency configurations."""

    def test_wildcard_master_applies_to_any_configuration(self):
        assert _edge({"*": ["default"]}).dependency_configurations("compile") == ["default"]

    def test_bare_self_fallback_is_master_name(self):
        assert _edge({"compile": ["@"]}).dependency_configurations("compile") == ["compile"]

    def test_suffixed_self_fallback_appends_suffix(self):
        assert _edge({"compile": ["@(-impl)"]}).dependency_configurations("compile") == ["compile-impl"]

    def test_master_entries_come_before_wildcard_entries(self):
        edge = _edge({"*": ["master", "shared"], "compile": ["shared", "runtime"]})
        assert edge.dependency_configurations("compile") == ["shared", "runtime", "master"]

    def test_only_first_self_fallback_is_substituted(self):
        edge = _edge({"test": ["@", "@(-extra)", "base"]})
        assert edge.dependency_configurations("test") == ["@(-extra)", "base", "test"]

    def test_wildcard_in_result_collapses(self):
        edge = _edge({"compile": ["runtime", "*", "default"]})
        assert edge.dependency_configurations("compile") == ["*"]

    def test_wildcard_from_wildcard_master_collapses(self):
        edge = _edge({"compile": ["runtime"], "*": ["*"]})
        assert edge.dependency_configurations("compile") == ["*"]

    def test_unmapped_master_gives_empty_result(self):
        assert _edge({"compile": ["runtime"]}).dependency_configurations("test") == []

    def test_resolution_is_idempotent(self):
        edge = _edge({"compile": ["@(-impl)", "runtime"], "*": ["default"]})
        first = edge.dependency_configurations("compile")
        assert edge.dependency_configurations("compile") == first
        assert edge.mapping() == {"compile": ["@(-impl)", "runtime"], "*": ["default"]}

    def test_multiple_masters_union_in_order(self):
        edge = _edge({"compile": ["a", "b"], "test": ["b", "c"]})
        assert edge.dependency_configurations(["compile", "test"]) == ["a", "b", "c"]

    def test_multiple_masters_collapse_on_wildcard(self):
        edge = _edge({"compile": ["a"], "test": ["*"]})
        assert edge.dependency_configurations(["compile", "test"]) == ["*"]


class TestMutation:
    """Mutation contract of the mapping, filters and extends."""

    def test_add_dependency_configuration_is_idempotent(self):
        edge = _edge()
        edge.add_dependency_configuration("compile", "default")
        edge.add_dependency_configuration("compile", "default")
        assert edge.mapping() == {"compile": ["default"]}

    @pytest.mark.parametrize("bad", [None, ""])
    def test_empty_configuration_names_are_rejected(self, bad):
        edge = _edge()
        with pytest.raises(ValueError):
            edge.add_dependency_configuration(bad, "default")
        with pytest.raises(ValueError):
            edge.add_artifact_include(bad, ArtifactFilter())

    def test_filters_always_append(self):
        edge = _edge()
        jar = ArtifactFilter(type="jar")
        edge.add_artifact_include("compile", jar)
        edge.add_artifact_include("compile", jar)
        assert edge.include_rules() == {"compile": [jar, jar]}

    def test_extends_recorded(self):
        edge = _edge()
        edge.add_extends("runtime")
        assert edge.extended_configurations == {"runtime"}


class TestArtifactFilters:
    """Include/exclude filter lookup and artifact selection."""

    def test_empty_filter_map_means_no_restriction(self):
        edge = _edge({"*": ["default"]})
        assert edge.artifact_includes("compile") == set()
        artifact = Artifact(edge.target, "lib", "jar", "jar")
        assert edge.is_artifact_selected("compile", artifact)

    def test_filters_union_master_and_wildcard(self):
        edge = _edge()
        sources = ArtifactFilter(type="source")
        docs = ArtifactFilter(type="javadoc")
        other = ArtifactFilter(type="zip")
        edge.add_artifact_exclude("compile", sources)
        edge.add_artifact_exclude("*", docs)
        edge.add_artifact_exclude("test", other)
        assert edge.artifact_excludes("compile") == {sources, docs}
        assert edge.artifact_excludes(["compile", "test"]) == {sources, docs, other}
        assert edge.all_artifact_excludes() == {sources, docs, other}

    def test_exclusion_wins_over_inclusion(self):
        edge = _edge()
        edge.add_artifact_include("*", ArtifactFilter(name="lib.*", matcher="regexp"))
        edge.add_artifact_exclude("compile", ArtifactFilter(name="lib-tests"))
        lib = Artifact(edge.target, "lib", "jar", "jar")
        tests = Artifact(edge.target, "lib-tests", "jar", "jar")
        other = Artifact(edge.target, "other", "jar", "jar")
        assert edge.is_artifact_selected("compile", lib)
        assert not edge.is_artifact_selected("compile", tests)
        assert not edge.is_artifact_selected("compile", other)


class TestCopy:
    """Copy construction for resolved dynamic revisions."""

    def test_with_revision_keeps_everything_but_revision(self):
        edge = _edge({"compile": ["default"]})
        edge.add_artifact_include("compile", ArtifactFilter(type="jar"))
        edge.add_extends("runtime")
        clone = DependencyEdge.with_revision(edge, "2.1")
        assert clone.target == ModuleRevisionId.new("acme", "lib", "2.1")
        assert clone.parent == edge.parent
        assert clone.mapping() == edge.mapping()
        assert clone.include_rules() == edge.include_rules()
        assert clone.extended_configurations == {"runtime"}
        clone.add_dependency_configuration("test", "default")
        assert "test" not in edge.mapping()
