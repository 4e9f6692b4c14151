"""Tests for the YAML descriptor codec."""

import pytest

from descriptor.models import ModuleRevisionId
from descriptor.parser import DescriptorParseError, descriptor_from_dict, parse_descriptor, write_descriptor

SAMPLE = {
    "module": {"organisation": "acme", "name": "app", "revision": "1.0", "status": "release"},
    "configurations": [{"name": "compile"}, {"name": "test", "extends": ["compile"]}],
    "artifacts": [{"name": "app", "type": "jar", "conf": ["compile"]}],
    "dependencies": [
        {
            "organisation": "acme",
            "name": "lib",
            "revision": "2.0",
            "conf": {"compile": ["default"], "test": ["@(-tests)"]},
            "excludes": [{"type": "source"}],
        }
    ],
}


class TestDescriptorParser:
    """Parsing and writing descriptors."""

    def test_parses_identity_configurations_and_dependencies(self):
        md = descriptor_from_dict(SAMPLE)
        assert md.revision_id == ModuleRevisionId.new("acme", "app", "1.0")
        assert md.status == "release"
        assert md.configuration_names() == ["compile", "test"]
        assert md.configurations["test"].extends == ("compile",)
        assert [a.name for a in md.artifacts_for("compile")] == ["app"]
        edge = md.dependencies[0]
        assert edge.parent == md.revision_id
        assert edge.dependency_configurations("test") == ["test-tests"]
        assert len(edge.artifact_excludes("compile")) == 1

    def test_dependency_without_conf_maps_everything_to_default(self):
        data = {
            "module": {"organisation": "acme", "name": "app", "revision": "1.0"},
            "dependencies": [{"organisation": "acme", "name": "lib", "revision": "2.0"}],
        }
        md = descriptor_from_dict(data)
        assert md.configuration_names() == ["default"]
        assert md.dependencies[0].dependency_configurations("default") == ["default"]

    def test_validation_rejects_undeclared_configuration(self):
        data = dict(SAMPLE, artifacts=[{"name": "app", "conf": ["missing"]}])
        with pytest.raises(DescriptorParseError):
            descriptor_from_dict(data)
        assert descriptor_from_dict(data, validate=False).artifacts_for("missing")

    def test_validation_rejects_unknown_sections(self):
        with pytest.raises(DescriptorParseError):
            descriptor_from_dict(dict(SAMPLE, publications=[]))

    def test_missing_identity_is_an_error(self):
        with pytest.raises(DescriptorParseError):
            descriptor_from_dict({"module": {"organisation": "acme", "name": "app"}}, validate=False)

    def test_write_then_parse_keeps_mapping(self, tmp_path):
        md = descriptor_from_dict(SAMPLE)
        path = tmp_path / "out" / "descriptor.yaml"
        write_descriptor(md, str(path))
        parsed = parse_descriptor(str(path))
        assert parsed.revision_id == md.revision_id
        assert parsed.dependencies[0].mapping() == {"compile": ["default"], "test": ["@(-tests)"]}

    def test_unreadable_file_raises_parse_error(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("module: [unterminated", encoding="utf-8")
        with pytest.raises(DescriptorParseError):
            parse_descriptor(str(path))
        with pytest.raises(DescriptorParseError):
            parse_descriptor(str(tmp_path / "absent.yaml"))

    def test_write_keeps_artifact_url_and_configuration_description(self, tmp_path):
        data = dict(
            SAMPLE,
            configurations=[{"name": "compile", "description": "build classpath"}, {"name": "test"}],
            artifacts=[{"name": "app", "type": "jar", "conf": ["compile"], "url": "https://repo.test/app.jar"}],
        )
        path = tmp_path / "descriptor.yaml"
        write_descriptor(descriptor_from_dict(data), str(path))
        parsed = parse_descriptor(str(path))
        assert parsed.configurations["compile"].description == "build classpath"
        assert parsed.artifacts_for("compile")[0].url == "https://repo.test/app.jar"

    def test_write_replaces_file_without_leftovers(self, tmp_path):
        path = tmp_path / "descriptor.yaml"
        path.write_text("stale", encoding="utf-8")
        write_descriptor(descriptor_from_dict(SAMPLE), str(path))
        assert parse_descriptor(str(path)).revision_id == ModuleRevisionId.new("acme", "app", "1.0")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["descriptor.yaml"]


class TestMalformedDescriptors:
    """Entries of the wrong shape are parse errors, not crashes."""

    @pytest.mark.parametrize("section, value", [
        ("artifacts", ["app"]),
        ("artifacts", {"name": "app"}),
        ("configurations", [["compile"]]),
        ("dependencies", ["acme#lib;2.0"]),
        ("dependencies", [{"organisation": "acme", "name": "lib", "revision": "2.0", "includes": ["jar"]}]),
        ("dependencies", [{"organisation": "acme", "name": "lib", "revision": "2.0", "extends": 3}]),
    ])
    def test_wrong_shape_raises_parse_error(self, section, value):
        data = {"module": SAMPLE["module"], section: value}
        with pytest.raises(DescriptorParseError):
            descriptor_from_dict(data, validate=False)

    def test_file_with_wrong_shape_raises_parse_error(self, tmp_path):
        path = tmp_path / "descriptor.yaml"
        path.write_text(
            "module: {organisation: acme, name: app, revision: '1.0', extra: [a]}\n", encoding="utf-8"
        )
        with pytest.raises(DescriptorParseError):
            parse_descriptor(str(path))
