"""Shared fixtures for cache and resolver tests."""

import pytest

from cache.lock import InProcessLockStrategy
from cache.manager import CacheManager
from descriptor.models import Artifact, Configuration, ModuleDescriptor, ModuleRevisionId
from settings import ResolverSettings


@pytest.fixture
def mrid():
    return ModuleRevisionId.new("acme", "core", "1.0")


@pytest.fixture
def artifact(mrid):
    return Artifact(mrid, "core", "jar", "jar")


@pytest.fixture
def settings(tmp_path):
    return ResolverSettings(cache_dir=str(tmp_path / "cache"))


@pytest.fixture
def cache(settings):
    manager = CacheManager(settings, lock_strategy=InProcessLockStrategy(timeout=5))
    settings.default_cache_manager = manager
    return manager


def make_descriptor(mrid, artifacts=("core",)):
    md = ModuleDescriptor(mrid)
    md.add_configuration(Configuration("default"))
    for name in artifacts:
        md.add_artifact("default", Artifact(mrid, name, "jar", "jar"))
    return md


@pytest.fixture(name="make_descriptor")
def make_descriptor_fixture():
    return make_descriptor
