"""Tests for latest strategies and their selection."""

from datetime import datetime

import pytest

from common.errors import ConfigurationError
from resolver.latest import (
    LatestLexicoStrategy,
    LatestRevisionStrategy,
    LatestSemverStrategy,
    LatestTimeStrategy,
    RevisionInfo,
    select_latest_strategy,
)
from settings import ResolverSettings


def _infos(*revisions):
    return [RevisionInfo(rev, last_modified=float(index)) for index, rev in enumerate(revisions)]


class TestStrategies:
    """Ordering of candidate revisions."""

    def test_latest_revision_orders_numerically(self):
        latest = LatestRevisionStrategy().find_latest(_infos("1.10", "1.9", "1.2"))
        assert latest.revision == "1.10"

    def test_latest_revision_qualifiers(self):
        ordered = LatestRevisionStrategy().sort(_infos("1.0-final", "1.0-dev", "1.0-rc"))
        assert [i.revision for i in ordered] == ["1.0-dev", "1.0-rc", "1.0-final"]

    def test_lexico(self):
        assert LatestLexicoStrategy().find_latest(_infos("1.10", "1.9")).revision == "1.9"

    def test_time(self):
        infos = [RevisionInfo("2.0", 10.0), RevisionInfo("1.0", 20.0)]
        assert LatestTimeStrategy().find_latest(infos).revision == "1.0"

    def test_semver_coerces_and_sorts_invalid_first(self):
        ordered = LatestSemverStrategy().sort(_infos("2.0.0-rc.1", "nightly", "1.4", "2.0.0"))
        assert [i.revision for i in ordered] == ["nightly", "1.4", "2.0.0-rc.1", "2.0.0"]

    def test_date_excludes_newer_candidates(self):
        infos = [RevisionInfo("1.0", 100.0), RevisionInfo("2.0", 300.0)]
        assert LatestRevisionStrategy().find_latest(infos, date=200.0).revision == "1.0"
        assert LatestRevisionStrategy().find_latest(infos, date=datetime.fromtimestamp(50.0)) is None


class TestSelectLatestStrategy:
    """Named lookup with default fallback."""

    @pytest.fixture
    def settings(self, tmp_path):
        return ResolverSettings(cache_dir=str(tmp_path))

    def test_explicit_instance_wins(self, settings):
        explicit = LatestTimeStrategy()
        assert select_latest_strategy(explicit, "latest-lexico", settings) is explicit

    def test_named_lookup(self, settings):
        assert select_latest_strategy(None, "latest-lexico", settings).name == "latest-lexico"

    @pytest.mark.parametrize("name", [None, "default"])
    def test_default_sentinel(self, settings, name):
        assert select_latest_strategy(None, name, settings) is settings.default_latest_strategy

    def test_unknown_name_falls_back_with_warning(self, settings, caplog):
        assert select_latest_strategy(None, "latest-bogus", settings, "r") is settings.default_latest_strategy
        assert "latest-bogus" in caplog.text

    def test_no_settings_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            select_latest_strategy(None, "latest-lexico", None, "r")
