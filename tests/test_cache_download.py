"""Tests for CacheManager.download: status reporting, locking and listeners."""

import os
import threading
import time
from unittest.mock import MagicMock, Mock

import pytest

from cache.lock import FileLockStrategy, LockStrategy, NoLockStrategy
from cache.manager import CacheManager
from cache.report import DownloadListener, DownloadOptions, DownloadStatus
from cache.repository import FileResource, FileResourceDownloader, ResolvedResource, ResourceResolver
from common.errors import ConfigurationError


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "repo" / "core-1.0.jar"
    path.parent.mkdir()
    path.write_bytes(b"jar-bytes")
    return path


@pytest.fixture
def resource_resolver(source):
    resolver = Mock(spec=ResourceResolver)
    resolver.resolve.return_value = ResolvedResource(FileResource(str(source)), "1.0")
    return resolver


@pytest.fixture
def downloader():
    return Mock(wraps=FileResourceDownloader())


def _cache_path(cache, artifact):
    return os.path.join(cache.repository_cache_root, cache.archive_path_in_cache(artifact))


class TestDownloadStatus:
    """Outcome of single downloads."""

    def test_successful_download_copies_and_records_origin(self, cache, artifact, resource_resolver, downloader, source):
        report = cache.download(artifact, resource_resolver, downloader)
        assert report.status is DownloadStatus.SUCCESSFUL
        assert report.size == len(b"jar-bytes")
        assert report.origin.is_local and report.origin.location == str(source)
        with open(_cache_path(cache, artifact), "rb") as fh:
            assert fh.read() == b"jar-bytes"
        assert cache.saved_artifact_origin(artifact) == report.origin

    def test_existing_file_is_not_downloaded_again(self, cache, artifact, resource_resolver, downloader):
        path = _cache_path(cache, artifact)
        os.makedirs(os.path.dirname(path))
        with open(path, "wb") as fh:
            fh.write(b"cached")
        report = cache.download(artifact, resource_resolver, downloader)
        assert report.status is DownloadStatus.NO
        assert report.size == len(b"cached")
        assert resource_resolver.resolve.call_count == 0
        assert downloader.download.call_count == 0

    def test_force_downloads_over_existing_file(self, cache, artifact, resource_resolver, downloader):
        cache.download(artifact, resource_resolver, downloader)
        report = cache.download(artifact, resource_resolver, downloader, DownloadOptions(force=True))
        assert report.status is DownloadStatus.SUCCESSFUL
        assert downloader.download.call_count == 2

    def test_missing_resource_fails_without_partial_file(self, cache, artifact, downloader):
        resolver = Mock(spec=ResourceResolver)
        resolver.resolve.return_value = None
        report = cache.download(artifact, resolver, downloader)
        assert report.status is DownloadStatus.FAILED
        assert "missing" in report.details
        assert not os.path.exists(_cache_path(cache, artifact))
        assert downloader.download.call_count == 0

    def test_transfer_error_is_reported_and_partial_file_removed(self, cache, artifact, resource_resolver):
        def broken(artifact, resource, dest):
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            with open(dest, "wb") as fh:
                fh.write(b"partial")
            raise IOError("connection reset")

        downloader = Mock(spec=FileResourceDownloader)
        downloader.download.side_effect = broken
        report = cache.download(artifact, resource_resolver, downloader)
        assert report.status is DownloadStatus.FAILED
        assert "connection reset" in report.details
        assert not os.path.exists(_cache_path(cache, artifact))
        assert cache.saved_artifact_origin(artifact) is None

    def test_use_origin_skips_copy_for_local_resources(self, cache, artifact, resource_resolver, downloader, source):
        report = cache.download(artifact, resource_resolver, downloader, DownloadOptions(use_origin=True))
        assert report.status is DownloadStatus.NO
        assert report.size == len(b"jar-bytes")
        assert downloader.download.call_count == 0
        assert cache.locate_artifact(artifact) == str(source)
        again = cache.download(artifact, resource_resolver, downloader, DownloadOptions(use_origin=True))
        assert again.status is DownloadStatus.NO
        assert resource_resolver.resolve.call_count == 1

    def test_repository_pointing_at_cache_is_a_configuration_error(self, cache, artifact, downloader):
        resolver = Mock(spec=ResourceResolver)
        resolver.resolve.return_value = ResolvedResource(FileResource(_cache_path(cache, artifact)), "1.0")
        with pytest.raises(ConfigurationError):
            cache.download(artifact, resolver, downloader, DownloadOptions(force=True))
        assert downloader.download.call_count == 0


class TestDownloadLocking:
    """Lock acquisition failures, interruption and release."""

    def _cache_with_lock(self, tmp_path, lock):
        return CacheManager(base_dir=str(tmp_path / "cache"), lock_strategy=lock)

    def test_lock_failure_reports_failed_without_unlocking(self, tmp_path, artifact, resource_resolver, downloader):
        lock = Mock(spec=LockStrategy)
        lock.lock_artifact.return_value = False
        report = self._cache_with_lock(tmp_path, lock).download(artifact, resource_resolver, downloader)
        assert report.status is DownloadStatus.FAILED
        assert "lock" in report.details
        assert lock.unlock_artifact.call_count == 0
        assert resource_resolver.resolve.call_count == 0

    def test_lock_error_reports_failed(self, tmp_path, artifact, resource_resolver, downloader):
        lock = Mock(spec=LockStrategy)
        lock.lock_artifact.side_effect = PermissionError("read-only cache")
        report = self._cache_with_lock(tmp_path, lock).download(artifact, resource_resolver, downloader)
        assert report.status is DownloadStatus.FAILED

    def test_interruption_while_locking_propagates(self, tmp_path, artifact, resource_resolver, downloader):
        lock = Mock(spec=LockStrategy)
        lock.lock_artifact.side_effect = InterruptedError("cancelled")
        with pytest.raises(InterruptedError):
            self._cache_with_lock(tmp_path, lock).download(artifact, resource_resolver, downloader)
        assert lock.unlock_artifact.call_count == 0

    def test_lock_released_after_failure(self, tmp_path, artifact, resource_resolver):
        lock = Mock(wraps=NoLockStrategy())
        downloader = Mock(spec=FileResourceDownloader)
        downloader.download.side_effect = RuntimeError("boom")
        report = self._cache_with_lock(tmp_path, lock).download(artifact, resource_resolver, downloader)
        assert report.status is DownloadStatus.FAILED
        assert lock.lock_artifact.call_count == 1
        assert lock.unlock_artifact.call_count == 1

    @pytest.mark.parametrize("use_file_lock", [False, True])
    def test_concurrent_downloads_transfer_once(self, cache, tmp_path, artifact, resource_resolver, use_file_lock):
        if use_file_lock:
            cache.lock_strategy = FileLockStrategy(timeout=5, poll_interval=0.01)
        real = FileResourceDownloader()
        transfers = []

        def slow_download(artifact, resource, dest):
            transfers.append(dest)
            time.sleep(0.2)
            real.download(artifact, resource, dest)

        downloader = Mock(spec=FileResourceDownloader)
        downloader.download.side_effect = slow_download
        reports = []
        barrier = threading.Barrier(2)

        def worker():
            barrier.wait()
            reports.append(cache.download(artifact, resource_resolver, downloader))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        assert len(transfers) == 1
        assert sorted(r.status.value for r in reports) == ["no", "successful"]

    def test_concurrent_downloads_with_original_name_transfer_once(self, tmp_path, artifact):
        renamed = tmp_path / "repo" / "core-renamed.jar"
        renamed.parent.mkdir()
        renamed.write_bytes(b"jar-bytes")
        resolver = Mock(spec=ResourceResolver)
        resolver.resolve.return_value = ResolvedResource(FileResource(str(renamed)), "1.0")
        cache = CacheManager(
            base_dir=str(tmp_path / "cache"),
            lock_strategy=FileLockStrategy(timeout=5, poll_interval=0.01),
            artifact_pattern="[organisation]/[module]/[originalname]",
        )
        real = FileResourceDownloader()
        transfers = []

        def slow_download(artifact, resource, dest):
            transfers.append(dest)
            time.sleep(0.2)
            real.download(artifact, resource, dest)

        downloader = Mock(spec=FileResourceDownloader)
        downloader.download.side_effect = slow_download
        reports = []
        barrier = threading.Barrier(2)

        def worker():
            barrier.wait()
            reports.append(cache.download(artifact, resolver, downloader))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        assert transfers == [str(tmp_path / "cache" / "acme" / "core" / "core-renamed.jar")]
        assert sorted(r.status.value for r in reports) == ["no", "successful"]

    def test_lock_file_stays_out_of_the_source_repository(self, tmp_path, artifact, resource_resolver, downloader, source):
        cache = CacheManager(
            base_dir=str(tmp_path / "cache"),
            lock_strategy=FileLockStrategy(timeout=5, poll_interval=0.01),
        )
        options = DownloadOptions(use_origin=True)
        assert cache.download(artifact, resource_resolver, downloader, options).status is DownloadStatus.NO
        os.unlink(source)
        cache.download(artifact, resource_resolver, downloader, options)
        assert os.listdir(source.parent) == []


class TestDownloadListener:
    """Listener notifications."""

    def test_notified_in_order_on_download(self, cache, artifact, resource_resolver, downloader):
        listener = MagicMock(spec=DownloadListener)
        cache.download(artifact, resource_resolver, downloader, DownloadOptions(listener=listener))
        names = [call[0] for call in listener.method_calls]
        assert names == ["need_artifact", "start_artifact_download", "end_artifact_download"]

    def test_only_end_notified_when_already_cached(self, cache, artifact, resource_resolver, downloader):
        cache.download(artifact, resource_resolver, downloader)
        listener = MagicMock(spec=DownloadListener)
        cache.download(artifact, resource_resolver, downloader, DownloadOptions(listener=listener))
        assert [call[0] for call in listener.method_calls] == ["end_artifact_download"]

    def test_end_notified_on_failure(self, cache, artifact, downloader):
        resolver = Mock(spec=ResourceResolver)
        resolver.resolve.return_value = None
        listener = MagicMock(spec=DownloadListener)
        cache.download(artifact, resolver, downloader, DownloadOptions(listener=listener))
        report = listener.end_artifact_download.call_args[0][0]
        assert report.status is DownloadStatus.FAILED
