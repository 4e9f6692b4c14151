"""Lock strategies guarding concurrent writes to one cache path.

``lock_artifact`` returns False when the lock could not be obtained in
time and raises ``InterruptedError`` when the strategy's cancel event is
set while waiting. Every strategy is reentrant for the owning thread.
"""

from __future__ import annotations

import fcntl
import logging
import os
import threading
import time
from typing import Dict, Optional, TYPE_CHECKING

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants, LockStrategies

if TYPE_CHECKING:
    from descriptor.models import Artifact

logger = logging.getLogger(__name__)


class LockStrategy:
    """Base class; ``name`` is the registry name used in settings."""

    name = ""

    def __init__(self, cancel: Optional[threading.Event] = None):
        self.cancel = cancel or threading.Event()

    def lock_artifact(self, artifact: "Artifact", path: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def unlock_artifact(self, artifact: "Artifact", path: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def _check_cancelled(self, path: str) -> None:
        if self.cancel.is_set():
            raise InterruptedError(f"interrupted while waiting for lock on {path}")

    def __repr__(self) -> str:
        return self.name


class NoLockStrategy(LockStrategy):
    name = LockStrategies.NO_LOCK.value

    def lock_artifact(self, artifact: "Artifact", path: str) -> bool:
        return True

    def unlock_artifact(self, artifact: "Artifact", path: str) -> None:
        return None


class _Holder:
    __slots__ = ("owner", "count")

    def __init__(self, owner: int):
        self.owner = owner
        self.count = 0


class InProcessLockStrategy(LockStrategy):
    """Serialises the threads of this process on a per-path reentrant lock."""

    name = LockStrategies.IN_PROCESS.value

    def __init__(
        self,
        cancel: Optional[threading.Event] = None,
        timeout: float = Constants.LOCK_TIMEOUT_SEC,
        poll_interval: float = Constants.LOCK_POLL_INTERVAL_SEC,
    ):
        super().__init__(cancel)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._condition = threading.Condition()
        self._holders: Dict[str, _Holder] = {}

    def _key(self, path: str) -> str:
        return os.path.abspath(path)

    def lock_artifact(self, artifact: "Artifact", path: str) -> bool:
        key = self._key(path)
        me = threading.get_ident()
        deadline = time.monotonic() + self.timeout
        with self._condition:
            while True:
                holder = self._holders.get(key)
                if holder is None:
                    holder = self._holders[key] = _Holder(me)
                if holder.owner == me:
                    holder.count += 1
                    return self._acquired(artifact, key, holder)
                self._check_cancelled(key)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning("timeout waiting for in-process lock on %s", key)
                    return False
                self._condition.wait(min(self.poll_interval, remaining))

    def _acquired(self, artifact: "Artifact", key: str, holder: _Holder) -> bool:
        if is_debug_enabled(logger):
            logger.debug(
                "Lock acquired",
                extra=extra_context(
                    event="lock", component="lock", action="acquire", target=key,
                    artifact=str(artifact), count=holder.count,
                ),
            )
        return True

    def unlock_artifact(self, artifact: "Artifact", path: str) -> None:
        key = self._key(path)
        with self._condition:
            holder = self._holders.get(key)
            if holder is None or holder.owner != threading.get_ident():
                logger.warning("unlock of %s requested by a thread not holding it", key)
                return
            holder.count -= 1
            if holder.count == 0:
                del self._holders[key]
                self._release(key)
                self._condition.notify_all()

    def _release(self, key: str) -> None:
        """Hook called with the condition held when the last hold is released."""


class FileLockStrategy(InProcessLockStrategy):
    """Advisory ``flock`` on a ``<path>.lck`` sidecar, shared with other processes.

    Threads of this process first serialise on the in-process lock; the
    thread that gets it then polls the file lock until it is granted or
    the timeout elapses.
    """

    name = LockStrategies.ARTIFACT_LOCK.value

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._handles: Dict[str, int] = {}

    def lock_artifact(self, artifact: "Artifact", path: str) -> bool:
        started = time.monotonic()
        if not super().lock_artifact(artifact, path):
            return False
        key = self._key(path)
        with self._condition:
            if key in self._handles:
                return True
        try:
            fd = self._acquire_file_lock(key, self.timeout - (time.monotonic() - started))
        except BaseException:
            super().unlock_artifact(artifact, path)
            raise
        if fd is None:
            super().unlock_artifact(artifact, path)
            return False
        with self._condition:
            self._handles[key] = fd
        return True

    def _acquire_file_lock(self, key: str, timeout: float) -> Optional[int]:
        lock_path = key + Constants.LOCK_FILE_SUFFIX
        os.makedirs(os.path.dirname(lock_path), exist_ok=True)
        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        deadline = time.monotonic() + max(timeout, 0)
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    return fd
                except BlockingIOError:
                    pass
                self._check_cancelled(key)
                if time.monotonic() >= deadline:
                    logger.warning(
                        "timeout waiting for file lock",
                        extra=extra_context(event="lock", component="lock", outcome="timeout", target=lock_path),
                    )
                    os.close(fd)
                    return None
                time.sleep(self.poll_interval)
        except BaseException:
            os.close(fd)
            raise

    def _release(self, key: str) -> None:
        fd = self._handles.pop(key, None)
        if fd is None:
            return
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


def default_lock_strategies() -> Dict[str, LockStrategy]:
    strategies = [NoLockStrategy(), InProcessLockStrategy(), FileLockStrategy()]
    return {s.name: s for s in strategies}
