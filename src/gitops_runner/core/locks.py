"""Merge-request branch locking guarded by a named mutual-exclusion region.

Every pipeline instance that touches the locked-branches file goes through
``BranchLockStore``. Each public operation performs its whole
read-modify-write inside ``region.acquire(name)``, so two instances locking
and unlocking concurrently cannot lose each other's updates.

Two regions are provided:

* ``FileLockRegion`` takes an exclusive ``flock`` on ``<lock_dir>/<name>.lock``
  and works across processes (and across threads, since each acquisition
  opens its own file description).
* ``ThreadLockRegion`` is a process-local mutex per name.

Acquisition waits at most ``timeout`` seconds and then raises
``LockTimeoutError``; ``timeout=None`` waits forever.
"""

import fcntl
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import TypeVar

from gitops_runner.errors import InvalidArgument, IOFailure, LockTimeoutError
from gitops_runner.integrations.files import (
    LocalFileStore,
    is_valid_file_name,
    validate_file_path,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Mutual-exclusion regions ─────────────────────────────────────────────────


class MutualExclusionRegion:
    """Exclusive execution of a critical section across all callers sharing a name."""

    def acquire(self, name: str) -> AbstractContextManager[None]:
        raise NotImplementedError

    def with_lock(self, name: str, body: Callable[[], T]) -> T:
        """Run body with exclusive access to the named region and return its result."""
        with self.acquire(name):
            return body()


class FileLockRegion(MutualExclusionRegion):
    def __init__(
        self,
        lock_dir: str | Path,
        timeout: float | None = 300.0,
        poll_interval: float = 0.1,
    ):
        self.lock_dir = Path(lock_dir)
        self.timeout = timeout
        self.poll_interval = poll_interval

    def lock_path(self, name: str) -> Path:
        if not name or not is_valid_file_name(name):
            raise InvalidArgument(f"Invalid lock region name: {name!r}")
        return self.lock_dir / f"{name}.lock"

    @contextmanager
    def acquire(self, name: str) -> Iterator[None]:
        path = self.lock_path(name)
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
            handle = open(path, "a")
        except OSError as e:
            raise IOFailure(f"Could not open lock file {path}: {e}") from e

        with handle:
            self._wait_for(handle, name, path)
            logger.debug("Acquired lock region '%s'", name)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                logger.debug("Released lock region '%s'", name)

    def _wait_for(self, handle, name: str, path: Path):
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        waited = False
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                pass
            except OSError as e:
                raise IOFailure(f"Could not lock {path}: {e}") from e

            if deadline is not None and time.monotonic() >= deadline:
                raise LockTimeoutError(
                    f"Timed out after {self.timeout}s waiting for lock region '{name}' "
                    f"({path}). A crashed pipeline instance may still hold it."
                )
            if not waited:
                logger.info("Waiting for lock region '%s'...", name)
                waited = True
            time.sleep(self.poll_interval)


class ThreadLockRegion(MutualExclusionRegion):
    def __init__(self, timeout: float | None = None):
        self.timeout = timeout
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        if not name:
            raise InvalidArgument("Lock region name must not be empty")
        with self._guard:
            return self._locks.setdefault(name, threading.Lock())

    @contextmanager
    def acquire(self, name: str) -> Iterator[None]:
        lock = self._lock_for(name)
        acquired = lock.acquire(timeout=-1 if self.timeout is None else self.timeout)
        if not acquired:
            raise LockTimeoutError(
                f"Timed out after {self.timeout}s waiting for lock region '{name}'"
            )
        try:
            yield
        finally:
            lock.release()


# ── Locked branch store ──────────────────────────────────────────────────────


def _check_branches(branches: list[str], operation: str) -> list[str]:
    if isinstance(branches, str) or not branches:
        raise InvalidArgument(f"{operation} requires a non-empty list of branches")
    if any(not b for b in branches):
        raise InvalidArgument(f"{operation} received an empty branch name")
    return list(branches)


class BranchLockStore:
    """Persisted set of target branches that may not currently accept merges."""

    def __init__(
        self,
        path: str | Path,
        region: MutualExclusionRegion,
        region_name: str = "merge-request-locked-branches",
        file_store: LocalFileStore | None = None,
    ):
        self.path = validate_file_path(path)
        self.region = region
        self.region_name = region_name
        self.file_store = file_store or LocalFileStore()

    @classmethod
    def from_config(cls, config) -> "BranchLockStore":
        region = FileLockRegion(config.lock_dir, timeout=config.lock_timeout_secs)
        return cls(config.locked_branches_file, region, config.lock_region_name)

    def locked_branches(self) -> list[str]:
        with self.region.acquire(self.region_name):
            return self._read()

    def is_allowed(self, target_branch: str) -> bool:
        if not target_branch:
            raise InvalidArgument("target_branch must not be empty")
        with self.region.acquire(self.region_name):
            return target_branch not in self._read()

    def lock(self, branches: list[str]) -> list[str]:
        """Add branches to the locked set and return the resulting set."""
        branches = _check_branches(branches, "lock")
        with self.region.acquire(self.region_name):
            locked = self._read()
            for branch in branches:
                if branch in locked:
                    logger.info("Skipped locking %s since it is already locked", branch)
                    continue
                locked.append(branch)
                logger.info("Locked the target branch %s", branch)
            self.file_store.write_lines(self.path, locked)
            return locked

    def unlock(self, branches: list[str]) -> list[str]:
        """Remove branches from the locked set and return the resulting set."""
        branches = _check_branches(branches, "unlock")
        with self.region.acquire(self.region_name):
            remaining = []
            for branch in self._read():
                if branch in branches:
                    logger.info("Unlocked the target branch %s", branch)
                else:
                    remaining.append(branch)
            self.file_store.write_lines(self.path, remaining)
            return remaining

    def _read(self) -> list[str]:
        # Duplicates written by hand are collapsed on the next rewrite.
        return list(dict.fromkeys(self.file_store.read_lines(self.path)))
