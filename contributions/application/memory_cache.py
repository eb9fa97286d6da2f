"""In-process cache of rollups per identity with stale-while-revalidate."""

import copy
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from contributions.domain.repository import RepositoryRollup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryCacheEntry:
    rollups: Tuple[RepositoryRollup, ...]
    fetched_at: float  # monotonic seconds


@dataclass(frozen=True)
class CacheRead:
    """Outcome of one read; ``data`` is None unless ``present``."""

    present: bool
    data: Optional[Tuple[RepositoryRollup, ...]] = None
    is_fresh: bool = False
    is_stale: bool = False
    age_ms: int = 0


MISS = CacheRead(present=False)


class MemoryCache:
    """
    Rollups per identity, served fresh or stale without blocking.

    - age < fresh window: fresh hit
    - fresh window <= age < stale window: stale hit, one background revalidation
      is scheduled per identity (single-flight)
    - otherwise: miss, the caller refreshes synchronously via ``refresh()``

    Instances own their state and worker threads; create one per process and
    pass it to whoever serves reads.
    """

    FRESH_SECONDS = 60
    STALE_SECONDS = 24 * 60 * 60
    MAX_WORKERS = 4

    def __init__(
        self,
        fresh_seconds: Optional[float] = None,
        stale_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.fresh_seconds = self.FRESH_SECONDS if fresh_seconds is None else fresh_seconds
        self.stale_seconds = self.STALE_SECONDS if stale_seconds is None else stale_seconds
        self._clock = clock
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.MAX_WORKERS, thread_name_prefix="revalidate"
        )
        self._mu = threading.Lock()
        self._entries: Dict[str, MemoryCacheEntry] = {}
        self._inflight: Dict[str, Future] = {}
        self._refresh_locks: Dict[str, threading.Lock] = {}

    def read(
        self,
        identity: str,
        revalidate: Optional[Callable[[], Sequence[RepositoryRollup]]] = None,
    ) -> CacheRead:
        """
        Look up ``identity``.

        Args:
            identity: Cache key
            revalidate: Produces fresh rollups; scheduled in the background on a
                stale hit unless a revalidation for ``identity`` is already running

        Returns:
            CacheRead describing the hit (or MISS)
        """
        with self._mu:
            entry = self._entries.get(identity)
            if entry is None:
                return MISS

            age = max(self._clock() - entry.fetched_at, 0.0)
            age_ms = int(age * 1000)
            if age < self.fresh_seconds:
                return CacheRead(True, entry.rollups, is_fresh=True, age_ms=age_ms)
            if age >= self.stale_seconds:
                return MISS

            # Check and schedule under the same lock so concurrent stale reads
            # cannot both start a revalidation
            if revalidate is not None and identity not in self._inflight:
                self._schedule(identity, revalidate)

            return CacheRead(True, entry.rollups, is_stale=True, age_ms=age_ms)

    def write(self, identity: str, rollups: Sequence[RepositoryRollup]) -> Tuple[RepositoryRollup, ...]:
        """Replace the entry for ``identity`` wholesale with copies of ``rollups``."""
        entry = MemoryCacheEntry(
            rollups=tuple(copy.copy(rollup) for rollup in rollups),
            fetched_at=self._clock(),
        )
        with self._mu:
            self._entries[identity] = entry
        return entry.rollups

    def refresh(
        self,
        identity: str,
        fetch: Callable[[], Sequence[RepositoryRollup]],
    ) -> Tuple[RepositoryRollup, ...]:
        """
        Synchronously fetch and store rollups for ``identity``.

        Refreshes for the same identity run one at a time; a caller that waited
        for another one to finish reuses its result if it is still fresh.

        Raises:
            Whatever ``fetch`` raises; the existing entry is left untouched.
        """
        with self._refresh_lock(identity):
            # Re-check cache (another thread may have populated it)
            current = self.read(identity)
            if current.present and current.is_fresh:
                return current.data

            return self.write(identity, fetch())

    def is_revalidating(self, identity: str) -> bool:
        with self._mu:
            return identity in self._inflight

    def wait_for_revalidation(self, identity: str, timeout: Optional[float] = None) -> bool:
        """
        Block until the in-flight revalidation of ``identity`` settles.

        Returns:
            Whether the revalidation succeeded; True when none was in flight
        """
        with self._mu:
            future = self._inflight.get(identity)
        if future is None:
            return True
        try:
            return future.result(timeout)
        except FutureTimeoutError:
            return False

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def _schedule(self, identity: str, revalidate: Callable[[], Sequence[RepositoryRollup]]):
        # Caller holds self._mu, so the worker cannot clear the marker before it is set
        logger.info(f"Serving stale data for {identity}; revalidating in background")
        self._inflight[identity] = self._executor.submit(self._revalidate, identity, revalidate)

    def _revalidate(self, identity: str, revalidate: Callable[[], Sequence[RepositoryRollup]]) -> bool:
        try:
            self.refresh(identity, revalidate)
        except Exception as e:
            # Keep serving the stale entry; the next stale or missing read retries
            logger.error(f"Background revalidation for {identity} failed: {e}")
            return False
        finally:
            with self._mu:
                self._inflight.pop(identity, None)
        logger.info(f"Background revalidation for {identity} completed")
        return True

    def _refresh_lock(self, identity: str) -> threading.Lock:
        """Return a per-identity lock to dedupe concurrent refreshes."""
        with self._mu:
            lock = self._refresh_locks.get(identity)
            if lock is None:
                lock = threading.Lock()
                self._refresh_locks[identity] = lock
            return lock
