"""Durable snapshot storage in a JSON file."""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from contributions.domain.errors import PersistenceError
from contributions.domain.repository import DurableSnapshot, RepositoryRollup

logger = logging.getLogger(__name__)

# One lock per cache file, shared by every DurableCache in the process
_save_locks: Dict[str, threading.Lock] = {}
_save_locks_mu = threading.Lock()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _save_lock(path: str) -> threading.Lock:
    with _save_locks_mu:
        lock = _save_locks.get(path)
        if lock is None:
            lock = threading.Lock()
            _save_locks[path] = lock
        return lock


class DurableCache:
    """Whole-file JSON store for the last full aggregation of one identity."""

    DEFAULT_CACHE_FILE = "cache.json"
    TTL_SECONDS = 24 * 60 * 60

    def __init__(
        self,
        cache_file: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        now: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize the durable cache.

        Args:
            cache_file: Path of the JSON file. If None, uses CONTRIBUTIONS_CACHE_FILE env var.
            ttl_seconds: Age after which a snapshot is stale (24 hours by default)
            now: Clock returning a timezone-aware UTC datetime
        """
        if cache_file is None:
            cache_file = os.getenv("CONTRIBUTIONS_CACHE_FILE", self.DEFAULT_CACHE_FILE)

        self.cache_file = cache_file
        self.ttl_seconds = self.TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._now = now

    def load(self) -> DurableSnapshot:
        """
        Read the snapshot from disk.

        A missing, empty or corrupt file yields an empty snapshot; this never raises.
        """
        if not os.path.isfile(self.cache_file):
            return DurableSnapshot()

        try:
            return self._read()
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.cache_file}: {e}")
            return DurableSnapshot()

    def _read(self) -> DurableSnapshot:
        with open(self.cache_file, "r", encoding="utf-8") as f:
            text = f.read()

        if not text.strip():
            return DurableSnapshot()

        data = json.loads(text)
        if not isinstance(data, dict):
            raise PersistenceError(f"expected a JSON object, got {type(data).__name__}")

        rollups_data = data.get("rollups") or {}
        if not isinstance(rollups_data, dict):
            raise PersistenceError("rollups must be a JSON object")

        rollups = {}
        for full_name, item in rollups_data.items():
            rollup = RepositoryRollup.from_dict(item)
            rollups[rollup.full_name or full_name] = rollup

        return DurableSnapshot(
            identity=data.get("identity") or "",
            rollups=rollups,
            fetched_at=data.get("fetchedAt") or "",
        )

    def save(self, snapshot: DurableSnapshot, stamp: bool = True):
        """
        Stamp ``snapshot.fetched_at`` with the current time and write it to disk.

        Args:
            snapshot: Snapshot to persist
            stamp: Set to False to keep the existing ``fetched_at``

        Write failures are logged and dropped.
        """
        if stamp or not snapshot.fetched_at:
            snapshot.fetched_at = self._now().isoformat()

        payload = {
            "identity": snapshot.identity,
            "rollups": {
                full_name: rollup.to_dict()
                for full_name, rollup in snapshot.rollups.items()
            },
            "fetchedAt": snapshot.fetched_at,
        }

        path = os.path.abspath(self.cache_file)
        # Atomic write (tmp file + rename); last writer wins
        tmp = f"{path}.tmp.{os.getpid()}.{threading.get_ident()}"
        with _save_lock(path):
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp, path)
                logger.info(f"Saved {len(snapshot.rollups)} repositories to {self.cache_file}")
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Error saving cache file {self.cache_file}: {e}")
                try:
                    os.remove(tmp)
                except OSError:
                    pass

    def is_stale(self, snapshot: DurableSnapshot) -> bool:
        """A snapshot is stale when never populated or older than the TTL."""
        if not snapshot.fetched_at:
            return True

        try:
            fetched_at = datetime.fromisoformat(snapshot.fetched_at.replace("Z", "+00:00"))
        except ValueError:
            return True

        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)

        age_seconds = (self._now() - fetched_at).total_seconds()
        return age_seconds > self.ttl_seconds
