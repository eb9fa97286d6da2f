"""Star count and visibility enrichment under a fixed request budget."""

import logging
import time
from typing import Callable, List, Optional

from contributions.domain.errors import RemoteFetchError
from contributions.domain.repository import DurableSnapshot, RepositoryRollup
from contributions.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)


class MetadataEnricher:
    """Fetches repository metadata live for the most contributed-to repositories only."""

    REQUEST_DELAY_SECONDS = 0.1

    def __init__(
        self,
        github_client: GitHubRestClient,
        request_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.github_client = github_client
        self.request_delay_seconds = (
            self.REQUEST_DELAY_SECONDS if request_delay_seconds is None else request_delay_seconds
        )
        self._sleep = sleep

    def enrich(self, rollups: List[RepositoryRollup], snapshot: DurableSnapshot, budget: int):
        """
        Fill ``stars`` and ``is_private`` on ``rollups`` in place.

        The ``budget`` rollups with the most pull requests are always fetched
        live; a failed fetch falls back to what ``snapshot`` knows. Every other
        rollup is copied from ``snapshot`` or left at its defaults.

        Args:
            rollups: Rollups to enrich
            snapshot: Durable snapshot used as the fallback source (may be stale)
            budget: Maximum number of live metadata requests
        """
        # sorted() is stable, so ties keep insertion order
        ranked = sorted(rollups, key=lambda r: r.pr_count, reverse=True)
        hot_set = ranked[:max(budget, 0)]
        cold_set = ranked[len(hot_set):]

        copied = 0
        for rollup in cold_set:
            if self._copy_from_snapshot(rollup, snapshot):
                copied += 1

        if hot_set:
            logger.info(
                f"Fetching repo data for {len(hot_set)} repos "
                f"({copied}/{len(cold_set)} others from cache)"
            )

        for i, rollup in enumerate(hot_set):
            if i > 0 and self.request_delay_seconds > 0:
                self._sleep(self.request_delay_seconds)

            logger.debug(f"[{i + 1}/{len(hot_set)}] {rollup.full_name}")
            try:
                data = self.github_client.get_repository(rollup.full_name)
            except RemoteFetchError as e:
                logger.warning(f"Could not fetch {rollup.full_name}, using cached metadata: {e}")
                self._copy_from_snapshot(rollup, snapshot)
                continue

            rollup.stars = data["stars"]
            rollup.is_private = data["is_private"]

    @staticmethod
    def _copy_from_snapshot(rollup: RepositoryRollup, snapshot: DurableSnapshot) -> bool:
        cached = snapshot.rollups.get(rollup.full_name)
        if cached is None:
            return False
        rollup.stars = cached.stars
        rollup.is_private = cached.is_private
        return True
