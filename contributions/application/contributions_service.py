"""Application service answering "which repositories did this user contribute to?"."""

import copy
import logging
from typing import List, Optional

from contributions.application.memory_cache import MemoryCache
from contributions.application.metadata_enricher import MetadataEnricher
from contributions.application.pr_aggregator import PullRequestAggregator
from contributions.application.projection import project
from contributions.domain.query import CacheStatus, QueryConfiguration, RepositoriesResult
from contributions.domain.repository import DurableSnapshot, RepositoryRollup
from contributions.infrastructure.github_client import GitHubRestClient
from contributions.infrastructure.snapshot_store import DurableCache

logger = logging.getLogger(__name__)


class ContributionsService:
    """Serves projected rollups from the memory cache, refreshing through the durable cache."""

    def __init__(
        self,
        github_client: GitHubRestClient,
        durable_cache: DurableCache,
        memory_cache: MemoryCache,
        aggregator: Optional[PullRequestAggregator] = None,
        enricher: Optional[MetadataEnricher] = None,
    ):
        """
        Initialize the service.

        Args:
            github_client: GitHub API client
            durable_cache: Snapshot store surviving restarts
            memory_cache: Process-wide cache shared by every request
            aggregator: Pull request aggregator (built from github_client if None)
            enricher: Metadata enricher (built from github_client if None)
        """
        self.github_client = github_client
        self.durable_cache = durable_cache
        self.memory_cache = memory_cache
        self.aggregator = aggregator or PullRequestAggregator(github_client)
        self.enricher = enricher or MetadataEnricher(github_client)
        self._authenticated_user: Optional[str] = None

    def resolve_identity(self, config: QueryConfiguration) -> str:
        """Return the queried login: the override, else the token owner."""
        if config.identity:
            return config.identity
        if self._authenticated_user is None:
            self._authenticated_user = self.github_client.get_authenticated_user()
            logger.info(f"Fetching contributions for: {self._authenticated_user}")
        return self._authenticated_user

    def get_repositories(self, config: QueryConfiguration) -> RepositoriesResult:
        """
        Return the repositories matching ``config``.

        Fresh and stale cache hits return immediately (a stale hit also starts a
        background refresh). A miss aggregates synchronously.

        Raises:
            RemoteFetchError: If a synchronous refresh fails
        """
        identity = self.resolve_identity(config)

        def revalidate() -> List[RepositoryRollup]:
            return self.collect(identity, config.enrichment_budget)

        cached = self.memory_cache.read(identity, revalidate)
        if cached.present:
            rollups = cached.data
            status = CacheStatus(from_cache=True, is_stale=cached.is_stale, age_ms=cached.age_ms)
        else:
            rollups = self.memory_cache.refresh(identity, revalidate)
            status = CacheStatus()

        repositories = [copy.copy(repo) for repo in project(rollups, config)]
        return RepositoriesResult(repositories=repositories, cache_status=status, identity=identity)

    def collect(self, identity: str, budget: int) -> List[RepositoryRollup]:
        """
        Build enriched rollups for ``identity`` and persist them.

        The durable snapshot's repository list is reused while it is fresh;
        otherwise pull requests are aggregated again. Either way the hot set's
        metadata is refetched.
        """
        snapshot = self.durable_cache.load()
        if not snapshot.matches(identity):
            snapshot = DurableSnapshot(identity=identity)

        reuse = bool(snapshot.rollups) and not self.durable_cache.is_stale(snapshot)
        if reuse:
            logger.info(f"Using cached repository list for {identity} ({len(snapshot.rollups)} repos)")
            rollups = [copy.copy(repo) for repo in snapshot.rollups.values()]
        else:
            rollups = self.aggregator.aggregate(identity)

        self.enricher.enrich(rollups, snapshot, budget)

        updated = DurableSnapshot(
            identity=identity,
            rollups={repo.full_name: copy.copy(repo) for repo in rollups},
            fetched_at=snapshot.fetched_at,
        )
        # fetchedAt tracks the last full aggregation, so a reused list keeps its age
        self.durable_cache.save(updated, stamp=not reuse)
        return rollups
