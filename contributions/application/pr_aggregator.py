"""Application service folding a user's pull requests into per-repository rollups."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from contributions.domain.errors import MalformedReferenceError
from contributions.domain.repository import RepositoryRollup
from contributions.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)


def parse_repository_reference(url: str, prefix: str) -> str:
    """
    Turn a search item's ``repository_url`` into "owner/name".

    Args:
        url: e.g. "https://api.github.com/repos/octocat/hello-world"
        prefix: API repository prefix, e.g. "https://api.github.com/repos/"

    Raises:
        MalformedReferenceError: If the URL is not a repository reference
    """
    if not isinstance(url, str) or not url.startswith(prefix):
        raise MalformedReferenceError(f"Not a repository reference: {url!r}")

    parts = url[len(prefix):].split("/")
    if len(parts) != 2 or not all(parts):
        raise MalformedReferenceError(f"Not a repository reference: {url!r}")

    return f"{parts[0]}/{parts[1]}"


def is_owned_by(full_name: str, identity: str) -> bool:
    # Prefix match only; organisation repos named after the user also count
    return full_name.startswith(f"{identity}/")


class PullRequestAggregator:
    """Walks the search API year by year and folds pull requests into rollups."""

    PER_PAGE = 100  # Maximum items per search page
    START_YEAR = 2015
    REQUEST_DELAY_SECONDS = 0.1

    def __init__(
        self,
        github_client: GitHubRestClient,
        start_year: Optional[int] = None,
        request_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the aggregator.

        Args:
            github_client: GitHub API client
            start_year: Oldest year searched (inclusive)
            request_delay_seconds: Courtesy delay between search requests, 0 disables it
            sleep: Function used for the courtesy delay
        """
        self.github_client = github_client
        self.start_year = self.START_YEAR if start_year is None else start_year
        self.request_delay_seconds = (
            self.REQUEST_DELAY_SECONDS if request_delay_seconds is None else request_delay_seconds
        )
        self._sleep = sleep

    def aggregate(self, identity: str, current_year: Optional[int] = None) -> List[RepositoryRollup]:
        """
        Collect every repository ``identity`` opened pull requests against.

        Args:
            identity: GitHub login
            current_year: Newest year searched; defaults to the current UTC year

        Returns:
            Rollups in first-seen order (newest activity first)

        Raises:
            RemoteFetchError: If any page fails; nothing partial is returned
        """
        if current_year is None:
            current_year = datetime.now(timezone.utc).year

        logger.info(f"Fetching pull requests of {identity} from {current_year} back to {self.start_year}")

        rollups: Dict[str, RepositoryRollup] = {}
        seen_pr_ids = set()  # Track seen PRs to avoid double counting

        for year in range(current_year, self.start_year - 1, -1):
            if year != current_year:
                self._pause()

            count = self._fold_year(identity, year, rollups, seen_pr_ids)
            if count > 0:
                logger.info(f"{year}: {count} PRs")

        logger.info(f"Found {len(rollups)} repositories from {len(seen_pr_ids)} pull requests of {identity}")
        return list(rollups.values())

    def _fold_year(
        self,
        identity: str,
        year: int,
        rollups: Dict[str, RepositoryRollup],
        seen_pr_ids: set,
    ) -> int:
        page = 1
        total_fetched = 0

        while True:
            if page > 1:
                self._pause()

            items = self.github_client.search_pull_requests(
                identity, year, page, per_page=self.PER_PAGE
            )
            if not items:
                break

            total_fetched += len(items)
            for item in items:
                self._fold_item(identity, item, rollups, seen_pr_ids)

            if len(items) < self.PER_PAGE:
                break
            page += 1

        return total_fetched

    def _fold_item(
        self,
        identity: str,
        item: Dict[str, Any],
        rollups: Dict[str, RepositoryRollup],
        seen_pr_ids: set,
    ):
        try:
            full_name = parse_repository_reference(
                item.get("repository_url"), self.github_client.repository_url_prefix
            )
        except MalformedReferenceError as e:
            logger.debug(f"Skipping pull request: {e}")
            return

        pr_id = item.get("id") or item.get("url")
        if pr_id is not None:
            if pr_id in seen_pr_ids:
                return
            seen_pr_ids.add(pr_id)

        created_at = item.get("created_at") or ""
        existing = rollups.get(full_name)
        if existing is None:
            rollups[full_name] = RepositoryRollup(
                full_name=full_name,
                pr_count=1,
                is_owned=is_owned_by(full_name, identity),
                last_contributed_at=created_at,
            )
        else:
            existing.fold(created_at)

    def _pause(self):
        if self.request_delay_seconds > 0:
            self._sleep(self.request_delay_seconds)
