"""Filtering, sorting and truncation applied to rollups on every read."""

from typing import Callable, Dict, List, Optional, Sequence

from contributions.domain.query import QueryConfiguration, Scope, SortBy
from contributions.domain.repository import RepositoryRollup


def _keep(repo: RepositoryRollup, config: QueryConfiguration, include: set, exclude: set) -> bool:
    if repo.full_name in exclude:
        return False
    if repo.full_name in include:
        return True
    if config.scope == Scope.OWN and not repo.is_owned:
        return False
    if config.scope == Scope.EXTERNAL and repo.is_owned:
        return False
    if not config.include_private and repo.is_private:
        return False
    return True


def filter_repositories(
    repos: Sequence[RepositoryRollup],
    config: QueryConfiguration,
    all_repos: Optional[Sequence[RepositoryRollup]] = None,
) -> List[RepositoryRollup]:
    """
    Apply exclude, include, scope and visibility rules, in that order.

    Included repositories that the rules dropped (or that ``repos`` lacks) are
    appended from ``all_repos`` unless they are also excluded.
    """
    if all_repos is None:
        all_repos = repos

    include = set(config.include)
    exclude = set(config.exclude)

    filtered = [repo for repo in repos if _keep(repo, config, include, exclude)]
    present = {repo.full_name for repo in filtered}

    by_name = {repo.full_name: repo for repo in all_repos}
    for full_name in config.include:
        if full_name in present or full_name in exclude:
            continue
        repo = by_name.get(full_name)
        if repo is not None:
            filtered.append(repo)
            present.add(full_name)

    return filtered


def combined_score(repo: RepositoryRollup) -> int:
    """Stars weighted by the square of the pull request count."""
    return repo.stars * repo.pr_count ** 2


SORT_KEYS: Dict[SortBy, Callable[[RepositoryRollup], object]] = {
    SortBy.STARS: lambda repo: repo.stars,
    SortBy.CONTRIBUTIONS: lambda repo: repo.pr_count,
    SortBy.ALL: combined_score,
    # ISO-8601 strings order chronologically
    SortBy.RECENT: lambda repo: repo.last_contributed_at,
}


def sort_repositories(repos: Sequence[RepositoryRollup], config: QueryConfiguration) -> List[RepositoryRollup]:
    """Sort descending by the configured key; equal keys keep their order."""
    return sorted(repos, key=SORT_KEYS[config.sort_by], reverse=True)


def project(repos: Sequence[RepositoryRollup], config: QueryConfiguration) -> List[RepositoryRollup]:
    """Filter, sort and truncate ``repos`` without touching them."""
    result = sort_repositories(filter_repositories(repos, config), config)
    if config.limit > 0:
        result = result[:config.limit]
    return result
