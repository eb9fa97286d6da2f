"""Per-request query configuration and read results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from contributions.domain.repository import RepositoryRollup


class Scope(str, Enum):
    OWN = "own"
    EXTERNAL = "external"
    ALL = "all"


class SortBy(str, Enum):
    STARS = "stars"
    CONTRIBUTIONS = "contributions"
    ALL = "all"
    RECENT = "recent"


DEFAULT_ENRICHMENT_BUDGET = 20


@dataclass(frozen=True)
class QueryConfiguration:
    """Immutable read-side options: which repositories, in which order."""

    scope: Scope = Scope.EXTERNAL
    sort_by: SortBy = SortBy.STARS
    include_private: bool = False
    limit: int = 0  # 0 means unbounded
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    identity: Optional[str] = None
    enrichment_budget: int = DEFAULT_ENRICHMENT_BUDGET

    def __post_init__(self):
        # Accept plain strings and lists from callers
        object.__setattr__(self, "scope", Scope(self.scope))
        object.__setattr__(self, "sort_by", SortBy(self.sort_by))
        object.__setattr__(self, "include", tuple(self.include))
        object.__setattr__(self, "exclude", tuple(self.exclude))
        if self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")
        if self.enrichment_budget < 0:
            raise ValueError(f"enrichment_budget must be >= 0, got {self.enrichment_budget}")


@dataclass(frozen=True)
class CacheStatus:
    from_cache: bool = False
    is_stale: bool = False
    age_ms: int = 0


@dataclass(frozen=True)
class RepositoriesResult:
    """What a read returns to the presentation layer."""

    repositories: List[RepositoryRollup]
    cache_status: CacheStatus
    identity: str

    @property
    def total_stars(self) -> int:
        return sum(repo.stars for repo in self.repositories)

    @property
    def total_prs(self) -> int:
        return sum(repo.pr_count for repo in self.repositories)

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "total": len(self.repositories),
            "totalStars": self.total_stars,
            "totalPRs": self.total_prs,
            "cache": {
                "fromCache": self.cache_status.from_cache,
                "isStale": self.cache_status.is_stale,
                "ageMs": self.cache_status.age_ms,
            },
            "repositories": [repo.to_dict() for repo in self.repositories],
        }
