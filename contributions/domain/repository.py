"""Domain entities for contributed-to repositories."""

from dataclasses import dataclass, field
from typing import Any, Dict


GITHUB_WEB_URL = "https://github.com"


@dataclass
class RepositoryRollup:
    """Aggregated pull-request activity and metadata for one repository."""

    full_name: str
    stars: int = 0
    pr_count: int = 0
    is_owned: bool = False
    is_private: bool = False
    last_contributed_at: str = ""

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[-1]

    @property
    def url(self) -> str:
        return f"{GITHUB_WEB_URL}/{self.full_name}"

    def fold(self, created_at: str):
        """Count one more pull request created at ``created_at``."""
        self.pr_count += 1
        # ISO-8601 strings order chronologically
        if created_at > self.last_contributed_at:
            self.last_contributed_at = created_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fullName": self.full_name,
            "url": self.url,
            "stars": self.stars,
            "prCount": self.pr_count,
            "isOwned": self.is_owned,
            "isPrivate": self.is_private,
            "lastContributedAt": self.last_contributed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepositoryRollup":
        return cls(
            full_name=data["fullName"],
            stars=int(data.get("stars") or 0),
            pr_count=int(data.get("prCount") or 0),
            is_owned=bool(data.get("isOwned", False)),
            is_private=bool(data.get("isPrivate", False)),
            last_contributed_at=data.get("lastContributedAt") or "",
        )


@dataclass
class DurableSnapshot:
    """Persisted rollups for one identity plus the time they were fetched."""

    identity: str = ""
    rollups: Dict[str, RepositoryRollup] = field(default_factory=dict)
    fetched_at: str = ""

    def matches(self, identity: str) -> bool:
        return bool(self.identity) and self.identity == identity
