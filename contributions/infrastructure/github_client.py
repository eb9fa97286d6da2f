"""GitHub REST API client with rate limit detection and retry logic."""

import time
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests

from contributions.domain.errors import RateLimitExceeded, RemoteFetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate limit headers of one response."""

    remaining: Optional[int] = None
    limit: Optional[int] = None
    reset_at: Optional[datetime] = None

    @classmethod
    def from_headers(cls, headers) -> "RateLimitInfo":
        remaining = _int_header(headers, "X-RateLimit-Remaining")
        limit = _int_header(headers, "X-RateLimit-Limit")
        reset_epoch = _int_header(headers, "X-RateLimit-Reset")
        reset_at = None
        if reset_epoch:
            reset_at = datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
        return cls(remaining=remaining, limit=limit, reset_at=reset_at)


def _int_header(headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class GitHubRestClient:
    """Client for the GitHub REST API endpoints the aggregator needs."""

    # Search is limited to 30 requests per minute when authenticated and the
    # core API to 5,000 per hour; unauthenticated the limits are 10/min and 60/h.

    DEFAULT_API_URL = "https://api.github.com"
    MAX_RETRIES = 3
    RETRY_DELAY_SECONDS = 1
    TIMEOUT_SECONDS = 30

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GitHub REST client.

        Args:
            token: GitHub personal access token. If None, uses GITHUB_TOKEN env var.
            api_url: API base URL. If None, uses GITHUB_API_URL env var or api.github.com.
            session: requests session to reuse (a new one is created if None).
        """
        if token is None:
            token = os.getenv("GITHUB_TOKEN")
        if api_url is None:
            api_url = os.getenv("GITHUB_API_URL", self.DEFAULT_API_URL)

        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
        }

        # Add authorization header if token is available
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    @property
    def repository_url_prefix(self) -> str:
        """Prefix of the ``repository_url`` field on search results."""
        return f"{self.api_url}/repos/"

    def call(
        self, endpoint: str, query: Optional[Dict[str, Any]] = None
    ) -> Tuple[Any, int, RateLimitInfo]:
        """
        Perform one GET request, retrying transport failures only.

        Args:
            endpoint: Path below the API base URL, e.g. "/repos/owner/name"
            query: Query string parameters

        Returns:
            Tuple of (decoded JSON body or None, HTTP status, rate limit info)

        Raises:
            RemoteFetchError: If the request cannot be sent after retries
        """
        url = f"{self.api_url}{endpoint}"

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.session.get(
                    url,
                    params=query,
                    headers=self.headers,
                    timeout=self.TIMEOUT_SECONDS,
                )
            except requests.exceptions.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Request to {endpoint} failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. Retrying in {delay}s...")
                    time.sleep(delay)
                    continue
                raise RemoteFetchError(f"GitHub API request to {endpoint} failed: {e}") from e

            try:
                body = response.json()
            except ValueError:
                body = None
            return body, response.status_code, RateLimitInfo.from_headers(response.headers)

        raise RemoteFetchError(f"GitHub API request to {endpoint} failed: max retries exceeded")

    def get_json(self, endpoint: str, query: Optional[Dict[str, Any]] = None) -> Any:
        """
        Perform a GET request and return the JSON body of a successful response.

        Raises:
            RateLimitExceeded: On 403 with no remaining quota
            RemoteFetchError: On any other non-success status
        """
        body, status, rate_limit = self.call(endpoint, query)

        if 200 <= status < 300:
            return body

        message = ""
        if isinstance(body, dict):
            message = body.get("message", "")

        if status == 401:
            raise RemoteFetchError("Authentication failed. Check your GitHub token.", status=status)
        if status in (403, 429) and rate_limit.remaining == 0:
            reset_text = rate_limit.reset_at.isoformat() if rate_limit.reset_at else "unknown"
            logger.warning(f"Rate limit exceeded on {endpoint}; resets at {reset_text}")
            raise RateLimitExceeded(
                f"GitHub API rate limit exceeded; reset_at={reset_text}",
                reset_at=rate_limit.reset_at,
                remaining=rate_limit.remaining,
                status=status,
            )
        if status == 403:
            raise RemoteFetchError(f"GitHub API error: 403 Forbidden {message}".rstrip(), status=status)
        raise RemoteFetchError(f"GitHub API error: {status} {message}".rstrip(), status=status)

    def get_authenticated_user(self) -> str:
        """Return the login of the token owner."""
        data = self.get_json("/user")
        login = (data or {}).get("login") if isinstance(data, dict) else None
        if not login:
            raise RemoteFetchError("GitHub API did not return a login for the authenticated user")
        return login

    def get_repository(self, full_name: str) -> Dict[str, Any]:
        """
        Fetch star count and visibility of one repository.

        Returns:
            Dict with "stars" and "is_private"; missing fields default to 0/False
        """
        data = self.get_json(f"/repos/{full_name}") or {}
        return {
            "stars": int(data.get("stargazers_count") or 0),
            "is_private": bool(data.get("private") or False),
        }

    def search_pull_requests(
        self, author: str, year: int, page: int, per_page: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of pull requests authored by ``author`` in ``year``.

        Returns:
            List of search items (each carrying "repository_url" and "created_at")
        """
        query = {
            "q": f"author:{author} type:pr created:{year}-01-01..{year}-12-31",
            "per_page": per_page,
            "page": page,
        }
        data = self.get_json("/search/issues", query) or {}
        return data.get("items") or []
