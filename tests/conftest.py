"""Shared test helpers: an in-memory stand-in for the GitHub REST client."""

from contributions.domain.errors import RemoteFetchError


API_URL = "https://api.github.com"


def pr_item(full_name: str, created_at: str, pr_id=None) -> dict:
    """Build one search/issues item the way GitHub returns it."""
    item = {
        "repository_url": f"{API_URL}/repos/{full_name}",
        "created_at": created_at,
    }
    if pr_id is not None:
        item["id"] = pr_id
    return item


class FakeGitHubClient:
    """Serves canned search pages and repository metadata, recording every call."""

    repository_url_prefix = f"{API_URL}/repos/"

    def __init__(self, login="alice", pages=None, repos=None, failing_repos=(), failing_searches=()):
        # pages: {year: [page1_items, page2_items, ...]}
        self.login = login
        self.pages = pages or {}
        self.repos = repos or {}
        self.failing_repos = set(failing_repos)
        self.failing_searches = set(failing_searches)
        self.search_calls = []
        self.repo_calls = []
        self.user_calls = 0

    def get_authenticated_user(self) -> str:
        self.user_calls += 1
        return self.login

    def search_pull_requests(self, author, year, page, per_page=100):
        self.search_calls.append((author, year, page))
        if (year, page) in self.failing_searches:
            raise RemoteFetchError("GitHub API error: 502", status=502)
        year_pages = self.pages.get(year, [])
        if page - 1 < len(year_pages):
            return list(year_pages[page - 1])
        return []

    def get_repository(self, full_name):
        self.repo_calls.append(full_name)
        if full_name in self.failing_repos:
            raise RemoteFetchError("GitHub API error: 404 Not Found", status=404)
        return dict(self.repos.get(full_name, {"stars": 0, "is_private": False}))

