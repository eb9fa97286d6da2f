"""Unit tests for filtering, sorting and truncation."""

import pytest

from contributions.application.projection import (
    combined_score,
    filter_repositories,
    project,
    sort_repositories,
)
from contributions.domain.query import QueryConfiguration
from contributions.domain.repository import RepositoryRollup


def repo(full_name, stars=0, prs=1, owned=False, private=False, last="2024-01-01T00:00:00Z"):
    return RepositoryRollup(
        full_name=full_name,
        stars=stars,
        pr_count=prs,
        is_owned=owned,
        is_private=private,
        last_contributed_at=last,
    )


@pytest.fixture
def repos():
    return [
        repo("me/tool", stars=3, prs=4, owned=True),
        repo("me/secret", stars=1, prs=2, owned=True, private=True),
        repo("org/lib", stars=500, prs=1),
        repo("org/internal", stars=9, prs=6, private=True),
    ]


def names(items):
    return [item.full_name for item in items]


class TestFilter:
    def test_external_scope_is_default(self, repos):
        assert names(filter_repositories(repos, QueryConfiguration())) == ["org/lib"]

    def test_own_scope(self, repos):
        assert names(filter_repositories(repos, QueryConfiguration(scope="own"))) == ["me/tool"]

    def test_all_scope_with_private(self, repos):
        config = QueryConfiguration(scope="all", include_private=True)
        assert names(filter_repositories(repos, config)) == names(repos)

    def test_include_wins_over_scope_and_visibility(self, repos):
        config = QueryConfiguration(scope="own", include=["org/internal"])
        assert names(filter_repositories(repos, config)) == ["me/tool", "org/internal"]

    def test_exclude_wins_over_include(self, repos):
        config = QueryConfiguration(scope="all", include=["org/lib"], exclude=["org/lib"])
        assert "org/lib" not in names(filter_repositories(repos, config))

    def test_included_repo_is_appended_from_full_set(self, repos):
        config = QueryConfiguration(scope="external", include=["me/tool"])
        base = [r for r in repos if not r.is_owned]

        result = filter_repositories(base, config, all_repos=repos)

        assert names(result) == ["org/lib", "me/tool"]

    def test_unknown_include_is_ignored(self, repos):
        config = QueryConfiguration(include=["nobody/nothing"])
        assert names(filter_repositories(repos, config)) == ["org/lib"]

    @pytest.mark.parametrize("config", [
        QueryConfiguration(),
        QueryConfiguration(scope="own", include=["org/lib"]),
        QueryConfiguration(scope="all", include_private=True, exclude=["me/tool"]),
        QueryConfiguration(scope="external", include=["me/secret"], exclude=["org/lib"]),
    ])
    def test_filter_is_idempotent(self, repos, config):
        once = filter_repositories(repos, config)
        twice = filter_repositories(once, config)
        assert names(twice) == names(once)

    def test_filter_does_not_mutate_input(self, repos):
        before = [r.full_name for r in repos]
        filter_repositories(repos, QueryConfiguration(scope="own"))
        assert names(repos) == before


class TestSort:
    def test_by_stars(self, repos):
        result = sort_repositories(repos, QueryConfiguration(sort_by="stars"))
        assert names(result) == ["org/lib", "org/internal", "me/tool", "me/secret"]

    def test_by_contributions(self, repos):
        result = sort_repositories(repos, QueryConfiguration(sort_by="contributions"))
        assert names(result) == ["org/internal", "me/tool", "me/secret", "org/lib"]

    def test_combined_score_weights_pull_requests(self):
        a = repo("o/a", stars=100, prs=1)
        b = repo("o/b", stars=10, prs=4)

        assert combined_score(a) == 100
        assert combined_score(b) == 160
        assert names(sort_repositories([a, b], QueryConfiguration(sort_by="all"))) == ["o/b", "o/a"]

    def test_by_recent(self):
        items = [
            repo("o/old", last="2019-05-01T10:00:00Z"),
            repo("o/new", last="2024-12-31T23:59:59Z"),
            repo("o/mid", last="2022-01-01T00:00:00Z"),
        ]
        result = sort_repositories(items, QueryConfiguration(sort_by="recent"))
        assert names(result) == ["o/new", "o/mid", "o/old"]

    def test_ties_keep_input_order(self):
        items = [repo("o/a", stars=5), repo("o/b", stars=5), repo("o/c", stars=5)]
        assert names(sort_repositories(items, QueryConfiguration())) == ["o/a", "o/b", "o/c"]


class TestProject:
    def test_limit_truncates_after_sort(self, repos):
        config = QueryConfiguration(scope="all", include_private=True, sort_by="stars", limit=2)
        assert names(project(repos, config)) == ["org/lib", "org/internal"]

    def test_zero_limit_is_unbounded(self, repos):
        config = QueryConfiguration(scope="all", include_private=True, limit=0)
        assert len(project(repos, config)) == 4

    def test_included_repo_is_sorted_with_the_rest(self, repos):
        config = QueryConfiguration(scope="own", include=["org/lib"], sort_by="stars")
        assert names(project(repos, config)) == ["org/lib", "me/tool"]


class TestQueryConfiguration:
    def test_rejects_unknown_scope(self):
        with pytest.raises(ValueError):
            QueryConfiguration(scope="everything")

    def test_rejects_negative_limit(self):
        with pytest.raises(ValueError):
            QueryConfiguration(limit=-1)
