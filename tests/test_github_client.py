"""Unit tests for the GitHub REST client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from contributions.domain.errors import RateLimitExceeded, RemoteFetchError
from contributions.infrastructure.github_client import GitHubRestClient, RateLimitInfo


def make_response(status=200, body=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return GitHubRestClient(token="secret", api_url="https://api.github.com/", session=session)


class TestCall:
    def test_returns_body_status_and_rate_limit(self, client, session):
        session.get.return_value = make_response(
            200, {"login": "alice"},
            {"X-RateLimit-Remaining": "4999", "X-RateLimit-Limit": "5000", "X-RateLimit-Reset": "1700000000"},
        )

        body, status, rate_limit = client.call("/user")

        assert body == {"login": "alice"}
        assert status == 200
        assert rate_limit.remaining == 4999
        assert rate_limit.limit == 5000
        assert rate_limit.reset_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_sends_token_and_strips_trailing_slash(self, client, session):
        session.get.return_value = make_response(200, {})

        client.call("/repos/a/b", {"page": 1})

        args, kwargs = session.get.call_args
        assert args[0] == "https://api.github.com/repos/a/b"
        assert kwargs["params"] == {"page": 1}
        assert kwargs["headers"]["Authorization"] == "Bearer secret"

    def test_no_authorization_header_without_token(self, session, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        client = GitHubRestClient(session=session)
        assert "Authorization" not in client.headers

    def test_retries_transport_errors_then_raises(self, client, session, monkeypatch):
        monkeypatch.setattr("contributions.infrastructure.github_client.time.sleep", lambda s: None)
        session.get.side_effect = requests.exceptions.ConnectionError("boom")

        with pytest.raises(RemoteFetchError):
            client.call("/user")

        assert session.get.call_count == GitHubRestClient.MAX_RETRIES

    def test_recovers_after_transient_transport_error(self, client, session, monkeypatch):
        monkeypatch.setattr("contributions.infrastructure.github_client.time.sleep", lambda s: None)
        session.get.side_effect = [
            requests.exceptions.Timeout("slow"),
            make_response(200, {"ok": True}),
        ]

        body, status, _ = client.call("/user")

        assert body == {"ok": True}
        assert status == 200


class TestGetJson:
    def test_rate_limit_403_with_zero_remaining(self, client, session):
        session.get.return_value = make_response(
            403, {"message": "API rate limit exceeded"},
            {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )

        with pytest.raises(RateLimitExceeded) as excinfo:
            client.get_json("/search/issues")

        error = excinfo.value
        assert error.status == 403
        assert error.reset_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert "2023-11-14" in str(error)

    def test_rate_limit_without_reset_header(self, client, session):
        session.get.return_value = make_response(403, {}, {"X-RateLimit-Remaining": "0"})

        with pytest.raises(RateLimitExceeded) as excinfo:
            client.get_json("/user")

        assert excinfo.value.reset_at is None
        assert "unknown" in str(excinfo.value)

    def test_plain_403_is_not_a_rate_limit(self, client, session):
        session.get.return_value = make_response(
            403, {"message": "Resource not accessible"}, {"X-RateLimit-Remaining": "12"}
        )

        with pytest.raises(RemoteFetchError) as excinfo:
            client.get_json("/repos/a/b")

        assert not isinstance(excinfo.value, RateLimitExceeded)
        assert excinfo.value.status == 403

    def test_other_error_status_carries_status(self, client, session):
        session.get.return_value = make_response(500, {"message": "Server Error"})

        with pytest.raises(RemoteFetchError) as excinfo:
            client.get_json("/user")

        assert excinfo.value.status == 500
        assert "500" in str(excinfo.value)

    def test_error_status_is_never_retried(self, client, session):
        session.get.return_value = make_response(404, {"message": "Not Found"})

        with pytest.raises(RemoteFetchError):
            client.get_json("/repos/a/b")

        assert session.get.call_count == 1


class TestEndpoints:
    def test_get_authenticated_user(self, client, session):
        session.get.return_value = make_response(200, {"login": "alice"})
        assert client.get_authenticated_user() == "alice"

    def test_get_repository_defaults_missing_fields(self, client, session):
        session.get.return_value = make_response(200, {"full_name": "a/b"})
        assert client.get_repository("a/b") == {"stars": 0, "is_private": False}

    def test_get_repository(self, client, session):
        session.get.return_value = make_response(200, {"stargazers_count": 42, "private": True})
        assert client.get_repository("a/b") == {"stars": 42, "is_private": True}

    def test_search_pull_requests_query(self, client, session):
        items = [{"repository_url": "https://api.github.com/repos/a/b", "created_at": "2024-01-02T00:00:00Z"}]
        session.get.return_value = make_response(200, {"total_count": 1, "items": items})

        assert client.search_pull_requests("alice", 2024, 3, per_page=50) == items

        _, kwargs = session.get.call_args
        assert kwargs["params"] == {
            "q": "author:alice type:pr created:2024-01-01..2024-12-31",
            "per_page": 50,
            "page": 3,
        }

    def test_repository_url_prefix_follows_api_url(self, session):
        client = GitHubRestClient(token="t", api_url="https://ghe.example.com/api/v3", session=session)
        assert client.repository_url_prefix == "https://ghe.example.com/api/v3/repos/"


def test_rate_limit_info_ignores_garbage_headers():
    info = RateLimitInfo.from_headers({"X-RateLimit-Remaining": "n/a"})
    assert info == RateLimitInfo()
