"""Tests for the Drive HTTP client."""

import re

import httpx
import pytest

from syncwatch.client.api import (
    CHANGES_FIELDS,
    APIError,
    AuthenticationError,
    DriveClient,
    RateLimitError,
    should_retry,
)
from syncwatch.core.config import DriveConfig

START_URL = re.compile(r"http://test/drive/changes/startPageToken(\?.*)?$")
CHANGES_URL = re.compile(r"http://test/drive/changes\?.*")
ACTIVITY_URL = "http://test/activity/activity:query"


def make_config(**kwargs: object) -> DriveConfig:
    """Create a DriveConfig pointing at the mock server."""
    defaults: dict[str, object] = {
        "token": "token123",
        "api_url": "http://test/drive",
        "activity_api_url": "http://test/activity",
    }
    defaults.update(kwargs)
    return DriveConfig(**defaults)  # type: ignore[arg-type]


class TestStartPageToken:
    """Tests for DriveClient.get_start_page_token."""

    def test_returns_token(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the start page token."""
        httpx_mock.add_response(url=START_URL, json={"startPageToken": "tok1"})

        with DriveClient(make_config()) as client:
            assert client.get_start_page_token() == "tok1"

        request = httpx_mock.get_requests()[0]
        assert request.headers["Authorization"] == "Bearer token123"
        assert request.url.params["supportsAllDrives"] == "true"
        assert "driveId" not in request.url.params

    def test_team_drive(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should scope the token to the shared drive."""
        httpx_mock.add_response(url=START_URL, json={"startPageToken": "tok1"})

        with DriveClient(make_config(team_drive_id="0ATeam")) as client:
            client.get_start_page_token()

        assert httpx_mock.get_requests()[0].url.params["driveId"] == "0ATeam"


class TestListChanges:
    """Tests for DriveClient.list_changes."""

    def test_returns_page(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the raw page with its tokens."""
        httpx_mock.add_response(
            url=CHANGES_URL,
            json={"changes": [{"fileId": "F1"}], "nextPageToken": "tok2"},
        )

        with DriveClient(make_config()) as client:
            page = client.list_changes("tok1")

        assert page["nextPageToken"] == "tok2"
        assert page["changes"] == [{"fileId": "F1"}]

        params = httpx_mock.get_requests()[0].url.params
        assert params["pageToken"] == "tok1"
        assert params["fields"] == CHANGES_FIELDS
        assert params["pageSize"] == "1000"
        assert params["includeItemsFromAllDrives"] == "true"
        assert "spaces" not in params

    def test_server_page_size(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A list chunk of 0 should leave the page size to the server."""
        httpx_mock.add_response(url=CHANGES_URL, json={"changes": []})

        with DriveClient(make_config(list_chunk=0)) as client:
            client.list_changes("tok1")

        assert "pageSize" not in httpx_mock.get_requests()[0].url.params

    def test_app_data_folder(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """The application data folder lives in its own space."""
        httpx_mock.add_response(url=CHANGES_URL, json={"changes": []})

        with DriveClient(make_config(root_folder_id="appDataFolder")) as client:
            client.list_changes("tok1")

        assert httpx_mock.get_requests()[0].url.params["spaces"] == "appDataFolder"


class TestQueryActivity:
    """Tests for DriveClient.query_activity."""

    def test_posts_request(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should POST the query body and return the response."""
        body = {"itemName": "items/F1", "pageSize": 1}
        httpx_mock.add_response(
            url=ACTIVITY_URL,
            method="POST",
            match_json=body,
            json={"activities": [{"actions": []}]},
        )

        with DriveClient(make_config()) as client:
            result = client.query_activity(body)

        assert result == {"activities": [{"actions": []}]}


class TestErrors:
    """Tests for error mapping."""

    def test_unauthorized(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """401 should raise AuthenticationError."""
        httpx_mock.add_response(
            url=START_URL,
            status_code=401,
            json={"error": {"message": "Invalid Credentials"}},
        )

        with DriveClient(make_config()) as client, pytest.raises(AuthenticationError) as exc:
            client.get_start_page_token()
        assert exc.value.status_code == 401
        assert "Invalid Credentials" in str(exc.value)

    def test_too_many_requests(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """429 should raise RateLimitError."""
        httpx_mock.add_response(url=CHANGES_URL, status_code=429)

        with DriveClient(make_config()) as client, pytest.raises(RateLimitError):
            client.list_changes("tok1")

    def test_forbidden_rate_limit_reason(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """403 with a quota reason is throttling, not a permission error."""
        httpx_mock.add_response(
            url=CHANGES_URL,
            status_code=403,
            json={
                "error": {
                    "message": "User Rate Limit Exceeded",
                    "errors": [{"reason": "userRateLimitExceeded"}],
                }
            },
        )

        with DriveClient(make_config()) as client, pytest.raises(RateLimitError) as exc:
            client.list_changes("tok1")
        assert exc.value.status_code == 403

    def test_forbidden(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Other 403s should raise a plain APIError."""
        httpx_mock.add_response(
            url=CHANGES_URL,
            status_code=403,
            json={"error": {"message": "Forbidden", "errors": [{"reason": "forbidden"}]}},
        )

        with DriveClient(make_config()) as client, pytest.raises(APIError) as exc:
            client.list_changes("tok1")
        assert not isinstance(exc.value, RateLimitError)
        assert exc.value.status_code == 403

    def test_server_error_without_json(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Non-JSON error bodies should still produce an APIError."""
        httpx_mock.add_response(url=CHANGES_URL, status_code=502, text="Bad Gateway")

        with DriveClient(make_config()) as client, pytest.raises(APIError) as exc:
            client.list_changes("tok1")
        assert exc.value.status_code == 502
        assert "Bad Gateway" in str(exc.value)


class TestShouldRetry:
    """Tests for should_retry."""

    def test_transport_errors(self) -> None:
        """Network failures are transient."""
        assert should_retry(httpx.ConnectError("refused")) is True
        assert should_retry(httpx.ReadTimeout("slow")) is True

    def test_rate_limit(self) -> None:
        """Throttling is transient."""
        assert should_retry(RateLimitError("slow down", 429)) is True

    def test_server_errors(self) -> None:
        """5xx responses are retried, 4xx are not."""
        assert should_retry(APIError("oops", 503)) is True
        assert should_retry(APIError("bad request", 400)) is False
        assert should_retry(APIError("not found", 404)) is False

    def test_auth_not_retried(self) -> None:
        """Authentication failures need a new token, not a retry."""
        assert should_retry(AuthenticationError("denied", 401)) is False

    def test_other_errors(self) -> None:
        """Unrelated exceptions are not retried."""
        assert should_retry(ValueError("bad json")) is False
