"""HTTP client for the Google Drive change feeds.

This module provides:
- DriveClient: HTTP client for the Drive v3 changes endpoints and the
  Drive Activity v2 query endpoint
- should_retry: Classifies errors as transient for the retry pacer
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from syncwatch.core.config import APP_DATA_FOLDER

if TYPE_CHECKING:
    from syncwatch.core.config import DriveConfig

logger = logging.getLogger(__name__)

# 403 reasons Google uses for quota errors that clear by themselves
RATE_LIMIT_REASONS = frozenset({
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "backendError",
})

CHANGES_FIELDS = (
    "nextPageToken,newStartPageToken,"
    "changes(fileId,removed,file(name,parents,mimeType))"
)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class RateLimitError(APIError):
    """Request was throttled by the provider."""


def should_retry(error: Exception) -> bool:
    """Decide whether an error is transient and worth retrying.

    Transport failures, throttling and server-side errors are retried;
    everything else (bad request, auth, not found) is not.

    Args:
        error: Exception raised by a DriveClient call.

    Returns:
        True if the pacer should try again.
    """
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, AuthenticationError):
        return False
    if isinstance(error, APIError) and error.status_code is not None:
        return error.status_code >= 500
    return False


def _error_details(response: httpx.Response) -> tuple[str, set[str]]:
    """Extract the message and reasons of a Google API error body."""
    try:
        error = response.json().get("error", {})
    except (ValueError, AttributeError):
        return response.text or "Unknown error", set()
    if not isinstance(error, dict):
        return str(error), set()
    reasons = {
        item.get("reason", "")
        for item in error.get("errors", [])
        if isinstance(item, dict)
    }
    return error.get("message", "Unknown error"), reasons


class DriveClient:
    """HTTP client for the Drive change and activity feeds."""

    def __init__(self, config: DriveConfig) -> None:
        """Initialize the Drive client.

        Args:
            config: Drive configuration with token and API URLs.
        """
        self._config = config
        self._client = httpx.Client(
            timeout=config.timeout,
            headers={"Authorization": f"Bearer {config.token}"},
        )

    @property
    def config(self) -> DriveConfig:
        """Drive configuration used by this client."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> DriveClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response
        message, reasons = _error_details(response)
        if response.status_code == 401:
            raise AuthenticationError(message, 401)
        if response.status_code == 429 or (
            response.status_code == 403 and reasons & RATE_LIMIT_REASONS
        ):
            raise RateLimitError(message, response.status_code)
        raise APIError(message, response.status_code)

    # === Drive v3 changes ===

    def get_start_page_token(self) -> str:
        """Get the page token marking "now" in the change log.

        Returns:
            Start page token.
        """
        params: dict[str, str] = {"supportsAllDrives": "true"}
        if self._config.is_team_drive:
            params["driveId"] = self._config.team_drive_id
        response = self._handle_response(
            self._client.get(
                f"{self._config.api_url}/changes/startPageToken",
                params=params,
            )
        )
        token: str = response.json()["startPageToken"]
        return token

    def list_changes(self, page_token: str) -> dict[str, Any]:
        """List one page of the change log.

        Args:
            page_token: Token of the page to fetch.

        Returns:
            Raw response with "changes" and either "nextPageToken" or
            "newStartPageToken".
        """
        params: dict[str, str] = {
            "pageToken": page_token,
            "fields": CHANGES_FIELDS,
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if self._config.list_chunk > 0:
            params["pageSize"] = str(self._config.list_chunk)
        if self._config.is_team_drive:
            params["driveId"] = self._config.team_drive_id
        if self._config.root_folder_id == APP_DATA_FOLDER:
            params["spaces"] = APP_DATA_FOLDER

        response = self._handle_response(
            self._client.get(f"{self._config.api_url}/changes", params=params)
        )
        data: dict[str, Any] = response.json()
        return data

    # === Drive Activity v2 ===

    def query_activity(self, request: dict[str, Any]) -> dict[str, Any]:
        """Run an activity query.

        Args:
            request: QueryDriveActivityRequest body.

        Returns:
            Raw response with "activities" and optional "nextPageToken".
        """
        response = self._handle_response(
            self._client.post(
                f"{self._config.activity_api_url}/activity:query",
                json=request,
            )
        )
        data: dict[str, Any] = response.json()
        return data
