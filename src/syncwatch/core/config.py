"""Shared configuration classes for syncwatch.

This module defines the provider configuration used by the API client,
the change sources and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_ACTIVITY_API_URL = "https://driveactivity.googleapis.com/v2"

# Drive's pseudo folder holding application data
APP_DATA_FOLDER = "appDataFolder"

# Default ports per broker URL scheme
_BROKER_PORTS = {
    "tcp": 1883,
    "mqtt": 1883,
    "ssl": 8883,
    "mqtts": 8883,
    "ws": 80,
    "wss": 443,
}


def parse_bool(value: Any) -> bool:
    """Interpret a config value ("true", "0", True, ...) as a boolean."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class DriveConfig:
    """Configuration for the Google Drive change feeds.

    Attributes:
        token: OAuth bearer token used for every request.
        root_folder_id: ID of the folder mirrored by the cache ("root" by default).
        team_drive_id: Shared drive ID, empty for "My Drive".
        list_chunk: Page size for change listings (0 = server default).
        timeout: Request timeout in seconds.
        api_url: Base URL of the Drive v3 API.
        activity_api_url: Base URL of the Drive Activity v2 API.
    """

    token: str
    root_folder_id: str = "root"
    team_drive_id: str = ""
    list_chunk: int = 1000
    timeout: float = 30.0
    api_url: str = DRIVE_API_URL
    activity_api_url: str = DRIVE_ACTIVITY_API_URL

    def __post_init__(self) -> None:
        """Normalize API URLs."""
        self.api_url = self.api_url.rstrip("/")
        self.activity_api_url = self.activity_api_url.rstrip("/")

    @property
    def is_team_drive(self) -> bool:
        """Check if a shared drive is configured."""
        return bool(self.team_drive_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DriveConfig:
        """Create from a config file section."""
        return cls(
            token=data.get("token", ""),
            root_folder_id=data.get("root_folder_id", "root"),
            team_drive_id=data.get("team_drive_id", ""),
            list_chunk=int(data.get("list_chunk", 1000)),
            timeout=float(data.get("timeout", 30.0)),
            api_url=data.get("api_url", DRIVE_API_URL),
            activity_api_url=data.get("activity_api_url", DRIVE_ACTIVITY_API_URL),
        )


@dataclass
class BrokerConfig:
    """Configuration for an MQTT event broker (MinIO bucket notifications).

    Attributes:
        broker_url: Broker URL, e.g. "wss://minio.example.com:8443/mqtt".
        topic: Topic the object store publishes notifications to.
        username: Broker username (may be empty).
        password: Broker password (may be empty).
        client_id: MQTT client ID. A stable ID is needed for the broker
            to keep the session across reconnects.
        qos: Subscription quality of service (1 = at least once).
        keepalive: MQTT keepalive in seconds.
        min_reconnect_delay: First reconnect delay in seconds.
        max_reconnect_delay: Reconnect delay cap in seconds.
        verify_ssl: Whether to verify the broker's TLS certificate.
    """

    broker_url: str
    topic: str = "minio"
    username: str = ""
    password: str = ""
    client_id: str = "syncwatch"
    qos: int = 1
    keepalive: int = 60
    min_reconnect_delay: int = 1
    max_reconnect_delay: int = 120
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Validate the broker URL scheme."""
        scheme = urlsplit(self.broker_url).scheme
        if scheme not in _BROKER_PORTS:
            raise ValueError(f"Unsupported broker URL scheme: {self.broker_url!r}")

    @property
    def scheme(self) -> str:
        """URL scheme of the broker."""
        return urlsplit(self.broker_url).scheme

    @property
    def host(self) -> str:
        """Broker host name."""
        return urlsplit(self.broker_url).hostname or ""

    @property
    def port(self) -> int:
        """Broker port, defaulting per scheme."""
        return urlsplit(self.broker_url).port or _BROKER_PORTS[self.scheme]

    @property
    def path(self) -> str:
        """Websocket path ("/mqtt" when the URL has none)."""
        return urlsplit(self.broker_url).path or "/mqtt"

    @property
    def transport(self) -> str:
        """Transport name as understood by the MQTT client."""
        return "websockets" if self.scheme in ("ws", "wss") else "tcp"

    @property
    def is_secure(self) -> bool:
        """Check if the connection uses TLS."""
        return self.scheme in ("ssl", "mqtts", "wss")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrokerConfig:
        """Create from a config file section."""
        return cls(
            broker_url=data["broker_url"],
            topic=data.get("topic", "minio"),
            username=data.get("username", ""),
            password=data.get("password", ""),
            client_id=data.get("client_id", "syncwatch"),
            qos=int(data.get("qos", 1)),
            keepalive=int(data.get("keepalive", 60)),
            min_reconnect_delay=int(data.get("min_reconnect_delay", 1)),
            max_reconnect_delay=int(data.get("max_reconnect_delay", 120)),
            verify_ssl=parse_bool(data.get("verify_ssl", True)),
        )
