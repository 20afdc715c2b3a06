"""
WebDAV backup and restore.

Stores a JSON copy of the snapshot as a single file in a WebDAV collection
and reads it back. Restored (links, categories) pairs are handed to the sync
controller, either replacing the current state or merged into it.
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

import requests

from cloudnav import constants
from cloudnav.db import LocalStore
from cloudnav.exceptions import NetworkFailureError, UnauthorizedError
from cloudnav.models import Category, LinkItem, Snapshot

logger = logging.getLogger(__name__)


@dataclass
class WebDavConfig:
    """WebDAV configuration record."""
    url: str = ""
    username: str = ""
    password: str = ""
    enabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "username": self.username,
            "password": self.password,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebDavConfig":
        return cls(
            url=str(data.get("url") or ""),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            enabled=bool(data.get("enabled", False)),
        )

    @classmethod
    def load(cls, store: LocalStore) -> "WebDavConfig":
        """Load the stored record; missing or corrupt records yield defaults."""
        return cls.from_dict(store.load_record(constants.WEBDAV_CONFIG_KEY))

    def save(self, store: LocalStore):
        store.save_record(constants.WEBDAV_CONFIG_KEY, self.to_dict())


class WebDavClient:
    """Minimal WebDAV client for the backup file."""

    def __init__(
        self,
        config: WebDavConfig,
        filename: str = constants.WEBDAV_BACKUP_FILENAME,
        timeout: int = constants.DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        if not config.url:
            raise ValueError("WebDAV url is not configured")
        self.config = config
        self.timeout = timeout
        self.file_url = config.url.rstrip("/") + "/" + filename
        self.session = session or requests.Session()
        if config.username:
            self.session.auth = (config.username, config.password)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkFailureError(f"WebDAV {method} failed: {e}") from e

        if response.status_code in (401, 403):
            raise UnauthorizedError(f"WebDAV {method} rejected: HTTP {response.status_code}")
        return response

    def check(self) -> bool:
        """Probe the collection with PROPFIND; True when it is reachable."""
        try:
            response = self._request("PROPFIND", self.config.url, headers={"Depth": "0"})
        except (NetworkFailureError, UnauthorizedError) as e:
            logger.warning(f"WebDAV check failed: {e}")
            return False
        return response.status_code in (200, 207)

    def backup(self, snapshot: Snapshot) -> None:
        """
        Upload the snapshot.

        Raises:
            UnauthorizedError: Credentials rejected
            NetworkFailureError: Transport error or non-2xx response
        """
        body = json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")
        response = self._request(
            "PUT",
            self.file_url,
            data=body,
            headers={"Content-Type": "application/json"}
        )
        if not response.ok:
            raise NetworkFailureError(f"WebDAV backup returned HTTP {response.status_code}")
        logger.info(f"Backed up {len(snapshot.links)} links to {self.file_url}")

    def restore(self) -> Tuple[Tuple[LinkItem, ...], Tuple[Category, ...]]:
        """
        Download the backup.

        Returns:
            (links, categories) from the backup file

        Raises:
            UnauthorizedError: Credentials rejected
            NetworkFailureError: Transport error, non-2xx response or bad payload
        """
        response = self._request("GET", self.file_url)
        if not response.ok:
            raise NetworkFailureError(f"WebDAV restore returned HTTP {response.status_code}")

        try:
            snapshot = Snapshot.from_dict(response.json())
        except (ValueError, TypeError) as e:
            raise NetworkFailureError(f"WebDAV backup is not a valid snapshot: {e}") from e

        logger.info(f"Restored {len(snapshot.links)} links from {self.file_url}")
        return snapshot.links, snapshot.categories
