"""
Remote store client for CloudNav.

The remote side is a single mutable resource holding the whole snapshot.
Reads are unauthenticated; writes replace the entire snapshot and carry the
shared credential in a request header. There is no partial update,
versioning or conflict detection.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests

from cloudnav import constants
from cloudnav.exceptions import PushOutcome
from cloudnav.models import Snapshot

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of reading the remote snapshot.

    ``snapshot`` is set only for ``OK``.
    """
    status: FetchStatus
    snapshot: Optional[Snapshot] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        """True when the remote snapshot should win over local state."""
        return self.status == FetchStatus.OK


class RemoteStore:
    """HTTP client for the single remote storage endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: int = constants.DEFAULT_REQUEST_TIMEOUT,
        user_agent: Optional[str] = None,
        verify_ssl: bool = True,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Deployment root, e.g. "https://nav.example.com"
            timeout: Request timeout in seconds
            user_agent: Custom user agent string
            verify_ssl: Whether to verify TLS certificates
            session: Pre-configured requests session (mainly for tests)
        """
        self.endpoint = base_url.rstrip("/") + constants.STORAGE_ENDPOINT_PATH
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent or "CloudNav/1.0"})

    def fetch_snapshot(self, defaults: Optional[Snapshot] = None) -> FetchResult:
        """
        Read the remote snapshot without credentials.

        Args:
            defaults: Snapshot supplying categories/settings missing from the body

        Returns:
            FetchResult; transport errors, non-2xx responses and undecodable
            bodies all map to UNREACHABLE
        """
        try:
            response = self.session.get(self.endpoint, timeout=self.timeout, verify=self.verify_ssl)
        except requests.RequestException as e:
            logger.warning(f"Remote fetch failed: {e}")
            return FetchResult(FetchStatus.UNREACHABLE, error=str(e))

        if not response.ok:
            logger.warning(f"Remote fetch returned HTTP {response.status_code}")
            return FetchResult(FetchStatus.UNREACHABLE, error=f"HTTP {response.status_code}")

        if not response.content or not response.content.strip():
            return FetchResult(FetchStatus.EMPTY)

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Remote snapshot is not valid JSON: {e}")
            return FetchResult(FetchStatus.UNREACHABLE, error="invalid JSON")

        if not data:
            return FetchResult(FetchStatus.EMPTY)

        # Missing links never fall back to defaults: such a body counts as empty
        if isinstance(data, dict) and not data.get("links"):
            return FetchResult(FetchStatus.EMPTY)

        try:
            snapshot = Snapshot.from_dict(data, defaults=defaults)
        except (ValueError, TypeError) as e:
            logger.warning(f"Remote snapshot is malformed: {e}")
            return FetchResult(FetchStatus.UNREACHABLE, error=str(e))

        logger.debug(f"Fetched remote snapshot with {len(snapshot.links)} links")
        return FetchResult(FetchStatus.OK, snapshot=snapshot)

    def replace_snapshot(self, snapshot: Snapshot, credential: str) -> PushOutcome:
        """
        Replace the remote snapshot.

        Args:
            snapshot: Full state to store
            credential: Shared secret sent in the auth header

        Returns:
            PushOutcome.OK, UNAUTHORIZED (HTTP 401) or FAILURE
        """
        headers = {
            "Content-Type": "application/json",
            constants.AUTH_HEADER: credential,
        }
        body = json.dumps(snapshot.to_dict(), ensure_ascii=False).encode("utf-8")

        try:
            response = self.session.post(
                self.endpoint,
                data=body,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_ssl
            )
        except requests.RequestException as e:
            logger.error(f"Remote push failed: {e}")
            return PushOutcome.FAILURE

        if response.status_code == 401:
            logger.warning("Remote push rejected: credential not accepted")
            return PushOutcome.UNAUTHORIZED

        if not response.ok:
            logger.error(f"Remote push returned HTTP {response.status_code}")
            return PushOutcome.FAILURE

        logger.debug(f"Pushed snapshot with {len(snapshot.links)} links")
        return PushOutcome.OK

    def close(self) -> None:
        self.session.close()
