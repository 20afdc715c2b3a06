"""
Persistent local cache for CloudNav.

A durable key/value store on top of SQLAlchemy. Each key holds one opaque
string value, overwritten as a whole on every write. The dashboard keeps four
entries here: the full snapshot cache, the stored credential, the WebDAV
configuration and the AI-assist configuration.
"""
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Generator, Any, Dict
from contextlib import contextmanager

from sqlalchemy import create_engine, select, delete, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from cloudnav import constants
from cloudnav.models import Base, StoredValue, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheRead:
    """
    Outcome of reading the snapshot cache.

    Either ``snapshot`` is set, or ``reason`` says why nothing usable was
    found (``"missing"`` or ``"corrupt"``).
    """
    snapshot: Optional[Snapshot] = None
    reason: Optional[str] = None

    MISSING = "missing"
    CORRUPT = "corrupt"

    @property
    def found(self) -> bool:
        return self.snapshot is not None

    @classmethod
    def hit(cls, snapshot: Snapshot) -> "CacheRead":
        return cls(snapshot=snapshot)

    @classmethod
    def absent(cls, reason: str) -> "CacheRead":
        return cls(reason=reason)


class LocalStore:
    """
    Key/value cache backed by a single SQLite table.

    Read failures of stored payloads never raise: a missing or unparsable
    value is reported as absent so callers can fall back to defaults.
    """

    def __init__(self, path: Optional[str] = None, url: Optional[str] = None, echo: bool = False):
        """
        Initialize the store.

        Args:
            path: SQLite file path
            url: Full SQLAlchemy URL (overrides path), e.g. "sqlite://" for memory

        Examples:
            LocalStore(path="cloudnav.db")
            LocalStore(url="sqlite://")
        """
        if url:
            self.url = url
            self.path = None
        elif path:
            self.path = Path(path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.url = f"sqlite:///{self.path}"
        else:
            raise ValueError("LocalStore requires a path or a url")

        if self.url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection keeps the in-memory database alive
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo
            )
        else:
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=NullPool,
                echo=echo
            )
            event.listen(self.engine, "connect", self._configure_sqlite)

        self.Session = sessionmaker(bind=self.engine, autoflush=False)
        # Serializes access; the push worker may clear the credential concurrently
        self._lock = threading.RLock()

        Base.metadata.create_all(self.engine)

    @staticmethod
    def _configure_sqlite(dbapi_conn, connection_record):
        """Configure SQLite for durable small writes."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.close()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Yields:
            SQLAlchemy session with automatic commit/rollback
        """
        with self._lock:
            session = self.Session()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # Raw key/value access

    def get(self, key: str) -> Optional[str]:
        with self.session() as session:
            entry = session.execute(
                select(StoredValue).where(StoredValue.key == key)
            ).scalar_one_or_none()
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self.session() as session:
            entry = session.get(StoredValue, key)
            if entry is None:
                session.add(StoredValue(key=key, value=value))
            else:
                entry.value = value

    def delete(self, key: str) -> bool:
        with self.session() as session:
            result = session.execute(delete(StoredValue).where(StoredValue.key == key))
            return result.rowcount > 0

    def get_json(self, key: str) -> Optional[Any]:
        """Decode a JSON value, returning None when missing or unparsable."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unparsable value under '{key}': {e}")
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    # Snapshot cache

    def write_snapshot(self, snapshot: Snapshot, key: str = constants.DATA_CACHE_KEY) -> None:
        """Overwrite the cached snapshot."""
        self.set_json(key, snapshot.to_dict())
        logger.debug(f"Cached snapshot with {len(snapshot.links)} links under '{key}'")

    def read_snapshot(
        self,
        key: str = constants.DATA_CACHE_KEY,
        defaults: Optional[Snapshot] = None
    ) -> CacheRead:
        """
        Read the cached snapshot.

        Args:
            key: Storage key of the snapshot
            defaults: Snapshot supplying any top-level field missing from the payload

        Returns:
            CacheRead with the snapshot, or absent with reason "missing"/"corrupt"
        """
        raw = self.get(key)
        if raw is None:
            return CacheRead.absent(CacheRead.MISSING)

        try:
            snapshot = Snapshot.from_dict(json.loads(raw), defaults=defaults)
        except (ValueError, TypeError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Local cache under '{key}' is corrupt, ignoring it: {e}")
            return CacheRead.absent(CacheRead.CORRUPT)

        return CacheRead.hit(snapshot)

    # Credential

    def load_token(self, key: str = constants.AUTH_TOKEN_KEY) -> str:
        return self.get(key) or ""

    def save_token(self, token: str, key: str = constants.AUTH_TOKEN_KEY) -> None:
        self.set(key, token)

    def clear_token(self, key: str = constants.AUTH_TOKEN_KEY) -> None:
        self.delete(key)

    # Collaborator configuration records

    def load_record(self, key: str) -> Dict[str, Any]:
        """Load a JSON object record; anything else yields an empty dict."""
        value = self.get_json(key)
        if not isinstance(value, dict):
            return {}
        return value

    def save_record(self, key: str, record: Dict[str, Any]) -> None:
        self.set_json(key, record)

    def close(self) -> None:
        self.engine.dispose()
