"""
Sync controller for CloudNav.

Owns the canonical in-memory snapshot and keeps it consistent with the local
cache and the remote store:

- ``initialize`` loads state with remote > local cache > built-in defaults
  precedence.
- ``commit`` applies a mutation optimistically, writes the local cache and,
  when a credential is present, queues a push of the full snapshot.
- Pushes run one at a time on a single background worker. Every push carries
  a sequence number; a queued push that is no longer the latest is skipped
  and a response that is no longer the latest does not drive the status, so
  the remote store converges to the last committed snapshot.
- ``status`` follows idle -> saving -> saved (-> idle after a short delay)
  or error.

A failed push never rolls back the local mutation.
"""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from enum import Enum
from typing import Callable, Iterable, List, Optional

from cloudnav.config import SyncOptions
from cloudnav.db import LocalStore
from cloudnav.exceptions import AuthRequiredError, PushOutcome
from cloudnav.merge import MergeResult, delete_category, merge_import, move_link
from cloudnav.models import Category, LinkItem, SiteSettings, Snapshot
from cloudnav.remote import RemoteStore
from cloudnav.utils import generate_link_id, now_millis

logger = logging.getLogger(__name__)

Mutation = Callable[[Snapshot], Snapshot]


class SyncStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class LoadSource(str, Enum):
    """Where ``initialize`` took the snapshot from."""
    REMOTE = "remote"
    LOCAL = "local"
    DEFAULTS = "defaults"


class SyncController:
    """
    Orchestrates the dashboard state.

    Args:
        store: Local key/value cache
        remote: Remote store client
        options: Immutable sync configuration (seed data, keys, timings)
        executor: Executor running pushes; must run one task at a time.
            Defaults to a private single-worker thread pool.
        on_status: Called with the new SyncStatus on every transition
        on_auth_required: Called whenever the user must log in (again)

    Callbacks run with the controller lock held, on the caller's thread or on
    the push worker. They must return quickly and must not call ``login``,
    which raises RuntimeError when invoked from the push worker.
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteStore,
        options: Optional[SyncOptions] = None,
        executor: Optional[Executor] = None,
        on_status: Optional[Callable[[SyncStatus], None]] = None,
        on_auth_required: Optional[Callable[[], None]] = None
    ):
        self.options = options or SyncOptions()
        self.store = store
        self.remote = remote
        self.on_status = on_status
        self.on_auth_required = on_auth_required

        self._snapshot = Snapshot()
        self._auth_token = ""
        self._status = SyncStatus.IDLE
        self.auth_prompt_open = False

        self._lock = threading.RLock()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloudnav-push")
        self._push_seq = 0
        self._futures: List[Future] = []
        # Marks threads currently running one of our queue jobs
        self._worker_state = threading.local()
        self._status_generation = 0
        self._reset_timer: Optional[threading.Timer] = None

    # State accessors

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def is_authenticated(self) -> bool:
        return bool(self._auth_token)

    def find_link(self, link_id: str) -> Optional[LinkItem]:
        return next((l for l in self._snapshot.links if l.id == link_id), None)

    def find_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self._snapshot.categories if c.id == category_id), None)

    # Loading

    def initialize(self) -> LoadSource:
        """
        Load the initial state.

        The stored credential is restored first. A remote snapshot with at
        least one link wins and overwrites the local cache; otherwise the
        local cache is used; otherwise the built-in defaults. A remote
        failure is only logged.
        """
        self._auth_token = self.store.load_token(self.options.auth_token_key)

        result = self.remote.fetch_snapshot(defaults=self.options.defaults)
        if result.usable:
            with self._lock:
                self._snapshot = result.snapshot
                self.store.write_snapshot(result.snapshot, self.options.data_cache_key)
            logger.info(f"Loaded {len(result.snapshot.links)} links from remote store")
            return LoadSource.REMOTE

        if result.error:
            logger.warning(f"Remote store unavailable, falling back to local cache: {result.error}")

        cached = self.store.read_snapshot(self.options.data_cache_key, defaults=self.options.defaults)
        with self._lock:
            if cached.found:
                self._snapshot = cached.snapshot
                logger.info(f"Loaded {len(cached.snapshot.links)} links from local cache")
                return LoadSource.LOCAL

            logger.info(f"Local cache {cached.reason}, seeding defaults")
            self._snapshot = self.options.defaults
            return LoadSource.DEFAULTS

    # Committing

    def commit(self, mutation: Mutation, require_auth: bool = True) -> Snapshot:
        """
        Apply ``mutation`` to the current snapshot.

        Args:
            mutation: Function returning the new snapshot from the current one
            require_auth: Refuse to run without a credential

        Returns:
            The new snapshot

        Raises:
            AuthRequiredError: If ``require_auth`` and no credential is set;
                nothing is changed or written
        """
        with self._lock:
            if require_auth and not self._auth_token:
                self._request_auth()
                raise AuthRequiredError()

            new_snapshot = mutation(self._snapshot)
            self.store.write_snapshot(new_snapshot, self.options.data_cache_key)
            self._snapshot = new_snapshot

            if self._auth_token:
                self._enqueue_push()

            return new_snapshot

    def _request_auth(self):
        self.auth_prompt_open = True
        if self.on_auth_required:
            self.on_auth_required()

    def _enqueue_push(self):
        self._push_seq += 1
        seq = self._push_seq
        self._set_status(SyncStatus.SAVING)
        future = self._submit(self._run_push, seq)
        self._futures = [f for f in self._futures if not f.done()]
        self._futures.append(future)

    def _submit(self, fn: Callable, *args) -> Future:
        """Queue ``fn`` on the push worker, flagging the thread while it runs."""
        def job():
            self._worker_state.active = True
            try:
                return fn(*args)
            finally:
                self._worker_state.active = False

        return self._executor.submit(job)

    def _run_push(self, seq: int) -> Optional[PushOutcome]:
        with self._lock:
            if seq != self._push_seq:
                logger.debug(f"Skipping push #{seq}, superseded by #{self._push_seq}")
                return None
            snapshot = self._snapshot
            token = self._auth_token
            if not token:
                # Credential was cleared after this push was queued
                if self._status == SyncStatus.SAVING:
                    self._set_status(SyncStatus.ERROR)
                return None

        outcome = self.remote.replace_snapshot(snapshot, token)
        self._handle_push_outcome(seq, outcome, token)
        return outcome

    def _handle_push_outcome(self, seq: int, outcome: PushOutcome, token: str):
        with self._lock:
            if outcome == PushOutcome.UNAUTHORIZED:
                if self._auth_token == token:
                    self._clear_token()
                    self._request_auth()
                self._set_status(SyncStatus.ERROR)
                return

            if seq != self._push_seq:
                # A newer push is queued and will settle the status
                logger.debug(f"Ignoring stale result of push #{seq}: {outcome.value}")
                return

            if outcome == PushOutcome.OK:
                self._set_status(SyncStatus.SAVED)
            else:
                self._set_status(SyncStatus.ERROR)

    # Status machine

    def _set_status(self, status: SyncStatus):
        with self._lock:
            self._status = status
            self._status_generation += 1
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None
            if status == SyncStatus.SAVED:
                self._reset_timer = threading.Timer(
                    self.options.saved_reset_delay,
                    self._revert_saved,
                    args=(self._status_generation,)
                )
                self._reset_timer.daemon = True
                self._reset_timer.start()
            if self.on_status:
                self.on_status(status)

    def _revert_saved(self, generation: int):
        with self._lock:
            if generation == self._status_generation and self._status == SyncStatus.SAVED:
                self._set_status(SyncStatus.IDLE)

    # Authentication

    def login(self, password: str) -> bool:
        """
        Authenticate by pushing the current snapshot with ``password``.

        The push runs on the push queue after every push already queued, and
        it never supersedes them: a failed login leaves queued pushes, the
        status and any existing credential exactly as they were.

        Returns:
            True when the remote store accepted the push; the password is then
            kept as the credential. False otherwise.

        Raises:
            RuntimeError: If called from the push worker (e.g. a status callback)
        """
        if not password:
            return False
        if getattr(self._worker_state, "active", False):
            raise RuntimeError("login() cannot be called from the push worker")

        return self._submit(self._run_login, password).result()

    def _run_login(self, password: str) -> bool:
        with self._lock:
            seq = self._push_seq
            snapshot = self._snapshot

        outcome = self.remote.replace_snapshot(snapshot, password)
        if outcome != PushOutcome.OK:
            logger.info(f"Login failed: {outcome.value}")
            return False

        with self._lock:
            self._auth_token = password
            self.store.save_token(password, self.options.auth_token_key)
            self.auth_prompt_open = False
            if seq == self._push_seq:
                self._set_status(SyncStatus.SAVED)
            # Otherwise a push queued behind the login carries newer state and settles the status
        logger.info("Logged in")
        return True

    def logout(self):
        """Forget the credential; further mutations require a new login."""
        with self._lock:
            self._clear_token()
            self._set_status(SyncStatus.IDLE)

    def _clear_token(self):
        self._auth_token = ""
        self.store.clear_token(self.options.auth_token_key)

    # Queue control

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for queued pushes to finish.

        Returns:
            True if all pushes completed within ``timeout``
        """
        with self._lock:
            pending = list(self._futures)
        done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self):
        self.flush()
        with self._lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # Link mutations

    def add_link(
        self,
        title: str,
        url: str,
        category_id: str,
        description: Optional[str] = None,
        icon: Optional[str] = None,
        pinned: bool = False
    ) -> LinkItem:
        """Create a link at the top of the list."""
        created: List[LinkItem] = []

        def mutation(snapshot: Snapshot) -> Snapshot:
            now = now_millis()
            link = LinkItem(
                id=generate_link_id((l.id for l in snapshot.links), now),
                title=title,
                url=url,
                category_id=category_id,
                description=description or None,
                icon=icon or None,
                pinned=pinned,
                created_at=now,
            )
            created.append(link)
            return snapshot.with_links((link,) + snapshot.links)

        self.commit(mutation)
        return created[0]

    def edit_link(self, link_id: str, **patch) -> LinkItem:
        """
        Update fields of a link in place; ``id`` and ``created_at`` never change.

        Raises:
            KeyError: If no link has ``link_id``
        """
        def mutation(snapshot: Snapshot) -> Snapshot:
            self._require_link(snapshot, link_id)
            return snapshot.with_links(
                l.with_patch(**patch) if l.id == link_id else l for l in snapshot.links
            )

        new_snapshot = self.commit(mutation)
        return next(l for l in new_snapshot.links if l.id == link_id)

    def delete_link(self, link_id: str):
        def mutation(snapshot: Snapshot) -> Snapshot:
            self._require_link(snapshot, link_id)
            return snapshot.with_links(l for l in snapshot.links if l.id != link_id)

        self.commit(mutation)

    def toggle_pin(self, link_id: str) -> bool:
        """Flip the pinned flag of a link and return the new value."""
        def mutation(snapshot: Snapshot) -> Snapshot:
            self._require_link(snapshot, link_id)
            return snapshot.with_links(
                l.with_patch(pinned=not l.pinned) if l.id == link_id else l for l in snapshot.links
            )

        new_snapshot = self.commit(mutation)
        return next(l.pinned for l in new_snapshot.links if l.id == link_id)

    def reorder_links(self, source_id: str, target_id: str):
        self.commit(lambda snapshot: move_link(snapshot, source_id, target_id))

    @staticmethod
    def _require_link(snapshot: Snapshot, link_id: str):
        if not any(l.id == link_id for l in snapshot.links):
            raise KeyError(f"Link not found: {link_id}")

    # Category mutations

    def update_categories(self, categories: Iterable[Category], links: Optional[Iterable[LinkItem]] = None):
        """Replace the category list, and optionally the links with it."""
        categories = tuple(categories)
        links = tuple(links) if links is not None else None

        def mutation(snapshot: Snapshot) -> Snapshot:
            updated = snapshot.with_categories(categories)
            return updated.with_links(links) if links is not None else updated

        self.commit(mutation)

    def add_category(self, name: str, icon: Optional[str] = None, password: Optional[str] = None) -> Category:
        created: List[Category] = []

        def mutation(snapshot: Snapshot) -> Snapshot:
            fields = {"icon": icon} if icon else {}
            category = Category(
                id=generate_link_id(c.id for c in snapshot.categories),
                name=name,
                password=password or None,
                **fields
            )
            created.append(category)
            return snapshot.with_categories(snapshot.categories + (category,))

        self.commit(mutation)
        return created[0]

    def edit_category(self, category_id: str, **patch) -> Category:
        """
        Update fields of a category (name, icon, password).

        Raises:
            KeyError: If no category has ``category_id``
        """
        patch.pop("id", None)

        def mutation(snapshot: Snapshot) -> Snapshot:
            if not any(c.id == category_id for c in snapshot.categories):
                raise KeyError(f"Category not found: {category_id}")
            return snapshot.with_categories(
                replace(c, **patch) if c.id == category_id else c for c in snapshot.categories
            )

        new_snapshot = self.commit(mutation)
        return next(c for c in new_snapshot.categories if c.id == category_id)

    def delete_category(self, category_id: str):
        """Remove a category; its links move to the fallback category."""
        self.commit(lambda snapshot: delete_category(
            snapshot,
            category_id,
            self.options.fallback_category_id,
            self.options.default_category,
        ))

    # Bulk operations

    def import_bookmarks(self, links: Iterable[LinkItem], categories: Iterable[Category]) -> MergeResult:
        """Merge imported links and categories into the current state."""
        results: List[MergeResult] = []
        links = tuple(links)
        categories = tuple(categories)

        def mutation(snapshot: Snapshot) -> Snapshot:
            result = merge_import(snapshot, links, categories)
            results.append(result)
            return result.snapshot

        self.commit(mutation)
        return results[0]

    def restore_backup(self, links: Iterable[LinkItem], categories: Iterable[Category]):
        """Replace links and categories wholesale with restored ones."""
        links = tuple(links)
        categories = tuple(categories)
        self.commit(lambda snapshot: Snapshot(links=links, categories=categories, settings=snapshot.settings))

    def update_settings(self, settings: SiteSettings):
        """
        Change the site settings.

        Works without a credential: the change is then only kept locally
        until the next authenticated push.
        """
        self.commit(lambda snapshot: snapshot.with_settings(settings), require_auth=False)
