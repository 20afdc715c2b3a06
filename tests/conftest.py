import threading

import pytest

from cloudnav.config import SyncOptions
from cloudnav.db import LocalStore
from cloudnav.exceptions import PushOutcome
from cloudnav.models import Category, LinkItem, SiteSettings, Snapshot, CardStyle
from cloudnav.remote import FetchResult, FetchStatus
from cloudnav.sync import SyncController


class FakeRemote:
    """
    In-memory stand-in for RemoteStore.

    Accepts pushes carrying ``password``; records every push. ``gate`` can
    hold pushes until released, and ``entered`` is set when a push starts.
    """

    endpoint = "http://remote.test/api/storage"

    def __init__(self, stored=None, password="secret"):
        self.stored = stored
        self.password = password
        self.unreachable = False
        self.network_down = False
        self.pushes = []
        self.fetches = 0
        self.gate = None
        self.entered = threading.Event()

    def fetch_snapshot(self, defaults=None):
        self.fetches += 1
        if self.unreachable:
            return FetchResult(FetchStatus.UNREACHABLE, error="connection refused")
        if self.stored is None or not self.stored.links:
            return FetchResult(FetchStatus.EMPTY)
        return FetchResult(FetchStatus.OK, snapshot=self.stored)

    def replace_snapshot(self, snapshot, credential):
        down = self.network_down
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        self.pushes.append((snapshot, credential))
        if down:
            return PushOutcome.FAILURE
        if credential != self.password:
            return PushOutcome.UNAUTHORIZED
        self.stored = snapshot
        return PushOutcome.OK

    def close(self):
        pass


@pytest.fixture
def sample_snapshot():
    """Small snapshot with one protected category."""
    return Snapshot(
        links=[
            LinkItem(id="100", title="Python Documentation", url="https://docs.python.org",
                     category_id="dev", description="Official Python docs", created_at=1690000000000),
            LinkItem(id="101", title="GitHub", url="https://github.com",
                     category_id="dev", pinned=True, created_at=1690000000001),
            LinkItem(id="102", title="Bank", url="https://bank.example.com",
                     category_id="private", pinned=True, created_at=1690000000002),
        ],
        categories=[
            Category(id="common", name="Common", icon="Star"),
            Category(id="dev", name="Development", icon="Code"),
            Category(id="private", name="Private", icon="Lock", password="hunter2"),
        ],
        settings=SiteSettings(title="My Nav", nav_title="Nav", favicon="/f.ico", card_style=CardStyle.SIMPLE),
    )


@pytest.fixture
def store(tmp_path):
    """Local cache in a temporary SQLite file."""
    local = LocalStore(path=str(tmp_path / "cache.db"))
    yield local
    local.close()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def options():
    # Long delay so "saved" stays observable unless a test shortens it
    return SyncOptions(saved_reset_delay=60)


@pytest.fixture
def make_controller(store, remote, options):
    """Factory for controllers sharing the store and fake remote."""
    created = []

    def _make(**kwargs):
        kwargs.setdefault("options", options)
        controller = SyncController(store, remote, **kwargs)
        created.append(controller)
        return controller

    yield _make
    for controller in created:
        controller.close()


@pytest.fixture
def controller(make_controller):
    """Initialized controller without a credential."""
    ctrl = make_controller()
    ctrl.initialize()
    return ctrl


@pytest.fixture
def logged_in(controller):
    """Initialized controller holding the accepted credential."""
    assert controller.login("secret")
    return controller
