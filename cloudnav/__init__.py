"""
CloudNav - personal bookmark dashboard core

Keeps one collection of links, categories and display settings consistent
between a local persistent cache and a single remote store.

Design Principles:
- The whole snapshot is the only unit of persistence and remote exchange
- Every change is applied locally first; remote pushes never roll it back
- All writes are gated behind one shared credential
- Password-locked categories are unlocked per session only

Example Usage:
    >>> from cloudnav import LocalStore, RemoteStore, SyncController
    >>> controller = SyncController(LocalStore(path="cloudnav.db"),
    ...                             RemoteStore("https://nav.example.com"))
    >>> controller.initialize()
    >>> controller.login("secret")
    >>> controller.add_link("Example", "https://example.com", "common")
"""

__version__ = "1.0.0"
__author__ = "CloudNav Contributors"

# Data model
from cloudnav.models import CardStyle, Category, LinkItem, SiteSettings, Snapshot

# Configuration
from cloudnav.config import CloudNavConfig, SyncOptions, get_config, init_config

# Storage and sync
from cloudnav.db import CacheRead, LocalStore
from cloudnav.remote import FetchResult, FetchStatus, RemoteStore
from cloudnav.sync import LoadSource, SyncController, SyncStatus
from cloudnav.locks import CategoryLockManager
from cloudnav.merge import MergeResult, merge_import

# Errors
from cloudnav.exceptions import (
    AuthRequiredError,
    CloudNavError,
    NetworkFailureError,
    PushOutcome,
    UnauthorizedError,
)

__all__ = [
    # Models
    "CardStyle",
    "Category",
    "LinkItem",
    "SiteSettings",
    "Snapshot",
    # Config
    "CloudNavConfig",
    "SyncOptions",
    "get_config",
    "init_config",
    # Storage and sync
    "CacheRead",
    "LocalStore",
    "FetchResult",
    "FetchStatus",
    "RemoteStore",
    "LoadSource",
    "SyncController",
    "SyncStatus",
    "CategoryLockManager",
    "MergeResult",
    "merge_import",
    # Errors
    "AuthRequiredError",
    "CloudNavError",
    "NetworkFailureError",
    "PushOutcome",
    "UnauthorizedError",
]
