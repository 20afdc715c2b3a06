"""
Data models for CloudNav.

The dashboard state is a single ``Snapshot`` of links, categories and site
settings. All model classes are frozen dataclasses: every change produces a
new value, so a snapshot handed out by the sync controller never changes
underneath its reader.

The module also defines the SQLAlchemy table backing the local key/value
cache (see ``cloudnav.db``).
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cloudnav.constants import DEFAULT_CATEGORY_ICON, DEFAULT_SITE_SETTINGS


class CardStyle(str, Enum):
    """How link cards are displayed."""
    SIMPLE = "simple"
    DETAILED = "detailed"


def _require_mapping(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _string_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


@dataclass(frozen=True)
class LinkItem:
    """
    A bookmarked link.

    Attributes:
        id: Opaque, time-derived identifier, unique within the snapshot
        title: Display title
        url: Target URL
        category_id: Id of the owning category (not validated; orphaned
            links simply render under no category)
        description: Optional short description, None when unset
        icon: Optional icon URL or glyph, None when unset
        pinned: Whether the link is pinned to the top section
        created_at: Creation time in milliseconds since the epoch, set once
    """
    id: str
    title: str
    url: str
    category_id: str
    description: Optional[str] = None
    icon: Optional[str] = None
    pinned: bool = False
    created_at: int = 0

    def __post_init__(self):
        # An empty description or icon means unset
        if self.description == "":
            object.__setattr__(self, "description", None)
        if self.icon == "":
            object.__setattr__(self, "icon", None)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "categoryId": self.category_id,
            "pinned": self.pinned,
            "createdAt": self.created_at,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.icon is not None:
            data["icon"] = self.icon
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkItem":
        data = _require_mapping(data, "link")
        if "id" not in data or "url" not in data:
            raise ValueError("link requires 'id' and 'url'")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            url=str(data["url"]),
            category_id=str(data.get("categoryId") or ""),
            description=data.get("description") or None,
            icon=data.get("icon") or None,
            pinned=data.get("pinned") is True,
            created_at=int(data.get("createdAt") or 0),
        )

    def with_patch(self, **patch) -> "LinkItem":
        """Return a copy with ``patch`` applied; ``id`` and ``created_at`` are kept."""
        patch.pop("id", None)
        patch.pop("created_at", None)
        return replace(self, **patch)


@dataclass(frozen=True)
class Category:
    """A named group of links, optionally protected by a password."""
    id: str
    name: str
    icon: str = DEFAULT_CATEGORY_ICON
    password: Optional[str] = None

    def __post_init__(self):
        if not self.icon:
            object.__setattr__(self, "icon", DEFAULT_CATEGORY_ICON)
        if self.password == "":
            object.__setattr__(self, "password", None)

    @property
    def is_protected(self) -> bool:
        return bool(self.password)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "icon": self.icon}
        if self.password:
            data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        data = _require_mapping(data, "category")
        if "id" not in data or "name" not in data:
            raise ValueError("category requires 'id' and 'name'")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            icon=str(data.get("icon") or DEFAULT_CATEGORY_ICON),
            password=data.get("password") or None,
        )


@dataclass(frozen=True)
class SiteSettings:
    """Dashboard display settings."""
    title: str = DEFAULT_SITE_SETTINGS["title"]
    nav_title: str = DEFAULT_SITE_SETTINGS["navTitle"]
    favicon: str = DEFAULT_SITE_SETTINGS["favicon"]
    card_style: CardStyle = CardStyle(DEFAULT_SITE_SETTINGS["cardStyle"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "navTitle": self.nav_title,
            "favicon": self.favicon,
            "cardStyle": self.card_style.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteSettings":
        data = _require_mapping(data, "settings")
        defaults = cls()
        try:
            card_style = CardStyle(data.get("cardStyle", defaults.card_style.value))
        except ValueError:
            card_style = defaults.card_style
        return cls(
            title=_string_or(data.get("title"), defaults.title),
            nav_title=_string_or(data.get("navTitle"), defaults.nav_title),
            favicon=_string_or(data.get("favicon"), defaults.favicon),
            card_style=card_style,
        )


@dataclass(frozen=True)
class Snapshot:
    """
    The whole dashboard state: the only unit of persistence and remote exchange.

    Ordering of ``links`` and ``categories`` is significant and preserved by
    every operation except an explicit reorder.
    """
    links: Tuple[LinkItem, ...] = ()
    categories: Tuple[Category, ...] = ()
    settings: SiteSettings = field(default_factory=SiteSettings)

    def __post_init__(self):
        # Accept any iterable but always store tuples
        object.__setattr__(self, "links", tuple(self.links))
        object.__setattr__(self, "categories", tuple(self.categories))

    def with_links(self, links: Iterable[LinkItem]) -> "Snapshot":
        return replace(self, links=tuple(links))

    def with_categories(self, categories: Iterable[Category]) -> "Snapshot":
        return replace(self, categories=tuple(categories))

    def with_settings(self, settings: SiteSettings) -> "Snapshot":
        return replace(self, settings=settings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "links": [link.to_dict() for link in self.links],
            "categories": [category.to_dict() for category in self.categories],
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: Optional["Snapshot"] = None) -> "Snapshot":
        """
        Build a snapshot from its wire form.

        Args:
            data: Mapping with ``links``, ``categories`` and ``settings`` keys
            defaults: Snapshot supplying any top-level key that is missing
                (a present but empty list is kept as empty)

        Raises:
            ValueError: If the payload is structurally invalid
        """
        data = _require_mapping(data, "snapshot")
        defaults = defaults or cls()

        raw_links = data.get("links")
        if raw_links is None:
            links = defaults.links
        elif isinstance(raw_links, list):
            links = tuple(LinkItem.from_dict(item) for item in raw_links)
        else:
            raise ValueError("'links' must be a list")

        raw_categories = data.get("categories")
        if raw_categories is None:
            categories = defaults.categories
        elif isinstance(raw_categories, list):
            categories = tuple(Category.from_dict(item) for item in raw_categories)
        else:
            raise ValueError("'categories' must be a list")

        raw_settings = data.get("settings")
        settings = defaults.settings if raw_settings is None else SiteSettings.from_dict(raw_settings)

        return cls(links=links, categories=categories, settings=settings)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class StoredValue(Base):
    """
    One entry of the local key/value cache.

    Values are opaque strings (JSON blobs or the raw credential); writes
    overwrite the whole value.
    """
    __tablename__ = "stored_values"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<StoredValue(key='{self.key}')>"
