"""
Tests for CloudNav data models and their wire form.
"""
from dataclasses import FrozenInstanceError

import pytest

from cloudnav.config import default_snapshot
from cloudnav.models import CardStyle, Category, LinkItem, SiteSettings, Snapshot


class TestLinkItem:
    """Test LinkItem wire conversion and patching."""

    def test_to_dict_uses_camel_case(self):
        link = LinkItem(id="1", title="GitHub", url="https://github.com", category_id="dev",
                        pinned=True, created_at=1700000000000)
        assert link.to_dict() == {
            "id": "1",
            "title": "GitHub",
            "url": "https://github.com",
            "categoryId": "dev",
            "pinned": True,
            "createdAt": 1700000000000,
        }

    def test_optional_fields_omitted_when_unset(self):
        """Absent description and icon are left out of the wire form."""
        data = LinkItem(id="1", title="t", url="u", category_id="c").to_dict()
        assert "description" not in data
        assert "icon" not in data

    def test_from_dict(self):
        link = LinkItem.from_dict({
            "id": "7",
            "title": "Docs",
            "url": "https://docs.python.org",
            "categoryId": "dev",
            "description": "Python docs",
            "createdAt": 5,
        })
        assert link.category_id == "dev"
        assert link.description == "Python docs"
        assert link.pinned is False
        assert link.created_at == 5

    def test_from_dict_requires_id_and_url(self):
        with pytest.raises(ValueError):
            LinkItem.from_dict({"title": "no id", "url": "https://x"})
        with pytest.raises(ValueError):
            LinkItem.from_dict({"id": "1", "title": "no url"})

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            LinkItem.from_dict(["id", "url"])

    def test_with_patch_keeps_identity(self):
        """Patching never changes id or creation time."""
        link = LinkItem(id="1", title="Old", url="https://a", category_id="c", created_at=10)
        patched = link.with_patch(title="New", id="2", created_at=99)
        assert patched.title == "New"
        assert patched.id == "1"
        assert patched.created_at == 10
        assert link.title == "Old"

    def test_frozen(self):
        link = LinkItem(id="1", title="t", url="u", category_id="c")
        with pytest.raises(FrozenInstanceError):
            link.title = "changed"

    def test_empty_strings_mean_unset(self):
        """Empty description and icon are stored as unset, also through patches."""
        link = LinkItem(id="1", title="t", url="u", category_id="c", description="", icon="")
        assert link.description is None
        assert link.icon is None

        patched = LinkItem(id="1", title="t", url="u", category_id="c", description="d").with_patch(description="")
        assert patched.description is None
        assert LinkItem.from_dict(patched.to_dict()) == patched

    def test_pinned_must_be_boolean(self):
        """Only a JSON true pins a link."""
        base = {"id": "1", "title": "t", "url": "u", "categoryId": "c"}
        assert LinkItem.from_dict({**base, "pinned": "false"}).pinned is False
        assert LinkItem.from_dict({**base, "pinned": 1}).pinned is False
        assert LinkItem.from_dict({**base, "pinned": None}).pinned is False
        assert LinkItem.from_dict({**base, "pinned": True}).pinned is True


class TestCategory:
    """Test Category defaults and password handling."""

    def test_default_icon(self):
        assert Category(id="x", name="X").icon == "Folder"

    def test_password_only_serialized_when_set(self):
        assert "password" not in Category(id="x", name="X").to_dict()
        assert Category(id="x", name="X", password="pw").to_dict()["password"] == "pw"

    def test_empty_password_is_unprotected(self):
        """An empty password string means the category is not locked."""
        category = Category.from_dict({"id": "x", "name": "X", "password": ""})
        assert category.password is None
        assert not category.is_protected

    def test_empty_fields_normalized_on_construction(self):
        category = Category(id="x", name="X", icon="", password="")
        assert category.icon == "Folder"
        assert category.password is None
        assert Category.from_dict(category.to_dict()) == category

    def test_from_dict_requires_id_and_name(self):
        with pytest.raises(ValueError):
            Category.from_dict({"id": "x"})


class TestSiteSettings:
    """Test SiteSettings defaults."""

    def test_defaults(self):
        settings = SiteSettings()
        assert settings.title == "CloudNav - My Navigation"
        assert settings.nav_title == "CloudNav"
        assert settings.favicon == "/favicon.ico"
        assert settings.card_style == CardStyle.DETAILED

    def test_partial_dict_uses_defaults(self):
        settings = SiteSettings.from_dict({"title": "Mine"})
        assert settings.title == "Mine"
        assert settings.nav_title == "CloudNav"

    def test_unknown_card_style_falls_back(self):
        settings = SiteSettings.from_dict({"cardStyle": "fancy"})
        assert settings.card_style == CardStyle.DETAILED

    def test_non_string_values_fall_back(self):
        """A null or non-string field takes the default rather than its repr."""
        settings = SiteSettings.from_dict({"title": None, "navTitle": 42, "favicon": ""})
        assert settings.title == "CloudNav - My Navigation"
        assert settings.nav_title == "CloudNav"
        assert settings.favicon == ""


class TestSnapshot:
    """Test Snapshot conversion and defaults filling."""

    def test_round_trip(self, sample_snapshot):
        assert Snapshot.from_dict(sample_snapshot.to_dict()) == sample_snapshot

    def test_collections_become_tuples(self):
        snapshot = Snapshot(links=[LinkItem(id="1", title="t", url="u", category_id="c")])
        assert isinstance(snapshot.links, tuple)
        assert isinstance(snapshot.categories, tuple)

    def test_missing_keys_take_defaults(self):
        """Missing top-level keys are filled from the defaults snapshot."""
        defaults = default_snapshot()
        snapshot = Snapshot.from_dict(
            {"links": [{"id": "1", "title": "t", "url": "u", "categoryId": "common"}]},
            defaults=defaults
        )
        assert len(snapshot.links) == 1
        assert snapshot.categories == defaults.categories
        assert snapshot.settings == defaults.settings

    def test_empty_list_is_kept(self):
        """A present but empty list is not replaced by defaults."""
        snapshot = Snapshot.from_dict({"links": [], "categories": []}, defaults=default_snapshot())
        assert snapshot.links == ()
        assert snapshot.categories == ()

    def test_structurally_invalid(self):
        with pytest.raises(ValueError):
            Snapshot.from_dict({"links": {"id": "1"}})
        with pytest.raises(ValueError):
            Snapshot.from_dict({"categories": "dev"})
        with pytest.raises(ValueError):
            Snapshot.from_dict("not a snapshot")

    def test_with_helpers_return_new_values(self, sample_snapshot):
        trimmed = sample_snapshot.with_links(sample_snapshot.links[:1])
        assert len(trimmed.links) == 1
        assert len(sample_snapshot.links) == 3
        assert trimmed.categories == sample_snapshot.categories
