"""
Tests for per-session category locking.
"""
from cloudnav.locks import CategoryLockManager
from cloudnav.models import Category, LinkItem, Snapshot
from cloudnav.utils import pinned_links, visible_links


class TestCategoryLockManager:
    """Test lock state transitions."""

    def test_unprotected_never_locked(self):
        locks = CategoryLockManager()
        assert not locks.is_locked(Category(id="a", name="A"))
        assert not locks.is_locked(None)

    def test_protected_starts_locked(self, sample_snapshot):
        locks = CategoryLockManager()
        private = sample_snapshot.categories[2]
        assert locks.is_locked(private)

    def test_wrong_password(self, sample_snapshot):
        """A wrong password changes nothing."""
        locks = CategoryLockManager()
        private = sample_snapshot.categories[2]
        assert locks.unlock(private, "guess") is False
        assert locks.is_locked(private)
        assert locks.unlocked == frozenset()

    def test_exact_match_required(self, sample_snapshot):
        locks = CategoryLockManager()
        private = sample_snapshot.categories[2]
        assert locks.unlock(private, "Hunter2") is False
        assert locks.unlock(private, "hunter2 ") is False

    def test_correct_password(self, sample_snapshot):
        locks = CategoryLockManager()
        private = sample_snapshot.categories[2]
        assert locks.unlock(private, "hunter2") is True
        assert not locks.is_locked(private)
        assert locks.unlocked == frozenset({"private"})

    def test_unlock_unprotected_is_noop(self):
        locks = CategoryLockManager()
        assert locks.unlock(Category(id="a", name="A"), "") is True
        assert locks.unlocked == frozenset()

    def test_reset_relocks(self, sample_snapshot):
        """A new session starts with every protected category locked."""
        locks = CategoryLockManager()
        private = sample_snapshot.categories[2]
        locks.unlock(private, "hunter2")
        locks.reset()
        assert locks.is_locked(private)


class TestLinkVisibility:
    """Test hiding links of locked categories."""

    def test_link_in_locked_category_hidden(self, sample_snapshot):
        locks = CategoryLockManager()
        bank = sample_snapshot.links[2]
        assert locks.is_link_hidden(bank, sample_snapshot.categories)
        assert bank not in visible_links(sample_snapshot, locks)

    def test_orphaned_link_visible(self, sample_snapshot):
        """Links whose category does not exist are never hidden."""
        locks = CategoryLockManager()
        orphan = LinkItem(id="x", title="Orphan", url="https://o", category_id="gone")
        assert not locks.is_link_hidden(orphan, sample_snapshot.categories)

    def test_pinned_excludes_locked(self, sample_snapshot):
        """Pinned links from a locked category stay out of the pinned view."""
        locks = CategoryLockManager()
        assert [l.id for l in pinned_links(sample_snapshot, locks)] == ["101"]

        locks.unlock(sample_snapshot.categories[2], "hunter2")
        assert [l.id for l in pinned_links(sample_snapshot, locks)] == ["101", "102"]

    def test_visibility_depends_only_on_session(self):
        """The same snapshot is shown differently per session, never modified."""
        snapshot = Snapshot(
            links=[LinkItem(id="1", title="t", url="u", category_id="p")],
            categories=[Category(id="p", name="P", password="pw")],
        )
        first, second = CategoryLockManager(), CategoryLockManager()
        first.unlock(snapshot.categories[0], "pw")
        assert len(visible_links(snapshot, first)) == 1
        assert len(visible_links(snapshot, second)) == 0
        assert snapshot.categories[0].password == "pw"
