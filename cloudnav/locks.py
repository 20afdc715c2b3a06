"""
Per-session category locking.

A category with a non-empty password is locked until the password is
supplied in the current session. The unlocked set lives only in memory;
a new session starts with every protected category locked again.

Passwords are compared in plain text with no hashing and no rate limiting.
This hides links from casual view; it does not protect secrets.
"""
import logging
from typing import Iterable, Optional, Set

from cloudnav.models import Category, LinkItem

logger = logging.getLogger(__name__)


class CategoryLockManager:
    """Tracks which password-protected categories are unlocked this session."""

    def __init__(self):
        self._unlocked: Set[str] = set()

    @property
    def unlocked(self) -> frozenset:
        return frozenset(self._unlocked)

    def is_locked(self, category: Optional[Category]) -> bool:
        if category is None or not category.password:
            return False
        return category.id not in self._unlocked

    def unlock(self, category: Category, provided_password: str) -> bool:
        """
        Unlock ``category`` when ``provided_password`` matches exactly.

        Returns:
            True on success; False leaves the state unchanged
        """
        if not category.password:
            return True
        if provided_password != category.password:
            logger.info(f"Wrong password for category '{category.name}'")
            return False
        self._unlocked.add(category.id)
        return True

    def is_link_hidden(self, link: LinkItem, categories: Iterable[Category]) -> bool:
        """Whether ``link`` belongs to a category that is currently locked."""
        for category in categories:
            if category.id == link.category_id:
                return self.is_locked(category)
        return False

    def reset(self) -> None:
        """Re-lock everything, as on application reload."""
        self._unlocked.clear()
