"""
Snapshot merge operations for CloudNav.

Pure functions folding external data into a snapshot: importing a
(links, categories) pair, deleting a category while re-homing its links,
and drag-reordering links. Each returns a new snapshot and leaves the
input untouched.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from cloudnav.models import Category, LinkItem, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    """Merged snapshot plus the number of links appended."""
    snapshot: Snapshot
    links_added: int


def merge_import(current: Snapshot,
                 links: Iterable[LinkItem],
                 categories: Iterable[Category]) -> MergeResult:
    """
    Fold imported links and categories into a snapshot.

    An imported category is appended only when neither its id nor its name
    matches an existing category (exact, case-sensitive); otherwise it is
    dropped. Every imported link is appended, with no de-duplication.

    Args:
        current: Snapshot to merge into
        links: Imported links, appended in order
        categories: Imported categories

    Returns:
        MergeResult whose links_added equals the number of imported links
    """
    merged_categories: List[Category] = list(current.categories)
    dropped = 0
    for category in categories:
        if any(c.id == category.id or c.name == category.name for c in merged_categories):
            dropped += 1
            continue
        merged_categories.append(category)

    imported_links = list(links)
    merged = Snapshot(
        links=current.links + tuple(imported_links),
        categories=merged_categories,
        settings=current.settings,
    )
    logger.info(f"Imported {len(imported_links)} links, skipped {dropped} colliding categories")
    return MergeResult(snapshot=merged, links_added=len(imported_links))


def delete_category(current: Snapshot,
                    category_id: str,
                    fallback_category_id: str,
                    default_category: Category) -> Snapshot:
    """
    Remove a category and move its links to the fallback category.

    If no category is left afterwards, ``default_category`` is reinserted so
    the collection is never empty.

    Args:
        current: Snapshot to modify
        category_id: Category to remove
        fallback_category_id: Category id receiving the orphaned links
        default_category: Category inserted when the collection becomes empty

    Returns:
        New snapshot
    """
    categories = [c for c in current.categories if c.id != category_id]
    if not categories:
        categories.append(default_category)

    links = [
        link.with_patch(category_id=fallback_category_id) if link.category_id == category_id else link
        for link in current.links
    ]
    return Snapshot(links=links, categories=categories, settings=current.settings)


def move_link(current: Snapshot, source_id: str, target_id: str) -> Snapshot:
    """
    Move the link ``source_id`` to the position currently held by ``target_id``.

    Unknown ids, or a link dropped onto itself, leave the order unchanged.
    """
    if source_id == target_id:
        return current

    links = list(current.links)
    source_index = next((i for i, l in enumerate(links) if l.id == source_id), -1)
    target_index = next((i for i, l in enumerate(links) if l.id == target_id), -1)
    if source_index == -1 or target_index == -1:
        return current

    moved = links.pop(source_index)
    links.insert(target_index, moved)
    return current.with_links(links)
