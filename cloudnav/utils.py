import time
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse, parse_qsl, urlencode, urlunparse

import jmespath

from cloudnav.constants import FALLBACK_CATEGORY_ID
from cloudnav.locks import CategoryLockManager
from cloudnav.models import LinkItem, Snapshot


def now_millis() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def generate_link_id(existing_ids: Iterable[str], now_ms: Optional[int] = None) -> str:
    """
    Generate a time-derived link id that does not clash with ``existing_ids``.

    Links created within the same millisecond get the next free value.
    """
    taken = set(existing_ids)
    candidate = now_ms if now_ms is not None else now_millis()
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def search_links(links: Iterable[LinkItem], query: str) -> List[LinkItem]:
    """Case-insensitive substring match on title, url and description."""
    links = list(links)
    q = query.strip().lower()
    if not q:
        return links
    return [
        l for l in links
        if q in l.title.lower()
        or q in l.url.lower()
        or (l.description and q in l.description.lower())
    ]


def visible_links(snapshot: Snapshot, locks: CategoryLockManager) -> List[LinkItem]:
    """Links not hidden by a locked category."""
    return [l for l in snapshot.links if not locks.is_link_hidden(l, snapshot.categories)]


def pinned_links(snapshot: Snapshot, locks: CategoryLockManager) -> List[LinkItem]:
    """Pinned links, excluding those in locked categories."""
    return [l for l in visible_links(snapshot, locks) if l.pinned]


def parse_add_link(url: str) -> Tuple[Optional[Dict[str, str]], str]:
    """
    Extract an add-link deep link from a page URL.

    ``?add_url=...&add_title=...`` pre-fills a new link form.

    Returns:
        (prefill or None, url with the add_* parameters removed)
    """
    parsed = urlparse(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    values = dict(params)
    remaining = [(k, v) for k, v in params if k not in ("add_url", "add_title")]
    cleaned = urlunparse(parsed._replace(query=urlencode(remaining)))

    add_url = values.get("add_url")
    if not add_url:
        return None, url

    prefill = {
        "title": values.get("add_title", ""),
        "url": add_url,
        "category_id": FALLBACK_CATEGORY_ID,
    }
    return prefill, cleaned


def jmespath_query(snapshot: Snapshot, query: str) -> Any:
    """
    Apply a JMESPath query to the wire form of a snapshot.

    Args:
        snapshot: Snapshot to query
        query: JMESPath expression, e.g. "links[?pinned].url"

    Returns:
        The query result (JSON-compatible)
    """
    return jmespath.search(query, snapshot.to_dict())
