"""
Reconciliation of fetched feed entries against the seen-item store.
"""

import logging
from collections.abc import Iterable

from rss_relay.items import DEFAULT_SNIPPET_LENGTH, FeedItem, RawItem, normalize
from rss_relay.storage import SeenItemStore

logger = logging.getLogger(__name__)

# Number of items considered when a feed is first added
INITIAL_ITEMS_TO_SEND = 3


def reconcile(
    feed_url: str,
    raw_items: Iterable[RawItem],
    store: SeenItemStore,
    limit: int | None = None,
    max_length: int = DEFAULT_SNIPPET_LENGTH,
) -> list[FeedItem]:
    """
    Find the new items of a feed and record them as seen.

    Every new item is recorded in the store as soon as it is found, so a
    duplicate link later in the same batch is skipped. Since records are
    prepended, a fresh batch ``[A, B]`` is returned as ``[A, B]`` and
    stored as ``[B, A]``.

    Parameters
    ----------
    feed_url : str
        URL of the feed the items come from.
    raw_items : Iterable[RawItem]
        Entries in the order the feed returned them.
    store : SeenItemStore
        Store updated with every new item.
    limit : int | None
        If set, only the first ``limit`` entries are candidates.
    max_length : int
        Maximum snippet length for normalized items.

    Returns
    -------
    list[FeedItem]
        New items in discovery order.
    """
    candidates = list(raw_items)
    if limit is not None:
        candidates = candidates[:limit]

    new_items: list[FeedItem] = []
    for raw in candidates:
        item = normalize(raw, max_length)
        if item is None:
            logger.debug("Skipping entry without title or link in %s", feed_url)
            continue

        if store.has_seen(feed_url, item.link):
            continue

        new_items.append(item)
        store.record_item(feed_url, item)

    return new_items
