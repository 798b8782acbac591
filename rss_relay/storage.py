"""
JSON storage for tracking delivered feed items.

Keeps a bounded, newest-first history of items per feed URL so that
articles are not delivered twice, including after restarts.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from rss_relay.items import FeedItem

logger = logging.getLogger(__name__)

# Default number of items remembered per feed
MAX_ITEMS_PER_FEED = 10


class SeenItemStore:
    """
    Per-feed history of delivered items.

    Mutations only touch memory; ``save`` must be called after a batch
    of changes to persist them.
    """

    def __init__(self, cache_path: str | Path, max_items: int = MAX_ITEMS_PER_FEED):
        """
        Initialize an empty store.

        Parameters
        ----------
        cache_path : str | Path
            Path to the JSON cache file.
        max_items : int
            Maximum number of items kept per feed.
        """
        self.cache_path = Path(cache_path)
        self.max_items = max_items
        self._feeds: dict[str, list[FeedItem]] = {}

    @classmethod
    def load(cls, cache_path: str | Path, max_items: int = MAX_ITEMS_PER_FEED) -> "SeenItemStore":
        """
        Load the store from its cache file.

        A missing or unreadable file yields an empty store.

        Parameters
        ----------
        cache_path : str | Path
            Path to the JSON cache file.
        max_items : int
            Maximum number of items kept per feed.

        Returns
        -------
        SeenItemStore
            The loaded store.
        """
        store = cls(cache_path, max_items)

        if not store.cache_path.exists():
            logger.info("No cache at %s, starting empty", store.cache_path)
            return store

        try:
            with open(store.cache_path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("Cache root must be an object")

            feeds = {}
            for feed_url, records in data.items():
                if not isinstance(records, list):
                    raise ValueError(f"History for {feed_url} must be a list")
                feeds[feed_url] = [FeedItem.from_dict(r) for r in records][:max_items]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.error("Failed to read cache %s: %s", store.cache_path, e)
            return store

        store._feeds = feeds
        logger.info(
            "Loaded cache: %d feed(s), %d item(s)",
            store.feed_count,
            store.item_count,
        )
        return store

    def save(self) -> bool:
        """
        Write the whole store to its cache file.

        The file is replaced atomically.

        Returns
        -------
        bool
            True if the file was written.
        """
        data = {
            feed_url: [item.to_dict() for item in items]
            for feed_url, items in self._feeds.items()
        }

        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.cache_path.parent,
                prefix=f".{self.cache_path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.cache_path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("Failed to save cache %s: %s", self.cache_path, e)
            return False

        logger.debug("Saved cache with %d item(s)", self.item_count)
        return True

    def record_item(self, feed_url: str, item: FeedItem) -> None:
        """
        Record an item as delivered for a feed.

        The item is prepended to the feed history, which is then
        truncated to the maximum size.

        Parameters
        ----------
        feed_url : str
            URL of the feed the item belongs to.
        item : FeedItem
            The item to record.
        """
        history = self._feeds.setdefault(feed_url, [])
        history.insert(0, item)
        del history[self.max_items :]

    def has_seen(self, feed_url: str, link: str) -> bool:
        """
        Check if an item link is in a feed history.

        Parameters
        ----------
        feed_url : str
            URL of the feed.
        link : str
            Link of the item.

        Returns
        -------
        bool
            True if the link was recorded for this feed.
        """
        return any(item.link == link for item in self._feeds.get(feed_url, ()))

    def history(self, feed_url: str) -> list[FeedItem]:
        """Return a copy of a feed history, newest first."""
        return list(self._feeds.get(feed_url, ()))

    @property
    def feed_count(self) -> int:
        """Number of feeds with a history."""
        return len(self._feeds)

    @property
    def item_count(self) -> int:
        """Total number of remembered items."""
        return sum(len(items) for items in self._feeds.values())
