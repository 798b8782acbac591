"""
Feed item models and normalization.

Turns raw parsed feed entries into canonical items ready to be
deduplicated and delivered.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Any

# Default maximum snippet length before truncation
DEFAULT_SNIPPET_LENGTH = 200

ELLIPSIS = "..."
NO_DESCRIPTION = "No description available"

TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass
class RawItem:
    """
    Entry as returned by the feed parser, before normalization.

    Attributes
    ----------
    title : str
        Entry title, possibly empty.
    link : str
        Entry URL, possibly empty.
    content_snippet : str
        Short summary of the entry.
    description : str
        Long-form content of the entry.
    """

    title: str = ""
    link: str = ""
    content_snippet: str = ""
    description: str = ""

    @classmethod
    def from_feedparser(cls, entry: Any) -> "RawItem":
        """
        Create a RawItem from a feedparser entry.

        Parameters
        ----------
        entry : Any
            A feedparser entry object.

        Returns
        -------
        RawItem
            Raw entry with missing fields left empty.
        """
        description = ""
        content = entry.get("content")
        if content:
            description = content[0].get("value", "") or ""

        return cls(
            title=(entry.get("title") or "").strip(),
            link=(entry.get("link") or "").strip(),
            content_snippet=entry.get("summary") or "",
            description=description,
        )


@dataclass
class FeedDocument:
    """
    A parsed feed.

    Attributes
    ----------
    title : str
        Feed title, empty if the feed has none.
    items : list[RawItem]
        Entries in the order the feed lists them.
    """

    title: str = ""
    items: list[RawItem] = field(default_factory=list)


@dataclass(frozen=True)
class FeedItem:
    """
    Canonical item, identified by its link.

    Attributes
    ----------
    title : str
        Non-empty item title.
    link : str
        Non-empty item URL.
    content_snippet : str
        Plain-text summary, length-capped.
    """

    title: str
    link: str
    content_snippet: str

    def to_dict(self) -> dict[str, str]:
        """Serialize with the keys used by the cache file."""
        return {
            "title": self.title,
            "link": self.link,
            "contentSnippet": self.content_snippet,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedItem":
        """
        Build an item from a cache file record.

        Raises
        ------
        ValueError
            If the record has no link.
        """
        link = data.get("link")
        if not isinstance(link, str) or not link:
            raise ValueError("Cached item has no link")
        return cls(
            title=str(data.get("title") or ""),
            link=link,
            content_snippet=str(data.get("contentSnippet") or ""),
        )


def clean_text(content: str) -> str:
    """
    Strip markup from content.

    Parameters
    ----------
    content : str
        Raw content possibly containing HTML.

    Returns
    -------
    str
        Plain text with entities decoded and whitespace collapsed.
    """
    text = TAG_PATTERN.sub("", content)
    text = html.unescape(text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def make_snippet(content: str | None, max_length: int = DEFAULT_SNIPPET_LENGTH) -> str:
    """
    Build a display snippet from raw content.

    Parameters
    ----------
    content : str | None
        Summary or description, possibly containing HTML.
    max_length : int
        Maximum length before the text is truncated.

    Returns
    -------
    str
        Cleaned text, truncated with an ellipsis when too long, or a
        placeholder when there is no usable text.
    """
    if not content:
        return NO_DESCRIPTION

    text = clean_text(content)
    if not text:
        return NO_DESCRIPTION

    if len(text) <= max_length:
        return text

    return text[:max_length] + ELLIPSIS


def normalize(raw: RawItem, max_length: int = DEFAULT_SNIPPET_LENGTH) -> FeedItem | None:
    """
    Convert a raw entry into a FeedItem.

    Parameters
    ----------
    raw : RawItem
        Entry from the feed parser.
    max_length : int
        Maximum snippet length.

    Returns
    -------
    FeedItem | None
        The canonical item, or None if the entry lacks a title or link.
    """
    title = (raw.title or "").strip()
    link = (raw.link or "").strip()
    if not title or not link:
        return None

    # Summary first, full content when the summary has no text
    snippet_source = raw.content_snippet
    if not clean_text(snippet_source or ""):
        snippet_source = raw.description

    return FeedItem(
        title=title,
        link=link,
        content_snippet=make_snippet(snippet_source, max_length),
    )
