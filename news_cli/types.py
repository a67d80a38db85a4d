"""
Core data types for the news CLI.

This module defines the value objects passed between the pipeline stages:
- FeedSource: One feed entry read from the OPML file
- Article: A normalized feed item
- FetchWarning: A per-feed failure record
- FetchBatch: Result of fetching a list of sources
- NewsCache: A persisted per-day snapshot
- LoadedNews: Transient result returned by the news loader
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FeedSource:
    """A single RSS/Atom feed declared in the OPML file.

    Attributes:
        category: Display text of the parent outline
        name: Feed display name (falls back to the URL)
        url: Feed URL from the xmlUrl attribute
    """
    category: str
    name: str
    url: str


@dataclass(frozen=True)
class Article:
    """A normalized feed item.

    Attributes:
        category: Category of the feed the item came from
        source: Name of the feed the item came from
        title: Item title, "No Title" when the feed gave none
        link: Item link, empty string when missing
        published_at: Timestamp text exactly as the feed provided it
    """
    category: str
    source: str
    title: str
    link: str
    published_at: str | None = None


@dataclass(frozen=True)
class FetchWarning:
    """Records a feed whose fetch attempt failed."""
    category: str
    source: str
    url: str
    message: str


@dataclass
class FetchBatch:
    """Articles and warnings collected from one fetch run, in source order."""
    articles: list[Article] = field(default_factory=list)
    warnings: list[FetchWarning] = field(default_factory=list)


@dataclass
class NewsCache:
    """Snapshot persisted for a single date partition.

    Attributes:
        opml_path: OPML path the snapshot was synced from
        limit_per_feed: Per-feed cap used during the sync
        updated_at: ISO 8601 timestamp of the sync
        categories: Ordered category list from the OPML file
        articles: Articles whose published date resolves to this partition
        snapshot_date: Date key of the partition, if recorded
        version: Schema version, always 1
    """
    opml_path: str
    limit_per_feed: int
    updated_at: str
    categories: list[str] = field(default_factory=list)
    articles: list[Article] = field(default_factory=list)
    snapshot_date: str | None = None
    version: int = 1


@dataclass
class LoadedNews:
    """Result of a single news load, never persisted."""
    from_cache: bool
    updated_at: str
    categories: list[str]
    articles: list[Article]
    warnings: list[FetchWarning] = field(default_factory=list)
