"""
News loading with a day-partitioned snapshot cache.

``load_news`` decides, per call, whether a request is answered from the
snapshot cache or by a live sync:

1. A snapshot for a past date is served as-is; past dates are cache-only.
2. Today's snapshot is served while it was built from the same OPML file,
   with a per-feed cap at least as large as requested, within the TTL.
3. Otherwise today is synced: sources are read, feeds are fetched, and the
   articles are re-bucketed into snapshots by their own published date.

A forced sync bypasses steps 1 and 2 and is only allowed for today.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from .bucketing import (
    apply_per_feed_limit,
    filter_articles_by_date_key,
    filter_articles_with_known_published_date,
    group_articles_by_published_date,
)
from .config import DEFAULT_CACHE_TTL_MINUTES, FetchConfig
from .dates import parse_date_key, today_date_key
from .errors import NoSnapshot, SyncNotAllowed
from .fetcher import fetch_articles
from .logging_utils import get_logger, log_event
from .opml import read_feed_sources
from .storage import is_cache_fresh, load_cache, save_cache
from .types import LoadedNews, NewsCache


@dataclass
class LoadNewsOptions:
    """Parameters of a single news load.

    Attributes:
        cache_dir: Root directory of the snapshot cache
        date_key: Requested date, ``yyyy-mm-dd``
        opml_path: OPML feed list to sync from
        force_sync: Skip the cache and sync now (today only)
        limit_per_feed: Maximum number of articles per feed
        cache_ttl_minutes: Freshness window for today's snapshot
        drop_undated: Drop undated articles during sync instead of filing
            them under ``date_key``
        fetch: HTTP settings used by the feed fetcher
    """

    cache_dir: str
    date_key: str
    opml_path: str
    force_sync: bool = False
    limit_per_feed: int = 3
    cache_ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES
    drop_undated: bool = False
    fetch: FetchConfig | None = None


def _from_snapshot(cache: NewsCache, date_key: str, limit_per_feed: int) -> LoadedNews:
    articles = filter_articles_by_date_key(cache.articles, date_key)
    return LoadedNews(
        from_cache=True,
        updated_at=cache.updated_at,
        categories=list(cache.categories),
        articles=apply_per_feed_limit(articles, limit_per_feed),
        warnings=[],
    )


def _is_reusable_today(cache: NewsCache, options: LoadNewsOptions, now: datetime) -> bool:
    return (
        cache.opml_path == options.opml_path
        and cache.limit_per_feed >= options.limit_per_feed
        and is_cache_fresh(cache, options.cache_ttl_minutes, now)
    )


def load_news(
    options: LoadNewsOptions,
    now: datetime | None = None,
    logger: logging.Logger | None = None,
) -> LoadedNews:
    """Load news for ``options.date_key`` from the cache or a live sync.

    Args:
        options: Load parameters
        now: Current time, timezone-aware; defaults to the local clock
        logger: Logger for cache and sync events

    Returns:
        LoadedNews; ``from_cache`` tells whether the network was used

    Raises:
        InvalidDateKey: If ``options.date_key`` is not a valid date key
        SyncNotAllowed: If a forced sync targets a past date
        NoSnapshot: If a past date has no snapshot
        NoFeedSources: If the OPML file declares no feed
        OpmlReadError: If the OPML file cannot be read
    """
    logger = logger or get_logger()
    now = now if now is not None else datetime.now().astimezone()
    date_key = options.date_key
    parse_date_key(date_key)

    is_today = date_key == today_date_key(now)
    cached = load_cache(options.cache_dir, date_key, logger)

    if cached is not None and not options.force_sync:
        if not is_today:
            log_event(logger, "Cache hit", event="cache_hit", date_key=date_key, today=False)
            return _from_snapshot(cached, date_key, options.limit_per_feed)
        if _is_reusable_today(cached, options, now):
            log_event(logger, "Cache hit", event="cache_hit", date_key=date_key, today=True)
            return _from_snapshot(cached, date_key, options.limit_per_feed)

    if not is_today:
        if options.force_sync:
            raise SyncNotAllowed()
        raise NoSnapshot(date_key)

    log_event(
        logger,
        "Cache miss" if cached is None else "Cache stale",
        event="cache_miss",
        date_key=date_key,
        force_sync=options.force_sync,
    )
    return _sync_today(options, now, logger)


def _sync_today(options: LoadNewsOptions, now: datetime, logger: logging.Logger) -> LoadedNews:
    date_key = options.date_key
    log_event(logger, "Sync start", event="sync_start", date_key=date_key, opml_path=options.opml_path)

    sources, categories = read_feed_sources(options.opml_path)
    fetched = fetch_articles(sources, options.limit_per_feed, options.fetch, logger=logger)
    updated_at = now.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    to_partition = fetched.articles
    if options.drop_undated:
        to_partition = filter_articles_with_known_published_date(to_partition)

    partitions = group_articles_by_published_date(to_partition, date_key)
    partitions.setdefault(date_key, [])

    for partition_key, articles in partitions.items():
        snapshot = NewsCache(
            opml_path=options.opml_path,
            limit_per_feed=options.limit_per_feed,
            updated_at=updated_at,
            categories=list(categories),
            articles=articles,
            snapshot_date=partition_key,
        )
        path = save_cache(options.cache_dir, partition_key, snapshot)
        log_event(
            logger,
            "Snapshot saved",
            level=logging.DEBUG,
            event="snapshot_saved",
            date_key=partition_key,
            cache_path=str(path),
            article_count=len(articles),
        )

    log_event(
        logger,
        "Sync complete",
        event="sync_complete",
        date_key=date_key,
        article_count=len(to_partition),
        warning_count=len(fetched.warnings),
        partition_count=len(partitions),
    )
    return LoadedNews(
        from_cache=False,
        updated_at=updated_at,
        categories=list(categories),
        articles=list(to_partition),
        warnings=list(fetched.warnings),
    )
