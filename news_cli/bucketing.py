"""Utilities for bucketing articles into published-date partitions and per-feed caps."""

from __future__ import annotations

from .dates import resolve_published_date_key
from .types import Article


def group_articles_by_published_date(
    articles: list[Article],
    fallback_date_key: str,
) -> dict[str, list[Article]]:
    """Group articles by the date key they were published on.

    Articles without a resolvable timestamp go to ``fallback_date_key``.
    Input order is preserved inside each bucket, and buckets appear in the
    order their first article was seen.
    """
    buckets: dict[str, list[Article]] = {}
    for article in articles:
        date_key = resolve_published_date_key(article.published_at) or fallback_date_key
        buckets.setdefault(date_key, []).append(article)
    return buckets


def filter_articles_by_date_key(
    articles: list[Article],
    date_key: str,
    include_undated: bool = False,
) -> list[Article]:
    """Keep articles published on ``date_key``.

    When ``include_undated`` is set, articles without a resolvable timestamp
    are kept as well (they were stored in this partition as a fallback).
    """
    kept: list[Article] = []
    for article in articles:
        resolved = resolve_published_date_key(article.published_at)
        if resolved == date_key or (resolved is None and include_undated):
            kept.append(article)
    return kept


def filter_articles_with_known_published_date(articles: list[Article]) -> list[Article]:
    return [
        article
        for article in articles
        if resolve_published_date_key(article.published_at) is not None
    ]


def apply_per_feed_limit(articles: list[Article], limit_per_feed: int) -> list[Article]:
    """Keep at most ``limit_per_feed`` articles per (category, source) pair.

    The earliest articles in input order win; the relative order of the
    kept articles is unchanged.
    """
    counts: dict[tuple[str, str], int] = {}
    kept: list[Article] = []
    for article in articles:
        key = (article.category, article.source)
        count = counts.get(key, 0)
        if count >= limit_per_feed:
            continue
        counts[key] = count + 1
        kept.append(article)
    return kept
