"""
Day-partitioned snapshot cache.

Snapshots live at ``<cache_dir>/<yyyy>/<mm>/<dd>/news.json``, one file per
date key. A missing, unreadable or malformed file is reported as absent;
a corrupt cache never blocks a run.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any

from .dates import date_key_parts, parse_iso8601
from .logging_utils import get_logger, log_event
from .types import Article, NewsCache

CACHE_FILENAME = "news.json"
CACHE_VERSION = 1


def get_cache_path(cache_dir: str | Path, date_key: str) -> Path:
    """Return the snapshot path for ``date_key``.

    Raises:
        InvalidDateKey: If ``date_key`` is not a valid calendar date key
    """
    year, month, day = date_key_parts(date_key)
    return Path(cache_dir) / year / month / day / CACHE_FILENAME


def article_to_dict(article: Article) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "category": article.category,
        "source": article.source,
        "title": article.title,
        "link": article.link,
    }
    if article.published_at is not None:
        payload["publishedAt"] = article.published_at
    return payload


def cache_to_dict(cache: NewsCache) -> dict[str, Any]:
    """Serialize a snapshot to its on-disk JSON shape."""
    payload: dict[str, Any] = {"version": CACHE_VERSION}
    if cache.snapshot_date is not None:
        payload["snapshotDate"] = cache.snapshot_date
    payload.update(
        {
            "opmlPath": cache.opml_path,
            "limitPerFeed": cache.limit_per_feed,
            "updatedAt": cache.updated_at,
            "categories": list(cache.categories),
            "articles": [article_to_dict(article) for article in cache.articles],
        }
    )
    return payload


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _article_from_dict(raw: Any) -> Article | None:
    if not isinstance(raw, dict):
        return None
    for key in ("category", "source", "title", "link"):
        if not isinstance(raw.get(key), str):
            return None
    published_at = raw.get("publishedAt")
    if published_at is not None and not isinstance(published_at, str):
        return None
    return Article(
        category=raw["category"],
        source=raw["source"],
        title=raw["title"],
        link=raw["link"],
        published_at=published_at,
    )


def cache_from_dict(raw: Any) -> NewsCache | None:
    """Validate a decoded JSON payload and build a snapshot from it.

    Returns None when any required field is missing or has the wrong type.
    """
    if not isinstance(raw, dict):
        return None
    if raw.get("version") != CACHE_VERSION or isinstance(raw.get("version"), bool):
        return None

    snapshot_date = raw.get("snapshotDate")
    limit_per_feed = raw.get("limitPerFeed")
    if snapshot_date is not None and not isinstance(snapshot_date, str):
        return None
    if not isinstance(raw.get("opmlPath"), str) or not isinstance(raw.get("updatedAt"), str):
        return None
    if not isinstance(limit_per_feed, int) or isinstance(limit_per_feed, bool):
        return None
    if not _is_str_list(raw.get("categories")) or not isinstance(raw.get("articles"), list):
        return None

    articles: list[Article] = []
    for item in raw["articles"]:
        article = _article_from_dict(item)
        if article is None:
            return None
        articles.append(article)

    return NewsCache(
        opml_path=raw["opmlPath"],
        limit_per_feed=limit_per_feed,
        updated_at=raw["updatedAt"],
        categories=list(raw["categories"]),
        articles=articles,
        snapshot_date=snapshot_date,
    )


def load_cache(
    cache_dir: str | Path,
    date_key: str,
    logger: logging.Logger | None = None,
) -> NewsCache | None:
    """Load the snapshot for ``date_key``, or None if absent or unusable."""
    cache_path = get_cache_path(cache_dir, date_key)
    if not cache_path.exists():
        return None

    try:
        with cache_path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, ValueError) as exc:
        log_event(
            logger or get_logger(),
            "Unreadable cache snapshot",
            level=logging.DEBUG,
            event="cache_corrupt",
            cache_path=str(cache_path),
            error=str(exc),
        )
        return None

    cache = cache_from_dict(raw)
    if cache is None:
        log_event(
            logger or get_logger(),
            "Cache snapshot failed validation",
            level=logging.DEBUG,
            event="cache_corrupt",
            cache_path=str(cache_path),
        )
    return cache


def _umask_file_mode() -> int:
    """Return the mode a plain ``open()`` would give a new file."""
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def save_cache(cache_dir: str | Path, date_key: str, cache: NewsCache) -> Path:
    """Write the snapshot for ``date_key``, replacing any existing one.

    The payload is written to a temporary file next to the target and moved
    into place, so readers see either the old or the new snapshot.
    """
    cache_path = get_cache_path(cache_dir, date_key)
    cache_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=".news-", suffix=".json.tmp", dir=str(cache_path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(cache_to_dict(cache), fh, ensure_ascii=False, indent=2)
        os.chmod(tmp_name, _umask_file_mode())
        os.replace(tmp_name, cache_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return cache_path


def is_cache_fresh(
    cache: NewsCache,
    ttl_minutes: int,
    now: datetime | None = None,
) -> bool:
    """Return True if the snapshot was updated less than ``ttl_minutes`` ago.

    An unparsable ``updated_at`` is always stale.
    """
    try:
        updated_at = parse_iso8601(cache.updated_at)
    except ValueError:
        return False

    current = now if now is not None else datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.astimezone()
    return current - updated_at < timedelta(minutes=ttl_minutes)
