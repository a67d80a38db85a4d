"""
Concurrent RSS/Atom feed fetching.

Every feed source is fetched in its own asyncio task over a shared httpx
client and parsed with feedparser. A failing feed produces a FetchWarning
instead of an exception, so one broken feed never affects the others.
Results are reassembled in source order once every task has settled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence

import feedparser
import httpx

from .config import FetchConfig
from .logging_utils import get_logger, log_event
from .types import Article, FeedSource, FetchBatch, FetchWarning

NO_TITLE = "No Title"

# Feed item fields tried, in order, for the published timestamp
PUBLISHED_FIELDS = ("published", "updated", "created")

FeedEntries = Sequence[Mapping[str, Any]]
ParseFeedFn = Callable[[str], Awaitable[FeedEntries]]


class FeedFetchError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


@dataclass
class SourceResult:
    """Outcome of fetching one source: either articles or a warning."""
    articles: list[Article]
    warning: FetchWarning | None = None


async def fetch_feed_entries(client: httpx.AsyncClient, url: str) -> list[Mapping[str, Any]]:
    """Fetch a single feed URL and return its parsed entries.

    Raises:
        httpx.HTTPError: On network failures and non-2xx responses
        FeedFetchError: If the body is not a usable RSS/Atom document
    """
    resp = await client.get(url)
    resp.raise_for_status()

    feed = feedparser.parse(resp.content)
    entries = list(getattr(feed, "entries", None) or [])
    if getattr(feed, "bozo", 0) and not entries:
        exc = getattr(feed, "bozo_exception", None)
        message = f"Invalid RSS/Atom feed: {url}"
        if exc:
            message += f" ({exc})"
        raise FeedFetchError(message)
    return entries


def entry_to_article(source: FeedSource, entry: Mapping[str, Any]) -> Article:
    """Map a raw feed entry onto an Article without reformatting its timestamp."""
    published_at = None
    for key in PUBLISHED_FIELDS:
        value = entry.get(key)
        if isinstance(value, str) and value:
            published_at = value
            break

    return Article(
        category=source.category,
        source=source.name,
        title=entry.get("title") or NO_TITLE,
        link=entry.get("link") or "",
        published_at=published_at,
    )


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def fetch_articles_async(
    sources: Sequence[FeedSource],
    limit_per_feed: int,
    cfg: FetchConfig | None = None,
    parse_feed: ParseFeedFn | None = None,
    logger: logging.Logger | None = None,
) -> FetchBatch:
    """Fetch all sources concurrently and collect articles and warnings.

    Args:
        sources: Feed sources, in the order results should be returned
        limit_per_feed: Maximum number of items taken from each feed
        cfg: HTTP settings for the default httpx-based parser
        parse_feed: Optional coroutine function returning entries for a URL;
            replaces the httpx client when given
        logger: Logger for fetch events

    Returns:
        FetchBatch whose articles and warnings follow the order of ``sources``
    """
    logger = logger or get_logger()

    if parse_feed is not None:
        return await _gather_sources(sources, limit_per_feed, parse_feed, logger)

    cfg = cfg or FetchConfig()
    async with httpx.AsyncClient(
        timeout=cfg.timeout_seconds,
        headers={"User-Agent": cfg.user_agent},
        follow_redirects=True,
        trust_env=cfg.trust_env,
    ) as client:

        async def _parse(url: str) -> FeedEntries:
            return await fetch_feed_entries(client, url)

        return await _gather_sources(sources, limit_per_feed, _parse, logger)


async def _gather_sources(
    sources: Sequence[FeedSource],
    limit_per_feed: int,
    parse_feed: ParseFeedFn,
    logger: logging.Logger,
) -> FetchBatch:
    async def _fetch_single(source: FeedSource) -> SourceResult:
        try:
            entries = await parse_feed(source.url)
        except Exception as exc:  # noqa: BLE001
            message = _error_message(exc)
            log_event(
                logger,
                "Fetch failed",
                event="fetch_failed",
                url=source.url,
                source=source.name,
                category=source.category,
                error=message,
            )
            return SourceResult(
                articles=[],
                warning=FetchWarning(
                    category=source.category,
                    source=source.name,
                    url=source.url,
                    message=message,
                ),
            )

        items = list(entries or [])[:limit_per_feed]
        articles = [entry_to_article(source, item) for item in items]
        log_event(
            logger,
            "Fetch ok",
            level=logging.DEBUG,
            event="fetch_ok",
            url=source.url,
            source=source.name,
            article_count=len(articles),
        )
        return SourceResult(articles=articles)

    tasks = [asyncio.create_task(_fetch_single(source)) for source in sources]
    results = await asyncio.gather(*tasks)

    batch = FetchBatch()
    for result in results:
        batch.articles.extend(result.articles)
        if result.warning is not None:
            batch.warnings.append(result.warning)
    return batch


def fetch_articles(
    sources: Sequence[FeedSource],
    limit_per_feed: int,
    cfg: FetchConfig | None = None,
    parse_feed: ParseFeedFn | None = None,
    logger: logging.Logger | None = None,
) -> FetchBatch:
    """Synchronous entry point around :func:`fetch_articles_async`."""
    return asyncio.run(
        fetch_articles_async(sources, limit_per_feed, cfg, parse_feed, logger)
    )
