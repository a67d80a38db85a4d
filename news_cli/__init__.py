"""
news_cli - a command-line news aggregator over OPML-listed RSS feeds.

Feeds are fetched concurrently and stored in a day-partitioned snapshot
cache, so repeated runs inside the freshness window stay offline.

Main entry point is the CLI via the ``news`` command.

Example:
    $ news list --japan --limit 5
    $ news sync --json
"""

__all__ = [
    "__version__",
    "Article",
    "FeedSource",
    "FetchWarning",
    "LoadNewsOptions",
    "LoadedNews",
    "NewsCache",
    "load_news",
]
__version__ = "0.1.0"

from .news import LoadNewsOptions, load_news
from .types import Article, FeedSource, FetchWarning, LoadedNews, NewsCache
