"""
Command-line interface for the news CLI.

Uses Typer to provide ``news list`` (the default command, alias ``ls``) and
``news sync``. Supports loading .env files and a YAML config file; command
line options override both.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
import sys
from typing import Callable

from dotenv import load_dotenv
from rich.console import Console
import typer
import yaml

from . import __version__
from .bucketing import filter_articles_by_date_key
from .config import AppConfig, load_config
from .dates import (
    DATE_KEY_RE,
    default_list_date_keys,
    is_valid_date_key,
    parse_iso8601,
    today_date_key,
)
from .errors import InvalidOption, NewsError, NoSnapshot
from .logging_utils import setup_logging
from .news import LoadNewsOptions, load_news
from .renderer import (
    ListView,
    SyncSummary,
    list_view_payload,
    print_json,
    render_list,
    render_sync_summary,
    sync_summary_payload,
)
from .types import Article, FetchWarning, LoadedNews

app = typer.Typer(
    add_completion=False,
    help="Global and Japan news CLI with OPML-based RSS feeds.",
)
console = Console()
err_console = Console(stderr=True)

CATEGORY_SHORTCUTS = (
    ("japan", "Japan"),
    ("international", "International"),
    ("others", "Others"),
)
UNLIMITED_PER_FEED = sys.maxsize


@dataclass
class ListOptions:
    """Options of ``news list`` as given on the command line."""
    sync: bool = False
    date: str | None = None
    category: str | None = None
    japan: bool = False
    international: bool = False
    others: bool = False
    limit: str | None = None
    json: bool = False


@dataclass
class DayChunk:
    date_key: str
    loaded: LoadedNews
    articles: list[Article]


def parse_positive_integer_option(value: str, option_name: str) -> int:
    """Parse a strictly positive decimal integer option value.

    Raises:
        InvalidOption: If the value is not a positive integer
    """
    text = value.strip()
    if not text.isdigit() or not text.isascii() or int(text) <= 0:
        raise InvalidOption(f"{option_name} must be a positive integer.")
    return int(text)


def parse_date_option(value: str | None, now: datetime | None = None) -> tuple[str, bool]:
    """Resolve the ``--date`` option to a date key and whether it is today.

    Raises:
        InvalidOption: If the value is not a valid ``yyyy-mm-dd`` date
    """
    today = today_date_key(now)
    if not value:
        return today, True
    if not DATE_KEY_RE.fullmatch(value):
        raise InvalidOption("--date format must be yyyy-mm-dd.")
    if not is_valid_date_key(value):
        raise InvalidOption("--date must be a valid calendar date.")
    return value, value == today


def _normalize_category(value: str) -> str:
    return value.strip().lower()


def resolve_category_filters(
    category: str | None = None,
    japan: bool = False,
    international: bool = False,
    others: bool = False,
) -> list[str]:
    """Merge ``--category`` and the shortcut flags into a deduplicated filter list."""
    values: list[str] = []
    if category:
        values.extend(chunk.strip() for chunk in category.split(",") if chunk.strip())

    flags = {"japan": japan, "international": international, "others": others}
    for flag, name in CATEGORY_SHORTCUTS:
        if flags[flag]:
            values.append(name)

    deduped: dict[str, str] = {}
    for value in values:
        deduped.setdefault(_normalize_category(value), value)
    return list(deduped.values())


def merge_categories_in_order(chunks: list[DayChunk]) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for chunk in chunks:
        for category in chunk.loaded.categories:
            if category in seen:
                continue
            seen.add(category)
            merged.append(category)
    return merged


def resolve_latest_updated_at(chunks: list[DayChunk]) -> str:
    """Return the most recent parseable ``updated_at`` among the loaded days."""
    if not chunks:
        return "1970-01-01T00:00:00.000Z"

    latest = chunks[0].loaded.updated_at
    try:
        latest_dt = parse_iso8601(latest)
    except ValueError:
        latest_dt = None

    for chunk in chunks[1:]:
        try:
            current = parse_iso8601(chunk.loaded.updated_at)
        except ValueError:
            continue
        if latest_dt is None or current > latest_dt:
            latest = chunk.loaded.updated_at
            latest_dt = current
    return latest


def build_config(
    config: Path | None = None,
    opml: Path | None = None,
    cache_dir: Path | None = None,
    cache_ttl_minutes: str | None = None,
    log_level: str | None = None,
) -> AppConfig:
    """Load configuration and apply command-line overrides on top of it."""
    load_dotenv()
    cfg = load_config(str(config) if config else None)

    if opml is not None:
        cfg.news.opml_path = str(opml.resolve())
    if cache_dir is not None:
        cfg.news.cache_dir = str(cache_dir.resolve())
    if cache_ttl_minutes is not None:
        cfg.news.cache_ttl_minutes = parse_positive_integer_option(
            cache_ttl_minutes, "--cache-ttl-minutes"
        )
    if log_level:
        cfg.logging.level = log_level

    setup_logging(cfg.logging, Path(cfg.logging.directory or cfg.news.cache_dir))
    return cfg


def _load_options(cfg: AppConfig, date_key: str, force_sync: bool, limit: int) -> LoadNewsOptions:
    return LoadNewsOptions(
        cache_dir=cfg.news.cache_dir,
        date_key=date_key,
        opml_path=cfg.news.opml_path,
        force_sync=force_sync,
        limit_per_feed=limit,
        cache_ttl_minutes=cfg.news.cache_ttl_minutes,
        drop_undated=cfg.news.drop_undated,
        fetch=cfg.fetch,
    )


def _load_day(cfg: AppConfig, date_key: str, force_sync: bool, limit: int, now: datetime | None) -> DayChunk:
    loaded = load_news(_load_options(cfg, date_key, force_sync, limit), now=now)
    articles = filter_articles_by_date_key(loaded.articles, date_key)
    return DayChunk(date_key=date_key, loaded=loaded, articles=articles)


def execute_list(options: ListOptions, cfg: AppConfig, now: datetime | None = None) -> ListView:
    """Load one day (``--date``) or the rolling today/yesterday view and filter it."""
    limit = (
        parse_positive_integer_option(options.limit, "--limit")
        if options.limit
        else cfg.news.default_limit
    )

    chunks: list[DayChunk] = []
    if options.date:
        date_key, _ = parse_date_option(options.date, now)
        chunks.append(_load_day(cfg, date_key, options.sync, limit, now))
    else:
        today_key, yesterday_key = default_list_date_keys(now)
        chunks.append(_load_day(cfg, today_key, options.sync, limit, now))
        try:
            chunks.append(_load_day(cfg, yesterday_key, False, limit, now))
        except NoSnapshot:
            pass

    category_filters = resolve_category_filters(
        options.category, options.japan, options.international, options.others
    )
    filter_keys = {_normalize_category(value) for value in category_filters}

    categories = merge_categories_in_order(chunks)
    articles = [article for chunk in chunks for article in chunk.articles]
    warnings: list[FetchWarning] = [w for chunk in chunks for w in chunk.loaded.warnings]
    if filter_keys:
        categories = [c for c in categories if _normalize_category(c) in filter_keys]
        articles = [a for a in articles if _normalize_category(a.category) in filter_keys]
        warnings = [w for w in warnings if _normalize_category(w.category) in filter_keys]

    return ListView(
        from_cache=all(chunk.loaded.from_cache for chunk in chunks),
        date_keys=sorted(chunk.date_key for chunk in chunks),
        updated_at=resolve_latest_updated_at(chunks),
        categories=categories,
        articles=articles,
        warnings=warnings,
        category_filters=category_filters,
    )


def execute_sync(limit: str | None, cfg: AppConfig, now: datetime | None = None) -> SyncSummary:
    """Force a sync of today's feeds into the snapshot cache."""
    limit_per_feed = (
        parse_positive_integer_option(limit, "--limit") if limit else UNLIMITED_PER_FEED
    )
    date_key = today_date_key(now)
    loaded = load_news(_load_options(cfg, date_key, True, limit_per_feed), now=now)
    return SyncSummary(
        date=date_key,
        updated_at=loaded.updated_at,
        categories=loaded.categories,
        article_count=len(loaded.articles),
        warning_count=len(loaded.warnings),
        cache_dir=cfg.news.cache_dir,
    )


def _run_guarded(action: Callable[[], None]) -> None:
    """Run a command body, turning fatal errors into a one-line message and exit 1."""
    try:
        action()
    except (NewsError, OSError, yaml.YAMLError) as exc:
        err_console.print(f"Error: {exc}", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(code=1) from exc


def _list(options: ListOptions, cfg_args: dict) -> None:
    def _action() -> None:
        cfg = build_config(**cfg_args)
        view = execute_list(options, cfg)
        if options.json:
            print_json(console, list_view_payload(view))
        else:
            render_list(view, console, err_console)

    _run_guarded(_action)


def _version_callback(value: bool) -> None:
    if value:
        console.print(__version__)
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True,
        help="Show the version and exit.",
    ),
):
    """List news headlines from cache or RSS feeds (runs ``list`` by default)."""
    if ctx.invoked_subcommand is None:
        _list(ListOptions(), {})


@app.command("list")
def list_command(
    sync: bool = typer.Option(False, "--sync", help="Force refresh and ignore fresh cache."),
    date: str | None = typer.Option(
        None, "--date", "-d", metavar="yyyy-mm-dd", help="Read cache snapshot for a specific date."
    ),
    category: str | None = typer.Option(
        None, "--category", "-c", help="Filter categories (comma separated)."
    ),
    japan: bool = typer.Option(False, "--japan", help="Shortcut for --category Japan."),
    international: bool = typer.Option(
        False, "--international", help="Shortcut for --category International."
    ),
    others: bool = typer.Option(False, "--others", help="Shortcut for --category Others."),
    limit: str | None = typer.Option(
        None, "--limit", "-l", help="Number of items per feed (default: 3)."
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    opml: Path | None = typer.Option(None, "--opml", help="Override OPML feed file path."),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Override cache directory."),
    cache_ttl_minutes: str | None = typer.Option(
        None, "--cache-ttl-minutes", help="Cache freshness window in minutes."
    ),
    config: Path | None = typer.Option(
        None, "--config", exists=True, dir_okay=False, help="YAML config file."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """List news headlines from cache or RSS feeds.

    Without --date, shows today (syncing when the cache is stale) followed
    by yesterday's snapshot when one exists.
    """
    options = ListOptions(
        sync=sync,
        date=date,
        category=category,
        japan=japan,
        international=international,
        others=others,
        limit=limit,
        json=json_output,
    )
    _list(
        options,
        {
            "config": config,
            "opml": opml,
            "cache_dir": cache_dir,
            "cache_ttl_minutes": cache_ttl_minutes,
            "log_level": log_level,
        },
    )


app.command("ls", hidden=True)(list_command)


@app.command("sync")
def sync_command(
    limit: str | None = typer.Option(
        None, "--limit", "-l", help="Optional per-feed cap for sync (default: all items)."
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    opml: Path | None = typer.Option(None, "--opml", help="Override OPML feed file path."),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Override cache directory."),
    cache_ttl_minutes: str | None = typer.Option(
        None, "--cache-ttl-minutes", help="Cache freshness window in minutes."
    ),
    config: Path | None = typer.Option(
        None, "--config", exists=True, dir_okay=False, help="YAML config file."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Refresh the feed cache now."""

    def _action() -> None:
        cfg = build_config(config, opml, cache_dir, cache_ttl_minutes, log_level)
        summary = execute_sync(limit, cfg)
        if json_output:
            print_json(console, sync_summary_payload(summary))
        else:
            render_sync_summary(summary, console, err_console)

    _run_guarded(_action)


if __name__ == "__main__":
    app()
