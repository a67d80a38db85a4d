"""
Console and JSON rendering for the ``list`` and ``sync`` commands.

Headlines go to stdout; the feed warning trailer goes to stderr so that it
never mixes with piped output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any

from rich.console import Console

from .dates import format_published_at_label
from .types import Article, FetchWarning


@dataclass
class ListView:
    """Everything shown by ``news list`` after merging and filtering days."""
    from_cache: bool
    date_keys: list[str]
    updated_at: str
    categories: list[str]
    articles: list[Article]
    warnings: list[FetchWarning] = field(default_factory=list)
    category_filters: list[str] = field(default_factory=list)

    @property
    def date_label(self) -> str:
        return ", ".join(self.date_keys)


@dataclass
class SyncSummary:
    date: str
    updated_at: str
    categories: list[str]
    article_count: int
    warning_count: int
    cache_dir: str


def article_payload(article: Article) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "category": article.category,
        "source": article.source,
        "title": article.title,
        "link": article.link,
    }
    if article.published_at is not None:
        payload["publishedAt"] = article.published_at
    return payload


def warning_payload(warning: FetchWarning) -> dict[str, str]:
    return {
        "category": warning.category,
        "source": warning.source,
        "url": warning.url,
        "message": warning.message,
    }


def list_view_payload(view: ListView) -> dict[str, Any]:
    return {
        "fromCache": view.from_cache,
        "date": view.date_label,
        "dateKeys": list(view.date_keys),
        "updatedAt": view.updated_at,
        "categories": list(view.categories),
        "articles": [article_payload(article) for article in view.articles],
        "warnings": [warning_payload(warning) for warning in view.warnings],
    }


def sync_summary_payload(summary: SyncSummary) -> dict[str, Any]:
    return {
        "date": summary.date,
        "updatedAt": summary.updated_at,
        "categories": list(summary.categories),
        "articleCount": summary.article_count,
        "warningCount": summary.warning_count,
        "cacheDir": summary.cache_dir,
    }


def _print(console: Console, text: str = "", **kwargs: Any) -> None:
    # Feed titles may contain square brackets; never treat them as markup.
    console.print(text, markup=False, highlight=False, soft_wrap=True, **kwargs)


def print_json(console: Console, payload: dict[str, Any]) -> None:
    _print(console, json.dumps(payload, ensure_ascii=False, indent=2))


def render_list(view: ListView, console: Console, err_console: Console) -> None:
    """Print the headline listing grouped by category, then the warnings trailer."""
    _print(console, f"news ({'Cache' if view.from_cache else 'Fresh'})", style="bold")
    _print(console, f"Date: {view.date_label}")
    _print(console, f"Updated: {view.updated_at}")

    if view.category_filters:
        _print(console, f"Filter: {', '.join(view.category_filters)}")

    if not view.categories:
        _print(console, "No matching categories.")
        render_warnings(view.warnings, err_console)
        return

    for category in view.categories:
        category_articles = [a for a in view.articles if a.category == category]
        if not category_articles:
            continue

        _print(console)
        _print(console, f">>> {category} <<<", style="bold cyan")
        for article in category_articles:
            label = format_published_at_label(article.published_at)
            _print(console, f"- [{label}] [{article.source}] {article.title}")
            _print(console, f"  {article.link}")

    if not view.articles:
        _print(console, "No articles found for the selected categories.")

    render_warnings(view.warnings, err_console)


def render_warnings(warnings: list[FetchWarning], err_console: Console) -> None:
    if not warnings:
        return
    _print(err_console)
    _print(err_console, f"Warnings: {len(warnings)} feeds failed.", style="yellow")
    for warning in warnings:
        _print(err_console, f"- {warning.source}: {warning.message}")


def render_sync_summary(summary: SyncSummary, console: Console, err_console: Console) -> None:
    _print(console, "Sync completed.", style="bold green")
    _print(console, f"Date: {summary.date}")
    _print(console, f"Updated: {summary.updated_at}")
    _print(console, f"Categories: {len(summary.categories)}")
    _print(console, f"Articles: {summary.article_count}")
    _print(console, f"Cache dir: {summary.cache_dir}")

    if summary.warning_count > 0:
        _print(err_console, f"Warnings: {summary.warning_count} feeds failed.", style="yellow")
