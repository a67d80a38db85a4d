"""Tests for published-date bucketing and per-feed limits."""

from news_cli.bucketing import (
    apply_per_feed_limit,
    filter_articles_by_date_key,
    filter_articles_with_known_published_date,
    group_articles_by_published_date,
)
from news_cli.types import Article


def _article(title: str, source: str = "BBC", published_at: str | None = None, category: str = "International") -> Article:
    return Article(
        category=category,
        source=source,
        title=title,
        link=f"https://example.com/{title.lower()}",
        published_at=published_at,
    )


def test_group_by_published_date_falls_back_to_sync_date():
    articles = [
        _article("A", "Foreign Policy", "2026-02-18T20:34:59+09:00"),
        _article("B", "BBC", "2026-02-19 09:00:00"),
        _article("C", "CNA", None),
        _article("D", "CNA", "garbage"),
    ]

    grouped = group_articles_by_published_date(articles, "2026-02-21")

    assert [a.title for a in grouped["2026-02-18"]] == ["A"]
    assert [a.title for a in grouped["2026-02-19"]] == ["B"]
    assert [a.title for a in grouped["2026-02-21"]] == ["C", "D"]
    assert list(grouped) == ["2026-02-18", "2026-02-19", "2026-02-21"]


def test_apply_per_feed_limit_trims_each_feed_independently():
    """Interleaved feeds keep their earliest article each."""
    articles = [
        _article("A-1", "Foreign Policy", "2026-02-18T20:34:59+09:00"),
        _article("B-1", "BBC", "2026-02-18T20:36:59+09:00"),
        _article("A-2", "Foreign Policy", "2026-02-18T20:35:59+09:00"),
        _article("B-2", "BBC", "2026-02-18T20:37:59+09:00"),
    ]

    assert [a.title for a in apply_per_feed_limit(articles, 1)] == ["A-1", "B-1"]
    assert [a.title for a in apply_per_feed_limit(articles, 5)] == ["A-1", "B-1", "A-2", "B-2"]


def test_apply_per_feed_limit_keys_on_category_and_source():
    articles = [
        _article("J-1", "Wire", category="Japan"),
        _article("I-1", "Wire", category="International"),
        _article("J-2", "Wire", category="Japan"),
    ]

    assert [a.title for a in apply_per_feed_limit(articles, 1)] == ["J-1", "I-1"]


def test_filter_by_date_key_keeps_only_target_bucket():
    articles = [
        _article("A-1", published_at="2026-02-18T20:34:59+09:00"),
        _article("A-2", published_at="2026-02-21T09:00:00+09:00"),
        _article("B-unknown", published_at=None),
    ]

    assert [a.title for a in filter_articles_by_date_key(articles, "2026-02-21")] == ["A-2"]
    assert [
        a.title for a in filter_articles_by_date_key(articles, "2026-02-21", include_undated=True)
    ] == ["A-2", "B-unknown"]


def test_filter_with_known_published_date_drops_unknown():
    articles = [
        _article("Known", published_at="2026-02-21T01:02:03+09:00"),
        _article("Unknown", published_at=None),
        _article("Invalid", published_at="2026-02-30"),
    ]

    assert [a.title for a in filter_articles_with_known_published_date(articles)] == ["Known"]
