"""Tests for the cache-or-sync news loader."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from news_cli import news
from news_cli.dates import format_date_key
from news_cli.errors import NoSnapshot, SyncNotAllowed
from news_cli.fetcher import fetch_articles as real_fetch_articles
from news_cli.news import LoadNewsOptions, load_news
from news_cli.storage import get_cache_path, load_cache, save_cache
from news_cli.types import Article, FetchBatch, FetchWarning, NewsCache

OPML = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="2.0">
  <body>
    <outline text="Japan">
      <outline text="NHK" xmlUrl="https://example.com/nhk.xml" />
    </outline>
    <outline text="International">
      <outline text="BBC" xmlUrl="https://example.com/bbc.xml" />
    </outline>
  </body>
</opml>
"""


@pytest.fixture
def now():
    return datetime(2026, 2, 21, 12, 0).astimezone()


@pytest.fixture
def today(now):
    return format_date_key(now)


@pytest.fixture
def yesterday(now):
    return format_date_key(now - timedelta(days=1))


@pytest.fixture
def opml_path(tmp_path):
    path = tmp_path / "feeds.opml"
    path.write_text(OPML, encoding="utf-8")
    return str(path)


class FakeFetcher:
    """Stands in for the network fetcher and counts calls."""

    def __init__(self, articles: list[Article], warnings: list[FetchWarning] | None = None):
        self.articles = articles
        self.warnings = warnings or []
        self.calls: list[int] = []

    def __call__(self, sources, limit_per_feed, cfg=None, parse_feed=None, logger=None):
        self.calls.append(limit_per_feed)
        return FetchBatch(articles=list(self.articles), warnings=list(self.warnings))


def _article(title: str, published_at: str | None, source: str = "NHK", category: str = "Japan") -> Article:
    return Article(
        category=category,
        source=source,
        title=title,
        link=f"https://example.com/{title}",
        published_at=published_at,
    )


def _options(tmp_path, opml_path, date_key, **overrides) -> LoadNewsOptions:
    values = dict(
        cache_dir=str(tmp_path / "cache"),
        date_key=date_key,
        opml_path=opml_path,
        force_sync=False,
        limit_per_feed=3,
        cache_ttl_minutes=30,
    )
    values.update(overrides)
    return LoadNewsOptions(**values)


def test_sync_then_cache_hit_serves_just_synced_data(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher([_article("t1", f"{today}T08:00:00+09:00"), _article("t2", None)])
    monkeypatch.setattr(news, "fetch_articles", fetcher)

    synced = load_news(_options(tmp_path, opml_path, today, force_sync=True), now=now)
    cached = load_news(_options(tmp_path, opml_path, today), now=now)

    assert synced.from_cache is False
    assert cached.from_cache is True
    assert [a.title for a in synced.articles] == ["t1", "t2"]
    assert [a.title for a in cached.articles] == ["t1"]
    assert cached.categories == ["Japan", "International"]
    assert cached.updated_at == synced.updated_at
    assert fetcher.calls == [3]


def test_repeated_loads_within_ttl_are_idempotent(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher([_article("t1", f"{today}T08:00:00+09:00")])
    monkeypatch.setattr(news, "fetch_articles", fetcher)

    load_news(_options(tmp_path, opml_path, today), now=now)
    first = load_news(_options(tmp_path, opml_path, today), now=now + timedelta(minutes=1))
    second = load_news(_options(tmp_path, opml_path, today), now=now + timedelta(minutes=2))

    assert first.from_cache and second.from_cache
    assert first.articles == second.articles
    assert len(fetcher.calls) == 1


def test_sync_partitions_articles_by_published_date(tmp_path, opml_path, today, yesterday, now, monkeypatch):
    fetcher = FakeFetcher(
        [
            _article("today", f"{today}T08:00:00+09:00"),
            _article("old", f"{yesterday}T23:00:00+09:00"),
            _article("undated", None),
        ]
    )
    monkeypatch.setattr(news, "fetch_articles", fetcher)

    loaded = load_news(_options(tmp_path, opml_path, today, force_sync=True), now=now)

    assert [a.title for a in loaded.articles] == ["today", "old", "undated"]
    cache_dir = tmp_path / "cache"
    today_snapshot = load_cache(cache_dir, today)
    old_snapshot = load_cache(cache_dir, yesterday)
    assert [a.title for a in today_snapshot.articles] == ["today", "undated"]
    assert [a.title for a in old_snapshot.articles] == ["old"]
    assert today_snapshot.snapshot_date == today
    assert old_snapshot.snapshot_date == yesterday
    assert old_snapshot.updated_at == today_snapshot.updated_at


def test_sync_always_writes_todays_partition(tmp_path, opml_path, today, yesterday, now, monkeypatch):
    monkeypatch.setattr(news, "fetch_articles", FakeFetcher([_article("old", f"{yesterday}T10:00:00Z")]))

    load_news(_options(tmp_path, opml_path, today, force_sync=True), now=now)

    snapshot = load_cache(tmp_path / "cache", today)
    assert snapshot is not None
    assert snapshot.articles == []


def test_drop_undated_discards_articles_without_timestamp(tmp_path, opml_path, today, now, monkeypatch):
    monkeypatch.setattr(
        news, "fetch_articles", FakeFetcher([_article("dated", f"{today}T01:00:00Z"), _article("undated", None)])
    )

    loaded = load_news(
        _options(tmp_path, opml_path, today, force_sync=True, drop_undated=True), now=now
    )

    assert [a.title for a in loaded.articles] == ["dated"]
    assert [a.title for a in load_cache(tmp_path / "cache", today).articles] == ["dated"]


def test_stale_cache_triggers_sync(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher([_article("fresh", f"{today}T08:00:00Z")])
    monkeypatch.setattr(news, "fetch_articles", fetcher)

    load_news(_options(tmp_path, opml_path, today), now=now)
    later = load_news(_options(tmp_path, opml_path, today), now=now + timedelta(minutes=31))

    assert later.from_cache is False
    assert len(fetcher.calls) == 2


def test_opml_change_triggers_sync(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher([_article("fresh", f"{today}T08:00:00Z")])
    monkeypatch.setattr(news, "fetch_articles", fetcher)
    other_opml = tmp_path / "other.opml"
    other_opml.write_text(OPML, encoding="utf-8")

    load_news(_options(tmp_path, opml_path, today), now=now)
    loaded = load_news(_options(tmp_path, str(other_opml), today), now=now)

    assert loaded.from_cache is False
    assert len(fetcher.calls) == 2


def test_cache_with_larger_limit_is_trimmed_not_refetched(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher(
        [
            _article("n1", f"{today}T01:00:00Z"),
            _article("b1", f"{today}T01:00:00Z", source="BBC", category="International"),
            _article("n2", f"{today}T02:00:00Z"),
            _article("b2", f"{today}T02:00:00Z", source="BBC", category="International"),
        ]
    )
    monkeypatch.setattr(news, "fetch_articles", fetcher)

    load_news(_options(tmp_path, opml_path, today, limit_per_feed=5), now=now)
    trimmed = load_news(_options(tmp_path, opml_path, today, limit_per_feed=1), now=now)

    assert trimmed.from_cache is True
    assert [a.title for a in trimmed.articles] == ["n1", "b1"]
    assert len(fetcher.calls) == 1


def test_cache_with_smaller_limit_triggers_sync(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher([_article("n1", f"{today}T01:00:00Z")])
    monkeypatch.setattr(news, "fetch_articles", fetcher)

    load_news(_options(tmp_path, opml_path, today, limit_per_feed=1), now=now)
    loaded = load_news(_options(tmp_path, opml_path, today, limit_per_feed=2), now=now)

    assert loaded.from_cache is False
    assert fetcher.calls == [1, 2]


def test_corrupt_cache_is_treated_as_miss(tmp_path, opml_path, today, now, monkeypatch):
    fetcher = FakeFetcher([_article("n1", f"{today}T01:00:00Z")])
    monkeypatch.setattr(news, "fetch_articles", fetcher)
    path = get_cache_path(tmp_path / "cache", today)
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")

    loaded = load_news(_options(tmp_path, opml_path, today), now=now)

    assert loaded.from_cache is False
    assert load_cache(tmp_path / "cache", today) is not None


def test_past_date_is_served_from_cache_regardless_of_age(tmp_path, opml_path, yesterday, now, monkeypatch):
    fetcher = FakeFetcher([])
    monkeypatch.setattr(news, "fetch_articles", fetcher)
    save_cache(
        tmp_path / "cache",
        yesterday,
        NewsCache(
            opml_path="/somewhere/else.opml",
            limit_per_feed=1,
            updated_at="2000-01-01T00:00:00Z",
            categories=["Japan"],
            articles=[
                _article("y1", f"{yesterday}T01:00:00Z"),
                _article("y2", f"{yesterday}T02:00:00Z"),
                _article("other-day", "1999-12-31T00:00:00Z"),
                _article("undated", None, source="Kyodo"),
            ],
            snapshot_date=yesterday,
        ),
    )

    loaded = load_news(_options(tmp_path, opml_path, yesterday, limit_per_feed=2), now=now)

    assert loaded.from_cache is True
    assert [a.title for a in loaded.articles] == ["y1", "y2"]
    assert loaded.categories == ["Japan"]
    assert loaded.warnings == []
    assert fetcher.calls == []


def test_past_date_without_snapshot_raises_no_snapshot(tmp_path, opml_path, yesterday, now):
    with pytest.raises(NoSnapshot) as excinfo:
        load_news(_options(tmp_path, opml_path, yesterday), now=now)
    assert excinfo.value.date_key == yesterday
    assert str(excinfo.value).startswith(f"No cache snapshot for {yesterday}.")


def test_forced_sync_for_past_date_is_not_allowed(tmp_path, opml_path, yesterday, now):
    with pytest.raises(SyncNotAllowed):
        load_news(_options(tmp_path, opml_path, yesterday, force_sync=True), now=now)


def test_forced_sync_for_past_date_with_snapshot_is_not_allowed(tmp_path, opml_path, yesterday, now):
    save_cache(
        tmp_path / "cache",
        yesterday,
        NewsCache(opml_path=opml_path, limit_per_feed=3, updated_at="2000-01-01T00:00:00Z"),
    )
    with pytest.raises(SyncNotAllowed):
        load_news(_options(tmp_path, opml_path, yesterday, force_sync=True), now=now)


def test_end_to_end_with_one_failing_feed(tmp_path, opml_path, today, now, monkeypatch):
    """NHK returns three items, BBC fails; a cap of two keeps NHK's first two."""

    async def fake_parse(url):
        if url.endswith("/bbc.xml"):
            raise ConnectionError("connection refused")
        return [
            {"title": f"NHK-{i}", "link": f"https://example.com/nhk/{i}", "updated": f"{today}T0{i}:00:00+09:00"}
            for i in range(1, 4)
        ]

    def fetch_with_fake_parser(sources, limit_per_feed, cfg=None, logger=None):
        return real_fetch_articles(sources, limit_per_feed, cfg, parse_feed=fake_parse, logger=logger)

    monkeypatch.setattr(news, "fetch_articles", fetch_with_fake_parser)

    loaded = load_news(_options(tmp_path, opml_path, today, force_sync=True, limit_per_feed=2), now=now)

    assert [a.title for a in loaded.articles] == ["NHK-1", "NHK-2"]
    assert all(a.category == "Japan" for a in loaded.articles)
    assert [(w.category, w.source, w.url) for w in loaded.warnings] == [
        ("International", "BBC", "https://example.com/bbc.xml")
    ]
    assert loaded.warnings[0].message == "connection refused"

    snapshot = load_cache(tmp_path / "cache", today)
    assert [a.title for a in snapshot.articles] == ["NHK-1", "NHK-2"]
    assert snapshot.limit_per_feed == 2
    assert snapshot.opml_path == opml_path
