"""
Configuration management using YAML files, environment variables and dataclasses.

Configuration sections:
- NewsConfig: Feed list, cache location and cache policy
- FetchConfig: HTTP fetching settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container

The configuration is built once per process by the CLI and passed down
explicitly; nothing in the core reads it from module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_CACHE_TTL_MINUTES = 30
DEFAULT_LIMIT_PER_FEED = 3


def default_cache_dir() -> str:
    """Return ``$XDG_CACHE_HOME/news``, falling back to ``~/.cache/news``."""
    cache_base = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return str(Path(cache_base) / "news")


def default_opml_path() -> str:
    """Return the feed list bundled with the package."""
    return str(Path(__file__).resolve().parent / "feeds.opml")


@dataclass
class NewsConfig:
    """Configuration for feed sources and the snapshot cache.

    Attributes:
        opml_path: Path to the OPML feed list
        cache_dir: Root directory of the day-partitioned snapshot cache
        cache_ttl_minutes: Freshness window for today's snapshot
        default_limit: Items per feed shown by ``news list`` without --limit
        drop_undated: Drop articles without a usable timestamp during sync
            instead of filing them under the sync date
    """

    opml_path: str = field(default_factory=default_opml_path)
    cache_dir: str = field(default_factory=default_cache_dir)
    cache_ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES
    default_limit: int = DEFAULT_LIMIT_PER_FEED
    drop_undated: bool = False


@dataclass
class FetchConfig:
    """Configuration for HTTP feed fetching.

    Attributes:
        timeout_seconds: HTTP request timeout applied by the client
        trust_env: Whether to respect system proxy settings
        user_agent: HTTP User-Agent header string
    """

    timeout_seconds: float = 20.0
    trust_env: bool = True
    user_agent: str = "news-cli/0.1"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to the console (stderr)
        file: Whether to log to a file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
        directory: Directory for the log file, defaults to the cache dir
    """

    level: str = "WARNING"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "news.jsonl"
    directory: str | None = None


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    news: NewsConfig = field(default_factory=NewsConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build configuration from defaults, an optional YAML file and the environment.

    Args:
        path: Optional YAML config file
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        A fresh AppConfig instance
    """
    cfg = AppConfig()
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if isinstance(raw, dict):
            _merge_config(cfg, raw)
        cfg.news.opml_path = str(Path(cfg.news.opml_path).expanduser())
        cfg.news.cache_dir = str(Path(cfg.news.cache_dir).expanduser())
    apply_env_overrides(cfg, os.environ if environ is None else environ)
    return cfg


def apply_env_overrides(cfg: AppConfig, environ: Mapping[str, str]) -> AppConfig:
    """Apply ``NEWSCLI_*`` environment variables on top of ``cfg``.

    An invalid ``NEWSCLI_CACHE_TTL_MINUTES`` keeps the current value.
    """
    opml_path = environ.get("NEWSCLI_OPML_PATH")
    if opml_path:
        cfg.news.opml_path = str(Path(opml_path).resolve())

    cache_dir = environ.get("NEWSCLI_CACHE_DIR")
    if cache_dir:
        cfg.news.cache_dir = str(Path(cache_dir).resolve())

    cfg.news.cache_ttl_minutes = parse_positive_integer(
        environ.get("NEWSCLI_CACHE_TTL_MINUTES"), cfg.news.cache_ttl_minutes
    )

    log_level = environ.get("NEWSCLI_LOG_LEVEL")
    if log_level:
        cfg.logging.level = log_level
    return cfg


def parse_positive_integer(value: str | None, fallback: int) -> int:
    """Parse a strictly positive decimal integer, returning ``fallback`` otherwise."""
    if not value or not value.isdigit() or not value.isascii():
        return fallback
    parsed = int(value)
    return parsed if parsed > 0 else fallback


def _merge_config(cfg: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML sections into ``cfg`` in place, ignoring unknown keys."""
    for section in fields(cfg):
        values = raw.get(section.name)
        if not isinstance(values, dict):
            continue
        target = getattr(cfg, section.name)
        known = {f.name for f in fields(target)}
        for key, value in values.items():
            if key in known:
                setattr(target, key, value)
    return cfg
