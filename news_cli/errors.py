"""Exceptions raised by the news CLI core and shell."""

from __future__ import annotations


class NewsError(Exception):
    """Base class for fatal, user-facing errors."""


class NoFeedSources(NewsError):
    """Raised when the OPML file declares no usable feed."""

    def __init__(self, message: str = "No RSS feed sources found in OPML file.") -> None:
        super().__init__(message)


class OpmlReadError(NewsError):
    """Raised when the OPML file cannot be read or parsed."""


class SyncNotAllowed(NewsError):
    """Raised when a forced sync targets a date other than today."""

    def __init__(self) -> None:
        super().__init__("--sync is only supported for today. Past dates are cache-only.")


class NoSnapshot(NewsError):
    """Raised when a past date has no cached snapshot."""

    def __init__(self, date_key: str) -> None:
        self.date_key = date_key
        super().__init__(
            f'No cache snapshot for {date_key}. '
            'Run "news sync" to ingest articles into published-date cache.'
        )


class InvalidDateKey(NewsError, ValueError):
    """Raised when a date key is malformed or not a real calendar date."""


class InvalidOption(NewsError):
    """Raised when a command-line option value fails validation."""
