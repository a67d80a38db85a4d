"""
Calendar date keys and feed timestamp resolution.

A date key is a ``yyyy-mm-dd`` string naming a local calendar day. It is the
partition key of the snapshot cache, so every comparison between days is done
on these strings rather than on parsed timestamps.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
import re

from .errors import InvalidDateKey

DATE_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
_LEADING_DATE_RE = re.compile(r"([0-9]{4}-[0-9]{2}-[0-9]{2})")
_ISO_LIKE_LABEL_RE = re.compile(r"([0-9]{4}-[0-9]{2}-[0-9]{2})[T ]([0-9]{2}:[0-9]{2})")


def format_date_key(value: date | datetime) -> str:
    """Format a date or datetime as a ``yyyy-mm-dd`` key, without tz conversion."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def today_date_key(now: datetime | None = None) -> str:
    """Return the local calendar date key for ``now`` (defaults to the current time)."""
    current = now if now is not None else datetime.now().astimezone()
    return format_date_key(current)


def parse_date_key(date_key: str) -> date:
    """Validate a date key and return the calendar date it names.

    The numeric parts are used to construct a date, and the constructed
    date must carry the same year, month and day. Keys such as
    ``2026-02-30`` or ``2026-13-01`` are rejected.

    Raises:
        InvalidDateKey: If the key is malformed or not a real calendar date
    """
    match = DATE_KEY_RE.fullmatch(date_key)
    if not match:
        raise InvalidDateKey("dateKey must be yyyy-mm-dd.")

    year, month, day = (int(part) for part in match.groups())
    try:
        probe = date(year, month, day)
    except ValueError:
        probe = None
    if probe is None or (probe.year, probe.month, probe.day) != (year, month, day):
        raise InvalidDateKey("dateKey must be a valid calendar date.")
    return probe


def is_valid_date_key(date_key: str) -> bool:
    try:
        parse_date_key(date_key)
    except InvalidDateKey:
        return False
    return True


def date_key_parts(date_key: str) -> tuple[str, str, str]:
    """Split a validated date key into its zero-padded year, month and day."""
    parse_date_key(date_key)
    year, month, day = date_key.split("-")
    return year, month, day


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO 8601 timestamp string into a timezone-aware datetime."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 or RFC 822 feed timestamp.

    Naive results are interpreted as local time. Returns None when the text
    is not a timestamp in either form.
    """
    if not value or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def resolve_published_date_key(published_at: str | None) -> str | None:
    """Resolve the local calendar date key an article was published on.

    A leading ``yyyy-mm-dd`` is taken verbatim (and must be a valid date).
    Anything else is parsed as a full timestamp and converted to the local
    calendar day. Returns None for anything unresolvable; never raises.
    """
    if not published_at:
        return None

    leading = _LEADING_DATE_RE.match(published_at.strip())
    if leading:
        key = leading.group(1)
        return key if is_valid_date_key(key) else None

    parsed = parse_timestamp(published_at)
    if parsed is None:
        return None
    try:
        return format_date_key(parsed.astimezone())
    except (OverflowError, ValueError, OSError):
        return None


def default_list_date_keys(now: datetime | None = None) -> list[str]:
    """Return the date keys shown by a plain ``news list``: today, then yesterday."""
    current = now if now is not None else datetime.now().astimezone()
    return [format_date_key(current), format_date_key(current - timedelta(days=1))]


def format_published_at_label(published_at: str | None) -> str:
    """Render a feed timestamp as ``yyyy-mm-dd HH:MM`` for console output.

    ISO-like text keeps its own wall-clock time; other timestamps are shown
    in local time. Unparsable values become ``Unknown``.
    """
    if not published_at:
        return "Unknown"

    iso_like = _ISO_LIKE_LABEL_RE.match(published_at)
    if iso_like:
        return f"{iso_like.group(1)} {iso_like.group(2)}"

    parsed = parse_timestamp(published_at)
    if parsed is None:
        return "Unknown"
    try:
        return parsed.astimezone().strftime("%Y-%m-%d %H:%M")
    except (OverflowError, ValueError, OSError):
        return "Unknown"
