"""
OPML feed list reader.

The feed list is a two-level outline tree:

    <body>
      <outline text="Japan">                              <- category
        <outline text="NHK" xmlUrl="https://..." />      <- feed
      </outline>
    </body>

Top-level outlines are categories; their children with an ``xmlUrl``
attribute are feeds.
"""

from __future__ import annotations

import codecs
from pathlib import Path
import re
import xml.etree.ElementTree as ET

from .errors import NoFeedSources, OpmlReadError
from .types import FeedSource


_XML_ENCODING_RE = re.compile(rb"<\?xml[^>]*\bencoding=[\"']([A-Za-z0-9._-]+)[\"']")


def _decode_opml(data: bytes) -> str:
    """Decode raw OPML bytes using the BOM or the encoding the XML declaration names."""
    if data.startswith(codecs.BOM_UTF8):
        encoding = "utf-8-sig"
    elif data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        encoding = "utf-16"
    else:
        match = _XML_ENCODING_RE.match(data)
        encoding = match.group(1).decode("ascii") if match else "utf-8"
    try:
        return data.decode(encoding)
    except (LookupError, UnicodeDecodeError) as exc:
        raise OpmlReadError(f"Cannot decode OPML document as {encoding}: {exc}") from exc


def _normalize_text(value: str | None) -> str | None:
    if not value:
        return None
    normalized = value.strip()
    return normalized or None


def _outline_text(outline: ET.Element) -> str | None:
    return _normalize_text(outline.get("text")) or _normalize_text(outline.get("title"))


def parse_feed_sources(opml_xml: str | bytes) -> tuple[list[FeedSource], list[str]]:
    """Parse OPML text into feed sources and the ordered category list.

    Bytes are decoded according to their BOM or the encoding the XML
    declaration names.

    Categories are deduplicated case-insensitively, keeping the first-seen
    spelling. Category outlines without text and feed outlines without a URL
    are skipped; a feed without text is named after its URL.

    Raises:
        OpmlReadError: If the text is not well-formed XML
        NoFeedSources: If no feed source was found
    """
    if isinstance(opml_xml, bytes):
        opml_xml = _decode_opml(opml_xml)
    try:
        root = ET.fromstring(opml_xml)  # noqa: S314
    except ET.ParseError as exc:
        raise OpmlReadError(f"Invalid OPML document: {exc}") from exc

    body = root.find("body")
    category_outlines = body.findall("outline") if body is not None else []

    categories: list[str] = []
    seen_categories: set[str] = set()
    sources: list[FeedSource] = []

    for category_outline in category_outlines:
        category = _outline_text(category_outline)
        if not category:
            continue

        category_key = category.lower()
        if category_key not in seen_categories:
            seen_categories.add(category_key)
            categories.append(category)

        for feed_outline in category_outline.findall("outline"):
            url = _normalize_text(feed_outline.get("xmlUrl"))
            if not url:
                continue
            name = _outline_text(feed_outline) or url
            sources.append(FeedSource(category=category, name=name, url=url))

    if not sources:
        raise NoFeedSources()

    return sources, categories


def read_feed_sources(opml_path: str | Path) -> tuple[list[FeedSource], list[str]]:
    """Read an OPML file from disk and parse its feed sources.

    Raises:
        OpmlReadError: If the file cannot be read or parsed
        NoFeedSources: If the file declares no feed source
    """
    path = Path(opml_path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise OpmlReadError(f"Cannot read OPML file {path}: {exc}") from exc
    return parse_feed_sources(data)
