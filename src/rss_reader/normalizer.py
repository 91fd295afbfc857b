"""Entry normalization: raw feed entry -> canonical Article.

Feed dialects disagree on where an entry keeps its identity, body, image and
dates. feedparser folds most of RSS 2.0, Atom and RDF into one dict shape, but
entries can also arrive in the rss-parser style (``guid``, ``content:encoded``,
``contentSnippet``, ``isoDate``, ``media:content``...). Each Article field is
resolved by walking an ordered tuple of extractors; the first one that yields a
non-empty value wins.

Nothing here does I/O.
"""

import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional

from .models import Article

logger = logging.getLogger(__name__)

Extractor = Callable[[Mapping[str, Any]], Any]

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def first_present(entry: Mapping[str, Any], extractors: Iterable[Extractor]):
    """Return the first non-empty value produced by the extractors, else None."""
    for extract in extractors:
        value = extract(entry)
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
        if value:
            return value
    return None


def strip_html(text: str) -> str:
    """Reduce an HTML fragment to plain, single-spaced text."""
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", html.unescape(text)).strip()


def _key(name: str) -> Extractor:
    return lambda entry: entry.get(name)


def _first_item_field(name: str, field: str) -> Extractor:
    """Read ``field`` from the first element of a list-valued key (or a lone dict)."""

    def extract(entry):
        value = entry.get(name)
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, Mapping):
            # rss-parser keeps XML attributes under "$"
            attrs = value.get("$")
            if isinstance(attrs, Mapping) and attrs.get(field):
                return attrs.get(field)
            return value.get(field)
        return None

    return extract


def _string_key(name: str) -> Extractor:
    """Read a key only when it holds a plain string (``content`` is a list in feedparser)."""

    def extract(entry):
        value = entry.get(name)
        return value if isinstance(value, str) else None

    return extract


def _enclosure(entry: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """The entry's first enclosure as {url, type, length}, from either dialect."""
    enclosure = entry.get("enclosure")
    if isinstance(enclosure, Mapping) and enclosure.get("url"):
        return enclosure

    for candidate in entry.get("enclosures") or []:
        url = candidate.get("href") or candidate.get("url")
        if url:
            return {
                "url": url,
                "type": candidate.get("type"),
                "length": candidate.get("length"),
            }

    for link in entry.get("links") or []:
        if link.get("rel") == "enclosure" and link.get("href"):
            return {
                "url": link["href"],
                "type": link.get("type"),
                "length": link.get("length"),
            }
    return None


def _enclosure_url(entry):
    enclosure = _enclosure(entry)
    return enclosure["url"] if enclosure else None


def _snippet(entry):
    for name in ("contentSnippet", "summary", "description"):
        value = entry.get(name)
        if isinstance(value, str) and value.strip():
            return strip_html(value)
    return None


def _parsed_time(name: str) -> Extractor:
    def extract(entry):
        value = entry.get(name)
        if not value:
            return None
        try:
            return datetime(*value[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            return None

    return extract


def _rfc822_time(name: str) -> Extractor:
    def extract(entry):
        value = entry.get(name)
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return _iso_datetime(value)

    return extract


def _iso_time(name: str) -> Extractor:
    def extract(entry):
        value = entry.get(name)
        if not isinstance(value, str) or not value.strip():
            return None
        return _iso_datetime(value)

    return extract


def _iso_datetime(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _categories(entry) -> Optional[List[str]]:
    raw = entry.get("tags")
    if raw:
        terms = [tag.get("term") for tag in raw if isinstance(tag, Mapping)]
    else:
        raw = entry.get("categories") or []
        terms = []
        for category in raw:
            if isinstance(category, Mapping):
                category = category.get("_") or category.get("term")
            terms.append(category)
    terms = [str(term).strip() for term in terms if term and str(term).strip()]
    return terms or None


# Ordered fallback chains, one per Article field
GUID_CHAIN = (_key("id"), _key("guid"), _key("link"))
CONTENT_CHAIN = (
    _first_item_field("content", "value"),
    _key("content:encoded"),
    _string_key("content"),
    _key("summary"),
    _key("description"),
    _key("contentSnippet"),
)
DESCRIPTION_CHAIN = (_key("summary"), _snippet)
IMAGE_CHAIN = (
    _enclosure_url,
    _first_item_field("media_content", "url"),
    _first_item_field("media:content", "url"),
    _first_item_field("media_thumbnail", "url"),
    _first_item_field("media:thumbnail", "url"),
)
PUB_DATE_CHAIN = (
    _parsed_time("published_parsed"),
    _rfc822_time("pubDate"),
    _rfc822_time("published"),
    _iso_time("isoDate"),
    _parsed_time("updated_parsed"),
    _iso_time("updated"),
)
AUTHOR_CHAIN = (_key("author"), _key("creator"), _key("dc:creator"))


def _enclosure_length(enclosure: Optional[Mapping[str, Any]]) -> Optional[int]:
    if not enclosure or enclosure.get("length") in (None, ""):
        return None
    try:
        return int(str(enclosure["length"]).strip())
    except ValueError:
        return None


def normalize_entry(entry: Mapping[str, Any], feed_id: str) -> Optional[Article]:
    """Convert one raw feed entry into a canonical Article.

    Args:
        entry: feedparser entry or rss-parser style dict
        feed_id: Owning feed

    Returns:
        A new, unread, unstarred Article; or None when the entry has neither
        an identifier nor a link and therefore can't be deduplicated.
    """
    guid = first_present(entry, GUID_CHAIN)
    if not guid:
        logger.debug(f"Skipping entry without guid or link: {entry.get('title')!r}")
        return None

    enclosure = _enclosure(entry)
    pub_date = first_present(entry, PUB_DATE_CHAIN)
    if pub_date is not None:
        if pub_date.tzinfo is None:
            pub_date = pub_date.replace(tzinfo=timezone.utc)
        pub_date = pub_date.astimezone(timezone.utc)

    return Article(
        feed_id=feed_id,
        guid=str(guid),
        title=first_present(entry, (_key("title"),)) or "Untitled",
        link=first_present(entry, (_key("link"),)) or "",
        description=first_present(entry, DESCRIPTION_CHAIN),
        content=first_present(entry, CONTENT_CHAIN),
        author=first_present(entry, AUTHOR_CHAIN),
        categories=_categories(entry),
        image_url=first_present(entry, IMAGE_CHAIN),
        enclosure_url=enclosure["url"] if enclosure else None,
        enclosure_type=(enclosure.get("type") or None) if enclosure else None,
        enclosure_length=_enclosure_length(enclosure),
        pub_date=pub_date,
        is_read=False,
        is_starred=False,
    )
