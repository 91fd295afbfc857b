"""Integration tests for single-feed ingestion against a real database."""

from pathlib import Path

import httpx
import pytest

from rss_reader.errors import PersistenceError
from rss_reader.feed_fetcher import FEED_NOT_FOUND, FeedFetcher
from rss_reader.models import Article, ParsedFeed
from rss_reader.storage import Storage

FEED_URL = "https://example.com/feed.xml"


def test_new_feed_ingestion(test_db: Path, make_fetcher, sample_feed_xml) -> None:
    """
    INVARIANT: Entries without guid and link are skipped, the rest are stored
    BREAKS: Articles that can never be deduplicated pile up on every fetch
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    storage.record_fetch_failure(feed_id, "previous failure")
    fetcher = FeedFetcher(storage, make_fetcher({FEED_URL: sample_feed_xml}))

    result = fetcher.fetch_feed(feed_id)

    assert result.success is True
    assert result.article_count == 4
    assert result.error is None

    guids = sorted(a.guid for a in storage.list_articles_by_feed(feed_id))
    assert guids == ["guid-1", "guid-2", "guid-3", "https://example.com/4"]

    feed = storage.get_feed(feed_id)
    assert feed.fetch_error is None
    assert feed.last_fetched_at is not None
    assert feed.title == "Example Feed"
    assert feed.link == "https://example.com/"
    assert feed.language == "en-us"


def test_refetch_is_idempotent(test_db: Path, make_fetcher, sample_feed_xml) -> None:
    """
    INVARIANT: Fetching the same document twice inserts nothing the second time
    BREAKS: Duplicate articles on every scheduled run
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    fetcher = FeedFetcher(storage, make_fetcher({FEED_URL: sample_feed_xml}))

    assert fetcher.fetch_feed(feed_id).article_count == 4
    second = fetcher.fetch_feed(feed_id)

    assert second.success is True
    assert second.article_count == 0
    assert len(storage.list_articles_by_feed(feed_id)) == 4


def test_refetch_preserves_user_state(test_db: Path, make_fetcher, sample_feed_xml) -> None:
    """
    INVARIANT: First-seen wins; re-fetching never resets read or starred
    BREAKS: Users lose their reading state every fetch interval
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    fetcher = FeedFetcher(storage, make_fetcher({FEED_URL: sample_feed_xml}))
    fetcher.fetch_feed(feed_id)

    article = storage.find_article_by_guid("guid-1")
    storage.set_article_read(article.id, True)
    storage.set_article_starred(article.id, True)

    fetcher.fetch_feed(feed_id)

    reloaded = storage.get_article(article.id)
    assert reloaded.is_read is True
    assert reloaded.is_starred is True


def test_dedup_spans_feeds(test_db: Path, make_fetcher, build_rss, build_item) -> None:
    """
    INVARIANT: An article guid is stored once across all feeds
    BREAKS: The same story shows up twice for users following mirrors
    """
    storage = Storage(test_db)
    first_url = "https://a.example.com/rss"
    mirror_url = "https://b.example.com/rss"
    document = build_rss("Shared", build_item(guid="same-story", link="https://x/1"))
    fetcher = FeedFetcher(
        storage, make_fetcher({first_url: document, mirror_url: document})
    )
    first = storage.add_feed("user-1", first_url)
    mirror = storage.add_feed("user-2", mirror_url)

    assert fetcher.fetch_feed(first).article_count == 1
    assert fetcher.fetch_feed(mirror).article_count == 0
    assert storage.find_article_by_guid("same-story").feed_id == first


def test_metadata_is_never_blanked(test_db: Path, make_fetcher, build_rss, build_item) -> None:
    """
    INVARIANT: Metadata missing from a fetch keeps its stored value
    BREAKS: Feed titles vanish when a server omits them once
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    full = build_rss("Full Title", build_item(guid="1"))
    sparse = """<?xml version="1.0"?>
<rss version="2.0"><channel><item><guid>2</guid><title>Two</title></item></channel></rss>
"""

    FeedFetcher(storage, make_fetcher({FEED_URL: full})).fetch_feed(feed_id)
    result = FeedFetcher(storage, make_fetcher({FEED_URL: sparse})).fetch_feed(feed_id)

    assert result.success is True
    feed = storage.get_feed(feed_id)
    assert feed.title == "Full Title"
    assert feed.description == "Full Title description"
    assert feed.language == "en-us"


def test_network_failure_is_recorded(test_db: Path, make_fetcher) -> None:
    """
    INVARIANT: A failed fetch is reported and stamped, never raised
    BREAKS: One dead feed stops a user's whole batch
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL, title="Kept")
    fetcher = FeedFetcher(storage, make_fetcher({FEED_URL: 500}))

    result = fetcher.fetch_feed(feed_id)

    assert result.success is False
    assert result.article_count == 0
    assert "HTTP 500" in result.error
    feed = storage.get_feed(feed_id)
    assert feed.fetch_error == result.error
    assert feed.last_fetched_at is not None
    assert feed.title == "Kept"


def test_parse_failure_is_recorded(test_db: Path, make_fetcher) -> None:
    """Test a non-feed body becomes a failed result with the error stored."""
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    fetcher = FeedFetcher(
        storage, make_fetcher({FEED_URL: "<html><body>Moved!</body></html>"})
    )

    result = fetcher.fetch_feed(feed_id)

    assert result.success is False
    assert storage.get_feed(feed_id).fetch_error == result.error


def test_timeout_is_a_failed_result(test_db: Path, make_fetcher) -> None:
    """Test a timed-out request produces the same failed shape."""
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    fetcher = FeedFetcher(
        storage, make_fetcher({FEED_URL: httpx.ConnectTimeout("connect timed out")})
    )

    result = fetcher.fetch_feed(feed_id)

    assert result.success is False
    assert "timed out" in result.error


def test_unknown_feed(test_db: Path, make_fetcher) -> None:
    """Test fetching a feed id that doesn't exist fails without side effects."""
    storage = Storage(test_db)
    fetcher = FeedFetcher(storage, make_fetcher({}))

    result = fetcher.fetch_feed("does-not-exist")

    assert result.success is False
    assert result.error == FEED_NOT_FOUND


class FlakyInsertStorage(Storage):
    """Storage whose article inserts fail with a database error."""

    def insert_article(self, article):
        raise PersistenceError("disk I/O error")


class StaticFetcher:
    def __init__(self, parsed: ParsedFeed):
        self.parsed = parsed

    def fetch_and_parse(self, url):
        return self.parsed


def test_storage_errors_propagate(test_db: Path) -> None:
    """Test persistence failures other than duplicates reach the caller."""
    storage = FlakyInsertStorage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    fetcher = FeedFetcher(
        storage, StaticFetcher(ParsedFeed(title="T", entries=[{"id": "g1"}]))
    )

    with pytest.raises(PersistenceError, match="disk I/O error"):
        fetcher.fetch_feed(feed_id)


def test_invalid_feed_url_is_recorded(test_db: Path, make_fetcher) -> None:
    """
    INVARIANT: A URL the HTTP client can't even parse is a recorded fetch failure
    BREAKS: The feed never shows an error and is never stamped as fetched
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", "http://[::1/feed.xml")
    fetcher = FeedFetcher(storage, make_fetcher({}))

    result = fetcher.fetch_feed(feed_id)

    assert result.success is False
    assert result.error.startswith("Invalid feed URL")
    feed = storage.get_feed(feed_id)
    assert feed.last_fetched_at is not None
    assert feed.fetch_error == result.error


class EverythingIsNew:
    """Deduplicator that never sees the existing row, as when racing a writer."""

    def is_new(self, article) -> bool:
        return True


def test_insert_race_is_skipped_and_not_counted(
    test_db: Path, make_fetcher, sample_feed_xml
) -> None:
    """
    INVARIANT: A guid inserted by someone else between check and insert is skipped
    BREAKS: One lost race aborts the rest of the feed
    """
    storage = Storage(test_db)
    feed_id = storage.add_feed("user-1", FEED_URL)
    storage.insert_article(Article(feed_id=feed_id, guid="guid-2", title="Earlier"))
    fetcher = FeedFetcher(
        storage,
        make_fetcher({FEED_URL: sample_feed_xml}),
        deduplicator=EverythingIsNew(),
    )

    result = fetcher.fetch_feed(feed_id)

    assert result.success is True
    assert result.article_count == 3
    guids = sorted(a.guid for a in storage.list_articles_by_feed(feed_id))
    assert guids == ["guid-1", "guid-2", "guid-3", "https://example.com/4"]
    assert storage.find_article_by_guid("guid-2").title == "Earlier"
