"""Single-feed ingestion: fetch, normalize, dedup, store."""

import logging
import time
from typing import Any, Dict, Optional

from .dedup import Deduplicator
from .errors import DuplicateKeyError, FeedFetchError
from .models import Feed, FetchResult, ParsedFeed
from .normalizer import normalize_entry
from .observability import log as obs_log
from .storage import FEED_METADATA_FIELDS

logger = logging.getLogger(__name__)

FEED_NOT_FOUND = "Feed not found"


def merge_feed_metadata(feed: Feed, parsed: ParsedFeed) -> Dict[str, Any]:
    """Fresh values override stored ones; a missing fresh value keeps the old one."""
    merged = {}
    for name in FEED_METADATA_FIELDS:
        fresh = getattr(parsed, name)
        merged[name] = fresh if fresh not in (None, "") else getattr(feed, name)
    # title and link are NOT NULL columns
    merged["title"] = merged["title"] or ""
    merged["link"] = merged["link"] or ""
    return merged


class FeedFetcher:
    """Fetches one feed and stores the entries that haven't been seen before."""

    def __init__(self, storage, rss_fetcher, deduplicator: Optional[Deduplicator] = None):
        """Initialize with injected collaborators.

        Args:
            storage: Storage (or a fake with the same methods)
            rss_fetcher: Anything with fetch_and_parse(url) -> ParsedFeed
            deduplicator: Defaults to a Deduplicator over ``storage``
        """
        self.storage = storage
        self.rss_fetcher = rss_fetcher
        self.deduplicator = deduplicator or Deduplicator(storage)

    def fetch_feed(self, feed_id: str) -> FetchResult:
        """Fetch a feed and insert its new articles.

        Network and parse failures are recorded on the feed and returned as a
        failed result; they never propagate. Storage failures do.

        Args:
            feed_id: UUID of the feed

        Returns:
            FetchResult with the number of articles inserted
        """
        feed = self.storage.get_feed(feed_id)
        if feed is None:
            logger.warning(f"Feed {feed_id} not found")
            return FetchResult(feed_id=feed_id, success=False, error=FEED_NOT_FOUND)

        start_time = time.time()

        try:
            parsed = self.rss_fetcher.fetch_and_parse(feed.feed_url)
        except FeedFetchError as e:
            error = str(e)
            logger.error(f"Failed to fetch feed {feed.feed_url} ({feed_id}): {error}")
            self.storage.record_fetch_failure(feed_id, error)
            obs_log(
                "feed.fetch.error",
                feed_id=feed_id,
                feed_url=feed.feed_url,
                error=error,
                duration_ms=int((time.time() - start_time) * 1000),
            )
            return FetchResult(feed_id=feed_id, success=False, error=error)

        self.storage.update_feed_metadata_and_health(
            feed_id, merge_feed_metadata(feed, parsed)
        )

        inserted = 0
        skipped = 0
        duplicates = 0
        for entry in parsed.entries:
            article = normalize_entry(entry, feed_id)
            if article is None:
                skipped += 1
                continue

            if not self.deduplicator.is_new(article):
                duplicates += 1
                continue

            try:
                self.storage.insert_article(article)
                inserted += 1
            except DuplicateKeyError:
                # Lost a race with another writer for the same guid
                logger.warning(f"Skipping duplicate article: {article.guid}")
                duplicates += 1

        logger.info(
            f"Feed {feed.feed_url}: {inserted} new, {duplicates} existing, "
            f"{skipped} without identity"
        )
        obs_log(
            "feed.fetch.complete",
            feed_id=feed_id,
            feed_url=feed.feed_url,
            entries=len(parsed.entries),
            inserted=inserted,
            duplicates=duplicates,
            skipped=skipped,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return FetchResult(feed_id=feed_id, success=True, article_count=inserted)
