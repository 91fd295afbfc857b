"""RSS/Atom document fetcher."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

import feedparser
import httpx

from ..config import Config
from ..errors import NetworkError, ParseError
from ..models import ParsedFeed
from ..observability import log as obs_log

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "rss-reader/1.0 (+https://github.com/rss-reader)"


def struct_time_to_datetime(value) -> Optional[datetime]:
    """Convert a feedparser time tuple (always UTC) to an aware datetime."""
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError) as e:
        logger.debug(f"Could not convert time tuple {value!r}: {e}")
        return None


class RSSFetcher:
    """Retrieves feed documents over HTTP and parses them with feedparser.

    The fetcher never touches storage: it hands back a ParsedFeed whose
    entries are still raw feedparser entries, in source order.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the RSS fetcher.

        Args:
            config: Config instance supplying fetch_timeout and user_agent
            timeout: Per-request timeout in seconds (overrides config)
            user_agent: User-Agent header (overrides config)
            client: Preconfigured httpx client, e.g. with a mock transport
        """
        if timeout is None:
            timeout = config.fetch_timeout if config else DEFAULT_TIMEOUT
        if user_agent is None:
            user_agent = config.user_agent if config else DEFAULT_USER_AGENT

        self.timeout = timeout
        self.user_agent = user_agent
        self.client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

    def fetch_and_parse(self, url: str) -> ParsedFeed:
        """Fetch a feed document and parse it.

        Args:
            url: Feed document URL

        Returns:
            ParsedFeed with feed metadata and raw entries

        Raises:
            NetworkError: On an invalid URL, connection failure, timeout or
                non-2xx status
            ParseError: If the body is not a usable RSS/Atom/RDF document
        """
        start_time = time.time()
        logger.info(f"Fetching feed: {url}")

        try:
            response = self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            self._log_error(url, start_time, f"timed out after {self.timeout}s")
            raise NetworkError(f"Request timed out after {self.timeout} seconds") from e
        except httpx.HTTPStatusError as e:
            message = f"HTTP {e.response.status_code}: {e.response.reason_phrase}"
            self._log_error(url, start_time, message)
            raise NetworkError(message) from e
        except httpx.InvalidURL as e:
            self._log_error(url, start_time, f"invalid URL: {e}")
            raise NetworkError(f"Invalid feed URL: {e}") from e
        except httpx.HTTPError as e:
            self._log_error(url, start_time, str(e))
            raise NetworkError(f"Network error: {e}") from e

        parsed = self.parse(response.content)
        if parsed is None:
            self._log_error(url, start_time, "not a feed")
            raise ParseError(f"Invalid feed format: {url} is not an RSS/Atom document")

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Parsed {len(parsed.entries)} entries from {url}")
        obs_log(
            "fetcher.complete",
            source_url=url,
            items_count=len(parsed.entries),
            duration_ms=duration_ms,
            status="success",
        )
        return parsed

    def parse(self, document) -> Optional[ParsedFeed]:
        """Parse a feed document (bytes or str) already in memory.

        Returns:
            ParsedFeed, or None when feedparser found no feed at all
        """
        feed = feedparser.parse(document)

        if feed.bozo:
            # Some feeds have minor issues but are still usable
            # Only fail if nothing feed-like came out of the document
            if not feed.entries and not feed.get("version"):
                logger.warning(f"Unparseable feed document: {feed.get('bozo_exception')}")
                return None
            logger.warning(f"Feed parsing issues: {feed.get('bozo_exception')}")
        elif not feed.get("version") and not feed.entries:
            return None

        meta = feed.feed
        image = meta.get("image") or {}
        image_url = image.get("href") or image.get("url")
        if not image_url and meta.get("itunes_image"):
            image_url = meta["itunes_image"].get("href")

        return ParsedFeed(
            title=meta.get("title") or None,
            description=meta.get("subtitle") or meta.get("description") or None,
            link=meta.get("link") or None,
            language=meta.get("language") or None,
            copyright=meta.get("rights") or None,
            generator=meta.get("generator") or None,
            image_url=image_url or None,
            last_build_date=struct_time_to_datetime(meta.get("updated_parsed")),
            entries=list(feed.entries),
        )

    def close(self) -> None:
        self.client.close()

    def _log_error(self, url: str, start_time: float, error: str) -> None:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(f"Failed to fetch feed {url}: {error}")
        obs_log(
            "fetcher.error",
            source_url=url,
            error=error,
            duration_ms=duration_ms,
            status="error",
        )
