"""Shared test fixtures for all tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict

import httpx
import pytest

from rss_reader import database, observability
from rss_reader.fetchers.rss import RSSFetcher
from rss_reader.models import User
from rss_reader.storage import Storage

TEST_USERS = [("user-1", "Ada"), ("user-2", "Brook")]


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch) -> Path:
    """Point every XDG directory at a throwaway location.

    Keeps observability events, config and lock files out of the real home
    directory for every test.
    """
    temp_dir = Path(tempfile.mkdtemp())
    monkeypatch.setenv("XDG_DATA_HOME", str(temp_dir / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(temp_dir / "state"))
    observability.reset_logger()

    yield temp_dir

    observability.reset_logger()
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def test_db(isolated_dirs: Path) -> Path:
    """Create a temporary test database for each test.

    Storage() with no path resolves to this database through XDG_DATA_HOME.
    The users in TEST_USERS are registered up front.
    """
    db_path = isolated_dirs / "data" / "rss-reader" / "rss-reader.db"
    database.init_db(db_path)
    with Storage(db_path) as storage:
        for user_id, name in TEST_USERS:
            storage.add_user(
                User(id=user_id, name=name, email=f"{user_id}@example.com")
            )
    return db_path


def rss_document(title: str, items: str, link: str = "https://example.com/") -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>{title}</title>
    <link>{link}</link>
    <description>{title} description</description>
    <language>en-us</language>
    {items}
  </channel>
</rss>
"""


def rss_item(
    guid: str = None,
    title: str = "Item",
    link: str = None,
    pub_date: str = "Mon, 06 Jan 2025 10:00:00 GMT",
    description: str = "Summary text",
) -> str:
    parts = [f"<title>{title}</title>"]
    if guid is not None:
        parts.append(f'<guid isPermaLink="false">{guid}</guid>')
    if link is not None:
        parts.append(f"<link>{link}</link>")
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    if description:
        parts.append(f"<description>{description}</description>")
    return "<item>" + "".join(parts) + "</item>"


@pytest.fixture
def sample_feed_xml() -> str:
    """Five entries: four with identity, one with neither guid nor link."""
    items = "".join(
        [
            rss_item(guid="guid-1", title="First", link="https://example.com/1"),
            rss_item(guid="guid-2", title="Second", link="https://example.com/2"),
            rss_item(guid="guid-3", title="Third", link="https://example.com/3"),
            rss_item(title="Fourth", link="https://example.com/4"),
            rss_item(title="Orphan", pub_date="", description="No identity at all"),
        ]
    )
    return rss_document("Example Feed", items)


@pytest.fixture
def make_fetcher() -> Callable[[Dict[str, object]], RSSFetcher]:
    """Build an RSSFetcher whose HTTP layer serves canned responses.

    Routes map URL -> str body (200, RSS content type), an int status code,
    or an exception instance to raise.
    """
    fetchers = []

    def factory(routes: Dict[str, object]) -> RSSFetcher:
        def handler(request: httpx.Request) -> httpx.Response:
            route = routes.get(str(request.url))
            if route is None:
                return httpx.Response(404, request=request)
            if isinstance(route, Exception):
                raise route
            if isinstance(route, int):
                return httpx.Response(route, request=request)
            return httpx.Response(
                200,
                text=route,
                headers={"Content-Type": "application/rss+xml"},
                request=request,
            )

        client = httpx.Client(transport=httpx.MockTransport(handler))
        fetcher = RSSFetcher(timeout=5.0, client=client)
        fetchers.append(fetcher)
        return fetcher

    yield factory

    for fetcher in fetchers:
        fetcher.close()


@pytest.fixture
def build_rss() -> Callable[..., str]:
    return rss_document


@pytest.fixture
def build_item() -> Callable[..., str]:
    return rss_item
