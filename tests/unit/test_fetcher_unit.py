"""Unit tests for RSSFetcher parsing and error mapping."""

import httpx
import pytest

from rss_reader.errors import NetworkError, ParseError
from rss_reader.fetchers.rss import RSSFetcher, struct_time_to_datetime

FEED_URL = "https://example.com/feed.xml"

ATOM_DOCUMENT = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <subtitle>All about atoms</subtitle>
  <link href="https://atom.example.com/"/>
  <rights>CC-BY</rights>
  <generator>Hugo</generator>
  <updated>2025-01-06T10:00:00Z</updated>
  <id>urn:uuid:feed</id>
  <entry>
    <title>Entry One</title>
    <link href="https://atom.example.com/1"/>
    <id>urn:uuid:1</id>
    <updated>2025-01-06T09:00:00Z</updated>
    <summary>First</summary>
  </entry>
  <entry>
    <title>Entry Two</title>
    <link href="https://atom.example.com/2"/>
    <id>urn:uuid:2</id>
    <updated>2025-01-05T09:00:00Z</updated>
    <summary>Second</summary>
  </entry>
</feed>
"""


def test_parse_rss_metadata_and_entries(build_rss, build_item) -> None:
    """Test RSS 2.0 channel metadata and entries in source order."""
    document = build_rss(
        "Example Feed",
        build_item(guid="a", title="A") + build_item(guid="b", title="B"),
    )

    parsed = RSSFetcher().parse(document)

    assert parsed.title == "Example Feed"
    assert parsed.description == "Example Feed description"
    assert parsed.link == "https://example.com/"
    assert parsed.language == "en-us"
    assert [entry["id"] for entry in parsed.entries] == ["a", "b"]


def test_parse_atom_metadata() -> None:
    """Test Atom subtitle, rights, generator and updated are mapped."""
    parsed = RSSFetcher().parse(ATOM_DOCUMENT)

    assert parsed.title == "Atom Example"
    assert parsed.description == "All about atoms"
    assert parsed.link == "https://atom.example.com/"
    assert parsed.copyright == "CC-BY"
    assert parsed.generator == "Hugo"
    assert parsed.last_build_date.isoformat() == "2025-01-06T10:00:00+00:00"
    assert len(parsed.entries) == 2


def test_parse_rejects_non_feed_document() -> None:
    """Test an HTML page is not mistaken for a feed."""
    assert RSSFetcher().parse("<html><body><p>Not a feed</p></body></html>") is None


def test_parse_empty_feed_is_valid(build_rss) -> None:
    """Test a well-formed feed with no items parses to zero entries."""
    parsed = RSSFetcher().parse(build_rss("Quiet Feed", ""))

    assert parsed is not None
    assert parsed.entries == []


def test_fetch_and_parse_success(make_fetcher, sample_feed_xml) -> None:
    """Test a 200 response is parsed into a ParsedFeed."""
    fetcher = make_fetcher({FEED_URL: sample_feed_xml})

    parsed = fetcher.fetch_and_parse(FEED_URL)

    assert parsed.title == "Example Feed"
    assert len(parsed.entries) == 5


def test_http_error_status_is_network_error(make_fetcher) -> None:
    """Test non-2xx responses raise NetworkError with the status."""
    fetcher = make_fetcher({FEED_URL: 503})

    with pytest.raises(NetworkError, match="HTTP 503"):
        fetcher.fetch_and_parse(FEED_URL)


def test_timeout_is_network_error(make_fetcher) -> None:
    """Test a timeout is reported as NetworkError."""
    fetcher = make_fetcher({FEED_URL: httpx.ReadTimeout("read timed out")})

    with pytest.raises(NetworkError, match="timed out"):
        fetcher.fetch_and_parse(FEED_URL)


def test_connection_failure_is_network_error(make_fetcher) -> None:
    """Test an unreachable host is reported as NetworkError."""
    fetcher = make_fetcher({FEED_URL: httpx.ConnectError("name resolution failed")})

    with pytest.raises(NetworkError):
        fetcher.fetch_and_parse(FEED_URL)


def test_unparseable_url_is_network_error(make_fetcher) -> None:
    """Test a URL httpx can't parse is reported as NetworkError."""
    fetcher = make_fetcher({})

    with pytest.raises(NetworkError, match="Invalid feed URL"):
        fetcher.fetch_and_parse("http://[::1/feed.xml")


def test_garbage_body_is_parse_error(make_fetcher) -> None:
    """Test a 200 response that isn't a feed raises ParseError."""
    fetcher = make_fetcher({FEED_URL: "<html><body>Welcome!</body></html>"})

    with pytest.raises(ParseError):
        fetcher.fetch_and_parse(FEED_URL)


def test_timeout_and_user_agent_defaults() -> None:
    """Test explicit arguments win over defaults."""
    fetcher = RSSFetcher(timeout=7.5, user_agent="custom/1.0")
    try:
        assert fetcher.timeout == 7.5
        assert fetcher.client.headers["User-Agent"] == "custom/1.0"
    finally:
        fetcher.close()


def test_struct_time_to_datetime_handles_missing() -> None:
    """Test missing or malformed time tuples convert to None."""
    assert struct_time_to_datetime(None) is None
    assert struct_time_to_datetime((2025, 13, 40, 0, 0, 0)) is None
