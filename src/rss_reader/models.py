"""Data models for the RSS reader daemon."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List


@dataclass
class User:
    """A reader who owns feeds, daily stats and email logs."""

    name: str
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Feed:
    """Represents a subscribed syndication feed.

    Matches the feeds table schema.
    """

    user_id: str
    feed_url: str
    title: str = ""
    link: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    copyright: Optional[str] = None
    generator: Optional[str] = None
    image_url: Optional[str] = None
    last_build_date: Optional[datetime] = None
    last_fetched_at: Optional[datetime] = None
    fetch_error: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "feed_url": self.feed_url,
            "title": self.title,
            "link": self.link,
            "description": self.description,
            "language": self.language,
            "copyright": self.copyright,
            "generator": self.generator,
            "image_url": self.image_url,
            "last_build_date": self.last_build_date,
            "last_fetched_at": self.last_fetched_at,
            "fetch_error": self.fetch_error,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Article:
    """Represents one ingested feed entry.

    Matches the articles table schema. ``guid`` is the dedup key.
    """

    feed_id: str
    guid: str
    title: str = "Untitled"
    link: str = ""
    description: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    categories: Optional[List[str]] = None
    image_url: Optional[str] = None
    enclosure_url: Optional[str] = None
    enclosure_type: Optional[str] = None
    enclosure_length: Optional[int] = None
    pub_date: Optional[datetime] = None
    is_read: bool = False
    is_starred: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "feed_id": self.feed_id,
            "guid": self.guid,
            "title": self.title,
            "link": self.link,
            "description": self.description,
            "content": self.content,
            "author": self.author,
            "categories": self.categories,
            "image_url": self.image_url,
            "enclosure_url": self.enclosure_url,
            "enclosure_type": self.enclosure_type,
            "enclosure_length": self.enclosure_length,
            "pub_date": self.pub_date,
            "is_read": self.is_read,
            "is_starred": self.is_starred,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class DailyStat:
    """Per-user counters for one calendar day (YYYY-MM-DD, UTC)."""

    user_id: str
    date: str
    articles_read: int = 0
    articles_starred: int = 0
    emails_sent: int = 0
    id: Optional[str] = None  # None for zero-filled placeholders

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date,
            "articles_read": self.articles_read,
            "articles_starred": self.articles_starred,
            "emails_sent": self.emails_sent,
        }


@dataclass
class EmailLog:
    """One outbound article-share attempt. Append-only."""

    user_id: str
    recipient_email: str
    article_title: str
    article_link: str
    success: bool
    article_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "article_id": self.article_id,
            "recipient_email": self.recipient_email,
            "article_title": self.article_title,
            "article_link": self.article_link,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at,
        }


@dataclass
class ParsedFeed:
    """A parsed remote feed document: feed-level metadata plus raw entries.

    Entries are kept in source order and in their raw (dialect-specific) shape;
    normalizer.normalize_entry turns each into an Article.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    language: Optional[str] = None
    copyright: Optional[str] = None
    generator: Optional[str] = None
    image_url: Optional[str] = None
    last_build_date: Optional[datetime] = None
    entries: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class FetchResult:
    """Outcome of one feed fetch attempt."""

    feed_id: str
    success: bool
    article_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "success": self.success,
            "feed_id": self.feed_id,
            "article_count": self.article_count,
        }
        if self.error is not None:
            result["error"] = self.error
        return result
