"""Repository pattern storage layer for the RSS reader daemon."""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional

from .database import get_db_connection
from .errors import DuplicateKeyError, PersistenceError
from .models import Article, DailyStat, EmailLog, Feed, User


# Columns a caller may change through update_user()
EDITABLE_USER_FIELDS = ("name", "email")

# Columns a caller may change through update_feed()
EDITABLE_FEED_FIELDS = ("title", "description", "link", "feed_url", "is_active")

# Columns written by a successful fetch
FEED_METADATA_FIELDS = (
    "title",
    "description",
    "link",
    "language",
    "copyright",
    "generator",
    "image_url",
    "last_build_date",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 UTC text (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class Storage:
    """Repository for all database operations.

    Implements the repository pattern - all SQL stays in this class.
    Uses connection reuse pattern for efficiency. Nothing is cached between
    calls: every read goes back to the database.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize storage with database connection.

        Args:
            db_path: Optional custom database path for testing.
                     Defaults to $XDG_DATA_HOME/rss-reader/rss-reader.db
        """
        self.db_path = db_path
        self._conn = None  # Lazy connection initialization
        # Test that we can create a connection
        test_conn = get_db_connection(self.db_path)
        test_conn.close()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection with lazy initialization."""
        if self._conn is None:
            self._conn = get_db_connection(self.db_path)
        return self._conn

    def close(self) -> None:
        """Close the database connection if open."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    @staticmethod
    def _row_to_feed(row: sqlite3.Row) -> Feed:
        return Feed(
            id=row["id"],
            user_id=row["user_id"],
            feed_url=row["feed_url"],
            title=row["title"],
            link=row["link"],
            description=row["description"],
            language=row["language"],
            copyright=row["copyright"],
            generator=row["generator"],
            image_url=row["image_url"],
            last_build_date=from_db_time(row["last_build_date"]),
            last_fetched_at=from_db_time(row["last_fetched_at"]),
            fetch_error=row["fetch_error"],
            is_active=bool(row["is_active"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    @staticmethod
    def _row_to_article(row: sqlite3.Row) -> Article:
        return Article(
            id=row["id"],
            feed_id=row["feed_id"],
            guid=row["guid"],
            title=row["title"],
            link=row["link"],
            description=row["description"],
            content=row["content"],
            author=row["author"],
            categories=json.loads(row["categories"]) if row["categories"] else None,
            image_url=row["image_url"],
            enclosure_url=row["enclosure_url"],
            enclosure_type=row["enclosure_type"],
            enclosure_length=row["enclosure_length"],
            pub_date=from_db_time(row["pub_date"]),
            is_read=bool(row["is_read"]),
            is_starred=bool(row["is_starred"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    @staticmethod
    def _row_to_daily_stat(row: sqlite3.Row) -> DailyStat:
        return DailyStat(
            id=row["id"],
            user_id=row["user_id"],
            date=row["date"],
            articles_read=row["articles_read"],
            articles_starred=row["articles_starred"],
            emails_sent=row["emails_sent"],
        )

    @staticmethod
    def _row_to_email_log(row: sqlite3.Row) -> EmailLog:
        return EmailLog(
            id=row["id"],
            user_id=row["user_id"],
            article_id=row["article_id"],
            recipient_email=row["recipient_email"],
            article_title=row["article_title"],
            article_link=row["article_link"],
            success=bool(row["success"]),
            error_message=row["error_message"],
            created_at=from_db_time(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(self, user: User) -> User:
        """Register a user.

        Raises:
            DuplicateKeyError: If the email (or id) is already registered
            PersistenceError: If database operation fails
        """
        now = utc_now()
        user.created_at = user.created_at or now
        user.updated_at = now
        try:
            self.conn.execute(
                """
                INSERT INTO users (id, name, email, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.name,
                    user.email,
                    to_db_time(user.created_at),
                    to_db_time(user.updated_at),
                ),
            )
            self.conn.commit()
            return user

        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DuplicateKeyError(f"User already exists: {user.email}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to add user: {e}") from e

    def get_user(self, user_id: str) -> Optional[User]:
        try:
            cursor = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cursor.fetchone()
            return self._row_to_user(row) if row else None

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get user: {e}") from e

    def list_users(self) -> List[User]:
        """Get every registered user, oldest first."""
        try:
            cursor = self.conn.execute(
                "SELECT * FROM users ORDER BY created_at, rowid"
            )
            return [self._row_to_user(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list users: {e}") from e

    def update_user(self, user_id: str, update_data: Dict[str, Any]) -> bool:
        """Update a user's name and/or email.

        Returns:
            True if a row was updated, False if not found or nothing to update

        Raises:
            ValueError: If update_data names a field that can't be edited
            DuplicateKeyError: If the new email belongs to another user
        """
        unknown = set(update_data) - set(EDITABLE_USER_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
        if not update_data:
            return False

        fields = list(update_data)
        assignments = ", ".join(f"{name} = ?" for name in fields)

        try:
            cursor = self.conn.execute(
                f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                (*[update_data[name] for name in fields], to_db_time(utc_now()), user_id),
            )
            self.conn.commit()
            return cursor.rowcount > 0

        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DuplicateKeyError(f"Email already registered: {e}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to update user: {e}") from e

    def delete_user(self, user_id: str) -> bool:
        """Delete a user.

        Cascades to the user's feeds (and their articles), daily stats and
        email logs.
        """
        try:
            cursor = self.conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            self.conn.commit()
            return cursor.rowcount > 0

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to delete user: {e}") from e

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    def add_feed(
        self,
        user_id: str,
        feed_url: str,
        title: str = "",
        link: str = "",
        description: Optional[str] = None,
    ) -> str:
        """Subscribe a user to a feed.

        Args:
            user_id: Owning user
            feed_url: Feed document URL (unique across all feeds)
            title: Display title until the first successful fetch
            link: Site link
            description: Optional description

        Returns:
            The UUID of the inserted feed, or of the existing feed with this URL

        Raises:
            PersistenceError: If database operation fails
        """
        try:
            cursor = self.conn.execute(
                "SELECT id FROM feeds WHERE feed_url = ?", (feed_url,)
            )
            existing = cursor.fetchone()

            if existing:
                return existing[0]

            feed_id = str(uuid.uuid4())
            now = to_db_time(utc_now())
            self.conn.execute(
                """
                INSERT INTO feeds (id, user_id, feed_url, title, link, description,
                                   is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (feed_id, user_id, feed_url, title, link, description, now, now),
            )

            self.conn.commit()
            return feed_id

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to add feed: {e}") from e

    def get_feed(self, feed_id: str) -> Optional[Feed]:
        """Load a feed by id, or None if it doesn't exist."""
        try:
            cursor = self.conn.execute("SELECT * FROM feeds WHERE id = ?", (feed_id,))
            row = cursor.fetchone()
            return self._row_to_feed(row) if row else None

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get feed: {e}") from e

    def list_feeds_by_user(self, user_id: str) -> List[Feed]:
        """Get all feeds of a user (active and paused) in subscription order."""
        try:
            cursor = self.conn.execute(
                """
                SELECT * FROM feeds
                WHERE user_id = ?
                ORDER BY created_at, rowid
                """,
                (user_id,),
            )
            return [self._row_to_feed(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list feeds: {e}") from e

    def list_active_feeds_by_user(self, user_id: str) -> List[Feed]:
        """Get the active feeds of a user in subscription order."""
        return [feed for feed in self.list_feeds_by_user(user_id) if feed.is_active]

    def list_user_ids(self) -> List[str]:
        """Get every registered user that owns at least one feed, oldest first."""
        try:
            cursor = self.conn.execute(
                """
                SELECT id FROM users
                WHERE EXISTS (SELECT 1 FROM feeds WHERE feeds.user_id = users.id)
                ORDER BY created_at, rowid
                """
            )
            return [row[0] for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list users: {e}") from e

    def count_feeds(self) -> int:
        try:
            return self.conn.execute("SELECT COUNT(*) FROM feeds").fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count feeds: {e}") from e

    def update_feed(self, feed_id: str, update_data: Dict[str, Any]) -> bool:
        """Update user-editable feed properties.

        Args:
            feed_id: UUID of the feed to update
            update_data: Dict restricted to EDITABLE_FEED_FIELDS

        Returns:
            True if a row was updated, False if not found or nothing to update

        Raises:
            ValueError: If update_data names a field that can't be edited
            DuplicateKeyError: If the new feed_url belongs to another feed
        """
        unknown = set(update_data) - set(EDITABLE_FEED_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update feed fields: {', '.join(sorted(unknown))}")
        if not update_data:
            return False

        fields = list(update_data)
        values = [
            int(update_data[name]) if name == "is_active" else update_data[name]
            for name in fields
        ]
        assignments = ", ".join(f"{name} = ?" for name in fields)

        try:
            cursor = self.conn.execute(
                f"UPDATE feeds SET {assignments}, updated_at = ? WHERE id = ?",
                (*values, to_db_time(utc_now()), feed_id),
            )
            self.conn.commit()
            return cursor.rowcount > 0

        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DuplicateKeyError(f"Feed URL already subscribed: {e}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to update feed: {e}") from e

    def set_feed_active(self, feed_id: str, active: bool) -> bool:
        """Pause or resume a feed. Returns False if the feed doesn't exist."""
        return self.update_feed(feed_id, {"is_active": active})

    def update_feed_metadata_and_health(
        self, feed_id: str, fields: Dict[str, Any]
    ) -> None:
        """Record a successful fetch: write metadata, clear the error, stamp time.

        Args:
            feed_id: UUID of the feed
            fields: Metadata values keyed by FEED_METADATA_FIELDS names
        """
        columns = [name for name in FEED_METADATA_FIELDS if name in fields]
        values = [
            to_db_time(fields[name]) if name == "last_build_date" else fields[name]
            for name in columns
        ]
        assignments = "".join(f"{name} = ?, " for name in columns)
        now = to_db_time(utc_now())

        try:
            self.conn.execute(
                f"""
                UPDATE feeds
                SET {assignments}last_fetched_at = ?, fetch_error = NULL, updated_at = ?
                WHERE id = ?
                """,
                (*values, now, now, feed_id),
            )
            self.conn.commit()

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to update feed metadata: {e}") from e

    def record_fetch_failure(self, feed_id: str, error_message: str) -> None:
        """Record a failed fetch: stamp last_fetched_at and keep the error text."""
        now = to_db_time(utc_now())
        try:
            self.conn.execute(
                """
                UPDATE feeds
                SET last_fetched_at = ?, fetch_error = ?, updated_at = ?
                WHERE id = ?
                """,
                (now, error_message, now, feed_id),
            )
            self.conn.commit()

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to record fetch failure: {e}") from e

    def remove_feed(self, feed_id: str) -> bool:
        """Delete a feed and (by cascade) all its articles.

        Returns:
            True if the feed was removed, False if not found
        """
        try:
            cursor = self.conn.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))
            self.conn.commit()
            return cursor.rowcount > 0

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to remove feed: {e}") from e

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def find_article_by_guid(self, guid: str) -> Optional[Article]:
        """Find an article by its guid (the dedup key), across all feeds."""
        try:
            cursor = self.conn.execute(
                "SELECT * FROM articles WHERE guid = ? LIMIT 1", (guid,)
            )
            row = cursor.fetchone()
            return self._row_to_article(row) if row else None

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get article by guid: {e}") from e

    def insert_article(self, article: Article) -> Article:
        """Insert a new article.

        Args:
            article: Canonical article from the normalizer

        Returns:
            The stored article with created_at/updated_at filled in

        Raises:
            DuplicateKeyError: If an article with the same guid already exists
            PersistenceError: If database operation fails
        """
        now = utc_now()
        try:
            self.conn.execute(
                """
                INSERT INTO articles (
                    id, feed_id, title, description, content, link, guid,
                    author, categories, image_url, enclosure_url,
                    enclosure_type, enclosure_length, pub_date,
                    is_read, is_starred, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    article.id,
                    article.feed_id,
                    article.title,
                    article.description,
                    article.content,
                    article.link,
                    article.guid,
                    article.author,
                    json.dumps(article.categories) if article.categories else None,
                    article.image_url,
                    article.enclosure_url,
                    article.enclosure_type,
                    article.enclosure_length,
                    to_db_time(article.pub_date),
                    int(article.is_read),
                    int(article.is_starred),
                    to_db_time(now),
                    to_db_time(now),
                ),
            )
            self.conn.commit()

        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if "articles.guid" in str(e):
                raise DuplicateKeyError(f"Article guid already exists: {article.guid}") from e
            raise PersistenceError(f"Failed to add article: {e}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to add article: {e}") from e

        article.created_at = now
        article.updated_at = now
        return article

    def get_article(self, article_id: str) -> Optional[Article]:
        try:
            cursor = self.conn.execute(
                "SELECT * FROM articles WHERE id = ?", (article_id,)
            )
            row = cursor.fetchone()
            return self._row_to_article(row) if row else None

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get article: {e}") from e

    def list_articles_by_feed(
        self, feed_id: str, limit: int = 50, offset: int = 0
    ) -> List[Article]:
        """Get a page of a feed's articles, newest first, undated last."""
        try:
            cursor = self.conn.execute(
                """
                SELECT * FROM articles
                WHERE feed_id = ?
                ORDER BY pub_date IS NULL, pub_date DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (feed_id, limit, offset),
            )
            return [self._row_to_article(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list articles for feed: {e}") from e

    def list_articles_by_user(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[Article]:
        """Get a page of articles across all of a user's feeds, newest first."""
        try:
            cursor = self.conn.execute(
                """
                SELECT a.* FROM articles a
                JOIN feeds f ON f.id = a.feed_id
                WHERE f.user_id = ?
                ORDER BY a.pub_date IS NULL, a.pub_date DESC, a.rowid DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset),
            )
            return [self._row_to_article(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list articles for user: {e}") from e

    def count_unread_by_user(self, user_id: str) -> int:
        try:
            cursor = self.conn.execute(
                """
                SELECT COUNT(*) FROM articles a
                JOIN feeds f ON f.id = a.feed_id
                WHERE f.user_id = ? AND a.is_read = 0
                """,
                (user_id,),
            )
            return cursor.fetchone()[0]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count unread articles: {e}") from e

    def _set_article_flag(
        self, article_id: str, column: str, value: bool
    ) -> Optional[Article]:
        try:
            cursor = self.conn.execute(
                f"UPDATE articles SET {column} = ?, updated_at = ? WHERE id = ?",
                (int(value), to_db_time(utc_now()), article_id),
            )
            self.conn.commit()

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to update article {column}: {e}") from e

        if cursor.rowcount == 0:
            return None
        return self.get_article(article_id)

    def set_article_read(self, article_id: str, is_read: bool) -> Optional[Article]:
        """Mark an article read/unread. Returns the updated article or None."""
        return self._set_article_flag(article_id, "is_read", is_read)

    def set_article_starred(
        self, article_id: str, is_starred: bool
    ) -> Optional[Article]:
        """Star/unstar an article. Returns the updated article or None."""
        return self._set_article_flag(article_id, "is_starred", is_starred)

    def delete_article(self, article_id: str) -> bool:
        try:
            cursor = self.conn.execute(
                "DELETE FROM articles WHERE id = ?", (article_id,)
            )
            self.conn.commit()
            return cursor.rowcount > 0

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to delete article: {e}") from e

    def aggregate_article_counts(self, user_id: str) -> Dict[str, int]:
        """Count total, read and starred articles across a user's feeds."""
        try:
            cursor = self.conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(a.is_read), 0) AS read,
                       COALESCE(SUM(a.is_starred), 0) AS starred
                FROM articles a
                JOIN feeds f ON f.id = a.feed_id
                WHERE f.user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            return {
                "total": row["total"],
                "read": row["read"],
                "starred": row["starred"],
            }

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to aggregate article counts: {e}") from e

    # ------------------------------------------------------------------
    # Daily stats
    # ------------------------------------------------------------------

    def get_daily_stat(self, user_id: str, date: str) -> Optional[DailyStat]:
        try:
            cursor = self.conn.execute(
                "SELECT * FROM daily_reading_stats WHERE user_id = ? AND date = ?",
                (user_id, date),
            )
            row = cursor.fetchone()
            return self._row_to_daily_stat(row) if row else None

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get daily stat: {e}") from e

    def upsert_daily_stat(
        self, user_id: str, date: str, deltas: Dict[str, int]
    ) -> DailyStat:
        """Add counter deltas to the (user, date) row, creating it if needed.

        The increment happens in a single statement, so concurrent callers
        never lose updates and never create a second row for the same day.
        """
        read = deltas.get("articles_read", 0)
        starred = deltas.get("articles_starred", 0)
        emails = deltas.get("emails_sent", 0)
        now = to_db_time(utc_now())

        try:
            self.conn.execute(
                """
                INSERT INTO daily_reading_stats (
                    id, user_id, date, articles_read, articles_starred,
                    emails_sent, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, date) DO UPDATE SET
                    articles_read = articles_read + excluded.articles_read,
                    articles_starred = articles_starred + excluded.articles_starred,
                    emails_sent = emails_sent + excluded.emails_sent,
                    updated_at = excluded.updated_at
                """,
                (str(uuid.uuid4()), user_id, date, read, starred, emails, now, now),
            )
            self.conn.commit()

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to update daily stats: {e}") from e

        return self.get_daily_stat(user_id, date)

    def query_daily_stats_range(
        self, user_id: str, from_date: str, to_date: str
    ) -> List[DailyStat]:
        """Get stored daily rows with from_date <= date <= to_date, by date."""
        try:
            cursor = self.conn.execute(
                """
                SELECT * FROM daily_reading_stats
                WHERE user_id = ? AND date >= ? AND date <= ?
                ORDER BY date
                """,
                (user_id, from_date, to_date),
            )
            return [self._row_to_daily_stat(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to query daily stats: {e}") from e

    # ------------------------------------------------------------------
    # Email logs
    # ------------------------------------------------------------------

    def insert_email_log(self, log: EmailLog) -> EmailLog:
        """Append an email log entry."""
        if log.created_at is None:
            log.created_at = utc_now()
        try:
            self.conn.execute(
                """
                INSERT INTO email_logs (
                    id, user_id, article_id, recipient_email, article_title,
                    article_link, success, error_message, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    log.id,
                    log.user_id,
                    log.article_id,
                    log.recipient_email,
                    log.article_title,
                    log.article_link,
                    int(log.success),
                    log.error_message,
                    to_db_time(log.created_at),
                ),
            )
            self.conn.commit()
            return log

        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to add email log: {e}") from e

    def get_email_logs(self, user_id: str, limit: int = 50) -> List[EmailLog]:
        """Get a user's email log entries, newest first."""
        try:
            cursor = self.conn.execute(
                """
                SELECT * FROM email_logs
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (user_id, limit),
            )
            return [self._row_to_email_log(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to get email logs: {e}") from e

    def aggregate_email_counts(self, user_id: str) -> Dict[str, int]:
        """Count total and successful email sends for a user."""
        try:
            cursor = self.conn.execute(
                """
                SELECT COUNT(*) AS total, COALESCE(SUM(success), 0) AS successful
                FROM email_logs
                WHERE user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            return {"total": row["total"], "successful": row["successful"]}

        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to aggregate email counts: {e}") from e
