"""Per-user reading statistics and the email log.

Daily counters are keyed by the UTC calendar date (YYYY-MM-DD). Every day
boundary in this module is a UTC midnight, whatever the host timezone.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from .models import DailyStat, EmailLog

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatsAggregator:
    """Maintains and reports per-user daily counters and email history."""

    def __init__(self, storage, clock: Callable[[], datetime] = _utc_now):
        """
        Args:
            storage: Storage (or a fake with the daily-stat/email-log methods)
            clock: Returns the current aware datetime; injectable for tests
        """
        self.storage = storage
        self.clock = clock

    def today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def increment_daily_stats(
        self,
        user_id: str,
        articles_read: int = 0,
        articles_starred: int = 0,
        emails_sent: int = 0,
    ) -> DailyStat:
        """Add the given deltas to today's counters for a user.

        Creates today's row on the first event of the day. Increments are
        additive; a row is never overwritten.

        Raises:
            ValueError: If any delta is negative
        """
        deltas = {
            "articles_read": articles_read,
            "articles_starred": articles_starred,
            "emails_sent": emails_sent,
        }
        for name, value in deltas.items():
            if value < 0:
                raise ValueError(f"{name} increment must be non-negative, got {value}")

        return self.storage.upsert_daily_stat(
            user_id, self.today().isoformat(), deltas
        )

    def record_activity(self, user_id: str, **deltas: int) -> bool:
        """Fire-and-forget increment for side effects of user actions.

        The action that triggered this has already succeeded, so a failure
        here is logged and swallowed rather than raised.

        Returns:
            True if the counters were updated, False if the update failed
        """
        try:
            self.increment_daily_stats(user_id, **deltas)
            return True
        except Exception as e:
            logger.warning(f"Failed to update daily stats for user {user_id}: {e}")
            return False

    def get_daily_stats(self, user_id: str, days: int = 7) -> List[DailyStat]:
        """Return exactly ``days`` records ending today, oldest first.

        Days without a stored row are filled with zero-valued placeholders,
        so the series is dense and suitable for charting as-is.

        Raises:
            ValueError: If days < 1
        """
        if days < 1:
            raise ValueError(f"days must be at least 1, got {days}")

        end = self.today()
        start = end - timedelta(days=days - 1)
        stored = {
            stat.date: stat
            for stat in self.storage.query_daily_stats_range(
                user_id, start.isoformat(), end.isoformat()
            )
        }

        series = []
        for offset in range(days):
            day = (start + timedelta(days=offset)).isoformat()
            series.append(stored.get(day) or DailyStat(user_id=user_id, date=day))
        return series

    def get_overall_stats(self, user_id: str) -> Dict[str, Dict[str, int]]:
        """Aggregate article and email counts for a user.

        Returns:
            {"articles": {total, read, starred, unread},
             "emails": {total, successful, failed}}
        """
        articles = self.storage.aggregate_article_counts(user_id)
        emails = self.storage.aggregate_email_counts(user_id)

        total_articles = int(articles.get("total") or 0)
        read = int(articles.get("read") or 0)
        total_emails = int(emails.get("total") or 0)
        successful = int(emails.get("successful") or 0)

        return {
            "articles": {
                "total": total_articles,
                "read": read,
                "starred": int(articles.get("starred") or 0),
                "unread": total_articles - read,
            },
            "emails": {
                "total": total_emails,
                "successful": successful,
                "failed": total_emails - successful,
            },
        }

    def log_email_sent(
        self,
        user_id: str,
        recipient_email: str,
        article_title: str,
        article_link: str,
        success: bool,
        article_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> EmailLog:
        """Append an email log entry; a successful send also bumps emails_sent."""
        entry = self.storage.insert_email_log(
            EmailLog(
                user_id=user_id,
                article_id=article_id,
                recipient_email=recipient_email,
                article_title=article_title,
                article_link=article_link,
                success=success,
                error_message=error_message,
            )
        )

        if success:
            self.increment_daily_stats(user_id, emails_sent=1)

        return entry

    def get_email_logs(self, user_id: str, limit: int = 50) -> List[EmailLog]:
        return self.storage.get_email_logs(user_id, limit)
