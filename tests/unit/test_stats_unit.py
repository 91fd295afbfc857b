"""Unit tests for StatsAggregator against an in-memory fake storage."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from rss_reader.models import DailyStat, EmailLog
from rss_reader.stats import StatsAggregator


class FakeStatsStorage:
    """Just the daily-stat and email-log methods StatsAggregator uses."""

    def __init__(self):
        self.rows: Dict[tuple, DailyStat] = {}
        self.email_logs: List[EmailLog] = []
        self.article_counts = {"total": 0, "read": 0, "starred": 0}
        self.fail_upserts = False

    def upsert_daily_stat(self, user_id, date, deltas):
        if self.fail_upserts:
            raise RuntimeError("database is locked")
        row = self.rows.setdefault(
            (user_id, date), DailyStat(user_id=user_id, date=date, id=f"{user_id}-{date}")
        )
        row.articles_read += deltas.get("articles_read", 0)
        row.articles_starred += deltas.get("articles_starred", 0)
        row.emails_sent += deltas.get("emails_sent", 0)
        return row

    def query_daily_stats_range(self, user_id, from_date, to_date):
        return sorted(
            (
                row
                for (uid, day), row in self.rows.items()
                if uid == user_id and from_date <= day <= to_date
            ),
            key=lambda row: row.date,
        )

    def aggregate_article_counts(self, user_id):
        return self.article_counts

    def insert_email_log(self, log):
        self.email_logs.append(log)
        return log

    def get_email_logs(self, user_id, limit=50):
        return [log for log in reversed(self.email_logs) if log.user_id == user_id][:limit]

    def aggregate_email_counts(self, user_id):
        logs = [log for log in self.email_logs if log.user_id == user_id]
        return {"total": len(logs), "successful": sum(1 for log in logs if log.success)}


def fixed_clock(year: int, month: int, day: int, hour: int = 12):
    return lambda: datetime(year, month, day, hour, tzinfo=timezone.utc)


def test_window_is_dense_and_oldest_first() -> None:
    """Test get_daily_stats returns exactly N days ending today."""
    storage = FakeStatsStorage()
    stats = StatsAggregator(storage, clock=fixed_clock(2025, 3, 10))

    series = stats.get_daily_stats("user-1", days=7)

    assert [s.date for s in series] == [
        "2025-03-04",
        "2025-03-05",
        "2025-03-06",
        "2025-03-07",
        "2025-03-08",
        "2025-03-09",
        "2025-03-10",
    ]
    assert all(s.id is None for s in series)
    assert all(s.articles_read == 0 for s in series)


def test_window_keeps_stored_rows() -> None:
    """Test stored days are returned as-is and the rest are placeholders."""
    storage = FakeStatsStorage()
    two_days_ago = StatsAggregator(storage, clock=fixed_clock(2025, 3, 8))
    two_days_ago.increment_daily_stats("user-1", articles_read=5)

    stats = StatsAggregator(storage, clock=fixed_clock(2025, 3, 10))
    series = stats.get_daily_stats("user-1", days=7)

    assert len(series) == 7
    active = [s for s in series if s.articles_read]
    assert [(s.date, s.articles_read) for s in active] == [("2025-03-08", 5)]
    assert series[4].id == "user-1-2025-03-08"


def test_window_crosses_month_boundary() -> None:
    """Test calendar arithmetic across the end of February."""
    stats = StatsAggregator(FakeStatsStorage(), clock=fixed_clock(2024, 3, 1))

    series = stats.get_daily_stats("user-1", days=3)

    assert [s.date for s in series] == ["2024-02-28", "2024-02-29", "2024-03-01"]


def test_today_is_utc_date() -> None:
    """Test the day key comes from UTC, not the clock's own offset."""
    # 23:30 on the 9th at UTC-05:00 is already the 10th in UTC
    local = timezone(timedelta(hours=-5))
    stats = StatsAggregator(
        FakeStatsStorage(), clock=lambda: datetime(2025, 3, 9, 23, 30, tzinfo=local)
    )

    assert stats.today().isoformat() == "2025-03-10"


def test_days_below_one_rejected() -> None:
    """Test an empty or negative window is an error."""
    stats = StatsAggregator(FakeStatsStorage())

    with pytest.raises(ValueError):
        stats.get_daily_stats("user-1", days=0)


def test_increments_are_additive() -> None:
    """Test repeated increments on one day accumulate in one row."""
    storage = FakeStatsStorage()
    stats = StatsAggregator(storage, clock=fixed_clock(2025, 3, 10))

    stats.increment_daily_stats("user-1", articles_read=1)
    stats.increment_daily_stats("user-1", articles_read=2, articles_starred=1)
    row = stats.increment_daily_stats("user-1", emails_sent=1)

    assert len(storage.rows) == 1
    assert row.articles_read == 3
    assert row.articles_starred == 1
    assert row.emails_sent == 1


def test_negative_increment_rejected() -> None:
    """Test counters can't be decremented."""
    storage = FakeStatsStorage()
    stats = StatsAggregator(storage)

    with pytest.raises(ValueError):
        stats.increment_daily_stats("user-1", articles_read=-1)
    assert storage.rows == {}


def test_record_activity_swallows_failures() -> None:
    """Test the best-effort wrapper reports failure instead of raising."""
    storage = FakeStatsStorage()
    storage.fail_upserts = True
    stats = StatsAggregator(storage)

    assert stats.record_activity("user-1", articles_read=1) is False

    storage.fail_upserts = False
    assert stats.record_activity("user-1", articles_read=1) is True


def test_overall_stats_derives_unread_and_failed() -> None:
    """Test unread = total - read and failed = total - successful."""
    storage = FakeStatsStorage()
    storage.article_counts = {"total": 10, "read": 4, "starred": 2}
    stats = StatsAggregator(storage)
    stats.log_email_sent("user-1", "a@example.com", "T", "https://x", success=True)
    stats.log_email_sent(
        "user-1", "b@example.com", "T", "https://x", success=False, error_message="Send failed"
    )

    overall = stats.get_overall_stats("user-1")

    assert overall == {
        "articles": {"total": 10, "read": 4, "starred": 2, "unread": 6},
        "emails": {"total": 2, "successful": 1, "failed": 1},
    }


def test_log_email_sent_counts_only_successes() -> None:
    """Test a failed send is logged but doesn't bump emails_sent."""
    storage = FakeStatsStorage()
    stats = StatsAggregator(storage, clock=fixed_clock(2025, 3, 10))

    stats.log_email_sent("user-1", "a@example.com", "T", "https://x", success=False)
    assert storage.rows == {}

    stats.log_email_sent("user-1", "a@example.com", "T", "https://x", success=True)
    assert storage.rows[("user-1", "2025-03-10")].emails_sent == 1
    assert len(stats.get_email_logs("user-1")) == 2
