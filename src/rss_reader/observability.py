"""Observability logging for the RSS reader daemon - JSONL event tracking."""

import fcntl
import json
import os
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any


def default_events_dir() -> Path:
    xdg_data_home = os.environ.get(
        "XDG_DATA_HOME", str(Path.home() / ".local" / "share")
    )
    return Path(xdg_data_home) / "rss-reader" / "observability"


class ObservabilityLogger:
    """Thread-safe and process-safe JSONL event logger with daily rotation."""

    def __init__(self, base_dir: Path | None = None):
        """Initialize observability logger.

        Args:
            base_dir: Directory for JSONL files.
                Defaults to $XDG_DATA_HOME/rss-reader/observability
        """
        self.base_dir = base_dir or default_events_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def log(self, event: str, **metadata: Any) -> None:
        """Append an event with metadata to today's JSONL file.

        Process-safe via fcntl file locking. Never raises: failures are
        reported on stderr so a broken log directory can't break a fetch.

        Args:
            event: Event name (e.g., "feed.fetch.complete", "api.request")
            **metadata: Additional event metadata (must be JSON-serializable
                or convertible with str())
        """
        now = datetime.now(timezone.utc)
        log_file = self.base_dir / f"{now.strftime('%Y-%m-%d')}_events.jsonl"

        entry = {"ts": now.isoformat(), "event": event, **metadata}

        for attempt in range(3):
            try:
                with open(log_file, "a") as f:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                    try:
                        f.write(json.dumps(entry, default=str) + "\n")
                        f.flush()
                    finally:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return
            except BlockingIOError:
                if attempt < 2:
                    time.sleep(0.01 * (attempt + 1))  # 10ms, 20ms
                else:
                    print(
                        f"[Observability] Failed to log event after 3 attempts: {event}",
                        file=sys.stderr,
                    )
            except Exception as e:
                print(
                    f"[Observability] Error logging event '{event}': {e}",
                    file=sys.stderr,
                )
                return

    def cleanup_old_files(self, retention_days: int = 30) -> int:
        """Remove JSONL files older than retention_days.

        Returns:
            Number of files removed
        """
        if not self.base_dir.exists():
            return 0

        cutoff_date = datetime.now(timezone.utc).date() - timedelta(days=retention_days)
        removed_count = 0

        for file_path in self.base_dir.glob("*_events.jsonl"):
            try:
                date_str = file_path.stem.split("_")[0]
                file_date = datetime.strptime(date_str, "%Y-%m-%d").date()
            except (ValueError, IndexError):
                continue

            if file_date < cutoff_date:
                try:
                    file_path.unlink()
                    removed_count += 1
                except OSError as e:
                    print(
                        f"[Observability] Error removing old file {file_path}: {e}",
                        file=sys.stderr,
                    )

        return removed_count


_logger: ObservabilityLogger | None = None


def get_logger() -> ObservabilityLogger:
    """Get the process-wide observability logger, creating it on first use."""
    global _logger
    if _logger is None:
        _logger = ObservabilityLogger()
    return _logger


def reset_logger() -> None:
    """Forget the process-wide logger so the next call re-reads XDG_DATA_HOME."""
    global _logger
    _logger = None


def log(event: str, **metadata: Any) -> None:
    """Convenience function to log events using the process-wide logger.

    Usage:
        from rss_reader.observability import log
        log("feed.fetch.complete", feed_id=feed_id, article_count=4)
    """
    get_logger().log(event, **metadata)
