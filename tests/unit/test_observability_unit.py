"""Unit tests for JSONL event logging and the daemon lock."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from rss_reader import observability
from rss_reader.locking import DaemonLock, default_pid_file


def read_events(base_dir: Path) -> list:
    files = list(base_dir.glob("*_events.jsonl"))
    assert len(files) == 1
    return [json.loads(line) for line in files[0].read_text().splitlines()]


def test_log_appends_jsonl_events(tmp_path: Path) -> None:
    """Test events are appended one JSON object per line with a timestamp."""
    logger = observability.ObservabilityLogger(tmp_path)

    logger.log("feed.fetch.complete", feed_id="f1", article_count=3)
    logger.log("api.request", when=datetime(2025, 1, 6, tzinfo=timezone.utc))

    events = read_events(tmp_path)
    assert [e["event"] for e in events] == ["feed.fetch.complete", "api.request"]
    assert events[0]["article_count"] == 3
    assert events[1]["when"] == "2025-01-06 00:00:00+00:00"
    assert "ts" in events[0]


def test_module_log_uses_xdg_data_home(isolated_dirs: Path) -> None:
    observability.log("batch.complete", feeds_total=2)

    events = read_events(isolated_dirs / "data" / "rss-reader" / "observability")
    assert events[0]["feeds_total"] == 2


def test_cleanup_removes_only_old_files(tmp_path: Path) -> None:
    """Test retention keeps recent files and ignores unrelated names."""
    logger = observability.ObservabilityLogger(tmp_path)
    today = datetime.now(timezone.utc).date()
    old = tmp_path / f"{(today - timedelta(days=40)).isoformat()}_events.jsonl"
    recent = tmp_path / f"{(today - timedelta(days=2)).isoformat()}_events.jsonl"
    stray = tmp_path / "notes_events.jsonl"
    for path in (old, recent, stray):
        path.write_text("{}\n")

    assert logger.cleanup_old_files(retention_days=30) == 1
    assert not old.exists()
    assert recent.exists()
    assert stray.exists()


def test_default_pid_file_under_state_home(isolated_dirs: Path) -> None:
    assert default_pid_file() == isolated_dirs / "state" / "rss-reader" / "daemon.pid"


def test_second_daemon_lock_exits(tmp_path: Path) -> None:
    """
    INVARIANT: Only one daemon holds the lock at a time
    BREAKS: Two schedulers fetch the same feeds concurrently
    """
    pid_file = tmp_path / "daemon.pid"
    first = DaemonLock(pid_file).__enter__()

    with pytest.raises(SystemExit):
        DaemonLock(pid_file).__enter__()

    first._handle.close()
