"""Batch orchestration, separated from the entry point for testability."""

import logging
from typing import Dict, List, Optional

from rich.console import Console

from .feed_fetcher import FeedFetcher
from .models import FetchResult
from .observability import log as obs_log

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Runs the feed fetcher over every active feed of a user, one at a time."""

    def __init__(
        self,
        storage,
        feed_fetcher: FeedFetcher,
        console: Optional[Console] = None,
    ):
        """Initialize orchestrator with dependencies.

        Args:
            storage: Storage instance for feed enumeration
            feed_fetcher: FeedFetcher used for each feed
            console: Optional Rich console for output
        """
        self.storage = storage
        self.feed_fetcher = feed_fetcher
        self.console = console or Console()

    def fetch_all_feeds_by_user(self, user_id: str) -> List[FetchResult]:
        """Fetch every active feed a user owns, sequentially.

        A failing feed becomes a failed FetchResult in the list; it never
        stops the remaining feeds. Results follow subscription order.

        Args:
            user_id: Owning user

        Returns:
            One FetchResult per active feed, or [] if the user has no feeds
            or the feeds couldn't be listed
        """
        try:
            feeds = self.storage.list_feeds_by_user(user_id)
        except Exception as e:
            logger.error(f"Failed to list feeds for user {user_id}: {e}")
            self.console.print(f"[red]Failed to list feeds for {user_id}: {e}[/red]")
            return []

        active_feeds = [feed for feed in feeds if feed.is_active]
        if not active_feeds:
            self.console.print(f"[yellow]No active feeds for user {user_id}[/yellow]")
            return []

        self.console.print(f"Found {len(active_feeds)} active feed(s) for {user_id}")

        results = []
        for feed_num, feed in enumerate(active_feeds, 1):
            self.console.print(
                f"\n[bold cyan]Fetching feed {feed_num}/{len(active_feeds)}: "
                f"{feed.title or feed.feed_url}[/bold cyan]"
            )
            try:
                result = self.feed_fetcher.fetch_feed(feed.id)
            except Exception as e:
                logger.error(f"Unexpected error fetching feed {feed.id}: {e}")
                result = FetchResult(feed_id=feed.id, success=False, error=str(e))

            if result.success:
                self.console.print(f"  🆕 {result.article_count} new article(s)")
            else:
                self.console.print(f"  [red]Failed: {result.error}[/red]")
            results.append(result)

        return results

    def fetch_all_users(self) -> Dict[str, List[FetchResult]]:
        """Run fetch_all_feeds_by_user for every user that owns a feed."""
        try:
            user_ids = self.storage.list_user_ids()
        except Exception as e:
            logger.error(f"Failed to list users: {e}")
            self.console.print(f"[red]Failed to list users: {e}[/red]")
            return {}

        return {user_id: self.fetch_all_feeds_by_user(user_id) for user_id in user_ids}

    def run_once(self, user_id: Optional[str] = None) -> dict:
        """Run one batch for one user (or all users) and summarize it.

        Returns:
            Dict with feeds_total, feeds_failed, articles_new and errors
        """
        self.console.print("📡 Fetching feeds...")
        if user_id is not None:
            results_by_user = {user_id: self.fetch_all_feeds_by_user(user_id)}
        else:
            results_by_user = self.fetch_all_users()

        all_results = [r for results in results_by_user.values() for r in results]
        stats = {
            "users": len(results_by_user),
            "feeds_total": len(all_results),
            "feeds_failed": sum(1 for r in all_results if not r.success),
            "articles_new": sum(r.article_count for r in all_results),
            "errors": [f"{r.feed_id}: {r.error}" for r in all_results if not r.success],
        }

        self.console.print("\n[bold green]✅ Batch complete[/bold green]")
        self.console.print(f"📊 Feeds fetched: {stats['feeds_total']}")
        self.console.print(f"🆕 New articles: {stats['articles_new']}")
        if stats["feeds_failed"]:
            self.console.print(f"[red]❌ Failed feeds: {stats['feeds_failed']}[/red]")

        obs_log(
            "batch.complete",
            users=stats["users"],
            feeds_total=stats["feeds_total"],
            feeds_failed=stats["feeds_failed"],
            articles_new=stats["articles_new"],
        )
        return stats
