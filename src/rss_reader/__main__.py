"""Main entry point for the RSS reader daemon - just wiring, no logic."""

import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Optional

import typer
import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import Config, config_dir
from .database import init_db
from .defaults import ensure_config
from .feed_fetcher import FeedFetcher
from .fetchers.rss import RSSFetcher
from .locking import acquire_daemon_lock
from .observability import get_logger
from .orchestrator import BatchOrchestrator
from .stats import StatsAggregator
from .storage import Storage

# Load environment variables (SMTP credentials) from ~/.config/rss-reader/.env
dotenv_path = config_dir() / ".env"
if dotenv_path.exists():
    load_dotenv(dotenv_path)

console = Console()
scheduler = None  # Global for signal handler
api_server = None  # Global for API server


def build_orchestrator(config: Config) -> BatchOrchestrator:
    """Wire storage, fetchers and the orchestrator from configuration."""
    storage = Storage()
    rss_fetcher = RSSFetcher(config=config)
    feed_fetcher = FeedFetcher(storage, rss_fetcher)
    return BatchOrchestrator(storage, feed_fetcher, console=console)


async def run_scheduler(
    config: Config, user_id: Optional[str] = None, test_mode: bool = False
) -> None:
    """Run the daemon with APScheduler for periodic fetching.

    Args:
        config: Already loaded and validated configuration
        user_id: Restrict batches to one user
        test_mode: Whether to run in test mode with 10 second intervals
    """
    global scheduler, api_server

    try:
        console.print("🔧 Initializing components...")
        orchestrator = build_orchestrator(config)

        scheduler = AsyncIOScheduler()

        if test_mode:
            interval_trigger = IntervalTrigger(seconds=10)
            interval_msg = "10 seconds"
        else:
            interval_trigger = IntervalTrigger(minutes=config.fetch_interval)
            interval_msg = f"{config.fetch_interval} minutes"

        scheduler.add_job(
            func=run_orchestrator_sync,
            args=(orchestrator, user_id),
            trigger=interval_trigger,
            id="fetch_feeds",
            name="Fetch all feeds",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
        )

        # Also run immediately on startup
        scheduler.add_job(
            func=run_orchestrator_sync,
            args=(orchestrator, user_id),
            trigger="date",
            id="initial_run",
            name="Initial fetch on startup",
        )

        def signal_handler(sig, frame) -> None:
            console.print(
                "\n[yellow]Received shutdown signal, stopping scheduler...[/yellow]"
            )
            if scheduler and scheduler.running:
                scheduler.shutdown(wait=False)
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        scheduler.start()
        console.print(
            f"[green]✅ Scheduler started - will fetch feeds every {interval_msg}[/green]"
        )

        console.print(f"[yellow]🌐 Starting API server on port {config.api_port}...[/yellow]")
        from .api import app as api_app

        api_config = uvicorn.Config(
            api_app,
            host=config.api_host,
            port=config.api_port,
            log_level="warning",
            access_log=False,
        )
        api_server = uvicorn.Server(api_config)

        asyncio.create_task(api_server.serve())
        console.print(
            f"[green]✅ API server running on http://{config.api_host}:{config.api_port}[/green]"
        )
        console.print("[dim]Press Ctrl+C to stop[/dim]\n")

        try:
            await asyncio.Event().wait()
        except KeyboardInterrupt:
            pass

    except Exception as e:
        console.print(f"[bold red]❌ Fatal error: {e}[/bold red]")
        sys.exit(1)
    finally:
        if scheduler and scheduler.running:
            scheduler.shutdown(wait=True)


def run_orchestrator_sync(
    orchestrator: BatchOrchestrator, user_id: Optional[str] = None
) -> None:
    """Synchronous wrapper to run orchestrator for scheduler."""
    console.print(
        f"\n[blue]⏰ Running scheduled fetch at {datetime.now(timezone.utc).strftime('%H:%M:%S')} UTC[/blue]"
    )
    stats = orchestrator.run_once(user_id)
    if stats["articles_new"] > 0:
        console.print(f"[green]Completed: {stats['articles_new']} new articles[/green]\n")
    else:
        console.print("[dim]No new articles found[/dim]\n")


def load_config() -> Config:
    """Ensure config and database exist, then load the configuration."""
    ensure_config()
    init_db()
    console.print("📂 Loading configuration...")
    return Config.from_file()


app = typer.Typer(help="RSS reader daemon: fetch feeds, serve the API, report stats.")


@app.command()
def run(
    once: bool = typer.Option(False, "--once", help="Run one batch and exit"),
    user: Optional[str] = typer.Option(
        None, "--user", help="Only fetch the feeds of this user"
    ),
    test_mode: bool = typer.Option(
        False, "--test", help="Test mode with 10 second intervals"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Fetch feeds periodically and serve the REST API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config()
    except Exception as e:
        console.print(f"[bold red]❌ Fatal error: {e}[/bold red]")
        sys.exit(1)

    removed = get_logger().cleanup_old_files()
    if removed:
        console.print(f"[dim]Removed {removed} old observability file(s)[/dim]")

    if once:
        console.print("[bold blue]Starting RSS reader (--once mode)[/bold blue]")

        try:
            orchestrator = build_orchestrator(config)
            stats = orchestrator.run_once(user)

            # Exit with error if every feed failed
            if stats["feeds_total"] and stats["feeds_failed"] == stats["feeds_total"]:
                sys.exit(1)

        except Exception as e:
            console.print(f"[bold red]❌ Fatal error: {e}[/bold red]")
            sys.exit(1)
    else:
        mode = "test mode (10 second intervals)" if test_mode else "scheduler mode"
        console.print(f"[bold blue]Starting RSS reader daemon ({mode})[/bold blue]")

        with acquire_daemon_lock():
            asyncio.run(run_scheduler(config, user_id=user, test_mode=test_mode))


@app.command()
def stats(
    user: str = typer.Argument(..., help="User to report on"),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", help="Days in the daily table (default from config)"
    ),
) -> None:
    """Show overall and daily reading stats for a user."""
    try:
        config = load_config()
        window = days or config.default_daily_days

        with Storage() as storage:
            aggregator = StatsAggregator(storage)
            overall = aggregator.get_overall_stats(user)
            daily = aggregator.get_daily_stats(user, window)
    except Exception as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        sys.exit(1)

    overall_table = Table(title=f"Overall stats for {user}")
    overall_table.add_column("Articles", justify="right")
    overall_table.add_column("Read", justify="right")
    overall_table.add_column("Starred", justify="right")
    overall_table.add_column("Unread", justify="right")
    overall_table.add_column("Emails sent", justify="right")
    overall_table.add_column("Emails failed", justify="right")
    overall_table.add_row(
        str(overall["articles"]["total"]),
        str(overall["articles"]["read"]),
        str(overall["articles"]["starred"]),
        str(overall["articles"]["unread"]),
        str(overall["emails"]["successful"]),
        str(overall["emails"]["failed"]),
    )
    console.print(overall_table)

    daily_table = Table(title=f"Last {window} days (UTC)")
    daily_table.add_column("Date")
    daily_table.add_column("Read", justify="right")
    daily_table.add_column("Starred", justify="right")
    daily_table.add_column("Emails", justify="right")
    for day in daily:
        daily_table.add_row(
            day.date,
            str(day.articles_read),
            str(day.articles_starred),
            str(day.emails_sent),
        )
    console.print(daily_table)


@app.command()
def init() -> None:
    """Create the default config file and the database."""
    ensure_config()
    db_path = init_db()
    console.print(f"[green]✅ Config: {config_dir() / 'config.toml'}[/green]")
    console.print(f"[green]✅ Database: {db_path}[/green]")


if __name__ == "__main__":
    app()
