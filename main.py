#!/usr/bin/env python3
"""
FeedSync - Feed Synchronization Engine
======================================

Main application entry point with CLI interface for management and operation.

Usage:
    python main.py --help                          # Show all commands
    python main.py check-config                    # Validate configuration
    python main.py init-db                         # Initialize database
    python main.py subscribe USER CATEGORY URL     # Subscribe to a feed
    python main.py refresh USER FEED               # Refresh a single feed
    python main.py refresh-due                     # Refresh all due feeds once
    python main.py run-scheduler                   # Refresh due feeds forever
"""

import sys
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from feedsync.config.settings import get_settings
from feedsync.database.schema import DatabaseSchema
from feedsync.database.connection import get_db_manager
from feedsync.database.models import User, Category, Integration
from feedsync.delivery.telegram_notifier import TelegramNotifier
from feedsync.ingestion.fetcher import FeedFetcher
from feedsync.ingestion.icon_finder import IconFinder
from feedsync.storage import Storage
from feedsync.sync import FeedHandler, RefreshWorkerPool, RefreshStatus, SchedulingPolicy
from feedsync.utils.logging import configure_application_logging
from feedsync.utils.exceptions import FeedSyncError

console = Console()
logger = logging.getLogger(__name__)


def _setup(ctx):
    """Load settings and configure logging once per invocation."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get("debug") else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _build_storage(settings) -> Storage:
    DatabaseSchema(settings.database.path).create_tables()
    db_manager = get_db_manager(settings.database.path, settings.database.pool_size)
    return Storage(db_manager)


def _build_handler(settings, storage: Storage) -> FeedHandler:
    fetcher = FeedFetcher(settings.http)
    return FeedHandler(
        storage,
        fetcher=fetcher,
        icon_finder=IconFinder(fetcher),
        notifier=TelegramNotifier(storage, settings.notifications),
        policy=SchedulingPolicy.from_settings(settings.polling),
        persistent_error_threshold=settings.polling.persistent_error_threshold,
    )


def _build_pool(settings, storage: Storage) -> RefreshWorkerPool:
    return RefreshWorkerPool(
        _build_handler(settings, storage),
        storage,
        workers=settings.polling.workers,
        batch_size=settings.polling.batch_size,
    )


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx, debug):
    """FeedSync - keep a local store in sync with remote feeds."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FeedSync Configuration[/bold blue]")

    try:
        settings = get_settings()
    except FeedSyncError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Database", _check_database_config),
        ("Logging", _check_logging_config),
        ("Polling", _check_polling_config),
        ("HTTP", _check_http_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        all_passed = all_passed and status

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize the database schema."""
    settings = _setup(ctx)
    console.print(f"[bold blue]🗄️ Initializing database at {settings.database.path}[/bold blue]")

    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if schema.verify_schema():
        console.print("[bold green]✅ Database initialized successfully[/bold green]")
    else:
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument("username")
@click.option("--language", default="en_US", help="Language of error messages (default: en_US)")
@click.pass_context
def add_user(ctx, username, language):
    """Create a user."""
    settings = _setup(ctx)
    storage = _build_storage(settings)

    try:
        user_id = storage.create_user(User(username=username, language=language))
    except FeedSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}: {e}[/bold red]")
        sys.exit(1)

    console.print(f"[green]✅ Created user {username} with ID {user_id}[/green]")


@cli.command()
@click.argument("user_id", type=int)
@click.argument("title")
@click.pass_context
def add_category(ctx, user_id, title):
    """Create a category for a user."""
    settings = _setup(ctx)
    storage = _build_storage(settings)

    try:
        category_id = storage.create_category(Category(user_id=user_id, title=title))
    except FeedSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}: {e}[/bold red]")
        sys.exit(1)

    console.print(f"[green]✅ Created category {title!r} with ID {category_id}[/green]")


@cli.command()
@click.argument("user_id", type=int)
@click.option("--token", required=True, help="Telegram bot token")
@click.option("--chat-id", required=True, help="Telegram chat ID")
@click.option("--disable", is_flag=True, help="Store the integration disabled")
@click.pass_context
def set_telegram(ctx, user_id, token, chat_id, disable):
    """Configure Telegram reports for entries that could not be saved."""
    settings = _setup(ctx)
    storage = _build_storage(settings)

    storage.save_integration(
        Integration(
            user_id=user_id,
            telegram_enabled=not disable,
            telegram_token=token,
            telegram_chat_id=chat_id,
        )
    )
    console.print(f"[green]✅ Telegram integration saved for user {user_id}[/green]")


@cli.command()
@click.argument("user_id", type=int)
@click.argument("category_id", type=int)
@click.argument("url")
@click.option("--crawler", is_flag=True, help="Fetch the full content of new entries")
@click.option("--user-agent", default="", help="Custom User-Agent")
@click.option("--username", default="", help="HTTP basic auth username")
@click.option("--password", default="", help="HTTP basic auth password")
@click.option("--scraper-rules", default="", help="CSS selector used by the crawler")
@click.option("--rewrite-rules", default="", help="Comma separated rewrite rules")
@click.pass_context
def subscribe(ctx, user_id, category_id, url, crawler, user_agent, username, password, scraper_rules, rewrite_rules):
    """Subscribe a user to a feed."""
    settings = _setup(ctx)
    storage = _build_storage(settings)
    handler = _build_handler(settings, storage)

    console.print(f"[bold blue]📡 Subscribing to {url}[/bold blue]")

    try:
        feed = handler.create_feed(
            user_id,
            category_id,
            url,
            crawler=crawler,
            user_agent=user_agent,
            username=username,
            password=password,
            scraper_rules=scraper_rules,
            rewrite_rules=rewrite_rules,
        )
    except FeedSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        logger.debug(f"Subscription failed: {e}")
        sys.exit(1)

    console.print(
        f"[green]✅ Feed #{feed.id} {feed.title!r} created with {len(feed.entries)} entries[/green]"
    )


@cli.command()
@click.argument("user_id", type=int)
@click.argument("feed_id", type=int)
@click.pass_context
def refresh(ctx, user_id, feed_id):
    """Refresh a single feed."""
    settings = _setup(ctx)
    storage = _build_storage(settings)
    handler = _build_handler(settings, storage)

    try:
        outcome = handler.refresh_feed(user_id, feed_id)
    except FeedSyncError as e:
        console.print(f"[bold red]❌ Refresh failed: {e.user_message}[/bold red]")
        logger.debug(f"Refresh failed: {e}")
        sys.exit(1)

    if outcome.status == RefreshStatus.NOT_MODIFIED:
        console.print(f"[yellow]Feed #{feed_id} not modified[/yellow]")
    else:
        console.print(
            f"[green]✅ Feed #{feed_id}: {outcome.new_entries} new, "
            f"{outcome.updated_entries} updated[/green]"
        )


@cli.command()
@click.pass_context
def refresh_due(ctx):
    """Refresh one batch of feeds whose next check time has passed."""
    settings = _setup(ctx)
    storage = _build_storage(settings)
    pool = _build_pool(settings, storage)

    outcomes = pool.refresh_due()
    if not outcomes:
        console.print("[yellow]No feeds due for refresh[/yellow]")
        return

    table = Table(title="Refresh Results")
    table.add_column("Feed", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("New")
    table.add_column("Updated")
    table.add_column("Error", style="red")

    for outcome in outcomes:
        table.add_row(
            str(outcome.feed_id),
            outcome.status.value,
            str(outcome.new_entries),
            str(outcome.updated_entries),
            outcome.error_message,
        )

    console.print(table)

    if any(outcome.status == RefreshStatus.FAILURE for outcome in outcomes):
        sys.exit(1)


@cli.command()
@click.option("--interval", default=60.0, type=float, help="Seconds between batches (default: 60)")
@click.option("--max-cycles", default=None, type=int, help="Stop after this many batches")
@click.pass_context
def run_scheduler(ctx, interval, max_cycles):
    """Refresh due feeds in a loop until interrupted."""
    settings = _setup(ctx)
    storage = _build_storage(settings)
    pool = _build_pool(settings, storage)

    console.print(
        f"[bold blue]⏰ Scheduler running ({settings.polling.scheduler.value}, "
        f"{settings.polling.workers} workers, every {interval:.0f}s)[/bold blue]"
    )
    cycles = pool.run_forever(interval, max_cycles=max_cycles)
    console.print(f"[green]Scheduler stopped after {cycles} cycles[/green]")


@cli.command()
@click.argument("user_id", type=int)
@click.pass_context
def show_feeds(ctx, user_id):
    """Show a user's feeds and their health."""
    settings = _setup(ctx)
    storage = _build_storage(settings)
    feeds = storage.feeds.get_feeds_by_user(user_id)

    if not feeds:
        console.print("[yellow]⚠️ No feeds found for this user[/yellow]")
        return

    table = Table(title="Feeds")
    table.add_column("Status", style="green")
    table.add_column("ID")
    table.add_column("Title", style="cyan")
    table.add_column("URL", style="blue")
    table.add_column("Errors", style="red")
    table.add_column("Next Check")

    threshold = settings.polling.persistent_error_threshold or 5
    for feed in feeds:
        status = "🟢" if feed.is_healthy() else "🟡" if feed.parsing_error_count < threshold else "🔴"
        title = feed.title or "Untitled"
        url = feed.feed_url if len(feed.feed_url) <= 40 else feed.feed_url[:37] + "..."
        table.add_row(
            status,
            str(feed.id),
            title[:30] + "..." if len(title) > 30 else title,
            url,
            f"{feed.parsing_error_count} {feed.parsing_error_msg}".strip(),
            str(feed.next_check_at) if feed.next_check_at else "Now",
        )

    console.print(table)


# Helper functions for configuration checks
def _check_database_config(settings) -> tuple:
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}, pool: {settings.database.pool_size}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple:
    try:
        if settings.logging.file_path:
            Path(settings.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_polling_config(settings) -> tuple:
    polling = settings.polling
    return True, (
        f"Scheduler: {polling.scheduler.value}, interval {polling.min_interval_minutes}-"
        f"{polling.max_interval_minutes} min, workers: {polling.workers}"
    )


def _check_http_config(settings) -> tuple:
    return True, f"Timeout: {settings.http.request_timeout}s, max body: {settings.http.max_body_size_mb}MB"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedSync interrupted by user[/yellow]")
        sys.exit(130)
