#!/usr/bin/env python3
"""
FeedHealth - RSS Ingestion Health Checker
=========================================

Main application entry point with CLI interface.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py run                       # Daily health check (cron entry point)
    python main.py run --dry-run             # Everything except sending emails
    python main.py counts                    # Print ingestion counts only
    python main.py paused                    # Print paused feeds grouped by owner
"""

import sys
import asyncio
from datetime import datetime, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedhealth.config.settings import get_settings
from feedhealth.delivery.report_writer import write_report
from feedhealth.scheduler.health_check import HealthCheckRunner
from feedhealth.utils.dates import ingestion_window_date
from feedhealth.utils.logging import configure_application_logging, get_logger_for_component
from feedhealth.utils.exceptions import FeedHealthError, handle_exception

console = Console()

def _load(ctx, validate: bool = True):
    """Load settings once and configure logging from them."""
    settings = get_settings(validate=validate)
    if ctx.obj.get('debug'):
        settings.debug = True

    configure_application_logging(
        log_level=settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _report_table(report, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Magazine", style="cyan")
    table.add_column("Articles", justify="right")

    for row in report.rows:
        count = "[red]unknown[/red]" if row.unknown else str(row.article_count)
        table.add_row(row.magazine, count)
    return table


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedHealth - RSS feed ingestion health checker."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option('--dry-run', is_flag=True, help='Build everything but do not send emails')
@click.option('--force-reminders/--skip-reminders', default=None,
              help='Override the reminder weekday check')
@click.option('--output', type=click.Path(dir_okay=False, path_type=Path),
              help='Also write the CSV report to this file')
@click.pass_context
def run(ctx, dry_run, force_reminders, output):
    """Run the daily health check: counts, report email and reminders."""
    try:
        settings = _load(ctx)
        runner = HealthCheckRunner(settings, dry_run=dry_run)

        if dry_run:
            console.print("[yellow]📋 Dry run mode - no emails will be sent[/yellow]")

        result = asyncio.run(runner.run(send_reminders=force_reminders, output_path=output))

    except FeedHealthError as e:
        console.print(f"[bold red]❌ Health check aborted: {e}[/bold red]")
        sys.exit(1)
    except Exception as e:
        error = handle_exception(e, get_logger_for_component("cli"), "health check run")
        console.print(f"[bold red]❌ Health check crashed: {error}[/bold red]")
        sys.exit(1)

    summary = Table(title=f"Health Check {result.run_id}")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green")

    summary.add_row("Ingest date", result.ingest_date)
    summary.add_row("Feeds", str(result.feeds_total))
    summary.add_row("Magazines", str(len(result.report)))
    summary.add_row("Unknown counts", str(len(result.report.unknown_magazines)))
    summary.add_row("Report sent", "✅" if result.to_dict()["report_sent"] else "❌")
    summary.add_row("Reminders due", "yes" if result.reminders_due else "no")
    summary.add_row("Reminders sent", str(len(result.reminders_sent)))
    summary.add_row("Duration", f"{result.duration_seconds:.1f}s")
    console.print(summary)

    for error in result.errors:
        console.print(f"[red]⚠️ {error['stage']}: {error['error']}[/red]")

    if result.success:
        console.print("[bold green]✅ Health check completed[/bold green]")
    else:
        console.print("[bold yellow]⚠️ Health check completed with problems[/bold yellow]")


@cli.command()
@click.option('--output', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the CSV report to this file')
@click.pass_context
def counts(ctx, output):
    """Fetch and print ingestion counts without sending anything."""
    try:
        settings = _load(ctx, validate=False)
        runner = HealthCheckRunner(settings, dry_run=True)

        ingest_date = ingestion_window_date(
            datetime.now(timezone.utc), settings.processing.lookback_hours
        )
        feeds = runner.catalog.fetch_feeds()
        console.print(f"[bold blue]📡 Counting articles ingested on {ingest_date} for {len(feeds)} feeds[/bold blue]")

        _, report = asyncio.run(runner.collect_counts(feeds, ingest_date))

        console.print(_report_table(report, f"Articles ingested on {ingest_date}"))

        if output:
            path = write_report(report, output)
            console.print(f"[green]Report written to {path}[/green]")

    except FeedHealthError as e:
        console.print(f"[bold red]❌ Count fetch failed: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def paused(ctx):
    """Print paused feeds grouped by owner without sending reminders."""
    try:
        settings = _load(ctx, validate=False)
        runner = HealthCheckRunner(settings, dry_run=True)

        feeds = runner.catalog.fetch_feeds()
        runner.resolver.authenticate()
        groups = runner.build_grouper().group(feeds)

    except FeedHealthError as e:
        console.print(f"[bold red]❌ Owner grouping failed: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Paused Feeds by Owner")
    table.add_column("Owner", style="cyan")
    table.add_column("Feed")
    table.add_column("Publisher")
    table.add_column("URL")

    for owner in groups.owners:
        for feed in groups.feeds_for(owner):
            table.add_row(owner, feed.feed_name, feed.publisher, feed.feed_url)
    console.print(table)

    for label, skipped in (("No active owner", groups.inactive),
                           ("Ambiguous owner", groups.ambiguous),
                           ("Lookup failed", groups.failed)):
        if skipped:
            names = ", ".join(feed.feed_name for feed in skipped)
            console.print(f"[yellow]{label}: {names}[/yellow]")


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration from environment variables and .env."""
    console.print("[bold blue]🔧 Checking FeedHealth Configuration[/bold blue]")

    try:
        settings = get_settings(validate=False)
    except FeedHealthError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Setting")
    table.add_column("Value", style="green")

    table.add_row("Catalog", "url / db", f"{settings.catalog.url} / {settings.catalog.db_name}")
    table.add_row("Counting service", "url", settings.count_service.count_url)
    table.add_row("Counting service", "attempts", str(settings.count_service.max_attempts))
    table.add_row("Processing", "concurrency", str(settings.processing.max_concurrent_fetches))
    table.add_row("Processing", "merge policy", settings.processing.merge_policy.value)
    table.add_row("Email", "report recipients", ", ".join(settings.email.report_recipients) or "-")
    table.add_row("Reminders", "enabled / weekday",
                  f"{settings.reminders.enabled} / {settings.reminders.weekday}")
    table.add_row("Logging", "level", settings.get_effective_log_level())
    console.print(table)

    try:
        settings.validate_configuration()
    except FeedHealthError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    console.print("[bold green]✅ All configuration checks passed![/bold green]")


if __name__ == "__main__":
    cli()
