"""
FeedHealth Run Orchestration
============================

One health check pass, designed to be invoked by cron once per run:

1. Load the tracked feeds from the catalog (fatal on failure).
2. Fetch every feed's ingestion count concurrently and aggregate them.
3. Render and mail the report.
4. On the reminder weekday, group paused feeds by owner and remind each.

Per-feed and per-email failures are recorded in the RunResult and never
abort the pass; only a missing feed list or failed credential exchange do.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..catalog.feed_catalog import CloudantFeedCatalog
from ..config.settings import FeedHealthSettings
from ..delivery.email_sender import BrevoEmailSender, DeliveryResult
from ..delivery.report_writer import render_report_csv, report_filename, write_report
from ..models import AggregatedReport, FeedDescriptor, FetchOutcome, OwnerGroups
from ..owners.grouper import PausedFeedGrouper
from ..owners.salesforce import SalesforceOwnerResolver
from ..processing.aggregator import Aggregator
from ..processing.count_fetcher import IngestionCountFetcher
from ..processing.dispatcher import create_dispatcher
from ..recovery.retry_logic import RetryConfig
from ..utils.dates import ingestion_window_date
from ..utils.exceptions import DeliveryError
from ..utils.logging import PerformanceLogger, get_logger_for_component


@dataclass
class RunResult:
    """Outcome of one health check pass."""
    run_id: str
    started_at: datetime
    ingest_date: str
    feeds_total: int = 0
    outcomes: List[FetchOutcome] = field(default_factory=list)
    report: AggregatedReport = field(default_factory=AggregatedReport)
    report_path: Optional[Path] = None
    report_delivery: Optional[DeliveryResult] = None
    reminders_due: bool = False
    owner_groups: Optional[OwnerGroups] = None
    reminders_sent: List[DeliveryResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def failed_feeds(self) -> List[FetchOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        """True when every count is known and every email went out."""
        return not self.errors and not self.failed_feeds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "ingest_date": self.ingest_date,
            "duration_seconds": round(self.duration_seconds, 3),
            "feeds_total": self.feeds_total,
            "magazines": len(self.report),
            "unknown_counts": self.report.unknown_magazines,
            "duplicate_magazines": self.report.duplicate_magazines,
            "report_sent": bool(self.report_delivery and self.report_delivery.success),
            "reminders_due": self.reminders_due,
            "reminders_sent": len(self.reminders_sent),
            "errors": self.errors,
        }


class HealthCheckRunner:
    """Runs one complete health check pass with explicitly wired components."""

    def __init__(self, settings: FeedHealthSettings,
                 catalog=None,
                 resolver=None,
                 email_sender: Optional[BrevoEmailSender] = None,
                 fetcher: Optional[IngestionCountFetcher] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 dry_run: bool = False):
        """Initialize runner.

        Args:
            settings: Application settings, built once at startup
            catalog: Feed catalog (Cloudant by default)
            resolver: Owner resolver (Salesforce by default)
            email_sender: Email sender (Brevo by default)
            fetcher: Ingestion count fetcher (built per run by default)
            clock: Returns the run start time; UTC now by default
            dry_run: Do everything except sending emails
        """
        self.settings = settings
        self.catalog = catalog or CloudantFeedCatalog(settings.catalog)
        self.resolver = resolver or SalesforceOwnerResolver(settings.owners)
        self.email_sender = email_sender or BrevoEmailSender(settings.email, dry_run=dry_run)
        self.fetcher = fetcher
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.dry_run = dry_run
        self.logger = get_logger_for_component("health_check")

    def reminders_due(self, started_at: datetime, send_reminders: Optional[bool] = None) -> bool:
        """Whether paused feed reminders go out on this run."""
        if send_reminders is not None:
            return send_reminders
        return (
            self.settings.reminders.enabled
            and started_at.weekday() == self.settings.reminders.weekday
        )

    def build_grouper(self) -> PausedFeedGrouper:
        owners = self.settings.owners
        return PausedFeedGrouper(
            self.resolver,
            override_publisher=self.settings.reminders.override_publisher,
            retry_config=RetryConfig(
                max_attempts=owners.max_attempts,
                delay=owners.retry_delay_seconds,
            ),
        )

    async def collect_counts(self, feeds: List[FeedDescriptor],
                             ingest_date: str) -> Tuple[List[FetchOutcome], AggregatedReport]:
        """Fetch all counts and aggregate them.

        Returns:
            (outcomes, AggregatedReport)
        """
        dispatcher = create_dispatcher(self.settings, ingest_date, fetcher=self.fetcher)
        outcomes = await dispatcher.dispatch(feeds)

        aggregator = Aggregator(self.settings.processing.merge_policy)
        return outcomes, aggregator.aggregate(outcomes)

    async def run(self, send_reminders: Optional[bool] = None,
                  output_path: Optional[Path] = None) -> RunResult:
        """Execute one health check pass.

        Args:
            send_reminders: Force (True) or skip (False) reminders; None follows the weekday
            output_path: Also write the CSV report to this path

        Returns:
            RunResult describing the pass

        Raises:
            CatalogError: the feed list could not be obtained
            CredentialError: reminders are due and the resolver cannot authenticate
        """
        started_at = self.clock()
        ingest_date = ingestion_window_date(started_at, self.settings.processing.lookback_hours)
        result = RunResult(
            run_id=f"health_{started_at.strftime('%Y%m%d_%H%M%S')}",
            started_at=started_at,
            ingest_date=ingest_date,
            reminders_due=self.reminders_due(started_at, send_reminders),
        )

        self.logger.info(
            "Starting health check",
            extra={"run_id": result.run_id, "ingest_date": ingest_date, "dry_run": self.dry_run},
        )

        with PerformanceLogger(self.logger, "health check", run_id=result.run_id) as perf:
            feeds = await asyncio.to_thread(self.catalog.fetch_feeds)
            result.feeds_total = len(feeds)

            if result.reminders_due:
                # Fail before anything is sent if the owner lookups cannot work
                await asyncio.to_thread(self.resolver.authenticate)

            result.outcomes, result.report = await self.collect_counts(feeds, ingest_date)

            await self._deliver_report(result, output_path)

            if result.reminders_due:
                await self._send_reminders(result, feeds)

        result.duration_seconds = perf.duration
        self.logger.info("Health check finished", extra=result.to_dict())
        return result

    async def _deliver_report(self, result: RunResult, output_path: Optional[Path]) -> None:
        csv_text = render_report_csv(result.report)

        if output_path:
            try:
                result.report_path = write_report(result.report, output_path)
                self.logger.info(f"Report written to {result.report_path}")
            except DeliveryError as e:
                self.logger.error(str(e), extra=e.to_dict())
                result.errors.append({"stage": "report_file", "error": str(e)})

        try:
            result.report_delivery = await asyncio.to_thread(
                self.email_sender.send_report,
                result.report,
                csv_text,
                report_filename(result.started_at),
            )
        except DeliveryError as e:
            self.logger.error(f"Report delivery failed: {e}", extra=e.to_dict())
            result.errors.append({"stage": "report", "error": str(e)})

    async def _send_reminders(self, result: RunResult, feeds: List[FeedDescriptor]) -> None:
        groups = await asyncio.to_thread(self.build_grouper().group, feeds)
        result.owner_groups = groups

        for owner in groups.owners:
            try:
                delivery = await asyncio.to_thread(
                    self.email_sender.send_paused_reminder, owner, groups.feeds_for(owner)
                )
                result.reminders_sent.append(delivery)
            except DeliveryError as e:
                self.logger.error(
                    f"Paused feed reminder to {owner} failed: {e}", extra=e.to_dict()
                )
                result.errors.append({"stage": "reminder", "owner": owner, "error": str(e)})
