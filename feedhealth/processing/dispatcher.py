"""
Fetch Dispatcher
================

Runs one ingestion count fetch per feed concurrently, bounded by a
semaphore. Every unit reports into a single queue sized to the feed
count; the queue is drained once all units have finished. A failing
unit never cancels the others.
"""

import asyncio
from typing import List, Optional

from ..models import FeedDescriptor, FetchOutcome, FetchStatus
from ..utils.logging import get_logger_for_component
from .count_fetcher import IngestionCountFetcher


class FetchDispatcher:
    """Concurrent per-feed count fetching with a single join barrier."""

    def __init__(self, fetcher: IngestionCountFetcher, max_concurrent: int = 10):
        """Initialize dispatcher.

        Args:
            fetcher: Count fetcher used by every unit
            max_concurrent: Maximum fetches in flight at once
        """
        self.fetcher = fetcher
        self.max_concurrent = max_concurrent
        self.logger = get_logger_for_component("dispatcher")

    async def dispatch(self, feeds: List[FeedDescriptor],
                       session=None) -> List[FetchOutcome]:
        """Fetch counts for all feeds.

        Args:
            feeds: Feeds in catalog order
            session: Optional aiohttp session; one is opened when omitted

        Returns:
            One FetchOutcome per feed, in completion order
        """
        if not feeds:
            return []

        self.logger.info(
            f"Getting articles ingested for {len(feeds)} feeds "
            f"(max {self.max_concurrent} concurrent)"
        )

        if session is not None:
            return await self._run_units(feeds, session)

        async with self.fetcher.get_session(max_connections=self.max_concurrent) as own_session:
            return await self._run_units(feeds, own_session)

    async def _run_units(self, feeds: List[FeedDescriptor], session) -> List[FetchOutcome]:
        results: asyncio.Queue = asyncio.Queue(maxsize=len(feeds))
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run_unit(index: int, feed: FeedDescriptor) -> None:
            async with semaphore:
                try:
                    outcome = await self.fetcher.fetch_count(feed, index, session)
                except Exception as e:
                    self.logger.error(
                        f"Count fetch for {feed.magazine} failed unexpectedly: {e}",
                        extra={"magazine": feed.magazine},
                        exc_info=True,
                    )
                    outcome = FetchOutcome(
                        feed_index=index,
                        magazine=feed.magazine,
                        status=FetchStatus.FAILED,
                        error=str(e),
                    )
            results.put_nowait(outcome)

        await asyncio.gather(*(run_unit(i, feed) for i, feed in enumerate(feeds)))

        outcomes = []
        while not results.empty():
            outcomes.append(results.get_nowait())

        successful = sum(1 for o in outcomes if o.success)
        self.logger.info(
            f"Count fetch complete: {successful}/{len(outcomes)} feeds successful"
        )
        return outcomes


def create_dispatcher(settings, ingest_date: str,
                      fetcher: Optional[IngestionCountFetcher] = None) -> FetchDispatcher:
    """Build a dispatcher from the application settings.

    An injected fetcher is re-dated to ingest_date so every request of the
    run asks for the same window.
    """
    if fetcher is None:
        fetcher = IngestionCountFetcher(settings.count_service, ingest_date)
    else:
        fetcher.ingest_date = ingest_date
    return FetchDispatcher(fetcher, max_concurrent=settings.processing.max_concurrent_fetches)
