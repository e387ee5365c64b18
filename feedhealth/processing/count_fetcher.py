"""
Ingestion Count Fetcher
=======================

Asks the article database how many articles were ingested for one
magazine on the ingestion window date. Transient failures are retried a
fixed number of times with a fixed pause; the result is always a
FetchOutcome, never an exception.
"""

import asyncio
import json
import ssl
from contextlib import asynccontextmanager
from typing import Optional

import aiohttp
import certifi

from ..config.settings import CountServiceSettings
from ..models import FeedDescriptor, FetchOutcome, FetchStatus
from ..recovery.retry_logic import RetryConfig, RetryExhaustedError, RetryManager
from ..utils.exceptions import CountDecodeError, CountFetchError, ErrorCode
from ..utils.logging import get_logger_for_component

# Raw bodies are logged, but never whole pages of HTML error output
MAX_LOGGED_BODY = 2000


class IngestionCountFetcher:
    """Fetches the ingested article count for a single magazine."""

    def __init__(self, settings: CountServiceSettings, ingest_date: str,
                 retry_manager: Optional[RetryManager] = None):
        """Initialize count fetcher.

        Args:
            settings: Counting service configuration
            ingest_date: Ingestion window date, already formatted as YYYY-M-D
            retry_manager: Retry manager (a fixed-delay one is built by default)
        """
        self.settings = settings
        self.ingest_date = ingest_date
        self.count_url = settings.count_url
        self.logger = get_logger_for_component("count_fetcher")

        self.retry_config = RetryConfig(
            max_attempts=settings.max_attempts,
            delay=settings.retry_delay_seconds,
        )
        self.retry_manager = retry_manager or RetryManager(self.retry_config)

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self, max_connections: int = 10):
        """Get configured aiohttp session with a per-request timeout."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=max_connections,
            enable_cleanup_closed=True,
        )

        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)

        headers = {
            "User-Agent": "FeedHealth/1.0",
            "Accept": "application/json",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    def build_params(self, magazine: str) -> dict:
        return {
            "apikey": self.settings.api_key or "",
            "ingestdate": self.ingest_date,
            "magazine": magazine,
        }

    async def request_count(self, session: aiohttp.ClientSession, magazine: str) -> int:
        """Issue one request to the counting service.

        Returns:
            Number of article rows in the response

        Raises:
            CountFetchError: transport failure, timeout or non-2xx status
            CountDecodeError: 2xx response whose body is not a JSON array
        """
        try:
            async with session.get(self.count_url, params=self.build_params(magazine)) as response:
                raw = await response.read()
                status = response.status
        except asyncio.TimeoutError as e:
            raise CountFetchError(
                f"Request timeout after {self.settings.request_timeout}s for {magazine}",
                magazine=magazine,
                error_code=ErrorCode.COUNT_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise CountFetchError(
                f"Network error for {magazine}: {e}", magazine=magazine
            ) from e

        if status // 100 != 2:
            body = raw.decode("utf-8", errors="replace")[:MAX_LOGGED_BODY]
            raise CountFetchError(
                f"HTTP {status} for {magazine}, body: {body}",
                magazine=magazine,
                status=status,
                body=body,
                error_code=ErrorCode.COUNT_HTTP_STATUS,
            )

        try:
            rows = json.loads(raw)
        except ValueError as e:
            raise CountDecodeError(
                f"Response for {magazine} is not valid JSON: {e}",
                magazine=magazine,
                body=raw.decode("utf-8", errors="replace")[:MAX_LOGGED_BODY],
            ) from e

        if not isinstance(rows, list):
            raise CountDecodeError(
                f"Response for {magazine} is a {type(rows).__name__}, expected a list of article rows",
                magazine=magazine,
            )

        return len(rows)

    async def fetch_count(self, feed: FeedDescriptor, feed_index: int,
                          session: aiohttp.ClientSession) -> FetchOutcome:
        """Fetch the ingestion count for one feed with bounded retries.

        Args:
            feed: Feed whose magazine is counted
            feed_index: Position of the feed in the catalog
            session: aiohttp session shared by the run

        Returns:
            FetchOutcome with the count, or with an unknown count and the reason
        """
        magazine = feed.magazine
        attempts = 0

        async def attempt() -> int:
            nonlocal attempts
            attempts += 1
            return await self.request_count(session, magazine)

        try:
            count = await self.retry_manager.retry_async(
                attempt,
                operation=f"ingestion count for {magazine}",
                config=self.retry_config,
            )
        except RetryExhaustedError as e:
            self.logger.error(
                f"Giving up on {magazine} after {attempts} attempts, count unknown",
                extra={"magazine": magazine, "attempts": attempts},
            )
            return FetchOutcome(
                feed_index=feed_index,
                magazine=magazine,
                status=FetchStatus.EXHAUSTED,
                attempts=attempts,
                error=str(e.last_exception),
            )
        except CountDecodeError as e:
            self.logger.error(
                f"Malformed count response for {magazine}: {e}",
                extra=e.to_dict(),
            )
            return FetchOutcome(
                feed_index=feed_index,
                magazine=magazine,
                status=FetchStatus.DECODE_ERROR,
                attempts=attempts,
                error=str(e),
            )

        self.logger.debug(f"{magazine}: {count} articles ingested on {self.ingest_date}")
        return FetchOutcome(
            feed_index=feed_index,
            magazine=magazine,
            status=FetchStatus.SUCCESS,
            article_count=count,
            attempts=attempts,
        )
