"""
Paused-Feed Grouper
===================

Resolves the owner of every paused feed and groups the feeds by owner so
each owner receives a single reminder. Lookups run one at a time because
the owner resolver sits behind a rate-limited query API.
"""

from typing import Iterable, Optional

from ..models import FeedDescriptor, OwnerGroups
from ..recovery.retry_logic import RetryConfig, RetryExhaustedError, RetryManager
from ..utils.exceptions import CredentialError, OwnerLookupError
from ..utils.logging import get_logger_for_component

DEFAULT_OVERRIDE_PUBLISHER = "The New York Times"


class PausedFeedGrouper:
    """Groups paused feeds by the owner responsible for unpausing them."""

    def __init__(self, resolver, override_publisher: str = DEFAULT_OVERRIDE_PUBLISHER,
                 retry_config: Optional[RetryConfig] = None):
        """Initialize grouper.

        Args:
            resolver: Object with lookup(magazine) -> OwnerLookupResult
            override_publisher: Publisher always queried under its own name
            retry_config: Retry policy for each lookup
        """
        self.resolver = resolver
        self.override_publisher = override_publisher
        self.retry_config = retry_config or RetryConfig(max_attempts=1)
        self.retry_manager = RetryManager(self.retry_config)
        self.logger = get_logger_for_component("grouper")

    def query_key(self, feed: FeedDescriptor) -> str:
        """Magazine name the owner resolver is queried with."""
        if feed.publisher == self.override_publisher:
            return self.override_publisher
        return feed.magazine

    def group(self, feeds: Iterable[FeedDescriptor]) -> OwnerGroups:
        """Group paused feeds by owner.

        Feeds whose magazine has no active owner are skipped silently,
        ambiguous ownership is logged and skipped, and a failed lookup
        skips only that feed.

        Raises:
            CredentialError: the resolver could not authenticate
        """
        groups = OwnerGroups()

        for feed in feeds:
            if not feed.paused:
                continue

            key = self.query_key(feed)
            try:
                result = self.retry_manager.retry_sync(
                    self.resolver.lookup,
                    key,
                    operation=f"owner lookup for {key}",
                    config=self.retry_config,
                )
            except CredentialError:
                raise
            except (OwnerLookupError, RetryExhaustedError) as e:
                self.logger.error(
                    f"Owner lookup failed for feed {feed.feed_name} ({feed.publisher}): {e}",
                    extra={"magazine": key},
                )
                groups.failed.append(feed)
                continue

            if result.total_size < 1:
                # Inactive magazine, nobody to remind
                self.logger.debug(f"No active owner for {key}, skipping {feed.feed_name}")
                groups.inactive.append(feed)
                continue

            if result.total_size > 1:
                self.logger.error(
                    f"Owner query for {key} returned {result.total_size} records, "
                    f"skipping feed {feed.feed_name}",
                    extra={"magazine": key, "total_size": result.total_size},
                )
                groups.ambiguous.append(feed)
                continue

            if not result.owner_email:
                self.logger.warning(
                    f"Magazine {key} has no owner email on record, skipping feed {feed.feed_name}",
                    extra={"magazine": key},
                )
                groups.failed.append(feed)
                continue

            if groups.add(result.owner_email, feed):
                self.logger.info(
                    f"Paused feed {feed.feed_name} from {feed.publisher} assigned to {result.owner_email}"
                )

        self.logger.info(
            f"Grouped paused feeds for {len(groups.owners)} owner(s); "
            f"{len(groups.inactive)} inactive, {len(groups.ambiguous)} ambiguous, "
            f"{len(groups.failed)} failed"
        )
        return groups
