"""
Ingestion Count Aggregator
==========================

Merges per-feed outcomes into one count per magazine and orders the
report ascending by count. Runs single-threaded after the dispatcher's
join barrier, so the merge map needs no locking.

Outcomes are merged in catalog order rather than completion order, which
keeps both the duplicate-magazine merge and the tie order deterministic.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from ..config.settings import MergePolicy
from ..models import AggregatedReport, FetchOutcome, ReportRow
from ..utils.logging import get_logger_for_component


def _sort_key(row: ReportRow) -> int:
    # Unknown counts sort ahead of every known count, including zero
    return -1 if row.article_count is None else row.article_count


class Aggregator:
    """Builds the AggregatedReport from fetch outcomes."""

    def __init__(self, merge_policy: MergePolicy = MergePolicy.LAST_SUCCESS):
        self.merge_policy = merge_policy
        self.logger = get_logger_for_component("aggregator")

    def merge(self, outcomes: Iterable[FetchOutcome]) -> Tuple[Dict[str, Optional[int]], List[str]]:
        """Merge outcomes into a magazine -> count map.

        Insertion order of the map is the catalog order of each magazine's
        first feed. None marks a magazine with no successful fetch.

        Returns:
            (counts, magazines tracked by more than one feed)
        """
        counts: Dict[str, Optional[int]] = {}
        duplicates: List[str] = []

        for outcome in sorted(outcomes, key=lambda o: o.feed_index):
            magazine = outcome.magazine
            if magazine in counts and magazine not in duplicates:
                duplicates.append(magazine)

            if not outcome.success:
                counts.setdefault(magazine, None)
                continue

            current = counts.get(magazine)
            if self.merge_policy == MergePolicy.SUM and current is not None:
                counts[magazine] = current + outcome.article_count
            else:
                counts[magazine] = outcome.article_count

        if duplicates:
            self.logger.warning(
                f"{len(duplicates)} magazine(s) tracked by more than one feed, "
                f"merged with policy '{self.merge_policy.value}': {', '.join(duplicates)}"
            )

        return counts, duplicates

    def aggregate(self, outcomes: Iterable[FetchOutcome]) -> AggregatedReport:
        """Build the sorted report.

        Args:
            outcomes: One outcome per feed, in any order

        Returns:
            AggregatedReport with exactly one row per distinct magazine
        """
        counts, duplicates = self.merge(outcomes)

        rows = [ReportRow(magazine=m, article_count=c) for m, c in counts.items()]
        rows.sort(key=_sort_key)

        report = AggregatedReport(rows=rows, duplicate_magazines=duplicates)

        unknown = report.unknown_magazines
        if unknown:
            self.logger.warning(
                f"Ingestion count unknown for {len(unknown)} magazine(s): {', '.join(unknown)}"
            )

        return report
