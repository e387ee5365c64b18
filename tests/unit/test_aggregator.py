"""
Unit Tests for the Ingestion Count Aggregator
=============================================

Tests one-row-per-magazine merging and the report ordering.
"""

import random

import pytest

from feedhealth.config.settings import MergePolicy
from feedhealth.models import FetchOutcome, FetchStatus
from feedhealth.processing.aggregator import Aggregator


def ok(index, magazine, count):
    return FetchOutcome(feed_index=index, magazine=magazine,
                        status=FetchStatus.SUCCESS, article_count=count, attempts=1)


def unknown(index, magazine, status=FetchStatus.EXHAUSTED):
    return FetchOutcome(feed_index=index, magazine=magazine, status=status, attempts=10)


def pairs(report):
    return [(row.magazine, row.article_count) for row in report.rows]


class TestAggregator:

    def setup_method(self):
        self.aggregator = Aggregator()

    def test_empty(self):
        report = self.aggregator.aggregate([])
        assert report.rows == []
        assert len(report) == 0

    def test_sorted_ascending_by_count(self):
        outcomes = [ok(0, "Big", 50), ok(1, "Small", 2), ok(2, "None", 0), ok(3, "Mid", 10)]

        report = self.aggregator.aggregate(outcomes)

        assert pairs(report) == [("None", 0), ("Small", 2), ("Mid", 10), ("Big", 50)]

    def test_ties_keep_catalog_order_regardless_of_completion_order(self):
        outcomes = [ok(0, "First", 3), ok(1, "Second", 3), ok(2, "Third", 3), ok(3, "Low", 1)]

        for _ in range(5):
            shuffled = outcomes[:]
            random.shuffle(shuffled)
            report = self.aggregator.aggregate(shuffled)
            assert [row.magazine for row in report.rows] == ["Low", "First", "Second", "Third"]

    def test_unknown_rows_sort_before_zero(self):
        outcomes = [ok(0, "Zero", 0), unknown(1, "Lost"), ok(2, "Some", 4),
                    unknown(3, "Broken", FetchStatus.DECODE_ERROR)]

        report = self.aggregator.aggregate(outcomes)

        assert pairs(report) == [("Lost", None), ("Broken", None), ("Zero", 0), ("Some", 4)]
        assert report.unknown_magazines == ["Lost", "Broken"]

    def test_one_row_per_magazine(self):
        outcomes = [ok(0, "A", 10), ok(1, "A", 5), ok(2, "B", 3)]

        report = self.aggregator.aggregate(outcomes)

        assert [row.magazine for row in report.rows].count("A") == 1
        assert len(report) == 2
        assert report.duplicate_magazines == ["A"]

    def test_duplicate_later_success_wins(self):
        outcomes = [ok(1, "A", 5), ok(2, "B", 3), ok(0, "A", 10)]

        report = self.aggregator.aggregate(outcomes)

        assert pairs(report) == [("B", 3), ("A", 5)]

    def test_duplicate_failure_does_not_erase_success(self):
        report = self.aggregator.aggregate([ok(0, "A", 7), unknown(1, "A")])
        assert pairs(report) == [("A", 7)]

        report = self.aggregator.aggregate([unknown(0, "A"), ok(1, "A", 7)])
        assert pairs(report) == [("A", 7)]

    def test_duplicate_all_failed_is_unknown(self):
        report = self.aggregator.aggregate([unknown(0, "A"), unknown(1, "A")])
        assert pairs(report) == [("A", None)]

    def test_sum_policy_adds_counts(self):
        aggregator = Aggregator(MergePolicy.SUM)
        outcomes = [ok(0, "A", 10), ok(1, "A", 5), unknown(2, "A"), ok(3, "B", 12)]

        report = aggregator.aggregate(outcomes)

        assert pairs(report) == [("B", 12), ("A", 15)]

    @pytest.mark.parametrize("policy", list(MergePolicy))
    def test_merge_returns_duplicates(self, policy):
        counts, duplicates = Aggregator(policy).merge([ok(0, "A", 1), ok(1, "B", 1), ok(2, "A", 1)])

        assert list(counts) == ["A", "B"]
        assert duplicates == ["A"]
