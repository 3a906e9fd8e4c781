"""
Unit tests for gap-based visit merging.
"""
import pytest
from datetime import timedelta

from app.domain.models import RawInterval
from app.services.domain.visit_merger import MergeConfig, VisitMerger
from app.services.domain.visit_segmenter import VisitSegmenter


@pytest.fixture
def merger():
    return VisitMerger(MergeConfig(gap_minutes=30.0))


@pytest.fixture
def make_interval(t0):
    """Factory for raw intervals expressed in minutes after t0."""
    def _make(start: float, end: float, ping_count: int = 1, tractor_id: str = "tractor-a"):
        return RawInterval(
            tractor_id=tractor_id,
            block_id="block-1",
            started_at=t0 + timedelta(minutes=start),
            ended_at=t0 + timedelta(minutes=end),
            ping_count=ping_count,
        )
    return _make


# ============================================================
# Merge Rule Tests
# ============================================================

class TestVisitMerger:
    """Tests for the greedy merge fold."""

    def test_chain_of_short_gaps_merges(self, merger, make_interval, t0):
        intervals = [
            make_interval(1, 2, ping_count=2),
            make_interval(2, 3.2, ping_count=3),
            make_interval(3.5, 4, ping_count=1),
        ]

        visits = merger.merge(intervals, tenant_id="tenant-1")

        assert len(visits) == 1
        assert visits[0].started_at == t0 + timedelta(minutes=1)
        assert visits[0].ended_at == t0 + timedelta(minutes=4)
        assert visits[0].ping_count == 6
        assert visits[0].tenant_id == "tenant-1"

    def test_gap_equal_to_threshold_does_not_merge(self, merger, make_interval):
        visits = merger.merge([make_interval(0, 10), make_interval(40, 50)], "tenant-1")

        assert len(visits) == 2

    def test_gap_just_below_threshold_merges(self, merger, make_interval):
        just_below = 40 - 1 / 600  # 0.1 second short of a 30 minute gap
        visits = merger.merge([make_interval(0, 10), make_interval(just_below, 50)], "tenant-1")

        assert len(visits) == 1

    def test_gap_just_above_threshold_splits(self, merger, make_interval):
        just_above = 40 + 1 / 600
        visits = merger.merge([make_interval(0, 10), make_interval(just_above, 50)], "tenant-1")

        assert len(visits) == 2

    def test_empty_input(self, merger):
        assert merger.merge([], "tenant-1") == []

    def test_single_interval_passes_through(self, merger, make_interval):
        visits = merger.merge([make_interval(5, 5, ping_count=1)], "tenant-1")

        assert len(visits) == 1
        assert visits[0].started_at == visits[0].ended_at
        assert visits[0].ping_count == 1

    def test_output_is_ordered_and_non_overlapping(self, merger, make_interval):
        intervals = [
            make_interval(0, 5),
            make_interval(20, 25),
            make_interval(70, 80),
            make_interval(200, 210),
            make_interval(215, 220),
        ]

        visits = merger.merge(intervals, "tenant-1")

        assert len(visits) == 3
        for a, b in zip(visits, visits[1:]):
            assert a.ended_at < b.started_at

    def test_ids_are_deterministic(self, merger, make_interval):
        intervals = [make_interval(0, 5), make_interval(60, 70)]

        first = merger.merge(intervals, "tenant-1")
        second = merger.merge(intervals, "tenant-1")

        assert [v.id for v in first] == [v.id for v in second]
        assert first[0].id != first[1].id

    def test_custom_gap(self, make_interval):
        merger = VisitMerger(MergeConfig(gap_minutes=5.0))

        visits = merger.merge([make_interval(0, 10), make_interval(20, 30)], "tenant-1")

        assert len(visits) == 2


# ============================================================
# Segment And Merge Scenarios
# ============================================================

class TestSegmentAndMerge:
    """End-to-end scenarios from pings to final visits."""

    def _visits(self, ring, pings):
        intervals = VisitSegmenter().segment("block-1", ring, "tractor-a", pings)
        return VisitMerger(MergeConfig(gap_minutes=30.0)).merge(intervals, "tenant-1")

    def test_long_absence_gives_two_visits(self, unit_square_ring, make_ping, t0):
        """Inside 0-10 min, outside until 55, inside again 55-65."""
        pings = (
            [make_ping(m, 0.5, 0.5) for m in range(0, 11, 2)]
            + [make_ping(m, 2.0, 2.0) for m in range(12, 55, 5)]
            + [make_ping(m, 0.5, 0.5) for m in range(55, 66, 2)]
        )

        visits = self._visits(unit_square_ring, pings)

        assert len(visits) == 2
        assert visits[0].ended_at == t0 + timedelta(minutes=10)
        assert visits[1].started_at == t0 + timedelta(minutes=55)

    def test_short_absence_is_one_visit(self, unit_square_ring, make_ping, t0):
        """Inside 0-10 min, out for 10 minutes, inside again 20-30."""
        pings = (
            [make_ping(m, 0.5, 0.5) for m in range(0, 11, 2)]
            + [make_ping(15, 2.0, 2.0)]
            + [make_ping(m, 0.5, 0.5) for m in range(20, 31, 2)]
        )

        visits = self._visits(unit_square_ring, pings)

        assert len(visits) == 1
        assert visits[0].started_at == t0
        assert visits[0].ended_at == t0 + timedelta(minutes=30)
        assert visits[0].ping_count == 12
