"""
Unit tests for block pass statistics and health status.
"""
from datetime import date, datetime, timedelta, timezone

from app.domain.models import BlockMetrics, Visit, visit_id_for
from app.services.domain.visit_statistics import (
    BlockStatus,
    block_status,
    subtract_months,
    summarize_visits,
    week_start,
)


NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)  # a Wednesday


def _metrics(last_seen_hours_ago):
    last_seen = None if last_seen_hours_ago is None else NOW - timedelta(hours=last_seen_hours_ago)
    return BlockMetrics(block_id="block-1", last_seen_at=last_seen, updated_at=NOW)


def _visit(started_at: datetime, minutes=None) -> Visit:
    return Visit(
        id=visit_id_for("block-1", "tractor-a", started_at),
        block_id="block-1",
        tenant_id="tenant-1",
        tractor_id="tractor-a",
        started_at=started_at,
        ended_at=None if minutes is None else started_at + timedelta(minutes=minutes),
        ping_count=5,
    )


# ============================================================
# Block Status Tests
# ============================================================

class TestBlockStatus:
    """Tests for the staleness classification."""

    def test_never_seen_is_critical(self):
        assert block_status(None, now=NOW) == BlockStatus.CRITICAL
        assert block_status(_metrics(None), now=NOW) == BlockStatus.CRITICAL

    def test_recent_visit_is_healthy(self):
        assert block_status(_metrics(10), alert_hours=48, now=NOW) == BlockStatus.HEALTHY

    def test_past_half_threshold_is_warning(self):
        assert block_status(_metrics(30), alert_hours=48, now=NOW) == BlockStatus.WARNING

    def test_past_threshold_is_critical(self):
        assert block_status(_metrics(50), alert_hours=48, now=NOW) == BlockStatus.CRITICAL

    def test_custom_threshold(self):
        assert block_status(_metrics(10), alert_hours=12, now=NOW) == BlockStatus.WARNING
        assert block_status(_metrics(10), alert_hours=8, now=NOW) == BlockStatus.CRITICAL


# ============================================================
# Calendar Helper Tests
# ============================================================

class TestCalendarHelpers:

    def test_subtract_months_clamps_day(self):
        assert subtract_months(datetime(2026, 3, 31), 1) == datetime(2026, 2, 28)
        assert subtract_months(datetime(2026, 1, 15), 3) == datetime(2025, 10, 15)

    def test_week_start_is_monday(self):
        assert week_start(date(2026, 3, 11)) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 9)) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 15)) == date(2026, 3, 9)


# ============================================================
# Summary Tests
# ============================================================

class TestSummarizeVisits:
    """Tests for daily/weekly counts and durations."""

    def test_empty(self):
        stats = summarize_visits([], now=NOW)

        assert len(stats.daily_passes_90d) == 91
        assert all(d.count == 0 for d in stats.daily_passes_90d)
        assert stats.average_passes_per_month == 0.0
        assert stats.total_duration_minutes == 0.0
        assert stats.average_duration_minutes == 0.0

    def test_daily_counts(self):
        visits = [
            _visit(NOW - timedelta(hours=2), 30),
            _visit(NOW - timedelta(hours=4), 30),
            _visit(NOW - timedelta(days=3), 30),
            _visit(NOW - timedelta(days=200), 30),
        ]

        stats = summarize_visits(visits, now=NOW)
        by_day = {d.day: d.count for d in stats.daily_passes_90d}

        assert stats.daily_passes_90d[0].day == date(2025, 12, 11)
        assert stats.daily_passes_90d[-1].day == date(2026, 3, 11)
        assert by_day[date(2026, 3, 11)] == 2
        assert by_day[date(2026, 3, 8)] == 1
        assert sum(by_day.values()) == 3

    def test_weekly_counts_start_on_monday(self):
        visits = [
            _visit(datetime(2026, 3, 9, 8, tzinfo=timezone.utc), 10),
            _visit(datetime(2026, 3, 10, 8, tzinfo=timezone.utc), 10),
            _visit(datetime(2026, 3, 8, 8, tzinfo=timezone.utc), 10),
        ]

        stats = summarize_visits(visits, now=NOW)
        by_week = {w.week_start: w.count for w in stats.weekly_passes_3m}

        assert all(w.week_start.weekday() == 0 for w in stats.weekly_passes_3m)
        assert stats.weekly_passes_3m[0].week_start == date(2025, 12, 8)
        assert stats.weekly_passes_3m[-1].week_start == date(2026, 3, 9)
        assert by_week[date(2026, 3, 9)] == 2
        assert by_week[date(2026, 3, 2)] == 1

    def test_average_passes_per_month_uses_months_with_data(self):
        visits = [
            _visit(datetime(2026, 1, 5, tzinfo=timezone.utc), 10),
            _visit(datetime(2026, 1, 20, tzinfo=timezone.utc), 10),
            _visit(datetime(2026, 3, 1, tzinfo=timezone.utc), 10),
            _visit(datetime(2024, 6, 1, tzinfo=timezone.utc), 10),
        ]

        stats = summarize_visits(visits, now=NOW)

        assert stats.average_passes_per_month == 1.5

    def test_durations_skip_open_visits(self):
        visits = [
            _visit(NOW - timedelta(days=1), 30),
            _visit(NOW - timedelta(days=2), 60),
            _visit(NOW - timedelta(hours=1)),
        ]

        stats = summarize_visits(visits, now=NOW)

        assert stats.total_duration_minutes == 90.0
        assert stats.average_duration_minutes == 30.0
