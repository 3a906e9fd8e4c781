"""
Domain service: historical pass statistics and health status for a block.
"""
import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

from app.domain.models import BlockMetrics, Visit, ensure_utc


class BlockStatus(str, Enum):
    """Health of a block based on time since its last visit."""
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class DailyPassCount:
    day: date
    count: int


@dataclass
class WeeklyPassCount:
    week_start: date
    count: int


@dataclass
class BlockVisitStats:
    """Pass history of one block."""
    daily_passes_90d: List[DailyPassCount] = field(default_factory=list)
    weekly_passes_3m: List[WeeklyPassCount] = field(default_factory=list)
    average_passes_per_month: float = 0.0
    total_duration_minutes: float = 0.0
    average_duration_minutes: float = 0.0


def subtract_months(value: datetime, months: int) -> datetime:
    """Shift a datetime back by whole calendar months, clamping the day."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def week_start(day: date) -> date:
    """Monday of the week containing a day."""
    return day - timedelta(days=day.weekday())


def block_status(
    metrics: Optional[BlockMetrics],
    alert_hours: float = 48.0,
    now: Optional[datetime] = None,
) -> BlockStatus:
    """
    Classify a block by time since it was last seen.

    Args:
        metrics: Current block metrics (None if never computed)
        alert_hours: Hours without a visit after which the block is critical
        now: Reference time (defaults to the current UTC time)

    Returns:
        CRITICAL when never seen or stale beyond alert_hours, WARNING beyond
        half of it, HEALTHY otherwise
    """
    if metrics is None or metrics.last_seen_at is None:
        return BlockStatus.CRITICAL

    now = ensure_utc(now) or datetime.now(timezone.utc)
    hours_since = (now - metrics.last_seen_at).total_seconds() / 3600.0

    if hours_since > alert_hours:
        return BlockStatus.CRITICAL
    if hours_since > alert_hours * 0.5:
        return BlockStatus.WARNING
    return BlockStatus.HEALTHY


def summarize_visits(
    visits: Sequence[Visit],
    now: Optional[datetime] = None,
) -> BlockVisitStats:
    """
    Build pass statistics for a block's visits.

    Days and weeks are UTC calendar days; weeks start on Monday. Open
    visits add nothing to the total duration but still count in the
    average's denominator.

    Args:
        visits: Final visits of one block
        now: Reference time (defaults to the current UTC time)

    Returns:
        BlockVisitStats
    """
    now = ensure_utc(now) or datetime.now(timezone.utc)
    today = now.date()

    by_day: Dict[date, int] = {}
    by_week: Dict[date, int] = {}
    for visit in visits:
        day = visit.started_at.date()
        by_day[day] = by_day.get(day, 0) + 1
        by_week[week_start(day)] = by_week.get(week_start(day), 0) + 1

    first_day = (now - timedelta(days=90)).date()
    daily = []
    day = first_day
    while day <= today:
        daily.append(DailyPassCount(day=day, count=by_day.get(day, 0)))
        day += timedelta(days=1)

    weekly = []
    week = week_start(subtract_months(now, 3).date())
    while week <= today:
        weekly.append(WeeklyPassCount(week_start=week, count=by_week.get(week, 0)))
        week += timedelta(weeks=1)

    one_year_ago = subtract_months(now, 12)
    last_year = [v for v in visits if v.started_at >= one_year_ago]
    months_with_data = {(v.started_at.year, v.started_at.month) for v in last_year}
    average_per_month = len(last_year) / len(months_with_data) if months_with_data else 0.0

    total_minutes = sum(
        (v.ended_at - v.started_at).total_seconds() / 60.0
        for v in visits
        if v.ended_at is not None
    )
    average_minutes = total_minutes / len(visits) if visits else 0.0

    return BlockVisitStats(
        daily_passes_90d=daily,
        weekly_passes_3m=weekly,
        average_passes_per_month=average_per_month,
        total_duration_minutes=total_minutes,
        average_duration_minutes=average_minutes,
    )
