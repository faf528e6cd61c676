"""
Time Bucketer

Partitions a time window into calendar-aligned buckets and places records into
them.

Buckets are anchored in UTC: hours on :00, days on midnight, weeks on the
configured weekday, months, quarters and years on the 1st. Every bucket is
half-open [start, end) and clipped to the window, so the first and last buckets
may be partial. The window end itself is inclusive and belongs to the last
bucket. Buckets are contiguous and exactly cover the window.

Which granularities a chart may use depends on the window span. A disallowed
request falls back to the nearest allowed granularity and carries a notice.
"""

from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar
import logging

from dateutil.relativedelta import relativedelta

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models.enums import CHART_GRANULARITIES, Granularity
from dispatch_analytics.models.schemas import Bucket, GroupingResolution, TimeWindow

logger = logging.getLogger(__name__)

T = TypeVar('T')

GRANULARITY_ORDER: Dict[Granularity, int] = {g: i for i, g in enumerate(Granularity)}


# =============================================================================
# Calendar arithmetic
# =============================================================================

def floor_to(moment: datetime, granularity: Granularity, week_start_day: int = 0) -> datetime:
    """Start of the calendar unit containing ``moment``."""
    if granularity == Granularity.HOUR:
        return moment.replace(minute=0, second=0, microsecond=0)

    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == Granularity.DAY:
        return day
    if granularity == Granularity.WEEK:
        offset = (day.weekday() - week_start_day) % 7
        return day - timedelta(days=offset)
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    if granularity == Granularity.QUARTER:
        first_month = 3 * ((day.month - 1) // 3) + 1
        return day.replace(month=first_month, day=1)
    if granularity == Granularity.YEAR:
        return day.replace(month=1, day=1)
    raise AnalyticsContractError(f"Unknown granularity: {granularity!r}")


def step(granularity: Granularity):
    """Length of one calendar unit as a timedelta or relativedelta."""
    return {
        Granularity.HOUR: timedelta(hours=1),
        Granularity.DAY: timedelta(days=1),
        Granularity.WEEK: timedelta(weeks=1),
        Granularity.MONTH: relativedelta(months=1),
        Granularity.QUARTER: relativedelta(months=3),
        Granularity.YEAR: relativedelta(years=1),
    }[granularity]


def bucket_label(start: datetime, granularity: Granularity) -> str:
    """
    Human-readable label of the calendar unit beginning at ``start``.

    Examples: '2024-03-01 14:00', '2024-03-01', '2024-W09', '2024-03',
    '2024-Q1', '2024'. Week labels use the ISO week of the week's first day.
    """
    if granularity == Granularity.HOUR:
        return start.strftime('%Y-%m-%d %H:00')
    if granularity == Granularity.DAY:
        return start.strftime('%Y-%m-%d')
    if granularity == Granularity.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == Granularity.MONTH:
        return start.strftime('%Y-%m')
    if granularity == Granularity.QUARTER:
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    return str(start.year)


def _coerce_granularity(value) -> Granularity:
    try:
        return Granularity(value)
    except ValueError:
        raise AnalyticsContractError(f"Unknown granularity: {value!r}")


# =============================================================================
# Bucket construction
# =============================================================================

def build_buckets(
    window: TimeWindow,
    granularity: Granularity,
    settings: Optional[Settings] = None,
) -> List[Bucket]:
    """
    Partition a window into contiguous calendar buckets.

    The first bucket starts at window.start and the last ends at window.end;
    inner boundaries fall on calendar unit starts. A zero-length window yields
    a single empty-span bucket so that a record at that instant still has a
    home.

    Raises:
        AnalyticsContractError: If the window has no bounds or the granularity
            is unknown
    """
    if window is None or window.start is None or window.end is None:
        raise AnalyticsContractError("A bounded window is required for bucketing")
    granularity = _coerce_granularity(granularity)
    settings = settings or get_settings()

    start, end = window.start, window.end
    unit = step(granularity)
    buckets: List[Bucket] = []

    anchor = floor_to(start, granularity, settings.week_start_day)
    cursor = start
    while True:
        boundary = anchor + unit
        bucket_end = min(boundary, end)
        buckets.append(Bucket(
            start=cursor,
            end=bucket_end,
            label=bucket_label(anchor, granularity),
        ))
        if boundary >= end:
            break
        anchor = boundary
        cursor = boundary

    return buckets


def assign_to_buckets(
    items: Iterable[T],
    buckets: Sequence[Bucket],
    key: Callable[[T], datetime],
) -> List[List[T]]:
    """
    Group items by bucket in one pass, using binary search on bucket starts.

    Items before the first bucket or after the last bucket's end are ignored.

    Returns:
        One list per bucket, in bucket order, items kept in input order
    """
    groups: List[List[T]] = [[] for _ in buckets]
    if not buckets:
        return groups

    starts = [b.start for b in buckets]
    last_end = buckets[-1].end
    for item in items:
        moment = key(item)
        if moment < starts[0] or moment > last_end:
            continue
        groups[bisect_right(starts, moment) - 1].append(item)
    return groups


# =============================================================================
# Granularity rules
# =============================================================================

def window_span_days(window: TimeWindow) -> float:
    return (window.end - window.start).total_seconds() / 86400.0


def _span_limits(settings: Settings) -> Dict[Granularity, Tuple[Optional[float], Optional[float]]]:
    return {
        Granularity.HOUR: (None, settings.hour_max_span_days),
        Granularity.DAY: (None, settings.day_max_span_days),
        Granularity.WEEK: (settings.week_min_span_days, settings.week_max_span_days),
        Granularity.MONTH: (settings.month_min_span_days, None),
        Granularity.QUARTER: (settings.quarter_min_span_days, None),
        Granularity.YEAR: (settings.year_min_span_days, None),
    }


def allowed_granularities(
    window: TimeWindow,
    candidates: Sequence[Granularity] = CHART_GRANULARITIES,
    settings: Optional[Settings] = None,
) -> List[Granularity]:
    """
    Granularities whose span limits admit the window, in calendar order.

    When no candidate qualifies, the candidate whose limits are closest to the
    span is returned alone, so a chart always has one grouping.
    """
    settings = settings or get_settings()
    limits = _span_limits(settings)
    span = window_span_days(window)
    ordered = sorted({_coerce_granularity(c) for c in candidates}, key=GRANULARITY_ORDER.get)

    allowed = []
    for granularity in ordered:
        low, high = limits[granularity]
        if (low is None or span >= low) and (high is None or span <= high):
            allowed.append(granularity)

    if not allowed and ordered:
        def distance(g: Granularity) -> float:
            low, high = limits[g]
            if low is not None and span < low:
                return low - span
            if high is not None and span > high:
                return span - high
            return 0.0
        allowed = [min(ordered, key=lambda g: (distance(g), -GRANULARITY_ORDER[g]))]
    return allowed


def resolve_granularity(
    requested: Granularity,
    window: TimeWindow,
    candidates: Sequence[Granularity] = CHART_GRANULARITIES,
    settings: Optional[Settings] = None,
) -> GroupingResolution:
    """
    Resolve a requested granularity against the window's allowed set.

    A disallowed request falls back to the nearest allowed granularity by
    calendar order; ties go to the coarser one. The fallback is reported in
    ``notice`` and logged, never raised.
    """
    requested = _coerce_granularity(requested)
    allowed = allowed_granularities(window, candidates, settings=settings)

    if requested in allowed:
        return GroupingResolution(requested=requested, resolved=requested, allowed=allowed)

    position = GRANULARITY_ORDER[requested]
    resolved = min(
        allowed,
        key=lambda g: (abs(GRANULARITY_ORDER[g] - position), -GRANULARITY_ORDER[g]),
    )
    notice = (
        f"Grouping by {requested.value} is not available for this range; "
        f"showing {resolved.value} instead"
    )
    logger.info(notice)
    return GroupingResolution(
        requested=requested,
        resolved=resolved,
        allowed=allowed,
        notice=notice,
    )
