"""
Trend Series Builder

Daily series (one value per UTC calendar day) with summary metadata and a
period-over-period delta.

An order series is defined by:
- category: which orders count and which timestamp dates them
    created   -> every order, by created_at
    handled   -> every order, by updated_at (falls back to created_at)
    completed -> completed/confirmed orders, by completed_at, then updated_at,
                 then created_at
- metric: count (1 per order) or amount (revenue of eligible orders)

The previous period is the equal-length run of days immediately before the
series. ``delta = (total - previousTotal) / previousTotal`` and is None when
the previous total is 0. Pass the dimension-scoped records (not only those in
the current window) so the previous period can be filled.

Entity series (one dispatcher, one master) are built by passing that entity's
records.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models.enums import REVENUE_STATUSES, TrendCategory, TrendMetric
from dispatch_analytics.models.schemas import OrderRecord, TimeWindow, TrendMeta, TrendSeries

T = TypeVar('T')


# =============================================================================
# Day ranges
# =============================================================================

def trend_days(window: TimeWindow, settings: Optional[Settings] = None) -> Tuple[date, int]:
    """
    First day and day count of the daily series covering a window.

    A window of exactly N days that starts after midnight skips its partial
    first day, so the rolling presets give N values (today plus the N - 1 days
    before it). The series keeps at most ``max_trend_days`` trailing days.
    """
    if window is None or window.start is None or window.end is None:
        raise AnalyticsContractError("A bounded window is required for a trend series")
    settings = settings or get_settings()
    first = window.start.date()
    last = window.end.date()
    span = window.end - window.start
    if span and span % timedelta(days=1) == timedelta(0) and window.start.time() != time.min:
        first += timedelta(days=1)
    days = (last - first).days + 1
    if days > settings.max_trend_days:
        days = settings.max_trend_days
        first = last - timedelta(days=days - 1)
    return first, days


def daily_series(
    items: Iterable[T],
    start_day: date,
    days: int,
    date_of: Callable[[T], Optional[datetime]],
    value_of: Callable[[T], float],
) -> TrendSeries:
    """
    Aggregate items into a daily series with metadata.

    Args:
        items: Items to aggregate; only those dated inside the current or the
            previous period contribute
        start_day: First day of the series
        days: Number of days
        date_of: Returns the UTC timestamp dating an item, or None to skip it
        value_of: Returns the item's contribution

    Raises:
        AnalyticsContractError: If days is not positive
    """
    if days <= 0:
        raise AnalyticsContractError(f"Trend day count must be positive, got {days}")

    values = [0.0] * days
    previous_total = 0.0
    previous_start = start_day - timedelta(days=days)

    for item in items:
        moment = date_of(item)
        if moment is None:
            continue
        offset = (moment.date() - start_day).days
        if 0 <= offset < days:
            values[offset] += value_of(item)
        elif -days <= offset < 0:
            previous_total += value_of(item)

    total = sum(values)
    meta = TrendMeta(
        avg=total / days,
        max=max(values),
        total=total,
        last=values[-1],
        activeDays=sum(1 for v in values if v),
        previousTotal=previous_total,
        delta=(total - previous_total) / previous_total if previous_total else None,
    )
    labels = [(start_day + timedelta(days=i)).isoformat() for i in range(days)]
    return TrendSeries(
        start=start_day,
        end=start_day + timedelta(days=days - 1),
        days=days,
        labels=labels,
        values=values,
        meta=meta,
    )


# =============================================================================
# Order trends
# =============================================================================

def _order_date(category: TrendCategory) -> Callable[[OrderRecord], Optional[datetime]]:
    if category == TrendCategory.CREATED:
        return lambda o: o.created_at
    if category == TrendCategory.HANDLED:
        return lambda o: o.updated_at or o.created_at
    if category == TrendCategory.COMPLETED:
        return lambda o: (
            (o.completed_at or o.updated_at or o.created_at)
            if o.status in REVENUE_STATUSES else None
        )
    raise AnalyticsContractError(f"Unknown trend category: {category!r}")


def _order_value(metric: TrendMetric) -> Callable[[OrderRecord], float]:
    if metric == TrendMetric.COUNT:
        return lambda o: 1.0
    if metric == TrendMetric.AMOUNT:
        return lambda o: o.revenue
    raise AnalyticsContractError(f"Unknown trend metric: {metric!r}")


def build_trend_series(
    orders: Iterable[OrderRecord],
    window: TimeWindow,
    category: TrendCategory = TrendCategory.CREATED,
    metric: TrendMetric = TrendMetric.COUNT,
    settings: Optional[Settings] = None,
) -> TrendSeries:
    """
    Build a daily order trend covering a window.

    Args:
        orders: Dimension-scoped orders, including those before the window
        window: Window the series covers (trailing max_trend_days at most)
        category: Which orders count and how they are dated
        metric: count or amount
        settings: Engine settings (defaults to get_settings())
    """
    try:
        category = TrendCategory(category)
        metric = TrendMetric(metric)
    except ValueError as e:
        raise AnalyticsContractError(str(e))

    start_day, days = trend_days(window, settings)
    return daily_series(
        orders,
        start_day,
        days,
        date_of=_order_date(category),
        value_of=_order_value(metric),
    )
