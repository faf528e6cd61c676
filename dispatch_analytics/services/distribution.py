"""
Bucketed distributions.

Combines the Time Bucketer and the Stat Engine: each bucket of a window gets the
descriptive statistics of the values that fall inside it. The price
distribution chart is the main consumer.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.models.enums import (
    PRICE_GRANULARITIES,
    Granularity,
    PriceRange,
    PriceScope,
    REVENUE_STATUSES,
)
from dispatch_analytics.models.schemas import (
    Bucket,
    OrderRecord,
    PriceDistribution,
    TimeWindow,
)
from dispatch_analytics.services.bucketing import (
    assign_to_buckets,
    build_buckets,
    resolve_granularity,
)
from dispatch_analytics.services.filters import in_window, require_now, start_of_day
from dispatch_analytics.services.statistics import compute_stats, price_stability

PRICE_RANGE_DAYS = {
    PriceRange.LAST_7_DAYS: 7,
    PriceRange.LAST_30_DAYS: 30,
    PriceRange.LAST_90_DAYS: 90,
}


def bucket_stats(
    orders: Iterable[OrderRecord],
    window: TimeWindow,
    granularity: Granularity,
    value_of: Callable[[OrderRecord], Optional[float]] = lambda o: o.price,
    settings: Optional[Settings] = None,
) -> List[Bucket]:
    """
    Bucket orders by created_at and compute per-bucket statistics.

    Only orders with a value take part. A bucket without values has
    ``stats=None`` and no orders.
    """
    settings = settings or get_settings()
    buckets = build_buckets(window, granularity, settings)
    valued = [o for o in orders if value_of(o) is not None]
    groups = assign_to_buckets(valued, buckets, key=lambda o: o.created_at)

    filled: List[Bucket] = []
    for bucket, members in zip(buckets, groups):
        stats = compute_stats((value_of(o) for o in members), settings) if members else None
        filled.append(bucket.model_copy(update={
            'stats': stats,
            'orders': [o.id for o in members],
            'smallSample': bool(stats and stats.smallSample),
        }))
    return filled


def price_window(
    price_range: PriceRange,
    now: datetime,
    orders: Iterable[OrderRecord] = (),
    settings: Optional[Settings] = None,
) -> TimeWindow:
    """
    Window of a price range preset.

    'ytd' starts on January 1st of now's year; 'all' starts at the earliest
    order (or the default lookback when there are none).
    """
    settings = settings or get_settings()
    now = require_now(now)
    price_range = PriceRange(price_range)

    if price_range in PRICE_RANGE_DAYS:
        return TimeWindow(start=now - timedelta(days=PRICE_RANGE_DAYS[price_range]), end=now)
    if price_range == PriceRange.YEAR_TO_DATE:
        return TimeWindow(start=start_of_day(now).replace(month=1, day=1), end=now)

    earliest = min((o.created_at for o in orders), default=None)
    if earliest is None or earliest > now:
        earliest = now - timedelta(days=settings.default_lookback_days)
    return TimeWindow(start=earliest, end=now)


def build_price_distribution(
    orders: Iterable[OrderRecord],
    now: datetime,
    price_range: PriceRange = PriceRange.LAST_30_DAYS,
    grouping: Granularity = Granularity.WEEK,
    scope: PriceScope = PriceScope.COMPLETED,
    settings: Optional[Settings] = None,
) -> PriceDistribution:
    """
    Price spread per time bucket plus a whole-range summary.

    Args:
        orders: Dimension-scoped orders at any time
        now: Reference instant
        price_range: Range preset of the chart
        grouping: Requested grouping (day, week or month)
        scope: 'completed' keeps completed/confirmed orders; 'all' keeps every
            priced order
        settings: Engine settings (defaults to get_settings())
    """
    settings = settings or get_settings()
    scope = PriceScope(scope)
    candidates = [
        o for o in orders
        if scope == PriceScope.ALL or o.status in REVENUE_STATUSES
    ]
    window = price_window(price_range, now, candidates, settings)
    in_range = [o for o in candidates if in_window(o.created_at, window)]

    resolution = resolve_granularity(grouping, window, PRICE_GRANULARITIES, settings)
    buckets = bucket_stats(in_range, window, resolution.resolved, settings=settings)
    summary = compute_stats((o.price for o in in_range), settings)

    return PriceDistribution(
        range=PriceRange(price_range),
        scope=scope,
        window=window,
        grouping=resolution,
        buckets=buckets,
        summary=summary,
        stability=price_stability(summary.cv, settings),
    )
