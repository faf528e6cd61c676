"""
Leaderboard Ranker

Groups orders by a dimension (area, service, creating dispatcher, master) and
ranks the groups by order count or revenue.

- count is the group size.
- amount sums the price of completed and confirmed orders only.
- Ordering is strictly descending by the chosen metric; ties are broken by
  ascending key so the output is deterministic.
- share is the entry's metric relative to the top entry (0 when the top is 0).
- Orders with no value for the dimension are skipped.
"""

from typing import Callable, Dict, Iterable, List, Mapping, Optional

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models.enums import Dimension, RankMetric
from dispatch_analytics.models.schemas import LeaderboardEntry, OrderRecord
from dispatch_analytics.services.statistics import safe_ratio

DIMENSION_KEYS: Dict[Dimension, Callable[[OrderRecord], Optional[str]]] = {
    Dimension.AREA: lambda o: o.area,
    Dimension.SERVICE: lambda o: o.service_type,
    Dimension.DISPATCHER: lambda o: o.dispatcher_id,
    Dimension.MASTER: lambda o: o.master_id,
}


def rank_groups(
    totals: Mapping[str, Dict[str, float]],
    metric: RankMetric,
    top_n: Optional[int],
    labels: Optional[Mapping[str, str]] = None,
) -> List[LeaderboardEntry]:
    """
    Rank pre-aggregated groups.

    Args:
        totals: key -> {'count': ..., 'amount': ...}
        metric: Ranking metric
        top_n: Maximum entries; None returns every group
        labels: Optional display labels keyed by group key

    Raises:
        AnalyticsContractError: If top_n is negative
    """
    if top_n is not None and top_n < 0:
        raise AnalyticsContractError(f"top_n must be >= 0, got {top_n}")
    metric = RankMetric(metric)
    labels = labels or {}

    ordered = sorted(totals.items(), key=lambda kv: (-kv[1][metric.value], kv[0]))
    if top_n is not None:
        ordered = ordered[:top_n]
    if not ordered:
        return []

    top_value = ordered[0][1][metric.value]
    return [
        LeaderboardEntry(
            key=key,
            label=labels.get(key, key),
            count=int(values['count']),
            amount=float(values['amount']),
            share=safe_ratio(values[metric.value], top_value),
        )
        for key, values in ordered
    ]


def build_leaderboard(
    orders: Iterable[OrderRecord],
    dimension: Dimension,
    metric: RankMetric = RankMetric.COUNT,
    top_n: Optional[int] = None,
    labels: Optional[Mapping[str, str]] = None,
    key: Optional[Callable[[OrderRecord], Optional[str]]] = None,
) -> List[LeaderboardEntry]:
    """
    Build a ranked leaderboard over orders.

    Args:
        orders: Orders to group
        dimension: Grouping dimension
        metric: count or amount
        top_n: Maximum entries; None returns all
        labels: Optional display labels keyed by group key
        key: Custom grouping function overriding the dimension's default

    Returns:
        Entries in rank order
    """
    if key is None:
        try:
            key = DIMENSION_KEYS[Dimension(dimension)]
        except ValueError:
            raise AnalyticsContractError(f"Unknown leaderboard dimension: {dimension!r}")

    totals: Dict[str, Dict[str, float]] = {}
    for order in orders:
        group = key(order)
        if not group:
            continue
        entry = totals.setdefault(group, {'count': 0, 'amount': 0.0})
        entry['count'] += 1
        entry['amount'] += order.revenue

    return rank_groups(totals, metric, top_n, labels)


def top_n_or_default(top_n: Optional[int], settings: Optional[Settings] = None) -> int:
    """Caller's top_n, or the configured default when None."""
    if top_n is not None:
        if top_n < 0:
            raise AnalyticsContractError(f"top_n must be >= 0, got {top_n}")
        return top_n
    return (settings or get_settings()).default_top_n
