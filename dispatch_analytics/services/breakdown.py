"""
Breakdown Builder

Status and urgency distributions over a set of orders.

Status taxonomy (mutually exclusive and exhaustive):
- open: placed, reopened
- active: claimed, started
- completed: completed, confirmed
- canceled: canceled_by_master, canceled_by_client, expired

Percentages are in percent units rounded to one decimal, so they sum to
100 +/- 0.5 when the total is positive, and are all 0 otherwise.
"""

from collections import Counter
from typing import Iterable

from dispatch_analytics.models.enums import StatusGroup, Urgency
from dispatch_analytics.models.schemas import OrderRecord, StatusBreakdown, UrgencyBreakdown
from dispatch_analytics.services.statistics import safe_ratio


def _percent(count: int, total: int) -> float:
    return round(100.0 * safe_ratio(count, total), 1)


def build_status_breakdown(orders: Iterable[OrderRecord]) -> StatusBreakdown:
    """Count orders per status group."""
    counts = Counter(o.status_group for o in orders)
    total = sum(counts.values())
    return StatusBreakdown(
        open=counts[StatusGroup.OPEN],
        active=counts[StatusGroup.ACTIVE],
        completed=counts[StatusGroup.COMPLETED],
        canceled=counts[StatusGroup.CANCELED],
        total=total,
        percentages={g: _percent(counts[g], total) for g in StatusGroup},
    )


def build_urgency_breakdown(orders: Iterable[OrderRecord]) -> UrgencyBreakdown:
    """
    Count orders per urgency.

    Orders whose urgency is unknown are left out of the total.
    """
    counts = Counter(o.urgency for o in orders if o.urgency is not None)
    total = sum(counts.values())
    return UrgencyBreakdown(
        planned=counts[Urgency.PLANNED],
        urgent=counts[Urgency.URGENT],
        emergency=counts[Urgency.EMERGENCY],
        total=total,
        percentages={u: _percent(counts[u], total) for u in Urgency},
        urgentShare=safe_ratio(counts[Urgency.URGENT] + counts[Urgency.EMERGENCY], total),
    )
