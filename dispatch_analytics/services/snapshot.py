"""
Snapshot Orchestrator

Composes every analytics view for one filter configuration into a single
serialisable Snapshot.

Pipeline:
1. Filter Pipeline resolves the window and the filtered/scoped orders.
2. Each requested Section is built by its own pure builder function, selected
   through SECTION_BUILDERS.
3. Partner earnings and advisory notices are attached.

The orchestrator keeps no state between calls. Callers that want caching key
results with ``snapshot_cache_key(filters, options, data_version)``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set
import logging

from pydantic import BaseModel

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models.enums import (
    CHART_GRANULARITIES,
    COMMISSION_TYPES,
    Dimension,
    OrderStatus,
    RankMetric,
    Section,
    StatusGroup,
    TransactionType,
    TrendCategory,
    TrendMetric,
)
from dispatch_analytics.models.schemas import (
    BacklogItem,
    BucketSeries,
    DispatcherPerformance,
    DispatchersSection,
    FilterSpec,
    FinancialOverview,
    FinancialSection,
    MasterPerformance,
    MastersSection,
    OperationsOverview,
    OperationsSection,
    OrderRecord,
    PayoutRequest,
    Snapshot,
    SnapshotOptions,
    TimeWindow,
    TransactionRecord,
)
from dispatch_analytics.services.breakdown import build_status_breakdown, build_urgency_breakdown
from dispatch_analytics.services.bucketing import assign_to_buckets, build_buckets, resolve_granularity
from dispatch_analytics.services.distribution import build_price_distribution
from dispatch_analytics.services.earnings import summarize_partner_earnings
from dispatch_analytics.services.filters import (
    FilterResult,
    apply_filters,
    in_window,
    is_unconstrained,
    matches_dimensions,
    require_now,
)
from dispatch_analytics.services.leaderboard import build_leaderboard, top_n_or_default
from dispatch_analytics.services.statistics import compute_stats, safe_ratio
from dispatch_analytics.services.trends import build_trend_series

logger = logging.getLogger(__name__)


# =============================================================================
# Build context
# =============================================================================


@dataclass
class SnapshotContext:
    """
    Everything a section builder needs, computed once per snapshot.

    Attributes:
        filters: Applied filter.
        options: Snapshot options.
        settings: Engine settings.
        now: Reference instant (UTC).
        result: Filter pipeline output.
        transactions: Transactions inside the window and the filter's scope.
        top_n: Effective leaderboard length.
        all_orders: Every input order, before filtering.
        notices: Advisory messages collected while building.
    """
    filters: FilterSpec
    options: SnapshotOptions
    settings: Settings
    now: datetime
    result: FilterResult
    transactions: List[TransactionRecord]
    top_n: int
    all_orders: List[OrderRecord] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)

    @property
    def window(self) -> TimeWindow:
        return self.result.window

    @property
    def orders(self) -> List[OrderRecord]:
        return self.result.records

    @property
    def scoped(self) -> List[OrderRecord]:
        return self.result.scoped


def _has_dimension_filter(filters: FilterSpec) -> bool:
    values = (filters.urgency, filters.service, filters.area, filters.dispatcher_id, filters.master_id)
    return not all(is_unconstrained(v) for v in values)


def scope_transactions(
    transactions: Iterable[TransactionRecord],
    filters: FilterSpec,
    window: TimeWindow,
    order_ids: Set[str],
) -> List[TransactionRecord]:
    """
    Transactions inside the window that belong to the filtered scope.

    With a dimension filter active, only transactions tied to a filtered order
    count, plus order-less transactions of the filtered master.
    """
    in_range = [t for t in transactions if in_window(t.created_at, window)]
    if not _has_dimension_filter(filters):
        return in_range

    master_id = None if is_unconstrained(filters.master_id) else filters.master_id
    return [
        t for t in in_range
        if (t.order_id is not None and t.order_id in order_ids)
        or (t.order_id is None and master_id is not None and t.actor_id == master_id)
    ]


def _commission(transactions: Iterable[TransactionRecord]) -> float:
    return sum(abs(t.amount) for t in transactions if t.type in COMMISSION_TYPES)


def _focus(value: Optional[str], fallback: Optional[str]) -> Optional[str]:
    for candidate in (value, fallback):
        if not is_unconstrained(candidate):
            return candidate
    return None


# =============================================================================
# Operations
# =============================================================================


def build_operations_overview(
    orders: List[OrderRecord],
    now: datetime,
    settings: Settings,
) -> OperationsOverview:
    """Headline operational counts and open-order ageing."""
    total = len(orders)
    by_status: Dict[OrderStatus, int] = {}
    by_group: Dict[StatusGroup, int] = {}
    for order in orders:
        by_status[order.status] = by_status.get(order.status, 0) + 1
        by_group[order.status_group] = by_group.get(order.status_group, 0) + 1

    open_orders = [o for o in orders if o.status_group == StatusGroup.OPEN]
    ages = [max(0.0, (now - o.created_at).total_seconds() / 3600.0) for o in open_orders]
    urgency = build_urgency_breakdown(orders)
    completed = by_group.get(StatusGroup.COMPLETED, 0)
    canceled = by_group.get(StatusGroup.CANCELED, 0)
    reopened = by_status.get(OrderStatus.REOPENED, 0)

    return OperationsOverview(
        totalOrders=total,
        openOrders=len(open_orders),
        activeJobs=by_group.get(StatusGroup.ACTIVE, 0),
        claimedCount=by_status.get(OrderStatus.CLAIMED, 0),
        startedCount=by_status.get(OrderStatus.STARTED, 0),
        completedOrders=completed,
        canceledOrders=canceled,
        reopenedCount=reopened,
        disputedCount=sum(1 for o in orders if o.is_disputed),
        availablePool=sum(1 for o in open_orders if o.master_id is None),
        completionRate=safe_ratio(completed, total),
        cancelRate=safe_ratio(canceled, total),
        reopenRate=safe_ratio(reopened, total),
        emergencyCount=urgency.emergency,
        urgentCount=urgency.urgent,
        urgentShare=urgency.urgentShare,
        avgOpenAge=sum(ages) / len(ages) if ages else None,
        oldestOpenAge=max(ages) if ages else None,
        openOlder=sum(1 for a in ages if a > settings.stale_open_hours),
    )


def build_backlog(orders: List[OrderRecord], now: datetime, limit: int) -> List[BacklogItem]:
    """Open orders, oldest first."""
    open_orders = sorted(
        (o for o in orders if o.status_group == StatusGroup.OPEN),
        key=lambda o: (o.created_at, o.id),
    )
    return [
        BacklogItem(
            orderId=o.id,
            ageHours=max(0.0, (now - o.created_at).total_seconds() / 3600.0),
            status=o.status,
            urgency=o.urgency,
            area=o.area,
            serviceType=o.service_type,
        )
        for o in open_orders[:limit]
    ]


def build_operations_section(ctx: SnapshotContext) -> OperationsSection:
    orders = ctx.orders
    labels = ctx.options.labels
    canceled = [o for o in orders if o.status_group == StatusGroup.CANCELED]

    return OperationsSection(
        overview=build_operations_overview(orders, ctx.now, ctx.settings),
        statusBreakdown=build_status_breakdown(orders),
        urgencyBreakdown=build_urgency_breakdown(orders),
        backlog=build_backlog(orders, ctx.now, ctx.top_n),
        cancelReasons=build_leaderboard(
            canceled, Dimension.SERVICE, RankMetric.COUNT, ctx.top_n,
            key=lambda o: (o.cancel_reason or '').strip() or None,
        ),
        topAreas=build_leaderboard(orders, Dimension.AREA, RankMetric.COUNT, ctx.top_n, labels),
        topServices=build_leaderboard(orders, Dimension.SERVICE, RankMetric.COUNT, ctx.top_n, labels),
        createdTrend=build_trend_series(ctx.scoped, ctx.window, TrendCategory.CREATED, settings=ctx.settings),
        completedTrend=build_trend_series(ctx.scoped, ctx.window, TrendCategory.COMPLETED, settings=ctx.settings),
    )


# =============================================================================
# Financial
# =============================================================================


def build_financial_overview(
    orders: List[OrderRecord],
    transactions: List[TransactionRecord],
) -> FinancialOverview:
    """Money rollups; averages divide by the count of contributing records."""
    eligible = [o for o in orders if o.is_revenue_eligible]
    gmv = sum(o.revenue for o in eligible)
    commission = _commission(transactions)
    top_ups = [t.amount for t in transactions if t.type == TransactionType.TOP_UP.value]
    lost = [
        o.price for o in orders
        if o.status_group == StatusGroup.CANCELED and o.price is not None
    ]

    return FinancialOverview(
        gmv=gmv,
        avgTicket=safe_ratio(gmv, len(eligible)),
        commissionCollected=commission,
        avgCommissionPerOrder=safe_ratio(commission, len(eligible)),
        topUpTotal=sum(top_ups),
        topUpAvg=safe_ratio(sum(top_ups), len(top_ups)),
        lostEarningsTotal=sum(lost),
        lostEarningsAvg=safe_ratio(sum(lost), len(lost)),
    )


def build_bucket_series(ctx: SnapshotContext, granularity) -> BucketSeries:
    """Orders, revenue and commission per calendar bucket of the window."""
    buckets = build_buckets(ctx.window, granularity, ctx.settings)
    order_groups = assign_to_buckets(ctx.orders, buckets, key=lambda o: o.created_at)
    commission_tx = [t for t in ctx.transactions if t.type in COMMISSION_TYPES]
    tx_groups = assign_to_buckets(commission_tx, buckets, key=lambda t: t.created_at)

    return BucketSeries(
        granularity=granularity,
        labels=[b.label for b in buckets],
        orders=[len(group) for group in order_groups],
        revenue=[sum(o.revenue for o in group) for group in order_groups],
        commission=[_commission(group) for group in tx_groups],
    )


def build_financial_section(ctx: SnapshotContext) -> FinancialSection:
    resolution = resolve_granularity(
        ctx.options.granularity, ctx.window, CHART_GRANULARITIES, ctx.settings
    )
    if resolution.notice:
        ctx.notices.append(resolution.notice)

    distribution = build_price_distribution(
        ctx.scoped,
        ctx.now,
        price_range=ctx.options.price_range,
        grouping=ctx.options.price_grouping,
        scope=ctx.options.price_scope,
        settings=ctx.settings,
    )
    if distribution.grouping.notice:
        ctx.notices.append(distribution.grouping.notice)

    return FinancialSection(
        overview=build_financial_overview(ctx.orders, ctx.transactions),
        granularity=resolution,
        chartSeries={g: build_bucket_series(ctx, g) for g in resolution.allowed},
        revenueTrend=build_trend_series(
            ctx.scoped, ctx.window, TrendCategory.COMPLETED, TrendMetric.AMOUNT, ctx.settings
        ),
        priceDistribution=distribution,
    )


# =============================================================================
# Dispatchers
# =============================================================================


def build_dispatcher_performance(
    dispatcher_id: str,
    scoped: List[OrderRecord],
    transactions: List[TransactionRecord],
    window: TimeWindow,
    settings: Settings,
) -> DispatcherPerformance:
    """
    Scorecard of one dispatcher.

    Created orders are those the dispatcher entered (dated by created_at).
    Handled orders are those the dispatcher currently owns, the creator unless
    reassigned, dated by updated_at. Rates are shares of created orders.
    """
    created_all = [o for o in scoped if o.dispatcher_id == dispatcher_id]
    handled_all = [o for o in scoped if o.handler_id == dispatcher_id]
    created = [o for o in created_all if in_window(o.created_at, window)]
    handled = [o for o in handled_all if in_window(o.updated_at or o.created_at, window)]

    total_ids = {o.id for o in created} | {o.id for o in handled}
    completed = sum(1 for o in created if o.status_group == StatusGroup.COMPLETED)
    canceled = sum(1 for o in created if o.status_group == StatusGroup.CANCELED)
    created_ids = {o.id for o in created}

    return DispatcherPerformance(
        dispatcherId=dispatcher_id,
        totalOrders=len(total_ids),
        createdOrders=len(created),
        handledOrders=len(handled),
        transferredOrders=sum(1 for o in created if o.is_transferred),
        completedOrders=completed,
        canceledOrders=canceled,
        completionRate=safe_ratio(completed, len(created)),
        cancelRate=safe_ratio(canceled, len(created)),
        totalAmount=sum(o.revenue for o in created),
        commissionCollected=_commission(t for t in transactions if t.order_id in created_ids),
        statusBreakdown=build_status_breakdown(created),
        createdTrend=build_trend_series(created_all, window, TrendCategory.CREATED, settings=settings),
        handledTrend=build_trend_series(handled_all, window, TrendCategory.HANDLED, settings=settings),
    )


def build_dispatchers_section(ctx: SnapshotContext) -> DispatchersSection:
    labels = ctx.options.labels
    focus = _focus(ctx.options.dispatcher_id, ctx.filters.dispatcher_id)
    performance = None
    if focus is not None:
        # Handled orders may have been created by another dispatcher
        others = ctx.filters.model_copy(update={'dispatcher_id': 'all'})
        candidates = [o for o in ctx.all_orders if matches_dimensions(o, others)]
        performance = build_dispatcher_performance(
            focus, candidates, ctx.transactions, ctx.window, ctx.settings
        )

    return DispatchersSection(
        topByOrders=build_leaderboard(ctx.orders, Dimension.DISPATCHER, RankMetric.COUNT, ctx.top_n, labels),
        topByRevenue=build_leaderboard(ctx.orders, Dimension.DISPATCHER, RankMetric.AMOUNT, ctx.top_n, labels),
        performance=performance,
    )


# =============================================================================
# Masters
# =============================================================================


def build_master_performance(
    master_id: str,
    scoped: List[OrderRecord],
    transactions: List[TransactionRecord],
    window: TimeWindow,
    settings: Settings,
) -> MasterPerformance:
    """Scorecard of one master over the orders assigned to them."""
    assigned_all = [o for o in scoped if o.master_id == master_id]
    assigned = [o for o in assigned_all if in_window(o.created_at, window)]
    completed = [o for o in assigned if o.is_revenue_eligible]
    revenue = sum(o.revenue for o in completed)
    order_ids = {o.id for o in assigned}

    return MasterPerformance(
        masterId=master_id,
        totalOrders=len(assigned),
        completedOrders=len(completed),
        canceledOrders=sum(1 for o in assigned if o.status_group == StatusGroup.CANCELED),
        activeJobs=sum(1 for o in assigned if o.status_group == StatusGroup.ACTIVE),
        totalAmount=revenue,
        avgOrderValue=safe_ratio(revenue, len(completed)),
        commissionPaid=_commission(
            t for t in transactions
            if t.order_id in order_ids or (t.order_id is None and t.actor_id == master_id)
        ),
        statusBreakdown=build_status_breakdown(assigned),
        completedTrend=build_trend_series(assigned_all, window, TrendCategory.COMPLETED, settings=settings),
        revenueTrend=build_trend_series(
            assigned_all, window, TrendCategory.COMPLETED, TrendMetric.AMOUNT, settings
        ),
    )


def build_masters_section(ctx: SnapshotContext) -> MastersSection:
    labels = ctx.options.labels
    completed = [o for o in ctx.orders if o.is_revenue_eligible]
    focus = _focus(ctx.options.master_id, ctx.filters.master_id)
    performance = None
    if focus is not None:
        performance = build_master_performance(
            focus, ctx.scoped, ctx.transactions, ctx.window, ctx.settings
        )

    return MastersSection(
        topByCompleted=build_leaderboard(completed, Dimension.MASTER, RankMetric.COUNT, ctx.top_n, labels),
        topByRevenue=build_leaderboard(ctx.orders, Dimension.MASTER, RankMetric.AMOUNT, ctx.top_n, labels),
        performance=performance,
    )


# =============================================================================
# Orchestration
# =============================================================================

SECTION_BUILDERS: Dict[Section, Callable[[SnapshotContext], BaseModel]] = {
    Section.OPERATIONS: build_operations_section,
    Section.FINANCIAL: build_financial_section,
    Section.DISPATCHERS: build_dispatchers_section,
    Section.MASTERS: build_masters_section,
}


def _requested_sections(options: SnapshotOptions) -> List[Section]:
    if options.sections is None:
        return list(Section)
    sections: List[Section] = []
    for value in options.sections:
        try:
            section = Section(value)
        except ValueError:
            raise AnalyticsContractError(f"Unknown snapshot section: {value!r}")
        if section not in sections:
            sections.append(section)
    return sections


def build_snapshot(
    orders: Iterable[OrderRecord],
    transactions: Iterable[TransactionRecord],
    payouts: Iterable[PayoutRequest],
    filters: Optional[FilterSpec],
    now: datetime,
    options: Optional[SnapshotOptions] = None,
    settings: Optional[Settings] = None,
) -> Snapshot:
    """
    Build the analytics snapshot for one filter configuration.

    Pure function of its arguments: identical inputs give identical output.

    Args:
        orders: Normalized orders
        transactions: Normalized balance transactions
        payouts: Normalized payout requests
        filters: Record filter; None applies the defaults
        now: Reference instant, required
        options: View options; None applies the defaults
        settings: Engine settings (defaults to get_settings())

    Returns:
        Snapshot with the requested sections filled and the others None

    Raises:
        AnalyticsContractError: If now is missing, top_n is negative or a
            section is unknown
    """
    settings = settings or get_settings()
    options = options or SnapshotOptions()
    filters = filters or FilterSpec()
    now = require_now(now)

    orders = list(orders)
    transactions = list(transactions)
    sections = _requested_sections(options)
    top_n = top_n_or_default(options.top_n, settings)

    result = apply_filters(orders, filters, now, settings)
    order_ids = {o.id for o in result.records}
    ctx = SnapshotContext(
        filters=filters,
        options=options,
        settings=settings,
        now=now,
        result=result,
        transactions=scope_transactions(transactions, filters, result.window, order_ids),
        top_n=top_n,
        all_orders=orders,
    )

    payload = {section.value: SECTION_BUILDERS[section](ctx) for section in sections}

    partner_earnings = summarize_partner_earnings(
        transactions, payouts, result.window, now, settings=settings
    )

    snapshot = Snapshot(
        generatedAt=now,
        window=result.window,
        filters=filters.model_dump(mode='json'),
        totalOrders=len(result.records),
        priceStats=compute_stats((o.price for o in result.records), settings),
        partnerEarnings=partner_earnings,
        notices=ctx.notices,
        **payload,
    )
    logger.debug(
        f"Built snapshot with sections {[s.value for s in sections]} over "
        f"{len(result.records)} orders and {len(ctx.transactions)} transactions"
    )
    return snapshot
