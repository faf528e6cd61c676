"""
Pydantic models for the dispatch analytics engine.

Two families of models live here:

- Input records (``OrderRecord``, ``TransactionRecord``, ``PayoutRequest``) and
  request models (``FilterSpec``, ``SnapshotOptions``). Records are frozen
  snapshots in snake_case, mirroring the rows the data layer hands over.
- Output view models (``Stats``, ``Bucket``, ``StatusBreakdown``, ...,
  ``Snapshot``). These use camelCase field names so that
  ``model_dump(mode="json")`` is ready for the dashboard without renaming.

All models use Pydantic v2 syntax.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dispatch_analytics.models.enums import (
    Granularity,
    OrderStatus,
    PayoutStatus,
    PriceRange,
    PriceScope,
    PriceStability,
    RangePreset,
    REVENUE_STATUSES,
    Section,
    STATUS_GROUPS,
    StatusGroup,
    Urgency,
)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Input Records
# =============================================================================


class OrderRecord(BaseModel):
    """
    Immutable snapshot of one service order as consumed by the engine.

    Grain: one row per order id. Timestamps are UTC-aware; prices are either
    ``None`` or non-negative (ingestion blanks invalid values).
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "ord_1001",
                "status": "completed",
                "service_type": "plumbing",
                "urgency": "urgent",
                "created_at": "2024-03-04T09:30:00Z",
                "final_price": 1500.0,
                "initial_price": 1200.0,
                "area": "center",
                "dispatcher_id": "disp_1",
                "master_id": "mst_7",
                "is_disputed": False,
            }
        }
    )

    id: str = Field(..., description="Order identifier")
    status: OrderStatus = Field(..., description="Lifecycle status")
    service_type: Optional[str] = Field(default=None, description="Service category id")
    urgency: Optional[Urgency] = Field(
        default=None,
        description="Urgency; None when the source value was unknown"
    )
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    final_price: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False, description="Agreed final price")
    initial_price: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False, description="Price quoted at intake")
    area: Optional[str] = Field(default=None, description="Service area id")
    dispatcher_id: Optional[str] = Field(default=None, description="Dispatcher who created the order")
    assigned_dispatcher_id: Optional[str] = Field(
        default=None,
        description="Dispatcher currently handling the order after a transfer"
    )
    master_id: Optional[str] = Field(default=None, description="Assigned master")
    is_disputed: bool = Field(default=False, description="Whether a dispute is open")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp (UTC)")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp (UTC)")
    cancel_reason: Optional[str] = Field(default=None, description="Free-form cancellation reason")

    @field_validator("created_at", "updated_at", "completed_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Read naive timestamps as UTC and convert aware ones."""
        return ensure_utc(v) if v is not None else None

    @property
    def price(self) -> Optional[float]:
        """Final price when agreed, otherwise the initial quote."""
        if self.final_price is not None:
            return self.final_price
        return self.initial_price

    @property
    def status_group(self) -> StatusGroup:
        return STATUS_GROUPS[self.status]

    @property
    def is_revenue_eligible(self) -> bool:
        return self.status in REVENUE_STATUSES

    @property
    def revenue(self) -> float:
        """Price counted toward revenue; 0 for non-eligible or unpriced orders."""
        if not self.is_revenue_eligible:
            return 0.0
        return self.price or 0.0

    @property
    def handler_id(self) -> Optional[str]:
        return self.assigned_dispatcher_id or self.dispatcher_id

    @property
    def is_transferred(self) -> bool:
        return (
            self.assigned_dispatcher_id is not None
            and self.assigned_dispatcher_id != self.dispatcher_id
        )


class TransactionRecord(BaseModel):
    """Balance transaction used for commission and earnings rollups."""
    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Lower-cased transaction type, e.g. commission_earned")
    amount: float = Field(..., allow_inf_nan=False, description="Signed amount")
    created_at: datetime = Field(..., description="Transaction timestamp (UTC)")
    order_id: Optional[str] = Field(default=None, description="Related order")
    actor_id: Optional[str] = Field(default=None, description="Master, dispatcher or partner id")

    @field_validator("created_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class PayoutRequest(BaseModel):
    """Partner payout request as read from the payout workflow."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description="Request identifier")
    partner_id: Optional[str] = Field(default=None, description="Requesting partner")
    status: PayoutStatus = Field(..., description="requested, paid or rejected")
    requested_amount: float = Field(..., ge=0.0, allow_inf_nan=False, description="Amount asked for")
    approved_amount: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False, description="Amount approved")
    created_at: datetime = Field(..., description="Request timestamp (UTC)")

    @field_validator("created_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# =============================================================================
# Request Models
# =============================================================================


class FilterSpec(BaseModel):
    """
    Declarative dashboard filter.

    ``start``/``end`` are only read for the custom range. They accept datetimes,
    dates or strings; anything unparsable is treated as unset. Every dimension
    filter uses "all" (or None) for "no constraint".
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "range": "custom",
                "start": "2024-03-01",
                "end": "2024-03-10",
                "urgency": "all",
                "service": "plumbing",
                "area": "all",
                "dispatcher_id": "all",
                "master_id": "all",
            }
        }
    )

    range: RangePreset = Field(default=RangePreset.LAST_30_DAYS, description="Range preset")
    start: Optional[Union[datetime, date, str]] = Field(default=None, description="Custom range start")
    end: Optional[Union[datetime, date, str]] = Field(default=None, description="Custom range end")
    urgency: Optional[str] = Field(default="all", description="all, planned, urgent or emergency")
    service: Optional[str] = Field(default="all", description="all or a service id")
    area: Optional[str] = Field(default="all", description="all or an area id")
    dispatcher_id: Optional[str] = Field(default="all", description="all or a dispatcher id")
    master_id: Optional[str] = Field(default="all", description="all or a master id")


class SnapshotOptions(BaseModel):
    """View-level choices that shape a snapshot beyond the record filter."""
    model_config = ConfigDict(frozen=True)

    granularity: Granularity = Field(default=Granularity.DAY, description="Requested chart grouping")
    price_range: PriceRange = Field(default=PriceRange.LAST_30_DAYS, description="Price distribution range")
    price_grouping: Granularity = Field(default=Granularity.WEEK, description="Price distribution grouping")
    price_scope: PriceScope = Field(default=PriceScope.COMPLETED, description="Price distribution scope")
    top_n: Optional[int] = Field(default=None, description="Leaderboard length; None uses the configured default")
    sections: Optional[List[Section]] = Field(default=None, description="Sections to build; None builds all")
    dispatcher_id: Optional[str] = Field(default=None, description="Dispatcher to profile")
    master_id: Optional[str] = Field(default=None, description="Master to profile")
    labels: Dict[str, str] = Field(default_factory=dict, description="Display labels keyed by entity id")


# =============================================================================
# Ingestion Models
# =============================================================================


class ValidationIssue(BaseModel):
    """
    Validation problem found while normalizing raw rows.

    Used for reporting data issues; the engine drops or blanks the offending
    data instead of raising.
    """
    field: str = Field(..., description="Field with the issue")
    message: str = Field(..., description="What was wrong")
    row_number: Optional[int] = Field(default=None, ge=1, description="1-based input row")


class IngestionReport(BaseModel):
    """Outcome of normalizing one batch of raw rows."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rows_processed": 120,
                "rows_accepted": 118,
                "rows_dropped": 2,
                "issues": []
            }
        }
    )

    rows_processed: int = Field(default=0, ge=0, description="Rows read")
    rows_accepted: int = Field(default=0, ge=0, description="Rows turned into records")
    rows_dropped: int = Field(default=0, ge=0, description="Rows rejected")
    issues: List[ValidationIssue] = Field(default_factory=list, description="Issues encountered")


# =============================================================================
# Core View Models
# =============================================================================


class TimeWindow(BaseModel):
    """Closed UTC time window [start, end]."""
    model_config = ConfigDict(frozen=True)

    start: datetime = Field(..., description="Window start (inclusive)")
    end: datetime = Field(..., description="Window end (inclusive)")


class Stats(BaseModel):
    """
    Descriptive statistics over a non-negative numeric sample.

    An empty sample has ``n == 0`` and every other numeric field set to None.
    ``std`` and ``cv`` are 0 when ``n < 2``.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "n": 5, "min": 10.0, "max": 50.0, "mean": 30.0, "std": 15.81,
                "p5": 12.0, "p25": 20.0, "p50": 30.0, "p75": 40.0, "p90": 46.0,
                "p95": 48.0, "iqr": 20.0, "cv": 0.527, "smallSample": False
            }
        }
    )

    n: int = Field(default=0, ge=0, description="Sample size")
    min: Optional[float] = Field(default=None, description="Smallest value")
    max: Optional[float] = Field(default=None, description="Largest value")
    mean: Optional[float] = Field(default=None, description="Arithmetic mean")
    std: Optional[float] = Field(default=None, ge=0.0, description="Sample standard deviation (n-1)")
    p5: Optional[float] = Field(default=None, description="5th percentile")
    p25: Optional[float] = Field(default=None, description="25th percentile")
    p50: Optional[float] = Field(default=None, description="Median")
    p75: Optional[float] = Field(default=None, description="75th percentile")
    p90: Optional[float] = Field(default=None, description="90th percentile")
    p95: Optional[float] = Field(default=None, description="95th percentile")
    iqr: Optional[float] = Field(default=None, description="p75 - p25")
    cv: Optional[float] = Field(default=None, description="std / mean, 0 when mean is 0")
    smallSample: bool = Field(default=False, description="True when 0 < n < threshold")


class Bucket(BaseModel):
    """Contiguous time interval with the orders that fall inside it."""

    start: datetime = Field(..., description="Bucket start (inclusive)")
    end: datetime = Field(..., description="Bucket end (exclusive, inclusive for the last bucket)")
    label: str = Field(..., description="Calendar label, e.g. 2024-W09")
    stats: Optional[Stats] = Field(default=None, description="Price stats; None for an empty bucket")
    orders: List[str] = Field(default_factory=list, description="Ids of orders in the bucket")
    smallSample: bool = Field(default=False, description="Small-sample caveat for the bucket")


class GroupingResolution(BaseModel):
    """Granularity the engine actually used for a requested grouping."""

    requested: Granularity = Field(..., description="Granularity the caller asked for")
    resolved: Granularity = Field(..., description="Granularity used")
    allowed: List[Granularity] = Field(default_factory=list, description="Granularities allowed for the window")
    notice: Optional[str] = Field(default=None, description="Advisory message when a fallback happened")


class StatusBreakdown(BaseModel):
    """Counts per status group plus each group's share of the total, in percent."""

    open: int = Field(default=0, ge=0)
    active: int = Field(default=0, ge=0)
    completed: int = Field(default=0, ge=0)
    canceled: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    percentages: Dict[StatusGroup, float] = Field(default_factory=dict, description="Percent per group")


class UrgencyBreakdown(BaseModel):
    """Counts per urgency plus shares; orders with unknown urgency are not counted."""

    planned: int = Field(default=0, ge=0)
    urgent: int = Field(default=0, ge=0)
    emergency: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    percentages: Dict[Urgency, float] = Field(default_factory=dict, description="Percent per urgency")
    urgentShare: float = Field(default=0.0, ge=0.0, le=1.0, description="(urgent + emergency) / total")


class LeaderboardEntry(BaseModel):
    """One ranked row of a leaderboard."""

    key: str = Field(..., description="Dimension value")
    label: str = Field(..., description="Display label")
    count: int = Field(default=0, ge=0, description="Orders in the group")
    amount: float = Field(default=0.0, ge=0.0, description="Revenue of eligible orders in the group")
    share: float = Field(default=0.0, ge=0.0, le=1.0, description="Value relative to the top entry")


class TrendMeta(BaseModel):
    """Summary of a daily trend series."""

    avg: float = Field(default=0.0, description="Mean daily value")
    max: float = Field(default=0.0, description="Largest daily value")
    total: float = Field(default=0.0, description="Sum over the window")
    last: float = Field(default=0.0, description="Value of the last day")
    activeDays: int = Field(default=0, ge=0, description="Days with a non-zero value")
    previousTotal: float = Field(default=0.0, description="Sum over the preceding equal-length window")
    delta: Optional[float] = Field(
        default=None,
        description="(total - previousTotal) / previousTotal; None when previousTotal is 0"
    )


class TrendSeries(BaseModel):
    """Ordered per-day values aligned to a window."""

    start: date = Field(..., description="First day")
    end: date = Field(..., description="Last day")
    days: int = Field(..., ge=1, description="Number of days")
    labels: List[str] = Field(default_factory=list, description="ISO day labels")
    values: List[float] = Field(default_factory=list, description="One value per day")
    meta: TrendMeta = Field(default_factory=TrendMeta)


class BucketSeries(BaseModel):
    """Orders, revenue and commission per calendar bucket, for the overview chart."""

    granularity: Granularity = Field(..., description="Grouping used")
    labels: List[str] = Field(default_factory=list)
    orders: List[int] = Field(default_factory=list)
    revenue: List[float] = Field(default_factory=list)
    commission: List[float] = Field(default_factory=list)


class PriceDistribution(BaseModel):
    """Order price spread per time bucket plus a whole-range summary."""

    range: PriceRange = Field(..., description="Price range preset")
    scope: PriceScope = Field(..., description="Orders included")
    window: TimeWindow = Field(..., description="Resolved window")
    grouping: GroupingResolution = Field(..., description="Grouping used")
    buckets: List[Bucket] = Field(default_factory=list)
    summary: Stats = Field(default_factory=Stats)
    stability: Optional[PriceStability] = Field(default=None, description="None when there is no data")


# =============================================================================
# Section Models
# =============================================================================


class BacklogItem(BaseModel):
    """Open order waiting for a master, oldest first."""

    orderId: str
    ageHours: float = Field(..., ge=0.0)
    status: OrderStatus
    urgency: Optional[Urgency] = None
    area: Optional[str] = None
    serviceType: Optional[str] = None


class OperationsOverview(BaseModel):
    """Headline operational counts for the filtered orders."""

    totalOrders: int = 0
    openOrders: int = 0
    activeJobs: int = 0
    claimedCount: int = 0
    startedCount: int = 0
    completedOrders: int = 0
    canceledOrders: int = 0
    reopenedCount: int = 0
    disputedCount: int = 0
    availablePool: int = Field(default=0, description="Open orders with no master")
    completionRate: float = Field(default=0.0, description="completed / total")
    cancelRate: float = Field(default=0.0, description="canceled / total")
    reopenRate: float = Field(default=0.0, description="reopened / total")
    emergencyCount: int = 0
    urgentCount: int = 0
    urgentShare: float = 0.0
    avgOpenAge: Optional[float] = Field(default=None, description="Mean open order age in hours")
    oldestOpenAge: Optional[float] = Field(default=None, description="Oldest open order age in hours")
    openOlder: int = Field(default=0, description="Open orders older than the stale threshold")


class OperationsSection(BaseModel):
    overview: OperationsOverview
    statusBreakdown: StatusBreakdown
    urgencyBreakdown: UrgencyBreakdown
    backlog: List[BacklogItem] = Field(default_factory=list)
    cancelReasons: List[LeaderboardEntry] = Field(default_factory=list)
    topAreas: List[LeaderboardEntry] = Field(default_factory=list)
    topServices: List[LeaderboardEntry] = Field(default_factory=list)
    createdTrend: TrendSeries
    completedTrend: TrendSeries


class FinancialOverview(BaseModel):
    """Money rollups for the filtered orders and window transactions."""

    gmv: float = Field(default=0.0, description="Revenue of completed/confirmed orders")
    avgTicket: float = Field(default=0.0, description="gmv / revenue-eligible orders")
    commissionCollected: float = 0.0
    avgCommissionPerOrder: float = 0.0
    topUpTotal: float = 0.0
    topUpAvg: float = 0.0
    lostEarningsTotal: float = Field(default=0.0, description="Price of canceled orders")
    lostEarningsAvg: float = 0.0


class FinancialSection(BaseModel):
    overview: FinancialOverview
    granularity: GroupingResolution
    chartSeries: Dict[Granularity, BucketSeries] = Field(
        default_factory=dict,
        description="Bucketed series for every allowed granularity"
    )
    revenueTrend: TrendSeries
    priceDistribution: PriceDistribution


class DispatcherPerformance(BaseModel):
    """Scorecard of one dispatcher over the window."""

    dispatcherId: str
    totalOrders: int = 0
    createdOrders: int = 0
    handledOrders: int = 0
    transferredOrders: int = 0
    completedOrders: int = 0
    canceledOrders: int = 0
    completionRate: float = 0.0
    cancelRate: float = 0.0
    totalAmount: float = 0.0
    commissionCollected: float = 0.0
    statusBreakdown: StatusBreakdown
    createdTrend: TrendSeries
    handledTrend: TrendSeries


class MasterPerformance(BaseModel):
    """Scorecard of one master over the window."""

    masterId: str
    totalOrders: int = 0
    completedOrders: int = 0
    canceledOrders: int = 0
    activeJobs: int = 0
    totalAmount: float = 0.0
    avgOrderValue: float = 0.0
    commissionPaid: float = 0.0
    statusBreakdown: StatusBreakdown
    completedTrend: TrendSeries
    revenueTrend: TrendSeries


class DispatchersSection(BaseModel):
    topByOrders: List[LeaderboardEntry] = Field(default_factory=list)
    topByRevenue: List[LeaderboardEntry] = Field(default_factory=list)
    performance: Optional[DispatcherPerformance] = None


class MastersSection(BaseModel):
    topByCompleted: List[LeaderboardEntry] = Field(default_factory=list)
    topByRevenue: List[LeaderboardEntry] = Field(default_factory=list)
    performance: Optional[MasterPerformance] = None


class PartnerEarningsSummary(BaseModel):
    """Partner commission and payout rollup over a window."""

    partnerId: Optional[str] = None
    earnedTotal: float = 0.0
    deductedTotal: float = 0.0
    paidTotal: float = 0.0
    requestedTotal: float = 0.0
    approvedTotal: float = 0.0
    pendingRequests: int = 0
    pendingRequestedAmount: float = 0.0
    requestsByStatus: Dict[PayoutStatus, int] = Field(default_factory=dict)
    requestStats: Stats = Field(default_factory=Stats)
    earnedTrend: TrendSeries


# =============================================================================
# Snapshot
# =============================================================================


class Snapshot(BaseModel):
    """
    Complete aggregate for one filter configuration.

    Plain data with no behavior; sections that were not requested are None.
    """

    generatedAt: datetime = Field(..., description="The 'now' the snapshot was computed for")
    window: TimeWindow
    filters: Dict[str, Any] = Field(default_factory=dict, description="Echo of the applied filter")
    totalOrders: int = 0
    priceStats: Stats = Field(default_factory=Stats, description="Price stats of the filtered orders")
    operations: Optional[OperationsSection] = None
    financial: Optional[FinancialSection] = None
    dispatchers: Optional[DispatchersSection] = None
    masters: Optional[MastersSection] = None
    partnerEarnings: Optional[PartnerEarningsSummary] = None
    notices: List[str] = Field(default_factory=list)
