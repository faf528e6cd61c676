"""
Enumeration definitions for the dispatch analytics engine.

All enums inherit from both `str` and `Enum` so they serialize as plain strings
in Pydantic models and compare equal to the raw values coming from the data
layer.
"""

from enum import Enum
from typing import FrozenSet


class OrderStatus(str, Enum):
    """
    Lifecycle status of a service order.

    Values: placed, claimed, started, completed, confirmed, canceled_by_master,
    canceled_by_client, reopened, expired
    """
    PLACED = "placed"
    CLAIMED = "claimed"
    STARTED = "started"
    COMPLETED = "completed"
    CONFIRMED = "confirmed"
    CANCELED_BY_MASTER = "canceled_by_master"
    CANCELED_BY_CLIENT = "canceled_by_client"
    REOPENED = "reopened"
    EXPIRED = "expired"


class StatusGroup(str, Enum):
    """
    Mutually exclusive status buckets used by breakdowns.

    - open: placed, reopened
    - active: claimed, started
    - completed: completed, confirmed
    - canceled: any canceled_* status, expired
    """
    OPEN = "open"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"


STATUS_GROUPS = {
    OrderStatus.PLACED: StatusGroup.OPEN,
    OrderStatus.REOPENED: StatusGroup.OPEN,
    OrderStatus.CLAIMED: StatusGroup.ACTIVE,
    OrderStatus.STARTED: StatusGroup.ACTIVE,
    OrderStatus.COMPLETED: StatusGroup.COMPLETED,
    OrderStatus.CONFIRMED: StatusGroup.COMPLETED,
    OrderStatus.CANCELED_BY_MASTER: StatusGroup.CANCELED,
    OrderStatus.CANCELED_BY_CLIENT: StatusGroup.CANCELED,
    OrderStatus.EXPIRED: StatusGroup.CANCELED,
}

# Statuses whose price counts toward revenue and commission sums.
REVENUE_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CONFIRMED,
})


class Urgency(str, Enum):
    """Order urgency as chosen at intake."""
    PLANNED = "planned"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class RangePreset(str, Enum):
    """
    Date range presets offered by the dashboard range picker.

    - today: start of the current UTC day until now
    - 7d / 30d / 90d: trailing N days ending now
    - all: whole history present in the filtered records
    - custom: explicit start/end supplied by the caller
    """
    TODAY = "today"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    ALL = "all"
    CUSTOM = "custom"


class PriceRange(str, Enum):
    """Range presets of the price distribution chart."""
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    YEAR_TO_DATE = "ytd"
    ALL = "all"


class PriceScope(str, Enum):
    """Which orders feed the price distribution."""
    COMPLETED = "completed"
    ALL = "all"


class Granularity(str, Enum):
    """
    Calendar units used for bucketing, finest first.

    Declaration order matters: fallback picks the nearest allowed unit by
    position in this list.
    """
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


CHART_GRANULARITIES = tuple(Granularity)
PRICE_GRANULARITIES = (Granularity.DAY, Granularity.WEEK, Granularity.MONTH)


class Dimension(str, Enum):
    """Record attributes a leaderboard can group by."""
    AREA = "area"
    SERVICE = "service"
    DISPATCHER = "dispatcher"
    MASTER = "master"


class RankMetric(str, Enum):
    """Leaderboard ranking metric."""
    COUNT = "count"
    AMOUNT = "amount"


class TrendCategory(str, Enum):
    """
    Which orders a daily trend counts and which timestamp dates them.

    - created: every order, dated by created_at
    - handled: every order, dated by updated_at (falls back to created_at)
    - completed: completed/confirmed orders, dated by completed_at, then
      updated_at, then created_at
    """
    CREATED = "created"
    HANDLED = "handled"
    COMPLETED = "completed"


class TrendMetric(str, Enum):
    """Per-order value a trend aggregates."""
    COUNT = "count"
    AMOUNT = "amount"


class Section(str, Enum):
    """Dashboard analytics sections, each backed by one snapshot builder."""
    OPERATIONS = "operations"
    FINANCIAL = "financial"
    DISPATCHERS = "dispatchers"
    MASTERS = "masters"


class PayoutStatus(str, Enum):
    """Partner payout request status."""
    REQUESTED = "requested"
    PAID = "paid"
    REJECTED = "rejected"


class TransactionType(str, Enum):
    """
    Known balance transaction types.

    Transaction records keep their raw type string; these values are the ones
    the rollups look for.
    """
    COMMISSION_EARNED = "commission_earned"
    COMMISSION = "commission"
    COMMISSION_DEDUCT = "commission_deduct"
    TOP_UP = "top_up"
    MANUAL_DEDUCTION = "manual_deduction"
    PAYOUT_PAID = "payout_paid"


# Platform commission collected from masters. commission_earned is the
# partner share and is rolled up separately.
COMMISSION_TYPES: FrozenSet[str] = frozenset({
    TransactionType.COMMISSION.value,
    TransactionType.COMMISSION_DEDUCT.value,
})


class PriceStability(str, Enum):
    """Label derived from the coefficient of variation of order prices."""
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
