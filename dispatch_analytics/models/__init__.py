"""
Package initialization file for the analytics models.

Exports every Pydantic schema and enumeration from schemas.py and enums.py so
callers can import data models from ``dispatch_analytics.models`` directly.

Usage:
    from dispatch_analytics.models import (
        OrderRecord,
        FilterSpec,
        Snapshot,
        Granularity,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from dispatch_analytics.models.enums import (
    CHART_GRANULARITIES,
    COMMISSION_TYPES,
    PRICE_GRANULARITIES,
    REVENUE_STATUSES,
    STATUS_GROUPS,
    Dimension,
    Granularity,
    OrderStatus,
    PayoutStatus,
    PriceRange,
    PriceScope,
    PriceStability,
    RangePreset,
    RankMetric,
    Section,
    StatusGroup,
    TransactionType,
    TrendCategory,
    TrendMetric,
    Urgency,
)

# =============================================================================
# Schemas
# =============================================================================

from dispatch_analytics.models.schemas import (
    # Input records
    OrderRecord,
    TransactionRecord,
    PayoutRequest,
    # Requests
    FilterSpec,
    SnapshotOptions,
    # Ingestion
    ValidationIssue,
    IngestionReport,
    # Core views
    TimeWindow,
    Stats,
    Bucket,
    GroupingResolution,
    StatusBreakdown,
    UrgencyBreakdown,
    LeaderboardEntry,
    TrendMeta,
    TrendSeries,
    BucketSeries,
    PriceDistribution,
    # Sections
    BacklogItem,
    OperationsOverview,
    OperationsSection,
    FinancialOverview,
    FinancialSection,
    DispatcherPerformance,
    DispatchersSection,
    MasterPerformance,
    MastersSection,
    PartnerEarningsSummary,
    Snapshot,
)

__all__ = [
    # ----- Enums -----
    'CHART_GRANULARITIES',
    'COMMISSION_TYPES',
    'PRICE_GRANULARITIES',
    'REVENUE_STATUSES',
    'STATUS_GROUPS',
    'Dimension',
    'Granularity',
    'OrderStatus',
    'PayoutStatus',
    'PriceRange',
    'PriceScope',
    'PriceStability',
    'RangePreset',
    'RankMetric',
    'Section',
    'StatusGroup',
    'TransactionType',
    'TrendCategory',
    'TrendMetric',
    'Urgency',
    # ----- Schemas -----
    'OrderRecord',
    'TransactionRecord',
    'PayoutRequest',
    'FilterSpec',
    'SnapshotOptions',
    'ValidationIssue',
    'IngestionReport',
    'TimeWindow',
    'Stats',
    'Bucket',
    'GroupingResolution',
    'StatusBreakdown',
    'UrgencyBreakdown',
    'LeaderboardEntry',
    'TrendMeta',
    'TrendSeries',
    'BucketSeries',
    'PriceDistribution',
    'BacklogItem',
    'OperationsOverview',
    'OperationsSection',
    'FinancialOverview',
    'FinancialSection',
    'DispatcherPerformance',
    'DispatchersSection',
    'MasterPerformance',
    'MastersSection',
    'PartnerEarningsSummary',
    'Snapshot',
]
