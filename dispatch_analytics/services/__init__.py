"""
Analytics Services Module

Pure, stateless functions that turn normalized records into view models.

Services:
- ingestion: raw rows -> OrderRecord / TransactionRecord / PayoutRequest
- filters: FilterSpec -> effective window and filtered orders
- bucketing: calendar buckets and granularity rules
- statistics: descriptive statistics and price stability
- breakdown: status and urgency distributions
- leaderboard: ranked groups by dimension
- trends: daily series with period-over-period delta
- distribution: per-bucket statistics and the price distribution
- earnings: partner commission and payout rollups
- snapshot: orchestration of every section into one Snapshot
- cache_key: canonical cache keys for snapshot requests
"""

# =============================================================================
# Ingestion
# =============================================================================

from dispatch_analytics.services.ingestion import (
    normalize_orders,
    normalize_transactions,
    normalize_payouts,
)

# =============================================================================
# Filter Pipeline
# =============================================================================

from dispatch_analytics.services.filters import (
    FilterResult,
    apply_filters,
    resolve_window,
    matches_dimensions,
    parse_bound,
)

# =============================================================================
# Time Bucketer
# =============================================================================

from dispatch_analytics.services.bucketing import (
    build_buckets,
    assign_to_buckets,
    allowed_granularities,
    resolve_granularity,
    bucket_label,
)

# =============================================================================
# Stat Engine, Breakdowns, Leaderboards, Trends
# =============================================================================

from dispatch_analytics.services.statistics import compute_stats, price_stability
from dispatch_analytics.services.breakdown import build_status_breakdown, build_urgency_breakdown
from dispatch_analytics.services.leaderboard import build_leaderboard
from dispatch_analytics.services.trends import build_trend_series, daily_series
from dispatch_analytics.services.distribution import bucket_stats, build_price_distribution

# =============================================================================
# Earnings, Snapshot, Cache keys
# =============================================================================

from dispatch_analytics.services.earnings import summarize_partner_earnings
from dispatch_analytics.services.snapshot import SECTION_BUILDERS, build_snapshot
from dispatch_analytics.services.cache_key import snapshot_cache_key

__all__ = [
    # ----- Ingestion -----
    'normalize_orders',
    'normalize_transactions',
    'normalize_payouts',
    # ----- Filter Pipeline -----
    'FilterResult',
    'apply_filters',
    'resolve_window',
    'matches_dimensions',
    'parse_bound',
    # ----- Time Bucketer -----
    'build_buckets',
    'assign_to_buckets',
    'allowed_granularities',
    'resolve_granularity',
    'bucket_label',
    # ----- Stat Engine -----
    'compute_stats',
    'price_stability',
    # ----- Breakdowns / Leaderboards / Trends -----
    'build_status_breakdown',
    'build_urgency_breakdown',
    'build_leaderboard',
    'build_trend_series',
    'daily_series',
    'bucket_stats',
    'build_price_distribution',
    # ----- Earnings / Snapshot / Cache -----
    'summarize_partner_earnings',
    'SECTION_BUILDERS',
    'build_snapshot',
    'snapshot_cache_key',
]
