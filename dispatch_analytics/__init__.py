"""
Dispatch Analytics Package.

Aggregation engine behind the dispatcher, partner and admin dashboards of the
service-order marketplace. Turns raw order, transaction and payout records into
the time-bucketed counts, price distributions, status breakdowns, leaderboards
and trend series the dashboard screens display.

Subpackages:
    - core: Configuration and error types
    - models: Pydantic schemas and enums
    - services: Pure aggregation services (filters, bucketing, statistics,
      breakdowns, leaderboards, trends, snapshot composition)

Every entry point is a pure function of its inputs plus an explicit ``now``;
nothing is cached between calls.
"""

from dispatch_analytics.services.snapshot import build_snapshot
from dispatch_analytics.services.cache_key import snapshot_cache_key

__version__ = "1.0.0"

__all__ = [
    "build_snapshot",
    "snapshot_cache_key",
    "__version__",
]
