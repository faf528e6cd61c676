"""
Tests for bucketed statistics and the price distribution.
"""

from datetime import datetime

import pytest

from dispatch_analytics.core.config import Settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models import (
    Granularity,
    OrderStatus,
    PriceRange,
    PriceScope,
    PriceStability,
    TimeWindow,
)
from dispatch_analytics.services.distribution import (
    bucket_stats,
    build_price_distribution,
    price_window,
)
from dispatch_analytics.tests.conftest import make_order, utc


class TestBucketStats:

    def test_stats_per_bucket(self, settings: Settings) -> None:
        orders = [
            make_order('a', utc(2024, 3, 1, 9), final_price=10.0),
            make_order('b', utc(2024, 3, 1, 17), final_price=30.0),
            make_order('c', utc(2024, 3, 3, 8), final_price=50.0),
            make_order('d', utc(2024, 3, 3, 9)),
        ]
        window = TimeWindow(start=utc(2024, 3, 1), end=utc(2024, 3, 3, 23))

        buckets = bucket_stats(orders, window, Granularity.DAY, settings=settings)

        assert [b.label for b in buckets] == ['2024-03-01', '2024-03-02', '2024-03-03']
        assert buckets[0].orders == ['a', 'b']
        assert buckets[0].stats.mean == pytest.approx(20.0)
        assert buckets[0].smallSample is True
        assert buckets[1].stats is None
        assert buckets[1].orders == []
        assert buckets[1].smallSample is False
        # unpriced orders take no part
        assert buckets[2].orders == ['c']

    def test_custom_value(self, settings: Settings) -> None:
        orders = [make_order('a', utc(2024, 3, 1, 9), final_price=10.0, initial_price=4.0)]
        window = TimeWindow(start=utc(2024, 3, 1), end=utc(2024, 3, 1, 23))

        buckets = bucket_stats(orders, window, Granularity.DAY, value_of=lambda o: o.initial_price,
                               settings=settings)

        assert buckets[0].stats.max == 4.0


class TestPriceWindow:

    def test_preset(self, now: datetime, settings: Settings) -> None:
        window = price_window(PriceRange.LAST_7_DAYS, now, settings=settings)

        assert window.start == utc(2024, 3, 8, 12)
        assert window.end == now

    def test_year_to_date(self, now: datetime, settings: Settings) -> None:
        assert price_window(PriceRange.YEAR_TO_DATE, now, settings=settings).start == utc(2024, 1, 1)

    def test_all_starts_at_earliest_order(self, now: datetime, sample_orders, settings: Settings) -> None:
        assert price_window(PriceRange.ALL, now, sample_orders, settings).start == utc(2024, 2, 1, 10)

    def test_all_without_orders_uses_lookback(self, now: datetime, settings: Settings) -> None:
        assert price_window(PriceRange.ALL, now, [], settings).start == utc(2024, 2, 14, 12)

    def test_requires_now(self, settings: Settings) -> None:
        with pytest.raises(AnalyticsContractError):
            price_window(PriceRange.LAST_7_DAYS, None, settings=settings)


class TestBuildPriceDistribution:

    def test_completed_scope(self, sample_orders, now: datetime, settings: Settings) -> None:
        dist = build_price_distribution(sample_orders, now, settings=settings)

        assert dist.range == PriceRange.LAST_30_DAYS
        assert dist.grouping.resolved == Granularity.WEEK
        assert dist.grouping.notice is None
        assert [b.label for b in dist.buckets] == [
            '2024-W07', '2024-W08', '2024-W09', '2024-W10', '2024-W11',
        ]
        assert dist.summary.n == 2
        assert dist.summary.mean == pytest.approx(150.0)
        assert sum(b.stats.n for b in dist.buckets if b.stats) == 2
        assert dist.buckets[2].orders == ['o1', 'o2']
        assert dist.stability == PriceStability.MODERATE

    def test_all_scope_includes_every_priced_order(self, sample_orders, now: datetime,
                                                   settings: Settings) -> None:
        dist = build_price_distribution(sample_orders, now, scope=PriceScope.ALL, settings=settings)

        assert dist.summary.n == 5
        assert dist.summary.min == 80.0
        assert dist.summary.max == 200.0

    def test_grouping_falls_back_for_short_range(self, sample_orders, now: datetime,
                                                 settings: Settings) -> None:
        dist = build_price_distribution(
            sample_orders, now, PriceRange.LAST_7_DAYS, Granularity.WEEK, settings=settings
        )

        assert dist.grouping.resolved == Granularity.DAY
        assert dist.grouping.notice is not None

    def test_empty_has_no_stability(self, now: datetime, settings: Settings) -> None:
        dist = build_price_distribution(
            [make_order('x', now, OrderStatus.PLACED, initial_price=10.0)], now, settings=settings
        )

        assert dist.summary.n == 0
        assert dist.stability is None
        assert all(b.stats is None for b in dist.buckets)
