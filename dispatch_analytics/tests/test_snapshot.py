"""
End-to-end tests for the snapshot orchestrator over the shared sample dataset.

The default filter is the 30d preset: 2024-02-14 12:00 to 2024-03-15 12:00,
which keeps o1..o6 and leaves o7 in the previous period.
"""

from datetime import datetime

import pytest

from dispatch_analytics import build_snapshot
from dispatch_analytics.core.config import Settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models import (
    FilterSpec,
    Granularity,
    OrderStatus,
    PayoutRequest,
    PayoutStatus,
    PriceStability,
    RangePreset,
    Section,
    SnapshotOptions,
    StatusGroup,
    TimeWindow,
)
from dispatch_analytics.services.snapshot import scope_transactions
from dispatch_analytics.tests.conftest import make_order, make_transaction, utc


@pytest.fixture
def snapshot_of(sample_orders, sample_transactions, sample_payouts, now, settings: Settings):
    """Build a snapshot of the sample dataset."""
    def _build(filters=None, options=None):
        return build_snapshot(
            sample_orders, sample_transactions, sample_payouts, filters, now, options, settings
        )
    return _build


class TestSnapshotShape:

    def test_default_snapshot(self, snapshot_of, now: datetime) -> None:
        snapshot = snapshot_of()

        assert snapshot.generatedAt == now
        assert snapshot.window.start == utc(2024, 2, 14, 12)
        assert snapshot.window.end == now
        assert snapshot.totalOrders == 6
        assert snapshot.filters['range'] == '30d'
        assert snapshot.priceStats.n == 5
        assert snapshot.operations is not None
        assert snapshot.financial is not None
        assert snapshot.dispatchers is not None
        assert snapshot.masters is not None
        assert snapshot.notices == []

    def test_requested_sections_only(self, snapshot_of) -> None:
        snapshot = snapshot_of(options=SnapshotOptions(sections=[Section.OPERATIONS]))

        assert snapshot.operations is not None
        assert snapshot.financial is None
        assert snapshot.dispatchers is None
        assert snapshot.masters is None

    def test_identical_inputs_give_identical_output(self, snapshot_of) -> None:
        options = SnapshotOptions(dispatcher_id='d1', master_id='m1')

        assert snapshot_of(options=options).model_dump_json() == snapshot_of(options=options).model_dump_json()

    def test_requires_now(self, sample_orders, settings: Settings) -> None:
        with pytest.raises(AnalyticsContractError):
            build_snapshot(sample_orders, [], [], FilterSpec(), None, settings=settings)

    def test_negative_top_n(self, snapshot_of) -> None:
        with pytest.raises(AnalyticsContractError):
            snapshot_of(options=SnapshotOptions(top_n=-1))

    def test_empty_input(self, now: datetime, settings: Settings) -> None:
        snapshot = build_snapshot([], [], [], None, now, settings=settings)

        assert snapshot.totalOrders == 0
        assert snapshot.priceStats.n == 0
        assert snapshot.operations.overview.avgOpenAge is None
        assert snapshot.financial.overview.avgTicket == 0.0
        assert snapshot.financial.priceDistribution.stability is None

    def test_naive_record_timestamps_are_read_as_utc(self, now: datetime, settings: Settings) -> None:
        order = make_order('x', datetime(2024, 3, 10, 10), OrderStatus.COMPLETED, final_price=40.0,
                           updated_at=datetime(2024, 3, 10, 11), completed_at=datetime(2024, 3, 10, 12))
        transaction = make_transaction('commission_earned', 5.0, datetime(2024, 3, 10, 12), actor_id='p1')
        payout = PayoutRequest(id='r', partner_id='p1', status=PayoutStatus.REQUESTED,
                               requested_amount=10.0, created_at=datetime(2024, 3, 11))

        snapshot = build_snapshot([order], [transaction], [payout], FilterSpec(), now, settings=settings)

        assert order.created_at == utc(2024, 3, 10, 10)
        assert order.completed_at.tzinfo is not None
        assert snapshot.totalOrders == 1
        assert snapshot.financial.overview.gmv == 40.0
        assert snapshot.partnerEarnings.requestedTotal == 10.0


class TestOperationsSection:

    def test_overview(self, snapshot_of) -> None:
        overview = snapshot_of().operations.overview

        assert overview.totalOrders == 6
        assert overview.openOrders == 2
        assert overview.activeJobs == 1
        assert overview.claimedCount == 1
        assert overview.completedOrders == 2
        assert overview.canceledOrders == 1
        assert overview.reopenedCount == 1
        assert overview.disputedCount == 1
        assert overview.availablePool == 2
        assert overview.completionRate == pytest.approx(2 / 6)
        assert overview.emergencyCount == 1
        assert overview.urgentCount == 2

    def test_open_order_ageing(self, snapshot_of) -> None:
        overview = snapshot_of().operations.overview

        assert overview.oldestOpenAge == pytest.approx(238.0)
        assert overview.avgOpenAge == pytest.approx(129.0)
        assert overview.openOlder == 1

    def test_breakdowns_and_lists(self, snapshot_of) -> None:
        operations = snapshot_of().operations

        assert operations.statusBreakdown.open == 2
        assert operations.statusBreakdown.total == 6
        assert sum(operations.statusBreakdown.percentages.values()) == pytest.approx(100.0, abs=0.2)
        assert [b.orderId for b in operations.backlog] == ['o3', 'o6']
        assert [e.key for e in operations.cancelReasons] == ['client changed mind']
        assert [(e.key, e.count) for e in operations.topAreas] == [('center', 3), ('north', 2), ('south', 1)]
        assert operations.createdTrend.meta.total == 6
        assert operations.completedTrend.meta.previousTotal == 1

    def test_backlog_respects_top_n(self, snapshot_of) -> None:
        operations = snapshot_of(options=SnapshotOptions(top_n=1)).operations

        assert [b.orderId for b in operations.backlog] == ['o3']
        assert len(operations.topAreas) == 1

    def test_labels(self, snapshot_of) -> None:
        operations = snapshot_of(options=SnapshotOptions(labels={'center': 'City Center'})).operations

        assert operations.topAreas[0].label == 'City Center'


class TestFinancialSection:

    def test_overview(self, snapshot_of) -> None:
        overview = snapshot_of().financial.overview

        assert overview.gmv == 300.0
        assert overview.avgTicket == 150.0
        assert overview.commissionCollected == 30.0
        assert overview.avgCommissionPerOrder == 15.0
        assert overview.topUpTotal == 500.0
        assert overview.topUpAvg == 500.0
        assert overview.lostEarningsTotal == 150.0
        assert overview.lostEarningsAvg == 150.0

    def test_chart_series(self, snapshot_of) -> None:
        financial = snapshot_of().financial

        assert financial.granularity.resolved == Granularity.DAY
        assert financial.granularity.notice is None
        assert set(financial.chartSeries) == {Granularity.DAY, Granularity.WEEK}
        day = financial.chartSeries[Granularity.DAY]
        assert len(day.labels) == 31
        assert sum(day.orders) == 6
        assert sum(day.revenue) == 300.0
        assert sum(day.commission) == 30.0
        week = financial.chartSeries[Granularity.WEEK]
        assert sum(week.orders) == 6

    def test_unavailable_granularity_adds_notice(self, snapshot_of) -> None:
        snapshot = snapshot_of(options=SnapshotOptions(granularity=Granularity.HOUR))

        assert snapshot.financial.granularity.resolved == Granularity.DAY
        assert len(snapshot.notices) == 1
        assert 'hour' in snapshot.notices[0]

    def test_price_distribution(self, snapshot_of) -> None:
        distribution = snapshot_of().financial.priceDistribution

        assert distribution.summary.n == 2
        assert sum(b.stats.n for b in distribution.buckets if b.stats) == 2
        assert distribution.stability == PriceStability.MODERATE

    def test_revenue_trend(self, snapshot_of) -> None:
        trend = snapshot_of().financial.revenueTrend

        assert trend.meta.total == 300.0
        assert trend.meta.previousTotal == 90.0


class TestDispatchersSection:

    def test_leaderboards(self, snapshot_of) -> None:
        dispatchers = snapshot_of().dispatchers

        assert [(e.key, e.count) for e in dispatchers.topByOrders] == [('d1', 3), ('d2', 2), ('d3', 1)]
        assert [(e.key, e.amount) for e in dispatchers.topByRevenue] == [
            ('d1', 300.0), ('d2', 0.0), ('d3', 0.0),
        ]
        assert dispatchers.performance is None

    def test_performance(self, snapshot_of) -> None:
        performance = snapshot_of(options=SnapshotOptions(dispatcher_id='d1')).dispatchers.performance

        assert performance.dispatcherId == 'd1'
        assert performance.createdOrders == 3
        assert performance.handledOrders == 2
        assert performance.transferredOrders == 1
        assert performance.totalOrders == 3
        assert performance.completedOrders == 2
        assert performance.completionRate == pytest.approx(2 / 3)
        assert performance.totalAmount == 300.0
        assert performance.commissionCollected == 30.0
        assert performance.createdTrend.meta.previousTotal == 1

    def test_handled_orders_created_elsewhere(self, snapshot_of) -> None:
        performance = snapshot_of(FilterSpec(dispatcher_id='d2')).dispatchers.performance

        assert performance.createdOrders == 2
        assert performance.handledOrders == 3
        assert performance.totalOrders == 3


class TestMastersSection:

    def test_leaderboards(self, snapshot_of) -> None:
        masters = snapshot_of().masters

        assert [(e.key, e.count) for e in masters.topByCompleted] == [('m1', 1), ('m2', 1)]
        assert [(e.key, e.amount) for e in masters.topByRevenue] == [('m2', 200.0), ('m1', 100.0)]

    def test_performance(self, snapshot_of) -> None:
        performance = snapshot_of(options=SnapshotOptions(master_id='m1')).masters.performance

        assert performance.totalOrders == 2
        assert performance.completedOrders == 1
        assert performance.canceledOrders == 1
        assert performance.totalAmount == 100.0
        assert performance.avgOrderValue == 100.0
        assert performance.commissionPaid == 10.0
        assert performance.statusBreakdown.canceled == 1
        assert performance.completedTrend.meta.total == 1
        assert performance.completedTrend.meta.previousTotal == 1
        assert performance.completedTrend.meta.delta == pytest.approx(0.0)


class TestFilteredSnapshots:

    def test_area_filter(self, snapshot_of) -> None:
        snapshot = snapshot_of(FilterSpec(area='center'))

        assert snapshot.totalOrders == 3
        assert snapshot.financial.overview.commissionCollected == 30.0

    def test_master_filter_scopes_transactions(self, snapshot_of) -> None:
        snapshot = snapshot_of(FilterSpec(master_id='m1'))

        assert snapshot.totalOrders == 2
        assert snapshot.financial.overview.commissionCollected == 10.0
        assert snapshot.financial.overview.topUpTotal == 500.0
        assert snapshot.masters.performance.masterId == 'm1'

    def test_all_range(self, snapshot_of) -> None:
        snapshot = snapshot_of(FilterSpec(range=RangePreset.ALL))

        assert snapshot.window.start == utc(2024, 2, 1, 10)
        assert snapshot.window.end == utc(2024, 3, 14, 16)
        assert snapshot.totalOrders == 7

    def test_no_match(self, snapshot_of) -> None:
        snapshot = snapshot_of(FilterSpec(area='nowhere'))

        assert snapshot.totalOrders == 0
        assert snapshot.operations.statusBreakdown.total == 0
        assert snapshot.operations.statusBreakdown.percentages[StatusGroup.OPEN] == 0.0


class TestPartnerEarnings:

    def test_attached_to_snapshot(self, snapshot_of) -> None:
        earnings = snapshot_of().partnerEarnings

        assert earnings.earnedTotal == 15.0
        assert earnings.paidTotal == 50.0
        assert earnings.requestedTotal == 180.0
        assert earnings.requestsByStatus[PayoutStatus.REJECTED] == 1


class TestScopeTransactions:

    def test_without_dimension_filter_keeps_window(self, sample_transactions) -> None:
        scoped = scope_transactions(
            sample_transactions, FilterSpec(),
            TimeWindow(start=utc(2024, 3, 1), end=utc(2024, 3, 3)), set(),
        )

        assert [t.type for t in scoped] == ['commission', 'commission_deduct']
