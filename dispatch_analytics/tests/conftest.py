"""
Pytest Configuration and Shared Fixtures for the analytics engine tests.

Provides:
- A fixed reference instant (``now``) so every window is deterministic
- Settings built without reading the environment
- ``make_order`` / ``make_transaction`` helpers for compact test data
- A small marketplace dataset (orders, transactions, payouts) used by the
  section and snapshot tests

Sample dataset (now = 2024-03-15 12:00 UTC, 30d window starts 2024-02-14 12:00):

    id  created           status               price  area    service     disp  master
    o1  03-01 10:00       completed            100    center  plumbing    d1    m1
    o2  03-02 09:00       confirmed            200    center  electrical  d1    m2
    o3  03-05 14:00       placed               80     north   plumbing    d2    -
    o4  03-08 08:00       canceled_by_client   150    north   plumbing    d2    m1
    o5  03-10 11:00       claimed (to d2)      120    center  cleaning    d1    m2
    o6  03-14 16:00       reopened             -      south   plumbing    d3    -
    o7  02-01 10:00       completed            90     center  plumbing    d1    m1   (before window)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, List

import pytest

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.models import (
    OrderRecord,
    OrderStatus,
    PayoutRequest,
    PayoutStatus,
    TransactionRecord,
    Urgency,
)

UTC = timezone.utc

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


# ============================================================
# HELPERS
# ============================================================

def utc(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=UTC)


def make_order(
    order_id: str,
    created_at: datetime,
    status: OrderStatus = OrderStatus.PLACED,
    **fields: Any,
) -> OrderRecord:
    """Build an OrderRecord with sensible defaults for unspecified fields."""
    return OrderRecord(id=order_id, status=status, created_at=created_at, **fields)


def make_transaction(
    tx_type: str,
    amount: float,
    created_at: datetime,
    **fields: Any,
) -> TransactionRecord:
    return TransactionRecord(type=tx_type, amount=amount, created_at=created_at, **fields)


# ============================================================
# CORE FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test start from a fresh settings singleton."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any .env file on the machine."""
    return Settings(_env_file=None)


# ============================================================
# SAMPLE DATA
# ============================================================

@pytest.fixture
def sample_orders() -> List[OrderRecord]:
    return [
        make_order(
            'o1', utc(2024, 3, 1, 10), OrderStatus.COMPLETED,
            final_price=100.0, initial_price=90.0, area='center', service_type='plumbing',
            dispatcher_id='d1', master_id='m1', urgency=Urgency.URGENT,
            completed_at=utc(2024, 3, 1, 15),
        ),
        make_order(
            'o2', utc(2024, 3, 2, 9), OrderStatus.CONFIRMED,
            final_price=200.0, area='center', service_type='electrical',
            dispatcher_id='d1', master_id='m2', urgency=Urgency.PLANNED,
        ),
        make_order(
            'o3', utc(2024, 3, 5, 14), OrderStatus.PLACED,
            initial_price=80.0, area='north', service_type='plumbing',
            dispatcher_id='d2', urgency=Urgency.EMERGENCY,
        ),
        make_order(
            'o4', utc(2024, 3, 8, 8), OrderStatus.CANCELED_BY_CLIENT,
            initial_price=150.0, area='north', service_type='plumbing',
            dispatcher_id='d2', master_id='m1', urgency=Urgency.PLANNED,
            cancel_reason='client changed mind',
        ),
        make_order(
            'o5', utc(2024, 3, 10, 11), OrderStatus.CLAIMED,
            initial_price=120.0, area='center', service_type='cleaning',
            dispatcher_id='d1', assigned_dispatcher_id='d2', master_id='m2',
            urgency=Urgency.URGENT, updated_at=utc(2024, 3, 11, 9),
        ),
        make_order(
            'o6', utc(2024, 3, 14, 16), OrderStatus.REOPENED,
            area='south', service_type='plumbing', dispatcher_id='d3',
            urgency=Urgency.PLANNED, is_disputed=True,
        ),
        make_order(
            'o7', utc(2024, 2, 1, 10), OrderStatus.COMPLETED,
            final_price=90.0, area='center', service_type='plumbing',
            dispatcher_id='d1', master_id='m1',
        ),
    ]


@pytest.fixture
def sample_transactions() -> List[TransactionRecord]:
    return [
        make_transaction('commission', -10.0, utc(2024, 3, 1, 16), order_id='o1', actor_id='m1'),
        make_transaction('commission_deduct', -20.0, utc(2024, 3, 2, 10), order_id='o2', actor_id='m2'),
        make_transaction('top_up', 500.0, utc(2024, 3, 3, 9), actor_id='m1'),
        make_transaction('commission_earned', 15.0, utc(2024, 3, 4, 9), order_id='o2', actor_id='p1'),
        make_transaction('payout_paid', -50.0, utc(2024, 3, 6, 9), actor_id='p1'),
        make_transaction('manual_deduction', -5.0, utc(2024, 3, 7, 9), actor_id='p1'),
        make_transaction('commission', -9.0, utc(2024, 2, 1, 12), order_id='o7', actor_id='m1'),
    ]


@pytest.fixture
def sample_payouts() -> List[PayoutRequest]:
    return [
        PayoutRequest(
            id='r1', partner_id='p1', status=PayoutStatus.REQUESTED,
            requested_amount=100.0, created_at=utc(2024, 3, 5, 10),
        ),
        PayoutRequest(
            id='r2', partner_id='p1', status=PayoutStatus.PAID,
            requested_amount=50.0, approved_amount=50.0, created_at=utc(2024, 3, 6, 8),
        ),
        PayoutRequest(
            id='r3', partner_id='p2', status=PayoutStatus.REJECTED,
            requested_amount=30.0, created_at=utc(2024, 3, 9, 10),
        ),
    ]


@pytest.fixture
def status_scenario_orders(now: datetime) -> List[OrderRecord]:
    """placed:2, claimed:1, completed:3, canceled_by_master:1."""
    statuses = (
        [OrderStatus.PLACED] * 2
        + [OrderStatus.CLAIMED]
        + [OrderStatus.COMPLETED] * 3
        + [OrderStatus.CANCELED_BY_MASTER]
    )
    return [
        make_order(f's{i}', now - timedelta(hours=i + 1), status)
        for i, status in enumerate(statuses)
    ]
