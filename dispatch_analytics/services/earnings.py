"""
Partner Earnings

Commission and payout rollups for referral partners over a window.

- earnedTotal: sum of commission_earned transactions
- deductedTotal: absolute sum of manual_deduction transactions
- paidTotal: absolute sum of payout_paid transactions
- requestedTotal / approvedTotal: payout request amounts
- pending: requests still in 'requested' status

Transactions are matched to a partner through actor_id; payout requests through
partner_id. Without a partner id every record counts.
"""

from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.models.enums import PayoutStatus, TransactionType
from dispatch_analytics.models.schemas import (
    PartnerEarningsSummary,
    PayoutRequest,
    TimeWindow,
    TransactionRecord,
)
from dispatch_analytics.services.filters import in_window, require_now
from dispatch_analytics.services.statistics import compute_stats
from dispatch_analytics.services.trends import daily_series, trend_days


def summarize_partner_earnings(
    transactions: Iterable[TransactionRecord],
    payouts: Iterable[PayoutRequest],
    window: TimeWindow,
    now: datetime,
    partner_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> PartnerEarningsSummary:
    """
    Summarize partner earnings and payout requests inside a window.

    Args:
        transactions: Balance transactions
        payouts: Payout requests
        window: Reporting window
        now: Reference instant; records dated after now are ignored
        partner_id: Restrict to one partner; None summarizes every partner
        settings: Engine settings (defaults to get_settings())
    """
    settings = settings or get_settings()
    now = require_now(now)

    partner_tx = [
        t for t in transactions
        if (partner_id is None or t.actor_id == partner_id) and t.created_at <= now
    ]
    current_tx = [t for t in partner_tx if in_window(t.created_at, window)]
    requests = [
        p for p in payouts
        if (partner_id is None or p.partner_id == partner_id)
        and in_window(p.created_at, window)
        and p.created_at <= now
    ]

    def total_of(tx_type: TransactionType) -> float:
        return sum(t.amount for t in current_tx if t.type == tx_type.value)

    pending = [p for p in requests if p.status == PayoutStatus.REQUESTED]
    start_day, days = trend_days(window, settings)
    earned_trend = daily_series(
        partner_tx,
        start_day,
        days,
        date_of=lambda t: t.created_at if t.type == TransactionType.COMMISSION_EARNED.value else None,
        value_of=lambda t: t.amount,
    )

    return PartnerEarningsSummary(
        partnerId=partner_id,
        earnedTotal=total_of(TransactionType.COMMISSION_EARNED),
        deductedTotal=abs(total_of(TransactionType.MANUAL_DEDUCTION)),
        paidTotal=abs(total_of(TransactionType.PAYOUT_PAID)),
        requestedTotal=sum(p.requested_amount for p in requests),
        approvedTotal=sum(p.approved_amount or 0.0 for p in requests),
        pendingRequests=len(pending),
        pendingRequestedAmount=sum(p.requested_amount for p in pending),
        requestsByStatus=dict(Counter(p.status for p in requests)),
        requestStats=compute_stats((p.requested_amount for p in requests), settings),
        earnedTrend=earned_trend,
    )
