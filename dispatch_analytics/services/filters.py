"""
Filter Pipeline

Resolves a FilterSpec into an effective time window and the set of orders that
match every dimension filter and fall inside that window.

Window resolution (all in UTC, with ``now`` passed explicitly):
- today: midnight of now's day until now
- 7d / 30d / 90d: now minus N days until now
- all: earliest to latest created_at of the dimension-filtered orders, or the
  default lookback when nothing matches
- custom: caller bounds, swapped when inverted. A bound given as a bare date
  covers the whole day. A missing or unparsable bound falls back to the
  default lookback (start) or now (end).

Dimension filters (urgency, service, area, dispatcher, master) are independent
and conjunctive; "all" or None leaves a dimension unconstrained.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Tuple
import logging

from dateutil import parser as date_parser

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.core.errors import AnalyticsContractError
from dispatch_analytics.models.enums import RangePreset
from dispatch_analytics.models.schemas import FilterSpec, OrderRecord, TimeWindow, ensure_utc

logger = logging.getLogger(__name__)

PRESET_DAYS = {
    RangePreset.LAST_7_DAYS: 7,
    RangePreset.LAST_30_DAYS: 30,
    RangePreset.LAST_90_DAYS: 90,
}

ALL_VALUE = 'all'

END_OF_DAY = time(23, 59, 59, 999999)


@dataclass
class FilterResult:
    """
    Output of the filter pipeline.

    Attributes:
        window: Effective time window.
        scoped: Orders matching every dimension filter, at any time. Used for
            previous-period comparisons.
        records: Scoped orders whose created_at lies inside the window.
    """
    window: TimeWindow
    scoped: List[OrderRecord] = field(default_factory=list)
    records: List[OrderRecord] = field(default_factory=list)


# =============================================================================
# Time helpers
# =============================================================================

def require_now(now: Optional[datetime]) -> datetime:
    if now is None:
        raise AnalyticsContractError("'now' must be supplied explicitly")
    return ensure_utc(now)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_bound(value) -> Optional[Tuple[datetime, bool]]:
    """
    Parse a custom range bound.

    Accepts datetimes, dates and free-form strings (parsed with dateutil).

    Returns:
        (UTC datetime, date_only) or None when the value is empty or unparsable.
        ``date_only`` is True when no time of day was supplied; the datetime is
        then midnight of that day.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value), False
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc), True

    text = str(value).strip()
    if not text:
        return None
    try:
        # Two parses with different default times; any parsed time carries an hour
        first = date_parser.parse(text, default=datetime(2000, 1, 1, 0, 0))
        second = date_parser.parse(text, default=datetime(2000, 1, 1, 1, 1))
    except (ValueError, OverflowError):
        logger.info(f"Ignoring unparsable custom range bound {text!r}")
        return None

    date_only = first.hour != second.hour
    return ensure_utc(first), date_only


# =============================================================================
# Window resolution
# =============================================================================

def is_unconstrained(value: Optional[str]) -> bool:
    return value is None or str(value).strip().lower() in ('', ALL_VALUE)


def matches_dimensions(record: OrderRecord, filters: FilterSpec) -> bool:
    """True when the order satisfies every dimension filter."""
    if not is_unconstrained(filters.urgency):
        if record.urgency is None or record.urgency.value != filters.urgency.strip().lower():
            return False
    if not is_unconstrained(filters.service) and record.service_type != filters.service:
        return False
    if not is_unconstrained(filters.area) and record.area != filters.area:
        return False
    if not is_unconstrained(filters.dispatcher_id) and record.dispatcher_id != filters.dispatcher_id:
        return False
    if not is_unconstrained(filters.master_id) and record.master_id != filters.master_id:
        return False
    return True


def resolve_window(
    filters: FilterSpec,
    now: datetime,
    records: Iterable[OrderRecord] = (),
    settings: Optional[Settings] = None,
) -> TimeWindow:
    """
    Resolve the effective time window for a filter.

    Args:
        filters: Filter to resolve
        now: Reference instant; naive values are read as UTC
        records: Dimension-filtered orders, only read for the 'all' preset
        settings: Engine settings (defaults to get_settings())

    Returns:
        TimeWindow with start <= end

    Raises:
        AnalyticsContractError: If now is None
    """
    settings = settings or get_settings()
    now = require_now(now)
    lookback = timedelta(days=settings.default_lookback_days)
    preset = filters.range

    if preset == RangePreset.TODAY:
        return TimeWindow(start=start_of_day(now), end=now)

    if preset in PRESET_DAYS:
        return TimeWindow(start=now - timedelta(days=PRESET_DAYS[preset]), end=now)

    if preset == RangePreset.ALL:
        timestamps = [r.created_at for r in records]
        if not timestamps:
            logger.info("No orders match the filter; 'all' falls back to the default lookback")
            return TimeWindow(start=now - lookback, end=now)
        return TimeWindow(start=min(timestamps), end=max(timestamps))

    start = parse_bound(filters.start)
    end = parse_bound(filters.end)
    if start is not None and end is not None and start[0] > end[0]:
        start, end = end, start

    if end is None:
        end_at = now
    elif end[1]:
        end_at = datetime.combine(end[0].date(), END_OF_DAY, tzinfo=timezone.utc)
    else:
        end_at = end[0]

    start_at = start[0] if start is not None else end_at - lookback
    if start_at > end_at:
        start_at, end_at = end_at, start_at

    return TimeWindow(start=start_at, end=end_at)


def in_window(moment: datetime, window: TimeWindow) -> bool:
    return window.start <= moment <= window.end


def apply_filters(
    records: Iterable[OrderRecord],
    filters: FilterSpec,
    now: datetime,
    settings: Optional[Settings] = None,
) -> FilterResult:
    """
    Run the filter pipeline over a set of orders.

    Returns:
        FilterResult with the window, the dimension-scoped orders and the
        scoped orders inside the window, all in input order.
    """
    scoped = [r for r in records if matches_dimensions(r, filters)]
    window = resolve_window(filters, now, scoped, settings=settings)
    in_range = [r for r in scoped if in_window(r.created_at, window)]

    logger.debug(
        f"Filter kept {len(in_range)} of {len(scoped)} scoped orders "
        f"in [{window.start.isoformat()}, {window.end.isoformat()}]"
    )
    return FilterResult(window=window, scoped=scoped, records=in_range)
