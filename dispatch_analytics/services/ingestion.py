"""
Record Ingestion Service

Turns plain structured rows (mappings from the data layer, or already-built
models) into the immutable records the engine consumes.

Rows are loaded into a pandas DataFrame and coerced column by column, so a batch
of thousands of orders is validated in a handful of vectorised passes rather
than row-by-row parsing.

Rules:
- Orders: missing id, missing or unknown status, or unparsable created_at drop
  the record. Unknown urgency is blanked. Negative, non-numeric or infinite
  prices are blanked. Status spellings are matched case-insensitively and
  'cancelled_*' is accepted for 'canceled_*'.
- Transactions: missing type, non-numeric or non-finite amount, or bad
  created_at drop the record.
- Payouts: unknown status, missing, negative or infinite requested amount, or bad
  created_at drop the record. A bad approved amount is blanked.
- Naive timestamps are read as UTC; aware timestamps are converted to UTC.

Nothing here raises for bad data. Every dropped record and blanked field is
reported as a ValidationIssue in the returned IngestionReport.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from dispatch_analytics.models.enums import OrderStatus, PayoutStatus, Urgency
from dispatch_analytics.models.schemas import (
    IngestionReport,
    OrderRecord,
    PayoutRequest,
    TransactionRecord,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

RawRow = Union[Mapping[str, Any], BaseModel]

# =============================================================================
# CONSTANTS - Column layouts per record type
# =============================================================================

ORDER_COLUMNS: List[str] = [
    'id',
    'status',
    'service_type',
    'urgency',
    'created_at',
    'final_price',
    'initial_price',
    'area',
    'dispatcher_id',
    'assigned_dispatcher_id',
    'master_id',
    'is_disputed',
    'updated_at',
    'completed_at',
    'cancel_reason',
]

TRANSACTION_COLUMNS: List[str] = ['type', 'amount', 'created_at', 'order_id', 'actor_id']

PAYOUT_COLUMNS: List[str] = [
    'id',
    'partner_id',
    'status',
    'requested_amount',
    'approved_amount',
    'created_at',
]

ORDER_ID_COLUMNS: List[str] = [
    'service_type',
    'area',
    'dispatcher_id',
    'assigned_dispatcher_id',
    'master_id',
    'cancel_reason',
]

VALID_ORDER_STATUSES = {s.value for s in OrderStatus}
VALID_URGENCIES = {u.value for u in Urgency}
VALID_PAYOUT_STATUSES = {s.value for s in PayoutStatus}

TRUE_STRINGS = {'true', 't', 'yes', 'y', '1'}


# =============================================================================
# COERCION HELPERS
# =============================================================================

def _build_frame(rows: Iterable[RawRow], columns: List[str]) -> pd.DataFrame:
    """
    Load rows into a DataFrame holding exactly the expected columns.

    Models are dumped to dicts first. Column names are matched
    case-insensitively and missing columns are filled with nulls.
    """
    dicts: List[Dict[str, Any]] = []
    for row in rows:
        if isinstance(row, BaseModel):
            dicts.append(row.model_dump(mode='json'))
        else:
            dicts.append({str(k).lower(): v for k, v in dict(row).items()})

    df = pd.DataFrame(dicts, dtype=object)
    return df.reindex(columns=columns).astype(object)


def _text(series: pd.Series, lower: bool = False) -> pd.Series:
    """Strip strings, optionally lower-case them, and turn blanks into NA."""
    text = series.astype('string').str.strip()
    if lower:
        text = text.str.lower()
    return text.mask((text == '').fillna(False))


def _timestamps(series: pd.Series) -> pd.Series:
    """Parse a column of timestamps to UTC; unparsable values become NaT."""
    return pd.to_datetime(series, utc=True, errors='coerce', format='mixed')


def _value(value: Any) -> Any:
    """Convert pandas missing markers and timestamps back to plain Python values."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    return value


def _bool(value: Any) -> bool:
    value = _value(value)
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def _numbers(raw: pd.Series) -> pd.Series:
    """Float view of a column; non-numeric and non-finite values become NaN."""
    numeric = pd.to_numeric(raw, errors='coerce').astype(float)
    return numeric.mask(~np.isfinite(numeric))


def _invalid_numbers(raw: pd.Series, numeric: pd.Series) -> pd.Series:
    """Mask of values that were present but not numeric."""
    return numeric.isna() & raw.notna()


def _issue(field: str, message: str, index: int) -> ValidationIssue:
    # DataFrame index is 0-based; report 1-based row numbers
    return ValidationIssue(field=field, message=message, row_number=index + 1)


def _finish_report(
    kind: str,
    processed: int,
    accepted: int,
    issues: List[ValidationIssue],
) -> IngestionReport:
    dropped = processed - accepted
    if dropped:
        logger.warning(
            f"Dropped {dropped} of {processed} {kind} rows during normalization"
        )
    elif issues:
        logger.warning(f"Blanked {len(issues)} invalid {kind} fields during normalization")
    return IngestionReport(
        rows_processed=processed,
        rows_accepted=accepted,
        rows_dropped=dropped,
        issues=issues,
    )


# =============================================================================
# ORDERS
# =============================================================================

def normalize_orders(rows: Iterable[RawRow]) -> Tuple[List[OrderRecord], IngestionReport]:
    """
    Coerce raw order rows into OrderRecord models.

    Args:
        rows: Mappings with order fields, or OrderRecord instances

    Returns:
        Tuple of (accepted records in input order, ingestion report)
    """
    df = _build_frame(rows, ORDER_COLUMNS)
    issues: List[ValidationIssue] = []
    records: List[OrderRecord] = []

    ids = _text(df['id'])
    statuses = _text(df['status'], lower=True).str.replace('cancelled', 'canceled', regex=False)
    urgencies = _text(df['urgency'], lower=True)
    created = _timestamps(df['created_at'])
    updated = _timestamps(df['updated_at'])
    completed = _timestamps(df['completed_at'])

    prices: Dict[str, pd.Series] = {}
    for col in ('final_price', 'initial_price'):
        numeric = _numbers(df[col])
        bad_mask = _invalid_numbers(df[col], numeric) | (numeric < 0)
        for idx in df.index[bad_mask.to_numpy(dtype=bool)]:
            issues.append(_issue(col, f"Invalid price {df.at[idx, col]!r} blanked", idx))
        prices[col] = numeric.mask(bad_mask)

    texts = {col: _text(df[col]) for col in ORDER_ID_COLUMNS}

    for idx in df.index:
        order_id = _value(ids[idx])
        if order_id is None:
            issues.append(_issue('id', "Missing order id; record dropped", idx))
            continue

        status = _value(statuses[idx])
        if status not in VALID_ORDER_STATUSES:
            issues.append(_issue('status', f"Unknown status {df.at[idx, 'status']!r}; record dropped", idx))
            continue

        created_at = _value(created[idx])
        if created_at is None:
            issues.append(_issue('created_at', f"Unparsable created_at {df.at[idx, 'created_at']!r}; record dropped", idx))
            continue

        urgency = _value(urgencies[idx])
        if urgency is not None and urgency not in VALID_URGENCIES:
            issues.append(_issue('urgency', f"Unknown urgency {df.at[idx, 'urgency']!r} blanked", idx))
            urgency = None

        try:
            record = OrderRecord(
                id=order_id,
                status=OrderStatus(status),
                urgency=Urgency(urgency) if urgency else None,
                created_at=created_at,
                final_price=_value(prices['final_price'][idx]),
                initial_price=_value(prices['initial_price'][idx]),
                is_disputed=_bool(df.at[idx, 'is_disputed']),
                updated_at=_value(updated[idx]),
                completed_at=_value(completed[idx]),
                **{col: _value(texts[col][idx]) for col in ORDER_ID_COLUMNS},
            )
        except PydanticValidationError as e:
            issues.append(_issue('record', f"Order failed validation: {e.error_count()} errors", idx))
            continue

        records.append(record)

    report = _finish_report('order', len(df), len(records), issues)
    logger.debug(f"Normalized {len(records)} orders")
    return records, report


# =============================================================================
# TRANSACTIONS
# =============================================================================

def normalize_transactions(
    rows: Iterable[RawRow],
) -> Tuple[List[TransactionRecord], IngestionReport]:
    """
    Coerce raw balance transaction rows into TransactionRecord models.

    Transaction types are lower-cased but otherwise kept as-is, so unknown
    types survive ingestion and are simply ignored by the rollups.
    """
    df = _build_frame(rows, TRANSACTION_COLUMNS)
    issues: List[ValidationIssue] = []
    records: List[TransactionRecord] = []

    types = _text(df['type'], lower=True)
    amounts = _numbers(df['amount'])
    created = _timestamps(df['created_at'])
    order_ids = _text(df['order_id'])
    actor_ids = _text(df['actor_id'])

    for idx in df.index:
        tx_type = _value(types[idx])
        if tx_type is None:
            issues.append(_issue('type', "Missing transaction type; record dropped", idx))
            continue

        amount = _value(amounts[idx])
        if amount is None:
            issues.append(_issue('amount', f"Non-numeric amount {df.at[idx, 'amount']!r}; record dropped", idx))
            continue

        created_at = _value(created[idx])
        if created_at is None:
            issues.append(_issue('created_at', "Unparsable created_at; record dropped", idx))
            continue

        records.append(TransactionRecord(
            type=tx_type,
            amount=float(amount),
            created_at=created_at,
            order_id=_value(order_ids[idx]),
            actor_id=_value(actor_ids[idx]),
        ))

    return records, _finish_report('transaction', len(df), len(records), issues)


# =============================================================================
# PAYOUT REQUESTS
# =============================================================================

def normalize_payouts(rows: Iterable[RawRow]) -> Tuple[List[PayoutRequest], IngestionReport]:
    """Coerce raw partner payout request rows into PayoutRequest models."""
    df = _build_frame(rows, PAYOUT_COLUMNS)
    issues: List[ValidationIssue] = []
    records: List[PayoutRequest] = []

    statuses = _text(df['status'], lower=True)
    requested = _numbers(df['requested_amount'])
    approved = _numbers(df['approved_amount'])
    created = _timestamps(df['created_at'])
    ids = _text(df['id'])
    partner_ids = _text(df['partner_id'])

    for idx in df.index:
        status = _value(statuses[idx])
        if status not in VALID_PAYOUT_STATUSES:
            issues.append(_issue('status', f"Unknown payout status {df.at[idx, 'status']!r}; record dropped", idx))
            continue

        requested_amount = _value(requested[idx])
        if requested_amount is None or requested_amount < 0:
            issues.append(_issue('requested_amount', "Invalid requested amount; record dropped", idx))
            continue

        created_at = _value(created[idx])
        if created_at is None:
            issues.append(_issue('created_at', "Unparsable created_at; record dropped", idx))
            continue

        approved_amount: Optional[float] = _value(approved[idx])
        if approved_amount is not None and approved_amount < 0:
            issues.append(_issue('approved_amount', "Negative approved amount blanked", idx))
            approved_amount = None
        elif approved_amount is None and _value(df.at[idx, 'approved_amount']) is not None:
            issues.append(_issue('approved_amount', "Non-numeric approved amount blanked", idx))

        records.append(PayoutRequest(
            id=_value(ids[idx]),
            partner_id=_value(partner_ids[idx]),
            status=PayoutStatus(status),
            requested_amount=float(requested_amount),
            approved_amount=float(approved_amount) if approved_amount is not None else None,
            created_at=created_at,
        ))

    return records, _finish_report('payout', len(df), len(records), issues)
