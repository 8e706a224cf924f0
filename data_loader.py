"""
Record Loader

Normalizes raw transactional records handed over by the record source
(sales, production runs, ingredient price history, stock usage) into
validated, immutable Record values.

Key Features:
- Column/field name compatibility across record sources
- UTC timestamp normalization (naive timestamps are treated as UTC)
- Exact decimal amounts (floats are converted via their shortest repr)
- Data-quality accounting: bad records are excluded and counted, never merged
"""

import numbers
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import numpy as np
import pandas as pd

# Accepted source field names, first match wins
FIELD_ALIASES = {
    'timestamp': ['timestamp', 'transaction_date', 'production_date', 'created_at', 'date'],
    'amount': ['amount', 'total_revenue', 'price', 'total_cost', 'value'],
    'quantity': ['quantity', 'quantity_produced', 'qty', 'units'],
    'entity_id': ['entity_id', 'recipe_id', 'ingredient_id', 'sku'],
}


def to_decimal(value) -> Decimal:
    """
    Convert a monetary or numeric value to an exact Decimal.

    Floats are converted through their shortest string representation so
    0.1 becomes Decimal('0.1'), not the binary expansion.

    Args:
        value: Decimal, int, float, numpy scalar or numeric string
               (thousands separators are removed)

    Returns:
        Decimal: Finite decimal value

    Raises:
        ValueError: If the value is missing, non-numeric or not finite
    """
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a numeric value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, numbers.Integral):
        result = Decimal(int(value))
    elif isinstance(value, numbers.Real):
        result = Decimal(str(float(value)))
    elif isinstance(value, str):
        text = value.strip().replace(',', '')
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Unparseable numeric value: {value!r}") from None
    else:
        raise ValueError(f"Unsupported numeric value: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Numeric value is not finite: {value!r}")
    return result


def to_quantity(value) -> int:
    """
    Convert a unit count to a non-negative integer.

    Raises:
        ValueError: If the value is negative or not a whole number
    """
    quantity = to_decimal(value)
    if quantity != quantity.to_integral_value():
        raise ValueError(f"Quantity must be a whole number: {value!r}")
    if quantity < 0:
        raise ValueError(f"Quantity must not be negative: {value!r}")
    return int(quantity)


def parse_timestamp(value):
    """
    Parse a timestamp and normalize it to UTC.

    Args:
        value: datetime, date, pandas Timestamp, numpy datetime64 or string

    Returns:
        pd.Timestamp in UTC at nanosecond resolution, or None if missing,
        unparseable or outside the supported range (1677-09-21 to 2262-04-11)
    """
    if value is None or isinstance(value, (bool, numbers.Number)):
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
    elif not isinstance(value, (datetime, date, np.datetime64)):
        return None

    try:
        ts = pd.to_datetime(value, utc=True, errors='coerce')
        if not isinstance(ts, pd.Timestamp) or pd.isna(ts):
            return None
        # Nanosecond resolution; out-of-range dates raise OutOfBoundsDatetime
        return ts.as_unit('ns')
    except (TypeError, ValueError, OverflowError):
        return None


def _is_missing(value):
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_none(value):
    return value is None


@dataclass(frozen=True)
class Record:
    """A single tenant-scoped transactional record."""
    timestamp: pd.Timestamp
    amount: Decimal
    quantity: int = 0
    entity_id: object = None

    def __post_init__(self):
        ts = parse_timestamp(self.timestamp)
        if ts is None:
            raise ValueError(f"Missing or unparseable timestamp: {self.timestamp!r}")
        object.__setattr__(self, 'timestamp', ts)
        object.__setattr__(self, 'amount', to_decimal(self.amount))
        object.__setattr__(self, 'quantity', to_quantity(self.quantity))


@dataclass(frozen=True)
class DataQualityReport:
    """Counts of records excluded before bucketing, by reason."""
    total_records: int = 0
    valid_records: int = 0
    missing_timestamp_count: int = 0
    invalid_amount_count: int = 0
    negative_quantity_count: int = 0
    invalid_quantity_count: int = 0

    @property
    def skipped_record_count(self) -> int:
        return (self.missing_timestamp_count + self.invalid_amount_count
                + self.negative_quantity_count + self.invalid_quantity_count)

    def to_log_lines(self):
        lines = []
        if self.missing_timestamp_count:
            lines.append(f"WARNING: Skipped {self.missing_timestamp_count} records with a missing, unparseable or out-of-range timestamp")
        if self.invalid_amount_count:
            lines.append(f"WARNING: Skipped {self.invalid_amount_count} records with an unparseable amount")
        if self.negative_quantity_count:
            lines.append(f"WARNING: Skipped {self.negative_quantity_count} records with a negative quantity")
        if self.invalid_quantity_count:
            lines.append(f"WARNING: Skipped {self.invalid_quantity_count} records with a non-integer quantity")
        return lines


def _resolve_field(row, field):
    for alias in FIELD_ALIASES[field]:
        if alias in row:
            return row[alias]
    return None


def _iter_raw_rows(raw_records):
    """Yield each raw record as a mapping of source field names."""
    if raw_records is None:
        return
    if isinstance(raw_records, pd.DataFrame):
        if raw_records.empty:
            return
        yield from raw_records.to_dict('records')
        return
    for item in raw_records:
        if isinstance(item, Record):
            yield {
                'timestamp': item.timestamp,
                'amount': item.amount,
                'quantity': item.quantity,
                'entity_id': item.entity_id,
            }
        else:
            yield item


def prepare_records(raw_records):
    """
    Validate raw records and convert them into Record values.

    A missing amount or quantity field is read as 0 (a production run has no
    amount, a flat fee has no units). A present-but-invalid value, a missing
    timestamp or a negative quantity excludes the record and is counted.

    In a DataFrame an empty (NaN) cell means missing. In mappings only None
    or an absent key means missing; a present NaN is an invalid value.

    Args:
        raw_records: DataFrame, iterable of mappings, or iterable of Record

    Returns:
        tuple: (logs, records, quality)
        - logs: List of processing messages
        - records: List of Record in input order
        - quality: DataQualityReport
    """
    logs = []
    records = []
    total = 0
    missing_ts = 0
    bad_amount = 0
    negative_qty = 0
    bad_qty = 0
    # Empty DataFrame cells are NaN; in mappings only None is missing
    is_missing = _is_missing if isinstance(raw_records, pd.DataFrame) else _is_none

    for row in _iter_raw_rows(raw_records):
        total += 1

        ts = parse_timestamp(_resolve_field(row, 'timestamp'))
        if ts is None:
            missing_ts += 1
            continue

        raw_amount = _resolve_field(row, 'amount')
        try:
            amount = Decimal(0) if is_missing(raw_amount) else to_decimal(raw_amount)
        except ValueError:
            bad_amount += 1
            continue

        raw_quantity = _resolve_field(row, 'quantity')
        if is_missing(raw_quantity):
            quantity = 0
        else:
            try:
                quantity_value = to_decimal(raw_quantity)
            except ValueError:
                bad_qty += 1
                continue
            if quantity_value < 0:
                negative_qty += 1
                continue
            if quantity_value != quantity_value.to_integral_value():
                bad_qty += 1
                continue
            quantity = int(quantity_value)

        entity_id = _resolve_field(row, 'entity_id')
        if _is_missing(entity_id):
            entity_id = None

        records.append(Record(timestamp=ts, amount=amount, quantity=quantity, entity_id=entity_id))

    quality = DataQualityReport(
        total_records=total,
        valid_records=len(records),
        missing_timestamp_count=missing_ts,
        invalid_amount_count=bad_amount,
        negative_quantity_count=negative_qty,
        invalid_quantity_count=bad_qty,
    )

    logs.append(f"INFO: Accepted {quality.valid_records} of {quality.total_records} records")
    logs.extend(quality.to_log_lines())

    return logs, records, quality


def filter_records(records, start=None, end=None, entity_ids=None):
    """
    Restrict validated records to a [start, end) window and an entity list.

    Args:
        records: Iterable of Record
        start: Inclusive lower bound (any parseable timestamp) or None
        end: Exclusive upper bound or None
        entity_ids: Optional collection of entity ids to keep

    Returns:
        list: Records that fall inside the window, in input order

    Raises:
        ValueError: If a bound cannot be parsed or start >= end
    """
    start_ts = _parse_bound(start, 'start')
    end_ts = _parse_bound(end, 'end')
    if start_ts is not None and end_ts is not None and start_ts >= end_ts:
        raise ValueError(f"Empty date range: start {start_ts} is not before end {end_ts}")

    wanted = set(entity_ids) if entity_ids else None

    return [
        r for r in records
        if (start_ts is None or r.timestamp >= start_ts)
        and (end_ts is None or r.timestamp < end_ts)
        and (wanted is None or r.entity_id in wanted)
    ]


def _parse_bound(value, name):
    if value is None:
        return None
    ts = parse_timestamp(value)
    if ts is None:
        raise ValueError(f"Unparseable {name} date: {value!r}")
    return ts
