"""
Period Bucketing Module

Groups timestamped records into daily, weekly or monthly buckets keyed by a
canonical period key:

- daily:   YYYY-MM-DD
- weekly:  YYYY-Www  (ISO-8601 year and week, weeks start on Monday)
- monthly: YYYY-MM

Weekly keys use the ISO year, so 2024-12-30 (Monday of ISO week 1 of 2025)
keys to 2025-W01 and a week spanning two months keeps a single key.
All timestamps are UTC (see data_loader.parse_timestamp).
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import pandas as pd

from business_rules import PERIOD_DAILY, PERIOD_MONTHLY, PERIOD_KEY_FORMATS, validate_period_type
from data_loader import Record, parse_timestamp


@dataclass(frozen=True)
class PeriodBucket:
    """Records sharing one period key, in their original order."""
    period_key: str
    period_type: str
    records: Tuple[Record, ...] = ()


def get_period_key(timestamp, period_type: str) -> str:
    """
    Get the canonical period key for a single timestamp.

    Args:
        timestamp: Any value accepted by parse_timestamp
        period_type: 'daily', 'weekly' or 'monthly'

    Returns:
        str: Period key shaped as PERIOD_KEY_FORMATS[period_type]

    Raises:
        ValueError: If the period type is invalid or the timestamp unparseable
    """
    period_type = validate_period_type(period_type)
    ts = parse_timestamp(timestamp)
    if ts is None:
        raise ValueError(
            f"Missing or unparseable timestamp for a {PERIOD_KEY_FORMATS[period_type]} key: {timestamp!r}"
        )

    if period_type == PERIOD_DAILY:
        return ts.strftime('%Y-%m-%d')
    if period_type == PERIOD_MONTHLY:
        return ts.strftime('%Y-%m')
    iso_year, iso_week, _ = ts.isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"


def _period_keys(timestamps: pd.Series, period_type: str) -> pd.Series:
    """Vectorized period keys for a Series of UTC timestamps."""
    if period_type == PERIOD_DAILY:
        return timestamps.dt.strftime('%Y-%m-%d')
    if period_type == PERIOD_MONTHLY:
        return timestamps.dt.strftime('%Y-%m')
    iso = timestamps.dt.isocalendar()
    return iso['year'].astype(int).astype(str).str.zfill(4) + '-W' + iso['week'].astype(int).astype(str).str.zfill(2)


def bucket_records(records, period_type: str) -> Dict[str, PeriodBucket]:
    """
    Group validated records into period buckets.

    Args:
        records: Iterable of Record (see data_loader.prepare_records for raw input)
        period_type: 'daily', 'weekly' or 'monthly'

    Returns:
        dict: {period_key: PeriodBucket} in chronological key order; record
              order inside each bucket follows the input order. Empty input
              returns an empty dict.

    Raises:
        ValueError: If the period type is invalid
    """
    period_type = validate_period_type(period_type)
    records = list(records)
    if not records:
        return {}

    timestamps = pd.Series([r.timestamp for r in records], dtype='datetime64[ns, UTC]')
    keys = _period_keys(timestamps, period_type)

    positions = {}
    for position, key in enumerate(keys):
        positions.setdefault(key, []).append(position)

    return {
        key: PeriodBucket(
            period_key=key,
            period_type=period_type,
            records=tuple(records[i] for i in positions[key]),
        )
        for key in sorted(positions)
    }


def get_period_keys_in_range(start, end, period_type: str):
    """
    List every period key touched by the [start, end) window.

    Used to fill gaps in sparse series so empty periods show up as zeros.

    Args:
        start: Inclusive window start
        end: Exclusive window end
        period_type: 'daily', 'weekly' or 'monthly'

    Returns:
        list: Period keys in chronological order
    """
    period_type = validate_period_type(period_type)
    start_ts = parse_timestamp(start)
    end_ts = parse_timestamp(end)
    if start_ts is None or end_ts is None:
        raise ValueError(f"Unparseable date range: {start!r} to {end!r}")
    if start_ts >= end_ts:
        return []

    last_ts = end_ts - pd.Timedelta(1, unit='ns')
    days = pd.Series(pd.date_range(start_ts.normalize(), last_ts.normalize(), freq='D'))
    keys = _period_keys(days, period_type)
    return list(dict.fromkeys(keys))
