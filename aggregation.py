"""
Aggregation Module

Reduces each period bucket to exact totals:
- total_amount: exact decimal sum of record amounts
- total_quantity: sum of record quantities
- average_unit_value: total_amount / total_quantity, 0 when no units

Buckets are independent, so large bucket sets are aggregated in parallel.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List

from business_rules import validate_series_metric
from period_bucketing import PeriodBucket
from utils import ZERO, exact_sum, safe_divide, map_in_parallel


@dataclass(frozen=True)
class AggregateResult:
    """Exact totals for one period."""
    period_key: str
    total_amount: Decimal = ZERO
    total_quantity: int = 0
    average_unit_value: Decimal = ZERO
    record_count: int = 0


def aggregate_bucket(bucket: PeriodBucket) -> AggregateResult:
    """
    Aggregate a single bucket.

    A bucket with money but no units (e.g. a flat fee) is valid and gets an
    average unit value of 0.

    Args:
        bucket: PeriodBucket to reduce

    Returns:
        AggregateResult
    """
    total_amount = exact_sum(r.amount for r in bucket.records)
    total_quantity = sum(r.quantity for r in bucket.records)

    return AggregateResult(
        period_key=bucket.period_key,
        total_amount=total_amount,
        total_quantity=total_quantity,
        average_unit_value=safe_divide(total_amount, total_quantity) if total_quantity > 0 else ZERO,
        record_count=len(bucket.records),
    )


def aggregate_buckets(buckets, n_jobs=None) -> List[AggregateResult]:
    """
    Aggregate every bucket, in period key order.

    Args:
        buckets: dict from bucket_records() or an iterable of PeriodBucket
        n_jobs: Worker threads (None = automatic, 1 = sequential)

    Returns:
        list: AggregateResult per bucket, sorted by period key
    """
    if isinstance(buckets, dict):
        buckets = buckets.values()
    ordered = sorted(buckets, key=lambda b: b.period_key)
    return map_in_parallel(aggregate_bucket, ordered, n_jobs=n_jobs)


def fill_missing_periods(aggregates, period_keys) -> List[AggregateResult]:
    """
    Insert zero-valued aggregates for periods with no records.

    Args:
        aggregates: List of AggregateResult
        period_keys: Full list of expected period keys

    Returns:
        list: One AggregateResult per key (plus any aggregate outside the key
              list), sorted by period key
    """
    by_key = {a.period_key: a for a in aggregates}
    for key in period_keys:
        if key not in by_key:
            by_key[key] = AggregateResult(period_key=key)
    return [by_key[key] for key in sorted(by_key)]


def get_series_values(aggregates, metric: str = 'amount') -> List[Decimal]:
    """
    Extract an ordered numeric series from aggregates.

    Args:
        aggregates: List of AggregateResult
        metric: 'amount', 'quantity' or 'average_unit_value'

    Returns:
        list: Decimal values in aggregate order
    """
    metric = validate_series_metric(metric)
    if metric == 'amount':
        return [a.total_amount for a in aggregates]
    if metric == 'quantity':
        return [Decimal(a.total_quantity) for a in aggregates]
    return [a.average_unit_value for a in aggregates]
