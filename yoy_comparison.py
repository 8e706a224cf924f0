"""
Year-over-Year Comparison Module

Runs the bucketing and aggregation pipeline independently over two calendar
years ([Jan 1, Jan 1 of the next year) in UTC) and compares them:

- Year totals with percent change (0 when the previous year is not positive)
- Month-by-month comparison rows for all 12 months

Both windows use the same monthly bucketing, so leap years need no special
handling beyond normal calendar arithmetic.
"""

from dataclasses import dataclass
from decimal import Decimal

import pandas as pd

from business_rules import YOY_RULES, get_yoy_metric_field
from data_loader import prepare_records, filter_records
from period_bucketing import bucket_records
from aggregation import aggregate_buckets, get_series_values
from utils import ZERO, exact_sum, exact_difference, safe_divide

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class MonthComparison:
    month: int
    current_value: Decimal = ZERO
    previous_value: Decimal = ZERO
    change: Decimal = ZERO
    change_percent: Decimal = ZERO


@dataclass(frozen=True)
class YearOverYearComparison:
    year: int
    metric: str
    current_total: Decimal = ZERO
    previous_total: Decimal = ZERO
    percent_change: Decimal = ZERO
    is_increase: bool = False
    months: tuple = ()
    company_id: object = None
    skipped_record_count: int = 0


def get_year_window(year: int):
    """Return the [start, end) UTC window covering one calendar year."""
    start = pd.Timestamp(year=year, month=1, day=1, tz='UTC')
    end = pd.Timestamp(year=year + 1, month=1, day=1, tz='UTC')
    return start, end


def _monthly_values(records, year, field):
    """Total of `field` per calendar month of `year`, as {month: Decimal}."""
    start, end = get_year_window(year)
    window = filter_records(records, start=start, end=end)
    aggregates = aggregate_buckets(bucket_records(window, YOY_RULES["period_type"]))
    values = get_series_values(aggregates, field)
    monthly = {month: ZERO for month in range(1, 13)}
    for aggregate, value in zip(aggregates, values):
        monthly[int(aggregate.period_key.split('-')[1])] = value
    return monthly


def _percent_change(current, previous):
    if previous > 0:
        return safe_divide(exact_difference(current, previous), previous) * HUNDRED
    return ZERO


def compare_year_over_year(raw_records, year: int, metric: str = 'revenue', company_id=None):
    """
    Compare a calendar year with the year before it.

    Args:
        raw_records: Records as accepted by prepare_records(); records outside
                     the two years are ignored
        year: Target calendar year
        metric: 'revenue', 'production' or 'costs'
        company_id: Scope label carried into the result

    Returns:
        tuple: (logs, YearOverYearComparison)

    Raises:
        ValueError: If the metric is unknown or the year is not an integer
    """
    field = get_yoy_metric_field(metric)
    if isinstance(year, bool) or not isinstance(year, int):
        raise ValueError(f"Year must be an integer, got {year!r}")
    # Both windows must fit the nanosecond timestamp range
    if not pd.Timestamp.min.year + 1 < year < pd.Timestamp.max.year:
        raise ValueError(f"Year {year} is outside the supported range")

    logs = ["--- Year-over-Year Comparator ---"]
    prep_logs, records, quality = prepare_records(raw_records)
    logs.extend(prep_logs)

    current = _monthly_values(records, year, field)
    previous = _monthly_values(records, year - 1, field)

    current_total = exact_sum(current.values())
    previous_total = exact_sum(previous.values())

    months = tuple(
        MonthComparison(
            month=month,
            current_value=current[month],
            previous_value=previous[month],
            change=exact_difference(current[month], previous[month]),
            change_percent=_percent_change(current[month], previous[month]),
        )
        for month in range(1, 13)
    )

    comparison = YearOverYearComparison(
        year=year,
        metric=metric,
        current_total=current_total,
        previous_total=previous_total,
        percent_change=_percent_change(current_total, previous_total),
        is_increase=current_total > previous_total,
        months=months,
        company_id=company_id,
        skipped_record_count=quality.skipped_record_count,
    )
    logs.append(f"INFO: {metric} {year}: {current_total} vs {year - 1}: {previous_total} ({comparison.percent_change:.2f}%)")
    return logs, comparison
