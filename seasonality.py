"""
Seasonality Module

Monthly seasonal indices across all years of history:
- Each calendar month (1-12) gets the total of all its records across years
- Deviation is measured against the mean of the 12 monthly totals
- Months above 1.2x the mean are peaks, months below 0.8x are lows

By default the monthly figure is the multi-year total. With
average_per_year enabled it is divided by the number of distinct years in the
input first (useful when years are unevenly covered).

Also detects per-entity seasonal patterns: months whose demand deviates more
than 20% from that entity's average month.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from business_rules import SEASONALITY_RULES, PERIOD_MONTHLY, get_season_from_month
from data_loader import prepare_records, filter_records
from period_bucketing import bucket_records
from aggregation import aggregate_buckets, get_series_values
from trend_analysis import calculate_coefficient_of_variation
from utils import ZERO, MONTH_ORDER, exact_sum, exact_difference, safe_divide, decimal_mean, clamp

HUNDRED = Decimal(100)
ONE = Decimal(1)


@dataclass(frozen=True)
class SeasonalIndex:
    month: int
    average_value: Decimal = ZERO
    deviation_percent: Decimal = ZERO
    is_peak: bool = False
    is_low: bool = False
    season: str = ''


@dataclass(frozen=True)
class SeasonalityReport:
    indices: tuple = ()
    overall_average: Decimal = ZERO
    years_present: int = 0
    months_of_history: int = 0
    has_recommended_history: bool = False
    average_per_year: bool = False
    skipped_record_count: int = 0


@dataclass(frozen=True)
class SeasonalPattern:
    entity_id: object
    month: int
    season: str
    demand_multiplier: Decimal
    confidence: Decimal
    data_points: int


def _monthly_aggregates(records, metric):
    """Aggregate records per YYYY-MM and return [(year, month, value), ...]."""
    aggregates = aggregate_buckets(bucket_records(records, PERIOD_MONTHLY))
    values = get_series_values(aggregates, metric)
    rows = []
    for aggregate, value in zip(aggregates, values):
        year, month = aggregate.period_key.split('-')
        rows.append((int(year), int(month), value))
    return rows


def calculate_monthly_seasonal_indices(records, average_per_year: Optional[bool] = None, metric: str = 'amount'):
    """
    Calculate the 12 calendar-month seasonal indices.

    Args:
        records: Iterable of validated Record
        average_per_year: Divide monthly totals by distinct years present
                          (default SEASONALITY_RULES['average_per_year'])
        metric: Aggregate field to total ('amount' by default)

    Returns:
        tuple: (indices, overall_average, years_present, months_of_history)
        - indices: List of 12 SeasonalIndex, January first
    """
    if average_per_year is None:
        average_per_year = SEASONALITY_RULES["average_per_year"]

    rows = _monthly_aggregates(records, metric)
    years_present = len({year for year, _, _ in rows})

    month_totals = {}
    for month in range(1, 13):
        total = exact_sum(value for _, m, value in rows if m == month)
        if average_per_year and years_present > 0:
            total = safe_divide(total, years_present)
        month_totals[month] = total

    overall_average = decimal_mean(month_totals.values())
    peak_level = overall_average * SEASONALITY_RULES["peak_multiplier"]
    low_level = overall_average * SEASONALITY_RULES["low_multiplier"]
    has_level = overall_average > 0

    indices = []
    for month in range(1, 13):
        total = month_totals[month]
        indices.append(SeasonalIndex(
            month=month,
            average_value=total,
            deviation_percent=safe_divide(exact_difference(total, overall_average), abs(overall_average)) * HUNDRED,
            is_peak=has_level and total > peak_level,
            is_low=has_level and total < low_level,
            season=get_season_from_month(month),
        ))

    return indices, overall_average, years_present, len(rows)


def detect_seasonality(raw_records, entity_ids=None, average_per_year: Optional[bool] = None, metric: str = 'amount'):
    """
    Run the seasonality analysis on raw records.

    Args:
        raw_records: Records as accepted by prepare_records()
        entity_ids: Optional entity filter
        average_per_year: See calculate_monthly_seasonal_indices()
        metric: Aggregate field to total ('amount' by default)

    Returns:
        tuple: (logs, SeasonalityReport)
    """
    logs = ["--- Seasonality Detector ---"]
    prep_logs, records, quality = prepare_records(raw_records)
    logs.extend(prep_logs)

    records = filter_records(records, entity_ids=entity_ids)
    if average_per_year is None:
        average_per_year = SEASONALITY_RULES["average_per_year"]

    indices, overall_average, years_present, months_of_history = calculate_monthly_seasonal_indices(
        records, average_per_year=average_per_year, metric=metric
    )

    recommended = SEASONALITY_RULES["recommended_months"]
    if months_of_history < recommended:
        logs.append(f"WARNING: Only {months_of_history} months of history; {recommended}+ recommended for stable indices")

    peaks = [MONTH_ORDER[i.month - 1] for i in indices if i.is_peak]
    lows = [MONTH_ORDER[i.month - 1] for i in indices if i.is_low]
    logs.append(f"INFO: {years_present} years present, peak months: {peaks or 'none'}, low months: {lows or 'none'}")

    report = SeasonalityReport(
        indices=tuple(indices),
        overall_average=overall_average,
        years_present=years_present,
        months_of_history=months_of_history,
        has_recommended_history=months_of_history >= recommended,
        average_per_year=average_per_year,
        skipped_record_count=quality.skipped_record_count,
    )
    return logs, report


def detect_seasonal_patterns(raw_records, entity_ids=None, metric: str = 'quantity') -> tuple:
    """
    Find months where an entity's demand deviates by more than 20% from its
    average month.

    The average is taken over the calendar months that have data. Confidence
    is 1 - coefficient of variation of those monthly totals, clamped to [0, 1].
    Records without an entity id are ignored.

    Args:
        raw_records: Records as accepted by prepare_records()
        entity_ids: Optional entity filter
        metric: Aggregate field to total ('quantity' by default)

    Returns:
        tuple: (logs, patterns) with patterns sorted by confidence, highest first
    """
    logs = ["--- Seasonal Pattern Detector ---"]
    prep_logs, records, _ = prepare_records(raw_records)
    logs.extend(prep_logs)
    records = [r for r in filter_records(records, entity_ids=entity_ids) if r.entity_id is not None]

    by_entity = {}
    for record in records:
        by_entity.setdefault(record.entity_id, []).append(record)

    patterns: List[SeasonalPattern] = []
    for entity_id, entity_records in by_entity.items():
        month_totals = {}
        for _, month, value in _monthly_aggregates(entity_records, metric):
            month_totals[month] = exact_sum([month_totals.get(month, ZERO), value])

        totals = list(month_totals.values())
        average = decimal_mean(totals)
        confidence = clamp(ONE - calculate_coefficient_of_variation(totals), ZERO, ONE)

        for month, total in sorted(month_totals.items()):
            multiplier = safe_divide(total, average) if average > 0 else ONE
            if multiplier > SEASONALITY_RULES["peak_multiplier"] or multiplier < SEASONALITY_RULES["low_multiplier"]:
                patterns.append(SeasonalPattern(
                    entity_id=entity_id,
                    month=month,
                    season=get_season_from_month(month),
                    demand_multiplier=multiplier,
                    confidence=confidence,
                    data_points=len(totals),
                ))

    patterns.sort(key=lambda p: (-p.confidence, str(p.entity_id), p.month))
    logs.append(f"INFO: Found {len(patterns)} seasonal patterns across {len(by_entity)} entities")
    return logs, patterns
