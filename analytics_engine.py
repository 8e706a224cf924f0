"""
Analytics Engine
================
Entry points that run the full pipeline for a tenant/company scope:

raw records -> validation -> [start, end) and entity filter -> period buckets
-> exact aggregates -> trend signal -> next-period forecast

The record source is responsible for authorization and tenant filtering;
company_id is carried through for labelling only.

Every entry point returns (logs, result). Results are always fully populated:
empty input produces zero-valued results, not missing fields.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import pandas as pd

from business_rules import (
    DIRECTION_INCREASING,
    DIRECTION_DECREASING,
    validate_period_type,
    validate_series_metric,
)
from data_loader import prepare_records, filter_records, parse_timestamp
from period_bucketing import bucket_records, get_period_keys_in_range
from aggregation import aggregate_buckets, fill_missing_periods, get_series_values
from trend_analysis import (
    TrendSignal,
    analyze_trend,
    calculate_trend_points,
    calculate_average_change,
    calculate_volatility,
)
from demand_forecasting import ForecastPoint, generate_forecast
from utils import ZERO, exact_sum, map_in_parallel


@dataclass(frozen=True)
class AnalysisScope:
    """
    Inputs shared by every entry point.

    Raises:
        ValueError: On an unknown period type, an unparseable bound or an
                    empty/inverted date range
    """
    company_id: object
    start: pd.Timestamp
    end: pd.Timestamp
    period_type: str
    entity_ids: Optional[tuple] = None

    def __post_init__(self):
        object.__setattr__(self, 'period_type', validate_period_type(self.period_type))

        start = parse_timestamp(self.start)
        end = parse_timestamp(self.end)
        if start is None or end is None:
            raise ValueError(f"Unparseable or out-of-range date range: {self.start!r} to {self.end!r}")
        if start >= end:
            raise ValueError(f"Empty date range: start {start} is not before end {end}")
        object.__setattr__(self, 'start', start)
        object.__setattr__(self, 'end', end)

        if self.entity_ids is not None:
            object.__setattr__(self, 'entity_ids', tuple(self.entity_ids))


@dataclass(frozen=True)
class TrendReport:
    scope: AnalysisScope
    metric: str
    aggregates: tuple = ()
    points: tuple = ()
    signal: TrendSignal = field(default_factory=TrendSignal)
    forecast: ForecastPoint = field(default_factory=ForecastPoint)
    average_change: Decimal = ZERO
    volatility: Decimal = ZERO
    total_amount: Decimal = ZERO
    total_quantity: int = 0
    record_count: int = 0
    skipped_record_count: int = 0


@dataclass(frozen=True)
class EntityForecast:
    """Trend and next-period forecast for one entity."""
    entity_id: object
    signal: TrendSignal
    forecast: ForecastPoint
    periods: int = 0
    total: Decimal = ZERO
    last_value: Decimal = ZERO


def _scoped_records(raw_records, scope: AnalysisScope):
    prep_logs, records, quality = prepare_records(raw_records)
    records = filter_records(records, start=scope.start, end=scope.end, entity_ids=scope.entity_ids)
    return prep_logs, records, quality


def analyze_trends(raw_records, scope: AnalysisScope, metric: str = 'amount', fill_gaps: bool = False):
    """
    Bucket, aggregate and analyze one series for the scope.

    Args:
        raw_records: Records as accepted by prepare_records()
        scope: AnalysisScope
        metric: 'amount', 'quantity' or 'average_unit_value'
        fill_gaps: Insert zero-valued periods for every period in the range
                   that has no records

    Returns:
        tuple: (logs, TrendReport)
    """
    metric = validate_series_metric(metric)
    logs = [f"--- Trend Analysis ({scope.period_type}, {metric}) ---"]

    prep_logs, records, quality = _scoped_records(raw_records, scope)
    logs.extend(prep_logs)
    logs.append(f"INFO: {len(records)} records inside [{scope.start.date()}, {scope.end.date()})")

    aggregates = aggregate_buckets(bucket_records(records, scope.period_type))
    if fill_gaps:
        aggregates = fill_missing_periods(
            aggregates, get_period_keys_in_range(scope.start, scope.end, scope.period_type)
        )

    values = get_series_values(aggregates, metric)
    signal = analyze_trend(values)
    forecast = generate_forecast(values, signal.direction)
    points = calculate_trend_points(aggregates, metric)

    if len(values) < 2:
        logs.append(f"WARNING: {len(values)} periods with data; trend defaults to stable")
    else:
        logs.append(
            f"INFO: {signal.direction} over {len(values)} periods "
            f"(growth {signal.growth_rate_percent:.2f}%, confidence {signal.confidence_percent:.2f}%)"
        )

    report = TrendReport(
        scope=scope,
        metric=metric,
        aggregates=tuple(aggregates),
        points=tuple(points),
        signal=signal,
        forecast=forecast,
        average_change=calculate_average_change(points),
        volatility=calculate_volatility(points),
        total_amount=exact_sum(a.total_amount for a in aggregates),
        total_quantity=sum(a.total_quantity for a in aggregates),
        record_count=len(records),
        skipped_record_count=quality.skipped_record_count,
    )
    return logs, report


def _forecast_entity(entity_id, records, period_type, metric):
    # Each entity runs sequentially; the fan-out happens across entities
    aggregates = aggregate_buckets(bucket_records(records, period_type), n_jobs=1)
    values = get_series_values(aggregates, metric)
    signal = analyze_trend(values)
    return EntityForecast(
        entity_id=entity_id,
        signal=signal,
        forecast=generate_forecast(values, signal.direction),
        periods=len(values),
        total=exact_sum(values),
        last_value=values[-1] if values else ZERO,
    )


def forecast_by_entity(raw_records, scope: AnalysisScope, metric: str = 'quantity', n_jobs=None):
    """
    Trend and forecast every entity in the scope independently.

    Records without an entity id are ignored. Entities are processed in
    parallel once there are enough of them (see PARALLEL_RULES); the result
    order is the same either way.

    Args:
        raw_records: Records as accepted by prepare_records()
        scope: AnalysisScope
        metric: 'amount', 'quantity' or 'average_unit_value'
        n_jobs: Worker threads (None = automatic, 1 = sequential)

    Returns:
        tuple: (logs, forecasts) with one EntityForecast per entity, ordered
               by entity id
    """
    metric = validate_series_metric(metric)
    logs = [f"--- Entity Forecasts ({scope.period_type}, {metric}) ---"]

    prep_logs, records, _ = _scoped_records(raw_records, scope)
    logs.extend(prep_logs)

    by_entity = {}
    for record in records:
        if record.entity_id is not None:
            by_entity.setdefault(record.entity_id, []).append(record)

    if not by_entity:
        logs.append("WARNING: No entity-tagged records in scope")
        return logs, []

    entity_ids = sorted(by_entity, key=str)
    forecasts = map_in_parallel(
        lambda entity_id: _forecast_entity(entity_id, by_entity[entity_id], scope.period_type, metric),
        entity_ids,
        n_jobs=n_jobs,
    )

    increasing = sum(1 for f in forecasts if f.signal.direction == DIRECTION_INCREASING)
    decreasing = sum(1 for f in forecasts if f.signal.direction == DIRECTION_DECREASING)
    logs.append(f"INFO: Forecast {len(forecasts)} entities ({increasing} increasing, {decreasing} decreasing)")
    return logs, forecasts
