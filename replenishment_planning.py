"""
Replenishment Planning Module
=============================
Reorder suggestions from recent usage and current stock.

Key Features:
- Daily usage rate = usage in the trailing window / window length in days
- Days until depletion = current stock / daily usage rate
- Entities with no measurable usage get an UNBOUNDED depletion horizon,
  a tagged value that never compares as a day count
- Suggested quantity = configured reorder quantity, or enough to cover the
  horizon twice (never less than current stock)
- Sorted most urgent first, UNBOUNDED last
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import pandas as pd

from business_rules import REORDER_RULES
from data_loader import prepare_records, filter_records, parse_timestamp, to_decimal
from period_bucketing import PeriodBucket
from aggregation import aggregate_bucket
from utils import ZERO, safe_divide, map_in_parallel


class _Unbounded:
    """No measurable consumption, therefore no depletion horizon."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'UNBOUNDED'

    def __str__(self):
        return 'unbounded'

    def __reduce__(self):
        return (_Unbounded, ())


UNBOUNDED = _Unbounded()


def is_unbounded(value) -> bool:
    return value is UNBOUNDED


@dataclass(frozen=True)
class StockLevel:
    """Current stock snapshot for one entity, with optional reorder settings."""
    current_stock: Decimal
    reorder_point: Optional[Decimal] = None
    reorder_quantity: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, 'current_stock', to_decimal(self.current_stock))
        if self.reorder_point is not None:
            object.__setattr__(self, 'reorder_point', to_decimal(self.reorder_point))
        if self.reorder_quantity is not None:
            object.__setattr__(self, 'reorder_quantity', to_decimal(self.reorder_quantity))


@dataclass(frozen=True)
class ReorderSuggestion:
    entity_id: object
    current_stock: Decimal
    daily_usage_rate: Decimal
    days_until_depletion: object  # Decimal or UNBOUNDED
    suggested_reorder_quantity: Decimal
    urgent: bool
    reorder_point: Optional[Decimal] = None


def _to_stock_level(value) -> StockLevel:
    if isinstance(value, StockLevel):
        return value
    if isinstance(value, dict):
        return StockLevel(
            current_stock=value.get('current_stock', ZERO),
            reorder_point=value.get('reorder_point'),
            reorder_quantity=value.get('reorder_quantity'),
        )
    return StockLevel(current_stock=value)


def calculate_daily_usage_rates(records, window_days, usage_metric: str = 'quantity'):
    """
    Calculate the average daily usage per entity.

    Formula: Daily Usage = Total Usage in Window / Window Length (days)

    Args:
        records: Validated Record values already restricted to the window
        window_days: Window length in days
        usage_metric: 'quantity' (unit counts) or 'amount' (decimal usage)

    Returns:
        dict: {entity_id: Decimal daily usage}
    """
    if usage_metric not in REORDER_RULES["usage_metrics"]:
        raise ValueError(
            f"Invalid usage metric {usage_metric!r}. Expected one of: {', '.join(REORDER_RULES['usage_metrics'])}"
        )
    if window_days <= 0:
        raise ValueError(f"Usage window must be positive, got {window_days}")

    by_entity = {}
    for record in records:
        by_entity.setdefault(record.entity_id, []).append(record)

    rates = {}
    for entity_id, entity_records in by_entity.items():
        totals = aggregate_bucket(PeriodBucket(period_key='window', period_type='window', records=tuple(entity_records)))
        usage = Decimal(totals.total_quantity) if usage_metric == 'quantity' else totals.total_amount
        rates[entity_id] = safe_divide(usage, window_days)
    return rates


def calculate_days_until_depletion(current_stock, daily_usage_rate):
    """
    Calculate how many days current stock lasts at the daily usage rate.

    Formula: Days Until Depletion = Current Stock / Daily Usage

    Returns:
        Decimal days, or UNBOUNDED when there is no usage
    """
    daily_usage_rate = to_decimal(daily_usage_rate)
    if daily_usage_rate <= 0:
        return UNBOUNDED
    return safe_divide(to_decimal(current_stock), daily_usage_rate)


def should_reorder(days_until_depletion, current_stock, max_days, reorder_point=None) -> bool:
    """
    Inclusion rule: depletes within the horizon, or at/below the reorder point.
    """
    if not is_unbounded(days_until_depletion) and days_until_depletion < max_days:
        return True
    return reorder_point is not None and to_decimal(current_stock) <= to_decimal(reorder_point)


def build_reorder_suggestion(entity_id, current_stock, daily_usage_rate, max_days,
                             reorder_point=None, reorder_quantity=None) -> ReorderSuggestion:
    """
    Build the reorder suggestion for one entity.

    Formula (no configured reorder quantity):
    Suggested = max(Daily Usage * Max Days * 2, Current Stock)

    A configured reorder quantity of 0 counts as not configured.

    Args:
        entity_id: Entity identifier
        current_stock: Current stock on hand
        daily_usage_rate: Average daily usage
        max_days: Planning horizon in days
        reorder_point: Optional configured reorder point
        reorder_quantity: Optional configured reorder quantity

    Returns:
        ReorderSuggestion
    """
    current_stock = to_decimal(current_stock)
    daily_usage_rate = to_decimal(daily_usage_rate)
    max_days = to_decimal(max_days)

    days = calculate_days_until_depletion(current_stock, daily_usage_rate)

    if reorder_quantity is not None and to_decimal(reorder_quantity) > 0:
        suggested = to_decimal(reorder_quantity)
    else:
        suggested = max(daily_usage_rate * max_days * REORDER_RULES["coverage_multiplier"], current_stock)

    urgent = not is_unbounded(days) and days < max_days * REORDER_RULES["urgent_fraction"]

    return ReorderSuggestion(
        entity_id=entity_id,
        current_stock=current_stock,
        daily_usage_rate=daily_usage_rate,
        days_until_depletion=days,
        suggested_reorder_quantity=suggested,
        urgent=urgent,
        reorder_point=to_decimal(reorder_point) if reorder_point is not None else None,
    )


def depletion_sort_key(suggestion: ReorderSuggestion):
    """Most urgent first; UNBOUNDED after every finite horizon."""
    if is_unbounded(suggestion.days_until_depletion):
        return (1, ZERO, str(suggestion.entity_id))
    return (0, suggestion.days_until_depletion, str(suggestion.entity_id))


def generate_reorder_suggestions(stock_levels, usage_records, max_days=None, window_days=None,
                                 as_of=None, usage_metric: str = 'quantity', n_jobs=None):
    """
    Generate reorder suggestions for every stocked entity that needs one.

    Args:
        stock_levels: {entity_id: StockLevel | number | dict} current stock snapshot
        usage_records: Usage records as accepted by prepare_records()
        max_days: Planning horizon in days (default REORDER_RULES['default_max_days'])
        window_days: Usage window in days (default REORDER_RULES['usage_window_days'])
        as_of: If given, usage is restricted to [as_of - window_days, as_of);
               otherwise the records are taken to already cover the window
        usage_metric: 'quantity' or 'amount'
        n_jobs: Worker threads for the per-entity fan-out (None = automatic)

    Returns:
        tuple: (logs, suggestions)
        - logs: List of processing messages
        - suggestions: List of ReorderSuggestion, most urgent first

    Raises:
        ValueError: If max_days or window_days is not positive or as_of is unparseable
    """
    max_days = REORDER_RULES["default_max_days"] if max_days is None else max_days
    window_days = REORDER_RULES["usage_window_days"] if window_days is None else window_days
    if to_decimal(max_days) <= 0:
        raise ValueError(f"Reorder horizon must be positive, got {max_days}")
    if window_days <= 0:
        raise ValueError(f"Usage window must be positive, got {window_days}")

    logs = ["--- Reorder Advisor ---"]
    prep_logs, records, _ = prepare_records(usage_records)
    logs.extend(prep_logs)

    if as_of is not None:
        as_of_ts = parse_timestamp(as_of)
        if as_of_ts is None:
            raise ValueError(f"Unparseable as_of date: {as_of!r}")
        records = filter_records(records, start=as_of_ts - pd.Timedelta(days=window_days), end=as_of_ts)
        logs.append(f"INFO: Usage window {window_days} days ending {as_of_ts.date()}")

    rates = calculate_daily_usage_rates(records, window_days, usage_metric)
    levels = {entity_id: _to_stock_level(level) for entity_id, level in (stock_levels or {}).items()}

    if not levels:
        logs.append("WARNING: No stock levels provided")
        return logs, []

    def assess(entity_id):
        level = levels[entity_id]
        return build_reorder_suggestion(
            entity_id,
            level.current_stock,
            rates.get(entity_id, ZERO),
            max_days,
            reorder_point=level.reorder_point,
            reorder_quantity=level.reorder_quantity,
        )

    assessed = map_in_parallel(assess, list(levels), n_jobs=n_jobs)
    suggestions = [
        s for s in assessed
        if should_reorder(s.days_until_depletion, s.current_stock, to_decimal(max_days), s.reorder_point)
    ]
    suggestions.sort(key=depletion_sort_key)

    urgent_count = sum(1 for s in suggestions if s.urgent)
    logs.append(f"INFO: {len(suggestions)} of {len(levels)} entities need reordering ({urgent_count} urgent)")
    return logs, suggestions
