"""
Trend Analysis Module

Classifies an ordered numeric series (usually period totals) as increasing,
decreasing or stable, and reports:

- growth_rate_percent: endpoint-to-endpoint change (first -> last)
- direction: from the least-squares slope normalized by the series mean, so
  the same shape classifies the same way whether values are in cents or
  thousands
- confidence_percent: 100 - coefficient of variation, clamped to [0, 100]

The endpoint growth rate and the fitted direction can disagree on noisy
series; both are reported.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import List

from business_rules import (
    TREND_RULES,
    DIRECTION_INCREASING,
    DIRECTION_DECREASING,
    DIRECTION_STABLE,
)
from aggregation import get_series_values
from data_loader import to_decimal
from utils import (
    ZERO,
    EXACT_CONTEXT,
    exact_sum,
    exact_difference,
    safe_divide,
    decimal_mean,
    decimal_pstdev,
    clamp,
)

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class TrendSignal:
    direction: str = DIRECTION_STABLE
    growth_rate_percent: Decimal = ZERO
    confidence_percent: Decimal = ZERO
    slope: Decimal = ZERO
    normalized_slope: Decimal = ZERO
    data_points: int = 0


@dataclass(frozen=True)
class TrendPoint:
    """One period with its change against the previous period."""
    period_key: str
    value: Decimal
    change: Decimal = ZERO
    change_percent: Decimal = ZERO


def calculate_trend_slope(values) -> Decimal:
    """
    Ordinary least-squares slope of (index, value) pairs.

    Args:
        values: Ordered sequence of Decimal

    Returns:
        Decimal: Slope per period (0 for fewer than 2 points)
    """
    values = list(values)
    n = len(values)
    if n < 2:
        return ZERO

    with localcontext(EXACT_CONTEXT):
        sum_x = Decimal(n * (n - 1) // 2)
        sum_xx = Decimal((n - 1) * n * (2 * n - 1) // 6)
        sum_y = exact_sum(values)
        sum_xy = exact_sum(Decimal(i) * v for i, v in enumerate(values))
        numerator = n * sum_xy - sum_x * sum_y
        denominator = n * sum_xx - sum_x * sum_x

    return safe_divide(numerator, denominator)


def calculate_coefficient_of_variation(values) -> Decimal:
    """
    Population standard deviation divided by |mean|.

    Returns 0 when the mean is 0 (no division by zero).
    """
    values = list(values)
    mean = decimal_mean(values)
    if mean == 0:
        return ZERO
    return safe_divide(decimal_pstdev(values), abs(mean))


def classify_direction(normalized_slope: Decimal) -> str:
    """Map a mean-normalized slope onto a trend direction."""
    if normalized_slope > TREND_RULES["increasing_threshold"]:
        return DIRECTION_INCREASING
    if normalized_slope < TREND_RULES["decreasing_threshold"]:
        return DIRECTION_DECREASING
    return DIRECTION_STABLE


def analyze_trend(values) -> TrendSignal:
    """
    Analyze the trend of an ordered numeric series.

    Edge case: fewer than 2 points is not enough information, so the result
    is stable with 0 growth and 0 confidence.

    Args:
        values: Ordered sequence of numbers (Decimal, int, str or float)

    Returns:
        TrendSignal
    """
    values = [to_decimal(v) for v in values]
    n = len(values)
    if n < TREND_RULES["min_points"]:
        return TrendSignal(data_points=n)

    first, last = values[0], values[-1]
    growth = safe_divide(exact_difference(last, first), first) * HUNDRED if first > 0 else ZERO

    slope = calculate_trend_slope(values)
    mean = decimal_mean(values)
    normalized_slope = safe_divide(slope, abs(mean))

    cv = calculate_coefficient_of_variation(values)
    confidence = clamp(HUNDRED - cv * HUNDRED, ZERO, HUNDRED)

    return TrendSignal(
        direction=classify_direction(normalized_slope),
        growth_rate_percent=growth,
        confidence_percent=confidence,
        slope=slope,
        normalized_slope=normalized_slope,
        data_points=n,
    )


def calculate_trend_points(aggregates, metric: str = 'amount') -> List[TrendPoint]:
    """
    Build period-over-period change rows from ordered aggregates.

    Args:
        aggregates: Ordered list of AggregateResult
        metric: 'amount', 'quantity' or 'average_unit_value'

    Returns:
        list: TrendPoint per aggregate; the first point has no change
    """
    values = get_series_values(aggregates, metric)
    points = []
    previous = None
    for aggregate, value in zip(aggregates, values):
        if previous is None:
            change = ZERO
            change_percent = ZERO
        else:
            change = exact_difference(value, previous)
            change_percent = safe_divide(change, previous) * HUNDRED if previous > 0 else ZERO
        points.append(TrendPoint(
            period_key=aggregate.period_key,
            value=value,
            change=change,
            change_percent=change_percent,
        ))
        previous = value
    return points


def calculate_average_change(points) -> Decimal:
    """Mean period-over-period percent change (0 for fewer than 2 points)."""
    if len(points) < 2:
        return ZERO
    return decimal_mean(p.change_percent for p in points[1:])


def calculate_volatility(points) -> Decimal:
    """Standard deviation of period-over-period percent changes."""
    if len(points) < 2:
        return ZERO
    return decimal_pstdev(p.change_percent for p in points[1:])
