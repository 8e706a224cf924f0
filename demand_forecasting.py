"""
Demand Forecasting Module

Projects the next period's value from an ordered aggregate series.
Uses simple, interpretable methods.

Key Features:
- Trend-adjusted moving average (primary): mean of the trailing window of up
  to 7 periods, x1.10 when increasing, x0.90 when decreasing, x1.00 when stable
- 95% band around the primary forecast from the window's standard deviation
- Rolling moving-average and exponential smoothing forecast series
- Linear regression projection as an alternative method with the same output
- Forecast accuracy metric (MAPE)

The primary method is a deliberate heuristic, not a statistical model.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

import numpy as np
from scipy.stats import linregress

from business_rules import (
    FORECAST_RULES,
    FORECAST_METHOD_HEURISTIC,
    FORECAST_METHOD_REGRESSION,
    DIRECTION_STABLE,
    get_forecast_adjustment,
    validate_direction,
)
from data_loader import to_decimal
from trend_analysis import analyze_trend, calculate_coefficient_of_variation
from utils import ZERO, decimal_mean, decimal_pstdev, safe_divide, clamp

ONE = Decimal(1)
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class ForecastPoint:
    forecasted_value: Decimal = ZERO
    window_size: int = 0
    direction: str = DIRECTION_STABLE
    method: str = FORECAST_METHOD_HEURISTIC
    lower_bound: Decimal = ZERO
    upper_bound: Decimal = ZERO


@dataclass(frozen=True)
class SeriesForecast:
    """One-step-ahead forecast for a historical period (used for backtesting)."""
    period_index: int
    period_key: Optional[str]
    actual_value: Decimal
    predicted_value: Decimal
    confidence: Decimal
    lower_bound: Decimal
    upper_bound: Decimal


def _interval(center: Decimal, spread: Decimal):
    margin = spread * FORECAST_RULES["interval_z_score"]
    return max(ZERO, center - margin), center + margin


def generate_forecast(values, direction=DIRECTION_STABLE, window_size: Optional[int] = None) -> ForecastPoint:
    """
    Forecast the next period with the trend-adjusted moving average.

    Args:
        values: Ordered series of period values
        direction: Trend direction from analyze_trend()
        window_size: Trailing window length (default FORECAST_RULES['window_size'])

    Returns:
        ForecastPoint. An empty series gives a forecast of 0 with window size 0.
    """
    direction = validate_direction(direction)
    values = [to_decimal(v) for v in values]
    if window_size is None:
        window_size = FORECAST_RULES["window_size"]
    if window_size < 1:
        raise ValueError(f"Forecast window must be at least 1 period, got {window_size}")

    if not values:
        return ForecastPoint(direction=direction)

    window = values[-window_size:]
    adjustment = get_forecast_adjustment(direction)
    forecast = decimal_mean(window) * adjustment
    lower, upper = _interval(forecast, decimal_pstdev(window) * adjustment)

    return ForecastPoint(
        forecasted_value=forecast,
        window_size=len(window),
        direction=direction,
        method=FORECAST_METHOD_HEURISTIC,
        lower_bound=lower,
        upper_bound=upper,
    )


def project_linear_regression(values, direction=None) -> ForecastPoint:
    """
    Forecast the next period by extending a least-squares line.

    Same contract as generate_forecast(); the projection is floored at 0 and
    the band uses the standard deviation of the fit residuals.

    Args:
        values: Ordered series of period values
        direction: Reported direction; derived with analyze_trend() if None

    Returns:
        ForecastPoint with method 'linear_regression'
    """
    values = [to_decimal(v) for v in values]
    direction = validate_direction(direction) if direction is not None else analyze_trend(values).direction

    if not values:
        return ForecastPoint(direction=direction, method=FORECAST_METHOD_REGRESSION)
    if len(values) == 1:
        return ForecastPoint(
            forecasted_value=values[0],
            window_size=1,
            direction=direction,
            method=FORECAST_METHOD_REGRESSION,
            lower_bound=max(ZERO, values[0]),
            upper_bound=values[0],
        )

    x = np.arange(len(values), dtype=float)
    y = np.array([float(v) for v in values], dtype=float)
    fit = linregress(x, y)
    projected = max(0.0, fit.intercept + fit.slope * len(values))
    residual_std = float(np.std(y - (fit.intercept + fit.slope * x)))

    forecast = to_decimal(projected)
    lower, upper = _interval(forecast, to_decimal(residual_std))

    return ForecastPoint(
        forecasted_value=forecast,
        window_size=len(values),
        direction=direction,
        method=FORECAST_METHOD_REGRESSION,
        lower_bound=lower,
        upper_bound=upper,
    )


def calculate_moving_average_forecasts(values, period: Optional[int] = None, period_keys=None) -> List[SeriesForecast]:
    """
    Rolling moving-average forecasts: each period predicted from the
    `period` values before it.

    Args:
        values: Ordered series of period values
        period: Window length (default FORECAST_RULES['window_size'])
        period_keys: Optional period keys aligned with values

    Returns:
        list: SeriesForecast per predictable period (empty if the series is
              not longer than the window)
    """
    values = [to_decimal(v) for v in values]
    if period is None:
        period = FORECAST_RULES["window_size"]
    if period < 1 or len(values) <= period:
        return []

    forecasts = []
    for i in range(period, len(values)):
        window = values[i - period:i]
        average = decimal_mean(window)
        confidence = clamp(ONE - calculate_coefficient_of_variation(window), ZERO, ONE)
        lower, upper = _interval(average, decimal_pstdev(window))
        forecasts.append(SeriesForecast(
            period_index=i,
            period_key=period_keys[i] if period_keys is not None else None,
            actual_value=values[i],
            predicted_value=average,
            confidence=confidence,
            lower_bound=lower,
            upper_bound=upper,
        ))
    return forecasts


def calculate_exponential_smoothing(values, alpha=None) -> Decimal:
    """
    Calculate simple exponential smoothing forecast

    Args:
        values: Array of historical values
        alpha: Smoothing factor (0-1), higher = more weight on recent data

    Returns:
        Decimal: Smoothed forecast value
    """
    values = [to_decimal(v) for v in values]
    alpha = to_decimal(FORECAST_RULES["smoothing_alpha"] if alpha is None else alpha)
    if not ZERO < alpha <= ONE:
        raise ValueError(f"Smoothing alpha must be in (0, 1], got {alpha}")
    if len(values) == 0:
        return ZERO

    smoothed = values[0]
    for value in values[1:]:
        smoothed = alpha * value + (ONE - alpha) * smoothed

    return smoothed


def calculate_exponential_smoothing_forecasts(values, alpha=None, period_keys=None) -> List[SeriesForecast]:
    """
    Exponential smoothing series with an error-based confidence per period.

    Args:
        values: Ordered series of period values
        alpha: Smoothing factor (default FORECAST_RULES['smoothing_alpha'])
        period_keys: Optional period keys aligned with values

    Returns:
        list: SeriesForecast for every period after the first
    """
    values = [to_decimal(v) for v in values]
    alpha = to_decimal(FORECAST_RULES["smoothing_alpha"] if alpha is None else alpha)
    if not ZERO < alpha <= ONE:
        raise ValueError(f"Smoothing alpha must be in (0, 1], got {alpha}")
    if len(values) < 2:
        return []

    forecasts = []
    smoothed = values[0]
    for i in range(1, len(values)):
        smoothed = alpha * values[i] + (ONE - alpha) * smoothed
        error = abs(values[i] - smoothed)
        if values[i] == 0:
            confidence = ONE if error == 0 else ZERO
        else:
            confidence = clamp(ONE - safe_divide(error, abs(values[i])), ZERO, ONE)
        margin = error * 2
        forecasts.append(SeriesForecast(
            period_index=i,
            period_key=period_keys[i] if period_keys is not None else None,
            actual_value=values[i],
            predicted_value=smoothed,
            confidence=confidence,
            lower_bound=max(ZERO, smoothed - margin),
            upper_bound=smoothed + margin,
        ))
    return forecasts


def calculate_mape(actual, forecast) -> Decimal:
    """
    Calculate Mean Absolute Percentage Error

    Args:
        actual: Actual value
        forecast: Forecasted value

    Returns:
        Decimal: MAPE percentage
    """
    actual = to_decimal(actual)
    forecast = to_decimal(forecast)
    if actual == 0:
        return HUNDRED if forecast != 0 else ZERO

    return abs(safe_divide(actual - forecast, actual)) * HUNDRED
