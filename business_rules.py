"""
Business Rules Configuration
Centralized definitions for thresholds, windows, and classification rules used
by the analytics engine.
This file allows rules to be changed in one place without modifying tool code.
"""

from decimal import Decimal

# ===== PERIOD TYPES =====

PERIOD_DAILY = 'daily'
PERIOD_WEEKLY = 'weekly'
PERIOD_MONTHLY = 'monthly'

PERIOD_TYPES = (PERIOD_DAILY, PERIOD_WEEKLY, PERIOD_MONTHLY)

PERIOD_KEY_FORMATS = {
    PERIOD_DAILY: 'YYYY-MM-DD',
    PERIOD_WEEKLY: 'YYYY-Www',  # ISO-8601 year and week (Monday start)
    PERIOD_MONTHLY: 'YYYY-MM',
}


# ===== TREND RULES =====

DIRECTION_INCREASING = 'increasing'
DIRECTION_DECREASING = 'decreasing'
DIRECTION_STABLE = 'stable'

DIRECTIONS = (DIRECTION_INCREASING, DIRECTION_DECREASING, DIRECTION_STABLE)

TREND_RULES = {
    # Slope is divided by |mean| before comparison, so thresholds are a
    # fraction of the series level per period (0.02 = 2% per period)
    "increasing_threshold": Decimal("0.02"),
    "decreasing_threshold": Decimal("-0.02"),
    "min_points": 2,
}


# ===== FORECAST RULES =====

FORECAST_RULES = {
    "window_size": 7,
    "adjustments": {
        DIRECTION_INCREASING: Decimal("1.10"),
        DIRECTION_DECREASING: Decimal("0.90"),
        DIRECTION_STABLE: Decimal("1.00"),
    },
    "smoothing_alpha": Decimal("0.3"),
    "interval_z_score": Decimal("1.96"),  # 95% band
}

FORECAST_METHOD_HEURISTIC = 'trend_adjusted_moving_average'
FORECAST_METHOD_REGRESSION = 'linear_regression'


# ===== SEASONALITY RULES =====

SEASONALITY_RULES = {
    "peak_multiplier": Decimal("1.2"),
    "low_multiplier": Decimal("0.8"),
    "recommended_months": 24,
    # False keeps multi-year monthly totals; True divides each month by the
    # number of distinct years present before computing deviation
    "average_per_year": False,
}

SEASONS = {
    'winter': (12, 1, 2),
    'spring': (3, 4, 5),
    'summer': (6, 7, 8),
    'autumn': (9, 10, 11),
}


# ===== YEAR-OVER-YEAR RULES =====

YOY_RULES = {
    "metrics": {
        "revenue": "amount",
        "production": "quantity",
        "costs": "amount",
    },
    "period_type": PERIOD_MONTHLY,
}


# ===== REORDER RULES =====

REORDER_RULES = {
    "usage_window_days": 30,
    "default_max_days": 14,
    "coverage_multiplier": Decimal("2"),  # suggested qty covers max_days twice
    "urgent_fraction": Decimal("0.5"),    # urgent below max_days / 2
    "usage_metrics": ("quantity", "amount"),
}


# ===== PARALLEL EXECUTION RULES =====

PARALLEL_RULES = {
    # Only fan out when the work list is large enough to be worth it
    "min_items": 50,
    "max_jobs": 4,
}


# ===== SERIES METRICS =====

SERIES_METRICS = ('amount', 'quantity', 'average_unit_value')


# ===== HELPER FUNCTIONS =====

def validate_period_type(period_type):
    """
    Validate a period type and return it in canonical form.

    Args:
        period_type: One of 'daily', 'weekly', 'monthly' (case-insensitive)

    Returns:
        str: Canonical lower-case period type

    Raises:
        ValueError: If the period type is not one of the supported values
    """
    if isinstance(period_type, str) and period_type.strip().lower() in PERIOD_TYPES:
        return period_type.strip().lower()
    raise ValueError(
        f"Invalid period type {period_type!r}. Expected one of: {', '.join(PERIOD_TYPES)}"
    )


def validate_direction(direction):
    """Validate a trend direction string and return it in canonical form."""
    if isinstance(direction, str) and direction.strip().lower() in DIRECTIONS:
        return direction.strip().lower()
    raise ValueError(
        f"Invalid trend direction {direction!r}. Expected one of: {', '.join(DIRECTIONS)}"
    )


def validate_series_metric(metric):
    """Validate the aggregate field a series is built from."""
    if metric in SERIES_METRICS:
        return metric
    raise ValueError(
        f"Invalid series metric {metric!r}. Expected one of: {', '.join(SERIES_METRICS)}"
    )


def get_forecast_adjustment(direction):
    """
    Get the multiplicative forecast adjustment for a trend direction.

    Args:
        direction: 'increasing', 'decreasing' or 'stable'

    Returns:
        Decimal: Adjustment factor (1.10 / 0.90 / 1.00 by default)
    """
    return FORECAST_RULES["adjustments"][validate_direction(direction)]


def get_yoy_metric_field(metric):
    """
    Map a year-over-year metric selector to the aggregate field it sums.

    Args:
        metric: 'revenue', 'production' or 'costs'

    Returns:
        str: 'amount' or 'quantity'
    """
    fields = YOY_RULES["metrics"]
    if metric not in fields:
        raise ValueError(
            f"Invalid metric {metric!r}. Expected one of: {', '.join(fields)}"
        )
    return fields[metric]


def get_season_from_month(month):
    """
    Get the (northern hemisphere) season name for a calendar month.

    Args:
        month: Month number (1-12)

    Returns:
        str: 'winter', 'spring', 'summer' or 'autumn'
    """
    for season, months in SEASONS.items():
        if month in months:
            return season
    raise ValueError(f"Invalid month {month!r}. Expected 1-12")
