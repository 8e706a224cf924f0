"""
Tests for trend_analysis module
Tests direction classification, growth rate, confidence and period changes
"""

import pytest
from decimal import Decimal

from aggregation import AggregateResult
from trend_analysis import (
    TrendSignal,
    analyze_trend,
    calculate_trend_slope,
    calculate_coefficient_of_variation,
    calculate_trend_points,
    calculate_average_change,
    calculate_volatility,
)


class TestAnalyzeTrend:
    """Test trend classification of ordered series"""

    def test_empty_series(self):
        """Test that an empty series is stable with zero growth and confidence"""
        signal = analyze_trend([])
        assert signal.direction == 'stable'
        assert signal.growth_rate_percent == 0
        assert signal.confidence_percent == 0

    def test_single_point(self):
        """Test that one point is not enough to call a trend"""
        signal = analyze_trend([100])
        assert signal == TrendSignal(data_points=1)
        assert signal.direction == 'stable'
        assert signal.confidence_percent == 0

    def test_monotonic_increase(self):
        signal = analyze_trend([100, 150, 200])
        assert signal.direction == 'increasing'
        assert signal.growth_rate_percent == Decimal(100)
        assert signal.slope == Decimal(50)
        assert Decimal(0) < signal.confidence_percent < Decimal(100)

    def test_decrease(self):
        signal = analyze_trend([Decimal('200'), Decimal('150'), Decimal('100')])
        assert signal.direction == 'decreasing'
        assert signal.growth_rate_percent == Decimal(-50)

    def test_flat_series_is_stable_with_full_confidence(self):
        signal = analyze_trend([10, 10, 10, 10])
        assert signal.direction == 'stable'
        assert signal.confidence_percent == Decimal(100)

    def test_direction_does_not_depend_on_scale(self):
        """Test that cents and thousands classify the same way"""
        small = analyze_trend(['1.00', '1.01', '1.02'])
        large = analyze_trend([100000, 101000, 102000])
        assert small.direction == large.direction == 'stable'
        assert analyze_trend(['1.0', '1.1', '1.2']).direction == analyze_trend([1000, 1100, 1200]).direction == 'increasing'

    def test_negative_series_keeps_direction_and_confidence(self):
        """Test that a rising series of negative values is increasing with confidence below 100"""
        signal = analyze_trend([-10, -12, -8])
        assert signal.slope == Decimal(1)
        assert signal.normalized_slope == Decimal('0.1')
        assert signal.direction == 'increasing'
        assert Decimal(0) < signal.confidence_percent < Decimal(100)

    def test_zero_first_value_gives_zero_growth(self):
        signal = analyze_trend([0, 50, 100])
        assert signal.growth_rate_percent == 0
        assert signal.direction == 'increasing'

    def test_all_zero_series(self):
        signal = analyze_trend([0, 0, 0])
        assert signal.direction == 'stable'
        assert signal.growth_rate_percent == 0

    def test_idempotent(self):
        values = ['12.5', '13.75', '11.0', '19.25']
        assert analyze_trend(values) == analyze_trend(values)

    def test_confidence_is_clamped(self):
        """Test that a very noisy series bottoms out at 0 confidence"""
        signal = analyze_trend([1, 1000, 1, 1000, 1])
        assert signal.confidence_percent == 0


class TestTrendHelpers:
    """Test slope and coefficient of variation"""

    def test_slope(self):
        assert calculate_trend_slope([1, 3, 5, 7]) == Decimal(2)
        assert calculate_trend_slope([5]) == 0

    def test_coefficient_of_variation(self):
        assert calculate_coefficient_of_variation([Decimal(2), Decimal(4)]) == Decimal('0.3333333333333333333333333333')
        assert calculate_coefficient_of_variation([Decimal(0), Decimal(0)]) == 0


class TestTrendPoints:
    """Test period-over-period change rows"""

    @pytest.fixture
    def aggregates(self):
        return [
            AggregateResult('2024-01', Decimal('100'), 10, Decimal('10'), 2),
            AggregateResult('2024-02', Decimal('150'), 12, Decimal('12.5'), 2),
            AggregateResult('2024-03', Decimal('120'), 12, Decimal('10'), 2),
        ]

    def test_points(self, aggregates):
        points = calculate_trend_points(aggregates, 'amount')
        assert [p.period_key for p in points] == ['2024-01', '2024-02', '2024-03']
        assert points[0].change == 0
        assert points[1].change == Decimal(50)
        assert points[1].change_percent == Decimal(50)
        assert points[2].change_percent == Decimal(-20)

    def test_change_between_wide_values_is_exact(self):
        aggregates = [
            AggregateResult('2024-01', Decimal('0.02'), 0, Decimal(0), 1),
            AggregateResult('2024-02', Decimal('100000000000000000000000000000.01'), 0, Decimal(0), 1),
        ]
        points = calculate_trend_points(aggregates, 'amount')
        assert points[1].change == Decimal('99999999999999999999999999999.99')

    def test_average_change_and_volatility(self, aggregates):
        points = calculate_trend_points(aggregates, 'amount')
        assert calculate_average_change(points) == Decimal(15)
        assert calculate_volatility(points) == Decimal(35)

    def test_short_series(self):
        assert calculate_average_change([]) == 0
        assert calculate_volatility([]) == 0
