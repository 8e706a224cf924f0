"""
Tests for business_rules module
Tests rule lookups and input validators
"""

import pytest
from decimal import Decimal

from business_rules import (
    PERIOD_TYPES,
    FORECAST_RULES,
    validate_period_type,
    validate_direction,
    validate_series_metric,
    get_forecast_adjustment,
    get_yoy_metric_field,
    get_season_from_month,
)


class TestValidators:
    """Test fail-fast validation of input shape"""

    def test_period_types_are_canonicalized(self):
        """Test that period types are accepted case-insensitively"""
        assert validate_period_type('Monthly') == 'monthly'
        assert validate_period_type(' weekly ') == 'weekly'
        assert set(PERIOD_TYPES) == {'daily', 'weekly', 'monthly'}

    @pytest.mark.parametrize('bad', ['quarterly', '', None, 7])
    def test_unknown_period_type_raises(self, bad):
        """Test that anything outside the three period types is rejected"""
        with pytest.raises(ValueError, match="Invalid period type"):
            validate_period_type(bad)

    def test_direction_validation(self):
        assert validate_direction('INCREASING') == 'increasing'
        with pytest.raises(ValueError):
            validate_direction('sideways')

    def test_series_metric_validation(self):
        assert validate_series_metric('average_unit_value') == 'average_unit_value'
        with pytest.raises(ValueError, match="Invalid series metric"):
            validate_series_metric('revenue')


class TestRuleLookups:
    """Test accessor functions over the rule dictionaries"""

    def test_forecast_adjustments(self):
        """Test the trend adjustment factors"""
        assert get_forecast_adjustment('increasing') == Decimal('1.10')
        assert get_forecast_adjustment('decreasing') == Decimal('0.90')
        assert get_forecast_adjustment('stable') == Decimal('1.00')
        assert FORECAST_RULES["window_size"] == 7

    def test_yoy_metric_mapping(self):
        assert get_yoy_metric_field('revenue') == 'amount'
        assert get_yoy_metric_field('production') == 'quantity'
        assert get_yoy_metric_field('costs') == 'amount'
        with pytest.raises(ValueError, match="Invalid metric"):
            get_yoy_metric_field('profit')

    def test_seasons(self):
        """Test month to season mapping including the December wrap"""
        assert get_season_from_month(12) == 'winter'
        assert get_season_from_month(1) == 'winter'
        assert get_season_from_month(4) == 'spring'
        assert get_season_from_month(7) == 'summer'
        assert get_season_from_month(10) == 'autumn'
        with pytest.raises(ValueError):
            get_season_from_month(13)
