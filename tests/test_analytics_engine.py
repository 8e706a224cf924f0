"""
Tests for analytics_engine module
Tests the scoped pipeline entry points end to end
"""

import pytest
import pandas as pd
from decimal import Decimal

from analytics_engine import AnalysisScope, TrendReport, analyze_trends, forecast_by_entity
from conftest import assert_log_contains


@pytest.fixture
def q1_scope():
    return AnalysisScope(company_id='acme', start='2024-01-01', end='2024-04-01', period_type='Monthly')


class TestAnalysisScope:
    """Test fail-fast validation of the scope"""

    def test_normalizes_inputs(self, q1_scope):
        assert q1_scope.period_type == 'monthly'
        assert q1_scope.start == pd.Timestamp('2024-01-01', tz='UTC')
        assert q1_scope.entity_ids is None

    def test_entity_ids_become_tuple(self):
        scope = AnalysisScope('acme', '2024-01-01', '2024-02-01', 'daily', entity_ids=['R1'])
        assert scope.entity_ids == ('R1',)

    def test_invalid_period_type(self):
        with pytest.raises(ValueError, match="Invalid period type"):
            AnalysisScope('acme', '2024-01-01', '2024-02-01', 'hourly')

    @pytest.mark.parametrize('start,end', [
        ('2024-02-01', '2024-01-01'),
        ('2024-01-01', '2024-01-01'),
        ('2024-01-01', 'later'),
        ('2024-01-01', '2400-01-01'),
    ])
    def test_invalid_range(self, start, end):
        with pytest.raises(ValueError):
            AnalysisScope('acme', start, end, 'daily')


class TestAnalyzeTrends:
    """Test the trend entry point"""

    def test_rising_revenue(self, monthly_sales_records, q1_scope):
        logs, report = analyze_trends(monthly_sales_records, q1_scope)
        assert [a.period_key for a in report.aggregates] == ['2024-01', '2024-02', '2024-03']
        assert report.signal.direction == 'increasing'
        assert report.signal.growth_rate_percent == Decimal(100)
        assert report.forecast.forecasted_value == Decimal(165)
        assert abs(report.average_change - Decimal('41.6667')) < Decimal('0.001')
        assert report.record_count == 6
        assert_log_contains(logs, "INFO: increasing over 3 periods (growth 100.00%")

    def test_conservation(self, monthly_sales_records, q1_scope):
        _, report = analyze_trends(monthly_sales_records, q1_scope)
        assert report.total_amount == Decimal('450.00')
        assert report.total_quantity == 45

    def test_window_excludes_end(self, monthly_sales_records):
        scope = AnalysisScope('acme', '2024-01-01', '2024-03-10T08:00:00Z', 'monthly')
        _, report = analyze_trends(monthly_sales_records, scope)
        assert [a.period_key for a in report.aggregates] == ['2024-01', '2024-02']

    def test_fill_gaps(self, monthly_sales_records):
        scope = AnalysisScope('acme', '2024-01-01', '2024-06-01', 'monthly')
        _, report = analyze_trends(monthly_sales_records, scope, fill_gaps=True)
        assert [a.period_key for a in report.aggregates] == ['2024-01', '2024-02', '2024-03', '2024-04', '2024-05']
        assert report.aggregates[-1].total_amount == 0
        assert len(report.points) == 5

    def test_quantity_metric(self, monthly_sales_records, q1_scope):
        _, report = analyze_trends(monthly_sales_records, q1_scope, metric='quantity')
        assert [p.value for p in report.points] == [Decimal(10), Decimal(15), Decimal(20)]

    def test_empty_input_is_fully_populated(self, q1_scope):
        """Test that no data still gives a complete zero-valued report"""
        logs, report = analyze_trends([], q1_scope)
        assert report == TrendReport(scope=q1_scope, metric='amount')
        assert report.signal.direction == 'stable'
        assert report.forecast.forecasted_value == 0
        assert_log_contains(logs, "WARNING: 0 periods with data")

    def test_skipped_records_reported(self, dirty_records):
        scope = AnalysisScope('acme', '2024-05-01', '2024-06-01', 'daily')
        _, report = analyze_trends(dirty_records, scope)
        assert report.record_count == 1
        assert report.skipped_record_count == 5

    def test_idempotent(self, monthly_sales_records, q1_scope):
        assert analyze_trends(monthly_sales_records, q1_scope) == analyze_trends(monthly_sales_records, q1_scope)

    def test_invalid_metric(self, q1_scope):
        with pytest.raises(ValueError):
            analyze_trends([], q1_scope, metric='profit')


class TestForecastByEntity:
    """Test per-entity forecasting"""

    def test_each_entity_forecast(self, monthly_sales_records, q1_scope):
        logs, forecasts = forecast_by_entity(monthly_sales_records, q1_scope)
        assert [f.entity_id for f in forecasts] == ['R1', 'R2']
        r1, r2 = forecasts
        assert r1.signal.direction == 'increasing'
        assert r1.forecast.forecasted_value == Decimal('9.9')
        assert r1.total == Decimal(27)
        assert r1.last_value == Decimal(12)
        assert r2.forecast.forecasted_value == Decimal('6.6')
        assert_log_contains(logs, "Forecast 2 entities (2 increasing, 0 decreasing)")

    def test_entity_filter(self, monthly_sales_records):
        scope = AnalysisScope('acme', '2024-01-01', '2024-04-01', 'monthly', entity_ids=['R2'])
        _, forecasts = forecast_by_entity(monthly_sales_records, scope)
        assert [f.entity_id for f in forecasts] == ['R2']

    def test_no_entities(self, q1_scope):
        logs, forecasts = forecast_by_entity([{'timestamp': '2024-01-02', 'amount': 1}], q1_scope)
        assert forecasts == []
        assert_log_contains(logs, "WARNING: No entity-tagged records in scope")

    def test_parallel_matches_sequential(self, q1_scope):
        raw = [
            {'timestamp': f'2024-0{month}-1{day}', 'quantity': month * day + entity, 'entity_id': entity}
            for entity in range(80) for month in (1, 2, 3) for day in (1, 5)
        ]
        _, sequential = forecast_by_entity(raw, q1_scope, n_jobs=1)
        _, parallel = forecast_by_entity(raw, q1_scope, n_jobs=4)
        assert sequential == parallel
        assert len(parallel) == 80
