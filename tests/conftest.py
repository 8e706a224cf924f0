"""
Pytest configuration and shared fixtures for all tests
Centralized record data and utilities
"""

import pytest
import pandas as pd
import os
import sys
from decimal import Decimal

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# ===== SHARED RECORD FIXTURES =====

@pytest.fixture
def monthly_sales_records():
    """
    Sales records over three months with:
    - Rising monthly revenue (100 -> 150 -> 200)
    - Decimal amounts that are not exact in binary floating point
    - Two products (recipes) so per-entity analysis has something to split
    """
    return [
        {'transaction_date': '2024-01-05T10:00:00Z', 'total_revenue': '60.10', 'quantity': 6, 'recipe_id': 'R1'},
        {'transaction_date': '2024-01-20T16:30:00Z', 'total_revenue': '39.90', 'quantity': 4, 'recipe_id': 'R2'},
        {'transaction_date': '2024-02-03T09:15:00Z', 'total_revenue': '90.05', 'quantity': 9, 'recipe_id': 'R1'},
        {'transaction_date': '2024-02-25T12:00:00Z', 'total_revenue': '59.95', 'quantity': 6, 'recipe_id': 'R2'},
        {'transaction_date': '2024-03-10T08:00:00Z', 'total_revenue': '120.00', 'quantity': 12, 'recipe_id': 'R1'},
        {'transaction_date': '2024-03-28T18:45:00Z', 'total_revenue': '80.00', 'quantity': 8, 'recipe_id': 'R2'},
    ]


@pytest.fixture
def dirty_records():
    """
    Mixed-quality records:
    - One good record
    - Missing timestamp, unparseable timestamp
    - Negative quantity, fractional quantity
    - Unparseable amount
    """
    return [
        {'timestamp': '2024-05-01', 'amount': '10.00', 'quantity': 1},
        {'timestamp': None, 'amount': '5.00', 'quantity': 1},
        {'timestamp': 'not-a-date', 'amount': '5.00', 'quantity': 1},
        {'timestamp': '2024-05-02', 'amount': '5.00', 'quantity': -2},
        {'timestamp': '2024-05-03', 'amount': '5.00', 'quantity': 1.5},
        {'timestamp': '2024-05-04', 'amount': 'abc', 'quantity': 1},
    ]


@pytest.fixture
def sales_dataframe(monthly_sales_records):
    """The monthly sales records as a DataFrame, the way a record source hands them over"""
    return pd.DataFrame(monthly_sales_records)


def make_monthly_records(year, values, entity_id=None, day=15):
    """
    Build one record per calendar month of `year`.

    Args:
        year: Calendar year
        values: Up to 12 amounts, January first
        entity_id: Optional entity id for every record
        day: Day of month for each record
    """
    return [
        {
            'timestamp': pd.Timestamp(year=year, month=month, day=day, tz='UTC'),
            'amount': Decimal(str(value)),
            'quantity': int(value),
            'entity_id': entity_id,
        }
        for month, value in enumerate(values, start=1)
    ]

# ===== UTILITY FUNCTIONS FOR TESTS =====

def assert_log_contains(logs, expected_message):
    """
    Helper to assert that a log message contains expected text

    Args:
        logs: List of log messages
        expected_message: Text expected to be in one of the logs
    """
    log_text = " ".join(logs)
    assert expected_message in log_text, f"Expected '{expected_message}' not found in logs: {log_text}"
