"""
Pytest Configuration and Fixtures
==================================
Shared statements, templates and stores for the test suite.

The toy cash flow has four months (two actual, two forecast) and is
internally consistent at the 130 % reference rate: every subtotal, balance
carry, annual total and YoY cell already agrees with the recalculation rules.
"""

import dataclasses
from pathlib import Path
from unittest.mock import Mock

import pytest

from statement_config import DEFAULT_CASHLOAN_LAYOUT, DEFAULT_TEMPLATE
from statement_data import TabularStatement

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

TOY_HEADERS = ["Account", "FY25 Total", "Jan", "Feb", "Mar", "Apr", "FY26 Total", "YoY"]

TOY_ROWS = [
    ["Beginning Balance", "900", "1,000", "1,070", "1,140", "1,210", "1,210", "310"],
    ["Operating Activities", "300", "90", "90", "90", "90", "360", "60"],
    ["  Sales Receipts", "600", "160", "160", "160", "160", "640", "40"],
    ["    Online (US+EU)", "380", "100", "100", "100", "100", "400", "20"],
    ["    Wholesale", "180", "50", "50", "50", "50", "200", "20"],
    ["    License", "40", "10", "10", "10", "10", "40", "0"],
    ["  Goods Payments", "-100", "-30", "-30", "-30", "-30", "-120", "-20"],
    ["  Expense Payments", "-180", "-40", "-40", "-40", "-40", "-160", "20"],
    ["    Payroll", "-80", "-20", "-20", "-20", "-20", "-80", "0"],
    ["    Commissions", "-30", "-5", "-5", "-5", "-5", "-20", "10"],
    ["    Advertising", "-40", "-10", "-10", "-10", "-10", "-40", "0"],
    ["    Other Expenses", "-30", "-5", "-5", "-5", "-5", "-20", "10"],
    ["Financing Activities", "-50", "-20", "-20", "-20", "-20", "-80", "-30"],
    ["  Other Receipts", "20", "10", "10", "10", "10", "40", "20"],
    ["  Other Payments", "-70", "-30", "-30", "-30", "-30", "-120", "-50"],
    ["Net Cash", "250", "70", "70", "70", "70", "280", "30"],
    ["Ending Balance", "1,000", "1,070", "1,140", "1,210", "1,280", "1,280", "280"],
]

# Row positions in TOY_ROWS
ROW = {
    "beginning": 0, "operating": 1, "sales": 2, "online": 3, "wholesale": 4,
    "license": 5, "goods": 6, "expenses": 7, "payroll": 8, "commission": 9,
    "ad": 10, "other_expense": 11, "financing": 12, "other_in": 13,
    "other_out": 14, "net": 15, "ending": 16,
}


@pytest.fixture
def toy_template():
    """Four-month layout: Jan/Feb actual, Mar/Apr forecast; rates up to 300 %."""
    return dataclasses.replace(
        DEFAULT_TEMPLATE, period_end_col=5, annual_total_col=6, variance_col=7, max_rate=300.0,
    )


@pytest.fixture
def toy_layout():
    """Cash/loan mapping for the four-month toy tables."""
    return dataclasses.replace(DEFAULT_CASHLOAN_LAYOUT, periods=4, closing_col=6, variance_col=7)


@pytest.fixture
def toy_cashflow():
    return TabularStatement(headers=list(TOY_HEADERS), rows=[list(r) for r in TOY_ROWS])


@pytest.fixture
def toy_cashloan():
    return TabularStatement(
        headers=["Account", "FY25 Close", "Jan", "Feb", "Mar", "Apr", "FY26 Close", "YoY"],
        rows=[
            ["Cash Balance", "1,000", "1,070", "1,140", "1,210", "1,280", "1,280", "280"],
            ["Loan Balance", "500", "500", "500", "500", "500", "500", "0"],
            ["  Parent Loan", "500", "500", "500", "500", "500", "500", "0"],
        ],
    )


@pytest.fixture
def data_dir():
    """The sample statements shipped with the project."""
    return DATA_DIR


@pytest.fixture
def toy_data_dir(tmp_path, toy_cashflow, toy_cashloan):
    """A data directory holding the toy cash flow and cash/loan tables as CSV."""
    for name, statement in (("cf.csv", toy_cashflow), ("cashloan.csv", toy_cashloan)):
        statement.to_frame().to_csv(tmp_path / name, index=False)
    return tmp_path


@pytest.fixture
def mock_redis():
    """In-memory stand-in for a redis client (get/set only)."""
    data = {}
    client = Mock()
    client.get.side_effect = lambda key: data.get(key)
    client.set.side_effect = lambda key, value: data.__setitem__(key, value)
    client.data = data
    return client


@pytest.fixture
def settings(tmp_path):
    """Settings with no Redis and everything under a temporary directory."""
    from api.config import Settings

    return Settings(
        redis_url=None,
        redis_url_source=None,
        data_dir=tmp_path,
        local_store_path=tmp_path / "store.json",
        environment="test",
        log_level="DEBUG",
    )
