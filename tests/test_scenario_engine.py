"""
Tests for Scenario Engine
==========================
Growth-rate recalculation of the cash flow and propagation of the new
balances into the cash/loan table.
"""

import dataclasses

import pytest

from scenario_engine import (
    RecalcStatus,
    ScenarioRateError,
    build_row_index,
    recalculate_cashflow,
    update_cashloan_from_cashflow,
    validate_rate,
)
from statement_config import ROLE_PATTERNS, RowRole
from statement_data import TabularStatement, parse_number
from conftest import ROW, TOY_ROWS

JAN, FEB, MAR, APR, TOTAL, YOY = 2, 3, 4, 5, 6, 7


def _cell(result, row, col):
    return result.statement.rows[ROW[row]][col]


def _value(result, row, col):
    return parse_number(_cell(result, row, col))


def _without(statement, *rows):
    drop = {ROW[r] for r in rows}
    return TabularStatement(
        headers=list(statement.headers),
        rows=[list(r) for i, r in enumerate(statement.rows) if i not in drop],
    )


class TestReferenceRate:
    """At the reference rate the statement reproduces itself."""

    def test_identity(self, toy_cashflow, toy_template):
        result = recalculate_cashflow(toy_cashflow, 130, toy_template)

        assert result.status == RecalcStatus.FULL
        assert result.missing_roles == ()
        assert result.ratio == pytest.approx(1.0)
        assert result.statement.rows == TOY_ROWS

    def test_identity_on_sample_data(self, data_dir):
        from statement_data import load_statement

        base = load_statement(data_dir / "cf.csv")
        result = recalculate_cashflow(base, 130)
        assert result.status == RecalcStatus.FULL
        assert result.statement.rows == base.rows


class TestForecastMonths:
    """Recalculation at 260 % (online doubles in forecast months)."""

    @pytest.fixture
    def result(self, toy_cashflow, toy_template):
        return recalculate_cashflow(toy_cashflow, 260, toy_template)

    def test_online_scaled_only_in_forecast(self, result):
        assert [_value(result, "online", c) for c in (JAN, FEB, MAR, APR)] == [100, 100, 200, 200]

    def test_variable_costs(self, result):
        assert _cell(result, "ad", MAR) == "-30"
        assert _cell(result, "commission", MAR) == "-15"
        assert _cell(result, "expenses", MAR) == "-70"

    def test_fixed_lines_unchanged(self, result):
        assert _cell(result, "payroll", MAR) == "-20"
        assert _cell(result, "goods", APR) == "-30"
        assert _cell(result, "wholesale", APR) == "50"

    def test_subtotals(self, result):
        assert _cell(result, "sales", MAR) == "260"
        assert _cell(result, "operating", MAR) == "160"
        assert _cell(result, "financing", MAR) == "-20"
        assert _cell(result, "net", APR) == "140"

    def test_balance_carry(self, result):
        assert _cell(result, "beginning", MAR) == "1,140"
        assert _cell(result, "ending", MAR) == "1,280"
        assert _cell(result, "beginning", APR) == "1,280"
        assert _cell(result, "ending", APR) == "1,420"

    def test_next_beginning_equals_previous_ending(self, result, toy_template):
        cols = toy_template.period_cols
        for prev, col in zip(cols, cols[1:]):
            assert _cell(result, "beginning", col) == _cell(result, "ending", prev)

    def test_ending_is_beginning_plus_net(self, result, toy_template):
        for col in toy_template.forecast_cols:
            assert _value(result, "ending", col) == \
                _value(result, "beginning", col) + _value(result, "net", col)

    def test_actual_months_untouched(self, result, toy_template):
        for i, row in enumerate(TOY_ROWS):
            for col in range(toy_template.period_start_col,
                             toy_template.period_start_col + toy_template.actual_periods):
                assert result.statement.rows[i][col] == row[col]

    def test_annual_totals(self, result):
        assert _cell(result, "online", TOTAL) == "600"
        assert _cell(result, "net", TOTAL) == "420"
        # Balance rows take the last period
        assert _cell(result, "beginning", TOTAL) == "1,280"
        assert _cell(result, "ending", TOTAL) == "1,420"

    def test_yoy(self, result):
        assert _cell(result, "online", YOY) == "220"
        assert _cell(result, "ending", YOY) == "420"

    def test_prior_year_untouched(self, result):
        for i, row in enumerate(TOY_ROWS):
            assert result.statement.rows[i][1] == row[1]

    def test_input_not_modified(self, toy_cashflow, toy_template):
        before = [list(r) for r in toy_cashflow.rows]
        recalculate_cashflow(toy_cashflow, 200, toy_template)
        assert toy_cashflow.rows == before

    def test_labels_and_shape_preserved(self, result, toy_cashflow):
        assert result.statement.headers == toy_cashflow.headers
        assert [r[0] for r in result.statement.rows] == [r[0] for r in TOY_ROWS]
        assert all(len(r) == len(toy_cashflow.headers) for r in result.statement.rows)


class TestRates:
    """Rate validation and monotonic behaviour."""

    @pytest.mark.parametrize("rate", [99, 301, -10])
    def test_out_of_range(self, toy_cashflow, toy_template, rate):
        with pytest.raises(ScenarioRateError):
            recalculate_cashflow(toy_cashflow, rate, toy_template)

    def test_rate_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_rate(250)

    @pytest.mark.parametrize("rate", [100, 200, 145])
    def test_bounds_and_off_step_rates_accepted(self, rate):
        assert validate_rate(rate) == float(rate)

    def test_year_end_cash_rises_with_rate(self, toy_cashflow, toy_template):
        endings = [
            _value(recalculate_cashflow(toy_cashflow, rate, toy_template), "ending", APR)
            for rate in range(100, 201, 10)
        ]
        assert endings == sorted(endings)
        assert endings[0] < endings[-1]

    def test_online_never_falls_as_rate_rises(self, toy_cashflow, toy_template):
        previous = None
        for rate in range(100, 301, 10):
            result = recalculate_cashflow(toy_cashflow, rate, toy_template)
            online = [_value(result, "online", c) for c in toy_template.forecast_cols]
            if previous is not None:
                assert all(now >= before for now, before in zip(online, previous))
            previous = online

            for c in (JAN, FEB):
                for i, row in enumerate(result.statement.rows):
                    assert row[c] == TOY_ROWS[i][c]

    def test_rounding(self, toy_cashflow, toy_template):
        # 100 * 150/130 = 115.38 -> 115
        result = recalculate_cashflow(toy_cashflow, 150, toy_template)
        assert _cell(result, "online", MAR) == "115"


class TestMissingRows:
    """Required rows stop the run, optional rows degrade it."""

    @pytest.mark.parametrize("row,role", [("online", "online"), ("sales", "sales_total")])
    def test_required_row_missing(self, toy_cashflow, toy_template, row, role):
        base = _without(toy_cashflow, row)
        result = recalculate_cashflow(base, 200, toy_template)

        assert result.status == RecalcStatus.UNCHANGED
        assert not result.changed
        assert role in result.missing_roles
        assert result.statement.rows == base.rows

    def test_required_row_missing_keeps_short_rows(self, toy_cashflow, toy_template):
        base = _without(toy_cashflow, "online")
        base.rows.append(["Memo", "5"])
        result = recalculate_cashflow(base, 200, toy_template)

        assert result.status == RecalcStatus.UNCHANGED
        assert result.statement.rows[-1] == ["Memo", "5"]
        assert result.statement.rows is not base.rows

    def test_wholesale_missing(self, toy_cashflow, toy_template):
        base = _without(toy_cashflow, "wholesale")
        result = recalculate_cashflow(base, 260, toy_template)
        sales = base.find_row(r"sales receipts")

        assert result.status == RecalcStatus.PARTIAL
        assert "wholesale" in result.missing_roles
        assert result.statement.rows[sales][MAR] == "210"

    def test_expense_total_missing_uses_parts(self, toy_cashflow, toy_template):
        base = _without(toy_cashflow, "expenses")
        result = recalculate_cashflow(base, 260, toy_template)
        operating = base.find_row(r"operating")

        assert result.status == RecalcStatus.PARTIAL
        assert result.missing_roles == ("expenses",)
        assert result.statement.rows[operating][MAR] == "160"

    def test_financing_total_missing_uses_parts(self, toy_cashflow, toy_template):
        base = _without(toy_cashflow, "financing")
        result = recalculate_cashflow(base, 260, toy_template)
        net = base.find_row(r"net cash")

        assert result.missing_roles == ("finance",)
        assert result.statement.rows[net][MAR] == "140"

    def test_beginning_missing_carries_previous_ending(self, toy_cashflow, toy_template):
        base = _without(toy_cashflow, "beginning")
        result = recalculate_cashflow(base, 260, toy_template)
        ending = base.find_row(r"ending balance")

        assert "beginning" in result.missing_roles
        assert result.statement.rows[ending][MAR] == "1,280"
        assert result.statement.rows[ending][APR] == "1,420"

    def test_empty_statement(self, toy_template):
        result = recalculate_cashflow(TabularStatement(), 150, toy_template)
        assert result.status == RecalcStatus.UNCHANGED


class TestSummaryColumns:
    """Annual total and YoY rebuild rules."""

    def test_annual_header_absent_leaves_summary_columns(self, toy_cashflow, toy_template):
        toy_cashflow.headers[TOTAL] = "FY26"
        result = recalculate_cashflow(toy_cashflow, 260, toy_template)
        assert _cell(result, "online", TOTAL) == "400"
        assert _cell(result, "online", YOY) == "20"

    def test_yoy_header_absent_leaves_variance(self, toy_cashflow, toy_template):
        toy_cashflow.headers[YOY] = "Change"
        result = recalculate_cashflow(toy_cashflow, 260, toy_template)
        assert _cell(result, "online", TOTAL) == "600"
        assert _cell(result, "online", YOY) == "20"

    def test_prior_year_header_required_for_yoy(self, toy_cashflow, toy_template):
        toy_cashflow.headers[1] = "Budget"
        result = recalculate_cashflow(toy_cashflow, 260, toy_template)
        assert _cell(result, "online", YOY) == "20"

    def test_opening_balance_can_use_first_period(self, toy_cashflow, toy_template):
        template = dataclasses.replace(toy_template, opening_balance_uses_first_period=True)
        result = recalculate_cashflow(toy_cashflow, 260, template)
        assert _cell(result, "beginning", TOTAL) == "1,000"
        assert _cell(result, "ending", TOTAL) == "1,420"

    def test_blank_row_keeps_blank_total(self, toy_cashflow, toy_template):
        toy_cashflow.rows.append(["Memo", "", "", "", "", "", "", ""])
        result = recalculate_cashflow(toy_cashflow, 260, toy_template)
        assert result.statement.rows[-1] == ["Memo", "", "", "", "", "", "", ""]

    def test_short_rows_padded(self, toy_cashflow, toy_template):
        toy_cashflow.rows.append(["Memo", "5"])
        result = recalculate_cashflow(toy_cashflow, 130, toy_template)
        assert result.statement.rows[-1] == ["Memo", "5", "", "", "", "", "", ""]

    def test_parentheses_style_preserved(self, toy_cashflow, toy_template):
        for row in toy_cashflow.rows:
            for c in range(1, len(row)):
                if row[c].startswith("-"):
                    row[c] = f"({row[c][1:]})"
        result = recalculate_cashflow(toy_cashflow, 260, toy_template)
        assert _cell(result, "ad", MAR) == "(30)"
        assert _cell(result, "expenses", TOTAL) == "(220)"


class TestRowIndex:
    def test_first_match_per_role(self, toy_cashflow):
        index = build_row_index(toy_cashflow, ROLE_PATTERNS)
        assert index[RowRole.ONLINE] == ROW["online"]
        assert index[RowRole.FINANCE] == ROW["financing"]
        assert len(index) == len(RowRole)


class TestCashLoanUpdate:
    """Cash balances copied from the recalculated cash flow."""

    def test_cash_row_follows_cashflow(self, toy_cashflow, toy_cashloan, toy_template, toy_layout):
        cashflow = recalculate_cashflow(toy_cashflow, 260, toy_template).statement
        result = update_cashloan_from_cashflow(toy_cashloan, cashflow, toy_layout)

        assert result.status == RecalcStatus.FULL
        assert result.statement.rows[0] == [
            "Cash Balance", "1,000", "1,070", "1,140", "1,280", "1,420", "1,420", "420",
        ]

    def test_other_rows_and_input_untouched(self, toy_cashflow, toy_cashloan, toy_template, toy_layout):
        before = [list(r) for r in toy_cashloan.rows]
        cashflow = recalculate_cashflow(toy_cashflow, 200, toy_template).statement
        result = update_cashloan_from_cashflow(toy_cashloan, cashflow, toy_layout)

        assert toy_cashloan.rows == before
        assert result.statement.rows[1:] == before[1:]

    def test_at_reference_rate_nothing_changes(self, toy_cashflow, toy_cashloan, toy_layout):
        result = update_cashloan_from_cashflow(toy_cashloan, toy_cashflow, toy_layout)
        assert result.statement.rows == toy_cashloan.rows

    def test_missing_cash_row(self, toy_cashflow, toy_cashloan, toy_layout):
        toy_cashloan.rows.pop(0)
        result = update_cashloan_from_cashflow(toy_cashloan, toy_cashflow, toy_layout)
        assert result.status == RecalcStatus.UNCHANGED
        assert result.missing_roles == ("cash_balance",)
        assert result.statement.rows == toy_cashloan.rows

    def test_missing_ending_row(self, toy_cashflow, toy_cashloan, toy_layout):
        result = update_cashloan_from_cashflow(toy_cashloan, _without(toy_cashflow, "ending"), toy_layout)
        assert result.status == RecalcStatus.UNCHANGED
        assert "ending" in result.missing_roles

    def test_variance_needs_yoy_header(self, toy_cashflow, toy_cashloan, toy_template, toy_layout):
        toy_cashloan.headers[YOY] = "Note"
        cashflow = recalculate_cashflow(toy_cashflow, 260, toy_template).statement
        result = update_cashloan_from_cashflow(toy_cashloan, cashflow, toy_layout)
        assert result.statement.rows[0][YOY] == "280"
        assert result.statement.rows[0][TOTAL] == "1,420"

    def test_to_dict(self, toy_cashflow, toy_cashloan, toy_layout):
        d = update_cashloan_from_cashflow(toy_cashloan, toy_cashflow, toy_layout).to_dict()
        assert d["status"] == "full"
        assert d["headers"] == toy_cashloan.headers
        assert len(d["rows"]) == len(toy_cashloan.rows)
