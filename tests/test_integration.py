"""
Integration Tests
=================
End-to-end checks over the sample statements in data/.
"""

import pytest

from hierarchy_engine import node_id, visible_nodes, walk
from scenario_engine import RecalcStatus
from services.insights_service import DEFAULT_CHANGES, DEFAULT_INSIGHTS
from services.statement_service import TAB_LABELS, StatementService
from statement_data import parse_number


@pytest.fixture
def service(data_dir):
    return StatementService(data_dir)


@pytest.mark.integration
class TestSampleStatements:
    """Every tab loads and groups into a tree."""

    @pytest.mark.parametrize("tab", list(TAB_LABELS))
    def test_tab_builds_tree(self, service, tab):
        statement = service.get_statement(tab)
        forest = service.get_tree(tab, statement=statement)

        assert forest
        assert [n.id for n in walk(forest)] == [node_id(i) for i in range(len(statement.rows))]
        assert len(visible_nodes(forest)) <= len(statement.rows)

    def test_collapsed_cashflow_shows_sections(self, service):
        forest = service.get_tree("CF", expand_all=False)
        labels = [n.label for n in visible_nodes(forest)]
        assert labels == ["기초잔액", "영업활동현금흐름", "재무활동현금흐름", "순현금흐름", "기말잔액"]

    def test_pl_gets_yoy_percent(self, service):
        statement = service.get_statement("PL")
        assert statement.headers[-1] == "YoY"
        assert statement.rows[0][-1] == "+6.4%"

    def test_balance_sheet_cash_matches_cashflow(self, service):
        bs = service.get_statement("BS")
        cf = service.get_statement("CF")
        cash = bs.rows[bs.find_row("현금및현금성자산")]
        ending = cf.rows[cf.find_row("기말잔액")]
        assert cash[2:14] == ending[2:14]


@pytest.mark.integration
class TestSampleScenarios:
    """Recalculation over the sample cash flow."""

    def test_reference_rate_reproduces_statement(self, service):
        outcome = service.run_scenario(130)

        assert outcome.cashflow.status == RecalcStatus.FULL
        assert outcome.cashflow.statement.rows == service.load("CF").rows
        assert outcome.cashloan.statement.rows == service.load("CASHLOAN").rows

    def test_higher_rate_raises_year_end_cash(self, service):
        base = service.run_scenario(130)
        high = service.run_scenario(160)

        base_end = service.ending_balance_series(base.cashflow.statement)
        high_end = service.ending_balance_series(high.cashflow.statement)
        assert high_end.iloc[-1] > base_end.iloc[-1]

        cash_row = high.cashloan.statement.rows[0]
        assert cash_row[13] == high.cashflow.statement.rows[-1][13]
        assert parse_number(cash_row[15]) == parse_number(cash_row[14]) - parse_number(cash_row[1])

    def test_balance_identity_holds(self, service):
        stmt = service.run_scenario(180).cashflow.statement
        begin = stmt.rows[stmt.find_row("기초잔액")]
        net = stmt.rows[stmt.find_row("순현금흐름")]
        end = stmt.rows[stmt.find_row("기말잔액")]
        for col in range(2, 14):
            assert parse_number(end[col]) == parse_number(begin[col]) + parse_number(net[col])
            if col > 2:
                assert begin[col] == end[col - 1]

    def test_sensitivity_over_full_range(self, service):
        table = service.sensitivity_table()
        assert len(table) == 11
        assert table["year_end_cash"].is_monotonic_increasing
        assert (table["status"] == "full").all()


@pytest.mark.integration
class TestDefaultNarrative:
    """The shipped narrative quotes the sample statements."""

    @pytest.fixture
    def changes(self):
        return {c.title: c for c in DEFAULT_CHANGES}

    def _annual(self, statement, pattern):
        row = statement.rows[statement.find_row(pattern)]
        return row[1], row[14]

    def test_year_end_cash(self, service, changes):
        prior, current = self._annual(service.load("CF"), "기말잔액")
        assert changes["Year-end cash"].value.startswith(current)
        assert f"{prior} -> {current}" in changes["Year-end cash"].description
        assert f"**Year-end cash of {current}**" in DEFAULT_INSIGHTS[0]

    @pytest.mark.parametrize("title,pattern", [
        ("Operating cash flow", "영업활동"),
        ("Online channel growth", "온라인"),
        ("Expense payments", "비용지출"),
    ])
    def test_cashflow_lines(self, service, changes, title, pattern):
        prior, current = self._annual(service.load("CF"), pattern)
        assert f"{prior} -> {current}" in changes[title].value

    def test_inventory(self, service, changes):
        prior, current = self._annual(service.load("WC"), "재고자산")
        assert f"{prior} -> {current}" in changes["Inventory efficiency"].value
