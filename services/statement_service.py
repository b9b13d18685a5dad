"""
Statement Service
=================
Loads the report CSVs and coordinates the hierarchy and scenario engines
for the UI and the API.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from app_logging import get_logger
from hierarchy_engine import TreeNode, build_tree
from scenario_engine import (
    RecalcResult,
    build_row_index,
    recalculate_cashflow,
    update_cashloan_from_cashflow,
    validate_rate,
)
from statement_config import (
    DEFAULT_CASHLOAN_LAYOUT,
    DEFAULT_TEMPLATE,
    P_ENDING,
    CashLoanLayout,
    RowRole,
    ScenarioTemplate,
    get_grammar,
)
from statement_data import (
    StatementNotFoundError,
    TabularStatement,
    load_statement,
    parse_number,
)

logger = get_logger(__name__)

STATEMENT_FILES: Dict[str, str] = {
    "CF": "cf.csv",
    "PL": "pl.csv",
    "BS": "bs.csv",
    "WC": "wc.csv",
    "CASHLOAN": "cashloan.csv",
}

TAB_LABELS: Dict[str, str] = {
    "CF": "Cash Flow",
    "PL": "Profit & Loss",
    "BS": "Balance Sheet",
    "WC": "Working Capital",
}


def add_yoy_percent(statement: TabularStatement) -> TabularStatement:
    """
    Append a YoY % column comparing the last column with the prior-year column.

    Column 1 holds the prior-year total and the last column the current
    year. A prior of zero reads "+100.0%" when the current year has a value
    and "-" when both are zero. Statements that already end in a YoY column
    are returned as a copy.
    """
    out = statement.copy()
    if not out.headers or re.search(r"yoy", out.headers[-1], re.IGNORECASE):
        return out

    out.headers.append("YoY")
    for row in out.rows:
        prior = parse_number(row[1]) if len(row) > 1 else 0.0
        current = parse_number(row[-1]) if row else 0.0
        if prior != 0:
            pct = (current - prior) / abs(prior) * 100
            yoy = f"{'+' if pct > 0 else ''}{pct:.1f}%"
        elif current != 0:
            yoy = "+100.0%"
        else:
            yoy = "-"
        row.append(yoy)
    return out


def row_series(statement: TabularStatement, pattern: str, cols: Sequence[int]) -> pd.Series:
    """Numeric values of the first row matching `pattern`, indexed by header."""
    i = statement.find_row(pattern)
    if i == -1:
        return pd.Series(dtype=float)
    row = statement.rows[i]
    labels = [statement.headers[c] if c < len(statement.headers) else str(c) for c in cols]
    values = [parse_number(row[c]) if c < len(row) else 0.0 for c in cols]
    return pd.Series(values, index=labels, name=statement.label(i))


@dataclass
class ScenarioOutcome:
    rate: float
    cashflow: RecalcResult
    cashloan: Optional[RecalcResult] = None


class StatementService:
    """
    Service for statement data.

    Caches parsed CSVs per tab; recalculation always starts from the cached
    reference statement, never from a previous scenario's output.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        template: ScenarioTemplate = DEFAULT_TEMPLATE,
        layout: CashLoanLayout = DEFAULT_CASHLOAN_LAYOUT,
        loader: Callable[[Path], TabularStatement] = load_statement,
    ):
        """
        Initialize statement service.

        Args:
            data_dir: Directory holding the statement CSVs
            template: Scenario column layout and policy
            layout: Cash/loan-balance column mapping
            loader: CSV loader (replaceable in tests)
        """
        self.data_dir = Path(data_dir)
        self.template = template
        self.layout = layout
        self.loader = loader
        self._cache: Dict[str, TabularStatement] = {}

    def _path(self, tab: str) -> Path:
        try:
            return self.data_dir / STATEMENT_FILES[tab.upper()]
        except KeyError:
            raise StatementNotFoundError(f"Unknown statement '{tab}'") from None

    def load(self, tab: str, refresh: bool = False) -> TabularStatement:
        """Raw statement for a tab as a fresh copy."""
        key = tab.upper()
        if refresh or key not in self._cache:
            self._cache[key] = self.loader(self._path(key))
        return self._cache[key].copy()

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_statement(self, tab: str, refresh: bool = False) -> TabularStatement:
        """Statement as displayed: the PL tab gets a YoY % column."""
        statement = self.load(tab, refresh=refresh)
        if tab.upper() == "PL" and statement.headers:
            statement = add_yoy_percent(statement)
        return statement

    def get_tree(
        self,
        tab: str,
        statement: Optional[TabularStatement] = None,
        expand_all: Optional[bool] = None,
        expanded: Optional[Dict[str, bool]] = None,
    ) -> List[TreeNode]:
        """
        Hierarchical view of a tab.

        Args:
            tab: Statement tab
            statement: Rows to group (e.g. a recalculated cash flow);
                defaults to the displayed statement for the tab
            expand_all: Uniform expand/collapse override
            expanded: Per-node expansion overrides
        """
        statement = statement if statement is not None else self.get_statement(tab)
        return build_tree(statement.rows, get_grammar(tab), expand_all=expand_all, expanded=expanded)

    def run_scenario(self, rate: float) -> ScenarioOutcome:
        """
        Recalculate the cash flow at `rate` and push its balances into the
        cash/loan table when that table exists.
        """
        rate = validate_rate(rate, self.template)
        cashflow = recalculate_cashflow(self.load("CF"), rate, self.template)

        try:
            base_cashloan = self.load("CASHLOAN")
        except StatementNotFoundError:
            logger.debug("No cash/loan table in %s, skipping balance propagation", self.data_dir)
            return ScenarioOutcome(rate=rate, cashflow=cashflow)

        cashloan = update_cashloan_from_cashflow(base_cashloan, cashflow.statement, self.layout)
        return ScenarioOutcome(rate=rate, cashflow=cashflow, cashloan=cashloan)

    def ending_balance_series(self, statement: TabularStatement) -> pd.Series:
        cols = [c for c in self.template.period_cols if c < statement.width]
        return row_series(statement, P_ENDING, cols)

    def sensitivity_table(self, rates: Optional[Sequence[float]] = None) -> pd.DataFrame:
        """
        Forecast online revenue, net cash and year-end cash per growth rate.

        Args:
            rates: Rates to evaluate; defaults to the template's full range

        Returns:
            DataFrame with columns growth_rate, online_revenue, net_cash,
            year_end_cash, status
        """
        t = self.template
        if rates is None:
            rates = np.arange(t.min_rate, t.max_rate + t.rate_step / 2, t.rate_step)
        base = self.load("CF")

        records = []
        for rate in rates:
            result = recalculate_cashflow(base, float(rate), t)
            stmt = result.statement
            index = build_row_index(stmt, t.role_patterns)
            cols = [c for c in t.period_cols if c < stmt.width]
            forecast = [c for c in t.forecast_cols if c < stmt.width]

            def _sum(role: RowRole, columns: List[int]) -> float:
                if role not in index:
                    return np.nan
                return float(np.sum([parse_number(stmt.rows[index[role]][c]) for c in columns]))

            year_end = np.nan
            if RowRole.ENDING in index and cols:
                year_end = parse_number(stmt.rows[index[RowRole.ENDING]][cols[-1]])

            records.append({
                "growth_rate": float(rate),
                "online_revenue": _sum(RowRole.ONLINE, forecast),
                "net_cash": _sum(RowRole.NET_CASH, cols),
                "year_end_cash": year_end,
                "status": result.status.value,
            })
        return pd.DataFrame.from_records(records)
