"""
Scenario Engine
===============
Growth-rate recalculation of the cash-flow statement.

The base cash flow is prepared at a reference growth rate (130 %). For any
other rate the online-channel revenue is rescaled in forecast months and the
change is pushed through the statement:

    online revenue -> variable costs (advertising, commission)
    -> expense total -> sales receipts -> operating activities
    -> net cash (operating + financing) -> ending balance
    -> next month's beginning balance

The beginning/ending carry makes the month loop a left-to-right fold: each
month opens with the previous month's recomputed closing balance. After the
loop the annual total and YoY columns are rebuilt for every row, and the
recalculated balances can be copied into the cash/loan-balance table.

Both transforms are pure: inputs are never modified, and the result says
whether the statement was fully recomputed, recomputed with some optional
rows missing, or returned unchanged because a required row was missing.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from app_logging import get_logger
from statement_config import (
    DEFAULT_CASHLOAN_LAYOUT,
    DEFAULT_TEMPLATE,
    CashLoanLayout,
    RowRole,
    ScenarioTemplate,
)
from statement_data import (
    NegativeStyle,
    TabularStatement,
    detect_negative_style,
    format_number,
    is_blank,
    parse_number,
)

logger = get_logger(__name__)


class ScenarioRateError(ValueError):
    """Raised when a growth rate lies outside the template's bounds."""


class RecalcStatus(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    UNCHANGED = "unchanged"


@dataclass
class RecalcResult:
    statement: TabularStatement
    status: RecalcStatus
    missing_roles: Tuple[str, ...] = field(default_factory=tuple)
    ratio: Optional[float] = None

    @property
    def changed(self) -> bool:
        return self.status != RecalcStatus.UNCHANGED

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "missing_roles": list(self.missing_roles),
            "ratio": self.ratio,
            **self.statement.to_dict(),
        }


# =============================================================================
# ROW LOOKUP
# =============================================================================

def build_row_index(statement: TabularStatement, patterns: Dict[RowRole, str]) -> Dict[RowRole, int]:
    """
    Map each recalculation role to the first row whose label matches it.

    Roles with no matching row are left out of the map.
    """
    index: Dict[RowRole, int] = {}
    for role, pattern in patterns.items():
        i = statement.find_row(pattern)
        if i != -1:
            index[role] = i
    return index


def _effective_missing(index: Dict[RowRole, int]) -> List[str]:
    """Optional roles whose absence skips or substitutes a computation."""
    always = [
        RowRole.BEGINNING, RowRole.OPERATING, RowRole.WHOLESALE, RowRole.LICENSE,
        RowRole.GOODS, RowRole.EXPENSES, RowRole.COMMISSION, RowRole.AD,
        RowRole.FINANCE, RowRole.NET_CASH, RowRole.ENDING,
    ]
    missing = [r for r in always if r not in index]
    if RowRole.EXPENSES not in index:
        missing += [r for r in (RowRole.LABOR, RowRole.OTHER_EXPENSE) if r not in index]
    if RowRole.FINANCE not in index:
        missing += [r for r in (RowRole.OTHER_IN, RowRole.OTHER_OUT) if r not in index]
    return [r.value for r in missing]


def _header_matches(headers: List[str], col: int, pattern: str) -> bool:
    if col >= len(headers) or not headers[col]:
        return False
    return re.search(pattern, headers[col], re.IGNORECASE) is not None


def validate_rate(target_rate: float, template: ScenarioTemplate = DEFAULT_TEMPLATE) -> float:
    rate = float(target_rate)
    if not template.min_rate <= rate <= template.max_rate:
        raise ScenarioRateError(
            f"Growth rate {rate:g} outside allowed range "
            f"{template.min_rate:g}-{template.max_rate:g}"
        )
    return rate


# =============================================================================
# CASH FLOW RECALCULATION
# =============================================================================

class _MonthContext:
    """Cell access for one recalculation pass."""

    def __init__(self, base: TabularStatement, new: TabularStatement,
                 index: Dict[RowRole, int], style: NegativeStyle):
        self.base = base
        self.new = new
        self.index = index
        self.style = style

    def has(self, role: RowRole) -> bool:
        return role in self.index

    def base_value(self, role: RowRole, col: int) -> float:
        if role not in self.index:
            return 0.0
        return parse_number(self.base.rows[self.index[role]][col])

    def value(self, role: RowRole, col: int) -> float:
        if role not in self.index:
            return 0.0
        return parse_number(self.new.rows[self.index[role]][col])

    def cell(self, role: RowRole, col: int) -> Optional[str]:
        if role not in self.index:
            return None
        return self.new.rows[self.index[role]][col]

    def put(self, role: RowRole, col: int, value: float) -> str:
        text = format_number(value, self.style)
        if role in self.index:
            self.new.rows[self.index[role]][col] = text
        return text


def _recalc_month(
    ctx: _MonthContext,
    col: int,
    ratio: float,
    template: ScenarioTemplate,
    prior_ending: Optional[str],
) -> Optional[str]:
    """
    Recompute one forecast month and return its ending balance cell.

    `prior_ending` is the previous month's recomputed closing balance; it
    becomes this month's opening balance.
    """
    if prior_ending is not None and ctx.has(RowRole.BEGINNING):
        ctx.new.rows[ctx.index[RowRole.BEGINNING]][col] = prior_ending

    base_online = ctx.base_value(RowRole.ONLINE, col)
    new_online = base_online * ratio
    ctx.put(RowRole.ONLINE, col, new_online)
    delta = new_online - base_online

    # Outflows are negative: more revenue means more negative cost cells
    if ctx.has(RowRole.AD):
        ctx.put(RowRole.AD, col, ctx.base_value(RowRole.AD, col) - delta * template.ad_rate)
    if ctx.has(RowRole.COMMISSION):
        ctx.put(RowRole.COMMISSION, col,
                ctx.base_value(RowRole.COMMISSION, col) - delta * template.commission_rate)

    if ctx.has(RowRole.EXPENSES):
        expenses = ctx.base_value(RowRole.EXPENSES, col) - delta * template.variable_cost_rate
        ctx.put(RowRole.EXPENSES, col, expenses)
    else:
        expenses = (
            ctx.base_value(RowRole.LABOR, col)
            + ctx.value(RowRole.COMMISSION, col)
            + ctx.value(RowRole.AD, col)
            + ctx.base_value(RowRole.OTHER_EXPENSE, col)
        )

    sales = new_online + ctx.value(RowRole.WHOLESALE, col) + ctx.value(RowRole.LICENSE, col)
    ctx.put(RowRole.SALES_TOTAL, col, sales)

    operating = sales + ctx.value(RowRole.GOODS, col) + expenses
    ctx.put(RowRole.OPERATING, col, operating)

    # The financing total already includes its receipt/payment lines
    if ctx.has(RowRole.FINANCE):
        financing = ctx.value(RowRole.FINANCE, col)
    else:
        financing = ctx.value(RowRole.OTHER_IN, col) + ctx.value(RowRole.OTHER_OUT, col)

    net_cash = operating + financing
    ctx.put(RowRole.NET_CASH, col, net_cash)

    if ctx.has(RowRole.BEGINNING):
        beginning = ctx.value(RowRole.BEGINNING, col)
    elif prior_ending is not None:
        beginning = parse_number(prior_ending)
    else:
        beginning = 0.0
    return ctx.put(RowRole.ENDING, col, beginning + net_cash)


def _rebuild_summary_columns(statement: TabularStatement, cols: List[int],
                             template: ScenarioTemplate, style: NegativeStyle) -> None:
    """Annual total per row, then YoY variance against the prior-year column."""
    headers = statement.headers
    if not cols or not _header_matches(headers, template.annual_total_col, template.annual_total_header):
        return
    has_variance = (
        _header_matches(headers, template.variance_col, template.variance_header)
        and _header_matches(headers, template.prior_year_col, template.prior_year_header)
    )
    balance = re.compile(template.balance_pattern, re.IGNORECASE)
    opening = re.compile(template.opening_balance_pattern, re.IGNORECASE)
    total_col = template.annual_total_col

    for row in statement.rows:
        if all(is_blank(row[c]) for c in cols):
            continue
        label = row[0] or ""
        if balance.search(label):
            # Balances are point-in-time: the year's figure is a snapshot
            if template.opening_balance_uses_first_period and opening.search(label):
                row[total_col] = row[cols[0]]
            else:
                row[total_col] = row[cols[-1]]
        else:
            row[total_col] = format_number(sum(parse_number(row[c]) for c in cols), style)

        if has_variance:
            variance = parse_number(row[total_col]) - parse_number(row[template.prior_year_col])
            row[template.variance_col] = format_number(variance, style)


def recalculate_cashflow(
    base: TabularStatement,
    target_rate: float,
    template: ScenarioTemplate = DEFAULT_TEMPLATE,
) -> RecalcResult:
    """
    Derive the cash-flow statement for `target_rate` from the reference one.

    Args:
        base: Cash flow prepared at `template.reference_rate`; not modified
        target_rate: Growth rate in percent, within the template bounds
        template: Column layout and cost policy

    Returns:
        RecalcResult with a statement of the same shape as `base` (short rows
        padded to the header width). UNCHANGED, with an unpadded copy of
        `base`, when the online revenue or sales receipts row is missing.

    Raises:
        ScenarioRateError: rate outside [min_rate, max_rate]
    """
    rate = validate_rate(target_rate, template)

    index = build_row_index(base, template.role_patterns)
    missing_required = tuple(r.value for r in template.required_roles if r not in index)
    if missing_required:
        logger.warning("Cash flow left unchanged, required rows missing: %s", ", ".join(missing_required))
        return RecalcResult(base.copy(), RecalcStatus.UNCHANGED, missing_required, None)

    base = base.normalized()
    new = base.copy()

    ratio = rate / template.reference_rate
    style = detect_negative_style(base)
    ctx = _MonthContext(base, new, index, style)
    cols = [c for c in template.period_cols if c < base.width]

    prior_ending: Optional[str] = None
    for col in cols:
        if template.is_actual(col):
            prior_ending = ctx.cell(RowRole.ENDING, col)
            continue
        prior_ending = _recalc_month(ctx, col, ratio, template, prior_ending)

    _rebuild_summary_columns(new, cols, template, style)

    missing = tuple(_effective_missing(index))
    status = RecalcStatus.PARTIAL if missing else RecalcStatus.FULL
    if missing:
        logger.info("Cash flow recalculated at %g%% without rows: %s", rate, ", ".join(missing))
    else:
        logger.debug("Cash flow recalculated at %g%% (ratio %.4f)", rate, ratio)
    return RecalcResult(new, status, missing, ratio)


# =============================================================================
# CASH / LOAN BALANCE PROPAGATION
# =============================================================================

def update_cashloan_from_cashflow(
    base_cashloan: TabularStatement,
    new_cashflow: TabularStatement,
    layout: CashLoanLayout = DEFAULT_CASHLOAN_LAYOUT,
) -> RecalcResult:
    """
    Copy the recalculated cash balances into the cash/loan-balance table.

    The opening column takes the first month's beginning balance, each month
    column the matching month's ending balance, the closing column the last
    month's ending balance, and YoY becomes closing minus opening.
    """
    new = base_cashloan.normalized()
    source = new_cashflow.normalized()

    cash_row = new.find_row(layout.cash_balance_pattern)
    begin_row = source.find_row(layout.source_beginning_pattern)
    end_row = source.find_row(layout.source_ending_pattern)
    missing = tuple(
        name for name, i in (("cash_balance", cash_row), ("beginning", begin_row), ("ending", end_row))
        if i == -1
    )
    if missing:
        logger.warning("Cash/loan table left unchanged, rows missing: %s", ", ".join(missing))
        return RecalcResult(new, RecalcStatus.UNCHANGED, missing)

    row = new.rows[cash_row]
    beginning = source.rows[begin_row]
    ending = source.rows[end_row]

    def _fits(dst: int, src: int) -> bool:
        return dst < new.width and src < source.width

    if _fits(layout.opening_col, layout.source_period_start_col):
        row[layout.opening_col] = beginning[layout.source_period_start_col]
    for dst, src in layout.column_pairs:
        if _fits(dst, src):
            row[dst] = ending[src]
    if _fits(layout.closing_col, layout.source_last_col):
        row[layout.closing_col] = ending[layout.source_last_col]

    if (
        max(layout.opening_col, layout.closing_col) < new.width
        and _header_matches(new.headers, layout.variance_col, layout.variance_header)
    ):
        variance = parse_number(row[layout.closing_col]) - parse_number(row[layout.opening_col])
        row[layout.variance_col] = format_number(variance, detect_negative_style(base_cashloan))

    return RecalcResult(new, RecalcStatus.FULL, ())
