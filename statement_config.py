"""
Statement Template Configuration
================================
Declarative description of the report templates: which row labels open
sections, which sub-categories belong to which section, which rows play a
role in the cash-flow recalculation, and where the period and summary columns
sit.

Template changes are edits to this module, not to the engines. Patterns are
regular expressions matched case-insensitively anywhere in the row label;
each template carries its Korean sheet labels and English aliases.

Example:
    grammar = get_grammar("CF")
    forest = build_tree(statement.rows, grammar)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


# =============================================================================
# TREE GRAMMAR
# =============================================================================

class NodeKind(str, Enum):
    STANDALONE = "standalone"  # level 0, never has children (balances, summary rows)
    SECTION = "section"        # level 0, opens an activity section
    GROUP = "group"            # level 1, scoped to a section
    ITEM = "item"              # level 2, scoped to a group
    UNMATCHED = "unmatched"    # fallback placement


@dataclass(frozen=True)
class LabelRule:
    """A recognised row label and the node it produces."""
    role: str
    patterns: Tuple[str, ...]
    level: int
    kind: NodeKind
    parent: Optional[str] = None  # required role of the enclosing node
    default_open: bool = False


@dataclass(frozen=True)
class TreeGrammar:
    """Ordered set of label rules for one report template."""
    name: str
    version: str
    rules: Tuple[LabelRule, ...]
    label_col: int = 0

    def standalone_rules(self) -> List[LabelRule]:
        return [r for r in self.rules if r.kind == NodeKind.STANDALONE]

    def section_rules(self) -> List[LabelRule]:
        return [r for r in self.rules if r.kind == NodeKind.SECTION]

    def child_rules(self, level: int, parent_role: Optional[str]) -> List[LabelRule]:
        """Rules at `level` whose scope is the given parent role."""
        if parent_role is None:
            return []
        return [r for r in self.rules if r.level == level and r.parent == parent_role]


def _standalone(role: str, *patterns: str) -> LabelRule:
    return LabelRule(role=role, patterns=patterns, level=0, kind=NodeKind.STANDALONE)


def _section(role: str, *patterns: str, default_open: bool = False) -> LabelRule:
    return LabelRule(role=role, patterns=patterns, level=0, kind=NodeKind.SECTION,
                     default_open=default_open)


def _group(role: str, parent: str, *patterns: str, default_open: bool = False) -> LabelRule:
    return LabelRule(role=role, patterns=patterns, level=1, kind=NodeKind.GROUP,
                     parent=parent, default_open=default_open)


def _item(role: str, parent: str, *patterns: str) -> LabelRule:
    return LabelRule(role=role, patterns=patterns, level=2, kind=NodeKind.ITEM, parent=parent)


# Label patterns shared by the cash-flow grammar and the recalculation roles
P_BEGINNING = r"기초잔액|beginning balance|opening balance"
P_ENDING = r"기말잔액|ending balance|closing balance"
P_NET_CASH = r"net cash|순현금"
P_OPERATING = r"영업활동|^\s*operating\b"
P_INVESTING = r"투자활동|^\s*investing\b"
P_FINANCING = r"재무활동|^\s*financing\b"
P_SALES_TOTAL = r"매출수금|sales receipts"
P_ONLINE = r"온라인|online"
P_WHOLESALE = r"홀세일|wholesale"
P_LICENSE = r"라이선스|licen[cs]e"
P_GOODS = r"물품대|goods payments"
P_EXPENSES = r"비용지출|expense payments"
P_LABOR = r"인건비|payroll|labou?r"
P_COMMISSION = r"지급수수료|commission"
P_AD = r"광고선전비|advertising"
P_OTHER_EXPENSE = r"기타비용|other expenses"
P_OTHER_IN = r"기타수금|other receipts"
P_OTHER_OUT = r"기타지출|other payments"
P_OTHER_INCOME = r"기타수익|other income"
P_BORROWINGS = r"차입금|borrowings"
P_DIVIDENDS = r"배당금|dividends"
P_INVENTORY_CHANGE = r"재고자산의 변동|change in inventor"
P_WORKING_CAPITAL_CHANGE = r"기타영업 자산부채|other operating assets"

CASHFLOW_GRAMMAR = TreeGrammar(
    name="CF",
    version="2026.1",
    rules=(
        _standalone("beginning", P_BEGINNING),
        _standalone("ending", P_ENDING),
        _standalone("net_cash", P_NET_CASH),
        _section("operating", P_OPERATING, default_open=True),
        _section("investing", P_INVESTING),
        _section("financing", P_FINANCING),
        _group("sales_total", "operating", P_SALES_TOTAL, default_open=True),
        _group("goods", "operating", P_GOODS),
        _group("expenses", "operating", P_EXPENSES),
        _group("inventory_change", "operating", P_INVENTORY_CHANGE),
        _group("working_capital_change", "operating", P_WORKING_CAPITAL_CHANGE),
        _group("other_income", "operating", P_OTHER_INCOME),
        _group("dividends", "investing", P_DIVIDENDS),
        _group("other_income", "investing", P_OTHER_INCOME),
        _group("other_in", "financing", P_OTHER_IN),
        _group("other_out", "financing", P_OTHER_OUT),
        _group("borrowings", "financing", P_BORROWINGS),
        _group("other_income", "financing", P_OTHER_INCOME),
        _item("online", "sales_total", P_ONLINE),
        _item("wholesale", "sales_total", P_WHOLESALE),
        _item("license", "sales_total", P_LICENSE),
        _item("labor", "expenses", P_LABOR),
        _item("commission", "expenses", P_COMMISSION),
        _item("ad", "expenses", P_AD),
        _item("other_expense", "expenses", P_OTHER_EXPENSE),
    ),
)

PROFIT_LOSS_GRAMMAR = TreeGrammar(
    name="PL",
    version="2026.1",
    rules=(
        _standalone("gross_profit", r"매출총이익|gross profit"),
        _standalone("operating_profit", r"영업이익|operating (profit|income)"),
        _standalone("pretax_profit", r"법인세차감전|profit before tax|pre-?tax"),
        _standalone("net_income", r"당기순이익|net (income|profit)"),
        _section("revenue", r"^\s*매출액|^\s*(total )?revenue", default_open=True),
        _section("cogs", r"^\s*매출원가|cost of (sales|goods|revenue)"),
        _section("sga", r"판매비와\s*관리비|판관비|selling, general|sg&a", default_open=True),
        _section("non_operating_income", r"영업외수익|non-?operating income"),
        _section("non_operating_expense", r"영업외비용|non-?operating expense"),
        _group("online", "revenue", P_ONLINE),
        _group("wholesale", "revenue", P_WHOLESALE),
        _group("license", "revenue", P_LICENSE),
        _group("labor", "sga", P_LABOR),
        _group("commission", "sga", P_COMMISSION),
        _group("ad", "sga", P_AD),
        _group("rent", "sga", r"임차료|\brent\b"),
        _group("depreciation", "sga", r"감가상각비|depreciation"),
        _group("other_expense", "sga", r"기타판관비|기타비용|other (sg&a|expenses)"),
        _group("interest_income", "non_operating_income", r"이자수익|interest income"),
        _group("other_income", "non_operating_income", P_OTHER_INCOME),
        _group("interest_expense", "non_operating_expense", r"이자비용|interest expense"),
        _group("fx_loss", "non_operating_expense", r"외환|foreign exchange|fx"),
    ),
)

BALANCE_SHEET_GRAMMAR = TreeGrammar(
    name="BS",
    version="2026.1",
    rules=(
        _standalone("liabilities_and_equity", r"부채와\s*자본\s*총계|total liabilities and equity"),
        _section("assets", r"^\s*자산|^\s*(total )?assets", default_open=True),
        _section("liabilities", r"^\s*부채|^\s*(total )?liabilities", default_open=True),
        _section("equity", r"^\s*자본\s*(총계)?\s*$|^\s*(total )?equity\s*$"),
        _group("current_assets", "assets", r"^\s*유동자산|^\s*current assets", default_open=True),
        _group("non_current_assets", "assets", r"비유동자산|non-?current assets"),
        _group("current_liabilities", "liabilities", r"^\s*유동부채|^\s*current liabilities"),
        _group("non_current_liabilities", "liabilities", r"비유동부채|non-?current liabilities"),
        _group("capital_stock", "equity", r"자본금|share capital|capital stock"),
        _group("retained_earnings", "equity", r"이익잉여금|결손금|retained earnings"),
        _item("cash", "current_assets", r"현금|^\s*cash"),
        _item("receivables", "current_assets", r"매출채권|receivable"),
        _item("inventory", "current_assets", r"재고자산|inventor"),
        _item("investments", "non_current_assets", r"관계기업|종속기업|투자|investment"),
        _item("ppe", "non_current_assets", r"유형자산|property|equipment"),
        _item("payables", "current_liabilities", r"매입채무|payable"),
        _item("short_term_borrowings", "current_liabilities", r"단기차입금|short-?term borrowings"),
        _item("long_term_borrowings", "non_current_liabilities", r"장기차입금|long-?term borrowings"),
    ),
)

WORKING_CAPITAL_GRAMMAR = TreeGrammar(
    name="WC",
    version="2026.1",
    rules=(
        _standalone("working_capital", r"^\s*운전자본|^\s*(net )?working capital"),
        _section("receivables", r"매출채권|receivable", default_open=True),
        _section("inventory", r"재고자산|inventor", default_open=True),
        _section("payables", r"매입채무|payable", default_open=True),
        _group("online", "receivables", P_ONLINE),
        _group("wholesale", "receivables", P_WHOLESALE),
        _group("license", "receivables", P_LICENSE),
        _group("finished_goods", "inventory", r"제품|상품|finished goods|merchandise"),
        _group("in_transit", "inventory", r"미착품|in transit"),
        _group("trade_payables", "payables", r"외상매입금|trade"),
        _group("other_payables", "payables", r"미지급금|other payables"),
    ),
)

CASHLOAN_GRAMMAR = TreeGrammar(
    name="CASHLOAN",
    version="2026.1",
    rules=(
        _standalone("cash_balance", r"현금잔액|cash balance"),
        _standalone("net_position", r"순현금|net (cash|debt) position"),
        _section("loans", r"차입금잔액|loan balance|borrowings", default_open=True),
        _group("parent_loan", "loans", r"본사|parent|head office"),
        _group("bank_loan", "loans", r"은행|bank"),
    ),
)

GRAMMARS: Dict[str, TreeGrammar] = {
    g.name: g
    for g in (CASHFLOW_GRAMMAR, PROFIT_LOSS_GRAMMAR, BALANCE_SHEET_GRAMMAR,
              WORKING_CAPITAL_GRAMMAR, CASHLOAN_GRAMMAR)
}


def get_grammar(tab: str) -> TreeGrammar:
    """Grammar for a statement tab ("CF", "PL", "BS", "WC", "CASHLOAN")."""
    try:
        return GRAMMARS[tab.upper()]
    except KeyError:
        raise KeyError(f"No grammar configured for statement '{tab}'") from None


# =============================================================================
# RECALCULATION ROLES
# =============================================================================

class RowRole(str, Enum):
    BEGINNING = "beginning"
    OPERATING = "operating"
    SALES_TOTAL = "sales_total"
    ONLINE = "online"
    WHOLESALE = "wholesale"
    LICENSE = "license"
    GOODS = "goods"
    EXPENSES = "expenses"
    LABOR = "labor"
    COMMISSION = "commission"
    AD = "ad"
    OTHER_EXPENSE = "other_expense"
    FINANCE = "finance"
    OTHER_IN = "other_in"
    OTHER_OUT = "other_out"
    NET_CASH = "net_cash"
    ENDING = "ending"


ROLE_PATTERNS: Dict[RowRole, str] = {
    RowRole.BEGINNING: P_BEGINNING,
    RowRole.OPERATING: P_OPERATING,
    RowRole.SALES_TOTAL: P_SALES_TOTAL,
    RowRole.ONLINE: P_ONLINE,
    RowRole.WHOLESALE: P_WHOLESALE,
    RowRole.LICENSE: P_LICENSE,
    RowRole.GOODS: P_GOODS,
    RowRole.EXPENSES: P_EXPENSES,
    RowRole.LABOR: P_LABOR,
    RowRole.COMMISSION: P_COMMISSION,
    RowRole.AD: P_AD,
    RowRole.OTHER_EXPENSE: P_OTHER_EXPENSE,
    RowRole.FINANCE: P_FINANCING,
    RowRole.OTHER_IN: P_OTHER_IN,
    RowRole.OTHER_OUT: P_OTHER_OUT,
    RowRole.NET_CASH: P_NET_CASH,
    RowRole.ENDING: P_ENDING,
}


@dataclass(frozen=True)
class ScenarioTemplate:
    """
    Column layout and policy constants for the growth-rate recalculation.

    Column indices are 0-based positions in the statement rows. Periods run
    from `period_start_col` to `period_end_col` inclusive; the first
    `actual_periods` of them are actuals and never change.
    """
    version: str = "2026.1"
    reference_rate: float = 130.0
    min_rate: float = 100.0
    max_rate: float = 200.0
    rate_step: float = 10.0

    period_start_col: int = 2
    period_end_col: int = 13
    actual_periods: int = 2

    prior_year_col: int = 1
    prior_year_header: str = r"25년|fy\s?25|prior"
    annual_total_col: int = 14
    annual_total_header: str = r"합계|total"
    variance_col: int = 15
    variance_header: str = r"yoy"

    # Share of the online revenue delta spent on each variable cost line
    ad_rate: float = 0.20
    commission_rate: float = 0.10

    required_roles: Tuple[RowRole, ...] = (RowRole.ONLINE, RowRole.SALES_TOTAL)
    role_patterns: Dict[RowRole, str] = field(default_factory=lambda: dict(ROLE_PATTERNS))

    balance_pattern: str = r"잔액|balance"
    opening_balance_pattern: str = P_BEGINNING
    opening_balance_uses_first_period: bool = False

    @property
    def period_cols(self) -> List[int]:
        return list(range(self.period_start_col, self.period_end_col + 1))

    @property
    def forecast_cols(self) -> List[int]:
        return [c for c in self.period_cols if not self.is_actual(c)]

    def is_actual(self, col: int) -> bool:
        return self.period_start_col <= col < self.period_start_col + self.actual_periods

    @property
    def variable_cost_rate(self) -> float:
        return self.ad_rate + self.commission_rate

    def rate_options(self) -> List[int]:
        """Selectable growth rates for the UI."""
        steps = int(round((self.max_rate - self.min_rate) / self.rate_step))
        return [int(self.min_rate + i * self.rate_step) for i in range(steps + 1)]


@dataclass(frozen=True)
class CashLoanLayout:
    """How a recalculated cash flow maps onto the cash/loan-balance table."""
    cash_balance_pattern: str = r"현금잔액|cash balance"
    source_beginning_pattern: str = P_BEGINNING
    source_ending_pattern: str = P_ENDING
    opening_col: int = 1
    period_start_col: int = 2
    source_period_start_col: int = 2
    periods: int = 12
    closing_col: int = 14
    variance_col: int = 15
    variance_header: str = r"yoy"

    @property
    def column_pairs(self) -> List[Tuple[int, int]]:
        """(cash-loan column, cash-flow column) per period."""
        return [
            (self.period_start_col + i, self.source_period_start_col + i)
            for i in range(self.periods)
        ]

    @property
    def source_last_col(self) -> int:
        return self.source_period_start_col + self.periods - 1


DEFAULT_TEMPLATE = ScenarioTemplate()
DEFAULT_CASHLOAN_LAYOUT = CashLoanLayout()
