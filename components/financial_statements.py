"""
Financial Statements Component
==============================
Collapsible statement tables for the CF / PL / BS / WC tabs:
- Rows grouped into sections, groups and line items
- Actual vs Forecast labelling on the month headers
- Expand/collapse per header row, or all at once
- Negative values in red, whatever their notation
"""
import html
import streamlit as st
from typing import List, Optional, Sequence

from hierarchy_engine import TreeNode, visible_nodes
from services.session_manager import SessionManager
from services.statement_service import TAB_LABELS, StatementService
from statement_config import DEFAULT_TEMPLATE, NodeKind, ScenarioTemplate
from statement_data import TabularStatement, is_blank, parse_number


# =============================================================================
# STYLING CONSTANTS
# =============================================================================

ACCENT = "#3B82F6"
ACCENT_LIGHT = "rgba(59, 130, 246, 0.1)"
DARK_BG = "#18181B"
DARKER_BG = "#09090B"
BORDER_COLOR = "#3F3F46"
TEXT_MUTED = "#A1A1AA"
TEXT_WHITE = "#FAFAFA"
RED = "#ef4444"
ACTUAL_COLOR = "#10b981"  # Green for actuals
FORECAST_COLOR = "#3b82f6"  # Blue for forecast


def build_table_css() -> str:
    """Build CSS for the table with horizontal scrolling and frozen first column."""
    return f"""
    <style>
    .fs-container {{
        overflow-x: auto;
        margin: 1rem 0;
        max-width: 100%;
        border: 1px solid {BORDER_COLOR};
        border-radius: 4px;
    }}
    .fs-table {{
        border-collapse: separate;
        border-spacing: 0;
        font-family: 'Inter', 'Segoe UI', sans-serif;
        font-size: 13px;
        min-width: max-content;
    }}
    .fs-table th {{
        background: {DARKER_BG};
        color: {ACCENT};
        padding: 10px;
        text-align: right;
        font-weight: 600;
        border-bottom: 2px solid {ACCENT};
        white-space: nowrap;
        position: sticky;
        top: 0;
        z-index: 1;
    }}
    .fs-table th:first-child {{
        text-align: left;
        min-width: 220px;
        position: sticky;
        left: 0;
        z-index: 3;
        border-right: 2px solid {ACCENT};
    }}
    .fs-table th.actual {{ color: {ACTUAL_COLOR}; }}
    .fs-table th.forecast {{ color: {FORECAST_COLOR}; }}
    .fs-table td {{
        padding: 7px 10px;
        text-align: right;
        border-bottom: 1px solid {BORDER_COLOR};
        color: {TEXT_WHITE};
        white-space: nowrap;
    }}
    .fs-table td:first-child {{
        text-align: left;
        position: sticky;
        left: 0;
        z-index: 2;
        background: {DARK_BG};
        border-right: 2px solid {BORDER_COLOR};
    }}
    .fs-table tr:hover td {{ background: {ACCENT_LIGHT} !important; }}
    .fs-table .section-header td {{ background: {ACCENT_LIGHT}; color: {ACCENT}; font-weight: 700; border-top: 2px solid {BORDER_COLOR}; }}
    .fs-table .subtotal td {{ font-weight: 600; }}
    .fs-table .total td {{ font-weight: 700; border-top: 2px solid {ACCENT}; border-bottom: 2px solid {ACCENT}; }}
    .fs-table .detail td {{ color: {TEXT_MUTED}; font-size: 12px; }}
    .fs-table .indent-1 td:first-child {{ padding-left: 25px; }}
    .fs-table .indent-2 td:first-child {{ padding-left: 45px; }}
    .fs-table .toggle {{ color: {TEXT_MUTED}; display: inline-block; width: 14px; }}
    .fs-table .negative {{ color: {RED} !important; }}
    .fs-table .summary-cell {{ background: rgba(59, 130, 246, 0.05); }}
    </style>
    """


def header_class(col: int, template: ScenarioTemplate = DEFAULT_TEMPLATE) -> str:
    if col in template.period_cols:
        return "actual" if template.is_actual(col) else "forecast"
    return ""


def build_table_header(headers: Sequence[str], template: ScenarioTemplate = DEFAULT_TEMPLATE) -> str:
    """Build table header row."""
    out = '<div class="fs-container"><table class="fs-table"><thead><tr>'
    for col, header in enumerate(headers):
        css_class = header_class(col, template)
        label = html.escape(header)
        if css_class == "actual":
            label += f'<br><span style="font-size:10px;color:{ACTUAL_COLOR}">Actual</span>'
        elif css_class == "forecast":
            label += f'<br><span style="font-size:10px;color:{FORECAST_COLOR}">Forecast</span>'
        out += f'<th class="{css_class}">{label}</th>' if css_class else f'<th>{label}</th>'
    out += '</tr></thead><tbody>'
    return out


def row_class(node: TreeNode) -> str:
    """CSS classes for a row: kind of row plus its indent level."""
    if node.kind == NodeKind.SECTION:
        css = "section-header"
    elif node.kind == NodeKind.STANDALONE:
        css = "total"
    elif node.is_header:
        css = "subtotal"
    elif node.level >= 2:
        css = "detail"
    else:
        css = "row"
    if node.level:
        css += f" indent-{min(node.level, 2)}"
    return css


def format_cell(cell: str, css: str = "") -> str:
    """Cell HTML; negatives in "-1,234" or "(1,234)" form are shown in red."""
    classes = [css] if css else []
    if not is_blank(cell) and parse_number(cell) < 0:
        classes.append("negative")
    attr = f' class="{" ".join(classes)}"' if classes else ""
    return f"<td{attr}>{html.escape(cell)}</td>"


def build_table_body(forest: Sequence[TreeNode], width: int, template: ScenarioTemplate = DEFAULT_TEMPLATE) -> str:
    """Build table body rows for the currently visible nodes."""
    out = ""
    summary_cols = {template.annual_total_col, template.variance_col, template.prior_year_col}
    for node in visible_nodes(forest):
        marker = ""
        if node.is_header and node.has_children:
            marker = "▾" if node.is_expanded else "▸"
        cells = list(node.row_data) + [""] * (width - len(node.row_data))

        out += f'<tr class="{row_class(node)}" data-node="{node.id}">'
        out += f'<td><span class="toggle">{marker}</span>{html.escape(cells[0])}</td>'
        for col in range(1, width):
            out += format_cell(cells[col], "summary-cell" if col in summary_cols else "")
        out += '</tr>'
    return out


def render_statement_table(forest: Sequence[TreeNode], headers: Sequence[str],
                           template: ScenarioTemplate = DEFAULT_TEMPLATE) -> None:
    """Render a statement tree as HTML table with horizontal scrolling."""
    if not headers:
        st.warning("No data available for this statement.")
        return

    table = build_table_css()
    table += build_table_header(headers, template)
    table += build_table_body(forest, len(headers), template)
    table += "</tbody></table></div>"
    st.markdown(table, unsafe_allow_html=True)


def render_expansion_controls(tab: str, forest: Sequence[TreeNode]) -> None:
    """Expand/collapse-all buttons plus one toggle per visible header row."""
    col1, col2, _ = st.columns([1, 1, 6])
    with col1:
        st.button("Expand all", key=f"expand_all_{tab}",
                  on_click=SessionManager.reset_expansion, args=(tab, forest, True))
    with col2:
        st.button("Collapse all", key=f"collapse_all_{tab}",
                  on_click=SessionManager.reset_expansion, args=(tab, forest, False))

    headers = [n for n in visible_nodes(forest) if n.is_header and n.has_children]
    if not headers:
        return
    with st.expander("Sections", expanded=False):
        for node in headers:
            marker = "▾" if node.is_expanded else "▸"
            st.button(f"{marker} {node.label.strip()}", key=f"toggle_{tab}_{node.id}",
                      on_click=SessionManager.toggle_node, args=(tab, node.id, forest))


# =============================================================================
# MAIN RENDER FUNCTION
# =============================================================================

def render_statement_tab(
    service: StatementService,
    tab: str,
    statement: Optional[TabularStatement] = None,
    caption: Optional[str] = None,
) -> List[TreeNode]:
    """
    Render one statement tab.

    Args:
        service: Statement service
        tab: CF / PL / BS / WC
        statement: Rows to show instead of the stored statement
            (e.g. the recalculated cash flow)
        caption: Optional line under the title

    Returns:
        The rendered tree
    """
    statement = statement if statement is not None else service.get_statement(tab)
    st.markdown(f"#### {TAB_LABELS.get(tab.upper(), tab)}")
    if caption:
        st.caption(caption)

    forest = service.get_tree(tab, statement=statement, expanded=SessionManager.get_expansion(tab))
    render_expansion_controls(tab, forest)
    render_statement_table(forest, statement.headers, service.template)

    st.download_button(
        "Download CSV",
        statement.to_frame().to_csv(index=False).encode("utf-8-sig"),
        f"{tab.lower()}.csv",
        "text/csv",
        key=f"download_{tab}",
    )
    return forest
