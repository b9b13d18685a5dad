"""
Cash Flow Dashboard
===================
Main application entry point.

Tabs:
1. Cash Flow - collapsible statement with the growth-rate scenario
2. Profit & Loss - with a YoY % column
3. Balance Sheet
4. Working Capital

The narrative panel (key insights and key changes) sits beside the tables
and is persisted in Redis, or in a local JSON file when Redis is not set up.
"""

import streamlit as st
from datetime import datetime

from api.config import get_settings
from app_logging import configure_logging, get_logger
from components.dashboard_analysis import render_dashboard_analysis
from components.financial_statements import render_statement_tab
from components.scenario_panel import render_rate_selector, render_scenario_panel
from services import InsightsService, SessionManager, StatementService, get_kv_store, store_status
from services.statement_service import TAB_LABELS
from statement_data import StatementNotFoundError
from linear_theme import COLORS, configure_page, empty_state, signed_color, stat_card

logger = get_logger(__name__)

# =============================================================================
# PAGE CONFIGURATION
# =============================================================================

configure_page("Cash Flow Dashboard")


@st.cache_resource
def get_statement_service(data_dir: str) -> StatementService:
    return StatementService(data_dir)


def get_insights_service() -> InsightsService:
    return InsightsService(get_kv_store(get_settings()))


def init_session_state():
    """Initialize session state variables."""
    if not SessionManager.exists(SessionManager.INSIGHTS_EDITING):
        SessionManager.set(SessionManager.INSIGHTS_EDITING, False)


# =============================================================================
# SECTIONS
# =============================================================================

def render_cashflow_tab(service: StatementService):
    rate = render_rate_selector(service)
    outcome = service.run_scenario(rate)

    cf = outcome.cashflow.statement
    ending = service.ending_balance_series(cf)
    plan_ending = service.ending_balance_series(service.load("CF"))
    if len(ending) > 0:
        col1, col2, col3 = st.columns(3)
        with col1:
            st.markdown(stat_card("Year-end cash (scenario)", f"{ending.iloc[-1]:,.0f}",
                                  f"at {rate}% online growth"), unsafe_allow_html=True)
        with col2:
            st.markdown(stat_card("Year-end cash (plan)", f"{plan_ending.iloc[-1]:,.0f}",
                                  f"at {service.template.reference_rate:g}%"), unsafe_allow_html=True)
        with col3:
            diff = ending.iloc[-1] - plan_ending.iloc[-1]
            st.markdown(stat_card("Difference", f"{diff:+,.0f}", color=signed_color(diff)),
                        unsafe_allow_html=True)

    render_scenario_panel(service, outcome)
    render_statement_tab(service, "CF", statement=cf,
                         caption=f"Forecast months recalculated at {rate}% online growth")

    if outcome.cashloan is not None:
        with st.expander("Cash and loan balances", expanded=False):
            st.dataframe(outcome.cashloan.statement.to_frame(), use_container_width=True, hide_index=True)


def render_sidebar():
    settings = get_settings()
    status = store_status(settings)
    with st.sidebar:
        st.markdown("### Data")
        st.caption(f"Statements: {settings.data_dir}")
        backend = "Redis" if status["redis_configured"] else "Local file"
        st.caption(f"Narrative store: {backend} ({status['redis_url_preview']})")
        if st.button("Reload CSV files", use_container_width=True):
            get_statement_service(str(settings.data_dir)).clear_cache()
            st.rerun()
        st.markdown(
            f"<div style='text-align: center; color: {COLORS['text_tertiary']}; font-size: 0.75rem;'>"
            f"{settings.environment} | {datetime.now().strftime('%Y-%m-%d')}"
            f"</div>",
            unsafe_allow_html=True
        )


# =============================================================================
# MAIN APPLICATION
# =============================================================================

def main():
    """Main application entry point."""
    settings = get_settings()
    configure_logging(settings.log_level)
    init_session_state()
    render_sidebar()

    service = get_statement_service(str(settings.data_dir))

    st.markdown("## 2026 Cash Flow Dashboard")
    table_col, narrative_col = st.columns([3, 1])

    with table_col:
        tabs = st.tabs([TAB_LABELS[t] for t in ("CF", "PL", "BS", "WC")])
        for tab_key, tab in zip(("CF", "PL", "BS", "WC"), tabs):
            with tab:
                try:
                    if tab_key == "CF":
                        render_cashflow_tab(service)
                    else:
                        render_statement_tab(service, tab_key)
                except StatementNotFoundError as e:
                    logger.warning("Tab %s unavailable: %s", tab_key, e)
                    empty_state(f"No {TAB_LABELS[tab_key]} data",
                                f"Add {tab_key.lower()}.csv to the data directory.")

    with narrative_col:
        render_dashboard_analysis(get_insights_service())


if __name__ == "__main__":
    main()
