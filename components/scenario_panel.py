"""
Scenario Panel Component
========================
Growth-rate selector for the cash-flow tab, with the ending-balance chart
(reference plan vs scenario) and a sensitivity table across all rates.
"""
import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from linear_theme import BASE_SERIES, COLORS, SCENARIO_SERIES, badge
from scenario_engine import RecalcStatus
from services.session_manager import SessionManager
from services.statement_service import ScenarioOutcome, StatementService


def render_rate_selector(service: StatementService) -> int:
    """Select slider over the template's growth-rate steps; stored in session."""
    options = service.template.rate_options()
    current = SessionManager.get_growth_rate()
    if current not in options:
        current = service.template.reference_rate
    rate = st.select_slider(
        "Online growth rate (%)",
        options=options,
        value=current,
        format_func=lambda r: f"{r}%",
        key="growth_rate_slider",
        help=f"The plan is prepared at {service.template.reference_rate:g}%",
    )
    SessionManager.set_growth_rate(rate)
    return rate


def status_badge(outcome: ScenarioOutcome) -> str:
    status = outcome.cashflow.status
    if status == RecalcStatus.FULL:
        return badge("Recalculated", "success")
    if status == RecalcStatus.PARTIAL:
        return badge(f"Partial: missing {', '.join(outcome.cashflow.missing_roles)}", "warning")
    return badge("Unchanged: required rows missing", "error")


# =============================================================================
# VISUALIZATION
# =============================================================================

def create_balance_chart(base: pd.Series, scenario: pd.Series, rate: float) -> go.Figure:
    """Overlay of the monthly ending balance, plan vs scenario."""
    fig = go.Figure()

    if len(base) > 0:
        fig.add_trace(go.Scatter(
            x=list(base.index),
            y=base.values,
            name='Plan',
            mode='lines+markers',
            line=dict(color=BASE_SERIES, width=2, dash='dash'),
        ))

    if len(scenario) > 0:
        fig.add_trace(go.Scatter(
            x=list(scenario.index),
            y=scenario.values,
            name=f'Scenario {rate:g}%',
            mode='lines+markers',
            line=dict(color=SCENARIO_SERIES, width=2),
        ))

    fig.update_layout(
        title='Ending cash balance',
        xaxis_title='Month',
        legend=dict(orientation='h', yanchor='bottom', y=1.02),
        height=350,
        margin=dict(l=50, r=20, t=60, b=50),
        hovermode='x unified',
        paper_bgcolor=COLORS['bg_base'],
        plot_bgcolor=COLORS['bg_base'],
        font=dict(color=COLORS['text_secondary']),
    )
    fig.update_yaxes(tickformat=',.0f')
    return fig


def render_sensitivity(service: StatementService) -> None:
    table = service.sensitivity_table()
    if table.empty:
        return
    display = table.rename(columns={
        'growth_rate': 'Growth rate (%)',
        'online_revenue': 'Online revenue (forecast)',
        'net_cash': 'Net cash (year)',
        'year_end_cash': 'Year-end cash',
        'status': 'Status',
    })
    st.dataframe(
        display.style.format({
            'Growth rate (%)': '{:.0f}',
            'Online revenue (forecast)': '{:,.0f}',
            'Net cash (year)': '{:,.0f}',
            'Year-end cash': '{:,.0f}',
        }, na_rep='-'),
        use_container_width=True,
        hide_index=True,
    )


def render_scenario_panel(service: StatementService, outcome: ScenarioOutcome) -> None:
    """Chart and sensitivity for the selected rate."""
    st.markdown(status_badge(outcome), unsafe_allow_html=True)

    base = service.ending_balance_series(service.load("CF"))
    scenario = service.ending_balance_series(outcome.cashflow.statement)
    st.plotly_chart(create_balance_chart(base, scenario, outcome.rate), use_container_width=True)

    with st.expander("Sensitivity across growth rates", expanded=False):
        render_sensitivity(service)
