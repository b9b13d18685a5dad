"""
Cash Flow Dashboard - Linear Theme
==================================
Dark colour system and page setup shared by every Streamlit view.

Positive/negative colours follow the narrative convention: figures that
improve cash read blue, figures that drain it read red.
"""

import streamlit as st
from typing import Any, Optional

# =============================================================================
# COLOR SYSTEM
# =============================================================================

COLORS = {
    # Surfaces
    'bg_base': '#09090B',
    'bg_surface': '#18181B',
    'border_subtle': '#27272A',

    # Text
    'text_primary': '#FAFAFA',
    'text_secondary': '#A1A1AA',
    'text_tertiary': '#71717A',

    # Accent and highlight for the first insight
    'accent': '#3B82F6',
    'accent_subtle': 'rgba(59, 130, 246, 0.08)',

    # Figures
    'positive': '#60A5FA',
    'negative': '#F87171',

    # Status
    'success': '#22C55E',
    'warning': '#F59E0B',
    'error': '#EF4444',
}

# Plotly series colours: reference plan vs scenario
BASE_SERIES = COLORS['text_tertiary']
SCENARIO_SERIES = COLORS['accent']

_BADGE_VARIANTS = ('success', 'warning', 'error')


def _css_variables() -> str:
    return "\n".join(f"    --{key.replace('_', '-')}: {value};" for key, value in COLORS.items())


# =============================================================================
# MAIN THEME CSS
# =============================================================================

LINEAR_CSS = f"""
<style>
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600&display=swap');

:root {{
{_css_variables()}
}}

html, body, [data-testid="stAppViewContainer"], .stApp {{
    font-family: 'Inter', sans-serif !important;
    background-color: var(--bg-base) !important;
    color: var(--text-secondary) !important;
}}

.block-container {{ padding: 1.5rem 2.5rem !important; max-width: 1700px !important; }}

h1, h2, h3 {{ color: var(--text-primary) !important; font-weight: 600 !important; }}

.stTabs [data-baseweb="tab-list"] {{ border-bottom: 1px solid var(--border-subtle); }}
.stTabs [aria-selected="true"] {{ color: var(--accent) !important; }}

.insight-positive {{ color: var(--positive); font-weight: 600; }}
.insight-negative {{ color: var(--negative); font-weight: 600; }}
.insight-strong {{ color: var(--text-primary); font-weight: 600; }}

.stat-card {{
    background: var(--bg-surface);
    border: 1px solid var(--border-subtle);
    border-radius: 8px;
    padding: 0.9rem 1rem;
}}
.stat-card .stat-title {{ color: var(--text-tertiary); font-size: 0.8rem; }}
.stat-card .stat-value {{ color: var(--text-primary); font-size: 1.4rem; font-weight: 600; }}
.stat-card .stat-subtitle {{ color: var(--text-tertiary); font-size: 0.8rem; }}
</style>
"""


def configure_page(title: str = "Cash Flow Dashboard"):
    """Page settings plus the theme CSS; must be the first Streamlit call."""
    st.set_page_config(page_title=title, page_icon="📊", layout="wide")
    st.markdown(LINEAR_CSS, unsafe_allow_html=True)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def signed_color(value: float) -> str:
    """Figure colour for a signed amount; zero stays neutral."""
    if value > 0:
        return COLORS['positive']
    if value < 0:
        return COLORS['negative']
    return COLORS['text_primary']


def badge(text: str, variant: str) -> str:
    """Inline status pill (success, warning or error)."""
    color = COLORS[variant] if variant in _BADGE_VARIANTS else COLORS['text_tertiary']
    return (
        f'<span style="background: {color}22; color: {color}; padding: 0.2rem 0.5rem; '
        f'border-radius: 4px; font-size: 0.75rem;">{text}</span>'
    )


def stat_card(title: str, value: Any, subtitle: Optional[str] = None, color: Optional[str] = None) -> str:
    value_style = f' style="color: {color};"' if color else ''
    subtitle_html = f'<div class="stat-subtitle">{subtitle}</div>' if subtitle else ''
    return (
        f'<div class="stat-card"><div class="stat-title">{title}</div>'
        f'<div class="stat-value"{value_style}>{value}</div>{subtitle_html}</div>'
    )


def section_header(title: str, subtitle: Optional[str] = None) -> None:
    st.markdown(f'### {title}')
    if subtitle:
        st.caption(subtitle)


def empty_state(title: str, description: Optional[str] = None) -> None:
    """Placeholder for a tab whose CSV is missing."""
    st.markdown(f"#### {title}")
    if description:
        st.caption(description)
