"""
Dashboard Analysis Component
============================
Editable narrative panel next to the statements: key insights (free text
with **bold** highlights) and the list of key changes.
"""
import html
import re
import streamlit as st
from typing import List

from redis.exceptions import RedisError

from linear_theme import COLORS, section_header
from services.insights_service import ChangeItem, InsightsService, InsightsValidationError
from services.session_manager import SessionManager

DRAFT_KEY = 'insights_draft'

_BOLD = re.compile(r"(\*\*.*?\*\*)")


def render_insight_html(text: str) -> str:
    """
    Render **bold** spans; a bold span starting with "-" is shown as a
    decrease, one starting with "+" as an increase.
    """
    parts = []
    for part in _BOLD.split(text):
        if part.startswith("**") and part.endswith("**") and len(part) >= 4:
            content = part[2:-2]
            if content.startswith("-"):
                css = "insight-negative"
            elif content.startswith("+"):
                css = "insight-positive"
            else:
                css = "insight-strong"
            parts.append(f'<span class="{css}">{html.escape(content)}</span>')
        elif part:
            parts.append(html.escape(part))
    return "".join(parts)


def _start_editing(current: List[str]) -> None:
    SessionManager.set(DRAFT_KEY, list(current))
    SessionManager.set(SessionManager.INSIGHTS_EDITING, True)


def _stop_editing() -> None:
    SessionManager.delete(DRAFT_KEY)
    SessionManager.set(SessionManager.INSIGHTS_EDITING, False)


def _add_draft_line() -> None:
    SessionManager.set(DRAFT_KEY, SessionManager.get(DRAFT_KEY, []) + [""])


def _remove_draft_line(index: int) -> None:
    draft = list(SessionManager.get(DRAFT_KEY, []))
    if 0 <= index < len(draft):
        draft.pop(index)
    SessionManager.set(DRAFT_KEY, draft)
    # Text areas are keyed by position; drop them so they re-read the draft
    for i in range(len(draft) + 1):
        SessionManager.delete(f"insight_text_{i}")


def render_insights(service: InsightsService) -> None:
    """Key insights: read view, or the editor while editing."""
    insights = service.get_insights()
    editing = SessionManager.get(SessionManager.INSIGHTS_EDITING, False)

    col1, col2 = st.columns([4, 1])
    with col1:
        section_header("Key Insights")
    with col2:
        if not editing:
            st.button("Edit", key="insights_edit", on_click=_start_editing, args=(insights,))

    if not editing:
        items = "".join(
            f'<li style="margin-bottom: 0.6rem;{" background: " + COLORS["accent_subtle"] + "; padding: 0.5rem;" if i == 0 else ""}">'
            f'{render_insight_html(text)}</li>'
            for i, text in enumerate(insights)
        )
        st.markdown(f'<ul style="padding-left: 1.2rem;">{items}</ul>', unsafe_allow_html=True)
        return

    draft = SessionManager.get(DRAFT_KEY, list(insights))
    edited = []
    for i, text in enumerate(draft):
        c1, c2 = st.columns([10, 1])
        with c1:
            edited.append(st.text_area(f"Insight {i + 1}", value=text, key=f"insight_text_{i}",
                                       label_visibility="collapsed"))
        with c2:
            st.button("✕", key=f"insight_remove_{i}", on_click=_remove_draft_line, args=(i,))
    SessionManager.set(DRAFT_KEY, edited)

    st.button("+ Add insight", key="insights_add", on_click=_add_draft_line)
    c1, c2, _ = st.columns([1, 1, 4])
    with c1:
        if st.button("Save", key="insights_save", type="primary"):
            try:
                service.save_insights(list(edited))
            except InsightsValidationError as e:
                st.error(f"Invalid insights: {e}")
            except (RedisError, OSError) as e:
                st.error(f"Failed to save insights: {e}")
            else:
                _stop_editing()
                st.success("Insights saved")
                st.rerun()
    with c2:
        st.button("Cancel", key="insights_cancel", on_click=_stop_editing)


def render_changes(changes: List[ChangeItem]) -> None:
    """Key changes as a compact list of title / value / description."""
    section_header("Key Changes")
    for item in changes:
        description = (
            f'<div style="color: {COLORS["text_tertiary"]}; font-size: 0.8rem;">{html.escape(item.description)}</div>'
            if item.description else ''
        )
        st.markdown(f"""
        <div style="border-left: 3px solid {COLORS['accent']}; padding: 0.4rem 0.8rem; margin-bottom: 0.6rem;">
            <div style="color: {COLORS['text_primary']}; font-weight: 600;">{html.escape(item.title)}</div>
            <div style="color: {COLORS['accent']};">{html.escape(item.value)}</div>
            {description}
        </div>
        """, unsafe_allow_html=True)


def render_dashboard_analysis(service: InsightsService) -> None:
    """Main render function for the narrative panel."""
    render_insights(service)
    st.markdown("---")
    render_changes(service.get_changes())
