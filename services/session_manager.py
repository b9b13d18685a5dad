"""
Session State Manager
=====================
Centralized access to the dashboard's per-session UI state: the selected
growth rate, the insight editor mode and which tree nodes are expanded on
each tab.
"""

import streamlit as st
from typing import Any, Dict, Optional, Sequence

from hierarchy_engine import TreeNode, initial_expansion, toggle_expansion
from statement_config import DEFAULT_TEMPLATE


class SessionManager:
    """
    Centralized session state manager.

    Expansion state is kept per tab so collapsing a section on the cash flow
    does not affect the balance sheet.
    """

    # Session state keys (centralized constants)
    GROWTH_RATE = 'growth_rate'
    EXPANSION_PREFIX = 'expansion_'
    INSIGHTS_EDITING = 'insights_editing'

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        """
        Get value from session state.

        Args:
            key: Session state key
            default: Default value if key doesn't exist

        Returns:
            Value from session state or default
        """
        return st.session_state.get(key, default)

    @staticmethod
    def set(key: str, value: Any) -> None:
        """
        Set value in session state.

        Args:
            key: Session state key
            value: Value to set
        """
        st.session_state[key] = value

    @staticmethod
    def delete(key: str) -> None:
        if key in st.session_state:
            del st.session_state[key]

    @staticmethod
    def exists(key: str) -> bool:
        return key in st.session_state

    # =========================================================================
    # TREE EXPANSION
    # =========================================================================

    @staticmethod
    def _expansion_key(tab: str) -> str:
        return f"{SessionManager.EXPANSION_PREFIX}{tab.upper()}"

    @staticmethod
    def get_expansion(tab: str) -> Dict[str, bool]:
        """Per-node expansion overrides for a tab (empty until the user acts)."""
        return dict(SessionManager.get(SessionManager._expansion_key(tab), {}))

    @staticmethod
    def set_expansion(tab: str, state: Dict[str, bool]) -> None:
        SessionManager.set(SessionManager._expansion_key(tab), dict(state))

    @staticmethod
    def toggle_node(tab: str, node_id: str, forest: Sequence[TreeNode]) -> Dict[str, bool]:
        """
        Flip one header row on a tab.

        Args:
            tab: Statement tab
            node_id: Id of the clicked row
            forest: Tree currently displayed on the tab

        Returns:
            The updated expansion map
        """
        state = toggle_expansion(SessionManager.get_expansion(tab), node_id, forest)
        SessionManager.set_expansion(tab, state)
        return state

    @staticmethod
    def reset_expansion(tab: str, forest: Sequence[TreeNode], expand_all: Optional[bool] = None) -> Dict[str, bool]:
        """Expand or collapse every header on a tab; None restores the defaults."""
        state = initial_expansion(forest, expand_all)
        SessionManager.set_expansion(tab, state)
        return state

    # =========================================================================
    # SCENARIO
    # =========================================================================

    @staticmethod
    def get_growth_rate() -> int:
        return int(SessionManager.get(SessionManager.GROWTH_RATE, DEFAULT_TEMPLATE.reference_rate))

    @staticmethod
    def set_growth_rate(rate: int) -> None:
        SessionManager.set(SessionManager.GROWTH_RATE, int(rate))

    @staticmethod
    def get_state_summary() -> Dict[str, Any]:
        """
        Get summary of current session state.

        Returns:
            Dictionary with state summary
        """
        expansion_tabs = [
            k[len(SessionManager.EXPANSION_PREFIX):]
            for k in st.session_state.keys()
            if str(k).startswith(SessionManager.EXPANSION_PREFIX)
        ]
        return {
            'growth_rate': SessionManager.get_growth_rate(),
            'tabs_with_expansion_state': sorted(expansion_tabs),
            'insights_editing': bool(SessionManager.get(SessionManager.INSIGHTS_EDITING, False)),
        }
