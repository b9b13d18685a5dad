"""
Services Layer
==============
Business logic between the engines and the UI / API layers.

Service classes can be used independently of Streamlit; only
SessionManager touches UI state.
"""

from .statement_service import StatementService, ScenarioOutcome, add_yoy_percent
from .insights_service import InsightsService, ChangeItem, get_kv_store, store_status
from .session_manager import SessionManager

__all__ = [
    'StatementService',
    'ScenarioOutcome',
    'add_yoy_percent',
    'InsightsService',
    'ChangeItem',
    'get_kv_store',
    'store_status',
    'SessionManager',
]
