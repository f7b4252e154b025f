"""Supabase access for the Streamlit app. One client per browser session (it carries the login)."""
import logging

import streamlit as st

from mocktest.database import DatabaseClient

logger = logging.getLogger(__name__)


def get_database() -> DatabaseClient:
    """Per-session client; auth state must not leak between users."""
    if "database" not in st.session_state:
        st.session_state["database"] = DatabaseClient()
    return st.session_state["database"]


def current_user():
    """Logged-in user or None; auth errors count as logged out."""
    database = get_database()
    try:
        return database.get_user()
    except Exception as e:
        logger.info(f"No authenticated user: {e}")
        return None


def access_token():
    session = get_database().get_session()
    return session.access_token if session else None


def sign_out() -> None:
    try:
        get_database().sign_out()
    finally:
        for key in ("controller", "attempt_id", "report_attempt_id"):
            st.session_state.pop(key, None)
