"""
E-commerce Analytics Dashboard
Streamlit front end for the order / payment analytics backend
"""

import streamlit as st
import logging
from datetime import datetime
import pytz

from api_client import ApiSession, API_BASE_URL, API_TOKEN

# Import UI components
from ui_components import render_navigation

# Import page modules
from pages.overview_page import render_overview_page
from pages.data_merge_page import render_data_merge_page
from pages.sku_group_page import render_sku_group_page
from pages.loss_analysis_page import render_loss_analysis_page
from pages.return_analysis_page import render_return_analysis_page
from pages.return_tracking_page import render_return_tracking_page
from pages.data_upload_page import render_data_upload_page
from pages.debug_page import render_debug_page

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

DISPLAY_TIMEZONE = "Asia/Kolkata"

PAGE_RENDERERS = {
    "overview": render_overview_page,
    "data_merge": render_data_merge_page,
    "sku_groups": render_sku_group_page,
    "loss_analysis": render_loss_analysis_page,
    "return_analysis": render_return_analysis_page,
    "return_tracking": render_return_tracking_page,
    "upload": render_data_upload_page,
}

# ===== PAGE CONFIGURATION =====
st.set_page_config(
    page_title="E-commerce Analytics Dashboard",
    page_icon="🛒",
    layout="wide",
    initial_sidebar_state="expanded"
)

# ===== CUSTOM CSS =====
st.markdown("""
    <style>
        /* Improve metric cards */
        [data-testid="stMetric"] {
            background-color: #f8f9fa;
            padding: 1rem;
            border-radius: 0.5rem;
            border: 1px solid #e9ecef;
        }

        /* Hide automatic Streamlit page navigation */
        [data-testid="stSidebarNav"] {
            display: none;
        }

        /* Mobile responsive */
        @media (max-width: 768px) {
            .stColumns > [data-testid="column"] {
                width: 100% !important;
                margin-bottom: 1rem;
            }
        }
    </style>
""", unsafe_allow_html=True)


def get_api_session():
    """One ApiSession per browser session"""
    if 'api_session' not in st.session_state:
        st.session_state['api_session'] = ApiSession(base_url=API_BASE_URL, token=API_TOKEN)
        logger.info("Created API session for %s", API_BASE_URL)
    return st.session_state['api_session']


def render_connection_settings(session):
    st.sidebar.markdown("**🔐 Connection**")
    st.sidebar.caption(session.base_url)

    with st.sidebar.form("api_token_form", clear_on_submit=True):
        token = st.text_input("Access token", type="password")
        if st.form_submit_button("Apply", width='stretch'):
            session.token = token.strip() or None

    if session.token:
        st.sidebar.success("Token set")
        if st.sidebar.button("Sign out", width='stretch'):
            session.clear_token()
            st.rerun()
    else:
        st.sidebar.info("No token. Requests are sent without authorization.")


# ===== MAIN APPLICATION =====

def main():
    """Main application entry point"""
    session = get_api_session()

    # ===== SIDEBAR: HEADER =====
    st.sidebar.title("🛒 E-commerce Analytics")
    st.sidebar.caption("Orders, payments, returns and losses")
    st.sidebar.divider()

    # ===== SIDEBAR: NAVIGATION =====
    selected_page = render_navigation()

    render_connection_settings(session)
    st.sidebar.divider()

    # ===== SIDEBAR: QUICK ACTIONS =====
    st.sidebar.header("⚡ Quick Actions")
    if st.sidebar.button("🔄 Refresh Data", width='stretch', help="Reload every view from the backend"):
        st.rerun()

    # Display dashboard time in IST
    ist = pytz.timezone(DISPLAY_TIMEZONE)
    ist_time = datetime.now(ist)
    st.markdown(f"<div style='font-size:16px; color:gray;'>Dashboard Time (IST): {ist_time.strftime('%Y-%m-%d %H:%M:%S')}</div>", unsafe_allow_html=True)

    # Route to selected page
    debug_logs = st.session_state.setdefault('debug_logs', {})
    if selected_page == "debug":
        render_debug_page(session, debug_logs)
    else:
        had_token = bool(session.token)
        PAGE_RENDERERS.get(selected_page, render_overview_page)(session)
        if had_token and not session.token:
            st.warning("Your session has expired. Please enter a new access token.")

    # Footer
    st.sidebar.divider()
    st.sidebar.caption("E-commerce Analytics Dashboard v1.0")


if __name__ == "__main__":
    main()
