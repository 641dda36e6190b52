"""
UI Components Module
Modular, reusable UI components for the E-commerce Analytics Dashboard
Easy to add, edit, and enhance without touching loader logic
"""

import streamlit as st
import pandas as pd
from datetime import datetime

from business_rules import ANALYTICS_RULES, get_status_badge
from utils import MONTH_NAMES

# ===== UI LAYOUT HELPERS =====

def render_page_header(title, icon="📊", subtitle=None):
    """Render consistent page headers"""
    st.title(f"{icon} {title}")
    if subtitle:
        st.caption(subtitle)
    st.divider()

def render_kpi_row(metrics_dict):
    """
    Render a row of KPI metrics

    Args:
        metrics_dict: Dict with format {"Label": {"value": "123", "delta": "+5%", "help": "Help text"}}
    """
    if not metrics_dict:
        return
    cols = st.columns(len(metrics_dict))
    for idx, (label, data) in enumerate(metrics_dict.items()):
        with cols[idx]:
            raw_value = data.get("value", "N/A")
            if raw_value is None or (isinstance(raw_value, str) and raw_value.strip() == ""):
                raw_value = "N/A"
            st.metric(
                label=label,
                value=raw_value,
                delta=data.get("delta"),
                help=data.get("help")
            )

def render_data_table(df, title=None, max_rows=500, downloadable=True, download_filename="data.csv"):
    """
    Render a data table with optional CSV download

    Args:
        df: Pandas DataFrame
        title: Optional section title
        max_rows: Maximum rows to display
        downloadable: Show download button
        download_filename: Name for downloaded file
    """
    if title:
        st.subheader(title)

    if df is None or df.empty:
        render_empty_state("No data available")
        return

    st.dataframe(df.head(max_rows), width='stretch', hide_index=True)

    if len(df) > max_rows:
        st.caption(f"Showing first {max_rows} of {len(df)} records")

    if downloadable:
        csv = df.to_csv(index=False).encode('utf-8')
        st.download_button(
            label="📥 Download CSV",
            data=csv,
            file_name=download_filename,
            mime="text/csv",
            key=f"download_{download_filename}_{id(df)}"
        )

def render_chart(fig, title=None, height=400):
    """
    Render a Plotly chart with consistent styling

    Args:
        fig: Plotly figure object
        title: Optional chart title
        height: Chart height in pixels
    """
    if title:
        st.subheader(title)

    fig.update_layout(
        height=height,
        margin=dict(l=20, r=20, t=40, b=20),
        template="plotly_white"
    )

    st.plotly_chart(fig, width='stretch')

def render_empty_state(message="No data available"):
    st.info(f"ℹ️ {message}")

def status_badge_markdown(final_status):
    """Colored markdown badge for a merged record's final status"""
    badge = get_status_badge(final_status)
    label = final_status if final_status else "UNKNOWN"
    return f"{badge['icon']} :{badge['color']}[{label}]"

def render_month_year_selector(key_prefix, years_back=ANALYTICS_RULES['year_options_count']):
    """
    Render month and year selectboxes side by side

    Returns:
        tuple: (year, month) with month in 1-12
    """
    now = datetime.now()
    col1, col2 = st.columns(2)
    with col1:
        month = st.selectbox(
            "Month",
            options=list(range(1, 13)),
            index=now.month - 1,
            format_func=lambda m: MONTH_NAMES[m - 1],
            key=f"{key_prefix}_month"
        )
    with col2:
        year = st.selectbox(
            "Year",
            options=[now.year - i for i in range(years_back)],
            index=0,
            key=f"{key_prefix}_year"
        )
    return int(year), int(month)

# ===== NAVIGATION HELPERS =====

def get_main_navigation():
    """
    Define main navigation menu structure
    Returns list of menu items with page info
    """
    return [
        {
            "id": "overview",
            "label": "📊 Overview",
            "description": "Revenue, profit, loss and order trends"
        },
        {
            "id": "data_merge",
            "label": "🔗 Data Merge",
            "description": "Reconciled order + payment records"
        },
        {
            "id": "sku_groups",
            "label": "🗂️ SKU Groups",
            "description": "Group SKUs by purchase price"
        },
        {
            "id": "loss_analysis",
            "label": "📉 Loss Analysis",
            "description": "Orders settled below cost"
        },
        {
            "id": "return_analysis",
            "label": "↩️ Return Analysis",
            "description": "Returns, RTO and their cost impact"
        },
        {
            "id": "return_tracking",
            "label": "📦 Return Tracking",
            "description": "Track receipt of returned parcels"
        },
        {
            "id": "upload",
            "label": "📤 Upload Data",
            "description": "Upload order, payment and SKU price files"
        },
        {
            "id": "debug",
            "label": "🔧 Debug & Logs",
            "description": "Request logs and diagnostics"
        }
    ]

def render_navigation():
    """
    Render main navigation menu in sidebar
    Returns selected page ID
    """
    menu_items = get_main_navigation()

    selected = st.sidebar.selectbox(
        "Navigate to",
        options=[item["label"] for item in menu_items],
        index=0,
        key="main_nav"
    )

    selected_page = next((item for item in menu_items if item["label"] == selected), None)

    if selected_page:
        st.sidebar.caption(selected_page["description"])

    st.sidebar.divider()

    return selected_page["id"] if selected_page else "overview"

# ===== DIAGNOSTIC LOGS =====

MAX_LOG_LINES_PER_SECTION = 200

def record_logs(section, logs):
    """
    Append loader log lines to the Debug page's log store in session_state.

    Keeps the newest MAX_LOG_LINES_PER_SECTION lines per section.
    """
    if not logs:
        return
    store = st.session_state.setdefault('debug_logs', {})
    stamp = datetime.now().strftime('%H:%M:%S')
    lines = store.get(section, []) + [f"{log} [{stamp}]" for log in logs]
    store[section] = lines[-MAX_LOG_LINES_PER_SECTION:]

def show_load_errors(logs, message="Some analytics could not be loaded. Showing what is available."):
    """Non-blocking notice when a read-only view degraded to empty data"""
    if any(log.startswith("ERROR:") for log in logs):
        st.caption(f"⚠️ {message}")

# ===== UTILITY FORMATTERS =====

def format_number(value, format_type="integer"):
    """Format numbers consistently"""
    if value is None:
        return "N/A"
    try:
        if pd.isna(value):
            return "N/A"
    except (TypeError, ValueError):
        pass

    currency = ANALYTICS_RULES['currency_symbol']
    formats = {
        'integer': '{:,.0f}',
        'currency': currency + '{:,.2f}',
        'percentage': '{:.1f}%',
        'decimal': '{:.2f}'
    }

    try:
        return formats.get(format_type, '{}').format(value)
    except (TypeError, ValueError):
        return str(value)
