"""
Data Merge Page
Reconciled order + payment records with their resolved status, merge
statistics and data-quality metrics.

Filtering by status or status source returns the complete filtered set in one
response (pagination and search do not apply), matching the backend.
"""

import streamlit as st
import plotly.express as px
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ui_components import (
    render_page_header, render_kpi_row, render_chart, render_empty_state,
    record_logs, format_number, status_badge_markdown
)
from business_rules import MERGE_RULES, MERGED_TABLE_COLUMNS, get_status_badge, quality_fractions
from data_loader import fetch_merged_page, fetch_merge_statistics
from data_actions import rebuild_merged_table
from api_client import ApiError, QueryTracker
from utils import export_merged_csv, get_filtered_data_as_excel, merged_export_filename, breakdown_to_frame

BADGE_BACKGROUNDS = {
    "green": "#dcfce7",
    "blue": "#dbeafe",
    "orange": "#fef9c3",
    "red": "#fee2e2",
    "gray": "#f3f4f6",
}


# ===== STATE HELPERS =====

def _get_tracker():
    if 'merge_query_tracker' not in st.session_state:
        st.session_state['merge_query_tracker'] = QueryTracker()
    return st.session_state['merge_query_tracker']


def _reset_page():
    st.session_state['merge_page'] = 0


def _clear_filters():
    st.session_state['merge_search'] = ""
    st.session_state['merge_status_filter'] = ""
    st.session_state['merge_source_filter'] = ""
    _reset_page()


def style_status_column(df):
    """Color the final_status cells by badge color"""
    def cell_style(value):
        color = get_status_badge(value)['color']
        return f"background-color: {BADGE_BACKGROUNDS.get(color, BADGE_BACKGROUNDS['gray'])}"
    if 'final_status' not in df.columns:
        return df
    return df.style.map(cell_style, subset=['final_status'])


# ===== SECTIONS =====

def render_statistics_panel(stats):
    """Totals, breakdowns and data-quality metrics. Zeros when statistics failed to load."""
    st.subheader("📈 Merge Statistics")

    if stats.get('warning'):
        st.warning(stats['warning'])

    quality = stats['dataQuality']
    fractions = quality_fractions(stats)
    render_kpi_row({
        "Total Records": {"value": format_number(stats['totalMergedRecords'])},
        "Unique Orders": {"value": format_number(stats['uniqueOrders'])},
        "SKU Coverage": {
            "value": format_number(fractions['sku'] * 100, 'percentage'),
            "help": f"{format_number(quality['recordsWithSku'])} with SKU, "
                    f"{format_number(quality['recordsWithoutSku'])} without"
        },
        "With Quantity": {"value": format_number(fractions['quantity'] * 100, 'percentage')},
        "With Product Name": {"value": format_number(fractions['product_name'] * 100, 'percentage')},
    })

    source_df = breakdown_to_frame(stats['statusSourceBreakdown'], 'status_source')
    status_df = breakdown_to_frame(stats['finalStatusBreakdown'], 'final_status')

    col1, col2 = st.columns(2)
    with col1:
        if source_df.empty:
            st.caption("No status source data")
        else:
            fig = px.pie(source_df, names='status_source', values='count', hole=0.4)
            render_chart(fig, title="By Status Source", height=300)
    with col2:
        if status_df.empty:
            st.caption("No status data")
        else:
            fig = px.bar(status_df, x='final_status', y='count')
            render_chart(fig, title="By Final Status", height=300)


def render_filters(stats):
    """Search / status / source filters; options come from the statistics breakdowns"""
    statuses = [""] + sorted(stats['finalStatusBreakdown'].keys())
    sources = [""] + sorted(stats['statusSourceBreakdown'].keys())

    for key in ["merge_status_filter", "merge_source_filter"]:
        options = statuses if key == "merge_status_filter" else sources
        if st.session_state.get(key) not in options:
            st.session_state[key] = ""

    col1, col2, col3, col4, col5 = st.columns([3, 2, 2, 1, 1])
    with col1:
        search = st.text_input("🔍 Search order ID, SKU or status", key="merge_search", on_change=_reset_page)
    with col2:
        status_filter = st.selectbox("Final status", options=statuses, key="merge_status_filter",
                                     format_func=lambda s: s or "All statuses", on_change=_reset_page)
    with col3:
        source_filter = st.selectbox("Status source", options=sources, key="merge_source_filter",
                                     format_func=lambda s: s or "All sources", on_change=_reset_page)
    with col4:
        page_size = st.selectbox("Rows", options=MERGE_RULES['page_size_options'],
                                 index=MERGE_RULES['page_size_options'].index(MERGE_RULES['default_page_size']),
                                 key="merge_page_size", on_change=_reset_page)
    with col5:
        st.write("")
        st.button("Clear", on_click=_clear_filters, key="merge_clear_filters")

    if (status_filter or source_filter) and search.strip():
        st.caption("ℹ️ Search is not applied while a status or source filter is active.")
    if status_filter and source_filter:
        st.caption("ℹ️ Status filter takes precedence over the source filter.")

    return search, status_filter, source_filter, int(page_size)


def render_pagination(meta):
    page = st.session_state.get('merge_page', 0)
    total_pages = max(meta['total_pages'], 1)

    col1, col2, col3 = st.columns([1, 3, 1])
    with col1:
        if st.button("◀ Previous", disabled=page <= 0, key="merge_prev"):
            st.session_state['merge_page'] = page - 1
            st.rerun()
    with col2:
        st.caption(f"Page {page + 1} of {total_pages} · {format_number(meta['total_records'])} records")
    with col3:
        if st.button("Next ▶", disabled=page + 1 >= total_pages, key="merge_next"):
            st.session_state['merge_page'] = page + 1
            st.rerun()


def render_records(records_df, meta):
    if records_df.empty:
        render_empty_state("No merged records found")
        return

    visible = records_df[MERGED_TABLE_COLUMNS]
    st.dataframe(style_status_column(visible), width='stretch', hide_index=True)

    if not meta['paginated']:
        st.caption(f"Showing all {len(records_df)} matching records")

    with st.expander("Status legend"):
        for status in ["delivered", "shipped", "processing", "cancelled", "rto"]:
            st.markdown(status_badge_markdown(status))

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "📥 Export CSV",
            data=export_merged_csv(records_df),
            file_name=merged_export_filename('csv'),
            mime="text/csv",
            key="merge_export_csv"
        )
    with col2:
        st.download_button(
            "📥 Export Excel",
            data=get_filtered_data_as_excel({"Merged Data": (records_df, False)}),
            file_name=merged_export_filename('xlsx'),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            key="merge_export_xlsx"
        )


def render_rebuild(session):
    with st.expander("🛠️ Maintenance"):
        st.caption("Rebuild the merged table from the latest uploaded order and payment files.")
        if st.button("Rebuild merged table", key="merge_rebuild"):
            try:
                with st.spinner("Rebuilding merged table..."):
                    result = rebuild_merged_table(session)
                st.success(f"{result['message'] or 'Merged table rebuilt'} ({format_number(result['records'])} records)")
            except ApiError as e:
                st.error(f"Rebuild failed: {e}")


# ===== MAIN PAGE RENDER =====

def render_data_merge_page(session):
    """Render the data merge reconciliation view"""
    render_page_header("Data Merge", icon="🔗",
                       subtitle="Order and payment files merged per order, with a single resolved status")

    stats_logs, stats = fetch_merge_statistics(session)
    record_logs("Data Merge", stats_logs)
    render_statistics_panel(stats)

    st.divider()
    st.subheader("📋 Merged Records")

    search, status_filter, source_filter, page_size = render_filters(stats)
    page = st.session_state.setdefault('merge_page', 0)

    with st.spinner("Loading merged records..."):
        logs, records_df, meta = fetch_merged_page(
            session, page, page_size,
            search_term=search,
            status_filter=status_filter or None,
            source_filter=source_filter or None,
            tracker=_get_tracker()
        )
    record_logs("Data Merge", logs)

    if meta['stale']:
        st.stop()

    render_records(records_df, meta)
    if meta['paginated']:
        render_pagination(meta)

    st.divider()
    render_rebuild(session)
