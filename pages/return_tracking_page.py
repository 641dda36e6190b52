"""
Return Tracking Page
Track whether returned / RTO parcels actually arrived back at the warehouse
"""

import streamlit as st
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ui_components import (
    render_page_header, render_kpi_row, render_data_table, render_empty_state,
    record_logs, show_load_errors, format_number
)
from business_rules import RETURN_STATUSES
from data_loader import load_return_orders, load_return_summary, search_return_orders
from data_actions import sync_return_orders, mark_return_received, mark_return_not_received
from api_client import ApiError

TAB_LABELS = {
    "pending": "⏳ Pending Receipt",
    "received": "✅ Received",
    "not_received": "❌ Not Received",
}

TRACKING_COLUMNS = [
    'orderId', 'skuId', 'productName', 'quantity', 'orderStatus', 'orderDate',
    'returnStatus', 'receivedDate', 'receivedBy', 'notes'
]


def _visible(df):
    cols = [c for c in TRACKING_COLUMNS if c in df.columns]
    return df[cols] if cols else df


# ===== SECTIONS =====

def render_sync(session):
    if st.button("🔄 Sync Return Orders", key="return_sync",
                 help="Pull newly returned and RTO orders into tracking"):
        try:
            with st.spinner("Syncing return orders..."):
                added, updated = sync_return_orders(session)
            st.success(f"Sync completed! Added: {added}, Updated: {updated}")
        except ApiError as e:
            st.error(f"Sync failed: {e}")


def render_status_tab(session, key, return_status):
    logs, df = load_return_orders(session, return_status)
    record_logs("Return Tracking", logs)
    show_load_errors(logs, "Failed to fetch return orders.")
    if df.empty:
        render_empty_state("No orders in this state")
        return
    render_data_table(_visible(df), download_filename=f"returns-{key}.csv")


def render_mark_forms(session):
    col1, col2 = st.columns(2)
    with col1:
        with st.form("mark_received", clear_on_submit=True):
            st.markdown("**Mark as received**")
            order_id = st.text_input("Order ID")
            received_by = st.text_input("Received by")
            notes = st.text_area("Notes (optional)")
            if st.form_submit_button("Mark Received"):
                try:
                    mark_return_received(session, order_id, received_by, notes)
                    st.success(f"Order {order_id.strip()} marked as received")
                except (ValueError, ApiError) as e:
                    st.error(str(e))
    with col2:
        with st.form("mark_not_received", clear_on_submit=True):
            st.markdown("**Mark as not received**")
            order_id = st.text_input("Order ID")
            notes = st.text_area("Notes")
            if st.form_submit_button("Mark Not Received"):
                try:
                    mark_return_not_received(session, order_id, notes)
                    st.success(f"Order {order_id.strip()} marked as not received")
                except (ValueError, ApiError) as e:
                    st.error(str(e))


def render_search(session):
    with st.form("return_search"):
        col1, col2 = st.columns(2)
        with col1:
            order_id = st.text_input("Order ID")
            start = st.date_input("From", value=None)
        with col2:
            sku_id = st.text_input("SKU")
            end = st.date_input("To", value=None)
        submitted = st.form_submit_button("🔍 Search")

    if not submitted:
        return
    try:
        logs, df = search_return_orders(session, order_id=order_id, sku_id=sku_id, start=start, end=end)
    except ValueError as e:
        st.warning(str(e))
        return
    record_logs("Return Tracking", logs)
    show_load_errors(logs, "Search failed.")
    if df.empty:
        st.info("No orders found matching your search criteria")
    else:
        render_data_table(_visible(df), title=f"Search results ({len(df)})", downloadable=False)


# ===== MAIN PAGE RENDER =====

def render_return_tracking_page(session):
    render_page_header("Return Tracking", icon="📦", subtitle="Confirm returned parcels reached the warehouse")

    render_sync(session)

    logs, summary = load_return_summary(session)
    record_logs("Return Tracking", logs)
    render_kpi_row({
        "Tracked Returns": {"value": format_number(summary['totalOrders'])},
        "Pending Receipt": {"value": format_number(summary['pendingReceipts'])},
        "Received": {"value": format_number(summary['receivedOrders'])},
        "Not Received": {"value": format_number(summary['notReceivedOrders'])},
    })

    st.divider()

    tabs = st.tabs([TAB_LABELS[key] for key in RETURN_STATUSES] + ["🔍 Search", "✏️ Update"])
    for tab, (key, return_status) in zip(tabs, RETURN_STATUSES.items()):
        with tab:
            render_status_tab(session, key, return_status)
    with tabs[len(RETURN_STATUSES)]:
        render_search(session)
    with tabs[len(RETURN_STATUSES) + 1]:
        render_mark_forms(session)
