"""
Return Analysis Page
Returned and RTO orders for a month with their cost impact
"""

import streamlit as st
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ui_components import (
    render_page_header, render_kpi_row, render_data_table,
    render_month_year_selector, record_logs, show_load_errors, format_number
)
from business_rules import month_boundaries
from data_loader import load_return_analysis


def render_return_analysis_page(session):
    render_page_header("Return Analysis", icon="↩️", subtitle="Returns and RTO orders with their loss")

    year, month = render_month_year_selector("return_analysis")
    start, end = month_boundaries(year, month)

    with st.spinner("Loading return data..."):
        logs, orders_df, summary = load_return_analysis(session, start, end)
    record_logs("Return Analysis", logs)
    show_load_errors(logs, "Failed to fetch return data. Showing an empty result.")

    render_kpi_row({
        "Orders": {"value": format_number(summary['totalOrders'])},
        "Quantity": {"value": format_number(summary['totalQuantity'])},
        "Return Amount": {"value": format_number(summary['totalReturnAmount'], 'currency')},
        "COGS": {"value": format_number(summary['totalCogs'], 'currency')},
        "Total Loss": {"value": format_number(summary['totalLoss'], 'currency')},
    })

    unexpected = summary.get('unexpectedStatuses') or []
    if unexpected:
        st.warning(f"Unexpected order statuses found: {', '.join(map(str, unexpected))}")

    if orders_df.empty:
        st.info(f"No returned orders between {start.isoformat()} and {end.isoformat()}")
        return

    if 'isUnexpectedStatus' in orders_df.columns:
        only_unexpected = st.checkbox("Show only unexpected statuses", key="return_only_unexpected")
        if only_unexpected:
            orders_df = orders_df[orders_df['isUnexpectedStatus'] == True]

    render_data_table(orders_df, title="Returned Orders",
                      download_filename=f"return-analysis-{year}-{month:02d}.csv")
