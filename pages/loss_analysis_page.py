"""
Loss Analysis Page
Orders whose settlement amount did not cover the cost of goods sold
"""

import streamlit as st
import plotly.express as px
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ui_components import (
    render_page_header, render_kpi_row, render_chart, render_data_table,
    render_month_year_selector, record_logs, show_load_errors, format_number
)
from business_rules import month_boundaries
from data_loader import load_loss_orders
from utils import get_filtered_data_as_excel

LOSS_COLUMNS = {
    'orderId': 'Order ID',
    'skuId': 'SKU',
    'productName': 'Product',
    'quantity': 'Qty',
    'settlementAmount': 'Settlement',
    'purchasePrice': 'Purchase Price',
    'cogs': 'COGS',
    'lossAmount': 'Loss',
    'orderStatus': 'Status',
    'orderDate': 'Order Date',
    'customerState': 'State',
}


def render_loss_analysis_page(session):
    render_page_header("Loss Analysis", icon="📉", subtitle="Orders settled below their cost of goods")

    year, month = render_month_year_selector("loss")
    start, end = month_boundaries(year, month)

    with st.spinner("Loading loss orders..."):
        logs, orders_df, summary = load_loss_orders(session, start, end)
    record_logs("Loss Analysis", logs)
    show_load_errors(logs)

    render_kpi_row({
        "Loss Orders": {"value": format_number(summary['totalOrders'])},
        "Quantity": {"value": format_number(summary['totalQuantity'])},
        "Revenue": {"value": format_number(summary['totalRevenue'], 'currency')},
        "COGS": {"value": format_number(summary['totalCogs'], 'currency')},
        "Total Loss": {"value": format_number(summary['totalLoss'], 'currency')},
    })

    if orders_df.empty:
        st.success(f"✅ No loss orders between {start.isoformat()} and {end.isoformat()}")
        return

    if {'skuId', 'lossAmount'}.issubset(orders_df.columns):
        by_sku = (orders_df.groupby('skuId', as_index=False)['lossAmount'].sum()
                  .sort_values('lossAmount', ascending=False).head(15))
        fig = px.bar(by_sku, x='skuId', y='lossAmount', labels={'skuId': 'SKU', 'lossAmount': 'Loss'})
        render_chart(fig, title="Loss by SKU (top 15)", height=350)

    display_df = orders_df[[c for c in LOSS_COLUMNS if c in orders_df.columns]].rename(columns=LOSS_COLUMNS)
    render_data_table(display_df, title="Loss Orders", download_filename=f"loss-orders-{year}-{month:02d}.csv")

    st.download_button(
        "📥 Download Excel",
        data=get_filtered_data_as_excel({"Loss Orders": (display_df, False)}),
        file_name=f"loss-orders-{year}-{month:02d}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        key="loss_export_xlsx"
    )
