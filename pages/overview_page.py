"""
Overview Page - Executive Dashboard
Monthly KPIs, loss breakdown, time-series trends and SKU group analytics
"""

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from ui_components import (
    render_page_header, render_kpi_row, render_chart, render_empty_state,
    render_month_year_selector, record_logs, show_load_errors, format_number
)
from business_rules import AGGREGATION_LEVELS, TIME_SERIES_ENDPOINTS, month_boundaries
from data_loader import (
    load_time_series, load_top_ordered, load_top_profitable, load_orders_by_status,
    load_monthly_summary, load_comprehensive_loss, load_group_analytics
)

CHART_HEIGHT = 350

SERIES_TITLES = {
    "orders": "Orders by Timeframe",
    "payments": "Payments by Timeframe",
    "profit": "Profit Trends",
    "loss": "Loss Trends",
}


def build_line_chart(df, color="#2563eb"):
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df['period'], y=df['value'], mode='lines+markers',
        line=dict(color=color), fill='tozeroy'
    ))
    return fig


def build_bar_chart(df, color="#7c3aed"):
    fig = px.bar(df, x='name', y='value')
    fig.update_traces(marker_color=color)
    fig.update_layout(xaxis_title=None, yaxis_title=None)
    return fig


def render_group_analytics(session, start, end):
    """SKU group charts for the selected range (catch-all group excluded)"""
    logs, analytics = load_group_analytics(session, start, end)
    record_logs("SKU Group Analytics", logs)

    top = analytics['top_performing']
    revenue = analytics['revenue_contribution']
    profit = analytics['profit_comparison']

    if top.empty and revenue.empty and profit.empty:
        render_empty_state("No group data available. Upload SKU groups to see analytics.")
        return

    col1, col2 = st.columns(2)
    with col1:
        if not top.empty and 'orderCount' in top.columns:
            fig = px.bar(top.head(10), x='groupName', y='orderCount')
            render_chart(fig, title="Top Performing Groups by Orders", height=CHART_HEIGHT)
    with col2:
        if not revenue.empty and 'revenue' in revenue.columns:
            fig = px.pie(revenue, names='groupName', values='revenue')
            render_chart(fig, title="Revenue Contribution", height=CHART_HEIGHT)

    if not profit.empty and {'totalRevenue', 'totalProfit'}.issubset(profit.columns):
        fig = go.Figure()
        fig.add_trace(go.Bar(x=profit['groupName'], y=profit['totalRevenue'], name='Revenue'))
        fig.add_trace(go.Bar(x=profit['groupName'], y=profit['totalProfit'], name='Profit'))
        fig.update_layout(barmode='group')
        render_chart(fig, title="Revenue vs Profit by Group", height=CHART_HEIGHT)


def render_overview_page(session):
    """Render the executive overview"""
    render_page_header("Overview", icon="📊", subtitle="Revenue, profit and loss for the selected month")

    st.markdown("**📅 Select Time Period**")
    year, month = render_month_year_selector("overview")
    start, end = month_boundaries(year, month)
    st.caption(f"Date range: {start.isoformat()} to {end.isoformat()}")

    all_logs = []

    logs, summary = load_monthly_summary(session, year, month)
    all_logs += logs
    render_kpi_row({
        "💰 Total Revenue": {"value": format_number(summary['totalRevenue'], 'currency')},
        "📈 Total Profit": {"value": format_number(summary['totalProfit'], 'currency')},
        "📦 Total Orders": {"value": format_number(summary['totalOrders'])},
        "📉 Total Loss": {"value": format_number(summary['totalLoss'], 'currency')},
        "💎 Net Income": {"value": format_number(summary['netIncome'], 'currency')},
    })

    logs, loss = load_comprehensive_loss(session, start, end)
    all_logs += logs
    render_kpi_row({
        "🚚 Loss from Delivered Items": {"value": format_number(loss['lossFromDelivered'], 'currency')},
        "↩️ Loss from Returns": {"value": format_number(loss['lossFromReturns'], 'currency')},
        "⚠️ Total Loss Orders": {"value": format_number(loss['totalLossOrders'])},
    })

    st.divider()

    agg = st.selectbox("📊 Chart Aggregation", options=AGGREGATION_LEVELS, index=0, key="overview_agg",
                       help="Choose how to group chart data")

    series_keys = list(TIME_SERIES_ENDPOINTS.keys())
    for row_start in range(0, len(series_keys), 2):
        cols = st.columns(2)
        for col, series in zip(cols, series_keys[row_start:row_start + 2]):
            logs, df = load_time_series(session, series, start, end, agg)
            all_logs += logs
            with col:
                if df.empty:
                    st.subheader(SERIES_TITLES[series])
                    render_empty_state()
                else:
                    render_chart(build_line_chart(df), title=SERIES_TITLES[series], height=CHART_HEIGHT)

    rankings = [
        ("Top Ordered Items", load_top_ordered(session, start, end)),
        ("Top Profitable SKUs", load_top_profitable(session, start, end)),
        ("Orders by Status", load_orders_by_status(session, start, end)),
    ]
    cols = st.columns(len(rankings))
    for col, (title, (logs, df)) in zip(cols, rankings):
        all_logs += logs
        with col:
            if df.empty:
                st.subheader(title)
                render_empty_state()
            else:
                render_chart(build_bar_chart(df), title=title, height=CHART_HEIGHT)

    record_logs("Overview", all_logs)
    show_load_errors(all_logs)

    st.divider()
    st.header("🗂️ SKU Group Analytics")
    st.caption("Performance metrics grouped by SKU categories")
    render_group_analytics(session, start, end)
