"""
SKU Group Management Page
Create, edit and delete SKU groups (buckets of SKUs sharing a purchase price),
assign SKUs to groups, bulk-import groups from a spreadsheet and review
group-level analytics.
"""

import streamlit as st
import pandas as pd
from datetime import date
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ui_components import (
    render_page_header, render_kpi_row, render_data_table, render_empty_state,
    record_logs, format_number
)
from data_loader import load_sku_groups, load_ungrouped_skus, load_sku_mappings
from data_actions import (
    create_sku_group, update_sku_group, delete_sku_group, add_sku_to_group,
    update_sku_group_mapping, upload_sku_groups, download_sku_group_template
)
from api_client import ApiError
from file_loader import get_file_bytes
from pages.overview_page import render_group_analytics

GROUP_COLUMNS = ['id', 'groupName', 'purchasePrice', 'description', 'skuCount', 'createdAt']


def _run_action(action, success_message):
    """Run a mutating call and report the outcome inline. Returns True on success."""
    try:
        action()
    except ValueError as e:
        st.error(str(e))
        return False
    except ApiError as e:
        st.error(f"Request failed: {e}")
        return False
    st.success(success_message)
    return True


def _group_options(groups_df):
    if groups_df.empty:
        return {}
    return {int(row['id']): str(row['groupName']) for _, row in groups_df.iterrows()}


# ===== SECTIONS =====

def render_groups_tab(session, groups_df):
    if groups_df.empty:
        render_empty_state("No SKU groups yet. Create one below or upload a spreadsheet.")
    else:
        search = st.text_input("🔍 Search groups", key="sku_group_search")
        shown = groups_df
        if search.strip() and 'groupName' in groups_df.columns:
            shown = groups_df[groups_df['groupName'].astype(str).str.contains(search.strip(), case=False, regex=False)]
        cols = [c for c in GROUP_COLUMNS if c in shown.columns]
        render_data_table(shown[cols], downloadable=False)

    with st.expander("➕ Create group"):
        with st.form("create_sku_group", clear_on_submit=True):
            name = st.text_input("Group name")
            price = st.number_input("Purchase price (₹)", min_value=0.0, step=1.0)
            description = st.text_area("Description")
            if st.form_submit_button("Create"):
                if _run_action(lambda: create_sku_group(session, name, price, description),
                               f"Group '{name}' created"):
                    st.rerun()

    options = _group_options(groups_df)
    if not options:
        return

    with st.expander("✏️ Edit group"):
        group_id = st.selectbox("Group", options=list(options.keys()), format_func=options.get, key="edit_group_id")
        current = groups_df[groups_df['id'] == group_id].iloc[0]
        with st.form("edit_sku_group"):
            name = st.text_input("Group name", value=str(current.get('groupName') or ''))
            price = st.number_input("Purchase price (₹)", min_value=0.0, step=1.0,
                                    value=float(current.get('purchasePrice') or 0))
            description = st.text_area("Description", value=str(current.get('description') or ''))
            if st.form_submit_button("Save"):
                if _run_action(lambda: update_sku_group(session, group_id, name, price, description),
                               "Group updated"):
                    st.rerun()

    with st.expander("🗑️ Delete group"):
        group_id = st.selectbox("Group", options=list(options.keys()), format_func=options.get, key="delete_group_id")
        st.warning("Deleting a group also removes its SKU mappings.")
        confirm = st.checkbox(f"I want to delete '{options[group_id]}'", key="delete_group_confirm")
        if st.button("Delete group", disabled=not confirm, key="delete_group_button"):
            if _run_action(lambda: delete_sku_group(session, group_id), "Group deleted"):
                st.rerun()


def render_skus_tab(session, groups_df, mappings_df, ungrouped):
    options = _group_options(groups_df)

    col1, col2 = st.columns(2)
    with col1:
        st.subheader(f"Ungrouped SKUs ({len(ungrouped)})")
        if ungrouped:
            st.dataframe(pd.DataFrame({'sku': ungrouped}), hide_index=True, width='stretch', height=300)
        else:
            st.success("Every SKU belongs to a group")
    with col2:
        st.subheader("Add SKU to group")
        if not ungrouped or not options:
            st.caption("Needs at least one ungrouped SKU and one group.")
        else:
            with st.form("add_sku_mapping"):
                sku = st.selectbox("SKU", options=ungrouped)
                group_id = st.selectbox("Group", options=list(options.keys()), format_func=options.get)
                if st.form_submit_button("Add"):
                    if _run_action(lambda: add_sku_to_group(session, sku, group_id), f"{sku} added"):
                        st.rerun()

    st.divider()
    st.subheader("SKU mappings")
    if mappings_df.empty:
        render_empty_state("No SKU mappings")
        return
    render_data_table(mappings_df, downloadable=True, download_filename="sku_mappings.csv")

    if options and 'skuId' in mappings_df.columns:
        with st.form("update_sku_mapping"):
            sku = st.selectbox("SKU", options=sorted(mappings_df['skuId'].astype(str).unique()))
            group_id = st.selectbox("Move to group", options=list(options.keys()), format_func=options.get)
            if st.form_submit_button("Update"):
                if _run_action(lambda: update_sku_group_mapping(session, sku, group_id), f"{sku} moved"):
                    st.rerun()


def render_bulk_upload(session):
    st.subheader("📤 Bulk import")
    st.caption("Upload a spreadsheet with SKU, group name and purchase price columns.")

    try:
        template = download_sku_group_template(session)
    except ApiError:
        template = None
    if template:
        st.download_button("📥 Download template", data=template, file_name="sku_group_template.xlsx",
                           mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                           key="sku_group_template")
    else:
        st.caption("Template unavailable right now.")

    uploaded = st.file_uploader("SKU group file", type=["xlsx", "xls", "csv"], key="sku_group_upload")
    if uploaded is not None and st.button("Upload SKU groups", key="sku_group_upload_button"):
        try:
            with st.spinner("Uploading SKU groups..."):
                count = upload_sku_groups(session, uploaded.name, get_file_bytes(uploaded))
            st.success(f"Successfully imported {format_number(count)} groups!")
        except (ValueError, ApiError) as e:
            st.error(f"Upload failed: {e}")


# ===== MAIN PAGE RENDER =====

def render_sku_group_page(session):
    render_page_header("SKU Groups", icon="🗂️", subtitle="Group SKUs that share a purchase price")

    logs_groups, groups_df = load_sku_groups(session)
    logs_ungrouped, ungrouped = load_ungrouped_skus(session)
    logs_mappings, mappings_df = load_sku_mappings(session)
    record_logs("SKU Groups", logs_groups + logs_ungrouped + logs_mappings)

    render_kpi_row({
        "Groups": {"value": format_number(len(groups_df))},
        "Mapped SKUs": {"value": format_number(len(mappings_df))},
        "Ungrouped SKUs": {"value": format_number(len(ungrouped))},
    })

    tab_groups, tab_skus, tab_upload, tab_analytics = st.tabs(["Groups", "SKUs", "Bulk Import", "Analytics"])
    with tab_groups:
        render_groups_tab(session, groups_df)
    with tab_skus:
        render_skus_tab(session, groups_df, mappings_df, ungrouped)
    with tab_upload:
        render_bulk_upload(session)
    with tab_analytics:
        today = date.today()
        col1, col2 = st.columns(2)
        with col1:
            start = st.date_input("Start date", value=today.replace(day=1), key="group_analytics_start")
        with col2:
            end = st.date_input("End date", value=today, key="group_analytics_end")
        if start > end:
            st.error("Start date cannot be after end date")
        else:
            render_group_analytics(session, start, end)
