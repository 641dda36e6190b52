"""
Data Upload Page
Send order, payment and SKU price files to the backend, with a local preview
before upload and an upload history for the session
"""

import streamlit as st
import pandas as pd
from datetime import datetime
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from ui_components import render_page_header
from business_rules import UPLOAD_ENDPOINTS, ALLOWED_UPLOAD_EXTENSIONS
from data_actions import upload_data_file, download_sku_price_template
from file_loader import get_file_bytes, read_upload_preview
from api_client import ApiError

PREVIEW_ROWS = 5
HISTORY_LENGTH = 10


def _add_history(file_type, filename, status, message):
    st.session_state.upload_history.append({
        'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        'type': UPLOAD_ENDPOINTS[file_type]['display_name'],
        'file': filename,
        'status': status,
        'message': message,
    })


def render_template_button(session, file_type, config):
    if 'template_endpoint' not in config:
        return
    try:
        template = download_sku_price_template(session)
    except ApiError:
        st.caption("Template unavailable")
        return
    st.download_button(
        label="📥 Template",
        data=template,
        file_name=f"{file_type}_template.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        width='stretch',
        key=f"template_{file_type}"
    )


def render_upload_section(session, file_type, config):
    with st.expander(f"📄 {config['display_name']}", expanded=True):
        st.caption(config["description"])

        col1, col2 = st.columns([3, 1])
        with col1:
            uploaded_file = st.file_uploader(
                f"Upload {config['display_name']} file",
                type=[ext.lstrip('.') for ext in ALLOWED_UPLOAD_EXTENSIONS],
                key=f"upload_{file_type}",
                label_visibility="collapsed"
            )
        with col2:
            render_template_button(session, file_type, config)

        if uploaded_file is None:
            return

        content = get_file_bytes(uploaded_file)
        try:
            preview = read_upload_preview(uploaded_file.name, content, nrows=PREVIEW_ROWS)
            with st.expander(f"Preview Data (first {PREVIEW_ROWS} rows)", expanded=False):
                st.dataframe(preview, width='stretch')
        except ValueError as e:
            st.warning(f"Preview unavailable: {e}")

        if st.button(f"Upload {config['display_name']}", key=f"submit_{file_type}", type="primary"):
            try:
                with st.spinner(f"Uploading {uploaded_file.name}..."):
                    message = upload_data_file(session, file_type, uploaded_file.name, content)
                st.success(f"✅ {message or 'File uploaded successfully'}")
                _add_history(file_type, uploaded_file.name, 'Success', message)
            except (ValueError, ApiError) as e:
                st.error(f"❌ Upload failed: {e}")
                _add_history(file_type, uploaded_file.name, 'Failed', str(e))


# ===== MAIN RENDER FUNCTION =====

def render_data_upload_page(session):
    """Main data upload page render function"""

    render_page_header(
        "Upload Data",
        icon="📤",
        subtitle="Upload marketplace order, payment and SKU price files"
    )

    if 'upload_history' not in st.session_state:
        st.session_state.upload_history = []

    with st.expander("📖 Instructions", expanded=False):
        st.markdown(f"""
        **How to Upload Data:**

        1. Export the order and payment reports from the seller panel
        2. Select the file below and check the preview
        3. Click **Upload** to send it to the backend
        4. Rebuild the merged table from the **Data Merge** page so new rows appear

        Accepted formats: {', '.join(ALLOWED_UPLOAD_EXTENSIONS)}
        """)

    st.divider()

    for file_type, config in UPLOAD_ENDPOINTS.items():
        render_upload_section(session, file_type, config)

    st.divider()

    st.subheader("📜 Upload History")
    st.caption(f"Last {HISTORY_LENGTH} upload attempts")

    if st.session_state.upload_history:
        history_df = pd.DataFrame(st.session_state.upload_history[-HISTORY_LENGTH:])
        history_df.columns = ['Timestamp', 'Type', 'File', 'Status', 'Message']
        st.dataframe(history_df, hide_index=True, width='stretch')
    else:
        st.info("No upload history yet")
