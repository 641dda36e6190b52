"""
Debug & Logs Page
Shows request logs, errors and connection diagnostics
"""

import streamlit as st
import pandas as pd


def split_logs(logs):
    """Categorize log lines by their INFO / WARNING / ERROR prefix"""
    return {
        'info': [log for log in logs if log.startswith("INFO:")],
        'warning': [log for log in logs if log.startswith("WARNING:")],
        'error': [log for log in logs if log.startswith("ERROR:")],
    }


def render_debug_page(session, debug_logs):
    """Render debug and logs page"""

    st.title("🔧 Debug & System Logs")

    # System Info
    st.header("📊 Connection")
    col1, col2, col3 = st.columns(3)

    with col1:
        st.metric("API Base URL", session.base_url)

    with col2:
        st.metric("Auth Token", "Set" if session.token else "Not set")

    with col3:
        total_errors = sum(len(split_logs(logs)['error']) for logs in debug_logs.values())
        st.metric("Total Errors", total_errors, delta=None if total_errors == 0 else "⚠️")

    st.divider()

    st.header("📋 Request Logs")

    if not debug_logs:
        st.info("No logs yet. Open a page to load data.")
        return

    summary = []
    for section_name, logs in debug_logs.items():
        parts = split_logs(logs)
        summary.append({
            'Section': section_name,
            'Info': len(parts['info']),
            'Warnings': len(parts['warning']),
            'Errors': len(parts['error']),
        })
    st.dataframe(pd.DataFrame(summary), hide_index=True, width='stretch')

    for section_name, logs in debug_logs.items():
        parts = split_logs(logs)
        with st.expander(f"📄 {section_name} Logs", expanded=bool(parts['error'])):
            if parts['error']:
                st.error("**Errors:**")
                for log in parts['error']:
                    st.text(log)

            if parts['warning']:
                st.warning("**Warnings:**")
                for log in parts['warning']:
                    st.text(log)

            if parts['info'] and st.checkbox(f"Show Info logs for {section_name}", key=f"show_info_{section_name}"):
                st.info("**Info:**")
                for log in parts['info']:
                    st.text(log)

    st.divider()

    if st.button("🗑️ Clear Logs"):
        debug_logs.clear()
        st.success("Logs cleared!")
        st.rerun()
