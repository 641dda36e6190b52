import io # Required for Excel export
from datetime import date

import pandas as pd

from business_rules import MERGED_CSV_EXPORT

# --- Constants ---
MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

# --- Data Export Functions ---

def get_filtered_data_as_excel(dfs_to_export_dict):
    """
    Processes a dictionary of dataframes
    and returns an Excel file as a bytes object for download.
    The dictionary format is { "sheet_name": (dataframe, include_index_bool) }

    Empty or non-DataFrame entries are skipped. Datetime columns are written
    as plain YYYY-MM-DD strings.
    """
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        written = 0
        for sheet_name, (df, include_index) in dfs_to_export_dict.items():
            if not isinstance(df, pd.DataFrame) or df.empty:
                continue

            df_to_export = df
            datetime_cols = [c for c in df.columns if pd.api.types.is_datetime64_any_dtype(df[c])]
            # Only copy if we need to modify datetime columns
            if datetime_cols:
                df_to_export = df.copy()
                for col in datetime_cols:
                    if getattr(df_to_export[col].dt, 'tz', None) is not None:
                        df_to_export[col] = df_to_export[col].dt.tz_localize(None)
                    df_to_export[col] = df_to_export[col].dt.strftime('%Y-%m-%d')

            # Excel sheet names are limited to 31 characters
            sheet = str(sheet_name)[:31]
            df_to_export.to_excel(writer, sheet_name=sheet, index=include_index)
            written += 1

            # Auto-adjust column widths
            worksheet = writer.sheets[sheet]
            offset = 1 if include_index else 0
            for idx, col in enumerate(df_to_export.columns):
                series = df_to_export[col]
                max_len = max(
                    series.astype(str).map(len).max(),
                    len(str(series.name))
                ) + 2
                worksheet.set_column(idx + offset, idx + offset, max_len)

        # xlsxwriter refuses to save a workbook without sheets
        if written == 0:
            pd.DataFrame().to_excel(writer, sheet_name='No Data', index=False)

    return output.getvalue()


def export_merged_csv(records_df):
    """
    Export merged records as CSV bytes using the Data Merge export layout.

    Missing columns export as empty cells. Returns b'' for an empty frame.
    """
    if records_df is None or records_df.empty:
        return b''
    export_df = pd.DataFrame({
        header: records_df[col] if col in records_df.columns else None
        for header, col in MERGED_CSV_EXPORT.items()
    }, index=records_df.index)
    return export_df.to_csv(index=False).encode('utf-8')


def merged_export_filename(extension='csv', today=None):
    today = today or date.today()
    return f"merged-data-{today.isoformat()}.{extension}"


def breakdown_to_frame(breakdown, label):
    """
    Turn a {key: count} breakdown into a sorted two-column DataFrame.

    Args:
        breakdown: dict mapping category -> count
        label: name for the category column
    """
    if not breakdown:
        return pd.DataFrame(columns=[label, 'count'])
    df = pd.DataFrame(list(breakdown.items()), columns=[label, 'count'])
    df['count'] = pd.to_numeric(df['count'], errors='coerce').fillna(0).astype(int)
    return df.sort_values('count', ascending=False).reset_index(drop=True)
