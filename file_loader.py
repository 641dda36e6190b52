"""
Helper module to read uploaded CSV / Excel files for preview before they are
sent to the backend.
"""
import io
import os
import zipfile

import pandas as pd

from business_rules import ALLOWED_UPLOAD_EXTENSIONS

EXCEL_ENGINES = {'.xlsx': 'openpyxl', '.xls': 'xlrd'}


def get_file_bytes(uploaded_file):
    """
    Returns the raw bytes of an upload.

    Accepts a Streamlit UploadedFile, any file-like object, or bytes.
    """
    if uploaded_file is None:
        return b''
    if isinstance(uploaded_file, (bytes, bytearray)):
        return bytes(uploaded_file)
    if hasattr(uploaded_file, 'getvalue'):
        return uploaded_file.getvalue()
    uploaded_file.seek(0)
    return uploaded_file.read()

def read_upload_preview(filename, content, nrows=20):
    """
    Read the first rows of an uploaded file into a DataFrame.

    Args:
        filename: original file name, used to pick the reader
        content: file bytes
        nrows: number of rows to read

    Returns:
        pd.DataFrame

    Raises:
        ValueError: unsupported extension or unreadable file
    """
    ext = os.path.splitext(filename or '')[1].lower()
    if ext not in ALLOWED_UPLOAD_EXTENSIONS:
        raise ValueError(f"Unsupported file type: {filename}")

    buffer = io.BytesIO(content)
    try:
        if ext == '.csv':
            return pd.read_csv(buffer, nrows=nrows)
        return pd.read_excel(buffer, nrows=nrows, engine=EXCEL_ENGINES[ext])
    except (pd.errors.ParserError, pd.errors.EmptyDataError, zipfile.BadZipFile, ValueError) as e:
        raise ValueError(f"Could not read {filename}: {e}") from e
