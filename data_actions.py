"""
Data Actions Module
Mutating calls against the analytics backend (SKU groups, uploads, return
receipts, merge rebuild). Unlike the loaders in data_loader, these raise
ApiError / ValueError so the pages can show the failure inline.
"""

import os
from urllib.parse import quote

from api_client import ApiError
from business_rules import ALLOWED_UPLOAD_EXTENSIONS, UPLOAD_ENDPOINTS

# ===== VALIDATION =====

def _require_text(value, field_label):
    if value is None or not str(value).strip():
        raise ValueError(f"{field_label} is required")
    return str(value).strip()


def _group_payload(group_name, purchase_price, description):
    name = _require_text(group_name, "Group name")
    try:
        price = float(purchase_price)
    except (TypeError, ValueError):
        raise ValueError("Purchase price must be a number")
    if price <= 0:
        raise ValueError("Purchase price must be greater than zero")
    return {
        "groupName": name,
        "purchasePrice": price,
        "description": (description or "").strip(),
    }


def validate_upload_filename(filename):
    """Raise ValueError unless the file has an accepted spreadsheet extension."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_UPLOAD_EXTENSIONS:
        raise ValueError(
            f"Unsupported file type '{ext or filename}'. Allowed: {', '.join(ALLOWED_UPLOAD_EXTENSIONS)}"
        )
    return ext


def _check_envelope(body, default_error):
    """Return-tracking responses report failure as {success: false, error}."""
    if isinstance(body, dict) and not body.get("success"):
        raise ApiError(body.get("error") or default_error, kind="http")
    return body


# ===== DATA MERGE =====

def rebuild_merged_table(session):
    """Ask the backend to rebuild the merged order/payment table."""
    body = session.post_json("/api/data-merge/rebuild")
    if not isinstance(body, dict):
        raise ApiError("Unexpected response from rebuild", kind="malformed")
    return {"message": body.get("message", ""), "records": int(body.get("records") or 0)}


# ===== SKU GROUPS =====

def create_sku_group(session, group_name, purchase_price, description=""):
    return session.post_json("/api/sku-groups", _group_payload(group_name, purchase_price, description))


def update_sku_group(session, group_id, group_name, purchase_price, description=""):
    payload = _group_payload(group_name, purchase_price, description)
    payload["id"] = int(group_id)
    return session.put_json(f"/api/sku-groups/{int(group_id)}", payload)


def delete_sku_group(session, group_id):
    return session.delete(f"/api/sku-groups/{int(group_id)}")


def add_sku_to_group(session, sku_id, group_id):
    sku = _require_text(sku_id, "SKU")
    if not group_id:
        raise ValueError("Group is required")
    return session.post_json("/api/sku-groups/mappings", {"skuId": sku, "groupId": int(group_id)})


def update_sku_group_mapping(session, sku_id, group_id):
    sku = _require_text(sku_id, "SKU")
    if not group_id:
        raise ValueError("Group is required")
    return session.put_json(f"/api/sku-groups/mappings/{quote(sku, safe='')}", {"groupId": int(group_id)})


def upload_sku_groups(session, filename, content):
    """
    Bulk-import SKU groups from a spreadsheet.

    Returns:
        int: number of imported groups reported by the backend
    """
    validate_upload_filename(filename)
    body = session.post_file("/api/sku-groups/upload", filename, content)
    if isinstance(body, dict):
        if body.get("error"):
            raise ApiError(str(body["error"]), kind="http")
        return int(body.get("importedGroups") or 0)
    return 0


def download_sku_group_template(session):
    return session.get_bytes("/api/sku-groups/template")


# ===== FILE UPLOADS =====

def upload_data_file(session, file_type, filename, content):
    """
    Upload an orders / payments / SKU-price file.

    Args:
        file_type: key of UPLOAD_ENDPOINTS
        filename: original file name (extension is validated)
        content: file bytes or file-like object

    Returns:
        str: backend status message
    """
    if file_type not in UPLOAD_ENDPOINTS:
        raise ValueError(f"Unknown upload type '{file_type}'")
    validate_upload_filename(filename)
    body = session.post_file(UPLOAD_ENDPOINTS[file_type]["endpoint"], filename, content)
    if isinstance(body, dict):
        return str(body.get("message") or body)
    return "" if body is None else str(body)


def download_sku_price_template(session):
    return session.get_bytes(UPLOAD_ENDPOINTS["sku_prices"]["template_endpoint"])


# ===== RETURN TRACKING =====

def sync_return_orders(session):
    """
    Pull new returned/RTO orders into return tracking.

    Returns:
        tuple: (added_count, updated_count)
    """
    body = _check_envelope(session.post_json("/api/return-tracking/sync"), "Sync failed")
    if not isinstance(body, dict):
        raise ApiError("Unexpected response from sync", kind="malformed")
    return int(body.get("addedCount") or 0), int(body.get("updatedCount") or 0)


def mark_return_received(session, order_id, received_by, notes=None):
    params = {
        "orderId": _require_text(order_id, "Order ID"),
        "receivedBy": _require_text(received_by, "Received by"),
        "notes": notes.strip() if notes and notes.strip() else None,
    }
    body = session.post_json("/api/return-tracking/mark-received", params=params)
    return _check_envelope(body, "Failed to mark order as received")


def mark_return_not_received(session, order_id, notes):
    params = {
        "orderId": _require_text(order_id, "Order ID"),
        "notes": _require_text(notes, "Notes"),
    }
    body = session.post_json("/api/return-tracking/mark-not-received", params=params)
    return _check_envelope(body, "Failed to mark order as not received")
