"""
Business Rules Configuration
Centralized definitions for merge statuses, record fields, analytics parameters
and the small pieces of logic the pages rely on.
This file allows rules to be changed in one place without modifying page code.
"""

import calendar
import math
from datetime import date, datetime

# ===== MERGE / STATUS RESOLUTION RULES =====

STATUS_SOURCES = {
    "payment": "PAYMENT_FILE",
    "order": "ORDER_FILE",
    # Emitted by the provider when neither side carried a status
    "merged": "MERGED",
    # Emitted by the provider for rows read back from the merged table
    "merged_table": "MERGED_TABLE",
}

MERGE_RULES = {
    # Payment statuses that do not count as "recognized"
    "unrecognized_payment_statuses": ["unknown"],
    "unknown_label": "UNKNOWN",
    "default_page_size": 50,
    "page_size_options": [25, 50, 100, 200],
    # Group analytics rows with this name are a provider catch-all, not a real group
    "ungrouped_group_name": "Ungrouped SKUs",
}

# Badge styling by final status (lower-cased). Anything else falls back to 'default'.
STATUS_BADGES = {
    "delivered": {"color": "green", "icon": "✅"},
    "shipped": {"color": "blue", "icon": "🚚"},
    "processing": {"color": "orange", "icon": "⏳"},
    "cancelled": {"color": "red", "icon": "❌"},
    "rto": {"color": "red", "icon": "❌"},
    "default": {"color": "gray", "icon": "📄"},
}

# camelCase provider field -> snake_case DataFrame column
MERGED_RECORD_FIELDS = {
    "orderId": "order_id",
    "sku": "sku",
    "productName": "product_name",
    "quantity": "quantity",
    "sellingPrice": "selling_price",
    "orderDateTime": "order_date_time",
    "customerState": "customer_state",
    "size": "size",
    "supplierListedPrice": "supplier_listed_price",
    "supplierDiscountedPrice": "supplier_discounted_price",
    "packetId": "packet_id",
    "reasonForCreditEntry": "reason_for_credit_entry",
    "paymentId": "payment_id",
    "amount": "amount",
    "paymentDateTime": "payment_date_time",
    "orderStatus": "order_status",
    "transactionId": "transaction_id",
    "finalSettlementAmount": "final_settlement_amount",
    "priceType": "price_type",
    "totalSaleAmount": "total_sale_amount",
    "totalSaleReturnAmount": "total_sale_return_amount",
    "fixedFee": "fixed_fee",
    "warehousingFee": "warehousing_fee",
    "returnPremium": "return_premium",
    "meeshoCommissionPercentage": "meesho_commission_percentage",
    "meeshoCommission": "meesho_commission",
    "meeshoGoldPlatformFee": "meesho_gold_platform_fee",
    "meeshoMallPlatformFee": "meesho_mall_platform_fee",
    "returnShippingCharge": "return_shipping_charge",
    "gstCompensation": "gst_compensation",
    "shippingCharge": "shipping_charge",
    "otherSupportServiceCharges": "other_support_service_charges",
    "waivers": "waivers",
    "netOtherSupportServiceCharges": "net_other_support_service_charges",
    "gstOnNetOtherSupportServiceCharges": "gst_on_net_other_support_service_charges",
    "tcs": "tcs",
    "tdsRatePercentage": "tds_rate_percentage",
    "tds": "tds",
    "compensation": "compensation",
    "claims": "claims",
    "recovery": "recovery",
    "dispatchDate": "dispatch_date",
    "productGstPercentage": "product_gst_percentage",
    "listingPriceInclTaxes": "listing_price_incl_taxes",
    "finalStatus": "final_status",
    "statusSource": "status_source",
}

TEXT_RECORD_COLUMNS = [
    "order_id", "sku", "product_name", "order_date_time", "customer_state", "size",
    "packet_id", "reason_for_credit_entry", "payment_id", "payment_date_time",
    "order_status", "transaction_id", "price_type", "dispatch_date",
    "final_status", "status_source",
]

# Columns shown in the Data Merge table (subset of MERGED_RECORD_FIELDS values)
MERGED_TABLE_COLUMNS = [
    "order_id", "sku", "product_name", "quantity", "selling_price", "customer_state",
    "size", "final_status", "status_source", "amount", "order_date_time",
    "payment_date_time", "transaction_id", "final_settlement_amount",
]

# CSV export layout: header -> column
MERGED_CSV_EXPORT = {
    "Order ID": "order_id",
    "SKU": "sku",
    "Product Name": "product_name",
    "Quantity": "quantity",
    "Selling Price": "selling_price",
    "Customer State": "customer_state",
    "Size": "size",
    "Final Status": "final_status",
    "Status Source": "status_source",
    "Amount": "amount",
    "Order Date": "order_date_time",
    "Payment Date": "payment_date_time",
    "Dispatch Date": "dispatch_date",
    "Transaction ID": "transaction_id",
    "Total Sale Amount": "total_sale_amount",
    "Final Settlement Amount": "final_settlement_amount",
}

EMPTY_MERGE_STATISTICS = {
    "totalMergedRecords": 0,
    "statusSourceBreakdown": {},
    "finalStatusBreakdown": {},
    "uniqueOrders": 0,
    "dataQuality": {
        "recordsWithSku": 0,
        "recordsWithoutSku": 0,
        "skuCoveragePercentage": 0,
        "recordsWithProductName": 0,
        "recordsWithQuantity": 0,
    },
    "warning": None,
}

# ===== ANALYTICS RULES =====

AGGREGATION_LEVELS = ["DAY", "MONTH", "QUARTER", "YEAR"]

TIME_SERIES_ENDPOINTS = {
    "orders": "orders-by-time",
    "payments": "payments-by-time",
    "profit": "profit-trend",
    "loss": "loss-trend",
}

ANALYTICS_RULES = {
    "top_n_limit": 10,
    "currency_symbol": "₹",
    "year_options_count": 6,
}

EMPTY_MONTHLY_SUMMARY = {
    "totalRevenue": 0,
    "totalProfit": 0,
    "totalOrders": 0,
    "totalLoss": 0,
    "netIncome": 0,
}

EMPTY_LOSS_METRICS = {
    "lossFromDelivered": 0,
    "lossFromReturns": 0,
    "totalLossOrders": 0,
}

EMPTY_LOSS_SUMMARY = {
    "totalOrders": 0,
    "totalQuantity": 0,
    "totalRevenue": 0,
    "totalCogs": 0,
    "totalLoss": 0,
}

EMPTY_RETURN_ANALYSIS_SUMMARY = {
    "totalOrders": 0,
    "totalQuantity": 0,
    "totalReturnAmount": 0,
    "totalCogs": 0,
    "totalLoss": 0,
    "unexpectedStatuses": [],
}

# ===== RETURN TRACKING RULES =====

RETURN_STATUSES = {
    "pending": "PENDING_RECEIPT",
    "received": "RECEIVED",
    "not_received": "NOT_RECEIVED",
}

EMPTY_RETURN_TRACKING_SUMMARY = {
    "totalOrders": 0,
    "pendingReceipts": 0,
    "receivedOrders": 0,
    "notReceivedOrders": 0,
    "statusBreakdown": {},
}

# ===== UPLOAD RULES =====

UPLOAD_ENDPOINTS = {
    "orders": {
        "display_name": "Orders",
        "endpoint": "/api/upload/orders",
        "description": "Order export from the marketplace seller panel",
    },
    "payments": {
        "display_name": "Payments",
        "endpoint": "/api/upload/payments",
        "description": "Payment / settlement export",
    },
    "sku_prices": {
        "display_name": "SKU Prices",
        "endpoint": "/api/upload/sku-prices",
        "description": "Purchase price per SKU",
        "template_endpoint": "/api/sku-prices/template",
    },
}

ALLOWED_UPLOAD_EXTENSIONS = [".xlsx", ".xls", ".csv"]


# ===== HELPER FUNCTIONS =====

def _is_blank(value):
    return value is None or str(value).strip() == ""


def parse_number(value):
    """Finite float from a provider value, or None when it is missing or not numeric."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_count(value):
    """Whole number from a provider value, or None when it is missing or not numeric."""
    number = parse_number(value)
    return int(number) if number is not None else None


def to_count(value):
    """Non-negative count from a provider value; unusable values count as 0."""
    count = parse_count(value)
    return max(count, 0) if count is not None else 0


def resolve_final_status(order_status, payment_status):
    """
    Resolve the lifecycle status of a merged order.

    Payment status wins whenever it is present, non-blank and not "unknown",
    since it reflects realized settlement. Otherwise the order-file status is
    used. When neither side has a status both values are None.

    Args:
        order_status: Status declared in the order file (may be None)
        payment_status: Status reported in the payment file (may be None)

    Returns:
        tuple: (final_status, status_source)
    """
    if not _is_blank(payment_status):
        if str(payment_status).strip().lower() not in MERGE_RULES["unrecognized_payment_statuses"]:
            return payment_status, STATUS_SOURCES["payment"]
    if not _is_blank(order_status):
        return order_status, STATUS_SOURCES["order"]
    return None, None


def get_status_badge(final_status):
    """Return the badge dict ({'color', 'icon'}) for a final status."""
    if _is_blank(final_status):
        return STATUS_BADGES["default"]
    return STATUS_BADGES.get(str(final_status).strip().lower(), STATUS_BADGES["default"])


def statistics_are_consistent(stats):
    """True when the status-source breakdown adds up to the record total."""
    breakdown = stats.get("statusSourceBreakdown")
    if not isinstance(breakdown, dict):
        breakdown = {}
    return sum(to_count(v) for v in breakdown.values()) == to_count(stats.get("totalMergedRecords"))


def build_quality_warning(total_records, records_without_sku):
    """
    Build the missing-SKU warning shown above the merge statistics.

    Returns None when every record has a SKU (or there are no records).
    """
    if total_records <= 0 or records_without_sku <= 0:
        return None
    pct = records_without_sku / total_records * 100
    return (
        f"WARNING: {records_without_sku} records ({pct:.1f}%) are missing SKU information. "
        "Consider re-uploading the complete order file."
    )


def quality_fractions(stats):
    """
    Fractions of merged records carrying SKU, quantity and product name.

    Returns:
        dict with 'sku', 'quantity', 'product_name' in [0, 1]
    """
    total = to_count(stats.get("totalMergedRecords"))
    quality = stats.get("dataQuality")
    if not isinstance(quality, dict):
        quality = {}
    if total <= 0:
        return {"sku": 0.0, "quantity": 0.0, "product_name": 0.0}
    return {
        "sku": min(to_count(quality.get("recordsWithSku")) / total, 1.0),
        "quantity": min(to_count(quality.get("recordsWithQuantity")) / total, 1.0),
        "product_name": min(to_count(quality.get("recordsWithProductName")) / total, 1.0),
    }


def validate_aggregation(agg):
    """Normalize an aggregation level, raising ValueError for unsupported ones."""
    value = str(agg).strip().upper()
    if value not in AGGREGATION_LEVELS:
        raise ValueError(f"Unsupported aggregation '{agg}'. Expected one of {', '.join(AGGREGATION_LEVELS)}")
    return value


def month_boundaries(year, month):
    """
    First and last calendar day of a month.

    July 2025 -> (2025-07-01, 2025-07-31); February 2024 -> (2024-02-01, 2024-02-29)
    """
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    last_day = calendar.monthrange(int(year), int(month))[1]
    return date(int(year), int(month), 1), date(int(year), int(month), last_day)


def to_iso_date(value):
    """Format a date/datetime/ISO string as YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date().isoformat()


def validate_date_range(start, end):
    """Raise ValueError when both dates are given and start is after end."""
    if start and end and to_iso_date(start) > to_iso_date(end):
        raise ValueError("Start date cannot be after end date")
