import copy
import math
import time
from urllib.parse import quote

import pandas as pd

from api_client import ApiError
from business_rules import (
    MERGED_RECORD_FIELDS,
    TEXT_RECORD_COLUMNS,
    MERGE_RULES,
    EMPTY_MERGE_STATISTICS,
    EMPTY_MONTHLY_SUMMARY,
    EMPTY_LOSS_METRICS,
    EMPTY_LOSS_SUMMARY,
    EMPTY_RETURN_ANALYSIS_SUMMARY,
    EMPTY_RETURN_TRACKING_SUMMARY,
    RETURN_STATUSES,
    TIME_SERIES_ENDPOINTS,
    ANALYTICS_RULES,
    build_quality_warning,
    parse_count,
    parse_number,
    resolve_final_status,
    statistics_are_consistent,
    to_count,
    validate_aggregation,
    validate_date_range,
    to_iso_date,
)

# === Helper Functions ===

MERGE_BASE = "/api/data-merge"
SLOW_RESPONSE_SECONDS = 5


def _segment(value):
    """Quote a value for use as a single URL path segment."""
    return quote(str(value).strip(), safe="")


def _fetch(session, path, logs, label, params=None):
    """
    GET a JSON body, recording failures in logs instead of raising.

    Returns:
        Decoded body, or None on any failure
    """
    start_time = time.time()
    try:
        body = session.get_json(path, params=params)
    except ApiError as e:
        logs.append(f"ERROR: {label}: {e}")
        return None
    elapsed = time.time() - start_time
    if elapsed > SLOW_RESPONSE_SECONDS:
        logs.append(f"WARNING: {label} took {elapsed:.1f}s")
    return body


def _rows_frame(rows, logs, label):
    """Build a DataFrame from a list of JSON objects; anything else is empty."""
    if rows is None:
        return pd.DataFrame()
    if not isinstance(rows, list):
        logs.append(f"ERROR: {label}: unexpected response shape ({type(rows).__name__})")
        return pd.DataFrame()
    rows = [r for r in rows if isinstance(r, dict)]
    return pd.DataFrame(rows)


def _with_defaults(body, defaults, logs, label):
    """Overlay a JSON object onto a zero-valued template."""
    result = copy.deepcopy(defaults)
    if body is None:
        return result
    if not isinstance(body, dict):
        logs.append(f"ERROR: {label}: unexpected response shape ({type(body).__name__})")
        return result
    for key in defaults:
        if body.get(key) is not None:
            result[key] = body[key]
    return result


def _count_field(value, name, bad_fields):
    """Coerce a statistics count, remembering the field name when it was not numeric."""
    if value is not None and parse_count(value) is None:
        bad_fields.append(name)
    return to_count(value)


def _present(value):
    return None if pd.isna(value) else value


def normalize_merged_records(rows, logs):
    """
    Convert provider merge rows into a snake_case DataFrame.

    - Drops rows without an orderId (logged as a WARNING)
    - Derives a missing final_status from the payment/order statuses
      (resolve_final_status), then fills what is still missing with UNKNOWN
    - Coerces numeric fields
    """
    columns = list(MERGED_RECORD_FIELDS.values())
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame([r for r in rows if isinstance(r, dict)])
    df = df.rename(columns=MERGED_RECORD_FIELDS)
    for col in columns:
        if col not in df.columns:
            df[col] = None
    df = df[columns]

    missing_id = df['order_id'].isna() | (df['order_id'].astype(str).str.strip() == '')
    if missing_id.any():
        logs.append(f"WARNING: Dropped {int(missing_id.sum())} merged records without an orderId")
        df = df[~missing_id]

    # orderStatus carries the payment-side status, reasonForCreditEntry the order-side one
    unresolved = df['final_status'].isna() | (df['final_status'].astype(str).str.strip() == '')
    if unresolved.any():
        resolved = [
            resolve_final_status(_present(order_side), _present(payment_side))
            for order_side, payment_side in zip(df.loc[unresolved, 'reason_for_credit_entry'],
                                                df.loc[unresolved, 'order_status'])
        ]
        df = df.astype({'final_status': object, 'status_source': object})
        df.loc[unresolved, 'final_status'] = [status for status, _ in resolved]
        df.loc[unresolved, 'status_source'] = [source for _, source in resolved]

    unknown = MERGE_RULES["unknown_label"]
    for col in ['final_status', 'status_source']:
        df[col] = df[col].where(df[col].notna() & (df[col].astype(str).str.strip() != ''), unknown)

    for col in columns:
        if col not in TEXT_RECORD_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors='coerce')

    return df.reset_index(drop=True)


# === Merge Query Client ===

def fetch_merged_page(session, page, page_size, search_term=None, status_filter=None,
                      source_filter=None, tracker=None):
    """
    Fetch one page of merged order/payment records.

    When status_filter (or else source_filter) is set the provider returns the
    full filtered set: page, page_size and search_term are ignored and the
    result is a single unpaginated page.

    Args:
        session: ApiSession
        page: zero-based page index (>= 0)
        page_size: rows per page (> 0)
        search_term: free-text search over order id / SKU / status
        status_filter: final status to filter on
        source_filter: status source to filter on
        tracker: optional QueryTracker used to discard superseded responses

    Returns:
        tuple: (logs, records_df, meta) where meta has total_records, page_size,
        total_pages, paginated, stale
    """
    if page < 0:
        raise ValueError(f"page must be >= 0, got {page}")
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")

    logs = []
    meta = {
        'total_records': 0,
        'page_size': page_size,
        'total_pages': 0,
        'paginated': True,
        'stale': False,
    }
    request_id = tracker.begin('merged_page') if tracker is not None else None

    if status_filter:
        path = f"{MERGE_BASE}/merged-data/status/{_segment(status_filter)}"
        params = None
        meta['paginated'] = False
    elif source_filter:
        path = f"{MERGE_BASE}/merged-data/source/{_segment(source_filter)}"
        params = None
        meta['paginated'] = False
    else:
        path = f"{MERGE_BASE}/merged-data/paginated"
        params = {'page': page, 'size': page_size}
        if search_term and search_term.strip():
            params['q'] = search_term.strip()

    body = _fetch(session, path, logs, "Merged data", params=params)

    if tracker is not None and not tracker.is_current('merged_page', request_id):
        logs.append(f"INFO: Discarded superseded merged data response (request {request_id})")
        meta['stale'] = True
        return logs, normalize_merged_records([], logs), meta

    if isinstance(body, dict) and isinstance(body.get('data'), list) and body.get('totalRecords') is not None:
        rows = body['data']
        total = parse_count(body['totalRecords'])
        if total is None:
            logs.append(f"ERROR: Merged data: unexpected response shape (totalRecords={body['totalRecords']!r})")
            return logs, normalize_merged_records([], logs), meta
        if meta['paginated']:
            served_page_size = parse_count(body.get('pageSize')) or page_size
            if len(rows) > page_size:
                logs.append(f"WARNING: Provider returned {len(rows)} rows for page size {page_size}; truncating")
                rows = rows[:page_size]
            meta['total_pages'] = math.ceil(total / served_page_size) if served_page_size > 0 else 0
        else:
            meta['total_pages'] = 1
    elif isinstance(body, list):
        rows = body
        total = len(body)
        meta['total_pages'] = 1
        meta['paginated'] = False
    else:
        if body is not None:
            logs.append(f"ERROR: Merged data: unexpected response shape ({type(body).__name__})")
        return logs, normalize_merged_records([], logs), meta

    records_df = normalize_merged_records(rows, logs)
    meta['total_records'] = max(total, len(records_df))
    if not meta['paginated']:
        meta['page_size'] = len(records_df)
    logs.append(f"INFO: Loaded {len(records_df)} merged records ({meta['total_records']} total)")
    return logs, records_df, meta


def fetch_merge_statistics(session):
    """
    Fetch merge statistics; any failure yields zeroed statistics.

    Returns:
        tuple: (logs, stats) shaped like EMPTY_MERGE_STATISTICS
    """
    logs = []
    body = _fetch(session, f"{MERGE_BASE}/statistics", logs, "Merge statistics")
    stats = _with_defaults(body, EMPTY_MERGE_STATISTICS, logs, "Merge statistics")

    bad_fields = []
    for key in ['totalMergedRecords', 'uniqueOrders']:
        stats[key] = _count_field(stats[key], key, bad_fields)

    quality = copy.deepcopy(EMPTY_MERGE_STATISTICS['dataQuality'])
    if isinstance(stats.get('dataQuality'), dict):
        for key, value in stats['dataQuality'].items():
            if value is None:
                continue
            if key == 'skuCoveragePercentage':
                number = parse_number(value)
                if number is None:
                    bad_fields.append(key)
                quality[key] = number or 0.0
            else:
                quality[key] = _count_field(value, key, bad_fields)
    stats['dataQuality'] = quality

    for key in ['statusSourceBreakdown', 'finalStatusBreakdown']:
        if not isinstance(stats[key], dict):
            stats[key] = {}
        stats[key] = {
            name: _count_field(count, f"{key}.{name}", bad_fields)
            for name, count in stats[key].items()
        }

    if bad_fields:
        logs.append(f"ERROR: Merge statistics: non-numeric values treated as 0 ({', '.join(bad_fields)})")

    if not stats.get('warning'):
        stats['warning'] = build_quality_warning(
            stats['totalMergedRecords'], quality.get('recordsWithoutSku', 0)
        )

    if not statistics_are_consistent(stats):
        logs.append("WARNING: Status source breakdown does not add up to totalMergedRecords")
    return logs, stats


# === Dashboard Analytics ===

def load_time_series(session, series, start, end, agg):
    """
    Load one analytics time series.

    Args:
        series: key of TIME_SERIES_ENDPOINTS ('orders', 'payments', 'profit', 'loss')
        start, end: dates (ISO strings or date objects)
        agg: DAY | MONTH | QUARTER | YEAR

    Returns:
        tuple: (logs, df) with columns period, value
    """
    logs = []
    agg = validate_aggregation(agg)
    endpoint = TIME_SERIES_ENDPOINTS[series]
    body = _fetch(session, f"/api/analytics/{endpoint}", logs, f"Time series '{series}'",
                  params={'start': to_iso_date(start), 'end': to_iso_date(end), 'agg': agg})

    rows = body.get('data') if isinstance(body, dict) else body
    df = _rows_frame(rows, logs, f"Time series '{series}'")
    if df.empty or 'period' not in df.columns:
        return logs, pd.DataFrame(columns=['period', 'value'])
    df['value'] = pd.to_numeric(df['value'], errors='coerce').fillna(0) if 'value' in df.columns else 0
    return logs, df[['period', 'value']]


def _load_ranking(session, endpoint, label, name_field, value_field, start, end, limit=None):
    logs = []
    params = {'start': to_iso_date(start), 'end': to_iso_date(end)}
    if limit is not None:
        params['limit'] = limit
    body = _fetch(session, f"/api/analytics/{endpoint}", logs, label, params=params)
    df = _rows_frame(body, logs, label)
    if df.empty or name_field not in df.columns:
        return logs, pd.DataFrame(columns=['name', 'value'])
    df = df.rename(columns={name_field: 'name', value_field: 'value'})
    df['value'] = pd.to_numeric(df['value'], errors='coerce').fillna(0) if 'value' in df.columns else 0
    return logs, df[['name', 'value']]


def load_top_ordered(session, start, end, limit=ANALYTICS_RULES['top_n_limit']):
    return _load_ranking(session, 'top-ordered', "Top ordered", 'sku', 'quantity', start, end, limit)


def load_top_profitable(session, start, end, limit=ANALYTICS_RULES['top_n_limit']):
    return _load_ranking(session, 'top-profitable', "Top profitable", 'sku', 'profit', start, end, limit)


def load_orders_by_status(session, start, end):
    return _load_ranking(session, 'orders-by-status', "Orders by status", 'status', 'count', start, end)


def load_monthly_summary(session, year, month):
    logs = []
    body = _fetch(session, "/api/analytics/monthly-summary", logs, "Monthly summary",
                  params={'year': int(year), 'month': int(month)})
    return logs, _with_defaults(body, EMPTY_MONTHLY_SUMMARY, logs, "Monthly summary")


def load_comprehensive_loss(session, start, end):
    logs = []
    body = _fetch(session, "/api/analytics/comprehensive-loss-metrics", logs, "Loss metrics",
                  params={'start': to_iso_date(start), 'end': to_iso_date(end)})
    return logs, _with_defaults(body, EMPTY_LOSS_METRICS, logs, "Loss metrics")


def load_loss_orders(session, start, end):
    """
    Orders whose settlement did not cover COGS for a date range.

    Returns:
        tuple: (logs, orders_df, summary)
    """
    logs = []
    body = _fetch(session, "/api/analytics/loss-orders", logs, "Loss orders",
                  params={'start': to_iso_date(start), 'end': to_iso_date(end)})
    if not isinstance(body, dict) or not isinstance(body.get('orders'), list):
        if body is not None:
            logs.append("ERROR: Loss orders: unexpected response shape")
        return logs, pd.DataFrame(), copy.deepcopy(EMPTY_LOSS_SUMMARY)
    orders_df = _rows_frame(body['orders'], logs, "Loss orders")
    summary = _with_defaults(body.get('summary'), EMPTY_LOSS_SUMMARY, logs, "Loss summary")
    logs.append(f"INFO: Loaded {len(orders_df)} loss orders")
    return logs, orders_df, summary


def load_return_analysis(session, start, end):
    """
    Returned / RTO orders with their cost impact for a date range.

    Returns:
        tuple: (logs, orders_df, summary)
    """
    logs = []
    body = _fetch(session, "/api/analytics/return-analysis", logs, "Return analysis",
                  params={'start': to_iso_date(start), 'end': to_iso_date(end)})
    if not isinstance(body, dict):
        return logs, pd.DataFrame(), copy.deepcopy(EMPTY_RETURN_ANALYSIS_SUMMARY)
    orders_df = _rows_frame(body.get('orders') or [], logs, "Return analysis")
    summary = _with_defaults(body.get('summary'), EMPTY_RETURN_ANALYSIS_SUMMARY, logs, "Return summary")
    return logs, orders_df, summary


# === Return Tracking ===

def _unwrap_envelope(body, key, logs, label):
    """Return tracking endpoints wrap payloads as {success, <key>, error}."""
    if body is None:
        return None
    if not isinstance(body, dict):
        logs.append(f"ERROR: {label}: unexpected response shape")
        return None
    if not body.get('success'):
        logs.append(f"ERROR: {label}: {body.get('error') or 'request was not successful'}")
        return None
    return body.get(key)


def load_return_orders(session, return_status):
    """
    Return-tracking orders in one receipt state.

    Args:
        return_status: PENDING_RECEIPT | RECEIVED | NOT_RECEIVED
    """
    if return_status not in RETURN_STATUSES.values():
        raise ValueError(f"Unknown return status '{return_status}'")
    logs = []
    label = f"Return orders ({return_status})"
    body = _fetch(session, f"/api/return-tracking/status/{return_status}", logs, label)
    return logs, _rows_frame(_unwrap_envelope(body, 'orders', logs, label) or [], logs, label)


def load_return_summary(session):
    logs = []
    body = _fetch(session, "/api/return-tracking/summary", logs, "Return summary")
    summary = _unwrap_envelope(body, 'summary', logs, "Return summary")
    return logs, _with_defaults(summary, EMPTY_RETURN_TRACKING_SUMMARY, logs, "Return summary")


def search_return_orders(session, order_id=None, sku_id=None, start=None, end=None):
    """
    Search tracked returns; at least one criterion is required.

    Raises:
        ValueError: no criteria, or start date after end date
    """
    validate_date_range(start, end)
    params = {
        'orderId': order_id.strip() if order_id and order_id.strip() else None,
        'skuId': sku_id.strip() if sku_id and sku_id.strip() else None,
        'start': to_iso_date(start) if start else None,
        'end': to_iso_date(end) if end else None,
    }
    if all(v is None for v in params.values()):
        raise ValueError("Please provide at least one search criteria")
    logs = []
    body = _fetch(session, "/api/return-tracking/search", logs, "Return search", params=params)
    df = _rows_frame(_unwrap_envelope(body, 'orders', logs, "Return search") or [], logs, "Return search")
    if df.empty:
        logs.append("INFO: No orders found matching your search criteria")
    return logs, df


# === SKU Groups ===

def load_sku_groups(session):
    logs = []
    body = _fetch(session, "/api/sku-groups", logs, "SKU groups")
    return logs, _rows_frame(body, logs, "SKU groups")


def load_ungrouped_skus(session):
    logs = []
    body = _fetch(session, "/api/sku-groups/ungrouped", logs, "Ungrouped SKUs")
    skus = body.get('ungroupedSkus') if isinstance(body, dict) else None
    if not isinstance(skus, list):
        if body is not None:
            logs.append("ERROR: Ungrouped SKUs: unexpected response shape")
        return logs, []
    return logs, [str(s) for s in skus]


def load_sku_mappings(session):
    logs = []
    body = _fetch(session, "/api/sku-groups/mappings", logs, "SKU mappings")
    return logs, _rows_frame(body or [], logs, "SKU mappings")


def load_group_analytics(session, start, end):
    """
    Load the three SKU-group analytics views for a date range.

    The provider's catch-all 'Ungrouped SKUs' row is removed from each.

    Returns:
        tuple: (logs, dict with 'top_performing', 'revenue_contribution', 'profit_comparison')
    """
    logs = []
    params = {'start': to_iso_date(start), 'end': to_iso_date(end)}
    result = {}
    for key, endpoint in [('top_performing', 'top-performing'),
                          ('revenue_contribution', 'revenue-contribution'),
                          ('profit_comparison', 'profit-comparison')]:
        label = f"Group analytics ({endpoint})"
        body = _fetch(session, f"/api/sku-groups/analytics/{endpoint}", logs, label, params=params)
        df = _rows_frame(body, logs, label)
        if 'groupName' in df.columns:
            df = df[df['groupName'] != MERGE_RULES['ungrouped_group_name']].reset_index(drop=True)
        result[key] = df
    return logs, result
