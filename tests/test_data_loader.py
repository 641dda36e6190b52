"""
Tests for data_loader module
Merge query client, statistics and analytics loaders against a fake backend
"""

import pytest
import pandas as pd
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api_client import ApiSession, QueryTracker
from business_rules import EMPTY_MERGE_STATISTICS, MERGED_RECORD_FIELDS, STATUS_SOURCES
from data_loader import (
    fetch_merged_page, fetch_merge_statistics, normalize_merged_records,
    load_time_series, load_top_ordered, load_orders_by_status, load_monthly_summary,
    load_loss_orders, load_return_analysis, load_return_orders, load_return_summary,
    search_return_orders, load_ungrouped_skus, load_group_analytics
)
from conftest import BASE_URL, FakeHttp, FakeResponse


def session_with(routes):
    http = FakeHttp(routes=routes)
    return ApiSession(base_url=BASE_URL, token="t", http=http), http


def has_errors(logs):
    return any(log.startswith("ERROR:") for log in logs)


# ===== MERGE QUERY CLIENT =====

class TestFetchMergedPage:
    """Test paginated and filtered merged-record queries"""

    def test_first_page(self, api_session):
        """page 0 of size 50 over 120 records returns 50 rows and the full total"""
        logs, df, meta = fetch_merged_page(api_session, 0, 50)
        assert len(df) == 50
        assert meta['total_records'] == 120
        assert meta['total_pages'] == 3
        assert meta['paginated'] is True
        assert not has_errors(logs)

    def test_last_page_is_partial(self, api_session):
        _, df, meta = fetch_merged_page(api_session, 2, 50)
        assert len(df) == 20
        assert df['order_id'].iloc[0] == "ORD-0100"

    @pytest.mark.parametrize("page,size", [(0, 25), (1, 50), (4, 25), (0, 200)])
    def test_page_bounds(self, api_session, page, size):
        _, df, meta = fetch_merged_page(api_session, page, size)
        assert len(df) <= size
        assert meta['total_records'] >= len(df)

    def test_columns_are_snake_case(self, api_session):
        _, df, _ = fetch_merged_page(api_session, 0, 10)
        assert list(df.columns) == list(MERGED_RECORD_FIELDS.values())

    def test_search_term_is_sent(self, api_session, fake_http):
        _, df, meta = fetch_merged_page(api_session, 0, 50, search_term="  ORD-001 ")
        assert fake_http.calls[-1]['params']['q'] == "ORD-001"
        assert set(df['order_id']) == {f"ORD-001{i}" for i in range(10)}
        assert meta['total_records'] == 10

    def test_status_filter_returns_whole_filtered_set(self, api_session, merged_records):
        """Status filter ignores page and page size"""
        expected = [r for r in merged_records if r['finalStatus'] == 'Delivered']
        logs, df, meta = fetch_merged_page(api_session, 3, 5, status_filter="Delivered")
        assert len(df) == len(expected)
        assert len(expected) > 5
        assert set(df['final_status']) == {'Delivered'}
        assert meta['paginated'] is False
        assert meta['total_pages'] == 1
        assert meta['page_size'] == len(expected)

    def test_status_filter_ignores_search(self, api_session, fake_http):
        fetch_merged_page(api_session, 0, 50, search_term="ORD-0001", status_filter="Shipped")
        call = fake_http.calls[-1]
        assert call['path'] == "/api/data-merge/merged-data/status/Shipped"
        assert not call.get('params')

    def test_source_filter_accepts_bare_list(self, api_session, merged_records):
        expected = [r for r in merged_records if r['statusSource'] == STATUS_SOURCES['order']]
        _, df, meta = fetch_merged_page(api_session, 0, 10, source_filter="ORDER_FILE")
        assert len(df) == len(expected)
        assert set(df['status_source']) == {"ORDER_FILE"}
        assert meta['paginated'] is False

    def test_status_filter_wins_over_source_filter(self, api_session, fake_http):
        fetch_merged_page(api_session, 0, 50, status_filter="RTO", source_filter="PAYMENT_FILE")
        assert fake_http.calls[-1]['path'].endswith("/status/RTO")

    def test_filter_value_is_path_quoted(self, api_session, fake_http):
        fetch_merged_page(api_session, 0, 50, status_filter="Ready to ship")
        assert "Ready%20to%20ship" in fake_http.calls[-1]['url']

    @pytest.mark.parametrize("page,size", [(-1, 50), (0, 0), (0, -5)])
    def test_invalid_arguments_raise(self, api_session, page, size):
        with pytest.raises(ValueError):
            fetch_merged_page(api_session, page, size)

    def test_network_failure_degrades_to_empty(self, failing_session):
        logs, df, meta = fetch_merged_page(failing_session, 0, 50)
        assert df.empty
        assert meta['total_records'] == 0
        assert has_errors(logs)

    def test_http_error_degrades_to_empty(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(500, body={'error': 'db down'})
        })
        logs, df, meta = fetch_merged_page(session, 0, 50)
        assert df.empty
        assert any('db down' in log for log in logs)

    def test_unexpected_shape_degrades_to_empty(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(body={'rows': []})
        })
        logs, df, meta = fetch_merged_page(session, 0, 50)
        assert df.empty
        assert has_errors(logs)

    def test_oversized_page_is_truncated(self):
        rows = [{'orderId': f"O{i}", 'finalStatus': 'Shipped', 'statusSource': 'ORDER_FILE'} for i in range(30)]
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(body={
                'data': rows, 'totalRecords': 30, 'pageSize': 10
            })
        })
        logs, df, meta = fetch_merged_page(session, 0, 10)
        assert len(df) == 10
        assert any(log.startswith("WARNING:") for log in logs)

    def test_total_never_below_returned_rows(self):
        rows = [{'orderId': f"O{i}"} for i in range(5)]
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(body={
                'data': rows, 'totalRecords': 2, 'pageSize': 50
            })
        })
        _, df, meta = fetch_merged_page(session, 0, 50)
        assert meta['total_records'] >= len(df)

    @pytest.mark.parametrize("total", ["n/a", {"count": 3}, float('nan')])
    def test_non_numeric_total_degrades_to_empty(self, total):
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(body={
                'data': [{'orderId': 'O1'}], 'totalRecords': total, 'pageSize': 50
            })
        })
        logs, df, meta = fetch_merged_page(session, 0, 50)
        assert df.empty
        assert meta['total_records'] == 0
        assert has_errors(logs)

    def test_numeric_string_counts_are_accepted(self):
        rows = [{'orderId': f"O{i}"} for i in range(10)]
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(body={
                'data': rows, 'totalRecords': "25", 'pageSize': "10"
            })
        })
        logs, df, meta = fetch_merged_page(session, 0, 10)
        assert meta['total_records'] == 25
        assert meta['total_pages'] == 3
        assert not has_errors(logs)

    def test_non_numeric_page_size_falls_back_to_requested(self):
        rows = [{'orderId': f"O{i}"} for i in range(10)]
        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): FakeResponse(body={
                'data': rows, 'totalRecords': 45, 'pageSize': "ten"
            })
        })
        _, df, meta = fetch_merged_page(session, 0, 10)
        assert len(df) == 10
        assert meta['total_pages'] == 5

    def test_superseded_response_is_discarded(self, merged_records):
        """A response whose request is no longer the latest is marked stale"""
        tracker = QueryTracker()

        def respond_after_newer_request(params, kwargs):
            tracker.begin('merged_page')
            return FakeResponse(body={'data': merged_records[:50], 'totalRecords': 120, 'pageSize': 50})

        session, _ = session_with({
            ('GET', '/api/data-merge/merged-data/paginated'): respond_after_newer_request
        })
        logs, df, meta = fetch_merged_page(session, 0, 50, tracker=tracker)
        assert meta['stale'] is True
        assert df.empty

    def test_current_response_is_kept(self, api_session):
        tracker = QueryTracker()
        _, df, meta = fetch_merged_page(api_session, 0, 50, tracker=tracker)
        assert meta['stale'] is False
        assert len(df) == 50


class TestNormalizeMergedRecords:
    """Test record normalization"""

    def test_missing_status_filled_with_unknown(self):
        logs = []
        df = normalize_merged_records([{'orderId': 'A1', 'finalStatus': None, 'statusSource': ''}], logs)
        assert df['final_status'].iloc[0] == 'UNKNOWN'
        assert df['status_source'].iloc[0] == 'UNKNOWN'

    def test_missing_status_taken_from_payment_side(self):
        """orderStatus is the payment file's status"""
        df = normalize_merged_records([{'orderId': 'A1', 'orderStatus': 'Delivered',
                                        'reasonForCreditEntry': 'Shipped'}], [])
        assert df['final_status'].iloc[0] == 'Delivered'
        assert df['status_source'].iloc[0] == STATUS_SOURCES['payment']

    def test_missing_status_taken_from_order_side(self):
        df = normalize_merged_records([{'orderId': 'A2', 'reasonForCreditEntry': 'Shipped'}], [])
        assert df['final_status'].iloc[0] == 'Shipped'
        assert df['status_source'].iloc[0] == STATUS_SOURCES['order']

    def test_unknown_payment_status_falls_back_to_order_side(self):
        df = normalize_merged_records([{'orderId': 'A3', 'orderStatus': 'unknown',
                                        'reasonForCreditEntry': 'RTO'}], [])
        assert df['final_status'].iloc[0] == 'RTO'
        assert df['status_source'].iloc[0] == 'ORDER_FILE'

    def test_provider_final_status_is_kept(self):
        df = normalize_merged_records([{'orderId': 'A4', 'finalStatus': 'Cancelled', 'statusSource': 'MERGED',
                                        'orderStatus': 'Delivered'}], [])
        assert df['final_status'].iloc[0] == 'Cancelled'
        assert df['status_source'].iloc[0] == 'MERGED'

    def test_status_derived_per_row(self):
        df = normalize_merged_records([
            {'orderId': 'A1', 'finalStatus': 'Shipped', 'statusSource': 'ORDER_FILE'},
            {'orderId': 'A2', 'orderStatus': 'Delivered'},
            {'orderId': 'A3'},
        ], [])
        assert list(df['final_status']) == ['Shipped', 'Delivered', 'UNKNOWN']
        assert list(df['status_source']) == ['ORDER_FILE', 'PAYMENT_FILE', 'UNKNOWN']

    def test_rows_without_order_id_are_dropped(self):
        logs = []
        df = normalize_merged_records([{'orderId': 'A1'}, {'orderId': None}, {'orderId': '  '}], logs)
        assert list(df['order_id']) == ['A1']
        assert any(log.startswith("WARNING:") for log in logs)

    def test_numeric_fields_are_coerced(self):
        df = normalize_merged_records([{'orderId': 'A1', 'quantity': '3', 'amount': 'n/a'}], [])
        assert df['quantity'].iloc[0] == 3
        assert pd.isna(df['amount'].iloc[0])

    def test_empty_input_keeps_columns(self):
        df = normalize_merged_records([], [])
        assert df.empty
        assert 'final_status' in df.columns


# ===== STATISTICS =====

class TestFetchMergeStatistics:
    """Test merge statistics loading"""

    def test_breakdowns_sum_to_total(self, api_session):
        logs, stats = fetch_merge_statistics(api_session)
        assert stats['totalMergedRecords'] == 120
        assert sum(stats['statusSourceBreakdown'].values()) == 120
        assert not any(log.startswith("WARNING:") for log in logs)

    def test_missing_sku_warning(self, api_session):
        _, stats = fetch_merge_statistics(api_session)
        assert stats['dataQuality']['recordsWithoutSku'] == 12
        assert stats['warning'].startswith("WARNING: 12 records (10.0%)")

    def test_network_failure_returns_zeros(self, failing_session):
        logs, stats = fetch_merge_statistics(failing_session)
        assert stats['totalMergedRecords'] == 0
        assert stats['statusSourceBreakdown'] == {}
        assert stats['finalStatusBreakdown'] == {}
        assert stats['dataQuality'] == EMPTY_MERGE_STATISTICS['dataQuality']
        assert stats['warning'] is None
        assert has_errors(logs)

    def test_partial_body_is_filled(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/statistics'): FakeResponse(body={
                'totalMergedRecords': 3, 'statusSourceBreakdown': {'ORDER_FILE': 3}
            })
        })
        _, stats = fetch_merge_statistics(session)
        assert stats['uniqueOrders'] == 0
        assert stats['dataQuality']['recordsWithSku'] == 0

    def test_inconsistent_breakdown_is_logged(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/statistics'): FakeResponse(body={
                'totalMergedRecords': 10, 'statusSourceBreakdown': {'ORDER_FILE': 4}
            })
        })
        logs, _ = fetch_merge_statistics(session)
        assert any("does not add up" in log for log in logs)

    def test_provider_warning_is_kept(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/statistics'): FakeResponse(body={
                'totalMergedRecords': 0, 'warning': 'Provider says hi'
            })
        })
        _, stats = fetch_merge_statistics(session)
        assert stats['warning'] == 'Provider says hi'

    def test_null_breakdown_value_counts_as_zero(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/statistics'): FakeResponse(body={
                'totalMergedRecords': 2, 'statusSourceBreakdown': {'ORDER_FILE': None, 'PAYMENT_FILE': 2}
            })
        })
        logs, stats = fetch_merge_statistics(session)
        assert stats['statusSourceBreakdown'] == {'ORDER_FILE': 0, 'PAYMENT_FILE': 2}
        assert not any("does not add up" in log for log in logs)

    def test_non_numeric_counts_become_zero(self):
        session, _ = session_with({
            ('GET', '/api/data-merge/statistics'): FakeResponse(body={
                'totalMergedRecords': 'n/a',
                'uniqueOrders': '7',
                'finalStatusBreakdown': {'Delivered': 'lots'},
                'dataQuality': {'recordsWithoutSku': 'some', 'skuCoveragePercentage': '87.5'},
            })
        })
        logs, stats = fetch_merge_statistics(session)
        assert stats['totalMergedRecords'] == 0
        assert stats['uniqueOrders'] == 7
        assert stats['finalStatusBreakdown'] == {'Delivered': 0}
        assert stats['dataQuality']['recordsWithoutSku'] == 0
        assert stats['dataQuality']['skuCoveragePercentage'] == 87.5
        assert stats['warning'] is None
        errors = [log for log in logs if log.startswith("ERROR:")]
        assert len(errors) == 1
        assert 'totalMergedRecords' in errors[0]
        assert 'finalStatusBreakdown.Delivered' in errors[0]


# ===== ANALYTICS =====

class TestAnalyticsLoaders:
    """Test dashboard analytics loaders"""

    def test_time_series_sends_range_and_aggregation(self):
        session, http = session_with({
            ('GET', '/api/analytics/orders-by-time'): FakeResponse(body=[
                {'period': '2025-07', 'value': 12}, {'period': '2025-08', 'value': '7'}
            ])
        })
        logs, df = load_time_series(session, 'orders', date(2025, 7, 1), date(2025, 8, 31), 'month')
        assert list(df['value']) == [12, 7]
        assert http.calls[0]['params'] == {'start': '2025-07-01', 'end': '2025-08-31', 'agg': 'MONTH'}

    def test_time_series_bad_aggregation(self, api_session):
        with pytest.raises(ValueError):
            load_time_series(api_session, 'orders', '2025-07-01', '2025-07-31', 'WEEK')

    def test_time_series_failure_is_empty(self, failing_session):
        logs, df = load_time_series(failing_session, 'profit', '2025-07-01', '2025-07-31', 'DAY')
        assert df.empty
        assert list(df.columns) == ['period', 'value']

    def test_top_ordered_renames_columns(self):
        session, http = session_with({
            ('GET', '/api/analytics/top-ordered'): FakeResponse(body=[{'sku': 'SKU-1', 'quantity': 9}])
        })
        _, df = load_top_ordered(session, '2025-07-01', '2025-07-31')
        assert df.to_dict('records') == [{'name': 'SKU-1', 'value': 9}]
        assert http.calls[0]['params']['limit'] == 10

    def test_orders_by_status(self):
        session, _ = session_with({
            ('GET', '/api/analytics/orders-by-status'): FakeResponse(body=[
                {'status': 'Delivered', 'count': 5}, {'status': 'RTO', 'count': 1}
            ])
        })
        _, df = load_orders_by_status(session, '2025-07-01', '2025-07-31')
        assert df['value'].sum() == 6

    def test_monthly_summary_defaults(self, failing_session):
        logs, summary = load_monthly_summary(failing_session, 2025, 7)
        assert summary['totalRevenue'] == 0
        assert summary['netIncome'] == 0

    def test_loss_orders(self):
        session, _ = session_with({
            ('GET', '/api/analytics/loss-orders'): FakeResponse(body={
                'orders': [{'orderId': 'A', 'lossAmount': 50}],
                'summary': {'totalOrders': 1, 'totalLoss': 50},
            })
        })
        logs, df, summary = load_loss_orders(session, '2025-07-01', '2025-07-31')
        assert len(df) == 1
        assert summary['totalLoss'] == 50
        assert summary['totalCogs'] == 0

    def test_loss_orders_bad_shape(self):
        session, _ = session_with({('GET', '/api/analytics/loss-orders'): FakeResponse(body=[1, 2])})
        logs, df, summary = load_loss_orders(session, '2025-07-01', '2025-07-31')
        assert df.empty
        assert summary['totalOrders'] == 0
        assert has_errors(logs)

    def test_return_analysis_unexpected_statuses(self):
        session, _ = session_with({
            ('GET', '/api/analytics/return-analysis'): FakeResponse(body={
                'orders': [{'orderId': 'R1', 'isUnexpectedStatus': True}],
                'summary': {'totalOrders': 1, 'unexpectedStatuses': ['LOST']},
            })
        })
        _, df, summary = load_return_analysis(session, '2025-07-01', '2025-07-31')
        assert summary['unexpectedStatuses'] == ['LOST']
        assert bool(df['isUnexpectedStatus'].iloc[0])

    def test_group_analytics_excludes_catch_all_group(self):
        rows = [{'groupName': 'Kurtis', 'orderCount': 4}, {'groupName': 'Ungrouped SKUs', 'orderCount': 9}]
        session, _ = session_with({
            ('GET', '/api/sku-groups/analytics/top-performing'): FakeResponse(body=rows),
            ('GET', '/api/sku-groups/analytics/revenue-contribution'): FakeResponse(body=[]),
            ('GET', '/api/sku-groups/analytics/profit-comparison'): FakeResponse(body=rows),
        })
        _, result = load_group_analytics(session, '2025-07-01', '2025-07-31')
        assert list(result['top_performing']['groupName']) == ['Kurtis']
        assert list(result['profit_comparison']['groupName']) == ['Kurtis']
        assert result['revenue_contribution'].empty

    def test_ungrouped_skus(self):
        session, _ = session_with({
            ('GET', '/api/sku-groups/ungrouped'): FakeResponse(body={'ungroupedSkus': ['A', 7]})
        })
        _, skus = load_ungrouped_skus(session)
        assert skus == ['A', '7']


# ===== RETURN TRACKING =====

class TestReturnTrackingLoaders:
    """Test return tracking reads"""

    def test_orders_by_status(self):
        session, _ = session_with({
            ('GET', '/api/return-tracking/status/PENDING_RECEIPT'): FakeResponse(body={
                'success': True, 'orders': [{'orderId': 'R1'}, {'orderId': 'R2'}]
            })
        })
        logs, df = load_return_orders(session, 'PENDING_RECEIPT')
        assert len(df) == 2

    def test_unknown_status_raises(self, api_session):
        with pytest.raises(ValueError):
            load_return_orders(api_session, 'LOST')

    def test_unsuccessful_envelope_is_logged(self):
        session, _ = session_with({
            ('GET', '/api/return-tracking/status/RECEIVED'): FakeResponse(body={
                'success': False, 'error': 'table missing'
            })
        })
        logs, df = load_return_orders(session, 'RECEIVED')
        assert df.empty
        assert any('table missing' in log for log in logs)

    def test_summary_defaults(self, failing_session):
        _, summary = load_return_summary(failing_session)
        assert summary['pendingReceipts'] == 0
        assert summary['statusBreakdown'] == {}

    def test_search_requires_criteria(self, api_session):
        with pytest.raises(ValueError):
            search_return_orders(api_session, order_id="  ")

    def test_search_rejects_reversed_range(self, api_session):
        with pytest.raises(ValueError, match="Start date cannot be after end date"):
            search_return_orders(api_session, start=date(2025, 8, 1), end=date(2025, 7, 1))

    def test_search_sends_only_given_criteria(self):
        session, http = session_with({
            ('GET', '/api/return-tracking/search'): FakeResponse(body={'success': True, 'orders': []})
        })
        logs, df = search_return_orders(session, sku_id=" SKU-9 ")
        assert http.calls[0]['params'] == {'skuId': 'SKU-9'}
        assert df.empty
        assert any("No orders found" in log for log in logs)
