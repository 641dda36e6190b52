"""
Pytest configuration and shared fixtures for all tests
Fake HTTP transport and an in-memory analytics backend
"""

import pytest
import json
import math
import os
import sys
from urllib.parse import urlsplit, unquote

import requests

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from api_client import ApiSession
from business_rules import resolve_final_status

BASE_URL = "http://analytics.test"

ORDER_STATUSES = ['Delivered', 'Shipped', 'Cancelled', 'RTO', None]
PAYMENT_STATUSES = ['Delivered', 'unknown', None, ' ']


# ===== FAKE TRANSPORT =====

class FakeResponse:
    """Minimal stand-in for requests.Response"""

    def __init__(self, status_code=200, body=None, content=None, text=None, headers=None):
        self.status_code = status_code
        self.headers = dict(headers or {})
        if body is not None:
            self.content = json.dumps(body).encode('utf-8')
            self.headers.setdefault('Content-Type', 'application/json')
        elif content is not None:
            self.content = content
        elif text is not None:
            self.content = text.encode('utf-8')
            self.headers.setdefault('Content-Type', 'text/plain')
        else:
            self.content = b''

    @property
    def text(self):
        return self.content.decode('utf-8', errors='replace')

    def json(self):
        return json.loads(self.content.decode('utf-8'))


class FakeHttp:
    """
    Records every call and answers from a route table.

    routes maps (METHOD, path) to a FakeResponse or to a callable
    handler(params, kwargs) returning one. Unknown routes answer 404.
    """

    def __init__(self, routes=None, fallback=None):
        self.routes = dict(routes or {})
        self.fallback = fallback
        self.calls = []

    def request(self, method, url, **kwargs):
        path = unquote(urlsplit(url).path)
        self.calls.append({'method': method, 'url': url, 'path': path, **kwargs})
        handler = self.routes.get((method, path))
        if handler is None and self.fallback is not None:
            return self.fallback(method, path, kwargs.get('params') or {}, kwargs)
        if handler is None:
            return FakeResponse(404, body={'error': f'No route for {method} {path}'})
        if callable(handler):
            return handler(kwargs.get('params') or {}, kwargs)
        return handler


class FailingHttp:
    """Every request fails at the network layer"""

    def __init__(self):
        self.calls = 0

    def request(self, method, url, **kwargs):
        self.calls += 1
        raise requests.ConnectionError("Connection refused")


# ===== FAKE BACKEND =====

def build_merged_records(count=120):
    """
    Merged records with a mix of order / payment statuses.

    Every 10th record has no SKU.
    """
    records = []
    for i in range(count):
        order_status = ORDER_STATUSES[i % len(ORDER_STATUSES)]
        payment_status = PAYMENT_STATUSES[i % len(PAYMENT_STATUSES)]
        final_status, source = resolve_final_status(order_status, payment_status)
        records.append({
            'orderId': f"ORD-{i:04d}",
            'sku': None if i % 10 == 0 else f"SKU-{i % 7}",
            'productName': f"Product {i % 7}",
            'quantity': 1 + i % 3,
            'sellingPrice': 199.0 + i,
            'customerState': 'Karnataka',
            'orderStatus': payment_status,
            'reasonForCreditEntry': order_status,
            'finalStatus': final_status or 'UNKNOWN',
            'statusSource': source or 'MERGED',
            'amount': 150.5,
            'orderDateTime': '2025-07-01T10:00:00',
            'transactionId': f"TXN-{i}",
        })
    return records


class FakeMergeBackend:
    """In-memory data-merge endpoints over a fixed record set"""

    def __init__(self, records):
        self.records = records

    def _matches(self, record, term):
        term = term.lower()
        return any(term in str(record.get(f) or '').lower() for f in ['orderId', 'sku', 'finalStatus'])

    def statistics(self):
        by_source, by_status = {}, {}
        for r in self.records:
            by_source[r['statusSource']] = by_source.get(r['statusSource'], 0) + 1
            by_status[r['finalStatus']] = by_status.get(r['finalStatus'], 0) + 1
        with_sku = sum(1 for r in self.records if r['sku'])
        return {
            'totalMergedRecords': len(self.records),
            'statusSourceBreakdown': by_source,
            'finalStatusBreakdown': by_status,
            'uniqueOrders': len({r['orderId'] for r in self.records}),
            'dataQuality': {
                'recordsWithSku': with_sku,
                'recordsWithoutSku': len(self.records) - with_sku,
                'skuCoveragePercentage': with_sku * 100.0 / len(self.records),
                'recordsWithProductName': len(self.records),
                'recordsWithQuantity': len(self.records),
            },
        }

    def __call__(self, method, path, params, kwargs):
        if method != 'GET':
            return FakeResponse(405, body={'error': 'Method not allowed'})
        if path == '/api/data-merge/merged-data/paginated':
            rows = self.records
            if params.get('q'):
                rows = [r for r in rows if self._matches(r, params['q'])]
            size = int(params.get('size', 50))
            total_pages = math.ceil(len(rows) / size) if rows else 0
            page = min(int(params.get('page', 0)), max(total_pages - 1, 0))
            return FakeResponse(body={
                'data': rows[page * size:(page + 1) * size],
                'currentPage': page,
                'pageSize': size,
                'totalRecords': len(rows),
                'totalPages': total_pages,
            })
        if path.startswith('/api/data-merge/merged-data/status/'):
            status = path.rsplit('/', 1)[1]
            rows = [r for r in self.records if r['finalStatus'].lower() == status.lower()]
            return FakeResponse(body={'data': rows, 'totalRecords': len(rows), 'status': status})
        if path.startswith('/api/data-merge/merged-data/source/'):
            source = path.rsplit('/', 1)[1]
            return FakeResponse(body=[r for r in self.records if r['statusSource'] == source])
        if path == '/api/data-merge/statistics':
            return FakeResponse(body=self.statistics())
        return FakeResponse(404, body={'error': f'No route for {path}'})


# ===== FIXTURES =====

@pytest.fixture
def merged_records():
    return build_merged_records()


@pytest.fixture
def merge_backend(merged_records):
    return FakeMergeBackend(merged_records)


@pytest.fixture
def fake_http(merge_backend):
    return FakeHttp(fallback=merge_backend)


@pytest.fixture
def api_session(fake_http):
    return ApiSession(base_url=BASE_URL, token="test-token", http=fake_http)


@pytest.fixture
def failing_session():
    return ApiSession(base_url=BASE_URL, token="test-token", http=FailingHttp())
