"""
API Client Module
Session object, request middleware and error type used for every call to the
analytics backend.
"""

import itertools
import logging
import os
import threading

import requests

logger = logging.getLogger(__name__)

# --- Backend Configuration ---
# Set env vars to override defaults: e.g., export ECOM_API_URL="http://analytics.internal:8080"
API_BASE_URL = os.environ.get("ECOM_API_URL", "http://localhost:8080")
API_TOKEN = os.environ.get("ECOM_API_TOKEN") or None
API_TIMEOUT_SECONDS = float(os.environ.get("ECOM_API_TIMEOUT", "30"))


class ApiError(Exception):
    """
    Raised for any failed backend call.

    kind is one of:
        'network'   - connection refused, timeout, DNS ...
        'http'      - non-2xx response (status_code is set)
        'malformed' - body is not the JSON shape the caller expected
    """

    def __init__(self, message, kind="http", status_code=None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    def __str__(self):
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


# ===== REQUEST MIDDLEWARE =====
# A hook receives the session and the keyword arguments about to be passed to
# requests, and returns the (possibly updated) keyword arguments.

def json_accept_hook(session, request_kwargs):
    headers = dict(request_kwargs.get("headers") or {})
    headers.setdefault("Accept", "application/json")
    request_kwargs["headers"] = headers
    return request_kwargs


def bearer_token_hook(session, request_kwargs):
    """Attach the session token as a Bearer Authorization header, if any."""
    if session.token:
        headers = dict(request_kwargs.get("headers") or {})
        headers["Authorization"] = f"Bearer {session.token}"
        request_kwargs["headers"] = headers
    return request_kwargs


def compose_hooks(*hooks):
    """Chain hooks left to right into a single hook."""
    def composed(session, request_kwargs):
        for hook in hooks:
            request_kwargs = hook(session, request_kwargs)
        return request_kwargs
    return composed


DEFAULT_HOOKS = (json_accept_hook, bearer_token_hook)


# ===== SESSION =====

class ApiSession:
    """
    Explicit session passed to every loader and action.

    Holds the base URL, the bearer token and the underlying requests.Session.
    A 401 response clears the token on this object only.
    """

    def __init__(self, base_url=API_BASE_URL, token=API_TOKEN, timeout=API_TIMEOUT_SECONDS,
                 hooks=DEFAULT_HOOKS, http=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.hook = compose_hooks(*hooks)
        self.http = http if http is not None else requests.Session()

    def url_for(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def clear_token(self):
        self.token = None

    def request(self, method, path, **kwargs):
        """
        Send a request through the middleware chain and return the response.

        Raises:
            ApiError: on network failure or non-2xx status
        """
        request_kwargs = self.hook(self, dict(kwargs))
        request_kwargs.setdefault("timeout", self.timeout)
        url = self.url_for(path)

        try:
            response = self.http.request(method, url, **request_kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(f"Could not reach analytics backend: {e}", kind="network") from e

        if response.status_code == 401:
            logger.warning("%s %s returned 401, clearing session token", method, url)
            self.clear_token()
            raise ApiError("Session expired or unauthorized", kind="http", status_code=401)

        if not 200 <= response.status_code < 300:
            logger.error("%s %s returned %s", method, url, response.status_code)
            raise ApiError(_error_text(response), kind="http", status_code=response.status_code)

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    # --- convenience wrappers ---

    def get_json(self, path, params=None):
        return _json_body(self.request("GET", path, params=_drop_none(params)))

    def post_json(self, path, payload=None, params=None):
        return _json_body(self.request("POST", path, json=payload, params=_drop_none(params)))

    def put_json(self, path, payload=None):
        return _json_body(self.request("PUT", path, json=payload))

    def delete(self, path):
        return _json_body(self.request("DELETE", path))

    def post_file(self, path, filename, content, content_type=None):
        """Upload a single file as the multipart 'file' field."""
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        return _json_body(self.request("POST", path, files=files))

    def get_bytes(self, path, params=None):
        return self.request("GET", path, params=_drop_none(params)).content


# ===== REQUEST ORDERING =====

class QueryTracker:
    """
    Monotonic request ids per query name.

    Call begin() before issuing a request and is_current() when its response
    arrives; a response whose id is not the latest for its query is stale and
    must be discarded.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = {}
        self._lock = threading.Lock()

    def begin(self, query_name):
        with self._lock:
            request_id = next(self._counter)
            self._latest[query_name] = request_id
            return request_id

    def is_current(self, query_name, request_id):
        with self._lock:
            return self._latest.get(query_name) == request_id

    def latest(self, query_name):
        return self._latest.get(query_name)


# ===== HELPERS =====

def _drop_none(params):
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ""}


def _json_body(response):
    """Decode a JSON body. Empty bodies decode to None, plain text to str."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            raise ApiError("Backend returned invalid JSON", kind="malformed")
        # Upload endpoints answer with a plain-text message
        return response.text


def _error_text(response):
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Request failed with status {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)
