"""Shared HTTP helpers used by the build and available versions resolvers.

Encapsulates retry, timeout and caching behavior so resolvers avoid
duplicating try/except blocks. This module is dependency-light and can be
imported from any package without cycles.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, str], str]

# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[Response, float]] = {}
_http_cache_lock = threading.Lock()


def split_credentials(url: str) -> Tuple[str, Optional[Tuple[str, str]]]:
    """Split ``user:password@`` out of a URL.

    Returns:
        Tuple of (url without credentials, (user, password) or None)
    """
    parts = urlsplit(url)
    if parts.username is None:
        return url, None
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    stripped = urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))
    return stripped, (unquote(parts.username), unquote(parts.password or ""))


def _get_cache_key(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    auth: Optional[Tuple[str, str]] = None,
) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    auth_str = auth[0] if auth else ""
    return f"{method}:{url}:{headers_str}:{auth_str}"


def _cached(cache_key: str) -> Optional[Response]:
    """Return a cached response younger than the configured TTL."""
    with _http_cache_lock:
        entry = _http_cache.get(cache_key)
    if entry is None:
        return None
    response, cached_time = entry
    if time.time() - cached_time >= Constants.HTTP_CACHE_TTL_SEC:
        return None
    return response


def clear_cache() -> None:
    """Drop every cached response."""
    with _http_cache_lock:
        _http_cache.clear()


def _trace(message: str, target: str, **fields: Any) -> None:
    if is_debug_enabled(logger):
        logger.debug(
            message,
            extra=extra_context(component="http_client", action="GET", target=target, **fields)
        )


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    auth: Optional[Tuple[str, str]] = None,
    **kwargs: Any
) -> Response:
    """Perform GET request with timeout, retries, and caching with DEBUG traces.

    Server errors, timeouts and connection failures are retried with an
    exponential backoff; any other response is returned and cached.

    Args:
        url: Target URL, without credentials.
        headers: Optional request headers.
        auth: Optional basic authentication ``(user, password)`` pair.
        **kwargs: Additional requests.get parameters.

    Returns:
        Tuple of (status_code, headers_dict, text); status_code is 0 when
        every attempt failed before a usable response was received.
    """
    cache_key = _get_cache_key("GET", url, headers, auth)
    safe_target = safe_url(url)

    cached = _cached(cache_key)
    if cached is not None:
        _trace("HTTP cache hit", safe_target, event="cache_hit")
        return cached

    last_error = None
    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        if attempt > 1:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 2)))
        _trace("HTTP request", safe_target, event="http_request", attempt=attempt)
        with Timer() as t:
            try:
                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    auth=auth,
                    **kwargs
                )
            except requests.Timeout:
                last_error = "timeout"
                _trace("HTTP timeout", safe_target, event="http_exception", outcome="timeout", attempt=attempt)
                continue
            except requests.RequestException as exc:
                last_error = str(exc)
                _trace("HTTP request exception", safe_target, event="http_exception",
                       outcome="request_exception", attempt=attempt)
                continue

        if response.status_code >= 500:
            last_error = f"HTTP {response.status_code}"
            _trace("HTTP server error", safe_target, event="http_response", outcome="server_error",
                   status_code=response.status_code, attempt=attempt)
            continue

        result = (response.status_code, dict(response.headers), response.text)
        with _http_cache_lock:
            _http_cache[cache_key] = (result, time.time())
        _trace("HTTP response ok", safe_target, event="http_response", outcome="success",
               status_code=response.status_code, duration_ms=t.duration_ms())
        return result

    logger.debug("GET %s failed after %s attempts: %s", safe_target, Constants.HTTP_RETRY_MAX, last_error)
    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_error}"
