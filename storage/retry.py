"""
Retry/backoff and rate-limit-aware HTTP GET helper.
This module centralizes request retry logic so the ticket and timeline sources can share it.
"""

import email.utils
import logging
import os
import random
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from errors import UpstreamFetchError

logger = logging.getLogger(__name__)

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("CYCLE_TIME_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("CYCLE_TIME_BACKOFF_BASE", "0.5"))
_env_jitter = os.getenv("CYCLE_TIME_BACKOFF_JITTER")
DEFAULT_BACKOFF_JITTER = float(_env_jitter) if _env_jitter is not None and _env_jitter != "" else None
DEFAULT_MAX_BACKOFF = float(os.getenv("CYCLE_TIME_MAX_BACKOFF", "120.0"))
DEFAULT_TIMEOUT = float(os.getenv("CYCLE_TIME_HTTP_TIMEOUT", "30"))

# upper bound for a single rate-limit wait
MAX_RATE_LIMIT_WAIT = 300.0

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_backoff_jitter: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(
    max_retries: Optional[int] = None, backoff_base: Optional[float] = None, backoff_jitter: Optional[float] = None, max_backoff: Optional[float] = None
):
    """Configure retry/backoff defaults at runtime (e.g. from CLI)."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if backoff_jitter is not None:
        _runtime_backoff_jitter = float(backoff_jitter)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def reset_retry():
    """Drop runtime overrides and fall back to environment defaults."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    _runtime_max_retries = None
    _runtime_backoff_base = None
    _runtime_backoff_jitter = None
    _runtime_max_backoff = None


def _parse_retry_after(raw_ra: Optional[str]) -> Optional[float]:
    if not raw_ra:
        return None
    try:
        return max(0.0, float(raw_ra))
    except ValueError:
        pass
    try:
        dt = email.utils.parsedate_to_datetime(raw_ra)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _header_number(headers, key: str, cast):
    val = headers.get(key)
    if val is None:
        return None
    try:
        return cast(val)
    except ValueError:
        return None


def _parse_rate_headers(resp):
    headers = getattr(resp, 'headers', None) or {}
    ra = _parse_retry_after(headers.get('Retry-After'))
    rl_remaining = _header_number(headers, 'X-RateLimit-Remaining', int)
    rl_reset = _header_number(headers, 'X-RateLimit-Reset', float)
    return ra, rl_remaining, rl_reset


def _resolve_backoff_params(backoff_base: Optional[float], backoff_jitter: Optional[float], max_backoff: Optional[float]):
    if backoff_base is not None:
        base = float(backoff_base)
    elif _runtime_backoff_base is not None:
        base = float(_runtime_backoff_base)
    else:
        base = float(DEFAULT_BACKOFF_BASE)

    if backoff_jitter is not None:
        jitter = float(backoff_jitter)
    elif _runtime_backoff_jitter is not None:
        jitter = float(_runtime_backoff_jitter)
    elif DEFAULT_BACKOFF_JITTER is not None:
        jitter = float(DEFAULT_BACKOFF_JITTER)
    else:
        jitter = base

    if max_backoff is not None:
        max_backoff_resolved = float(max_backoff)
    elif _runtime_max_backoff is not None:
        max_backoff_resolved = float(_runtime_max_backoff)
    else:
        max_backoff_resolved = float(DEFAULT_MAX_BACKOFF)

    return base, jitter, max_backoff_resolved


def _resolve_max_retries(max_retries: Optional[int]) -> int:
    if max_retries is not None:
        return max(1, int(max_retries))
    if _runtime_max_retries is not None:
        return max(1, int(_runtime_max_retries))
    return max(1, int(DEFAULT_MAX_RETRIES))


def _should_retry_response(status_code: int, ra: Optional[float], rl_remaining: Optional[int]) -> bool:
    if status_code in (429, 500, 502, 503, 504):
        return True
    if status_code == 403 and (ra is not None or (rl_remaining is not None and rl_remaining <= 0)):
        # GitHub reports primary/secondary rate limits as 403
        return True
    return False


def _compute_wait_seconds(ra: Optional[float], rl_reset: Optional[float], backoff: float, jitter: float) -> float:
    if ra is not None:
        return min(ra + random.uniform(0, jitter), MAX_RATE_LIMIT_WAIT)
    if rl_reset:
        wait = max(0.0, rl_reset - time.time())
        return min(wait + random.uniform(0, jitter), MAX_RATE_LIMIT_WAIT)
    return min(backoff + random.uniform(0, jitter), MAX_RATE_LIMIT_WAIT)


def _parse_success_body(resp, url: str) -> Any:
    try:
        return resp.json()
    except ValueError as ex:
        raise UpstreamFetchError(f"Non-JSON response from {url}: {ex}", status=resp.status_code, url=url) from ex


def _error_detail(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (getattr(resp, 'text', '') or '')[:200]
    if isinstance(body, dict) and body.get('message'):
        return str(body['message'])
    return str(body)[:200]


def get_json(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_jitter: Optional[float] = None,
    max_backoff: Optional[float] = None,
    timeout: Optional[float] = None,
) -> Any:
    """Perform a GET and return the decoded JSON body.

    Retries transport errors, 5xx and rate-limit responses with exponential backoff.
    Raises UpstreamFetchError once attempts are exhausted or on a non-retryable status.
    """
    base, jitter, max_backoff_resolved = _resolve_backoff_params(backoff_base, backoff_jitter, max_backoff)
    attempts = _resolve_max_retries(max_retries)
    backoff = base
    last_error: Optional[UpstreamFetchError] = None

    for attempt in range(attempts):
        try:
            resp = requests.get(url, headers=headers or {}, params=params or {}, timeout=timeout or DEFAULT_TIMEOUT)
        except requests.RequestException as ex:
            last_error = UpstreamFetchError(f"GET {url} failed: {ex}", url=url)
            wait = min(backoff + random.uniform(0, jitter), max_backoff_resolved)
        else:
            status = resp.status_code
            if 200 <= status < 300:
                return _parse_success_body(resp, url)
            ra, rl_remaining, rl_reset = _parse_rate_headers(resp)
            last_error = UpstreamFetchError(f"GET {url} returned {status}: {_error_detail(resp)}", status=status, url=url)
            if not _should_retry_response(status, ra, rl_remaining):
                raise last_error
            wait = _compute_wait_seconds(ra, rl_reset, backoff, jitter)

        backoff = min(backoff * 2, max_backoff_resolved)
        if attempt + 1 < attempts:
            logger.warning("%s; retrying in %.1fs (attempt %d/%d)", last_error, wait, attempt + 1, attempts)
            time.sleep(wait)

    raise last_error


__all__ = ["configure_retry", "reset_retry", "get_json"]
