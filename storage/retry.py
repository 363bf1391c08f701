"""
Rate-limit-aware HTTP POST helper for the GraphQL transport.
Only explicit rate-limit signals are retried; every other failure is raised to the caller at once.
"""

import os
import time
import random
import email.utils
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import requests

from errors import RemoteFetchError

logger = logging.getLogger(__name__)

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("LINEAR_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("LINEAR_BACKOFF_BASE", "0.5"))
DEFAULT_MAX_BACKOFF = float(os.getenv("LINEAR_MAX_BACKOFF", "60.0"))
DEFAULT_TIMEOUT = float(os.getenv("LINEAR_TIMEOUT", "30"))

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(max_retries: Optional[int] = None, backoff_base: Optional[float] = None, max_backoff: Optional[float] = None):
    """Configure retry/backoff defaults at runtime (e.g. from CLI or settings)."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def _parse_retry_after(raw_ra: Optional[str]) -> Optional[float]:
    if not raw_ra:
        return None
    try:
        return float(raw_ra)
    except ValueError:
        pass
    try:
        dt = email.utils.parsedate_to_datetime(raw_ra)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _safe_number(headers: Dict[str, Any], key: str) -> Optional[float]:
    try:
        val = headers.get(key)
        return float(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def _is_ratelimited_body(body: Any) -> bool:
    """Linear reports rate limiting as a GraphQL error with code RATELIMITED."""
    if not isinstance(body, dict):
        return False
    for err in body.get('errors') or []:
        if ((err or {}).get('extensions') or {}).get('code') == 'RATELIMITED':
            return True
    return False


def _wait_seconds(resp, backoff: float) -> float:
    headers = getattr(resp, 'headers', {}) or {}
    ra = _parse_retry_after(headers.get('Retry-After'))
    if ra is not None:
        return min(ra + random.uniform(0, backoff), 300.0)
    # Linear sends the reset instant as epoch milliseconds
    reset_ms = _safe_number(headers, 'X-RateLimit-Requests-Reset')
    if reset_ms:
        return min(max(0.0, reset_ms / 1000.0 - time.time()) + random.uniform(0, backoff), 300.0)
    return min(backoff + random.uniform(0, backoff), 300.0)


def _should_retry(resp, body: Any) -> bool:
    status = getattr(resp, 'status_code', 0)
    if status in (429, 503):
        return True
    remaining = _safe_number(getattr(resp, 'headers', {}) or {}, 'X-RateLimit-Requests-Remaining')
    if status != 200 and remaining is not None and remaining <= 0:
        return True
    return _is_ratelimited_body(body)


def _parse_body(resp) -> Any:
    try:
        return resp.json()
    except ValueError:
        return getattr(resp, 'text', None)


def post_with_retries(
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    max_backoff: Optional[float] = None,
) -> Dict[str, Any]:
    """POST a JSON payload and return {'response': body, 'status': code}.

    Raises RemoteFetchError on network errors and once rate-limit retries are exhausted.
    Non-200 responses that are not rate limits are returned to the caller for interpretation.
    """
    attempts = max_retries if max_retries is not None else (_runtime_max_retries if _runtime_max_retries is not None else DEFAULT_MAX_RETRIES)
    attempts = max(1, int(attempts))
    backoff = backoff_base if backoff_base is not None else (_runtime_backoff_base if _runtime_backoff_base is not None else DEFAULT_BACKOFF_BASE)
    cap = max_backoff if max_backoff is not None else (_runtime_max_backoff if _runtime_max_backoff is not None else DEFAULT_MAX_BACKOFF)
    timeout = timeout if timeout is not None else DEFAULT_TIMEOUT

    status = 0
    for attempt in range(attempts):
        try:
            resp = requests.post(url, headers=headers or {}, json=payload, timeout=timeout)
        except requests.RequestException as ex:
            raise RemoteFetchError(f"request to {url} failed: {ex}") from ex

        status = getattr(resp, 'status_code', 0)
        body = _parse_body(resp)
        if not _should_retry(resp, body):
            return {'response': body, 'status': status}

        if attempt + 1 < attempts:
            wait = min(_wait_seconds(resp, backoff), cap)
            logger.warning("Rate limited by %s (status %s); retrying in %.1fs", url, status, wait)
            time.sleep(wait)
            backoff = min(backoff * 2, cap)

    raise RemoteFetchError(f"rate limit retries exhausted for {url}", status=status)


__all__ = ["configure_retry", "post_with_retries", "DEFAULT_TIMEOUT"]
