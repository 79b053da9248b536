"""HTTP transport for remote repositories."""

from __future__ import annotations

import logging
import time
from typing import Dict, Optional

import requests

from depresolver.config.schema import get_resolver_config
from depresolver.errors import TRANSPORT_ERRORS

logger = logging.getLogger("depresolver.dependency.http")

RETRY_BACKOFF_SECONDS = 0.5


def http_get(url: str, headers: Optional[Dict[str, str]] = None) -> Optional[requests.Response]:
    """GET ``url`` with the configured timeout, retrying transient failures.

    Connection errors, timeouts and 5xx responses are retried
    ``config.http.retries`` times. Intermediate caches are bypassed.

    Args:
        url: Absolute URL.
        headers: Extra request headers.

    Returns:
        The final response (any status), or None when no response arrived.
    """
    config = get_resolver_config().http
    request_headers = {
        "User-Agent": config.user_agent,
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }
    if headers:
        request_headers.update(headers)

    attempts = config.retries + 1
    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            logger.debug("GET %s (attempt %d/%d)", url, attempt + 1, attempts)
            response = requests.get(url, timeout=config.timeout, headers=request_headers)
        except TRANSPORT_ERRORS as exc:
            logger.debug("GET %s failed: %s", url, exc)
            if last_attempt:
                return None
            time.sleep(RETRY_BACKOFF_SECONDS * (attempt + 1))
            continue
        except requests.RequestException as exc:
            logger.debug("GET %s failed permanently: %s", url, exc)
            return None

        if response.status_code >= 500 and not last_attempt:
            logger.debug("GET %s returned %d, retrying", url, response.status_code)
            time.sleep(RETRY_BACKOFF_SECONDS * (attempt + 1))
            continue
        return response
    return None


__all__ = ["http_get"]
