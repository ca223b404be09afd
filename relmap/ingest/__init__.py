"""HTTP access shared by the feed, geocode and image loaders."""
from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from .. import __version__

log = logging.getLogger(__name__)

USER_AGENT = f"relmap/{__version__}"

# 429: the free geocode endpoint rate-limits bursts of clicks
_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


def fetch_with_retry(
    url: str,
    *,
    params: Optional[dict] = None,
    timeout: float = 20.0,
    retries: int = 2,
    backoff: float = 1.0,
) -> requests.Response:
    """GET *url*, retrying rate limits, server errors and network failures.

    Any other error status raises HTTPError straight away.  Waits
    ``backoff * attempt`` seconds between attempts.
    """
    attempts = retries + 1
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            resp = requests.get(
                url, params=params, timeout=timeout,
                headers={"User-Agent": USER_AGENT},
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            last_exc = exc
            log.warning("Request to %s failed (%d/%d): %s", url[:80], attempt, attempts, exc)
        else:
            if resp.status_code not in _RETRY_STATUSES:
                resp.raise_for_status()
                return resp
            last_exc = requests.HTTPError(f"HTTP {resp.status_code}", response=resp)
            log.warning("HTTP %d from %s (%d/%d)", resp.status_code, url[:80], attempt, attempts)

        if attempt < attempts:
            time.sleep(backoff * attempt)

    raise last_exc or requests.ConnectionError(f"{url}: no response after {attempts} attempts")


def is_url(source: str) -> bool:
    """True for http(s) locations, False for filesystem paths."""
    return source.startswith(("http://", "https://"))
