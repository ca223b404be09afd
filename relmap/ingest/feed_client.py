"""
Prediction feed loader.

The feed is a GeoJSON FeatureCollection of Point features, exported by the
prediction pipeline and fetched once at start-up.  It can be a local file
or an http(s) URL.

Usage
-----
    from relmap.ingest.feed_client import load_feed
    index = load_feed("data/reduced.geojson")
    print(len(index), "points")
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import requests

from ..geo.feature_index import FeatureIndex
from . import fetch_with_retry, is_url

log = logging.getLogger(__name__)


def fetch_feed(source: str, timeout: float = 20.0) -> Optional[Any]:
    """Return the decoded JSON document at *source*, or None on failure."""
    try:
        if is_url(source):
            resp = fetch_with_retry(source, timeout=timeout, retries=2)
            return resp.json()
        with Path(source).open("r", encoding="utf-8") as f:
            return json.load(f)
    except (requests.RequestException, OSError, ValueError) as exc:
        log.warning("Prediction feed %s could not be loaded: %s", source, exc)
        return None


def load_feed(source: str, timeout: float = 20.0) -> FeatureIndex:
    """Fetch and index the prediction feed.  Failures give an empty index."""
    raw = fetch_feed(source, timeout=timeout)
    index = FeatureIndex(raw)
    log.info("Feed %s: %d points", source, len(index))
    return index
