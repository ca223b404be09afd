"""
Web Mercator projection helpers for the map scene.

The map scene is laid out in EPSG:3857 metres so marker positions and
zoom levels line up with the usual slippy-map convention: at zoom ``z``
the whole world is ``256 * 2**z`` pixels wide.
"""
from __future__ import annotations

import math
from typing import Tuple

import pyproj

from .feature_index import ViewportExtent

WGS84 = pyproj.CRS("EPSG:4326")
WEB_MERCATOR = pyproj.CRS("EPSG:3857")

_to_metric = pyproj.Transformer.from_crs(WGS84, WEB_MERCATOR, always_xy=True)
_to_lonlat = pyproj.Transformer.from_crs(WEB_MERCATOR, WGS84, always_xy=True)

EARTH_CIRCUMFERENCE_M = 2 * math.pi * 6378137.0
TILE_PX = 256
MAX_LAT = 85.05112878  # Web Mercator is undefined at the poles


def to_metres(lat: float, lon: float) -> Tuple[float, float]:
    """(lat, lon) degrees → (x, y) Web Mercator metres."""
    lat = max(-MAX_LAT, min(MAX_LAT, lat))
    return _to_metric.transform(lon, lat)


def to_latlng(x: float, y: float) -> Tuple[float, float]:
    """(x, y) Web Mercator metres → (lat, lon) degrees."""
    lon, lat = _to_lonlat.transform(x, y)
    return (lat, lon)


def extent_to_metres(extent: ViewportExtent) -> Tuple[float, float, float, float]:
    """Extent → (minx, miny, maxx, maxy) in metres."""
    x0, y0 = to_metres(extent.south, extent.west)
    x1, y1 = to_metres(extent.north, extent.east)
    return (x0, y0, x1, y1)


def pixels_per_metre(zoom: float) -> float:
    return TILE_PX * (2.0 ** zoom) / EARTH_CIRCUMFERENCE_M


def zoom_for_pixels_per_metre(ppm: float) -> float:
    if ppm <= 0:
        raise ValueError("pixels per metre must be positive")
    return math.log2(ppm * EARTH_CIRCUMFERENCE_M / TILE_PX)


def fit_zoom(
    extent: ViewportExtent,
    view_px: Tuple[int, int],
    padding_px: int,
    max_zoom: float,
    min_zoom: float = 0.0,
) -> float:
    """Largest zoom at which *extent* fits in *view_px* minus padding."""
    x0, y0, x1, y1 = extent_to_metres(extent)
    width_m, height_m = x1 - x0, y1 - y0
    avail_w = max(1, view_px[0] - 2 * padding_px)
    avail_h = max(1, view_px[1] - 2 * padding_px)
    if width_m <= 0 and height_m <= 0:
        return max_zoom
    candidates = []
    if width_m > 0:
        candidates.append(zoom_for_pixels_per_metre(avail_w / width_m))
    if height_m > 0:
        candidates.append(zoom_for_pixels_per_metre(avail_h / height_m))
    return max(min_zoom, min(max_zoom, min(candidates)))
