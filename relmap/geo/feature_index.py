"""
Feature index: the parsed, validated prediction point collection.

The index is built once from the raw feed and is read-only afterwards.
Invalid features are dropped one at a time; only a malformed top-level
structure empties the whole index.

Usage
-----
    index = FeatureIndex(raw_geojson)
    print(f"{len(index)} points ({index.dropped} dropped)")
    visible = index.subsample(stride=2)
    extent = extent_of(visible)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from shapely.geometry import MultiPoint

from ..errors import MalformedInputError
from .prediction import PredictionPoint, parse_feature

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewportExtent:
    """Geographic bounding box in WGS84 degrees."""
    south: float
    west: float
    north: float
    east: float

    @property
    def south_west(self) -> Tuple[float, float]:
        return (self.south, self.west)

    @property
    def north_east(self) -> Tuple[float, float]:
        return (self.north, self.east)

    @property
    def center(self) -> Tuple[float, float]:
        """(lat, lon) centre of the box."""
        return ((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)

    @property
    def is_point(self) -> bool:
        return self.south == self.north and self.west == self.east


def _parse_collection(raw: Any) -> Tuple[List[PredictionPoint], int]:
    if not isinstance(raw, Mapping):
        raise MalformedInputError("feed is not an object")
    ftype = raw.get("type")
    if ftype is not None and ftype != "FeatureCollection":
        raise MalformedInputError(f"feed type {ftype!r} is not a FeatureCollection")
    features = raw.get("features")
    if not isinstance(features, list):
        raise MalformedInputError("feed has no feature list")

    points: List[PredictionPoint] = []
    dropped = 0
    for idx, feat in enumerate(features):
        try:
            points.append(parse_feature(feat, idx))
        except MalformedInputError as exc:
            dropped += 1
            log.debug("Dropping feature %d: %s", idx, exc)
    return points, dropped


def ingest(raw: Any) -> List[PredictionPoint]:
    """Parse a raw FeatureCollection into valid prediction points.

    Malformed features are skipped.  A malformed collection yields an
    empty list.
    """
    return FeatureIndex(raw).points_list()


def subsample(points: Sequence[PredictionPoint], stride: int) -> List[PredictionPoint]:
    """Keep every *stride*-th point by original feature index."""
    if stride < 1:
        raise ValueError(f"stride must be >= 1, got {stride}")
    if stride == 1:
        return list(points)
    return [p for p in points if p.id % stride == 0]


def extent_of(points: Iterable[PredictionPoint]) -> Optional[ViewportExtent]:
    """Bounding box of *points*, or None for an empty set."""
    coords = [p.coordinates for p in points]
    if not coords:
        return None
    min_lon, min_lat, max_lon, max_lat = MultiPoint(coords).bounds
    return ViewportExtent(south=min_lat, west=min_lon, north=max_lat, east=max_lon)


class FeatureIndex:
    """Immutable collection of validated prediction points."""

    def __init__(self, raw: Any = None):
        self._points: Tuple[PredictionPoint, ...] = ()
        self._by_id: Dict[int, PredictionPoint] = {}
        self.dropped = 0

        if raw is None:
            return
        try:
            points, dropped = _parse_collection(raw)
        except MalformedInputError as exc:
            log.warning("Prediction feed rejected, map will be empty: %s", exc)
            return

        self._points = tuple(points)
        self._by_id = {p.id: p for p in points}
        self.dropped = dropped
        log.info(
            "Feature index: %d points ingested, %d malformed features dropped",
            len(points), dropped,
        )

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PredictionPoint]:
        return iter(self._points)

    def __bool__(self) -> bool:
        return bool(self._points)

    @property
    def points(self) -> Tuple[PredictionPoint, ...]:
        return self._points

    def points_list(self) -> List[PredictionPoint]:
        return list(self._points)

    def get(self, point_id: int) -> Optional[PredictionPoint]:
        return self._by_id.get(point_id)

    def where(self, predicate: Callable[[PredictionPoint], bool]) -> List[PredictionPoint]:
        return [p for p in self._points if predicate(p)]

    def subsample(self, stride: int) -> List[PredictionPoint]:
        return subsample(self._points, stride)

    def extent(self) -> Optional[ViewportExtent]:
        return extent_of(self._points)
