"""
Prediction point data model.

Each point is one geo-located model prediction with two uncertainty
metrics.  Raw feature properties are validated and coerced once, at the
ingestion boundary; everything downstream works with typed fields.

Example
-------
    point = parse_feature(feature, index=12)
    point.properties.variance_score   # float or None
    point.latlng                      # (lat, lon)
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from ..errors import MalformedInputError

# GLC2000 land-cover classes present in the exported predictions
LAND_COVER_CLASSES: Dict[int, str] = {
    2: "Broadleaf Deciduous Forest (Closed)",
    4: "Needleleaf Evergreen Forest",
    6: "Mixed Forest",
    11: "Evergreen Shrub Cover",
    12: "Deciduous Shrub Cover",
    13: "Herbaceous Cover",
    14: "Sparse Herb/Shrub",
    15: "Flooded Herb/Shrub",
    16: "Cultivated Areas",
    18: "Cropland Mosaic",
    20: "Water Bodies",
}

# canonical name → accepted keys, first match wins
_PROPERTY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "variance_score": ("varianceScore", "Variance_pred_scaled"),
    "similarity_score": ("similarityScore", "ncdd_embeddings"),
    "land_cover_class": ("landCoverClass", "glc_cl_smj"),
    "asset_key": ("assetKey", "filename"),
}
_KNOWN_KEYS = frozenset(k for keys in _PROPERTY_ALIASES.values() for k in keys)


@dataclass(frozen=True)
class PredictionProperties:
    """Typed view of a feature's properties mapping."""
    variance_score: Optional[float] = None
    similarity_score: Optional[float] = None
    land_cover_class: Optional[int] = None
    asset_key: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def land_cover_name(self) -> str:
        return land_cover_name(self.land_cover_class)


@dataclass(frozen=True)
class PredictionPoint:
    """One prediction record, read-only after ingestion."""
    id: int                               # index in the source feature list
    coordinates: Tuple[float, float]      # (lon, lat), WGS84 degrees
    properties: PredictionProperties = field(default_factory=PredictionProperties)

    @property
    def lon(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]

    @property
    def latlng(self) -> Tuple[float, float]:
        return (self.coordinates[1], self.coordinates[0])


def land_cover_name(code: Optional[int]) -> str:
    """Human name for a GLC2000 class code."""
    if code in LAND_COVER_CLASSES:
        return LAND_COVER_CLASSES[code]
    return f"Unknown ({code})"


def coordinate_label(lat: float, lng: float) -> str:
    """Fallback location label built from raw coordinates."""
    return f"Lat: {lat:.4f}, Lng: {lng:.4f}"


# ── Coercion helpers ──────────────────────────────────────────────────

def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _metric(value: Any) -> Optional[float]:
    """Numbers pass through; numeric strings are accepted, anything else is missing."""
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    return _finite_number(value)


def _land_cover(value: Any) -> Optional[int]:
    num = _metric(value)
    if num is None or not num.is_integer():
        return None
    return int(num)


def _pick(props: Mapping[str, Any], canonical: str) -> Any:
    for key in _PROPERTY_ALIASES[canonical]:
        if key in props and props[key] is not None:
            return props[key]
    return None


def parse_coordinates(geometry: Any) -> Tuple[float, float]:
    """Validate a GeoJSON Point geometry and return ``(lon, lat)``.

    Raises MalformedInputError when the geometry is not a point with
    exactly two finite numbers.
    """
    if not isinstance(geometry, Mapping):
        raise MalformedInputError("geometry is not an object")
    gtype = geometry.get("type")
    if gtype is not None and gtype != "Point":
        raise MalformedInputError(f"geometry type {gtype!r} is not a Point")
    coords = geometry.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        raise MalformedInputError("coordinates must be a 2-element pair")
    lon, lat = (_finite_number(c) for c in coords)
    if lon is None or lat is None:
        raise MalformedInputError("coordinates must be finite numbers")
    return (lon, lat)


def parse_properties(props: Any) -> PredictionProperties:
    if not isinstance(props, Mapping):
        raise MalformedInputError("properties is not an object")
    asset_key = _pick(props, "asset_key")
    return PredictionProperties(
        variance_score=_metric(_pick(props, "variance_score")),
        similarity_score=_metric(_pick(props, "similarity_score")),
        land_cover_class=_land_cover(_pick(props, "land_cover_class")),
        asset_key=str(asset_key) if asset_key is not None else "",
        extra={k: v for k, v in props.items() if k not in _KNOWN_KEYS},
    )


def parse_feature(feature: Any, index: int) -> PredictionPoint:
    """Parse one GeoJSON feature into a PredictionPoint."""
    if not isinstance(feature, Mapping):
        raise MalformedInputError("feature is not an object")
    return PredictionPoint(
        id=index,
        coordinates=parse_coordinates(feature.get("geometry")),
        properties=parse_properties(feature.get("properties")),
    )
