"""
Marker rendering policy.

Turns prediction points into renderer-agnostic marker descriptors:
position, icon (shape + reliability colour) and a click handler.  The
renderer only draws what it is given.

Usage
-----
    icons = IconFactory(shape="warning")
    markers = build_markers(index.points, icons, on_click=session.on_marker_click,
                            stride=2)
    map_widget.set_markers(markers)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

from .feature_index import subsample
from .prediction import PredictionPoint
from .reliability import marker_color

ICON_SHAPES = ("warning", "circle")


@dataclass(frozen=True)
class MarkerIcon:
    """Icon description; the renderer turns this into pixels."""
    shape: str
    color: str
    size: Tuple[int, int] = (32, 32)
    anchor: Tuple[int, int] = (16, 32)   # tip of the icon sits on the point


@dataclass(frozen=True)
class MarkerDescriptor:
    point_id: int
    position: Tuple[float, float]        # (lat, lon)
    icon: MarkerIcon
    on_click: Callable[[], None] = field(compare=False, repr=False)


class IconFactory:
    """Builds and caches marker icons for one rendering environment.

    Passed into marker building explicitly so there is no module-level
    icon handle to initialise.
    """

    def __init__(self, shape: str = "warning", size: int = 32):
        if shape not in ICON_SHAPES:
            raise ValueError(f"unknown marker shape {shape!r}")
        self.shape = shape
        self.size = size
        self._cache: Dict[str, MarkerIcon] = {}

    def icon_for(self, color: str) -> MarkerIcon:
        icon = self._cache.get(color)
        if icon is None:
            icon = MarkerIcon(
                shape=self.shape,
                color=color,
                size=(self.size, self.size),
                anchor=(self.size // 2, self.size),
            )
            self._cache[color] = icon
        return icon


def build_markers(
    points: Sequence[PredictionPoint],
    icon_factory: IconFactory,
    on_click: Callable[[PredictionPoint], None],
    stride: int = 1,
) -> List[MarkerDescriptor]:
    """Subsample *points* and build one marker per remaining point."""
    markers: List[MarkerDescriptor] = []
    for point in subsample(points, stride):
        props = point.properties
        color = marker_color(props.variance_score, props.similarity_score)
        markers.append(MarkerDescriptor(
            point_id=point.id,
            position=point.latlng,
            icon=icon_factory.icon_for(color),
            on_click=_bind(on_click, point),
        ))
    return markers


def _bind(on_click: Callable[[PredictionPoint], None], point: PredictionPoint) -> Callable[[], None]:
    def _handler() -> None:
        on_click(point)
    return _handler
