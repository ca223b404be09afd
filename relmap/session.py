"""
Map session: wires the feature index, markers, viewport and selection.

Data flow
─────────
  raw feed
    → FeatureIndex (validate, drop malformed features)
    → build_markers (subsample, reliability colour, icon)
    → renderer.set_markers + viewport fit (once per extent change)
  marker click
    → SelectionController.select (geocode + image loads + spinner timer)
    → ViewportController.focus_on
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence

from .config import Settings
from .geo.feature_index import FeatureIndex
from .geo.markers import IconFactory, MarkerDescriptor, build_markers
from .geo.prediction import PredictionPoint
from .geo.reliability import ReliabilityAssessment, assess
from .gui.selection import SelectionController, SelectionState
from .gui.viewport import MapRenderer, ViewportController

log = logging.getLogger(__name__)


class MarkerRenderer(MapRenderer, Protocol):
    def set_markers(self, markers: Sequence[MarkerDescriptor]) -> None: ...


class MapSession:
    """One interactive session over one prediction feed."""

    def __init__(
        self,
        settings: Settings,
        renderer: MarkerRenderer,
        selection: SelectionController,
        viewport: Optional[ViewportController] = None,
        icon_factory: Optional[IconFactory] = None,
    ):
        self.settings = settings
        self._renderer = renderer
        self.selection = selection
        self.viewport = viewport or ViewportController(
            renderer,
            padding_px=settings.fit_padding_px,
            max_zoom=settings.fit_max_zoom,
            focus_zoom=settings.focus_zoom,
            focus_lat_offset_deg=settings.focus_lat_offset_deg,
        )
        self.icon_factory = icon_factory or IconFactory(shape=settings.marker_icon)
        self.index = FeatureIndex()
        self.markers: List[MarkerDescriptor] = []

    def load(self, raw: Any) -> FeatureIndex:
        """Index a raw feed document and render it."""
        return self.load_index(FeatureIndex(raw))

    def load_index(self, index: FeatureIndex) -> FeatureIndex:
        self.selection.dismiss()
        self.index = index
        self.markers = build_markers(
            index.points,
            self.icon_factory,
            on_click=self.on_marker_click,
            stride=self.settings.marker_stride,
        )
        log.info("Rendering %d markers from %d points (stride %d)",
                 len(self.markers), len(index), self.settings.marker_stride)
        self._renderer.set_markers(self.markers)
        self.viewport.fit_to(index.extent())
        return index

    def on_marker_click(self, point: PredictionPoint) -> None:
        self.selection.select(point)
        self.viewport.focus_on(point.latlng)

    def select_by_id(self, point_id: int) -> bool:
        point = self.index.get(point_id)
        if point is None:
            log.warning("No point with id %d", point_id)
            return False
        self.on_marker_click(point)
        return True

    def dismiss(self) -> None:
        self.selection.dismiss()

    @property
    def state(self) -> SelectionState:
        return self.selection.state

    @staticmethod
    def assessment_for(point: PredictionPoint) -> ReliabilityAssessment:
        return assess(point.properties)
