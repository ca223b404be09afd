"""
Viewport controller: fit-to-data and focus-on-point commands.

Holds no pixels; it decides *when* to tell the renderer to move and with
what arguments.  The renderer is anything with ``fit_bounds`` and
``set_view`` (see ``MapRenderer``).
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from ..geo.feature_index import ViewportExtent

log = logging.getLogger(__name__)


class MapRenderer(Protocol):
    def fit_bounds(self, extent: ViewportExtent, padding_px: int, max_zoom: int) -> None: ...

    def set_view(self, center: Tuple[float, float], zoom: int) -> None: ...


class ViewportController:
    """Issues viewport commands to a renderer."""

    def __init__(
        self,
        renderer: MapRenderer,
        padding_px: int = 32,
        max_zoom: int = 10,
        focus_zoom: int = 7,
        focus_lat_offset_deg: float = 0.0,
    ):
        self._renderer = renderer
        self.padding_px = padding_px
        self.max_zoom = max_zoom
        self.focus_zoom = focus_zoom
        self.focus_lat_offset_deg = focus_lat_offset_deg
        self._last_extent: Optional[ViewportExtent] = None

    @property
    def last_extent(self) -> Optional[ViewportExtent]:
        return self._last_extent

    def fit_to(
        self,
        extent: Optional[ViewportExtent],
        padding: Optional[int] = None,
        max_zoom: Optional[int] = None,
        force: bool = False,
    ) -> bool:
        """Fit the view to *extent*.  Returns True if a command was issued.

        Repeating the last extent does nothing unless *force* is set.
        """
        if extent is None:
            return False
        if extent == self._last_extent and not force:
            return False
        self._last_extent = extent
        padding = self.padding_px if padding is None else padding
        max_zoom = self.max_zoom if max_zoom is None else max_zoom
        log.info(
            "Fit view to %.4f,%.4f to %.4f,%.4f (padding %d px, max zoom %d)",
            extent.south, extent.west, extent.north, extent.east, padding, max_zoom,
        )
        self._renderer.fit_bounds(extent, padding, max_zoom)
        return True

    def focus_on(self, coordinate: Tuple[float, float], zoom: Optional[int] = None) -> None:
        """Centre the view on a ``(lat, lon)`` coordinate."""
        lat, lon = coordinate
        zoom = self.focus_zoom if zoom is None else zoom
        center = (lat - self.focus_lat_offset_deg, lon)
        log.debug("Focus view on %.4f,%.4f at zoom %d", center[0], center[1], zoom)
        self._renderer.set_view(center, zoom)

    def reset(self) -> None:
        self._last_extent = None
