"""
Runtime settings for the reliability map.

Defaults live on the ``Settings`` dataclass.  Environment variables
override them, and ``gui_main`` applies command-line flags on top.

Environment
-----------
    RELMAP_DATA               feed path or URL
    RELMAP_IMAGE_ROOT         directory or base URL holding companion images
    RELMAP_GEOCODE_URL        reverse-geocode endpoint
    RELMAP_MARKER_STRIDE      render every Nth point (default 2)
    RELMAP_MARKER_ICON        "warning" or "circle"
    RELMAP_SPINNER_DELAY_MS   spinner debounce window (default 50)
    RELMAP_FOCUS_LAT_OFFSET   degrees to shift the view south on selection
    RELMAP_LOG_LEVEL          logging level name
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Callable, Dict, Mapping, Optional, Tuple

from .geo.markers import ICON_SHAPES

log = logging.getLogger(__name__)

DEFAULT_GEOCODE_URL = "https://api.bigdatacloud.net/data/reverse-geocode-client"

# CLI choices and settings validation share the icon factory's shapes
MARKER_SHAPES = ICON_SHAPES


@dataclass
class Settings:
    """All tunables in one place."""

    data_source: str = "data/reduced.geojson"
    image_root: str = "gcp-imgs"
    geocode_url: str = DEFAULT_GEOCODE_URL
    geocode_timeout_s: float = 10.0
    feed_timeout_s: float = 20.0

    marker_stride: int = 2
    marker_icon: str = "warning"

    fit_padding_px: int = 32
    fit_max_zoom: int = 10
    focus_zoom: int = 7
    focus_lat_offset_deg: float = 0.0

    spinner_delay_ms: int = 50

    initial_center: Tuple[float, float] = (39.8283, -98.5795)  # (lat, lon)
    initial_zoom: int = 5
    min_zoom: int = 2

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from defaults + ``RELMAP_*`` environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()
        for var, (name, cast) in _ENV_VARS.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                value = cast(raw)
            except ValueError:
                log.warning("Ignoring %s=%r (not a valid %s)", var, raw, cast.__name__)
                continue
            setattr(settings, name, value)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Clamp or reset values that would break rendering."""
        if self.marker_stride < 1:
            log.warning("marker_stride %d < 1, using 1", self.marker_stride)
            self.marker_stride = 1
        if self.marker_icon not in MARKER_SHAPES:
            log.warning("Unknown marker icon %r, using 'warning'", self.marker_icon)
            self.marker_icon = "warning"
        if self.spinner_delay_ms < 0:
            self.spinner_delay_ms = 0
        if self.fit_max_zoom < self.min_zoom:
            self.fit_max_zoom = self.min_zoom

    def as_dict(self) -> Dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_ENV_VARS: Dict[str, Tuple[str, Callable]] = {
    "RELMAP_DATA": ("data_source", str),
    "RELMAP_IMAGE_ROOT": ("image_root", str),
    "RELMAP_GEOCODE_URL": ("geocode_url", str),
    "RELMAP_MARKER_STRIDE": ("marker_stride", int),
    "RELMAP_MARKER_ICON": ("marker_icon", str),
    "RELMAP_SPINNER_DELAY_MS": ("spinner_delay_ms", int),
    "RELMAP_FOCUS_LAT_OFFSET": ("focus_lat_offset_deg", float),
    "RELMAP_LOG_LEVEL": ("log_level", str),
}
