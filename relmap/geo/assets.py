"""
Companion image assets for prediction points.

Every point has two images next to the prediction export:

  - ``{stem}_predicted_mask.png`` : the predicted segmentation mask
  - ``{stem}_probabilities.png``  : the per-pixel class probabilities

``stem`` is the first two underscore-separated parts of the point's
``assetKey`` (the export names files ``{lon}_{lat}_...``).  Points without
an asset key fall back to ``{lon:.4f}_{lat:.4f}``.

A missing image is a normal outcome: ``load_image`` raises
AssetMissingError and the detail panel hides that slot.

Usage
-----
    resolver = AssetResolver("gcp-imgs")
    primary, secondary = resolver.paths_for(point)
    data = load_image(primary)
"""
from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Tuple

import requests
from PIL import Image, UnidentifiedImageError

from ..errors import AssetMissingError
from ..ingest import fetch_with_retry, is_url
from .prediction import PredictionPoint

log = logging.getLogger(__name__)

PRIMARY_SUFFIX = "_predicted_mask.png"
SECONDARY_SUFFIX = "_probabilities.png"


def asset_stem(point: PredictionPoint) -> str:
    """Filename stem shared by a point's two images."""
    key = point.properties.asset_key
    if key:
        parts = key.split("_")
        return "_".join(parts[:2])
    return f"{point.lon:.4f}_{point.lat:.4f}"


class AssetResolver:
    """Maps points to image locations under a directory or base URL."""

    def __init__(self, root: str):
        self.root = root.rstrip("/") if is_url(root) else root

    def _join(self, name: str) -> str:
        if is_url(self.root):
            return f"{self.root}/{name}"
        return str(Path(self.root) / name)

    def paths_for(self, point: PredictionPoint) -> Tuple[str, str]:
        stem = asset_stem(point)
        return (self._join(stem + PRIMARY_SUFFIX), self._join(stem + SECONDARY_SUFFIX))

    __call__ = paths_for


def load_image(location: str, timeout: float = 10.0) -> bytes:
    """Read an image from disk or HTTP and check that it decodes.

    Blocking; run it off the UI thread.  Raises AssetMissingError for
    any absent, unreachable or undecodable image.
    """
    if is_url(location):
        try:
            data = fetch_with_retry(location, timeout=timeout, retries=0).content
        except requests.RequestException as exc:
            raise AssetMissingError(location, f"download failed: {exc}") from exc
    else:
        path = Path(location)
        if not path.is_file():
            raise AssetMissingError(location)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise AssetMissingError(location, str(exc)) from exc

    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise AssetMissingError(location, f"not a valid image: {exc}") from exc

    log.debug("Loaded image %s (%d bytes)", location, len(data))
    return data
