"""Error types raised inside the reliability map.

None of these are fatal to a session: callers catch them at the smallest
scope and degrade to a visible fallback.
"""
from __future__ import annotations


class RelmapError(Exception):
    """Base class for all reliability map errors."""


class MalformedInputError(RelmapError, ValueError):
    """A feed or a single feature failed structural validation."""


class EnrichmentError(RelmapError):
    """Reverse-geocode lookup failed or timed out."""


class AssetMissingError(RelmapError):
    """A companion image is absent or could not be decoded."""

    def __init__(self, path: str, reason: str = "missing"):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
