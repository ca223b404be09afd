"""
Reliability classification for prediction points.

Two independent metric axes feed the classification:

  - Variance (model uncertainty):     domain [0.0, 0.264], threshold 0.1
  - Similarity (distance to training): domain [-8.22, -1.87], threshold -5.25

On both axes the lower endpoint of the domain is the most reliable value,
so a larger raw value always means a lower reliability score.

Everything here is a pure function of the metric values.  A missing
metric (``None``) classifies as unknown: score 0 and a neutral colour.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .prediction import PredictionProperties

# ── Colours ───────────────────────────────────────────────────────────

GREEN = "#43a047"
AMBER = "#ff9800"
RED = "#e53935"
NEUTRAL = "#9e9e9e"


@dataclass(frozen=True)
class MetricAxis:
    """Closed domain plus unreliability thresholds for one metric."""
    name: str
    label: str
    lo: float              # best value
    hi: float              # worst value
    threshold: float       # above ⇒ unreliable
    extreme: float         # above ⇒ extremely unreliable
    bands: Tuple[float, float]  # (amber above, red above)


VARIANCE = MetricAxis(
    name="Variance_pred_scaled", label="Model Reliability",
    lo=0.0, hi=0.264, threshold=0.1, extreme=0.45, bands=(0.3, 0.45),
)
SIMILARITY = MetricAxis(
    name="ncdd_embeddings", label="Data Reliability",
    lo=-8.22, hi=-1.87, threshold=-5.25, extreme=-1.87, bands=(-5.25, -1.87),
)


@dataclass(frozen=True)
class Tag:
    """Short qualitative label shown as a chip in the detail panel."""
    label: str
    color: str


RELIABLE = Tag("Reliable prediction", GREEN)
VERY_UNRELIABLE = Tag("Very unreliable", RED)
TOO_MUCH_VARIANCE = Tag("Too much variance", AMBER)
NOT_ENOUGH_DATA = Tag("Not enough similar data", AMBER)
EXTREME_MODEL = Tag("Extremely unreliable model", RED)
EXTREME_DATA = Tag("Extremely unreliable data", RED)
UNKNOWN = Tag("Unknown reliability", NEUTRAL)

# Marker colour key shown on the map, most severe first
LEGEND: Tuple[Tag, ...] = (
    Tag(f"{VERY_UNRELIABLE.label} (both metrics)", VERY_UNRELIABLE.color),
    Tag(f"{TOO_MUCH_VARIANCE.label} (model)", TOO_MUCH_VARIANCE.color),
    Tag(f"{NOT_ENOUGH_DATA.label} (data)", NOT_ENOUGH_DATA.color),
    RELIABLE,
    UNKNOWN,
)


@dataclass(frozen=True)
class ReliabilityAssessment:
    """Derived view of one point's properties; never stored."""
    variance_reliability: float
    similarity_reliability: float
    tags: Tuple[Tag, ...]
    marker_color: str

    @property
    def labels(self) -> List[str]:
        return [t.label for t in self.tags]


# ── Scores ────────────────────────────────────────────────────────────

def reliability_score(value: Optional[float], lo: float, hi: float) -> float:
    """Normalise *value* into [0, 1] where *lo* maps to 1 and *hi* to 0.

    A missing or NaN value scores 0.
    """
    if hi == lo:
        raise ValueError("reliability domain must have non-zero width")
    if value is None or math.isnan(value):
        return 0.0
    score = 1.0 - (value - lo) / (hi - lo)
    return max(0.0, min(1.0, score))


def variance_reliability(variance: Optional[float]) -> float:
    return reliability_score(variance, VARIANCE.lo, VARIANCE.hi)


def similarity_reliability(similarity: Optional[float]) -> float:
    return reliability_score(similarity, SIMILARITY.lo, SIMILARITY.hi)


def reliability_bar_percent(score: float) -> int:
    """Bar width (0-100) for a reliability score."""
    return max(0, min(100, round(score * 100)))


def axis_range_text(axis: MetricAxis) -> str:
    return f"{axis.lo} (best) to {axis.hi} (worst)"


# ── Colours ───────────────────────────────────────────────────────────

def score_color(score: float) -> str:
    """Colour for a reliability score bar."""
    if score > 0.7:
        return GREEN
    if score > 0.4:
        return AMBER
    return RED


def _band_color(value: Optional[float], axis: MetricAxis) -> str:
    if value is None:
        return NEUTRAL
    amber_above, red_above = axis.bands
    if value > red_above:
        return RED
    if value > amber_above:
        return AMBER
    return GREEN


def variance_band_color(variance: Optional[float]) -> str:
    return _band_color(variance, VARIANCE)


def similarity_band_color(similarity: Optional[float]) -> str:
    return _band_color(similarity, SIMILARITY)


def marker_color(variance: Optional[float], similarity: Optional[float]) -> str:
    """Combined marker colour: red if both axes are over threshold,
    amber if exactly one is, green otherwise."""
    if variance is None or similarity is None:
        return NEUTRAL
    bad_variance = variance > VARIANCE.threshold
    bad_similarity = similarity > SIMILARITY.threshold
    if bad_variance and bad_similarity:
        return RED
    if bad_variance or bad_similarity:
        return AMBER
    return GREEN


# ── Tags ──────────────────────────────────────────────────────────────

def _unique(tags: List[Tag]) -> Tuple[Tag, ...]:
    seen: Dict[str, Tag] = {}
    for tag in tags:
        seen.setdefault(tag.label, tag)
    return tuple(seen.values())


def reliability_tags(
    variance: Optional[float],
    similarity: Optional[float],
) -> Tuple[Tag, ...]:
    """Ordered, de-duplicated qualitative tags for a pair of metrics.

    "Very unreliable" replaces the two per-axis labels when both axes are
    over threshold.  The extreme-threshold labels are added regardless.
    """
    tags: List[Tag] = []
    bad_variance = variance is not None and variance > VARIANCE.threshold
    bad_similarity = similarity is not None and similarity > SIMILARITY.threshold

    if variance is None or similarity is None:
        tags.append(UNKNOWN)
    elif not bad_variance and not bad_similarity:
        tags.append(RELIABLE)

    if bad_variance and bad_similarity:
        tags.append(VERY_UNRELIABLE)
    else:
        if bad_variance:
            tags.append(TOO_MUCH_VARIANCE)
        if bad_similarity:
            tags.append(NOT_ENOUGH_DATA)

    if variance is not None and variance > VARIANCE.extreme:
        tags.append(EXTREME_MODEL)
    if similarity is not None and similarity > SIMILARITY.extreme:
        tags.append(EXTREME_DATA)

    return _unique(tags)


def assess(properties: PredictionProperties) -> ReliabilityAssessment:
    v = properties.variance_score
    s = properties.similarity_score
    return ReliabilityAssessment(
        variance_reliability=variance_reliability(v),
        similarity_reliability=similarity_reliability(s),
        tags=reliability_tags(v, s),
        marker_color=marker_color(v, s),
    )
