"""Shared fixtures: sample features and deterministic async fakes."""
from __future__ import annotations

import heapq
import itertools
import os
from typing import Any, Callable, List, Optional

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from relmap.geo.prediction import PredictionPoint, PredictionProperties
from relmap.gui.selection import SelectionController, TaskOutcome
from relmap.ingest.geocode_client import GeocodeResult


def make_feature(lon=-100.43, lat=30.97, variance=0.05, similarity=-6.0, **extra):
    props = {"Variance_pred_scaled": variance, "ncdd_embeddings": similarity}
    props.update(extra)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": props,
    }


def make_collection(features):
    return {"type": "FeatureCollection", "features": list(features)}


def make_point(point_id=0, lon=-100.43, lat=30.97, variance=0.05, similarity=-6.0,
               asset_key="-100.43_30.97_tile.tif", land_cover=13):
    return PredictionPoint(
        id=point_id,
        coordinates=(lon, lat),
        properties=PredictionProperties(
            variance_score=variance,
            similarity_score=similarity,
            land_cover_class=land_cover,
            asset_key=asset_key,
        ),
    )


# ── Virtual clock ─────────────────────────────────────────────────────

class FakeTimerHandle:
    def __init__(self):
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Single-shot timers on a virtual millisecond clock."""

    def __init__(self):
        self.now = 0
        self._queue: List = []
        self._seq = itertools.count()
        self.handles: List[FakeTimerHandle] = []

    def single_shot(self, delay_ms: int, callback: Callable[[], None]) -> FakeTimerHandle:
        handle = FakeTimerHandle()
        self.handles.append(handle)
        heapq.heappush(self._queue, (self.now + delay_ms, next(self._seq), callback, handle))
        return handle

    def advance_to(self, t: int) -> None:
        while self._queue and self._queue[0][0] <= t:
            due, _, callback, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = due
            handle.fired = True
            callback()
        self.now = max(self.now, t)

    def advance(self, ms: int) -> None:
        self.advance_to(self.now + ms)


# ── Manual task runner ────────────────────────────────────────────────

class FakeTask:
    def __init__(self, name: str, fn: Callable[[], Any], callback: Callable[[TaskOutcome], None]):
        self.name = name
        self.fn = fn
        self.callback = callback


class FakeRunner:
    """Holds submitted tasks until the test completes them, in any order."""

    def __init__(self):
        self.pending: List[FakeTask] = []
        self.submitted: List[str] = []

    def submit(self, fn, callback, name="task") -> None:
        self.submitted.append(name)
        self.pending.append(FakeTask(name, fn, callback))

    def _take(self, prefix: str) -> FakeTask:
        for i, task in enumerate(self.pending):
            if task.name.startswith(prefix):
                return self.pending.pop(i)
        raise AssertionError(f"no pending task starting with {prefix!r}: "
                             f"{[t.name for t in self.pending]}")

    def complete(self, prefix: str) -> None:
        task = self._take(prefix)
        try:
            outcome = TaskOutcome(result=task.fn())
        except Exception as exc:
            outcome = TaskOutcome(error=exc)
        task.callback(outcome)

    def fail(self, prefix: str, error: Optional[BaseException] = None) -> None:
        task = self._take(prefix)
        task.callback(TaskOutcome(error=error or RuntimeError("boom")))

    def complete_all(self) -> None:
        while self.pending:
            self.complete(self.pending[0].name)


class ImmediateRunner:
    """Runs tasks synchronously on submit."""

    def submit(self, fn, callback, name="task") -> None:
        try:
            outcome = TaskOutcome(result=fn())
        except Exception as exc:
            outcome = TaskOutcome(error=exc)
        callback(outcome)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def geocoder():
    def _lookup(lat, lon):
        return GeocodeResult(city="Sonora", subdivision="Texas", country_code="US")
    return _lookup


@pytest.fixture
def controller(geocoder, runner, timers):
    return SelectionController(
        geocoder=geocoder,
        image_loader=lambda path: b"image:" + path.encode(),
        asset_resolver=lambda p: (f"{p.id}_predicted_mask.png", f"{p.id}_probabilities.png"),
        runner=runner,
        timers=timers,
        spinner_delay_ms=50,
    )


@pytest.fixture
def history(controller):
    """Every state the controller publishes, in order."""
    states = []
    controller.subscribe(states.append)
    return states
