"""
Selection controller: state machine for the inspected prediction point.

States
------
    IDLE       nothing selected
    SELECTING  point selected; reverse geocode + two image loads in flight
    READY      both images settled (loaded or failed)

    select(p)   any state → SELECTING (fresh state, new token)
    dismiss()   any state → IDLE
    both images settled    SELECTING → READY

Every selection gets a new integer token.  Asynchronous work is tagged
with the token it was issued under, and a completion whose token is no
longer current is dropped.  In-flight requests are never aborted, only
ignored when they arrive.

Spinner debounce
----------------
Entering SELECTING arms a single-shot timer (50 ms by default).  If the
selection is still not READY when it fires, ``spinner_visible`` turns on.
Reaching READY first cancels the timer, so fast loads never flash a
spinner.  A new selection cancels the previous timer before arming its own.

The controller is toolkit-free: work is handed to an injected
``TaskRunner`` and timers come from an injected ``TimerFactory``.  The
Qt implementations live in ``qt_runtime``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol, Tuple

from ..geo.prediction import PredictionPoint, coordinate_label

log = logging.getLogger(__name__)

PRIMARY = "primary"
SECONDARY = "secondary"
IMAGE_SLOTS = (PRIMARY, SECONDARY)

DEFAULT_SPINNER_DELAY_MS = 50


class Phase(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    READY = "ready"


class SlotStatus(Enum):
    PENDING = "pending"
    LOADED = "loaded"
    HIDDEN = "hidden"


# ── Async plumbing ────────────────────────────────────────────────────

@dataclass(frozen=True)
class TaskOutcome:
    """Result of a background task: either ``result`` or ``error``."""
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Completion:
    """A task outcome tagged with the selection token it belongs to."""
    token: int
    outcome: TaskOutcome


class TaskRunner(Protocol):
    def submit(
        self,
        fn: Callable[[], Any],
        callback: Callable[[TaskOutcome], None],
        name: str = "task",
    ) -> None:
        """Run *fn* off the UI thread; deliver its outcome on the UI thread."""


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerFactory(Protocol):
    def single_shot(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


# ── State ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ImageLoadFlags:
    primary: bool = False
    secondary: bool = False

    @property
    def both(self) -> bool:
        return self.primary and self.secondary

    def settled(self, which: str) -> "ImageLoadFlags":
        return replace(self, **{which: True})


@dataclass(frozen=True)
class ImageSlot:
    path: str = ""
    status: SlotStatus = SlotStatus.PENDING
    data: Optional[bytes] = field(default=None, repr=False)

    @property
    def visible(self) -> bool:
        return self.status is not SlotStatus.HIDDEN


@dataclass(frozen=True)
class SelectionState:
    """Snapshot of the selection.  Transitions replace it, never edit it."""
    phase: Phase = Phase.IDLE
    token: int = 0
    selected_point: Optional[PredictionPoint] = None
    location_label: str = ""
    image_load_flags: ImageLoadFlags = field(default_factory=ImageLoadFlags)
    primary_image: ImageSlot = field(default_factory=ImageSlot)
    secondary_image: ImageSlot = field(default_factory=ImageSlot)
    spinner_visible: bool = False

    @property
    def display_label(self) -> str:
        """Location label, or the coordinate fallback while it is pending."""
        if self.location_label:
            return self.location_label
        if self.selected_point is None:
            return ""
        return coordinate_label(self.selected_point.lat, self.selected_point.lon)

    def image(self, which: str) -> ImageSlot:
        return self.primary_image if which == PRIMARY else self.secondary_image


StateListener = Callable[[SelectionState], None]


class SelectionController:
    """Owns the SelectionState and its transitions."""

    def __init__(
        self,
        geocoder: Callable[[float, float], Any],
        image_loader: Callable[[str], bytes],
        asset_resolver: Callable[[PredictionPoint], Tuple[str, str]],
        runner: TaskRunner,
        timers: TimerFactory,
        spinner_delay_ms: int = DEFAULT_SPINNER_DELAY_MS,
    ):
        self._geocoder = geocoder
        self._image_loader = image_loader
        self._asset_resolver = asset_resolver
        self._runner = runner
        self._timers = timers
        self.spinner_delay_ms = spinner_delay_ms

        self._token = 0
        self._state = SelectionState()
        self._spinner_timer: Optional[TimerHandle] = None
        self._listeners: List[StateListener] = []

    # ── Observers ──────────────────────────────────────────────────────

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def token(self) -> int:
        return self._token

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, state: SelectionState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # ── Transitions ────────────────────────────────────────────────────

    def select(self, point: PredictionPoint) -> None:
        """Start inspecting *point*, abandoning any previous selection."""
        self._cancel_spinner()
        self._token += 1
        token = self._token
        primary_path, secondary_path = self._asset_resolver(point)

        log.info("Selected point %d at %.4f,%.4f (token %d)",
                 point.id, point.lat, point.lon, token)
        self._set_state(SelectionState(
            phase=Phase.SELECTING,
            token=token,
            selected_point=point,
            primary_image=ImageSlot(path=primary_path),
            secondary_image=ImageSlot(path=secondary_path),
        ))

        self._spinner_timer = self._timers.single_shot(
            self.spinner_delay_ms, lambda: self._on_spinner_timeout(token),
        )

        self._runner.submit(
            lambda: self._geocoder(point.lat, point.lon),
            lambda outcome: self.geocode_settled(Completion(token, outcome)),
            name=f"geocode-{point.id}",
        )
        for which, path in ((PRIMARY, primary_path), (SECONDARY, secondary_path)):
            self._submit_image(token, which, path)

    def _submit_image(self, token: int, which: str, path: str) -> None:
        def _done(outcome: TaskOutcome) -> None:
            self.image_settled(which, outcome.ok, data=outcome.result, token=token)

        self._runner.submit(
            lambda: self._image_loader(path), _done, name=f"image-{which}",
        )

    def geocode_settled(self, completion: Completion) -> None:
        """Apply a reverse-geocode result, or fall back to coordinates."""
        if not self._is_current(completion.token):
            log.debug("Discarding stale geocode result (token %d, current %d)",
                      completion.token, self._token)
            return
        point = self._state.selected_point
        outcome = completion.outcome
        label = ""
        if outcome.ok:
            label = getattr(outcome.result, "label", "") or ""
        else:
            log.info("Location lookup for point %d failed: %s", point.id, outcome.error)
        if not label:
            label = coordinate_label(point.lat, point.lon)
        self._set_state(replace(self._state, location_label=label))

    def image_settled(
        self,
        which: str,
        success: bool,
        data: Optional[bytes] = None,
        token: Optional[int] = None,
    ) -> None:
        """Mark one image as settled.  Failure hides the slot but still counts."""
        if which not in IMAGE_SLOTS:
            raise ValueError(f"unknown image slot {which!r}")
        if token is None:
            token = self._token
        if not self._is_current(token):
            log.debug("Discarding stale %s image result (token %d, current %d)",
                      which, token, self._token)
            return

        state = self._state
        if getattr(state.image_load_flags, which):
            return

        slot = state.image(which)
        if success:
            slot = replace(slot, status=SlotStatus.LOADED, data=data)
        else:
            log.debug("Image %s unavailable, hiding %s slot", slot.path, which)
            slot = replace(slot, status=SlotStatus.HIDDEN, data=None)

        flags = state.image_load_flags.settled(which)
        state = replace(state, image_load_flags=flags, **{f"{which}_image": slot})
        if flags.both:
            self._cancel_spinner()
            state = replace(state, phase=Phase.READY, spinner_visible=False)
            log.debug("Selection %d ready", token)
        self._set_state(state)

    def dismiss(self) -> None:
        """Close the detail view and ignore any outstanding work."""
        self._cancel_spinner()
        self._token += 1
        if self._state.phase is not Phase.IDLE:
            log.info("Selection dismissed")
        self._set_state(SelectionState(phase=Phase.IDLE, token=self._token))

    # ── Internals ──────────────────────────────────────────────────────

    def _is_current(self, token: int) -> bool:
        return token == self._token and self._state.phase is not Phase.IDLE

    def _on_spinner_timeout(self, token: int) -> None:
        if token != self._token:
            return
        self._spinner_timer = None
        if self._state.phase is not Phase.SELECTING:
            return
        self._set_state(replace(self._state, spinner_visible=True))

    def _cancel_spinner(self) -> None:
        if self._spinner_timer is not None:
            self._spinner_timer.cancel()
            self._spinner_timer = None
