"""Tests for the selection state machine, staleness guard and spinner debounce."""
import pytest

from relmap.errors import EnrichmentError
from relmap.gui.selection import (
    PRIMARY, SECONDARY, Completion, Phase, SelectionController, SelectionState,
    SlotStatus, TaskOutcome,
)

from conftest import ImmediateRunner, make_point


def test_initial_state(controller):
    assert controller.state == SelectionState()
    assert controller.state.phase is Phase.IDLE


def test_select_issues_work(controller, runner, history):
    point = make_point(3)
    controller.select(point)

    state = controller.state
    assert state.phase is Phase.SELECTING
    assert state.token == 1
    assert state.selected_point == point
    assert state.location_label == ""
    assert state.display_label == "Lat: 30.9700, Lng: -100.4300"
    assert state.primary_image.path == "3_predicted_mask.png"
    assert state.secondary_image.path == "3_probabilities.png"
    assert state.primary_image.status is SlotStatus.PENDING
    assert not state.spinner_visible
    assert runner.submitted == ["geocode-3", "image-primary", "image-secondary"]
    assert len(history) == 1


def test_full_lifecycle(controller, runner):
    controller.select(make_point(1))
    runner.complete("geocode")
    assert controller.state.location_label == "Sonora, Texas, US"
    assert controller.state.phase is Phase.SELECTING

    runner.complete("image-secondary")
    assert controller.state.secondary_image.status is SlotStatus.LOADED
    assert controller.state.phase is Phase.SELECTING

    runner.complete("image-primary")
    state = controller.state
    assert state.phase is Phase.READY
    assert state.image_load_flags.both
    assert state.primary_image.data == b"image:1_predicted_mask.png"


def test_ready_before_geocode(controller, runner):
    controller.select(make_point(1))
    runner.complete("image-primary")
    runner.complete("image-secondary")
    assert controller.state.phase is Phase.READY
    runner.complete("geocode")
    assert controller.state.phase is Phase.READY
    assert controller.state.location_label == "Sonora, Texas, US"


class TestStaleness:
    def test_late_completions_for_old_selection_are_ignored(self, controller, runner):
        a, b = make_point(1, lat=10.0), make_point(2, lat=20.0)
        controller.select(a)
        a_tasks = list(runner.pending)
        runner.pending.clear()
        controller.select(b)

        for task in a_tasks:
            task.callback(TaskOutcome(result=b"late"))

        state = controller.state
        assert state.selected_point == b
        assert state.token == 2
        assert state.location_label == ""
        assert state.image_load_flags.primary is False
        assert state.phase is Phase.SELECTING

        runner.complete_all()
        assert controller.state.phase is Phase.READY
        assert controller.state.primary_image.data == b"image:2_predicted_mask.png"

    def test_completions_after_dismiss_are_ignored(self, controller, runner, history):
        controller.select(make_point(1))
        controller.dismiss()
        before = len(history)
        runner.complete_all()
        assert controller.state.phase is Phase.IDLE
        assert len(history) == before

    def test_explicit_stale_token(self, controller):
        controller.select(make_point(1))
        controller.select(make_point(2))
        controller.image_settled(PRIMARY, True, data=b"x", token=1)
        controller.geocode_settled(Completion(1, TaskOutcome(result=None)))
        assert controller.state.primary_image.status is SlotStatus.PENDING
        assert controller.state.location_label == ""

    def test_image_settled_without_token_uses_current(self, controller):
        controller.select(make_point(1))
        controller.image_settled(PRIMARY, False)
        controller.image_settled(SECONDARY, False)
        assert controller.state.phase is Phase.READY

    def test_image_settled_while_idle_is_ignored(self, controller):
        controller.image_settled(PRIMARY, True)
        assert controller.state.phase is Phase.IDLE


class TestImages:
    def test_failure_hides_slot_and_counts(self, controller, runner):
        controller.select(make_point(1))
        runner.fail("image-primary")
        assert controller.state.primary_image.status is SlotStatus.HIDDEN
        assert not controller.state.primary_image.visible
        runner.complete("image-secondary")
        assert controller.state.phase is Phase.READY

    def test_both_fail_still_ready(self, controller, runner):
        controller.select(make_point(1))
        runner.fail("image-primary")
        runner.fail("image-secondary")
        assert controller.state.phase is Phase.READY

    def test_duplicate_settle_is_noop(self, controller, history):
        controller.select(make_point(1))
        controller.image_settled(PRIMARY, True, data=b"a")
        count = len(history)
        controller.image_settled(PRIMARY, False)
        assert len(history) == count
        assert controller.state.primary_image.status is SlotStatus.LOADED

    def test_unknown_slot(self, controller):
        controller.select(make_point(1))
        with pytest.raises(ValueError):
            controller.image_settled("tertiary", True)


class TestGeocode:
    def test_failure_falls_back_to_coordinates(self, controller, runner):
        controller.select(make_point(1, lat=30.97, lon=-100.43))
        runner.fail("geocode", EnrichmentError("timeout"))
        assert controller.state.location_label == "Lat: 30.9700, Lng: -100.4300"

    def test_empty_result_falls_back(self, runner, timers):
        ctl = SelectionController(
            geocoder=lambda lat, lon: None,
            image_loader=lambda p: b"",
            asset_resolver=lambda p: ("a", "b"),
            runner=runner,
            timers=timers,
        )
        ctl.select(make_point(1, lat=1.0, lon=2.0))
        runner.complete("geocode")
        assert ctl.state.location_label == "Lat: 1.0000, Lng: 2.0000"


class TestSpinner:
    def test_fast_loads_never_show_spinner(self, controller, runner, timers, history):
        controller.select(make_point(1))
        timers.advance_to(30)
        runner.complete("image-primary")
        runner.complete("image-secondary")
        assert controller.state.phase is Phase.READY
        timers.advance_to(200)
        assert not any(s.spinner_visible for s in history)

    def test_slow_loads_show_then_clear(self, controller, runner, timers):
        controller.select(make_point(1))
        timers.advance_to(49)
        assert not controller.state.spinner_visible
        timers.advance_to(50)
        assert controller.state.spinner_visible
        timers.advance_to(80)
        runner.complete("image-primary")
        assert controller.state.spinner_visible
        runner.complete("image-secondary")
        assert controller.state.phase is Phase.READY
        assert not controller.state.spinner_visible

    def test_reselect_cancels_previous_timer(self, controller, timers):
        controller.select(make_point(1))
        timers.advance_to(40)
        controller.select(make_point(2))
        assert timers.handles[0].cancelled
        timers.advance_to(60)
        assert not controller.state.spinner_visible
        timers.advance_to(90)
        assert controller.state.spinner_visible

    def test_dismiss_cancels_timer(self, controller, timers):
        controller.select(make_point(1))
        controller.dismiss()
        timers.advance_to(100)
        assert timers.handles[0].cancelled
        assert not controller.state.spinner_visible

    def test_zero_delay(self, runner, timers):
        ctl = SelectionController(
            geocoder=lambda lat, lon: None, image_loader=lambda p: b"",
            asset_resolver=lambda p: ("a", "b"), runner=runner, timers=timers,
            spinner_delay_ms=0,
        )
        ctl.select(make_point(1))
        timers.advance_to(0)
        assert ctl.state.spinner_visible


def test_dismiss(controller, runner, history):
    controller.select(make_point(1))
    controller.dismiss()
    assert controller.state.phase is Phase.IDLE
    assert controller.state.selected_point is None
    assert controller.token == 2
    assert history[-1].phase is Phase.IDLE


def test_unsubscribe(controller):
    seen = []
    controller.subscribe(seen.append)
    controller.unsubscribe(seen.append)
    controller.select(make_point(1))
    assert seen == []


def test_synchronous_runner_reaches_ready(timers):
    ctl = SelectionController(
        geocoder=lambda lat, lon: None,
        image_loader=lambda p: b"data",
        asset_resolver=lambda p: ("a", "b"),
        runner=ImmediateRunner(),
        timers=timers,
    )
    ctl.select(make_point(1))
    assert ctl.state.phase is Phase.READY
    assert timers.handles[0].cancelled
