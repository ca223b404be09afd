"""Tests for marker descriptors and icon caching."""
import pytest

from relmap.geo.markers import IconFactory, build_markers
from relmap.geo.reliability import GREEN, NEUTRAL, RED

from conftest import make_point


def test_icon_cache_reuses_instances():
    icons = IconFactory(shape="circle", size=24)
    first = icons.icon_for(RED)
    assert icons.icon_for(RED) is first
    assert first.shape == "circle"
    assert first.size == (24, 24)
    assert first.anchor == (12, 24)


def test_unknown_shape():
    with pytest.raises(ValueError):
        IconFactory(shape="hexagon")


def test_build_markers_colours_and_positions():
    points = [
        make_point(0, lon=-100.43, lat=30.97, variance=0.5, similarity=-2.0),
        make_point(1, variance=0.05, similarity=-6.0),
        make_point(2, variance=None, similarity=-6.0),
    ]
    markers = build_markers(points, IconFactory(), on_click=lambda p: None)
    assert [m.point_id for m in markers] == [0, 1, 2]
    assert markers[0].position == (30.97, -100.43)
    assert [m.icon.color for m in markers] == [RED, GREEN, NEUTRAL]


def test_build_markers_stride():
    points = [make_point(i) for i in range(6)]
    markers = build_markers(points, IconFactory(), on_click=lambda p: None, stride=2)
    assert [m.point_id for m in markers] == [0, 2, 4]


def test_click_handler_binds_its_point():
    clicked = []
    points = [make_point(i) for i in range(3)]
    markers = build_markers(points, IconFactory(), on_click=clicked.append)
    markers[2].on_click()
    markers[0].on_click()
    assert [p.id for p in clicked] == [2, 0]
