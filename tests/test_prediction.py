"""Tests for feature parsing and property coercion."""
import math

import pytest

from relmap.errors import MalformedInputError
from relmap.geo.prediction import (
    coordinate_label, land_cover_name, parse_coordinates, parse_feature,
    parse_properties,
)

from conftest import make_feature


class TestParseFeature:
    def test_raw_export_names(self):
        feat = make_feature(glc_cl_smj=13, filename="-100.43_30.97_a.tif")
        point = parse_feature(feat, index=4)
        assert point.id == 4
        assert point.coordinates == (-100.43, 30.97)
        assert point.latlng == (30.97, -100.43)
        assert point.properties.variance_score == 0.05
        assert point.properties.similarity_score == -6.0
        assert point.properties.land_cover_class == 13
        assert point.properties.land_cover_name == "Herbaceous Cover"
        assert point.properties.asset_key == "-100.43_30.97_a.tif"

    def test_canonical_names_win(self):
        props = parse_properties({
            "varianceScore": 0.2, "Variance_pred_scaled": 0.9,
            "similarityScore": -3.0,
        })
        assert props.variance_score == 0.2
        assert props.similarity_score == -3.0

    def test_unknown_keys_kept_as_extra(self):
        props = parse_properties({"Variance_pred_scaled": 0.1, "year": 2020})
        assert props.extra == {"year": 2020}

    def test_missing_metrics(self):
        props = parse_properties({})
        assert props.variance_score is None
        assert props.similarity_score is None
        assert props.land_cover_class is None
        assert props.asset_key == ""

    @pytest.mark.parametrize("bad", [True, "abc", float("nan"), float("inf"), [1]])
    def test_bad_metric_becomes_missing(self, bad):
        assert parse_properties({"Variance_pred_scaled": bad}).variance_score is None

    def test_numeric_string_metric(self):
        assert parse_properties({"ncdd_embeddings": "-4.5"}).similarity_score == -4.5

    def test_fractional_land_cover_rejected(self):
        assert parse_properties({"glc_cl_smj": 13.5}).land_cover_class is None
        assert parse_properties({"glc_cl_smj": 16.0}).land_cover_class == 16

    def test_non_mapping_feature(self):
        with pytest.raises(MalformedInputError):
            parse_feature(["not", "a", "feature"], 0)

    def test_non_mapping_properties(self):
        feat = make_feature()
        feat["properties"] = None
        with pytest.raises(MalformedInputError):
            parse_feature(feat, 0)


class TestParseCoordinates:
    def test_valid(self):
        assert parse_coordinates({"type": "Point", "coordinates": [1, 2]}) == (1.0, 2.0)

    def test_type_optional(self):
        assert parse_coordinates({"coordinates": (3.5, -4.5)}) == (3.5, -4.5)

    @pytest.mark.parametrize("geometry", [
        None,
        {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
        {"type": "Point", "coordinates": [1]},
        {"type": "Point", "coordinates": [1, 2, 3]},
        {"type": "Point", "coordinates": ["1", "2"]},
        {"type": "Point", "coordinates": [math.nan, 2]},
        {"type": "Point", "coordinates": [True, 2]},
        {"type": "Point"},
    ])
    def test_malformed(self, geometry):
        with pytest.raises(MalformedInputError):
            parse_coordinates(geometry)


def test_land_cover_unknown_code():
    assert land_cover_name(99) == "Unknown (99)"
    assert land_cover_name(None) == "Unknown (None)"


def test_coordinate_label():
    assert coordinate_label(30.97, -100.43) == "Lat: 30.9700, Lng: -100.4300"
