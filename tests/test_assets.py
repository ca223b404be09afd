"""Tests for companion image resolution and loading."""
from unittest import mock

import pytest
import requests
from PIL import Image

from relmap.errors import AssetMissingError
from relmap.geo.assets import AssetResolver, asset_stem, load_image
from relmap.ingest import USER_AGENT

from conftest import make_point


def _write_png(path):
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(path, format="PNG")
    return path


def test_stem_from_asset_key():
    assert asset_stem(make_point(asset_key="-100.43_30.97_tile_7.tif")) == "-100.43_30.97"


def test_stem_fallback_to_coordinates():
    point = make_point(lon=-100.43, lat=30.97, asset_key="")
    assert asset_stem(point) == "-100.4300_30.9700"


def test_resolver_directory(tmp_path):
    resolver = AssetResolver(str(tmp_path))
    primary, secondary = resolver(make_point(asset_key="1_2_x"))
    assert primary == str(tmp_path / "1_2_predicted_mask.png")
    assert secondary == str(tmp_path / "1_2_probabilities.png")


def test_resolver_url():
    resolver = AssetResolver("https://example.org/imgs/")
    primary, secondary = resolver.paths_for(make_point(asset_key="1_2_x"))
    assert primary == "https://example.org/imgs/1_2_predicted_mask.png"
    assert secondary == "https://example.org/imgs/1_2_probabilities.png"


def test_load_image_from_disk(tmp_path):
    path = _write_png(tmp_path / "a.png")
    data = load_image(str(path))
    assert data == path.read_bytes()


def test_missing_file(tmp_path):
    with pytest.raises(AssetMissingError) as info:
        load_image(str(tmp_path / "nope.png"))
    assert info.value.reason == "missing"


def test_undecodable_file(tmp_path):
    path = tmp_path / "bad.png"
    path.write_bytes(b"definitely not a png")
    with pytest.raises(AssetMissingError):
        load_image(str(path))


def test_url_download_failure():
    with mock.patch("relmap.ingest.requests.get",
                    side_effect=requests.ConnectionError("down")):
        with pytest.raises(AssetMissingError):
            load_image("https://example.org/a.png")


def test_url_download(tmp_path):
    payload = _write_png(tmp_path / "a.png").read_bytes()
    resp = mock.Mock(status_code=200, content=payload)
    with mock.patch("relmap.ingest.requests.get", return_value=resp) as get:
        assert load_image("https://example.org/a.png", timeout=3) == payload
    get.assert_called_once_with("https://example.org/a.png", params=None, timeout=3,
                                headers={"User-Agent": USER_AGENT})
