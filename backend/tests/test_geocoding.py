import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from domain.models import LatLng
from services import geocoding as geo
from services.geocoding import compute_centroid, geocode_address, geocode_address_async
from services.provider_types import GeocodeStatus


@pytest.fixture(autouse=True)
def isolated_cache(monkeypatch, tmp_path):
    geo.cache_clear()
    monkeypatch.setattr(geo, "_CACHE_DB", None, raising=False)
    monkeypatch.setattr(geo, "NOMINATIM_CACHE_PATH", str(tmp_path / "geocode.sqlite"))
    monkeypatch.setattr(geo, "_MIN_INTERVAL_SEC", 0.0)
    yield
    geo.cache_clear()


def test_compute_centroid_basic():
    pts = [(0.0, 0.0), (2.0, 4.0)]
    lat, lon = compute_centroid(pts)  # type: ignore
    assert lat == 1.0
    assert lon == 2.0


def test_compute_centroid_empty():
    assert compute_centroid([]) is None


@patch("services.geocoding._session.get")
def test_geocode_address_parses_first_match(mock_get):
    mock_resp = MagicMock()
    mock_resp.json.return_value = [
        {"lat": "36.6002", "lon": "-121.8947", "display_name": "Monterey, California, United States"},
        {"lat": "0", "lon": "0", "display_name": "elsewhere"},
    ]
    mock_get.return_value = mock_resp

    result = geocode_address("Monterey")

    assert result.ok
    assert result.location == LatLng(36.6002, -121.8947)
    assert result.display_name.startswith("Monterey")
    params = mock_get.call_args.kwargs["params"]
    assert params["q"] == "Monterey"
    assert params["limit"] == "1"


@patch("services.geocoding._session.get")
def test_geocode_address_zero_results(mock_get):
    mock_resp = MagicMock()
    mock_resp.json.return_value = []
    mock_get.return_value = mock_resp

    result = geocode_address("Atlantis")
    assert result.status == GeocodeStatus.ZERO_RESULTS
    assert not result.ok


@patch("services.geocoding._session.get")
def test_geocode_address_network_error_is_not_remembered(mock_get):
    ok_resp = MagicMock()
    ok_resp.json.return_value = [{"lat": "34.05", "lon": "-118.24"}]
    mock_get.side_effect = [requests.ConnectionError("down"), ok_resp]

    first = geocode_address("Los Angeles")
    second = geocode_address("Los Angeles")

    assert first.status == GeocodeStatus.ERROR
    assert second.ok
    assert mock_get.call_count == 2


@patch("services.geocoding._session.get")
def test_geocode_address_bad_json(mock_get):
    mock_resp = MagicMock()
    mock_resp.json.side_effect = ValueError("not json")
    mock_get.return_value = mock_resp

    assert geocode_address("Big Sur").status == GeocodeStatus.ERROR


def test_geocode_address_blank_query_skips_http(monkeypatch):
    def fail_get(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(geo, "_throttled_get", fail_get)
    assert geocode_address("   ").status == GeocodeStatus.ZERO_RESULTS


@patch("services.geocoding._session.get")
def test_geocode_address_async_wraps_blocking_lookup(mock_get):
    mock_resp = MagicMock()
    mock_resp.json.return_value = [{"lat": "37.77", "lon": "-122.42"}]
    mock_get.return_value = mock_resp

    result = asyncio.run(geocode_address_async("San Francisco"))
    assert result.location == LatLng(37.77, -122.42)
