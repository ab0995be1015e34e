import pytest
import requests

from photo_route import cache as cache_mod
from photo_route.cache import Cache
from photo_route.geocode import GeocodingError, NominatimGeocoder
from photo_route.types import Coordinate


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append(params)
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(cache_mod.time, "sleep", lambda s: None)


def test_first_result_is_used_and_cached(tmp_path):
    session = FakeSession([FakeResponse([{"lat": "37.5045", "lon": "127.049"}, {"lat": "1", "lon": "2"}])])
    geo = NominatimGeocoder(cache=Cache(tmp_path), session=session)
    assert geo.geocode("테헤란로, 대한민국") == Coordinate(latitude=37.5045, longitude=127.049)
    assert geo.geocode("테헤란로,  대한민국") == Coordinate(latitude=37.5045, longitude=127.049)
    assert len(session.calls) == 1
    assert session.calls[0]["countrycodes"] == "kr"
    assert session.calls[0]["q"] == "테헤란로, 대한민국"


def test_empty_answer_is_cached_as_miss(tmp_path):
    session = FakeSession([FakeResponse([])])
    geo = NominatimGeocoder(cache=Cache(tmp_path), session=session, countrycodes=None)
    assert geo.geocode("없는로") is None
    assert geo.geocode("없는로") is None
    assert len(session.calls) == 1
    assert "countrycodes" not in session.calls[0]


def test_malformed_items_are_skipped(tmp_path):
    session = FakeSession([FakeResponse([{"lat": "x"}, {"lat": "37.1", "lon": "127.1"}])])
    geo = NominatimGeocoder(cache=Cache(tmp_path), session=session)
    assert geo.geocode("강남대로") == Coordinate(latitude=37.1, longitude=127.1)


def test_http_error_raises_geocoding_error(tmp_path):
    session = FakeSession([FakeResponse(None, status=503)])
    geo = NominatimGeocoder(cache=Cache(tmp_path), session=session)
    with pytest.raises(GeocodingError):
        geo.geocode("강남대로")


def test_blank_query_skips_network(tmp_path):
    session = FakeSession([])
    assert NominatimGeocoder(cache=Cache(tmp_path), session=session).geocode("   ") is None
    assert session.calls == []
