import threading
from datetime import timedelta, timezone

import pytest

from photo_route.recalculate import RouteRecalculator
from photo_route.types import Route

from conftest import make_record


@pytest.fixture
def recalculator(aggregator):
    return RouteRecalculator(aggregator)


@pytest.fixture
def route(aggregator):
    records = [
        make_record(0, gps=(37.5665, 126.9780), road="세종대로"),
        make_record(30, road="테헤란로"),
        make_record(45, road="강남대로"),
        make_record(50),
    ]
    return aggregator.aggregate(records).route


def snapshot(route):
    return (route.coordinates, route.total_distance_km, route.duration_s, route.road_names, route.date)


def test_recalculate_twice_is_idempotent(route, recalculator, geocoder):
    recalculator.recalculate(route)
    first = snapshot(route)
    calls = len(geocoder.queries)
    recalculator.recalculate(route)
    assert snapshot(route) == first
    assert len(geocoder.queries) == calls


def test_removing_all_located_records_keeps_route(route, recalculator):
    route_id, name = route.id, route.name
    located = [r.id for r in route.records if r.coordinate is not None]
    assert route.remove_records(located) == 3

    result = recalculator.recalculate(route)
    assert route.id == route_id
    assert route.name == name
    assert route.coordinates == []
    assert route.total_distance_km == 0.0
    assert route.duration_s == 0.0
    assert route.photo_count == 1
    assert [u.reason for u in result.unresolved] == ["no_location_evidence"]


def test_removing_everything_degrades_to_empty(route, recalculator):
    route.remove_records([r.id for r in route.records])
    recalculator.recalculate(route)
    assert route.records == []
    assert route.coordinates == []
    assert route.road_names == []
    assert route.duration_s == 0.0


def test_renamed_road_is_regeocoded_and_kept(route, recalculator, geocoder):
    rec = next(r for r in route.records if r.road_name == "테헤란로")
    rec.rename_road("강남대로")
    assert rec.coordinate is None

    recalculator.recalculate(route)
    assert rec.road_name == "강남대로"
    assert rec.road_name_edited
    assert (rec.latitude, rec.longitude) == (37.4979, 127.0276)
    assert route.road_names == ["강남대로", "세종대로"]


def test_renaming_keeps_gps(route, recalculator):
    rec = route.records[0]
    rec.rename_road("")
    recalculator.recalculate(route)
    assert rec.road_name is None
    assert rec.location_source == "gps"
    assert len(route.coordinates) == 3


def test_time_edit_reorders_records(route, recalculator):
    last = route.records[-1]
    last.captured_at = route.records[0].captured_at - timedelta(minutes=5)
    recalculator.recalculate(route)
    assert route.records[0] is last
    assert route.date == last.captured_at
    assert route.duration_s == 50 * 60


def test_cancelled_recalculation_leaves_route(route, recalculator):
    before = snapshot(route)
    count = route.photo_count
    cancel = threading.Event()
    cancel.set()
    result = recalculator.recalculate(route, cancel)
    assert result.cancelled
    assert snapshot(route) == before
    assert route.photo_count == count


def test_timezone_aware_edit_sorts_with_local_times(route, recalculator):
    last = route.records[-1]
    last.captured_at = (route.records[0].captured_at + timedelta(hours=2)).astimezone(timezone.utc)
    assert last.captured_at.tzinfo is None
    recalculator.recalculate(route)
    assert route.records[-1] is last
    assert route.duration_s == 2 * 3600


def test_route_file_with_utc_offsets_recalculates(route, recalculator):
    data = route.model_dump(mode="json")
    data["records"][1]["captured_at"] = "2026-03-14T00:30:00Z"
    data["date"] = "2026-03-14T00:00:00+00:00"
    loaded = Route.model_validate(data)
    assert all(r.captured_at.tzinfo is None for r in loaded.records)
    assert loaded.date.tzinfo is None

    recalculator.recalculate(loaded)
    times = [r.captured_at for r in loaded.records]
    assert times == sorted(times)


def test_rename_resets_ocr_confidence():
    rec = make_record(road="테헤란로", ocr_confidence=0.8)
    rec.rename_road("테헤란로")
    assert rec.ocr_confidence == 0.8
    rec.rename_road("강남대로")
    assert rec.ocr_confidence == 0.0
    assert rec.road_name_edited
