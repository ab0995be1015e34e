from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import pytest

from photo_route.resolver import CoordinateResolver
from photo_route.route import RouteAggregator
from photo_route.types import Coordinate, PhotoRecord


T0 = datetime(2026, 3, 14, 9, 0, 0)


class FakeGeocoder:
    """Answers from a fixed table and remembers every query."""

    def __init__(self, table: Optional[dict] = None, fail: Optional[set] = None) -> None:
        self.table = table or {}
        self.fail = fail or set()
        self.queries: list[str] = []

    def geocode(self, query: str) -> Optional[Coordinate]:
        self.queries.append(query)
        name = query.split(",")[0].strip()
        if name in self.fail:
            raise RuntimeError(f"service unavailable for {name}")
        hit = self.table.get(name)
        if hit is None:
            return None
        return Coordinate(latitude=hit[0], longitude=hit[1])


def make_record(minutes: float = 0, gps=None, road: Optional[str] = None, **kw) -> PhotoRecord:
    rec = PhotoRecord(captured_at=T0 + timedelta(minutes=minutes), road_name=road, **kw)
    if gps is not None:
        rec.set_coordinate(Coordinate(latitude=gps[0], longitude=gps[1]), "gps")
    return rec


@pytest.fixture
def geocoder():
    return FakeGeocoder(
        {
            "테헤란로": (37.5045, 127.0490),
            "강남대로": (37.4979, 127.0276),
            "세종대로": (37.5663, 126.9779),
        },
        fail={"올림픽대로"},
    )


@pytest.fixture
def aggregator(geocoder):
    return RouteAggregator(CoordinateResolver(geocoder))
