from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Optional

from .geocode import Geocoder
from .types import Coordinate, PhotoRecord, Unresolved


logger = logging.getLogger(__name__)

REGION_HINT = os.environ.get("PHOTO_ROUTE_REGION_HINT", "대한민국")

# Names that already carry a region, so no hint is appended
_REGION_WORDS = ("서울", "부산", "대구", "인천", "광주", "대전", "울산", "세종", "경기", "강원",
                 "충청", "충북", "충남", "전라", "전북", "전남", "경상", "경북", "경남", "제주",
                 "대한민국", "한국")


def build_query(road_name: str, region_hint: Optional[str] = REGION_HINT) -> str:
    name = " ".join(road_name.split())
    if not region_hint or any(w in name for w in _REGION_WORDS):
        return name
    return f"{name}, {region_hint}"


@dataclass
class Resolution:
    coordinate: Optional[Coordinate] = None
    unresolved: Optional[Unresolved] = None

    @property
    def ok(self) -> bool:
        return self.coordinate is not None


class BatchLookup:
    """Road name -> coordinate already geocoded earlier in the same batch.

    Shared between resolver workers, guarded by a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._coords: dict[str, Coordinate] = {}

    def get(self, road_name: str) -> Optional[Coordinate]:
        with self._lock:
            return self._coords.get(road_name)

    def put(self, road_name: str, coord: Coordinate) -> None:
        with self._lock:
            self._coords.setdefault(road_name, coord)


class CoordinateResolver:
    """Find a coordinate for one record: GPS first, then the geocoded road name."""

    def __init__(self, geocoder: Optional[Geocoder], region_hint: Optional[str] = REGION_HINT) -> None:
        self.geocoder = geocoder
        self.region_hint = region_hint

    def resolve(self, record: PhotoRecord, batch: Optional[BatchLookup] = None) -> Resolution:
        coord = record.coordinate
        if coord is not None:
            if record.location_source is None:
                record.location_source = "gps"
            return Resolution(coordinate=coord)

        road = (record.road_name or "").strip()
        if not road:
            return Resolution(unresolved=Unresolved(record_id=record.id, reason="no_location_evidence"))

        if batch is not None:
            known = batch.get(road)
            if known is not None:
                record.set_coordinate(known, "geocoded")
                return Resolution(coordinate=known)

        if self.geocoder is None:
            return Resolution(unresolved=Unresolved(record_id=record.id, road_name=road, reason="geocoding_disabled"))

        query = build_query(road, self.region_hint)
        try:
            found = self.geocoder.geocode(query)
        except Exception as e:
            logger.warning("Geocoding failed for %s: %s", road, e)
            return Resolution(
                unresolved=Unresolved(record_id=record.id, road_name=road, reason="geocoder_error", detail=str(e))
            )
        if found is None:
            logger.info("No geocoding result for %s", road)
            return Resolution(unresolved=Unresolved(record_id=record.id, road_name=road, reason="not_found"))

        record.set_coordinate(found, "geocoded")
        if batch is not None:
            batch.put(road, found)
        return Resolution(coordinate=found)
