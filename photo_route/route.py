from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .geo import path_length_km
from .resolver import BatchLookup, CoordinateResolver, Resolution
from .types import Coordinate, PhotoRecord, Route, Unresolved


logger = logging.getLogger(__name__)

MAX_WORKERS = 4


def workers_from_env(name: str = "PHOTO_ROUTE_GEOCODE_WORKERS", default: int = 1) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return min(MAX_WORKERS, max(1, int(raw)))
    except ValueError:
        logger.warning("Ignoring %s=%r: not a whole number", name, raw)
        return default


DEFAULT_WORKERS = workers_from_env()


class RouteError(Exception):
    code = "route_error"
    message = "Could not build a route."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class NoPhotos(RouteError):
    code = "no_photos"
    message = "No photos were given."


class NoCoordinatesFound(RouteError):
    code = "no_coordinates"
    message = "No location could be found for any photo. Pick photos with GPS data or a visible road sign."


@dataclass
class Aggregation:
    route: Optional[Route]
    unresolved: List[Unresolved] = field(default_factory=list)
    cancelled: bool = False
    processed: int = 0


@dataclass
class Derived:
    records: List[PhotoRecord]
    coordinates: List[Coordinate]
    total_distance_km: float
    duration_s: float
    road_names: List[str]
    unresolved: List[Unresolved]
    cancelled: bool


def sort_records(records: Sequence[PhotoRecord]) -> List[PhotoRecord]:
    # sorted() is stable: equal timestamps keep input order
    return sorted(records, key=lambda r: r.captured_at)


def duration_seconds(records: Sequence[PhotoRecord]) -> float:
    if len(records) < 2:
        return 0.0
    return max(0.0, (records[-1].captured_at - records[0].captured_at).total_seconds())


def distinct_road_names(records: Sequence[PhotoRecord]) -> List[str]:
    return sorted({r.road_name.strip() for r in records if r.road_name and r.road_name.strip()})


def route_name(records: Sequence[PhotoRecord]) -> str:
    date = records[0].captured_at
    label = f"{date.month:02d}월 {date.day:02d}일"
    for r in records:
        if r.road_name and r.road_name.strip():
            return f"{label} {r.road_name.strip()}"
    return f"{label} 경로"


class RouteAggregator:
    def __init__(self, resolver: CoordinateResolver, max_workers: int = DEFAULT_WORKERS) -> None:
        self.resolver = resolver
        self.max_workers = min(MAX_WORKERS, max(1, max_workers))

    def _resolve_all(
        self, records: List[PhotoRecord], cancel: Optional[threading.Event]
    ) -> List[Optional[Resolution]]:
        """Resolve each record; None marks a record skipped after cancellation.

        Results are returned by record index, independent of completion order.
        """
        batch = BatchLookup()

        def work(record: PhotoRecord) -> Optional[Resolution]:
            if cancel is not None and cancel.is_set():
                return None
            return self.resolver.resolve(record, batch)

        if self.max_workers == 1:
            out: List[Optional[Resolution]] = []
            for r in records:
                res = work(r)
                if res is None:
                    break
                out.append(res)
            return out + [None] * (len(records) - len(out))

        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            futures = [ex.submit(work, r) for r in records]
            return [f.result() for f in futures]

    def derive(self, records: Sequence[PhotoRecord], cancel: Optional[threading.Event] = None) -> Derived:
        ordered = sort_records(records)
        results = self._resolve_all(ordered, cancel)

        # Workers start in submission order, so skipped records form a suffix
        done = 0
        while done < len(results) and results[done] is not None:
            done += 1
        cancelled = done < len(ordered)
        if cancelled:
            logger.info("Cancelled after %d of %d photos", done, len(ordered))
            ordered = ordered[:done]
            results = results[:done]

        coordinates: List[Coordinate] = []
        unresolved: List[Unresolved] = []
        for res in results:
            if res is None:
                continue
            if res.coordinate is not None:
                coordinates.append(res.coordinate)
            elif res.unresolved is not None:
                unresolved.append(res.unresolved)

        if unresolved:
            logger.warning(
                "%d of %d photos could not be located", len(unresolved), len(ordered)
            )

        return Derived(
            records=ordered,
            coordinates=coordinates,
            total_distance_km=path_length_km(coordinates),
            duration_s=duration_seconds(ordered),
            road_names=distinct_road_names(ordered),
            unresolved=unresolved,
            cancelled=cancelled,
        )

    def aggregate(
        self, records: Sequence[PhotoRecord], cancel: Optional[threading.Event] = None
    ) -> Aggregation:
        """Build a new Route from a batch of annotated photo records.

        Raises NoPhotos for an empty batch and NoCoordinatesFound when no
        record could be located. A cancelled run returns the route of the
        already processed prefix (or no route if that prefix has no location).
        """
        if not records:
            raise NoPhotos()

        d = self.derive(records, cancel)
        if not d.coordinates:
            if d.cancelled:
                return Aggregation(route=None, unresolved=d.unresolved, cancelled=True, processed=len(d.records))
            raise NoCoordinatesFound()

        route = Route(
            name=route_name(d.records),
            date=d.records[0].captured_at,
            records=d.records,
            coordinates=d.coordinates,
            total_distance_km=d.total_distance_km,
            duration_s=d.duration_s,
            road_names=d.road_names,
        )
        logger.info(
            "Route %r: %d photos, %d points, %.2f km", route.name, route.photo_count,
            len(route.coordinates), route.total_distance_km,
        )
        return Aggregation(route=route, unresolved=d.unresolved, cancelled=d.cancelled, processed=len(d.records))
