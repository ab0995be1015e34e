from __future__ import annotations

import logging
import threading
from typing import Optional

from .route import Aggregation, RouteAggregator
from .types import Route


logger = logging.getLogger(__name__)


class RouteRecalculator:
    """Re-derive a Route's statistics after its records were edited.

    Road names are taken as they are; only records without a coordinate are
    resolved again. The route keeps its id and name, and losing every
    location leaves it with an empty path instead of failing.
    """

    def __init__(self, aggregator: RouteAggregator) -> None:
        self.aggregator = aggregator

    def recalculate(self, route: Route, cancel: Optional[threading.Event] = None) -> Aggregation:
        d = self.aggregator.derive(route.records, cancel)
        if d.cancelled:
            # a prefix would silently drop the remaining photos from the route
            logger.info("Recalculation of %r cancelled; route left unchanged", route.name)
            return Aggregation(route=route, unresolved=d.unresolved, cancelled=True, processed=len(d.records))

        route.records = d.records
        if d.records:
            route.date = d.records[0].captured_at
        route.coordinates = d.coordinates
        route.total_distance_km = d.total_distance_km
        route.duration_s = d.duration_s
        route.road_names = d.road_names
        if not d.coordinates:
            logger.warning("Route %r has no located photos left", route.name)
        return Aggregation(route=route, unresolved=d.unresolved, processed=len(d.records))
