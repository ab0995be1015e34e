from importlib.metadata import version as _v

from .classifier import RoadNameClassifier
from .recalculate import RouteRecalculator
from .resolver import CoordinateResolver
from .route import NoCoordinatesFound, NoPhotos, RouteAggregator, RouteError
from .types import Coordinate, PhotoRecord, RecognizedCandidate, Route

__all__ = [
    "__version__",
    "Coordinate",
    "CoordinateResolver",
    "NoCoordinatesFound",
    "NoPhotos",
    "PhotoRecord",
    "RecognizedCandidate",
    "RoadNameClassifier",
    "Route",
    "RouteAggregator",
    "RouteError",
    "RouteRecalculator",
]

try:
    __version__ = _v("photo-route")
except Exception:  # pragma: no cover
    __version__ = "0.1.0"
