from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .classifier import RoadNameClassifier
from .metadata import read_photo_metadata
from .ocr import detect_candidates
from .route import RouteAggregator, RouteError
from .types import BatchSummary, PhotoRecord, RecognizedCandidate


logger = logging.getLogger(__name__)

Detector = Callable[[Path], List[RecognizedCandidate]]


def annotate(record: PhotoRecord, candidates: Sequence[RecognizedCandidate], classifier: RoadNameClassifier) -> None:
    """Fill the record's road name from OCR candidates unless a user already edited it."""
    if record.road_name_edited:
        return
    best = classifier.select(candidates)
    if best is None:
        record.road_name = None
        record.ocr_confidence = 0.0
    else:
        record.road_name = best.name
        record.ocr_confidence = best.candidate.confidence


def build_records(
    image_paths: Iterable[Path],
    classifier: RoadNameClassifier,
    detector: Optional[Detector] = None,
    cancel: Optional[threading.Event] = None,
    progress: Optional[Callable[[int, Path], None]] = None,
) -> List[PhotoRecord]:
    detector = detector or detect_candidates
    records: List[PhotoRecord] = []
    for i, path in enumerate(image_paths):
        if cancel is not None and cancel.is_set():
            break
        meta = read_photo_metadata(path)
        record = PhotoRecord(captured_at=meta.captured_at, image_path=str(path))
        if meta.coordinate is not None:
            record.set_coordinate(meta.coordinate, "gps")
        try:
            candidates = detector(path)
        except Exception as e:
            logger.warning("Text detection failed for %s: %s", path, e)
            candidates = []
        annotate(record, candidates, classifier)
        logger.debug("%s -> road=%r gps=%s", path.name, record.road_name, meta.has_gps)
        records.append(record)
        if progress is not None:
            progress(i + 1, path)
    return records


def summarize(records: Sequence[PhotoRecord], aggregator: RouteAggregator,
              cancel: Optional[threading.Event] = None) -> BatchSummary:
    try:
        result = aggregator.aggregate(records, cancel)
    except RouteError as e:
        logger.error("Route aggregation failed: %s", e.message)
        return BatchSummary(failure=e.code, message=e.message)
    return BatchSummary(route=result.route, unresolved=result.unresolved, cancelled=result.cancelled)


def run_batch(
    image_paths: Sequence[Path],
    classifier: RoadNameClassifier,
    aggregator: RouteAggregator,
    detector: Optional[Detector] = None,
    cancel: Optional[threading.Event] = None,
    progress: Optional[Callable[[int, Path], None]] = None,
) -> BatchSummary:
    """Photos -> metadata + OCR -> road names -> Route, for one user-selected batch."""
    records = build_records(image_paths, classifier, detector, cancel, progress)
    stopped = cancel is not None and cancel.is_set()
    summary = summarize(records, aggregator, cancel)
    summary.cancelled = summary.cancelled or stopped
    return summary
