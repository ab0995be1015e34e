from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Building numbers like "123" or "123-45" standing alone between spaces
_ISOLATED_DIGITS = re.compile(r"(?<!\S)\d+(?:-\d+)*(?!\S)")
_BRACKETED = re.compile(r"\([^)]*\)|\[[^\]]*\]|（[^）]*）")
_WS = re.compile(r"\s+")
# Romanized line of a bilingual sign: "Teheran-ro", "Gangnam-daero", "Teheran-ro 7-gil"
_ROMANIZED = re.compile(
    r"(?<![A-Za-z])[A-Za-z][A-Za-z.']*(?:[- ][A-Za-z.']+)*-(?:daero|ro|gil)"
    r"(?:\s*\d+(?:beon)?-?gil)?(?![A-Za-z])",
    re.IGNORECASE,
)


def strip_romanized(text: str) -> str:
    return _WS.sub(" ", _ROMANIZED.sub(" ", text or "")).strip()


def clean_road_text(text: str) -> str:
    """Normalize raw OCR text before it is scored as a road name.

    Collapses whitespace, drops bracketed annotations, the romanized half of
    bilingual signs and building numbers that stand alone. Digits fused to a
    suffix ("테헤란로7길") are kept.
    """
    cleaned = _WS.sub(" ", text or "").strip()
    cleaned = _BRACKETED.sub(" ", cleaned)
    cleaned = strip_romanized(cleaned)
    cleaned = _ISOLATED_DIGITS.sub(" ", _WS.sub(" ", cleaned))
    return _WS.sub(" ", cleaned).strip()


class BoundingBox(BaseModel):
    # normalized to the image size, origin top-left
    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    w: float = Field(ge=0.0, le=1.0)
    h: float = Field(ge=0.0, le=1.0)


class RecognizedCandidate(BaseModel):
    raw_text: str
    cleaned_text: str
    confidence: float = Field(ge=0.0, le=1.0)
    bbox: Optional[BoundingBox] = None
    has_digit: bool = False

    @classmethod
    def from_detection(
        cls, text: str, confidence: float, bbox: Optional[BoundingBox] = None
    ) -> "RecognizedCandidate":
        return cls(
            raw_text=text,
            cleaned_text=clean_road_text(text),
            confidence=min(1.0, max(0.0, confidence)),
            bbox=bbox,
            has_digit=any(ch.isdigit() for ch in text),
        )


class Coordinate(BaseModel):
    latitude: float
    longitude: float


LocationSource = Literal["gps", "geocoded"]


def _naive_local(value: datetime) -> datetime:
    # all capture times compare as naive local time
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class PhotoRecord(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    captured_at: datetime = Field(default_factory=datetime.now)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_source: Optional[LocationSource] = None
    road_name: Optional[str] = None
    ocr_confidence: float = 0.0
    road_name_edited: bool = False
    image_path: Optional[str] = None

    @field_validator("captured_at")
    @classmethod
    def local_capture_time(cls, value: datetime) -> datetime:
        return _naive_local(value)

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    def set_coordinate(self, coord: Coordinate, source: LocationSource) -> None:
        self.latitude = coord.latitude
        self.longitude = coord.longitude
        self.location_source = source

    def rename_road(self, name: Optional[str]) -> None:
        """Apply a user edit to the road name.

        A coordinate that was geocoded from the previous name no longer
        describes this record, so it is dropped and re-resolved on the next
        recalculation. GPS coordinates are kept. The OCR confidence belonged
        to the old name and is reset.
        """
        name = (name or "").strip() or None
        if name != self.road_name:
            self.ocr_confidence = 0.0
            if self.location_source == "geocoded":
                self.latitude = None
                self.longitude = None
                self.location_source = None
        self.road_name = name
        self.road_name_edited = True


class Route(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    date: datetime
    records: List[PhotoRecord] = Field(default_factory=list)
    coordinates: List[Coordinate] = Field(default_factory=list)
    total_distance_km: float = 0.0
    duration_s: float = 0.0
    road_names: List[str] = Field(default_factory=list)

    @field_validator("date")
    @classmethod
    def local_date(cls, value: datetime) -> datetime:
        return _naive_local(value)

    @property
    def photo_count(self) -> int:
        return len(self.records)

    def find_record(self, record_id: str) -> Optional[PhotoRecord]:
        return next((r for r in self.records if r.id == record_id), None)

    def remove_records(self, record_ids: Iterable[str]) -> int:
        ids = set(record_ids)
        before = len(self.records)
        self.records = [r for r in self.records if r.id not in ids]
        return before - len(self.records)


UnresolvedReason = Literal["no_location_evidence", "geocoding_disabled", "not_found", "geocoder_error"]


class Unresolved(BaseModel):
    record_id: str
    road_name: Optional[str] = None
    reason: UnresolvedReason
    detail: Optional[str] = None


class BatchSummary(BaseModel):
    route: Optional[Route] = None
    failure: Optional[str] = None  # RouteError.code
    message: Optional[str] = None
    unresolved: List[Unresolved] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def failed_road_names(self) -> list[str]:
        seen: list[str] = []
        for u in self.unresolved:
            if u.road_name and u.reason in ("not_found", "geocoder_error") and u.road_name not in seen:
                seen.append(u.road_name)
        return seen
