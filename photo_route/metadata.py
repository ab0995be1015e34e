from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from PIL import Image, UnidentifiedImageError

from .types import Coordinate


logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004
GPS_LAT_REF, GPS_LAT, GPS_LON_REF, GPS_LON = 1, 2, 3, 4

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


@dataclass
class PhotoMetadata:
    captured_at: datetime = field(default_factory=datetime.now)
    coordinate: Optional[Coordinate] = None
    has_exif_time: bool = False

    @property
    def has_gps(self) -> bool:
        return self.coordinate is not None


def parse_exif_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, bytes):
        value = value.decode("ascii", "ignore")
    if not isinstance(value, str):
        return None
    value = value.strip().rstrip("\x00")
    try:
        return datetime.strptime(value, EXIF_DATE_FORMAT)
    except ValueError:
        return None


def dms_to_decimal(dms: Any, ref: Any) -> Optional[float]:
    """Convert an EXIF (degrees, minutes, seconds) triple to signed degrees."""
    try:
        deg, minutes, seconds = (float(v) for v in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    value = deg + minutes / 60.0 + seconds / 3600.0
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", "ignore")
    if str(ref or "").strip().upper() in ("S", "W"):
        value = -value
    return value


def gps_from_ifd(gps: Mapping[int, Any]) -> Optional[Coordinate]:
    if not gps or GPS_LAT not in gps or GPS_LON not in gps:
        return None
    lat = dms_to_decimal(gps.get(GPS_LAT), gps.get(GPS_LAT_REF))
    lon = dms_to_decimal(gps.get(GPS_LON), gps.get(GPS_LON_REF))
    if lat is None or lon is None:
        return None
    return Coordinate(latitude=lat, longitude=lon)


def read_photo_metadata(image_path: str | Path) -> PhotoMetadata:
    """Capture time and GPS position from a photo's EXIF block.

    Missing or unreadable EXIF is not an error: the capture time falls back
    to now and the coordinate stays empty.
    """
    meta = PhotoMetadata()
    try:
        with Image.open(image_path) as im:
            exif = im.getexif()
            sub = exif.get_ifd(EXIF_IFD)
            gps = exif.get_ifd(GPS_IFD)
    except (OSError, UnidentifiedImageError) as e:
        logger.warning("Could not read EXIF from %s: %s", image_path, e)
        return meta

    for raw in (sub.get(TAG_DATETIME_ORIGINAL), sub.get(TAG_DATETIME_DIGITIZED), exif.get(TAG_DATETIME)):
        when = parse_exif_datetime(raw)
        if when is not None:
            meta.captured_at = when
            meta.has_exif_time = True
            break

    meta.coordinate = gps_from_ifd(gps)
    if not meta.has_exif_time:
        logger.debug("No EXIF capture time in %s; using now", image_path)
    return meta
