from datetime import datetime

import pytest
from PIL import Image

from photo_route.metadata import (
    TAG_DATETIME,
    dms_to_decimal,
    gps_from_ifd,
    parse_exif_datetime,
    read_photo_metadata,
)


def test_dms_conversion_respects_hemisphere():
    assert dms_to_decimal((37, 33, 59.4), "N") == pytest.approx(37.5665)
    assert dms_to_decimal((126, 58, 40.8), b"E") == pytest.approx(126.978)
    assert dms_to_decimal((33, 52, 0), "S") == pytest.approx(-33.8667, abs=1e-4)
    assert dms_to_decimal(None, "N") is None


def test_gps_ifd_to_coordinate():
    coord = gps_from_ifd({1: "N", 2: (37, 33, 59.4), 3: "W", 4: (122, 0, 0)})
    assert coord.latitude == pytest.approx(37.5665)
    assert coord.longitude == pytest.approx(-122.0)
    assert gps_from_ifd({}) is None
    assert gps_from_ifd({1: "N", 2: (37, 0, 0)}) is None


def test_exif_datetime_parsing():
    assert parse_exif_datetime("2026:03:14 09:30:00") == datetime(2026, 3, 14, 9, 30)
    assert parse_exif_datetime(b"2026:03:14 09:30:00\x00") == datetime(2026, 3, 14, 9, 30)
    assert parse_exif_datetime("0000:00:00 00:00:00") is None
    assert parse_exif_datetime(None) is None


def test_reads_capture_time_from_jpeg(tmp_path):
    path = tmp_path / "sign.jpg"
    exif = Image.Exif()
    exif[TAG_DATETIME] = "2026:03:14 09:30:00"
    Image.new("RGB", (32, 16), "white").save(path, exif=exif)
    meta = read_photo_metadata(path)
    assert meta.captured_at == datetime(2026, 3, 14, 9, 30)
    assert meta.has_exif_time
    assert not meta.has_gps


def test_missing_exif_defaults_to_now(tmp_path):
    path = tmp_path / "plain.png"
    Image.new("RGB", (8, 8)).save(path)
    before = datetime.now()
    meta = read_photo_metadata(path)
    assert meta.captured_at >= before
    assert not meta.has_exif_time
    assert meta.coordinate is None


def test_unreadable_file_is_not_fatal(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image")
    meta = read_photo_metadata(path)
    assert meta.coordinate is None
