from fractions import Fraction

import pytest
from PIL import UnidentifiedImageError
from PIL.TiffImagePlugin import IFDRational

from damage_assessor.core.ingestion.metadata import (
    ExifMetadataExtractor,
    capture_time,
    dms_to_degrees,
    gps_location,
)


def test_dms_to_degrees():
    assert dms_to_degrees((27, 28, Fraction(4770, 100)), "S") == pytest.approx(-27.479917, abs=1e-5)
    assert dms_to_degrees((153, 1, 30.0), "E") == pytest.approx(153.025, abs=1e-6)
    assert dms_to_degrees((1, 2), "N") is None
    assert dms_to_degrees(None, "N") is None


def test_gps_location():
    gps = {1: "S", 2: (33, 52, 7.68), 3: "E", 4: (151, 12, 33.48)}
    location = gps_location(gps)
    assert location.latitude == pytest.approx(-33.8688, abs=1e-4)
    assert location.longitude == pytest.approx(151.2093, abs=1e-4)


def test_gps_location_incomplete():
    assert gps_location({}) is None
    assert gps_location(None) is None
    assert gps_location({1: "S", 2: (33, 52, 7.68)}) is None


def test_gps_location_without_fix():
    no_fix = (IFDRational(0, 0),) * 3
    assert gps_location({1: "N", 2: no_fix, 3: "E", 4: no_fix}) is None
    assert gps_location({1: "S", 2: (33, 52, 7.68), 3: "E", 4: no_fix}) is None


def test_capture_time_prefers_original():
    tags = {"Image DateTime": "2024:05:02 10:00:00", "EXIF DateTimeOriginal": "2024:05:01 08:15:30"}
    assert capture_time(tags).isoformat() == "2024-05-01T08:15:30+00:00"


def test_capture_time_skips_malformed_values():
    tags = {"EXIF DateTimeOriginal": "0000:00:00 00:00:00", "Image DateTime": "2023:12:24 18:00:00"}
    assert capture_time(tags).isoformat() == "2023-12-24T18:00:00+00:00"
    assert capture_time({}) is None


def test_orientation_from_jpeg(make_image, make_jpeg):
    metadata = ExifMetadataExtractor().extract(make_image("Main/R1/02-Damage/a.jpg", make_jpeg(orientation=6)))
    assert metadata.orientation == 6
    assert metadata.location is None
    assert metadata.timestamp is None


def test_plain_jpeg_has_no_metadata(make_image, make_jpeg):
    metadata = ExifMetadataExtractor().extract(make_image("Main/R1/02-Damage/a.jpg", make_jpeg()))
    assert metadata.orientation is None
    assert metadata.location is None


def test_unreadable_image_raises(make_image):
    with pytest.raises(UnidentifiedImageError):
        ExifMetadataExtractor().extract(make_image("Main/R1/02-Damage/a.jpg", b"garbage"))
