"""Embedded photo metadata: GPS position, orientation and capture time."""

from __future__ import annotations

import io
import math
from datetime import datetime, timezone
from typing import Any, Protocol

import exifread
from PIL import Image

from damage_assessor.core.ingestion.schemas import ExtractedMetadata, GeoPoint
from damage_assessor.core.ingestion.sources import SourceFile

EXIF_DT_KEYS = ("EXIF DateTimeOriginal", "EXIF DateTimeDigitized", "Image DateTime")
EXIF_DT_FORMAT = "%Y:%m:%d %H:%M:%S"

GPS_IFD = 0x8825
ORIENTATION_TAG = 0x0112
GPS_LATITUDE_REF, GPS_LATITUDE = 1, 2
GPS_LONGITUDE_REF, GPS_LONGITUDE = 3, 4


class MetadataExtractor(Protocol):
    def extract(self, file: SourceFile) -> ExtractedMetadata: ...


def dms_to_degrees(values: Any, ref: str | None) -> float | None:
    """Degrees/minutes/seconds rationals to signed decimal degrees."""
    if not values or len(values) < 3:
        return None
    degrees, minutes, seconds = (float(v) for v in values[:3])
    result = degrees + minutes / 60 + seconds / 3600
    if ref and ref.strip().upper() in ("S", "W"):
        result = -result
    return result


def gps_location(gps_info: dict | None) -> GeoPoint | None:
    if not gps_info:
        return None
    lat = dms_to_degrees(gps_info.get(GPS_LATITUDE), gps_info.get(GPS_LATITUDE_REF))
    lon = dms_to_degrees(gps_info.get(GPS_LONGITUDE), gps_info.get(GPS_LONGITUDE_REF))
    if lat is None or lon is None:
        return None
    # IFDRational(0, 0) from cameras without a fix reads as nan
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return GeoPoint(latitude=lat, longitude=lon)


def capture_time(tags: dict[str, Any]) -> datetime | None:
    """First parseable EXIF date, read as UTC since EXIF carries no offset."""
    for key in EXIF_DT_KEYS:
        if key not in tags:
            continue
        try:
            parsed = datetime.strptime(str(tags[key]).strip(), EXIF_DT_FORMAT)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    return None


class ExifMetadataExtractor:
    """Reads GPS and orientation with Pillow, capture time with exifread.

    Raises whatever the image libraries raise for unreadable files; the
    pipeline decides how to degrade.
    """

    def extract(self, file: SourceFile) -> ExtractedMetadata:
        data = file.read_bytes()
        with Image.open(io.BytesIO(data)) as image:
            exif = image.getexif()
            gps_info = dict(exif.get_ifd(GPS_IFD))
            orientation = exif.get(ORIENTATION_TAG)

        tags = exifread.process_file(io.BytesIO(data), details=False)
        return ExtractedMetadata(
            location=gps_location(gps_info),
            orientation=int(orientation) if orientation is not None else None,
            timestamp=capture_time(tags),
        )
