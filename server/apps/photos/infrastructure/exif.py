"""GPS extraction from JPEG EXIF tags."""

import io
import logging
import math
from collections.abc import Sequence
from typing import Any

from PIL import ExifTags, Image, UnidentifiedImageError

from server.apps.photos.exceptions import (
    ImageDecodeError,
    InvalidArgumentError,
    NoLocationDataError,
)
from server.apps.photos.values import GeoPoint

logger = logging.getLogger(__name__)

_NEGATIVE_REFS = frozenset(('S', 'W'))


def _to_degrees(values: Sequence[Any] | None, ref: Any) -> float | None:
    """Convert EXIF (degrees, minutes, seconds) rationals to decimal."""
    if not values or len(values) != 3:
        return None
    degrees, minutes, seconds = (float(part) for part in values)
    decimal = degrees + minutes / 60 + seconds / 3600
    if not math.isfinite(decimal):
        return None
    if isinstance(ref, bytes):
        ref = ref.decode('ascii', errors='ignore')
    if isinstance(ref, str) and ref.strip().upper() in _NEGATIVE_REFS:
        decimal = -decimal
    return decimal


def extract_gps(image_bytes: bytes) -> GeoPoint:
    """Read the location a JPEG photo was taken at.

    Args:
        image_bytes: Raw JPEG file content.

    Returns:
        Point built from the GPS latitude/longitude tags.

    Raises:
        ImageDecodeError: If the payload is not a decodable JPEG.
        NoLocationDataError: If the GPS tags are missing or unusable.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            if image.format != 'JPEG':
                raise ImageDecodeError(
                    f'Expected a JPEG image, got {image.format}',
                )
            gps_info = image.getexif().get_ifd(ExifTags.IFD.GPSInfo)
    except (UnidentifiedImageError, OSError, SyntaxError) as error:
        raise ImageDecodeError('Payload is not a decodable image') from error

    if not gps_info:
        raise NoLocationDataError('Image carries no GPS tags')

    try:
        lat = _to_degrees(
            gps_info.get(ExifTags.GPS.GPSLatitude),
            gps_info.get(ExifTags.GPS.GPSLatitudeRef),
        )
        lng = _to_degrees(
            gps_info.get(ExifTags.GPS.GPSLongitude),
            gps_info.get(ExifTags.GPS.GPSLongitudeRef),
        )
    except (TypeError, ValueError, ZeroDivisionError) as error:
        raise NoLocationDataError('Malformed GPS tags') from error

    if lat is None or lng is None:
        raise NoLocationDataError('Image has no GPS latitude/longitude')

    try:
        point = GeoPoint(lat=lat, lng=lng)
    except InvalidArgumentError as error:
        raise NoLocationDataError(str(error)) from error

    logger.debug('Extracted GPS location: %s, %s', point.lat, point.lng)
    return point
