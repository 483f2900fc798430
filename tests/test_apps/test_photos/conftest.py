"""Shared fixtures for photos app tests."""

import io
from collections.abc import Callable

import boto3
import pytest
from django.core.files.storage import InMemoryStorage
from moto import mock_aws
from PIL import ExifTags, Image

from server.apps.photos.infrastructure.storage import ChunkStorage
from server.apps.photos.logic.chunk_store import ChunkStore
from server.apps.photos.logic.geo_index import GeoIndex
from server.apps.photos.logic.photo_service import PhotoObjectService
from server.apps.photos.values import GeoPoint

SAN_FRANCISCO = GeoPoint(lat=37.7749, lng=-122.4194)

_TEST_BUCKET = 'photo-store'


def _to_dms(value: float) -> tuple[float, float, float]:
    """Split decimal degrees into EXIF (degrees, minutes, seconds)."""
    value = abs(value)
    degrees = int(value)
    minutes_full = (value - degrees) * 60
    minutes = int(minutes_full)
    seconds = round((minutes_full - minutes) * 60, 4)
    return float(degrees), float(minutes), seconds


def build_jpeg(
    location: GeoPoint | None = None,
    padding: int = 0,
    image_format: str = 'JPEG',
) -> bytes:
    """Build a small image, optionally geotagged.

    Args:
        location: GPS location to write into EXIF, if any.
        padding: Extra bytes appended after the image data.
        image_format: Pillow format name.

    Returns:
        Encoded image bytes.
    """
    image = Image.new('RGB', (16, 16), color=(200, 120, 40))
    save_options = {}
    if location is not None:
        exif = Image.Exif()
        exif[ExifTags.IFD.GPSInfo] = {
            ExifTags.GPS.GPSLatitudeRef: 'N' if location.lat >= 0 else 'S',
            ExifTags.GPS.GPSLatitude: _to_dms(location.lat),
            ExifTags.GPS.GPSLongitudeRef: 'E' if location.lng >= 0 else 'W',
            ExifTags.GPS.GPSLongitude: _to_dms(location.lng),
        }
        save_options['exif'] = exif

    buffer = io.BytesIO()
    image.save(buffer, format=image_format, **save_options)
    return buffer.getvalue() + b'\x00' * padding


@pytest.fixture
def jpeg_factory() -> Callable[..., bytes]:
    """Factory building test images.

    Returns:
        The ``build_jpeg`` helper.
    """
    return build_jpeg


@pytest.fixture
def geotagged_jpeg():
    """JPEG taken in San Francisco.

    Returns:
        JPEG bytes with GPS tags.
    """
    return build_jpeg(SAN_FRANCISCO)


@pytest.fixture
def plain_jpeg():
    """JPEG without GPS tags.

    Returns:
        JPEG bytes without EXIF data.
    """
    return build_jpeg()


@pytest.fixture
def memory_storage():
    """In-memory storage backend for chunk blobs.

    Returns:
        Empty InMemoryStorage.
    """
    return InMemoryStorage()


@pytest.fixture
def chunk_store(db, memory_storage):
    """Chunk store with tiny chunks so payloads span several chunks.

    Returns:
        ChunkStore writing 16-byte chunks to memory.
    """
    return ChunkStore(storage=memory_storage, chunk_size=16)


@pytest.fixture
def geo_index(db):
    """Empty place location index.

    Returns:
        GeoIndex instance.
    """
    return GeoIndex()


@pytest.fixture
def photo_service(db, memory_storage, geo_index):
    """Photo service over in-memory storage with default chunk size.

    Returns:
        PhotoObjectService instance.
    """
    return PhotoObjectService(
        chunk_store=ChunkStore(storage=memory_storage),
        geo_index=geo_index,
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with photo-store bucket.

    Yields:
        boto3 S3 resource with photo-store bucket created.
    """
    with mock_aws():
        # Create S3 resource
        conn = boto3.resource('s3', region_name='us-east-1')

        # Create bucket
        conn.create_bucket(Bucket=_TEST_BUCKET)

        yield conn


@pytest.fixture
def s3_storage(mock_s3):
    """Chunk storage backend pointed at the mocked bucket.

    Returns:
        ChunkStorage instance.
    """
    return ChunkStorage(
        bucket_name=_TEST_BUCKET,
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
        endpoint_url=None,
    )
