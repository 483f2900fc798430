"""Tests for photo ingest and lookup."""

import math

import pytest

from server.apps.photos.exceptions import (
    ImageDecodeError,
    InvalidArgumentError,
    NoLocationDataError,
    ObjectNotFoundError,
    StorageError,
)
from server.apps.photos.infrastructure.geo import EARTH_RADIUS_M
from server.apps.photos.infrastructure.places import PlaceRecord
from server.apps.photos.logic.chunk_store import ChunkStore
from server.apps.photos.logic.photo_service import PhotoObjectService
from server.apps.photos.models import Chunk, StoredObject
from server.apps.photos.values import GeoPoint, Photo, PlaceRef

_SAN_FRANCISCO = GeoPoint(lat=37.7749, lng=-122.4194)
_ONE_MB = 1024 * 1024


def _north_of(point: GeoPoint, metres: float) -> GeoPoint:
    """Point the given distance due north along the meridian."""
    return GeoPoint(
        lat=point.lat + math.degrees(metres / EARTH_RADIUS_M),
        lng=point.lng,
    )


class _StaticDirectory:
    """Place directory over a fixed list of records."""

    def __init__(self, records):
        self._records = {record.place_id: record for record in records}

    def iter_locations(self):
        for place_id, record in self._records.items():
            yield place_id, record.location

    def get_place(self, place_id):
        return self._records.get(place_id)


@pytest.mark.django_db
class TestIngest:
    """Tests for storing new photos."""

    def test_location_from_exif(self, photo_service, jpeg_factory):
        """Test a 1MB geotagged JPEG gets its EXIF location."""
        payload = jpeg_factory(_SAN_FRANCISCO, padding=_ONE_MB)

        photo = photo_service.ingest(payload)

        assert photo.is_persisted
        assert photo.location.lat == pytest.approx(37.7749, abs=1e-5)
        assert photo.location.lng == pytest.approx(-122.4194, abs=1e-5)
        assert photo_service.retrieve(photo.id) == photo
        assert photo_service.fetch_payload(photo.id) == payload
        assert Chunk.objects.filter(parent_id=photo.id).count() == 5

    def test_explicit_location_wins(self, photo_service, geotagged_jpeg):
        """Test a caller-supplied location overrides EXIF."""
        explicit = GeoPoint(lat=40.7128, lng=-74.0060)

        photo = photo_service.ingest(geotagged_jpeg, location=explicit)

        assert photo.location == explicit
        assert photo_service.retrieve(photo.id).location == explicit

    def test_explicit_place(self, photo_service, geotagged_jpeg):
        """Test the place reference is stored with the photo."""
        photo = photo_service.ingest(geotagged_jpeg, place=PlaceRef('ferry'))

        assert photo_service.retrieve(photo.id).place == PlaceRef('ferry')

    def test_no_location_rejected(self, photo_service, plain_jpeg):
        """Test a photo without any location is not persisted."""
        with pytest.raises(NoLocationDataError):
            photo_service.ingest(plain_jpeg)

        assert photo_service.list_photos() == []
        assert StoredObject.objects.count() == 0

    def test_explicit_location_without_exif(self, photo_service, plain_jpeg):
        """Test an explicit location makes GPS tags optional."""
        explicit = GeoPoint(lat=51.5072, lng=-0.1276)

        photo = photo_service.ingest(plain_jpeg, location=explicit)

        assert photo_service.retrieve(photo.id).location == explicit

    def test_undecodable_payload(self, photo_service):
        """Test non-JPEG payloads are rejected even with a location."""
        with pytest.raises(ImageDecodeError):
            photo_service.ingest(b'not an image', location=_SAN_FRANCISCO)

        assert StoredObject.objects.count() == 0

    def test_new_photo_needs_payload(self, photo_service):
        """Test saving a transient photo without content fails."""
        with pytest.raises(InvalidArgumentError, match='payload'):
            photo_service.save(Photo(location=_SAN_FRANCISCO))

    def test_injected_exif_reader(self, db, memory_storage, geo_index):
        """Test the EXIF reader is a replaceable collaborator."""
        service = PhotoObjectService(
            chunk_store=ChunkStore(storage=memory_storage),
            geo_index=geo_index,
            exif_reader=lambda payload: GeoPoint(lat=1.0, lng=2.0),
        )

        photo = service.ingest(b'raw bytes')

        assert photo.location == GeoPoint(lat=1.0, lng=2.0)
        assert service.fetch_payload(photo.id) == b'raw bytes'


@pytest.mark.django_db
class TestSavePersisted:
    """Tests for saving photos that already have an identifier."""

    def test_resave_updates_metadata_only(
        self,
        photo_service,
        geotagged_jpeg,
        jpeg_factory,
    ):
        """Test a new payload is ignored for persisted photos."""
        photo = photo_service.ingest(geotagged_jpeg)
        original_id = photo.id
        other_payload = jpeg_factory(GeoPoint(lat=1.0, lng=1.0))

        photo.place = PlaceRef('ferry')
        photo_service.save(photo, other_payload)

        assert photo.id == original_id
        assert photo_service.fetch_payload(photo.id) == geotagged_jpeg
        assert photo_service.retrieve(photo.id).place == PlaceRef('ferry')
        assert StoredObject.objects.count() == 1

    def test_resave_can_clear_place(self, photo_service, geotagged_jpeg):
        """Test unsetting the place removes it from storage."""
        photo = photo_service.ingest(geotagged_jpeg, place=PlaceRef('ferry'))

        photo.place = None
        photo_service.save(photo)

        assert photo_service.retrieve(photo.id).place is None

    def test_resave_deleted_photo(self, photo_service, geotagged_jpeg):
        """Test saving a photo deleted meanwhile reports it missing."""
        photo = photo_service.ingest(geotagged_jpeg)
        photo_service.delete(photo.id)

        with pytest.raises(ObjectNotFoundError):
            photo_service.save(photo)


@pytest.mark.django_db
class TestReads:
    """Tests for retrieval, listing and deletion."""

    def test_retrieve_unknown(self, photo_service):
        """Test unknown identifiers are not found."""
        assert photo_service.retrieve('65f0c1d2a3b4c5d6e7f80912') is None
        assert photo_service.fetch_payload('65f0c1d2a3b4c5d6e7f80912') is None

    def test_delete_then_retrieve(self, photo_service, geotagged_jpeg):
        """Test deleted photos are not found."""
        photo = photo_service.ingest(geotagged_jpeg)

        assert photo_service.delete(photo.id)

        assert photo_service.retrieve(photo.id) is None
        assert photo_service.fetch_payload(photo.id) is None
        assert not photo_service.delete(photo.id)

    def test_list_photos(self, photo_service, geotagged_jpeg):
        """Test listing with paging."""
        photos = [photo_service.ingest(geotagged_jpeg) for _ in range(3)]

        listed = photo_service.list_photos()

        assert {photo.id for photo in listed} == {photo.id for photo in photos}
        assert len(photo_service.list_photos(skip=1, limit=1)) == 1

    def test_list_by_place(self, photo_service, geotagged_jpeg):
        """Test photos are found by place."""
        ferry = photo_service.ingest(geotagged_jpeg, place=PlaceRef('ferry'))
        photo_service.ingest(geotagged_jpeg, place=PlaceRef('alcatraz'))

        assert photo_service.list_by_place('ferry') == [ferry]
        assert photo_service.list_by_place(PlaceRef('ferry')) == [ferry]
        assert photo_service.list_by_place('missing') == []


@pytest.mark.django_db
class TestPlaces:
    """Tests for nearest-place resolution and place lookups."""

    def test_resolve_nearest_place(self, photo_service, geo_index):
        """Test the nearest place within range is resolved."""
        geo_index.upsert('near', _north_of(_SAN_FRANCISCO, 50))
        geo_index.upsert('far', _north_of(_SAN_FRANCISCO, 200))
        photo = Photo(location=_SAN_FRANCISCO)

        assert photo_service.resolve_nearest_place(photo, 100) == 'near'
        assert photo_service.resolve_nearest_place(photo, 40) is None

    def test_resolve_without_location(self, photo_service):
        """Test a photo without location cannot be resolved."""
        with pytest.raises(InvalidArgumentError, match='no location'):
            photo_service.resolve_nearest_place(Photo(), 100)

    def test_assign_nearest_place(self, photo_service, geo_index, geotagged_jpeg):
        """Test assigning the nearest place persists the reference."""
        photo = photo_service.ingest(geotagged_jpeg)
        geo_index.upsert('near', _north_of(photo.location, 50))

        photo_service.assign_nearest_place(photo, 100)

        assert photo.place == PlaceRef('near')
        assert photo_service.list_by_place('near') == [photo]

    def test_assign_nearest_place_out_of_range(
        self,
        photo_service,
        geo_index,
        geotagged_jpeg,
    ):
        """Test the place is cleared when nothing is in range."""
        photo = photo_service.ingest(geotagged_jpeg, place=PlaceRef('old'))
        geo_index.upsert('far', _north_of(photo.location, 5_000))

        photo_service.assign_nearest_place(photo, 100)

        assert photo.place is None
        assert photo_service.retrieve(photo.id).place is None

    def test_get_place(self, db, memory_storage, geo_index):
        """Test place references resolve through the directory."""
        ferry = PlaceRecord('ferry', _SAN_FRANCISCO, name='Ferry Building')
        service = PhotoObjectService(
            chunk_store=ChunkStore(storage=memory_storage),
            geo_index=geo_index,
            place_directory=_StaticDirectory([ferry]),
        )

        assert service.get_place(Photo(place=PlaceRef('ferry'))) == ferry
        assert service.get_place(Photo(place=PlaceRef('deleted'))) is None
        assert service.get_place(Photo()) is None

    def test_get_place_without_directory(self, photo_service):
        """Test place lookups without a directory find nothing."""
        assert photo_service.get_place(Photo(place=PlaceRef('ferry'))) is None


@pytest.mark.django_db
class TestIngestWithPlaceLookup:
    """Tests for resolving the place while ingesting."""

    def test_place_in_range_is_stored(
        self,
        photo_service,
        geo_index,
        geotagged_jpeg,
    ):
        """Test the nearest place is stored by the same write."""
        geo_index.upsert('near', _north_of(_SAN_FRANCISCO, 50))
        geo_index.upsert('far', _north_of(_SAN_FRANCISCO, 200))

        photo = photo_service.ingest(
            geotagged_jpeg,
            resolve_place=True,
            max_distance=100,
        )

        assert photo.place == PlaceRef('near')
        assert photo_service.list_by_place('near') == [photo]

    def test_place_out_of_range(self, photo_service, geo_index, geotagged_jpeg):
        """Test nothing in range leaves the place unset."""
        geo_index.upsert('far', _north_of(_SAN_FRANCISCO, 5_000))

        photo = photo_service.ingest(
            geotagged_jpeg,
            resolve_place=True,
            max_distance=100,
        )

        assert photo.place is None
        assert photo_service.retrieve(photo.id).place is None

    def test_explicit_place_wins(self, photo_service, geo_index, geotagged_jpeg):
        """Test a caller-supplied place is not replaced."""
        geo_index.upsert('near', _north_of(_SAN_FRANCISCO, 50))

        photo = photo_service.ingest(
            geotagged_jpeg,
            place=PlaceRef('ferry'),
            resolve_place=True,
        )

        assert photo_service.retrieve(photo.id).place == PlaceRef('ferry')

    def test_default_radius_from_settings(
        self,
        settings,
        photo_service,
        geo_index,
        geotagged_jpeg,
    ):
        """Test the search radius defaults to the configured distance."""
        settings.PHOTOS_NEAREST_PLACE_DISTANCE = 300.0
        geo_index.upsert('park', _north_of(_SAN_FRANCISCO, 250))

        photo = photo_service.ingest(geotagged_jpeg, resolve_place=True)

        assert photo.place == PlaceRef('park')

    def test_lookup_skipped_by_default(
        self,
        photo_service,
        geo_index,
        geotagged_jpeg,
    ):
        """Test places are only resolved on request."""
        geo_index.upsert('near', _north_of(_SAN_FRANCISCO, 50))

        photo = photo_service.ingest(geotagged_jpeg)

        assert photo.place is None

    def test_resave_resolves_missing_place(
        self,
        photo_service,
        geo_index,
        geotagged_jpeg,
    ):
        """Test a persisted photo gets its place on a resolving save."""
        photo = photo_service.ingest(geotagged_jpeg)
        geo_index.upsert('near', _north_of(photo.location, 50))

        photo_service.save(photo, resolve_place=True, max_distance=100)

        assert photo_service.retrieve(photo.id).place == PlaceRef('near')


class _BrokenChunkStore(ChunkStore):
    """Chunk store whose writes always fail."""

    def put(self, payload, metadata):
        raise StorageError('put')

    def update_metadata(self, object_id, metadata):
        raise StorageError('update_metadata', object_id)


@pytest.mark.django_db
class TestFailedWrites:
    """Tests that failed writes leave the caller's photo unchanged."""

    def test_failed_ingest_keeps_transient_photo(
        self,
        memory_storage,
        geo_index,
        geotagged_jpeg,
    ):
        """Test a failed first save assigns neither id nor location."""
        geo_index.upsert('near', _north_of(_SAN_FRANCISCO, 50))
        service = PhotoObjectService(
            chunk_store=_BrokenChunkStore(storage=memory_storage),
            geo_index=geo_index,
        )
        photo = Photo()

        with pytest.raises(StorageError):
            service.save(photo, geotagged_jpeg, resolve_place=True)

        assert photo == Photo()

    def test_failed_assign_keeps_place(
        self,
        memory_storage,
        geo_index,
    ):
        """Test a failed metadata write does not change the place."""
        geo_index.upsert('near', _north_of(_SAN_FRANCISCO, 50))
        service = PhotoObjectService(
            chunk_store=_BrokenChunkStore(storage=memory_storage),
            geo_index=geo_index,
        )
        photo = Photo(
            id='65f0c1d2a3b4c5d6e7f80912',
            location=_SAN_FRANCISCO,
            place=PlaceRef('old'),
        )

        with pytest.raises(StorageError):
            service.assign_nearest_place(photo, 100)

        assert photo.place == PlaceRef('old')
