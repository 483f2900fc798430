"""Photo ingest, update and lookup on top of the chunk store."""

import logging
from collections.abc import Callable
from typing import BinaryIO

from django.conf import settings

from server.apps.photos.exceptions import (
    InvalidArgumentError,
    NoLocationDataError,
    ObjectNotFoundError,
)
from server.apps.photos.infrastructure.exif import extract_gps
from server.apps.photos.infrastructure.places import (
    PlaceDirectory,
    PlaceRecord,
)
from server.apps.photos.logic.chunk_store import ChunkStore, read_payload
from server.apps.photos.logic.geo_index import GeoIndex
from server.apps.photos.values import (
    GeoPoint,
    ObjectMetadata,
    Photo,
    PlaceRef,
)

logger = logging.getLogger(__name__)

ExifReader = Callable[[bytes], GeoPoint]


class PhotoObjectService:
    """Coordinate photo persistence across the store collaborators.

    The service keeps no state of its own. A ``Photo`` without an id is
    transient; its first save stores the payload and assigns the id.
    Later saves only replace metadata.

    Args:
        chunk_store: Payload and metadata storage.
        geo_index: Place location index.
        exif_reader: Callable extracting a location from JPEG bytes.
        place_directory: Optional directory resolving place references.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        geo_index: GeoIndex,
        exif_reader: ExifReader = extract_gps,
        place_directory: PlaceDirectory | None = None,
    ) -> None:
        self._chunk_store = chunk_store
        self._geo_index = geo_index
        self._exif_reader = exif_reader
        self._place_directory = place_directory

    def ingest(  # noqa: WPS211
        self,
        payload: bytes | BinaryIO,
        location: GeoPoint | None = None,
        place: PlaceRef | None = None,
        resolve_place: bool = False,
        max_distance: float | None = None,
    ) -> Photo:
        """Store a new photo.

        Args:
            payload: JPEG content.
            location: Explicit location, preferred over the EXIF one.
            place: Optional place reference.
            resolve_place: Look up the nearest indexed place when no
                place is given.
            max_distance: Search radius in metres for resolve_place,
                defaults to ``PHOTOS_NEAREST_PLACE_DISTANCE``.

        Returns:
            Persisted photo.

        Raises:
            ImageDecodeError: If the payload is not a JPEG image.
            NoLocationDataError: If no location is given and the image
                has no GPS tags.
            StorageError: If the store write fails.
        """
        return self.save(
            Photo(location=location, place=place),
            payload,
            resolve_place=resolve_place,
            max_distance=max_distance,
        )

    def save(  # noqa: WPS211
        self,
        photo: Photo,
        payload: bytes | BinaryIO | None = None,
        resolve_place: bool = False,
        max_distance: float | None = None,
    ) -> Photo:
        """Persist a photo, or update the metadata of a persisted one.

        For a persisted photo the payload argument is ignored: payload
        chunks are never rewritten once stored. The photo is modified
        only after the store write succeeds.

        Args:
            photo: Photo to save; updated in place.
            payload: JPEG content, required for transient photos.
            resolve_place: Look up the nearest indexed place when the
                photo has no place.
            max_distance: Search radius in metres for resolve_place,
                defaults to ``PHOTOS_NEAREST_PLACE_DISTANCE``.

        Returns:
            The same photo instance.

        Raises:
            InvalidArgumentError: If a transient photo has no payload.
            ObjectNotFoundError: If a persisted photo was deleted.
            ImageDecodeError: If the payload is not a JPEG image.
            NoLocationDataError: If no location can be determined.
            StorageError: If the store write fails.
        """
        if photo.is_persisted:
            if payload is not None:
                logger.warning(
                    'Ignoring new payload for persisted photo %s',
                    photo.id,
                )
            place = photo.place
            if resolve_place and place is None and photo.location is not None:
                place = self._nearest_ref(photo.location, max_distance)
            self._update(photo, place)
            return photo

        if payload is None:
            raise InvalidArgumentError('A new photo needs a payload')

        data = read_payload(payload)
        try:
            extracted = self._exif_reader(data)
        except NoLocationDataError:
            if photo.location is None:
                logger.warning('Rejected photo without location data')
                raise
            extracted = None

        location = extracted if photo.location is None else photo.location
        place = photo.place
        if resolve_place and place is None:
            place = self._nearest_ref(location, max_distance)

        metadata = ObjectMetadata(
            content_type=photo.content_type,
            location=location,
            place=place,
        )
        photo.id = self._chunk_store.put(data, metadata)
        photo.location = location
        photo.place = place
        logger.info('Ingested photo %s at %s', photo.id, location)
        return photo

    def retrieve(self, object_id: str) -> Photo | None:
        """Load a photo record without its payload."""
        metadata = self._chunk_store.get_metadata(object_id)
        if metadata is None:
            return None
        return Photo.from_stored(object_id.lower(), metadata)

    def fetch_payload(self, object_id: str) -> bytes | None:
        """Read the stored JPEG content of a photo."""
        return self._chunk_store.fetch_payload(object_id)

    def list_photos(
        self,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Photo]:
        """List stored photos in upload order."""
        return [
            Photo.from_stored(object_id, metadata)
            for object_id, metadata in self._chunk_store.list_objects(
                skip,
                limit,
            )
        ]

    def list_by_place(self, place: str | PlaceRef) -> list[Photo]:
        """List photos referencing a place."""
        return [
            Photo.from_stored(object_id, metadata)
            for object_id, metadata in self._chunk_store.find_by('place', place)
        ]

    def delete(self, object_id: str) -> bool:
        """Delete a photo and its payload.

        Returns:
            True if the photo existed, False otherwise.
        """
        return self._chunk_store.delete(object_id)

    def resolve_nearest_place(
        self,
        photo: Photo,
        max_distance: float,
    ) -> str | None:
        """Find the nearest indexed place to where a photo was taken.

        Args:
            photo: Photo with a location.
            max_distance: Search radius in metres, inclusive.

        Returns:
            Place identifier, or None if no place is close enough.

        Raises:
            InvalidArgumentError: If the photo has no location.
        """
        if photo.location is None:
            raise InvalidArgumentError(
                f'Photo {photo.id} has no location to search from',
            )
        return self._geo_index.nearest_within(photo.location, max_distance)

    def assign_nearest_place(
        self,
        photo: Photo,
        max_distance: float | None = None,
    ) -> Photo:
        """Set the place of a photo to the nearest indexed place.

        The place reference is cleared when nothing is in range. A
        persisted photo has its metadata saved.
        """
        if max_distance is None:
            max_distance = settings.PHOTOS_NEAREST_PLACE_DISTANCE
        place = PlaceRef.from_optional(
            self.resolve_nearest_place(photo, max_distance),
        )
        if photo.is_persisted:
            self._update(photo, place)
        else:
            photo.place = place
        return photo

    def get_place(self, photo: Photo) -> PlaceRecord | None:
        """Resolve the place a photo references.

        Returns:
            The place, or None if unset, unknown or no directory is
            configured.
        """
        if photo.place is None or self._place_directory is None:
            return None
        return self._place_directory.get_place(photo.place.place_id)

    def _nearest_ref(
        self,
        location: GeoPoint,
        max_distance: float | None,
    ) -> PlaceRef | None:
        if max_distance is None:
            max_distance = settings.PHOTOS_NEAREST_PLACE_DISTANCE
        return PlaceRef.from_optional(
            self._geo_index.nearest_within(location, max_distance),
        )

    def _update(self, photo: Photo, place: PlaceRef | None) -> None:
        metadata = ObjectMetadata(
            content_type=photo.content_type,
            location=photo.location,
            place=place,
        )
        if not self._chunk_store.update_metadata(photo.id, metadata):
            raise ObjectNotFoundError(photo.id)
        photo.place = place
