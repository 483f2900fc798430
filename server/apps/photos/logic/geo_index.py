"""Nearest-place lookups over indexed place locations."""

import logging

from django.db import DatabaseError, transaction
from django.db.models import Q

from server.apps.photos.exceptions import InvalidArgumentError, StorageError
from server.apps.photos.infrastructure.geo import bounding_box, haversine_m
from server.apps.photos.infrastructure.places import PlaceDirectory
from server.apps.photos.models import PlaceLocation
from server.apps.photos.values import GeoPoint

logger = logging.getLogger(__name__)


class GeoIndex:
    """Index of place locations answering nearest-within-radius queries.

    Candidates are fetched with a bounding-box range query on the
    indexed latitude/longitude columns, then ranked by great-circle
    distance. Ties on distance go to the smallest place identifier.
    """

    def upsert(self, place_id: str, point: GeoPoint | None) -> None:
        """Insert or replace the indexed location of a place.

        A place without a location is removed from the index, since it
        can never be a nearest-place candidate.

        Args:
            place_id: Place identifier.
            point: Place location, or None if unknown.

        Raises:
            InvalidArgumentError: If place_id is empty.
            StorageError: If the database write fails.
        """
        if not place_id:
            raise InvalidArgumentError('Place identifier cannot be empty')

        if point is None:
            self.remove(place_id)
            return

        try:
            PlaceLocation.objects.update_or_create(
                place_id=place_id,
                defaults={'latitude': point.lat, 'longitude': point.lng},
            )
        except DatabaseError as error:
            logger.exception('Failed to index place: %s', place_id)
            raise StorageError('upsert_place', place_id) from error

        logger.debug('Indexed place %s at %s, %s', place_id, point.lat, point.lng)

    def remove(self, place_id: str) -> bool:
        """Drop a place from the index.

        Returns:
            True if the place was indexed, False otherwise.
        """
        try:
            deleted, _ = PlaceLocation.objects.filter(place_id=place_id).delete()
        except DatabaseError as error:
            raise StorageError('remove_place', place_id) from error
        return bool(deleted)

    def location_of(self, place_id: str) -> GeoPoint | None:
        """Indexed location of a place, None if not indexed."""
        row = PlaceLocation.objects.filter(
            place_id=place_id,
        ).values_list('latitude', 'longitude').first()
        if row is None:
            return None
        return GeoPoint(lat=row[0], lng=row[1])

    def nearest_within(
        self,
        point: GeoPoint,
        max_distance: float,
    ) -> str | None:
        """Find the closest place within a radius.

        Args:
            point: Query location.
            max_distance: Radius in metres; places exactly at this
                distance are included.

        Returns:
            Identifier of the nearest place, or None if no place lies
            within max_distance.

        Raises:
            InvalidArgumentError: If max_distance is negative or NaN.
            StorageError: If the database query fails.
        """
        if not max_distance >= 0:
            raise InvalidArgumentError(
                f'max_distance must not be negative: {max_distance}',
            )

        box = bounding_box(point, max_distance)
        longitude_filter = Q()
        for low, high in box.longitude_ranges:
            longitude_filter |= Q(longitude__gte=low, longitude__lte=high)

        try:
            candidates = list(
                PlaceLocation.objects.filter(
                    longitude_filter,
                    latitude__gte=box.min_lat,
                    latitude__lte=box.max_lat,
                ).values_list('place_id', 'latitude', 'longitude'),
            )
        except DatabaseError as error:
            raise StorageError('nearest_within') from error

        best: tuple[float, str] | None = None
        for place_id, latitude, longitude in candidates:
            distance = haversine_m(point, GeoPoint(lat=latitude, lng=longitude))
            if distance > max_distance:
                continue
            if best is None or (distance, place_id) < best:
                best = (distance, place_id)

        logger.debug(
            'Nearest place to %s, %s within %sm: %s (%d candidates)',
            point.lat,
            point.lng,
            max_distance,
            best,
            len(candidates),
        )
        return None if best is None else best[1]

    def rebuild(self, directory: PlaceDirectory) -> int:
        """Replace the whole index with the locations of a directory.

        Args:
            directory: Source of (place_id, location) pairs.

        Returns:
            Number of indexed places.

        Raises:
            StorageError: If the database write fails.
        """
        rows = [
            PlaceLocation(
                place_id=place_id,
                latitude=location.lat,
                longitude=location.lng,
            )
            for place_id, location in directory.iter_locations()
            if location is not None
        ]

        try:
            with transaction.atomic():
                PlaceLocation.objects.all().delete()
                PlaceLocation.objects.bulk_create(rows)
        except DatabaseError as error:
            logger.exception('Failed to rebuild place index')
            raise StorageError('rebuild_place_index') from error

        logger.info('Rebuilt place index with %d places', len(rows))
        return len(rows)
