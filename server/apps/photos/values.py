"""Value types shared by the photo store layers.

These are plain dataclasses, independent from the ORM rows that persist
them. ``Photo`` is the in-memory record handed to callers; it never
carries payload bytes.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Final, Self

from server.apps.photos.exceptions import InvalidArgumentError

JPEG_CONTENT_TYPE: Final = 'image/jpeg'

_MAX_LATITUDE: Final = 90.0
_MAX_LONGITUDE: Final = 180.0


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Geographic point in decimal degrees (WGS84)."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        """Validate coordinate ranges.

        Raises:
            InvalidArgumentError: If a coordinate is not finite or is
                outside the valid latitude/longitude range.
        """
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise InvalidArgumentError(
                f'Coordinates must be finite: ({self.lat}, {self.lng})',
            )
        if abs(self.lat) > _MAX_LATITUDE:
            raise InvalidArgumentError(f'Latitude out of range: {self.lat}')
        if abs(self.lng) > _MAX_LONGITUDE:
            raise InvalidArgumentError(f'Longitude out of range: {self.lng}')

    def to_dict(self) -> dict[str, float]:
        """Serialize to the stored ``{lat, lng}`` form."""
        return {'lat': self.lat, 'lng': self.lng}

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> Self:
        """Build a point from the stored ``{lat, lng}`` form.

        Raises:
            InvalidArgumentError: If a key is missing or not a number.
        """
        try:
            return cls(lat=float(document['lat']), lng=float(document['lng']))
        except (KeyError, TypeError, ValueError) as error:
            raise InvalidArgumentError(
                f'Malformed location: {document!r}',
            ) from error


@dataclass(frozen=True, slots=True)
class PlaceRef:
    """Weak reference to a place, by identifier only.

    An unset reference is represented by ``None``, never by an empty
    ``PlaceRef``.
    """

    place_id: str

    def __post_init__(self) -> None:
        """Reject empty identifiers."""
        if not self.place_id or not self.place_id.strip():
            raise InvalidArgumentError('Place identifier cannot be empty')

    @classmethod
    def from_id(cls, place_id: str) -> Self:
        """Reference a place by its identifier string."""
        return cls(place_id=place_id.strip())

    @classmethod
    def from_optional(cls, place_id: str | None) -> Self | None:
        """Convert a stored identifier, ``None`` meaning unset."""
        if place_id is None:
            return None
        return cls.from_id(place_id)

    def __str__(self) -> str:
        """Identifier string."""
        return self.place_id


@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """Structured metadata stored next to a payload.

    Persisted as the ``content_type`` column plus a JSON document with
    optional ``location`` and ``place`` keys.
    """

    content_type: str = JPEG_CONTENT_TYPE
    location: GeoPoint | None = None
    place: PlaceRef | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialize location and place, omitting unset fields."""
        document: dict[str, Any] = {}
        if self.location is not None:
            document['location'] = self.location.to_dict()
        if self.place is not None:
            document['place'] = self.place.place_id
        return document

    @classmethod
    def from_document(
        cls,
        content_type: str,
        document: dict[str, Any] | None,
    ) -> Self:
        """Build metadata from the persisted column and JSON document."""
        document = document or {}
        location = document.get('location')
        return cls(
            content_type=content_type,
            location=GeoPoint.from_dict(location) if location else None,
            place=PlaceRef.from_optional(document.get('place')),
        )


@dataclass(slots=True)
class Photo:
    """Photo record: identifier plus metadata, without payload.

    A photo with ``id=None`` is transient; the first successful save
    assigns the identifier and it never changes afterwards.
    """

    id: str | None = None
    location: GeoPoint | None = None
    place: PlaceRef | None = None
    content_type: str = field(default=JPEG_CONTENT_TYPE)

    @property
    def is_persisted(self) -> bool:
        """Whether the photo has been written to the store."""
        return self.id is not None

    @property
    def metadata(self) -> ObjectMetadata:
        """Metadata snapshot of this record."""
        return ObjectMetadata(
            content_type=self.content_type,
            location=self.location,
            place=self.place,
        )

    @classmethod
    def from_stored(cls, object_id: str, metadata: ObjectMetadata) -> Self:
        """Rebuild a persisted photo from stored metadata."""
        return cls(
            id=object_id,
            location=metadata.location,
            place=metadata.place,
            content_type=metadata.content_type,
        )
