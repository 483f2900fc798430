"""Place directory collaborators.

Places are owned by another system. The photo store only needs their
identifiers and locations, plus a way to resolve an identifier for
display.
"""

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from server.apps.photos.exceptions import InvalidArgumentError
from server.apps.photos.values import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlaceRecord:
    """Place as exposed by a directory."""

    place_id: str
    location: GeoPoint | None
    name: str = ''


class PlaceDirectory(Protocol):
    """Source of place identifiers and locations."""

    def iter_locations(self) -> Iterator[tuple[str, GeoPoint | None]]:
        """Yield (place_id, location) pairs for every known place."""

    def get_place(self, place_id: str) -> PlaceRecord | None:
        """Resolve a place, returning None when it does not exist."""


class JsonPlaceDirectory:
    """Place directory loaded from a JSON file.

    Expected format::

        [{"id": "p1", "name": "Ferry Building", "lat": 37.79, "lng": -122.39}]

    Entries without both coordinates are kept but have no location.
    """

    def __init__(self, places: dict[str, PlaceRecord]) -> None:
        """Initialize from already parsed records.

        Args:
            places: Records keyed by place identifier.
        """
        self._places = places

    @classmethod
    def from_file(cls, path: Path | str) -> 'JsonPlaceDirectory':
        """Load a directory from a JSON file.

        Args:
            path: Path to the JSON file.

        Returns:
            Directory with every place in the file.

        Raises:
            InvalidArgumentError: If the file content is malformed.
            OSError: If the file cannot be read.
        """
        with Path(path).open(encoding='utf-8') as json_file:
            try:
                entries = json.load(json_file)
            except json.JSONDecodeError as error:
                raise InvalidArgumentError(
                    f'Invalid place file {path}: {error}',
                ) from error

        if not isinstance(entries, list):
            raise InvalidArgumentError(
                f'Place file {path} must contain a JSON list',
            )

        places: dict[str, PlaceRecord] = {}
        for entry in entries:
            record = _parse_entry(entry)
            places[record.place_id] = record

        logger.info('Loaded %d places from %s', len(places), path)
        return cls(places)

    def iter_locations(self) -> Iterator[tuple[str, GeoPoint | None]]:
        """Yield (place_id, location) pairs sorted by identifier."""
        for place_id in sorted(self._places):
            yield place_id, self._places[place_id].location

    def get_place(self, place_id: str) -> PlaceRecord | None:
        """Resolve a place by identifier."""
        return self._places.get(place_id)

    def __len__(self) -> int:
        """Number of places in the directory."""
        return len(self._places)


def _parse_entry(entry: object) -> PlaceRecord:
    if not isinstance(entry, dict) or not entry.get('id'):
        raise InvalidArgumentError(f'Place entry needs an id: {entry!r}')

    lat = entry.get('lat')
    lng = entry.get('lng')
    location = None
    if lat is not None and lng is not None:
        location = GeoPoint.from_dict({'lat': lat, 'lng': lng})

    return PlaceRecord(
        place_id=str(entry['id']),
        location=location,
        name=str(entry.get('name', '')),
    )
