"""Management command to rebuild the place location index."""

import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from server.apps.photos.exceptions import InvalidArgumentError
from server.apps.photos.infrastructure.places import JsonPlaceDirectory
from server.apps.photos.logic.geo_index import GeoIndex

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Replace indexed place locations with those from a JSON file."""

    help = 'Rebuild the place location index from a JSON place file'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            'path',
            help='JSON list of places: [{"id", "lat", "lng", "name"}]',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the sync command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        path = options['path']
        try:
            directory = JsonPlaceDirectory.from_file(path)
        except (InvalidArgumentError, OSError) as exc:
            raise CommandError(f'Cannot load places from {path}: {exc}') from exc

        indexed = GeoIndex().rebuild(directory)
        skipped = len(directory) - indexed

        self.stdout.write(
            self.style.SUCCESS(
                f'Indexed {indexed} places, {skipped} without location',
            ),
        )
