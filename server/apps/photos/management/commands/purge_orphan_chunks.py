"""Management command to delete chunk blobs no stored object references."""

import logging
import time
from typing import Any, Final

from django.core.files.storage import default_storage
from django.core.management.base import BaseCommand

from server.apps.photos.exceptions import InvalidArgumentError
from server.apps.photos.infrastructure.identifiers import (
    is_object_id,
    object_id_timestamp,
)
from server.apps.photos.infrastructure.storage import (
    CHUNK_PREFIX,
    object_prefix,
    parse_chunk_key,
)
from server.apps.photos.models import Chunk

# Uploads younger than this may still be in flight
_DEFAULT_MIN_AGE_MINUTES: Final = 60

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete chunk blobs left behind by failed or abandoned uploads."""

    help = 'Delete orphaned chunk blobs from storage'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--min-age-minutes',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Skip objects created less than this many minutes ago '
                f'(default: {_DEFAULT_MIN_AGE_MINUTES})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        cutoff = time.time() - options['min_age_minutes'] * 60

        try:
            object_dirs, _ = default_storage.listdir(CHUNK_PREFIX)
        except FileNotFoundError:
            object_dirs = []
        referenced = set(Chunk.objects.values_list('storage_key', flat=True))

        count = 0
        failed = 0

        for object_id in sorted(object_dirs):
            if not is_object_id(object_id):
                logger.warning('Skipping unexpected chunk folder: %s', object_id)
                continue
            if object_id_timestamp(object_id) > cutoff:
                continue

            prefix = object_prefix(object_id)
            _, names = default_storage.listdir(prefix)
            for name in sorted(names):
                key = f'{prefix}/{name}'
                if key in referenced:
                    continue
                try:
                    parse_chunk_key(key)
                except InvalidArgumentError:
                    logger.warning('Skipping unexpected chunk blob: %s', key)
                    continue

                if dry_run:
                    self.stdout.write(f'Would delete: {key}')
                    count += 1
                    continue

                try:
                    default_storage.delete(key)
                    count += 1
                    logger.info('Purged orphaned chunk: %s', key)
                except Exception as exc:
                    self.stderr.write(f'Failed to delete {key}: {exc}')
                    logger.exception('Failed to purge chunk: %s', key)
                    failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} orphaned chunks'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} orphaned chunks, {failed} failed',
                ),
            )
