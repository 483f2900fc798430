"""Custom storage backend for S3-compatible chunk storage."""

import logging
import re
from typing import Any, Final, final, override

from storages.backends.s3 import S3Storage

from server.apps.photos.exceptions import InvalidArgumentError, StorageError

logger = logging.getLogger(__name__)

CHUNK_PREFIX: Final = 'chunks'

_CHUNK_KEY_PATTERN: Final = re.compile(
    rf'{CHUNK_PREFIX}/(?P<object_id>[0-9a-f]{{24}})/(?P<sequence>\d{{8}})',
)


def chunk_key(object_id: str, sequence: int) -> str:
    """Build the storage key of one chunk.

    Sequence numbers are zero padded so that a plain listing of an
    object's prefix returns chunks in assembly order.

    Args:
        object_id: Identifier of the owning stored object.
        sequence: Zero-based chunk index.

    Returns:
        Key such as 'chunks/65f0c1d2a3b4c5d6e7f80912/00000003'.
    """
    return f'{CHUNK_PREFIX}/{object_id}/{sequence:08d}'


def object_prefix(object_id: str) -> str:
    """Storage folder holding every chunk of an object."""
    return f'{CHUNK_PREFIX}/{object_id}'


def parse_chunk_key(name: str) -> tuple[str, int]:
    """Split a chunk key into its object identifier and sequence.

    Args:
        name: Storage key built by ``chunk_key``.

    Returns:
        (object_id, sequence) pair.

    Raises:
        InvalidArgumentError: If name is not a chunk key.
    """
    match = _CHUNK_KEY_PATTERN.fullmatch(name)
    if match is None:
        raise InvalidArgumentError(f'Not a chunk key: {name!r}')
    return match['object_id'], int(match['sequence'])


@final
class ChunkStorage(S3Storage):
    """S3 storage backend restricted to payload chunks.

    Only keys built by ``chunk_key`` are accepted. A chunk key is never
    renamed: an existing blob under the same key means two objects got
    the same identifier, which is reported instead of silently writing
    the chunk elsewhere.
    """

    @override
    def get_available_name(
        self,
        name: str,
        max_length: int | None = None,
    ) -> str:
        """Return name unchanged, refusing keys already taken.

        Raises:
            InvalidArgumentError: If name is not a chunk key.
            StorageError: If a blob already exists under name.
        """
        object_id, sequence = parse_chunk_key(name)
        if self.exists(name):
            logger.error(
                'Chunk %d of object %s already exists',
                sequence,
                object_id,
            )
            raise StorageError('save_chunk', object_id)
        return name

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Upload one chunk.

        Args:
            name: Chunk key.
            content: Chunk content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            The chunk key.

        Raises:
            InvalidArgumentError: If name is not a chunk key.
            StorageError: If the key is already taken.
        """
        object_id, sequence = parse_chunk_key(name)
        try:
            saved_name = super().save(name, content, max_length)
        except Exception:
            logger.exception(
                'Failed to upload chunk %d of object %s',
                sequence,
                object_id,
            )
            raise

        logger.debug('Uploaded chunk %d of object %s', sequence, object_id)
        return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete one chunk.

        Args:
            name: Chunk key.

        Raises:
            InvalidArgumentError: If name is not a chunk key.
        """
        object_id, sequence = parse_chunk_key(name)
        try:
            super().delete(name)
        except Exception:
            logger.exception(
                'Failed to delete chunk %d of object %s',
                sequence,
                object_id,
            )
            raise
        logger.debug('Deleted chunk %d of object %s', sequence, object_id)
