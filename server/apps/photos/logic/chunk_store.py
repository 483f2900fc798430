"""Chunked payload storage with its metadata catalog.

Payloads are split into fixed-size chunks written to a Django storage
backend. The ``StoredObject`` row and its ``Chunk`` rows are created in
one database transaction after every blob is written, so an object
becomes visible only once it is complete.
"""

import hashlib
import logging
from collections.abc import Iterable
from typing import Any, BinaryIO, Final

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage
from django.db import DatabaseError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from server.apps.photos.exceptions import InvalidArgumentError, StorageError
from server.apps.photos.infrastructure.identifiers import (
    is_object_id,
    new_object_id,
)
from server.apps.photos.infrastructure.storage import chunk_key
from server.apps.photos.models import Chunk, StoredObject
from server.apps.photos.values import ObjectMetadata, PlaceRef

logger = logging.getLogger(__name__)

# Metadata fields usable in equality lookups, mapped to ORM lookups
_QUERYABLE_FIELDS: Final = {  # noqa: WPS407
    'place': 'metadata__place',
    'content_type': 'content_type',
}

_METADATA_COLUMNS: Final = ('id', 'content_type', 'metadata')

StoredEntry = tuple[str, ObjectMetadata]


def read_payload(payload: bytes | BinaryIO) -> bytes:
    """Read a whole payload into memory.

    File-like objects are rewound before and after reading.

    Args:
        payload: Raw bytes or a binary file-like object.

    Returns:
        Payload bytes.
    """
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)

    if payload.seekable():
        payload.seek(0)
    data = payload.read()
    if payload.seekable():
        payload.seek(0)
    return data


def _to_entries(rows: Iterable[tuple[str, str, Any]]) -> list[StoredEntry]:
    return [
        (object_id, ObjectMetadata.from_document(content_type, document))
        for object_id, content_type, document in rows
    ]


class ChunkStore:
    """Store payloads as ordered chunks plus one metadata record.

    Args:
        storage: Storage backend for chunk blobs. Defaults to the
            configured default storage (S3 in deployments).
        chunk_size: Maximum chunk size in bytes. Defaults to the
            ``PHOTOS_CHUNK_SIZE`` setting.
    """

    def __init__(
        self,
        storage: Storage | None = None,
        chunk_size: int | None = None,
    ) -> None:
        self._storage = default_storage if storage is None else storage
        if chunk_size is None:
            chunk_size = settings.PHOTOS_CHUNK_SIZE
        self._chunk_size = chunk_size
        if self._chunk_size <= 0:
            raise InvalidArgumentError(
                f'Chunk size must be positive: {self._chunk_size}',
            )

    @property
    def chunk_size(self) -> int:
        """Maximum chunk size in bytes."""
        return self._chunk_size

    def put(
        self,
        payload: bytes | BinaryIO,
        metadata: ObjectMetadata,
    ) -> str:
        """Store a payload and its metadata under a new identifier.

        Chunks are uploaded first, then the object and chunk rows are
        created in one transaction. On any failure the uploaded chunks
        are discarded and the object never becomes visible.

        Args:
            payload: Payload bytes or binary file-like object.
            metadata: Metadata to store with the payload.

        Returns:
            Identifier of the new object.

        Raises:
            StorageError: If a chunk upload or the database write fails.
        """
        data = read_payload(payload)
        object_id = new_object_id()
        saved_keys: list[str] = []
        sizes: list[int] = []

        logger.info(
            'Storing object %s: %d bytes in chunks of %d',
            object_id,
            len(data),
            self._chunk_size,
        )

        try:
            for sequence, offset in enumerate(
                range(0, len(data), self._chunk_size),
            ):
                piece = data[offset:offset + self._chunk_size]
                saved_keys.append(self._storage.save(
                    chunk_key(object_id, sequence),
                    ContentFile(piece),
                ))
                sizes.append(len(piece))

            with transaction.atomic():
                stored = StoredObject.objects.create(
                    id=object_id,
                    content_type=metadata.content_type,
                    metadata=metadata.to_document(),
                    length=len(data),
                    chunk_size=self._chunk_size,
                    checksum_sha256=hashlib.sha256(data).hexdigest(),
                )
                Chunk.objects.bulk_create([
                    Chunk(
                        parent=stored,
                        sequence=sequence,
                        storage_key=key,
                        size_bytes=size,
                    )
                    for sequence, (key, size) in enumerate(
                        zip(saved_keys, sizes, strict=True),
                    )
                ])
        except Exception as error:
            logger.exception(
                'Failed to store object %s, discarding %d chunks',
                object_id,
                len(saved_keys),
            )
            self._discard(saved_keys)
            raise StorageError('put', object_id) from error

        logger.info(
            'Stored object %s with %d chunks',
            object_id,
            len(saved_keys),
        )
        return object_id

    def get(self, object_id: str) -> tuple[bytes, ObjectMetadata] | None:
        """Reassemble a payload and return it with its metadata.

        Args:
            object_id: Object identifier.

        Returns:
            (payload, metadata), or None if the object does not exist.

        Raises:
            StorageError: If reading fails or the chunk set is corrupt.
        """
        stored = self._find_row(object_id)
        if stored is None:
            return None

        metadata = ObjectMetadata.from_document(
            stored.content_type,
            stored.metadata,
        )
        return self._assemble(stored), metadata

    def get_metadata(self, object_id: str) -> ObjectMetadata | None:
        """Return the metadata of an object without reading chunks."""
        if not is_object_id(object_id):
            return None

        try:
            row = StoredObject.objects.filter(
                pk=object_id.lower(),
            ).values_list(*_METADATA_COLUMNS).first()
        except DatabaseError as error:
            raise StorageError('get_metadata', object_id) from error

        if row is None:
            return None
        return _to_entries([row])[0][1]

    def fetch_payload(self, object_id: str) -> bytes | None:
        """Return only the reassembled payload of an object."""
        stored = self._find_row(object_id)
        if stored is None:
            return None
        return self._assemble(stored)

    def update_metadata(self, object_id: str, metadata: ObjectMetadata) -> bool:
        """Replace the metadata of an object, leaving chunks untouched.

        Content type and metadata document are written by one UPDATE
        statement, so concurrent readers see either the old or the new
        record, never a mix.

        Args:
            object_id: Object identifier.
            metadata: Complete replacement metadata.

        Returns:
            True if the object exists and was updated, False otherwise.

        Raises:
            StorageError: If the database write fails.
        """
        if not is_object_id(object_id):
            return False

        try:
            updated = StoredObject.objects.filter(
                pk=object_id.lower(),
            ).update(
                content_type=metadata.content_type,
                metadata=metadata.to_document(),
                modified_at=timezone.now(),
            )
        except DatabaseError as error:
            logger.exception('Failed to update metadata: %s', object_id)
            raise StorageError('update_metadata', object_id) from error

        if updated:
            logger.info('Updated metadata of object %s', object_id)
        return bool(updated)

    def delete(self, object_id: str) -> bool:
        """Delete an object, its chunk rows and its chunk blobs.

        Rows are removed first in one transaction; blobs are deleted
        afterwards. Blobs that fail to delete are logged as orphans and
        left for ``purge_orphan_chunks``.

        Args:
            object_id: Object identifier.

        Returns:
            True if the object existed, False otherwise.

        Raises:
            StorageError: If the database delete fails.
        """
        if not is_object_id(object_id):
            return False
        object_id = object_id.lower()

        try:
            with transaction.atomic():
                keys = list(
                    Chunk.objects.filter(
                        parent_id=object_id,
                    ).values_list('storage_key', flat=True),
                )
                _, deleted = StoredObject.objects.filter(
                    pk=object_id,
                ).delete()
        except DatabaseError as error:
            logger.exception('Failed to delete object: %s', object_id)
            raise StorageError('delete', object_id) from error

        if not deleted.get(StoredObject._meta.label):  # noqa: WPS437
            return False

        logger.info('Deleted object %s (%d chunks)', object_id, len(keys))
        self._discard(keys)
        return True

    def list_objects(
        self,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[StoredEntry]:
        """Enumerate objects in upload order.

        Args:
            skip: Number of objects to skip.
            limit: Maximum number of objects, None for no limit.

        Returns:
            List of (object_id, metadata) pairs.

        Raises:
            InvalidArgumentError: If skip or limit is negative.
        """
        if skip < 0:
            raise InvalidArgumentError(f'skip must not be negative: {skip}')
        if limit is not None and limit < 0:
            raise InvalidArgumentError(f'limit must not be negative: {limit}')

        queryset = self._ordered(StoredObject.objects.all())
        if limit is None:
            queryset = queryset[skip:]
        else:
            queryset = queryset[skip:skip + limit]
        return self._evaluate('list', queryset)

    def find_by(self, field: str, value: str | PlaceRef) -> list[StoredEntry]:
        """Find objects whose metadata field equals a value.

        Place identifiers are normalized the same way they are when
        stored, so surrounding whitespace does not prevent a match.

        Args:
            field: Metadata field name ('place' or 'content_type').
            value: Value to match.

        Returns:
            Matching (object_id, metadata) pairs in upload order.

        Raises:
            InvalidArgumentError: If the field is not queryable, or a
                place identifier is empty.
        """
        lookup = _QUERYABLE_FIELDS.get(field)
        if lookup is None:
            raise InvalidArgumentError(f'Field is not queryable: {field}')
        if field == 'place' and isinstance(value, str):
            value = PlaceRef.from_id(value)

        queryset = StoredObject.objects.filter(**{lookup: str(value)})
        return self._evaluate('find_by', self._ordered(queryset))

    def _ordered(self, queryset: QuerySet[StoredObject]) -> QuerySet[Any]:
        return queryset.order_by('uploaded_at', 'id').values_list(
            *_METADATA_COLUMNS,
        )

    def _evaluate(
        self,
        operation: str,
        queryset: QuerySet[Any],
    ) -> list[StoredEntry]:
        try:
            return _to_entries(queryset)
        except DatabaseError as error:
            raise StorageError(operation) from error

    def _find_row(self, object_id: str) -> StoredObject | None:
        if not is_object_id(object_id):
            return None
        try:
            return StoredObject.objects.filter(pk=object_id.lower()).first()
        except DatabaseError as error:
            raise StorageError('get', object_id) from error

    def _assemble(self, stored: StoredObject) -> bytes:
        """Concatenate chunk blobs in sequence order."""
        try:
            chunks = list(
                stored.chunks.order_by('sequence').values_list(
                    'sequence',
                    'storage_key',
                ),
            )
            parts = []
            for expected, (sequence, key) in enumerate(chunks):
                if sequence != expected:
                    raise StorageError('get', stored.id)
                with self._storage.open(key, 'rb') as blob:
                    parts.append(blob.read())
        except StorageError:
            logger.error('Chunk sequence gap in object %s', stored.id)
            raise
        except Exception as error:
            logger.exception('Failed to read chunks of object %s', stored.id)
            raise StorageError('get', stored.id) from error

        payload = b''.join(parts)
        if len(payload) != stored.length:
            logger.error(
                'Object %s is corrupt: expected %d bytes, read %d',
                stored.id,
                stored.length,
                len(payload),
            )
            raise StorageError('get', stored.id)
        return payload

    def _discard(self, keys: Iterable[str]) -> None:
        """Delete chunk blobs, best effort.

        Failures are logged and not raised: the rows are already gone
        and the leftover blobs are reclaimed by ``purge_orphan_chunks``.
        """
        for key in keys:
            try:
                self._storage.delete(key)
            except Exception:
                logger.exception('Failed to delete chunk, orphaned: %s', key)
