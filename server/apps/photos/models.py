"""Database models for photos app."""

from typing import Final, final, override

from django.db import models

# Constants for field max lengths
_OBJECT_ID_LENGTH: Final = 24  # 12 bytes, hex encoded
_CONTENT_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length
_STORAGE_KEY_MAX_LENGTH: Final = 255
_PLACE_ID_MAX_LENGTH: Final = 64


@final
class StoredObject(models.Model):
    """Stored payload descriptor, the metadata side of the chunk store.

    Payload bytes live in storage as ``Chunk`` blobs. The ``content_type``
    column and the ``metadata`` document are always replaced together in
    a single UPDATE so readers never see half of an update.
    """

    id = models.CharField(
        primary_key=True,
        max_length=_OBJECT_ID_LENGTH,
        editable=False,
        help_text='24 character hex object identifier',
    )

    content_type = models.CharField(
        max_length=_CONTENT_TYPE_MAX_LENGTH,
        db_index=True,
    )

    # {"location": {"lat": ..., "lng": ...}, "place": "<place id>"}
    metadata = models.JSONField(default=dict, blank=True)

    length = models.BigIntegerField(
        help_text='Payload size in bytes',
    )

    chunk_size = models.PositiveIntegerField(
        help_text='Maximum size of each chunk in bytes',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        help_text='SHA256 hash for integrity verification',
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Stored object'  # type: ignore[mutable-override]
        verbose_name_plural = 'Stored objects'  # type: ignore[mutable-override]
        ordering = ['uploaded_at', 'id']

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.id} ({self.content_type}, {self.length} bytes)'


@final
class Chunk(models.Model):
    """One fixed-size slice of a stored payload.

    Chunks are written once and never modified. Assembly order is the
    ``sequence`` column, not insertion order.
    """

    parent = models.ForeignKey(
        StoredObject,
        on_delete=models.CASCADE,
        related_name='chunks',
    )

    sequence = models.PositiveIntegerField()

    storage_key = models.CharField(
        max_length=_STORAGE_KEY_MAX_LENGTH,
        unique=True,
        help_text='Blob name in storage: chunks/{object_id}/{sequence}',
    )

    size_bytes = models.PositiveIntegerField()

    class Meta:
        """Model metadata."""

        verbose_name = 'Chunk'  # type: ignore[mutable-override]
        verbose_name_plural = 'Chunks'  # type: ignore[mutable-override]
        ordering = ['parent', 'sequence']

        constraints = [
            models.UniqueConstraint(
                fields=['parent', 'sequence'],
                name='chunks_parent_sequence_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.parent_id}#{self.sequence}'


@final
class PlaceLocation(models.Model):
    """Indexed location of an external place.

    This is a mirror kept for proximity queries; the place itself is
    owned elsewhere. The composite index on coordinates serves the
    bounding-box prefilter of nearest-place lookups.
    """

    place_id = models.CharField(
        max_length=_PLACE_ID_MAX_LENGTH,
        unique=True,
    )

    latitude = models.FloatField()
    longitude = models.FloatField()

    indexed_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Place location'  # type: ignore[mutable-override]
        verbose_name_plural = 'Place locations'  # type: ignore[mutable-override]
        ordering = ['place_id']

        indexes = [
            models.Index(
                fields=['latitude', 'longitude'],
                name='places_lat_lng_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.place_id} ({self.latitude}, {self.longitude})'
