"""Django admin configuration for photos app."""

from typing import Final

from django.contrib import admin
from django.db.models import Count, QuerySet
from django.http import HttpRequest

from server.apps.photos.models import PlaceLocation, StoredObject


_SIZE_UNITS: Final = ('KB', 'MB', 'GB')


def _format_bytes(size_bytes: int) -> str:
    """Payload length for the changelist, e.g. '1.5 MB'."""
    if size_bytes < 1024:
        return f'{size_bytes} B'

    scaled = float(size_bytes)
    for unit in _SIZE_UNITS:
        scaled /= 1024
        if scaled < 1024 or unit == _SIZE_UNITS[-1]:
            break
    return f'{scaled:.1f} {unit}'  # noqa: WPS441


@admin.register(StoredObject)
class StoredObjectAdmin(admin.ModelAdmin[StoredObject]):
    """Admin interface for StoredObject model.

    Stored objects are read-only here: payloads are written through the
    chunk store only.
    """

    list_display = [
        'id',
        'content_type',
        'size_display',
        'chunk_count',
        'place_display',
        'uploaded_at',
    ]

    list_filter = [
        'content_type',
        'uploaded_at',
    ]

    search_fields = [
        'id',
        'checksum_sha256',
    ]

    readonly_fields = [
        'id',
        'content_type',
        'metadata',
        'length',
        'chunk_size',
        'checksum_sha256',
        'uploaded_at',
        'modified_at',
    ]

    def size_display(self, obj: StoredObject) -> str:
        """Display payload size in human-readable format."""
        return _format_bytes(obj.length)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def chunk_count(self, obj: StoredObject) -> int:
        """Number of chunks holding the payload."""
        return obj.chunk_total  # type: ignore[attr-defined]
    chunk_count.short_description = 'Chunks'  # type: ignore[attr-defined]

    def place_display(self, obj: StoredObject) -> str:
        """Referenced place identifier, '-' when unset."""
        return obj.metadata.get('place') or '-'
    place_display.short_description = 'Place'  # type: ignore[attr-defined]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Objects are only created through the chunk store."""
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet[StoredObject]:
        """Annotate queryset with chunk counts.

        Args:
            request: HTTP request.

        Returns:
            Annotated QuerySet.
        """
        return super().get_queryset(request).annotate(
            chunk_total=Count('chunks'),
        )


@admin.register(PlaceLocation)
class PlaceLocationAdmin(admin.ModelAdmin[PlaceLocation]):
    """Admin interface for PlaceLocation model."""

    list_display = [
        'place_id',
        'latitude',
        'longitude',
        'indexed_at',
    ]

    search_fields = [
        'place_id',
    ]

    readonly_fields = ['indexed_at']
