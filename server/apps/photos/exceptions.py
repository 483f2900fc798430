"""Exceptions for photos app."""


class PhotoStoreError(Exception):
    """Base class for every error raised by the photo store."""


class StorageError(PhotoStoreError):
    """Raised when the database or the blob storage fails an operation."""

    def __init__(self, operation: str, object_id: str | None = None) -> None:
        """Initialize StorageError.

        Args:
            operation: Name of the failed store operation (e.g. 'put').
            object_id: Identifier of the affected object, if known.
        """
        self.operation = operation
        self.object_id = object_id

        if object_id is None:
            message = f'Storage operation failed: {operation}'
        else:
            message = f'Storage operation failed: {operation} ({object_id})'
        super().__init__(message)


class InvalidArgumentError(PhotoStoreError, ValueError):
    """Raised when an operation receives an argument it cannot act on."""


class ObjectNotFoundError(PhotoStoreError):
    """Raised when a persisted photo no longer exists in the store."""

    def __init__(self, object_id: str) -> None:
        """Initialize ObjectNotFoundError.

        Args:
            object_id: Identifier that could not be found.
        """
        self.object_id = object_id
        super().__init__(f'Stored object not found: {object_id}')


class UnreadableImageError(PhotoStoreError):
    """Raised when a location cannot be read from an image payload."""


class ImageDecodeError(UnreadableImageError):
    """Raised when the payload is not a decodable JPEG image."""


class NoLocationDataError(UnreadableImageError):
    """Raised when an image carries no usable GPS tags."""
