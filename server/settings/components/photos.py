"""Photo store settings."""

from server.settings.components import config

# Size of a single stored chunk, 255 KiB keeps every chunk below 256 KiB
PHOTOS_CHUNK_SIZE = config('PHOTOS_CHUNK_SIZE', cast=int, default=255 * 1024)

# Default search radius (metres) when resolving the nearest place
PHOTOS_NEAREST_PLACE_DISTANCE = config(
    'PHOTOS_NEAREST_PLACE_DISTANCE',
    cast=float,
    default=1000.0,
)
