"""Object identifier generation and parsing.

Identifiers are 12 bytes: a 4-byte big-endian creation timestamp
followed by 8 random bytes. Their string form is 24 lowercase hex
characters, which converts back to the same bytes without loss.
"""

import re
import secrets
import time
from typing import Final

from server.apps.photos.exceptions import InvalidArgumentError

_TIMESTAMP_BYTES: Final = 4
_RANDOM_BYTES: Final = 8
OBJECT_ID_BYTES: Final = _TIMESTAMP_BYTES + _RANDOM_BYTES

_OBJECT_ID_PATTERN: Final = re.compile(r'[0-9a-fA-F]{24}')


def new_object_id() -> str:
    """Generate a fresh object identifier.

    Returns:
        24 character lowercase hex string.
    """
    timestamp = int(time.time()).to_bytes(_TIMESTAMP_BYTES, 'big')
    return object_id_from_bytes(
        timestamp + secrets.token_bytes(_RANDOM_BYTES),
    )


def parse_object_id(value: str) -> str:
    """Validate and normalize an identifier string.

    Args:
        value: Candidate identifier in either hex case.

    Returns:
        Normalized lowercase identifier.

    Raises:
        InvalidArgumentError: If value is not 24 hex characters.
    """
    if not isinstance(value, str) or not _OBJECT_ID_PATTERN.fullmatch(value):
        raise InvalidArgumentError(f'Malformed object identifier: {value!r}')
    return value.lower()


def is_object_id(value: str) -> bool:
    """Check whether value is a well-formed identifier."""
    return isinstance(value, str) and bool(_OBJECT_ID_PATTERN.fullmatch(value))


def object_id_to_bytes(value: str) -> bytes:
    """Binary form of an identifier."""
    return bytes.fromhex(parse_object_id(value))


def object_id_from_bytes(raw: bytes) -> str:
    """String form of a 12-byte binary identifier.

    Raises:
        InvalidArgumentError: If raw is not exactly 12 bytes.
    """
    if len(raw) != OBJECT_ID_BYTES:
        raise InvalidArgumentError(
            f'Object identifier must be {OBJECT_ID_BYTES} bytes, '
            f'got {len(raw)}',
        )
    return raw.hex()


def object_id_timestamp(value: str) -> int:
    """Creation time (unix seconds) encoded in an identifier."""
    raw = object_id_to_bytes(value)
    return int.from_bytes(raw[:_TIMESTAMP_BYTES], 'big')
