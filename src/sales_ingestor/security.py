"""
Security utilities for the Sales Ingestor service.

S3 event notifications deliver object keys URL-encoded (spaces arrive as
``+``). Every key taken from an inbound event passes through
``decode_s3_key`` and ``validate_object_key`` before it is used to fetch,
copy or delete an object, so a malformed notification cannot make the
pipeline address an object it never received.
"""

import urllib.parse

from .exceptions import InvalidObjectKeyError

# Control characters, including DEL
_INVALID_CONTROL_CHARS: set[int] = set(range(0x00, 0x20)) | {0x7F}

# S3 limit is 1024 bytes in UTF-8
_MAX_KEY_BYTES = 1024


def decode_s3_key(key: str) -> str:
    """
    Decode an object key as it appears in an S3 event notification.

    Examples:
        >>> decode_s3_key("incoming/sales+2024.csv")
        'incoming/sales 2024.csv'

        >>> decode_s3_key("incoming/q1%2B.csv")
        'incoming/q1+.csv'
    """
    return urllib.parse.unquote_plus(key)


def validate_object_key(key: str) -> str:
    """
    Check that a decoded key is usable as an S3 object key.

    Returns the key unchanged. Raises InvalidObjectKeyError when the key is
    not a string, is empty, exceeds the S3 length limit, or contains control
    characters.
    """
    if not isinstance(key, str):
        raise InvalidObjectKeyError(
            "S3 key is not a valid string",
            error_code="INVALID_S3_KEY_TYPE",
            context={"key": repr(key), "type": type(key).__name__},
        )

    if not key:
        raise InvalidObjectKeyError(
            "S3 key is empty",
            error_code="INVALID_S3_KEY_FORMAT",
            context={"key": key},
        )

    utf8_bytes = key.encode("utf-8")
    if len(utf8_bytes) > _MAX_KEY_BYTES:
        raise InvalidObjectKeyError(
            "S3 key exceeds byte length limit",
            error_code="INVALID_S3_KEY_LENGTH",
            context={"key": key[:64], "key_length": len(utf8_bytes)},
        )

    if any(ord(c) in _INVALID_CONTROL_CHARS for c in key):
        raise InvalidObjectKeyError(
            "S3 key contains invalid control characters",
            error_code="INVALID_S3_KEY_CHARACTER",
            context={"key": key.encode("unicode_escape").decode("ascii")},
        )

    return key
