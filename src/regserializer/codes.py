"""Issue code constants for per-record serialization results.

These constants prevent stringly-typed error codes and ensure
client code branches on the right failure kind.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Per-record failure codes."""

    UNKNOWN_FIELD = "UNKNOWN_FIELD"
    MALFORMED_METADATA = "MALFORMED_METADATA"
    ENCODING_FAILURE = "ENCODING_FAILURE"
    MISSING_KEY = "MISSING_KEY"
    INVALID_DOCUMENT = "INVALID_DOCUMENT"
