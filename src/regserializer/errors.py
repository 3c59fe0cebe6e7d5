"""Errors raised while turning register records into log entries."""

from typing import Optional


class RegSerializerError(Exception):
    """Base exception for regserializer."""


class UnknownFieldError(RegSerializerError, KeyError):
    """A record references a field name absent from the field metadata."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(field)

    def __str__(self) -> str:
        return f"unknown field '{self.field}': not present in field metadata"


class MalformedMetadataError(RegSerializerError, ValueError):
    """A field definition carries an unrecognized cardinality or datatype."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class EncodingFailure(RegSerializerError):
    """Canonical JSON could not be assembled from well-formed input."""


class MissingKeyError(RegSerializerError, KeyError):
    """The register-name field is absent from a record."""

    def __init__(self, register_name: str):
        self.field = register_name
        super().__init__(register_name)

    def __str__(self) -> str:
        return "failed to find field matching register name"


class TsvFormatError(RegSerializerError, ValueError):
    """A tab-separated input row does not line up with its header."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        super().__init__(f"line {line}: {message}" if line is not None else message)


class UnknownRegisterError(RegSerializerError, ValueError):
    """A YAML directory names a register with no known document type."""


class DocumentFormatError(RegSerializerError, ValueError):
    """A YAML document does not fit its register's document type."""


class SerializationError(RegSerializerError):
    """A record failed to serialize while running in fail-fast mode."""

    def __init__(self, message: str, index: int, code: str):
        self.index = index
        self.code = code
        super().__init__(message)
