"""regserializer: canonical, content-addressed register log entries."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("register-serializer")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from regserializer.api import (
    RecordIssue,
    RecordResult,
    SerializationSummary,
    serialize_record,
    serialize_records,
    serialize_tsv,
    serialize_yaml,
    write_entries,
)
from regserializer.codes import ErrorCode
from regserializer.config import ErrorPolicy, Settings
from regserializer.errors import (
    EncodingFailure,
    MalformedMetadataError,
    RegSerializerError,
    UnknownFieldError,
)
from regserializer.kernel.canonical import RawRecord, canonicalize, encode_value, field_order
from regserializer.kernel.entry import EntryFormat, LogEntry
from regserializer.kernel.fields import Cardinality, Datatype, FieldDefinition, FieldMetadata
from regserializer.kernel.hash_utils import hash_content

__all__ = [
    "__version__",
    "Cardinality",
    "Datatype",
    "EncodingFailure",
    "EntryFormat",
    "ErrorCode",
    "ErrorPolicy",
    "FieldDefinition",
    "FieldMetadata",
    "LogEntry",
    "MalformedMetadataError",
    "RawRecord",
    "RecordIssue",
    "RecordResult",
    "RegSerializerError",
    "SerializationSummary",
    "Settings",
    "UnknownFieldError",
    "canonicalize",
    "encode_value",
    "field_order",
    "hash_content",
    "serialize_record",
    "serialize_records",
    "serialize_tsv",
    "serialize_yaml",
    "write_entries",
]
