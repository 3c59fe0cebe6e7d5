"""Public API for regserializer.

High-level functions that turn records into register log entries and
write them to a text stream. Each record yields a RecordResult; the caller
picks fail-fast or skip-and-continue when writing.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, TextIO, Tuple, Union

from pydantic import BaseModel, Field

from regserializer.adapters.tsv import split_tsv
from regserializer.adapters.yaml_docs import (
    document_fields,
    iter_yaml_directory,
    load_document,
    register_name_for,
)
from regserializer.codes import ErrorCode
from regserializer.config import ErrorPolicy
from regserializer.errors import (
    DocumentFormatError,
    EncodingFailure,
    MalformedMetadataError,
    MissingKeyError,
    SerializationError,
    UnknownFieldError,
)
from regserializer.kernel.canonical import RawRecord, canonicalize, field_order
from regserializer.kernel.entry import EntryFormat, LogEntry, build_entry, find_key, utc_timestamp
from regserializer.kernel.fields import FieldMetadata
from regserializer._internal.io.fields import load_field_metadata

logger = logging.getLogger(__name__)


class RecordIssue(BaseModel):
    """Why one record produced no entry."""
    index: int
    code: ErrorCode
    message: str
    field: Optional[str] = None


class RecordResult(BaseModel):
    """Outcome of serializing one record."""
    index: int  # Position of the record in the input, from 0
    ok: bool
    entry: Optional[LogEntry] = None
    issue: Optional[RecordIssue] = None


class SerializationSummary(BaseModel):
    """Counts for one serialization run."""
    written: int = 0
    skipped: int = 0
    issues: List[RecordIssue] = Field(default_factory=list)


def _normalize_path(path: Union[str, Path]) -> Path:
    return path if isinstance(path, Path) else Path(path)


def _as_fields(fields: Union[FieldMetadata, str, Path]) -> FieldMetadata:
    if isinstance(fields, FieldMetadata):
        return fields
    return load_field_metadata(_normalize_path(fields))


def _failure(index: int, code: ErrorCode, error: Exception) -> RecordResult:
    issue = RecordIssue(
        index=index,
        code=code,
        message=str(error),
        field=getattr(error, "field", None),
    )
    return RecordResult(index=index, ok=False, issue=issue)


def serialize_record(
    record: RawRecord,
    fields: FieldMetadata,
    timestamp: str,
    order: Optional[Tuple[int, ...]] = None,
    fmt: EntryFormat = EntryFormat.PLAIN,
    register_name: Optional[str] = None,
    index: int = 0,
) -> RecordResult:
    """Serialize one record into a log entry.

    Record-level failures are returned as an issue, never raised.

    Args:
        record: Record to serialize
        fields: Field metadata
        timestamp: ISO 8601 UTC timestamp for the entry line
        order: Precomputed field order for the record's field names
        fmt: Entry line layout
        register_name: Name of the key field (required for keyed entries)
        index: Position of the record in its input

    Returns:
        RecordResult with either an entry or an issue
    """
    try:
        canonical = canonicalize(record, fields, order)
        key = None
        if fmt is EntryFormat.KEYED:
            if register_name is None:
                raise ValueError("keyed entries need a register name")
            key = find_key(record, register_name)
        entry = build_entry(canonical, timestamp, fmt=fmt, key=key)
    except UnknownFieldError as e:
        return _failure(index, ErrorCode.UNKNOWN_FIELD, e)
    except MissingKeyError as e:
        return _failure(index, ErrorCode.MISSING_KEY, e)
    except MalformedMetadataError as e:
        return _failure(index, ErrorCode.MALFORMED_METADATA, e)
    except EncodingFailure as e:
        return _failure(index, ErrorCode.ENCODING_FAILURE, e)
    return RecordResult(index=index, ok=True, entry=entry)


def serialize_records(
    records: Iterable[RawRecord],
    fields: FieldMetadata,
    timestamp: Optional[str] = None,
    fmt: EntryFormat = EntryFormat.PLAIN,
    register_name: Optional[str] = None,
) -> Iterator[RecordResult]:
    """Serialize records lazily, yielding results in input order.

    The field order is computed once per distinct set of field names and
    reused for every record sharing it. Without a timestamp, the current
    UTC time is taken once for the whole run.
    """
    if fmt is EntryFormat.KEYED and register_name is None:
        raise ValueError("keyed entries need a register name")
    if timestamp is None:
        timestamp = utc_timestamp()
    orders: Dict[Tuple[str, ...], Tuple[int, ...]] = {}
    for index, record in enumerate(records):
        names = record.names
        order = orders.get(names)
        if order is None:
            order = orders[names] = field_order(names)
        yield serialize_record(
            record,
            fields,
            timestamp,
            order=order,
            fmt=fmt,
            register_name=register_name,
            index=index,
        )


def write_entries(
    results: Iterable[RecordResult],
    stream: TextIO,
    on_error: ErrorPolicy = ErrorPolicy.FAIL,
) -> SerializationSummary:
    """Write each entry's two lines to `stream`, in result order.

    Raises:
        SerializationError: on the first failed record when `on_error` is FAIL;
            nothing after it is written
    """
    summary = SerializationSummary()
    for result in results:
        if result.ok:
            stream.write(result.entry.render())
            summary.written += 1
            continue
        issue = result.issue
        if on_error is ErrorPolicy.FAIL:
            raise SerializationError(
                f"record {issue.index}: {issue.message}", index=issue.index, code=issue.code.value
            )
        logger.warning("skipping record %d: %s (%s)", issue.index, issue.message, issue.code.value)
        summary.skipped += 1
        summary.issues.append(issue)
    return summary


def _check_header(names: Tuple[str, ...], fields: FieldMetadata, on_error: ErrorPolicy) -> None:
    missing = fields.missing_fields(names)
    if not missing:
        return
    if on_error is ErrorPolicy.FAIL:
        raise UnknownFieldError(missing[0])
    logger.warning("header names fields with no metadata: %s", ", ".join(missing))


def serialize_tsv(
    fields: Union[FieldMetadata, str, Path],
    tsv_path: Union[str, Path],
    stream: TextIO,
    timestamp: Optional[str] = None,
    fmt: EntryFormat = EntryFormat.PLAIN,
    register_name: Optional[str] = None,
    on_error: ErrorPolicy = ErrorPolicy.FAIL,
) -> SerializationSummary:
    """Serialize every row of a tab-separated file to `stream`.

    Header names are checked against the metadata before any row is
    serialized; under FAIL an unknown name raises UnknownFieldError.
    """
    field_metadata = _as_fields(fields)
    tsv_path = _normalize_path(tsv_path)
    logger.info("serializing %s", tsv_path)
    with open(tsv_path, "r", encoding="utf-8", newline="") as f:
        names, records = split_tsv(f)
        _check_header(names, field_metadata, on_error)
        results = serialize_records(
            records,
            field_metadata,
            timestamp=timestamp,
            fmt=fmt,
            register_name=register_name,
        )
        summary = write_entries(results, stream, on_error=on_error)
    logger.info("wrote %d entries, skipped %d", summary.written, summary.skipped)
    return summary


def _yaml_results(
    paths: Iterable[Path],
    register_name: str,
    timestamp: str,
    fmt: EntryFormat,
) -> Iterator[RecordResult]:
    fields = document_fields(register_name)
    for index, path in enumerate(paths):
        logger.debug("reading %s", path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                record = load_document(f, register_name)
        except DocumentFormatError as e:
            yield _failure(index, ErrorCode.INVALID_DOCUMENT, DocumentFormatError(f"{path.name}: {e}"))
            continue
        except OSError as e:
            message = f"{path.name}: cannot read: {e.strerror or e}"
            yield _failure(index, ErrorCode.INVALID_DOCUMENT, DocumentFormatError(message))
            continue
        yield serialize_record(
            record,
            fields,
            timestamp,
            fmt=fmt,
            register_name=register_name,
            index=index,
        )


def serialize_yaml(
    yaml_dir: Union[str, Path],
    stream: TextIO,
    timestamp: Optional[str] = None,
    fmt: EntryFormat = EntryFormat.PLAIN,
    on_error: ErrorPolicy = ErrorPolicy.FAIL,
) -> SerializationSummary:
    """Serialize every `*.yaml` document in a register directory to `stream`.

    The directory's name selects the document type; keyed entries use the
    field of the same name as the key.
    """
    yaml_dir = _normalize_path(yaml_dir)
    register_name = register_name_for(yaml_dir)
    logger.info("serializing %s documents from %s", register_name, yaml_dir)
    # Resolve the document type before touching any file.
    document_fields(register_name)
    results = _yaml_results(
        iter_yaml_directory(yaml_dir),
        register_name,
        timestamp if timestamp is not None else utc_timestamp(),
        fmt,
    )
    summary = write_entries(results, stream, on_error=on_error)
    logger.info("wrote %d entries, skipped %d", summary.written, summary.skipped)
    return summary
