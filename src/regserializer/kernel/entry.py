"""Register log entry lines.

One record becomes two tab-separated lines, always written item first:

    add-item<TAB>{canonical json}
    append-entry<TAB>2021-01-01T00:00:00Z<TAB>sha256:<hex>

The keyed format names the entry type and the record's key:

    append-entry<TAB>user<TAB><key><TAB><timestamp><TAB>sha-256:<hex>
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from regserializer.errors import MissingKeyError
from regserializer.kernel.canonical import RawRecord
from regserializer.kernel.hash_utils import ALGORITHM_TAG, hash_content

ADD_ITEM = "add-item"
APPEND_ENTRY = "append-entry"
ENTRY_TYPE_USER = "user"
KEYED_ALGORITHM_TAG = "sha-256"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class EntryFormat(str, Enum):
    """Layout of the append-entry line."""

    PLAIN = "plain"
    KEYED = "keyed"

    @property
    def hash_tag(self) -> str:
        return KEYED_ALGORITHM_TAG if self is EntryFormat.KEYED else ALGORITHM_TAG


class LogEntry(BaseModel):
    """One immutable register log entry: an item line and its entry line."""

    item_line: str
    entry_line: str
    content: str
    content_hash: str
    timestamp: str
    key: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def lines(self) -> Tuple[str, str]:
        return self.item_line, self.entry_line

    def render(self) -> str:
        """Both lines, newline terminated, as one string."""
        return f"{self.item_line}\n{self.entry_line}\n"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO 8601 UTC timestamp with a trailing Z, at second precision."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(TIMESTAMP_FORMAT)


def emit(
    canonical: str,
    content_hash: str,
    timestamp: str,
    key: Optional[str] = None,
) -> Tuple[str, str]:
    """Format (item_line, entry_line) for one record.

    With `key` set, the entry line uses the keyed layout.
    """
    item_line = "\t".join([ADD_ITEM, canonical])
    if key is None:
        entry_parts = [APPEND_ENTRY, timestamp, content_hash]
    else:
        entry_parts = [APPEND_ENTRY, ENTRY_TYPE_USER, key, timestamp, content_hash]
    return item_line, "\t".join(entry_parts)


def find_key(record: RawRecord, register_name: str) -> str:
    """Return the value of the field named after the register.

    Raises:
        MissingKeyError: if the record has no non-blank value for it
    """
    value = record.get(register_name)
    if value is None or not value.strip():
        raise MissingKeyError(register_name)
    return value


def build_entry(
    canonical: str,
    timestamp: str,
    fmt: EntryFormat = EntryFormat.PLAIN,
    key: Optional[str] = None,
) -> LogEntry:
    """Hash canonical JSON and format its log entry."""
    if fmt is EntryFormat.KEYED and key is None:
        raise ValueError("keyed entries need a key")
    if fmt is EntryFormat.PLAIN:
        key = None
    content_hash = hash_content(canonical, tag=fmt.hash_tag)
    item_line, entry_line = emit(canonical, content_hash, timestamp, key=key)
    return LogEntry(
        item_line=item_line,
        entry_line=entry_line,
        content=canonical,
        content_hash=content_hash,
        timestamp=timestamp,
        key=key,
    )
