"""Canonical JSON for register records.

A record is rendered as one JSON object whose bytes are fully determined
by the record's content and the field metadata:

- keys in ascending code-point order (same as UTF-8 byte order)
- blank values omitted
- cardinality "n" values split on ";" into arrays; numeric datatypes are
  rendered as bare elements, everything else as strings
- only `"` and `\\` are escaped; all other text is emitted as raw UTF-8
- no whitespace between tokens

The JSON is assembled by hand rather than through `json.dumps` because
numeric list elements are inserted verbatim, without validation.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from regserializer.errors import EncodingFailure
from regserializer.kernel.fields import Cardinality, FieldDefinition, FieldMetadata

SEPARATOR = ";"


@dataclass(frozen=True)
class RawRecord:
    """Ordered (field name, raw value) pairs for one register entry."""

    pairs: Tuple[Tuple[str, str], ...]

    def __post_init__(self):
        seen = set()
        for name, value in self.pairs:
            if not isinstance(value, str):
                raise TypeError(f"raw value for '{name}' must be str, got {type(value).__name__}")
            if name in seen:
                raise ValueError(f"duplicate field name in record: '{name}'")
            seen.add(name)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "RawRecord":
        return cls(tuple((name, value) for name, value in pairs))

    @classmethod
    def from_row(cls, names: Sequence[str], values: Sequence[str]) -> "RawRecord":
        if len(names) != len(values):
            raise ValueError(f"row has {len(values)} values for {len(names)} field names")
        return cls(tuple(zip(names, values)))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.pairs)

    @property
    def values(self) -> Tuple[str, ...]:
        return tuple(value for _, value in self.pairs)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for field_name, value in self.pairs:
            if field_name == name:
                return value
        return default

    def __len__(self) -> int:
        return len(self.pairs)


def field_order(names: Sequence[str]) -> Tuple[int, ...]:
    """Return the permutation that visits `names` in ascending order.

    >>> field_order(["ba", "ca", "a"])
    (2, 0, 1)
    """
    return tuple(sorted(range(len(names)), key=lambda index: names[index]))


def is_blank(raw: str) -> bool:
    """True when a raw value counts as absent (empty or whitespace only)."""
    return not raw.strip()


def escape_value(text: str) -> str:
    """Escape backslashes and double quotes for embedding in a JSON string."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _quoted(text: str) -> str:
    return '"' + escape_value(text) + '"'


def encode_value(raw: str, definition: FieldDefinition) -> str:
    """Render one non-blank raw value as a JSON fragment.

    Args:
        raw: Raw field value (callers drop blank values first)
        definition: Definition of the field the value belongs to

    Returns:
        JSON string or array fragment
    """
    match definition.cardinality:
        case Cardinality.MANY:
            parts = raw.split(SEPARATOR)
            if definition.datatype.is_numeric:
                return "[" + ",".join(parts) + "]"
            return "[" + ",".join(_quoted(part) for part in parts) + "]"
        case Cardinality.ONE:
            return _quoted(raw)


def canonicalize(
    record: RawRecord,
    fields: FieldMetadata,
    order: Optional[Sequence[int]] = None,
) -> str:
    """Render a record as its canonical JSON object string.

    Args:
        record: Record to render
        fields: Metadata for every field with a non-blank value
        order: Precomputed `field_order(record.names)`; computed when omitted

    Returns:
        Canonical JSON string, `{}` when no value is present

    Raises:
        UnknownFieldError: if a present field has no definition
        EncodingFailure: if `order` does not match the record
    """
    if order is None:
        order = field_order(record.names)
    elif sorted(order) != list(range(len(record))):
        raise EncodingFailure(
            f"field order {tuple(order)!r} is not a permutation of a {len(record)}-field record"
        )

    parts = []
    for index in order:
        name, raw = record.pairs[index]
        if is_blank(raw):
            continue
        fragment = encode_value(raw, fields.lookup(name))
        parts.append(_quoted(name) + ":" + fragment)
    return "{" + ",".join(parts) + "}"
