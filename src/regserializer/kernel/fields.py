"""Field metadata: cardinality and datatype per register field name.

Metadata is supplied from outside (a field register export) and is
never mutated once loaded. Tags are parsed into closed enums up front, so
encoding never meets an unrecognized cardinality or datatype.
"""

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from regserializer.errors import MalformedMetadataError, UnknownFieldError


class Cardinality(str, Enum):
    """Whether a field holds one value or a `;`-separated list."""

    ONE = "1"
    MANY = "n"


class Datatype(str, Enum):
    """Register primitive datatypes."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    NUMBER = "number"
    DECIMAL = "decimal"
    CURIE = "curie"
    URL = "url"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    PERIOD = "period"
    NAME = "name"
    HASH = "hash"
    POINT = "point"
    POLYGON = "polygon"
    MULTIPOLYGON = "multipolygon"

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_DATATYPES


_NUMERIC_DATATYPES = frozenset({Datatype.INTEGER, Datatype.NUMBER, Datatype.DECIMAL})


def _parse_tag(enum_cls, value: Any, kind: str, field: Optional[str]):
    try:
        return enum_cls(value)
    except ValueError:
        where = f" for field '{field}'" if field else ""
        raise MalformedMetadataError(
            f"unrecognized {kind} {value!r}{where}", field=field
        ) from None


class FieldDefinition(BaseModel):
    """Immutable definition of one register field."""

    cardinality: Cardinality
    datatype: Datatype
    field: Optional[str] = None
    phase: Optional[str] = None
    register_name: Optional[str] = Field(default=None, alias="register")
    text: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], field: Optional[str] = None) -> "FieldDefinition":
        """Build a definition from raw metadata, rejecting unknown tags.

        Raises:
            MalformedMetadataError: if cardinality or datatype is missing or unrecognized
        """
        if not isinstance(data, Mapping):
            raise MalformedMetadataError(
                f"field definition must be an object, got {type(data).__name__}", field=field
            )
        payload = dict(data)
        payload["cardinality"] = _parse_tag(Cardinality, data.get("cardinality"), "cardinality", field)
        payload["datatype"] = _parse_tag(Datatype, data.get("datatype"), "datatype", field)
        return cls(**payload)


def _unwrap_record(name: str, value: Any) -> Mapping[str, Any]:
    # A register record wraps its items: {"item": {...}} or {"item": [{...}, ...]}.
    if isinstance(value, Mapping) and "item" in value:
        item = value["item"]
        if isinstance(item, list):
            if not item:
                raise MalformedMetadataError(f"record for field '{name}' has no items", field=name)
            return item[-1]
        return item
    return value


class FieldMetadata(Mapping):
    """Read-only mapping of field name to FieldDefinition."""

    def __init__(self, definitions: Optional[Mapping[str, FieldDefinition]] = None):
        self._definitions = MappingProxyType(dict(definitions or {}))

    def __getitem__(self, name: str) -> FieldDefinition:
        return self._definitions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f"FieldMetadata({sorted(self._definitions)!r})"

    def lookup(self, name: str) -> FieldDefinition:
        """Return the definition for `name`.

        Raises:
            UnknownFieldError: if `name` has no definition
        """
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def missing_fields(self, names: Iterable[str]) -> List[str]:
        """Names with no definition, in input order."""
        return [name for name in names if name not in self._definitions]

    def contains_all(self, names: Iterable[str]) -> bool:
        return not self.missing_fields(names)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldMetadata":
        """Build metadata from a field-name keyed JSON object.

        Each value is either a flat definition or a register record whose
        `item` holds the definition (the last item wins).
        """
        if not isinstance(data, Mapping):
            raise MalformedMetadataError(
                f"field metadata must be an object keyed by field name, got {type(data).__name__}"
            )
        definitions: Dict[str, FieldDefinition] = {}
        for name, value in data.items():
            definitions[name] = FieldDefinition.from_dict(_unwrap_record(name, value), field=name)
        return cls(definitions)
