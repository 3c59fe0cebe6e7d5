"""YAML documents for the meta registers (datatype, field, register, registry).

Each `*.yaml` file in a register directory holds one item. The document is
validated against the register's document model, then flattened into a
RawRecord: list attributes are joined with ";" and unset attributes are
dropped, so it flows through the same canonicalizer as tabular rows.
"""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, TextIO, Type, Union, get_args, get_origin

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from regserializer.errors import DocumentFormatError, UnknownRegisterError
from regserializer.kernel.canonical import SEPARATOR, RawRecord
from regserializer.kernel.fields import Cardinality, Datatype, FieldDefinition, FieldMetadata

YAML_SUFFIX = ".yaml"

_NULL_TAG = "tag:yaml.org,2002:null"
_MERGE_TAG = "tag:yaml.org,2002:merge"


class ScalarTextLoader(yaml.SafeLoader):
    """SafeLoader that keeps plain scalars as their source text.

    Only null and merge keys are still resolved, so `1.10`, `2021-01-01`
    and `yes` reach the document models unchanged.
    """


ScalarTextLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag in (_NULL_TAG, _MERGE_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class RegisterDocument(BaseModel):
    """Base for meta register documents; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, populate_by_name=True)


class DatatypeDocument(RegisterDocument):
    datatype: Optional[str] = None
    phase: Optional[str] = None
    text: Optional[str] = None


class FieldDocument(RegisterDocument):
    cardinality: Optional[str] = None
    datatype: Optional[str] = None
    field: Optional[str] = None
    phase: Optional[str] = None
    register_name: Optional[str] = Field(default=None, alias="register")
    text: Optional[str] = None


class RegisterDefinitionDocument(RegisterDocument):
    copyright: Optional[str] = None
    fields: Optional[List[str]] = None
    phase: Optional[str] = None
    register_name: Optional[str] = Field(default=None, alias="register")
    registry: Optional[str] = None
    text: Optional[str] = None


class RegistryDocument(RegisterDocument):
    name: Optional[str] = None
    phase: Optional[str] = None
    registry: Optional[str] = None
    text: Optional[str] = None
    website: Optional[str] = None


DOCUMENT_TYPES: Dict[str, Type[RegisterDocument]] = {
    "datatype": DatatypeDocument,
    "field": FieldDocument,
    "register": RegisterDefinitionDocument,
    "registry": RegistryDocument,
}


def document_type(register_name: str) -> Type[RegisterDocument]:
    try:
        return DOCUMENT_TYPES[register_name]
    except KeyError:
        raise UnknownRegisterError(
            f"register name not recognised: '{register_name}' "
            f"(expected one of {sorted(DOCUMENT_TYPES)})"
        ) from None


def _is_list(annotation) -> bool:
    if get_origin(annotation) is Union:
        return any(_is_list(arg) for arg in get_args(annotation))
    return get_origin(annotation) is list


def document_fields(register_name: str) -> FieldMetadata:
    """Field metadata implied by a register's document model."""
    model = document_type(register_name)
    definitions = {}
    for name, info in model.model_fields.items():
        key = info.alias or name
        cardinality = Cardinality.MANY if _is_list(info.annotation) else Cardinality.ONE
        definitions[key] = FieldDefinition(cardinality=cardinality, datatype=Datatype.STRING, field=key)
    return FieldMetadata(definitions)


def parse_document(data, register_name: str) -> RawRecord:
    """Validate an already-parsed YAML document and flatten it."""
    model = document_type(register_name)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DocumentFormatError(
            f"{register_name} document must be a mapping, got {type(data).__name__}"
        )
    try:
        document = model.model_validate(data)
    except ValidationError as e:
        raise DocumentFormatError(f"invalid {register_name} document: {e}") from e

    pairs = []
    for name, value in document.model_dump(exclude_none=True, by_alias=True).items():
        if isinstance(value, list):
            value = SEPARATOR.join(value)
        pairs.append((name, value))
    return RawRecord.from_pairs(pairs)


def load_document(stream: Union[str, TextIO], register_name: str) -> RawRecord:
    """Parse one YAML document for `register_name` into a RawRecord."""
    try:
        data = yaml.load(stream, Loader=ScalarTextLoader)
    except yaml.YAMLError as e:
        raise DocumentFormatError(f"invalid YAML: {e}") from e
    except UnicodeDecodeError as e:
        raise DocumentFormatError(f"not valid UTF-8: {e}") from e
    return parse_document(data, register_name)


def iter_yaml_directory(directory: Union[str, Path]) -> Iterator[Path]:
    """Yield the directory's `*.yaml` files in file-name order."""
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"YAML directory not found: {directory}")
    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        if path.name.endswith(YAML_SUFFIX) and path.is_file():
            yield path


def register_name_for(directory: Union[str, Path]) -> str:
    """The register a YAML directory holds is named after the directory."""
    return Path(directory).resolve().name
