"""Field metadata I/O helpers (internal)."""

import json
from pathlib import Path
from typing import Union

from regserializer.errors import MalformedMetadataError
from regserializer.kernel.fields import FieldMetadata


def load_field_metadata(path: Union[str, Path]) -> FieldMetadata:
    """Load field metadata from a JSON file path."""
    fields_path = Path(path)
    data = fields_path.read_bytes()
    return field_metadata_from_json_bytes(data)


def field_metadata_from_json_bytes(data: bytes) -> FieldMetadata:
    """Parse field metadata from JSON bytes (pure, no I/O)."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedMetadataError(f"field metadata is not valid JSON: {e}") from e
    return FieldMetadata.from_dict(payload)
