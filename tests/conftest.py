"""Pytest configuration for tests.

No sys.path hacks - tests should import from installed regserializer package.
"""

import os
from pathlib import Path

import pytest

from regserializer.kernel.fields import FieldMetadata

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def simple_fields() -> FieldMetadata:
    """Fields a, b (single strings) and c (string list)."""
    return FieldMetadata.from_dict({
        "a": {"cardinality": "1", "datatype": "string"},
        "b": {"cardinality": "1", "datatype": "string"},
        "c": {"cardinality": "n", "datatype": "string"},
    })


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep REGSERIALIZER_* settings from the outer environment out of tests."""
    for name in list(os.environ):
        if name.startswith("REGSERIALIZER_"):
            monkeypatch.delenv(name)
