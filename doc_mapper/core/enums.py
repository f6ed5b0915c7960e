"""Mapping enumerations."""

from __future__ import annotations

from enum import Enum


class EmbeddingMode(Enum):
    """How a mapped type is stored."""

    ROOT = "root"
    EMBEDDED = "embedded"


class FieldShape(Enum):
    """Storage shape of a mapped field."""

    SCALAR = "scalar"
    EMBEDDED = "embedded"
    REFERENCE = "reference"
    ARRAY = "array"
    LIST = "list"
    MAPPING = "mapping"
    BLOB = "blob"
