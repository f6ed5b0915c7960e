"""Document tree helpers.

A document is an insertion-ordered ``dict`` of string keys to values, where
a value is None, bool, int, float, str, bytes, datetime, ObjectId,
Decimal128, a list of values, or a nested document. Storage drivers
exchange nothing else.

Dotted paths address nested values the way document stores do:

    lookup({"values": {"2": "b"}}, "values.2")  ->  "b"
    has_path({"tags": ["x", "y"]}, "tags.1")    ->  True
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from bson import ObjectId
from bson.decimal128 import Decimal128

Document = dict[str, Any]

DOCUMENT_SCALARS: tuple[type, ...] = (
    bool,
    int,
    float,
    str,
    bytes,
    datetime,
    ObjectId,
    Decimal128,
)

_MISSING = object()


def is_document_value(value: Any) -> bool:
    """Check whether ``value`` is a valid document tree value."""
    if value is None or isinstance(value, DOCUMENT_SCALARS):
        return True
    if isinstance(value, list):
        return all(is_document_value(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_document_value(v) for k, v in value.items())
    return False


def _walk(document: Document, path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def lookup(document: Document, path: str, default: Any = None) -> Any:
    """Return the value at a dotted path, or ``default`` when absent."""
    value = _walk(document, path)
    return default if value is _MISSING else value


def has_path(document: Document, path: str) -> bool:
    """Existence probe for a dotted path (an explicit None counts as present)."""
    return _walk(document, path) is not _MISSING
