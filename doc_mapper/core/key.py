"""Portable entity keys.

A Key names a stored root entity by its collection (type tag) and identity
value. Keys are what reference fields decode to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Stored form of a reference: {"$ref": type_tag, "$id": id}
REF_TAG = "$ref"
REF_ID = "$id"


@dataclass(frozen=True, order=True)
class Key:
    """Immutable (type_tag, id) pair identifying a stored entity.

    Equality, hashing and ordering only look at ``type_tag`` and ``id``.
    ``kind`` is the mapped class the key was built for, when known.
    """

    type_tag: str
    id: Any
    kind: type | None = field(default=None, compare=False, repr=False)

    def __repr__(self) -> str:
        return f"Key({self.type_tag!r}, {self.id!r})"
