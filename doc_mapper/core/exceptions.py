"""DocMapper exception hierarchy.

Every mapping failure names the offending type and the dotted field path
from the top-level object, so it can be located without re-deriving
metadata. None of these errors is retried internally.
"""

from __future__ import annotations


class DocMapperError(Exception):
    """Base exception for all DocMapper errors."""


# --- Mapping ---


class MappingError(DocMapperError):
    """Base for metadata, encode and decode errors."""

    def __init__(self, type_name: str, detail: str, field_path: str = "") -> None:
        self.type_name = type_name
        self.field_path = field_path
        self.detail = detail
        location = f"{type_name}.{field_path}" if field_path else type_name
        super().__init__(f"{location}: {detail}")


class MissingIdentity(MappingError):
    """Raised when a root type has no identity field, or a document lacks one."""


class IdentityOnEmbedded(MappingError):
    """Raised when an embedded-only type declares an identity field."""


class UnnamedEmbedded(MappingError):
    """Raised when an embedded type needs an explicit name and has none."""


class UnsupportedEnclosure(MappingError):
    """Raised for classes that only exist inside a function body."""


class UnsupportedKeyType(MappingError):
    """Raised when a mapping key has no invertible string rendering."""


class UnresolvedReference(MappingError):
    """Raised when a referenced object has no identity value yet."""


class TypeMismatch(MappingError):
    """Raised when a stored value or discriminator disagrees with the declared type."""


class InvalidField(MappingError):
    """Raised for field declarations that cannot be mapped."""


class MissingConstructor(MappingError):
    """Raised when a type cannot be constructed from its mapped fields."""


# --- Storage ---


class StorageError(DocMapperError):
    """Base for storage collaborator errors."""


class EntityNotFoundError(StorageError):
    """Raised when a key does not resolve to a stored document."""

    def __init__(self, collection: str, key_value: object) -> None:
        self.collection = collection
        self.key_value = key_value
        super().__init__(f"No document with key {key_value!r} in '{collection}'")
