"""DocMapper - object-document mapping core for document stores."""

from __future__ import annotations

from doc_mapper.core.cache import IdentityCache
from doc_mapper.core.document import Document, has_path, is_document_value, lookup
from doc_mapper.core.enums import EmbeddingMode, FieldShape
from doc_mapper.core.exceptions import (
    DocMapperError,
    EntityNotFoundError,
    IdentityOnEmbedded,
    InvalidField,
    MappingError,
    MissingConstructor,
    MissingIdentity,
    StorageError,
    TypeMismatch,
    UnnamedEmbedded,
    UnresolvedReference,
    UnsupportedEnclosure,
    UnsupportedKeyType,
)
from doc_mapper.core.key import Key
from doc_mapper.core.logging import configure_logging
from doc_mapper.core.options import MapperOptions
from doc_mapper.core.storage import MemoryStorage, Storage
from doc_mapper.mapping.mapper import Mapper
from doc_mapper.mapping.markers import (
    AlsoLoad,
    Embedded,
    Id,
    Property,
    Reference,
    Serialized,
    Transient,
    embedded,
    entity,
)
from doc_mapper.mapping.metadata import MappedField, MappedType
from doc_mapper.mapping.protocol import Codec, PickleCodec
from doc_mapper.mapping.registry import TypeRegistry
from doc_mapper.repository.base import Repository

__all__ = [
    # Configuration
    "MapperOptions",
    "configure_logging",
    # Mapping
    "Mapper",
    "TypeRegistry",
    "MappedType",
    "MappedField",
    "Codec",
    "PickleCodec",
    # Declarations
    "entity",
    "embedded",
    "Id",
    "Property",
    "AlsoLoad",
    "Embedded",
    "Reference",
    "Serialized",
    "Transient",
    # Identity
    "Key",
    "IdentityCache",
    # Documents
    "Document",
    "lookup",
    "has_path",
    "is_document_value",
    # Storage
    "Storage",
    "MemoryStorage",
    "Repository",
    # Enums
    "EmbeddingMode",
    "FieldShape",
    # Exceptions
    "DocMapperError",
    "MappingError",
    "MissingIdentity",
    "IdentityOnEmbedded",
    "UnnamedEmbedded",
    "UnsupportedEnclosure",
    "UnsupportedKeyType",
    "UnresolvedReference",
    "TypeMismatch",
    "InvalidField",
    "MissingConstructor",
    "StorageError",
    "EntityNotFoundError",
]
