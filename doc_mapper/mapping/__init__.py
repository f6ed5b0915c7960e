"""Mapping layer - transform objects into documents and back."""

from __future__ import annotations

from doc_mapper.mapping.decoder import DocumentDecoder
from doc_mapper.mapping.encoder import DocumentEncoder
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
from doc_mapper.mapping.metadata import MappedField, MappedType, ValueSpec
from doc_mapper.mapping.protocol import Codec, PickleCodec
from doc_mapper.mapping.registry import TypeRegistry, describe

__all__ = [
    "Mapper",
    "TypeRegistry",
    "describe",
    "DocumentEncoder",
    "DocumentDecoder",
    "MappedType",
    "MappedField",
    "ValueSpec",
    "Codec",
    "PickleCodec",
    "entity",
    "embedded",
    "Id",
    "Property",
    "AlsoLoad",
    "Embedded",
    "Reference",
    "Serialized",
    "Transient",
]
