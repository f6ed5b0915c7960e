"""Object-document mapper.

Entry point of the mapping core. Supports dataclasses, Pydantic models, and
decorated plain classes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeVar

from doc_mapper.core.cache import IdentityCache
from doc_mapper.core.document import Document
from doc_mapper.core.key import Key
from doc_mapper.core.options import MapperOptions
from doc_mapper.mapping.decoder import DocumentDecoder
from doc_mapper.mapping.encoder import DocumentEncoder
from doc_mapper.mapping.metadata import MappedType
from doc_mapper.mapping.registry import TypeRegistry

T = TypeVar("T")


class Mapper:
    """Encodes objects to documents and decodes them back.

    One Mapper owns one TypeRegistry; metadata is computed once per class and
    shared by every encode/decode call, from any thread.

    Args:
        options: Mapping options. Defaults to ``MapperOptions()``.
    """

    def __init__(self, options: MapperOptions | None = None) -> None:
        self.options = options or MapperOptions()
        self.registry = TypeRegistry(self.options)
        self._encoder = DocumentEncoder(self.registry)
        self._decoder = DocumentDecoder(self.registry)

    def resolve(self, cls: type) -> MappedType:
        """Return the validated metadata of ``cls``."""
        return self.registry.resolve(cls)

    def map(self, *classes: type) -> Mapper:
        """Resolve classes up front so bad mappings fail at startup."""
        for cls in classes:
            self.registry.resolve(cls)
        return self

    def encode(self, obj: Any) -> Document:
        """Encode a mapped object to a document."""
        return self._encoder.encode(obj)

    def decode(
        self,
        target_class: type[T],
        document: Document,
        cache: IdentityCache | None = None,
    ) -> T:
        """Decode a document to an instance of ``target_class``.

        Pass the same ``cache`` to several calls to share entity identity
        between them.
        """
        return self._decoder.decode(target_class, document, cache)

    def decode_many(
        self,
        target_class: type[T],
        documents: Iterable[Document],
        cache: IdentityCache | None = None,
    ) -> list[T]:
        """Decode documents with one shared identity cache."""
        if cache is None:
            cache = IdentityCache()
        return [self._decoder.decode(target_class, document, cache) for document in documents]

    def key_of(self, obj: Any) -> Key | None:
        """Key of a root entity, or None while its identity value is unset."""
        mapped = self.registry.resolve(type(obj))
        if mapped.id_field is None:
            return None
        id_value = getattr(obj, mapped.id_field.name, None)
        if id_value is None:
            return None
        return mapped.key_for(id_value)
