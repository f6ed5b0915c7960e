"""Repository base class.

Thin wrapper over a Storage + Mapper for DDD-oriented usage: one repository
per root entity class, persisting encoded documents in the entity's
collection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from bson import ObjectId

from doc_mapper.core.cache import IdentityCache
from doc_mapper.core.exceptions import EntityNotFoundError, MissingIdentity, TypeMismatch
from doc_mapper.core.key import Key
from doc_mapper.core.storage import Storage
from doc_mapper.mapping.converters import ConversionError, encode_scalar
from doc_mapper.mapping.mapper import Mapper
from doc_mapper.mapping.metadata import MappedField, MappedType

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Repository(Generic[T]):
    """Repository for one root entity class.

    Reference fields of loaded entities stay Keys; use ``dereference`` to
    fetch the entity a Key points at.

    Args:
        storage: Document storage.
        entity_class: Root entity class managed by this repository.
        mapper: Mapper to encode/decode with. A default Mapper is created
            when omitted.
    """

    def __init__(
        self,
        storage: Storage,
        entity_class: type[T],
        mapper: Mapper | None = None,
    ) -> None:
        self.storage = storage
        self.entity_class = entity_class
        self.mapper = mapper or Mapper()
        self.metadata = self._root_metadata(entity_class)

    def save(self, obj: T) -> Key:
        """Encode and store ``obj``; returns its Key.

        An unset ObjectId identity is assigned a fresh ObjectId first.
        """
        mapped = self._root_metadata(type(obj))
        id_field = self._id_field(mapped)
        id_value = getattr(obj, id_field.name, None)
        if id_value is None:
            if id_field.spec.type is not ObjectId or id_field.immutable:
                raise MissingIdentity(mapped.name, "identity value is unset", id_field.name)
            id_value = ObjectId()
            setattr(obj, id_field.name, id_value)

        document = self.mapper.encode(obj)
        collection = mapped.collection or mapped.name
        self.storage.put(collection, document[id_field.storage_name], document)
        key = mapped.key_for(id_value)
        logger.debug("Saved %r", key)
        return key

    def get(self, id_value: Any, cache: IdentityCache | None = None) -> T:
        """Load the entity stored under ``id_value``.

        Raises:
            EntityNotFoundError: If nothing is stored under the id.
        """
        return self._load(self.metadata, id_value, cache)  # type: ignore[no-any-return]

    def get_by_key(self, key: Key, cache: IdentityCache | None = None) -> T:
        """Load the entity a Key points at, as this repository's class."""
        collection = self.metadata.collection or self.metadata.name
        if key.type_tag != collection:
            raise TypeMismatch(
                self.metadata.name,
                f"key {key!r} belongs to '{key.type_tag}', not '{collection}'",
            )
        return self.get(key.id, cache)

    def get_many(self, ids: Iterable[Any]) -> list[T]:
        """Load several entities sharing one identity cache."""
        cache = IdentityCache()
        return [self.get(id_value, cache) for id_value in ids]

    def exists(self, id_value: Any) -> bool:
        mapped = self.metadata
        storage_id = self._storage_id(mapped, id_value)
        return self.storage.get(mapped.collection or mapped.name, storage_id) is not None

    def dereference(
        self,
        key: Key,
        cls: type | None = None,
        cache: IdentityCache | None = None,
    ) -> Any:
        """Fetch and decode the entity ``key`` refers to.

        The target class is ``cls``, else the class the key was built for,
        else this repository's entity class.
        """
        target = cls or key.kind or self.entity_class
        mapped = self._root_metadata(target)
        storage_id = self._storage_id(mapped, key.id)
        document = self.storage.get(key.type_tag, storage_id)
        if document is None:
            raise EntityNotFoundError(key.type_tag, storage_id)
        return self.mapper.decode(target, document, cache)

    # --- Internals ---

    def _root_metadata(self, cls: type) -> MappedType:
        mapped = self.mapper.resolve(cls)
        if not mapped.is_root or mapped.id_field is None:
            raise TypeMismatch(mapped.name, "only root entities can be stored")
        return mapped

    @staticmethod
    def _id_field(mapped: MappedType) -> MappedField:
        if mapped.id_field is None:
            raise MissingIdentity(mapped.name, "root entities need an Id() field")
        return mapped.id_field

    def _load(self, mapped: MappedType, id_value: Any, cache: IdentityCache | None) -> Any:
        collection = mapped.collection or mapped.name
        storage_id = self._storage_id(mapped, id_value)
        document = self.storage.get(collection, storage_id)
        if document is None:
            raise EntityNotFoundError(collection, storage_id)
        return self.mapper.decode(mapped.cls, document, cache)

    @staticmethod
    def _storage_id(mapped: MappedType, id_value: Any) -> Any:
        """Document form of an identity value."""
        id_field = Repository._id_field(mapped)
        if id_field.spec.type is Any:
            return id_value
        try:
            return encode_scalar(id_field.spec.type, id_value)
        except ConversionError as e:
            raise TypeMismatch(mapped.name, str(e), id_field.name) from e
