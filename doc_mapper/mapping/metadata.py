"""Type and field metadata.

Frozen dataclasses produced once per class by the TypeRegistry and reused by
the encoder and decoder for every call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from doc_mapper.core.enums import EmbeddingMode, FieldShape
from doc_mapper.core.key import Key
from doc_mapper.mapping.protocol import Codec


@dataclass(frozen=True)
class ValueSpec:
    """How one value (a field, or an element of a container field) is stored."""

    shape: FieldShape
    type: Any
    element: ValueSpec | None = None  # ARRAY/LIST elements, MAPPING values
    key_type: Any = None  # MAPPING keys
    container: type | None = None  # list, tuple, set, frozenset or dict
    codec: Codec | None = None  # BLOB


@dataclass(frozen=True)
class MappedField:
    """Metadata for a single mapped attribute."""

    name: str
    storage_name: str
    spec: ValueSpec
    is_id: bool = False
    immutable: bool = False
    constructor_arg: bool = False
    required: bool = False  # constructor argument without a default
    aliases: tuple[str, ...] = ()

    @property
    def shape(self) -> FieldShape:
        return self.spec.shape

    @property
    def element_type(self) -> Any:
        return self.spec.element.type if self.spec.element is not None else None

    @property
    def key_type(self) -> Any:
        return self.spec.key_type

    @property
    def load_names(self) -> tuple[str, ...]:
        """Storage names tried on decode, primary name first."""
        return (self.storage_name, *self.aliases)


@dataclass(frozen=True)
class MappedType:
    """Cached, validated metadata for a mapped class."""

    cls: type
    mode: EmbeddingMode
    discriminator: str
    fields: tuple[MappedField, ...]
    collection: str | None = None
    id_field: MappedField | None = None
    polymorphic: bool = False
    pydantic: bool = False
    constructor_fields: tuple[MappedField, ...] = field(default=(), repr=False)
    settable_fields: tuple[MappedField, ...] = field(default=(), repr=False)

    @property
    def is_root(self) -> bool:
        return self.mode is EmbeddingMode.ROOT

    @property
    def name(self) -> str:
        return self.cls.__name__

    def get_field(self, name: str) -> MappedField | None:
        """Look up a field by attribute name."""
        for mapped_field in self.fields:
            if mapped_field.name == name:
                return mapped_field
        return None

    def key_for(self, id_value: Any) -> Key:
        """Build the Key of an instance with the given identity value."""
        return Key(self.collection or self.name, id_value, self.cls)

    def new_instance(self, kwargs: dict[str, Any]) -> Any:
        """Run the construction step with the constructor-supplied values."""
        if self.pydantic:
            return self.cls.model_construct(**kwargs)  # type: ignore[attr-defined]
        return self.cls(**kwargs)
