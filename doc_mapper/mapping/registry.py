"""Type metadata registry - resolves and caches MappedType per class.

Resolution is lazy, idempotent and thread-safe. Metadata is computed outside
the lock; the first published entry wins, so two threads racing on the same
class may both compute it but only one result is ever observed. A class that
fails validation is never cached: every later ``resolve`` re-inspects it and
raises again until the class is fixed.

Discriminator names map back to classes through this registry (classes it has
resolved) and through the ``entity``/``embedded`` decorators (classes declared
at import time), then through the loaded subclasses of the declared type.
Unknown names are never imported dynamically.

Resolved root types are also indexed by collection, so a stored Key can be
matched to the identity type of the entity it names.
"""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any

from doc_mapper.core.enums import EmbeddingMode, FieldShape
from doc_mapper.core.exceptions import (
    IdentityOnEmbedded,
    InvalidField,
    MissingConstructor,
    MissingIdentity,
    UnnamedEmbedded,
    UnsupportedEnclosure,
)
from doc_mapper.core.options import MapperOptions
from doc_mapper.mapping.classifier import (
    ClassificationError,
    DeclaredField,
    classify,
    constructor_params,
    declared_fields,
    has_identity_marker,
    is_mappable,
    is_pydantic_model,
    unwrap,
)
from doc_mapper.mapping.markers import (
    AlsoLoad,
    Id,
    Property,
    Transient,
    declaration_of,
    declared_class,
    find_marker,
    qualified_name,
)
from doc_mapper.mapping.metadata import MappedField, MappedType

logger = logging.getLogger(__name__)


def _collection_of(cls: type) -> str:
    """Collection of a root class.

    The nearest declared root entity's name, else the name of the top-most
    mapped base that carries the Id() field. Subclasses share it.
    """
    for klass in cls.__mro__:
        declaration = declaration_of(klass)
        if declaration is not None and declaration.mode is EmbeddingMode.ROOT:
            return declaration.name or klass.__name__
    top = cls
    for klass in cls.__mro__[1:]:
        if is_mappable(klass) and has_identity_marker(klass):
            top = klass
    return top.__name__


def _find_subclass(base: type, name: str) -> type | None:
    pending = [base]
    while pending:
        cls = pending.pop(0)
        declaration = declaration_of(cls)
        explicit = declaration.discriminator if declaration is not None else None
        if (explicit or qualified_name(cls)) == name:
            return cls
        pending.extend(cls.__subclasses__())
    return None


class TypeRegistry:
    """Resolves classes to validated, immutable MappedType metadata.

    Args:
        options: Mapping options shared with the encoder and decoder.
    """

    def __init__(self, options: MapperOptions | None = None) -> None:
        self._options = options or MapperOptions()
        self._types: dict[type, MappedType] = {}
        self._discriminators: dict[str, type] = {}
        self._collections: dict[str, MappedType] = {}
        self._lock = threading.Lock()

    @property
    def options(self) -> MapperOptions:
        return self._options

    def resolve(self, cls: type) -> MappedType:
        """Return the MappedType of ``cls``, inspecting it on first use.

        Raises:
            MappingError: If the class fails validation.
        """
        mapped = self._types.get(cls)
        if mapped is not None:
            return mapped

        mapped = self._inspect(cls)
        with self._lock:
            published = self._types.setdefault(cls, mapped)
            self._discriminators.setdefault(published.discriminator, cls)
            if published.collection is not None:
                self._collections.setdefault(published.collection, published)
        if published is mapped:
            logger.debug(
                "Resolved %s as %s type with %d fields",
                qualified_name(cls),
                mapped.mode.value,
                len(mapped.fields),
            )
        return published

    def is_resolved(self, cls: type) -> bool:
        return cls in self._types

    def lookup_discriminator(self, name: str, base: Any = None) -> type | None:
        """Find the class registered under a discriminator name.

        Resolved and decorated classes are checked first, then the loaded
        subclasses of ``base``.
        """
        cls = self._discriminators.get(name) or declared_class(name)
        if cls is None and isinstance(base, type):
            cls = _find_subclass(base, name)
        return cls

    def lookup_collection(self, collection: str) -> MappedType | None:
        """Root metadata of a resolved type stored in ``collection``."""
        return self._collections.get(collection)

    def mode_of(self, cls: type) -> EmbeddingMode:
        """Embedding mode of a mapped class, without full resolution."""
        mapped = self._types.get(cls)
        if mapped is not None:
            return mapped.mode
        declaration = declaration_of(cls)
        if declaration is not None:
            return declaration.mode
        return EmbeddingMode.ROOT if has_identity_marker(cls) else EmbeddingMode.EMBEDDED

    def __len__(self) -> int:
        return len(self._types)

    # --- Inspection ---

    def _inspect(self, cls: type) -> MappedType:
        type_name = getattr(cls, "__name__", repr(cls))
        if not is_mappable(cls):
            raise InvalidField(
                type_name,
                "not a mapped class (decorate it, or use a dataclass or Pydantic model)",
            )

        declaration = declaration_of(cls)
        explicit_name = declaration.discriminator if declaration is not None else None
        if "<locals>" in cls.__qualname__ and explicit_name is None:
            raise UnsupportedEnclosure(
                type_name,
                f"'{cls.__qualname__}' is defined inside a function; "
                "give it an explicit name to map it",
            )

        mode = self.mode_of(cls)
        if (
            mode is EmbeddingMode.EMBEDDED
            and self._options.require_embedded_names
            and (declaration is None or declaration.name is None)
        ):
            raise UnnamedEmbedded(type_name, "embedded types must declare a name")

        try:
            declared = declared_fields(cls)
        except NameError as e:
            raise InvalidField(type_name, f"unresolvable annotation: {e}") from e

        fields = tuple(
            mapped_field
            for mapped_field in (self._build_field(cls, d) for d in declared)
            if mapped_field is not None
        )

        id_fields = [f for f in fields if f.is_id]
        if len(id_fields) > 1:
            raise InvalidField(
                type_name, f"multiple identity fields: {[f.name for f in id_fields]}"
            )
        id_field = id_fields[0] if id_fields else None
        if mode is EmbeddingMode.ROOT and id_field is None:
            raise MissingIdentity(type_name, "root entities need an Id() field")
        if mode is EmbeddingMode.EMBEDDED and id_field is not None:
            raise IdentityOnEmbedded(
                type_name, "embedded types cannot declare an identity field", id_field.name
            )

        pydantic = is_pydantic_model(cls)
        if not pydantic:
            names = {f.name for f in fields}
            missing = [
                name
                for name, required in constructor_params(cls).items()
                if required and name not in names
            ]
            if missing:
                raise MissingConstructor(
                    type_name, f"__init__ requires unmapped arguments {missing}"
                )

        polymorphic = (
            (declaration is not None and declaration.polymorphic)
            or inspect.isabstract(cls)
            or any(is_mappable(base) for base in cls.__mro__[1:])
        )

        return MappedType(
            cls=cls,
            mode=mode,
            discriminator=explicit_name or qualified_name(cls),
            fields=fields,
            collection=_collection_of(cls) if mode is EmbeddingMode.ROOT else None,
            id_field=id_field,
            polymorphic=polymorphic,
            pydantic=pydantic,
            constructor_fields=tuple(f for f in fields if f.constructor_arg),
            settable_fields=tuple(
                f for f in fields if not f.constructor_arg and not f.immutable
            ),
        )

    def _build_field(self, cls: type, declared: DeclaredField) -> MappedField | None:
        type_name = cls.__name__
        _, metadata, _ = unwrap(declared.hint)
        if find_marker(metadata, Transient) is not None:
            return None

        is_id = find_marker(metadata, Id) is not None
        if declared.immutable and not is_id and self._options.ignore_finals:
            return None

        try:
            spec = classify(declared.hint, self.mode_of)
        except (ClassificationError, NameError) as e:
            raise InvalidField(type_name, str(e), declared.name) from e

        if is_id and spec.shape is not FieldShape.SCALAR:
            raise InvalidField(
                type_name,
                f"identity field must be a scalar, not {spec.shape.value}",
                declared.name,
            )

        storage_name = declared.name
        aliases: list[str] = []
        prop = find_marker(metadata, Property)
        if prop is not None:
            storage_name = prop.name or storage_name
            aliases.extend(prop.also_load)
        for item in metadata:
            if isinstance(item, AlsoLoad):
                aliases.extend(item.names)
        if is_id:
            storage_name = self._options.id_key

        return MappedField(
            name=declared.name,
            storage_name=storage_name,
            spec=spec,
            is_id=is_id,
            immutable=declared.immutable,
            constructor_arg=declared.constructor_arg,
            required=declared.required,
            aliases=tuple(a for a in dict.fromkeys(aliases) if a != storage_name),
        )


def describe(mapped: MappedType) -> dict[str, Any]:
    """Summarize a MappedType as plain data (for debugging and logging)."""
    return {
        "class": qualified_name(mapped.cls),
        "mode": mapped.mode.value,
        "collection": mapped.collection,
        "discriminator": mapped.discriminator,
        "polymorphic": mapped.polymorphic,
        "fields": {f.name: (f.storage_name, f.shape.value) for f in mapped.fields},
    }
