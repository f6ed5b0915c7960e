"""Document -> object decoder.

Every root entity is registered in the IdentityCache under its Key before its
nested fields are decoded, so a document graph that re-enters an entity
(directly or through a cycle) resolves to the one instance instead of
recursing forever.

Construction is builder-style: constructor fields are read from the document
first and passed to a single construction step; the remaining mutable fields
are assigned afterwards. Immutable fields are never assigned after
construction.

An entity cannot be cached before its constructor runs, so a cycle that comes
back to an entity through one of its own constructor arguments cannot be
restored. It fails with TypeMismatch instead of producing a second, partial
instance.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, TypeVar

from doc_mapper.core.cache import IdentityCache
from doc_mapper.core.document import Document
from doc_mapper.core.enums import FieldShape
from doc_mapper.core.exceptions import (
    MissingConstructor,
    MissingIdentity,
    TypeMismatch,
    UnsupportedKeyType,
)
from doc_mapper.core.key import REF_ID, REF_TAG, Key
from doc_mapper.mapping.classifier import is_mappable
from doc_mapper.mapping.converters import (
    ConversionError,
    decode_key_id,
    decode_scalar,
    is_tagged_key_id,
    parse_key,
    supports_key_type,
)
from doc_mapper.mapping.metadata import MappedField, MappedType, ValueSpec
from doc_mapper.mapping.registry import TypeRegistry

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class _DecodeContext:
    """State of one top-level decode call."""

    root: str
    cache: IdentityCache
    constructing: set[Key] = field(default_factory=set)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _is_subtype(cls: type, target: Any) -> bool:
    if target is Any or target is object:
        return True
    try:
        return issubclass(cls, target)
    except TypeError:
        # Non-runtime protocols cannot be checked
        return True


class DocumentDecoder:
    """Converts documents back to mapped objects.

    Args:
        registry: Type registry used to resolve target classes.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry
        self._options = registry.options

    def decode(
        self,
        target_class: type[T],
        document: Document,
        cache: IdentityCache | None = None,
    ) -> T:
        """Decode a document into an instance of ``target_class``.

        Args:
            target_class: Declared type; the document's discriminator may
                name a subclass.
            document: Document to decode.
            cache: Identity cache to share across several decode calls.
                A fresh one is used when omitted.

        Raises:
            MappingError: On any metadata or value error. Cache entries
                registered before the failure stay in ``cache``.
        """
        if cache is None:
            cache = IdentityCache()
        root = getattr(target_class, "__name__", repr(target_class))
        context = _DecodeContext(root=root, cache=cache)
        instance: T = self._decode_object(target_class, document, "", context)
        return instance

    # --- Objects ---

    def _concrete_type(
        self, declared: Any, document: Document, path: str, context: _DecodeContext
    ) -> type:
        name = document.get(self._options.discriminator_key)
        if name is None:
            if declared is Any:
                raise TypeMismatch(
                    context.root, "untyped nested document has no discriminator", path
                )
            return declared  # type: ignore[no-any-return]
        if not isinstance(name, str):
            raise TypeMismatch(
                context.root, f"discriminator must be a string, got {type(name).__name__}", path
            )
        cls = self._registry.lookup_discriminator(name, declared)
        if cls is None:
            raise TypeMismatch(context.root, f"unknown discriminator '{name}'", path)
        if not _is_subtype(cls, declared):
            raise TypeMismatch(
                context.root,
                f"discriminator '{name}' names {cls.__name__}, "
                f"which is not a {getattr(declared, '__name__', declared)}",
                path,
            )
        return cls

    def _decode_object(
        self, declared: Any, document: Any, path: str, context: _DecodeContext
    ) -> Any:
        if not isinstance(document, dict):
            raise TypeMismatch(
                context.root, f"expected a document, got {type(document).__name__}", path
            )
        concrete = self._concrete_type(declared, document, path, context)
        mapped = self._registry.resolve(concrete)

        key = None
        if mapped.is_root and mapped.id_field is not None:
            raw_id = document.get(mapped.id_field.storage_name)
            if raw_id is None:
                if not path:
                    raise MissingIdentity(
                        context.root,
                        f"document has no '{mapped.id_field.storage_name}' value",
                    )
            else:
                id_path = _join(path, mapped.id_field.name)
                id_value = self._decode_value(raw_id, mapped.id_field.spec, id_path, context)
                key = mapped.key_for(id_value)
                cached = context.cache.get(key)
                if cached is not None:
                    logger.debug("Identity cache hit for %r at %s", key, path or "<root>")
                    return cached
                if key in context.constructing:
                    raise TypeMismatch(
                        context.root,
                        f"{key!r} is reached again through a constructor argument",
                        path,
                    )

        if inspect.isabstract(concrete):
            raise TypeMismatch(
                context.root,
                f"{mapped.name} is abstract and the document names no concrete type",
                path,
            )

        if key is not None:
            context.constructing.add(key)
        try:
            kwargs = self._constructor_args(mapped, document, path, context)
        finally:
            if key is not None:
                context.constructing.discard(key)

        try:
            instance = mapped.new_instance(kwargs)
        except TypeError as e:
            raise MissingConstructor(
                context.root, f"cannot construct {mapped.name}: {e}", path
            ) from e

        if key is not None:
            context.cache.put(key, instance)

        for mapped_field in mapped.settable_fields:
            raw = self._stored_value(mapped_field, document)
            if raw is None:
                continue
            field_path = _join(path, mapped_field.name)
            value = self._decode_value(raw, mapped_field.spec, field_path, context)
            setattr(instance, mapped_field.name, value)

        return instance

    def _constructor_args(
        self, mapped: MappedType, document: Document, path: str, context: _DecodeContext
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for mapped_field in mapped.constructor_fields:
            raw = self._stored_value(mapped_field, document)
            if raw is None:
                if mapped_field.required:
                    kwargs[mapped_field.name] = None
                continue
            kwargs[mapped_field.name] = self._decode_value(
                raw, mapped_field.spec, _join(path, mapped_field.name), context
            )
        return kwargs

    @staticmethod
    def _stored_value(mapped_field: MappedField, document: Document) -> Any:
        """Primary storage name first, then aliases in declared order.

        An explicit null counts as absent.
        """
        for name in mapped_field.load_names:
            value = document.get(name)
            if value is not None:
                return value
        return None

    # --- Values ---

    def _decode_value(self, raw: Any, spec: ValueSpec, path: str, context: _DecodeContext) -> Any:
        shape = spec.shape

        if shape is FieldShape.SCALAR:
            if spec.type is Any:
                return self._decode_dynamic(raw, path, context)
            try:
                return decode_scalar(spec.type, raw)
            except ConversionError as e:
                raise TypeMismatch(context.root, str(e), path) from e

        if shape is FieldShape.EMBEDDED:
            return self._decode_object(spec.type, raw, path, context)

        if shape is FieldShape.REFERENCE:
            return self._decode_reference(raw, spec, path, context)

        if shape in (FieldShape.ARRAY, FieldShape.LIST):
            if not isinstance(raw, list):
                raise TypeMismatch(
                    context.root, f"expected a list, got {type(raw).__name__}", path
                )
            element: ValueSpec = spec.element  # type: ignore[assignment]
            items = [
                None
                if item is None
                else self._decode_value(item, element, _join(path, str(index)), context)
                for index, item in enumerate(raw)
            ]
            container = spec.container or list
            return items if container is list else container(items)

        if shape is FieldShape.MAPPING:
            if not isinstance(raw, dict):
                raise TypeMismatch(
                    context.root, f"expected a document, got {type(raw).__name__}", path
                )
            if not supports_key_type(spec.key_type):
                raise UnsupportedKeyType(
                    context.root, f"map keys of type {spec.key_type!r} cannot be loaded", path
                )
            element = spec.element  # type: ignore[assignment]
            result: dict[Any, Any] = {}
            for storage_key, item in raw.items():
                try:
                    key = parse_key(spec.key_type, storage_key)
                except ConversionError as e:
                    raise TypeMismatch(context.root, str(e), path) from e
                result[key] = (
                    None
                    if item is None
                    else self._decode_value(item, element, _join(path, storage_key), context)
                )
            return result

        if shape is FieldShape.BLOB:
            if not isinstance(raw, bytes):
                raise TypeMismatch(
                    context.root, f"expected bytes, got {type(raw).__name__}", path
                )
            return spec.codec.decode(raw)  # type: ignore[union-attr]

        raise TypeMismatch(context.root, f"unknown shape {shape!r}", path)

    def _decode_reference(
        self, raw: Any, spec: ValueSpec, path: str, context: _DecodeContext
    ) -> Key:
        """Materialize a Key; dereferencing is left to the caller."""
        if not isinstance(raw, dict) or REF_TAG not in raw or REF_ID not in raw:
            raise TypeMismatch(context.root, "expected a reference document", path)
        type_tag = raw[REF_TAG]
        if not isinstance(type_tag, str):
            raise TypeMismatch(context.root, "reference type tag must be a string", path)

        kind = spec.type if is_mappable(spec.type) else None
        id_value = raw[REF_ID]
        if kind is None:
            return Key(type_tag, self._decode_key_id(type_tag, id_value, path, context))
        mapped: MappedType = self._registry.resolve(kind)
        if mapped.id_field is not None and id_value is not None:
            id_value = self._decode_value(id_value, mapped.id_field.spec, path, context)
        return Key(type_tag, id_value, kind)

    def _decode_key_id(
        self, type_tag: str, raw_id: Any, path: str, context: _DecodeContext
    ) -> Any:
        """Id of a Key whose entity type is not declared on the field."""
        if raw_id is None or is_tagged_key_id(raw_id):
            return decode_key_id(raw_id)
        mapped = self._registry.lookup_collection(type_tag)
        if mapped is None or mapped.id_field is None:
            return raw_id
        return self._decode_value(raw_id, mapped.id_field.spec, path, context)

    def _decode_dynamic(self, raw: Any, path: str, context: _DecodeContext) -> Any:
        """Decode a value declared as Any."""
        if isinstance(raw, dict):
            if self._options.discriminator_key in raw:
                return self._decode_object(Any, raw, path, context)
            if set(raw) == {REF_TAG, REF_ID} and isinstance(raw[REF_TAG], str):
                return Key(
                    raw[REF_TAG], self._decode_key_id(raw[REF_TAG], raw[REF_ID], path, context)
                )
            return {k: self._decode_dynamic(v, _join(path, k), context) for k, v in raw.items()}
        if isinstance(raw, list):
            return [
                self._decode_dynamic(item, _join(path, str(index)), context)
                for index, item in enumerate(raw)
            ]
        return raw
