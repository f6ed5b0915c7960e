"""Object -> document encoder.

Walks MappedType metadata of the object's runtime class and produces a
document. ``None`` fields are never written. Nested objects carry a
discriminator only when their runtime class differs from the declared one;
a top-level document carries it when its type is polymorphic.

A root entity reached again while it is still being encoded (a cyclic graph
of embedded entities) is written as a stub holding only its identity, which
the decoder resolves through its identity cache.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from doc_mapper.core.document import DOCUMENT_SCALARS, Document
from doc_mapper.core.enums import FieldShape
from doc_mapper.core.exceptions import (
    TypeMismatch,
    UnresolvedReference,
    UnsupportedKeyType,
)
from doc_mapper.core.key import REF_ID, REF_TAG, Key
from doc_mapper.mapping.classifier import is_mappable
from doc_mapper.mapping.converters import (
    ConversionError,
    encode_key_id,
    encode_scalar,
    render_key,
    supports_key_type,
)
from doc_mapper.mapping.metadata import MappedType, ValueSpec
from doc_mapper.mapping.registry import TypeRegistry

logger = logging.getLogger(__name__)

_SKIP = object()


@dataclass
class _EncodeContext:
    """State of one top-level encode call."""

    root: str
    active: set[int] = field(default_factory=set)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


class DocumentEncoder:
    """Converts mapped objects to documents.

    Args:
        registry: Type registry used to resolve runtime classes.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry
        self._options = registry.options

    def encode(self, obj: Any) -> Document:
        """Encode a mapped object to a document.

        Never mutates ``obj`` and performs no I/O.

        Raises:
            MappingError: On any metadata or value error; no partial
                document is returned.
        """
        mapped = self._registry.resolve(type(obj))
        context = _EncodeContext(root=mapped.name)
        return self._encode_object(obj, mapped, mapped.polymorphic, "", context)

    # --- Objects ---

    def _encode_object(
        self,
        obj: Any,
        mapped: MappedType,
        with_discriminator: bool,
        path: str,
        context: _EncodeContext,
    ) -> Document:
        marker = id(obj)
        if marker in context.active:
            return self._encode_stub(obj, mapped, with_discriminator, path, context)

        document: Document = {}
        if with_discriminator:
            document[self._options.discriminator_key] = mapped.discriminator

        context.active.add(marker)
        try:
            for mapped_field in mapped.fields:
                value = getattr(obj, mapped_field.name, None)
                if value is None:
                    continue
                encoded = self._encode_value(
                    value, mapped_field.spec, _join(path, mapped_field.name), context
                )
                if encoded is not _SKIP:
                    document[mapped_field.storage_name] = encoded
        finally:
            context.active.discard(marker)
        return document

    def _encode_stub(
        self,
        obj: Any,
        mapped: MappedType,
        with_discriminator: bool,
        path: str,
        context: _EncodeContext,
    ) -> Document:
        id_field = mapped.id_field
        id_value = getattr(obj, id_field.name, None) if id_field is not None else None
        if id_field is None or id_value is None:
            raise UnresolvedReference(
                context.root,
                f"cyclic reference to a {mapped.name} without identity value",
                path,
            )
        logger.debug("Cycle at %s.%s: writing %s identity stub", context.root, path, mapped.name)
        document: Document = {}
        if with_discriminator:
            document[self._options.discriminator_key] = mapped.discriminator
        document[id_field.storage_name] = self._encode_value(
            id_value, id_field.spec, _join(path, id_field.name), context
        )
        return document

    # --- Values ---

    def _encode_value(self, value: Any, spec: ValueSpec, path: str, context: _EncodeContext) -> Any:
        shape = spec.shape

        if shape is FieldShape.SCALAR:
            if spec.type is Any:
                return self._encode_dynamic(value, path, context)
            try:
                return encode_scalar(spec.type, value)
            except ConversionError as e:
                raise TypeMismatch(context.root, str(e), path) from e

        if shape is FieldShape.EMBEDDED:
            if not isinstance(value, spec.type):
                raise TypeMismatch(
                    context.root,
                    f"expected {spec.type.__name__}, got {type(value).__name__}",
                    path,
                )
            runtime_cls = type(value)
            mapped = self._registry.resolve(runtime_cls)
            return self._encode_object(value, mapped, runtime_cls is not spec.type, path, context)

        if shape is FieldShape.REFERENCE:
            return self._encode_reference(value, spec, path, context)

        if shape in (FieldShape.ARRAY, FieldShape.LIST):
            if isinstance(value, (str, bytes, Mapping)) or not hasattr(value, "__iter__"):
                raise TypeMismatch(
                    context.root, f"expected a sequence, got {type(value).__name__}", path
                )
            items = list(value)
            if not items and not self._options.store_empties:
                return _SKIP
            element: ValueSpec = spec.element  # type: ignore[assignment]
            return [
                None
                if item is None
                else self._encode_value(item, element, _join(path, str(index)), context)
                for index, item in enumerate(items)
            ]

        if shape is FieldShape.MAPPING:
            if not isinstance(value, Mapping):
                raise TypeMismatch(
                    context.root, f"expected a mapping, got {type(value).__name__}", path
                )
            if not supports_key_type(spec.key_type):
                raise UnsupportedKeyType(
                    context.root, f"map keys of type {spec.key_type!r} cannot be stored", path
                )
            if not value and not self._options.store_empties:
                return _SKIP
            element = spec.element  # type: ignore[assignment]
            document: Document = {}
            for key, item in value.items():
                storage_key = self._render_key(spec.key_type, key, path, context)
                document[storage_key] = (
                    None
                    if item is None
                    else self._encode_value(item, element, _join(path, storage_key), context)
                )
            return document

        if shape is FieldShape.BLOB:
            return spec.codec.encode(value)  # type: ignore[union-attr]

        raise TypeMismatch(context.root, f"unknown shape {shape!r}", path)

    def _render_key(self, key_type: Any, key: Any, path: str, context: _EncodeContext) -> str:
        try:
            return render_key(key_type, key)
        except ConversionError as e:
            raise UnsupportedKeyType(context.root, str(e), path) from e

    def _encode_reference(
        self, value: Any, spec: ValueSpec | None, path: str, context: _EncodeContext
    ) -> Document:
        if isinstance(value, Key):
            target = spec.type if spec is not None else None
            return {
                REF_TAG: value.type_tag,
                REF_ID: self._encode_key_id(value, target, path, context),
            }

        if not is_mappable(type(value)):
            raise TypeMismatch(
                context.root,
                f"cannot reference a {type(value).__name__}; expected an entity or Key",
                path,
            )
        mapped = self._registry.resolve(type(value))
        if not mapped.is_root or mapped.id_field is None:
            raise TypeMismatch(
                context.root, f"{mapped.name} is embedded and cannot be referenced", path
            )
        id_value = getattr(value, mapped.id_field.name, None)
        if id_value is None:
            raise UnresolvedReference(
                context.root, f"referenced {mapped.name} has no identity value", path
            )
        return {
            REF_TAG: mapped.collection,
            REF_ID: self._encode_value(id_value, mapped.id_field.spec, path, context),
        }

    def _encode_key_id(self, key: Key, target: Any, path: str, context: _EncodeContext) -> Any:
        """Typed references store the entity's id form; bare Keys describe themselves."""
        if is_mappable(target):
            mapped = self._registry.resolve(target)
            if mapped.id_field is not None:
                return self._encode_value(key.id, mapped.id_field.spec, path, context)
        try:
            return encode_key_id(key.id)
        except ConversionError as e:
            raise TypeMismatch(context.root, f"unsupported key id: {e}", path) from e

    def _encode_dynamic(self, value: Any, path: str, context: _EncodeContext) -> Any:
        """Encode a value declared as Any: mapped objects always carry a discriminator."""
        if value is None:
            return None
        if isinstance(value, Key):
            return self._encode_reference(value, None, path, context)
        if is_mappable(type(value)):
            mapped = self._registry.resolve(type(value))
            return self._encode_object(value, mapped, True, path, context)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [
                self._encode_dynamic(item, _join(path, str(index)), context)
                for index, item in enumerate(value)
            ]
        if isinstance(value, Mapping):
            document: Document = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise UnsupportedKeyType(
                        context.root,
                        f"untyped mapping keys must be str, got {type(key).__name__}",
                        path,
                    )
                document[key] = self._encode_dynamic(item, _join(path, key), context)
            return document
        if isinstance(value, DOCUMENT_SCALARS):
            return value
        raise TypeMismatch(
            context.root,
            f"cannot store untyped {type(value).__name__}; declare the field type",
            path,
        )
