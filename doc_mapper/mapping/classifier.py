"""Field discovery and shape classification.

Fields are discovered from dataclasses, Pydantic models, and decorated plain
classes (class-level annotations). Each declared annotation is then
classified into a storage shape, in priority order:

    1. Serialized() marker               -> BLOB
    2. Reference() marker, or Key        -> REFERENCE
    3. tuple[T, ...]                     -> ARRAY
       list[T], set[T], Sequence[T] ...  -> LIST
    4. dict[K, V], Mapping[K, V]         -> MAPPING
    5. mapped class                      -> EMBEDDED
    6. built-in scalar, Any              -> SCALAR

Container elements whose type is a root entity are stored as references
unless the field carries an Embedded() marker.
"""

from __future__ import annotations

import collections.abc as abc
import dataclasses
import inspect
from dataclasses import dataclass
from types import NoneType, UnionType
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Final,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel

from doc_mapper.core.enums import EmbeddingMode, FieldShape
from doc_mapper.core.key import Key
from doc_mapper.mapping.converters import is_scalar_type
from doc_mapper.mapping.markers import (
    DECLARATION_ATTR,
    Embedded,
    Id,
    Reference,
    Serialized,
    find_marker,
)
from doc_mapper.mapping.metadata import ValueSpec
from doc_mapper.mapping.protocol import PickleCodec

_LIST_CONTAINERS: dict[Any, type] = {
    list: list,
    set: set,
    frozenset: frozenset,
    abc.Sequence: list,
    abc.MutableSequence: list,
    abc.Collection: list,
    abc.Iterable: list,
    abc.Set: frozenset,
    abc.MutableSet: set,
}

_MAPPING_ORIGINS = (dict, abc.Mapping, abc.MutableMapping)


class ClassificationError(ValueError):
    """An annotation cannot be mapped to a storage shape."""


@dataclass(frozen=True)
class DeclaredField:
    """A field as declared on the class, before classification."""

    name: str
    hint: Any
    constructor_arg: bool
    required: bool
    immutable: bool


# --- Type hint helpers ---


def _unpack_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    """Extract base type and metadata from Annotated type hint."""
    if get_origin(hint) is Annotated:
        args = get_args(hint)
        if args:
            return args[0], tuple(args[1:])
    return hint, ()


def _unwrap_optional(hint: Any) -> tuple[Any, bool]:
    """Check if type is Optional/Union with None and extract base type."""
    origin = get_origin(hint)
    if origin in (Union, UnionType):
        args = []
        nullable = False
        for arg in get_args(hint):
            if arg is NoneType:
                nullable = True
            else:
                args.append(arg)
        if nullable and len(args) == 1:
            return args[0], True
    return hint, False


def unwrap(hint: Any) -> tuple[Any, tuple[Any, ...], bool]:
    """Strip Annotated, Optional and Final wrappers.

    Returns (base type, collected Annotated metadata, is_final).
    """
    metadata: tuple[Any, ...] = ()
    is_final = False
    while True:
        if hint is Final:
            return Any, metadata, True
        if get_origin(hint) is Final:
            is_final = True
            hint = get_args(hint)[0]
            continue
        base, extra = _unpack_annotated(hint)
        if extra:
            metadata = (*metadata, *extra)
            hint = base
            continue
        base, nullable = _unwrap_optional(hint)
        if nullable:
            hint = base
            continue
        return hint, metadata, is_final


def type_hints(cls: type) -> dict[str, Any]:
    """Resolve annotations (keeping Annotated metadata) for ``cls`` and its bases.

    Pydantic models are read from their resolved field info; their base
    classes carry annotations that only exist for type checkers.
    """
    if is_pydantic_model(cls):
        hints: dict[str, Any] = {}
        for name, info in cls.model_fields.items():  # type: ignore[attr-defined]
            hint = info.annotation
            if info.metadata:
                hint = Annotated[(hint, *info.metadata)]
            hints[name] = hint
        return hints
    return get_type_hints(cls, localns={cls.__name__: cls}, include_extras=True)


def is_pydantic_model(cls: Any) -> bool:
    """Check if a class is a Pydantic BaseModel subclass."""
    return isinstance(cls, type) and issubclass(cls, BaseModel) and cls is not BaseModel


def is_mappable(tp: Any) -> bool:
    """Check whether ``tp`` can be resolved to a MappedType."""
    if not isinstance(tp, type) or tp is Key or is_scalar_type(tp):
        return False
    return (
        getattr(tp, DECLARATION_ATTR, None) is not None
        or dataclasses.is_dataclass(tp)
        or is_pydantic_model(tp)
    )


def has_identity_marker(cls: type) -> bool:
    """Check whether any annotation of ``cls`` carries an Id() marker."""
    for hint in type_hints(cls).values():
        if find_marker(unwrap(hint)[1], Id) is not None:
            return True
    return False


# --- Field discovery ---


def declared_fields(cls: type) -> list[DeclaredField]:
    """Discover the fields of a dataclass, Pydantic model or plain class.

    Order is declaration order, base class fields first.
    """
    hints = type_hints(cls)

    if is_pydantic_model(cls):
        frozen_model = bool(cls.model_config.get("frozen"))  # type: ignore[attr-defined]
        result = []
        for name, info in cls.model_fields.items():  # type: ignore[attr-defined]
            required = info.is_required()
            hint = hints.get(name, info.annotation)
            immutable = frozen_model or bool(info.frozen) or unwrap(hint)[2]
            result.append(
                DeclaredField(
                    name=name,
                    hint=hint,
                    constructor_arg=immutable or required,
                    required=required,
                    immutable=immutable,
                )
            )
        return result

    if dataclasses.is_dataclass(cls):
        frozen = cls.__dataclass_params__.frozen  # type: ignore[attr-defined]
        result = []
        for f in dataclasses.fields(cls):
            hint = hints.get(f.name, f.type)
            required = (
                f.init
                and f.default is dataclasses.MISSING
                and f.default_factory is dataclasses.MISSING
            )
            immutable = frozen or unwrap(hint)[2]
            result.append(
                DeclaredField(
                    name=f.name,
                    hint=hint,
                    constructor_arg=f.init and (immutable or required),
                    required=required,
                    immutable=immutable,
                )
            )
        return result

    # Plain class - class-level annotations, matched against __init__
    params = constructor_params(cls)
    seen: dict[str, None] = {}
    for klass in reversed(cls.__mro__):
        for name in inspect.get_annotations(klass):
            seen.setdefault(name, None)

    result = []
    for name in seen:
        hint = hints.get(name)
        if hint is None or get_origin(hint) is ClassVar or hint is ClassVar:
            continue
        immutable = unwrap(hint)[2]
        required = params.get(name, False)
        result.append(
            DeclaredField(
                name=name,
                hint=hint,
                constructor_arg=name in params and (immutable or required),
                required=required,
                immutable=immutable,
            )
        )
    return result


def constructor_params(cls: type) -> dict[str, bool]:
    """Keyword-capable ``__init__`` parameters of ``cls`` -> whether required."""
    try:
        signature = inspect.signature(cls)
    except (ValueError, TypeError):
        return {}
    params: dict[str, bool] = {}
    for name, param in signature.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD, param.POSITIONAL_ONLY):
            continue
        params[name] = param.default is inspect.Parameter.empty
    return params


# --- Shape classification ---


def classify(
    hint: Any,
    mode_of: Callable[[type], EmbeddingMode],
    *,
    element: bool = False,
    embed: bool = False,
    reference: bool = False,
) -> ValueSpec:
    """Classify a declared annotation into a ValueSpec.

    Args:
        hint: The declared annotation (Annotated/Optional wrappers allowed).
        mode_of: Callback giving the embedding mode of a mapped class.
        element: True when classifying a container element.
        embed: Embedded() seen on an enclosing annotation.
        reference: Reference() seen on an enclosing annotation.

    Raises:
        ClassificationError: If the annotation has no storage shape.
    """
    base, metadata, _ = unwrap(hint)

    serialized = find_marker(metadata, Serialized)
    if serialized is not None and not element:
        return ValueSpec(FieldShape.BLOB, base, codec=serialized.codec or PickleCodec())

    reference = reference or find_marker(metadata, Reference) is not None
    embed = embed or find_marker(metadata, Embedded) is not None

    if base is Key:
        return ValueSpec(FieldShape.REFERENCE, Key)

    origin = get_origin(base)
    args = get_args(base)

    if origin is tuple or base is tuple:
        if not args:
            element_hint: Any = Any
        elif len(args) == 2 and args[1] is Ellipsis:
            element_hint = args[0]
        elif len(set(args)) == 1:
            element_hint = args[0]
        else:
            raise ClassificationError(f"tuple {base!r} must hold a single element type")
        return ValueSpec(
            FieldShape.ARRAY,
            base,
            element=classify(
                element_hint, mode_of, element=True, embed=embed, reference=reference
            ),
            container=tuple,
        )

    container = _LIST_CONTAINERS.get(origin if origin is not None else base)
    if container is not None:
        element_hint = args[0] if args else Any
        return ValueSpec(
            FieldShape.LIST,
            base,
            element=classify(
                element_hint, mode_of, element=True, embed=embed, reference=reference
            ),
            container=container,
        )

    if (origin if origin is not None else base) in _MAPPING_ORIGINS:
        key_hint, value_hint = args if len(args) == 2 else (Any, Any)
        return ValueSpec(
            FieldShape.MAPPING,
            base,
            element=classify(value_hint, mode_of, element=True, embed=embed, reference=reference),
            key_type=unwrap(key_hint)[0],
            container=dict,
        )

    if base is Any or base is object:
        if reference:
            return ValueSpec(FieldShape.REFERENCE, Any)
        return ValueSpec(FieldShape.SCALAR, Any)

    if reference:
        return ValueSpec(FieldShape.REFERENCE, base)

    if is_mappable(base):
        if element and not embed and mode_of(base) is EmbeddingMode.ROOT:
            return ValueSpec(FieldShape.REFERENCE, base)
        return ValueSpec(FieldShape.EMBEDDED, base)

    if is_scalar_type(base):
        return ValueSpec(FieldShape.SCALAR, base)

    raise ClassificationError(f"unsupported field type {base!r}")
