"""Field markers and class decorators.

Markers ride inside ``typing.Annotated`` and tune how a single field is
stored; the decorators declare a class as a root entity or an embedded
value type:

    @entity("hotels")
    @dataclass
    class Hotel:
        id: Annotated[ObjectId | None, Id()] = None
        name: Annotated[str | None, Property("hotel_name")] = None
        address: Address | None = None
        agency: Annotated[Key | None, Reference()] = None
        temp: Annotated[str | None, Transient()] = None
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from doc_mapper.core.enums import EmbeddingMode
from doc_mapper.mapping.protocol import Codec

C = TypeVar("C", bound=type)

# Class attribute holding a TypeDeclaration set by the decorators.
DECLARATION_ATTR = "__doc_mapping__"

# Discriminator name -> class, filled by the decorators at class definition time.
_DECLARED: dict[str, type] = {}


@dataclass(frozen=True)
class Id:
    """Marks the identity field of a root entity."""


@dataclass(frozen=True)
class Property:
    """Overrides the storage name and/or adds alias names accepted on decode."""

    name: str | None = None
    also_load: tuple[str, ...] = ()


class AlsoLoad:
    """Alias storage names tried, in order, after the primary storage name."""

    def __init__(self, *names: str) -> None:
        self.names = tuple(names)

    def __repr__(self) -> str:
        return f"AlsoLoad{self.names!r}"


@dataclass(frozen=True)
class Embedded:
    """Forces root-typed container elements to be embedded, not referenced."""


@dataclass(frozen=True)
class Reference:
    """Stores the field as a Key instead of a nested document."""


@dataclass(frozen=True)
class Serialized:
    """Stores the field as an opaque blob produced by ``codec``."""

    codec: Codec | None = None


@dataclass(frozen=True)
class Transient:
    """Excludes the field from storage entirely."""


@dataclass(frozen=True)
class TypeDeclaration:
    """What a class decorator declared about its class."""

    mode: EmbeddingMode
    name: str | None = None
    discriminator: str | None = None
    polymorphic: bool = False


def qualified_name(cls: type) -> str:
    """Default discriminator: ``module.QualifiedName``."""
    return f"{cls.__module__}.{cls.__qualname__}"


def declaration_of(cls: type) -> TypeDeclaration | None:
    """Return the declaration made on ``cls`` itself (not inherited)."""
    declaration = cls.__dict__.get(DECLARATION_ATTR)
    return declaration if isinstance(declaration, TypeDeclaration) else None


def declared_class(discriminator: str) -> type | None:
    """Look up a decorated class by its discriminator name."""
    return _DECLARED.get(discriminator)


def _declare(cls: C, declaration: TypeDeclaration) -> C:
    setattr(cls, DECLARATION_ATTR, declaration)
    _DECLARED[declaration.discriminator or qualified_name(cls)] = cls
    return cls


def entity(
    collection: str | None = None,
    *,
    discriminator: str | None = None,
    polymorphic: bool = False,
) -> Callable[[C], C]:
    """Declare a root entity stored in ``collection`` (default: class name)."""

    def decorator(cls: C) -> C:
        return _declare(
            cls,
            TypeDeclaration(
                mode=EmbeddingMode.ROOT,
                name=collection,
                discriminator=discriminator,
                polymorphic=polymorphic,
            ),
        )

    return decorator


def embedded(name: str | None = None, *, polymorphic: bool = False) -> Callable[[C], C]:
    """Declare an embedded value type; ``name`` doubles as its discriminator."""

    def decorator(cls: C) -> C:
        return _declare(
            cls,
            TypeDeclaration(
                mode=EmbeddingMode.EMBEDDED,
                name=name,
                discriminator=name,
                polymorphic=polymorphic,
            ),
        )

    return decorator


def find_marker(metadata: tuple[Any, ...], marker_type: type) -> Any | None:
    """Return the first marker of ``marker_type`` in Annotated metadata."""
    for item in metadata:
        if isinstance(item, marker_type):
            return item
    return None
