"""Unit tests for TypeRegistry resolution and validation."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Annotated, Any, Final

import pytest
from bson import ObjectId
from pydantic import BaseModel, ConfigDict

from doc_mapper.core.enums import EmbeddingMode, FieldShape
from doc_mapper.core.exceptions import (
    IdentityOnEmbedded,
    InvalidField,
    MissingConstructor,
    MissingIdentity,
    UnnamedEmbedded,
    UnsupportedEnclosure,
)
from doc_mapper.core.key import Key
from doc_mapper.core.options import MapperOptions
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
    qualified_name,
)
from doc_mapper.mapping.registry import TypeRegistry, describe


@dataclass
class Address:
    street: Annotated[str | None, Property("address_street")] = None
    city: str | None = None


@entity("hotels")
@dataclass
class Hotel:
    id: Annotated[ObjectId | None, Id()] = None
    name: str | None = None
    stars: int = 0
    address: Address | None = None
    phone_numbers: list[str] = field(default_factory=list)
    temp: Annotated[str | None, Transient()] = None


@entity("agencies")
@dataclass
class Agency:
    id: Annotated[str | None, Id()] = None
    hotels: list[Hotel] = field(default_factory=list)
    flagship: Annotated[Hotel | None, Embedded()] = None
    owned: Annotated[list[Hotel], Embedded()] = field(default_factory=list)
    partner: Annotated[Agency | None, Reference()] = None
    by_name: dict[str, Hotel] = field(default_factory=dict)
    key: Key | None = None


@dataclass
class Shapes:
    tags: tuple[str, ...] = ()
    scores: Sequence[int] = ()
    unique: set[str] = field(default_factory=set)
    blob: Annotated[dict[str, Any] | None, Serialized()] = None
    anything: Any = None


@dataclass
class Aliased:
    id: Annotated[int | None, Id()] = None
    ints: Annotated[list[int], AlsoLoad("intList", "int_list")] = field(default_factory=list)
    label: Annotated[str | None, Property("lbl", also_load=("label_v1",))] = None


@dataclass(frozen=True)
class FrozenToken:
    id: Annotated[str, Id()]
    value: str
    note: str = "n/a"


@dataclass(frozen=True)
class FrozenNote:
    id: Annotated[str, Id()]
    note: str = "n/a"


@dataclass
class WithFinal:
    id: Annotated[str | None, Id()] = None
    version: Final[str] = "foo"
    count: int = 0


class Author(BaseModel):
    id: Annotated[str, Id()]
    name: str
    tags: list[str] = []


class FrozenAuthor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Id()]
    name: str = ""


@entity("plain")
class PlainEntity:
    id: Annotated[str | None, Id()]
    title: str | None

    def __init__(self, id: str | None = None, title: str | None = None) -> None:
        self.id = id
        self.title = title


@embedded("named-part")
@dataclass
class NamedPart:
    size: int = 0


@dataclass
class Vehicle:
    id: Annotated[str | None, Id()] = None
    wheels: int = 0


@dataclass
class Car(Vehicle):
    doors: int = 4


@embedded(polymorphic=True)
class Animal(ABC):
    name: str | None = None

    @abstractmethod
    def sound(self) -> str: ...


# --- Bad mappings ---


@entity()
@dataclass
class NoIdentity:
    name: str = ""


@dataclass
class TwoIds:
    a: Annotated[int, Id()] = 0
    b: Annotated[int, Id()] = 0


@embedded()
@dataclass
class EmbeddedWithId:
    id: Annotated[int, Id()] = 0


@dataclass
class UnsupportedField:
    value: complex = 0j


@dataclass
class MixedTuple:
    pair: tuple[int, str] = (0, "")


@dataclass
class NonScalarId:
    id: Annotated[list[int], Id()] = field(default_factory=list)


@embedded()
class NeedsArgs:
    size: int

    def __init__(self, size: int, secret: str) -> None:
        self.size = size
        self.secret = secret


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry()


class TestResolve:
    def test_root_entity(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Hotel)
        assert mapped.mode is EmbeddingMode.ROOT
        assert mapped.collection == "hotels"
        assert mapped.id_field is not None
        assert mapped.id_field.storage_name == "_id"
        assert [f.name for f in mapped.fields] == [
            "id",
            "name",
            "stars",
            "address",
            "phone_numbers",
        ]

    def test_transient_field_excluded(self, registry: TypeRegistry) -> None:
        assert registry.resolve(Hotel).get_field("temp") is None

    def test_implicit_embedded(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Address)
        assert mapped.mode is EmbeddingMode.EMBEDDED
        assert mapped.collection is None
        street = mapped.get_field("street")
        assert street is not None
        assert street.storage_name == "address_street"

    def test_implicit_root(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Vehicle)
        assert mapped.is_root
        assert mapped.collection == "Vehicle"

    def test_default_discriminator_is_qualified_name(self, registry: TypeRegistry) -> None:
        assert registry.resolve(Hotel).discriminator == qualified_name(Hotel)
        assert registry.resolve(NamedPart).discriminator == "named-part"

    def test_idempotent(self, registry: TypeRegistry) -> None:
        first = registry.resolve(Hotel)
        assert registry.resolve(Hotel) is first
        assert registry.is_resolved(Hotel)
        assert len(registry) == 1

    def test_concurrent_resolution_publishes_one_result(self, registry: TypeRegistry) -> None:
        results = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            results.append(registry.resolve(Agency))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 8
        assert all(r is results[0] for r in results)

    def test_lookup_discriminator(self, registry: TypeRegistry) -> None:
        registry.resolve(Hotel)
        assert registry.lookup_discriminator(qualified_name(Hotel)) is Hotel
        assert registry.lookup_discriminator("named-part") is NamedPart
        assert registry.lookup_discriminator(qualified_name(Car), Vehicle) is Car
        assert registry.lookup_discriminator("no.such.Type") is None


class TestShapes:
    def test_container_and_scalar_shapes(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Shapes)
        shapes = {f.name: f.shape for f in mapped.fields}
        assert shapes == {
            "tags": FieldShape.ARRAY,
            "scores": FieldShape.LIST,
            "unique": FieldShape.LIST,
            "blob": FieldShape.BLOB,
            "anything": FieldShape.SCALAR,
        }
        assert mapped.get_field("tags").element_type is str  # type: ignore[union-attr]
        assert mapped.get_field("unique").spec.container is set  # type: ignore[union-attr]

    def test_root_elements_are_references(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Agency)
        elements = {
            name: mapped.get_field(name).spec.element.shape  # type: ignore[union-attr]
            for name in ("hotels", "owned", "by_name")
        }
        assert elements == {
            "hotels": FieldShape.REFERENCE,
            "owned": FieldShape.EMBEDDED,
            "by_name": FieldShape.REFERENCE,
        }

    def test_single_root_field_is_embedded(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Agency)
        assert mapped.get_field("flagship").shape is FieldShape.EMBEDDED  # type: ignore[union-attr]

    def test_reference_marker_and_key(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Agency)
        assert mapped.get_field("partner").shape is FieldShape.REFERENCE  # type: ignore[union-attr]
        assert mapped.get_field("key").shape is FieldShape.REFERENCE  # type: ignore[union-attr]

    def test_mapping_key_type(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Agency)
        by_name = mapped.get_field("by_name")
        assert by_name is not None
        assert by_name.shape is FieldShape.MAPPING
        assert by_name.key_type is str


class TestAliases:
    def test_alias_order(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Aliased)
        ints = mapped.get_field("ints")
        label = mapped.get_field("label")
        assert ints is not None and label is not None
        assert ints.load_names == ("ints", "intList", "int_list")
        assert label.load_names == ("lbl", "label_v1")


class TestConstruction:
    def test_frozen_dataclass_fields_are_constructor_args(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(FrozenToken)
        assert [f.name for f in mapped.constructor_fields] == ["id", "value", "note"]
        assert mapped.settable_fields == ()

    def test_mutable_defaults_are_settable(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Hotel)
        assert mapped.constructor_fields == ()
        assert len(mapped.settable_fields) == len(mapped.fields)

    def test_final_field_is_immutable(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(WithFinal)
        version = mapped.get_field("version")
        assert version is not None
        assert version.immutable
        assert version.constructor_arg
        assert version not in mapped.settable_fields

    def test_ignore_finals_drops_immutable_fields(self) -> None:
        registry = TypeRegistry(MapperOptions(ignore_finals=True))
        mapped = registry.resolve(WithFinal)
        assert mapped.get_field("version") is None
        assert mapped.get_field("count") is not None

    def test_ignore_finals_keeps_identity(self) -> None:
        registry = TypeRegistry(MapperOptions(ignore_finals=True))
        mapped = registry.resolve(FrozenNote)
        assert [f.name for f in mapped.fields] == ["id"]

    def test_ignore_finals_cannot_drop_required_arguments(self) -> None:
        registry = TypeRegistry(MapperOptions(ignore_finals=True))
        with pytest.raises(MissingConstructor, match="value"):
            registry.resolve(FrozenToken)

    def test_pydantic_model(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(Author)
        assert mapped.pydantic
        assert mapped.is_root
        assert [f.name for f in mapped.constructor_fields] == ["id", "name"]
        assert [f.name for f in mapped.settable_fields] == ["tags"]

    def test_frozen_pydantic_model(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(FrozenAuthor)
        assert all(f.immutable for f in mapped.fields)
        assert mapped.settable_fields == ()

    def test_plain_class(self, registry: TypeRegistry) -> None:
        mapped = registry.resolve(PlainEntity)
        assert mapped.collection == "plain"
        assert [f.name for f in mapped.settable_fields] == ["id", "title"]


class TestPolymorphism:
    def test_subclass_of_mapped_type_is_polymorphic(self, registry: TypeRegistry) -> None:
        assert not registry.resolve(Vehicle).polymorphic
        assert registry.resolve(Car).polymorphic

    def test_subclass_inherits_collection(self, registry: TypeRegistry) -> None:
        assert registry.resolve(Car).collection == "Vehicle"
        assert registry.resolve(Car).key_for("c1") == registry.resolve(Vehicle).key_for("c1")
        indexed = registry.lookup_collection("Vehicle")
        assert indexed is not None and indexed.cls in (Vehicle, Car)
        assert registry.lookup_collection("Car") is None

    def test_abstract_and_declared_polymorphic(self, registry: TypeRegistry) -> None:
        assert registry.resolve(Animal).polymorphic


class TestValidation:
    def test_root_without_identity(self, registry: TypeRegistry) -> None:
        with pytest.raises(MissingIdentity, match="NoIdentity"):
            registry.resolve(NoIdentity)

    def test_multiple_identity_fields(self, registry: TypeRegistry) -> None:
        with pytest.raises(InvalidField, match="multiple identity fields"):
            registry.resolve(TwoIds)

    def test_identity_on_embedded(self, registry: TypeRegistry) -> None:
        with pytest.raises(IdentityOnEmbedded) as exc_info:
            registry.resolve(EmbeddedWithId)
        assert exc_info.value.field_path == "id"

    def test_unsupported_field_type(self, registry: TypeRegistry) -> None:
        with pytest.raises(InvalidField) as exc_info:
            registry.resolve(UnsupportedField)
        assert exc_info.value.type_name == "UnsupportedField"
        assert exc_info.value.field_path == "value"

    def test_heterogeneous_tuple(self, registry: TypeRegistry) -> None:
        with pytest.raises(InvalidField, match="single element type"):
            registry.resolve(MixedTuple)

    def test_identity_must_be_scalar(self, registry: TypeRegistry) -> None:
        with pytest.raises(InvalidField, match="must be a scalar"):
            registry.resolve(NonScalarId)

    def test_constructor_needs_unmapped_argument(self, registry: TypeRegistry) -> None:
        with pytest.raises(MissingConstructor, match="secret"):
            registry.resolve(NeedsArgs)

    def test_class_defined_in_function(self, registry: TypeRegistry) -> None:
        @dataclass
        class Local:
            x: int = 0

        with pytest.raises(UnsupportedEnclosure, match="defined inside a function"):
            registry.resolve(Local)

    def test_local_class_with_explicit_name(self, registry: TypeRegistry) -> None:
        @embedded("local-point")
        @dataclass
        class LocalPoint:
            x: int = 0

        assert registry.resolve(LocalPoint).discriminator == "local-point"

    def test_not_mappable(self, registry: TypeRegistry) -> None:
        with pytest.raises(InvalidField, match="not a mapped class"):
            registry.resolve(int)

    def test_unnamed_embedded_when_names_required(self) -> None:
        registry = TypeRegistry(MapperOptions(require_embedded_names=True))
        with pytest.raises(UnnamedEmbedded):
            registry.resolve(Address)
        assert registry.resolve(NamedPart).discriminator == "named-part"

    def test_failures_are_not_cached(self, registry: TypeRegistry) -> None:
        for _ in range(2):
            with pytest.raises(MissingIdentity):
                registry.resolve(NoIdentity)
        assert not registry.is_resolved(NoIdentity)


class TestDescribe:
    def test_describe(self, registry: TypeRegistry) -> None:
        summary = describe(registry.resolve(Hotel))
        assert summary["collection"] == "hotels"
        assert summary["mode"] == "root"
        assert summary["polymorphic"] is False
        assert summary["fields"]["id"] == ("_id", "scalar")
        assert summary["fields"]["address"] == ("address", "embedded")
