"""
Example 01: Encode and Decode

This example demonstrates turning dataclasses and Pydantic models into
documents and back.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Annotated, Optional

from bson import ObjectId
from pydantic import BaseModel

from doc_mapper import Id, Mapper, Property, Transient, entity, has_path


@dataclass
class Address:
    """Embedded value (no identity)"""
    street: Annotated[Optional[str], Property("address_street")] = None
    city: Optional[str] = None


@entity("hotels")
@dataclass
class Hotel:
    """Root entity"""
    id: Annotated[Optional[ObjectId], Id()] = None
    name: Optional[str] = None
    opened: Optional[date] = None
    address: Optional[Address] = None
    rooms: dict[int, str] = field(default_factory=dict)
    temp: Annotated[Optional[str], Transient()] = None


class Guest(BaseModel):
    """Pydantic root entity"""
    id: Annotated[str, Id()]
    name: str
    visits: int = 0


def main():
    mapper = Mapper()

    print("=== Encode / Decode ===\n")

    # Dataclass
    print("1. Dataclass:")
    hotel = Hotel(
        id=ObjectId(),
        name="Hilton",
        opened=date(2020, 5, 1),
        address=Address("Main St", "Rome"),
        rooms={101: "single", 102: "double"},
        temp="never stored",
    )
    doc = mapper.encode(hotel)
    print(f"   Document: {doc}")
    print(f"   has_path(doc, 'rooms.102') = {has_path(doc, 'rooms.102')}")
    restored = mapper.decode(Hotel, doc)
    print(f"   Restored: {restored}\n")

    # Pydantic model
    print("2. Pydantic Model:")
    guest = Guest(id="g1", name="Ann", visits=3)
    doc = mapper.encode(guest)
    print(f"   Document: {doc}")
    print(f"   Restored: {mapper.decode(Guest, doc)!r}\n")


if __name__ == "__main__":
    main()
