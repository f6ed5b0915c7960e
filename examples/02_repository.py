"""
Example 02: Repository Pattern

This example demonstrates storing entities through a Repository, with
references kept as Keys until they are dereferenced.
"""

from dataclasses import dataclass, field
from typing import Annotated, Optional

from bson import ObjectId

from doc_mapper import Id, Mapper, MemoryStorage, Reference, Repository, configure_logging, entity


@entity("hotels")
@dataclass
class Hotel:
    """Hotel entity"""
    id: Annotated[Optional[ObjectId], Id()] = None
    name: Optional[str] = None
    stars: int = 0


@entity("agencies")
@dataclass
class Agency:
    """Agency entity referencing hotels"""
    id: Annotated[Optional[ObjectId], Id()] = None
    name: Optional[str] = None
    hotels: list[Hotel] = field(default_factory=list)
    preferred: Annotated[Optional[Hotel], Reference()] = None


class HotelRepository(Repository[Hotel]):
    """Repository for Hotel entities"""

    def __init__(self, storage: MemoryStorage, mapper: Mapper):
        super().__init__(storage, Hotel, mapper)

    def find_rated(self, ids: list[ObjectId], min_stars: int) -> list[Hotel]:
        """Load hotels and keep the well rated ones"""
        return [hotel for hotel in self.get_many(ids) if hotel.stars >= min_stars]


def main():
    configure_logging(verbose=True)

    storage = MemoryStorage()
    mapper = Mapper().map(Hotel, Agency)
    hotels = HotelRepository(storage, mapper)
    agencies = Repository(storage, Agency, mapper)

    print("=== Repository Pattern ===\n")

    # Save (ObjectId identities are assigned on save)
    print("1. Save:")
    borg = Hotel(name="Borg", stars=3)
    hilton = Hotel(name="Hilton", stars=5)
    for hotel in (borg, hilton):
        key = hotels.save(hotel)
        print(f"   Saved {hotel.name} as {key}")
    agency_key = agencies.save(Agency(name="Trips", hotels=[borg, hilton], preferred=hilton))
    print(f"   Saved agency as {agency_key}\n")

    # Load
    print("2. Load:")
    agency = agencies.get(agency_key.id)
    print(f"   Hotels (as keys): {agency.hotels}")
    preferred = agencies.dereference(agency.preferred)
    print(f"   Preferred hotel: {preferred.name}")
    rated = hotels.find_rated([key.id for key in agency.hotels], min_stars=4)
    print(f"   Rated 4+: {[hotel.name for hotel in rated]}\n")

    print(f"Collections: {storage.collections()}")


if __name__ == "__main__":
    main()
