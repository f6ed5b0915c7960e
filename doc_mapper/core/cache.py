"""Per-decode identity cache.

Maps Key -> instance for the dynamic extent of one top-level decode (or a
batch of decodes that explicitly share it). Instances are registered before
their nested fields are decoded, so a decode that re-enters an entity through
a cycle sees the same, possibly half-populated, object.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from doc_mapper.core.key import Key


class IdentityCache:
    """Key -> instance map owned by a single decode call.

    Not thread-safe; a cache must not be shared across threads mid-decode.
    """

    def __init__(self) -> None:
        self._entries: dict[Key, Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Key) -> Any | None:
        """Return the cached instance for ``key``, or None."""
        instance = self._entries.get(key)
        if instance is None:
            self.misses += 1
        else:
            self.hits += 1
        return instance

    def put(self, key: Key, instance: Any) -> None:
        self._entries[key] = instance

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._entries)
