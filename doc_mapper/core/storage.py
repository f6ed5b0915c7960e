"""Storage collaborator protocol.

The mapping core never talks to storage itself. Higher layers (see
``doc_mapper.repository``) persist encoded documents and fetch them back
through this minimal contract.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable

from doc_mapper.core.document import Document


@runtime_checkable
class Storage(Protocol):
    """Document storage protocol."""

    def put(self, collection: str, key_value: Any, document: Document) -> None:
        """Persist ``document`` under ``key_value`` in ``collection``."""
        ...

    def get(self, collection: str, key_value: Any) -> Document | None:
        """Fetch the document stored under ``key_value``, or None."""
        ...


class MemoryStorage:
    """In-process storage keeping deep copies of documents.

    Copies go in and out so callers never share mutable state with the
    store, the same isolation a real driver gives through serialization.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[Any, Document]] = {}

    def put(self, collection: str, key_value: Any, document: Document) -> None:
        """Persist a copy of the document."""
        self._collections.setdefault(collection, {})[key_value] = copy.deepcopy(document)

    def get(self, collection: str, key_value: Any) -> Document | None:
        """Fetch a copy of the stored document."""
        document = self._collections.get(collection, {}).get(key_value)
        if document is None:
            return None
        return copy.deepcopy(document)

    def count(self, collection: str) -> int:
        """Number of documents stored in a collection."""
        return len(self._collections.get(collection, {}))

    def collections(self) -> list[str]:
        """Collection names, sorted alphabetically."""
        return sorted(self._collections)
