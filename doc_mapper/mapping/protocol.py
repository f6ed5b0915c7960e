"""Blob codec protocol.

Fields marked ``Serialized`` are stored as opaque bytes. Any object with
this interface can be supplied per field; PickleCodec is the default.
"""

from __future__ import annotations

import pickle
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Codec(Protocol):
    """Opaque value codec."""

    def encode(self, value: Any) -> bytes:
        """Serialize a value to bytes."""
        ...

    def decode(self, data: bytes) -> Any:
        """Rebuild a value equal to the one that was encoded."""
        ...


class PickleCodec:
    """Codec backed by the pickle protocol."""

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def encode(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self._protocol)

    def decode(self, data: bytes) -> Any:
        return pickle.loads(data)  # noqa: S301
