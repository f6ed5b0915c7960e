"""Shared test fixtures."""

from __future__ import annotations

import pytest

from doc_mapper.core.options import MapperOptions
from doc_mapper.core.storage import MemoryStorage
from doc_mapper.mapping.mapper import Mapper


@pytest.fixture
def options() -> MapperOptions:
    """Default mapping options."""
    return MapperOptions()


@pytest.fixture
def mapper(options: MapperOptions) -> Mapper:
    """Mapper with its own, empty type registry."""
    return Mapper(options)


@pytest.fixture
def storage() -> MemoryStorage:
    """Empty in-process document storage."""
    return MemoryStorage()
