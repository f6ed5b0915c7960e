"""Repository layer - DDD repository pattern."""

from __future__ import annotations

from doc_mapper.repository.base import Repository

__all__ = [
    "Repository",
]
