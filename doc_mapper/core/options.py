"""Mapper configuration.

MapperOptions is a frozen Pydantic model; one instance is shared by the
registry, encoder and decoder of a Mapper.
"""

from __future__ import annotations

from pydantic import BaseModel


class MapperOptions(BaseModel):
    """Configuration for document mapping."""

    model_config = {"frozen": True}

    id_key: str = "_id"
    discriminator_key: str = "className"
    # Immutable non-identity fields are neither written nor read.
    ignore_finals: bool = False
    store_empties: bool = True
    require_embedded_names: bool = False
