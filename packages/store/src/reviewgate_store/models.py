"""Asset store data models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StoredAsset:
    """An uploaded asset after it has been written by a store."""

    ref: str
    filename: str
    size: int
