"""Adapter registry — maps sources to adapter classes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from carwatch.ingestion.normalize import Source

if TYPE_CHECKING:
    from carwatch.ingestion.adapter import SourceAdapter

_REGISTRY: dict[Source, type[SourceAdapter]] = {}


def register_adapter(source: Source, cls: type[SourceAdapter]) -> None:
    """Register the adapter class for a source."""
    _REGISTRY[source] = cls


def get_adapter_class(source: Source) -> type[SourceAdapter] | None:
    """Look up the adapter class for a source. Returns None if not found."""
    return _REGISTRY.get(source)


def registered_sources() -> list[Source]:
    """Return all sources with a registered adapter, sorted by value."""
    return sorted(_REGISTRY, key=lambda source: source.value)
