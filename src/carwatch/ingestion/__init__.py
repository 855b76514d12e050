"""Ingestion pipeline — source fetching, normalization, and deduplication."""

from carwatch.ingestion.bazos_adapter import BazosAdapter
from carwatch.ingestion.normalize import Source
from carwatch.ingestion.registry import register_adapter
from carwatch.ingestion.sauto_adapter import SautoAdapter

register_adapter(Source.BAZOS, BazosAdapter)
register_adapter(Source.SAUTO, SautoAdapter)
