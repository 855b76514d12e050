"""Ingestion cycle — fetch, dedup, persist and notify for one source."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import carwatch.ingestion  # noqa: F401  registers the source adapters
from carwatch.config import Config
from carwatch.ingestion.adapter import SourceAdapter
from carwatch.ingestion.dedup import partition_new
from carwatch.ingestion.normalize import Listing, RawListing, Source, to_listing
from carwatch.ingestion.registry import get_adapter_class
from carwatch.notify.fanout import Notifier
from carwatch.storage.listings import PersistConflict, bulk_insert, existing_identities

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleResult:
    """Summary of one fetch -> dedup -> persist -> notify run."""

    source: Source
    started_at: str
    finished_at: str
    fetched: int = 0
    inserted: int = 0
    notified: int = 0
    conflicts: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_adapter(config: Config, source: Source) -> SourceAdapter:
    adapter_cls = get_adapter_class(source)
    if adapter_cls is None:
        raise ValueError(f"No adapter registered for source '{source.value}'")
    return adapter_cls(config)


def _new_listings(database_path: str, candidates: list[RawListing]) -> list[RawListing]:
    return partition_new(
        candidates, lambda urls: existing_identities(database_path, urls)
    )


def persist_new(database_path: str, candidates: list[RawListing]) -> tuple[list[Listing], int]:
    """Store the candidates that are not known yet.

    Returns the stored listings and the number of conflicts hit. A conflict
    means another cycle stored some of the same URLs first: the batch is
    re-checked against the store once and the remainder inserted. If that
    also conflicts, the batch is dropped for this cycle.
    """
    new_raw = _new_listings(database_path, candidates)
    if not new_raw:
        return [], 0

    listings = [to_listing(raw) for raw in new_raw]
    try:
        bulk_insert(database_path, listings)
        return listings, 0
    except PersistConflict as exc:
        logger.warning("Insert conflict, re-checking batch: %s", exc)

    remaining = _new_listings(database_path, new_raw)
    if not remaining:
        return [], 1

    listings = [to_listing(raw) for raw in remaining]
    try:
        bulk_insert(database_path, listings)
        return listings, 1
    except PersistConflict as exc:
        logger.warning(
            "Insert conflict on retry, dropping %d listing(s) this cycle: %s",
            len(listings), exc,
        )
        return [], 2


def run_cycle(
    config: Config,
    source: Source,
    notifier: Notifier,
    adapter: SourceAdapter | None = None,
) -> CycleResult:
    """Run one ingestion cycle for a source. Never raises."""
    started_at = datetime.now(timezone.utc).isoformat()
    fetched = inserted = notified = conflicts = 0
    error_msg = None

    try:
        if adapter is None:
            adapter = build_adapter(config, source)

        candidates = adapter.fetch()
        fetched = len(candidates)

        stored, conflicts = persist_new(config.database_path, candidates)
        inserted = len(stored)

        for listing in stored:
            notifier.notify(listing)
            notified += 1

        if inserted:
            logger.info(
                "Cycle %s: %d fetched, %d new listing(s) stored and notified",
                source.value, fetched, inserted,
            )
        else:
            logger.debug("Cycle %s: %d fetched, nothing new", source.value, fetched)
    except Exception as exc:
        logger.exception("Cycle for %s failed", source.value)
        error_msg = f"{type(exc).__name__}: {exc}"

    return CycleResult(
        source=source,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc).isoformat(),
        fetched=fetched,
        inserted=inserted,
        notified=notified,
        conflicts=conflicts,
        error=error_msg,
    )
