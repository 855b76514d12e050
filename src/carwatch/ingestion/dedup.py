"""Split a fetched batch into already-stored and new listings."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from carwatch.ingestion.normalize import RawListing

logger = logging.getLogger(__name__)

ExistingLookup = Callable[[set[str]], set[str]]


def partition_new(
    candidates: Iterable[RawListing],
    existing_identities: ExistingLookup,
) -> list[RawListing]:
    """Return the candidates whose identity_url is not stored yet.

    ``existing_identities`` is called exactly once with every candidate URL.
    Input order is preserved; a URL repeated inside the batch is kept only
    at its first position.
    """
    unique: list[RawListing] = []
    seen: set[str] = set()
    for candidate in candidates:
        if candidate.identity_url in seen:
            continue
        seen.add(candidate.identity_url)
        unique.append(candidate)

    if not unique:
        return []

    known = existing_identities(seen)
    new = [c for c in unique if c.identity_url not in known]
    logger.debug(
        "Dedup: %d candidate(s), %d known, %d new", len(unique), len(known), len(new)
    )
    return new
