"""Source adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from carwatch.config import Config
from carwatch.ingestion.normalize import RawListing, Source


class SourceAdapter(ABC):
    """Abstract base class for source adapters.

    Every adapter knows how to fetch and parse one page of listings from a
    specific source. The rest of the system is source-agnostic.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._timeout = httpx.Timeout(
            config.http_read_timeout_seconds,
            connect=config.http_connect_timeout_seconds,
        )
        self._headers = {
            "User-Agent": config.http_user_agent,
            "Accept-Language": "cs-CZ,cs;q=0.9,en;q=0.8",
        }

    @property
    @abstractmethod
    def source(self) -> Source:
        """Source this adapter fetches from."""

    @property
    def name(self) -> str:
        return self.source.value

    @abstractmethod
    def fetch(self) -> list[RawListing]:
        """Fetch the newest page of listings, newest first.

        Never raises for HTTP or parse problems: those are logged and an
        empty list is returned.
        """
