"""Bazos source adapter — scrapes the newest car listings from auto.bazos.cz."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urldefrag, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from carwatch.ingestion.adapter import SourceAdapter
from carwatch.ingestion.normalize import RawListing, Source, make_raw_listing

logger = logging.getLogger(__name__)

BAZOS_ORIGIN = "https://auto.bazos.cz"
_BAZOS_SEARCH_URL = f"{BAZOS_ORIGIN}/"


@dataclass(frozen=True)
class _Card:
    """One listing card as found in the page, before validation."""

    href: str | None
    title: str
    price: str | None
    locality: str | None
    image: str | None


def _text(node: Tag | None, separator: str = "") -> str | None:
    if node is None:
        return None
    text = node.get_text(separator, strip=True)
    return text or None


def _extract_card(node: Tag) -> _Card:
    heading = node.select_one("h2.nadpis a")
    image = node.select_one("img.obrazek")
    return _Card(
        href=heading.get("href") if heading is not None else None,
        title=_text(heading) or "",
        price=_text(node.select_one("div.inzeratycena")),
        locality=_text(node.select_one("div.inzeratylok"), " "),
        image=image.get("src") if image is not None else None,
    )


def resolve_listing_url(href: str | None) -> str | None:
    """Turn a card link into an absolute listing URL on the Bazos origin.

    Relative paths are joined to the fixed origin. Links that point to
    another host, or are not http(s), resolve to None.
    """
    if not href or not href.strip():
        return None
    url, _ = urldefrag(urljoin(BAZOS_ORIGIN + "/", href.strip()))
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return None
    if parsed.netloc != urlparse(BAZOS_ORIGIN).netloc:
        return None
    if parsed.path in ("", "/"):
        return None
    return url


def parse_listing_page(html: str) -> list[RawListing]:
    """Parse a Bazos search results page into RawListings, page order kept."""
    soup = BeautifulSoup(html, "html.parser")
    listings: list[RawListing] = []

    for node in soup.select("div.inzeraty"):
        try:
            card = _extract_card(node)
        except (AttributeError, TypeError, ValueError):
            logger.debug("Skipping unreadable Bazos card", exc_info=True)
            continue

        url = resolve_listing_url(card.href)
        if not card.title or url is None:
            logger.debug("Skipping Bazos card without title or link: %r", card.href)
            continue

        image_url = urljoin(BAZOS_ORIGIN + "/", card.image) if card.image else None
        listings.append(
            make_raw_listing(
                Source.BAZOS,
                identity_url=url,
                title=card.title,
                price_display=card.price,
                image_url=image_url,
                locality=card.locality,
            )
        )

    return listings


class BazosAdapter(SourceAdapter):
    """Adapter for the auto.bazos.cz HTML listing page."""

    @property
    def source(self) -> Source:
        return Source.BAZOS

    def _params(self) -> dict[str, str | int]:
        return {
            "hledat": "",
            "rubriky": "auto",
            "hlokalita": "",
            "humkreis": 25,
            "cenaod": self._config.bazos_price_from,
            "cenado": self._config.bazos_price_to,
            "Submit": "Hledat",
            "kitx": "ano",
        }

    def fetch(self) -> list[RawListing]:
        try:
            response = httpx.get(
                _BAZOS_SEARCH_URL,
                params=self._params(),
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("HTTP error fetching Bazos listings")
            return []

        try:
            listings = parse_listing_page(response.text)
        except Exception:
            logger.exception("Failed to parse Bazos listing page")
            return []

        logger.info("Fetched %d listing(s) from Bazos", len(listings))
        return listings
