"""Sauto source adapter — fetches private-seller car listings via the Sauto search API."""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from carwatch.ingestion.adapter import SourceAdapter
from carwatch.ingestion.normalize import RawListing, Source, make_raw_listing

logger = logging.getLogger(__name__)

SAUTO_ORIGIN = "https://www.sauto.cz"
_SAUTO_SEARCH_URL = f"{SAUTO_ORIGIN}/api/v1/items/search"


# ---------------------------------------------------------------------------
# Wire model for one search result
# ---------------------------------------------------------------------------
def _text_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number_or_none(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.replace(" ", ""))
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


class SautoItem(BaseModel):
    """One search result, flattened.

    Only ``id`` is strict. Display fields arriving in an unexpected shape
    become None so the listing itself is still kept.
    """

    # "model_cb" is the API's field name, not a pydantic attribute.
    model_config = ConfigDict(protected_namespaces=())

    id: int | str
    name: str | None = None
    category: str | None = None
    manufacturer_cb: str | None = None
    model_cb: str | None = None
    price: float | None = None
    photos: list[str] = []
    locality: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str | None:
        return _text_or_none(value)

    @field_validator("category", "manufacturer_cb", "model_cb", mode="before")
    @classmethod
    def _seo_name(cls, value: Any) -> str | None:
        if isinstance(value, dict):
            return _text_or_none(value.get("seo_name"))
        return None

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> float | None:
        if isinstance(value, dict):
            return _number_or_none(value.get("value"))
        return _number_or_none(value)

    @field_validator("photos", mode="before")
    @classmethod
    def _photos(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        urls = []
        for photo in value:
            url = _text_or_none(photo.get("url") if isinstance(photo, dict) else photo)
            if url is not None:
                urls.append(url)
        return urls

    @field_validator("locality", mode="before")
    @classmethod
    def _locality(cls, value: Any) -> str | None:
        if isinstance(value, dict):
            for key in ("name", "municipality", "district"):
                text = _text_or_none(value.get(key))
                if text is not None:
                    return text
            return None
        return _text_or_none(value)


def build_listing_url(item: SautoItem) -> str | None:
    """Build the public detail URL for a search result.

    Uses the category/brand/model slugs when all three are present, and the
    generic detail path otherwise.
    """
    item_id = str(item.id).strip()
    if not item_id:
        return None
    if item.category and item.manufacturer_cb and item.model_cb:
        return (
            f"{SAUTO_ORIGIN}/{item.category}/detail/"
            f"{item.manufacturer_cb}/{item.model_cb}/{item_id}"
        )
    return f"{SAUTO_ORIGIN}/detail/{item_id}"


def format_price(value: float | None) -> str | None:
    """Format a CZK amount with space thousands separators: 150000 -> "150 000 Kč"."""
    if value is None:
        return None
    return f"{int(value):,}".replace(",", " ") + " Kč"


def _image_url(item: SautoItem) -> str | None:
    if not item.photos:
        return None
    url = item.photos[0]
    if url.startswith("//"):
        return f"https:{url}"
    return url


def parse_search_results(payload: object) -> list[RawListing]:
    """Parse a decoded search response into RawListings, result order kept.

    Records that fail validation, lack a title, or have no usable id are
    skipped individually.
    """
    if not isinstance(payload, dict):
        raise ValueError("Sauto response is not a JSON object")
    results = payload.get("results") or []
    if not isinstance(results, list):
        raise ValueError("Sauto 'results' is not a list")

    listings: list[RawListing] = []
    for record in results:
        try:
            item = SautoItem.model_validate(record)
        except ValidationError as exc:
            logger.debug("Skipping malformed Sauto record: %s", exc)
            continue

        url = build_listing_url(item)
        if not item.name or not item.name.strip() or url is None:
            logger.debug("Skipping Sauto record without title or link: id=%s", item.id)
            continue

        listings.append(
            make_raw_listing(
                Source.SAUTO,
                identity_url=url,
                title=item.name,
                price_display=format_price(item.price),
                image_url=_image_url(item),
                locality=item.locality,
            )
        )

    return listings


class SautoAdapter(SourceAdapter):
    """Adapter for the Sauto JSON search endpoint."""

    @property
    def source(self) -> Source:
        return Source.SAUTO

    def _params(self) -> dict[str, str | int]:
        return {
            "category_id": self._config.sauto_category_id,
            "limit": self._config.sauto_limit,
            "offset": 0,
            "prodejce": "soukromy",
        }

    def fetch(self) -> list[RawListing]:
        try:
            response = httpx.get(
                _SAUTO_SEARCH_URL,
                params=self._params(),
                headers={**self._headers, "Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            listings = parse_search_results(response.json())
        except httpx.HTTPError:
            logger.exception("HTTP error fetching Sauto listings")
            return []
        except ValueError:
            logger.exception("Malformed Sauto search response")
            return []

        logger.info("Fetched %d listing(s) from Sauto", len(listings))
        return listings
